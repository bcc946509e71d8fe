"""Relational storage for products, variants and extraction jobs."""

from pva.db.models import (
    Base,
    ExtractionJob,
    JobStatus,
    Product,
    ProductStatus,
    ProductVariant,
)
from pva.db.session import (
    get_engine,
    get_session_factory,
    init_db,
    make_engine,
    make_session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "ExtractionJob",
    "JobStatus",
    "Product",
    "ProductStatus",
    "ProductVariant",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_engine",
    "make_session_factory",
    "session_scope",
]
