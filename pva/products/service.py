"""Product persistence: atomic variant-set replacement and status transitions."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from pva.db.models import Product, ProductStatus, ProductVariant
from pva.db.session import session_scope
from pva.schemas.extraction import (
    ExtractedProduct,
    ExtractedVariant,
    parse_extraction_data,
    validate_extraction_data,
)
from pva.value.ranking import best_value_variant, price_per_unit

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT = "Unknown Product"
NAME_MAX_LENGTH = 255


@dataclass
class SaveResult:
    success: bool
    product: Product | None = None
    variants: list[ProductVariant] = field(default_factory=list)
    best_value_variant: ProductVariant | None = None
    processing_time: float = 0.0
    errors: list[str] = field(default_factory=list)


@dataclass
class StatusResult:
    success: bool
    product: Product | None = None
    error_message: str | None = None
    errors: list[str] = field(default_factory=list)


def product_name_from_url(url: str | None) -> str:
    """Host without a leading 'www.', or 'Unknown Product' when unparseable."""
    try:
        host = urlsplit(url or "").hostname
    except ValueError:
        return UNKNOWN_PRODUCT
    if not host:
        return UNKNOWN_PRODUCT
    return host.removeprefix("www.")


def build_variant(data: ExtractedVariant) -> ProductVariant:
    """ORM row for an extracted variant; price-per-unit is derived here, not on save."""
    return ProductVariant(
        name=data.name[:NAME_MAX_LENGTH],
        quantity_text=data.quantity_text,
        quantity_numeric=data.quantity_numeric,
        price_cents=data.price_cents,
        currency=data.currency,
        price_per_unit_cents=price_per_unit(data.price_cents, data.quantity_numeric),
    )


class ProductService:
    """Owns products and their variants. Each public call is its own transaction."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    # -- reads ---------------------------------------------------------------

    def get_product(self, product_id: int) -> Product | None:
        """Product with variants loaded, detached from the session."""
        with self._session_factory() as session:
            return session.scalar(
                select(Product).options(selectinload(Product.variants)).where(Product.id == product_id)
            )

    def find_by_url(self, url: str) -> Product | None:
        with self._session_factory() as session:
            return session.scalar(
                select(Product).options(selectinload(Product.variants)).where(Product.url == url)
            )

    def database_connected(self) -> bool:
        try:
            with self._session_factory() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.debug("Database connection check failed: %s", e)
            return False
        return True

    # -- locate-or-create ------------------------------------------------------

    def _locate_or_create(self, session: Session, url: str, name: str, status: ProductStatus) -> Product:
        """Fetch the product for ``url`` or insert it.

        A concurrent insert of the same URL loses on the unique constraint; the
        savepoint is rolled back and the winner's row is used instead.
        """
        product = session.scalar(select(Product).where(Product.url == url))
        if product is not None:
            return product
        try:
            with session.begin_nested():
                product = Product(url=url, name=name[:NAME_MAX_LENGTH], status=status.value)
                session.add(product)
        except IntegrityError:
            logger.info("Concurrent insert for %s; using existing product", url)
            product = session.scalar(select(Product).where(Product.url == url))
            if product is None:
                raise
        return product

    # -- status transitions ----------------------------------------------------

    def _mark(self, url: str, status: ProductStatus) -> Product:
        with session_scope(self._session_factory) as session:
            product = self._locate_or_create(session, url, product_name_from_url(url), status)
            product.status = status.value
        return product

    def mark_processing(self, url: str) -> StatusResult:
        try:
            product = self._mark(url, ProductStatus.PROCESSING)
        except SQLAlchemyError as e:
            logger.error("Could not mark %s as processing: %s", url, e)
            return StatusResult(success=False, errors=[f"Error updating product status: {e}"])
        return StatusResult(success=True, product=product)

    def mark_failed(self, url: str, error_message: str) -> StatusResult:
        try:
            product = self._mark(url, ProductStatus.FAILED)
        except SQLAlchemyError as e:
            logger.error("Could not mark %s as failed: %s", url, e)
            return StatusResult(success=False, errors=[f"Error marking product as failed: {e}"])
        logger.info("Product %s marked failed: %s", url, error_message)
        return StatusResult(success=True, product=product, error_message=error_message)

    # -- save --------------------------------------------------------------------

    def save(self, extracted_data: ExtractedProduct | Mapping[str, Any] | None, url: str | None) -> SaveResult:
        """Replace the product's variant set with ``extracted_data`` in one transaction."""
        if not extracted_data:
            return SaveResult(success=False, errors=["No extracted data provided"])
        if not url or not url.strip():
            return SaveResult(success=False, errors=["URL is required"])

        payload = extracted_data.to_payload() if isinstance(extracted_data, ExtractedProduct) else extracted_data
        errors = validate_extraction_data(payload)
        if errors:
            return SaveResult(success=False, errors=[f"Invalid data structure: {', '.join(errors)}"])
        data = parse_extraction_data(payload)

        start = time.monotonic()
        try:
            with session_scope(self._session_factory) as session:
                product = self._locate_or_create(session, url, data.name, ProductStatus.PROCESSING)
                product.name = data.name[:NAME_MAX_LENGTH]

                # Old set is deleted (delete-orphan) before the new one is inserted
                product.variants.clear()
                session.flush()

                variants = [build_variant(v) for v in data.variants]
                product.variants.extend(variants)
                session.flush()

                product.status = ProductStatus.COMPLETED.value
                session.flush()
                best = best_value_variant(variants)
        except IntegrityError as e:
            logger.warning("Variant replace for %s rolled back: %s", url, e.orig)
            return SaveResult(success=False, errors=[f"Database validation error: {e.orig}"])
        except SQLAlchemyError as e:
            logger.warning("Variant replace for %s rolled back: %s", url, e)
            return SaveResult(success=False, errors=[f"Database error: {type(e).__name__} - {e}"])
        except ArithmeticError as e:
            # price-per-unit or price beyond what the integer columns can hold
            logger.warning("Variant replace for %s rolled back: %r", url, e)
            return SaveResult(success=False, errors=[f"Database error: {type(e).__name__} - {e}"])

        logger.info("Saved %d variants for %s", len(variants), url)
        return SaveResult(
            success=True,
            product=product,
            variants=variants,
            best_value_variant=best,
            processing_time=round(time.monotonic() - start, 2),
        )
