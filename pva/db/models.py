"""SQLAlchemy ORM models: products, their variants, and extraction jobs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED.value, JobStatus.FAILED.value)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Product(Base):
    """A product page; one row per distinct URL."""

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')", name="valid_status"
        ),
        Index("ix_products_status", "status"),
        Index("ix_products_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProductStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} url={self.url!r} status={self.status}>"


class ProductVariant(Base):
    """One purchasable option of a product (size, pack, quantity)."""

    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="non_negative_price"),
        CheckConstraint(
            "price_per_unit_cents IS NULL OR price_per_unit_cents >= 0",
            name="non_negative_price_per_unit",
        ),
        CheckConstraint(
            "quantity_numeric IS NULL OR quantity_numeric > 0", name="positive_quantity"
        ),
        Index("ix_product_variants_product_ppu", "product_id", "price_per_unit_cents"),
        # deleted variant ids must never be handed out again
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    quantity_numeric: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    product: Mapped[Product] = relationship("Product", back_populates="variants")

    @property
    def has_quantity(self) -> bool:
        return self.quantity_numeric is not None and self.quantity_numeric > 0

    @property
    def quantity_display(self) -> str:
        if self.quantity_text:
            return self.quantity_text
        if self.quantity_numeric is not None:
            return f"{self.quantity_numeric:g}"
        return "N/A"

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} name={self.name!r} ppu={self.price_per_unit_cents}>"


class ExtractionJob(Base):
    """One request to extract a URL; polled by clients until terminal."""

    __tablename__ = "extraction_jobs"
    __table_args__ = (
        CheckConstraint("progress >= 0 AND progress <= 100", name="progress_range"),
        Index("ix_extraction_jobs_status", "status"),
        Index("ix_extraction_jobs_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=JobStatus.QUEUED.value)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    result_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    product_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    product: Mapped[Optional[Product]] = relationship("Product")

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES
