"""Typed shape of AI-extracted product data and its validation rules.

The model answers with loosely-typed JSON. ``validate_extraction_data`` checks
it and returns human-readable violations (variants are numbered from 1);
``parse_extraction_data`` turns a valid mapping into an ``ExtractedProduct``.
Nothing downstream of the extractor handles the raw mapping.
"""

from __future__ import annotations

from numbers import Real
from typing import Any, Mapping

from pydantic import BaseModel, Field


DEFAULT_CURRENCY = "USD"


class ExtractedVariant(BaseModel):
    name: str
    quantity_text: str | None = None
    quantity_numeric: float | None = Field(default=None, gt=0)
    price_cents: int = Field(default=0, ge=0)
    currency: str = Field(default=DEFAULT_CURRENCY, min_length=3, max_length=3)


class ExtractedProduct(BaseModel):
    name: str
    description: str | None = None
    variants: list[ExtractedVariant] = Field(min_length=1)

    def to_payload(self) -> dict[str, Any]:
        """Back to the wire shape: {product: {...}, variants: [...]}."""
        return {
            "product": {"name": self.name, "description": self.description},
            "variants": [v.model_dump() for v in self.variants],
        }


class ExtractionDataError(ValueError):
    """Raised by parse_extraction_data; carries every violation found."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(", ".join(errors))


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _validate_variant(variant: Any, index: int) -> list[str]:
    prefix = f"Variant {index + 1}:"
    if not isinstance(variant, Mapping):
        return [f"{prefix} Must be an object"]

    errors = []
    if _blank(variant.get("name")):
        errors.append(f"{prefix} Name is required")

    price = variant.get("price_cents")
    if not _blank(price) and not (_is_int(price) and price >= 0):
        errors.append(f"{prefix} price_cents must be a non-negative integer")

    quantity = variant.get("quantity_numeric")
    if not _blank(quantity) and not (_is_number(quantity) and quantity > 0):
        errors.append(f"{prefix} quantity_numeric must be a positive number")

    currency = variant.get("currency")
    if not _blank(currency) and not (isinstance(currency, str) and len(currency.strip()) == 3):
        errors.append(f"{prefix} currency must be a 3-letter code")

    return errors


def validate_extraction_data(data: Any) -> list[str]:
    """Return the list of schema violations; empty means valid."""
    if not isinstance(data, Mapping):
        return ["Data must be an object"]

    errors: list[str] = []
    product = data.get("product")
    if not isinstance(product, Mapping):
        errors.append("Missing product section")
    elif _blank(product.get("name")):
        errors.append("Product name is required")

    variants = data.get("variants")
    if not isinstance(variants, list):
        errors.append("Missing variants section")
    elif not variants:
        errors.append("At least one variant is required")
    else:
        for i, variant in enumerate(variants):
            errors.extend(_validate_variant(variant, i))

    return errors


def _optional_text(value: Any) -> str | None:
    if _blank(value):
        return None
    return str(value).strip()


def parse_extraction_data(data: Any) -> ExtractedProduct:
    """Validate and convert. Raises ExtractionDataError listing every violation."""
    if isinstance(data, ExtractedProduct):
        return data
    errors = validate_extraction_data(data)
    if errors:
        raise ExtractionDataError(errors)

    product = data["product"]
    variants = []
    for v in data["variants"]:
        quantity = v.get("quantity_numeric")
        price = v.get("price_cents")
        currency = v.get("currency")
        variants.append(
            ExtractedVariant(
                name=str(v["name"]).strip(),
                quantity_text=_optional_text(v.get("quantity_text")),
                quantity_numeric=None if _blank(quantity) else float(quantity),
                price_cents=0 if _blank(price) else price,
                currency=DEFAULT_CURRENCY if _blank(currency) else currency.strip().upper(),
            )
        )
    return ExtractedProduct(
        name=str(product["name"]).strip(),
        description=_optional_text(product.get("description")),
        variants=variants,
    )
