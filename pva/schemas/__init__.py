"""Pydantic models shared across stages."""

from pva.schemas.extraction import (
    ExtractedProduct,
    ExtractedVariant,
    ExtractionDataError,
    parse_extraction_data,
    validate_extraction_data,
)

__all__ = [
    "ExtractedProduct",
    "ExtractedVariant",
    "ExtractionDataError",
    "parse_extraction_data",
    "validate_extraction_data",
]
