"""Price-per-unit and best-value analysis."""

from pva.value.ranking import (
    average_price_per_unit,
    best_value_variant,
    best_value_variants,
    format_currency,
    is_best_value,
    price_per_unit,
    price_range,
    round_half_up,
    savings_vs_worst,
    value_analysis,
    value_rank,
)

__all__ = [
    "average_price_per_unit",
    "best_value_variant",
    "best_value_variants",
    "format_currency",
    "is_best_value",
    "price_per_unit",
    "price_range",
    "round_half_up",
    "savings_vs_worst",
    "value_analysis",
    "value_rank",
]
