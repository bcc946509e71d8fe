"""Product + variant + ranking payload for job snapshots and exports."""

from __future__ import annotations

import re
from typing import Any

from pva.db.models import Product, ProductVariant
from pva.value.ranking import (
    best_value_variant,
    format_currency,
    is_best_value,
    price_range,
    savings_vs_worst,
    value_analysis,
    value_rank,
)


def _product_currency(variants: list[ProductVariant]) -> str:
    return variants[0].currency if variants else "USD"


def price_per_unit_display(variant: ProductVariant) -> str:
    if variant.price_per_unit_cents is None:
        return "N/A"
    return format_currency(variant.price_per_unit_cents, variant.currency)


def best_value_info(variants: list[ProductVariant]) -> dict[str, Any] | None:
    best = best_value_variant(variants)
    if best is None:
        return None
    ppu_display = price_per_unit_display(best)
    if best.quantity_text:
        # "12 oz" -> "per oz"
        unit = re.sub(r"^[\d.,]+\s*", "", best.quantity_text)
        if unit:
            ppu_display = f"{ppu_display} per {unit}"
    return {
        "id": best.id,
        "name": best.name,
        "price_display": format_currency(best.price_cents, best.currency),
        "price_per_unit_display": ppu_display,
    }


def variant_details(variants: list[ProductVariant]) -> list[dict[str, Any]]:
    return [
        {
            "id": v.id,
            "name": v.name,
            "price_cents": v.price_cents,
            "price_display": format_currency(v.price_cents, v.currency),
            "currency": v.currency,
            "quantity_text": v.quantity_text or "N/A",
            "quantity_numeric": v.quantity_numeric,
            "price_per_unit_cents": v.price_per_unit_cents,
            "price_per_unit_display": price_per_unit_display(v),
            "is_best_value": is_best_value(v, variants),
            "value_rank": value_rank(v, variants),
            "savings_vs_worst": savings_vs_worst(v, variants),
        }
        for v in variants
    ]


def build_product_report(product: Product) -> dict[str, Any]:
    """Everything a client needs to render the comparison. ``product.variants`` must be loaded."""
    variants = list(product.variants)
    currency = _product_currency(variants)
    return {
        "id": product.id,
        "name": product.name,
        "url": product.url,
        "status": product.status,
        "variants_count": len(variants),
        "best_value_variant": best_value_info(variants),
        "variants": variant_details(variants),
        "price_range": price_range(variants, currency),
        "value_analysis": value_analysis(variants, currency),
    }
