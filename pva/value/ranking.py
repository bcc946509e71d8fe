"""Price-per-unit derivation and best-value ranking across a product's variants.

All functions are pure and work on any objects exposing ``price_cents``,
``price_per_unit_cents`` (and for reporting ``currency``); ORM variants and
plain dataclasses both qualify. Variants without a price-per-unit never take
part in ranking.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol, Sequence


class Priced(Protocol):
    price_cents: int
    price_per_unit_cents: int | None


CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}


def round_half_up(value: float, ndigits: int = 0) -> Decimal:
    """Round the way people expect (2.5 -> 3), unlike Python's banker's round()."""
    exponent = Decimal(1).scaleb(-ndigits)
    return Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def price_per_unit(price_cents: int | None, quantity_numeric: float | None) -> int | None:
    """round(price / quantity) in minor units; None without a positive quantity."""
    if price_cents is None or quantity_numeric is None or quantity_numeric <= 0:
        return None
    return int(round_half_up(price_cents / quantity_numeric))


def _ranked(variants: Iterable[Priced]) -> list[Priced]:
    return [v for v in variants if v.price_per_unit_cents is not None]


def best_value_variants(variants: Sequence[Priced]) -> list[Priced]:
    """Every variant sharing the minimum price-per-unit, in input order."""
    ranked = _ranked(variants)
    if not ranked:
        return []
    best = min(v.price_per_unit_cents for v in ranked)
    return [v for v in ranked if v.price_per_unit_cents == best]


def best_value_variant(variants: Sequence[Priced]) -> Priced | None:
    """First of the tied best-value variants (input order), or None."""
    tied = best_value_variants(variants)
    return tied[0] if tied else None


def is_best_value(variant: Priced, variants: Sequence[Priced]) -> bool:
    if variant.price_per_unit_cents is None:
        return False
    return variant.price_per_unit_cents == min(v.price_per_unit_cents for v in _ranked(variants))


def value_rank(variant: Priced, variants: Sequence[Priced]) -> int | None:
    """1 + number of variants with a strictly lower price-per-unit; ties share a rank."""
    ppu = variant.price_per_unit_cents
    if ppu is None:
        return None
    return 1 + sum(1 for v in _ranked(variants) if v.price_per_unit_cents < ppu)


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return float(round_half_up(part / whole * 100, 1))


def savings_vs_worst(variant: Any, variants: Sequence[Priced]) -> dict[str, Any] | None:
    """Savings of ``variant`` against the worst price-per-unit; computed at read time."""
    if variant.price_per_unit_cents is None:
        return None
    ranked = _ranked(variants)
    worst = max(v.price_per_unit_cents for v in ranked)
    savings = worst - variant.price_per_unit_cents
    return {
        "savings_cents": savings,
        "savings_display": format_currency(savings, getattr(variant, "currency", "USD")),
        "savings_percentage": _percentage(savings, worst),
    }


def average_price_per_unit(variants: Sequence[Priced]) -> float:
    ranked = _ranked(variants)
    if not ranked:
        return 0.0
    return sum(v.price_per_unit_cents for v in ranked) / len(ranked)


def price_range(variants: Sequence[Any], currency: str = "USD") -> dict[str, Any] | None:
    if not variants:
        return None
    prices = [v.price_cents for v in variants]
    ppus = [v.price_per_unit_cents for v in _ranked(variants)]
    min_ppu = min(ppus) if ppus else None
    max_ppu = max(ppus) if ppus else None
    spread = max(prices) - min(prices)
    return {
        "min_price": min(prices),
        "max_price": max(prices),
        "min_price_display": format_currency(min(prices), currency),
        "max_price_display": format_currency(max(prices), currency),
        "min_price_per_unit": min_ppu,
        "max_price_per_unit": max_ppu,
        "min_price_per_unit_display": format_currency(min_ppu, currency) if min_ppu is not None else "N/A",
        "max_price_per_unit_display": format_currency(max_ppu, currency) if max_ppu is not None else "N/A",
        "price_spread": spread,
        "price_spread_display": format_currency(spread, currency),
    }


def value_analysis(variants: Sequence[Priced], currency: str = "USD") -> dict[str, Any] | None:
    ranked = _ranked(variants)
    if not ranked:
        return None
    ppus = [v.price_per_unit_cents for v in ranked]
    best, worst = min(ppus), max(ppus)
    return {
        "best_value_cents": best,
        "worst_value_cents": worst,
        "best_value_display": format_currency(best, currency),
        "worst_value_display": format_currency(worst, currency),
        "max_savings_cents": worst - best,
        "max_savings_display": format_currency(worst - best, currency),
        "max_savings_percentage": _percentage(worst - best, worst),
        "variants_with_savings": sum(1 for p in ppus if p > best),
    }


def format_currency(cents: int | None, currency: str = "USD") -> str:
    """Minor units to display string: 129 -> '$1.29', unknown codes as prefix."""
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    amount = (cents or 0) / 100
    return f"{symbol}{amount:.2f}"
