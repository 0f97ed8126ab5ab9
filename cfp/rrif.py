"""RRIF and LIF minimum withdrawal helpers."""

from __future__ import annotations

from .tax_data import RRIF_FACTORS, RRIF_MAX_FACTOR


def rrif_factor(age: int) -> float:
    if age < min(RRIF_FACTORS):
        return 0.0
    if age > max(RRIF_FACTORS):
        return RRIF_MAX_FACTOR
    return RRIF_FACTORS.get(age, RRIF_MAX_FACTOR)


def compute_rrif_minimum(prior_year_end_balance: float, age: int | None) -> float:
    """CRA minimum for the year, based on the balance at the start of the year."""
    if age is None or prior_year_end_balance <= 0:
        return 0.0
    return max(0.0, prior_year_end_balance * rrif_factor(age))
