"""Historic TFSA contribution room."""

from __future__ import annotations

from .tax_data import TFSA_ANNUAL_LIMITS, TFSA_FIRST_YEAR, TFSA_MIN_AGE


def compute_accumulated_tfsa_room(
    birth_year: int,
    start_year: int,
    current_annual_limit: float,
    opening_year: int | None = None,
) -> float:
    """Room accumulated from the first eligible year to ``start_year - 1``.

    Assumes no prior contributions or withdrawals. Years missing from the
    limit table fall back to ``current_annual_limit``.
    """
    first_year = max(TFSA_FIRST_YEAR, opening_year if opening_year else birth_year + TFSA_MIN_AGE)
    if first_year >= start_year:
        return 0.0
    return sum(TFSA_ANNUAL_LIMITS.get(year, current_annual_limit) for year in range(first_year, start_year))
