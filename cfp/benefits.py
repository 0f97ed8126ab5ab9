"""CPP and OAS retirement benefit modeling and deferral analysis."""

from __future__ import annotations

from dataclasses import dataclass, field

from .schema import RetirementBenefit, RetirementSettings
from .tax import RetirementIncome
from .tax_data import (
    CPP_DEFERRAL_INCREASE_PER_YEAR,
    CPP_EARLY_REDUCTION_PER_YEAR,
    OAS_DEFERRAL_INCREASE_PER_YEAR,
)

STANDARD_START_AGE = 65
LAST_ANALYSIS_AGE = 90


def annual_benefit(benefit: RetirementBenefit, age: int | None, birth_year: int | None, year: int, inflation_rate: float) -> float:
    """Benefit received in ``year``, compounded with inflation from the start age."""
    if not benefit.enabled or age is None or birth_year is None or age < benefit.start_age:
        return 0.0
    years_receiving = year - (birth_year + benefit.start_age)
    return benefit.monthly_amount * 12.0 * (1.0 + inflation_rate) ** years_receiving


def compute_retirement_income(
    settings: RetirementSettings, age: int | None, birth_year: int | None, year: int, inflation_rate: float
) -> RetirementIncome:
    return RetirementIncome(
        cpp_benefit_income=annual_benefit(settings.cpp_benefit, age, birth_year, year, inflation_rate),
        oas_income=annual_benefit(settings.oas_benefit, age, birth_year, year, inflation_rate),
    )


@dataclass(slots=True)
class DeferralScenario:
    start_age: int
    adjustment_pct: float
    monthly_amount: float
    annual_amount: float
    cumulative_by_age: list[float] = field(default_factory=list)
    break_even_vs_65: int | None = None


def _cumulative(annual_amount: float, start_age: int, first_age: int, inflation_rate: float) -> list[float]:
    series: list[float] = []
    total = 0.0
    for age in range(first_age, LAST_ANALYSIS_AGE + 1):
        if age >= start_age:
            total += annual_amount * (1.0 + inflation_rate) ** (age - start_age)
        series.append(total)
    return series


def _scenario(monthly_at_65: float, start_age: int, adjustment_pct: float, first_age: int, inflation_rate: float) -> DeferralScenario:
    monthly = monthly_at_65 * (1.0 + adjustment_pct)
    return DeferralScenario(
        start_age=start_age,
        adjustment_pct=adjustment_pct,
        monthly_amount=monthly,
        annual_amount=monthly * 12.0,
        cumulative_by_age=_cumulative(monthly * 12.0, start_age, first_age, inflation_rate),
    )


def _break_even(option: DeferralScenario, base: DeferralScenario, first_age: int) -> int | None:
    """First age at which the leader changes between ``option`` and the age-65 start."""
    for idx in range(1, len(option.cumulative_by_age)):
        ours, theirs = option.cumulative_by_age[idx], base.cumulative_by_age[idx]
        prev_ours, prev_theirs = option.cumulative_by_age[idx - 1], base.cumulative_by_age[idx - 1]
        if ours <= 0 or theirs <= 0:
            continue
        if option.start_age > base.start_age and ours >= theirs and prev_ours < prev_theirs:
            return first_age + idx
        if option.start_age < base.start_age and theirs >= ours and prev_theirs < prev_ours:
            return first_age + idx
    return None


def compute_cpp_deferral(monthly_at_65: float, inflation_rate: float = 0.0) -> list[DeferralScenario]:
    """CPP start ages 60-70: 7.2%/yr reduction before 65, 8.4%/yr increase after."""
    first_age = 60
    scenarios: list[DeferralScenario] = []
    for start_age in range(60, 71):
        if start_age < STANDARD_START_AGE:
            adjustment = (start_age - STANDARD_START_AGE) * CPP_EARLY_REDUCTION_PER_YEAR
        else:
            adjustment = (start_age - STANDARD_START_AGE) * CPP_DEFERRAL_INCREASE_PER_YEAR
        scenarios.append(_scenario(monthly_at_65, start_age, adjustment, first_age, inflation_rate))

    base = next(item for item in scenarios if item.start_age == STANDARD_START_AGE)
    for item in scenarios:
        if item is not base:
            item.break_even_vs_65 = _break_even(item, base, first_age)
    return scenarios


def compute_oas_deferral(monthly_at_65: float, inflation_rate: float = 0.0) -> list[DeferralScenario]:
    """OAS start ages 65-70 with a 7.2%/yr deferral increase."""
    first_age = STANDARD_START_AGE
    scenarios = [
        _scenario(monthly_at_65, start_age, (start_age - STANDARD_START_AGE) * OAS_DEFERRAL_INCREASE_PER_YEAR, first_age, inflation_rate)
        for start_age in range(65, 71)
    ]
    base = scenarios[0]
    for item in scenarios[1:]:
        item.break_even_vs_65 = _break_even(item, base, first_age)
    return scenarios
