"""What-if adjustments layered on top of a scenario.

Assumption-level levers (inflation, returns, brackets, benefit ages) are
folded into a copy of the scenario's assumptions. Year-level levers (income
and contribution scaling, contribution redirects, allocation) are stored on
the scenario and applied by the engine to each year's inputs once schedules
have filled them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Final

from .assumptions import round_half_up
from .schema import (
    ALLOCATED_ACCOUNTS,
    EXPENSE_FIELDS,
    AssetReturns,
    MonteCarloConfig,
    ReturnDistribution,
    Scenario,
    TaxBracket,
    YearData,
)

logger = logging.getLogger(__name__)

CONTRIBUTION_STRATEGIES = ("unchanged", "max-rrsp", "max-tfsa")

INCOME_FIELDS = (
    "employment_income",
    "self_employment_income",
    "eligible_dividends",
    "non_eligible_dividends",
    "interest_income",
    "capital_gains_realized",
    "other_taxable_income",
    "rental_gross_income",
    "pension_income",
    "foreign_income",
)

CONTRIBUTION_FIELDS = (
    "rrsp_contribution",
    "rrsp_deduction_claimed",
    "tfsa_contribution",
    "fhsa_contribution",
    "fhsa_deduction_claimed",
    "non_reg_contribution",
    "savings_deposit",
)


@dataclass(slots=True)
class WhatIfAdjustments:
    """Deltas and multipliers; the defaults leave a scenario unchanged."""

    inflation_adj: float = 0.0
    equity_return_adj: float = 0.0
    fixed_income_return_adj: float = 0.0
    cash_return_adj: float = 0.0
    savings_return_adj: float = 0.0
    income_scale: float = 1.0
    contribution_scale: float = 1.0
    contribution_strategy: str = "unchanged"
    # Bracket thresholds and BPA move by (1 + shift); negative compresses.
    federal_bracket_shift: float = 0.0
    provincial_bracket_shift: float = 0.0
    employment_income_scale: float = 1.0
    dividend_income_scale: float = 1.0
    interest_income_scale: float = 1.0
    capital_gains_scale: float = 1.0
    living_expense_scale: float = 1.0
    rrsp_contribution_scale: float = 1.0
    tfsa_contribution_scale: float = 1.0
    rrsp_withdrawal_adj: float = 0.0
    equity_allocation: float | None = None
    cpp_start_age: int | None = None
    oas_start_age: int | None = None
    capital_gains_inclusion_rate: float | None = None
    oas_clawback_threshold_adj: float = 0.0

    def __post_init__(self) -> None:
        if self.contribution_strategy not in CONTRIBUTION_STRATEGIES:
            expected = ", ".join(CONTRIBUTION_STRATEGIES)
            raise ValueError(f"contribution_strategy: '{self.contribution_strategy}' is not valid; expected one of [{expected}]")
        if self.equity_allocation is not None and not 0.0 <= self.equity_allocation <= 1.0:
            raise ValueError("equity_allocation: must be between 0 and 1")


@dataclass(frozen=True, slots=True)
class WhatIfPreset:
    id: str
    label: str
    description: str
    adjustments: WhatIfAdjustments


WHAT_IF_PRESETS: Final[tuple[WhatIfPreset, ...]] = (
    WhatIfPreset(
        "bear-market",
        "Bear Market",
        "Equity -15%, inflation +1%, fixed income +0.5%",
        WhatIfAdjustments(equity_return_adj=-0.15, inflation_adj=0.01, fixed_income_return_adj=0.005),
    ),
    WhatIfPreset(
        "stagflation",
        "Stagflation",
        "Inflation +3%, equity -5%, fixed -2%, expenses 1.2x",
        WhatIfAdjustments(inflation_adj=0.03, equity_return_adj=-0.05, fixed_income_return_adj=-0.02, living_expense_scale=1.2),
    ),
    WhatIfPreset(
        "early-retirement",
        "Early Retire",
        "CPP at 60, OAS at 65, no employment, RRSP withdrawal +$15K",
        WhatIfAdjustments(cpp_start_age=60, oas_start_age=65, employment_income_scale=0.0, rrsp_withdrawal_adj=15_000),
    ),
    WhatIfPreset(
        "aggressive-saving",
        "Aggressive Save",
        "RRSP/TFSA 2x, expenses 0.8x, max RRSP strategy",
        WhatIfAdjustments(
            rrsp_contribution_scale=2.0,
            tfsa_contribution_scale=2.0,
            living_expense_scale=0.8,
            contribution_strategy="max-rrsp",
        ),
    ),
    WhatIfPreset(
        "tax-rate-hike",
        "Tax Hike",
        "Brackets compressed 10%/5%, CG 66.7%, OAS threshold -$10K",
        WhatIfAdjustments(
            federal_bracket_shift=-0.10,
            provincial_bracket_shift=-0.05,
            capital_gains_inclusion_rate=0.6667,
            oas_clawback_threshold_adj=-10_000,
        ),
    ),
    WhatIfPreset(
        "high-growth",
        "High Growth",
        "Equity +4%, fixed +1%, 90% equity allocation",
        WhatIfAdjustments(equity_return_adj=0.04, fixed_income_return_adj=0.01, equity_allocation=0.9),
    ),
    WhatIfPreset(
        "dividend-focus",
        "Dividend Focus",
        "Dividends 2x, interest/CG 0.5x, max TFSA strategy",
        WhatIfAdjustments(
            dividend_income_scale=2.0,
            interest_income_scale=0.5,
            capital_gains_scale=0.5,
            contribution_strategy="max-tfsa",
        ),
    ),
)

PRESET_IDS: Final[tuple[str, ...]] = tuple(preset.id for preset in WHAT_IF_PRESETS)


def get_preset(preset_id: str) -> WhatIfPreset:
    for preset in WHAT_IF_PRESETS:
        if preset.id == preset_id:
            return preset
    raise KeyError(f"unknown what-if preset: {preset_id}")


def is_what_if_active(adj: WhatIfAdjustments | None) -> bool:
    return adj is not None and adj != WhatIfAdjustments()


def shift_brackets(brackets: list[TaxBracket], shift: float) -> list[TaxBracket]:
    if shift == 0:
        return list(brackets)
    multiplier = 1.0 + shift
    return [
        TaxBracket(
            min=float(round_half_up(bracket.min * multiplier)),
            max=None if bracket.max is None else float(round_half_up(bracket.max * multiplier)),
            rate=bracket.rate,
        )
        for bracket in brackets
    ]


def _shift_distribution(dist: ReturnDistribution, delta: float) -> ReturnDistribution:
    return replace(dist, mean=dist.mean + delta)


def _shift_monte_carlo(config: MonteCarloConfig | None, adj: WhatIfAdjustments) -> MonteCarloConfig | None:
    if config is None:
        return None
    return replace(
        config,
        equity=_shift_distribution(config.equity, adj.equity_return_adj),
        fixed_income=_shift_distribution(config.fixed_income, adj.fixed_income_return_adj),
        cash=_shift_distribution(config.cash, adj.cash_return_adj),
        savings=_shift_distribution(config.savings, adj.savings_return_adj),
    )


def apply_what_if(scenario: Scenario, adj: WhatIfAdjustments) -> Scenario:
    """Return a copy of ``scenario`` with ``adj`` applied; the input is untouched.

    Year-level adjustments replace any already stored on the scenario.
    """
    if not is_what_if_active(adj):
        return scenario

    ass = scenario.assumptions
    returns = ass.asset_returns
    retirement = ass.retirement
    if adj.cpp_start_age is not None:
        retirement = replace(retirement, cpp_benefit=replace(retirement.cpp_benefit, start_age=adj.cpp_start_age))
    if adj.oas_start_age is not None:
        retirement = replace(retirement, oas_benefit=replace(retirement.oas_benefit, start_age=adj.oas_start_age))

    assumptions = replace(
        ass,
        inflation_rate=ass.inflation_rate + adj.inflation_adj,
        asset_returns=AssetReturns(
            equity=returns.equity + adj.equity_return_adj,
            fixed_income=returns.fixed_income + adj.fixed_income_return_adj,
            cash=returns.cash + adj.cash_return_adj,
            savings=returns.savings + adj.savings_return_adj,
        ),
        federal_brackets=shift_brackets(ass.federal_brackets, adj.federal_bracket_shift),
        provincial_brackets=shift_brackets(ass.provincial_brackets, adj.provincial_bracket_shift),
        retirement=retirement,
        oas_clawback_threshold=ass.oas_clawback_threshold + adj.oas_clawback_threshold_adj,
    )
    if adj.federal_bracket_shift != 0:
        assumptions.federal_bpa = float(round_half_up(ass.federal_bpa * (1.0 + adj.federal_bracket_shift)))
    if adj.provincial_bracket_shift != 0:
        assumptions.provincial_bpa = float(round_half_up(ass.provincial_bpa * (1.0 + adj.provincial_bracket_shift)))
    if adj.capital_gains_inclusion_rate is not None:
        assumptions.capital_gains_inclusion_rate = adj.capital_gains_inclusion_rate
        assumptions.cg_inclusion_tiered = False

    logger.info("applying what-if adjustments to scenario %s", scenario.id)
    return replace(
        scenario,
        assumptions=assumptions,
        monte_carlo=_shift_monte_carlo(scenario.monte_carlo, adj),
        what_if=adj,
    )


def _field_scales(adj: WhatIfAdjustments) -> dict[str, float]:
    scales = {name: adj.income_scale for name in INCOME_FIELDS}
    scales["employment_income"] *= adj.employment_income_scale
    scales["eligible_dividends"] *= adj.dividend_income_scale
    scales["non_eligible_dividends"] *= adj.dividend_income_scale
    scales["interest_income"] *= adj.interest_income_scale
    scales["capital_gains_realized"] *= adj.capital_gains_scale

    scales.update({name: adj.contribution_scale for name in CONTRIBUTION_FIELDS})
    scales["rrsp_contribution"] *= adj.rrsp_contribution_scale
    scales["rrsp_deduction_claimed"] *= adj.rrsp_contribution_scale
    scales["tfsa_contribution"] *= adj.tfsa_contribution_scale

    scales.update({name: adj.living_expense_scale for name in EXPENSE_FIELDS})
    return {name: factor for name, factor in scales.items() if factor != 1.0}


def adjust_year_inputs(yd: YearData, adj: WhatIfAdjustments) -> YearData:
    """Apply the year-level levers of ``adj`` to one year's filled inputs."""
    result = replace(yd, **{name: getattr(yd, name) * factor for name, factor in _field_scales(adj).items()})

    if adj.contribution_strategy == "max-rrsp":
        moved = result.tfsa_contribution + result.fhsa_contribution
        result = replace(
            result,
            rrsp_contribution=result.rrsp_contribution + moved,
            rrsp_deduction_claimed=result.rrsp_deduction_claimed + moved,
            tfsa_contribution=0.0,
            fhsa_contribution=0.0,
            fhsa_deduction_claimed=0.0,
        )
    elif adj.contribution_strategy == "max-tfsa":
        moved = result.rrsp_contribution + result.fhsa_contribution
        result = replace(
            result,
            tfsa_contribution=result.tfsa_contribution + moved,
            rrsp_contribution=0.0,
            rrsp_deduction_claimed=0.0,
            fhsa_contribution=0.0,
            fhsa_deduction_claimed=0.0,
        )

    if adj.rrsp_withdrawal_adj != 0:
        result.rrsp_withdrawal = max(0.0, result.rrsp_withdrawal + adj.rrsp_withdrawal_adj)

    if adj.equity_allocation is not None:
        # Insurance cash value keeps its own allocation.
        for account in ALLOCATED_ACCOUNTS:
            if account == "li":
                continue
            setattr(result, f"{account}_equity_pct", adj.equity_allocation)
            setattr(result, f"{account}_fixed_pct", 1.0 - adj.equity_allocation)
            setattr(result, f"{account}_cash_pct", 0.0)
    return result
