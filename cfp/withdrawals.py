"""Withdrawal sequencing comparison for retirement drawdown."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging

from .engine import ComputedScenario, compute
from .schema import Scenario, YearData

logger = logging.getLogger(__name__)

DRAW_ACCOUNTS = ("rrsp", "non_reg", "tfsa")
WITHDRAWAL_FIELDS = frozenset(f"{name}_withdrawal" for name in DRAW_ACCOUNTS)


@dataclass(slots=True)
class DrawOrder:
    name: str
    description: str
    order: tuple[str, ...]


STRATEGIES = (
    DrawOrder("RRIF First", "Draw RRIF first, then Non-Reg, then TFSA", ("rrsp", "non_reg", "tfsa")),
    DrawOrder("Non-Reg First", "Draw Non-Reg first, then RRIF, then TFSA", ("non_reg", "rrsp", "tfsa")),
    DrawOrder("TFSA First", "Draw TFSA first, then Non-Reg, then RRIF", ("tfsa", "non_reg", "rrsp")),
    DrawOrder("Equal Split", "Draw equally from RRIF, Non-Reg and TFSA", ()),
)


@dataclass(slots=True)
class WithdrawalStrategy:
    name: str
    description: str
    lifetime_tax: float
    lifetime_after_tax: float
    final_net_worth: float
    avg_tax_rate: float
    yearly_tax: list[float] = field(default_factory=list)
    yearly_net_worth: list[float] = field(default_factory=list)


def _withdraw_in_order(target: float, order: tuple[str, ...], projected: dict[str, float]) -> dict[str, float]:
    """Split ``target`` across accounts in order, capped by projected balances.

    Whatever the projected balances cannot cover lands on the last account.
    """
    draws = {name: 0.0 for name in DRAW_ACCOUNTS}
    remaining = target
    for name in order:
        if remaining <= 0:
            break
        amount = min(max(0.0, projected.get(name, 0.0)), remaining)
        draws[name] += amount
        remaining -= amount
    if remaining > 0:
        draws[order[-1]] += remaining
    return draws


def _base_run(scenario: Scenario, start_year_idx: int) -> ComputedScenario:
    years = [
        replace(yd, rrsp_withdrawal=0.0, non_reg_withdrawal=0.0, tfsa_withdrawal=0.0) if idx >= start_year_idx else yd
        for idx, yd in enumerate(scenario.years)
    ]
    return compute(replace(scenario, years=years))


def _strategy_years(
    scenario: Scenario, base: ComputedScenario, order_def: DrawOrder, annual_target: float, start_year_idx: int
) -> list[YearData]:
    years: list[YearData] = []
    projected: dict[str, float] | None = None
    for idx, yd in enumerate(scenario.years):
        if idx < start_year_idx:
            years.append(yd)
            continue

        if projected is None:
            opening = scenario.opening_balances if idx == 0 else base.years[idx - 1].accounts.balances()
            projected = {name: getattr(opening, name) for name in DRAW_ACCOUNTS}

        computed = base.years[idx]
        inflows = {
            "rrsp": computed.inputs.rrsp_contribution,
            "non_reg": computed.inputs.non_reg_contribution,
            "tfsa": computed.inputs.tfsa_contribution,
        }
        available = {name: projected[name] + inflows[name] for name in DRAW_ACCOUNTS}
        if order_def.order:
            draws = _withdraw_in_order(annual_target, order_def.order, available)
        else:
            third = annual_target / 3.0
            draws = {name: third for name in DRAW_ACCOUNTS}

        for name in DRAW_ACCOUNTS:
            rate = getattr(computed.accounts, f"{name}_return")
            projected[name] = max(0.0, available[name] - draws[name]) * (1.0 + rate)

        years.append(
            replace(
                yd,
                rrsp_withdrawal=draws["rrsp"],
                non_reg_withdrawal=draws["non_reg"],
                tfsa_withdrawal=draws["tfsa"],
            )
        )
    return years


def compute_withdrawal_strategies(scenario: Scenario, annual_target: float, start_year_idx: int = 0) -> list[WithdrawalStrategy]:
    """Compare withdrawal orders that each draw ``annual_target`` a year from ``start_year_idx`` on."""
    if annual_target <= 0:
        return []

    schedules = [item for item in scenario.scheduled_items if item.field not in WITHDRAWAL_FIELDS]
    trimmed = replace(scenario, scheduled_items=schedules)
    base = _base_run(trimmed, start_year_idx)
    logger.info("comparing %d withdrawal strategies for %.2f/yr from year index %d", len(STRATEGIES), annual_target, start_year_idx)

    out: list[WithdrawalStrategy] = []
    for order_def in STRATEGIES:
        years = _strategy_years(trimmed, base, order_def, annual_target, start_year_idx)
        result = compute(replace(trimmed, years=years))
        last = result.years[-1] if result.years else None
        out.append(
            WithdrawalStrategy(
                name=order_def.name,
                description=order_def.description,
                lifetime_tax=result.analytics.lifetime_total_tax,
                lifetime_after_tax=result.analytics.lifetime_after_tax_income,
                final_net_worth=last.accounts.net_worth if last else 0.0,
                avg_tax_rate=result.analytics.lifetime_avg_tax_rate,
                yearly_tax=[yr.tax.total_income_tax for yr in result.years],
                yearly_net_worth=[yr.accounts.net_worth for yr in result.years],
            )
        )
    return out
