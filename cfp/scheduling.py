"""Scheduled item expansion into per-year inputs.

Schedules run in two passes. The first applies plain amounts. The second
needs the current year's computed result to evaluate conditions,
percentage-of-reference amounts and dynamic caps.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import math
from typing import TYPE_CHECKING

from .schema import Assumptions, OpeningBalances, ScheduleCondition, ScheduledItem, YearData

if TYPE_CHECKING:
    from .engine import ComputedYear

CONDITION_EPSILON = 0.01

CONTEXT_FIELDS = (
    "gross_income",
    "net_taxable_income",
    "after_tax_income",
    "net_cash_flow",
    "net_worth",
    "total_income_tax",
    "employment_income",
    "self_employment_income",
    "rrsp_eoy",
    "tfsa_eoy",
    "fhsa_eoy",
    "non_reg_eoy",
    "savings_eoy",
    "rrsp_unused_room",
    "tfsa_unused_room",
    "age",
)

MAX_REFS = (
    "rrsp_room",
    "tfsa_room",
    "fhsa_room",
    "fhsa_lifetime_room",
    "rrsp_balance",
    "tfsa_balance",
    "fhsa_balance",
    "non_reg_balance",
    "savings_balance",
    "lira_balance",
    "resp_balance",
    "capital_loss_cf",
)


@dataclass(slots=True)
class ScheduleContext:
    """Opening state used to resolve dynamic caps."""

    balances: OpeningBalances
    assumptions: Assumptions
    fhsa_contrib_lifetime: float = 0.0
    fhsa_unused_room: float = 0.0
    tfsa_unused_room: float = 0.0
    capital_loss_cf: float = 0.0


def get_scheduled_amount(item: ScheduledItem, year: int, inflation_rate: float) -> float:
    years_elapsed = year - item.start_year
    if years_elapsed <= 0:
        return item.amount
    rate = inflation_rate if item.growth_type == "inflation" else (item.growth_rate or 0.0)
    return item.amount * (1.0 + rate) ** years_elapsed


def evaluate_condition(condition: ScheduleCondition, values: dict[str, float]) -> bool:
    actual = values.get(condition.field, 0.0)
    op = condition.operator
    if op == ">":
        return actual > condition.value
    if op == "<":
        return actual < condition.value
    if op == ">=":
        return actual >= condition.value
    if op == "<=":
        return actual <= condition.value
    if op == "==":
        return abs(actual - condition.value) < CONDITION_EPSILON
    if op == "between":
        upper = condition.value if condition.value2 is None else condition.value2
        return condition.value <= actual <= upper
    return True


def build_condition_context(computed: "ComputedYear", raw: YearData) -> dict[str, float]:
    return {
        "gross_income": computed.waterfall.gross_income,
        "net_taxable_income": computed.tax.net_taxable_income,
        "after_tax_income": computed.waterfall.after_tax_income,
        "net_cash_flow": computed.waterfall.net_cash_flow,
        "net_worth": computed.accounts.net_worth,
        "total_income_tax": computed.tax.total_income_tax,
        "employment_income": raw.employment_income,
        "self_employment_income": raw.self_employment_income,
        "rrsp_eoy": computed.accounts.rrsp_eoy,
        "tfsa_eoy": computed.accounts.tfsa_eoy,
        "fhsa_eoy": computed.accounts.fhsa_eoy,
        "non_reg_eoy": computed.accounts.non_reg_eoy,
        "savings_eoy": computed.accounts.savings_eoy,
        "rrsp_unused_room": computed.rrsp_unused_room,
        "tfsa_unused_room": computed.tfsa_unused_room,
        "age": float(computed.retirement.age or 0),
    }


def resolve_max_ref(ref: str, computed: "ComputedYear", ctx: ScheduleContext) -> float:
    """Numeric cap for a dynamic max reference; unknown references do not cap."""
    ass = ctx.assumptions
    if ref == "rrsp_room":
        return computed.rrsp_unused_room + computed.rrsp_new_room
    if ref == "tfsa_room":
        return ctx.tfsa_unused_room + computed.tfsa_room_generated
    if ref == "fhsa_room":
        return ass.fhsa_annual_limit + min(ctx.fhsa_unused_room, ass.fhsa_annual_limit)
    if ref == "fhsa_lifetime_room":
        return max(0.0, ass.fhsa_lifetime_limit - ctx.fhsa_contrib_lifetime)
    if ref == "capital_loss_cf":
        return ctx.capital_loss_cf
    if ref.endswith("_balance"):
        account = ref[: -len("_balance")]
        if hasattr(ctx.balances, account):
            return getattr(ctx.balances, account)
    return math.inf


def apply_schedules(
    yd: YearData,
    schedules: list[ScheduledItem],
    inflation_rate: float,
    computed: "ComputedYear | None",
    conditional_only: bool,
    ctx: ScheduleContext | None = None,
    skip_fields: frozenset[str] = frozenset(),
) -> YearData:
    """Fill zero-valued fields of ``yd`` from active schedules.

    With ``conditional_only`` false only plain schedules apply; with it true
    only schedules that need ``computed`` apply. A non-zero field is never
    overwritten.
    """
    result = replace(yd)
    values: dict[str, float] | None = None
    for item in schedules:
        if not item.is_active(yd.year) or item.field in skip_fields:
            continue
        if item.needs_computed != conditional_only:
            continue
        if item.needs_computed:
            if computed is None:
                continue
            if values is None:
                values = build_condition_context(computed, yd)
            if not all(evaluate_condition(condition, values) for condition in item.conditions):
                continue

        if getattr(result, item.field) != 0:
            continue

        amount = get_scheduled_amount(item, yd.year, inflation_rate)
        if item.amount_type == "percentage" and values is not None and item.amount_reference:
            amount *= values.get(item.amount_reference, 0.0)
        if item.amount_min is not None and item.amount_min > 0:
            amount = max(amount, item.amount_min)
        if item.amount_max is not None and item.amount_max > 0:
            amount = min(amount, item.amount_max)
        if item.amount_max_ref and computed is not None and ctx is not None:
            amount = min(amount, max(0.0, resolve_max_ref(item.amount_max_ref, computed, ctx)))
        setattr(result, item.field, amount)
    return result


def has_conditional_schedules(schedules: list[ScheduledItem], year: int) -> bool:
    return any(item.is_active(year) and item.needs_computed for item in schedules)
