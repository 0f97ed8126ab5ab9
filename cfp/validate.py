"""Per-year rule checks and structural scenario validation."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Iterable

from .scheduling import CONTEXT_FIELDS, MAX_REFS
from .schema import (
    ALLOCATED_ACCOUNTS,
    YEAR_NUMBER_FIELDS,
    Assumptions,
    OpeningBalances,
    Scenario,
    TaxBracket,
    YearData,
)
from .tax_data import (
    ALLOCATION_TOLERANCE,
    FHSA_MAX_AGE,
    FHSA_MAX_YEARS_OPEN,
    PROVINCES,
    RRSP_OVERCONTRIBUTION_BUFFER,
)

ERROR = "error"
WARNING = "warning"

ACCOUNT_LABELS = {
    "rrsp": "RRSP",
    "tfsa": "TFSA",
    "fhsa": "FHSA",
    "non_reg": "Non-Reg",
    "savings": "Savings",
    "lira": "LIRA/LIF",
    "resp": "RESP",
    "li": "Life Insurance",
}

NON_NEGATIVE_FIELDS = (
    "employment_income",
    "self_employment_income",
    "self_employment_expenses",
    "eligible_dividends",
    "non_eligible_dividends",
    "interest_income",
    "capital_gains_realized",
    "capital_losses_realized",
    "pension_income",
    "foreign_income",
    "foreign_tax_paid",
    "rental_gross_income",
    "rental_expenses",
    "charitable_donations",
    "medical_expenses",
    "rrsp_contribution",
    "rrsp_deduction_claimed",
    "tfsa_contribution",
    "fhsa_contribution",
    "fhsa_deduction_claimed",
    "non_reg_contribution",
    "savings_deposit",
    "resp_contribution",
    "li_premium",
    "rrsp_withdrawal",
    "tfsa_withdrawal",
    "fhsa_withdrawal",
    "non_reg_withdrawal",
    "savings_withdrawal",
    "lira_withdrawal",
    "resp_withdrawal",
    "li_withdrawal",
    "hbp_withdrawal",
    "capital_loss_applied",
)

# (account, contribution field or None, withdrawal fields)
_FLOWS = (
    ("rrsp", "rrsp_contribution", ("rrsp_withdrawal", "hbp_withdrawal")),
    ("tfsa", "tfsa_contribution", ("tfsa_withdrawal",)),
    ("fhsa", "fhsa_contribution", ("fhsa_withdrawal",)),
    ("non_reg", "non_reg_contribution", ("non_reg_withdrawal",)),
    ("savings", "savings_deposit", ("savings_withdrawal",)),
    ("lira", None, ("lira_withdrawal",)),
    ("resp", "resp_contribution", ("resp_withdrawal",)),
    ("li", "li_premium", ("li_withdrawal",)),
)


@dataclass(slots=True)
class ValidationWarning:
    field: str
    message: str
    severity: str = WARNING


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _money(value: float) -> str:
    return f"${value:,.0f}"


def validate_year(
    yd: YearData,
    ass: Assumptions,
    rrsp_unused_room: float,
    fhsa_contrib_lifetime: float,
    capital_loss_cf: float,
    tfsa_available_room: float = math.inf,
    prev_balances: OpeningBalances | None = None,
    is_rrif: bool = False,
    fhsa_disposed: bool = False,
    fhsa_unused_room: float = 0.0,
    fhsa_opening_year: int | None = None,
    age: int | None = None,
    *,
    is_lif: bool = True,
    new_rrsp_room: float | None = None,
) -> list[ValidationWarning]:
    """Check one year's inputs against room, balance and allocation rules.

    ``new_rrsp_room`` is the room generated this year; when omitted it is
    derived from this year's earned income.
    """
    out: list[ValidationWarning] = []

    for name in NON_NEGATIVE_FIELDS:
        if getattr(yd, name) < 0:
            out.append(ValidationWarning(name, f"{name.replace('_', ' ').capitalize()} cannot be negative", ERROR))

    if prev_balances is not None:
        for account, contribution_field, withdrawal_fields in _FLOWS:
            withdrawal = sum(getattr(yd, item) for item in withdrawal_fields)
            if withdrawal <= 0:
                continue
            balance = getattr(prev_balances, account)
            available = balance + (getattr(yd, contribution_field) if contribution_field else 0.0)
            label = ACCOUNT_LABELS[account]
            if balance <= 0 and available <= 0:
                out.append(
                    ValidationWarning(withdrawal_fields[0], f"{label} withdrawal {_money(withdrawal)} but balance is $0", ERROR)
                )
            elif withdrawal > available + 0.005:
                out.append(
                    ValidationWarning(
                        withdrawal_fields[0],
                        f"{label} withdrawal {_money(withdrawal)} exceeds available balance {_money(available)}",
                        ERROR,
                    )
                )

    if new_rrsp_room is None:
        earned = yd.employment_income + max(0.0, yd.self_employment_income - yd.self_employment_expenses)
        new_rrsp_room = min(earned * ass.rrsp_pct_earned_income, ass.rrsp_limit)
    total_rrsp_room = rrsp_unused_room + new_rrsp_room
    if is_rrif and yd.rrsp_contribution > 0:
        out.append(ValidationWarning("rrsp_contribution", "RRSP contributions are not allowed after RRIF conversion", ERROR))
    elif yd.rrsp_contribution > total_rrsp_room + RRSP_OVERCONTRIBUTION_BUFFER:
        out.append(
            ValidationWarning(
                "rrsp_contribution",
                f"RRSP contribution {_money(yd.rrsp_contribution)} exceeds available room {_money(total_rrsp_room)}",
                ERROR,
            )
        )
    if yd.rrsp_deduction_claimed > yd.rrsp_contribution + rrsp_unused_room + new_rrsp_room:
        out.append(ValidationWarning("rrsp_deduction_claimed", "RRSP deduction claimed exceeds contributions + unused C/F", ERROR))

    if yd.tfsa_contribution > tfsa_available_room:
        out.append(
            ValidationWarning(
                "tfsa_contribution",
                f"TFSA contribution {_money(yd.tfsa_contribution)} exceeds available room {_money(tfsa_available_room)}",
                ERROR,
            )
        )

    if yd.fhsa_contribution > 0:
        if fhsa_disposed:
            out.append(ValidationWarning("fhsa_contribution", "FHSA has been disposed; contributions are not allowed", ERROR))
        else:
            fhsa_room = ass.fhsa_annual_limit + min(fhsa_unused_room, ass.fhsa_annual_limit)
            if yd.fhsa_contribution > fhsa_room:
                out.append(
                    ValidationWarning(
                        "fhsa_contribution",
                        f"FHSA contribution {_money(yd.fhsa_contribution)} exceeds annual room {_money(fhsa_room)}",
                        ERROR,
                    )
                )
            if fhsa_contrib_lifetime + yd.fhsa_contribution > ass.fhsa_lifetime_limit:
                out.append(
                    ValidationWarning(
                        "fhsa_contribution",
                        f"FHSA lifetime contributions would exceed {_money(ass.fhsa_lifetime_limit)} limit",
                        ERROR,
                    )
                )
    if yd.fhsa_deduction_claimed > yd.fhsa_contribution:
        out.append(ValidationWarning("fhsa_deduction_claimed", "FHSA deduction claimed exceeds contributions", ERROR))

    if yd.capital_loss_applied > capital_loss_cf + yd.capital_losses_realized:
        out.append(ValidationWarning("capital_loss_applied", "Capital loss applied exceeds available C/F balance", ERROR))

    if yd.lira_withdrawal > 0 and not is_lif:
        out.append(ValidationWarning("lira_withdrawal", "LIRA funds are locked in until LIF conversion", ERROR))

    for account, contribution_field, withdrawal_fields in _FLOWS[:5]:
        if getattr(yd, contribution_field) > 0 and getattr(yd, withdrawal_fields[0]) > 0:
            label = ACCOUNT_LABELS[account]
            out.append(
                ValidationWarning(withdrawal_fields[0], f"Contributing and withdrawing from {label} in the same year", WARNING)
            )

    for account in ALLOCATED_ACCOUNTS:
        total = getattr(yd, f"{account}_equity_pct") + getattr(yd, f"{account}_fixed_pct") + getattr(yd, f"{account}_cash_pct")
        if abs(total - 1.0) > ALLOCATION_TOLERANCE:
            label = ACCOUNT_LABELS[account]
            out.append(
                ValidationWarning(
                    f"{account}_allocation",
                    f"{label} asset allocation sums to {total * 100:.1f}%, must equal 100%",
                    WARNING,
                )
            )

    for account, label in ACCOUNT_LABELS.items():
        if getattr(yd, f"{account}_eoy_override") is not None:
            out.append(ValidationWarning(f"{account}_eoy_override", f"{label} EOY override active", WARNING))

    if fhsa_opening_year is not None and not fhsa_disposed:
        years_open = yd.year - fhsa_opening_year
        if years_open >= FHSA_MAX_YEARS_OPEN - 1:
            out.append(
                ValidationWarning(
                    "fhsa_contribution",
                    f"FHSA has been open {years_open} years; it must be closed within {FHSA_MAX_YEARS_OPEN} years of opening",
                    WARNING,
                )
            )
        if age is not None and age >= FHSA_MAX_AGE - 1:
            out.append(
                ValidationWarning(
                    "fhsa_contribution",
                    f"FHSA must be closed by the end of the year the holder turns {FHSA_MAX_AGE} (age {age})",
                    WARNING,
                )
            )

    return out


def _check_brackets(result: ValidationResult, path: str, brackets: list[TaxBracket]) -> None:
    if not brackets:
        result.errors.append(f"{path}: at least one bracket is required")
        return
    if brackets[0].min != 0:
        result.errors.append(f"{path}[0].min: first bracket must start at 0")
    for idx, bracket in enumerate(brackets):
        if not 0 <= bracket.rate <= 1:
            result.errors.append(f"{path}[{idx}].rate: must be between 0 and 1")
        last = idx == len(brackets) - 1
        if last:
            if bracket.max is not None:
                result.errors.append(f"{path}[{idx}].max: last bracket must be unbounded")
            continue
        if bracket.max is None:
            result.errors.append(f"{path}[{idx}].max: only the last bracket may be unbounded")
        elif bracket.max != brackets[idx + 1].min:
            result.errors.append(f"{path}[{idx}].max: must equal the next bracket's min")
        elif bracket.max <= bracket.min:
            result.errors.append(f"{path}[{idx}]: max must be greater than min")


def _check_fields(result: ValidationResult, path: str, value: str | None, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value is not None and value not in allowed_set:
        result.errors.append(f"{path}: unknown field '{value}'")


def validate_scenario(scenario: Scenario) -> ValidationResult:
    """Structural checks that must hold before a projection is run."""
    result = ValidationResult()
    ass = scenario.assumptions

    if ass.province not in PROVINCES:
        result.errors.append(f"assumptions.province: '{ass.province}' is not a known province")
    _check_brackets(result, "assumptions.federal_brackets", ass.federal_brackets)
    _check_brackets(result, "assumptions.provincial_brackets", ass.provincial_brackets)
    if ass.inflation_rate <= -1:
        result.errors.append("assumptions.inflation_rate: must be greater than -1")

    if not scenario.years:
        result.errors.append("years: at least one year is required")
    else:
        if scenario.years[0].year != ass.start_year:
            result.warnings.append(
                f"years[0].year: {scenario.years[0].year} does not match assumptions.start_year {ass.start_year}"
            )
        for idx in range(1, len(scenario.years)):
            if scenario.years[idx].year != scenario.years[idx - 1].year + 1:
                result.errors.append(f"years[{idx}].year: years must be consecutive with no gaps")

    for idx, yd in enumerate(scenario.years):
        if yd.inflation_rate_override is not None and yd.inflation_rate_override <= -1:
            result.errors.append(f"years[{idx}].inflation_rate_override: must be greater than -1")
        for account in ALLOCATED_ACCOUNTS:
            total = getattr(yd, f"{account}_equity_pct") + getattr(yd, f"{account}_fixed_pct") + getattr(yd, f"{account}_cash_pct")
            if abs(total - 1.0) > ALLOCATION_TOLERANCE:
                result.warnings.append(f"years[{idx}].{account}: asset allocation sums to {total * 100:.1f}%")

    seen_ids: set[str] = set()
    for idx, item in enumerate(scenario.scheduled_items):
        base = f"scheduled_items[{idx}]"
        if item.id in seen_ids:
            result.warnings.append(f"{base}.id: duplicate schedule id '{item.id}'")
        seen_ids.add(item.id)
        _check_fields(result, f"{base}.field", item.field, YEAR_NUMBER_FIELDS)
        if item.end_year is not None and item.end_year < item.start_year:
            result.errors.append(f"{base}: end_year must be >= start_year")
        if item.amount_type == "percentage":
            if item.amount_reference is None:
                result.errors.append(f"{base}.amount_reference: required for percentage amounts")
            _check_fields(result, f"{base}.amount_reference", item.amount_reference, CONTEXT_FIELDS)
        _check_fields(result, f"{base}.amount_max_ref", item.amount_max_ref, MAX_REFS)
        for c_idx, condition in enumerate(item.conditions):
            _check_fields(result, f"{base}.conditions[{c_idx}].field", condition.field, CONTEXT_FIELDS)
            if condition.operator == "between" and condition.value2 is None:
                result.warnings.append(f"{base}.conditions[{c_idx}].value2: 'between' without value2 compares against value")

    liability_ids: set[str] = set()
    for idx, liability in enumerate(scenario.liabilities):
        base = f"liabilities[{idx}]"
        if liability.id in liability_ids:
            result.errors.append(f"{base}.id: duplicate liability id '{liability.id}'")
        liability_ids.add(liability.id)
        for name in ("opening_balance", "annual_rate", "monthly_payment"):
            if getattr(liability, name) < 0:
                result.errors.append(f"{base}.{name}: must be >= 0")
        if liability.opening_balance > 0 and liability.monthly_payment * 12 <= liability.opening_balance * liability.annual_rate:
            result.warnings.append(f"{base}.monthly_payment: payments do not cover interest; balance will not amortize")

    retirement = ass.retirement
    if ass.birth_year is None and (retirement.cpp_benefit.enabled or retirement.oas_benefit.enabled):
        result.warnings.append("assumptions.birth_year: required for CPP/OAS benefits; benefits will be ignored")
    if ass.fhsa.disposition != "active" and ass.fhsa.disposition_year is None:
        result.errors.append("assumptions.fhsa.disposition_year: required when disposition is not 'active'")

    if scenario.years:
        first, last = scenario.years[0].year, scenario.years[-1].year
        for year in sorted(scenario.assumption_overrides):
            if not first <= year <= last:
                result.warnings.append(f"assumption_overrides.{year}: year is outside the projection")
            overrides = scenario.assumption_overrides[year]
            if overrides.inflation_rate is not None and overrides.inflation_rate <= -1:
                result.errors.append(f"assumption_overrides.{year}.inflation_rate: must be greater than -1")
            if overrides.federal_brackets is not None:
                _check_brackets(result, f"assumption_overrides.{year}.federal_brackets", overrides.federal_brackets)
            if overrides.provincial_brackets is not None:
                _check_brackets(result, f"assumption_overrides.{year}.provincial_brackets", overrides.provincial_brackets)

    sequence = scenario.return_sequence
    if sequence is not None and sequence.enabled and len(sequence.equity) < len(scenario.years):
        result.warnings.append("return_sequence.equity: shorter than the projection; remaining years use asset_returns")

    if scenario.monte_carlo is not None and scenario.monte_carlo.num_trials <= 0:
        result.errors.append("monte_carlo.num_trials: must be > 0")

    return result
