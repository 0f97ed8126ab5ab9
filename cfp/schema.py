"""Scenario schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .tax_data import (
    BASE_TAX_YEAR,
    CAPITAL_GAINS_INCLUSION_RATE,
    CG_TIER1_RATE,
    CG_TIER2_RATE,
    CG_TIER_THRESHOLD,
    CPP_PARAMS,
    DEFAULT_INFLATION,
    DEFAULT_PROVINCE,
    EI_PARAMS,
    ELIGIBLE_DIVIDEND,
    FEDERAL_BPA,
    FEDERAL_BRACKETS,
    FEDERAL_EMPLOYMENT_AMOUNT,
    FHSA_ANNUAL_LIMIT,
    FHSA_LIFETIME_LIMIT,
    LIF_CONVERSION_AGE,
    NON_ELIGIBLE_DIVIDEND,
    OAS_CLAWBACK_THRESHOLD,
    ONTARIO_SURTAX_THRESHOLDS,
    PROVINCES,
    PROVINCIAL_BPA,
    PROVINCIAL_BRACKETS,
    PROVINCIAL_DIV_CREDITS,
    RRIF_CONVERSION_AGE,
    RRSP_LIMIT,
    RRSP_PCT_EARNED_INCOME,
    TFSA_ANNUAL_LIMITS,
)

if TYPE_CHECKING:
    from .what_if import WhatIfAdjustments

FHSA_DISPOSITIONS = {"active", "home-purchase", "transfer-rrsp", "taxable-close"}
CONDITION_OPERATORS = {">", "<", ">=", "<=", "==", "between"}
AMOUNT_TYPES = {"fixed", "percentage"}
GROWTH_TYPES = {"fixed", "inflation"}


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _as_float(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


def _as_int(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise SchemaError(f"{path}: expected integer")
    return int(value)


def _optional_float(data: dict[str, Any], key: str, path: str, default: float | None = None) -> float | None:
    value = data.get(key)
    if value is None:
        return default
    return _as_float(value, f"{path}.{key}")


def _merge_numbers(target: Any, data: dict[str, Any], path: str) -> Any:
    """Overwrite numeric attributes of ``target`` with any present in ``data``."""
    for item in fields(target):
        if item.name in data and isinstance(getattr(target, item.name), float):
            setattr(target, item.name, _as_float(data[item.name], f"{path}.{item.name}"))
    return target


@dataclass(slots=True)
class TaxBracket:
    min: float
    max: float | None
    rate: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxBracket":
        upper = _optional(data, "max")
        return cls(
            min=_as_float(_require(data, "min", path), f"{path}.min"),
            max=None if upper is None else _as_float(upper, f"{path}.max"),
            rate=_as_float(_require(data, "rate", path), f"{path}.rate"),
        )


def brackets_from_table(rows: list[tuple[float, float | None, float]]) -> list[TaxBracket]:
    return [TaxBracket(min=low, max=high, rate=rate) for low, high, rate in rows]


def _brackets_from_raw(raw: Any, path: str) -> list[TaxBracket]:
    return [
        TaxBracket.from_dict(_expect_dict(item, f"{path}[{idx}]"), f"{path}[{idx}]")
        for idx, item in enumerate(_expect_list(raw, path))
    ]


@dataclass(slots=True)
class DivRate:
    gross_up: float
    federal_credit: float
    provincial_credit: float


@dataclass(slots=True)
class DividendRates:
    eligible: DivRate
    non_eligible: DivRate

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str, defaults: "DividendRates") -> "DividendRates":
        eligible = _merge_numbers(
            DivRate(defaults.eligible.gross_up, defaults.eligible.federal_credit, defaults.eligible.provincial_credit),
            _expect_dict(_optional(data, "eligible", {}), f"{path}.eligible"),
            f"{path}.eligible",
        )
        non_eligible = _merge_numbers(
            DivRate(defaults.non_eligible.gross_up, defaults.non_eligible.federal_credit, defaults.non_eligible.provincial_credit),
            _expect_dict(_optional(data, "non_eligible", {}), f"{path}.non_eligible"),
            f"{path}.non_eligible",
        )
        return cls(eligible=eligible, non_eligible=non_eligible)


@dataclass(slots=True)
class CPPParams:
    basic_exemption: float
    ympe: float
    yampe: float
    employee_rate: float
    cpp2_rate: float
    se_deduction_factor: float = 0.5


@dataclass(slots=True)
class EIParams:
    max_insurable_earnings: float
    employee_rate: float
    se_opt_in: bool = False


@dataclass(slots=True)
class RetirementBenefit:
    enabled: bool = False
    monthly_amount: float = 0.0
    start_age: int = 65

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RetirementBenefit":
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            monthly_amount=_optional_float(data, "monthly_amount", path, 0.0),
            start_age=_as_int(_optional(data, "start_age", 65), f"{path}.start_age"),
        )


@dataclass(slots=True)
class RetirementSettings:
    cpp_benefit: RetirementBenefit = field(default_factory=RetirementBenefit)
    oas_benefit: RetirementBenefit = field(default_factory=RetirementBenefit)
    rrif_conversion_age: int = RRIF_CONVERSION_AGE
    lif_conversion_age: int = LIF_CONVERSION_AGE

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.retirement") -> "RetirementSettings":
        return cls(
            cpp_benefit=RetirementBenefit.from_dict(_expect_dict(_optional(data, "cpp_benefit", {}), f"{path}.cpp_benefit"), f"{path}.cpp_benefit"),
            oas_benefit=RetirementBenefit.from_dict(_expect_dict(_optional(data, "oas_benefit", {}), f"{path}.oas_benefit"), f"{path}.oas_benefit"),
            rrif_conversion_age=_as_int(_optional(data, "rrif_conversion_age", RRIF_CONVERSION_AGE), f"{path}.rrif_conversion_age"),
            lif_conversion_age=_as_int(_optional(data, "lif_conversion_age", LIF_CONVERSION_AGE), f"{path}.lif_conversion_age"),
        )


@dataclass(slots=True)
class FHSASettings:
    disposition: str = "active"
    disposition_year: int | None = None
    opening_year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions.fhsa") -> "FHSASettings":
        disposition = _optional(data, "disposition", "active")
        if disposition not in FHSA_DISPOSITIONS:
            expected = ", ".join(sorted(FHSA_DISPOSITIONS))
            raise SchemaError(f"{path}.disposition: '{disposition}' is not valid; expected one of [{expected}]")
        disposition_year = _optional(data, "disposition_year")
        opening_year = _optional(data, "opening_year")
        return cls(
            disposition=disposition,
            disposition_year=None if disposition_year is None else _as_int(disposition_year, f"{path}.disposition_year"),
            opening_year=None if opening_year is None else _as_int(opening_year, f"{path}.opening_year"),
        )


@dataclass(slots=True)
class AssetReturns:
    equity: float = 0.0
    fixed_income: float = 0.0
    cash: float = 0.0
    savings: float = 0.0


@dataclass(slots=True)
class Assumptions:
    province: str
    start_year: int
    num_years: int
    inflation_rate: float
    capital_gains_inclusion_rate: float
    dividend_rates: DividendRates
    cpp: CPPParams
    ei: EIParams
    federal_brackets: list[TaxBracket]
    provincial_brackets: list[TaxBracket]
    federal_bpa: float
    provincial_bpa: float
    federal_employment_amount: float
    asset_returns: AssetReturns
    rrsp_limit: float
    rrsp_pct_earned_income: float
    tfsa_annual_limit: float
    fhsa_annual_limit: float
    fhsa_lifetime_limit: float
    oas_clawback_threshold: float
    ontario_surtax_threshold1: float
    ontario_surtax_threshold2: float
    cg_inclusion_tiered: bool = False
    cg_inclusion_tier1_rate: float = CG_TIER1_RATE
    cg_inclusion_tier2_rate: float = CG_TIER2_RATE
    cg_inclusion_threshold: float = CG_TIER_THRESHOLD
    birth_year: int | None = None
    retirement: RetirementSettings = field(default_factory=RetirementSettings)
    fhsa: FHSASettings = field(default_factory=FHSASettings)
    auto_index_assumptions: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "assumptions") -> "Assumptions":
        province = _optional(data, "province", DEFAULT_PROVINCE)
        if province not in PROVINCES:
            expected = ", ".join(sorted(PROVINCES))
            raise SchemaError(f"{path}.province: '{province}' is not valid; expected one of [{expected}]")

        resolved = default_assumptions(province)
        _merge_numbers(resolved, data, path)
        for key in ("start_year", "num_years"):
            if key in data:
                setattr(resolved, key, _as_int(data[key], f"{path}.{key}"))
        if _optional(data, "birth_year") is not None:
            resolved.birth_year = _as_int(data["birth_year"], f"{path}.birth_year")
        for key in ("cg_inclusion_tiered", "auto_index_assumptions"):
            if key in data:
                setattr(resolved, key, bool(data[key]))

        if "dividend_rates" in data:
            resolved.dividend_rates = DividendRates.from_dict(
                _expect_dict(data["dividend_rates"], f"{path}.dividend_rates"), f"{path}.dividend_rates", resolved.dividend_rates
            )
        if "cpp" in data:
            _merge_numbers(resolved.cpp, _expect_dict(data["cpp"], f"{path}.cpp"), f"{path}.cpp")
        if "ei" in data:
            ei_raw = _expect_dict(data["ei"], f"{path}.ei")
            _merge_numbers(resolved.ei, ei_raw, f"{path}.ei")
            resolved.ei.se_opt_in = bool(_optional(ei_raw, "se_opt_in", resolved.ei.se_opt_in))
        if "federal_brackets" in data:
            resolved.federal_brackets = _brackets_from_raw(data["federal_brackets"], f"{path}.federal_brackets")
        if "provincial_brackets" in data:
            resolved.provincial_brackets = _brackets_from_raw(data["provincial_brackets"], f"{path}.provincial_brackets")
        if "asset_returns" in data:
            _merge_numbers(resolved.asset_returns, _expect_dict(data["asset_returns"], f"{path}.asset_returns"), f"{path}.asset_returns")
        if "retirement" in data:
            resolved.retirement = RetirementSettings.from_dict(_expect_dict(data["retirement"], f"{path}.retirement"), f"{path}.retirement")
        if "fhsa" in data:
            resolved.fhsa = FHSASettings.from_dict(_expect_dict(data["fhsa"], f"{path}.fhsa"), f"{path}.fhsa")
        return resolved


def default_assumptions(province: str = DEFAULT_PROVINCE, tax_year: int = BASE_TAX_YEAR) -> Assumptions:
    """Build start-year assumptions for a province from the reference tables."""
    if province not in PROVINCES:
        raise ValueError(f"unknown province: {province}")
    eligible_gross_up, eligible_federal = ELIGIBLE_DIVIDEND[tax_year]
    non_eligible_gross_up, non_eligible_federal = NON_ELIGIBLE_DIVIDEND[tax_year]
    eligible_prov, non_eligible_prov = PROVINCIAL_DIV_CREDITS[tax_year][province]
    surtax_low, surtax_high = ONTARIO_SURTAX_THRESHOLDS[tax_year]
    cpp = CPP_PARAMS[tax_year]
    ei = EI_PARAMS[tax_year]
    return Assumptions(
        province=province,
        start_year=tax_year,
        num_years=40,
        inflation_rate=DEFAULT_INFLATION,
        capital_gains_inclusion_rate=CAPITAL_GAINS_INCLUSION_RATE,
        dividend_rates=DividendRates(
            eligible=DivRate(eligible_gross_up, eligible_federal, eligible_prov),
            non_eligible=DivRate(non_eligible_gross_up, non_eligible_federal, non_eligible_prov),
        ),
        cpp=CPPParams(**cpp),
        ei=EIParams(max_insurable_earnings=ei["max_insurable_earnings"], employee_rate=ei["employee_rate"]),
        federal_brackets=brackets_from_table(FEDERAL_BRACKETS[tax_year]),
        provincial_brackets=brackets_from_table(PROVINCIAL_BRACKETS[tax_year][province]),
        federal_bpa=FEDERAL_BPA[tax_year],
        provincial_bpa=PROVINCIAL_BPA[tax_year][province],
        federal_employment_amount=FEDERAL_EMPLOYMENT_AMOUNT[tax_year],
        asset_returns=AssetReturns(),
        rrsp_limit=RRSP_LIMIT[tax_year],
        rrsp_pct_earned_income=RRSP_PCT_EARNED_INCOME,
        tfsa_annual_limit=TFSA_ANNUAL_LIMITS[tax_year],
        fhsa_annual_limit=FHSA_ANNUAL_LIMIT,
        fhsa_lifetime_limit=FHSA_LIFETIME_LIMIT,
        oas_clawback_threshold=OAS_CLAWBACK_THRESHOLD[tax_year],
        ontario_surtax_threshold1=surtax_low,
        ontario_surtax_threshold2=surtax_high,
    )


@dataclass(slots=True)
class AssumptionOverrides:
    """Manual per-year replacements; None keeps the indexed value."""

    federal_bpa: float | None = None
    provincial_bpa: float | None = None
    federal_brackets: list[TaxBracket] | None = None
    provincial_brackets: list[TaxBracket] | None = None
    cpp_basic_exemption: float | None = None
    cpp_ympe: float | None = None
    cpp_yampe: float | None = None
    cpp_employee_rate: float | None = None
    cpp_cpp2_rate: float | None = None
    ei_max_insurable_earnings: float | None = None
    ei_employee_rate: float | None = None
    rrsp_limit: float | None = None
    tfsa_annual_limit: float | None = None
    fhsa_annual_limit: float | None = None
    fhsa_lifetime_limit: float | None = None
    capital_gains_inclusion_rate: float | None = None
    dividend_eligible_gross_up: float | None = None
    dividend_eligible_federal_credit: float | None = None
    dividend_eligible_provincial_credit: float | None = None
    dividend_non_eligible_gross_up: float | None = None
    dividend_non_eligible_federal_credit: float | None = None
    dividend_non_eligible_provincial_credit: float | None = None
    oas_clawback_threshold: float | None = None
    inflation_rate: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AssumptionOverrides":
        result = cls()
        for item in fields(cls):
            if data.get(item.name) is None:
                continue
            if item.name.endswith("_brackets"):
                setattr(result, item.name, _brackets_from_raw(data[item.name], f"{path}.{item.name}"))
            else:
                setattr(result, item.name, _as_float(data[item.name], f"{path}.{item.name}"))
        return result


@dataclass(slots=True)
class ScheduleCondition:
    field: str
    operator: str
    value: float
    value2: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScheduleCondition":
        operator = _require(data, "operator", path)
        if operator not in CONDITION_OPERATORS:
            expected = ", ".join(sorted(CONDITION_OPERATORS))
            raise SchemaError(f"{path}.operator: '{operator}' is not valid; expected one of [{expected}]")
        return cls(
            field=_require(data, "field", path),
            operator=operator,
            value=_as_float(_require(data, "value", path), f"{path}.value"),
            value2=_optional_float(data, "value2", path),
        )


@dataclass(slots=True)
class ScheduledItem:
    id: str
    label: str
    field: str
    start_year: int
    amount: float
    end_year: int | None = None
    amount_type: str = "fixed"
    amount_reference: str | None = None
    amount_min: float | None = None
    amount_max: float | None = None
    amount_max_ref: str | None = None
    conditions: list[ScheduleCondition] = field(default_factory=list)
    growth_rate: float | None = None
    growth_type: str = "fixed"

    @property
    def needs_computed(self) -> bool:
        return bool(self.conditions) or self.amount_type == "percentage" or bool(self.amount_max_ref)

    def is_active(self, year: int) -> bool:
        if year < self.start_year:
            return False
        return self.end_year is None or year <= self.end_year

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ScheduledItem":
        amount_type = _optional(data, "amount_type", "fixed")
        if amount_type not in AMOUNT_TYPES:
            raise SchemaError(f"{path}.amount_type: '{amount_type}' is not valid; expected one of [fixed, percentage]")
        growth_type = _optional(data, "growth_type", "fixed")
        if growth_type not in GROWTH_TYPES:
            raise SchemaError(f"{path}.growth_type: '{growth_type}' is not valid; expected one of [fixed, inflation]")
        end_year = _optional(data, "end_year")
        conditions = [
            ScheduleCondition.from_dict(_expect_dict(item, f"{path}.conditions[{idx}]"), f"{path}.conditions[{idx}]")
            for idx, item in enumerate(_expect_list(_optional(data, "conditions", []), f"{path}.conditions"))
        ]
        return cls(
            id=str(_require(data, "id", path)),
            label=_optional(data, "label", ""),
            field=_require(data, "field", path),
            start_year=_as_int(_require(data, "start_year", path), f"{path}.start_year"),
            end_year=None if end_year is None else _as_int(end_year, f"{path}.end_year"),
            amount=_as_float(_require(data, "amount", path), f"{path}.amount"),
            amount_type=amount_type,
            amount_reference=_optional(data, "amount_reference"),
            amount_min=_optional_float(data, "amount_min", path),
            amount_max=_optional_float(data, "amount_max", path),
            amount_max_ref=_optional(data, "amount_max_ref"),
            conditions=conditions,
            growth_rate=_optional_float(data, "growth_rate", path),
            growth_type=growth_type,
        )


ALLOCATED_ACCOUNTS = ("rrsp", "tfsa", "fhsa", "non_reg", "lira", "resp", "li")

EXPENSE_FIELDS = (
    "housing_expense",
    "groceries_expense",
    "transportation_expense",
    "utilities_expense",
    "insurance_expense",
    "healthcare_expense",
    "entertainment_expense",
    "travel_expense",
    "personal_expense",
    "other_expense",
)


@dataclass(slots=True)
class YearData:
    year: int
    # Income
    employment_income: float = 0.0
    self_employment_income: float = 0.0
    self_employment_expenses: float = 0.0
    eligible_dividends: float = 0.0
    non_eligible_dividends: float = 0.0
    interest_income: float = 0.0
    capital_gains_realized: float = 0.0
    capital_losses_realized: float = 0.0
    other_taxable_income: float = 0.0
    pension_income: float = 0.0
    foreign_income: float = 0.0
    foreign_tax_paid: float = 0.0
    rental_gross_income: float = 0.0
    rental_expenses: float = 0.0
    gis_income: float = 0.0
    # Deductions
    union_dues: float = 0.0
    child_care_expenses: float = 0.0
    moving_expenses: float = 0.0
    other_deductions: float = 0.0
    # Non-refundable credit bases
    charitable_donations: float = 0.0
    medical_expenses: float = 0.0
    student_loan_interest: float = 0.0
    home_buyers_amount: float = 0.0
    disability_claim: float = 0.0
    other_credit_base: float = 0.0
    lcge_claim: float = 0.0
    # Contributions
    rrsp_contribution: float = 0.0
    rrsp_deduction_claimed: float = 0.0
    tfsa_contribution: float = 0.0
    fhsa_contribution: float = 0.0
    fhsa_deduction_claimed: float = 0.0
    non_reg_contribution: float = 0.0
    savings_deposit: float = 0.0
    resp_contribution: float = 0.0
    li_premium: float = 0.0
    li_coi: float = 0.0
    # Withdrawals
    rrsp_withdrawal: float = 0.0
    tfsa_withdrawal: float = 0.0
    fhsa_withdrawal: float = 0.0
    non_reg_withdrawal: float = 0.0
    savings_withdrawal: float = 0.0
    lira_withdrawal: float = 0.0
    resp_withdrawal: float = 0.0
    li_withdrawal: float = 0.0
    hbp_withdrawal: float = 0.0
    capital_loss_applied: float = 0.0
    # Asset allocation, each account sums to 1.0
    rrsp_equity_pct: float = 1.0
    rrsp_fixed_pct: float = 0.0
    rrsp_cash_pct: float = 0.0
    tfsa_equity_pct: float = 1.0
    tfsa_fixed_pct: float = 0.0
    tfsa_cash_pct: float = 0.0
    fhsa_equity_pct: float = 1.0
    fhsa_fixed_pct: float = 0.0
    fhsa_cash_pct: float = 0.0
    non_reg_equity_pct: float = 1.0
    non_reg_fixed_pct: float = 0.0
    non_reg_cash_pct: float = 0.0
    lira_equity_pct: float = 1.0
    lira_fixed_pct: float = 0.0
    lira_cash_pct: float = 0.0
    resp_equity_pct: float = 1.0
    resp_fixed_pct: float = 0.0
    resp_cash_pct: float = 0.0
    li_equity_pct: float = 0.0
    li_fixed_pct: float = 1.0
    li_cash_pct: float = 0.0
    # Living expenses
    housing_expense: float = 0.0
    groceries_expense: float = 0.0
    transportation_expense: float = 0.0
    utilities_expense: float = 0.0
    insurance_expense: float = 0.0
    healthcare_expense: float = 0.0
    entertainment_expense: float = 0.0
    travel_expense: float = 0.0
    personal_expense: float = 0.0
    other_expense: float = 0.0
    # End-of-year balance overrides
    rrsp_eoy_override: float | None = None
    tfsa_eoy_override: float | None = None
    fhsa_eoy_override: float | None = None
    non_reg_eoy_override: float | None = None
    savings_eoy_override: float | None = None
    lira_eoy_override: float | None = None
    resp_eoy_override: float | None = None
    li_eoy_override: float | None = None
    # Per-year rate overrides
    inflation_rate_override: float | None = None
    equity_return_override: float | None = None
    fixed_income_return_override: float | None = None
    cash_return_override: float | None = None
    savings_return_override: float | None = None

    @property
    def total_living_expenses(self) -> float:
        return sum(getattr(self, name) for name in EXPENSE_FIELDS)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "YearData":
        result = cls(year=_as_int(_require(data, "year", path), f"{path}.year"))
        for item in fields(cls):
            if item.name == "year" or item.name not in data:
                continue
            value = data[item.name]
            if value is None and item.default is None:
                continue
            setattr(result, item.name, _as_float(value, f"{path}.{item.name}"))
        return result


# Numeric inputs a scheduled item may fill.
YEAR_NUMBER_FIELDS = frozenset(item.name for item in fields(YearData) if item.name != "year" and item.default is not None)


@dataclass(slots=True)
class OpeningBalances:
    rrsp: float = 0.0
    tfsa: float = 0.0
    fhsa: float = 0.0
    non_reg: float = 0.0
    savings: float = 0.0
    lira: float = 0.0
    resp: float = 0.0
    li: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "opening_balances") -> "OpeningBalances":
        return _merge_numbers(cls(), data, path)


@dataclass(slots=True)
class OpeningCarryForwards:
    rrsp_unused_room: float = 0.0
    tfsa_unused_room: float = 0.0
    capital_loss_cf: float = 0.0
    fhsa_contrib_lifetime: float = 0.0
    fhsa_unused_room: float = 0.0
    prior_year_earned_income: float = 0.0
    resp_grant_lifetime: float = 0.0
    resp_grant_carry: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "opening_carry_forwards") -> "OpeningCarryForwards":
        return _merge_numbers(cls(), data, path)


@dataclass(slots=True)
class ACBConfig:
    opening_acb: float | None = None
    li_opening_acb: float | None = None
    auto_compute_gains: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "acb_config") -> "ACBConfig":
        return cls(
            opening_acb=_optional_float(data, "opening_acb", path),
            li_opening_acb=_optional_float(data, "li_opening_acb", path),
            auto_compute_gains=bool(_optional(data, "auto_compute_gains", False)),
        )


@dataclass(slots=True)
class Liability:
    id: str
    label: str
    type: str
    opening_balance: float
    annual_rate: float
    monthly_payment: float
    investment_purpose: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Liability":
        return cls(
            id=str(_require(data, "id", path)),
            label=_optional(data, "label", ""),
            type=_optional(data, "type", "other"),
            opening_balance=_as_float(_require(data, "opening_balance", path), f"{path}.opening_balance"),
            annual_rate=_as_float(_require(data, "annual_rate", path), f"{path}.annual_rate"),
            monthly_payment=_as_float(_require(data, "monthly_payment", path), f"{path}.monthly_payment"),
            investment_purpose=bool(_optional(data, "investment_purpose", False)),
        )


@dataclass(slots=True)
class ReturnSequence:
    enabled: bool = False
    equity: list[float] = field(default_factory=list)
    fixed_income: list[float] = field(default_factory=list)
    cash: list[float] = field(default_factory=list)
    savings: list[float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "return_sequence") -> "ReturnSequence":
        def _series(key: str) -> list[float]:
            raw = _expect_list(_optional(data, key, []), f"{path}.{key}")
            return [_as_float(value, f"{path}.{key}[{idx}]") for idx, value in enumerate(raw)]

        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            equity=_series("equity"),
            fixed_income=_series("fixed_income"),
            cash=_series("cash"),
            savings=_series("savings"),
        )


@dataclass(slots=True)
class ReturnDistribution:
    mean: float
    std_dev: float = 0.0


@dataclass(slots=True)
class MonteCarloConfig:
    num_trials: int
    equity: ReturnDistribution
    fixed_income: ReturnDistribution
    cash: ReturnDistribution
    savings: ReturnDistribution
    seed: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str, returns: AssetReturns) -> "MonteCarloConfig":
        def _dist(key: str, default_mean: float) -> ReturnDistribution:
            raw = _expect_dict(_optional(data, key, {}), f"{path}.{key}")
            return ReturnDistribution(
                mean=_optional_float(raw, "mean", f"{path}.{key}", default_mean),
                std_dev=_optional_float(raw, "std_dev", f"{path}.{key}", 0.0),
            )

        seed = _optional(data, "seed")
        return cls(
            num_trials=_as_int(_optional(data, "num_trials", 500), f"{path}.num_trials"),
            equity=_dist("equity", returns.equity),
            fixed_income=_dist("fixed_income", returns.fixed_income),
            cash=_dist("cash", returns.cash),
            savings=_dist("savings", returns.savings),
            seed=None if seed is None else _as_int(seed, f"{path}.seed"),
        )


@dataclass(slots=True)
class Scenario:
    id: str
    name: str
    assumptions: Assumptions
    opening_balances: OpeningBalances
    years: list[YearData]
    opening_carry_forwards: OpeningCarryForwards = field(default_factory=OpeningCarryForwards)
    scheduled_items: list[ScheduledItem] = field(default_factory=list)
    acb_config: ACBConfig | None = None
    assumption_overrides: dict[int, AssumptionOverrides] = field(default_factory=dict)
    return_sequence: ReturnSequence | None = None
    liabilities: list[Liability] = field(default_factory=list)
    monte_carlo: MonteCarloConfig | None = None
    what_if: WhatIfAdjustments | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        assumptions = Assumptions.from_dict(_expect_dict(_optional(data, "assumptions", {}), "assumptions"))
        years_raw = _expect_list(_optional(data, "years", []), "years")
        years = [YearData.from_dict(_expect_dict(item, f"years[{idx}]"), f"years[{idx}]") for idx, item in enumerate(years_raw)]
        if not years_raw:
            years = [YearData(year=assumptions.start_year + idx) for idx in range(assumptions.num_years)]

        scheduled_items = [
            ScheduledItem.from_dict(_expect_dict(item, f"scheduled_items[{idx}]"), f"scheduled_items[{idx}]")
            for idx, item in enumerate(_expect_list(_optional(data, "scheduled_items", []), "scheduled_items"))
        ]
        overrides_raw = _expect_dict(_optional(data, "assumption_overrides", {}), "assumption_overrides")
        overrides: dict[int, AssumptionOverrides] = {}
        for key, value in overrides_raw.items():
            try:
                year = int(key)
            except ValueError as exc:
                raise SchemaError(f"assumption_overrides.{key}: expected a calendar year key") from exc
            overrides[year] = AssumptionOverrides.from_dict(_expect_dict(value, f"assumption_overrides.{key}"), f"assumption_overrides.{key}")

        liabilities = [
            Liability.from_dict(_expect_dict(item, f"liabilities[{idx}]"), f"liabilities[{idx}]")
            for idx, item in enumerate(_expect_list(_optional(data, "liabilities", []), "liabilities"))
        ]
        acb_raw = _optional(data, "acb_config")
        sequence_raw = _optional(data, "return_sequence")
        monte_carlo_raw = _optional(data, "monte_carlo")
        return cls(
            id=str(_optional(data, "id", "scenario")),
            name=_optional(data, "name", "Scenario"),
            assumptions=assumptions,
            opening_balances=OpeningBalances.from_dict(_expect_dict(_optional(data, "opening_balances", {}), "opening_balances")),
            opening_carry_forwards=OpeningCarryForwards.from_dict(
                _expect_dict(_optional(data, "opening_carry_forwards", {}), "opening_carry_forwards")
            ),
            years=years,
            scheduled_items=scheduled_items,
            acb_config=None if acb_raw is None else ACBConfig.from_dict(_expect_dict(acb_raw, "acb_config")),
            assumption_overrides=overrides,
            return_sequence=None if sequence_raw is None else ReturnSequence.from_dict(_expect_dict(sequence_raw, "return_sequence")),
            liabilities=liabilities,
            monte_carlo=None
            if monte_carlo_raw is None
            else MonteCarloConfig.from_dict(_expect_dict(monte_carlo_raw, "monte_carlo"), "monte_carlo", assumptions.asset_returns),
        )


def default_scenario(name: str = "Scenario 1", province: str = DEFAULT_PROVINCE, num_years: int | None = None) -> Scenario:
    """Empty scenario with one zero-valued YearData per projected year."""
    assumptions = default_assumptions(province)
    if num_years is not None:
        assumptions.num_years = num_years
    years = [YearData(year=assumptions.start_year + idx) for idx in range(assumptions.num_years)]
    return Scenario(
        id=name.lower().replace(" ", "-"),
        name=name,
        assumptions=assumptions,
        opening_balances=OpeningBalances(),
        years=years,
    )


def load_scenario(path: str | Path) -> Scenario:
    """Load scenario JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("scenario: root must be a JSON object")
    return Scenario.from_dict(raw)
