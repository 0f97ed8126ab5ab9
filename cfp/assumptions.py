"""Per-year assumption resolution: inflation indexing plus manual overrides."""

from __future__ import annotations

from dataclasses import replace
import math

from .schema import AssumptionOverrides, Assumptions, CPPParams, DividendRates, DivRate, EIParams, TaxBracket


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, matching JavaScript Math.round."""
    return int(math.floor(value + 0.5))


def round_to_nearest_500(value: float) -> float:
    return float(round_half_up(value / 500) * 500)


def _index_amount(value: float, factor: float) -> float:
    return float(round_half_up(value * factor))


def index_brackets(brackets: list[TaxBracket], factor: float) -> list[TaxBracket]:
    return [
        TaxBracket(
            min=_index_amount(bracket.min, factor),
            max=None if bracket.max is None else _index_amount(bracket.max, factor),
            rate=bracket.rate,
        )
        for bracket in brackets
    ]


def resolve_assumptions(
    base: Assumptions,
    year: int,
    cumulative_inflation_factor: float,
    overrides: dict[int, AssumptionOverrides] | None = None,
) -> Assumptions:
    """Return a resolved copy of ``base`` for ``year``.

    Dollar thresholds are indexed by ``cumulative_inflation_factor`` when
    auto-indexing is on. Rates and FHSA limits are never indexed. Manual
    overrides for the calendar year replace indexed values field by field.
    """
    factor = cumulative_inflation_factor if base.auto_index_assumptions else 1.0
    resolved = replace(
        base,
        cpp=replace(base.cpp),
        ei=replace(base.ei),
        dividend_rates=DividendRates(eligible=replace(base.dividend_rates.eligible), non_eligible=replace(base.dividend_rates.non_eligible)),
        federal_brackets=list(base.federal_brackets),
        provincial_brackets=list(base.provincial_brackets),
    )

    if factor != 1.0:
        resolved.federal_bpa = _index_amount(base.federal_bpa, factor)
        resolved.provincial_bpa = _index_amount(base.provincial_bpa, factor)
        resolved.federal_brackets = index_brackets(base.federal_brackets, factor)
        resolved.provincial_brackets = index_brackets(base.provincial_brackets, factor)
        resolved.cpp = replace(
            base.cpp,
            basic_exemption=_index_amount(base.cpp.basic_exemption, factor),
            ympe=_index_amount(base.cpp.ympe, factor),
            yampe=_index_amount(base.cpp.yampe, factor),
        )
        resolved.ei = replace(base.ei, max_insurable_earnings=_index_amount(base.ei.max_insurable_earnings, factor))
        resolved.rrsp_limit = _index_amount(base.rrsp_limit, factor)
        resolved.tfsa_annual_limit = round_to_nearest_500(base.tfsa_annual_limit * factor)
        resolved.oas_clawback_threshold = _index_amount(base.oas_clawback_threshold, factor)
        resolved.federal_employment_amount = _index_amount(base.federal_employment_amount, factor)
        resolved.ontario_surtax_threshold1 = _index_amount(base.ontario_surtax_threshold1, factor)
        resolved.ontario_surtax_threshold2 = _index_amount(base.ontario_surtax_threshold2, factor)

    year_overrides = (overrides or {}).get(year)
    if year_overrides is not None:
        _apply_overrides(resolved, year_overrides)
    return resolved


def _apply_overrides(resolved: Assumptions, ov: AssumptionOverrides) -> None:
    direct = (
        "federal_bpa",
        "provincial_bpa",
        "rrsp_limit",
        "tfsa_annual_limit",
        "fhsa_annual_limit",
        "fhsa_lifetime_limit",
        "capital_gains_inclusion_rate",
        "oas_clawback_threshold",
        "inflation_rate",
    )
    for name in direct:
        value = getattr(ov, name)
        if value is not None:
            setattr(resolved, name, value)
    if ov.federal_brackets is not None:
        resolved.federal_brackets = list(ov.federal_brackets)
    if ov.provincial_brackets is not None:
        resolved.provincial_brackets = list(ov.provincial_brackets)

    resolved.cpp = CPPParams(
        basic_exemption=_pick(ov.cpp_basic_exemption, resolved.cpp.basic_exemption),
        ympe=_pick(ov.cpp_ympe, resolved.cpp.ympe),
        yampe=_pick(ov.cpp_yampe, resolved.cpp.yampe),
        employee_rate=_pick(ov.cpp_employee_rate, resolved.cpp.employee_rate),
        cpp2_rate=_pick(ov.cpp_cpp2_rate, resolved.cpp.cpp2_rate),
        se_deduction_factor=resolved.cpp.se_deduction_factor,
    )
    resolved.ei = EIParams(
        max_insurable_earnings=_pick(ov.ei_max_insurable_earnings, resolved.ei.max_insurable_earnings),
        employee_rate=_pick(ov.ei_employee_rate, resolved.ei.employee_rate),
        se_opt_in=resolved.ei.se_opt_in,
    )
    eligible = resolved.dividend_rates.eligible
    non_eligible = resolved.dividend_rates.non_eligible
    resolved.dividend_rates = DividendRates(
        eligible=DivRate(
            gross_up=_pick(ov.dividend_eligible_gross_up, eligible.gross_up),
            federal_credit=_pick(ov.dividend_eligible_federal_credit, eligible.federal_credit),
            provincial_credit=_pick(ov.dividend_eligible_provincial_credit, eligible.provincial_credit),
        ),
        non_eligible=DivRate(
            gross_up=_pick(ov.dividend_non_eligible_gross_up, non_eligible.gross_up),
            federal_credit=_pick(ov.dividend_non_eligible_federal_credit, non_eligible.federal_credit),
            provincial_credit=_pick(ov.dividend_non_eligible_provincial_credit, non_eligible.provincial_credit),
        ),
    )


def _pick(override: float | None, current: float) -> float:
    return current if override is None else override
