"""Federal/provincial income tax and CPP/EI payroll contributions."""

from __future__ import annotations

from dataclasses import dataclass, field

from .assumptions import round_half_up
from .credits import (
    FEDERAL_CREDIT_RULES,
    PROVINCIAL_CREDIT_RULES,
    apply_credit_rules,
    federal_context,
    provincial_context,
)
from .schema import Assumptions, CPPParams, EIParams, TaxBracket, YearData
from .tax_data import (
    AMT_DONATION_ADDBACK,
    AMT_EXEMPTION,
    AMT_RATE,
    CWB_EARNED_INCOME_FLOOR,
    CWB_INCOME_CEILING,
    CWB_MAX_BENEFIT,
    CWB_PHASE_IN_RATE,
    CWB_PHASE_OUT_RATE,
    CWB_PHASE_OUT_THRESHOLD,
    OAS_CLAWBACK_RATE,
    ONTARIO_HEALTH_PREMIUM,
    ONTARIO_SURTAX_RATES,
    QUEBEC_ABATEMENT_RATE,
)


@dataclass(slots=True)
class BracketDetail:
    min: float
    max: float | None
    rate: float
    income_in_bracket: float
    tax_in_bracket: float


@dataclass(slots=True)
class ComputedCPP:
    pensionable_earnings: float = 0.0
    cpp_employee: float = 0.0
    cpp2_employee: float = 0.0
    cpp_se: float = 0.0
    cpp2_se: float = 0.0
    cpp_se_employer_half_ded: float = 0.0
    total_cpp_for_credit: float = 0.0
    total_cpp_paid: float = 0.0


@dataclass(slots=True)
class ComputedEI:
    ei_employment: float = 0.0
    ei_se: float = 0.0
    total_ei: float = 0.0


@dataclass(slots=True)
class RetirementIncome:
    cpp_benefit_income: float = 0.0
    oas_income: float = 0.0


@dataclass(slots=True)
class TaxDetail:
    federal_credits: dict[str, float] = field(default_factory=dict)
    provincial_credits: dict[str, float] = field(default_factory=dict)
    federal_bracket_detail: list[BracketDetail] = field(default_factory=list)
    provincial_bracket_detail: list[BracketDetail] = field(default_factory=list)


@dataclass(slots=True)
class ComputedTax:
    grossed_up_eligible_div: float
    grossed_up_non_eligible_div: float
    taxable_capital_gains: float
    total_income_before_deductions: float
    total_deductions: float
    net_taxable_income: float
    federal_tax_before_credits: float
    federal_credits: float
    federal_tax_payable: float
    quebec_abatement: float
    provincial_tax_before_credits: float
    provincial_credits: float
    provincial_tax_payable: float
    ontario_surtax: float
    ontario_health_premium: float
    oas_clawback: float
    amt_tax: float
    amt_additional: float
    federal_foreign_tax_credit: float
    provincial_foreign_tax_credit: float
    cwb_credit: float
    total_income_tax: float
    gross_income: float
    marginal_federal_rate: float
    marginal_provincial_rate: float
    marginal_combined_rate: float
    avg_income_tax_rate: float
    avg_all_in_rate: float
    detail: TaxDetail = field(default_factory=TaxDetail)


def apply_brackets(income: float, brackets: list[TaxBracket]) -> float:
    tax = 0.0
    for bracket in brackets:
        if income <= bracket.min:
            continue
        upper = income if bracket.max is None else min(income, bracket.max)
        tax += (upper - bracket.min) * bracket.rate
        if bracket.max is not None and income <= bracket.max:
            break
    return max(0.0, tax)


def marginal_rate(income: float, brackets: list[TaxBracket]) -> float:
    if income <= 0:
        return 0.0
    for bracket in reversed(brackets):
        if income > bracket.min:
            return bracket.rate
    return 0.0


def compute_bracket_detail(income: float, brackets: list[TaxBracket]) -> list[BracketDetail]:
    detail: list[BracketDetail] = []
    for bracket in brackets:
        in_bracket = 0.0
        if income > bracket.min:
            upper = income if bracket.max is None else min(income, bracket.max)
            in_bracket = max(0.0, upper - bracket.min)
        detail.append(
            BracketDetail(
                min=bracket.min,
                max=bracket.max,
                rate=bracket.rate,
                income_in_bracket=in_bracket,
                tax_in_bracket=in_bracket * bracket.rate,
            )
        )
    return detail


def compute_cpp(employment_income: float, self_employment_income: float, cpp: CPPParams) -> ComputedCPP:
    """Two-tier CPP with one pensionable ceiling shared by both income types.

    Employment earnings consume the ceiling first; self-employment only gets
    what remains and pays both halves.
    """
    employment = max(0.0, employment_income)
    self_employed = max(0.0, self_employment_income)
    combined = employment + self_employed

    emp_pensionable = max(0.0, min(employment, cpp.ympe) - cpp.basic_exemption)
    combined_pensionable = max(0.0, min(combined, cpp.ympe) - cpp.basic_exemption)
    se_pensionable = max(0.0, combined_pensionable - emp_pensionable)

    emp_above_ympe = max(0.0, min(employment, cpp.yampe) - cpp.ympe)
    combined_above_ympe = max(0.0, min(combined, cpp.yampe) - cpp.ympe)
    se_above_ympe = max(0.0, combined_above_ympe - emp_above_ympe)

    cpp_employee = emp_pensionable * cpp.employee_rate
    cpp2_employee = emp_above_ympe * cpp.cpp2_rate
    cpp_se = se_pensionable * cpp.employee_rate * 2
    cpp2_se = se_above_ympe * cpp.cpp2_rate * 2

    return ComputedCPP(
        pensionable_earnings=combined_pensionable,
        cpp_employee=cpp_employee,
        cpp2_employee=cpp2_employee,
        cpp_se=cpp_se,
        cpp2_se=cpp2_se,
        cpp_se_employer_half_ded=(cpp_se + cpp2_se) * cpp.se_deduction_factor,
        total_cpp_for_credit=cpp_employee + cpp2_employee + (cpp_se + cpp2_se) * (1.0 - cpp.se_deduction_factor),
        total_cpp_paid=cpp_employee + cpp2_employee + cpp_se + cpp2_se,
    )


def compute_ei(employment_income: float, self_employment_income: float, ei: EIParams) -> ComputedEI:
    ei_employment = min(employment_income, ei.max_insurable_earnings) * ei.employee_rate if employment_income > 0 else 0.0
    ei_se = 0.0
    if self_employment_income > 0 and ei.se_opt_in:
        ei_se = min(self_employment_income, ei.max_insurable_earnings) * ei.employee_rate
    return ComputedEI(ei_employment=ei_employment, ei_se=ei_se, total_ei=ei_employment + ei_se)


def taxable_capital_gains(net_gains: float, ass: Assumptions) -> float:
    gains = max(0.0, net_gains)
    if not ass.cg_inclusion_tiered:
        return gains * ass.capital_gains_inclusion_rate
    first = min(gains, ass.cg_inclusion_threshold)
    return first * ass.cg_inclusion_tier1_rate + (gains - first) * ass.cg_inclusion_tier2_rate


def compute_ontario_health_premium(taxable_income: float) -> float:
    premium = 0.0
    for lower, upper, base, rate in ONTARIO_HEALTH_PREMIUM:
        if taxable_income <= lower:
            break
        premium = base + rate * (min(taxable_income, upper) - lower)
    return float(round_half_up(premium))


def compute_ontario_surtax(basic_provincial_tax: float, threshold1: float, threshold2: float) -> float:
    low_rate, high_rate = ONTARIO_SURTAX_RATES
    return low_rate * max(0.0, basic_provincial_tax - threshold1) + high_rate * max(0.0, basic_provincial_tax - threshold2)


def compute_amt(
    net_taxable_income: float,
    excluded_capital_gains: float,
    charitable_donations: float,
    federal_bpa: float,
    lowest_federal_rate: float,
) -> float:
    """Minimum tax before comparison with regular federal tax."""
    adjusted = net_taxable_income + excluded_capital_gains + AMT_DONATION_ADDBACK * max(0.0, charitable_donations)
    base = max(0.0, adjusted - AMT_EXEMPTION)
    return max(0.0, base * AMT_RATE - federal_bpa * lowest_federal_rate)


def compute_cwb(earned_income: float, net_income: float) -> float:
    if net_income >= CWB_INCOME_CEILING:
        return 0.0
    phase_in = min(CWB_MAX_BENEFIT, CWB_PHASE_IN_RATE * max(0.0, earned_income - CWB_EARNED_INCOME_FLOOR))
    phase_out = CWB_PHASE_OUT_RATE * max(0.0, net_income - CWB_PHASE_OUT_THRESHOLD)
    return max(0.0, phase_in - phase_out)


def gross_income(yd: YearData, retirement_income: RetirementIncome) -> float:
    """Cash income before gross-up and deductions."""
    return (
        yd.employment_income
        + (yd.self_employment_income - yd.self_employment_expenses)
        + yd.rrsp_withdrawal
        + yd.lira_withdrawal
        + retirement_income.cpp_benefit_income
        + retirement_income.oas_income
        + yd.gis_income
        + yd.eligible_dividends
        + yd.non_eligible_dividends
        + yd.interest_income
        + yd.capital_gains_realized
        + yd.other_taxable_income
        + yd.pension_income
        + yd.foreign_income
        + (yd.rental_gross_income - yd.rental_expenses)
    )


def compute_tax(
    yd: YearData,
    ass: Assumptions,
    cpp: ComputedCPP,
    ei: ComputedEI,
    retirement_income: RetirementIncome | None = None,
    *,
    age: int | None = None,
) -> ComputedTax:
    retirement_income = retirement_income or RetirementIncome()

    grossed_up_eligible = yd.eligible_dividends * (1 + ass.dividend_rates.eligible.gross_up)
    grossed_up_non_eligible = yd.non_eligible_dividends * (1 + ass.dividend_rates.non_eligible.gross_up)

    net_gains = max(0.0, yd.capital_gains_realized - yd.capital_loss_applied - yd.lcge_claim)
    taxable_gains = taxable_capital_gains(net_gains, ass)

    income = gross_income(yd, retirement_income)
    total_income = (
        income
        - yd.eligible_dividends
        - yd.non_eligible_dividends
        - yd.capital_gains_realized
        + grossed_up_eligible
        + grossed_up_non_eligible
        + taxable_gains
    )
    deductions = (
        yd.rrsp_deduction_claimed
        + yd.fhsa_deduction_claimed
        + cpp.cpp_se_employer_half_ded
        + yd.union_dues
        + yd.child_care_expenses
        + yd.moving_expenses
        + yd.other_deductions
    )
    net_taxable_income = max(0.0, total_income - deductions)

    federal_before = apply_brackets(net_taxable_income, ass.federal_brackets)
    provincial_before = apply_brackets(net_taxable_income, ass.provincial_brackets)

    pension_eligible = yd.pension_income
    if age is not None and age >= 65:
        pension_eligible += yd.rrsp_withdrawal + yd.lira_withdrawal
    context_args = dict(
        total_cpp_for_credit=cpp.total_cpp_for_credit,
        total_ei=ei.total_ei,
        net_income=net_taxable_income,
        grossed_up_eligible=grossed_up_eligible,
        grossed_up_non_eligible=grossed_up_non_eligible,
        pension_eligible_income=pension_eligible,
        age=age,
    )
    federal_credit_detail = apply_credit_rules(FEDERAL_CREDIT_RULES, federal_context(yd, ass, **context_args))
    provincial_credit_detail = apply_credit_rules(PROVINCIAL_CREDIT_RULES, provincial_context(yd, ass, **context_args))
    federal_credits = sum(federal_credit_detail.values())
    provincial_credits = sum(provincial_credit_detail.values())

    federal_basic = max(0.0, federal_before - federal_credits)
    lowest_federal_rate = ass.federal_brackets[0].rate if ass.federal_brackets else 0.0
    amt_tax = compute_amt(
        net_taxable_income,
        net_gains - taxable_gains,
        yd.charitable_donations,
        ass.federal_bpa,
        lowest_federal_rate,
    )
    amt_additional = max(0.0, amt_tax - federal_basic)
    federal_basic += amt_additional

    quebec_abatement = federal_basic * QUEBEC_ABATEMENT_RATE if ass.province == "QC" else 0.0
    federal_basic -= quebec_abatement

    provincial_basic = max(0.0, provincial_before - provincial_credits)
    ontario_surtax = 0.0
    ontario_health_premium = 0.0
    if ass.province == "ON":
        ontario_surtax = compute_ontario_surtax(provincial_basic, ass.ontario_surtax_threshold1, ass.ontario_surtax_threshold2)
        ontario_health_premium = compute_ontario_health_premium(net_taxable_income)
    provincial_tax = provincial_basic + ontario_surtax

    foreign_share = min(1.0, max(0.0, yd.foreign_income) / net_taxable_income) if net_taxable_income > 0 else 0.0
    foreign_tax_paid = max(0.0, yd.foreign_tax_paid)
    federal_ftc = min(foreign_tax_paid, federal_basic * foreign_share)
    provincial_ftc = min(foreign_tax_paid - federal_ftc, provincial_tax * foreign_share)
    federal_basic -= federal_ftc
    provincial_tax -= provincial_ftc

    oas_clawback = 0.0
    if retirement_income.oas_income > 0 and net_taxable_income > ass.oas_clawback_threshold:
        oas_clawback = min(retirement_income.oas_income, OAS_CLAWBACK_RATE * (net_taxable_income - ass.oas_clawback_threshold))

    federal_tax_payable = federal_basic + oas_clawback
    provincial_tax_payable = provincial_tax + ontario_health_premium

    earned_income = yd.employment_income + max(0.0, yd.self_employment_income - yd.self_employment_expenses)
    cwb_credit = compute_cwb(earned_income, net_taxable_income)
    total_income_tax = max(0.0, federal_tax_payable + provincial_tax_payable - cwb_credit)

    marginal_federal = marginal_rate(net_taxable_income, ass.federal_brackets)
    marginal_provincial = marginal_rate(net_taxable_income, ass.provincial_brackets)
    avg_income_tax_rate = total_income_tax / income if income > 0 else 0.0
    avg_all_in_rate = (total_income_tax + cpp.total_cpp_paid + ei.total_ei) / income if income > 0 else 0.0

    return ComputedTax(
        grossed_up_eligible_div=grossed_up_eligible,
        grossed_up_non_eligible_div=grossed_up_non_eligible,
        taxable_capital_gains=taxable_gains,
        total_income_before_deductions=total_income,
        total_deductions=deductions,
        net_taxable_income=net_taxable_income,
        federal_tax_before_credits=federal_before,
        federal_credits=federal_credits,
        federal_tax_payable=federal_tax_payable,
        quebec_abatement=quebec_abatement,
        provincial_tax_before_credits=provincial_before,
        provincial_credits=provincial_credits,
        provincial_tax_payable=provincial_tax_payable,
        ontario_surtax=ontario_surtax,
        ontario_health_premium=ontario_health_premium,
        oas_clawback=oas_clawback,
        amt_tax=amt_tax,
        amt_additional=amt_additional,
        federal_foreign_tax_credit=federal_ftc,
        provincial_foreign_tax_credit=provincial_ftc,
        cwb_credit=cwb_credit,
        total_income_tax=total_income_tax,
        gross_income=income,
        marginal_federal_rate=marginal_federal,
        marginal_provincial_rate=marginal_provincial,
        marginal_combined_rate=marginal_federal + marginal_provincial,
        avg_income_tax_rate=avg_income_tax_rate,
        avg_all_in_rate=avg_all_in_rate,
        detail=TaxDetail(
            federal_credits=federal_credit_detail,
            provincial_credits=provincial_credit_detail,
            federal_bracket_detail=compute_bracket_detail(net_taxable_income, ass.federal_brackets),
            provincial_bracket_detail=compute_bracket_detail(net_taxable_income, ass.provincial_brackets),
        ),
    )
