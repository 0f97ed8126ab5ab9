"""Non-refundable tax credits expressed as an ordered list of rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .schema import Assumptions, TaxBracket, YearData
from .tax_data import (
    AGE_AMOUNT_MIN_AGE,
    AGE_CLAWBACK_RATE,
    BASE_TAX_YEAR,
    DONATION_LOW_TIER,
    DONATION_NET_INCOME_LIMIT,
    FEDERAL_AGE_AMOUNT,
    FEDERAL_AGE_CLAWBACK_THRESHOLD,
    FEDERAL_DISABILITY_AMOUNT,
    FEDERAL_DONATION_HIGH_RATE,
    FEDERAL_DONATION_TOP_RATE,
    FEDERAL_MEDICAL_CAP,
    FEDERAL_PENSION_AMOUNT,
    HOME_BUYERS_AMOUNT,
    MEDICAL_INCOME_PCT,
    PROVINCIAL_CREDIT_AMOUNTS,
)


@dataclass(slots=True)
class CreditContext:
    """Everything a credit rule may look at for one jurisdiction."""

    yd: YearData
    brackets: list[TaxBracket]
    basic_personal_amount: float
    employment_amount: float
    age_amount: float
    age_clawback_threshold: float
    pension_amount: float
    disability_amount: float
    medical_cap: float
    eligible_dividend_rate: float
    non_eligible_dividend_rate: float
    total_cpp_for_credit: float
    total_ei: float
    net_income: float
    grossed_up_eligible: float
    grossed_up_non_eligible: float
    pension_eligible_income: float
    age: int | None
    federal: bool

    @property
    def lowest_rate(self) -> float:
        return self.brackets[0].rate if self.brackets else 0.0

    @property
    def top_rate(self) -> float:
        return self.brackets[-1].rate if self.brackets else 0.0

    @property
    def top_threshold(self) -> float:
        return self.brackets[-1].min if self.brackets else 0.0


@dataclass(frozen=True, slots=True)
class CreditRule:
    name: str
    amount: Callable[[CreditContext], float]
    applies: Callable[[CreditContext], bool] = lambda ctx: True


def federal_context(
    yd: YearData,
    ass: Assumptions,
    *,
    total_cpp_for_credit: float,
    total_ei: float,
    net_income: float,
    grossed_up_eligible: float,
    grossed_up_non_eligible: float,
    pension_eligible_income: float,
    age: int | None,
) -> CreditContext:
    return CreditContext(
        yd=yd,
        brackets=ass.federal_brackets,
        basic_personal_amount=ass.federal_bpa,
        employment_amount=ass.federal_employment_amount,
        age_amount=FEDERAL_AGE_AMOUNT[BASE_TAX_YEAR],
        age_clawback_threshold=FEDERAL_AGE_CLAWBACK_THRESHOLD[BASE_TAX_YEAR],
        pension_amount=FEDERAL_PENSION_AMOUNT,
        disability_amount=FEDERAL_DISABILITY_AMOUNT[BASE_TAX_YEAR],
        medical_cap=FEDERAL_MEDICAL_CAP[BASE_TAX_YEAR],
        eligible_dividend_rate=ass.dividend_rates.eligible.federal_credit,
        non_eligible_dividend_rate=ass.dividend_rates.non_eligible.federal_credit,
        total_cpp_for_credit=total_cpp_for_credit,
        total_ei=total_ei,
        net_income=net_income,
        grossed_up_eligible=grossed_up_eligible,
        grossed_up_non_eligible=grossed_up_non_eligible,
        pension_eligible_income=pension_eligible_income,
        age=age,
        federal=True,
    )


def provincial_context(
    yd: YearData,
    ass: Assumptions,
    *,
    total_cpp_for_credit: float,
    total_ei: float,
    net_income: float,
    grossed_up_eligible: float,
    grossed_up_non_eligible: float,
    pension_eligible_income: float,
    age: int | None,
) -> CreditContext:
    amounts = PROVINCIAL_CREDIT_AMOUNTS[BASE_TAX_YEAR][ass.province]
    return CreditContext(
        yd=yd,
        brackets=ass.provincial_brackets,
        basic_personal_amount=ass.provincial_bpa,
        employment_amount=amounts["employment"],
        age_amount=amounts["age"],
        age_clawback_threshold=amounts["age_clawback"],
        pension_amount=amounts["pension"],
        disability_amount=amounts["disability"],
        medical_cap=amounts["medical_cap"],
        eligible_dividend_rate=ass.dividend_rates.eligible.provincial_credit,
        non_eligible_dividend_rate=ass.dividend_rates.non_eligible.provincial_credit,
        total_cpp_for_credit=total_cpp_for_credit,
        total_ei=total_ei,
        net_income=net_income,
        grossed_up_eligible=grossed_up_eligible,
        grossed_up_non_eligible=grossed_up_non_eligible,
        pension_eligible_income=pension_eligible_income,
        age=age,
        federal=False,
    )


def _age_credit(ctx: CreditContext) -> float:
    clawback = AGE_CLAWBACK_RATE * max(0.0, ctx.net_income - ctx.age_clawback_threshold)
    return max(0.0, ctx.age_amount - clawback) * ctx.lowest_rate


def donation_credit(ctx: CreditContext) -> float:
    """First $200 at the lowest rate, the rest at the high rate.

    Federally, the part of the excess matched by income above the top bracket
    threshold earns the top rate. Eligible gifts are capped at 75% of net income.
    """
    eligible = min(max(0.0, ctx.yd.charitable_donations), DONATION_NET_INCOME_LIMIT * ctx.net_income)
    if eligible <= 0:
        return 0.0
    low_part = min(eligible, DONATION_LOW_TIER)
    excess = eligible - low_part
    credit = low_part * ctx.lowest_rate
    if not ctx.federal:
        return credit + excess * ctx.top_rate
    top_part = min(excess, max(0.0, ctx.net_income - ctx.top_threshold))
    return credit + top_part * FEDERAL_DONATION_TOP_RATE + (excess - top_part) * FEDERAL_DONATION_HIGH_RATE


def _medical_credit(ctx: CreditContext) -> float:
    floor = min(MEDICAL_INCOME_PCT * ctx.net_income, ctx.medical_cap)
    return max(0.0, ctx.yd.medical_expenses - floor) * ctx.lowest_rate


_COMMON_HEAD: list[CreditRule] = [
    CreditRule("basic_personal", lambda ctx: ctx.basic_personal_amount * ctx.lowest_rate),
    CreditRule("cpp", lambda ctx: ctx.total_cpp_for_credit * ctx.lowest_rate),
    CreditRule("ei", lambda ctx: ctx.total_ei * ctx.lowest_rate),
    CreditRule(
        "employment",
        lambda ctx: min(ctx.employment_amount, ctx.yd.employment_income) * ctx.lowest_rate,
        lambda ctx: ctx.yd.employment_income > 0,
    ),
    CreditRule("pension", lambda ctx: min(ctx.pension_amount, ctx.pension_eligible_income) * ctx.lowest_rate),
    CreditRule("age", _age_credit, lambda ctx: ctx.age is not None and ctx.age >= AGE_AMOUNT_MIN_AGE),
    CreditRule("donation", donation_credit),
    CreditRule("disability", lambda ctx: ctx.disability_amount * ctx.lowest_rate, lambda ctx: ctx.yd.disability_claim > 0),
    CreditRule("medical", _medical_credit),
    CreditRule("student_loan", lambda ctx: ctx.yd.student_loan_interest * ctx.lowest_rate),
]

_COMMON_TAIL: list[CreditRule] = [
    CreditRule("eligible_dividend", lambda ctx: ctx.grossed_up_eligible * ctx.eligible_dividend_rate),
    CreditRule("non_eligible_dividend", lambda ctx: ctx.grossed_up_non_eligible * ctx.non_eligible_dividend_rate),
    CreditRule("other", lambda ctx: ctx.yd.other_credit_base * ctx.lowest_rate),
]

FEDERAL_CREDIT_RULES: list[CreditRule] = [
    *_COMMON_HEAD,
    CreditRule("home_buyers", lambda ctx: min(ctx.yd.home_buyers_amount, HOME_BUYERS_AMOUNT) * ctx.lowest_rate),
    *_COMMON_TAIL,
]

PROVINCIAL_CREDIT_RULES: list[CreditRule] = [*_COMMON_HEAD, *_COMMON_TAIL]


def apply_credit_rules(rules: list[CreditRule], ctx: CreditContext) -> dict[str, float]:
    """Evaluate rules in order; ineligible rules contribute 0."""
    credits: dict[str, float] = {}
    for rule in rules:
        credits[rule.name] = max(0.0, rule.amount(ctx)) if rule.applies(ctx) else 0.0
    return credits
