"""Year-by-year projection engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging

from .accounts import (
    ACCOUNT_NAMES,
    ComputedAccounts,
    ComputedWaterfall,
    ReturnOverrides,
    compute_accounts,
    compute_waterfall,
)
from .analytics import ComputedAnalytics, compute_analytics
from .assumptions import resolve_assumptions
from .benefits import compute_retirement_income
from .cost_basis import (
    ComputedACB,
    ComputedInsuranceACB,
    ComputedPnL,
    compute_acb,
    compute_insurance_acb,
    compute_pnl,
    roll_book_value,
)
from .liabilities import LiabilityYear, amortize_liability
from .rrif import compute_rrif_minimum
from .scheduling import ScheduleContext, apply_schedules, has_conditional_schedules
from .schema import (
    ACBConfig,
    Assumptions,
    FHSASettings,
    Liability,
    OpeningBalances,
    ReturnSequence,
    Scenario,
    YearData,
)
from .tax import ComputedCPP, ComputedEI, ComputedTax, compute_cpp, compute_ei, compute_tax
from .tax_data import (
    FHSA_MAX_AGE,
    FHSA_MAX_YEARS_OPEN,
    HBP_GRACE_YEARS,
    HBP_REPAYMENT_YEARS,
    RESP_GRANT_ANNUAL_ENTITLEMENT,
    RESP_GRANT_ANNUAL_MAX,
    RESP_GRANT_LIFETIME_MAX,
    RESP_GRANT_RATE,
    TFSA_MIN_AGE,
)
from .tfsa_room import compute_accumulated_tfsa_room
from .validate import ERROR, ValidationWarning, validate_year
from .what_if import adjust_year_inputs

logger = logging.getLogger(__name__)

FHSA_INPUT_FIELDS = frozenset({"fhsa_contribution", "fhsa_deduction_claimed", "fhsa_withdrawal"})
# Floor for yearly inflation so the cumulative real-value factor stays positive.
MIN_INFLATION_RATE = -0.99


@dataclass(frozen=True, slots=True)
class CarryForwardState:
    """Everything one year hands to the next. Rebuilt, never mutated."""

    balances: OpeningBalances
    rrsp_unused_room: float = 0.0
    tfsa_unused_room: float = 0.0
    capital_loss_cf: float = 0.0
    fhsa_contrib_lifetime: float = 0.0
    fhsa_unused_room: float = 0.0
    prior_year_earned_income: float = 0.0
    prior_year_tfsa_withdrawals: float = 0.0
    fhsa_disposed: bool = False
    fhsa_opening_year: int | None = None
    acb: float = 0.0
    li_acb: float = 0.0
    book_values: dict[str, float] = field(default_factory=dict)
    hbp_balance: float = 0.0
    hbp_withdrawal_year: int | None = None
    hbp_annual_repayment: float = 0.0
    liability_balances: dict[str, float] = field(default_factory=dict)
    resp_grant_lifetime: float = 0.0
    resp_grant_carry: float = 0.0

    @classmethod
    def initial(cls, scenario: Scenario) -> "CarryForwardState":
        ass = scenario.assumptions
        ocf = scenario.opening_carry_forwards
        balances = replace(scenario.opening_balances)

        tfsa_room = ocf.tfsa_unused_room
        if ass.birth_year is not None and tfsa_room == 0 and balances.tfsa == 0:
            tfsa_room = compute_accumulated_tfsa_room(ass.birth_year, ass.start_year, ass.tfsa_annual_limit)

        acb_config = scenario.acb_config or ACBConfig()
        fhsa_opening_year = ass.fhsa.opening_year
        if fhsa_opening_year is None and (balances.fhsa > 0 or ocf.fhsa_contrib_lifetime > 0):
            fhsa_opening_year = ass.start_year

        return cls(
            balances=balances,
            rrsp_unused_room=ocf.rrsp_unused_room,
            tfsa_unused_room=tfsa_room,
            capital_loss_cf=ocf.capital_loss_cf,
            fhsa_contrib_lifetime=ocf.fhsa_contrib_lifetime,
            fhsa_unused_room=ocf.fhsa_unused_room,
            prior_year_earned_income=ocf.prior_year_earned_income,
            fhsa_opening_year=fhsa_opening_year,
            acb=balances.non_reg if acb_config.opening_acb is None else acb_config.opening_acb,
            li_acb=balances.li if acb_config.li_opening_acb is None else acb_config.li_opening_acb,
            book_values={name: getattr(balances, name) for name in ACCOUNT_NAMES},
            liability_balances={item.id: item.opening_balance for item in scenario.liabilities},
            resp_grant_lifetime=ocf.resp_grant_lifetime,
            resp_grant_carry=ocf.resp_grant_carry,
        )


@dataclass(slots=True)
class ComputedRetirement:
    age: int | None
    cpp_income: float
    oas_income: float
    gis_income: float
    is_rrif: bool
    rrif_min_withdrawal: float
    is_lif: bool = False
    lif_min_withdrawal: float = 0.0


@dataclass(slots=True)
class HBPDetail:
    opening_balance: float
    withdrawal: float
    required_repayment: float
    repaid: float
    shortfall: float
    closing_balance: float


@dataclass(slots=True)
class RESPDetail:
    contribution: float
    grant: float
    grant_lifetime: float
    grant_carry: float


@dataclass(slots=True)
class ComputedYear:
    year: int
    inputs: YearData
    cpp: ComputedCPP
    ei: ComputedEI
    tax: ComputedTax
    accounts: ComputedAccounts
    waterfall: ComputedWaterfall
    retirement: ComputedRetirement
    inflation_factor: float
    real_gross_income: float
    real_after_tax_income: float
    real_net_worth: float
    real_net_cash_flow: float
    rrsp_unused_room: float
    rrsp_new_room: float
    tfsa_unused_room: float
    tfsa_room_generated: float
    capital_loss_cf: float
    fhsa_contrib_lifetime: float
    fhsa_unused_room: float
    resolved_assumptions: Assumptions
    pnl: ComputedPnL
    warnings: list[ValidationWarning] = field(default_factory=list)
    acb: ComputedACB | None = None
    insurance_acb: ComputedInsuranceACB | None = None
    liabilities: list[LiabilityYear] = field(default_factory=list)
    hbp: HBPDetail | None = None
    resp: RESPDetail | None = None
    fhsa_disposition: str | None = None


@dataclass(slots=True)
class ComputedScenario:
    scenario_id: str
    years: list[ComputedYear]
    analytics: ComputedAnalytics


def compute_one_year(
    yd: YearData,
    ass: Assumptions,
    state: CarryForwardState,
    *,
    inflation_factor: float = 1.0,
    return_overrides: ReturnOverrides | None = None,
    acb_config: ACBConfig | None = None,
    liabilities: list[Liability] | tuple[Liability, ...] = (),
) -> tuple[ComputedYear, CarryForwardState]:
    """Compute one year from resolved assumptions and the opening state.

    Returns the computed year and the state to open the following year.
    """
    age = yd.year - ass.birth_year if ass.birth_year is not None else None
    settings = ass.retirement
    is_rrif = age is not None and age >= settings.rrif_conversion_age
    is_lif = age is not None and age >= settings.lif_conversion_age
    rrif_min = compute_rrif_minimum(state.balances.rrsp, age) if is_rrif else 0.0
    lif_min = compute_rrif_minimum(state.balances.lira, age) if is_lif else 0.0
    retirement_income = compute_retirement_income(settings, age, ass.birth_year, yd.year, ass.inflation_rate)

    # Home Buyers' Plan: repayments start after the grace period and come out of RRSP contributions.
    hbp_opening = state.hbp_balance
    hbp_year = state.hbp_withdrawal_year
    hbp_annual = state.hbp_annual_repayment
    hbp_required = 0.0
    if hbp_opening > 0 and hbp_year is not None and yd.year >= hbp_year + HBP_GRACE_YEARS:
        hbp_required = min(hbp_opening, hbp_annual)
    hbp_repaid = min(max(0.0, yd.rrsp_contribution), hbp_required)
    hbp_shortfall = hbp_required - hbp_repaid
    hbp_closing = max(0.0, hbp_opening - hbp_required)
    if yd.hbp_withdrawal > 0:
        hbp_closing += yd.hbp_withdrawal
        if hbp_year is None:
            hbp_year = yd.year
        hbp_annual = hbp_closing / HBP_REPAYMENT_YEARS

    liability_years = [
        amortize_liability(item, state.liability_balances.get(item.id, item.opening_balance)) for item in liabilities
    ]
    deductible_interest = sum(item.deductible_interest for item in liability_years)
    liability_payments = sum(item.payment for item in liability_years)
    liability_total = sum(item.closing_balance for item in liability_years)

    resp_grant = 0.0
    if yd.resp_contribution > 0:
        entitlement = min(state.resp_grant_carry + RESP_GRANT_ANNUAL_ENTITLEMENT, RESP_GRANT_ANNUAL_MAX)
        lifetime_left = max(0.0, RESP_GRANT_LIFETIME_MAX - state.resp_grant_lifetime)
        resp_grant = max(0.0, min(yd.resp_contribution * RESP_GRANT_RATE, entitlement, lifetime_left))
    resp_grant_carry = max(0.0, state.resp_grant_carry + RESP_GRANT_ANNUAL_ENTITLEMENT - resp_grant)

    deduction = yd.rrsp_deduction_claimed
    if hbp_required > 0:
        deduction = min(deduction, max(0.0, yd.rrsp_contribution - hbp_repaid))
    eff = replace(
        yd,
        rrsp_withdrawal=max(yd.rrsp_withdrawal, rrif_min) if is_rrif else yd.rrsp_withdrawal,
        lira_withdrawal=max(yd.lira_withdrawal, lif_min) if is_lif else yd.lira_withdrawal,
        rrsp_deduction_claimed=deduction,
        other_taxable_income=yd.other_taxable_income + hbp_shortfall - deductible_interest,
    )

    tfsa_eligible = age is None or age >= TFSA_MIN_AGE
    tfsa_generated = (ass.tfsa_annual_limit if tfsa_eligible else 0.0) + state.prior_year_tfsa_withdrawals
    new_rrsp_room = 0.0 if is_rrif else min(state.prior_year_earned_income * ass.rrsp_pct_earned_income, ass.rrsp_limit)

    warnings = validate_year(
        eff,
        ass,
        state.rrsp_unused_room,
        state.fhsa_contrib_lifetime,
        state.capital_loss_cf,
        state.tfsa_unused_room + tfsa_generated,
        state.balances,
        is_rrif,
        state.fhsa_disposed,
        state.fhsa_unused_room,
        state.fhsa_opening_year,
        age,
        is_lif=is_lif or age is None,
        new_rrsp_room=new_rrsp_room,
    )

    net_self_employment = max(0.0, eff.self_employment_income - eff.self_employment_expenses)
    cpp = compute_cpp(eff.employment_income, net_self_employment, ass.cpp)
    ei = compute_ei(eff.employment_income, net_self_employment, ass.ei)

    accounts = compute_accounts(eff, ass.asset_returns, state.balances, return_overrides, resp_grant=resp_grant)
    accounts.total_liabilities = liability_total
    accounts.net_worth = accounts.total_assets - liability_total

    tax_inputs = eff
    acb = None
    insurance_acb = None
    next_acb, next_li_acb = state.acb, state.li_acb
    if acb_config is not None:
        acb = compute_acb(eff.non_reg_contribution, eff.non_reg_withdrawal, state.acb, state.balances.non_reg, accounts.non_reg_eoy)
        insurance_acb = compute_insurance_acb(
            eff.li_premium, eff.li_coi, eff.li_withdrawal, state.li_acb, state.balances.li, accounts.li_eoy
        )
        next_acb, next_li_acb = acb.closing_acb, insurance_acb.closing_acb
        if acb_config.auto_compute_gains:
            gain = acb.computed_capital_gain
            tax_inputs = replace(
                eff,
                capital_gains_realized=max(0.0, gain),
                capital_losses_realized=max(0.0, -gain),
                other_taxable_income=eff.other_taxable_income + max(0.0, insurance_acb.computed_surrender_gain),
            )

    loss_pool = state.capital_loss_cf + tax_inputs.capital_losses_realized
    loss_applied = min(max(0.0, tax_inputs.capital_loss_applied), loss_pool)
    tax_inputs = replace(tax_inputs, capital_loss_applied=loss_applied)
    capital_loss_cf = max(0.0, loss_pool - loss_applied)

    tax = compute_tax(tax_inputs, ass, cpp, ei, retirement_income, age=age)
    waterfall = compute_waterfall(tax_inputs, cpp, ei, tax, retirement_income, liability_payments=liability_payments)

    inflows = {
        "rrsp": eff.rrsp_contribution,
        "tfsa": eff.tfsa_contribution,
        "fhsa": eff.fhsa_contribution,
        "non_reg": eff.non_reg_contribution,
        "savings": eff.savings_deposit,
        "lira": 0.0,
        "resp": eff.resp_contribution + resp_grant,
        "li": eff.li_premium - eff.li_coi,
    }
    outflows = {
        "rrsp": eff.rrsp_withdrawal + eff.hbp_withdrawal,
        "tfsa": eff.tfsa_withdrawal,
        "fhsa": eff.fhsa_withdrawal,
        "non_reg": eff.non_reg_withdrawal,
        "savings": eff.savings_withdrawal,
        "lira": eff.lira_withdrawal,
        "resp": eff.resp_withdrawal,
        "li": eff.li_withdrawal,
    }
    market_values = {name: getattr(accounts, f"{name}_eoy") for name in ACCOUNT_NAMES}
    book_values = {
        name: roll_book_value(
            state.book_values.get(name, getattr(state.balances, name)), inflows[name], outflows[name], market_values[name]
        )
        for name in ACCOUNT_NAMES
    }

    fhsa_lifetime = state.fhsa_contrib_lifetime + eff.fhsa_contribution
    fhsa_room = 0.0
    if not state.fhsa_disposed:
        fhsa_room = max(0.0, min(state.fhsa_unused_room + ass.fhsa_annual_limit - eff.fhsa_contribution, ass.fhsa_annual_limit))
    tfsa_room = max(0.0, state.tfsa_unused_room + tfsa_generated - eff.tfsa_contribution)

    hbp_detail = None
    if hbp_opening > 0 or yd.hbp_withdrawal > 0:
        hbp_detail = HBPDetail(hbp_opening, yd.hbp_withdrawal, hbp_required, hbp_repaid, hbp_shortfall, hbp_closing)
    resp_detail = None
    if eff.resp_contribution > 0 or state.balances.resp > 0:
        resp_detail = RESPDetail(eff.resp_contribution, resp_grant, state.resp_grant_lifetime + resp_grant, resp_grant_carry)

    computed = ComputedYear(
        year=yd.year,
        inputs=eff,
        cpp=cpp,
        ei=ei,
        tax=tax,
        accounts=accounts,
        waterfall=waterfall,
        retirement=ComputedRetirement(
            age=age,
            cpp_income=retirement_income.cpp_benefit_income,
            oas_income=retirement_income.oas_income,
            gis_income=eff.gis_income,
            is_rrif=is_rrif,
            rrif_min_withdrawal=rrif_min,
            is_lif=is_lif,
            lif_min_withdrawal=lif_min,
        ),
        inflation_factor=inflation_factor,
        real_gross_income=waterfall.gross_income / inflation_factor,
        real_after_tax_income=waterfall.after_tax_income / inflation_factor,
        real_net_worth=accounts.net_worth / inflation_factor,
        real_net_cash_flow=waterfall.net_cash_flow / inflation_factor,
        rrsp_unused_room=state.rrsp_unused_room,
        rrsp_new_room=new_rrsp_room,
        tfsa_unused_room=tfsa_room,
        tfsa_room_generated=tfsa_generated,
        capital_loss_cf=capital_loss_cf,
        fhsa_contrib_lifetime=fhsa_lifetime,
        fhsa_unused_room=fhsa_room,
        resolved_assumptions=ass,
        pnl=compute_pnl(book_values, market_values),
        warnings=warnings,
        acb=acb,
        insurance_acb=insurance_acb,
        liabilities=liability_years,
        hbp=hbp_detail,
        resp=resp_detail,
    )

    next_state = replace(
        state,
        balances=accounts.balances(),
        rrsp_unused_room=max(0.0, state.rrsp_unused_room + new_rrsp_room - eff.rrsp_deduction_claimed),
        tfsa_unused_room=tfsa_room,
        capital_loss_cf=capital_loss_cf,
        fhsa_contrib_lifetime=fhsa_lifetime,
        fhsa_unused_room=fhsa_room,
        prior_year_earned_income=eff.employment_income + net_self_employment,
        prior_year_tfsa_withdrawals=eff.tfsa_withdrawal,
        fhsa_opening_year=state.fhsa_opening_year
        if state.fhsa_opening_year is not None or eff.fhsa_contribution <= 0
        else yd.year,
        acb=next_acb,
        li_acb=next_li_acb,
        book_values=book_values,
        hbp_balance=hbp_closing,
        hbp_withdrawal_year=hbp_year if hbp_closing > 0 else None,
        hbp_annual_repayment=hbp_annual if hbp_closing > 0 else 0.0,
        liability_balances={item.id: item.closing_balance for item in liability_years},
        resp_grant_lifetime=state.resp_grant_lifetime + resp_grant,
        resp_grant_carry=resp_grant_carry,
    )
    return computed, next_state


def _return_overrides(yd: YearData, sequence: ReturnSequence | None, index: int) -> ReturnOverrides | None:
    def _at(series: list[float]) -> float | None:
        return series[index] if sequence is not None and index < len(series) else None

    overrides = ReturnOverrides()
    if sequence is not None:
        overrides = ReturnOverrides(
            equity=_at(sequence.equity),
            fixed_income=_at(sequence.fixed_income),
            cash=_at(sequence.cash),
            savings=_at(sequence.savings),
        )
    if yd.equity_return_override is not None:
        overrides.equity = yd.equity_return_override
    if yd.fixed_income_return_override is not None:
        overrides.fixed_income = yd.fixed_income_return_override
    if yd.cash_return_override is not None:
        overrides.cash = yd.cash_return_override
    if yd.savings_return_override is not None:
        overrides.savings = yd.savings_return_override
    if overrides == ReturnOverrides():
        return None
    return overrides


def _fhsa_disposition(year: int, age: int | None, state: CarryForwardState, settings: FHSASettings) -> str | None:
    if state.fhsa_disposed:
        return None
    if settings.disposition != "active" and settings.disposition_year == year:
        return settings.disposition
    if state.fhsa_opening_year is None:
        return None
    if year - state.fhsa_opening_year >= FHSA_MAX_YEARS_OPEN or (age is not None and age >= FHSA_MAX_AGE):
        logger.info("FHSA forced closure in %d; transferring balance to RRSP", year)
        return "transfer-rrsp"
    return None


def _apply_fhsa(yd: YearData, state: CarryForwardState, disposition: str | None) -> YearData:
    if state.fhsa_disposed:
        return replace(yd, fhsa_contribution=0.0, fhsa_deduction_claimed=0.0, fhsa_withdrawal=0.0)
    if disposition is None:
        return yd
    balance = state.balances.fhsa
    if disposition == "home-purchase":
        return replace(yd, fhsa_contribution=0.0, fhsa_deduction_claimed=0.0, fhsa_withdrawal=balance)
    if disposition == "taxable-close":
        return replace(
            yd,
            fhsa_contribution=0.0,
            fhsa_deduction_claimed=0.0,
            fhsa_withdrawal=balance,
            other_taxable_income=yd.other_taxable_income + balance,
        )
    # transfer-rrsp: the balance moves at year end without a cash withdrawal
    return replace(yd, fhsa_contribution=0.0, fhsa_deduction_claimed=0.0, fhsa_withdrawal=0.0)


def _transfer_fhsa_to_rrsp(state: CarryForwardState) -> CarryForwardState:
    balances = replace(state.balances, rrsp=state.balances.rrsp + state.balances.fhsa, fhsa=0.0)
    book_values = dict(state.book_values)
    book_values["rrsp"] = book_values.get("rrsp", 0.0) + book_values.get("fhsa", 0.0)
    book_values["fhsa"] = 0.0
    return replace(state, balances=balances, book_values=book_values)


def _adjusted(yd: YearData, scenario: Scenario) -> YearData:
    if scenario.what_if is None:
        return yd
    return adjust_year_inputs(yd, scenario.what_if)


def compute(scenario: Scenario) -> ComputedScenario:
    """Run the full projection, threading carry-forward state year to year."""
    base = scenario.assumptions
    schedules = scenario.scheduled_items
    sequence = scenario.return_sequence if scenario.return_sequence is not None and scenario.return_sequence.enabled else None
    state = CarryForwardState.initial(scenario)
    index_factor = 1.0
    real_factor = 1.0
    computed_years: list[ComputedYear] = []

    logger.debug("computing scenario %s over %d years", scenario.id, len(scenario.years))
    for idx, raw in enumerate(scenario.years):
        ass = resolve_assumptions(base, raw.year, index_factor, scenario.assumption_overrides)
        inflation = raw.inflation_rate_override if raw.inflation_rate_override is not None else ass.inflation_rate
        inflation = max(inflation, MIN_INFLATION_RATE)
        real_factor *= 1.0 + inflation

        age = raw.year - base.birth_year if base.birth_year is not None else None
        disposition = _fhsa_disposition(raw.year, age, state, base.fhsa)
        if disposition is not None:
            logger.info("FHSA disposition '%s' in %d with balance %.2f", disposition, raw.year, state.balances.fhsa)
        yd = _apply_fhsa(raw, state, disposition)
        skip = FHSA_INPUT_FIELDS if state.fhsa_disposed or disposition is not None else frozenset()

        ctx = ScheduleContext(
            balances=state.balances,
            assumptions=ass,
            fhsa_contrib_lifetime=state.fhsa_contrib_lifetime,
            fhsa_unused_room=state.fhsa_unused_room,
            tfsa_unused_room=state.tfsa_unused_room,
            capital_loss_cf=state.capital_loss_cf,
        )
        options = dict(
            inflation_factor=real_factor,
            return_overrides=_return_overrides(raw, sequence, idx),
            acb_config=scenario.acb_config,
            liabilities=scenario.liabilities,
        )

        pass1 = _adjusted(apply_schedules(yd, schedules, base.inflation_rate, None, False, ctx, skip), scenario)
        computed, next_state = compute_one_year(pass1, ass, state, **options)
        if has_conditional_schedules(schedules, raw.year):
            pass2 = apply_schedules(yd, schedules, base.inflation_rate, computed, True, ctx, skip)
            merged = _adjusted(apply_schedules(pass2, schedules, base.inflation_rate, None, False, ctx, skip), scenario)
            if merged != pass1:
                logger.debug("year %d: conditional schedules changed inputs; recomputing", raw.year)
                computed, next_state = compute_one_year(merged, ass, state, **options)

        if state.fhsa_disposed and raw.fhsa_contribution > 0:
            computed.warnings.append(
                ValidationWarning("fhsa_contribution", "FHSA has been disposed; contribution ignored", ERROR)
            )
        if disposition is not None:
            computed.fhsa_disposition = disposition
            if disposition == "transfer-rrsp":
                next_state = _transfer_fhsa_to_rrsp(next_state)
            next_state = replace(next_state, fhsa_disposed=True, fhsa_unused_room=0.0)

        logger.debug(
            "year %d: taxable %.2f, tax %.2f, net worth %.2f",
            computed.year,
            computed.tax.net_taxable_income,
            computed.tax.total_income_tax,
            computed.accounts.net_worth,
        )
        computed_years.append(computed)
        state = next_state
        index_factor *= 1.0 + inflation

    return ComputedScenario(scenario_id=scenario.id, years=computed_years, analytics=compute_analytics(computed_years))
