"""Account balance rollforward and cash-flow waterfall."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import AssetReturns, OpeningBalances, YearData
from .tax import ComputedCPP, ComputedEI, ComputedTax, RetirementIncome, gross_income

ACCOUNT_NAMES = ("rrsp", "tfsa", "fhsa", "non_reg", "savings", "lira", "resp", "li")


@dataclass(slots=True)
class ReturnOverrides:
    equity: float | None = None
    fixed_income: float | None = None
    cash: float | None = None
    savings: float | None = None

    def apply(self, returns: AssetReturns) -> AssetReturns:
        return AssetReturns(
            equity=returns.equity if self.equity is None else self.equity,
            fixed_income=returns.fixed_income if self.fixed_income is None else self.fixed_income,
            cash=returns.cash if self.cash is None else self.cash,
            savings=returns.savings if self.savings is None else self.savings,
        )


@dataclass(slots=True)
class ComputedAccounts:
    rrsp_return: float
    tfsa_return: float
    fhsa_return: float
    non_reg_return: float
    savings_return: float
    lira_return: float
    resp_return: float
    li_return: float
    rrsp_eoy: float
    tfsa_eoy: float
    fhsa_eoy: float
    non_reg_eoy: float
    savings_eoy: float
    lira_eoy: float
    resp_eoy: float
    li_eoy: float
    total_assets: float
    total_liabilities: float
    net_worth: float

    def balances(self) -> OpeningBalances:
        return OpeningBalances(**{name: getattr(self, f"{name}_eoy") for name in ACCOUNT_NAMES})


@dataclass(slots=True)
class ComputedWaterfall:
    gross_income: float
    after_rrsp_ded: float
    after_fhsa_ded: float
    after_cpp_se_half: float
    after_cap_loss: float
    net_taxable_income: float
    after_federal_tax: float
    after_provincial_tax: float
    after_cpp_ei: float
    after_tax_income: float
    total_living_expenses: float
    after_expenses: float
    total_contributions: float
    total_withdrawals: float
    liability_payments: float
    net_cash_flow: float


def blended_return(yd: YearData, account: str, returns: AssetReturns) -> float:
    equity = getattr(yd, f"{account}_equity_pct")
    fixed = getattr(yd, f"{account}_fixed_pct")
    cash = getattr(yd, f"{account}_cash_pct")
    return equity * returns.equity + fixed * returns.fixed_income + cash * returns.cash


def _roll(opening: float, inflow: float, outflow: float, rate: float, override: float | None) -> float:
    if override is not None:
        return max(0.0, override)
    return max(0.0, (opening + inflow - outflow) * (1.0 + rate))


def compute_accounts(
    yd: YearData,
    returns: AssetReturns,
    prev: OpeningBalances,
    return_overrides: ReturnOverrides | None = None,
    *,
    resp_grant: float = 0.0,
) -> ComputedAccounts:
    """End-of-year balances; an explicit EOY override bypasses the formula."""
    r = return_overrides.apply(returns) if return_overrides is not None else returns
    rates = {name: blended_return(yd, name, r) for name in ("rrsp", "tfsa", "fhsa", "non_reg", "lira", "resp", "li")}
    rates["savings"] = r.savings

    rrsp_eoy = _roll(prev.rrsp, yd.rrsp_contribution, yd.rrsp_withdrawal + yd.hbp_withdrawal, rates["rrsp"], yd.rrsp_eoy_override)
    tfsa_eoy = _roll(prev.tfsa, yd.tfsa_contribution, yd.tfsa_withdrawal, rates["tfsa"], yd.tfsa_eoy_override)
    fhsa_eoy = _roll(prev.fhsa, yd.fhsa_contribution, yd.fhsa_withdrawal, rates["fhsa"], yd.fhsa_eoy_override)
    non_reg_eoy = _roll(prev.non_reg, yd.non_reg_contribution, yd.non_reg_withdrawal, rates["non_reg"], yd.non_reg_eoy_override)
    savings_eoy = _roll(prev.savings, yd.savings_deposit, yd.savings_withdrawal, rates["savings"], yd.savings_eoy_override)
    lira_eoy = _roll(prev.lira, 0.0, yd.lira_withdrawal, rates["lira"], yd.lira_eoy_override)
    resp_eoy = _roll(prev.resp, yd.resp_contribution + resp_grant, yd.resp_withdrawal, rates["resp"], yd.resp_eoy_override)

    # Insurance grows on premiums net of cost of insurance; withdrawals come after growth.
    if yd.li_eoy_override is not None:
        li_eoy = max(0.0, yd.li_eoy_override)
    else:
        li_eoy = max(0.0, (prev.li + yd.li_premium - yd.li_coi) * (1.0 + rates["li"]) - yd.li_withdrawal)

    total_assets = rrsp_eoy + tfsa_eoy + fhsa_eoy + non_reg_eoy + savings_eoy + lira_eoy + resp_eoy + li_eoy
    return ComputedAccounts(
        rrsp_return=rates["rrsp"],
        tfsa_return=rates["tfsa"],
        fhsa_return=rates["fhsa"],
        non_reg_return=rates["non_reg"],
        savings_return=rates["savings"],
        lira_return=rates["lira"],
        resp_return=rates["resp"],
        li_return=rates["li"],
        rrsp_eoy=rrsp_eoy,
        tfsa_eoy=tfsa_eoy,
        fhsa_eoy=fhsa_eoy,
        non_reg_eoy=non_reg_eoy,
        savings_eoy=savings_eoy,
        lira_eoy=lira_eoy,
        resp_eoy=resp_eoy,
        li_eoy=li_eoy,
        total_assets=total_assets,
        total_liabilities=0.0,
        net_worth=total_assets,
    )


def total_contributions(yd: YearData) -> float:
    return (
        yd.rrsp_contribution
        + yd.tfsa_contribution
        + yd.fhsa_contribution
        + yd.non_reg_contribution
        + yd.savings_deposit
        + yd.resp_contribution
        + yd.li_premium
    )


def total_withdrawals(yd: YearData) -> float:
    return (
        yd.rrsp_withdrawal
        + yd.tfsa_withdrawal
        + yd.fhsa_withdrawal
        + yd.non_reg_withdrawal
        + yd.savings_withdrawal
        + yd.lira_withdrawal
        + yd.resp_withdrawal
        + yd.li_withdrawal
        + yd.hbp_withdrawal
    )


def compute_waterfall(
    yd: YearData,
    cpp: ComputedCPP,
    ei: ComputedEI,
    tax: ComputedTax,
    retirement_income: RetirementIncome | None = None,
    *,
    liability_payments: float = 0.0,
) -> ComputedWaterfall:
    """Top-down chain from gross income to net cash flow."""
    gross = gross_income(yd, retirement_income or RetirementIncome())
    after_rrsp = gross - yd.rrsp_deduction_claimed
    after_fhsa = after_rrsp - yd.fhsa_deduction_claimed
    after_cpp_se_half = after_fhsa - cpp.cpp_se_employer_half_ded
    after_cap_loss = after_cpp_se_half - max(0.0, yd.capital_loss_applied)

    after_federal = tax.net_taxable_income - tax.federal_tax_payable
    after_provincial = after_federal - tax.provincial_tax_payable
    after_cpp_ei = after_provincial - cpp.total_cpp_paid - ei.total_ei
    refundable = tax.federal_tax_payable + tax.provincial_tax_payable - tax.total_income_tax
    after_tax_income = after_cpp_ei + refundable

    living = yd.total_living_expenses
    contributions = total_contributions(yd)
    withdrawals = total_withdrawals(yd)
    return ComputedWaterfall(
        gross_income=gross,
        after_rrsp_ded=after_rrsp,
        after_fhsa_ded=after_fhsa,
        after_cpp_se_half=after_cpp_se_half,
        after_cap_loss=after_cap_loss,
        net_taxable_income=tax.net_taxable_income,
        after_federal_tax=after_federal,
        after_provincial_tax=after_provincial,
        after_cpp_ei=after_cpp_ei,
        after_tax_income=after_tax_income,
        total_living_expenses=living,
        after_expenses=after_tax_income - living,
        total_contributions=contributions,
        total_withdrawals=withdrawals,
        liability_payments=liability_payments,
        net_cash_flow=after_tax_income - contributions + withdrawals - living - liability_payments,
    )
