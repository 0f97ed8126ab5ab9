"""Adjusted cost base tracking for non-registered investments and life insurance."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ComputedACB:
    opening_acb: float
    acb_added: float
    acb_removed: float
    closing_acb: float
    per_unit_acb: float
    computed_capital_gain: float
    disposition_proceeds: float


@dataclass(slots=True)
class ComputedInsuranceACB:
    opening_acb: float
    acb_added: float
    coi_deducted: float
    acb_removed: float
    closing_acb: float
    computed_surrender_gain: float
    disposition_proceeds: float


def _withdrawal_fraction(withdrawal: float, balance_before_withdrawal: float) -> float:
    if withdrawal <= 0 or balance_before_withdrawal <= 0:
        return 0.0
    return min(1.0, withdrawal / balance_before_withdrawal)


def compute_acb(
    contribution: float,
    withdrawal: float,
    prev_acb: float,
    prev_balance: float,
    balance_eoy: float,
) -> ComputedACB:
    """Average-cost ACB for a non-registered account.

    The balance before withdrawal is recovered from the end-of-year balance
    (``balance_eoy + withdrawal``), so growth is included in the proportion.
    """
    acb_before_withdrawal = prev_acb + contribution
    balance_before_withdrawal = balance_eoy + withdrawal
    fraction = _withdrawal_fraction(withdrawal, balance_before_withdrawal)
    acb_removed = acb_before_withdrawal * fraction
    gain = withdrawal - acb_removed if fraction > 0 else 0.0
    closing_acb = max(0.0, acb_before_withdrawal - acb_removed)
    return ComputedACB(
        opening_acb=prev_acb,
        acb_added=contribution,
        acb_removed=acb_removed,
        closing_acb=closing_acb,
        per_unit_acb=closing_acb / balance_eoy if balance_eoy > 0 else 0.0,
        computed_capital_gain=gain,
        disposition_proceeds=withdrawal,
    )


def compute_insurance_acb(
    premium: float,
    coi: float,
    withdrawal: float,
    prev_acb: float,
    prev_cash_value: float,
    cash_value_eoy: float,
) -> ComputedInsuranceACB:
    """Premiums add to ACB, cost of insurance reduces it; surrender gain is derived."""
    acb_before_withdrawal = max(0.0, prev_acb + premium - coi)
    balance_before_withdrawal = cash_value_eoy + withdrawal
    fraction = _withdrawal_fraction(withdrawal, balance_before_withdrawal)
    acb_removed = acb_before_withdrawal * fraction
    return ComputedInsuranceACB(
        opening_acb=prev_acb,
        acb_added=premium,
        coi_deducted=coi,
        acb_removed=acb_removed,
        closing_acb=max(0.0, acb_before_withdrawal - acb_removed),
        computed_surrender_gain=withdrawal - acb_removed if fraction > 0 else 0.0,
        disposition_proceeds=withdrawal,
    )


@dataclass(slots=True)
class AccountPnL:
    book_value: float
    market_value: float
    unrealized_gain: float
    return_pct: float


@dataclass(slots=True)
class ComputedPnL:
    accounts: dict[str, AccountPnL]
    total_book_value: float
    total_market_value: float
    total_unrealized_gain: float


def roll_book_value(prev_book: float, inflow: float, withdrawal: float, balance_eoy: float) -> float:
    """Book value after adding inflows and removing the withdrawn share at cost."""
    book_before = max(0.0, prev_book + inflow)
    fraction = _withdrawal_fraction(withdrawal, balance_eoy + withdrawal)
    return max(0.0, book_before - book_before * fraction)


def compute_pnl(book_values: dict[str, float], market_values: dict[str, float]) -> ComputedPnL:
    accounts: dict[str, AccountPnL] = {}
    for name, book in book_values.items():
        market = market_values.get(name, 0.0)
        gain = market - book
        accounts[name] = AccountPnL(
            book_value=book,
            market_value=market,
            unrealized_gain=gain,
            return_pct=gain / book if book > 0 else 0.0,
        )
    total_book = sum(book_values.values())
    total_market = sum(market_values.get(name, 0.0) for name in book_values)
    return ComputedPnL(
        accounts=accounts,
        total_book_value=total_book,
        total_market_value=total_market,
        total_unrealized_gain=total_market - total_book,
    )
