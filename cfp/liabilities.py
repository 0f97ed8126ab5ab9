"""Liability amortization helpers."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import Liability


@dataclass(slots=True)
class LiabilityYear:
    id: str
    label: str
    opening_balance: float
    interest: float
    payment: float
    principal_paid: float
    closing_balance: float
    deductible_interest: float


def amortize_liability(liability: Liability, opening_balance: float) -> LiabilityYear:
    """One year of annual-compounding interest and capped payments."""
    balance = max(0.0, opening_balance)
    if balance <= 0:
        return LiabilityYear(liability.id, liability.label, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    interest = balance * max(0.0, liability.annual_rate)
    payment = min(max(0.0, liability.monthly_payment) * 12.0, balance + interest)
    closing = max(0.0, balance + interest - payment)
    return LiabilityYear(
        id=liability.id,
        label=liability.label,
        opening_balance=balance,
        interest=interest,
        payment=payment,
        principal_paid=payment - interest,
        closing_balance=closing,
        deductible_interest=interest if liability.investment_purpose else 0.0,
    )
