"""Lifetime rollups over a computed projection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import ComputedYear


@dataclass(slots=True)
class ComputedAnalytics:
    lifetime_gross_income: float = 0.0
    lifetime_total_tax: float = 0.0
    lifetime_cpp_ei: float = 0.0
    lifetime_after_tax_income: float = 0.0
    lifetime_cash_flow: float = 0.0
    lifetime_avg_tax_rate: float = 0.0
    lifetime_avg_all_in_rate: float = 0.0
    annual_cash_flow: list[float] = field(default_factory=list)
    cumulative_cash_flow: list[float] = field(default_factory=list)
    cumulative_real_cash_flow: list[float] = field(default_factory=list)
    cumulative_gross_income: list[float] = field(default_factory=list)
    cumulative_after_tax_income: list[float] = field(default_factory=list)
    cumulative_total_tax: list[float] = field(default_factory=list)


def compute_analytics(years: list["ComputedYear"]) -> ComputedAnalytics:
    out = ComputedAnalytics()
    real_cash_flow = 0.0
    for yr in years:
        out.lifetime_gross_income += yr.waterfall.gross_income
        out.lifetime_total_tax += yr.tax.total_income_tax
        out.lifetime_cpp_ei += yr.cpp.total_cpp_paid + yr.ei.total_ei
        out.lifetime_after_tax_income += yr.waterfall.after_tax_income
        out.lifetime_cash_flow += yr.waterfall.net_cash_flow
        real_cash_flow += yr.real_net_cash_flow

        out.annual_cash_flow.append(yr.waterfall.net_cash_flow)
        out.cumulative_cash_flow.append(out.lifetime_cash_flow)
        out.cumulative_real_cash_flow.append(real_cash_flow)
        out.cumulative_gross_income.append(out.lifetime_gross_income)
        out.cumulative_after_tax_income.append(out.lifetime_after_tax_income)
        out.cumulative_total_tax.append(out.lifetime_total_tax)

    if out.lifetime_gross_income > 0:
        out.lifetime_avg_tax_rate = out.lifetime_total_tax / out.lifetime_gross_income
        out.lifetime_avg_all_in_rate = (out.lifetime_total_tax + out.lifetime_cpp_ei) / out.lifetime_gross_income
    return out
