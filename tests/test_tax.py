from dataclasses import replace

import pytest

from cfp.schema import default_assumptions
from cfp.tax import (
    ComputedCPP,
    ComputedEI,
    RetirementIncome,
    apply_brackets,
    compute_amt,
    compute_bracket_detail,
    compute_cpp,
    compute_cwb,
    compute_ei,
    compute_ontario_health_premium,
    compute_ontario_surtax,
    compute_tax,
    marginal_rate,
)
from tests.helpers import make_year

ZERO_CPP = ComputedCPP()
ZERO_EI = ComputedEI()


def _tax_at(ass, income: float, **values):
    yd = make_year(employment_income=income, **values)
    return compute_tax(yd, ass, compute_cpp(income, 0, ass.cpp), compute_ei(income, 0, ass.ei))


def test_apply_brackets_progressive(ass):
    tax = apply_brackets(100_000, ass.federal_brackets)
    assert round(tax, 2) == round(58_523 * 0.14 + (100_000 - 58_523) * 0.205, 2)


def test_apply_brackets_zero_and_negative_income(ass):
    assert apply_brackets(0, ass.federal_brackets) == 0
    assert apply_brackets(-5_000, ass.federal_brackets) == 0


@pytest.mark.parametrize(
    ("income", "expected"),
    [(0, 0.0), (58_523, 0.14), (58_524, 0.205), (400_000, 0.33)],
)
def test_marginal_rate_uses_strict_lower_bound(ass, income, expected):
    assert marginal_rate(income, ass.federal_brackets) == expected


def test_bracket_detail_sums_to_bracket_tax(ass):
    detail = compute_bracket_detail(150_000, ass.provincial_brackets)
    assert len(detail) == len(ass.provincial_brackets)
    assert sum(row.tax_in_bracket for row in detail) == pytest.approx(apply_brackets(150_000, ass.provincial_brackets))
    assert detail[-1].income_in_bracket == 0


def test_cpp_zero_and_below_exemption(ass):
    assert compute_cpp(0, 0, ass.cpp).total_cpp_paid == 0
    assert compute_cpp(3_000, 0, ass.cpp).total_cpp_paid == 0


def test_cpp_between_exemption_and_ympe(ass):
    result = compute_cpp(50_000, 0, ass.cpp)
    assert round(result.cpp_employee, 2) == round(46_500 * 0.0595, 2)
    assert result.cpp2_employee == 0


def test_cpp_second_tier_above_ympe(ass):
    result = compute_cpp(80_000, 0, ass.cpp)
    assert round(result.cpp_employee, 2) == round(71_100 * 0.0595, 2)
    assert round(result.cpp2_employee, 2) == round(5_400 * 0.04, 2)


def test_cpp_second_tier_capped_at_yampe(ass):
    result = compute_cpp(150_000, 0, ass.cpp)
    assert round(result.cpp2_employee, 2) == round(10_400 * 0.04, 2)


def test_cpp_self_employed_pays_both_halves(ass):
    result = compute_cpp(0, 50_000, ass.cpp)
    assert round(result.cpp_se, 2) == round(46_500 * 0.0595 * 2, 2)
    assert result.cpp_se_employer_half_ded == pytest.approx((result.cpp_se + result.cpp2_se) * 0.5)
    assert result.total_cpp_paid == pytest.approx(result.cpp_se)


def test_cpp_se_deduction_factor_splits_deduction_and_credit(ass):
    params = replace(ass.cpp, se_deduction_factor=0.25)
    result = compute_cpp(0, 50_000, params)
    se_total = result.cpp_se + result.cpp2_se
    assert result.cpp_se_employer_half_ded == pytest.approx(se_total * 0.25)
    assert result.total_cpp_for_credit == pytest.approx(se_total * 0.75)


def test_cpp_employment_consumes_ceiling_first(ass):
    result = compute_cpp(60_000, 30_000, ass.cpp)
    assert round(result.cpp_employee, 2) == round(56_500 * 0.0595, 2)
    assert round(result.cpp_se, 2) == round(14_600 * 0.0595 * 2, 2)
    assert round(result.cpp2_se, 2) == round(10_400 * 0.04 * 2, 2)
    assert result.pensionable_earnings == 71_100


def test_ei_employment_and_cap(ass):
    assert compute_ei(0, 0, ass.ei).total_ei == 0
    assert round(compute_ei(50_000, 0, ass.ei).ei_employment, 2) == round(50_000 * 0.0163, 2)
    assert round(compute_ei(100_000, 0, ass.ei).ei_employment, 2) == round(68_900 * 0.0163, 2)


def test_ei_self_employed_requires_opt_in(ass):
    assert compute_ei(0, 50_000, ass.ei).ei_se == 0
    opted_in = replace(ass.ei, se_opt_in=True)
    assert round(compute_ei(0, 50_000, opted_in).ei_se, 2) == round(50_000 * 0.0163, 2)


def test_zero_income_zero_tax(ass):
    result = _tax_at(ass, 0)
    assert result.total_income_tax == 0
    assert result.net_taxable_income == 0


def test_income_below_bpa_has_no_federal_tax(ass):
    assert _tax_at(ass, 15_000).federal_tax_payable <= 0.01


def test_tax_increases_with_income(ass):
    r50 = _tax_at(ass, 50_000)
    r100 = _tax_at(ass, 100_000)
    r200 = _tax_at(ass, 200_000)
    assert 0 < r50.total_income_tax < r100.total_income_tax < r200.total_income_tax
    assert r50.marginal_combined_rate < r100.marginal_combined_rate < r200.marginal_combined_rate


def test_top_bracket_marginal_rates(ass):
    result = _tax_at(ass, 400_000)
    assert result.marginal_federal_rate == 0.33
    assert result.marginal_provincial_rate == 0.1316


def test_total_tax_reconciles_with_components(ass):
    result = _tax_at(ass, 85_000)
    assert result.total_income_tax == pytest.approx(
        max(0.0, result.federal_tax_payable + result.provincial_tax_payable - result.cwb_credit)
    )


def test_eligible_dividend_gross_up_and_credit(ass):
    result = compute_tax(make_year(eligible_dividends=50_000), ass, ZERO_CPP, ZERO_EI)
    assert round(result.grossed_up_eligible_div, 2) == 69_000
    assert result.detail.federal_credits["eligible_dividend"] == pytest.approx(69_000 * 0.150198)


def test_non_eligible_dividend_gross_up_and_credit(ass):
    result = compute_tax(make_year(non_eligible_dividends=50_000), ass, ZERO_CPP, ZERO_EI)
    assert round(result.grossed_up_non_eligible_div, 2) == 57_500
    assert result.detail.federal_credits["non_eligible_dividend"] == pytest.approx(57_500 * 0.090301)


def test_capital_gains_flat_inclusion(ass):
    result = compute_tax(make_year(capital_gains_realized=100_000), ass, ZERO_CPP, ZERO_EI)
    assert result.taxable_capital_gains == 50_000


def test_capital_gains_tiered_inclusion(ass):
    ass.cg_inclusion_tiered = True
    result = compute_tax(make_year(capital_gains_realized=300_000), ass, ZERO_CPP, ZERO_EI)
    assert result.taxable_capital_gains == pytest.approx(125_000 + 50_000 * 2 / 3)


def test_capital_loss_applied_reduces_gains(ass):
    result = compute_tax(make_year(capital_gains_realized=20_000, capital_loss_applied=5_000), ass, ZERO_CPP, ZERO_EI)
    assert result.taxable_capital_gains == 7_500


def test_rrsp_deduction_reduces_taxable_income(ass):
    base = _tax_at(ass, 100_000)
    deducted = _tax_at(ass, 100_000, rrsp_contribution=10_000, rrsp_deduction_claimed=10_000)
    assert deducted.net_taxable_income == pytest.approx(base.net_taxable_income - 10_000)
    assert deducted.total_income_tax < base.total_income_tax


def test_donation_credit_two_tiers(ass):
    result = _tax_at(ass, 60_000, charitable_donations=1_200)
    assert result.detail.federal_credits["donation"] == pytest.approx(200 * 0.14 + 1_000 * 0.29)


def test_age_credit_only_from_65(ass):
    yd = make_year(pension_income=30_000)
    young = compute_tax(yd, ass, ZERO_CPP, ZERO_EI, age=60)
    senior = compute_tax(yd, ass, ZERO_CPP, ZERO_EI, age=66)
    assert young.detail.federal_credits["age"] == 0
    assert senior.detail.federal_credits["age"] > 0
    assert senior.total_income_tax < young.total_income_tax


def test_ontario_health_premium_table():
    assert compute_ontario_health_premium(20_000) == 0
    assert compute_ontario_health_premium(30_000) == 300
    assert compute_ontario_health_premium(50_000) == 600
    assert compute_ontario_health_premium(250_000) == 900


def test_ontario_surtax_two_thresholds():
    assert compute_ontario_surtax(5_000, 5_818, 7_446) == 0
    assert compute_ontario_surtax(8_000, 5_818, 7_446) == pytest.approx(0.20 * 2_182 + 0.36 * 554)


def test_ontario_surtax_and_premium_in_provincial_payable(ass):
    result = _tax_at(ass, 150_000)
    assert result.ontario_surtax > 0
    assert result.ontario_health_premium == 750
    assert result.provincial_tax_payable > result.provincial_tax_before_credits - result.provincial_credits


def test_cwb_phase_in_and_out():
    assert compute_cwb(10_000, 10_000) == pytest.approx(1_428)
    assert compute_cwb(20_000, 30_000) == pytest.approx(1_428 - 0.15 * (30_000 - 23_495))
    assert compute_cwb(20_000, 33_015) == 0
    assert compute_cwb(2_000, 2_000) == 0


def test_amt_formula():
    amt = compute_amt(300_000, 100_000, 0, 16_452, 0.14)
    assert amt == pytest.approx((400_000 - 173_205) * 0.205 - 16_452 * 0.14)
    assert compute_amt(50_000, 0, 0, 16_452, 0.14) == 0


def test_amt_applies_to_large_capital_gains(ass):
    result = compute_tax(make_year(capital_gains_realized=1_000_000), ass, ZERO_CPP, ZERO_EI)
    assert result.amt_tax > 0
    assert result.amt_additional >= 0


def test_quebec_abatement_reduces_federal_tax():
    on = default_assumptions("ON")
    qc = default_assumptions("QC")
    on_result = _tax_at(on, 80_000)
    qc_result = _tax_at(qc, 80_000)
    assert qc_result.quebec_abatement > 0
    assert on_result.quebec_abatement == 0
    assert qc_result.federal_tax_payable == pytest.approx(on_result.federal_tax_payable * (1 - 0.165))


def test_foreign_tax_credit_bounded_by_tax_paid(ass):
    result = _tax_at(ass, 50_000, foreign_income=10_000, foreign_tax_paid=1_500)
    assert result.federal_foreign_tax_credit > 0
    assert result.federal_foreign_tax_credit + result.provincial_foreign_tax_credit <= 1_500 + 1e-9


def test_oas_clawback_above_threshold(ass):
    yd = make_year(employment_income=120_000)
    income = RetirementIncome(oas_income=8_760)
    result = compute_tax(yd, ass, ZERO_CPP, ZERO_EI, income)
    assert result.oas_clawback == pytest.approx(0.15 * (128_760 - 95_323))
    assert result.oas_clawback <= 8_760


def test_oas_clawback_capped_at_benefit(ass):
    result = compute_tax(make_year(employment_income=400_000), ass, ZERO_CPP, ZERO_EI, RetirementIncome(oas_income=8_760))
    assert result.oas_clawback == 8_760
