from dataclasses import fields, replace
import math

import pytest

from cfp.engine import CarryForwardState, compute, compute_one_year
from cfp.scheduling import apply_schedules, has_conditional_schedules
from cfp.schema import (
    ACBConfig,
    AssumptionOverrides,
    FHSASettings,
    Liability,
    OpeningBalances,
    OpeningCarryForwards,
    RetirementBenefit,
    ReturnSequence,
    Scenario,
    ScheduleCondition,
    YearData,
    default_scenario,
)
from tests.helpers import make_schedule, make_test_scenario


def _errors(year, field=None):
    return [w for w in year.warnings if w.severity == "error" and (field is None or w.field == field)]


def test_empty_scenario_computes_zeroes():
    result = compute(make_test_scenario(num_years=3))
    assert [yr.year for yr in result.years] == [2026, 2027, 2028]
    for yr in result.years:
        assert yr.tax.total_income_tax == 0
        assert yr.accounts.net_worth == 0
        assert _errors(yr) == []


def test_compute_one_year_returns_next_state_without_mutating():
    scenario = make_test_scenario(num_years=1, opening_balances=OpeningBalances(savings=1_000))
    scenario.years[0].savings_deposit = 500
    state = CarryForwardState.initial(scenario)
    computed, next_state = compute_one_year(scenario.years[0], scenario.assumptions, state)
    assert computed.accounts.savings_eoy == 1_500
    assert next_state.balances.savings == 1_500
    assert state.balances.savings == 1_000


def test_rrsp_room_accumulates_from_prior_year_income():
    scenario = make_test_scenario(
        num_years=3,
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=20_000, prior_year_earned_income=60_000),
        scheduled_items=[make_schedule("employment_income", 60_000)],
    )
    result = compute(scenario)
    assert [round(yr.rrsp_unused_room, 2) for yr in result.years] == [20_000, 30_800, 41_600]
    assert result.years[0].rrsp_new_room == 10_800


def test_rrsp_room_capped_at_dollar_limit():
    scenario = make_test_scenario(
        num_years=2,
        opening_carry_forwards=OpeningCarryForwards(prior_year_earned_income=200_000),
        scheduled_items=[make_schedule("employment_income", 200_000)],
    )
    scenario.assumptions.auto_index_assumptions = False
    result = compute(scenario)
    assert result.years[0].rrsp_new_room == 33_810
    assert result.years[1].rrsp_unused_room == 33_810
    assert result.years[1].rrsp_unused_room + result.years[1].rrsp_new_room == 67_620


def test_rrsp_deduction_consumes_room():
    scenario = make_test_scenario(
        num_years=2,
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=20_000),
        year_overrides=[{"rrsp_contribution": 5_000, "rrsp_deduction_claimed": 5_000}],
    )
    result = compute(scenario)
    assert result.years[1].rrsp_unused_room == 15_000
    assert _errors(result.years[0]) == []


def test_rrsp_overcontribution_flagged():
    scenario = make_test_scenario(num_years=1, year_overrides=[{"rrsp_contribution": 10_000}])
    result = compute(scenario)
    assert _errors(result.years[0], "rrsp_contribution")


def test_tfsa_room_adds_annual_limit():
    scenario = make_test_scenario(num_years=1, opening_carry_forwards=OpeningCarryForwards(tfsa_unused_room=15_000))
    year = compute(scenario).years[0]
    assert year.tfsa_room_generated == 7_000
    assert year.tfsa_unused_room == 22_000


@pytest.mark.parametrize(("birth_year", "expected"), [(2005, 27_500), (1990, 109_000)])
def test_tfsa_room_accumulates_from_birth_year(birth_year, expected):
    scenario = make_test_scenario(num_years=1)
    scenario.assumptions.birth_year = birth_year
    assert compute(scenario).years[0].tfsa_unused_room == expected


def test_tfsa_room_not_accumulated_when_balance_exists():
    scenario = make_test_scenario(num_years=1, opening_balances=OpeningBalances(tfsa=5_000))
    scenario.assumptions.birth_year = 1990
    assert compute(scenario).years[0].tfsa_unused_room == 7_000


def test_tfsa_no_new_room_under_18():
    scenario = make_test_scenario(num_years=1)
    scenario.assumptions.birth_year = 2012
    assert compute(scenario).years[0].tfsa_room_generated == 0


def test_tfsa_withdrawal_restores_room_next_year():
    scenario = make_test_scenario(
        num_years=2,
        opening_balances=OpeningBalances(tfsa=10_000),
        year_overrides=[{"tfsa_withdrawal": 5_000}],
    )
    result = compute(scenario)
    assert result.years[1].tfsa_room_generated == 12_000
    assert result.years[1].tfsa_unused_room == 19_000


def test_tfsa_overcontribution_flagged():
    scenario = make_test_scenario(num_years=1, year_overrides=[{"tfsa_contribution": 10_000}])
    assert _errors(compute(scenario).years[0], "tfsa_contribution")


def test_fhsa_unused_room_carries_and_caps():
    scenario = make_test_scenario(num_years=3, year_overrides=[{}, {}, {"fhsa_contribution": 16_000}])
    result = compute(scenario)
    assert result.years[0].fhsa_unused_room == 8_000
    assert result.years[1].fhsa_unused_room == 8_000
    assert result.years[2].fhsa_unused_room == 0
    assert result.years[2].fhsa_contrib_lifetime == 16_000
    assert _errors(result.years[2], "fhsa_contribution") == []


def test_fhsa_lifetime_limit_flagged():
    scenario = make_test_scenario(
        num_years=2,
        opening_carry_forwards=OpeningCarryForwards(fhsa_contrib_lifetime=32_000),
        scheduled_items=[make_schedule("fhsa_contribution", 8_000)],
    )
    result = compute(scenario)
    assert result.years[0].fhsa_contrib_lifetime == 40_000
    assert result.years[1].fhsa_contrib_lifetime == 48_000
    assert _errors(result.years[0], "fhsa_contribution") == []
    assert any("lifetime" in w.message for w in _errors(result.years[1], "fhsa_contribution"))


def test_fhsa_home_purchase_withdraws_tax_free():
    scenario = make_test_scenario(num_years=3, opening_balances=OpeningBalances(fhsa=20_000))
    scenario.assumptions.fhsa = FHSASettings(disposition="home-purchase", disposition_year=2027)
    result = compute(scenario)
    year = result.years[1]
    assert year.fhsa_disposition == "home-purchase"
    assert year.inputs.fhsa_withdrawal == 20_000
    assert year.accounts.fhsa_eoy == 0
    assert year.tax.total_income_tax == 0
    assert result.years[2].fhsa_unused_room == 0


def test_fhsa_taxable_close_adds_income():
    scenario = make_test_scenario(num_years=2, opening_balances=OpeningBalances(fhsa=20_000))
    scenario.assumptions.fhsa = FHSASettings(disposition="taxable-close", disposition_year=2027)
    year = compute(scenario).years[1]
    assert year.inputs.other_taxable_income == 20_000
    assert year.tax.total_income_tax > 0


def test_fhsa_forced_transfer_to_rrsp_after_fifteen_years():
    scenario = make_test_scenario(num_years=2, opening_balances=OpeningBalances(fhsa=10_000))
    scenario.assumptions.fhsa = FHSASettings(opening_year=2011)
    result = compute(scenario)
    assert result.years[0].fhsa_disposition == "transfer-rrsp"
    assert result.years[0].inputs.fhsa_withdrawal == 0
    assert result.years[0].tax.total_income_tax == 0
    assert result.years[1].accounts.rrsp_eoy == 10_000
    assert result.years[1].accounts.fhsa_eoy == 0


def test_fhsa_contribution_after_disposal_ignored():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(fhsa=5_000),
        year_overrides=[{}, {}, {"fhsa_contribution": 1_000}],
    )
    scenario.assumptions.fhsa = FHSASettings(disposition="home-purchase", disposition_year=2027)
    year = compute(scenario).years[2]
    assert year.inputs.fhsa_contribution == 0
    assert any("disposed" in w.message for w in _errors(year, "fhsa_contribution"))


def test_fhsa_schedules_skipped_after_disposal():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(fhsa=5_000),
        scheduled_items=[make_schedule("fhsa_contribution", 1_000)],
    )
    scenario.assumptions.fhsa = FHSASettings(disposition="home-purchase", disposition_year=2027)
    result = compute(scenario)
    assert result.years[0].inputs.fhsa_contribution == 1_000
    assert result.years[1].inputs.fhsa_contribution == 0
    assert result.years[2].inputs.fhsa_contribution == 0
    assert _errors(result.years[2]) == []


def test_return_sequence_drives_growth():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(non_reg=100_000),
        return_sequence=ReturnSequence(enabled=True, equity=[0.10, -0.05, 0.15]),
    )
    result = compute(scenario)
    assert [round(yr.accounts.non_reg_eoy, 2) for yr in result.years] == [110_000, 104_500, 120_175]


def test_year_return_override_beats_sequence():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(non_reg=100_000),
        return_sequence=ReturnSequence(enabled=True, equity=[0.10, -0.05, 0.15]),
        year_overrides=[{}, {"equity_return_override": 0.0}],
    )
    result = compute(scenario)
    assert [round(yr.accounts.non_reg_eoy, 2) for yr in result.years] == [110_000, 110_000, 126_500]


def test_disabled_return_sequence_ignored():
    scenario = make_test_scenario(
        num_years=1,
        opening_balances=OpeningBalances(non_reg=100_000),
        return_sequence=ReturnSequence(enabled=False, equity=[0.5]),
    )
    assert compute(scenario).years[0].accounts.non_reg_eoy == 100_000


def test_pnl_tracks_book_and_market_value():
    scenario = make_test_scenario(
        num_years=1,
        opening_balances=OpeningBalances(rrsp=10_000, tfsa=20_000, li=30_000),
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=10_000),
        year_overrides=[{"rrsp_contribution": 5_000, "tfsa_withdrawal": 10_000, "li_premium": 5_000}],
    )
    scenario.assumptions.asset_returns.equity = 0.10
    scenario.assumptions.asset_returns.fixed_income = 0.05
    pnl = compute(scenario).years[0].pnl
    assert pnl.accounts["rrsp"].book_value == 15_000
    assert round(pnl.accounts["rrsp"].market_value, 2) == 16_500
    assert pnl.accounts["tfsa"].book_value == pytest.approx(10_476.19, abs=0.01)
    assert round(pnl.accounts["tfsa"].market_value, 2) == 11_000
    assert pnl.accounts["li"].book_value == 35_000
    assert round(pnl.accounts["li"].market_value, 2) == 36_750
    assert pnl.total_unrealized_gain == pytest.approx(pnl.total_market_value - pnl.total_book_value)


def test_life_insurance_cash_value_grows_net_of_coi():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(li=50_000),
        scheduled_items=[make_schedule("li_premium", 5_000), make_schedule("li_coi", 1_000)],
    )
    result = compute(scenario)
    assert [yr.accounts.li_eoy for yr in result.years] == [54_000, 58_000, 62_000]


def test_auto_gains_from_non_registered_withdrawal():
    scenario = make_test_scenario(
        num_years=2,
        opening_balances=OpeningBalances(non_reg=20_000),
        acb_config=ACBConfig(auto_compute_gains=True),
        year_overrides=[{"non_reg_withdrawal": 10_000}],
    )
    scenario.assumptions.asset_returns.equity = 0.10
    result = compute(scenario)
    year = result.years[0]
    assert year.acb.acb_removed == pytest.approx(9_523.81, abs=0.01)
    assert year.acb.closing_acb == pytest.approx(10_476.19, abs=0.01)
    assert year.inputs.capital_gains_realized == 0
    assert year.tax.taxable_capital_gains == pytest.approx(476.19 * 0.5, abs=0.01)
    assert result.years[1].acb.opening_acb == pytest.approx(year.acb.closing_acb)


def test_manual_gains_kept_without_auto_compute():
    scenario = make_test_scenario(
        num_years=1,
        opening_balances=OpeningBalances(non_reg=20_000),
        acb_config=ACBConfig(auto_compute_gains=False),
        year_overrides=[{"non_reg_withdrawal": 10_000, "capital_gains_realized": 2_000}],
    )
    year = compute(scenario).years[0]
    assert year.tax.taxable_capital_gains == 1_000
    assert year.acb is not None


def test_insurance_surrender_gain_is_taxable():
    def run(auto):
        scenario = make_test_scenario(
            num_years=1,
            opening_balances=OpeningBalances(li=10_000),
            acb_config=ACBConfig(li_opening_acb=4_000, auto_compute_gains=auto),
            year_overrides=[{"employment_income": 50_000, "li_withdrawal": 10_000}],
        )
        return compute(scenario).years[0]

    taxed = run(True)
    assert taxed.insurance_acb.computed_surrender_gain == pytest.approx(6_000)
    assert taxed.tax.net_taxable_income == pytest.approx(run(False).tax.net_taxable_income + 6_000)
    assert taxed.tax.total_income_tax > run(False).tax.total_income_tax


def test_capital_loss_carry_forward_applied():
    scenario = make_test_scenario(
        num_years=2,
        opening_carry_forwards=OpeningCarryForwards(capital_loss_cf=10_000),
        year_overrides=[{"capital_gains_realized": 6_000, "capital_loss_applied": 6_000}],
    )
    result = compute(scenario)
    assert result.years[0].tax.taxable_capital_gains == 0
    assert result.years[0].capital_loss_cf == 4_000
    assert result.years[1].capital_loss_cf == 4_000


def test_capital_loss_applied_clamped_to_pool():
    scenario = make_test_scenario(
        num_years=1,
        opening_carry_forwards=OpeningCarryForwards(capital_loss_cf=10_000),
        year_overrides=[{"capital_gains_realized": 30_000, "capital_loss_applied": 20_000}],
    )
    year = compute(scenario).years[0]
    assert year.inputs.capital_loss_applied == 20_000
    assert year.tax.taxable_capital_gains == 10_000
    assert year.capital_loss_cf == 0
    assert _errors(year, "capital_loss_applied")


def test_realized_losses_join_pool():
    scenario = make_test_scenario(
        num_years=1,
        opening_carry_forwards=OpeningCarryForwards(capital_loss_cf=10_000),
        year_overrides=[{"capital_losses_realized": 3_000}],
    )
    assert compute(scenario).years[0].capital_loss_cf == 13_000


def test_liabilities_reduce_net_worth_and_cash_flow():
    loan = Liability(id="loan", label="Loan", type="auto", opening_balance=10_000, annual_rate=0.05, monthly_payment=500)
    scenario = make_test_scenario(num_years=2, opening_balances=OpeningBalances(savings=20_000), liabilities=[loan])
    result = compute(scenario)
    first, second = result.years
    assert first.liabilities[0].closing_balance == 4_500
    assert first.accounts.total_liabilities == 4_500
    assert first.accounts.net_worth == 20_000 - 4_500
    assert first.waterfall.liability_payments == 6_000
    assert first.waterfall.net_cash_flow == -6_000
    assert second.liabilities[0].payment == pytest.approx(4_725)
    assert second.accounts.total_liabilities == 0


def test_investment_loan_interest_is_deductible():
    loan = Liability(
        id="leverage", label="Investment loan", type="loc", opening_balance=100_000, annual_rate=0.05,
        monthly_payment=1_000, investment_purpose=True,
    )
    scenario = make_test_scenario(num_years=1, liabilities=[loan], year_overrides=[{"employment_income": 80_000}])
    year = compute(scenario).years[0]
    assert year.liabilities[0].deductible_interest == 5_000
    assert year.tax.net_taxable_income == pytest.approx(75_000)


def test_assumption_override_changes_year_tax():
    scenario = make_test_scenario(
        num_years=3,
        scheduled_items=[make_schedule("employment_income", 80_000)],
        assumption_overrides={2028: AssumptionOverrides(federal_bpa=30_000)},
    )
    scenario.assumptions.auto_index_assumptions = False
    result = compute(scenario)
    assert result.years[2].resolved_assumptions.federal_bpa == 30_000
    assert result.years[2].tax.total_income_tax < result.years[1].tax.total_income_tax
    assert result.years[0].tax.total_income_tax == pytest.approx(result.years[1].tax.total_income_tax)


def test_auto_index_compounds_thresholds():
    scenario = make_test_scenario(num_years=3)
    scenario.assumptions.inflation_rate = 0.02
    result = compute(scenario)
    assert [yr.resolved_assumptions.federal_bpa for yr in result.years] == [16_452, 16_781, 17_117]
    assert result.years[1].inflation_factor == pytest.approx(1.02**2)
    assert result.years[1].resolved_assumptions.fhsa_annual_limit == 8_000


def test_real_values_deflated_by_inflation_factor():
    scenario = make_test_scenario(num_years=2, opening_balances=OpeningBalances(savings=10_000))
    result = compute(scenario)
    for yr in result.years:
        assert yr.real_net_worth == pytest.approx(yr.accounts.net_worth / yr.inflation_factor)


def test_living_expenses_reduce_cash_flow():
    scenario = make_test_scenario(
        num_years=1,
        year_overrides=[{"employment_income": 70_000, "housing_expense": 24_000, "groceries_expense": 9_000}],
    )
    waterfall = compute(scenario).years[0].waterfall
    assert waterfall.total_living_expenses == 33_000
    assert waterfall.after_expenses == pytest.approx(waterfall.after_tax_income - 33_000)


def test_rrif_minimum_enforced_at_71():
    scenario = make_test_scenario(num_years=1, opening_balances=OpeningBalances(rrsp=100_000))
    scenario.assumptions.birth_year = 1955
    year = compute(scenario).years[0]
    assert year.retirement.is_rrif
    assert year.retirement.rrif_min_withdrawal == pytest.approx(5_280)
    assert year.inputs.rrsp_withdrawal == pytest.approx(5_280)
    assert year.accounts.rrsp_eoy == pytest.approx(94_720)
    assert year.rrsp_new_room == 0


def test_larger_voluntary_rrif_withdrawal_kept():
    scenario = make_test_scenario(
        num_years=1, opening_balances=OpeningBalances(rrsp=100_000), year_overrides=[{"rrsp_withdrawal": 20_000}]
    )
    scenario.assumptions.birth_year = 1955
    assert compute(scenario).years[0].inputs.rrsp_withdrawal == 20_000


def test_lira_locked_before_lif_conversion():
    scenario = make_test_scenario(
        num_years=1, opening_balances=OpeningBalances(lira=50_000), year_overrides=[{"lira_withdrawal": 5_000}]
    )
    scenario.assumptions.birth_year = 1980
    assert _errors(compute(scenario).years[0], "lira_withdrawal")


def test_government_benefits_start_at_age():
    scenario = make_test_scenario(num_years=2)
    scenario.assumptions.birth_year = 1961
    scenario.assumptions.inflation_rate = 0.02
    scenario.assumptions.retirement.cpp_benefit = RetirementBenefit(enabled=True, monthly_amount=1_000, start_age=66)
    scenario.assumptions.retirement.oas_benefit = RetirementBenefit(enabled=True, monthly_amount=700, start_age=65)
    result = compute(scenario)
    assert result.years[0].retirement.cpp_income == 0
    assert result.years[0].retirement.oas_income == 8_400
    assert result.years[1].retirement.cpp_income == 12_000
    assert result.years[1].retirement.oas_income == pytest.approx(8_400 * 1.02)
    assert result.years[1].waterfall.gross_income == pytest.approx(12_000 + 8_400 * 1.02)


def test_hbp_repayment_shortfall_is_taxable():
    scenario = make_test_scenario(
        num_years=4, opening_balances=OpeningBalances(rrsp=50_000), year_overrides=[{"hbp_withdrawal": 30_000}]
    )
    result = compute(scenario)
    assert result.years[0].accounts.rrsp_eoy == 20_000
    assert result.years[0].tax.net_taxable_income == 0
    assert result.years[0].hbp.closing_balance == 30_000
    assert result.years[1].hbp.required_repayment == 0
    assert result.years[2].hbp.required_repayment == pytest.approx(2_000)
    assert result.years[2].hbp.shortfall == pytest.approx(2_000)
    assert result.years[2].tax.net_taxable_income == pytest.approx(2_000)
    assert result.years[3].hbp.opening_balance == pytest.approx(28_000)


def test_hbp_repayment_made_through_rrsp_contribution():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(rrsp=50_000),
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=10_000),
        year_overrides=[{"hbp_withdrawal": 30_000}, {}, {"rrsp_contribution": 5_000, "rrsp_deduction_claimed": 5_000}],
    )
    year = compute(scenario).years[2]
    assert year.hbp.repaid == pytest.approx(2_000)
    assert year.hbp.shortfall == 0
    assert year.inputs.rrsp_deduction_claimed == pytest.approx(3_000)


def test_resp_grant_matches_contribution():
    scenario = make_test_scenario(num_years=2, scheduled_items=[make_schedule("resp_contribution", 2_500)])
    result = compute(scenario)
    assert result.years[0].resp.grant == 500
    assert result.years[0].accounts.resp_eoy == 3_000
    assert result.years[1].resp.grant_lifetime == 1_000


def test_resp_unused_grant_room_carries_forward():
    scenario = make_test_scenario(num_years=2, year_overrides=[{}, {"resp_contribution": 5_000}])
    assert compute(scenario).years[1].resp.grant == 1_000


def test_conditional_schedule_uses_computed_cash_flow():
    scenario = make_test_scenario(
        num_years=2,
        opening_carry_forwards=OpeningCarryForwards(tfsa_unused_room=50_000),
        scheduled_items=[
            make_schedule("employment_income", 60_000),
            make_schedule("tfsa_contribution", 5_000, conditions=[_condition("net_cash_flow", ">", 10_000)]),
        ],
    )
    result = compute(scenario)
    assert result.years[0].inputs.tfsa_contribution == 5_000
    assert result.years[0].accounts.tfsa_eoy == 5_000


def test_conditional_schedule_skipped_when_condition_fails():
    scenario = make_test_scenario(
        num_years=1,
        scheduled_items=[
            make_schedule("employment_income", 60_000),
            make_schedule("tfsa_contribution", 5_000, conditions=[_condition("net_cash_flow", ">", 1e9)]),
        ],
    )
    assert compute(scenario).years[0].inputs.tfsa_contribution == 0


def test_percentage_schedule_of_gross_income():
    scenario = make_test_scenario(
        num_years=1,
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=20_000),
        scheduled_items=[
            make_schedule("employment_income", 60_000),
            make_schedule("rrsp_contribution", 0.10, amount_type="percentage", amount_reference="gross_income"),
        ],
    )
    assert compute(scenario).years[0].inputs.rrsp_contribution == pytest.approx(6_000)


def test_room_capped_schedule():
    scenario = make_test_scenario(
        num_years=1,
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=4_000),
        scheduled_items=[make_schedule("rrsp_contribution", 9_000, amount_max_ref="rrsp_room")],
    )
    year = compute(scenario).years[0]
    assert year.inputs.rrsp_contribution == 4_000
    assert _errors(year, "rrsp_contribution") == []


def test_explicit_year_value_beats_schedule():
    scenario = make_test_scenario(
        num_years=2,
        scheduled_items=[make_schedule("employment_income", 60_000)],
        year_overrides=[{"employment_income": 1_000}],
    )
    result = compute(scenario)
    assert result.years[0].inputs.employment_income == 1_000
    assert result.years[1].inputs.employment_income == 60_000


def test_analytics_match_year_totals():
    scenario = make_test_scenario(num_years=3, scheduled_items=[make_schedule("employment_income", 90_000)])
    result = compute(scenario)
    taxes = [yr.tax.total_income_tax for yr in result.years]
    assert result.analytics.lifetime_total_tax == pytest.approx(sum(taxes))
    assert result.analytics.cumulative_total_tax[-1] == pytest.approx(sum(taxes))


def test_sample_scenario_runs(sample_scenario_dict):
    scenario = Scenario.from_dict(sample_scenario_dict)
    result = compute(scenario)
    assert len(result.years) == 30
    assert result.years[4].fhsa_disposition == "home-purchase"
    assert result.years[-1].accounts.net_worth > 0
    assert all(yr.liabilities for yr in result.years)


def _condition(field, operator, value):
    return ScheduleCondition(field=field, operator=operator, value=value)


def test_hundred_thousand_ontario_salary_end_to_end():
    scenario = default_scenario()
    for yd in scenario.years:
        yd.employment_income = 100_000
    first = compute(scenario).years[0]
    assert 10_000 < first.tax.total_income_tax < 40_000
    assert 0 < first.waterfall.after_tax_income < 100_000


def test_plain_schedules_unchanged_by_conditional_pass():
    schedules = [
        make_schedule("employment_income", 85_000, growth_type="inflation"),
        make_schedule("housing_expense", 24_000, growth_type="inflation"),
        make_schedule("rrsp_contribution", 6_000, end_year=2027),
        make_schedule("tfsa_contribution", 3_000, start_year=2027),
    ]
    scenario = make_test_scenario(
        num_years=4,
        opening_carry_forwards=OpeningCarryForwards(rrsp_unused_room=20_000, tfsa_unused_room=20_000),
        scheduled_items=schedules,
    )
    inflation = scenario.assumptions.inflation_rate
    result = compute(scenario)

    merged_years = []
    for raw, computed in zip(scenario.years, result.years):
        assert not has_conditional_schedules(schedules, raw.year)
        pass1 = apply_schedules(raw, schedules, inflation, None, False)
        pass2 = apply_schedules(raw, schedules, inflation, computed, True)
        merged = apply_schedules(pass2, schedules, inflation, None, False)
        assert pass2 == raw
        for item in fields(YearData):
            assert getattr(merged, item.name) == getattr(pass1, item.name)
            assert getattr(computed.inputs, item.name) == getattr(pass1, item.name)
        merged_years.append(merged)

    forced = compute(replace(scenario, years=merged_years, scheduled_items=[]))
    for expected, actual in zip(result.years, forced.years):
        assert actual.tax == expected.tax
        assert actual.accounts == expected.accounts
        assert actual.waterfall == expected.waterfall


def test_inflation_override_of_minus_one_stays_finite():
    scenario = make_test_scenario(
        num_years=3,
        opening_balances=OpeningBalances(savings=10_000),
        year_overrides=[{"inflation_rate_override": -1.0}],
    )
    result = compute(scenario)
    for yr in result.years:
        assert yr.inflation_factor > 0
        assert math.isfinite(yr.real_net_worth)
    assert result.years[0].inflation_factor == pytest.approx(0.01)
