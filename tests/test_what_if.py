import pytest

from cfp.assumptions import round_half_up
from cfp.engine import compute
from cfp.schema import OpeningCarryForwards, ScheduleCondition, Scenario
from cfp.what_if import (
    PRESET_IDS,
    WHAT_IF_PRESETS,
    WhatIfAdjustments,
    adjust_year_inputs,
    apply_what_if,
    get_preset,
    is_what_if_active,
    shift_brackets,
)
from tests.helpers import make_schedule, make_test_scenario, make_year


def test_defaults_are_inactive():
    assert not is_what_if_active(WhatIfAdjustments())
    assert not is_what_if_active(None)
    assert is_what_if_active(WhatIfAdjustments(income_scale=1.1))
    assert is_what_if_active(WhatIfAdjustments(contribution_strategy="max-tfsa"))


def test_inactive_adjustments_return_same_scenario():
    scenario = make_test_scenario(num_years=2)
    assert apply_what_if(scenario, WhatIfAdjustments()) is scenario


def test_invalid_strategy_rejected():
    with pytest.raises(ValueError, match="contribution_strategy"):
        WhatIfAdjustments(contribution_strategy="max-fhsa")
    with pytest.raises(ValueError, match="equity_allocation"):
        WhatIfAdjustments(equity_allocation=1.5)


def test_macro_adjustments_leave_original_untouched():
    scenario = make_test_scenario(num_years=2)
    scenario.assumptions.asset_returns.equity = 0.06
    adjusted = apply_what_if(scenario, WhatIfAdjustments(inflation_adj=0.01, equity_return_adj=-0.15, savings_return_adj=0.005))
    assert adjusted.assumptions.inflation_rate == pytest.approx(0.035)
    assert adjusted.assumptions.asset_returns.equity == pytest.approx(-0.09)
    assert adjusted.assumptions.asset_returns.savings == pytest.approx(0.005)
    assert scenario.assumptions.inflation_rate == 0.025
    assert scenario.assumptions.asset_returns.equity == 0.06
    assert scenario.what_if is None
    assert adjusted.what_if is not None


def test_bracket_shift_moves_thresholds_and_bpa():
    scenario = make_test_scenario(num_years=1)
    ass = scenario.assumptions
    adjusted = apply_what_if(scenario, WhatIfAdjustments(federal_bracket_shift=-0.10)).assumptions
    for before, after in zip(ass.federal_brackets, adjusted.federal_brackets):
        assert after.min == round_half_up(before.min * 0.9)
        assert after.rate == before.rate
    assert adjusted.federal_brackets[-1].max is None
    assert adjusted.federal_bpa == round_half_up(ass.federal_bpa * 0.9)
    assert adjusted.provincial_brackets == ass.provincial_brackets
    assert adjusted.provincial_bpa == ass.provincial_bpa


def test_zero_shift_copies_brackets():
    brackets = make_test_scenario(num_years=1).assumptions.federal_brackets
    shifted = shift_brackets(brackets, 0)
    assert shifted == brackets
    assert shifted is not brackets


def test_tax_hike_preset_raises_tax():
    scenario = make_test_scenario(num_years=2, scheduled_items=[make_schedule("employment_income", 100_000)])
    base = compute(scenario).years[0].tax.total_income_tax
    hiked = compute(apply_what_if(scenario, get_preset("tax-rate-hike").adjustments)).years[0]
    assert hiked.tax.total_income_tax > base
    assert hiked.resolved_assumptions.capital_gains_inclusion_rate == 0.6667


def test_benefit_start_age_overrides():
    scenario = make_test_scenario(num_years=1)
    adjusted = apply_what_if(scenario, WhatIfAdjustments(cpp_start_age=60, oas_start_age=67))
    assert adjusted.assumptions.retirement.cpp_benefit.start_age == 60
    assert adjusted.assumptions.retirement.oas_benefit.start_age == 67
    assert scenario.assumptions.retirement.cpp_benefit.start_age == 65


def test_monte_carlo_means_follow_return_shift(sample_scenario_dict):
    scenario = Scenario.from_dict(sample_scenario_dict)
    adjusted = apply_what_if(scenario, get_preset("bear-market").adjustments)
    assert adjusted.monte_carlo.equity.mean == pytest.approx(0.06 - 0.15)
    assert adjusted.monte_carlo.equity.std_dev == 0.15
    assert adjusted.monte_carlo.fixed_income.mean == pytest.approx(0.04)
    assert scenario.monte_carlo.equity.mean == 0.06


def test_year_scaling():
    yd = make_year(employment_income=100_000, eligible_dividends=1_000, interest_income=400, housing_expense=20_000)
    adjusted = adjust_year_inputs(yd, WhatIfAdjustments(income_scale=1.1, employment_income_scale=0.5, interest_income_scale=0.5))
    assert adjusted.employment_income == pytest.approx(55_000)
    assert adjusted.eligible_dividends == pytest.approx(1_100)
    assert adjusted.interest_income == pytest.approx(220)
    assert adjusted.housing_expense == 20_000
    assert yd.employment_income == 100_000


def test_contribution_and_expense_scaling():
    yd = make_year(rrsp_contribution=5_000, rrsp_deduction_claimed=5_000, tfsa_contribution=2_000, savings_deposit=1_000, groceries_expense=8_000)
    adjusted = adjust_year_inputs(
        yd, WhatIfAdjustments(contribution_scale=1.5, rrsp_contribution_scale=2.0, living_expense_scale=0.8)
    )
    assert adjusted.rrsp_contribution == pytest.approx(15_000)
    assert adjusted.rrsp_deduction_claimed == pytest.approx(15_000)
    assert adjusted.tfsa_contribution == pytest.approx(3_000)
    assert adjusted.savings_deposit == pytest.approx(1_500)
    assert adjusted.groceries_expense == pytest.approx(6_400)


def test_max_rrsp_redirects_tfsa_and_fhsa():
    yd = make_year(rrsp_contribution=5_000, rrsp_deduction_claimed=5_000, tfsa_contribution=2_000, fhsa_contribution=3_000, fhsa_deduction_claimed=3_000)
    adjusted = adjust_year_inputs(yd, WhatIfAdjustments(contribution_strategy="max-rrsp"))
    assert adjusted.rrsp_contribution == 10_000
    assert adjusted.rrsp_deduction_claimed == 10_000
    assert adjusted.tfsa_contribution == 0
    assert adjusted.fhsa_contribution == 0
    assert adjusted.fhsa_deduction_claimed == 0


def test_max_tfsa_redirects_rrsp_and_fhsa():
    yd = make_year(rrsp_contribution=5_000, rrsp_deduction_claimed=5_000, tfsa_contribution=2_000, fhsa_contribution=3_000, fhsa_deduction_claimed=3_000)
    adjusted = adjust_year_inputs(yd, WhatIfAdjustments(contribution_strategy="max-tfsa"))
    assert adjusted.tfsa_contribution == 10_000
    assert adjusted.rrsp_contribution == 0
    assert adjusted.rrsp_deduction_claimed == 0
    assert adjusted.fhsa_contribution == 0


def test_allocation_and_withdrawal_levers():
    adjusted = adjust_year_inputs(make_year(rrsp_withdrawal=1_000), WhatIfAdjustments(equity_allocation=0.9, rrsp_withdrawal_adj=15_000))
    assert adjusted.rrsp_withdrawal == 16_000
    assert adjusted.rrsp_equity_pct == 0.9
    assert adjusted.tfsa_fixed_pct == pytest.approx(0.1)
    assert adjusted.non_reg_cash_pct == 0
    assert adjusted.li_equity_pct == 0
    assert adjusted.li_fixed_pct == 1


def test_engine_scales_scheduled_amounts():
    scenario = make_test_scenario(num_years=3, scheduled_items=[make_schedule("employment_income", 80_000)])
    adjusted = apply_what_if(scenario, WhatIfAdjustments(income_scale=0.5))
    assert [yr.inputs.employment_income for yr in compute(adjusted).years] == [40_000, 40_000, 40_000]
    assert [yr.inputs.employment_income for yr in compute(scenario).years] == [80_000, 80_000, 80_000]


def test_redirect_applies_to_conditional_schedules():
    scenario = make_test_scenario(
        num_years=1,
        opening_carry_forwards=OpeningCarryForwards(tfsa_unused_room=50_000, rrsp_unused_room=50_000),
        scheduled_items=[
            make_schedule("employment_income", 60_000),
            make_schedule(
                "tfsa_contribution",
                5_000,
                conditions=[ScheduleCondition(field="net_cash_flow", operator=">", value=10_000)],
            ),
        ],
    )
    year = compute(apply_what_if(scenario, WhatIfAdjustments(contribution_strategy="max-rrsp"))).years[0]
    assert year.inputs.tfsa_contribution == 0
    assert year.inputs.rrsp_contribution == 5_000
    assert year.inputs.rrsp_deduction_claimed == 5_000
    assert year.accounts.rrsp_eoy == 5_000


def test_presets_are_unique_and_active():
    assert len(PRESET_IDS) == len(set(PRESET_IDS)) == 7
    assert all(is_what_if_active(preset.adjustments) for preset in WHAT_IF_PRESETS)
    assert get_preset("high-growth").adjustments.equity_allocation == 0.9


def test_unknown_preset_raises():
    with pytest.raises(KeyError, match="unknown what-if preset"):
        get_preset("moonshot")


@pytest.mark.parametrize("preset_id", PRESET_IDS)
def test_every_preset_runs_on_sample(sample_scenario_dict, preset_id):
    scenario = Scenario.from_dict(sample_scenario_dict)
    scenario.years = scenario.years[:6]
    result = compute(apply_what_if(scenario, get_preset(preset_id).adjustments))
    assert len(result.years) == 6
