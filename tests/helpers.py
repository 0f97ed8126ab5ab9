import copy
import itertools
import json
from pathlib import Path

from cfp.schema import ScheduledItem, Scenario, YearData, default_scenario

_ids = itertools.count(1)


def make_test_scenario(num_years: int | None = 5, year_overrides: list[dict] | None = None, **overrides) -> Scenario:
    """Zero-valued Ontario scenario starting in 2026; keyword overrides replace Scenario fields."""
    scenario = default_scenario("Test", num_years=num_years)
    for key, value in overrides.items():
        setattr(scenario, key, value)
    for idx, values in enumerate(year_overrides or []):
        for key, value in values.items():
            setattr(scenario.years[idx], key, value)
    return scenario


def make_year(year: int = 2026, **values) -> YearData:
    yd = YearData(year=year)
    for key, value in values.items():
        setattr(yd, key, value)
    return yd


def make_schedule(field: str = "employment_income", amount: float = 1000.0, start_year: int = 2026, **kwargs) -> ScheduledItem:
    return ScheduledItem(
        id=kwargs.pop("id", f"rule-{next(_ids)}"),
        label=kwargs.pop("label", "Test Rule"),
        field=field,
        start_year=start_year,
        amount=amount,
        **kwargs,
    )


def write_scenario(tmp_path: Path, data: dict, filename: str = "scenario.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_data(data: dict) -> dict:
    return copy.deepcopy(data)
