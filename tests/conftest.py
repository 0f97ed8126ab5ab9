import json
from pathlib import Path

import pytest

from cfp.schema import default_assumptions


@pytest.fixture
def sample_scenario_dict() -> dict:
    return json.loads(Path("sample_scenario.json").read_text(encoding="utf-8"))


@pytest.fixture
def ass():
    return default_assumptions()
