"""Monte Carlo and sensitivity harnesses around the projection engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import math
import random
from typing import Callable

from .engine import ComputedScenario, compute
from .schema import MonteCarloConfig, ReturnDistribution, ReturnSequence, Scenario

logger = logging.getLogger(__name__)

MAX_TRIALS = 2000
DEFAULT_TRIALS = 500
DEFAULT_SENSITIVITY_OFFSETS = (-0.04, -0.02, 0.0, 0.02, 0.04)

_MASK32 = 0xFFFFFFFF


def splitmix32(seed: int) -> Callable[[], float]:
    """Uniform [0, 1) stream used to seed the main generator."""
    state = seed & _MASK32

    def _next() -> float:
        nonlocal state
        state = (state + 0x9E3779B9) & _MASK32
        t = state ^ (state >> 16)
        t = (t * 0x21F0AAAD) & _MASK32
        t ^= t >> 15
        t = (t * 0x735A2D97) & _MASK32
        t ^= t >> 15
        return t / 4294967296.0

    return _next


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (32 - shift))) & _MASK32


class Xoshiro128StarStar:
    """xoshiro128** over 32-bit words; calling the instance yields a float in [0, 1)."""

    __slots__ = ("_s",)

    def __init__(self, seed: int) -> None:
        init = splitmix32(seed)
        self._s = [int(init() * 4294967296.0) & _MASK32 for _ in range(4)]
        if not any(self._s):
            self._s[0] = 1

    def next_u32(self) -> int:
        s = self._s
        result = (_rotl((s[1] * 5) & _MASK32, 7) * 9) & _MASK32
        t = (s[1] << 9) & _MASK32
        s[2] ^= s[0]
        s[3] ^= s[1]
        s[1] ^= s[2]
        s[0] ^= s[3]
        s[2] ^= t
        s[3] = _rotl(s[3], 11)
        return result

    def __call__(self) -> float:
        return self.next_u32() / 4294967296.0


def box_muller(rng: Callable[[], float]) -> float:
    u1 = rng()
    while u1 == 0.0:
        u1 = rng()
    u2 = rng()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def sample_return(dist: ReturnDistribution, rng: Callable[[], float]) -> float:
    if dist.std_dev <= 0:
        return dist.mean
    return dist.mean + dist.std_dev * box_muller(rng)


def _percentile(ordered: list[float], pct: float) -> float:
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    position = (len(ordered) - 1) * pct
    low = int(math.floor(position))
    high = int(math.ceil(position))
    if low == high:
        return ordered[low]
    weight = position - low
    return (ordered[low] * (1.0 - weight)) + (ordered[high] * weight)


@dataclass(slots=True)
class PercentileBands:
    p10: list[float] = field(default_factory=list)
    p25: list[float] = field(default_factory=list)
    p50: list[float] = field(default_factory=list)
    p75: list[float] = field(default_factory=list)
    p90: list[float] = field(default_factory=list)


@dataclass(slots=True)
class DistributionStats:
    mean: float
    median: float
    p10: float
    p25: float
    p75: float
    p90: float
    min: float
    max: float


@dataclass(slots=True)
class MonteCarloResult:
    num_trials: int
    seed: int
    years: list[int]
    net_worth: PercentileBands
    after_tax_income: PercentileBands
    final_net_worth_distribution: list[float]
    final_net_worth_stats: DistributionStats
    probability_of_ruin: float


def _bands(per_trial: list[list[float]], num_years: int) -> PercentileBands:
    bands = PercentileBands()
    for idx in range(num_years):
        values = sorted(trial[idx] for trial in per_trial)
        bands.p10.append(_percentile(values, 0.10))
        bands.p25.append(_percentile(values, 0.25))
        bands.p50.append(_percentile(values, 0.50))
        bands.p75.append(_percentile(values, 0.75))
        bands.p90.append(_percentile(values, 0.90))
    return bands


def default_monte_carlo_config(scenario: Scenario) -> MonteCarloConfig:
    returns = scenario.assumptions.asset_returns
    return MonteCarloConfig(
        num_trials=DEFAULT_TRIALS,
        equity=ReturnDistribution(returns.equity),
        fixed_income=ReturnDistribution(returns.fixed_income),
        cash=ReturnDistribution(returns.cash),
        savings=ReturnDistribution(returns.savings),
    )


def run_monte_carlo(
    scenario: Scenario,
    config: MonteCarloConfig | None = None,
    num_trials: int | None = None,
    seed: int | None = None,
) -> MonteCarloResult:
    """Re-run ``scenario`` with sampled yearly returns and aggregate the trials.

    Explicit ``num_trials``/``seed`` arguments win over the config. Each trial
    draws equity, fixed income, cash and savings returns for every year, in
    that order, from one seeded stream.
    """
    config = config or scenario.monte_carlo or default_monte_carlo_config(scenario)
    trials = num_trials if num_trials is not None else config.num_trials
    trials = max(1, min(trials, MAX_TRIALS))
    if seed is None:
        seed = config.seed
    if seed is None:
        seed = random.randint(1, 2**31 - 1)
    rng = Xoshiro128StarStar(seed)
    num_years = len(scenario.years)
    logger.info("running %d Monte Carlo trials over %d years (seed %d)", trials, num_years, seed)

    all_net_worth: list[list[float]] = []
    all_after_tax: list[list[float]] = []
    final_net_worth: list[float] = []
    ruin_count = 0
    for _ in range(trials):
        equity: list[float] = []
        fixed_income: list[float] = []
        cash: list[float] = []
        savings: list[float] = []
        for _year in range(num_years):
            equity.append(sample_return(config.equity, rng))
            fixed_income.append(sample_return(config.fixed_income, rng))
            cash.append(sample_return(config.cash, rng))
            savings.append(sample_return(config.savings, rng))

        trial = replace(
            scenario,
            return_sequence=ReturnSequence(enabled=True, equity=equity, fixed_income=fixed_income, cash=cash, savings=savings),
        )
        result = compute(trial)
        net_worth = [yr.accounts.net_worth for yr in result.years]
        all_net_worth.append(net_worth)
        all_after_tax.append([yr.waterfall.after_tax_income for yr in result.years])
        final_net_worth.append(net_worth[-1] if net_worth else 0.0)
        if any(value <= 0 for value in net_worth):
            ruin_count += 1

    ordered = sorted(final_net_worth)
    stats = DistributionStats(
        mean=sum(final_net_worth) / len(final_net_worth),
        median=_percentile(ordered, 0.50),
        p10=_percentile(ordered, 0.10),
        p25=_percentile(ordered, 0.25),
        p75=_percentile(ordered, 0.75),
        p90=_percentile(ordered, 0.90),
        min=ordered[0],
        max=ordered[-1],
    )
    return MonteCarloResult(
        num_trials=trials,
        seed=seed,
        years=[yd.year for yd in scenario.years],
        net_worth=_bands(all_net_worth, num_years),
        after_tax_income=_bands(all_after_tax, num_years),
        final_net_worth_distribution=ordered,
        final_net_worth_stats=stats,
        probability_of_ruin=ruin_count / trials * 100.0,
    )


@dataclass(slots=True)
class SensitivityResult:
    label: str
    equity_offset: float
    final_net_worth: float
    lifetime_after_tax: float
    lifetime_tax: float
    final_real_net_worth: float
    yearly_net_worth: list[float]


@dataclass(slots=True)
class SensitivityAnalysis:
    base: SensitivityResult
    scenarios: list[SensitivityResult]


def _offset_label(offset: float) -> str:
    if offset == 0:
        return "Base"
    pct = f"{offset * 100:.0f}%"
    return f"+{pct}" if offset > 0 else pct


def _summarize(label: str, offset: float, result: ComputedScenario) -> SensitivityResult:
    last = result.years[-1] if result.years else None
    return SensitivityResult(
        label=label,
        equity_offset=offset,
        final_net_worth=last.accounts.net_worth if last else 0.0,
        lifetime_after_tax=result.analytics.lifetime_after_tax_income,
        lifetime_tax=result.analytics.lifetime_total_tax,
        final_real_net_worth=last.real_net_worth if last else 0.0,
        yearly_net_worth=[yr.accounts.net_worth for yr in result.years],
    )


def compute_sensitivity(scenario: Scenario, offsets: list[float] | tuple[float, ...] = DEFAULT_SENSITIVITY_OFFSETS) -> SensitivityAnalysis:
    """Shift the base equity return by each offset and re-run the projection."""
    ass = scenario.assumptions
    results: list[SensitivityResult] = []
    for offset in offsets:
        returns = replace(ass.asset_returns, equity=ass.asset_returns.equity + offset)
        variant = replace(scenario, assumptions=replace(ass, asset_returns=returns))
        results.append(_summarize(_offset_label(offset), offset, compute(variant)))
    logger.info("sensitivity run over %d equity offsets", len(results))

    base = next((item for item in results if item.equity_offset == 0), results[len(results) // 2])
    return SensitivityAnalysis(base=base, scenarios=results)
