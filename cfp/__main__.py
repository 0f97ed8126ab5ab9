"""CLI entry point for the projection engine."""

from __future__ import annotations

import argparse
from dataclasses import asdict
import json
import logging
from pathlib import Path
import sys

from .engine import compute
from .schema import SchemaError, Scenario, load_scenario
from .simulation import compute_sensitivity, run_monte_carlo
from .validate import validate_scenario
from .what_if import PRESET_IDS, apply_what_if, get_preset
from .withdrawals import compute_withdrawal_strategies

logger = logging.getLogger(__name__)

MODES = ("deterministic", "monte_carlo", "sensitivity", "optimizer")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Canadian Financial Projection")
    parser.add_argument("scenario", help="Path to scenario JSON file")
    parser.add_argument("-o", "--output", help="Write the computed result as JSON to this path")
    parser.add_argument("--mode", choices=MODES, default="deterministic", help="Run mode (default: deterministic)")
    parser.add_argument("--runs", type=int, help="Override Monte Carlo trial count")
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument("--target", type=float, help="Annual withdrawal target for the optimizer")
    parser.add_argument("--start-index", type=int, default=0, help="Year index where optimizer withdrawals begin")
    parser.add_argument("--what-if", choices=PRESET_IDS, help="Apply a what-if preset before running")
    parser.add_argument("--validate", action="store_true", help="Validate JSON only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.WARNING
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _run(scenario: Scenario, args: argparse.Namespace) -> object:
    if args.mode == "monte_carlo":
        result = run_monte_carlo(scenario, num_trials=args.runs, seed=args.seed)
        if args.summary:
            stats = result.final_net_worth_stats
            print(f"Mode: monte_carlo ({result.num_trials} trials, seed {result.seed})")
            print(f"Final net worth p10/p50/p90: {_money(stats.p10)} / {_money(stats.median)} / {_money(stats.p90)}")
            print(f"Probability of ruin: {result.probability_of_ruin:.1f}%")
        return result

    if args.mode == "sensitivity":
        analysis = compute_sensitivity(scenario)
        if args.summary:
            print("Mode: sensitivity")
            for item in analysis.scenarios:
                print(f"{item.label:>5}: final net worth {_money(item.final_net_worth)}, lifetime tax {_money(item.lifetime_tax)}")
        return analysis

    if args.mode == "optimizer":
        strategies = compute_withdrawal_strategies(scenario, args.target or 0.0, args.start_index)
        if args.summary:
            print("Mode: optimizer")
            for item in strategies:
                print(
                    f"{item.name}: lifetime tax {_money(item.lifetime_tax)}, "
                    f"final net worth {_money(item.final_net_worth)}, avg rate {item.avg_tax_rate:.1%}"
                )
        return strategies

    computed = compute(scenario)
    if args.summary and computed.years:
        first = computed.years[0]
        last = computed.years[-1]
        analytics = computed.analytics
        errors = sum(1 for yr in computed.years for w in yr.warnings if w.severity == "error")
        print("Mode: deterministic")
        print(f"Years: {first.year}-{last.year}")
        print(f"Ending net worth: {_money(last.accounts.net_worth)} ({_money(last.real_net_worth)} real)")
        print(f"Lifetime tax: {_money(analytics.lifetime_total_tax)} ({analytics.lifetime_avg_tax_rate:.1%} average)")
        print(f"Lifetime after-tax income: {_money(analytics.lifetime_after_tax_income)}")
        print(f"Rule violations: {errors}")
    return computed


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    if args.mode == "optimizer" and (args.target is None or args.target <= 0):
        print("--target must be > 0 for optimizer mode", file=sys.stderr)
        return 2
    if args.runs is not None and args.runs <= 0:
        print("--runs must be > 0", file=sys.stderr)
        return 2

    try:
        scenario = load_scenario(args.scenario)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load scenario: {exc}", file=sys.stderr)
        return 2
    logger.debug("loaded scenario %s with %d years", scenario.id, len(scenario.years))

    validation = validate_scenario(scenario)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Scenario is valid.")
        return 0

    if args.what_if:
        preset = get_preset(args.what_if)
        scenario = apply_what_if(scenario, preset.adjustments)
        if args.summary:
            print(f"What-if: {preset.label} ({preset.description})")

    result = _run(scenario, args)
    if args.output:
        Path(args.output).write_text(json.dumps(_to_json(result), indent=2), encoding="utf-8")
        print(f"Wrote result to {Path(args.output)}")
    return 0


def _to_json(result: object) -> object:
    if isinstance(result, list):
        return [asdict(item) for item in result]
    return asdict(result)


if __name__ == "__main__":
    raise SystemExit(main())
