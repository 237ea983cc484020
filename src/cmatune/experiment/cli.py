from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from typing import Any

from cmatune.engine.cmaes.runner import minimize
from cmatune.foundation.exceptions import CheckpointError, ConfigurationError
from cmatune.foundation.logging import configure_cmatune_logging, levels_for_verbosity
from cmatune.foundation.objectives import available_objectives, get_objective
from cmatune.experiment.run_config import RunConfig, load_run_config

EXIT_CHECKPOINT_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2


def _parse_float_list(parser: argparse.ArgumentParser, flag: str, raw: str | None) -> list[float] | None:
    if raw is None:
        return None
    try:
        return [float(item) for item in raw.split(",") if item.strip()]
    except ValueError:
        parser.error(f"{flag} must be a comma-separated list of numbers; got '{raw}'.")
    return None  # pragma: no cover - parser.error exits


def _parse_positive_float(parser: argparse.ArgumentParser, flag: str, raw: float | None) -> float | None:
    if raw is None:
        return None
    if raw <= 0.0:
        parser.error(f"{flag} must be positive.")
    return raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmatune",
        description="Minimize a benchmark objective with CMA-ES.",
    )
    parser.add_argument("--config", help="YAML or JSON run configuration; flags override its values.")
    parser.add_argument("--objective", choices=available_objectives(), help="Objective to minimize.")
    parser.add_argument("--dimension", type=int, help="Search space dimension.")
    parser.add_argument("--population-size", type=int, help="Search points per generation (lambda).")
    parser.add_argument("--step-size", type=float, help="Initial step size (sigma).")
    parser.add_argument("--max-iterations", type=int, help="Generation budget.")
    parser.add_argument("--seed", type=int, help="Random seed.")
    parser.add_argument("--lower", help="Comma-separated lower bounds.")
    parser.add_argument("--upper", help="Comma-separated upper bounds.")
    parser.add_argument("--status-path", help="Checkpoint file written after every generation.")
    parser.add_argument("--resume", action="store_true", help="Continue from --status-path if it exists.")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON.")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="count", default=0, help="Also log the engine's per-step details."
    )
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    return parser


def _collect_overrides(parser: argparse.ArgumentParser, args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {
        "objective": args.objective,
        "dimension": args.dimension,
        "population_size": args.population_size,
        "step_size": _parse_positive_float(parser, "--step-size", args.step_size),
        "max_iterations": args.max_iterations,
        "seed": args.seed,
        "lower_bounds": _parse_float_list(parser, "--lower", args.lower),
        "upper_bounds": _parse_float_list(parser, "--upper", args.upper),
        "status_path": args.status_path,
        "resume": True if args.resume else None,
    }
    return {key: value for key, value in overrides.items() if value is not None}


def resolve_run_config(parser: argparse.ArgumentParser, args: argparse.Namespace) -> RunConfig:
    overrides = _collect_overrides(parser, args)
    if args.config:
        return load_run_config(args.config, **overrides)
    return RunConfig.from_dict(overrides)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level, engine_level = levels_for_verbosity(-1 if args.quiet else args.verbose)
    configure_cmatune_logging(level=level, engine_level=engine_level)

    try:
        run_config = resolve_run_config(parser, args)
        result = minimize(
            get_objective(run_config.objective),
            run_config.to_configuration(),
            run_config.termination_criteria(),
            lower_bounds=run_config.lower_bounds,
            upper_bounds=run_config.upper_bounds,
            seed=run_config.seed,
            status_path=run_config.status_path,
            resume=run_config.resume,
        )
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except CheckpointError as exc:
        print(f"Checkpoint error: {exc}", file=sys.stderr)
        return EXIT_CHECKPOINT_ERROR

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"objective:   {run_config.objective}")
        print(f"generations: {result.generations}")
        print(f"best f:      {result.best_f:.6g}")
        print(f"best x:      {', '.join(f'{value:.6g}' for value in result.best_x)}")
        print(f"step size:   {result.step_size:.4g}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
