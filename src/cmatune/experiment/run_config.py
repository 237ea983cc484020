"""
Run configuration for command line and file-driven CMA-ES runs.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import numpy as np

from cmatune.engine.cmaes.bounded import standardize_values, validate_bounds
from cmatune.engine.cmaes.config import CmaEsConfiguration
from cmatune.engine.cmaes.termination import TerminationCriterion, default_termination_criteria
from cmatune.foundation.exceptions import ConfigurationError
from cmatune.foundation.objectives import get_objective_spec


def default_population_size(dimension: int) -> int:
    """Hansen's default lambda = 4 + floor(3 ln n)."""
    return 4 + int(math.floor(3 * math.log(dimension)))


@dataclass
class RunConfig:
    objective: str = "sphere"
    dimension: int = 10
    population_size: int | None = None
    step_size: float = 0.3
    initial_mean: list[float] | None = None
    lower_bounds: list[float] | None = None
    upper_bounds: list[float] | None = None
    max_iterations: int = 100
    seed: int | None = None
    status_path: str | None = None
    resume: bool = False

    def __post_init__(self) -> None:
        spec = get_objective_spec(self.objective)
        if self.dimension < spec.min_dimension:
            raise ConfigurationError(
                f"Objective '{spec.key}' needs at least {spec.min_dimension} dimensions, got {self.dimension}."
            )
        if self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be at least 1, got {self.max_iterations}.")
        if (self.lower_bounds is None) != (self.upper_bounds is None):
            raise ConfigurationError("lower_bounds and upper_bounds must be given together.")
        if self.initial_mean is not None and len(self.initial_mean) != self.dimension:
            raise ConfigurationError(
                f"initial_mean has {len(self.initial_mean)} entries but dimension is {self.dimension}."
            )
        if self.resume and not self.status_path:
            raise ConfigurationError("resume requires status_path.")
        if self.is_bounded:
            validate_bounds(self.lower_bounds, self.upper_bounds, self.dimension)

    @property
    def is_bounded(self) -> bool:
        return self.lower_bounds is not None and self.upper_bounds is not None

    def resolved_population_size(self) -> int:
        if self.population_size is not None:
            return self.population_size
        return default_population_size(self.dimension)

    def to_configuration(self) -> CmaEsConfiguration:
        """Build the CMA-ES configuration; bounded means are standardized into internal coordinates."""
        if self.initial_mean is not None:
            mean = np.array(self.initial_mean, dtype=float)
        elif self.is_bounded:
            mean = (np.array(self.lower_bounds, dtype=float) + np.array(self.upper_bounds, dtype=float)) / 2.0
        else:
            mean = np.zeros(self.dimension)
        if self.is_bounded:
            mean = standardize_values(mean, self.lower_bounds, self.upper_bounds)
        return CmaEsConfiguration(self.resolved_population_size(), mean, self.step_size)

    def termination_criteria(self) -> list[TerminationCriterion]:
        return default_termination_criteria(self.max_iterations)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RunConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown run configuration keys: {', '.join(unknown)}",
                suggestion=f"Valid keys: {', '.join(sorted(known))}",
            )
        return cls(**payload)


def load_run_spec(path: str | Path) -> dict[str, Any]:
    """
    Load a YAML or JSON run specification.

    Raises FileNotFoundError for a missing file and ConfigurationError when the
    file does not parse.
    """
    spec_path = Path(path).expanduser().resolve()
    if not spec_path.exists():
        raise FileNotFoundError(f"Config file '{spec_path}' does not exist.")
    suffix = spec_path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        with spec_path.open("r", encoding="utf-8") as fh:
            try:
                return yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Config file '{spec_path}' is not valid YAML: {exc}") from exc
    with spec_path.open("r", encoding="utf-8") as fh:
        try:
            return json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Config file '{spec_path}' is not valid JSON: {exc}") from exc


def load_run_config(path: str | Path, **overrides: Any) -> RunConfig:
    raw = load_run_spec(path)
    if not isinstance(raw, dict):
        raise ConfigurationError("Run configuration must be a mapping (YAML/JSON object).")
    raw.update({key: value for key, value in overrides.items() if value is not None})
    return RunConfig.from_dict(raw)


__all__ = ["RunConfig", "default_population_size", "load_run_spec", "load_run_config"]
