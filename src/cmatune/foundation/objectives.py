"""
Benchmark objective functions for single-objective continuous minimization.

Each objective maps a 1-D coordinate vector to a float. The registry backs
the command line runner and the test suite.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from .exceptions import InvalidObjectiveError

Objective = Callable[[np.ndarray], float]


def sphere(x: np.ndarray) -> float:
    return float(np.sum(x**2))


def ellipsoid(x: np.ndarray) -> float:
    """Axis-parallel ellipsoid with condition number 1e6."""
    n = x.shape[0]
    if n == 1:
        return float(x[0] ** 2)
    scales = 1e6 ** (np.arange(n) / (n - 1))
    return float(np.sum(scales * x**2))


def rosenbrock(x: np.ndarray) -> float:
    return float(np.sum(100.0 * (x[1:] - x[:-1] ** 2) ** 2 + (1.0 - x[:-1]) ** 2))


def rastrigin(x: np.ndarray) -> float:
    return float(10.0 * x.shape[0] + np.sum(x**2 - 10.0 * np.cos(2.0 * np.pi * x)))


def shifted_quartic(x: np.ndarray) -> float:
    """(x0 - 3)^2 + (x2 - 1)^4, minimal at x0 = 3, x2 = 1 with x1 free."""
    return float((x[0] - 3.0) ** 2 + (x[2] - 1.0) ** 4)


@dataclass(frozen=True)
class ObjectiveSpec:
    key: str
    function: Objective
    description: str
    min_dimension: int = 1


_OBJECTIVE_SPECS: dict[str, ObjectiveSpec] = {
    spec.key: spec
    for spec in (
        ObjectiveSpec("sphere", sphere, "Sum of squares"),
        ObjectiveSpec("ellipsoid", ellipsoid, "Ill-conditioned separable ellipsoid"),
        ObjectiveSpec("rosenbrock", rosenbrock, "Rosenbrock valley", min_dimension=2),
        ObjectiveSpec("rastrigin", rastrigin, "Multimodal Rastrigin function"),
        ObjectiveSpec("shifted_quartic", shifted_quartic, "(x0-3)^2 + (x2-1)^4", min_dimension=3),
    )
}


def available_objectives() -> tuple[str, ...]:
    return tuple(_OBJECTIVE_SPECS.keys())


def get_objective_spec(name: str) -> ObjectiveSpec:
    key = name.strip().lower()
    try:
        return _OBJECTIVE_SPECS[key]
    except KeyError:
        raise InvalidObjectiveError(name, list(available_objectives())) from None


def get_objective(name: str) -> Objective:
    return get_objective_spec(name).function


__all__ = [
    "Objective",
    "ObjectiveSpec",
    "sphere",
    "ellipsoid",
    "rosenbrock",
    "rastrigin",
    "shifted_quartic",
    "available_objectives",
    "get_objective_spec",
    "get_objective",
]
