"""Batch minimization loop around the CMA-ES engine."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import numpy as np

from cmatune.foundation.exceptions import ConfigurationError
from cmatune.foundation.search_point import ObjectiveSorter, SearchPoint

from .bounded import BoundedSearchPoint, validate_bounds
from .cmaes import CmaEs
from .config import CmaEsConfiguration
from .termination import TerminationCriterion

logger = logging.getLogger(__name__)


@dataclass
class CmaEsResult:
    """Outcome of :func:`minimize`.

    ``best_x`` is given in the caller's coordinates, i.e. already mapped
    into the bounds for bounded runs.
    """

    best_x: np.ndarray
    best_f: float
    generations: int
    step_size: float
    distribution_mean: np.ndarray
    history: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "best_x": self.best_x.tolist(),
            "best_f": self.best_f,
            "generations": self.generations,
            "step_size": self.step_size,
            "distribution_mean": self.distribution_mean.tolist(),
            "history": list(self.history),
        }


def _point_coordinates(point: SearchPoint) -> np.ndarray:
    if isinstance(point, BoundedSearchPoint):
        return point.map_into_bounds()
    return np.array(point.values, dtype=float)


def minimize(
    objective: Callable[[np.ndarray], float],
    configuration: CmaEsConfiguration,
    termination_criteria: Iterable[TerminationCriterion],
    *,
    lower_bounds: Sequence[float] | None = None,
    upper_bounds: Sequence[float] | None = None,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    status_path: str | Path | None = None,
    resume: bool = False,
    callback: Callable[[int, list[SearchPoint]], None] | None = None,
) -> CmaEsResult:
    """Minimize ``objective`` with CMA-ES until a termination criterion is met.

    Parameters
    ----------
    objective : callable
        Function of a coordinate vector to minimize.
    configuration : CmaEsConfiguration
        Strategy configuration. For bounded runs the initial mean must be in
        internal coordinates (see ``standardize_values``).
    termination_criteria : iterable of TerminationCriterion
        At least one criterion.
    lower_bounds, upper_bounds : sequence of float, optional
        Box constraints; give both or neither.
    rng : numpy.random.Generator, optional
        Random source. Built from ``seed`` when omitted.
    seed : int, optional
        Seed for a fresh generator; ignored when ``rng`` is given.
    status_path : path, optional
        Where to write a checkpoint after every generation.
    resume : bool
        Continue from ``status_path`` if the file exists, including the
        stored random state. The stored configuration and criteria then
        replace the given ones. A stored run that already meets a
        criterion is returned as is, with the stored mean as best point.
    callback : callable, optional
        Called as ``callback(generation, population)`` after each generation.

    Returns
    -------
    CmaEsResult
        Best point of the last generation and run statistics.
    """
    if (lower_bounds is None) != (upper_bounds is None):
        raise ConfigurationError("Lower and upper bounds must be given together.")
    if resume and status_path is None:
        raise ConfigurationError("Resuming requires a status path.")

    if lower_bounds is not None and upper_bounds is not None:
        lower, upper = validate_bounds(lower_bounds, upper_bounds, configuration.search_space_dimension)
        factory: Callable[[np.ndarray], SearchPoint] = BoundedSearchPoint.factory(lower, upper)
    else:
        factory = SearchPoint

    sorter: ObjectiveSorter[SearchPoint] = ObjectiveSorter(objective, transform=_point_coordinates)
    generator = rng if rng is not None else np.random.default_rng(seed)
    engine: CmaEs[SearchPoint] = CmaEs(sorter, factory, rng=generator)

    if resume and status_path is not None and Path(status_path).exists():
        engine.load_checkpoint(status_path, restore_random_state=True)
        logger.info("Resuming CMA-ES from %s at generation %d", status_path, engine.elements().generation)
        if engine.any_termination_met():
            logger.info("Stored run already finished; no further generations.")
            return _stored_result(engine, factory, sorter)
    else:
        engine.initialize(configuration, termination_criteria)

    history: list[float] = []
    population: list[SearchPoint] = []
    best_f = float("inf")
    while True:
        population = engine.advance()
        best_f = sorter.best_score
        history.append(best_f)
        elements = engine.elements()
        logger.info(
            "Generation %d: best f=%.6g, step size=%.4g",
            elements.generation,
            best_f,
            elements.step_size,
        )
        if callback is not None:
            callback(elements.generation, population)
        if status_path is not None:
            engine.dump_checkpoint(status_path)
        if engine.any_termination_met():
            break

    elements = engine.elements()
    return CmaEsResult(
        best_x=_point_coordinates(population[0]),
        best_f=best_f,
        generations=elements.generation,
        step_size=elements.step_size,
        distribution_mean=cast(np.ndarray, elements.distribution_mean),
        history=history,
    )


def _stored_result(
    engine: CmaEs[SearchPoint],
    factory: Callable[[np.ndarray], SearchPoint],
    sorter: ObjectiveSorter[SearchPoint],
) -> CmaEsResult:
    # No population survives a checkpoint; report the distribution mean instead.
    elements = engine.elements()
    mean = cast(np.ndarray, elements.distribution_mean)
    point = factory(mean)
    return CmaEsResult(
        best_x=_point_coordinates(point),
        best_f=sorter.evaluate(point),
        generations=elements.generation,
        step_size=elements.step_size,
        distribution_mean=mean,
    )


__all__ = ["CmaEsResult", "minimize"]
