"""
Termination criteria for CMA-ES.

Criteria are predicates over a :class:`CmaEsElements` snapshot. They are
persisted as tagged payloads (``{"kind": ..., **fields}``) and rebuilt from
the closed set of kinds in :data:`CRITERION_KINDS`; rebuilt criteria pass
through ``restore()`` so they can re-create state that plain data does not
carry.

The thresholds follow the stopping criteria listed in Hansen's tutorial.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, cast

import numpy as np

from cmatune.foundation.exceptions import CheckpointError, ConfigurationError, InvalidElementsError

from .config import CmaEsConfiguration
from .elements import CmaEsElements


def _require_snapshot(data: CmaEsElements | None) -> CmaEsElements:
    if data is None:
        raise InvalidElementsError("A CMA-ES snapshot is required to evaluate a termination criterion.")
    return data


def _require_complete(data: CmaEsElements | None) -> CmaEsElements:
    data = _require_snapshot(data)
    if not data.is_completely_specified():
        raise InvalidElementsError("Data must be completely specified for this termination criterion.")
    return data


class TerminationCriterion(ABC):
    """Predicate deciding whether a CMA-ES run should stop."""

    kind: ClassVar[str]

    @abstractmethod
    def is_met(self, data: CmaEsElements) -> bool:
        """Return True if the run described by ``data`` should stop."""

    def restore(self) -> "TerminationCriterion":
        """Re-create state lost by generic deserialization. Stateless criteria return themselves."""
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TerminationCriterion):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.to_dict().items())))

    def __repr__(self) -> str:
        fields = {key: value for key, value in self.to_dict().items() if key != "kind"}
        args = ", ".join(f"{key}={value!r}" for key, value in fields.items())
        return f"{type(self).__name__}({args})"


class MaxIterations(TerminationCriterion):
    """Stops after a fixed number of generations."""

    kind = "max_iterations"

    def __init__(self, maximum: int) -> None:
        if maximum < 1:
            raise ConfigurationError(
                f"CMA-ES needs at least 1 generation, but was provided with a maximum of {maximum}."
            )
        self.maximum = int(maximum)

    def is_met(self, data: CmaEsElements) -> bool:
        return _require_snapshot(data).generation >= self.maximum

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "maximum": self.maximum}


class ConditionCov(TerminationCriterion):
    """Stops once the covariance matrix becomes too ill-conditioned."""

    kind = "condition_cov"
    MAX_CONDITION: ClassVar[float] = 1e14

    def is_met(self, data: CmaEsElements) -> bool:
        covariances = _require_snapshot(data).covariances
        if covariances is None:
            raise InvalidElementsError("Data must have the covariance matrix set for this termination criterion.")
        return bool(np.linalg.cond(covariances) > self.MAX_CONDITION)


class NoEffectAxis(TerminationCriterion):
    """Stops if adding 0.1 standard deviations along a principal axis leaves the mean unchanged.

    The axis cycles with the generation index.
    """

    kind = "no_effect_axis"

    def is_met(self, data: CmaEsElements) -> bool:
        data = _require_complete(data)
        configuration = cast(CmaEsConfiguration, data.configuration)
        index = data.generation % configuration.search_space_dimension
        eigenvalues = data.eigenvalues
        eigenvectors = data.covariances_eigenvectors
        mean = data.distribution_mean
        principal_axis = np.sqrt(eigenvalues[index]) * eigenvectors[:, index]
        shifted_mean = mean + (0.1 * data.step_size) * principal_axis
        # Can only happen through floating point absorption.
        return bool(np.array_equal(mean, shifted_mean))


class NoEffectCoord(TerminationCriterion):
    """Stops if adding 0.2 standard deviations in some coordinate leaves the mean unchanged."""

    kind = "no_effect_coord"

    def is_met(self, data: CmaEsElements) -> bool:
        data = _require_complete(data)
        mean = data.distribution_mean
        shifted_mean = mean + (0.2 * data.step_size) * np.diag(data.covariances)
        return bool(np.any(mean == shifted_mean))


class TolUpSigma(TerminationCriterion):
    """Stops if sigma grew far beyond its start relative to the largest axis.

    Usually signals a too small initial step size or divergent behavior.
    """

    kind = "tol_up_sigma"
    MAX_FACTOR: ClassVar[float] = 1e4

    def is_met(self, data: CmaEsElements) -> bool:
        data = _require_complete(data)
        largest_eigenvalue = float(np.max(data.eigenvalues))
        growth = data.step_size / cast(CmaEsConfiguration, data.configuration).initial_step_size
        return bool(growth > self.MAX_FACTOR * np.sqrt(largest_eigenvalue))


CRITERION_KINDS: dict[str, type[TerminationCriterion]] = {
    cls.kind: cls for cls in (MaxIterations, ConditionCov, NoEffectAxis, NoEffectCoord, TolUpSigma)
}


def criterion_from_dict(payload: dict[str, Any]) -> TerminationCriterion:
    """Rebuild a criterion from its tagged payload and restore it."""
    fields = dict(payload)
    kind = fields.pop("kind", None)
    cls = CRITERION_KINDS.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise CheckpointError(f"Unknown termination criterion kind {kind!r}.")
    try:
        criterion = cls(**fields)
    except TypeError as exc:
        raise CheckpointError(f"Invalid payload for termination criterion {kind!r}: {exc}") from exc
    return criterion.restore()


def default_termination_criteria(max_iterations: int) -> list[TerminationCriterion]:
    """Iteration budget plus every numerical stagnation criterion."""
    return [
        MaxIterations(max_iterations),
        ConditionCov(),
        NoEffectAxis(),
        NoEffectCoord(),
        TolUpSigma(),
    ]


__all__ = [
    "TerminationCriterion",
    "MaxIterations",
    "ConditionCov",
    "NoEffectAxis",
    "NoEffectCoord",
    "TolUpSigma",
    "CRITERION_KINDS",
    "criterion_from_dict",
    "default_termination_criteria",
]
