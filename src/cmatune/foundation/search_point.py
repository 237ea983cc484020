"""
Search points and the sorter contract used by evolution-based continuous optimizers.

A search point is an immutable real vector in the optimizer's internal
coordinate space. Sorters rank a batch of search points; optimizers never
evaluate candidates themselves.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Generic, TypeVar

import numpy as np

from .exceptions import ConfigurationError


class SearchPoint:
    """Immutable real vector of fixed dimension."""

    def __init__(self, values: np.ndarray | Sequence[float]) -> None:
        if values is None:
            raise ConfigurationError("Search point values must be provided.")
        array = np.array(values, dtype=float)
        if array.ndim != 1:
            raise ConfigurationError(f"Search point values must be a vector, got shape {array.shape}.")
        array.setflags(write=False)
        self._values = array

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the coordinates."""
        return self._values

    @property
    def dimension(self) -> int:
        return int(self._values.shape[0])

    def is_valid(self) -> bool:
        return True

    def restore(self) -> "SearchPoint":
        # Plain numeric state survives deserialization as is.
        return self

    def __str__(self) -> str:
        return "<" + "; ".join(repr(float(value)) for value in self._values) + ">"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._values.tolist()!r})"


TSearchPoint = TypeVar("TSearchPoint", bound=SearchPoint)


class SearchPointSorter(ABC, Generic[TSearchPoint]):
    """
    Ranks a batch of search points.

    Implementations must define a deterministic total order on the batch,
    must not mutate the points and must cope with duplicates.
    """

    @abstractmethod
    def sort(self, points: Sequence[TSearchPoint]) -> list[int]:
        """Return the indices of ``points`` ordered best first."""

    def determine_ranks(self, points: Sequence[TSearchPoint]) -> dict[int, int]:
        """Map each point's index in ``points`` to its rank (0 is best)."""
        ranking = self.sort(points)
        return {index: rank for rank, index in enumerate(ranking)}


class ObjectiveSorter(SearchPointSorter[TSearchPoint]):
    """Sorts search points by ascending value of an objective function.

    Ties keep their original order, so equal inputs always yield equal output.
    The scores of the most recently sorted batch stay available through
    ``last_scores`` so callers never evaluate a point twice.
    """

    def __init__(
        self,
        objective: Callable[[np.ndarray], float],
        transform: Callable[[TSearchPoint], np.ndarray] | None = None,
    ) -> None:
        if objective is None:
            raise ConfigurationError("An objective function is required.")
        self.objective = objective
        self.transform = transform
        self._last_scores: tuple[float, ...] = ()

    @property
    def last_scores(self) -> tuple[float, ...]:
        """Scores of the last sorted batch, in the batch's input order."""
        return self._last_scores

    @property
    def best_score(self) -> float:
        if not self._last_scores:
            raise ValueError("No batch has been sorted yet.")
        return min(self._last_scores)

    def evaluate(self, point: TSearchPoint) -> float:
        values = self.transform(point) if self.transform is not None else point.values
        score = float(self.objective(np.array(values, dtype=float)))
        # NaN would break the total order; rank it last.
        return math.inf if math.isnan(score) else score

    def sort(self, points: Sequence[TSearchPoint]) -> list[int]:
        scores = [self.evaluate(point) for point in points]
        self._last_scores = tuple(scores)
        return sorted(range(len(points)), key=lambda idx: scores[idx])


__all__ = ["SearchPoint", "SearchPointSorter", "ObjectiveSorter", "TSearchPoint"]
