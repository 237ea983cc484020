"""Box-constrained search points for CMA-ES.

CMA-ES works on an unconstrained space. Bounded parameters are mapped into
the internal domain [0, 10] through ``10 * acos(1 - 2 * t) / pi`` where
``t`` is the value's relative position inside its box; the inverse mapping
``lo + (hi - lo) * (1 - cos(pi * x / 10)) / 2`` folds every real internal
coordinate back into the box.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np

from cmatune.foundation.exceptions import BoundsError, ConfigurationError
from cmatune.foundation.search_point import SearchPoint

ArrayLike = np.ndarray | Sequence[float]


def _as_bounds(bounds: ArrayLike | None, name: str) -> np.ndarray:
    if bounds is None:
        raise BoundsError(f"{name} must be provided.")
    array = np.array(bounds, dtype=float)
    if array.ndim != 1:
        raise BoundsError(f"{name} must be a vector, got shape {array.shape}.")
    return array


def validate_bounds(
    lower_bounds: ArrayLike | None,
    upper_bounds: ArrayLike | None,
    dimension: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Check bounds against a dimension and return them as float arrays.

    Raises
    ------
    BoundsError
        If bounds are missing, have the wrong length, contain NaN or
        infinite entries, or if a lower bound exceeds its upper bound.
    """
    lower = _as_bounds(lower_bounds, "Lower bounds")
    upper = _as_bounds(upper_bounds, "Upper bounds")

    if lower.shape[0] != dimension:
        raise BoundsError(f"Expected {dimension} lower bounds, but got {lower.shape[0]}.")
    if upper.shape[0] != dimension:
        raise BoundsError(f"Expected {dimension} upper bounds, but got {upper.shape[0]}.")

    for i in range(dimension):
        if np.isnan(lower[i]) or np.isnan(upper[i]):
            raise BoundsError(f"{i}th bound is NaN.", index=i)
        if lower[i] > upper[i]:
            raise BoundsError(f"{i}th lower bound is greater than {i}th upper bound.", index=i)
        if np.isinf(lower[i]):
            raise BoundsError(f"{i}th lower bound is unbounded.", index=i)
        if np.isinf(upper[i]):
            raise BoundsError(f"{i}th upper bound is unbounded.", index=i)

    return lower, upper


def standardize_values(
    values: ArrayLike,
    lower_bounds: ArrayLike | None,
    upper_bounds: ArrayLike | None,
) -> np.ndarray:
    """Map values inside their boxes into the internal domain [0, 10]^n.

    A dimension whose box is a single value always maps to 0.
    """
    if values is None:
        raise ConfigurationError("Values to standardize must be provided.")
    vals = np.array(values, dtype=float)
    if vals.ndim != 1:
        raise ConfigurationError(f"Values must be a vector, got shape {vals.shape}.")
    lower, upper = validate_bounds(lower_bounds, upper_bounds, vals.shape[0])

    standardized = np.zeros(vals.shape[0])
    for i in range(vals.shape[0]):
        if not lower[i] <= vals[i] <= upper[i]:
            raise BoundsError(
                f"{i}th value {vals[i]} lies outside [{lower[i]}, {upper[i]}].",
                index=i,
            )
        domain_interval = upper[i] - lower[i]
        if domain_interval == 0:
            # Only one feasible value: any internal coordinate would do.
            standardized[i] = 0.0
            continue
        # [lo, hi] -> [-1, 1] -> [0, 10]
        scaled = 1.0 - 2.0 * ((vals[i] - lower[i]) / domain_interval)
        standardized[i] = 10.0 * (np.arccos(np.clip(scaled, -1.0, 1.0)) / np.pi)

    return standardized


class BoundedSearchPoint(SearchPoint):
    """Search point in internal coordinates that knows the box it maps into."""

    def __init__(
        self,
        values: ArrayLike,
        lower_bounds: ArrayLike | None,
        upper_bounds: ArrayLike | None,
    ) -> None:
        super().__init__(values)
        lower, upper = validate_bounds(lower_bounds, upper_bounds, self.dimension)
        lower.setflags(write=False)
        upper.setflags(write=False)
        self._lower_bounds = lower
        self._upper_bounds = upper

    @property
    def lower_bounds(self) -> np.ndarray:
        return self._lower_bounds.copy()

    @property
    def upper_bounds(self) -> np.ndarray:
        return self._upper_bounds.copy()

    def map_into_bounds(self) -> np.ndarray:
        """Map the internal coordinates into the box."""
        # [0, 10] -> [0, 1], then rescale to the actual box.
        scaled = (1.0 - np.cos(np.pi * (self.values / 10.0))) / 2.0
        return self._lower_bounds + (self._upper_bounds - self._lower_bounds) * scaled

    @classmethod
    def factory(
        cls,
        lower_bounds: ArrayLike,
        upper_bounds: ArrayLike,
    ) -> Callable[[np.ndarray], "BoundedSearchPoint"]:
        """Return a search point constructor bound to fixed bounds."""
        lower = np.array(lower_bounds, dtype=float)
        upper = np.array(upper_bounds, dtype=float)

        def _build(values: np.ndarray) -> BoundedSearchPoint:
            return cls(values, lower, upper)

        return _build

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.values.tolist()!r}, "
            f"lower_bounds={self._lower_bounds.tolist()!r}, upper_bounds={self._upper_bounds.tolist()!r})"
        )


__all__ = ["BoundedSearchPoint", "standardize_values", "validate_bounds"]
