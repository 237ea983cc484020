"""CMA-ES strategy configuration.

All strategy parameters follow the default strategy with active (negative)
weights from Hansen, "The CMA Evolution Strategy: A Tutorial" (2016).
They are derived once from the population size and the search space
dimension and never change afterwards.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from cmatune.foundation.exceptions import ConfigurationError


class CmaEsConfiguration:
    """Immutable CMA-ES configuration.

    Parameters
    ----------
    population_size : int
        Number of search points per generation (lambda), at least 2.
    initial_distribution_mean : array-like
        Start of the search, in internal coordinates. Its length fixes the
        search space dimension.
    initial_step_size : float
        Initial sigma, strictly positive.
    """

    def __init__(
        self,
        population_size: int,
        initial_distribution_mean: np.ndarray | Sequence[float],
        initial_step_size: float,
    ) -> None:
        if population_size < 2:
            raise ConfigurationError(
                f"Population needs to consist of at least 2 search points, but size was {population_size}."
            )
        if initial_distribution_mean is None:
            raise ConfigurationError("An initial distribution mean is required.")
        mean = np.array(initial_distribution_mean, dtype=float)
        if mean.ndim != 1 or mean.shape[0] == 0:
            raise ConfigurationError(
                f"Initial distribution mean must be a non-empty vector, got shape {mean.shape}."
            )
        if not np.all(np.isfinite(mean)):
            raise ConfigurationError("Initial distribution mean must be finite.")
        if not initial_step_size > 0 or not math.isfinite(initial_step_size):
            raise ConfigurationError(f"Step size must be positive, but was {initial_step_size}.")

        mean.setflags(write=False)
        self._initial_distribution_mean = mean
        self._population_size = int(population_size)
        self._parent_number = self._population_size // 2
        self._search_space_dimension = int(mean.shape[0])
        self._initial_step_size = float(initial_step_size)

        self._initialize_default_strategy_parameters()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def population_size(self) -> int:
        return self._population_size

    @property
    def parent_number(self) -> int:
        return self._parent_number

    @property
    def search_space_dimension(self) -> int:
        return self._search_space_dimension

    @property
    def initial_distribution_mean(self) -> np.ndarray:
        return self._initial_distribution_mean.copy()

    @property
    def initial_step_size(self) -> float:
        return self._initial_step_size

    # ------------------------------------------------------------------
    # Derived strategy parameters
    # ------------------------------------------------------------------

    @property
    def weights(self) -> tuple[float, ...]:
        """Recombination weights, one per rank; negative for the worse half."""
        return self._weights

    @property
    def variance_effective_selection_mass(self) -> float:
        return self._variance_effective_selection_mass

    @property
    def cumulation_learning_rate(self) -> float:
        return self._cumulation_learning_rate

    @property
    def rank_one_update_learning_rate(self) -> float:
        return self._rank_one_update_learning_rate

    @property
    def rank_mu_update_learning_rate(self) -> float:
        return self._rank_mu_update_learning_rate

    @property
    def step_size_control_learning_rate(self) -> float:
        return self._step_size_control_learning_rate

    @property
    def step_size_control_damping(self) -> float:
        return self._step_size_control_damping

    def expected_conjugate_path_length(self) -> float:
        """Expected norm of an n-dimensional standard normal vector."""
        n = self._search_space_dimension
        return math.sqrt(2.0) * math.exp(math.lgamma((n + 1) / 2.0) - math.lgamma(n / 2.0))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "population_size": self._population_size,
            "initial_distribution_mean": self._initial_distribution_mean.tolist(),
            "initial_step_size": self._initial_step_size,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CmaEsConfiguration":
        missing = [
            key
            for key in ("population_size", "initial_distribution_mean", "initial_step_size")
            if key not in payload
        ]
        if missing:
            raise ConfigurationError(f"CMA-ES configuration missing required fields: {', '.join(missing)}")
        return cls(
            int(payload["population_size"]),
            payload["initial_distribution_mean"],
            float(payload["initial_step_size"]),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CmaEsConfiguration):
            return NotImplemented
        return (
            self._population_size == other._population_size
            and self._initial_step_size == other._initial_step_size
            and np.array_equal(self._initial_distribution_mean, other._initial_distribution_mean)
        )

    def __hash__(self) -> int:
        return hash((self._population_size, self._initial_step_size, self._initial_distribution_mean.tobytes()))

    def __repr__(self) -> str:
        return (
            f"CmaEsConfiguration(population_size={self._population_size}, "
            f"dimension={self._search_space_dimension}, initial_step_size={self._initial_step_size})"
        )

    # ------------------------------------------------------------------
    # Default strategy parameters
    # ------------------------------------------------------------------

    def _initialize_default_strategy_parameters(self) -> None:
        raw_weights = self._create_convex_weight_shape()
        self._variance_effective_selection_mass = self._compute_selection_mass(raw_weights[: self._parent_number])

        self._initialize_step_size_control_parameters()
        self._initialize_covariance_adaptation_parameters()
        self._weights = self._normalize_weights(raw_weights)

    def _create_convex_weight_shape(self) -> np.ndarray:
        ranks = np.arange(1, self._population_size + 1)
        return math.log((self._population_size + 1) / 2.0) - np.log(ranks)

    @staticmethod
    def _compute_selection_mass(weights: np.ndarray) -> float:
        return float(np.sum(weights) ** 2 / np.sum(weights**2))

    def _initialize_step_size_control_parameters(self) -> None:
        mu_eff = self._variance_effective_selection_mass
        n = self._search_space_dimension
        self._step_size_control_learning_rate = (mu_eff + 2) / (n + mu_eff + 5)
        self._step_size_control_damping = (
            1 + 2 * max(0.0, math.sqrt((mu_eff - 1) / (n + 1)) - 1) + self._step_size_control_learning_rate
        )

    def _initialize_covariance_adaptation_parameters(self) -> None:
        mu_eff = self._variance_effective_selection_mass
        n = self._search_space_dimension
        self._cumulation_learning_rate = (4 + mu_eff / n) / (n + 4 + 2 * mu_eff / n)

        alpha = 2.0
        self._rank_one_update_learning_rate = alpha / ((n + 1.3) ** 2 + mu_eff)
        unbound_rank_mu = alpha * (mu_eff - 2 + 1 / mu_eff) / ((n + 2) ** 2 + alpha * mu_eff / 2)
        self._rank_mu_update_learning_rate = min(1 - self._rank_one_update_learning_rate, unbound_rank_mu)

    def _normalize_weights(self, raw_weights: np.ndarray) -> tuple[float, ...]:
        # Positive weights sum to one.
        positive_scaling = 1.0 / float(np.sum(raw_weights[raw_weights > 0]))
        negative_scaling = self._negative_weight_scaling(raw_weights)
        weights = np.where(raw_weights >= 0, positive_scaling * raw_weights, negative_scaling * raw_weights)
        return tuple(float(w) for w in weights)

    def _negative_weight_scaling(self, raw_weights: np.ndarray) -> float:
        n = self._search_space_dimension
        c_1 = self._rank_one_update_learning_rate
        c_mu = self._rank_mu_update_learning_rate
        mu_eff_negative = self._compute_selection_mass(raw_weights[self._parent_number :])

        # c_mu == 0 leaves both bounds unconstrained.
        prevent_decay_alpha = 1 + c_1 / c_mu if c_mu > 0 else math.inf
        adapt_weights_alpha = 1 + 2 * mu_eff_negative / (self._variance_effective_selection_mass + 2)
        # Keeps C positive definite; may reintroduce decay.
        positive_definite_alpha = (1 - c_1 - c_mu) / (n * c_mu) if c_mu > 0 else math.inf

        smallest_alpha = min(prevent_decay_alpha, adapt_weights_alpha, positive_definite_alpha)
        return smallest_alpha / -float(np.sum(raw_weights[raw_weights < 0]))


__all__ = ["CmaEsConfiguration"]
