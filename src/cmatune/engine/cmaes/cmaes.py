"""CMA-ES core engine.

Covariance Matrix Adaptation Evolution Strategy with active (negative)
recombination weights. The engine samples a population, delegates ranking to
an injected sorter and applies the mean, step-size and covariance updates of
the default strategy.

Reference:
    Hansen, N. (2016). The CMA Evolution Strategy: A Tutorial.
    arXiv:1604.00772.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Generic, cast

import numpy as np

from cmatune.foundation.checkpoint import load_checkpoint, restore_rng
from cmatune.foundation.exceptions import (
    CheckpointError,
    ConfigurationError,
    InvalidStateError,
    SortingError,
    SpectralDecompositionError,
)
from cmatune.foundation.search_point import SearchPointSorter, TSearchPoint

from .config import CmaEsConfiguration
from .elements import CmaEsElements
from .status import CmaEsStatus
from .termination import TerminationCriterion

logger = logging.getLogger(__name__)


def decompose_covariances(covariances: np.ndarray, dimension: int) -> tuple[np.ndarray, np.ndarray]:
    """Eigendecomposition ``C = B diag(D) B^T`` of a symmetric covariance matrix.

    Returns
    -------
    tuple
        ``(eigenvalues, eigenvectors)`` with eigenvalues ascending and
        eigenvectors stored as columns.

    Raises
    ------
    SpectralDecompositionError
        If the matrix has the wrong shape, non-finite entries or negative
        eigenvalues.
    """
    if covariances.shape != (dimension, dimension):
        raise SpectralDecompositionError(
            f"Expected a {dimension}x{dimension} covariance matrix, got shape {covariances.shape}."
        )
    if not np.all(np.isfinite(covariances)):
        raise SpectralDecompositionError("Covariance matrix contains non-finite entries.")
    eigenvalues, eigenvectors = np.linalg.eigh(covariances)
    # Round-off may push eigenvalues of a singular matrix slightly below zero.
    tolerance = np.finfo(float).eps * dimension * max(float(np.max(np.abs(eigenvalues))), 1.0)
    if np.any(eigenvalues < -tolerance):
        raise SpectralDecompositionError(
            f"Covariance matrix is not positive semi-definite (smallest eigenvalue {eigenvalues.min()})."
        )
    return np.maximum(eigenvalues, 0.0), eigenvectors


class CmaEs(Generic[TSearchPoint]):
    """CMA-ES optimizer advancing one generation per call.

    Parameters
    ----------
    search_point_sorter : SearchPointSorter
        Ranks each sampled population, best first.
    search_point_factory : callable
        Builds a search point from a vector in internal coordinates. May
        raise, e.g. for malformed bounds.
    rng : numpy.random.Generator, optional
        Source of all randomness. Seed it once before a run and never
        reseed mid-run to stay reproducible.

    Examples
    --------
    >>> engine = CmaEs(ObjectiveSorter(sphere), SearchPoint)
    >>> engine.initialize(CmaEsConfiguration(10, np.zeros(3), 0.5), [MaxIterations(50)])
    >>> while True:
    ...     population = engine.advance()
    ...     if engine.any_termination_met():
    ...         break
    >>> best = population[0]
    """

    def __init__(
        self,
        search_point_sorter: SearchPointSorter[TSearchPoint],
        search_point_factory: Callable[[np.ndarray], TSearchPoint],
        rng: np.random.Generator | None = None,
    ) -> None:
        if search_point_sorter is None:
            raise ConfigurationError("A search point sorter is required.")
        if search_point_factory is None:
            raise ConfigurationError("A search point factory is required.")
        self._sorter = search_point_sorter
        self._factory = search_point_factory
        self._rng = rng if rng is not None else np.random.default_rng()

        self._configuration: CmaEsConfiguration | None = None
        self._termination_criteria: list[TerminationCriterion] = []
        self._generation = 0
        self._distribution_mean = np.zeros(0)
        self._covariances = np.zeros((0, 0))
        self._eigenvalues = np.zeros(0)
        self._eigenvectors = np.zeros((0, 0))
        self._step_size = 0.0
        self._evolution_path = np.zeros(0)
        self._conjugate_evolution_path = np.zeros(0)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._configuration is not None

    @property
    def rng(self) -> np.random.Generator:
        return self._rng

    def initialize(
        self,
        configuration: CmaEsConfiguration,
        termination_criteria: Iterable[TerminationCriterion],
    ) -> None:
        """Start a fresh run, discarding any previous state.

        Raises
        ------
        ConfigurationError
            If the configuration is missing or no termination criterion is given.
        """
        if configuration is None:
            raise ConfigurationError("A CMA-ES configuration is required.")
        if termination_criteria is None:
            raise ConfigurationError("Termination criteria are required.")
        criteria = list(termination_criteria)
        if not criteria:
            raise ConfigurationError(
                "There needs to be at least one termination criterion.",
                suggestion="Pass e.g. [MaxIterations(100)]",
            )

        n = configuration.search_space_dimension
        self._configuration = configuration
        self._termination_criteria = criteria
        self._generation = 0
        self._covariances = np.eye(n)
        self._eigenvalues, self._eigenvectors = decompose_covariances(self._covariances, n)
        self._evolution_path = np.zeros(n)
        self._conjugate_evolution_path = np.zeros(n)
        self._distribution_mean = configuration.initial_distribution_mean
        self._step_size = configuration.initial_step_size

    def _require_configuration(self, operation: str) -> CmaEsConfiguration:
        if self._configuration is None:
            raise InvalidStateError(operation)
        return self._configuration

    # -------------------------------------------------------------------------
    # Generation step
    # -------------------------------------------------------------------------

    def advance(self) -> list[TSearchPoint]:
        """Sample, rank and learn from one generation.

        Returns
        -------
        list
            The generation's search points, best first.
        """
        cfg = self._require_configuration("advance")
        self._generation += 1

        random_directions = self._sample_random_directions(cfg)
        step_directions = self._build_step_directions(random_directions)
        search_points = self._create_population(step_directions)

        order = self._sort(search_points)
        weights = np.asarray(cfg.weights)
        ordered_random = random_directions[order]
        ordered_steps = step_directions[order]

        unscaled_mean_step = self._compute_unscaled_mean_step(cfg, weights, ordered_steps)
        self._distribution_mean = self._distribution_mean + self._step_size * unscaled_mean_step
        # Both updates rely on the decomposition the population was sampled with.
        self._update_step_size(cfg, weights, ordered_random)
        self._adapt_covariances(cfg, weights, unscaled_mean_step, ordered_random, ordered_steps)

        # Cancel floating point asymmetry before decomposing.
        self._covariances = (self._covariances + self._covariances.T) / 2.0
        self._eigenvalues, self._eigenvectors = decompose_covariances(
            self._covariances, cfg.search_space_dimension
        )

        logger.debug(
            "CMA-ES generation %d: step size %.6g, largest eigenvalue %.6g",
            self._generation,
            self._step_size,
            float(self._eigenvalues.max()),
        )
        return [search_points[idx] for idx in order]

    def _sample_random_directions(self, cfg: CmaEsConfiguration) -> np.ndarray:
        return self._rng.standard_normal((cfg.population_size, cfg.search_space_dimension))

    def _build_step_directions(self, random_directions: np.ndarray) -> np.ndarray:
        # Rows y_k = B sqrt(D) z_k.
        covariances_shift = self._eigenvectors * np.sqrt(self._eigenvalues)[np.newaxis, :]
        return random_directions @ covariances_shift.T

    def _create_population(self, step_directions: np.ndarray) -> list[TSearchPoint]:
        return [
            self._factory(self._distribution_mean + self._step_size * direction)
            for direction in step_directions
        ]

    def _sort(self, search_points: Sequence[TSearchPoint]) -> list[int]:
        order = [int(idx) for idx in self._sorter.sort(search_points)]
        if sorted(order) != list(range(len(search_points))):
            raise SortingError(
                f"Sorter returned {order}, which is not a permutation of {len(search_points)} indices.",
                order,
            )
        return order

    @staticmethod
    def _compute_unscaled_mean_step(
        cfg: CmaEsConfiguration,
        weights: np.ndarray,
        ordered_steps: np.ndarray,
    ) -> np.ndarray:
        mu = cfg.parent_number
        return weights[:mu] @ ordered_steps[:mu]

    def _update_step_size(
        self,
        cfg: CmaEsConfiguration,
        weights: np.ndarray,
        ordered_random: np.ndarray,
    ) -> None:
        mu = cfg.parent_number
        c_sigma = cfg.step_size_control_learning_rate

        # Mean direction of the selected points before the covariance shift.
        mean_direction = weights[:mu] @ ordered_random[:mu]
        normalization = np.sqrt(c_sigma * (2 - c_sigma) * cfg.variance_effective_selection_mass)
        self._conjugate_evolution_path = (1 - c_sigma) * self._conjugate_evolution_path + normalization * (
            self._eigenvectors @ mean_direction
        )

        path_length_ratio = np.linalg.norm(self._conjugate_evolution_path) / cfg.expected_conjugate_path_length()
        factor = c_sigma / cfg.step_size_control_damping
        self._step_size *= float(np.exp(factor * (path_length_ratio - 1)))

    def _decide_stalling_constant(self, cfg: CmaEsConfiguration) -> int:
        """h_sig: 0 stalls the evolution path update while the conjugate path is long."""
        c_sigma = cfg.step_size_control_learning_rate
        maximum_path_length = (
            np.sqrt(1 - (1 - c_sigma) ** (2 * (self._generation + 1)))
            * (1.4 + 2.0 / (cfg.search_space_dimension + 1))
            * cfg.expected_conjugate_path_length()
        )
        return 0 if np.linalg.norm(self._conjugate_evolution_path) >= maximum_path_length else 1

    def _adapt_covariances(
        self,
        cfg: CmaEsConfiguration,
        weights: np.ndarray,
        unscaled_mean_step: np.ndarray,
        ordered_random: np.ndarray,
        ordered_steps: np.ndarray,
    ) -> None:
        c_c = cfg.cumulation_learning_rate
        c_1 = cfg.rank_one_update_learning_rate
        c_mu = cfg.rank_mu_update_learning_rate

        normalization = np.sqrt(c_c * (2 - c_c) * cfg.variance_effective_selection_mass)
        stalling = self._decide_stalling_constant(cfg)
        self._evolution_path = (1 - c_c) * self._evolution_path + (stalling * normalization) * unscaled_mean_step

        rank_one_update = c_1 * np.outer(self._evolution_path, self._evolution_path)
        rank_mu_update = c_mu * self._compute_rank_mu_update(cfg, weights, ordered_random, ordered_steps)

        stalling_adapter = (1 - stalling) * c_c * (2 - c_c)
        decay_factor = 1 + c_1 * stalling_adapter - c_1 - c_mu * float(np.sum(weights))
        self._covariances = decay_factor * self._covariances + rank_one_update + rank_mu_update

    def _compute_rank_mu_update(
        self,
        cfg: CmaEsConfiguration,
        weights: np.ndarray,
        ordered_random: np.ndarray,
        ordered_steps: np.ndarray,
    ) -> np.ndarray:
        # Negative weights are rescaled by n / ||B z||^2 to keep their contribution bounded.
        squared_norms = np.sum((ordered_random @ self._eigenvectors.T) ** 2, axis=1)
        negative = weights < 0
        adjusted = weights.copy()
        adjusted[negative] = weights[negative] * cfg.search_space_dimension / squared_norms[negative]
        return (ordered_steps.T * adjusted) @ ordered_steps

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    def any_termination_met(self) -> bool:
        """Evaluate every termination criterion on a fresh snapshot."""
        self._require_configuration("any_termination_met")

        data = self._wrap_data()
        met_criteria = [criterion for criterion in self._termination_criteria if criterion.is_met(data)]
        if not met_criteria:
            return False

        logger.info("CMA-ES: Termination criterion met.")
        for criterion in met_criteria:
            logger.debug(type(criterion).__name__)
        return True

    # -------------------------------------------------------------------------
    # Snapshots and checkpoints
    # -------------------------------------------------------------------------

    def _wrap_data(self) -> CmaEsElements:
        return CmaEsElements(
            self._configuration,
            self._generation,
            self._distribution_mean,
            self._step_size,
            self._covariances,
            self._eigenvalues,
            self._eigenvectors,
            self._evolution_path,
            self._conjugate_evolution_path,
        )

    def elements(self) -> CmaEsElements:
        """Immutable snapshot of the current state."""
        self._require_configuration("elements")
        return self._wrap_data()

    def status(self) -> CmaEsStatus:
        self._require_configuration("status")
        return CmaEsStatus(self._termination_criteria, self._wrap_data())

    def dump_checkpoint(self, path: str | Path) -> Path:
        """Write termination criteria, state snapshot and RNG state to ``path``."""
        status = self.status()
        written = status.write_to_file(path, rng_state=self._rng.bit_generator.state)
        logger.debug("CMA-ES checkpoint written to %s (generation %d)", written, self._generation)
        return written

    def load_checkpoint(self, path: str | Path, *, restore_random_state: bool = False) -> None:
        """Replace the complete state with the one stored at ``path``.

        The RNG is left alone unless ``restore_random_state`` is set, since
        it is usually shared with the caller.
        """
        checkpoint = load_checkpoint(path)
        self.use_status(CmaEsStatus.from_dict(checkpoint["status"]))
        rng_state = checkpoint.get("rng_state")
        if restore_random_state and rng_state is not None:
            restore_rng(self._rng, rng_state)
        logger.debug("CMA-ES checkpoint loaded from %s (generation %d)", path, self._generation)

    def use_status(self, status: CmaEsStatus) -> None:
        """Replace the complete state with a status bundle.

        The decomposition is recomputed from the restored covariance matrix
        instead of trusting the stored one.
        """
        if status is None:
            raise ConfigurationError("A CMA-ES status is required.")
        data = status.data
        if not data.is_completely_specified():
            raise CheckpointError("CMA-ES status is not completely specified.")
        criteria = [criterion.restore() for criterion in status.termination_criteria]
        if not criteria:
            raise CheckpointError("CMA-ES status holds no termination criterion.")

        configuration = cast(CmaEsConfiguration, data.configuration)
        n = configuration.search_space_dimension
        vectors = {
            "distribution mean": data.distribution_mean,
            "evolution path": data.evolution_path,
            "conjugate evolution path": data.conjugate_evolution_path,
        }
        for name, vector in vectors.items():
            if vector.shape != (n,):
                raise CheckpointError(f"Stored {name} has shape {vector.shape}, expected ({n},).")

        covariances = data.covariances
        eigenvalues, eigenvectors = decompose_covariances(covariances, n)

        self._termination_criteria = criteria
        self._configuration = configuration
        self._generation = data.generation
        self._distribution_mean = vectors["distribution mean"]
        self._covariances = covariances
        self._eigenvalues, self._eigenvectors = eigenvalues, eigenvectors
        self._step_size = data.step_size
        self._evolution_path = vectors["evolution path"]
        self._conjugate_evolution_path = vectors["conjugate evolution path"]


__all__ = ["CmaEs", "decompose_covariances"]
