"""
Immutable snapshot of a CMA-ES run.

Snapshots are handed to termination criteria and to persistence. They own
private copies of every array and hand out fresh copies on access, so no
consumer can alias the live engine state.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from cmatune.foundation.exceptions import ConfigurationError, SpectralDecompositionError

from .config import CmaEsConfiguration


def _copy_vector(values: Any) -> np.ndarray | None:
    if values is None:
        return None
    return np.array(values, dtype=float, copy=True)


def _copy_matrix(values: Any, name: str) -> np.ndarray | None:
    if values is None:
        return None
    array = np.array(values, dtype=float, copy=True)
    if array.ndim != 2 or array.shape[0] != array.shape[1]:
        raise SpectralDecompositionError(f"{name} must be a square matrix, got shape {array.shape}.")
    return array


def _copy_or_none(array: np.ndarray | None) -> np.ndarray | None:
    return None if array is None else array.copy()


class CmaEsElements:
    """Snapshot of generation, step size, distribution and evolution paths.

    Any array-valued field may be ``None``; ``is_completely_specified``
    reports whether all of them are present.
    """

    def __init__(
        self,
        configuration: CmaEsConfiguration | None,
        generation: int,
        distribution_mean: np.ndarray | None,
        step_size: float,
        covariances: np.ndarray | None,
        eigenvalues: np.ndarray | None,
        eigenvectors: np.ndarray | None,
        evolution_path: np.ndarray | None,
        conjugate_evolution_path: np.ndarray | None,
    ) -> None:
        if generation < 0:
            raise ConfigurationError(f"Generation must be nonnegative, but was {generation}.")
        if step_size < 0:
            raise ConfigurationError(f"Step size must be nonnegative, but was {step_size}.")

        self._configuration = configuration
        self._generation = int(generation)
        self._step_size = float(step_size)
        self._distribution_mean = _copy_vector(distribution_mean)
        self._covariances = _copy_matrix(covariances, "Covariance matrix")
        self._eigenvalues = _copy_vector(eigenvalues)
        self._eigenvectors = _copy_matrix(eigenvectors, "Eigenvector matrix")
        self._evolution_path = _copy_vector(evolution_path)
        self._conjugate_evolution_path = _copy_vector(conjugate_evolution_path)

        self._check_spectral_consistency()

    @classmethod
    def from_decomposition(
        cls,
        configuration: CmaEsConfiguration | None,
        generation: int,
        distribution_mean: np.ndarray | None,
        step_size: float,
        covariances: np.ndarray | None,
        decomposition: tuple[np.ndarray, np.ndarray] | None,
        evolution_path: np.ndarray | None,
        conjugate_evolution_path: np.ndarray | None,
    ) -> "CmaEsElements":
        """Build a snapshot from an ``(eigenvalues, eigenvectors)`` pair as returned by ``numpy.linalg.eigh``."""
        eigenvalues, eigenvectors = decomposition if decomposition is not None else (None, None)
        return cls(
            configuration,
            generation,
            distribution_mean,
            step_size,
            covariances,
            eigenvalues,
            eigenvectors,
            evolution_path,
            conjugate_evolution_path,
        )

    def _check_spectral_consistency(self) -> None:
        if (self._eigenvalues is None) != (self._eigenvectors is None):
            raise SpectralDecompositionError("Eigenvalues and eigenvectors must be given together.")
        if self._eigenvalues is None or self._eigenvectors is None:
            return
        n = self._eigenvectors.shape[0]
        if self._eigenvalues.shape != (n,):
            raise SpectralDecompositionError(
                f"Expected {n} eigenvalues for a {n}x{n} eigenvector matrix, got shape {self._eigenvalues.shape}."
            )
        if self._covariances is not None and self._covariances.shape != (n, n):
            raise SpectralDecompositionError(
                f"Covariance matrix of shape {self._covariances.shape} does not match "
                f"a decomposition of dimension {n}."
            )

    # ------------------------------------------------------------------
    # Accessors (all copies)
    # ------------------------------------------------------------------

    @property
    def configuration(self) -> CmaEsConfiguration | None:
        return self._configuration

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def step_size(self) -> float:
        return self._step_size

    @property
    def distribution_mean(self) -> np.ndarray | None:
        return _copy_or_none(self._distribution_mean)

    @property
    def covariances(self) -> np.ndarray | None:
        return _copy_or_none(self._covariances)

    @property
    def eigenvalues(self) -> np.ndarray | None:
        return _copy_or_none(self._eigenvalues)

    @property
    def covariances_diagonal(self) -> np.ndarray | None:
        """Diagonal matrix D of the decomposition C = B D B^T."""
        return None if self._eigenvalues is None else np.diag(self._eigenvalues)

    @property
    def covariances_eigenvectors(self) -> np.ndarray | None:
        """Orthonormal matrix B of the decomposition C = B D B^T (eigenvectors as columns)."""
        return _copy_or_none(self._eigenvectors)

    @property
    def evolution_path(self) -> np.ndarray | None:
        return _copy_or_none(self._evolution_path)

    @property
    def conjugate_evolution_path(self) -> np.ndarray | None:
        return _copy_or_none(self._conjugate_evolution_path)

    def is_completely_specified(self) -> bool:
        return (
            self._configuration is not None
            and self._distribution_mean is not None
            and self._covariances is not None
            and self._eigenvalues is not None
            and self._eigenvectors is not None
            and self._evolution_path is not None
            and self._conjugate_evolution_path is not None
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        def _listed(array: np.ndarray | None) -> list[Any] | None:
            return None if array is None else array.tolist()

        return {
            "configuration": None if self._configuration is None else self._configuration.to_dict(),
            "generation": self._generation,
            "step_size": self._step_size,
            "distribution_mean": _listed(self._distribution_mean),
            "covariances": _listed(self._covariances),
            "eigenvalues": _listed(self._eigenvalues),
            "eigenvectors": _listed(self._eigenvectors),
            "evolution_path": _listed(self._evolution_path),
            "conjugate_evolution_path": _listed(self._conjugate_evolution_path),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CmaEsElements":
        configuration = payload.get("configuration")
        return cls(
            None if configuration is None else CmaEsConfiguration.from_dict(configuration),
            int(payload.get("generation", 0)),
            payload.get("distribution_mean"),
            float(payload.get("step_size", 0.0)),
            payload.get("covariances"),
            payload.get("eigenvalues"),
            payload.get("eigenvectors"),
            payload.get("evolution_path"),
            payload.get("conjugate_evolution_path"),
        )

    def __repr__(self) -> str:
        return (
            f"CmaEsElements(generation={self._generation}, step_size={self._step_size}, "
            f"complete={self.is_completely_specified()})"
        )


__all__ = ["CmaEsElements"]
