from __future__ import annotations

import numpy as np
import pytest

from cmatune.engine.cmaes.config import CmaEsConfiguration
from cmatune.engine.cmaes.elements import CmaEsElements
from cmatune.foundation.exceptions import ConfigurationError, SpectralDecompositionError

CONFIGURATION = CmaEsConfiguration(7, np.zeros(3), 0.1)


def _complete_elements(generation: int = 2) -> CmaEsElements:
    covariances = np.array([[2.0, 0.5, 0.0], [0.5, 1.0, 0.0], [0.0, 0.0, 3.0]])
    return CmaEsElements.from_decomposition(
        CONFIGURATION,
        generation,
        np.array([1.0, 2.0, 3.0]),
        0.4,
        covariances,
        np.linalg.eigh(covariances),
        np.array([0.1, 0.2, 0.3]),
        np.array([-0.1, 0.0, 0.1]),
    )


def test_complete_elements():
    elements = _complete_elements()

    assert elements.is_completely_specified()
    assert elements.configuration is CONFIGURATION
    assert elements.generation == 2
    assert elements.step_size == 0.4
    assert elements.distribution_mean.tolist() == [1.0, 2.0, 3.0]


def test_missing_parts_are_not_completely_specified():
    elements = CmaEsElements(CONFIGURATION, 0, None, 0.1, None, None, None, None, None)

    assert not elements.is_completely_specified()
    assert elements.distribution_mean is None
    assert elements.covariances_diagonal is None
    assert elements.covariances_eigenvectors is None


def test_constructor_copies_inputs():
    mean = np.array([1.0, 1.0, 1.0])
    covariances = np.eye(3)
    elements = CmaEsElements(CONFIGURATION, 0, mean, 0.1, covariances, None, None, None, None)
    mean[0] = 9.0
    covariances[0, 0] = 9.0

    assert elements.distribution_mean[0] == 1.0
    assert elements.covariances[0, 0] == 1.0


def test_accessors_return_copies():
    elements = _complete_elements()
    elements.distribution_mean[0] = 100.0
    elements.covariances[0, 0] = 100.0
    elements.evolution_path[0] = 100.0
    elements.covariances_eigenvectors[0, 0] = 100.0

    again = _complete_elements()
    assert np.array_equal(elements.distribution_mean, again.distribution_mean)
    assert np.array_equal(elements.covariances, again.covariances)
    assert np.array_equal(elements.evolution_path, again.evolution_path)
    assert np.array_equal(elements.covariances_eigenvectors, again.covariances_eigenvectors)


def test_decomposition_reconstructs_covariances():
    elements = _complete_elements()
    b = elements.covariances_eigenvectors
    d = elements.covariances_diagonal

    assert d.shape == (3, 3)
    assert np.diag(d) == pytest.approx(elements.eigenvalues)
    assert b @ d @ b.T == pytest.approx(elements.covariances)


@pytest.mark.parametrize("generation, step_size", [(-1, 0.1), (0, -0.1)])
def test_negative_generation_or_step_size_raise(generation, step_size):
    with pytest.raises(ConfigurationError):
        CmaEsElements(CONFIGURATION, generation, None, step_size, None, None, None, None, None)


def test_inconsistent_decomposition_raises():
    with pytest.raises(SpectralDecompositionError):
        CmaEsElements(CONFIGURATION, 0, None, 0.1, np.eye(3), np.ones(2), np.eye(3), None, None)
    with pytest.raises(SpectralDecompositionError):
        CmaEsElements(CONFIGURATION, 0, None, 0.1, np.eye(2), np.ones(3), np.eye(3), None, None)
    with pytest.raises(SpectralDecompositionError):
        CmaEsElements(CONFIGURATION, 0, None, 0.1, None, np.ones(3), None, None, None)
    with pytest.raises(SpectralDecompositionError):
        CmaEsElements(CONFIGURATION, 0, None, 0.1, np.ones((2, 3)), None, None, None, None)


def test_dict_round_trip():
    elements = _complete_elements(generation=5)
    restored = CmaEsElements.from_dict(elements.to_dict())

    assert restored.is_completely_specified()
    assert restored.configuration == CONFIGURATION
    assert restored.generation == 5
    assert restored.step_size == elements.step_size
    assert np.array_equal(restored.covariances, elements.covariances)
    assert np.array_equal(restored.eigenvalues, elements.eigenvalues)
    assert np.array_equal(restored.conjugate_evolution_path, elements.conjugate_evolution_path)


def test_dict_keeps_missing_parts_missing():
    elements = CmaEsElements(None, 0, None, 0.0, None, None, None, None, None)
    restored = CmaEsElements.from_dict(elements.to_dict())

    assert restored.configuration is None
    assert restored.covariances is None
    assert not restored.is_completely_specified()
