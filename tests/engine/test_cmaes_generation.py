"""One CMA-ES generation checked against the update equations of Hansen's tutorial.

The engine runs with scripted standard normal draws and a fixed ranking, so
every quantity of the step can be recomputed independently below.
"""

from __future__ import annotations

import numpy as np
import pytest

from cmatune.engine.cmaes import CmaEs, CmaEsConfiguration, CmaEsElements, CmaEsStatus, MaxIterations
from cmatune.foundation.search_point import SearchPoint, SearchPointSorter

DRAWS = np.array(
    [
        [0.3, -0.1],
        [1.2, 0.4],
        [-0.2, 0.25],
        [-1.5, 0.9],
        [0.05, -0.4],
        [0.8, -1.1],
    ]
)
RANKING = [3, 0, 5, 1, 4, 2]


class _ScriptedNormals:
    """Stands in for a numpy Generator and replays fixed standard normal draws."""

    def __init__(self, draws: np.ndarray) -> None:
        self.draws = draws
        self.requested_shapes: list[tuple[int, int]] = []

    def standard_normal(self, size):
        self.requested_shapes.append(tuple(size))
        return self.draws.copy()


class _FixedRankingSorter(SearchPointSorter[SearchPoint]):
    def __init__(self, ranking: list[int]) -> None:
        self.ranking = ranking

    def sort(self, points):
        return list(self.ranking)


def _tutorial_generation(cfg: CmaEsConfiguration, state: CmaEsElements, z: np.ndarray, ranking: list[int]) -> dict:
    n = cfg.search_space_dimension
    mu = cfg.parent_number
    w = np.asarray(cfg.weights)
    mu_eff = cfg.variance_effective_selection_mass
    c_sigma = cfg.step_size_control_learning_rate
    d_sigma = cfg.step_size_control_damping
    c_c = cfg.cumulation_learning_rate
    c_1 = cfg.rank_one_update_learning_rate
    c_mu = cfg.rank_mu_update_learning_rate
    expected_norm = cfg.expected_conjugate_path_length()

    mean, sigma, cov = state.distribution_mean, state.step_size, state.covariances
    eigenvalues, b = np.linalg.eigh(cov)
    d = np.sqrt(eigenvalues)
    generation = state.generation + 1

    # y_k = B D z_k, x_k = m + sigma y_k
    y = np.array([b @ (d * z_k) for z_k in z])
    y_sorted = y[ranking]
    z_sorted = z[ranking]

    y_w = sum(w[i] * y_sorted[i] for i in range(mu))
    new_mean = mean + sigma * y_w

    # C^(-1/2) y_w = B z_w
    z_w = sum(w[i] * z_sorted[i] for i in range(mu))
    p_sigma = (1 - c_sigma) * state.conjugate_evolution_path + np.sqrt(c_sigma * (2 - c_sigma) * mu_eff) * (b @ z_w)
    new_sigma = sigma * np.exp(c_sigma / d_sigma * (np.linalg.norm(p_sigma) / expected_norm - 1))

    threshold = np.sqrt(1 - (1 - c_sigma) ** (2 * (generation + 1))) * (1.4 + 2 / (n + 1)) * expected_norm
    h_sigma = 1 if np.linalg.norm(p_sigma) < threshold else 0
    p_c = (1 - c_c) * state.evolution_path + h_sigma * np.sqrt(c_c * (2 - c_c) * mu_eff) * y_w

    inverse_sqrt = b @ np.diag(1 / d) @ b.T
    w_circ = [
        w[i] if w[i] >= 0 else w[i] * n / np.linalg.norm(inverse_sqrt @ y_sorted[i]) ** 2 for i in range(len(w))
    ]
    delta_h = (1 - h_sigma) * c_c * (2 - c_c)
    new_cov = (
        (1 + c_1 * delta_h - c_1 - c_mu * np.sum(w)) * cov
        + c_1 * np.outer(p_c, p_c)
        + c_mu * sum(w_circ[i] * np.outer(y_sorted[i], y_sorted[i]) for i in range(len(w)))
    )
    return {
        "generation": generation,
        "population": [mean + sigma * y_sorted[i] for i in range(len(w))],
        "mean": new_mean,
        "step_size": new_sigma,
        "h_sigma": h_sigma,
        "evolution_path": p_c,
        "conjugate_evolution_path": p_sigma,
        "covariances": new_cov,
    }


def _assert_matches(engine: CmaEs, population: list[SearchPoint], expected: dict) -> None:
    tolerance = {"rel": 1e-9, "abs": 1e-12}
    after = engine.elements()
    assert after.generation == expected["generation"]
    for point, values in zip(population, expected["population"]):
        assert point.values == pytest.approx(values, **tolerance)
    assert after.distribution_mean == pytest.approx(expected["mean"], **tolerance)
    assert after.step_size == pytest.approx(expected["step_size"], **tolerance)
    assert after.evolution_path == pytest.approx(expected["evolution_path"], **tolerance)
    assert after.conjugate_evolution_path == pytest.approx(expected["conjugate_evolution_path"], **tolerance)
    assert after.covariances == pytest.approx(expected["covariances"], **tolerance)


@pytest.fixture
def configuration() -> CmaEsConfiguration:
    return CmaEsConfiguration(6, np.array([1.0, -2.0]), 0.5)


def test_weights_include_negative_ones(configuration):
    # The negative-weight branch of the rank-mu update is part of the checks below.
    assert configuration.parent_number == 3
    assert sum(1 for weight in configuration.weights if weight < 0) == 3


def test_first_generation_matches_tutorial(configuration):
    normals = _ScriptedNormals(DRAWS)
    engine = CmaEs(_FixedRankingSorter(RANKING), SearchPoint, rng=normals)
    engine.initialize(configuration, [MaxIterations(10)])
    expected = _tutorial_generation(configuration, engine.elements(), DRAWS, RANKING)

    population = engine.advance()

    assert normals.requested_shapes == [(6, 2)]
    assert expected["h_sigma"] == 1
    _assert_matches(engine, population, expected)


def test_stalled_evolution_path_matches_tutorial(configuration):
    # A long conjugate path switches h_sigma off, which freezes the rank-one input.
    state = CmaEsElements(
        configuration,
        3,
        np.array([0.4, -0.7]),
        0.8,
        np.array([[1.5, 0.3], [0.3, 0.8]]),
        np.ones(2),
        np.eye(2),
        np.array([0.1, -0.2]),
        np.array([10.0, 10.0]),
    )
    engine = CmaEs(_FixedRankingSorter(RANKING), SearchPoint, rng=_ScriptedNormals(DRAWS))
    engine.use_status(CmaEsStatus([MaxIterations(10)], state))
    expected = _tutorial_generation(configuration, state, DRAWS, RANKING)

    population = engine.advance()

    assert expected["h_sigma"] == 0
    assert expected["evolution_path"] == pytest.approx((1 - configuration.cumulation_learning_rate) * state.evolution_path)
    _assert_matches(engine, population, expected)
