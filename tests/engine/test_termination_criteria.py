from __future__ import annotations

import numpy as np
import pytest

from cmatune.engine.cmaes.config import CmaEsConfiguration
from cmatune.engine.cmaes.elements import CmaEsElements
from cmatune.engine.cmaes.termination import (
    CRITERION_KINDS,
    ConditionCov,
    MaxIterations,
    NoEffectAxis,
    NoEffectCoord,
    TolUpSigma,
    criterion_from_dict,
    default_termination_criteria,
)
from cmatune.foundation.exceptions import CheckpointError, ConfigurationError, InvalidElementsError


def _elements(
    *,
    generation: int = 1,
    mean=(0.0, 0.0),
    step_size: float = 0.1,
    covariances=None,
    initial_step_size: float = 0.1,
) -> CmaEsElements:
    configuration = CmaEsConfiguration(6, np.zeros(2), initial_step_size)
    covariances = np.eye(2) if covariances is None else np.asarray(covariances, dtype=float)
    eigenvalues, eigenvectors = np.linalg.eigh(covariances)
    return CmaEsElements(
        configuration,
        generation,
        np.asarray(mean, dtype=float),
        step_size,
        covariances,
        eigenvalues,
        eigenvectors,
        np.zeros(2),
        np.zeros(2),
    )


def _incomplete() -> CmaEsElements:
    return CmaEsElements(CmaEsConfiguration(6, np.zeros(2), 0.1), 3, None, 0.1, None, None, None, None, None)


class TestMaxIterations:
    def test_requires_positive_maximum(self):
        with pytest.raises(ConfigurationError):
            MaxIterations(0)

    def test_met_once_generation_reaches_maximum(self):
        criterion = MaxIterations(3)
        assert not criterion.is_met(_elements(generation=2))
        assert criterion.is_met(_elements(generation=3))
        assert criterion.is_met(_elements(generation=4))

    def test_only_needs_generation(self):
        assert MaxIterations(2).is_met(_incomplete())

    def test_missing_data_raises(self):
        with pytest.raises(InvalidElementsError):
            MaxIterations(2).is_met(None)


class TestConditionCov:
    def test_well_conditioned_matrix(self):
        assert not ConditionCov().is_met(_elements(covariances=np.diag([1.0, 1e10])))

    def test_ill_conditioned_matrix(self):
        assert ConditionCov().is_met(_elements(covariances=np.diag([1.0, 1e15])))

    def test_missing_covariances_raise(self):
        with pytest.raises(InvalidElementsError):
            ConditionCov().is_met(_incomplete())


class TestNoEffectAxis:
    def test_not_met_for_regular_state(self):
        assert not NoEffectAxis().is_met(_elements(mean=(1.0, 1.0)))

    def test_met_when_shift_is_absorbed(self):
        assert NoEffectAxis().is_met(_elements(mean=(1e20, 1e20), step_size=1e-3))

    def test_requires_complete_data(self):
        with pytest.raises(InvalidElementsError):
            NoEffectAxis().is_met(_incomplete())


class TestNoEffectCoord:
    def test_not_met_for_regular_state(self):
        assert not NoEffectCoord().is_met(_elements(mean=(1.0, -1.0)))

    def test_met_when_one_coordinate_is_absorbed(self):
        assert NoEffectCoord().is_met(_elements(mean=(1e20, 0.0)))

    def test_requires_complete_data(self):
        with pytest.raises(InvalidElementsError):
            NoEffectCoord().is_met(_incomplete())


class TestTolUpSigma:
    def test_not_met_for_stable_step_size(self):
        assert not TolUpSigma().is_met(_elements(step_size=0.5, initial_step_size=0.1))

    def test_met_for_exploding_step_size(self):
        assert TolUpSigma().is_met(_elements(step_size=1e4, initial_step_size=0.1))

    def test_scales_with_largest_eigenvalue(self):
        elements = _elements(step_size=1e4, initial_step_size=0.1, covariances=np.diag([1.0, 1e4]))
        assert not TolUpSigma().is_met(elements)

    def test_requires_complete_data(self):
        with pytest.raises(InvalidElementsError):
            TolUpSigma().is_met(_incomplete())


@pytest.mark.parametrize(
    "criterion",
    [MaxIterations(17), ConditionCov(), NoEffectAxis(), NoEffectCoord(), TolUpSigma()],
)
def test_tagged_payload_round_trip(criterion):
    payload = criterion.to_dict()
    assert payload["kind"] in CRITERION_KINDS

    restored = criterion_from_dict(payload)
    assert restored == criterion
    assert hash(restored) == hash(criterion)


def test_restore_returns_equivalent_criterion():
    criterion = MaxIterations(5)
    assert criterion.restore() == criterion


def test_equality_depends_on_kind_and_fields():
    assert MaxIterations(3) != MaxIterations(4)
    assert ConditionCov() != NoEffectAxis()
    assert repr(MaxIterations(3)) == "MaxIterations(maximum=3)"


def test_unknown_kind_raises():
    with pytest.raises(CheckpointError, match="Unknown termination criterion"):
        criterion_from_dict({"kind": "wall_clock"})
    with pytest.raises(CheckpointError):
        criterion_from_dict({})


def test_invalid_payload_raises():
    with pytest.raises(CheckpointError, match="Invalid payload"):
        criterion_from_dict({"kind": "condition_cov", "threshold": 3})


def test_default_criteria_cover_every_kind():
    criteria = default_termination_criteria(25)

    assert {criterion.kind for criterion in criteria} == set(CRITERION_KINDS)
    assert MaxIterations(25) in criteria
