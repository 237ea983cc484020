"""
CMA-ES continuous optimizer.

Public entry points:
- `CmaEs`: the generation-by-generation engine
- `CmaEsConfiguration`: derived default strategy parameters
- `BoundedSearchPoint`, `standardize_values`: box-constraint mapping
- termination criteria and the `CmaEsStatus` checkpoint bundle
- `minimize`: batch loop for objective functions
"""

from .bounded import BoundedSearchPoint, standardize_values, validate_bounds
from .cmaes import CmaEs, decompose_covariances
from .config import CmaEsConfiguration
from .elements import CmaEsElements
from .runner import CmaEsResult, minimize
from .status import CmaEsStatus
from .termination import (
    CRITERION_KINDS,
    ConditionCov,
    MaxIterations,
    NoEffectAxis,
    NoEffectCoord,
    TerminationCriterion,
    TolUpSigma,
    criterion_from_dict,
    default_termination_criteria,
)

__all__ = [
    "BoundedSearchPoint",
    "standardize_values",
    "validate_bounds",
    "CmaEs",
    "decompose_covariances",
    "CmaEsConfiguration",
    "CmaEsElements",
    "CmaEsResult",
    "minimize",
    "CmaEsStatus",
    "CRITERION_KINDS",
    "ConditionCov",
    "MaxIterations",
    "NoEffectAxis",
    "NoEffectCoord",
    "TerminationCriterion",
    "TolUpSigma",
    "criterion_from_dict",
    "default_termination_criteria",
]
