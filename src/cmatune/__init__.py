from .engine.cmaes import (
    BoundedSearchPoint,
    CmaEs,
    CmaEsConfiguration,
    CmaEsElements,
    CmaEsResult,
    CmaEsStatus,
    ConditionCov,
    MaxIterations,
    NoEffectAxis,
    NoEffectCoord,
    TerminationCriterion,
    TolUpSigma,
    default_termination_criteria,
    minimize,
    standardize_values,
)
from .foundation.exceptions import CmaTuneError
from .foundation.logging import configure_cmatune_logging
from .foundation.objectives import available_objectives, get_objective
from .foundation.search_point import ObjectiveSorter, SearchPoint, SearchPointSorter

__version__ = "0.1.0"

__all__ = [
    "BoundedSearchPoint",
    "CmaEs",
    "CmaEsConfiguration",
    "CmaEsElements",
    "CmaEsResult",
    "CmaEsStatus",
    "ConditionCov",
    "MaxIterations",
    "NoEffectAxis",
    "NoEffectCoord",
    "TerminationCriterion",
    "TolUpSigma",
    "default_termination_criteria",
    "minimize",
    "standardize_values",
    "CmaTuneError",
    "configure_cmatune_logging",
    "available_objectives",
    "get_objective",
    "ObjectiveSorter",
    "SearchPoint",
    "SearchPointSorter",
]
