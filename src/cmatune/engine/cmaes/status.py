"""Checkpoint bundle of a CMA-ES run: termination criteria plus a state snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from cmatune.foundation.checkpoint import load_checkpoint, save_checkpoint
from cmatune.foundation.exceptions import CheckpointError, ConfigurationError

from .elements import CmaEsElements
from .termination import TerminationCriterion, criterion_from_dict


class CmaEsStatus:
    """Everything needed to continue a CMA-ES run."""

    FILE_NAME = "status.cmaes"

    def __init__(self, termination_criteria: Iterable[TerminationCriterion], data: CmaEsElements) -> None:
        if termination_criteria is None:
            raise ConfigurationError("Termination criteria are required.")
        if data is None:
            raise ConfigurationError("CMA-ES data are required.")
        self.termination_criteria = list(termination_criteria)
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        return {
            "termination_criteria": [criterion.to_dict() for criterion in self.termination_criteria],
            "data": self.data.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CmaEsStatus":
        try:
            criteria = payload["termination_criteria"]
            data = payload["data"]
        except (KeyError, TypeError) as exc:
            raise CheckpointError(f"Malformed CMA-ES status: missing {exc}.") from exc
        return cls([criterion_from_dict(item) for item in criteria], CmaEsElements.from_dict(data))

    def write_to_file(self, path: str | Path, rng_state: dict[str, Any] | None = None) -> Path:
        return save_checkpoint(path, status=self.to_dict(), rng_state=rng_state)

    @classmethod
    def read_from_file(cls, path: str | Path) -> "CmaEsStatus":
        return cls.from_dict(load_checkpoint(path)["status"])


__all__ = ["CmaEsStatus"]
