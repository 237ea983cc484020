"""
Checkpointing utilities for saving and resuming optimization runs.
"""

from __future__ import annotations

import pickle
from pathlib import Path
from typing import Any, TYPE_CHECKING, cast

from .exceptions import CheckpointError

if TYPE_CHECKING:
    from numpy.random import Generator

CHECKPOINT_VERSION = 1


def save_checkpoint(
    path: str | Path,
    *,
    status: dict[str, Any],
    rng_state: dict[str, Any] | None = None,
) -> Path:
    """
    Save optimizer status to a checkpoint file.

    Args:
        path: File path for the checkpoint. Parent directories are created.
        status: Plain-data status bundle (see CmaEsStatus.to_dict()).
        rng_state: RNG state from `rng.bit_generator.state` (optional).

    Returns:
        Path to saved checkpoint file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    checkpoint = {
        "version": CHECKPOINT_VERSION,
        "status": status,
        "rng_state": rng_state,
    }

    with open(path, "wb") as f:
        pickle.dump(checkpoint, f, protocol=pickle.HIGHEST_PROTOCOL)

    return path


def load_checkpoint(path: str | Path) -> dict[str, Any]:
    """
    Load optimizer status from a checkpoint file.

    Args:
        path: Path to checkpoint file.

    Returns:
        Dictionary containing checkpoint data with keys:
        - status: Plain-data status bundle
        - rng_state: RNG state dict (may be None)

    Raises:
        FileNotFoundError: If checkpoint file doesn't exist.
        CheckpointError: If the file is unreadable or its version is unsupported.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {path}")

    try:
        with open(path, "rb") as f:
            checkpoint = pickle.load(f)
    except (pickle.UnpicklingError, EOFError, ValueError, IndexError) as exc:
        raise CheckpointError(f"Checkpoint at '{path}' could not be read: {exc}", str(path)) from exc

    if not isinstance(checkpoint, dict):
        raise CheckpointError(f"Checkpoint at '{path}' does not hold a mapping.", str(path))
    checkpoint = cast(dict[str, Any], checkpoint)

    version = checkpoint.get("version", 0)
    if version != CHECKPOINT_VERSION:
        raise CheckpointError(f"Unsupported checkpoint version: {version}", str(path))
    if "status" not in checkpoint:
        raise CheckpointError(f"Checkpoint at '{path}' has no status entry.", str(path))

    return checkpoint


def restore_rng(rng: "Generator", state: dict[str, Any]) -> None:
    """
    Restore RNG state from checkpoint.

    Args:
        rng: NumPy random generator to restore.
        state: State dict from checkpoint['rng_state'].
    """
    rng.bit_generator.state = state


__all__ = ["CHECKPOINT_VERSION", "save_checkpoint", "load_checkpoint", "restore_rng"]
