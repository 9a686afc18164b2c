from __future__ import annotations

from typing import Any

import jax

from jax_digit_validator.core.domain.errors.validation import CheckpointError


class ScoresAreInputs:
    """Model stand-in whose forward pass returns its inputs as class scores."""

    def init(self, *, key: jax.Array, input_dim: int, num_classes: int):
        return []

    def apply(self, params, x: jax.Array, *, is_training: bool) -> jax.Array:
        return x


class RecordingCheckpointStore:
    def __init__(self, *, fail: bool = False) -> None:
        self.saves: list[dict[str, Any]] = []
        self.fail = fail

    def save(self, *, params, path: str, include_metadata: bool = False, metadata=None) -> None:
        if self.fail:
            raise CheckpointError(path, "disk full")
        self.saves.append(
            {"params": params, "path": path, "include_metadata": include_metadata, "metadata": metadata}
        )

    def load(self, *, path: str):
        raise CheckpointError(path, "not stored")


class RecordingMetricsSink:
    def __init__(self) -> None:
        self.records: list[tuple[int, dict[str, Any]]] = []

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        self.records.append((step, dict(metrics)))
