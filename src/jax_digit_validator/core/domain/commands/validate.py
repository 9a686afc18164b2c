from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ValidationOptions:
    """Read-only validation configuration shared by all validators.

    `model` is the base path for checkpoints: the latest params go to `model`
    itself and each validator keeps its best params in
    `<model>.best-<type_tag>.npz`.
    """

    model: str = "model.npz"
    inference: bool = False
    valid_metrics: tuple[str, ...] = ("accuracy",)
    valid_batch_size: int = 64

    # Stop training after this many validations without improvement (0 disables).
    early_stopping_patience: int = 0
    # Which validators count for early stopping: "first", "all" or "any".
    early_stopping_on: str = "first"

    def with_inference(self) -> ValidationOptions:
        return replace(self, inference=True)

    def best_path(self, type_tag: str) -> str:
        return f"{self.model}.best-{type_tag}.npz"
