from __future__ import annotations

from dataclasses import asdict

from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.model import ClassifierFns, InferenceForward, Params
from jax_digit_validator.core.domain.errors.validation import EmptyDatasetError
from jax_digit_validator.core.domain.utils.metrics import cross_entropy_sum
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort
from jax_digit_validator.core.ports.dataset_provider import BatchSource


class CrossEntropyValidator:
    """Mean softmax cross entropy per sample; lower is better."""

    def __init__(
        self,
        *,
        options: ValidationOptions,
        model_fns: ClassifierFns,
        checkpoint_store: CheckpointStorePort,
    ) -> None:
        self._options = options.with_inference()
        self._forward = InferenceForward(model_fns, inference=self._options.inference)
        self._ckpt = checkpoint_store

    def compute_metric(self, params: Params, batches: BatchSource) -> float:
        total = 0.0
        samples = 0
        for batch in batches:
            total += cross_entropy_sum(self._forward(params, batch), batch.labels)
            samples += batch.size

        if samples == 0:
            raise EmptyDatasetError(self.type_tag())
        return total / float(samples)

    def lower_is_better(self) -> bool:
        return True

    def type_tag(self) -> str:
        return "cross-entropy"

    def save_best(self, params: Params) -> None:
        self._ckpt.save(
            params=params,
            path=self._options.best_path(self.type_tag()),
            include_metadata=True,
            metadata={"validator": self.type_tag(), "options": asdict(self._options)},
        )
