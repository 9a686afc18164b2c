from __future__ import annotations

from dataclasses import asdict

from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.model import ClassifierFns, InferenceForward, Params
from jax_digit_validator.core.domain.errors.validation import EmptyDatasetError
from jax_digit_validator.core.domain.utils.metrics import count_correct
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort
from jax_digit_validator.core.ports.dataset_provider import BatchSource


class AccuracyValidator:
    """Classification accuracy over a held-out sweep; higher is better.

    Each batch gets one inference forward pass; the argmax class of each sample is
    compared with its label and the ratio correct / samples is reported for the
    whole sweep.
    """

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

    @property
    def options(self) -> ValidationOptions:
        return self._options

    def compute_metric(self, params: Params, batches: BatchSource) -> float:
        correct = 0
        samples = 0

        for batch in batches:
            scores = self._forward(params, batch)
            correct += count_correct(scores, batch.labels)
            samples += batch.size

        if samples == 0:
            raise EmptyDatasetError(self.type_tag())
        return correct / float(samples)

    def lower_is_better(self) -> bool:
        return False

    def type_tag(self) -> str:
        return "accuracy"

    def save_best(self, params: Params) -> None:
        self._ckpt.save(
            params=params,
            path=self._options.best_path(self.type_tag()),
            include_metadata=True,
            metadata={"validator": self.type_tag(), "options": asdict(self._options)},
        )
