from __future__ import annotations

from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.model import ClassifierFns
from jax_digit_validator.core.domain.errors.training import TrainingError
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort
from jax_digit_validator.core.ports.validator_strategy import ValidatorStrategy
from jax_digit_validator.core.validators.accuracy import AccuracyValidator
from jax_digit_validator.core.validators.cross_entropy import CrossEntropyValidator

VALIDATORS = {
    "accuracy": AccuracyValidator,
    "cross-entropy": CrossEntropyValidator,
}


def create_validator(
    type_tag: str,
    *,
    options: ValidationOptions,
    model_fns: ClassifierFns,
    checkpoint_store: CheckpointStorePort,
) -> ValidatorStrategy:
    key = type_tag.lower().strip()
    if key not in VALIDATORS:
        raise TrainingError(
            f"unknown validator {type_tag!r}; expected one of: {', '.join(sorted(VALIDATORS))}"
        )
    return VALIDATORS[key](options=options, model_fns=model_fns, checkpoint_store=checkpoint_store)


def create_validators(
    *,
    options: ValidationOptions,
    model_fns: ClassifierFns,
    checkpoint_store: CheckpointStorePort,
) -> list[ValidatorStrategy]:
    """One validator per entry of `options.valid_metrics`, in order."""

    return [
        create_validator(tag, options=options, model_fns=model_fns, checkpoint_store=checkpoint_store)
        for tag in options.valid_metrics
    ]
