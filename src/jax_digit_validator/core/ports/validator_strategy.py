from __future__ import annotations

from typing import Protocol

from jax_digit_validator.core.domain.entities.model import Params
from jax_digit_validator.core.ports.dataset_provider import BatchSource


class ValidatorStrategy(Protocol):
    """One kind of validation metric plus how to keep its best params."""

    def compute_metric(self, params: Params, batches: BatchSource) -> float:
        """Score `params` over one full sweep of `batches`."""
        ...

    def lower_is_better(self) -> bool: ...

    def type_tag(self) -> str: ...

    def save_best(self, params: Params) -> None: ...
