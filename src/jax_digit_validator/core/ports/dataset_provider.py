from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from jax_digit_validator.core.domain.entities.base import Batch, DatasetSplit
from jax_digit_validator.core.domain.entities.dataset import DatasetInfo

# A finite, single-pass sweep of batches. Exhaustion ends the sweep.
BatchSource = Iterable[Batch]


class DatasetProviderPort(Protocol):
    """Port for providing supervised mini-batches to the core."""

    @property
    def info(self) -> DatasetInfo: ...

    def iter_batches(
        self,
        *,
        split: DatasetSplit,
        batch_size: int,
        shuffle: bool,
        seed: int,
    ) -> BatchSource: ...
