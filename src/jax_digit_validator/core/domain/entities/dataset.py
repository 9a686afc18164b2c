from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DatasetInfo:
    """Metadata required by the core training and validation loops."""

    num_classes: int
    input_shape: tuple[int, ...]
    train_size: int | None = None
    valid_size: int | None = None
    test_size: int | None = None
    class_names: tuple[str, ...] | None = None

    @property
    def input_dim(self) -> int:
        """Width of a flattened sample, e.g. 784 for 28x28x1 digits."""

        dim = 1
        for d in self.input_shape:
            dim *= int(d)
        return dim
