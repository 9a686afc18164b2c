from __future__ import annotations

import numpy as np

from jax_digit_validator.core.domain.entities.base import Batch, DatasetSplit
from jax_digit_validator.core.domain.entities.dataset import DatasetInfo
from jax_digit_validator.core.ports.dataset_provider import BatchSource, DatasetProviderPort


class NpzClassificationDatasetProvider(DatasetProviderPort):
    """Loads supervised arrays from a .npz file.

    Expected keys:
      - x_train, y_train
      - x_valid, y_valid and/or x_test, y_test

    The held-out split that is present serves both "valid" and "test" when only one
    of them is stored (e.g. the classic mnist.npz layout).
    """

    def __init__(self, *, path: str) -> None:
        with np.load(path) as data:
            self._x_train = data["x_train"]
            self._y_train = data["y_train"]
            held_out = {}
            for split in ("valid", "test"):
                if f"x_{split}" in data and f"y_{split}" in data:
                    held_out[split] = (data[f"x_{split}"], data[f"y_{split}"])

        if not held_out:
            raise ValueError(f"{path}: expected x_valid/y_valid or x_test/y_test arrays")
        self._held_out = {
            "valid": held_out.get("valid", held_out.get("test")),
            "test": held_out.get("test", held_out.get("valid")),
        }

        labels = [self._y_train, *(y for _, y in self._held_out.values())]
        num_classes = int(max(np.max(y) for y in labels if len(y))) + 1
        self._info = DatasetInfo(
            num_classes=num_classes,
            input_shape=tuple(self._x_train.shape[1:]),
            train_size=len(self._x_train),
            valid_size=len(self._held_out["valid"][0]),
            test_size=len(self._held_out["test"][0]),
        )

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def iter_batches(
        self,
        *,
        split: DatasetSplit,
        batch_size: int,
        shuffle: bool,
        seed: int,
    ) -> BatchSource:
        if split == "train":
            x, y = self._x_train, self._y_train
        else:
            x, y = self._held_out[split]

        n = len(x)
        idx = np.arange(n)
        if shuffle:
            rng = np.random.default_rng(seed)
            rng.shuffle(idx)

        for start in range(0, n, batch_size):
            sel = idx[start : start + batch_size]
            yield Batch(x=x[sel], y=y[sel])
