from __future__ import annotations

import numpy as np
import tensorflow as tf
import tensorflow_datasets as tfds

from jax_digit_validator.core.domain.entities.base import Batch, DatasetSplit
from jax_digit_validator.core.domain.entities.dataset import DatasetInfo
from jax_digit_validator.core.ports.dataset_provider import BatchSource, DatasetProviderPort


class TfdsClassificationDatasetProvider(DatasetProviderPort):
    """TFDS-backed digit dataset provider (MNIST by default).

    Uses TFDS + tf.data for preprocessing/batching, then yields NumPy batches. The
    "valid" split reads TFDS "validation" when the dataset has one, else "test".
    """

    def __init__(
        self,
        *,
        name: str = "mnist",
        data_dir: str = "/tmp/tfds",
        image_normalize_0_1: bool = True,
    ) -> None:
        data, info = tfds.load(name=name, data_dir=data_dir, as_supervised=True, with_info=True)
        self._splits = {
            "train": data.get("train"),
            "valid": data.get("validation") or data.get("test"),
            "test": data.get("test") or data.get("validation"),
        }
        if self._splits["train"] is None or self._splits["test"] is None:
            raise ValueError(f"TFDS dataset '{name}' must have train and test/validation splits")

        # input shape from features; for images, it's (H, W, C)
        shape = tuple(int(d) for d in info.features["image"].shape)
        self._info = DatasetInfo(
            num_classes=int(info.features["label"].num_classes),
            input_shape=shape,
            class_names=tuple(info.features["label"].names),
        )
        self._normalize = image_normalize_0_1

    @property
    def info(self) -> DatasetInfo:
        return self._info

    def _preprocess(self, image, label):
        if self._normalize:
            image = tf.cast(image, tf.float32) / 255.0
        return image, label

    def _pipeline(self, ds: tf.data.Dataset, *, batch_size: int, shuffle: bool, seed: int) -> tf.data.Dataset:
        ds = ds.map(self._preprocess, num_parallel_calls=tf.data.AUTOTUNE)
        if shuffle:
            ds = ds.shuffle(10_000, seed=seed, reshuffle_each_iteration=True)
        return ds.batch(batch_size).prefetch(tf.data.AUTOTUNE)

    def iter_batches(
        self,
        *,
        split: DatasetSplit,
        batch_size: int,
        shuffle: bool,
        seed: int,
    ) -> BatchSource:
        ds = self._splits[split]
        for x, y in tfds.as_numpy(self._pipeline(ds, batch_size=batch_size, shuffle=shuffle, seed=seed)):
            yield Batch(x=np.asarray(x), y=np.asarray(y))
