from __future__ import annotations

import os

# Ensure tests run on CPU-only machines even if JAX is installed with CUDA extras.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

import jax
import numpy as np
import pytest

from _fakes import RecordingCheckpointStore, ScoresAreInputs
from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.base import Batch
from jax_digit_validator.core.domain.entities.model import MlpClassifierFns, flatten_inputs
from jax_digit_validator.core.domain.errors.validation import EmptyDatasetError, ShapeMismatchError
from jax_digit_validator.core.validators.accuracy import AccuracyValidator
from jax_digit_validator.core.validators.cross_entropy import CrossEntropyValidator


def _validator(store=None, model: str = "runs/mnist.npz") -> AccuracyValidator:
    return AccuracyValidator(
        options=ValidationOptions(model=model),
        model_fns=ScoresAreInputs(),
        checkpoint_store=store or RecordingCheckpointStore(),
    )


def _batches(scores: np.ndarray, labels: np.ndarray, batch_size: int):
    for start in range(0, len(labels), batch_size):
        yield Batch(x=scores[start : start + batch_size], y=labels[start : start + batch_size])


SCORES = np.asarray([[0.1, 0.8, 0.1], [0.9, 0.05, 0.05]], dtype=np.float32)


def test_all_correct_gives_one() -> None:
    v = _validator()
    assert v.compute_metric([], [Batch(x=SCORES, y=np.asarray([1, 0]))]) == pytest.approx(1.0)


def test_half_correct_gives_half() -> None:
    v = _validator()
    assert v.compute_metric([], [Batch(x=SCORES, y=np.asarray([1, 2]))]) == pytest.approx(0.5)


def test_metric_does_not_depend_on_batch_boundaries() -> None:
    rng = np.random.default_rng(0)
    scores = rng.normal(size=(29, 10)).astype(np.float32)
    labels = rng.integers(0, 10, size=(29,))
    v = _validator()

    by_4 = v.compute_metric([], _batches(scores, labels, 4))
    by_7 = v.compute_metric([], _batches(scores, labels, 7))
    expected = float(np.mean(np.argmax(scores, axis=-1) == labels))

    assert by_4 == by_7
    assert by_4 == pytest.approx(expected)


def test_empty_sweep_raises() -> None:
    with pytest.raises(EmptyDatasetError):
        _validator().compute_metric([], iter([]))


def test_label_arity_mismatch_fails_the_pass() -> None:
    bad = Batch(x=SCORES, y=np.asarray([0, 1, 2, 0]))
    good = Batch(x=SCORES, y=np.asarray([1, 0]))
    with pytest.raises(ShapeMismatchError):
        _validator().compute_metric([], [good, bad])


def test_direction_and_type_tag() -> None:
    v = _validator()
    assert v.lower_is_better() is False
    assert v.type_tag() == "accuracy"


def test_options_are_switched_to_inference() -> None:
    assert _validator().options.inference is True


def test_save_best_targets_type_tagged_npz() -> None:
    store = RecordingCheckpointStore()
    v = _validator(store, model="runs/mnist.npz")
    params = [{"w": np.ones((2, 2)), "b": np.zeros(2)}]

    v.save_best(params)

    assert len(store.saves) == 1
    saved = store.saves[0]
    assert saved["path"] == "runs/mnist.npz.best-accuracy.npz"
    assert saved["include_metadata"] is True
    assert saved["params"] is params
    assert saved["metadata"]["validator"] == "accuracy"


def test_cross_entropy_validator_is_lower_is_better() -> None:
    v = CrossEntropyValidator(
        options=ValidationOptions(model="m.npz"),
        model_fns=ScoresAreInputs(),
        checkpoint_store=RecordingCheckpointStore(),
    )
    uniform = np.zeros((2, 4), dtype=np.float32)

    value = v.compute_metric([], [Batch(x=uniform, y=np.asarray([0, 3]))])

    assert v.lower_is_better() is True
    assert v.type_tag() == "cross-entropy"
    assert value == pytest.approx(np.log(4.0), rel=1e-5)
    with pytest.raises(EmptyDatasetError):
        v.compute_metric([], [])


def _mlp_validator() -> tuple[AccuracyValidator, list]:
    model = MlpClassifierFns(hidden_sizes=(4,))
    params = model.init(key=jax.random.PRNGKey(0), input_dim=16, num_classes=3)
    v = AccuracyValidator(
        options=ValidationOptions(model="m.npz"),
        model_fns=model,
        checkpoint_store=RecordingCheckpointStore(),
    )
    return v, params


def test_empty_batch_in_sweep_does_not_change_the_metric() -> None:
    v, params = _mlp_validator()
    good = Batch(x=np.zeros((2, 4, 4), dtype=np.float32), y=np.asarray([0, 1]))
    empty = Batch(x=np.zeros((0, 4, 4), dtype=np.float32), y=np.zeros((0,), dtype=np.int64))

    assert v.compute_metric(params, [good, empty]) == v.compute_metric(params, [good])


def test_sweep_of_only_empty_batches_raises() -> None:
    v, params = _mlp_validator()
    empty = Batch(x=np.zeros((0, 4, 4), dtype=np.float32), y=np.zeros((0,), dtype=np.int64))

    with pytest.raises(EmptyDatasetError):
        v.compute_metric(params, [empty, empty])


def test_flatten_inputs_keeps_width_for_zero_samples() -> None:
    assert flatten_inputs(np.zeros((0, 4, 4), dtype=np.float32)).shape == (0, 16)
