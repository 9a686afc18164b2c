from __future__ import annotations

import os

os.environ.setdefault("JAX_PLATFORMS", "cpu")

import numpy as np
import pytest

from _fakes import ScoresAreInputs
from jax_digit_validator.adapters.right.checkpoints_filesystem import FilesystemCheckpointStore
from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.errors.validation import CheckpointError, ValidationError
from jax_digit_validator.core.validators.accuracy import AccuracyValidator


def _params():
    rng = np.random.default_rng(0)
    return [
        {"w": rng.normal(size=(4, 3)).astype(np.float32), "b": np.zeros(3, dtype=np.float32)},
        {"w": rng.normal(size=(3, 2)).astype(np.float32), "b": np.ones(2, dtype=np.float32)},
    ]


def _assert_same(a, b) -> None:
    assert len(a) == len(b)
    for la, lb in zip(a, b):
        np.testing.assert_array_equal(la["w"], lb["w"])
        np.testing.assert_array_equal(la["b"], lb["b"])


def test_npz_round_trip_with_metadata(tmp_path) -> None:
    store = FilesystemCheckpointStore()
    path = str(tmp_path / "model.npz")

    store.save(params=_params(), path=path, include_metadata=True, metadata={"epoch": 3, "best": float("-inf")})
    params, meta = store.load(path=path)

    _assert_same(params, _params())
    assert meta["epoch"] == 3
    assert meta["best"] == float("-inf")


def test_npz_without_metadata(tmp_path) -> None:
    store = FilesystemCheckpointStore()
    path = str(tmp_path / "model.npz")
    store.save(params=_params(), path=path, metadata={"ignored": True})
    assert store.load(path=path)[1] == {}


def test_safetensors_round_trip(tmp_path) -> None:
    store = FilesystemCheckpointStore(dir_path=str(tmp_path))
    store.save(params=_params(), path="latest.safetensors", include_metadata=True, metadata={"epoch": 1})

    params, meta = store.load(path="latest.safetensors")

    assert (tmp_path / "latest.safetensors").exists()
    _assert_same(params, _params())
    assert meta == {"epoch": 1}


def test_save_overwrites_previous_file(tmp_path) -> None:
    store = FilesystemCheckpointStore()
    path = str(tmp_path / "model.npz")
    store.save(params=_params(), path=path)
    newer = [{"w": np.full((2, 2), 7.0, dtype=np.float32), "b": np.zeros(2, dtype=np.float32)}]
    store.save(params=newer, path=path)

    _assert_same(store.load(path=path)[0], newer)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["model.npz"]


def test_write_failure_raises_checkpoint_error(tmp_path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(CheckpointError):
        FilesystemCheckpointStore().save(params=_params(), path=str(blocker / "model.npz"))


def test_missing_checkpoint_raises_checkpoint_error(tmp_path) -> None:
    with pytest.raises(CheckpointError):
        FilesystemCheckpointStore().load(path=str(tmp_path / "missing.npz"))


def test_save_best_twice_reloads_identical_params(tmp_path) -> None:
    model = str(tmp_path / "mnist.npz")
    store = FilesystemCheckpointStore()
    v = AccuracyValidator(
        options=ValidationOptions(model=model),
        model_fns=ScoresAreInputs(),
        checkpoint_store=store,
    )

    v.save_best(_params())
    first, meta = store.load(path=model + ".best-accuracy.npz")
    v.save_best(_params())
    second, _ = store.load(path=model + ".best-accuracy.npz")

    _assert_same(first, second)
    assert meta["validator"] == "accuracy"
    assert meta["options"]["inference"] is True


@pytest.mark.skipif(os.name == "nt", reason="POSIX file modes")
def test_saved_checkpoint_follows_umask(tmp_path) -> None:
    old = os.umask(0o022)
    try:
        for name in ("model.npz", "model.safetensors"):
            path = tmp_path / name
            FilesystemCheckpointStore().save(params=_params(), path=str(path))
            assert path.stat().st_mode & 0o777 == 0o644
    finally:
        os.umask(old)


def test_checkpoint_errors_are_not_validation_errors(tmp_path) -> None:
    with pytest.raises(CheckpointError) as excinfo:
        FilesystemCheckpointStore().load(path=str(tmp_path / "missing.npz"))
    assert not isinstance(excinfo.value, ValidationError)
