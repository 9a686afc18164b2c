from __future__ import annotations

import os

os.environ.setdefault("JAX_PLATFORMS", "cpu")

from pathlib import Path

import numpy as np
from typer.testing import CliRunner

from jax_digit_validator.adapters.left.cli import app


def _digits_npz(path: Path) -> str:
    rng = np.random.default_rng(0)
    np.savez(
        path,
        x_train=rng.normal(size=(64, 8, 8)).astype(np.float32),
        y_train=rng.integers(0, 10, size=(64,)),
        x_test=rng.normal(size=(24, 8, 8)).astype(np.float32),
        y_test=rng.integers(0, 10, size=(24,)),
    )
    return str(path)


def test_train_then_validate_and_report_best(tmp_path: Path) -> None:
    runner = CliRunner()
    npz = _digits_npz(tmp_path / "digits.npz")
    model = tmp_path / "model" / "digits.npz"
    log_path = tmp_path / "train.jsonl"

    result = runner.invoke(
        app,
        [
            "train",
            "--dataset-kind", "npz",
            "--npz-path", npz,
            "--model", str(model),
            "--valid-metrics", "accuracy",
            "--valid-metrics", "cross-entropy",
            "--epochs", "2",
            "--batch-size", "16",
            "--hidden", "16",
            "--log-path", str(log_path),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Best accuracy" in result.output
    best_ckpt = Path(f"{model}.best-accuracy.npz")
    assert best_ckpt.exists()

    result = runner.invoke(
        app,
        ["validate", str(best_ckpt), "--dataset-kind", "npz", "--npz-path", npz, "--split", "valid"],
    )
    assert result.exit_code == 0, result.output
    assert "Checkpoint was kept as best by: accuracy" in result.output
    assert "accuracy: " in result.output

    result = runner.invoke(app, ["best", str(log_path)])
    assert result.exit_code == 0, result.output
    assert "accuracy:" in result.output
    assert "cross-entropy:" in result.output


def test_unknown_metric_is_a_usage_error(tmp_path: Path) -> None:
    npz = _digits_npz(tmp_path / "digits.npz")
    result = CliRunner().invoke(
        app,
        ["train", "--dataset-kind", "npz", "--npz-path", npz, "--valid-metrics", "bleu"],
    )
    assert result.exit_code != 0
