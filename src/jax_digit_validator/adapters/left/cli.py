from __future__ import annotations

from dataclasses import asdict
import os
import warnings
from pathlib import Path

import inject
import typer

# Default to CPU unless explicitly overridden by the user.
# This avoids noisy CUDA plugin initialization errors on machines without CUDA libraries.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

# Reduce known-noisy warning coming from TF/Keras in some environments.
warnings.filterwarnings(
    "ignore",
    message=r"In the future `np\.object` will be defined as the corresponding NumPy scalar\.",
    category=FutureWarning,
)

from jax_digit_validator.adapters.left.inject_config import configure_injections
from jax_digit_validator.adapters.right.checkpoints_filesystem import FilesystemCheckpointStore
from jax_digit_validator.adapters.right.metrics_jsonl import (
    CompositeMetricsSink,
    JsonlFileMetricsSink,
    best_from_records,
    read_jsonl_records,
)
from jax_digit_validator.adapters.right.metrics_stdout import StdoutMetricsSink
from jax_digit_validator.core.domain.commands.train import TrainCommand
from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.model import MlpClassifierFns
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort
from jax_digit_validator.core.ports.dataset_provider import DatasetProviderPort
from jax_digit_validator.core.use_cases.train_classifier import TrainClassifierUseCase
from jax_digit_validator.core.use_cases.validation_runner import EARLY_STOPPING_CRITERIA
from jax_digit_validator.core.validators.registry import VALIDATORS, create_validators

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _dataset(dataset_kind: str, *, tfds_name: str, tfds_data_dir: str, npz_path: str) -> DatasetProviderPort:
    dataset_kind = dataset_kind.lower().strip()
    if dataset_kind == "tfds":
        # Imported lazily: TensorFlow is slow to import and unused for npz data.
        from jax_digit_validator.adapters.right.data_loaders.tfds_classification import (
            TfdsClassificationDatasetProvider,
        )

        return TfdsClassificationDatasetProvider(name=tfds_name, data_dir=tfds_data_dir)
    if dataset_kind == "npz":
        if not npz_path:
            raise typer.BadParameter("--npz-path is required when dataset_kind=npz")
        from jax_digit_validator.adapters.right.data_loaders.npz_classification import (
            NpzClassificationDatasetProvider,
        )

        return NpzClassificationDatasetProvider(path=npz_path)
    raise typer.BadParameter("dataset_kind must be one of: tfds, npz")


def _check_metrics(valid_metrics: list[str]) -> tuple[str, ...]:
    tags = tuple(m.lower().strip() for m in valid_metrics)
    unknown = [t for t in tags if t not in VALIDATORS]
    if unknown:
        raise typer.BadParameter(f"unknown --valid-metrics {unknown}; expected: {', '.join(sorted(VALIDATORS))}")
    return tags


def _check_early_stopping_on(value: str) -> str:
    value = value.lower().strip()
    if value not in EARLY_STOPPING_CRITERIA:
        raise typer.BadParameter(f"--early-stopping-on must be one of: {', '.join(EARLY_STOPPING_CRITERIA)}")
    return value


@app.command()
def train(
    dataset_kind: str = typer.Option("tfds", help="Dataset adapter to use: tfds | npz"),
    tfds_name: str = typer.Option("mnist", help="TFDS dataset name (when dataset_kind=tfds)"),
    tfds_data_dir: str = typer.Option("/tmp/tfds", help="TFDS cache directory (when dataset_kind=tfds)"),
    npz_path: str = typer.Option("", help="Path to .npz (when dataset_kind=npz)"),
    model: str = typer.Option(
        "model/mnist.npz",
        help="Checkpoint path; best params go to <model>.best-<metric>.npz",
    ),
    valid_metrics: list[str] = typer.Option(
        ["accuracy"], help="Repeatable validators: --valid-metrics accuracy --valid-metrics cross-entropy"
    ),
    valid_every: int = typer.Option(1, min=0, help="Validate every N epochs (0 disables)"),
    valid_batch_size: int = typer.Option(64, min=1),
    early_stopping: int = typer.Option(0, min=0, help="Stop after N validations without improvement"),
    early_stopping_on: str = typer.Option(
        "first", help="Validators that count for early stopping: first | all | any"
    ),
    epochs: int = typer.Option(10, min=1),
    batch_size: int = typer.Option(32, min=1),
    lr: float = typer.Option(1e-3),
    weight_decay: float = typer.Option(0.0),
    hidden: list[int] = typer.Option([512, 256], help="Repeatable hidden sizes: --hidden 512 --hidden 256"),
    seed: int = typer.Option(0),
    resume: bool = typer.Option(False, "--resume/--no-resume", help="Continue from the params stored at --model"),
    log_path: str = typer.Option(
        "",
        help="If set, append metrics/events as JSONL to this path (e.g. logs/train.jsonl)",
    ),
    cpu: bool = typer.Option(True, "--cpu/--no-cpu", help="Force CPU (recommended on machines without CUDA libs)"),
) -> None:
    """Train a digit classifier, validating and keeping the best checkpoint per metric."""

    if cpu and os.environ.get("JAX_PLATFORMS") != "cpu":
        typer.echo("Note: set JAX_PLATFORMS=cpu before running to force CPU.")

    if resume and not Path(model).exists():
        raise typer.BadParameter(f"--resume given but {model} does not exist")

    dataset = _dataset(dataset_kind, tfds_name=tfds_name, tfds_data_dir=tfds_data_dir, npz_path=npz_path)
    options = ValidationOptions(
        model=model,
        valid_metrics=_check_metrics(valid_metrics),
        valid_batch_size=valid_batch_size,
        early_stopping_patience=early_stopping,
        early_stopping_on=_check_early_stopping_on(early_stopping_on),
    )

    stdout_metrics = StdoutMetricsSink()
    metrics = (
        CompositeMetricsSink(stdout_metrics, JsonlFileMetricsSink(path=log_path))
        if log_path
        else stdout_metrics
    )

    configure_injections(
        dataset_provider=dataset,
        checkpoint_store=FilesystemCheckpointStore(),
        metrics_sink=metrics,
        validation_options=options,
        model_fns=MlpClassifierFns(hidden_sizes=tuple(hidden)),
    )

    cmd = TrainCommand(
        epochs=epochs,
        batch_size=batch_size,
        seed=seed,
        learning_rate=lr,
        weight_decay=weight_decay,
        hidden_sizes=tuple(hidden),
        log_every_steps=100,
        resume=resume,
        validate_every_epochs=valid_every,
    )

    use_case = inject.instance(TrainClassifierUseCase)

    metrics.log(
        step=0,
        metrics={
            "event": "run_start",
            "command": "train",
            "dataset_kind": dataset_kind,
            "model": model,
            "valid_metrics": list(options.valid_metrics),
            "epochs": epochs,
            "batch_size": batch_size,
            "lr": lr,
            "seed": seed,
        },
    )

    result = use_case.run(cmd)
    typer.echo("Training complete")
    typer.echo(f"Final epoch summary: {result.history[-1] if result.history else {}}")
    for tag, value in result.best.items():
        typer.echo(f"Best {tag}: {value:.6g} -> {options.best_path(tag)}")
    typer.echo(f"Train command: {asdict(cmd)}")


@app.command()
def validate(
    checkpoint: str = typer.Argument(..., help="Params file (.npz or .safetensors)"),
    dataset_kind: str = typer.Option("tfds", help="Dataset adapter to use: tfds | npz"),
    tfds_name: str = typer.Option("mnist"),
    tfds_data_dir: str = typer.Option("/tmp/tfds"),
    npz_path: str = typer.Option(""),
    split: str = typer.Option("test", help="Held-out split: valid | test"),
    valid_metrics: list[str] = typer.Option(["accuracy"]),
    valid_batch_size: int = typer.Option(64, min=1),
) -> None:
    """Score a saved checkpoint on a held-out split. Does not write any checkpoint."""

    if split not in {"valid", "test"}:
        raise typer.BadParameter("split must be one of: valid, test")

    dataset = _dataset(dataset_kind, tfds_name=tfds_name, tfds_data_dir=tfds_data_dir, npz_path=npz_path)
    options = ValidationOptions(
        model=checkpoint,
        valid_metrics=_check_metrics(valid_metrics),
        valid_batch_size=valid_batch_size,
    )
    configure_injections(
        dataset_provider=dataset,
        checkpoint_store=FilesystemCheckpointStore(),
        metrics_sink=StdoutMetricsSink(),
        validation_options=options,
    )

    store = inject.instance(CheckpointStorePort)
    params, meta = store.load(path=checkpoint)
    if meta.get("validator"):
        typer.echo(f"Checkpoint was kept as best by: {meta['validator']}")

    validators = create_validators(options=options, model_fns=MlpClassifierFns(), checkpoint_store=store)

    for v in validators:
        batches = dataset.iter_batches(split=split, batch_size=options.valid_batch_size, shuffle=False, seed=0)
        value = v.compute_metric(params, batches)
        typer.echo(f"{v.type_tag()}: {value:.6g}")


@app.command()
def best(
    log_path: str = typer.Argument(..., help="JSONL log written by `train --log-path`"),
) -> None:
    """Print the last recorded best value of each validator in a training log."""

    found = best_from_records(read_jsonl_records(log_path))
    if not found:
        typer.echo("No new_best events found")
        raise typer.Exit(code=1)
    for tag, info in sorted(found.items()):
        typer.echo(f"{tag}: {info['value']} (step {info['step']})")


if __name__ == "__main__":
    app()
