from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
import optax

from jax_digit_validator.core.domain.commands.train import TrainCommand
from jax_digit_validator.core.domain.commands.validate import ValidationOptions
from jax_digit_validator.core.domain.entities.base import Batch, StepMetrics
from jax_digit_validator.core.domain.entities.model import ClassifierFns, MlpClassifierFns, Params, flatten_inputs
from jax_digit_validator.core.domain.errors.training import TrainingError
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort
from jax_digit_validator.core.ports.dataset_provider import DatasetProviderPort
from jax_digit_validator.core.ports.metrics_sink import MetricsSinkPort
from jax_digit_validator.core.ports.validator_strategy import ValidatorStrategy
from jax_digit_validator.core.use_cases.validation_runner import ValidationRunner
from jax_digit_validator.core.validators.registry import create_validators


@dataclass(frozen=True)
class TrainResult:
    params: Params
    history: list[dict[str, Any]]
    best: dict[str, float]


class TrainClassifierUseCase:
    def __init__(
        self,
        *,
        dataset_provider: DatasetProviderPort,
        checkpoint_store: CheckpointStorePort | None = None,
        metrics_sink: MetricsSinkPort | None = None,
        model_fns: ClassifierFns | None = None,
        validation_options: ValidationOptions | None = None,
        validators: Sequence[ValidatorStrategy] | None = None,
    ) -> None:
        self._dataset = dataset_provider
        self._ckpt = checkpoint_store
        self._metrics = metrics_sink
        self._model = model_fns or MlpClassifierFns()
        self._options = validation_options or ValidationOptions()

        # Validators need somewhere to put their best checkpoints.
        if validators is None:
            validators = (
                create_validators(options=self._options, model_fns=self._model, checkpoint_store=self._ckpt)
                if self._ckpt
                else []
            )
        self._runner = ValidationRunner(
            validators,
            metrics_sink=metrics_sink,
            early_stopping_on=self._options.early_stopping_on,
        )

    @property
    def runner(self) -> ValidationRunner:
        return self._runner

    def run(self, command: TrainCommand) -> TrainResult:
        info = self._dataset.info
        if info.num_classes <= 1:
            raise TrainingError(f"num_classes must be >= 2, got {info.num_classes}")
        if len(info.input_shape) < 1:
            raise TrainingError(f"input_shape must be known, got {info.input_shape}")

        key = jax.random.PRNGKey(command.seed)
        params = self._model.init(key=key, input_dim=info.input_dim, num_classes=info.num_classes)

        if command.resume:
            if not self._ckpt:
                raise TrainingError("resume requires a checkpoint store")
            params, meta = self._ckpt.load(path=self._options.model)
            self._runner.load_state_dict(meta.get("validators", {}))

        optimizer = optax.adamw(
            learning_rate=command.learning_rate,
            b1=command.adamw_b1,
            b2=command.adamw_b2,
            eps=command.adamw_eps,
            eps_root=command.adamw_eps_root,
            weight_decay=command.weight_decay,
            nesterov=command.adamw_nesterov,
        )
        opt_state = optimizer.init(params)

        def loss_and_metrics(p: Params, batch: Batch) -> StepMetrics:
            x = flatten_inputs(jnp.asarray(batch.x))
            y = jnp.asarray(batch.y).astype(jnp.int32)
            logits = self._model.apply(p, x, is_training=True)
            loss = optax.softmax_cross_entropy_with_integer_labels(logits, y).mean()
            acc = jnp.mean(jnp.argmax(logits, axis=-1) == y)
            return StepMetrics(loss=float(loss), accuracy=float(acc))

        @jax.jit
        def train_step(p: Params, s: optax.OptState, x: jax.Array, y: jax.Array):
            def _loss_fn(pp: Params):
                logits = self._model.apply(pp, x, is_training=True)
                return optax.softmax_cross_entropy_with_integer_labels(logits, y).mean()

            loss, grads = jax.value_and_grad(_loss_fn)(p)
            updates, s2 = optimizer.update(grads, s, p)
            p2 = optax.apply_updates(p, updates)
            return p2, s2, loss

        def valid_batches():
            return self._dataset.iter_batches(
                split="valid",
                batch_size=self._options.valid_batch_size,
                shuffle=False,
                seed=command.seed,
            )

        history: list[dict[str, Any]] = []
        global_step = 0
        patience = self._options.early_stopping_patience

        for epoch in range(1, command.epochs + 1):
            for batch in self._dataset.iter_batches(
                split="train",
                batch_size=command.batch_size,
                shuffle=True,
                seed=command.seed + epoch,
            ):
                x = flatten_inputs(jnp.asarray(batch.x))
                y = jnp.asarray(batch.y).astype(jnp.int32)
                params, opt_state, loss = train_step(params, opt_state, x, y)
                global_step += 1

                if self._metrics and (global_step % command.log_every_steps == 0):
                    m = loss_and_metrics(params, batch)
                    self._metrics.log(step=global_step, metrics={"train/loss": m.loss, "train/acc": m.accuracy})

            epoch_summary: dict[str, Any] = {"epoch": epoch, "global_step": global_step}

            validated = (
                bool(self._runner.validators)
                and command.validate_every_epochs > 0
                and epoch % command.validate_every_epochs == 0
            )
            if validated:
                for r in self._runner.run_all(params, valid_batches, step=global_step):
                    epoch_summary[f"valid/{r.type_tag}"] = r.value
                    epoch_summary[f"best/{r.type_tag}"] = r.best
                epoch_summary["stalled"] = self._runner.stalled

            history.append(epoch_summary)
            if self._metrics:
                self._metrics.log(step=global_step, metrics=epoch_summary)

            if self._ckpt:
                self._ckpt.save(
                    params=params,
                    path=self._options.model,
                    include_metadata=True,
                    metadata={**epoch_summary, "validators": self._runner.state_dict()},
                )

            if validated and patience and self._runner.stalled >= patience:
                if self._metrics:
                    self._metrics.log(
                        step=global_step,
                        metrics={
                            "event": "early_stop",
                            "epoch": epoch,
                            "stalled": self._runner.stalled,
                            "patience": int(patience),
                        },
                    )
                break

        return TrainResult(params=params, history=history, best=self._runner.best)
