from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from jax_digit_validator.core.domain.entities.base import ValidationResult
from jax_digit_validator.core.domain.entities.model import Params
from jax_digit_validator.core.domain.errors.training import TrainingError
from jax_digit_validator.core.ports.dataset_provider import BatchSource
from jax_digit_validator.core.ports.metrics_sink import MetricsSinkPort
from jax_digit_validator.core.ports.validator_strategy import ValidatorStrategy


@dataclass
class _BestState:
    best: float
    stalled: int = 0


EARLY_STOPPING_CRITERIA = ("first", "all", "any")


def initial_best(lower_is_better: bool) -> float:
    """Sentinel that any finite metric improves on."""

    return math.inf if lower_is_better else -math.inf


class ValidationRunner:
    """Runs validators and keeps the best metric seen by each of them.

    When a validator reports an improvement, its `save_best` is called before the
    new best is recorded. If the save raises, the old best stays in place so the
    same improvement is recognised (and saved) on the next pass.

    Not thread-safe: one runner drives one model at a time.
    """

    def __init__(
        self,
        validators: Sequence[ValidatorStrategy],
        *,
        metrics_sink: MetricsSinkPort | None = None,
        early_stopping_on: str = "first",
    ) -> None:
        tags = [v.type_tag() for v in validators]
        if len(set(tags)) != len(tags):
            raise TrainingError(f"duplicate validator types: {tags}")
        if early_stopping_on not in EARLY_STOPPING_CRITERIA:
            raise TrainingError(
                f"early_stopping_on must be one of: {', '.join(EARLY_STOPPING_CRITERIA)}, got {early_stopping_on!r}"
            )
        self._early_stopping_on = early_stopping_on

        self._validators = list(validators)
        self._metrics = metrics_sink
        self._state = {
            v.type_tag(): _BestState(best=initial_best(v.lower_is_better())) for v in self._validators
        }

    @property
    def validators(self) -> list[ValidatorStrategy]:
        return list(self._validators)

    @property
    def best(self) -> dict[str, float]:
        return {tag: s.best for tag, s in self._state.items()}

    @property
    def stalled(self) -> int:
        """Validations since the last improvement, as used for early stopping.

        "first": the first validator only. "all": stop once every validator has
        stalled (minimum). "any": stop once one validator has stalled (maximum).
        """

        counts = [self._state[v.type_tag()].stalled for v in self._validators]
        if not counts:
            return 0
        if self._early_stopping_on == "all":
            return min(counts)
        if self._early_stopping_on == "any":
            return max(counts)
        return counts[0]

    def improved(self, validator: ValidatorStrategy, value: float) -> bool:
        best = self._state[validator.type_tag()].best
        if validator.lower_is_better():
            return value < best
        return value > best

    def validate(
        self,
        validator: ValidatorStrategy,
        params: Params,
        batches: BatchSource,
        *,
        step: int,
    ) -> ValidationResult:
        tag = validator.type_tag()
        state = self._state[tag]

        value = float(validator.compute_metric(params, batches))
        is_better = self.improved(validator, value)
        if is_better:
            validator.save_best(params)
            state.best = value
            state.stalled = 0
        else:
            state.stalled += 1

        result = ValidationResult(
            type_tag=tag,
            value=value,
            best=state.best,
            improved=is_better,
            stalled=state.stalled,
        )
        if self._metrics:
            record: dict[str, Any] = {
                f"valid/{tag}": result.value,
                f"best/{tag}": result.best,
                f"stalled/{tag}": result.stalled,
            }
            if is_better:
                record["event"] = "new_best"
            self._metrics.log(step=step, metrics=record)
        return result

    def run_all(
        self,
        params: Params,
        batch_factory: Callable[[], BatchSource],
        *,
        step: int,
    ) -> list[ValidationResult]:
        """Run every validator, each over a fresh sweep from `batch_factory`."""

        return [self.validate(v, params, batch_factory(), step=step) for v in self._validators]

    def state_dict(self) -> dict[str, dict[str, Any]]:
        return {tag: {"best": s.best, "stalled": s.stalled} for tag, s in self._state.items()}

    def load_state_dict(self, state: dict[str, dict[str, Any]]) -> None:
        """Restore best/stalled values, e.g. when resuming a run.

        Tags not known to this runner are ignored.
        """

        for tag, values in state.items():
            if tag in self._state:
                self._state[tag] = _BestState(best=float(values["best"]), stalled=int(values.get("stalled", 0)))
