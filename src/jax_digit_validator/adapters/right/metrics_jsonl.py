from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any

import numpy as np

from jax_digit_validator.core.ports.metrics_sink import MetricsSinkPort


def to_jsonable(value: Any) -> Any:
    """Best-effort conversion of metric values (NumPy/JAX scalars, arrays, tuples) to JSON types.

    Non-finite floats are kept; `json` writes them as `Infinity`/`NaN` and reads them back.
    """

    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, np.generic):
        return value.item()

    # numpy / jax arrays
    if hasattr(value, "shape") and hasattr(value, "dtype"):
        arr = np.asarray(value)
        return arr.item() if arr.shape == () else arr.tolist()

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]

    return str(value)


def read_jsonl_records(path: str | Path) -> list[dict[str, Any]]:
    """Read records written by `JsonlFileMetricsSink`; blank or malformed lines are skipped."""

    records: list[dict[str, Any]] = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(rec, dict) and isinstance(rec.get("metrics"), dict):
                records.append(rec)
    return records


def best_from_records(records: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Last `new_best` value and step per validator type, e.g. {"accuracy": {"value": 0.97, "step": 600}}."""

    best: dict[str, dict[str, Any]] = {}
    for rec in records:
        metrics = rec["metrics"]
        if metrics.get("event") != "new_best":
            continue
        for key, value in metrics.items():
            if key.startswith("best/"):
                best[key[len("best/"):]] = {"value": value, "step": rec.get("step")}
    return best


class JsonlFileMetricsSink(MetricsSinkPort):
    """Append-only JSONL metrics sink.

    Each call writes one JSON object on a single line:
      {"ts": "...", "step": 123, "metrics": {...}}
    """

    def __init__(self, *, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        line = json.dumps(
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "step": int(step),
                "metrics": to_jsonable(metrics),
            },
            ensure_ascii=False,
        )
        with self._lock, self._path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


class CompositeMetricsSink(MetricsSinkPort):
    """Tee metrics to multiple sinks."""

    def __init__(self, *sinks: MetricsSinkPort | None) -> None:
        self._sinks = [s for s in sinks if s is not None]

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        for s in self._sinks:
            s.log(step=step, metrics=metrics)
