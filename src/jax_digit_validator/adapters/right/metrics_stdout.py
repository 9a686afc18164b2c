from __future__ import annotations

from typing import Any

from jax_digit_validator.core.ports.metrics_sink import MetricsSinkPort


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


class StdoutMetricsSink(MetricsSinkPort):
    """Prints one line per record, e.g. `[step=600] valid/accuracy=0.9712, ...`."""

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        items = ", ".join(f"{k}={_fmt(v)}" for k, v in metrics.items())
        print(f"[step={step}] {items}")
