from __future__ import annotations

from typing import Any, Protocol

from jax_digit_validator.core.domain.entities.model import Params


class CheckpointStorePort(Protocol):
    """Port for saving/loading model params.

    Keep I/O out of core; adapters implement this (filesystem, S3, etc.).
    Write failures surface as `CheckpointError`.
    """

    def save(
        self,
        *,
        params: Params,
        path: str,
        include_metadata: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...

    def load(self, *, path: str) -> tuple[Params, dict[str, Any]]: ...
