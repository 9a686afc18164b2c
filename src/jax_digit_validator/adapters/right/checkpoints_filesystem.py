from __future__ import annotations

import json
import os
import re
import tempfile
import zipfile
from pathlib import Path
from typing import Any

import numpy as np
from safetensors import safe_open
from safetensors.numpy import save_file

from jax_digit_validator.adapters.right.metrics_jsonl import to_jsonable
from jax_digit_validator.core.domain.entities.model import Params
from jax_digit_validator.core.domain.errors.validation import CheckpointError
from jax_digit_validator.core.ports.checkpoint_store import CheckpointStorePort

METADATA_KEY = "special:metadata.json"

_LEAF_RE = re.compile(r"^layer_(\d+)\.(w|b)$")


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def flatten_params(params: Params) -> dict[str, np.ndarray]:
    """MLP params (list of {"w", "b"} layers) -> flat name/array dict."""

    flat = {}
    for i, layer in enumerate(params):
        flat[f"layer_{i}.w"] = np.ascontiguousarray(np.asarray(layer["w"]))
        flat[f"layer_{i}.b"] = np.ascontiguousarray(np.asarray(layer["b"]))
    return flat


def unflatten_params(flat: dict[str, np.ndarray]) -> Params:
    layers: dict[int, dict[str, np.ndarray]] = {}
    for name, value in flat.items():
        m = _LEAF_RE.match(name)
        if m is None:
            continue
        layers.setdefault(int(m.group(1)), {})[m.group(2)] = np.asarray(value)
    return [layers[i] for i in sorted(layers)]


class FilesystemCheckpointStore(CheckpointStorePort):
    """Saves MLP params to local files.

    The format follows the path suffix:
      - `.npz`: NumPy archive; metadata stored as a JSON string under
        `special:metadata.json`.
      - `.safetensors`: safetensors file; metadata stored in its header.

    Writes go to a temporary file next to the target and are moved into place, so an
    existing checkpoint is either fully replaced or left untouched.
    """

    def __init__(self, *, dir_path: str | None = None) -> None:
        # Relative checkpoint paths are resolved against dir_path when given.
        self._dir = Path(dir_path) if dir_path else None
        if self._dir is not None:
            self._dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if self._dir is not None and not p.is_absolute():
            p = self._dir / p
        return p

    def save(
        self,
        *,
        params: Params,
        path: str,
        include_metadata: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        target = self._resolve(path)
        flat = flatten_params(params)
        meta_json = json.dumps(to_jsonable(metadata or {}), sort_keys=True) if include_metadata else None

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
            os.close(fd)
            try:
                if target.suffix == ".safetensors":
                    header = {"metadata.json": meta_json} if meta_json is not None else None
                    save_file(flat, tmp_name, metadata=header)
                else:
                    arrays = dict(flat)
                    if meta_json is not None:
                        arrays[METADATA_KEY] = np.asarray(meta_json)
                    with open(tmp_name, "wb") as f:
                        np.savez(f, **arrays)
                # mkstemp creates 0600 files; give the checkpoint the usual umask-based mode.
                os.chmod(tmp_name, 0o666 & ~_current_umask())
                os.replace(tmp_name, target)
            finally:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
        except (OSError, ValueError, TypeError) as e:
            raise CheckpointError(str(target), f"save failed: {e}") from e

    def load(self, *, path: str) -> tuple[Params, dict[str, Any]]:
        source = self._resolve(path)
        try:
            if source.suffix == ".safetensors":
                with safe_open(str(source), framework="np") as f:
                    flat = {k: f.get_tensor(k) for k in f.keys()}
                    header = f.metadata() or {}
                meta_json = header.get("metadata.json")
            else:
                with np.load(source) as data:
                    flat = {k: data[k] for k in data.files if k != METADATA_KEY}
                    meta_json = str(data[METADATA_KEY]) if METADATA_KEY in data.files else None
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise CheckpointError(str(source), f"load failed: {e}") from e

        params = unflatten_params(flat)
        if not params:
            raise CheckpointError(str(source), "no layer_<i>.w/b arrays found")
        return params, (json.loads(meta_json) if meta_json else {})
