from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

import jax
import jax.numpy as jnp
import numpy as np

from jax_digit_validator.core.domain.entities.base import Batch

Params = Any  # JAX pytree


class ClassifierFns(Protocol):
    """Pure model functions the core training and validation loops can use.

    Implementations must be JAX-compatible (jit/vmap friendly).
    """

    def init(self, *, key: jax.Array, input_dim: int, num_classes: int) -> Params: ...

    def apply(self, params: Params, x: jax.Array, *, is_training: bool) -> jax.Array: ...


@dataclass(frozen=True)
class MlpClassifierFns:
    hidden_sizes: tuple[int, ...] = (512, 256)
    param_scale: float = 1e-2
    activation: Callable[[jax.Array], jax.Array] = jax.nn.swish

    def init(self, *, key: jax.Array, input_dim: int, num_classes: int) -> Params:
        sizes = (input_dim, *self.hidden_sizes, num_classes)

        def init_layer(m: int, n: int, k: jax.Array):
            w_key, b_key = jax.random.split(k)
            w = self.param_scale * jax.random.normal(w_key, (m, n))
            b = self.param_scale * jax.random.normal(b_key, (n,))
            return {"w": w, "b": b}

        keys = jax.random.split(key, len(sizes) - 1)
        return [init_layer(m, n, k) for (m, n), k in zip(zip(sizes[:-1], sizes[1:]), keys)]

    def apply(self, params: Params, x: jax.Array, *, is_training: bool) -> jax.Array:
        # x: (batch, input_dim)
        h = x
        for layer in params[:-1]:
            h = self.activation(jnp.dot(h, layer["w"]) + layer["b"])
        last = params[-1]
        return jnp.dot(h, last["w"]) + last["b"]


def flatten_inputs(x: jax.Array) -> jax.Array:
    """Flatten any (B, ...) into (B, D). D is explicit so that B == 0 also works."""

    return jnp.reshape(x, (x.shape[0], int(np.prod(x.shape[1:]))))


class InferenceForward:
    """Forward pass over one batch, in inference mode unless `inference=False`.

    Wraps `model_fns.apply` in a single jitted function and returns the class scores
    as a flat float vector of length `batch.size * num_classes`, sample-major.
    """

    def __init__(self, model_fns: ClassifierFns, *, inference: bool = True) -> None:
        is_training = not inference
        self._apply = jax.jit(lambda p, x: model_fns.apply(p, x, is_training=is_training))

    def __call__(self, params: Params, batch: Batch) -> np.ndarray:
        x = flatten_inputs(jnp.asarray(batch.x))
        logits = self._apply(params, x)
        return np.asarray(logits, dtype=np.float32).reshape(-1)
