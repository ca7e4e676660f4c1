from typing import Any, Callable, TypeVar

import jax
import jax.numpy as jnp

T = TypeVar("T")


def args_closure(
    fn: Callable[[jax.Array, T], jax.Array], args: T
) -> Callable[[jax.Array], jax.Array]:
    def wrapped(x: jax.Array) -> jax.Array:
        return fn(x, args)

    return wrapped


def value_closure(
    fn: Callable[[jax.Array, T], tuple[jax.Array, Any]], args: T
) -> Callable[[jax.Array], jax.Array]:
    """Drop the auxiliary output of an optimistix-style ``fn(x, args)``."""

    def wrapped(x: jax.Array) -> jax.Array:
        return fn(x, args)[0]

    return wrapped


def first_component(c: jax.Array) -> float:
    """Host-side float of the first constraint value."""
    return float(jnp.ravel(c)[0])
