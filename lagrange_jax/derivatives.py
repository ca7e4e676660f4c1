"""Derivative evaluation for lagrange-jax.

Every solver in the package obtains gradients, Hessians and Jacobians
through the helpers in this module. Each helper uses a user-supplied
derivative function when one is given and falls back to JAX automatic
differentiation otherwise:

- gradients via reverse mode (``jax.grad``),
- Hessians via forward-over-reverse (``jax.hessian``),
- constraint Jacobians via reverse mode (``jax.jacrev``).

Objectives follow the optimistix convention ``fn(x, args) -> (f, aux)``;
constraints return a plain array ``c(x, args) -> c``.
"""

from collections.abc import Callable
from typing import Any, Optional

import jax
from beartype import beartype
from jaxtyping import Array, Float, jaxtyped

from lagrange_jax.types import ConstraintFn, GradFn, HessianFn, JacobianFn
from lagrange_jax.utils import args_closure, value_closure


def compute_grad(
    fn: Callable,
    y: Float[Array, " n"],
    args: Any,
    grad_fn: Optional[GradFn] = None,
) -> Float[Array, " n"]:
    """Compute gradient of objective using user-supplied fn or AD."""
    if grad_fn is not None:
        return grad_fn(y, args)
    return jax.grad(value_closure(fn, args))(y)


def compute_hessian(
    fn: Callable,
    y: Float[Array, " n"],
    args: Any,
    hess_fn: Optional[HessianFn] = None,
) -> Float[Array, "n n"]:
    """Compute the dense Hessian of the objective using user-supplied fn or AD."""
    if hess_fn is not None:
        return hess_fn(y, args)
    return jax.hessian(value_closure(fn, args))(y)


def compute_jacobian(
    constraint_fn: ConstraintFn,
    y: Float[Array, " n"],
    args: Any,
    jac_fn: Optional[JacobianFn] = None,
) -> Float[Array, "m n"]:
    """Compute the constraint Jacobian using user-supplied fn or AD."""
    if jac_fn is not None:
        return jac_fn(y, args)
    return jax.jacrev(args_closure(constraint_fn, args))(y)


@jaxtyped(typechecker=beartype)
def compute_lagrangian_gradient(
    grad_f: Float[Array, " n"],
    jac: Float[Array, "m n"],
    multipliers: Float[Array, " m"],
) -> Float[Array, " n"]:
    """Compute the gradient of the Lagrangian function.

    The Lagrangian is:
        L(x, lambda) = f(x) - lambda^T c(x)

    Its gradient with respect to x is:
        nabla_x L = nabla f(x) - J^T lambda

    Args:
        grad_f: Gradient of objective function nabla f(x).
        jac: Jacobian of equality constraints (m x n).
        multipliers: Lagrange multipliers for equality constraints.

    Returns:
        Gradient of Lagrangian nabla_x L.
    """
    if jac.shape[0] == 0:
        return grad_f
    return grad_f - jac.T @ multipliers
