"""Equality-constrained problems solved by the lagrange-jax drivers.

All drivers maximize ``objective(x, args)`` subject to
``constraint(x, args) == 0`` over strictly positive x. The concrete problem
shipped with the package is Cobb-Douglas consumer choice:

    maximize    u(x) = sum_i alpha_i * log(x_i)
    subject to  p^T x = I

whose solution x_i* = alpha_i * I / p_i and multiplier lambda* = 1 / I are
known in closed form, which makes it a correctness oracle for the solvers.
"""

import abc
from typing import Any

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
from jaxtyping import Array, Float, PRNGKeyArray

from lagrange_jax.errors import InvalidProblemError

# Tolerance on |sum(alpha) - 1| accepted at construction time
ALPHA_SUM_ATOL = 1e-6


class AbstractConstrainedProblem(eqx.Module):
    """An objective to maximize under equality constraints ``c(x) = 0``."""

    @abc.abstractmethod
    def objective(self, x: Float[Array, " n"], args: Any) -> Float[Array, ""]:
        """Scalar objective to maximize."""

    @abc.abstractmethod
    def constraint(self, x: Float[Array, " n"], args: Any) -> Float[Array, " m"]:
        """Equality constraint values, zero at feasible points."""


class ConsumerProblem(AbstractConstrainedProblem):
    """Cobb-Douglas utility maximization under a linear budget constraint.

    Attributes:
        alpha: Utility weights, strictly positive and summing to one.
        prices: Strictly positive prices, same length as ``alpha``.
        income: Strictly positive income.

    Raises:
        InvalidProblemError: If any of the above conditions is violated.

    Example:
        >>> import jax.numpy as jnp
        >>> from lagrange_jax import ConsumerProblem
        >>>
        >>> problem = ConsumerProblem(
        ...     alpha=jnp.array([0.25, 0.75]), prices=jnp.array([1.0, 3.0])
        ... )
        >>> x_star = problem.closed_form_solution()  # [0.25, 0.25]
    """

    alpha: Float[Array, " n"] = eqx.field(converter=jnp.asarray)
    prices: Float[Array, " n"] = eqx.field(converter=jnp.asarray)
    income: float = 1.0

    def __check_init__(self):
        alpha = np.asarray(self.alpha, dtype=float)
        prices = np.asarray(self.prices, dtype=float)

        if alpha.ndim != 1 or prices.ndim != 1:
            raise InvalidProblemError(
                f"alpha and prices must be 1-D, got shapes {alpha.shape} "
                f"and {prices.shape}"
            )
        if alpha.shape[0] == 0:
            raise InvalidProblemError("alpha must have at least one entry")
        if alpha.shape != prices.shape:
            raise InvalidProblemError(
                f"alpha has {alpha.shape[0]} entries but prices has "
                f"{prices.shape[0]}"
            )
        if not (np.all(np.isfinite(alpha)) and np.all(np.isfinite(prices))):
            raise InvalidProblemError("alpha and prices must be finite")
        if np.any(alpha <= 0):
            raise InvalidProblemError("alpha must be strictly positive")
        if abs(alpha.sum() - 1.0) > ALPHA_SUM_ATOL:
            raise InvalidProblemError(
                f"alpha must sum to one, got {alpha.sum():.10g}"
            )
        if np.any(prices <= 0):
            raise InvalidProblemError("prices must be strictly positive")
        income = float(self.income)
        if not np.isfinite(income) or income <= 0:
            raise InvalidProblemError(f"income must be positive, got {income}")

    @property
    def num_goods(self) -> int:
        return self.alpha.shape[0]

    def objective(self, x: Float[Array, " n"], args: Any) -> Float[Array, ""]:
        return jnp.sum(self.alpha * jnp.log(x))

    def constraint(self, x: Float[Array, " n"], args: Any) -> Float[Array, " 1"]:
        return jnp.atleast_1d(jnp.dot(self.prices, x) - self.income)

    def closed_form_solution(self) -> Float[Array, " n"]:
        """Demand x_i* = alpha_i * I / p_i."""
        return self.alpha * self.income / self.prices

    def closed_form_multiplier(self) -> Float[Array, " 1"]:
        """Budget multiplier lambda* = 1 / I (marginal utility of income)."""
        return jnp.atleast_1d(1.0 / jnp.asarray(self.income))


def random_consumer_problem(
    key: PRNGKeyArray, n: int, income: float = 1.0
) -> ConsumerProblem:
    """Draw a reproducible ``n``-good consumer problem.

    Weights are drawn uniformly on [0.1, 1) and normalized to sum to one;
    prices are drawn uniformly on [1, 2).

    Args:
        key: JAX PRNG key.
        n: Number of goods.
        income: Consumer income.

    Returns:
        A validated ``ConsumerProblem``.
    """
    alpha_key, price_key = jax.random.split(key)
    raw = jax.random.uniform(alpha_key, (n,), minval=0.1, maxval=1.0)
    alpha = raw / jnp.sum(raw)
    prices = jax.random.uniform(price_key, (n,), minval=1.0, maxval=2.0)
    return ConsumerProblem(alpha=alpha, prices=prices, income=income)
