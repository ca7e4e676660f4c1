"""Domain transforms between unconstrained and strictly positive vectors.

The solvers in this package never handle inequality constraints. Positivity
of the decision variables is obtained instead by optimizing over an
unconstrained vector z and mapping it through a bijection x = T(z) with
x > 0 componentwise.
"""

import abc

import equinox as eqx
import jax
import jax.numpy as jnp
from jaxtyping import Array, Float


class AbstractTransform(eqx.Module):
    """Bijection between ℝⁿ and the open positive orthant.

    ``forward`` and ``inverse`` must be exact two-sided inverses.
    """

    @abc.abstractmethod
    def forward(self, z: Float[Array, " n"]) -> Float[Array, " n"]:
        """Map an unconstrained vector to a strictly positive one."""

    @abc.abstractmethod
    def inverse(self, x: Float[Array, " n"]) -> Float[Array, " n"]:
        """Map a strictly positive vector back to unconstrained coordinates."""


class ExpTransform(AbstractTransform):
    """Componentwise x = exp(z), z = log(x)."""

    def forward(self, z: Float[Array, " n"]) -> Float[Array, " n"]:
        return jnp.exp(z)

    def inverse(self, x: Float[Array, " n"]) -> Float[Array, " n"]:
        return jnp.log(x)


class SoftplusTransform(AbstractTransform):
    """Componentwise x = log(1 + exp(z)), z = log(exp(x) - 1).

    Softplus grows linearly for large z, which keeps the Hessian of
    transformed objectives better scaled than the exponential map when the
    solution has large components.
    """

    def forward(self, z: Float[Array, " n"]) -> Float[Array, " n"]:
        return jax.nn.softplus(z)

    def inverse(self, x: Float[Array, " n"]) -> Float[Array, " n"]:
        # log(expm1(x)) = x + log(1 - exp(-x)), stable for large x
        return x + jnp.log(-jnp.expm1(-x))
