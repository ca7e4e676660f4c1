"""Per-round objectives built by the constrained drivers.

Each outer round of a driver builds one of these modules from the problem,
the domain transform and the round's penalty weight and multipliers, and
hands it to the Newton solver. They are plain PyTrees, so a round's
objective can be inspected, compared or re-evaluated after the fact.

All objectives are evaluated in unconstrained coordinates z, with the
decision variables recovered as x = T(z), and follow the optimistix
convention ``fn(z, args) -> (value, aux)``. The auxiliary output is the
constraint value c(x) at the evaluated point.
"""

from typing import Any

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array, Float

from lagrange_jax.problems import AbstractConstrainedProblem
from lagrange_jax.transforms import AbstractTransform


class PenaltyObjective(eqx.Module):
    """Quadratic penalty objective.

        phi(z) = f(T(z)) - P * ||c(T(z))||^2

    Attributes:
        problem: The constrained problem.
        transform: Map from unconstrained to positive coordinates.
        penalty: Penalty weight P > 0.
    """

    problem: AbstractConstrainedProblem
    transform: AbstractTransform
    penalty: Float[Array, ""] = eqx.field(converter=jnp.asarray)

    def __call__(
        self, z: Float[Array, " n"], args: Any
    ) -> tuple[Float[Array, ""], Float[Array, " m"]]:
        x = self.transform.forward(z)
        c = self.problem.constraint(x, args)
        value = self.problem.objective(x, args) - self.penalty * jnp.dot(c, c)
        return value, c


class AugmentedLagrangianObjective(eqx.Module):
    """Augmented Lagrangian objective.

        phi(z) = f(x) - (P / 2) * c(x)^T c(x) - lambda^T c(x),   x = T(z)

    Attributes:
        problem: The constrained problem.
        transform: Map from unconstrained to positive coordinates.
        penalty: Penalty weight P > 0.
        multipliers: Current multiplier estimate lambda, one per constraint.
    """

    problem: AbstractConstrainedProblem
    transform: AbstractTransform
    penalty: Float[Array, ""] = eqx.field(converter=jnp.asarray)
    multipliers: Float[Array, " m"] = eqx.field(converter=jnp.asarray)

    def __call__(
        self, z: Float[Array, " n"], args: Any
    ) -> tuple[Float[Array, ""], Float[Array, " m"]]:
        x = self.transform.forward(z)
        c = self.problem.constraint(x, args)
        value = (
            self.problem.objective(x, args)
            - 0.5 * self.penalty * jnp.dot(c, c)
            - jnp.dot(self.multipliers, c)
        )
        return value, c


class LagrangianObjective(eqx.Module):
    """Lagrangian over the stacked primal-dual vector w = [z; lambda].

        L(w) = f(T(z)) - lambda^T c(T(z))

    Its stationary points are the KKT points of the constrained problem.
    They are saddle points, not maxima, so only a method that seeks
    stationary points (such as Newton's method) can be applied to it.

    Attributes:
        problem: The constrained problem.
        transform: Map from unconstrained to positive coordinates.
        num_variables: Length n of the primal block z.
    """

    problem: AbstractConstrainedProblem
    transform: AbstractTransform
    num_variables: int = eqx.field(static=True)

    def split(
        self, w: Float[Array, " n_plus_m"]
    ) -> tuple[Float[Array, " n"], Float[Array, " m"]]:
        """Split w into the primal block z and the multipliers lambda."""
        return w[: self.num_variables], w[self.num_variables :]

    def __call__(
        self, w: Float[Array, " n_plus_m"], args: Any
    ) -> tuple[Float[Array, ""], Float[Array, " m"]]:
        z, multipliers = self.split(w)
        x = self.transform.forward(z)
        c = self.problem.constraint(x, args)
        value = self.problem.objective(x, args) - jnp.dot(multipliers, c)
        return value, c
