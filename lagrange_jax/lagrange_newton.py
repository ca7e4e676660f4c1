"""Newton's method on the Lagrangian.

For equality constraints, one step of sequential quadratic programming is
exactly a Newton step on the first-order conditions

    nabla f(x) - J(x)^T lambda = 0,    c(x) = 0,

which are the stationarity conditions of the Lagrangian
L(x, lambda) = f(x) - lambda^T c(x) in the joint variable (x, lambda). The
driver here therefore runs the Newton solver directly on L over the stacked
vector w = [z; lambda], with x = T(z) kept positive by the domain transform.
"""

import logging
from typing import Any, NamedTuple, Optional

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array, Float

from lagrange_jax.derivatives import (
    compute_grad,
    compute_jacobian,
    compute_lagrangian_gradient,
)
from lagrange_jax.newton import NewtonSolver, newton_solve
from lagrange_jax.objectives import LagrangianObjective
from lagrange_jax.problems import AbstractConstrainedProblem
from lagrange_jax.transforms import AbstractTransform, ExpTransform

logger = logging.getLogger(__name__)


class LagrangeNewtonResult(NamedTuple):
    """Result from ``LagrangeNewton.solve``.

    Attributes:
        value: Original objective f(x) at ``x``.
        x: Primal solution in positive coordinates.
        multipliers: Multiplier estimate lambda.
        num_steps: Newton steps taken.
        converged: Whether the Newton solver met its tolerance.
        stationarity: ||nabla f(x) - J(x)^T lambda||.
        feasibility: ||c(x)||.
    """

    value: Float[Array, ""]
    x: Float[Array, " n"]
    multipliers: Float[Array, " m"]
    num_steps: int
    converged: bool
    stationarity: float
    feasibility: float


class LagrangeNewton(eqx.Module):
    """Solve the KKT system with one Newton solve on the Lagrangian.

    The multipliers start at ``initial_multiplier`` rather than zero: at
    lambda = 0 the primal block of the Lagrangian Hessian vanishes for
    objectives that are linear in z (such as Cobb-Douglas utility under the
    exponential transform), which makes the KKT matrix singular.

    Attributes:
        initial_multiplier: Starting value of every multiplier.
        transform: Positivity transform.
        newton: Newton solver settings.
    """

    initial_multiplier: float = 1.0
    transform: AbstractTransform = eqx.field(default_factory=ExpTransform)
    newton: NewtonSolver = eqx.field(default_factory=NewtonSolver)

    def solve(
        self,
        problem: AbstractConstrainedProblem,
        x0: Float[Array, " n"],
        args: Any = None,
        multipliers0: Optional[Float[Array, " m"]] = None,
    ) -> LagrangeNewtonResult:
        """Find a KKT point starting from ``x0``.

        Args:
            problem: The constrained problem.
            x0: Strictly positive starting point.
            args: Additional arguments passed to the problem functions.
            multipliers0: Initial multipliers, ``initial_multiplier`` if omitted.

        Returns:
            LagrangeNewtonResult with KKT residuals at the solution.

        Raises:
            SingularHessianError: Propagated from the Newton solver.
        """
        x0 = jnp.asarray(x0, dtype=float)
        if multipliers0 is None:
            c0 = problem.constraint(x0, args)
            multipliers0 = jnp.full(c0.shape, self.initial_multiplier, dtype=c0.dtype)

        objective = LagrangianObjective(problem, self.transform, x0.shape[0])
        w0 = jnp.concatenate(
            [self.transform.inverse(x0), jnp.asarray(multipliers0, dtype=x0.dtype)]
        )
        inner = newton_solve(objective, w0, args, self.newton)

        z, multipliers = objective.split(inner.x)
        x = self.transform.forward(z)

        def utility(y, a):
            return problem.objective(y, a), None

        grad_f = compute_grad(utility, x, args)
        jac = compute_jacobian(problem.constraint, x, args)
        stationarity = float(
            jnp.linalg.norm(compute_lagrangian_gradient(grad_f, jac, multipliers))
        )
        feasibility = float(jnp.linalg.norm(problem.constraint(x, args)))

        logger.debug(
            "Lagrange-Newton: %d steps, stationarity=%.3e feasibility=%.3e",
            inner.num_steps,
            stationarity,
            feasibility,
        )

        return LagrangeNewtonResult(
            value=problem.objective(x, args),
            x=x,
            multipliers=multipliers,
            num_steps=inner.num_steps,
            converged=inner.converged,
            stationarity=stationarity,
            feasibility=feasibility,
        )
