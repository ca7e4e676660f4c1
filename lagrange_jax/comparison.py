"""Side-by-side comparison of the constrained solvers on a consumer problem."""

from typing import Any, NamedTuple, Optional

import jax.numpy as jnp
from jaxtyping import Array, Float

from lagrange_jax.augmented_lagrangian import AugmentedLagrangian
from lagrange_jax.lagrange_newton import LagrangeNewton
from lagrange_jax.penalty import PenaltyContinuation
from lagrange_jax.problems import ConsumerProblem


class MethodSummary(NamedTuple):
    """Outcome of one method on a consumer problem.

    Attributes:
        x: Returned demand.
        value: Utility at ``x``.
        max_relative_error: max_i |x_i - x_i*| / x_i* against the closed form.
        outer_steps: Outer rounds (1 for the Lagrange-Newton solve).
        inner_steps: Total Newton steps.
        converged: The method's own convergence flag.
    """

    x: Float[Array, " n"]
    value: Float[Array, ""]
    max_relative_error: float
    outer_steps: int
    inner_steps: int
    converged: bool


def max_relative_error(
    x: Float[Array, " n"], reference: Float[Array, " n"]
) -> float:
    return float(jnp.max(jnp.abs(x - reference) / jnp.abs(reference)))


def compare_methods(
    problem: ConsumerProblem,
    x0: Float[Array, " n"],
    args: Any = None,
    continuation: Optional[PenaltyContinuation] = None,
    augmented: Optional[AugmentedLagrangian] = None,
    lagrange_newton: Optional[LagrangeNewton] = None,
) -> dict[str, MethodSummary]:
    """Run all three methods from ``x0`` and score them against the closed form.

    Args:
        problem: Consumer problem with a known solution.
        x0: Strictly positive starting point shared by all methods.
        args: Additional arguments passed to the problem functions.
        continuation: Penalty driver settings, defaults if omitted.
        augmented: Augmented Lagrangian driver settings, defaults if omitted.
        lagrange_newton: Lagrange-Newton settings, defaults if omitted.

    Returns:
        Mapping from method name (``"lagrange_newton"``, ``"penalty"``,
        ``"augmented_lagrangian"``) to its summary.
    """
    continuation = continuation if continuation is not None else PenaltyContinuation()
    augmented = augmented if augmented is not None else AugmentedLagrangian()
    lagrange_newton = lagrange_newton if lagrange_newton is not None else LagrangeNewton()
    x_star = problem.closed_form_solution()

    kkt = lagrange_newton.solve(problem, x0, args)
    penalty = continuation.solve(problem, x0, args)
    auglag = augmented.solve(problem, x0, args)

    return {
        "lagrange_newton": MethodSummary(
            x=kkt.x,
            value=kkt.value,
            max_relative_error=max_relative_error(kkt.x, x_star),
            outer_steps=1,
            inner_steps=kkt.num_steps,
            converged=kkt.converged,
        ),
        "penalty": MethodSummary(
            x=penalty.x,
            value=penalty.value,
            max_relative_error=max_relative_error(penalty.x, x_star),
            outer_steps=penalty.outer_steps,
            inner_steps=penalty.inner_steps,
            converged=penalty.converged,
        ),
        "augmented_lagrangian": MethodSummary(
            x=auglag.x,
            value=auglag.value,
            max_relative_error=max_relative_error(auglag.x, x_star),
            outer_steps=auglag.outer_steps,
            inner_steps=auglag.inner_steps,
            converged=auglag.converged,
        ),
    }
