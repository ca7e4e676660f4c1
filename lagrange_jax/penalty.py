"""Quadratic penalty method.

This module provides a single penalized solve, ``solve_penalty``, and the
``PenaltyContinuation`` driver that repeats it with a growing penalty
weight.

For a problem ``max f(x) s.t. c(x) = 0`` one penalized solve computes

    x(P) = argmax_x f(x) - P * ||c(x)||^2

with the Newton solver, in unconstrained coordinates z with x = T(z). The
constraint is only satisfied in the limit P -> inf, while the Hessian of
the penalized objective becomes ill-conditioned as P grows. A single solve
with a huge P therefore returns a point that is feasible but otherwise
wrong, without any error. The continuation driver avoids this by
warm-starting each round from the previous, less penalized, solution.
"""

import logging
from typing import Any, NamedTuple, Optional

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array, Float

from lagrange_jax.drivers import AbstractOuterDriver
from lagrange_jax.newton import NewtonSolver, newton_solve
from lagrange_jax.objectives import PenaltyObjective
from lagrange_jax.problems import AbstractConstrainedProblem
from lagrange_jax.transforms import AbstractTransform, ExpTransform
from lagrange_jax.utils import first_component

logger = logging.getLogger(__name__)


class PenaltyResult(NamedTuple):
    """Result from a single penalized solve.

    Attributes:
        value: Penalized objective f(x) - P * ||c(x)||^2 at ``x``.
        x: Solution in the original (positive) coordinates.
        num_steps: Newton steps taken.
        converged: Whether the Newton solver met its tolerance.
    """

    value: Float[Array, ""]
    x: Float[Array, " n"]
    num_steps: int
    converged: bool


def solve_penalty(
    problem: AbstractConstrainedProblem,
    penalty: float,
    x0: Float[Array, " n"],
    args: Any = None,
    transform: Optional[AbstractTransform] = None,
    newton: Optional[NewtonSolver] = None,
) -> PenaltyResult:
    """Maximize f(x) - P * ||c(x)||^2 with one Newton solve.

    Args:
        problem: The constrained problem.
        penalty: Penalty weight P > 0.
        x0: Strictly positive starting point.
        args: Additional arguments passed to the problem functions.
        transform: Positivity transform, ``ExpTransform()`` if omitted.
        newton: Newton solver settings, ``NewtonSolver()`` if omitted.

    Returns:
        PenaltyResult with ``x`` mapped back to positive coordinates.

    Raises:
        SingularHessianError: Propagated from the Newton solver.
    """
    if transform is None:
        transform = ExpTransform()
    objective = PenaltyObjective(problem, transform, penalty)
    z0 = transform.inverse(jnp.asarray(x0, dtype=float))
    inner = newton_solve(objective, z0, args, newton)
    return PenaltyResult(
        value=inner.value,
        x=transform.forward(inner.x),
        num_steps=inner.num_steps,
        converged=inner.converged,
    )


class ContinuationState(eqx.Module):
    """State threaded through the outer rounds of ``PenaltyContinuation``.

    Attributes:
        x: Current point, the warm start of the next round.
        penalty: Penalty weight of the next round.
        outer_steps: Rounds completed.
        inner_steps: Newton steps accumulated over all rounds.
        penalties: Penalty weight used in each completed round.
        violations: Signed constraint residual c_0(x) after each round.
        converged: Whether the last round met the tolerance.
    """

    x: Float[Array, " n"]
    penalty: Float[Array, ""]
    outer_steps: int
    inner_steps: int
    penalties: tuple[float, ...]
    violations: tuple[float, ...]
    converged: bool


class ContinuationResult(NamedTuple):
    """Result from ``PenaltyContinuation.solve``.

    Attributes:
        value: Original objective f(x) at ``x`` (not the penalized one).
        x: Final point.
        outer_steps: Rounds run.
        inner_steps: Newton steps accumulated over all rounds.
        converged: Whether the violation dropped below the tolerance
            before ``max_outer_steps`` rounds.
        penalty: Penalty weight used in the final round.
        violations: Signed constraint residual after each round.
    """

    value: Float[Array, ""]
    x: Float[Array, " n"]
    outer_steps: int
    inner_steps: int
    converged: bool
    penalty: float
    violations: tuple[float, ...]


class PenaltyContinuation(AbstractOuterDriver):
    """Quadratic penalty method with an increasing penalty schedule.

    Starting from ``P = initial_penalty``, each round solves the penalized
    problem warm-started from the previous round's solution, then stops if
    the signed residual c_0(x) is below ``tolerance`` and otherwise
    multiplies P by ``growth``.

    The stopping test uses the signed residual, not its magnitude: a round
    that ends with c_0(x) < 0 stops the driver however large the violation.
    For budget constraints p^T x - I the penalized solution always
    overspends, so the residual approaches zero from above.

    Attributes:
        tolerance: Threshold on the signed residual.
        growth: Penalty growth factor per round (> 1).
        initial_penalty: Penalty weight of the first round.
        max_outer_steps: Cap on the number of rounds.
        transform: Positivity transform.
        newton: Newton solver settings for the inner solves.

    Example:
        >>> import jax.numpy as jnp
        >>> from lagrange_jax import ConsumerProblem, PenaltyContinuation
        >>>
        >>> problem = ConsumerProblem(
        ...     alpha=jnp.array([0.3, 0.7]), prices=jnp.array([1.0, 2.0])
        ... )
        >>> result = PenaltyContinuation().solve(problem, jnp.ones(2))
    """

    def init(
        self, problem: AbstractConstrainedProblem, x0: Float[Array, " n"]
    ) -> ContinuationState:
        """Initial state: ``x0`` and the initial penalty, no rounds run."""
        return ContinuationState(
            x=jnp.asarray(x0, dtype=float),
            penalty=jnp.asarray(self.initial_penalty, dtype=float),
            outer_steps=0,
            inner_steps=0,
            penalties=(),
            violations=(),
            converged=False,
        )

    def step(
        self,
        problem: AbstractConstrainedProblem,
        state: ContinuationState,
        args: Any = None,
    ) -> ContinuationState:
        """Run one round: a penalized solve, then the signed residual test."""
        inner = solve_penalty(
            problem, state.penalty, state.x, args, self.transform, self.newton
        )
        violation = first_component(problem.constraint(inner.x, args))
        converged = violation < self.tolerance
        penalty = float(state.penalty)

        logger.debug(
            "penalty round %d: P=%.3g violation=%.3e newton_steps=%d",
            state.outer_steps + 1,
            penalty,
            violation,
            inner.num_steps,
        )

        return ContinuationState(
            x=inner.x,
            penalty=state.penalty if converged else state.penalty * self.growth,
            outer_steps=state.outer_steps + 1,
            inner_steps=state.inner_steps + inner.num_steps,
            penalties=state.penalties + (penalty,),
            violations=state.violations + (violation,),
            converged=converged,
        )

    def solve(
        self,
        problem: AbstractConstrainedProblem,
        x0: Float[Array, " n"],
        args: Any = None,
    ) -> ContinuationResult:
        """Run rounds until the residual test passes or the cap is hit.

        Args:
            problem: The constrained problem.
            x0: Strictly positive starting point.
            args: Additional arguments passed to the problem functions.

        Returns:
            ContinuationResult with the objective re-evaluated at the final x.

        Raises:
            SingularHessianError: Propagated from the Newton solver.
        """
        state = self.init(problem, x0)
        while not self.terminate(state):
            state = self.step(problem, state, args)

        if not state.converged:
            logger.warning(
                "penalty continuation stopped after %d rounds with violation %.3e",
                state.outer_steps,
                state.violations[-1],
            )

        return ContinuationResult(
            value=problem.objective(state.x, args),
            x=state.x,
            outer_steps=state.outer_steps,
            inner_steps=state.inner_steps,
            converged=state.converged,
            penalty=state.penalties[-1],
            violations=state.violations,
        )
