"""Augmented Lagrangian method.

Each outer round maximizes

    phi(x) = f(x) - (P / 2) * c(x)^T c(x) - lambda^T c(x)

with one Newton solve, then applies the first-order multiplier update

    lambda <- lambda + P * c(x_new),    P <- growth * P.

Because the multiplier estimate absorbs the constraint force, the iterates
become feasible at moderate penalty weights and the inner problems stay
far better conditioned than with the pure penalty method.

Termination is tested on the committed point held *before* the round's
inner solve: when ||c(x)||^2 < tolerance the round's new solution and
multiplier update are discarded and the committed state is returned. The
reported point therefore lags the last inner solution by one round.
"""

import logging
from typing import Any, NamedTuple, Optional

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array, Float

from lagrange_jax.drivers import AbstractOuterDriver
from lagrange_jax.newton import newton_solve
from lagrange_jax.objectives import AugmentedLagrangianObjective
from lagrange_jax.problems import AbstractConstrainedProblem

logger = logging.getLogger(__name__)


class AugmentedLagrangianState(eqx.Module):
    """State threaded through the outer rounds of ``AugmentedLagrangian``.

    Attributes:
        x: Committed point, the warm start of the next round.
        multipliers: Committed multiplier estimate lambda.
        penalty: Penalty weight of the next round.
        outer_steps: Rounds run, including a terminating one.
        inner_steps: Newton steps accumulated over all rounds.
        violations: ||c(x)||^2 at the committed point, one per round.
        converged: Whether the last round passed the termination test.
    """

    x: Float[Array, " n"]
    multipliers: Float[Array, " m"]
    penalty: Float[Array, ""]
    outer_steps: int
    inner_steps: int
    violations: tuple[float, ...]
    converged: bool


class AugmentedLagrangianResult(NamedTuple):
    """Result from ``AugmentedLagrangian.solve``.

    Attributes:
        value: Original objective f(x) at the committed ``x``.
        x: Committed point.
        multipliers: Committed multiplier estimate.
        outer_steps: Rounds run.
        inner_steps: Newton steps accumulated over all rounds.
        converged: Whether the termination test passed before
            ``max_outer_steps`` rounds.
        violations: ||c(x)||^2 at the committed point, one per round.
    """

    value: Float[Array, ""]
    x: Float[Array, " n"]
    multipliers: Float[Array, " m"]
    outer_steps: int
    inner_steps: int
    converged: bool
    violations: tuple[float, ...]


class AugmentedLagrangian(AbstractOuterDriver):
    """Augmented Lagrangian driver with a growing penalty weight.

    Attributes:
        tolerance: Threshold on ||c(x)||^2 at the committed point.
        growth: Penalty growth factor per round (> 1).
        initial_penalty: Penalty weight of the first round.
        max_outer_steps: Cap on the number of rounds.
        transform: Positivity transform.
        newton: Newton solver settings for the inner solves.

    Example:
        >>> import jax.numpy as jnp
        >>> from lagrange_jax import AugmentedLagrangian, ConsumerProblem
        >>>
        >>> problem = ConsumerProblem(
        ...     alpha=jnp.array([0.3, 0.7]), prices=jnp.array([1.0, 2.0])
        ... )
        >>> result = AugmentedLagrangian().solve(problem, jnp.ones(2))
    """

    def init(
        self,
        problem: AbstractConstrainedProblem,
        x0: Float[Array, " n"],
        args: Any = None,
        multipliers0: Optional[Float[Array, " m"]] = None,
    ) -> AugmentedLagrangianState:
        """Initial state: ``x0``, zero multipliers unless given, no rounds run."""
        x0 = jnp.asarray(x0, dtype=float)
        if multipliers0 is None:
            multipliers0 = jnp.zeros_like(problem.constraint(x0, args))
        return AugmentedLagrangianState(
            x=x0,
            multipliers=jnp.asarray(multipliers0, dtype=float),
            penalty=jnp.asarray(self.initial_penalty, dtype=float),
            outer_steps=0,
            inner_steps=0,
            violations=(),
            converged=False,
        )

    def step(
        self,
        problem: AbstractConstrainedProblem,
        state: AugmentedLagrangianState,
        args: Any = None,
    ) -> AugmentedLagrangianState:
        """Run one round: inner solve, termination test, then commit."""
        objective = AugmentedLagrangianObjective(
            problem, self.transform, state.penalty, state.multipliers
        )
        inner = newton_solve(objective, self.transform.inverse(state.x), args, self.newton)
        inner_steps = state.inner_steps + inner.num_steps

        # Tested on the committed point, before this round's solution is accepted
        c = problem.constraint(state.x, args)
        violation = float(jnp.dot(c, c))

        logger.debug(
            "augmented Lagrangian round %d: P=%.3g |c|^2=%.3e newton_steps=%d",
            state.outer_steps + 1,
            float(state.penalty),
            violation,
            inner.num_steps,
        )

        if violation < self.tolerance:
            return AugmentedLagrangianState(
                x=state.x,
                multipliers=state.multipliers,
                penalty=state.penalty,
                outer_steps=state.outer_steps + 1,
                inner_steps=inner_steps,
                violations=state.violations + (violation,),
                converged=True,
            )

        x_new = self.transform.forward(inner.x)
        c_new = problem.constraint(x_new, args)
        return AugmentedLagrangianState(
            x=x_new,
            multipliers=state.multipliers + state.penalty * c_new,
            penalty=state.penalty * self.growth,
            outer_steps=state.outer_steps + 1,
            inner_steps=inner_steps,
            violations=state.violations + (violation,),
            converged=False,
        )

    def solve(
        self,
        problem: AbstractConstrainedProblem,
        x0: Float[Array, " n"],
        args: Any = None,
        multipliers0: Optional[Float[Array, " m"]] = None,
    ) -> AugmentedLagrangianResult:
        """Run rounds until the termination test passes or the cap is hit.

        Args:
            problem: The constrained problem.
            x0: Strictly positive starting point.
            args: Additional arguments passed to the problem functions.
            multipliers0: Initial multiplier estimate, zeros if omitted.

        Returns:
            AugmentedLagrangianResult for the committed state.

        Raises:
            SingularHessianError: Propagated from the Newton solver.
        """
        state = self.init(problem, x0, args, multipliers0)
        while not self.terminate(state):
            state = self.step(problem, state, args)

        if not state.converged:
            logger.warning(
                "augmented Lagrangian stopped after %d rounds with |c|^2 %.3e",
                state.outer_steps,
                state.violations[-1],
            )

        return AugmentedLagrangianResult(
            value=problem.objective(state.x, args),
            x=state.x,
            multipliers=state.multipliers,
            outer_steps=state.outer_steps,
            inner_steps=state.inner_steps,
            converged=state.converged,
            violations=state.violations,
        )
