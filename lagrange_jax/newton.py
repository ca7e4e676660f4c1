"""Newton solver for stationary points of scalar objectives.

This module contains the solver that every driver in the package is built
on. It extends ``optimistix.AbstractMinimiser`` so that it can be run
through ``optimistix.minimise``, and also provides ``newton_solve``, a
host-side loop that adds the checks a traced loop cannot perform: it raises
on singular Hessians and can emit a per-iteration trace through ``logging``.

The iteration is the pure Newton step

    x_{k+1} = x_k - H(x_k)^{-1} g(x_k)

with no line search and no trust region. It converges to stationary
points of any kind: maxima of concave objectives, minima of convex ones
and saddle points such as the KKT points of a Lagrangian.
"""

import logging
from collections.abc import Callable
from typing import Any, NamedTuple, Optional

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
import optimistix as optx
from jaxtyping import Array, Bool, Float, Int

from lagrange_jax.derivatives import compute_grad, compute_hessian
from lagrange_jax.errors import SingularHessianError
from lagrange_jax.types import GradFn, HessianFn, ObjectiveFn

logger = logging.getLogger(__name__)


class NewtonState(eqx.Module):
    """State for the Newton solver.

    Attributes:
        step_count: Number of Newton steps taken.
        f_val: Objective value at the current point.
        grad: Gradient of the objective at the current point.
        step_norm: Norm of the last step, ``||x_{k+1} - x_k||``.
        scale: Reference size of the last step, ``max(||x_k||, 1)``.
        finite_step: Whether the last Newton step was finite.
    """

    step_count: Int[Array, ""]
    f_val: Float[Array, ""]
    grad: Float[Array, " n"]
    step_norm: Float[Array, ""]
    scale: Float[Array, ""]
    finite_step: Bool[Array, ""]


class NewtonResult(NamedTuple):
    """Result from ``newton_solve``.

    Attributes:
        value: Objective value re-evaluated at ``x``.
        x: Final iterate.
        num_steps: Number of Newton steps taken.
        converged: Whether the relative step tolerance was met. ``False``
            means the iteration cap was hit and ``x`` is the last iterate.
        result: The optimistix result code.
        aux: Auxiliary output of the objective at ``x``.
    """

    value: Float[Array, ""]
    x: Float[Array, " n"]
    num_steps: int
    converged: bool
    result: optx.RESULTS
    aux: Any


class NewtonSolver(optx.AbstractMinimiser):
    """Pure Newton iteration on a scalar objective.

    At each iteration the dense Hessian and the gradient are evaluated at
    the current point and the step ``-H^{-1} g`` is taken in full.

    Convergence is declared when the step is small relative to the current
    point:

        ||x_{k+1} - x_k|| < atol + rtol * max(||x_k||, 1)

    The check only runs after a step, so a solve started exactly at a
    stationary point still takes one (zero-length) step.

    Despite the ``AbstractMinimiser`` base, the solver does not enforce
    descent. It returns whatever stationary point the Newton iteration
    reaches, which is the maximizer when the objective is concave.

    Attributes:
        rtol: Tolerance on the relative step size.
        atol: Absolute tolerance on the step size (default 0).
        norm: Norm used for steps and iterates (Euclidean).
        max_steps: Maximum number of Newton steps.
        trace: Log one INFO record per iteration from ``newton_solve``.
        grad_fn: Optional gradient of the objective.
        hess_fn: Optional dense Hessian of the objective.

    Example:
        >>> import jax.numpy as jnp
        >>> from lagrange_jax import NewtonSolver, newton_solve
        >>>
        >>> def objective(x, args):
        ...     return jnp.sum(jnp.log(x)) - jnp.sum(x), None
        >>>
        >>> result = newton_solve(objective, jnp.array([0.5, 1.5]), solver=NewtonSolver())
    """

    rtol: float = 1e-8
    atol: float = 0.0

    # Norm function for convergence checking (required by AbstractMinimiser)
    norm: Callable = eqx.field(static=True, default=optx.two_norm)

    max_steps: int = eqx.field(static=True, default=100)
    trace: bool = eqx.field(static=True, default=False)

    # Optional user-supplied derivative functions
    grad_fn: Optional[GradFn] = eqx.field(static=True, default=None)
    hess_fn: Optional[HessianFn] = eqx.field(static=True, default=None)

    def init(
        self,
        fn: Callable,
        y: Float[Array, " n"],
        args: Any,
        options: dict[str, Any],
        f_struct: Any,
        aux_struct: Any,
        tags: frozenset[object],
    ) -> NewtonState:
        """Initialize the Newton solver state.

        Args:
            fn: Objective function with signature fn(y, args) -> (f_val, aux).
            y: Initial parameter values.
            args: Additional arguments passed to fn.
            options: Runtime options dictionary.
            f_struct: Structure of function output (for type inference).
            aux_struct: Structure of auxiliary output.
            tags: Lineax tags for the problem.

        Returns:
            Initial NewtonState.
        """
        f_val, _aux = fn(y, args)
        grad = compute_grad(fn, y, args, self.grad_fn)
        return NewtonState(
            step_count=jnp.array(0),
            f_val=f_val,
            grad=grad,
            step_norm=jnp.array(jnp.inf, dtype=f_val.dtype),
            scale=jnp.maximum(self.norm(y), 1.0),
            finite_step=jnp.array(True),
        )

    def step(
        self,
        fn: Callable,
        y: Float[Array, " n"],
        args: Any,
        options: dict[str, Any],
        state: NewtonState,
        tags: frozenset[object],
    ) -> tuple[Float[Array, " n"], NewtonState, Any]:
        """Take one full Newton step from ``y``.

        Args:
            fn: Objective function.
            y: Current parameter values.
            args: Additional arguments.
            options: Runtime options.
            state: Current solver state.
            tags: Lineax tags.

        Returns:
            Tuple of (new_y, new_state, aux).
        """
        hessian = compute_hessian(fn, y, args, self.hess_fn)
        direction = -jnp.linalg.solve(hessian, state.grad)
        finite_step = jnp.all(jnp.isfinite(direction))

        y_new = y + direction
        f_val_new, aux = fn(y_new, args)
        grad_new = compute_grad(fn, y_new, args, self.grad_fn)

        new_state = NewtonState(
            step_count=state.step_count + 1,
            f_val=f_val_new,
            grad=grad_new,
            step_norm=self.norm(direction),
            scale=jnp.maximum(self.norm(y), 1.0),
            finite_step=finite_step,
        )
        return y_new, new_state, aux

    def converged(self, state: NewtonState) -> Bool[Array, ""]:
        """Whether the last step met the relative step tolerance."""
        small_step = state.step_norm < self.atol + self.rtol * state.scale
        return (state.step_count > 0) & state.finite_step & small_step

    def terminate(
        self,
        fn: Callable,
        y: Float[Array, " n"],
        args: Any,
        options: dict[str, Any],
        state: NewtonState,
        tags: frozenset[object],
    ) -> tuple[Bool[Array, ""], Any]:
        """Check if the solver should terminate.

        Args:
            fn: Objective function.
            y: Current parameter values.
            args: Additional arguments.
            options: Runtime options.
            state: Current solver state.
            tags: Lineax tags.

        Returns:
            Tuple of (done, result) where done is a bool indicating
            termination and result is the termination status code.
        """
        converged = self.converged(state)
        singular = ~state.finite_step
        max_iters_reached = state.step_count >= self.max_steps

        done = converged | singular | max_iters_reached

        result = jax.lax.cond(
            singular,
            lambda: optx.RESULTS.singular,
            lambda: jax.lax.cond(
                ~converged & max_iters_reached,
                lambda: optx.RESULTS.max_steps_reached,
                lambda: optx.RESULTS.successful,
            ),
        )
        return done, result

    def postprocess(
        self,
        fn: Callable,
        y: Float[Array, " n"],
        aux: Any,
        args: Any,
        options: dict[str, Any],
        state: NewtonState,
        tags: frozenset[object],
        result: Any,
    ) -> tuple[Float[Array, " n"], Any, dict[str, Any]]:
        """Post-process the optimization result.

        Returns:
            Tuple of (y, aux, stats) where stats is a dictionary
            containing solver statistics.
        """
        stats = {
            "num_steps": state.step_count,
            "final_objective": state.f_val,
            "final_grad_norm": jnp.linalg.norm(state.grad),
        }
        return y, aux, stats


def newton_solve(
    fn: ObjectiveFn,
    y0: Float[Array, " n"],
    args: Any = None,
    solver: Optional[NewtonSolver] = None,
) -> NewtonResult:
    """Run the Newton solver to termination on the host.

    Only a step with a non-finite entry is treated as singular. A nearly
    singular Hessian can still yield a finite but huge step, which is taken
    without any error.

    Args:
        fn: Objective function with signature fn(y, args) -> (f_val, aux).
        y0: Initial point.
        args: Additional arguments passed to fn.
        solver: Solver settings, ``NewtonSolver()`` if omitted.

    Returns:
        NewtonResult with the objective re-evaluated at the final point.

    Raises:
        SingularHessianError: If a Newton step is not finite.
    """
    if solver is None:
        solver = NewtonSolver()

    y = jnp.asarray(y0, dtype=float)
    state = solver.init(fn, y, args, {}, None, None, frozenset())
    if solver.trace:
        logger.info("Newton step 0: f=%.12g x=%s", float(state.f_val), np.asarray(y))

    result = optx.RESULTS.successful
    while True:
        done, result = solver.terminate(fn, y, args, {}, state, frozenset())
        if done:
            break
        y_new, state, _ = solver.step(fn, y, args, {}, state, frozenset())
        if not bool(state.finite_step):
            raise SingularHessianError(
                f"Newton step {int(state.step_count)} is not finite; "
                "the Hessian is singular at the current iterate",
                step_count=int(state.step_count) - 1,
            )
        y = y_new
        if solver.trace:
            logger.info(
                "Newton step %d: f=%.12g x=%s",
                int(state.step_count),
                float(state.f_val),
                np.asarray(y),
            )

    converged = bool(solver.converged(state))
    num_steps = int(state.step_count)
    if not converged:
        logger.debug("Newton solver stopped after %d steps without converging", num_steps)

    value, aux = fn(y, args)
    return NewtonResult(
        value=value,
        x=y,
        num_steps=num_steps,
        converged=converged,
        result=result,
        aux=aux,
    )
