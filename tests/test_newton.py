"""Tests for the Newton solver.

These tests cover the pure Newton iteration on unconstrained objectives:
convergence, the one-step exit at a stationary point, the iteration cap,
singular Hessians, user-supplied derivatives, trace logging and the
optimistix interface.
"""

import logging

import jax
import jax.numpy as jnp
import numpy as np
import optimistix as optx
import pytest

from lagrange_jax import NewtonSolver, SingularHessianError, newton_solve

# Enable 64-bit precision for numerical accuracy
jax.config.update("jax_enable_x64", True)


def shifted_quadratic(x, args):
    """(x-1)^2 + 2 (y+2)^2, minimized at (1, -2)."""
    return (x[0] - 1.0) ** 2 + 2.0 * (x[1] + 2.0) ** 2, None


def log_barrier(x, args):
    """sum(log x) - sum(x), maximized at x = 1."""
    return jnp.sum(jnp.log(x)) - jnp.sum(x), None


class TestNewtonConvergence:
    """Tests for convergence of the Newton iteration."""

    def test_quadratic_two_steps(self):
        """Newton is exact on a quadratic; the second step has zero length."""
        result = newton_solve(shifted_quadratic, jnp.array([5.0, 3.0]))

        np.testing.assert_allclose(result.x, [1.0, -2.0], atol=1e-12)
        assert result.converged
        assert result.num_steps == 2
        assert result.result == optx.RESULTS.successful

    def test_concave_maximum(self):
        """Newton finds maxima of concave objectives as stationary points."""
        result = newton_solve(log_barrier, jnp.array([0.5, 1.5, 1.2]))

        np.testing.assert_allclose(result.x, [1.0, 1.0, 1.0], rtol=1e-10)
        assert result.converged
        np.testing.assert_allclose(result.value, -3.0, rtol=1e-12)

    def test_value_is_recomputed_at_solution(self):
        result = newton_solve(log_barrier, jnp.array([0.8, 1.1]))

        expected, _ = log_barrier(result.x, None)
        assert float(result.value) == float(expected)

    def test_starting_at_stationary_point(self):
        """A start at the solution returns after one zero-length step."""
        x0 = jnp.array([1.0, -2.0])
        result = newton_solve(shifted_quadratic, x0)

        assert result.num_steps == 1
        assert result.converged
        np.testing.assert_allclose(result.x, x0, atol=1e-15)

    def test_args_are_passed_through(self):
        def objective(x, args):
            return jnp.sum((x - args) ** 2), None

        target = jnp.array([0.5, -0.25, 3.0])
        result = newton_solve(objective, jnp.zeros(3), args=target)
        np.testing.assert_allclose(result.x, target, atol=1e-12)

    def test_aux_is_returned(self):
        def objective(x, args):
            return jnp.sum(x**2), x[0]

        result = newton_solve(objective, jnp.array([2.0, 1.0]))
        np.testing.assert_allclose(result.aux, result.x[0])


class TestNewtonTermination:
    """Tests for the iteration cap and failure reporting."""

    def test_max_steps_reported_not_raised(self):
        solver = NewtonSolver(max_steps=2)
        result = newton_solve(log_barrier, jnp.array([0.2, 1.9]), solver=solver)

        assert result.num_steps == 2
        assert not result.converged
        assert result.result == optx.RESULTS.max_steps_reached

    def test_loose_tolerance_stops_early(self):
        x0 = jnp.array([0.2, 1.9])
        tight = newton_solve(log_barrier, x0, solver=NewtonSolver(rtol=1e-12))
        loose = newton_solve(log_barrier, x0, solver=NewtonSolver(rtol=1e-2))

        assert loose.converged
        assert loose.num_steps < tight.num_steps

    def test_singular_hessian_raises(self):
        """A linear objective has a zero Hessian."""

        def linear(x, args):
            return jnp.sum(x), None

        with pytest.raises(SingularHessianError):
            newton_solve(linear, jnp.array([1.0, 2.0]))

    def test_singular_hessian_is_arithmetic_error(self):
        def partially_flat(x, args):
            return x[0] ** 2, None

        with pytest.raises(ArithmeticError):
            newton_solve(partially_flat, jnp.array([1.0, 1.0]))


class TestNewtonUserDerivatives:
    """Tests with user-supplied gradient and Hessian."""

    def test_user_gradient_and_hessian(self):
        def grad_fn(x, args):
            return jnp.array([2.0 * (x[0] - 1.0), 4.0 * (x[1] + 2.0)])

        def hess_fn(x, args):
            return jnp.diag(jnp.array([2.0, 4.0]))

        solver = NewtonSolver(grad_fn=grad_fn, hess_fn=hess_fn)
        result = newton_solve(shifted_quadratic, jnp.array([5.0, 3.0]), solver=solver)

        np.testing.assert_allclose(result.x, [1.0, -2.0], atol=1e-12)
        assert result.num_steps == 2

    def test_user_hessian_matches_ad(self):
        def hess_fn(x, args):
            return jnp.diag(-1.0 / x**2)

        x0 = jnp.array([0.3, 1.7])
        ad = newton_solve(log_barrier, x0)
        user = newton_solve(log_barrier, x0, solver=NewtonSolver(hess_fn=hess_fn))

        np.testing.assert_allclose(user.x, ad.x, rtol=1e-12)
        assert user.num_steps == ad.num_steps


class TestNewtonTrace:
    """Tests for per-iteration trace logging."""

    def test_trace_emits_one_record_per_iteration(self, caplog):
        solver = NewtonSolver(trace=True)
        with caplog.at_level(logging.INFO, logger="lagrange_jax.newton"):
            result = newton_solve(log_barrier, jnp.array([0.5, 1.5]), solver=solver)

        records = [r for r in caplog.records if r.name == "lagrange_jax.newton"]
        # One record for the starting point plus one per step
        assert len(records) == result.num_steps + 1
        assert records[0].getMessage().startswith("Newton step 0")

    def test_no_trace_by_default(self, caplog):
        with caplog.at_level(logging.INFO, logger="lagrange_jax.newton"):
            newton_solve(log_barrier, jnp.array([0.5, 1.5]))

        assert not [r for r in caplog.records if r.name == "lagrange_jax.newton"]

    def test_trace_does_not_change_result(self):
        x0 = jnp.array([0.5, 1.5])
        plain = newton_solve(log_barrier, x0)
        traced = newton_solve(log_barrier, x0, solver=NewtonSolver(trace=True))

        np.testing.assert_array_equal(plain.x, traced.x)
        assert plain.num_steps == traced.num_steps


class TestOptimistixInterface:
    """Tests using the optimistix.minimise high-level interface."""

    def test_minimise_quadratic(self):
        sol = optx.minimise(
            shifted_quadratic,
            NewtonSolver(),
            jnp.array([5.0, 3.0]),
            has_aux=True,
            max_steps=50,
        )
        np.testing.assert_allclose(sol.value, [1.0, -2.0], atol=1e-10)

    def test_minimise_matches_host_loop(self):
        def objective(x, args):
            return jnp.sum(jnp.exp(x) - 2.0 * x), None

        x0 = jnp.array([1.5, -0.5])
        sol = optx.minimise(objective, NewtonSolver(), x0, has_aux=True, max_steps=50)
        host = newton_solve(objective, x0)

        np.testing.assert_allclose(sol.value, host.x, rtol=1e-10)
        np.testing.assert_allclose(sol.value, jnp.log(2.0) * jnp.ones(2), rtol=1e-10)
