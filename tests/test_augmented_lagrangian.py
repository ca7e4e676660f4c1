"""Tests for the augmented Lagrangian driver.

Besides agreement with the closed form, these tests pin down the order of
operations inside a round: the termination test looks at the committed
point from before the round's inner solve, and a passing test discards
that round's solution and multiplier update.
"""

import logging

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from lagrange_jax import (
    AbstractOuterDriver,
    AugmentedLagrangian,
    ConsumerProblem,
    InvalidConfigError,
    PenaltyContinuation,
    SingularHessianError,
    random_consumer_problem,
)

# Enable 64-bit precision for numerical accuracy
jax.config.update("jax_enable_x64", True)

N_GOODS = 10


@pytest.fixture
def problem():
    return random_consumer_problem(jax.random.PRNGKey(0), N_GOODS)


class TestAugmentedLagrangianSolution:
    """Tests against the closed-form solution."""

    def test_closed_form_agreement(self, problem):
        result = AugmentedLagrangian().solve(problem, jnp.ones(N_GOODS))

        assert result.converged
        np.testing.assert_allclose(
            result.x, problem.closed_form_solution(), rtol=1e-4
        )

    def test_concrete_scenario_outer_rounds(self, problem):
        result = AugmentedLagrangian(growth=10.0).solve(problem, jnp.ones(N_GOODS))
        assert result.outer_steps <= 6

    def test_multiplier_converges_to_inverse_income(self, problem):
        result = AugmentedLagrangian().solve(problem, jnp.ones(N_GOODS))

        np.testing.assert_allclose(
            result.multipliers, problem.closed_form_multiplier(), rtol=1e-5
        )

    def test_multiplier_error_decreases_each_round(self, problem):
        driver = AugmentedLagrangian()
        state = driver.init(problem, jnp.ones(N_GOODS))
        errors = [float(jnp.abs(state.multipliers[0] - 1.0))]
        while not driver.terminate(state):
            state = driver.step(problem, state)
            if not state.converged:
                errors.append(float(jnp.abs(state.multipliers[0] - 1.0)))

        assert len(errors) >= 3
        assert np.all(np.diff(errors) < 0)

    def test_other_income(self):
        problem = random_consumer_problem(jax.random.PRNGKey(1), 4, income=2.0)
        x0 = jnp.full(4, 2.0)
        result = AugmentedLagrangian().solve(problem, x0)

        np.testing.assert_allclose(
            result.x, problem.closed_form_solution(), rtol=1e-4
        )
        np.testing.assert_allclose(result.multipliers, [0.5], rtol=1e-4)

    def test_value_is_original_utility(self, problem):
        result = AugmentedLagrangian().solve(problem, jnp.ones(N_GOODS))

        np.testing.assert_allclose(
            result.value, problem.objective(result.x, None), rtol=1e-14
        )

    def test_fewer_inner_steps_than_rounds_times_cap(self, problem):
        driver = AugmentedLagrangian()
        result = driver.solve(problem, jnp.ones(N_GOODS))
        assert result.inner_steps < result.outer_steps * driver.newton.max_steps


class TestAugmentedLagrangianOrdering:
    """Tests for the stale-state termination test."""

    def test_feasible_start_terminates_in_first_round(self):
        """A feasible but suboptimal start passes the test before any update."""
        problem = ConsumerProblem(
            alpha=jnp.array([0.2, 0.3, 0.5]), prices=jnp.array([1.0, 2.0, 4.0])
        )
        # Equal budget shares: on the budget line, far from the optimum
        x0 = (1.0 / 3.0) / problem.prices
        # A nonzero multiplier keeps the first inner Hessian nonsingular
        result = AugmentedLagrangian().solve(
            problem, x0, multipliers0=jnp.array([0.5])
        )

        assert result.converged
        assert result.outer_steps == 1
        np.testing.assert_array_equal(result.x, x0)
        np.testing.assert_array_equal(result.multipliers, [0.5])
        # The discarded inner solve still counts
        assert result.inner_steps > 0
        assert not np.allclose(result.x, problem.closed_form_solution(), rtol=1e-2)

    def test_singular_inner_solve_propagates(self):
        """With zero multipliers on the budget line the inner Hessian is rank one."""
        problem = ConsumerProblem(
            alpha=jnp.array([0.2, 0.3, 0.5]), prices=jnp.array([1.0, 2.0, 4.0])
        )
        x0 = (1.0 / 3.0) / problem.prices

        with pytest.raises(SingularHessianError):
            AugmentedLagrangian().solve(problem, x0)

    def test_terminating_round_does_not_commit(self, problem):
        driver = AugmentedLagrangian()
        state = driver.init(problem, jnp.ones(N_GOODS))
        while True:
            previous = state
            state = driver.step(problem, state)
            if driver.terminate(state):
                break

        assert state.converged
        np.testing.assert_array_equal(state.x, previous.x)
        np.testing.assert_array_equal(state.multipliers, previous.multipliers)
        np.testing.assert_array_equal(state.penalty, previous.penalty)
        assert state.outer_steps == previous.outer_steps + 1

    def test_violation_recorded_on_committed_point(self, problem):
        driver = AugmentedLagrangian()
        x0 = jnp.ones(N_GOODS)
        first = driver.step(problem, driver.init(problem, x0))

        c0 = problem.constraint(x0, None)
        np.testing.assert_allclose(first.violations[0], jnp.dot(c0, c0), rtol=1e-14)

    def test_multiplier_update_rule(self, problem):
        driver = AugmentedLagrangian()
        state = driver.init(problem, jnp.ones(N_GOODS))
        first = driver.step(problem, state)

        c1 = problem.constraint(first.x, None)
        np.testing.assert_allclose(
            first.multipliers, state.multipliers + state.penalty * c1, rtol=1e-14
        )
        np.testing.assert_allclose(first.penalty, state.penalty * driver.growth)


class TestAugmentedLagrangianConfig:
    """Tests for the outer cap and validation."""

    def test_outer_cap_reports_non_convergence(self, problem, caplog):
        driver = AugmentedLagrangian(max_outer_steps=2)
        with caplog.at_level(logging.WARNING, logger="lagrange_jax.augmented_lagrangian"):
            result = driver.solve(problem, jnp.ones(N_GOODS))

        assert not result.converged
        assert result.outer_steps == 2
        assert len(result.violations) == 2
        assert any("stopped after 2 rounds" in r.getMessage() for r in caplog.records)

    def test_initial_multipliers(self, problem):
        """Starting at the exact multiplier only needs the penalty to settle."""
        warm = AugmentedLagrangian().solve(
            problem, jnp.ones(N_GOODS), multipliers0=jnp.array([1.0])
        )
        cold = AugmentedLagrangian().solve(problem, jnp.ones(N_GOODS))

        assert warm.converged
        assert warm.outer_steps <= cold.outer_steps
        np.testing.assert_allclose(warm.x, problem.closed_form_solution(), rtol=1e-4)

    @pytest.mark.parametrize(
        "kwargs",
        [{"growth": 1.0}, {"tolerance": -1e-8}, {"initial_penalty": 0.0}],
    )
    def test_invalid_settings(self, kwargs):
        with pytest.raises(InvalidConfigError):
            AugmentedLagrangian(**kwargs)

    @pytest.mark.parametrize("driver_cls", [AugmentedLagrangian, PenaltyContinuation])
    def test_drivers_share_settings(self, driver_cls):
        driver = driver_cls()

        assert isinstance(driver, AbstractOuterDriver)
        assert driver.tolerance == 1e-8
        assert driver.growth == 10.0
        assert driver.initial_penalty == 1.0
        assert driver.max_outer_steps == 50
        with pytest.raises(InvalidConfigError):
            driver_cls(max_outer_steps=0)
