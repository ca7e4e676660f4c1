"""lagrange-jax: equality-constrained optimization by Newton's method in JAX.

This package compares three ways of handling an equality constraint on top
of a pure Newton solver: Newton's method on the Lagrangian, the quadratic
penalty method with a penalty continuation, and the augmented Lagrangian
method. A Cobb-Douglas consumer problem with a closed-form solution is
included as a correctness oracle.

All algorithms need double precision; enable it with
``jax.config.update("jax_enable_x64", True)`` before building problems.
"""

import logging

from lagrange_jax.augmented_lagrangian import (
    AugmentedLagrangian,
    AugmentedLagrangianResult,
    AugmentedLagrangianState,
)
from lagrange_jax.comparison import MethodSummary, compare_methods
from lagrange_jax.drivers import AbstractOuterDriver
from lagrange_jax.derivatives import (
    compute_grad,
    compute_hessian,
    compute_jacobian,
    compute_lagrangian_gradient,
)
from lagrange_jax.errors import (
    InvalidConfigError,
    InvalidProblemError,
    LagrangeJaxError,
    SingularHessianError,
)
from lagrange_jax.lagrange_newton import LagrangeNewton, LagrangeNewtonResult
from lagrange_jax.newton import NewtonResult, NewtonSolver, NewtonState, newton_solve
from lagrange_jax.objectives import (
    AugmentedLagrangianObjective,
    LagrangianObjective,
    PenaltyObjective,
)
from lagrange_jax.penalty import (
    ContinuationResult,
    ContinuationState,
    PenaltyContinuation,
    PenaltyResult,
    solve_penalty,
)
from lagrange_jax.problems import (
    AbstractConstrainedProblem,
    ConsumerProblem,
    random_consumer_problem,
)
from lagrange_jax.transforms import AbstractTransform, ExpTransform, SoftplusTransform
from lagrange_jax.types import (
    ConstraintFn,
    GradFn,
    HessianFn,
    JacobianFn,
    ObjectiveFn,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Newton solver
    "NewtonSolver",
    "NewtonState",
    "NewtonResult",
    "newton_solve",
    # Constrained drivers
    "AbstractOuterDriver",
    "solve_penalty",
    "PenaltyResult",
    "PenaltyContinuation",
    "ContinuationState",
    "ContinuationResult",
    "AugmentedLagrangian",
    "AugmentedLagrangianState",
    "AugmentedLagrangianResult",
    "LagrangeNewton",
    "LagrangeNewtonResult",
    # Objectives
    "PenaltyObjective",
    "AugmentedLagrangianObjective",
    "LagrangianObjective",
    # Problems
    "AbstractConstrainedProblem",
    "ConsumerProblem",
    "random_consumer_problem",
    # Transforms
    "AbstractTransform",
    "ExpTransform",
    "SoftplusTransform",
    # Derivatives
    "compute_grad",
    "compute_hessian",
    "compute_jacobian",
    "compute_lagrangian_gradient",
    # Comparison
    "MethodSummary",
    "compare_methods",
    # Errors
    "LagrangeJaxError",
    "SingularHessianError",
    "InvalidProblemError",
    "InvalidConfigError",
    # Types
    "ObjectiveFn",
    "ConstraintFn",
    "GradFn",
    "HessianFn",
    "JacobianFn",
]
