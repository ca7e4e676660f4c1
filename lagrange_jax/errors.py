"""Exceptions raised by lagrange-jax.

Numerical failures are raised from the host-side solver loops, outside of
any traced computation, and propagate unchanged through every driver.
Running out of iterations is not an error: results carry a ``converged``
flag instead.
"""


class LagrangeJaxError(Exception):
    """Base class for all lagrange-jax errors."""


class SingularHessianError(LagrangeJaxError, ArithmeticError):
    """The Newton step could not be computed from the Hessian.

    Attributes:
        step_count: Number of completed Newton steps before the failure.
    """

    def __init__(self, message: str, step_count: int = 0):
        super().__init__(message)
        self.step_count = step_count


class InvalidProblemError(LagrangeJaxError, ValueError):
    """Malformed problem data (weights, prices, income)."""


class InvalidConfigError(LagrangeJaxError, ValueError):
    """Malformed solver or driver settings."""
