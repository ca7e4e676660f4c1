"""Type definitions for lagrange-jax.

This module contains type aliases used throughout the package.
All types use jaxtyping for runtime type checking with beartype.
"""

from collections.abc import Callable
from typing import Any

from jaxtyping import Array, Float

# Type aliases for common array shapes
Scalar = Float[Array, ""]
Vector = Float[Array, " n"]

# Objective function type, following the optimistix convention:
# fn(x, args) -> (f(x), aux)
ObjectiveFn = Callable[[Vector, Any], tuple[Scalar, Any]]

# Equality constraint function type: c(x, args) -> c(x), with c(x) = 0 feasible
ConstraintFn = Callable[[Vector, Any], Float[Array, " m"]]

# Gradient function type: grad_fn(x, args) -> ∇f(x)
GradFn = Callable[[Vector, Any], Vector]

# Dense Hessian function type: hess_fn(x, args) -> ∇²f(x)
HessianFn = Callable[[Vector, Any], Float[Array, "n n"]]

# Jacobian function type: jac_fn(x, args) -> J(x) where J[i, j] = dc_i/dx_j
JacobianFn = Callable[[Vector, Any], Float[Array, "m n"]]
