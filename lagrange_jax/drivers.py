"""Settings shared by the outer-loop drivers.

``PenaltyContinuation`` and ``AugmentedLagrangian`` both run rounds of
inner Newton solves under a penalty weight that starts at
``initial_penalty`` and is multiplied by ``growth`` after every
unsuccessful round, up to ``max_outer_steps`` rounds.
"""

import equinox as eqx

from lagrange_jax.errors import InvalidConfigError
from lagrange_jax.newton import NewtonSolver
from lagrange_jax.transforms import AbstractTransform, ExpTransform


class AbstractOuterDriver(eqx.Module):
    """Base for drivers that grow a penalty weight across outer rounds.

    Attributes:
        tolerance: Threshold of the driver's termination test.
        growth: Penalty growth factor per round (> 1).
        initial_penalty: Penalty weight of the first round.
        max_outer_steps: Cap on the number of rounds.
        transform: Positivity transform.
        newton: Newton solver settings for the inner solves.

    Raises:
        InvalidConfigError: On construction with out-of-range settings.
    """

    tolerance: float = 1e-8
    growth: float = 10.0
    initial_penalty: float = 1.0
    max_outer_steps: int = eqx.field(static=True, default=50)
    transform: AbstractTransform = eqx.field(default_factory=ExpTransform)
    newton: NewtonSolver = eqx.field(default_factory=NewtonSolver)

    def __check_init__(self):
        if not self.tolerance > 0:
            raise InvalidConfigError(f"tolerance must be positive, got {self.tolerance}")
        if not self.growth > 1:
            raise InvalidConfigError(f"growth must exceed 1, got {self.growth}")
        if not self.initial_penalty > 0:
            raise InvalidConfigError(
                f"initial_penalty must be positive, got {self.initial_penalty}"
            )
        if self.max_outer_steps < 1:
            raise InvalidConfigError(
                f"max_outer_steps must be at least 1, got {self.max_outer_steps}"
            )

    def terminate(self, state) -> bool:
        """Stop once a round passed its test or the round cap is reached."""
        return state.converged or state.outer_steps >= self.max_outer_steps
