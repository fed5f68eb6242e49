#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from typing import Callable, Optional, Union

from pyomo.common.config import (
    Bool,
    ConfigDict,
    ConfigValue,
    In,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
)
from pyomo.common.timing import HierarchicalTimer

from mcpsolver.solvers.linalg import LinearSolverFactory, LinearSolverInterface


def Callback(val):
    """Domain validator admitting callables (or None)"""
    if val is None or callable(val):
        return val
    raise ValueError("Expected a callable, but received %r" % (val,))


def LinearSolverSpec(val):
    """Domain validator admitting a LinearSolverInterface instance or the
    name of a solver registered in the LinearSolverFactory"""
    if isinstance(val, LinearSolverInterface):
        return val
    if isinstance(val, str) and val in LinearSolverFactory:
        return val
    raise ValueError(
        "Expected a LinearSolverInterface or one of {%s}, but received %r"
        % (', '.join(sorted(LinearSolverFactory)), val)
    )


def OpenUnitInterval(val):
    """Domain validation function admitting numbers strictly between 0 and 1"""
    ans = float(val)
    if not 0 < ans < 1:
        raise ValueError("Expected a float in (0, 1), but received %s" % (val,))
    return ans


def Timer(val):
    if val is None or isinstance(val, HierarchicalTimer):
        return val
    raise ValueError("Expected a HierarchicalTimer, but received %r" % (val,))


class SolverConfig(ConfigDict):
    """
    Base config for all MCP solvers
    """

    def __init__(
        self,
        description=None,
        doc=None,
        implicit=False,
        implicit_domain=None,
        visibility=0,
    ):
        super().__init__(
            description=description,
            doc=doc,
            implicit=implicit,
            implicit_domain=implicit_domain,
            visibility=visibility,
        )

        self.tol: float = self.declare(
            'tol',
            ConfigValue(
                domain=PositiveFloat,
                default=1e-4,
                description="Tolerance on the KKT error (the max-abs residual "
                "of the unrelaxed primal-dual system) for a solve to be "
                "reported as solved.",
            ),
        )
        self.time_limit: Optional[float] = self.declare(
            'time_limit',
            ConfigValue(
                domain=NonNegativeFloat,
                default=None,
                description="Wall-clock limit (in seconds) for a single solve.",
            ),
        )
        self.iteration_callback: Optional[Callable] = self.declare(
            'iteration_callback',
            ConfigValue(
                domain=Callback,
                default=None,
                description="Callable invoked with a dict describing the "
                "iterate after every Newton step.",
            ),
        )
        self.report_timing: bool = self.declare(
            'report_timing',
            ConfigValue(
                domain=Bool,
                default=False,
                description="If True, the timing table is logged at INFO "
                "level when the solve finishes.",
            ),
        )
        self.timer: Optional[HierarchicalTimer] = self.declare(
            'timer',
            ConfigValue(
                domain=Timer,
                default=None,
                description="A HierarchicalTimer to record timing "
                "information into (a new one is created if not provided).",
            ),
        )


class InteriorPointConfig(SolverConfig):
    """
    Options for the primal-dual interior point MCP solver
    """

    def __init__(
        self,
        description=None,
        doc=None,
        implicit=False,
        implicit_domain=None,
        visibility=0,
    ):
        super().__init__(
            description=description,
            doc=doc,
            implicit=implicit,
            implicit_domain=implicit_domain,
            visibility=visibility,
        )

        self.initial_barrier: float = self.declare(
            'initial_barrier',
            ConfigValue(
                domain=PositiveFloat,
                default=10.0,
                description="Initial value of the barrier parameter eps.",
            ),
        )
        self.barrier_tol: Optional[float] = self.declare(
            'barrier_tol',
            ConfigValue(
                domain=PositiveFloat,
                default=None,
                description="The barrier loop stops once eps is at or below "
                "this value.  Defaults to 0.1 * tol.",
            ),
        )
        self.max_barrier_factor: float = self.declare(
            'max_barrier_factor',
            ConfigValue(
                domain=OpenUnitInterval,
                default=0.99,
                description="Upper bound on the barrier reduction factor "
                "1 - exp(-iters), so that eps strictly decreases.",
            ),
        )
        self.tau: float = self.declare(
            'tau',
            ConfigValue(
                domain=OpenUnitInterval,
                default=0.995,
                description="Fraction-to-the-boundary parameter: y and s "
                "never move below (1 - tau) times their current value.",
            ),
        )
        self.linesearch_decay: float = self.declare(
            'linesearch_decay',
            ConfigValue(
                domain=OpenUnitInterval,
                default=0.5,
                description="Backtracking factor of the boundary line search.",
            ),
        )
        self.linesearch_tol: Optional[float] = self.declare(
            'linesearch_tol',
            ConfigValue(
                domain=PositiveFloat,
                default=None,
                description="Smallest admissible step.  Defaults to tol.",
            ),
        )
        self.step_rule: str = self.declare(
            'step_rule',
            ConfigValue(
                domain=In(['primal_dual', 'shared']),
                default='primal_dual',
                description="'primal_dual': x and s take the slack step and "
                "y takes the dual step; 'shared' (experimental): the whole "
                "Newton direction takes the smaller of the two.  It stalls "
                "with minStepLength far more often on larger problems.",
            ),
        )
        self.max_iter: int = self.declare(
            'max_iter',
            ConfigValue(
                domain=PositiveInt,
                default=1000,
                description="Maximum total number of Newton steps.",
            ),
        )
        self.max_inner_iter: int = self.declare(
            'max_inner_iter',
            ConfigValue(
                domain=PositiveInt,
                default=100,
                description="Maximum number of Newton steps for a single "
                "value of the barrier parameter.",
            ),
        )
        self.linear_solver: Union[str, LinearSolverInterface] = self.declare(
            'linear_solver',
            ConfigValue(
                domain=LinearSolverSpec,
                default='lu',
                description="Linear solver for the regularized Newton "
                "systems: a registered name ('lu', 'gmres') or an instance.  "
                "An instance is copied at the start of every solve.",
            ),
        )
