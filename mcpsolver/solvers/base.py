#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import abc
import enum

import numpy as np
from pyomo.common.factory import Factory

from mcpsolver.errors import MCPConfigurationError
from mcpsolver.solvers.config import SolverConfig


class MCPSolverStatus(enum.Enum):
    """Whether a returned solution can be trusted"""

    solved = 0
    failed = 1

    def __str__(self):
        return self.name


class TerminationCondition(enum.Enum):
    """
    An Enum that enumerates the reasons a solve can stop.

    Attributes
    ----------
    convergenceCriteriaSatisfied: 0
        The KKT error dropped below the solve tolerance.
    maxTimeLimit: 1
        The solver exited due to reaching the specified time limit.
    iterationLimit: 2
        The solver exited due to reaching an iteration limit (either the
        total Newton step limit or the per-barrier step limit).
    minStepLength: 4
        The boundary line search found no admissible step.  This
        usually indicates an infeasible problem.
    barrierLimit: 5
        The barrier parameter reached its lower limit before the KKT
        error met the solve tolerance.
    linearSolverError: 6
        The regularized Newton system could not be factorized or solved
        (singular or non-finite matrix).
    numericalError: 7
        The residual evaluated to non-finite values.
    unknown: 42
        All other unrecognized exit statuses fall in this category.
    """

    convergenceCriteriaSatisfied = 0

    maxTimeLimit = 1

    iterationLimit = 2

    minStepLength = 4

    barrierLimit = 5

    linearSolverError = 6

    numericalError = 7

    unknown = 42

    def __str__(self):
        return self.name


def _frozen(vec):
    arr = np.array(vec, dtype=float).reshape(-1)
    arr.flags.writeable = False
    return arr


class MCPSolution(object):
    """The result of a single MCP solve

    Attributes
    ----------
    x, y, s: numpy.ndarray
        The unconstrained variables, constrained variables and slacks
        (read-only arrays)
    eps: float
        The final barrier parameter
    status: MCPSolverStatus
        ``solved`` if the KKT error met the tolerance, else ``failed``
    kkt_error: float
        Max-abs residual of the unrelaxed (eps = 0) primal-dual system
        at (x, y, s)
    termination_condition: TerminationCondition
    iterations: int
        Total number of Newton steps taken
    barrier_iterations: int
        Number of barrier (outer) iterations
    theta: numpy.ndarray
        The parameter value the problem was solved at
    """

    __slots__ = (
        'x',
        'y',
        's',
        'eps',
        'status',
        'kkt_error',
        'termination_condition',
        'iterations',
        'barrier_iterations',
        'theta',
    )

    def __init__(
        self,
        x,
        y,
        s,
        eps,
        status,
        kkt_error,
        termination_condition=TerminationCondition.unknown,
        iterations=0,
        barrier_iterations=0,
        theta=(),
    ):
        object.__setattr__(self, 'x', _frozen(x))
        object.__setattr__(self, 'y', _frozen(y))
        object.__setattr__(self, 's', _frozen(s))
        object.__setattr__(self, 'eps', float(eps))
        object.__setattr__(self, 'status', status)
        object.__setattr__(self, 'kkt_error', float(kkt_error))
        object.__setattr__(self, 'termination_condition', termination_condition)
        object.__setattr__(self, 'iterations', int(iterations))
        object.__setattr__(self, 'barrier_iterations', int(barrier_iterations))
        object.__setattr__(self, 'theta', _frozen(theta))

    def __setattr__(self, name, value):
        raise AttributeError("MCPSolution objects cannot be modified")

    @property
    def z(self):
        """The stacked state [x; y; s]"""
        return np.concatenate([self.x, self.y, self.s])

    @property
    def solved(self):
        return self.status == MCPSolverStatus.solved

    def __repr__(self):
        return (
            'MCPSolution(status=%s, termination_condition=%s, kkt_error=%.3e, '
            'eps=%.3e, iterations=%d)'
            % (
                self.status,
                self.termination_condition,
                self.kkt_error,
                self.eps,
                self.iterations,
            )
        )


class SolverType(abc.ABC):
    """
    Base class for the MCP solver variants accepted by
    :py:func:`mcpsolver.solve`.

    Solvers declare their options on a class-level ``CONFIG``; keyword
    arguments to the constructor update the instance configuration, and
    keyword arguments to :py:meth:`solve` update a per-call copy of it.
    """

    CONFIG = SolverConfig()

    def __init__(self, **kwds):
        if "name" in kwds:
            self.name = kwds.pop('name')
        elif not hasattr(self, 'name'):
            self.name = type(self).__name__.lower()
        self.config = self.CONFIG(value=kwds)

    def __repr__(self):
        return '%s(name=%r)' % (type(self).__name__, self.name)

    @abc.abstractmethod
    def solve(self, mcp, theta=None, x0=None, y0=None, s0=None, **kwds):
        """
        Solve an MCP.

        Parameters
        ----------
        mcp: PrimalDualMCP
            The problem to solve
        theta: array-like, optional
            Parameter value (defaults to zeros)
        x0, y0, s0: array-like, optional
            Initial point (defaults: x0 = 0, y0 = 1, s0 = 1)
        **kwds
            Overrides of the solver options for this call

        Returns
        -------
        MCPSolution
        """


SolverFactory = Factory('MCP solver')


def resolve_solver(solver_kind):
    """Return a solver instance for the ``solver_kind`` selector

    ``solver_kind`` may be a :py:class:`SolverType` instance, a
    :py:class:`SolverType` subclass, or a name registered in
    :py:data:`SolverFactory`.
    """
    if isinstance(solver_kind, SolverType):
        return solver_kind
    if isinstance(solver_kind, type) and issubclass(solver_kind, SolverType):
        return solver_kind()
    if isinstance(solver_kind, str):
        if solver_kind not in SolverFactory:
            raise MCPConfigurationError(
                "Unknown MCP solver: %r (registered: %s)"
                % (solver_kind, ', '.join(sorted(SolverFactory)))
            )
        return SolverFactory(solver_kind)
    raise MCPConfigurationError(
        'solver_kind must be a SolverType instance or subclass, or the name '
        'of a registered solver; received %r' % (solver_kind,)
    )
