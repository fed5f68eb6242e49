#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import copy

from pyomo.common.factory import Factory

from mcpsolver.errors import MCPConfigurationError
from mcpsolver.solvers.linalg.base import (
    DirectLinearSolverInterface,
    LinearSolverInterface,
    LinearSolverResults,
    LinearSolverStatus,
)
from mcpsolver.solvers.linalg.scipy_interface import ScipyIterative, ScipyLU

LinearSolverFactory = Factory('linear solver')
LinearSolverFactory.register('lu', doc='Sparse direct LU (SuperLU)')(ScipyLU)
LinearSolverFactory.register('gmres', doc='Restarted GMRES')(ScipyIterative)


def new_linear_solver(linear_solver):
    """Return a linear solver that no other solve holds a reference to

    Names are built through :py:data:`LinearSolverFactory`.  Instances
    are shallow-copied: the factorization state of a direct solver is
    rebound (never mutated) on every factorization, so the copy and the
    original never see each other's factors.
    """
    if isinstance(linear_solver, LinearSolverInterface):
        return copy.copy(linear_solver)
    if isinstance(linear_solver, str) and linear_solver in LinearSolverFactory:
        return LinearSolverFactory(linear_solver)
    raise MCPConfigurationError(
        "linear_solver must be a LinearSolverInterface or one of {%s}; "
        "received %r" % (', '.join(sorted(LinearSolverFactory)), linear_solver)
    )
