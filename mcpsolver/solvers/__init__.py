#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from mcpsolver.solvers.base import (
    MCPSolution,
    MCPSolverStatus,
    SolverFactory,
    SolverType,
    TerminationCondition,
    resolve_solver,
)
from mcpsolver.solvers.config import InteriorPointConfig, SolverConfig
from mcpsolver.solvers.interior_point import (
    InteriorPoint,
    fraction_to_the_boundary_linesearch,
)
