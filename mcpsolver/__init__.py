#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""mcpsolver: Mixed Complementarity Problem solver

Solve

    0 = G(x, y; theta),    0 <= H(x, y; theta)  _|_  y >= 0

with a primal-dual interior point method, and differentiate the solution
with respect to theta (reverse and forward mode) through the implicit
function theorem.
"""

from mcpsolver.version import __version__, version, version_info

from mcpsolver.errors import LinearSystemError, MCPConfigurationError
from mcpsolver.mcp import PrimalDualMCP, to_symbolic_mcp
from mcpsolver.solvers import (
    InteriorPoint,
    MCPSolution,
    MCPSolverStatus,
    SolverFactory,
    SolverType,
    TerminationCondition,
)
from mcpsolver.autodiff import (
    DifferentiableSolve,
    DualSolution,
    DualVector,
    solve_jacobian_theta,
    solve_with_pullback,
)
from mcpsolver.api import solve
