#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from mcpsolver.mcp.primal_dual import PrimalDualMCP
from mcpsolver.mcp.symbolic import (
    SymbolicBackend,
    SymbolicBackendFactory,
    SympyBackend,
    build_primal_dual_mcp,
    to_symbolic_mcp,
)
from mcpsolver.mcp.qp import quadratic_program_mcp, random_quadratic_program
