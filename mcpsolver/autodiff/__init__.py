#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from mcpsolver.autodiff.dual import DualVector
from mcpsolver.autodiff.rules import (
    DifferentiableSolve,
    DualSolution,
    solve_dual,
    solve_with_pullback,
)
from mcpsolver.autodiff.sensitivity import solve_jacobian_theta
