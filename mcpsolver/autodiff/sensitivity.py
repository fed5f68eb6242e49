#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import numpy as np
import scipy.sparse as sp

from mcpsolver.errors import LinearSystemError, MCPConfigurationError
from mcpsolver.solvers.linalg import (
    LinearSolverInterface,
    ScipyLU,
    new_linear_solver,
)


def solve_jacobian_theta(mcp, solution, theta=None, linear_solver=None):
    """Derivative of the solution with respect to the parameters

    Applies the implicit function theorem to ``F(z; theta, eps) = 0`` at
    the returned solution::

        dz/dtheta = -(dF/dz)^{-1} dF/dtheta

    using one factorization of ``dF/dz`` and a back solve for all p
    right-hand sides (no explicit inverse is formed).

    Parameters
    ----------
    mcp: PrimalDualMCP
        The problem; must carry a parameter Jacobian
    solution: MCPSolution
        The solution to differentiate
    theta: array-like, optional
        The parameter value; defaults to ``solution.theta``
    linear_solver: str or LinearSolverInterface, optional
        Defaults to a sparse LU factorization

    Returns
    -------
    scipy.sparse.csc_matrix
        The (n + 2m) x p matrix dz/dtheta

    Raises
    ------
    MCPConfigurationError
        if the MCP was built without sensitivities
    LinearSystemError
        if dF/dz is singular at the solution
    """
    if not mcp.has_sensitivities:
        raise MCPConfigurationError(
            'Missing sensitivities: the MCP has no parameter Jacobian.  '
            'Build it with compute_sensitivities=True to differentiate solutions.'
        )
    if theta is None:
        theta = solution.theta
    theta = np.asarray(theta, dtype=float).reshape(-1)
    if theta.shape[0] != mcp.parameter_dimension:
        raise MCPConfigurationError(
            'theta has %d entries; the MCP has parameter_dimension = %d'
            % (theta.shape[0], mcp.parameter_dimension)
        )
    if linear_solver is None:
        linear_solver = ScipyLU()
    elif not isinstance(linear_solver, LinearSolverInterface):
        linear_solver = new_linear_solver(linear_solver)

    args = (solution.x, solution.y, solution.s, theta, solution.eps)
    jac_z = mcp.jacobian_state(*args)
    jac_theta = mcp.jacobian_param(*args)

    rhs = -jac_theta.toarray()
    result, res = linear_solver.solve(jac_z, rhs, raise_on_error=False)
    if result is None:
        raise LinearSystemError(
            'dF/dz is singular at the solution (linear solver status: %s); '
            'the solution is not differentiable with respect to theta'
            % (res.status.name,)
        )
    return sp.csc_matrix(np.asarray(result).reshape(rhs.shape))
