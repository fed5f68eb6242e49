#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""Convex quadratic programs in MCP form.

The KKT conditions of

    min_x  0.5 x^T M x - theta^T x     s.t.  A x >= b

form the MCP ``G = M x - theta - A^T y``, ``H = A x - b`` (``y`` are the
inequality multipliers).  These problems have closed-form Jacobians, so
the descriptor is assembled directly from scipy sparse blocks.
"""

import numpy as np
import scipy.sparse as sp

from mcpsolver.errors import MCPConfigurationError
from mcpsolver.mcp.primal_dual import PrimalDualMCP


def quadratic_program_mcp(M, A, b):
    """Return the :py:class:`PrimalDualMCP` of a parametric QP

    The parameter ``theta`` is the linear cost (so p = n) and the
    descriptor always carries the parameter Jacobian.
    """
    M = sp.csc_matrix(np.atleast_2d(M) if not sp.issparse(M) else M, dtype=float)
    A = sp.csc_matrix(np.atleast_2d(A) if not sp.issparse(A) else A, dtype=float)
    b = np.asarray(b, dtype=float).reshape(-1)
    n = M.shape[0]
    m = A.shape[0]
    if M.shape != (n, n):
        raise MCPConfigurationError('M must be square; received shape %s' % (M.shape,))
    if A.shape[1] != n:
        raise MCPConfigurationError(
            'A has %d columns; expected %d (the size of M)' % (A.shape[1], n)
        )
    if b.shape[0] != m:
        raise MCPConfigurationError(
            'b has %d entries; expected %d (the rows of A)' % (b.shape[0], m)
        )
    At = A.T.tocsc()
    eye_m = sp.identity(m, format='csc')
    jac_param = sp.vstack(
        [-sp.identity(n, format='csc'), sp.csc_matrix((2 * m, n))], format='csc'
    )

    def residual(x, y, s, theta, eps):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        s = np.asarray(s, dtype=float)
        return np.concatenate(
            [M @ x - theta - At @ y, A @ x - b - s, s * y - eps]
        )

    def jacobian_state(x, y, s, theta, eps):
        return sp.bmat(
            [
                [M, -At, sp.csc_matrix((n, m))],
                [A, sp.csc_matrix((m, m)), -eye_m],
                [
                    sp.csc_matrix((m, n)),
                    sp.diags(s, 0, shape=(m, m)),
                    sp.diags(y, 0, shape=(m, m)),
                ],
            ],
            format='csc',
        )

    def jacobian_param(x, y, s, theta, eps):
        return jac_param

    return PrimalDualMCP(
        residual,
        jacobian_state,
        n,
        m,
        jacobian_param=jacobian_param,
        parameter_dimension=n,
    )


def random_quadratic_program(num_primals, num_inequalities, rng=None):
    """Draw ``(M, A, b)`` for a random convex QP

    ``M = P^T P`` with a standard normal ``P``; ``A`` and ``b`` are
    standard normal.  The feasible region may be empty.
    """
    rng = np.random.default_rng(rng)
    P = rng.standard_normal((num_primals, num_primals))
    M = P.T @ P
    A = rng.standard_normal((num_inequalities, num_primals))
    b = rng.standard_normal(num_inequalities)
    return M, A, b
