#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""Symbolic construction of primal-dual MCP descriptors.

The user describes ``G(x, y, theta)`` and ``H(x, y, theta)`` as ordinary
Python functions.  They are traced with symbolic variables, the
primal-dual residual and its (structurally sparse) Jacobians are formed
symbolically, and numeric callables are generated from the resulting
expressions.  The symbolic engine is pluggable through
:py:data:`SymbolicBackendFactory`; the solver core never imports it.
"""

import logging
from abc import ABCMeta, abstractmethod

import numpy as np
import scipy.sparse as sp
from pyomo.common.factory import Factory

from mcpsolver.dependencies import sympy
from mcpsolver.errors import MCPConfigurationError
from mcpsolver.mcp.primal_dual import PrimalDualMCP, _dimension

logger = logging.getLogger(__name__)

SymbolicBackendFactory = Factory('symbolic backend')


class SymbolicBackend(object, metaclass=ABCMeta):
    """Interface for the engines that trace G and H and generate the
    numeric residual and Jacobian callables"""

    @abstractmethod
    def make_variables(self, name, n):
        """Return a length-``n`` numpy object array of fresh symbols"""

    @abstractmethod
    def sparse_jacobian(self, exprs, wrt):
        """Return ``(rows, cols, values)`` of the structurally nonzero
        entries of d(exprs)/d(wrt)"""

    @abstractmethod
    def build_function(self, exprs, args):
        """Return a callable evaluating ``exprs`` for numeric values of
        the flat symbol list ``args`` (passed positionally)"""

    def build_sparse_function(self, rows, cols, shape, values, args):
        """Return a callable evaluating a sparse matrix with a fixed
        nonzero structure"""
        rows = np.asarray(rows, dtype=int)
        cols = np.asarray(cols, dtype=int)
        if not len(values):

            def evaluate(*arg_values):
                return sp.csc_matrix(shape, dtype=float)

            return evaluate

        data_fcn = self.build_function(values, args)

        def evaluate(*arg_values):
            data = np.asarray(data_fcn(*arg_values), dtype=float).reshape(-1)
            return sp.csc_matrix((data, (rows, cols)), shape=shape)

        return evaluate


@SymbolicBackendFactory.register('sympy', doc='Symbolic backend based on sympy')
class SympyBackend(SymbolicBackend):
    """Trace and differentiate with sympy; generate code with
    ``sympy.lambdify``

    Parameters
    ----------
    cse: bool
        Eliminate common subexpressions in the generated code
    """

    def __init__(self, cse=False):
        self.cse = cse

    def make_variables(self, name, n):
        symbols = np.empty(n, dtype=object)
        for i in range(n):
            symbols[i] = sympy.Symbol('%s_%d' % (name, i), real=True)
        return symbols

    def sparse_jacobian(self, exprs, wrt):
        rows, cols, values = [], [], []
        for i, expr in enumerate(exprs):
            free = expr.free_symbols
            for j, var in enumerate(wrt):
                if var not in free:
                    continue
                d = sympy.diff(expr, var)
                if d != 0:
                    rows.append(i)
                    cols.append(j)
                    values.append(d)
        return rows, cols, values

    def build_function(self, exprs, args):
        fcn = sympy.lambdify(list(args), list(exprs), modules='numpy', cse=self.cse)

        def evaluate(*arg_values):
            return np.asarray(fcn(*arg_values), dtype=float).reshape(-1)

        return evaluate


def _resolve_backend(backend, backend_options):
    if isinstance(backend, SymbolicBackend):
        if backend_options:
            raise MCPConfigurationError(
                'backend_options cannot be combined with a backend instance'
            )
        return backend
    if backend not in SymbolicBackendFactory:
        raise MCPConfigurationError(
            "Unknown symbolic backend: %r (registered: %s)"
            % (backend, ', '.join(sorted(SymbolicBackendFactory)))
        )
    return SymbolicBackendFactory(backend, **(backend_options or {}))


def _as_expressions(exprs, expected, label):
    exprs = np.asarray(exprs, dtype=object).reshape(-1)
    if exprs.shape[0] != expected:
        raise MCPConfigurationError(
            '%s has %d components; expected %d' % (label, exprs.shape[0], expected)
        )
    return [sympy.sympify(e) for e in exprs]


def _numeric_arguments(n, m, p):
    def pack(x, y, s, theta, eps):
        theta = () if theta is None else theta
        vals = np.concatenate(
            [
                np.asarray(x, dtype=float).reshape(-1),
                np.asarray(y, dtype=float).reshape(-1),
                np.asarray(s, dtype=float).reshape(-1),
                np.asarray(theta, dtype=float).reshape(-1),
                [float(eps)],
            ]
        )
        if vals.shape[0] != n + 2 * m + p + 1:
            raise ValueError(
                'received %d values; expected (n, m, p) = (%d, %d, %d) '
                'plus the barrier parameter' % (vals.shape[0], n, m, p)
            )
        return vals

    return pack


def build_primal_dual_mcp(
    G_symbolic,
    H_symbolic,
    x_symbolic,
    y_symbolic,
    theta_symbolic=(),
    backend='sympy',
    compute_sensitivities=False,
    backend_options=None,
):
    """Build a :py:class:`PrimalDualMCP` from symbolic G and H

    Parameters
    ----------
    G_symbolic: sequence
        Expressions for G (one per unconstrained variable)
    H_symbolic: sequence
        Expressions for H (one per constrained variable)
    x_symbolic, y_symbolic, theta_symbolic: sequence
        The symbols the expressions are written in
    backend: str or SymbolicBackend
        Name of a registered backend, or a backend instance
    compute_sensitivities: bool
        Also generate the Jacobian with respect to theta
    backend_options: dict, optional
        Keyword arguments for the backend constructor

    """
    backend = _resolve_backend(backend, backend_options)

    x = list(np.asarray(x_symbolic, dtype=object).reshape(-1))
    y = list(np.asarray(y_symbolic, dtype=object).reshape(-1))
    theta = list(np.asarray(theta_symbolic, dtype=object).reshape(-1))
    n, m, p = len(x), len(y), len(theta)
    if compute_sensitivities and not p:
        raise MCPConfigurationError(
            'compute_sensitivities=True requires at least one parameter'
        )
    G = _as_expressions(G_symbolic, n, 'G (unconstrained_dimension)')
    H = _as_expressions(H_symbolic, m, 'H (constrained_dimension)')

    s = list(backend.make_variables('s', m))
    eps = backend.make_variables('eps', 1)[0]
    F = G + [H[i] - s[i] for i in range(m)] + [s[i] * y[i] - eps for i in range(m)]
    z = x + y + s
    args = z + theta + [eps]
    N = n + 2 * m
    pack = _numeric_arguments(n, m, p)

    F_fcn = backend.build_function(F, args)
    rows, cols, values = backend.sparse_jacobian(F, z)
    J_fcn = backend.build_sparse_function(rows, cols, (N, N), values, args)
    logger.debug(
        'Generated primal-dual MCP: n=%d, m=%d, p=%d, %d Jacobian nonzeros',
        n,
        m,
        p,
        len(values),
    )

    def residual(x, y, s, theta, eps):
        return F_fcn(*pack(x, y, s, theta, eps))

    def jacobian_state(x, y, s, theta, eps):
        return J_fcn(*pack(x, y, s, theta, eps))

    jacobian_param = None
    if compute_sensitivities:
        rows, cols, values = backend.sparse_jacobian(F, theta)
        Jp_fcn = backend.build_sparse_function(rows, cols, (N, p), values, args)

        def jacobian_param(x, y, s, theta, eps):
            return Jp_fcn(*pack(x, y, s, theta, eps))

    return PrimalDualMCP(
        residual,
        jacobian_state,
        n,
        m,
        jacobian_param=jacobian_param,
        parameter_dimension=p,
    )


def to_symbolic_mcp(
    G,
    H,
    unconstrained_dimension,
    constrained_dimension,
    parameter_dimension=0,
    backend='sympy',
    compute_sensitivities=False,
    backend_options=None,
):
    """Trace ``G(x, y, theta)`` and ``H(x, y, theta)`` and build the
    primal-dual descriptor.

    ``G`` and ``H`` are called once with numpy object arrays of symbols,
    so they may be written with ordinary numpy operations (``M @ x``,
    slicing, ``np.dot``) as long as they only use operations the
    symbolic backend understands.

    Raises
    ------
    MCPConfigurationError
        if the output lengths of G or H do not match
        ``unconstrained_dimension`` / ``constrained_dimension``, or if
        sensitivities are requested without parameters.

    """
    n = _dimension(unconstrained_dimension, 'unconstrained_dimension')
    m = _dimension(constrained_dimension, 'constrained_dimension')
    p = _dimension(parameter_dimension, 'parameter_dimension')
    if compute_sensitivities and not p:
        raise MCPConfigurationError(
            'compute_sensitivities=True requires parameter_dimension > 0'
        )
    backend = _resolve_backend(backend, backend_options)

    x = backend.make_variables('x', n)
    y = backend.make_variables('y', m)
    theta = backend.make_variables('theta', p)
    G_symbolic = G(x, y, theta)
    H_symbolic = H(x, y, theta)
    if np.asarray(G_symbolic, dtype=object).size != n:
        raise MCPConfigurationError(
            'G returned %d components; expected unconstrained_dimension = %d'
            % (np.asarray(G_symbolic, dtype=object).size, n)
        )
    if np.asarray(H_symbolic, dtype=object).size != m:
        raise MCPConfigurationError(
            'H returned %d components; expected constrained_dimension = %d'
            % (np.asarray(H_symbolic, dtype=object).size, m)
        )
    return build_primal_dual_mcp(
        G_symbolic,
        H_symbolic,
        x,
        y,
        theta,
        backend=backend,
        compute_sensitivities=compute_sensitivities,
    )
