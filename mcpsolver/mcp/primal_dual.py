#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""The primal-dual form of a mixed complementarity problem.

An MCP with unconstrained variables ``x`` (length n) and constrained
variables ``y`` (length m),

    0 = G(x, y; theta)
    0 <= H(x, y; theta)  _|_  y >= 0,

is solved through the square system obtained by introducing slacks
``s = H(x, y; theta)`` and relaxing complementarity by the barrier
parameter ``eps``:

    F(z; theta, eps) = [ G(x, y; theta)
                         H(x, y; theta) - s
                         s * y - eps         ] = 0,     z = [x; y; s]

(the product ``s * y`` is taken componentwise).  A
:py:class:`PrimalDualMCP` bundles the callables that evaluate ``F`` and
its Jacobians together with the problem dimensions; the solvers and the
sensitivity engine only ever interact with a problem through this
descriptor.
"""

import numpy as np
import scipy.sparse as sp
from pyomo.common.config import NonNegativeInt

from mcpsolver.errors import MCPConfigurationError


def _dimension(val, name):
    try:
        return NonNegativeInt(val)
    except (TypeError, ValueError):
        raise MCPConfigurationError(
            "%s must be a non-negative integer (received %r)" % (name, val)
        )


class PrimalDualMCP(object):
    """Immutable descriptor of the primal-dual system of an MCP

    Parameters
    ----------
    residual: callable
        ``residual(x, y, s, theta, eps)`` returning the stacked residual
        ``F`` (length n + 2m)
    jacobian_state: callable
        ``jacobian_state(x, y, s, theta, eps)`` returning ``dF/dz`` as an
        (n+2m) x (n+2m) scipy sparse matrix (dense arrays are accepted
        and converted)
    unconstrained_dimension: int
        n, the number of unconstrained variables ``x``
    constrained_dimension: int
        m, the number of constrained variables ``y`` (and slacks ``s``)
    jacobian_param: callable, optional
        ``jacobian_param(x, y, s, theta, eps)`` returning ``dF/dtheta``
        as an (n+2m) x p matrix.  Required for differentiating solutions.
    parameter_dimension: int, optional
        p, the length of the parameter vector ``theta``

    """

    __slots__ = (
        '_residual',
        '_jacobian_state',
        '_jacobian_param',
        '_n',
        '_m',
        '_p',
    )

    def __init__(
        self,
        residual,
        jacobian_state,
        unconstrained_dimension,
        constrained_dimension,
        jacobian_param=None,
        parameter_dimension=0,
    ):
        n = _dimension(unconstrained_dimension, 'unconstrained_dimension')
        m = _dimension(constrained_dimension, 'constrained_dimension')
        p = _dimension(parameter_dimension, 'parameter_dimension')
        if n + m == 0:
            raise MCPConfigurationError(
                'An MCP must have at least one unconstrained or constrained variable'
            )
        if not callable(residual):
            raise MCPConfigurationError('residual must be callable')
        if not callable(jacobian_state):
            raise MCPConfigurationError('jacobian_state must be callable')
        if jacobian_param is not None:
            if not callable(jacobian_param):
                raise MCPConfigurationError('jacobian_param must be callable')
            if not p:
                raise MCPConfigurationError(
                    'jacobian_param was provided, but parameter_dimension is 0'
                )
        object.__setattr__(self, '_residual', residual)
        object.__setattr__(self, '_jacobian_state', jacobian_state)
        object.__setattr__(self, '_jacobian_param', jacobian_param)
        object.__setattr__(self, '_n', n)
        object.__setattr__(self, '_m', m)
        object.__setattr__(self, '_p', p)

    def __setattr__(self, name, value):
        raise AttributeError(
            "'%s' object is immutable; cannot set '%s'" % (type(self).__name__, name)
        )

    def __delattr__(self, name):
        raise AttributeError(
            "'%s' object is immutable; cannot delete '%s'" % (type(self).__name__, name)
        )

    def __repr__(self):
        return '%s(n=%d, m=%d, p=%d, sensitivities=%s)' % (
            type(self).__name__,
            self._n,
            self._m,
            self._p,
            self.has_sensitivities,
        )

    @classmethod
    def from_symbolic(
        cls,
        G_symbolic,
        H_symbolic,
        x_symbolic,
        y_symbolic,
        theta_symbolic=(),
        backend='sympy',
        compute_sensitivities=False,
        backend_options=None,
    ):
        """Build a descriptor from symbolic expressions for G and H

        See :py:func:`mcpsolver.mcp.symbolic.build_primal_dual_mcp`.
        """
        from mcpsolver.mcp.symbolic import build_primal_dual_mcp

        return build_primal_dual_mcp(
            G_symbolic,
            H_symbolic,
            x_symbolic,
            y_symbolic,
            theta_symbolic,
            backend=backend,
            compute_sensitivities=compute_sensitivities,
            backend_options=backend_options,
        )

    @property
    def unconstrained_dimension(self):
        return self._n

    @property
    def constrained_dimension(self):
        return self._m

    @property
    def parameter_dimension(self):
        return self._p

    @property
    def state_dimension(self):
        """The length of the stacked state z = [x; y; s]"""
        return self._n + 2 * self._m

    @property
    def has_sensitivities(self):
        return self._jacobian_param is not None

    def split_state(self, z):
        """Return (x, y, s) views of the stacked state ``z``"""
        n, m = self._n, self._m
        if len(z) != n + 2 * m:
            raise ValueError(
                'state vector has length %d; expected n + 2m = %d'
                % (len(z), n + 2 * m)
            )
        return z[:n], z[n : n + m], z[n + m :]

    def stack_state(self, x, y, s):
        return np.concatenate(
            [np.asarray(v, dtype=float).reshape(-1) for v in (x, y, s)]
        )

    def residual(self, x, y, s, theta, eps):
        """Evaluate F(x, y, s; theta, eps) as a float vector of length n + 2m"""
        F = np.asarray(self._residual(x, y, s, theta, eps), dtype=float).reshape(-1)
        if F.shape[0] != self.state_dimension:
            raise MCPConfigurationError(
                'residual returned %d entries; expected n + 2m = %d'
                % (F.shape[0], self.state_dimension)
            )
        return F

    def jacobian_state(self, x, y, s, theta, eps):
        """Evaluate dF/dz as a scipy CSC matrix"""
        N = self.state_dimension
        return self._as_csc(
            self._jacobian_state(x, y, s, theta, eps), (N, N), 'jacobian_state'
        )

    def jacobian_param(self, x, y, s, theta, eps):
        """Evaluate dF/dtheta as a scipy CSC matrix"""
        if self._jacobian_param is None:
            raise MCPConfigurationError(
                'Missing sensitivities: this MCP was built without a '
                'parameter Jacobian.  Rebuild it with '
                'compute_sensitivities=True (or pass jacobian_param).'
            )
        return self._as_csc(
            self._jacobian_param(x, y, s, theta, eps),
            (self.state_dimension, self._p),
            'jacobian_param',
        )

    @staticmethod
    def _as_csc(J, shape, name):
        if sp.issparse(J):
            J = sp.csc_matrix(J, dtype=float)
        else:
            J = sp.csc_matrix(np.atleast_2d(np.asarray(J, dtype=float)))
        if J.shape != shape:
            raise MCPConfigurationError(
                '%s returned a matrix of shape %s; expected %s' % (name, J.shape, shape)
            )
        return J
