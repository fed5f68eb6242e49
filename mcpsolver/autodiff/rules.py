#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""Differentiation rules for the MCP solve.

Reverse mode
    :py:func:`solve_with_pullback` runs the solver and returns the
    solution together with a pullback that maps a cotangent on
    ``(x, y, s)`` to the gradient with respect to ``theta``::

        grad_theta = (dz/dtheta)^T [g_x; g_y; g_s]

    The pullback only needs one factorization of ``dF/dz`` at the
    solution; it never re-runs the iterative solve.

Forward mode
    :py:func:`solve_dual` accepts a :py:class:`DualVector` parameter,
    solves at its primal value and pushes every tangent direction
    through ``dz/dtheta``.

:py:class:`DifferentiableSolve` bundles both for use as a layer inside a
larger differentiable pipeline.

Torch tensors are differentiated through the same Jacobian by
:py:mod:`mcpsolver.autodiff.torch_interface`.
"""

import logging
from collections.abc import Mapping

import numpy as np

from mcpsolver.autodiff.dual import DualVector
from mcpsolver.autodiff.sensitivity import solve_jacobian_theta
from mcpsolver.dependencies import is_tensor
from mcpsolver.errors import MCPConfigurationError
from mcpsolver.solvers.base import MCPSolverStatus, resolve_solver

logger = logging.getLogger(__name__)


def _require_sensitivities(mcp):
    if not mcp.has_sensitivities:
        raise MCPConfigurationError(
            'Missing sensitivities: the MCP has no parameter Jacobian.  '
            'Build it with compute_sensitivities=True to differentiate solutions.'
        )


def _warn_if_failed(solution):
    if solution.status != MCPSolverStatus.solved:
        logger.warning(
            'Differentiating an MCP solution with status %s (%s, KKT error '
            '%.3e); the derivatives are unreliable',
            solution.status,
            solution.termination_condition,
            solution.kkt_error,
        )


def _cotangent_vector(cotangent, n, m):
    """Flatten a cotangent on (x, y, s) into a length n + 2m vector

    Accepts a mapping or an object with (optional) ``x``, ``y`` and
    ``s`` entries, or a flat vector.  Missing and None entries are zero.
    """
    N = n + 2 * m
    if cotangent is None:
        return np.zeros(N)
    if isinstance(cotangent, Mapping):
        unknown = set(cotangent) - {'x', 'y', 's'}
        if unknown:
            raise ValueError(
                'cotangent keys must be among x, y, s; received %s'
                % (', '.join(sorted(map(str, unknown))),)
            )
        parts = [cotangent.get(k) for k in ('x', 'y', 's')]
    elif any(hasattr(cotangent, k) for k in ('x', 'y', 's')):
        parts = [getattr(cotangent, k, None) for k in ('x', 'y', 's')]
    else:
        vec = np.asarray(cotangent, dtype=float).reshape(-1)
        if vec.shape[0] != N:
            raise ValueError(
                'cotangent has %d entries; expected n + 2m = %d' % (vec.shape[0], N)
            )
        return vec

    blocks = []
    for name, part, size in zip(('x', 'y', 's'), parts, (n, m, m)):
        if part is None:
            blocks.append(np.zeros(size))
            continue
        part = np.asarray(part, dtype=float).reshape(-1)
        if part.shape[0] != size:
            raise ValueError(
                'cotangent for %s has %d entries; expected %d'
                % (name, part.shape[0], size)
            )
        blocks.append(part)
    return np.concatenate(blocks)


def solve_with_pullback(
    solver_kind,
    mcp,
    theta,
    x0=None,
    y0=None,
    s0=None,
    sensitivity_linear_solver=None,
    **kwds
):
    """Solve the MCP and return ``(solution, pullback)``

    ``pullback(cotangent)`` returns the gradient with respect to
    ``theta`` (with the shape of ``theta``) of a scalar loss whose
    gradient with respect to the solution is ``cotangent``.
    """
    _require_sensitivities(mcp)
    solver = resolve_solver(solver_kind)
    theta_shape = np.shape(theta)
    solution = solver.solve(mcp, theta=theta, x0=x0, y0=y0, s0=s0, **kwds)
    n, m = mcp.unconstrained_dimension, mcp.constrained_dimension
    cache = {}

    def pullback(cotangent):
        g = _cotangent_vector(cotangent, n, m)
        if 'dz' not in cache:
            _warn_if_failed(solution)
            cache['dz'] = solve_jacobian_theta(
                mcp, solution, linear_solver=sensitivity_linear_solver
            )
        grad = cache['dz'].T @ g
        return np.asarray(grad, dtype=float).reshape(theta_shape)

    return solution, pullback


class DualSolution(object):
    """Solution of an MCP solved at a :py:class:`DualVector` parameter

    ``x``, ``y``, ``s`` and ``z`` are DualVectors carrying the tangents of
    the parameter pushed through the solution map; the remaining
    attributes mirror the underlying :py:class:`MCPSolution`
    (available as ``primal``).
    """

    def __init__(self, primal, z, n, m):
        self.primal = primal
        self.z = z
        self.x = z[:n]
        self.y = z[n : n + m]
        self.s = z[n + m :]

    @property
    def status(self):
        return self.primal.status

    @property
    def kkt_error(self):
        return self.primal.kkt_error

    @property
    def eps(self):
        return self.primal.eps

    @property
    def termination_condition(self):
        return self.primal.termination_condition

    @property
    def iterations(self):
        return self.primal.iterations

    def __repr__(self):
        return 'DualSolution(%r, nchunks=%d)' % (self.primal, self.z.nchunks)


def solve_dual(
    solver_kind,
    mcp,
    theta,
    x0=None,
    y0=None,
    s0=None,
    sensitivity_linear_solver=None,
    **kwds
):
    """Forward-mode solve at a :py:class:`DualVector` parameter"""
    if not isinstance(theta, DualVector):
        raise TypeError(
            'solve_dual expects a DualVector parameter; received %s'
            % (type(theta).__name__,)
        )
    _require_sensitivities(mcp)
    solver = resolve_solver(solver_kind)
    solution = solver.solve(mcp, theta=theta.value, x0=x0, y0=y0, s0=s0, **kwds)
    _warn_if_failed(solution)
    dz = solve_jacobian_theta(mcp, solution, linear_solver=sensitivity_linear_solver)
    partials = np.asarray(dz @ theta.partials, dtype=float)
    z = DualVector(solution.z, partials.reshape(len(solution.z), -1), tag=theta.tag)
    return DualSolution(
        solution, z, mcp.unconstrained_dimension, mcp.constrained_dimension
    )


class DifferentiableSolve(object):
    """The MCP solve as a differentiable map ``theta -> (x, y, s)``

    Parameters
    ----------
    solver_kind: SolverType, type, or str
        The solver selector (see :py:func:`mcpsolver.solve`)
    mcp: PrimalDualMCP
        A problem built with a parameter Jacobian
    sensitivity_linear_solver: str or LinearSolverInterface, optional
        Linear solver for dz/dtheta (defaults to sparse LU)
    **solve_options
        Default keyword arguments for every solve

    Examples
    --------
    >>> layer = DifferentiableSolve('interior_point', mcp)  # doctest: +SKIP
    >>> solution, grad = layer.vjp(theta, {'x': dloss_dx})  # doctest: +SKIP
    """

    def __init__(
        self, solver_kind, mcp, sensitivity_linear_solver=None, **solve_options
    ):
        _require_sensitivities(mcp)
        self.solver = resolve_solver(solver_kind)
        self.mcp = mcp
        self.sensitivity_linear_solver = sensitivity_linear_solver
        self.solve_options = solve_options

    def _options(self, kwds):
        options = dict(self.solve_options)
        options.update(kwds)
        options.setdefault('sensitivity_linear_solver', self.sensitivity_linear_solver)
        return options

    def __call__(self, theta, **kwds):
        """Solve at ``theta``; a DualVector parameter returns a DualSolution
        and a torch tensor a TensorSolution"""
        options = self._options(kwds)
        if isinstance(theta, DualVector):
            return solve_dual(self.solver, self.mcp, theta, **options)
        if is_tensor(theta):
            from mcpsolver.autodiff.torch_interface import solve_tensor

            return solve_tensor(self.solver, self.mcp, theta, **options)
        options.pop('sensitivity_linear_solver')
        return self.solver.solve(self.mcp, theta=theta, **options)

    def pullback(self, theta, **kwds):
        """Return ``(solution, pullback)`` (see :py:func:`solve_with_pullback`)"""
        return solve_with_pullback(self.solver, self.mcp, theta, **self._options(kwds))

    def vjp(self, theta, cotangent, **kwds):
        """Return ``(solution, (dz/dtheta)^T cotangent)``"""
        solution, pullback = self.pullback(theta, **kwds)
        return solution, pullback(cotangent)

    def jvp(self, theta, tangents, **kwds):
        """Push tangent direction(s) (length p, or p x k) through the solve"""
        tangents = np.asarray(tangents, dtype=float)
        theta_dual = DualVector(theta, tangents, tag=id(self))
        return self(theta_dual, **kwds)

    def jacobian(self, theta, **kwds):
        """Return ``(solution, dz/dtheta)``"""
        options = self._options(kwds)
        linear_solver = options.pop('sensitivity_linear_solver')
        solution = self.solver.solve(self.mcp, theta=theta, **options)
        _warn_if_failed(solution)
        return solution, solve_jacobian_theta(
            self.mcp, solution, linear_solver=linear_solver
        )
