#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""PyTorch bindings for the differentiable MCP solve.

:py:class:`MCPSolveFunction` registers the solve as a
``torch.autograd.Function``: the forward pass runs the (numpy) solver
once, and both ``backward`` (reverse mode) and ``jvp`` (forward mode,
including ``torch.func.jvp``) apply the implicit-function Jacobian
``dz/dtheta`` at the returned solution, so no derivative ever re-runs
the solver.

This module imports torch; :py:func:`mcpsolver.solve` imports it only
when it is called with a tensor parameter.
"""

import numpy as np

from mcpsolver.autodiff.rules import _require_sensitivities, _warn_if_failed
from mcpsolver.autodiff.sensitivity import solve_jacobian_theta
from mcpsolver.dependencies import torch
from mcpsolver.solvers.base import resolve_solver


def _to_numpy(value):
    if value is None:
        return None
    if torch.is_tensor(value):
        return value.detach().cpu().numpy()
    return value


class MCPSolveFunction(torch.autograd.Function):
    """``theta -> (x, y, s)`` through the MCP solver

    Call through :py:meth:`apply` (or :py:func:`solve_tensor`)::

        x, y, s = MCPSolveFunction.apply(theta, solver, mcp, options, state)

    ``options`` holds the keyword arguments of the solve.  ``state`` is
    a dict the forward pass records the :py:class:`MCPSolution` in (under
    ``'solution'``).
    """

    @staticmethod
    def forward(theta, solver, mcp, options, state):
        solution = solver.solve(mcp, theta=_to_numpy(theta).reshape(-1), **options)
        state['solution'] = solution
        return tuple(
            torch.from_numpy(np.array(v)).to(dtype=theta.dtype, device=theta.device)
            for v in (solution.x, solution.y, solution.s)
        )

    @staticmethod
    def setup_context(ctx, inputs, output):
        theta, solver, mcp, options, state = inputs
        ctx.mcp = mcp
        ctx.solution = state['solution']
        ctx.linear_solver = state.get('sensitivity_linear_solver')
        ctx.theta_shape = theta.shape
        ctx.dz = None

    @staticmethod
    def _jacobian(ctx, like):
        if ctx.dz is None:
            _warn_if_failed(ctx.solution)
            dz = solve_jacobian_theta(
                ctx.mcp, ctx.solution, linear_solver=ctx.linear_solver
            )
            ctx.dz = torch.from_numpy(dz.toarray())
        return ctx.dz.to(dtype=like.dtype, device=like.device)

    @staticmethod
    def backward(ctx, grad_x, grad_y, grad_s):
        g = torch.cat([grad_x, grad_y, grad_s])
        dz = MCPSolveFunction._jacobian(ctx, g)
        grad_theta = (dz.T @ g).reshape(ctx.theta_shape)
        return grad_theta, None, None, None, None

    @staticmethod
    def jvp(ctx, theta_tangent, *nontensor_tangents):
        dz = MCPSolveFunction._jacobian(ctx, theta_tangent)
        dz_v = dz @ theta_tangent.reshape(-1)
        n = ctx.mcp.unconstrained_dimension
        m = ctx.mcp.constrained_dimension
        # tangents of outputs that are not views must not be views
        return dz_v[:n].clone(), dz_v[n : n + m].clone(), dz_v[n + m :].clone()


class TensorSolution(object):
    """Solution of an MCP solved at a tensor parameter

    ``x``, ``y``, ``s`` and ``z`` are tensors connected to ``theta`` in
    the autograd graph; the remaining attributes mirror the underlying
    :py:class:`MCPSolution` (available as ``primal``).
    """

    def __init__(self, primal, x, y, s):
        self.primal = primal
        self.x = x
        self.y = y
        self.s = s

    @property
    def z(self):
        return torch.cat([self.x, self.y, self.s])

    @property
    def status(self):
        return self.primal.status

    @property
    def solved(self):
        return self.primal.solved

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
        return 'TensorSolution(%r)' % (self.primal,)


def solve_tensor(
    solver_kind,
    mcp,
    theta,
    x0=None,
    y0=None,
    s0=None,
    sensitivity_linear_solver=None,
    **kwds
):
    """Solve the MCP at a torch tensor parameter

    Returns a :py:class:`TensorSolution` whose ``x``, ``y`` and ``s``
    are differentiable functions of ``theta`` (reverse mode through
    ``backward``, forward mode through ``torch.func.jvp`` or
    ``torch.autograd.forward_ad``).
    """
    _require_sensitivities(mcp)
    solver = resolve_solver(solver_kind)
    options = dict(kwds, x0=_to_numpy(x0), y0=_to_numpy(y0), s0=_to_numpy(s0))
    state = {'sensitivity_linear_solver': sensitivity_linear_solver}
    x, y, s = MCPSolveFunction.apply(theta, solver, mcp, options, state)
    return TensorSolution(state['solution'], x, y, s)
