#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from mcpsolver.autodiff.dual import DualVector
from mcpsolver.autodiff.rules import solve_dual
from mcpsolver.dependencies import is_tensor
from mcpsolver.solvers.base import resolve_solver


def solve(
    solver_kind, mcp, *, theta=None, x0=None, y0=None, s0=None, tol=None, **options
):
    """Solve a mixed complementarity problem

    Parameters
    ----------
    solver_kind: SolverType, type, or str
        The solver variant: an instance (e.g. ``InteriorPoint()``), a
        solver class, or a registered name (``'interior_point'``)
    mcp: PrimalDualMCP
        The problem
    theta: array-like, DualVector or torch.Tensor, optional
        The parameter value.  A :py:class:`DualVector` parameter
        propagates its tangents through the solution (forward mode)
        and a :py:class:`DualSolution` is returned.  A torch tensor
        returns a :py:class:`TensorSolution` whose ``x``, ``y`` and
        ``s`` are differentiable tensors (torch reverse and forward
        mode).
    x0, y0, s0: array-like, optional
        Initial point (defaults: x0 = 0, y0 = 1, s0 = 1)
    tol: float, optional
        KKT error tolerance (the solver default is 1e-4)
    **options
        Additional solver options for this call

    Returns
    -------
    MCPSolution, DualSolution or TensorSolution
    """
    if tol is not None:
        options['tol'] = tol
    if isinstance(theta, DualVector):
        return solve_dual(solver_kind, mcp, theta, x0=x0, y0=y0, s0=s0, **options)
    if is_tensor(theta):
        from mcpsolver.autodiff.torch_interface import solve_tensor

        return solve_tensor(solver_kind, mcp, theta, x0=x0, y0=y0, s0=s0, **options)
    solver = resolve_solver(solver_kind)
    return solver.solve(mcp, theta=theta, x0=x0, y0=y0, s0=s0, **options)
