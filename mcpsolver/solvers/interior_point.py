#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""Primal-dual interior point method for mixed complementarity problems

The solver drives the primal-dual residual

    F(z; theta, eps) = [G; H - s; s * y - eps],    z = [x; y; s]

to zero while keeping ``y`` and ``s`` strictly positive.  For a fixed
barrier parameter ``eps`` it takes regularized Newton steps

    (dF/dz + eps * I) dz = -F

damped by a fraction-to-the-boundary line search on ``s`` and on ``y``
until ``max|F| <= eps``; ``eps`` is then reduced by the factor
``1 - exp(-iters)`` (so a barrier level that needed few Newton steps is
followed by a large reduction) and the process repeats until the
unrelaxed KKT error ``max|F(z; theta, 0)|`` meets the tolerance.
A solve that fails returns the accepted iterate with the smallest
unrelaxed KKT error rather than the last one.
"""

import logging
import math
import time

import numpy as np
import scipy.sparse as sp
from pyomo.common.timing import HierarchicalTimer

from mcpsolver.errors import MCPConfigurationError
from mcpsolver.solvers.base import (
    MCPSolution,
    MCPSolverStatus,
    SolverFactory,
    SolverType,
    TerminationCondition,
)
from mcpsolver.solvers.config import InteriorPointConfig
from mcpsolver.solvers.linalg import (
    DirectLinearSolverInterface,
    LinearSolverStatus,
    new_linear_solver,
)

logger = logging.getLogger(__name__)


def fraction_to_the_boundary_linesearch(v, delta, tau=0.995, decay=0.5, tol=1e-4):
    """Backtracking fraction-to-the-boundary step length

    Returns the largest ``alpha`` in ``{1, decay, decay**2, ...}`` such
    that ``v + alpha * delta > (1 - tau) * v`` componentwise, or None if
    ``alpha`` falls below ``tol`` before that holds.

    Parameters
    ----------
    v: numpy.ndarray
        Strictly positive vector
    delta: numpy.ndarray
        Step direction
    tau: float
        Fraction-to-the-boundary parameter in (0, 1)
    decay: float
        Backtracking factor in (0, 1)
    tol: float
        Smallest admissible step

    Returns
    -------
    alpha: float or None
    """
    v = np.asarray(v, dtype=float)
    delta = np.asarray(delta, dtype=float)
    if v.shape != delta.shape:
        raise ValueError(
            'v and delta must have the same shape (%s != %s)' % (v.shape, delta.shape)
        )
    if not 0 < tau < 1:
        raise ValueError('tau must be in (0, 1); received %s' % (tau,))
    if not 0 < decay < 1:
        raise ValueError('decay must be in (0, 1); received %s' % (decay,))
    if tol <= 0:
        raise ValueError('tol must be positive; received %s' % (tol,))
    if v.size == 0:
        return 1.0
    if np.any(v <= 0):
        raise ValueError('the line search requires a strictly positive vector')
    if not np.all(np.isfinite(delta)):
        return None

    boundary = (1 - tau) * v
    alpha = 1.0
    while np.any(v + alpha * delta <= boundary):
        alpha *= decay
        if alpha < tol:
            return None
    return alpha


def _max_abs(vec):
    if vec.size == 0:
        return 0.0
    return float(np.max(np.abs(vec)))


@SolverFactory.register(
    'interior_point', doc='Primal-dual interior point method (boundary line search)'
)
class InteriorPoint(SolverType):
    """
    Primal-dual interior point solver for MCPs

    Options are described by :py:class:`InteriorPointConfig`; they may be
    given to the constructor or overridden for a single call to
    :py:meth:`solve`::

        solver = InteriorPoint(tol=1e-6)
        solution = solver.solve(mcp, theta=theta, max_iter=200)
    """

    CONFIG = InteriorPointConfig()

    def solve(self, mcp, theta=None, x0=None, y0=None, s0=None, **kwds):
        config = self.config(value=kwds)
        timer = config.timer
        if timer is None:
            timer = HierarchicalTimer()

        timer.start('IP solve')
        timer.start('init')
        theta = self._parameter_vector(mcp, theta)
        x, y, s = self._initial_point(mcp, x0, y0, s0)
        n, m = mcp.unconstrained_dimension, mcp.constrained_dimension
        N = mcp.state_dimension
        regularization = sp.identity(N, format='csc')

        tol = config.tol
        barrier_tol = config.barrier_tol
        if barrier_tol is None:
            barrier_tol = 0.1 * tol
        linesearch_tol = config.linesearch_tol
        if linesearch_tol is None:
            linesearch_tol = tol
        linear_solver = new_linear_solver(config.linear_solver)
        timer.stop('init')

        t0 = time.perf_counter()
        eps = config.initial_barrier
        kkt_error = self._kkt_error(mcp, x, y, s, theta, timer)
        termination = None
        n_iter = 0
        barrier_iter = 0
        alpha_s = alpha_y = 0.0
        if not math.isfinite(kkt_error):
            termination = TerminationCondition.numericalError
        best = (kkt_error, x, y, s)

        self._log_header()
        self._log_iteration(barrier_iter, eps, kkt_error, 0, alpha_s, alpha_y, t0)

        while termination is None and kkt_error > tol and eps > barrier_tol:
            barrier_iter += 1
            iters = 1
            F = self._residual(mcp, x, y, s, theta, eps, timer)
            while _max_abs(F) > eps:
                if n_iter >= config.max_iter or iters > config.max_inner_iter:
                    termination = TerminationCondition.iterationLimit
                    break
                if (
                    config.time_limit is not None
                    and time.perf_counter() - t0 > config.time_limit
                ):
                    termination = TerminationCondition.maxTimeLimit
                    break

                timer.start('eval')
                J = mcp.jacobian_state(x, y, s, theta, eps)
                timer.stop('eval')
                kkt = (J + eps * regularization).tocsc()
                delta, status = self._solve_newton_system(linear_solver, kkt, -F, timer)
                if delta is None:
                    logger.warning(
                        'The regularized Newton system could not be solved '
                        '(linear solver status: %s); stopping at barrier %.3e',
                        status.name,
                        eps,
                    )
                    termination = TerminationCondition.linearSolverError
                    break
                delta_x = delta[:n]
                delta_y = delta[n : n + m]
                delta_s = delta[n + m :]

                timer.start('linesearch')
                alpha_s = fraction_to_the_boundary_linesearch(
                    s, delta_s, config.tau, config.linesearch_decay, linesearch_tol
                )
                alpha_y = fraction_to_the_boundary_linesearch(
                    y, delta_y, config.tau, config.linesearch_decay, linesearch_tol
                )
                timer.stop('linesearch')
                if alpha_s is None or alpha_y is None:
                    logger.warning(
                        'Line search found no admissible step for the %s at '
                        'barrier %.3e; the problem may be infeasible',
                        'slacks' if alpha_s is None else 'duals',
                        eps,
                    )
                    alpha_s = alpha_s or 0.0
                    alpha_y = alpha_y or 0.0
                    termination = TerminationCondition.minStepLength
                    break
                if config.step_rule == 'shared':
                    alpha_s = alpha_y = min(alpha_s, alpha_y)

                x_trial = x + alpha_s * delta_x
                s_trial = s + alpha_s * delta_s
                y_trial = y + alpha_y * delta_y
                F_trial = self._residual(
                    mcp, x_trial, y_trial, s_trial, theta, eps, timer
                )
                if not np.all(np.isfinite(F_trial)):
                    logger.warning(
                        'The residual is not finite after the Newton step; '
                        'keeping the previous iterate'
                    )
                    termination = TerminationCondition.numericalError
                    break
                x, y, s, F = x_trial, y_trial, s_trial, F_trial
                n_iter += 1
                iters += 1
                # only the complementarity block depends on eps
                F0 = F.copy()
                F0[n + m :] += eps
                step_kkt = _max_abs(F0)
                if step_kkt < best[0]:
                    best = (step_kkt, x, y, s)

                logger.debug(
                    'Newton step %d (barrier %.3e): |F| = %.3e, '
                    'alpha_s = %.3e, alpha_y = %.3e',
                    n_iter,
                    eps,
                    _max_abs(F),
                    alpha_s,
                    alpha_y,
                )
                if config.iteration_callback is not None:
                    config.iteration_callback(
                        {
                            'iteration': n_iter,
                            'barrier_iteration': barrier_iter,
                            'inner_iteration': iters - 1,
                            'x': x.copy(),
                            'y': y.copy(),
                            's': s.copy(),
                            'eps': eps,
                            'residual_norm': _max_abs(F),
                            'kkt_error': step_kkt,
                            'alpha_s': alpha_s,
                            'alpha_y': alpha_y,
                        }
                    )

            if termination is not None:
                kkt_error = self._kkt_error(mcp, x, y, s, theta, timer)
                break
            eps *= min(1 - math.exp(-iters), config.max_barrier_factor)
            kkt_error = self._kkt_error(mcp, x, y, s, theta, timer)
            self._log_iteration(
                barrier_iter, eps, kkt_error, iters - 1, alpha_s, alpha_y, t0
            )

        if termination is None:
            if kkt_error <= tol:
                termination = TerminationCondition.convergenceCriteriaSatisfied
            else:
                termination = TerminationCondition.barrierLimit
        if termination == TerminationCondition.convergenceCriteriaSatisfied:
            status = MCPSolverStatus.solved
        else:
            status = MCPSolverStatus.failed
            if best[0] < kkt_error:
                logger.info(
                    'Returning the iterate with the smallest KKT error (%.3e) '
                    'instead of the last one (%.3e)',
                    best[0],
                    kkt_error,
                )
                kkt_error, x, y, s = best
        timer.stop('IP solve')

        logger.info(
            'Interior point finished: %s (%s), KKT error %.3e after %d Newton '
            'steps',
            status,
            termination,
            kkt_error,
            n_iter,
        )
        if config.report_timing:
            logger.info('\n%s', timer)

        return MCPSolution(
            x=x,
            y=y,
            s=s,
            eps=eps,
            status=status,
            kkt_error=kkt_error,
            termination_condition=termination,
            iterations=n_iter,
            barrier_iterations=barrier_iter,
            theta=theta,
        )

    @staticmethod
    def _parameter_vector(mcp, theta):
        p = mcp.parameter_dimension
        if theta is None:
            return np.zeros(p)
        theta = np.array(theta, dtype=float).reshape(-1)
        if theta.shape[0] != p:
            raise MCPConfigurationError(
                'theta has %d entries; the MCP has parameter_dimension = %d'
                % (theta.shape[0], p)
            )
        return theta

    @staticmethod
    def _initial_point(mcp, x0, y0, s0):
        n, m = mcp.unconstrained_dimension, mcp.constrained_dimension

        def _init(val, size, default, name, positive):
            if val is None:
                return np.full(size, default, dtype=float)
            val = np.array(val, dtype=float).reshape(-1)
            if val.shape[0] != size:
                raise ValueError(
                    '%s has %d entries; expected %d' % (name, val.shape[0], size)
                )
            if not np.all(np.isfinite(val)):
                raise ValueError('%s must be finite' % (name,))
            if positive and np.any(val <= 0):
                raise ValueError('%s must be strictly positive' % (name,))
            return val

        return (
            _init(x0, n, 0.0, 'x0', False),
            _init(y0, m, 1.0, 'y0', True),
            _init(s0, m, 1.0, 's0', True),
        )

    @staticmethod
    def _residual(mcp, x, y, s, theta, eps, timer):
        timer.start('eval')
        F = mcp.residual(x, y, s, theta, eps)
        timer.stop('eval')
        return F

    def _kkt_error(self, mcp, x, y, s, theta, timer):
        F = self._residual(mcp, x, y, s, theta, 0.0, timer)
        if not np.all(np.isfinite(F)):
            return math.inf
        return _max_abs(F)

    @staticmethod
    def _solve_newton_system(linear_solver, kkt, rhs, timer):
        if isinstance(linear_solver, DirectLinearSolverInterface):
            timer.start('factorize')
            res = linear_solver.do_symbolic_factorization(kkt, raise_on_error=False)
            if res.status == LinearSolverStatus.successful:
                res = linear_solver.do_numeric_factorization(kkt, raise_on_error=False)
            timer.stop('factorize')
            if res.status != LinearSolverStatus.successful:
                return None, res.status
            timer.start('back solve')
            delta, res = linear_solver.do_back_solve(rhs, raise_on_error=False)
            timer.stop('back solve')
        else:
            timer.start('linear solve')
            delta, res = linear_solver.solve(kkt, rhs, raise_on_error=False)
            timer.stop('linear solve')
        return delta, res.status

    @staticmethod
    def _log_header():
        logger.info(
            '{_iter:<6}'
            '{barrier:<11}'
            '{kkt:<11}'
            '{newton:<8}'
            '{alpha_s:<11}'
            '{alpha_y:<11}'
            '{time:<7}'.format(
                _iter='Iter',
                barrier='Barrier',
                kkt='KKT Err',
                newton='Newton',
                alpha_s='Alpha s',
                alpha_y='Alpha y',
                time='Time',
            )
        )

    @staticmethod
    def _log_iteration(_iter, eps, kkt_error, newton, alpha_s, alpha_y, t0):
        logger.info(
            '{_iter:<6}'
            '{barrier:<11.2e}'
            '{kkt:<11.2e}'
            '{newton:<8}'
            '{alpha_s:<11.2e}'
            '{alpha_y:<11.2e}'
            '{time:<7.3f}'.format(
                _iter=_iter,
                barrier=eps,
                kkt=kkt_error,
                newton=newton,
                alpha_s=alpha_s,
                alpha_y=alpha_y,
                time=time.perf_counter() - t0,
            )
        )
