#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import logging
from io import StringIO

import numpy as np
from pyomo.common.log import LoggingIntercept
from pyomo.common.timing import HierarchicalTimer

import pyomo.common.unittest as unittest

import mcpsolver.solvers.interior_point as interior_point
from mcpsolver.dependencies import sympy_available
from mcpsolver.errors import MCPConfigurationError
from mcpsolver.mcp import PrimalDualMCP, quadratic_program_mcp, to_symbolic_mcp
from mcpsolver.solvers import (
    InteriorPoint,
    MCPSolution,
    MCPSolverStatus,
    SolverFactory,
    SolverType,
    TerminationCondition,
    resolve_solver,
)
from mcpsolver.solvers.linalg import (
    DirectLinearSolverInterface,
    LinearSolverResults,
    LinearSolverStatus,
    ScipyIterative,
    ScipyLU,
)

# min x1^2 + x2^2 - 4 x1   s.t.  x >= 1
# Solution x = (2, 1), y = (0, 2), s = (1, 0)
M = np.array([[2.0, 0.0], [0.0, 2.0]])
A = np.eye(2)
b = np.ones(2)
theta = np.array([4.0, 0.0])


def feasible_quadratic_program(n, m, seed):
    rng = np.random.default_rng(seed)
    P = rng.standard_normal((n, n))
    M = P.T @ P + np.eye(n)
    A = rng.standard_normal((m, n))
    x_feasible = rng.standard_normal(n)
    b = A @ x_feasible - rng.uniform(0.5, 1.5, m)
    return M, A, b, rng.standard_normal(n)


def initial_kkt(mcp, theta):
    x, y, s = InteriorPoint._initial_point(mcp, None, None, None)
    return np.max(np.abs(mcp.residual(x, y, s, theta, 0.0)))


class SingularLinearSolver(DirectLinearSolverInterface):
    def do_symbolic_factorization(self, matrix, raise_on_error=True):
        return LinearSolverResults(LinearSolverStatus.successful)

    def do_numeric_factorization(self, matrix, raise_on_error=True):
        return LinearSolverResults(LinearSolverStatus.singular)

    def do_back_solve(self, rhs, raise_on_error=True):
        raise AssertionError('back solve after a failed factorization')


class TestInteriorPoint(unittest.TestCase):
    def assertKKT(self, M, A, b, theta, sol, tol):
        x, y, s = sol.x, sol.y, sol.s
        self.assertLessEqual(np.max(np.abs(M @ x - theta - A.T @ y)), tol)
        self.assertLessEqual(np.max(np.abs(A @ x - b - s)), tol)
        self.assertLessEqual(abs(s @ y), tol * len(y))
        self.assertTrue(np.all(y > 0))
        self.assertTrue(np.all(s > 0))

    def test_two_variable_qp(self):
        mcp = quadratic_program_mcp(M, A, b)
        sol = InteriorPoint().solve(mcp, theta=theta)
        self.assertIsInstance(sol, MCPSolution)
        self.assertEqual(sol.status, MCPSolverStatus.solved)
        self.assertTrue(sol.solved)
        self.assertEqual(
            sol.termination_condition, TerminationCondition.convergenceCriteriaSatisfied
        )
        self.assertLessEqual(sol.kkt_error, 1e-4)
        self.assertLess(sol.iterations, 1000)
        self.assertGreater(sol.barrier_iterations, 0)
        self.assertKKT(M, A, b, theta, sol, 1e-4)
        self.assertStructuredAlmostEqual(sol.x.tolist(), [2.0, 1.0], abstol=1e-3)
        self.assertStructuredAlmostEqual(sol.y.tolist(), [0.0, 2.0], abstol=1e-3)
        self.assertStructuredAlmostEqual(sol.s.tolist(), [1.0, 0.0], abstol=1e-3)
        self.assertStructuredAlmostEqual(sol.theta.tolist(), theta.tolist())
        self.assertStructuredAlmostEqual(
            sol.z.tolist(), np.concatenate([sol.x, sol.y, sol.s]).tolist()
        )

    def test_coupled_constraints(self):
        A2 = np.array([[1.0, 1.0], [1.0, -1.0]])
        b2 = np.array([1.0, -2.0])
        M2 = np.array([[2.0, 0.5], [0.5, 1.0]])
        theta2 = np.array([-1.0, 1.0])
        sol = InteriorPoint().solve(quadratic_program_mcp(M2, A2, b2), theta=theta2)
        self.assertTrue(sol.solved)
        self.assertKKT(M2, A2, b2, theta2, sol, 1e-4)

    def test_random_linear_complementarity(self):
        for seed in range(5):
            M, A, b, theta = feasible_quadratic_program(3, 4, seed)
            sol = InteriorPoint(tol=1e-6).solve(
                quadratic_program_mcp(M, A, b), theta=theta
            )
            self.assertTrue(sol.solved, msg='seed %d: %s' % (seed, sol))
            self.assertLessEqual(sol.kkt_error, 1e-6)
            self.assertKKT(M, A, b, theta, sol, 1e-6)

    def assertFailedOrKKT(self, M, A, b, theta, sol, tol, initial_kkt):
        # the boundary line search has no merit function, so a larger
        # problem may stall; a stalled solve still returns a usable iterate
        self.assertTrue(np.all(np.isfinite(sol.z)))
        self.assertTrue(np.all(sol.y > 0))
        self.assertTrue(np.all(sol.s > 0))
        if sol.solved:
            self.assertKKT(M, A, b, theta, sol, tol)
        else:
            self.assertIn(
                sol.termination_condition,
                (
                    TerminationCondition.minStepLength,
                    TerminationCondition.iterationLimit,
                    TerminationCondition.barrierLimit,
                ),
            )
            self.assertLessEqual(sol.kkt_error, initial_kkt)

    @unittest.pytest.mark.expensive
    def test_larger_random_problems(self):
        solved = 0
        for seed in range(10):
            M, A, b, theta = feasible_quadratic_program(20, 30, seed)
            mcp = quadratic_program_mcp(M, A, b)
            sol = InteriorPoint().solve(mcp, theta=theta)
            self.assertFailedOrKKT(M, A, b, theta, sol, 1e-4, initial_kkt(mcp, theta))
            solved += sol.solved
        self.assertGreaterEqual(solved, 8)

    def test_iterates_stay_interior(self):
        records = []
        sol = InteriorPoint().solve(
            quadratic_program_mcp(M, A, b),
            theta=theta,
            iteration_callback=records.append,
        )
        self.assertTrue(sol.solved)
        self.assertEqual(len(records), sol.iterations)
        self.assertEqual(
            sorted(records[0]),
            sorted(
                [
                    'iteration',
                    'barrier_iteration',
                    'inner_iteration',
                    'x',
                    'y',
                    's',
                    'eps',
                    'residual_norm',
                    'kkt_error',
                    'alpha_s',
                    'alpha_y',
                ]
            ),
        )
        for rec in records:
            self.assertGreater(np.min(rec['y']), 0)
            self.assertGreater(np.min(rec['s']), 0)
            self.assertGreater(rec['alpha_s'], 0)
            self.assertLessEqual(rec['alpha_s'], 1)

        # one barrier value per outer iteration, strictly decreasing
        barrier = {}
        for rec in records:
            barrier.setdefault(rec['barrier_iteration'], rec['eps'])
            self.assertEqual(barrier[rec['barrier_iteration']], rec['eps'])
        eps = [barrier[k] for k in sorted(barrier)]
        self.assertTrue(all(e1 > e2 for e1, e2 in zip(eps, eps[1:])))
        self.assertEqual(
            [rec['iteration'] for rec in records], list(range(1, len(records) + 1))
        )

    def test_infeasible(self):
        # x >= 1 and -x >= 0
        mcp = quadratic_program_mcp(np.eye(1), np.array([[1.0], [-1.0]]), [1.0, 0.0])
        sol = InteriorPoint().solve(mcp, theta=[0.0])
        self.assertEqual(sol.status, MCPSolverStatus.failed)
        self.assertFalse(sol.solved)
        self.assertNotEqual(
            sol.termination_condition, TerminationCondition.convergenceCriteriaSatisfied
        )
        self.assertGreater(sol.kkt_error, 1e-4)
        self.assertLessEqual(sol.iterations, 1000)

    def test_iteration_limit(self):
        sol = InteriorPoint().solve(
            quadratic_program_mcp(M, A, b), theta=theta, max_iter=1
        )
        self.assertEqual(sol.status, MCPSolverStatus.failed)
        self.assertEqual(sol.termination_condition, TerminationCondition.iterationLimit)
        self.assertEqual(sol.iterations, 1)

    def test_time_limit(self):
        mcp = quadratic_program_mcp(M, A, b)
        sol = InteriorPoint(time_limit=0).solve(mcp, theta=theta)
        self.assertEqual(sol.status, MCPSolverStatus.failed)
        self.assertEqual(sol.termination_condition, TerminationCondition.maxTimeLimit)
        self.assertEqual(sol.iterations, 0)

    def test_singular_newton_system(self):
        sol = InteriorPoint(linear_solver=SingularLinearSolver()).solve(
            quadratic_program_mcp(M, A, b), theta=theta
        )
        self.assertEqual(sol.status, MCPSolverStatus.failed)
        self.assertEqual(
            sol.termination_condition, TerminationCondition.linearSolverError
        )
        # the initial point is returned
        self.assertStructuredAlmostEqual(sol.x.tolist(), [0.0, 0.0])
        self.assertStructuredAlmostEqual(sol.y.tolist(), [1.0, 1.0])

    def test_non_finite_jacobian(self):
        def residual(x, y, s, theta, eps):
            return np.full(3, 100.0)

        def jacobian_state(x, y, s, theta, eps):
            return np.full((3, 3), np.nan)

        mcp = PrimalDualMCP(residual, jacobian_state, 1, 1)
        with LoggingIntercept(module='mcpsolver.solvers.interior_point') as LOG:
            sol = InteriorPoint().solve(mcp)
        self.assertEqual(
            sol.termination_condition, TerminationCondition.linearSolverError
        )
        self.assertEqual(sol.kkt_error, 100.0)
        self.assertIn(
            'could not be solved (linear solver status: error)', LOG.getvalue()
        )

    def test_non_finite_residual(self):
        def residual(x, y, s, theta, eps):
            if x[0] != 0:
                return np.full(3, np.nan)
            return np.full(3, 100.0)

        def jacobian_state(x, y, s, theta, eps):
            return np.eye(3)

        mcp = PrimalDualMCP(residual, jacobian_state, 1, 1)
        sol = InteriorPoint().solve(mcp)
        self.assertEqual(sol.termination_condition, TerminationCondition.numericalError)
        self.assertEqual(sol.status, MCPSolverStatus.failed)
        self.assertStructuredAlmostEqual(sol.x.tolist(), [0.0])
        self.assertEqual(sol.iterations, 0)

    def test_gmres_matches_lu(self):
        mcp = quadratic_program_mcp(M, A, b)
        ref = InteriorPoint().solve(mcp, theta=theta)
        sol = InteriorPoint().solve(
            mcp, theta=theta, linear_solver=ScipyIterative(options={'rtol': 1e-10})
        )
        self.assertTrue(sol.solved)
        self.assertStructuredAlmostEqual(sol.z.tolist(), ref.z.tolist(), abstol=1e-3)

    def test_shared_step_rule(self):
        mcp = quadratic_program_mcp(M, A, b)
        records = []
        sol = InteriorPoint(step_rule='shared').solve(
            mcp, theta=theta, iteration_callback=records.append
        )
        self.assertTrue(sol.solved)
        self.assertKKT(M, A, b, theta, sol, 1e-4)
        for rec in records:
            self.assertEqual(rec['alpha_s'], rec['alpha_y'])

    def test_shared_step_rule_random_problems(self):
        for seed in range(5):
            M, A, b, theta = feasible_quadratic_program(3, 4, seed)
            mcp = quadratic_program_mcp(M, A, b)
            records = []
            sol = InteriorPoint(step_rule='shared').solve(
                mcp, theta=theta, iteration_callback=records.append
            )
            self.assertFailedOrKKT(M, A, b, theta, sol, 1e-4, initial_kkt(mcp, theta))
            self.assertEqual(len(records), sol.iterations)
            for rec in records:
                self.assertEqual(rec['alpha_s'], rec['alpha_y'])

    def test_failed_solve_returns_best_iterate(self):
        linesearch = interior_point.fraction_to_the_boundary_linesearch
        calls = []

        def stall_after_three_steps(*args):
            # two line searches per Newton step
            calls.append(args)
            if len(calls) > 6:
                return None
            return linesearch(*args)

        M, A, b, theta = feasible_quadratic_program(3, 4, 0)
        mcp = quadratic_program_mcp(M, A, b)
        records = []
        with unittest.mock.patch.object(
            interior_point,
            'fraction_to_the_boundary_linesearch',
            side_effect=stall_after_three_steps,
        ):
            sol = InteriorPoint().solve(
                mcp, theta=theta, iteration_callback=records.append
            )
        self.assertEqual(sol.termination_condition, TerminationCondition.minStepLength)
        self.assertEqual(sol.iterations, 3)
        self.assertEqual(len(records), 3)

        candidates = [(initial_kkt(mcp, theta), np.zeros(3))]
        candidates += [(rec['kkt_error'], rec['x']) for rec in records]
        best_kkt, best_x = min(candidates, key=lambda c: c[0])
        self.assertAlmostEqual(sol.kkt_error, best_kkt, delta=1e-12)
        self.assertStructuredAlmostEqual(sol.x.tolist(), best_x.tolist())
        for kkt, _ in candidates:
            self.assertLessEqual(sol.kkt_error, kkt + 1e-12)

    def test_kkt_error_in_callback(self):
        mcp = quadratic_program_mcp(M, A, b)
        records = []
        InteriorPoint().solve(mcp, theta=theta, iteration_callback=records.append)
        for rec in records:
            F = mcp.residual(rec['x'], rec['y'], rec['s'], theta, 0.0)
            self.assertAlmostEqual(rec['kkt_error'], np.max(np.abs(F)), delta=1e-12)

    def test_linear_solver_instance_not_shared(self):
        lu = ScipyLU()
        solver = InteriorPoint(linear_solver=lu)
        mcp = quadratic_program_mcp(M, A, b)
        sol = solver.solve(mcp, theta=theta)
        self.assertTrue(sol.solved)
        self.assertIs(solver.config.linear_solver, lu)
        # each solve factorizes into its own copy
        self.assertIsNone(lu._lu)
        self.assertTrue(solver.solve(mcp, theta=[0.0, 0.0]).solved)
        self.assertIsNone(lu._lu)

    def test_initial_point(self):
        mcp = quadratic_program_mcp(M, A, b)
        sol = InteriorPoint().solve(
            mcp, theta=theta, x0=[2.0, 1.0], y0=[0.5, 2.0], s0=[1.0, 0.5]
        )
        self.assertTrue(sol.solved)
        self.assertStructuredAlmostEqual(sol.x.tolist(), [2.0, 1.0], abstol=1e-3)

    def test_bad_initial_point(self):
        mcp = quadratic_program_mcp(M, A, b)
        solver = InteriorPoint()
        with self.assertRaisesRegex(ValueError, 'y0 must be strictly positive'):
            solver.solve(mcp, theta=theta, y0=[1.0, 0.0])
        with self.assertRaisesRegex(ValueError, 's0 has 3 entries; expected 2'):
            solver.solve(mcp, theta=theta, s0=[1.0, 1.0, 1.0])
        with self.assertRaisesRegex(ValueError, 'x0 must be finite'):
            solver.solve(mcp, theta=theta, x0=[np.nan, 0.0])
        with self.assertRaisesRegex(
            MCPConfigurationError,
            'theta has 3 entries; the MCP has parameter_dimension = 2',
        ):
            solver.solve(mcp, theta=[1.0, 2.0, 3.0])

    def test_default_theta(self):
        sol = InteriorPoint().solve(quadratic_program_mcp(M, A, b))
        self.assertTrue(sol.solved)
        self.assertStructuredAlmostEqual(sol.theta.tolist(), [0.0, 0.0])
        self.assertStructuredAlmostEqual(sol.x.tolist(), [1.0, 1.0], abstol=1e-3)

    def test_options(self):
        solver = InteriorPoint(tol=1e-6, max_iter=50)
        self.assertEqual(solver.config.tol, 1e-6)
        self.assertEqual(solver.config.max_iter, 50)
        self.assertEqual(InteriorPoint.CONFIG.tol, 1e-4)
        self.assertEqual(solver.config.step_rule, 'primal_dual')
        self.assertEqual(solver.config.linear_solver, 'lu')
        with self.assertRaisesRegex(
            ValueError, "invalid value for configuration 'tau'"
        ):
            InteriorPoint(tau=1.5)
        with self.assertRaisesRegex(
            ValueError, "invalid value for configuration 'step_rule'"
        ):
            InteriorPoint(step_rule='newton')
        with self.assertRaisesRegex(
            ValueError, "invalid value for configuration 'linear_solver'"
        ):
            InteriorPoint(linear_solver='cholesky')
        with self.assertRaisesRegex(ValueError, "key 'bogus' not defined"):
            solver.solve(quadratic_program_mcp(M, A, b), bogus=1)

    def test_per_call_options_do_not_persist(self):
        solver = InteriorPoint()
        mcp = quadratic_program_mcp(M, A, b)
        sol = solver.solve(mcp, theta=theta, max_iter=1)
        self.assertEqual(sol.termination_condition, TerminationCondition.iterationLimit)
        self.assertEqual(solver.config.max_iter, 1000)
        self.assertTrue(solver.solve(mcp, theta=theta).solved)

    def test_solution_is_immutable(self):
        sol = InteriorPoint().solve(quadratic_program_mcp(M, A, b), theta=theta)
        with self.assertRaises(AttributeError):
            sol.status = MCPSolverStatus.failed
        with self.assertRaises(ValueError):
            sol.x[0] = 10.0
        self.assertIn('status=solved', repr(sol))

    def test_logging(self):
        with LoggingIntercept(
            module='mcpsolver.solvers.interior_point', level=logging.INFO
        ) as LOG:
            InteriorPoint().solve(quadratic_program_mcp(M, A, b), theta=theta)
        lines = LOG.getvalue().splitlines()
        self.assertTrue(lines[0].startswith('Iter  Barrier    KKT Err    Newton'))
        self.assertRegex(
            lines[-1],
            r'Interior point finished: solved \(convergenceCriteriaSatisfied\), '
            r'KKT error [0-9.e+-]+ after [0-9]+ Newton steps',
        )

    def test_timing(self):
        timer = HierarchicalTimer()
        stream = StringIO()
        with LoggingIntercept(
            stream, 'mcpsolver.solvers.interior_point', level=logging.INFO
        ):
            sol = InteriorPoint(timer=timer, report_timing=True).solve(
                quadratic_program_mcp(M, A, b), theta=theta
            )
        self.assertEqual(timer.get_num_calls('IP solve'), 1)
        self.assertEqual(timer.get_num_calls('IP solve.factorize'), sol.iterations)
        self.assertEqual(timer.get_num_calls('IP solve.back solve'), sol.iterations)
        self.assertIn('IP solve', stream.getvalue())
        self.assertIn('linesearch', stream.getvalue())

    @unittest.skipUnless(sympy_available, 'sympy is not available')
    def test_symbolic_problem(self):
        def G(x, y, theta):
            return M @ x - theta - A.T @ y

        def H(x, y, theta):
            return A @ x - b

        mcp = to_symbolic_mcp(G, H, 2, 2, 2)
        sol = InteriorPoint().solve(mcp, theta=theta)
        ref = InteriorPoint().solve(quadratic_program_mcp(M, A, b), theta=theta)
        self.assertTrue(sol.solved)
        self.assertStructuredAlmostEqual(sol.z.tolist(), ref.z.tolist(), abstol=1e-6)


class TestSolverSelection(unittest.TestCase):
    def test_factory(self):
        self.assertIn('interior_point', SolverFactory)
        self.assertIs(SolverFactory.get_class('interior_point'), InteriorPoint)
        solver = SolverFactory('interior_point', tol=1e-6)
        self.assertIsInstance(solver, SolverType)
        self.assertEqual(solver.config.tol, 1e-6)
        self.assertEqual(solver.name, 'interiorpoint')
        self.assertEqual(InteriorPoint(name='ipm').name, 'ipm')

    def test_resolve_solver(self):
        solver = InteriorPoint()
        self.assertIs(resolve_solver(solver), solver)
        self.assertIsInstance(resolve_solver(InteriorPoint), InteriorPoint)
        self.assertIsInstance(resolve_solver('interior_point'), InteriorPoint)
        with self.assertRaisesRegex(
            MCPConfigurationError, "Unknown MCP solver: 'newton'"
        ):
            resolve_solver('newton')
        with self.assertRaisesRegex(MCPConfigurationError, 'solver_kind must be'):
            resolve_solver(3)

    def test_enums(self):
        self.assertEqual(str(MCPSolverStatus.solved), 'solved')
        self.assertEqual(str(TerminationCondition.barrierLimit), 'barrierLimit')
        self.assertEqual(TerminationCondition.unknown.value, 42)


if __name__ == '__main__':
    unittest.main()
