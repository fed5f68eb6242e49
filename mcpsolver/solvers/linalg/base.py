#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import enum
import logging
from abc import ABCMeta, abstractmethod


class LinearSolverStatus(enum.Enum):
    successful = 0
    not_enough_memory = 1
    singular = 2
    error = 3
    max_iter = 4


class LinearSolverResults(object):
    def __init__(self, status=None):
        self.status = status

    def __repr__(self):
        return 'LinearSolverResults(status=%s)' % (self.status,)


class LinearSolverInterface(object, metaclass=ABCMeta):
    """Interface for the solvers of the (regularized) Newton systems

    ``solve`` returns a ``(solution, results)`` tuple.  With
    ``raise_on_error=False`` failures are reported through
    ``results.status`` (and the solution is None); otherwise they raise
    :py:class:`~mcpsolver.errors.LinearSystemError`.
    """

    @classmethod
    def getLoggerName(cls):
        return 'mcpsolver.linear_solver'

    @classmethod
    def getLogger(cls):
        return logging.getLogger(cls.getLoggerName())

    @abstractmethod
    def solve(self, matrix, rhs, raise_on_error=True):
        pass


class DirectLinearSolverInterface(LinearSolverInterface):
    """A linear solver that factorizes the matrix once and reuses the
    factors for any number of right-hand sides"""

    @abstractmethod
    def do_symbolic_factorization(self, matrix, raise_on_error=True):
        pass

    @abstractmethod
    def do_numeric_factorization(self, matrix, raise_on_error=True):
        pass

    @abstractmethod
    def do_back_solve(self, rhs, raise_on_error=True):
        pass

    def solve(self, matrix, rhs, raise_on_error=True):
        res = self.do_symbolic_factorization(matrix, raise_on_error=raise_on_error)
        if res.status == LinearSolverStatus.successful:
            res = self.do_numeric_factorization(matrix, raise_on_error=raise_on_error)
        if res.status != LinearSolverStatus.successful:
            return None, res
        return self.do_back_solve(rhs, raise_on_error=raise_on_error)
