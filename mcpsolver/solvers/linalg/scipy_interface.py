#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import gmres, splu

from mcpsolver.errors import LinearSystemError
from mcpsolver.solvers.linalg.base import (
    DirectLinearSolverInterface,
    LinearSolverInterface,
    LinearSolverResults,
    LinearSolverStatus,
)


def _check_finite_matrix(matrix):
    return bool(np.all(np.isfinite(matrix.data)))


class ScipyLU(DirectLinearSolverInterface):
    """Sparse LU factorization (SuperLU through ``scipy.sparse.linalg.splu``)"""

    def __init__(self):
        self._lu = None
        self._shape = None

    def do_symbolic_factorization(self, matrix, raise_on_error=True):
        # SuperLU performs the fill-reducing ordering inside splu
        res = LinearSolverResults()
        if matrix.shape[0] != matrix.shape[1]:
            res.status = LinearSolverStatus.error
            if raise_on_error:
                raise LinearSystemError(
                    'Expected a square matrix; received shape %s' % (matrix.shape,)
                )
            return res
        self._shape = matrix.shape
        res.status = LinearSolverStatus.successful
        return res

    def do_numeric_factorization(self, matrix, raise_on_error=True):
        if not (sp.issparse(matrix) and matrix.format == 'csc'):
            matrix = sp.csc_matrix(matrix)
        res = LinearSolverResults()
        self._lu = None
        if not _check_finite_matrix(matrix):
            res.status = LinearSolverStatus.error
            if raise_on_error:
                raise LinearSystemError('The matrix contains non-finite entries')
            return res
        try:
            self._lu = splu(matrix)
            res.status = LinearSolverStatus.successful
        except RuntimeError as err:
            if 'singular' in str(err):
                res.status = LinearSolverStatus.singular
            else:
                res.status = LinearSolverStatus.error
            if raise_on_error:
                raise LinearSystemError(
                    'Factorization failed (%s): %s' % (res.status.name, err)
                ) from err
        return res

    def do_back_solve(self, rhs, raise_on_error=True):
        if self._lu is None:
            raise LinearSystemError(
                'do_back_solve called without a successful numeric factorization'
            )
        rhs = np.asarray(rhs, dtype=float)
        result = self._lu.solve(rhs)
        res = LinearSolverResults(LinearSolverStatus.successful)
        if not np.all(np.isfinite(result)):
            # An (almost) singular factor shows up as inf/nan in the solution
            res.status = LinearSolverStatus.singular
            if raise_on_error:
                raise LinearSystemError(
                    'Back solve produced non-finite values; the matrix is '
                    'numerically singular'
                )
            return None, res
        return result, res


class ScipyIterative(LinearSolverInterface):
    """Krylov solver from ``scipy.sparse.linalg`` (GMRES by default)

    Parameters
    ----------
    solver: callable, optional
        A ``scipy.sparse.linalg`` iterative method with the signature of
        ``gmres``
    options: dict, optional
        Keyword arguments passed to the iterative method
    """

    def __init__(self, solver=None, options=None):
        if solver is None:
            solver = gmres
        self._solver = solver
        self.options = {'rtol': 1e-12, 'atol': 0.0}
        if options is not None:
            self.options.update(options)

    def solve(self, matrix, rhs, raise_on_error=True):
        if not (sp.issparse(matrix) and matrix.format == 'csr'):
            matrix = sp.csr_matrix(matrix)
        res = LinearSolverResults()
        if not _check_finite_matrix(matrix):
            res.status = LinearSolverStatus.error
            if raise_on_error:
                raise LinearSystemError('The matrix contains non-finite entries')
            return None, res
        rhs = np.asarray(rhs, dtype=float)
        columns = rhs.reshape(rhs.shape[0], -1)
        result = np.empty_like(columns)
        for j in range(columns.shape[1]):
            x, info = self._solver(matrix, columns[:, j], **self.options)
            if info != 0 or not np.all(np.isfinite(x)):
                if info > 0:
                    res.status = LinearSolverStatus.max_iter
                else:
                    res.status = LinearSolverStatus.error
                if raise_on_error:
                    raise LinearSystemError(
                        'Iterative solve did not converge (%s, info=%s)'
                        % (res.status.name, info)
                    )
                return None, res
            result[:, j] = x
        res.status = LinearSolverStatus.successful
        return result.reshape(rhs.shape), res
