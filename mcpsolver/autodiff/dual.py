#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""Forward-mode (dual number) vectors.

A :py:class:`DualVector` carries a primal value together with a block of
tangent directions: ``partials[:, k]`` is the derivative of the value
along the k-th direction.  Passing a DualVector as ``theta`` to
:py:func:`mcpsolver.solve` propagates the tangents through the solution
map.  The solver itself never sees the tangents; it solves at the
primal value and the tangents are pushed through the implicit-function
Jacobian afterwards.
"""

import numpy as np


class DualVector(object):
    """A vector of primal values with ``k`` tangent directions

    Parameters
    ----------
    value: array-like
        The primal values (flattened to length N)
    partials: array-like, optional
        N x k array of tangents.  A length-N vector is a single direction.
        Defaults to no directions (k = 0).
    tag: object, optional
        Identifies the differentiation context that created the tangents
        (carried through to any DualVector derived from this one)
    """

    __slots__ = ('value', 'partials', 'tag')

    def __init__(self, value, partials=None, tag=None):
        value = np.array(value, dtype=float).reshape(-1)
        N = value.shape[0]
        if partials is None:
            partials = np.zeros((N, 0))
        else:
            partials = np.array(partials, dtype=float)
            if partials.ndim == 1:
                partials = partials.reshape(N, 1) if partials.size == N else partials
            if partials.ndim != 2 or partials.shape[0] != N:
                raise ValueError(
                    'partials must have shape (%d, k); received %s'
                    % (N, partials.shape)
                )
        self.value = value
        self.partials = partials
        self.tag = tag

    @classmethod
    def seed(cls, value, tag=None):
        """Seed one tangent direction per component (identity partials)"""
        value = np.array(value, dtype=float).reshape(-1)
        return cls(value, np.eye(value.shape[0]), tag=tag)

    @property
    def nchunks(self):
        """The number of tangent directions"""
        return self.partials.shape[1]

    def __len__(self):
        return self.value.shape[0]

    def __getitem__(self, idx):
        if isinstance(idx, (int, np.integer)):
            idx = slice(idx, idx + 1 if idx != -1 else None)
        return DualVector(self.value[idx], self.partials[idx, :], tag=self.tag)

    def tangent(self, k):
        """The k-th tangent direction as a length-N vector"""
        return self.partials[:, k]

    def __repr__(self):
        return 'DualVector(value=%s, partials=%s, tag=%r)' % (
            np.array2string(self.value, precision=4),
            np.array2string(self.partials, precision=4),
            self.tag,
        )
