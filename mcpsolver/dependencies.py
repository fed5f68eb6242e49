#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import sys

from pyomo.common.dependencies import attempt_import

sympy, sympy_available = attempt_import(
    'sympy',
    error_message='The sympy symbolic backend requires sympy; install it '
    'with "pip install mcpsolver[optional]"',
)

torch, torch_available = attempt_import(
    'torch',
    error_message='Differentiating through torch tensors requires PyTorch; '
    'install it with "pip install mcpsolver[torch]"',
)


def is_tensor(value):
    """True if ``value`` is a torch tensor

    Only consults torch if the caller has already imported it, so plain
    numpy callers never pay for the torch import.
    """
    return 'torch' in sys.modules and torch.is_tensor(value)
