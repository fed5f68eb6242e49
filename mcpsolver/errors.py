#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

from pyomo.common.errors import PyomoException


class MCPConfigurationError(PyomoException, ValueError):
    """Raised when an MCP or a differentiation request is configured
    inconsistently (for example, mismatched dimensions or a request for
    sensitivities from a problem built without a parameter Jacobian).
    """


class LinearSystemError(PyomoException, ArithmeticError):
    """Raised when a linear system cannot be factorized or solved"""

    default_message = 'The linear system is singular or could not be solved'
