#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""mcpsolver: Mixed Complementarity Problem solver

mcpsolver.version provides the release information for the package.
"""

from mcpsolver.version.info import version, version_info, __version__
