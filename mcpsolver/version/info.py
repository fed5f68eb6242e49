#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

# NOTE: releaselevel should be left at 'invalid' for development and set
#     to 'final' for releases.  During development, major.minor.micro
#     should point to the NEXT release.
major = 0
minor = 3
micro = 0
releaselevel = 'final'
serial = 0

if releaselevel == 'invalid':
    from os.path import exists as _exists, join as _join, dirname as _dirname
    from os.path import abspath as _abspath

    if __file__.endswith('setup.py'):
        # This file is being sourced (exec'ed) from setup.py, so
        # dirname(__file__) is the root source directory
        _rootdir = _dirname(__file__)
    else:
        _rootdir = _join(_dirname(_abspath(__file__)), '..', '..')

    if _exists(_join(_rootdir, '.git')):
        try:
            with open(_join(_rootdir, '.git', 'HEAD')) as _FILE:
                _ref = _FILE.readline().strip()
            releaselevel = 'devel {%s}' % (_ref.split('/')[-1].split('\\')[-1],)
        except OSError:
            releaselevel = 'devel'
    else:
        releaselevel = 'devel'


version_info = (major, minor, micro, releaselevel, serial)

__version__ = '.'.join(str(x) for x in version_info[:3])
if releaselevel.startswith('devel'):
    __version__ += ".dev%d" % (serial,)

version = __version__
