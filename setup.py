#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

"""
Script to generate the installer for mcpsolver.
"""

import os
from setuptools import setup, find_packages


def read(*rnames):
    with open(os.path.join(os.path.dirname(__file__), *rnames)) as README:
        # Strip all leading badges so that they do not appear in the
        # PyPI description
        while True:
            line = README.readline()
            if line.strip() and '[![' not in line:
                break
        return line + README.read()


def import_mcpsolver_module(*path):
    _module_globals = dict(globals())
    _module_globals['__name__'] = None
    _source = os.path.join(os.path.dirname(__file__), *path)
    with open(_source) as _FILE:
        exec(_FILE.read(), _module_globals)
    return _module_globals


def get_version():
    # Source mcpsolver/version/info.py to get the version number
    return import_mcpsolver_module('mcpsolver', 'version', 'info.py')['__version__']


setup_kwargs = dict(
    name='mcpsolver',
    description='Differentiable interior point solver for mixed '
    'complementarity problems',
    long_description=read('README.md'),
    long_description_content_type='text/markdown',
    license='BSD-3-Clause',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],
    python_requires='>=3.9',
    version=get_version(),
    # scipy>=1.12 for the 'rtol' keyword of the Krylov solvers; pyomo
    # supplies the configuration, timing, factory and logging layers
    install_requires=['numpy', 'scipy>=1.12', 'pyomo>=6.7'],
    extras_require={
        'tests': ['coverage', 'pytest', 'sympy', 'torch'],
        'optional': [
            'sympy',  # symbolic MCP construction (mcpsolver.mcp.symbolic)
            'torch',  # autograd bindings (mcpsolver.autodiff.torch_interface)
        ],
        'torch': ['torch'],
    },
    packages=find_packages(exclude=("scripts",)),
)


setup(**setup_kwargs)
