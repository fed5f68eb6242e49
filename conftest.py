#  ___________________________________________________________________________
#
#  mcpsolver: Mixed Complementarity Problem solver
#  Copyright (c) 2024-2026 The mcpsolver Developers
#  This software is distributed under the 3-clause BSD License.
#  ___________________________________________________________________________

import pytest

_implicit_markers = {'default'}


def pytest_collection_modifyitems(items):
    """
    This method will mark any unmarked tests with the implicit marker ('default')

    """
    for item in items:
        try:
            next(item.iter_markers())
        except StopIteration:
            for marker in _implicit_markers:
                item.add_marker(getattr(pytest.mark, marker))


def pytest_runtest_setup(item):
    """
    This method overrides pytest's default behavior for marked tests.

    If the user asked for a specific marker using the '-m' flag, return to
    pytest's default behavior.  Otherwise run unmarked tests and tests
    carrying the implicit markers, and skip tests that only carry an
    explicit category (e.g., "expensive").
    """
    markeroption = item.config.getoption("-m")
    item_markers = set(mark.name for mark in item.iter_markers())
    if markeroption:
        return
    elif item_markers:
        if not _implicit_markers.issubset(item_markers):
            pytest.skip('SKIPPED: Only running default and unmarked tests.')


def pytest_configure(config):
    """
    Register the markers used by the test suite.
    This stops pytest from printing a warning about unregistered markers.
    """
    config.addinivalue_line("markers", "default: run in the default test suite")
    config.addinivalue_line(
        "markers", "expensive: long-running test excluded from the default suite"
    )
