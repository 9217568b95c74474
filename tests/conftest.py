"""Shared fixtures for the tangle test suite."""

from __future__ import annotations

import pytest
from PySide6.QtCore import QCoreApplication


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    """One Qt application object for every test that needs an event loop."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app
