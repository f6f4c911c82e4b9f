from __future__ import annotations

import os
import time
from typing import Callable

import pytest

# Widgets and pixmaps need a GUI platform; tests never need a real display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt5.QtCore import QEventLoop, QTimer  # noqa: E402
from PyQt5.QtWidgets import QApplication  # noqa: E402


@pytest.fixture(scope="session")
def qapp() -> QApplication:
    """
    One QApplication for the whole session. Qt allows a single instance per
    process, so every test needing an event loop shares it.
    """
    app = QApplication.instance()
    if app is None:
        app = QApplication(["taptique-tests"])
    return app


@pytest.fixture
def spin(qapp: QApplication) -> Callable[[int], None]:
    """Run the event loop for a fixed number of milliseconds."""

    def _spin(ms: int) -> None:
        loop = QEventLoop()
        QTimer.singleShot(ms, loop.quit)
        loop.exec_()

    return _spin


@pytest.fixture
def wait_until(qapp: QApplication) -> Callable[..., bool]:
    """Process events until ``predicate()`` holds or ``timeout`` seconds pass."""

    def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() >= deadline:
                return False
            qapp.processEvents(QEventLoop.AllEvents, 10)
            time.sleep(0.002)
        return True

    return _wait_until
