import argparse
import logging
import sys
import time
from typing import Callable, Optional

from PyQt5.QtCore import Qt, QSize, QThread, QPointF, QRectF, pyqtSignal
from PyQt5.QtWidgets import (
    QWidget,
    QMainWindow,
    QVBoxLayout,
    QLabel,
    QPushButton,
    QApplication,
    QMenu,
)
from PyQt5.QtGui import QPainter, QColor, QPen, QPixmap, QIcon, QPolygonF

from .engine import TapTempoEngine


STYLESHEET = """
QMainWindow, QWidget {
    background-color: #2b2b2b;
    color: #f0f0f0;
    font-family: "Segoe UI", "Arial", sans-serif;
    font-size: 10pt;
}

QPushButton#tapButton {
    background-color: #0d6efd;
    border: none;
    border-radius: 12px;
    padding: 18px 24px;
    color: white;
    font-size: 28pt;
    font-weight: bold;
}
QPushButton#tapButton:hover {
    background-color: #0b5ed7;
}
QPushButton#tapButton:pressed {
    background-color: #0a58ca;
}

QMenu {
    background-color: #323232;
    border: 1px solid #4d4d4d;
}
QMenu::item:disabled {
    color: #888;
}

QLabel {
    color: #aaa;
}
"""


def format_bpm_label(bpm: Optional[int]) -> str:
    """Text shown next to the metronome icon: nothing while idle."""
    if bpm is None:
        return ""
    return f"{bpm}"


def metronome_pixmap(size: int, body: QColor = QColor("#f0f0f0"),
                     pendulum: QColor = QColor("#2b2b2b")) -> QPixmap:
    """Draw the metronome glyph: trapezoid body, pendulum arm and weight."""
    pix = QPixmap(size, size)
    pix.fill(Qt.transparent)
    p = QPainter(pix)
    p.setRenderHint(QPainter.Antialiasing)

    w = h = float(size)
    base_y = h * 0.9
    base_w = w * 0.7
    base_x = (w - base_w) / 2
    top_x = w / 2
    top_y = h * 0.1
    body_poly = QPolygonF([
        QPointF(base_x, base_y),
        QPointF(base_x + base_w, base_y),
        QPointF(top_x + w * 0.15, top_y),
        QPointF(top_x - w * 0.15, top_y),
    ])
    p.setPen(Qt.NoPen)
    p.setBrush(body)
    p.drawPolygon(body_poly)

    # Pendulum leans right from the pivot near the base
    arm_end = QPointF(top_x + w * 0.12, h * 0.25)
    pen = QPen(pendulum)
    pen.setWidthF(max(1.0, size / 12.0))
    p.setPen(pen)
    p.drawLine(QPointF(top_x, h * 0.8), arm_end)

    r = w * 0.08
    p.setPen(Qt.NoPen)
    p.setBrush(pendulum)
    p.drawEllipse(QRectF(arm_end.x() - r, arm_end.y() - r, 2 * r, 2 * r))
    p.end()
    return pix


class TapWindow(QMainWindow):
    # Signals for worker thread control
    sig_tap_at = pyqtSignal(float)
    sig_reset = pyqtSignal()
    sig_init_engine = pyqtSignal()

    def __init__(self, engine: Optional[TapTempoEngine] = None,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.setWindowTitle("Taptique")
        self.setStyleSheet(STYLESHEET)
        self._clock = clock

        # Threading
        self.worker_thread = QThread()
        self.worker_thread.start()

        # Core (moved to thread)
        self.engine = engine or TapTempoEngine()
        self.engine.moveToThread(self.worker_thread)

        # Local state tracking for UI
        self._bpm: Optional[int] = None

        # UI
        root = QWidget()
        layout = QVBoxLayout(root)

        self.btn_tap = QPushButton()
        self.btn_tap.setObjectName("tapButton")
        self.btn_tap.setMinimumSize(QSize(220, 120))
        self.btn_tap.setIconSize(QSize(40, 40))
        self.btn_tap.setContextMenuPolicy(Qt.CustomContextMenu)
        layout.addWidget(self.btn_tap, 1)

        self.info = QLabel("Tap to start")
        self.info.setAlignment(Qt.AlignCenter)
        f = self.info.font()
        f.setPointSize(9)
        self.info.setFont(f)
        layout.addWidget(self.info)

        self.setCentralWidget(root)
        self._icon = QIcon(metronome_pixmap(64))
        self.setWindowIcon(self._icon)
        self._update_display(None)

        # Connections
        # -- Control (UI -> Worker via queued signals) --
        self.sig_tap_at.connect(self.engine.tap_at)
        self.sig_reset.connect(self.engine.reset)
        self.sig_init_engine.connect(self.engine.initialize)

        # -- Feedback (Worker -> UI) --
        self.engine.bpmChanged.connect(self._on_bpm_changed)
        self.engine.trackingChanged.connect(self._on_tracking_changed)

        # -- Local UI Logic --
        self.btn_tap.pressed.connect(self._on_tap_pressed)
        self.btn_tap.customContextMenuRequested.connect(self._show_context_menu)

        self.sig_init_engine.emit()

    # Slots / handlers
    def _on_tap_pressed(self):
        # Stamp on press; queue latency to the worker must not skew intervals
        self.sig_tap_at.emit(self._clock())

    def _update_display(self, bpm: Optional[int]):
        self.btn_tap.setIcon(self._icon)
        self.btn_tap.setText(f" {format_bpm_label(bpm)}" if bpm is not None else "")

    def _on_bpm_changed(self, bpm):
        self._bpm = bpm
        self._update_display(bpm)
        if bpm is not None:
            self.info.setText(f"{bpm} BPM")

    def _on_tracking_changed(self, tracking: bool):
        if not tracking:
            self.info.setText("Tap to start")

    def _build_context_menu(self) -> QMenu:
        menu = QMenu(self)
        if self._bpm is not None:
            current = menu.addAction(f"Current: {self._bpm} BPM")
            current.setEnabled(False)
            menu.addSeparator()
        reset = menu.addAction("Reset")
        reset.setShortcut("R")
        reset.triggered.connect(self.sig_reset.emit)
        menu.addSeparator()
        quit_action = menu.addAction("Quit Taptique")
        quit_action.setShortcut("Q")
        quit_action.triggered.connect(self.close)
        return menu

    def _show_context_menu(self, pos):
        self._build_context_menu().exec_(self.btn_tap.mapToGlobal(pos))

    def closeEvent(self, event):
        self.worker_thread.quit()
        self.worker_thread.wait(1000)
        super().closeEvent(event)


def configure_logging(level: int = logging.INFO) -> None:
    """Set up process-wide logging. Safe to call more than once."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)


def _parse_args(argv):
    parser = argparse.ArgumentParser(prog="taptique", description="Tap along to get the tempo.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(getattr(logging, args.log_level))
    app = QApplication(sys.argv[:1])
    w = TapWindow()
    w.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
