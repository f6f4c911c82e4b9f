import logging
import math
from typing import Optional

from PyQt5.QtCore import QObject, QTimer, pyqtSignal, Qt, pyqtSlot

from .tempo import TapTempoConfig, TempoEstimator

logger = logging.getLogger(__name__)


class TapTempoEngine(QObject):
    """Qt front for :class:`TempoEstimator`.

    All slots and the inactivity timer run on the thread this object lives on,
    so taps, resets and timeouts never interleave.
    """
    bpmChanged = pyqtSignal(object)  # Optional[int]
    trackingChanged = pyqtSignal(bool)

    def __init__(self, config: Optional[TapTempoConfig] = None, estimator: Optional[TempoEstimator] = None,
                 parent=None):
        super().__init__(parent)
        self._estimator = estimator or TempoEstimator(config)

        # Timer is created in initialize() to ensure thread affinity
        self._timer = None
        self._warned_no_timer = False
        self._last_bpm = self._estimator.current_bpm

    @pyqtSlot()
    def initialize(self):
        """Create timer in the owning thread."""
        if self._timer is not None:
            return
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    # Properties
    @property
    def estimator(self) -> TempoEstimator:
        return self._estimator

    @property
    def current_bpm(self) -> Optional[int]:
        return self._estimator.current_bpm

    @property
    def is_tracking(self) -> bool:
        return self._estimator.is_tracking

    def timeout_pending(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    @pyqtSlot()
    def tap(self):
        self.tap_at(self._estimator.now())

    @pyqtSlot(float)
    def tap_at(self, now: float):
        self._stop_timer()
        was_tracking = self._estimator.is_tracking
        self._estimator.tap(now)
        if not was_tracking:
            self.trackingChanged.emit(True)
        self._publish_bpm()
        self._schedule_timeout()

    @pyqtSlot()
    def reset(self):
        self._stop_timer()
        was_tracking = self._estimator.is_tracking
        self._estimator.reset()
        if was_tracking:
            self.trackingChanged.emit(False)
        self._publish_bpm()

    def _publish_bpm(self):
        bpm = self._estimator.current_bpm
        if bpm != self._last_bpm:
            self._last_bpm = bpm
            self.bpmChanged.emit(bpm)

    def _stop_timer(self):
        if self._timer is not None:
            self._timer.stop()

    def _schedule_timeout(self):
        remaining = self._estimator.remaining()
        if remaining is None:
            return
        if self._timer is None:
            if not self._warned_no_timer:
                logger.warning("Inactivity timer not initialized; tempo will only reset on request")
                self._warned_no_timer = True
            return
        # Round up so the timer never lands before the deadline
        self._timer.start(max(0, math.ceil(remaining * 1000)))

    def _on_timeout(self):
        try:
            if self._estimator.expire():
                self.trackingChanged.emit(False)
                self._publish_bpm()
            else:
                # Fired a hair early; wait out the rest
                self._schedule_timeout()
        except Exception:
            logger.exception("Error in tap tempo timeout")
