import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TapTempoConfig:
    """Tuning constants for the tap tempo estimator."""
    max_tap_interval: float = 2.0  # seconds of silence before tracking resets
    min_taps_for_bpm: int = 2
    smoothing_factor: float = 0.3  # EMA weight of the newest estimate
    max_history_size: int = 8  # intervals kept, so one more timestamp
    min_bpm: float = 20.0
    max_bpm: float = 300.0
    outlier_low: float = 0.5  # exclusive bounds on interval / median
    outlier_high: float = 2.0
    min_interval: float = 0.001  # floor for non-monotonic or duplicate taps

    def __post_init__(self):
        if self.max_tap_interval <= 0:
            raise ValueError("max_tap_interval must be positive")
        if self.min_taps_for_bpm < 2:
            raise ValueError("min_taps_for_bpm must be at least 2")
        if not 0.0 < self.smoothing_factor <= 1.0:
            raise ValueError("smoothing_factor must be in (0, 1]")
        if self.max_history_size < 1:
            raise ValueError("max_history_size must be at least 1")
        if not 0.0 < self.min_bpm < self.max_bpm:
            raise ValueError("BPM range must satisfy 0 < min_bpm < max_bpm")
        if not 0.0 <= self.outlier_low < 1.0 < self.outlier_high:
            raise ValueError("outlier band must straddle 1.0")
        if self.min_interval <= 0:
            raise ValueError("min_interval must be positive")

    @property
    def history_capacity(self) -> int:
        return self.max_history_size + 1


def median_interval(intervals: Sequence[float]) -> float:
    """Middle element of the sorted intervals.

    Even-length inputs are not interpolated: the element at index
    ``len // 2`` is returned as-is so estimates stay stable across versions.
    """
    ordered = sorted(intervals)
    return ordered[len(ordered) // 2]


def filter_outliers(intervals: Sequence[float], low: float = 0.5, high: float = 2.0) -> List[float]:
    """Keep intervals whose ratio to the median lies strictly inside (low, high)."""
    median = median_interval(intervals)
    return [i for i in intervals if low < i / median < high]


class TempoEstimator:
    """Tap tempo state machine.

    Collects tap timestamps, estimates BPM from the median-filtered mean
    interval, smooths it with an exponential moving average and forgets
    everything after ``max_tap_interval`` seconds of inactivity.

    The inactivity timeout is kept as an explicit deadline. Whoever owns the
    scheduling (a Qt timer, an event loop tick) calls :meth:`expire` when it
    believes the deadline passed; a deadline moved forward by a newer tap is
    left alone.

    Not thread safe: serialize all calls on one thread.
    """

    def __init__(self, config: Optional[TapTempoConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._config = config or TapTempoConfig()
        self._clock = clock
        self._times = deque(maxlen=self._config.history_capacity)
        self._smoothed_bpm: Optional[float] = None
        self._raw_bpm: Optional[float] = None
        self._deadline: Optional[float] = None

    # Properties
    @property
    def config(self) -> TapTempoConfig:
        return self._config

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._times)

    @property
    def smoothed_bpm(self) -> Optional[float]:
        return self._smoothed_bpm

    @property
    def raw_bpm(self) -> Optional[float]:
        """Last clamped, unsmoothed estimate."""
        return self._raw_bpm

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def is_tracking(self) -> bool:
        return bool(self._times)

    @property
    def current_bpm(self) -> Optional[int]:
        if self._smoothed_bpm is None:
            return None
        # round() is half-to-even
        return int(round(self._smoothed_bpm))

    def now(self) -> float:
        return self._clock()

    def tap(self, now: Optional[float] = None) -> Optional[int]:
        if now is None:
            now = self._clock()
        cfg = self._config

        # Cancel the pending timeout
        self._deadline = None

        if self._times and now - self._times[-1] > cfg.max_tap_interval:
            logger.debug("Tap gap of %.3fs exceeds %.3fs, starting over",
                         now - self._times[-1], cfg.max_tap_interval)
            self.reset()

        # deque maxlen evicts the oldest timestamp
        self._times.append(now)

        if len(self._times) >= cfg.min_taps_for_bpm:
            self._recompute()

        self._deadline = now + cfg.max_tap_interval
        return self.current_bpm

    def reset(self):
        self._times.clear()
        self._smoothed_bpm = None
        self._raw_bpm = None
        self._deadline = None

    def expire(self, now: Optional[float] = None) -> bool:
        """Run the inactivity timeout. Returns True if state was reset."""
        if self._deadline is None:
            return False
        if now is None:
            now = self._clock()
        if now < self._deadline:
            return False
        logger.debug("No tap for %.3fs, resetting", self._config.max_tap_interval)
        self.reset()
        return True

    def remaining(self, now: Optional[float] = None) -> Optional[float]:
        """Seconds until the pending timeout is due, or None if none is armed."""
        if self._deadline is None:
            return None
        if now is None:
            now = self._clock()
        return max(0.0, self._deadline - now)

    def intervals(self) -> List[float]:
        cfg = self._config
        times = list(self._times)
        return [max(cfg.min_interval, t2 - t1) for t1, t2 in zip(times[:-1], times[1:])]

    def _recompute(self):
        cfg = self._config
        intervals = self.intervals()
        if not intervals:
            return

        # Drop double taps and missed beats, unless that leaves too little to average
        filtered = filter_outliers(intervals, cfg.outlier_low, cfg.outlier_high)
        chosen = filtered if len(filtered) >= 2 else intervals

        avg = sum(chosen) / len(chosen)
        raw = 60.0 / avg
        clamped = max(cfg.min_bpm, min(cfg.max_bpm, raw))
        self._raw_bpm = clamped

        if self._smoothed_bpm is None:
            self._smoothed_bpm = clamped
        else:
            a = cfg.smoothing_factor
            self._smoothed_bpm = a * clamped + (1.0 - a) * self._smoothed_bpm
        logger.debug("BPM raw=%.2f clamped=%.2f smoothed=%.2f from %d/%d intervals",
                     raw, clamped, self._smoothed_bpm, len(chosen), len(intervals))
