from .tempo import TapTempoConfig, TempoEstimator

__all__ = ["TapTempoConfig", "TempoEstimator"]
__version__ = "0.1.0"
