"""Background workers for hosts that keep the UI thread responsive."""

from .color_stats_worker import ColorStatsWorker, ColorStatsWorkerSignals
from .mood_worker import MoodParamsWorker, MoodParamsWorkerSignals

__all__ = [
    "ColorStatsWorker",
    "ColorStatsWorkerSignals",
    "MoodParamsWorker",
    "MoodParamsWorkerSignals",
]
