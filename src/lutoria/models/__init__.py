"""Data models describing colour statistics, grades and presets."""

from .types import ColorStats, GradeMode, GradeParameters, GradeResult, Preset

__all__ = ["ColorStats", "GradeMode", "GradeParameters", "GradeResult", "Preset"]
