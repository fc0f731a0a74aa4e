"""
Data models for tinyimg.

This module provides the optimization options, the per-file task records and
the Pydantic models used for request/response validation in the HTTP API.
"""
from tinyimg.models.options import (
    OptimizationRequest,
    StripMode,
    InterlaceMode,
    DitherMode,
    LossyBudget
)

from tinyimg.models.task import (
    Task,
    TaskState,
    PaletteCandidate,
    PaletteSelection,
    OptimizationOutcome
)

from tinyimg.models.base import (
    BaseMetrics,
    BaseCompressionResponse,
    BaseQualityMetrics
)

from tinyimg.models.png import (
    PngOptimizationResponse,
    PngPathOptimizationRequest,
    PngFileResult,
    PngPathOptimizationResponse
)

__all__ = [
    # Options
    'OptimizationRequest',
    'StripMode',
    'InterlaceMode',
    'DitherMode',
    'LossyBudget',

    # Tasks
    'Task',
    'TaskState',
    'PaletteCandidate',
    'PaletteSelection',
    'OptimizationOutcome',

    # API models
    'BaseMetrics',
    'BaseCompressionResponse',
    'BaseQualityMetrics',
    'PngOptimizationResponse',
    'PngPathOptimizationRequest',
    'PngFileResult',
    'PngPathOptimizationResponse'
]
