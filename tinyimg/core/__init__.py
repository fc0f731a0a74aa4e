"""
Core PNG optimization for tinyimg.

This package contains:
- errors: the exception types shared by every stage
- palette: perceptual palette-size search for lossy reduction
- quantizer: palette generation and ordered dithering
- lossless: oxipng recompression
- paths: input/output resolution into tasks
- pipeline: per-file processing
- report: report lines and batch totals
"""
from tinyimg.core.errors import (
    TinyImgError,
    ValidationError,
    OptimizationIOError,
    RecompressionTimeout,
    QuantizationError,
    TaskError,
    BatchError
)

from tinyimg.core.palette import (
    PaletteSelector,
    apply_lossy,
    auto_threshold,
    bisect_palette_size
)

from tinyimg.core.paths import (
    IDENTITY,
    Identity,
    FixedPath,
    PathList,
    Directory,
    MappingFunction,
    resolve
)

from tinyimg.core.pipeline import PipelineOrchestrator
from tinyimg.core.report import BatchReport
from tinyimg.core.png import tinypng, optim_png, optimize_paths

__all__ = [
    # Errors
    'TinyImgError',
    'ValidationError',
    'OptimizationIOError',
    'RecompressionTimeout',
    'QuantizationError',
    'TaskError',
    'BatchError',

    # Lossy search
    'PaletteSelector',
    'apply_lossy',
    'auto_threshold',
    'bisect_palette_size',

    # Path resolution
    'IDENTITY',
    'Identity',
    'FixedPath',
    'PathList',
    'Directory',
    'MappingFunction',
    'resolve',

    # Pipeline
    'PipelineOrchestrator',
    'BatchReport',
    'tinypng',
    'optim_png',
    'optimize_paths'
]
