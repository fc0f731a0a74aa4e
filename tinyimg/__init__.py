"""
tinyimg: optimize PNG images

Combines an optional perceptual lossy pre-pass (palette reduction bounded by a
CIE76 Delta E budget) with lossless recompression by oxipng, for single
files, lists of files, or whole directory trees.

Features include:
- Optimization levels 0-6
- Lossy palette reduction with a Delta E budget or an automatic budget
- Directory input with structure-preserving output directories
- An HTTP API (tinyimg.api) for uploads and server-side paths
"""
from tinyimg.config import TEMP_DIR
from tinyimg.core import (
    tinypng,
    optim_png,
    optimize_paths,
    TinyImgError,
    ValidationError,
    OptimizationIOError,
    RecompressionTimeout,
    QuantizationError,
    TaskError,
    BatchError
)
from tinyimg.models import OptimizationRequest

__version__ = "0.1.0"

__all__ = [
    'tinypng',
    'optim_png',
    'optimize_paths',
    'OptimizationRequest',
    'TinyImgError',
    'ValidationError',
    'OptimizationIOError',
    'RecompressionTimeout',
    'QuantizationError',
    'TaskError',
    'BatchError',
    'TEMP_DIR'
]
