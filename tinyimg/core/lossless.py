"""
Lossless PNG recompression with oxipng.

oxipng performs filter search, deflate, bit depth and color type reduction
and metadata stripping. This module only translates an OptimizationRequest
into oxipng options and maps its failures onto tinyimg errors.
"""
import math
import logging
import oxipng
from typing import Any, Dict

from tinyimg.core.errors import QuantizationError, RecompressionTimeout
from tinyimg.models.options import OptimizationRequest

# Set up logging
logger = logging.getLogger(__name__)

STRIP_CHUNKS = {
    "none": oxipng.StripChunks.none,
    "safe": oxipng.StripChunks.safe,
    "all": oxipng.StripChunks.all,
}

INTERLACING = {
    "off": oxipng.Interlacing.Off,
    "on": oxipng.Interlacing.Adam7,
    # None keeps the input's interlacing
    "keep": None,
}


def build_options(request: OptimizationRequest) -> Dict[str, Any]:
    """
    Translate request options into keyword arguments for oxipng.

    The timeout is passed in whole seconds, rounded up.
    """
    options = {
        "level": request.level,
        "optimize_alpha": request.alpha,
        "strip": STRIP_CHUNKS[request.strip](),
        "interlace": INTERLACING[request.interlace],
        "fast_evaluation": request.fast,
    }
    if request.timeout is not None:
        options["timeout"] = int(math.ceil(request.timeout))
    return options


def recompress(data: bytes, request: OptimizationRequest) -> bytes:
    """
    Recompress PNG bytes without changing any pixel value.

    oxipng keeps the input when it cannot make it smaller, so the result is
    never larger than the input.

    Args:
        data: PNG file contents
        request: Optimization options

    Returns:
        Optimized PNG bytes

    Raises:
        RecompressionTimeout: If oxipng reports that it ran out of time
        QuantizationError: If oxipng fails for any other reason
    """
    options = build_options(request)
    try:
        return oxipng.optimize_from_memory(data, **options)
    except oxipng.PngError as e:
        message = str(e)
        if "timeout" in message.lower() or "timed out" in message.lower():
            raise RecompressionTimeout(f"Recompression exceeded {request.timeout}s: {message}") from e
        raise QuantizationError(f"oxipng failed: {message}") from e
