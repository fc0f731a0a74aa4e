"""
Public entry points for optimizing PNG files.
"""
import logging
from pathlib import Path
from typing import List, Optional, TextIO

from tinyimg.config import DEFAULT_LEVEL
from tinyimg.core.paths import IDENTITY, resolve
from tinyimg.core.pipeline import PipelineOrchestrator
from tinyimg.core.report import BatchReport
from tinyimg.models.options import OptimizationRequest

# Set up logging
logger = logging.getLogger(__name__)


def optimize_paths(
    input,
    output=IDENTITY,
    request: Optional[OptimizationRequest] = None,
    stream: Optional[TextIO] = None
) -> BatchReport:
    """
    Resolve inputs and outputs, then optimize every file.

    Args:
        input: PNG file, list of PNG files, or directory
        output: Output specification (see tinyimg.core.paths)
        request: Optimization options (defaults if None)
        stream: Where verbose report lines go

    Returns:
        BatchReport for the batch
    """
    request = request or OptimizationRequest()
    tasks = resolve(input, output, request.recursive)
    if not tasks:
        logger.info(f"No PNG files to optimize in {input}")
    return PipelineOrchestrator(request).run(tasks, stream=stream)


def tinypng(
    input,
    output=IDENTITY,
    level: int = DEFAULT_LEVEL,
    alpha: bool = False,
    preserve: bool = True,
    recursive: bool = True,
    verbose: bool = True,
    lossy=0,
    strip: str = "all",
    interlace: str = "off",
    fast: bool = False,
    timeout: Optional[float] = None,
    dither: str = "ordered",
    keep_going: bool = False
) -> List[Path]:
    """
    Optimize PNG files with optional lossy palette reduction before lossless compression.

    Args:
        input: Path to a PNG file, a list of paths, or a directory. All PNG
            files in a directory (and its subdirectories if recursive) are
            optimized.
        output: Where to write results. Omit to overwrite the inputs; pass a
            file path for a single input, a directory, a list of paths, or a
            function that maps an input path to an output path.
        level: Optimization level (0-6). Higher values compress better but
            take longer.
        alpha: Optimize transparent pixels. Technically lossy, visually lossless.
        preserve: Preserve file permissions and timestamps. Ignored when lossy
            optimization is enabled.
        recursive: Search subdirectories of a directory input.
        verbose: Print the size reduction of each file.
        lossy: CIE76 Delta E budget for palette reduction. Values <= 0 mean
            lossless only; "auto" derives a budget from each image.
        strip: Metadata to strip: "none", "safe" or "all".
        interlace: "off", "on" (Adam7) or "keep".
        fast: Use fast filter evaluation.
        timeout: Time bound in seconds for recompressing each file.
        dither: Dithering for lossy reduction: "ordered" or "none".
        keep_going: Continue after a failed file and raise a BatchError at the end.

    Returns:
        Output file paths, in input order

    Raises:
        ValidationError: For invalid options or inputs, before any file is written
        TaskError: When a file fails to optimize
        BatchError: When keep_going is set and one or more files failed
    """
    request = OptimizationRequest.build(
        level=level,
        alpha=alpha,
        preserve=preserve,
        recursive=recursive,
        verbose=verbose,
        lossy=lossy,
        strip=strip,
        interlace=interlace,
        fast=fast,
        timeout=timeout,
        dither=dither,
        keep_going=keep_going
    )
    return optimize_paths(input, output, request).destinations()


optim_png = tinypng
