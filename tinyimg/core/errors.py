"""
Exception types shared by every stage of PNG optimization.

Validation problems are raised before any file is touched. Failures of a
single task (I/O, timeout, quantization) are wrapped in a TaskError that
records which file and which stage failed.
"""
from typing import List, Optional, Sequence


class TinyImgError(Exception):
    """Base class for all tinyimg errors"""


class ValidationError(TinyImgError, ValueError):
    """Invalid parameters or inputs; reported before any file is processed."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems))


class OptimizationIOError(TinyImgError, OSError):
    """A source could not be read or a destination could not be written"""


class RecompressionTimeout(TinyImgError, TimeoutError):
    """The lossless recompression stage ran out of time"""


class QuantizationError(TinyImgError):
    """The color quantizer or the lossless optimizer failed internally"""


class TaskError(TinyImgError):
    """
    A single task failed.

    The original error is available as ``__cause__`` and as ``error``.
    """

    def __init__(self, task, stage: str, error: Exception):
        self.task = task
        self.stage = stage
        self.error = error
        super().__init__(
            f"Failed to optimize {task.source} ({stage}): {error}"
        )


class BatchError(TinyImgError):
    """One or more tasks failed in a batch that was run to completion"""

    def __init__(self, failures: Sequence[TaskError], report: Optional[object] = None):
        self.failures = list(failures)
        self.report = report
        lines = [str(f) for f in self.failures]
        super().__init__(
            f"{len(self.failures)} file(s) failed to optimize:\n" + "\n".join(lines)
        )
