"""
Per-file report lines and batch totals.

Paths in report lines are shown relative to the deepest directory shared by
all inputs (or all outputs); a lone file is shown by its base name. A line
reads ``path | 12.0 KB -> 8.1 KB (-32.5%)``, or
``input -> output | ...`` when a file is not optimized in place.
"""
import math
import sys
import logging
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from tinyimg.models.task import OptimizationOutcome, Task

# Set up logging
logger = logging.getLogger(__name__)

SEPARATORS = ("/", "\\")
BYTE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


def common_prefix_index(paths: Sequence[str]) -> int:
    """
    Position just after the last separator of the longest common prefix.

    For a single path this is the position after its last separator, so
    only the base name remains. Returns 0 when nothing can be trimmed.
    """
    if not paths:
        return 0
    if len(paths) == 1:
        prefix = paths[0]
    else:
        first, last = min(paths), max(paths)
        size = 0
        while size < min(len(first), len(last)) and first[size] == last[size]:
            size += 1
        prefix = first[:size]
    return max(prefix.rfind(sep) for sep in SEPARATORS) + 1


def display_path(path: str, index: int) -> str:
    if index <= 0 or index >= len(path):
        return path
    return path[index:]


def format_bytes(size: int) -> str:
    """Human readable size with 1024-based units, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    i = min(int(math.floor(math.log(size, 1024))), len(BYTE_UNITS) - 1)
    return f"{size / 1024 ** i:.1f} {BYTE_UNITS[i]}"


class BatchReport:
    """
    Collects the outcome of every task in a batch.

    Args:
        tasks: Tasks of the batch, in processing order
        verbose: Whether to print a line per finished task
        stream: Where lines are printed (stdout by default)
    """

    def __init__(self, tasks: Sequence[Task], verbose: bool = False, stream: Optional[TextIO] = None):
        self.tasks = list(tasks)
        self.verbose = verbose
        self.stream = stream
        self.outcomes: List[OptimizationOutcome] = []
        self.input_index = common_prefix_index([str(t.source) for t in self.tasks]) if verbose else 0
        self.output_index = common_prefix_index([str(t.destination) for t in self.tasks]) if verbose else 0

    def format_line(self, outcome: OptimizationOutcome) -> Optional[str]:
        """Report line for an outcome, or None for an empty source file."""
        task = outcome.task
        source, destination = str(task.source), str(task.destination)
        if source == destination:
            shown = display_path(destination, self.output_index)
        else:
            shown = (
                f"{display_path(source, self.input_index)} -> "
                f"{display_path(destination, self.output_index)}"
            )

        if not outcome.succeeded:
            return f"{shown} | failed: {outcome.error}"
        if outcome.original_size <= 0:
            return None

        sign = "-" if outcome.optimized_size < outcome.original_size else "+"
        return (
            f"{shown} | {format_bytes(outcome.original_size)} -> "
            f"{format_bytes(outcome.optimized_size)} ({sign}{abs(outcome.reduction_percent):.1f}%)"
        )

    def record(self, outcome: OptimizationOutcome) -> None:
        self.outcomes.append(outcome)
        if not self.verbose:
            return
        line = self.format_line(outcome)
        if line is not None:
            print(line, file=self.stream or sys.stdout)

    @property
    def successes(self) -> List[OptimizationOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failures(self) -> List[OptimizationOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def total_original_size(self) -> int:
        return sum(o.original_size for o in self.successes)

    @property
    def total_optimized_size(self) -> int:
        return sum(o.optimized_size for o in self.successes)

    @property
    def elapsed(self) -> float:
        return sum(o.elapsed for o in self.outcomes)

    def destinations(self) -> List[Path]:
        """Destination of every task, in input order."""
        return [task.destination for task in self.tasks]

    def summary(self) -> str:
        original, optimized = self.total_original_size, self.total_optimized_size
        saved = (original - optimized) / original * 100 if original > 0 else 0.0
        return (
            f"{len(self.successes)} file(s) optimized, {len(self.failures)} failed: "
            f"{format_bytes(original)} -> {format_bytes(optimized)} ({saved:.1f}% saved) "
            f"in {self.elapsed:.2f}s"
        )
