"""
Per-file work items and their results.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple


class TaskState(str, Enum):
    """Stages a task moves through; FAILED is terminal"""
    PENDING = "pending"
    DECODING = "decoding"
    QUANTIZING = "quantizing"
    RECOMPRESSING = "recompressing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Task:
    """One source file and the path its optimized version is written to."""
    source: Path
    destination: Path

    @property
    def in_place(self) -> bool:
        return self.source == self.destination


@dataclass(frozen=True)
class PaletteCandidate:
    """A trial palette size and its measured Delta E statistic"""
    size: int
    error: float


@dataclass(frozen=True)
class PaletteSelection:
    """Result of the palette-size search for one image"""
    size: int
    applied: bool
    threshold: float
    error: Optional[float] = None
    steps: int = 0
    candidates: Tuple[PaletteCandidate, ...] = ()


@dataclass
class OptimizationOutcome:
    """Sizes, timing and final state of one processed task"""
    task: Task
    original_size: int = 0
    optimized_size: int = 0
    elapsed: float = 0.0
    state: TaskState = TaskState.PENDING
    error: Optional[Exception] = None
    failed_stage: Optional[TaskState] = None
    palette: Optional[PaletteSelection] = None
    psnr: Optional[float] = None
    ssim: Optional[float] = None
    # Seconds per stage: decode, quantize, recompress, write
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.DONE

    @property
    def saved_bytes(self) -> int:
        return self.original_size - self.optimized_size

    @property
    def reduction_percent(self) -> float:
        if self.original_size <= 0:
            return 0.0
        return self.saved_bytes / self.original_size * 100.0
