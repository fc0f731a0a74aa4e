"""
Per-file optimization pipeline.

Each task moves through

    PENDING -> DECODING -> (QUANTIZING) -> RECOMPRESSING -> WRITING -> DONE

and any stage may end in FAILED. Tasks run one after another in input order.

Failure policy for a batch: by default the first failed task stops the batch
with a TaskError. With keep_going, every task is attempted and a BatchError
listing all failures is raised at the end. Files written before a failure are
kept in both modes.
"""
import io
import os
import time
import logging
from PIL import Image, UnidentifiedImageError
from typing import Optional, Sequence, TextIO

from tinyimg.core.errors import (
    BatchError,
    OptimizationIOError,
    QuantizationError,
    RecompressionTimeout,
    TaskError
)
from tinyimg.core.lossless import recompress
from tinyimg.core.palette import PaletteSelector, apply_lossy
from tinyimg.core.quantizer import to_rgba
from tinyimg.core.report import BatchReport
from tinyimg.models.options import OptimizationRequest
from tinyimg.models.task import OptimizationOutcome, Task, TaskState
from tinyimg.utils.file_handling import atomic_write, read_bytes
from tinyimg.utils.metrics import PerformanceTimer, calculate_image_metrics

# Set up logging
logger = logging.getLogger(__name__)

TASK_ERRORS = (OptimizationIOError, RecompressionTimeout, QuantizationError)


def decode_png(data: bytes, name: str) -> Image.Image:
    """Decode image bytes fully, raising OptimizationIOError for bad data."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise OptimizationIOError(f"Failed to read PNG {name}: {e}") from e
    return image


def encode_png(image: Image.Image) -> bytes:
    # oxipng recompresses afterwards, so a fast zlib level is enough here
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", compress_level=1)
    return buffer.getvalue()


class PipelineOrchestrator:
    """
    Runs tasks for one OptimizationRequest.

    Args:
        request: Options shared by every task
        selector: Palette selector used for lossy tasks
    """

    def __init__(self, request: OptimizationRequest, selector: Optional[PaletteSelector] = None):
        self.request = request
        self.selector = selector or PaletteSelector()

    def process(self, task: Task) -> OptimizationOutcome:
        """
        Optimize a single task.

        Per-task failures (I/O, timeout, quantization) are recorded on the
        returned outcome rather than raised.
        """
        request = self.request
        outcome = OptimizationOutcome(task=task)
        start = time.time()
        try:
            outcome.state = TaskState.DECODING
            data = read_bytes(task.source)
            try:
                source_stat = os.stat(task.source)
            except OSError as e:
                raise OptimizationIOError(f"Failed to stat {task.source}: {e}") from e
            outcome.original_size = len(data)

            if request.lossy_enabled:
                with PerformanceTimer() as timer:
                    image = to_rgba(decode_png(data, str(task.source)))
                outcome.timings["decode"] = timer.execution_time

                outcome.state = TaskState.QUANTIZING
                with PerformanceTimer() as timer:
                    reduced, selection = apply_lossy(image, request.lossy, request.dither, self.selector)
                outcome.timings["quantize"] = timer.execution_time
                outcome.palette = selection
                if selection.applied:
                    outcome.psnr, outcome.ssim = calculate_image_metrics(image, reduced)
                    data = encode_png(reduced)

            outcome.state = TaskState.RECOMPRESSING
            with PerformanceTimer() as timer:
                optimized = recompress(data, request)
            outcome.timings["recompress"] = timer.execution_time

            outcome.state = TaskState.WRITING
            with PerformanceTimer() as timer:
                atomic_write(task.destination, optimized)
                if request.effective_preserve:
                    self._copy_attributes(source_stat, task)
            outcome.timings["write"] = timer.execution_time

            outcome.optimized_size = len(optimized)
            outcome.state = TaskState.DONE
        except TASK_ERRORS as e:
            outcome.failed_stage = outcome.state
            outcome.state = TaskState.FAILED
            outcome.error = e
            logger.error(f"Failed to optimize {task.source} while {outcome.failed_stage.value}: {e}")
        finally:
            outcome.elapsed = time.time() - start

        if outcome.succeeded:
            logger.debug(
                f"Optimized {task.source} -> {task.destination}: "
                f"{outcome.original_size} -> {outcome.optimized_size} bytes in {outcome.elapsed:.3f}s"
            )
        return outcome

    @staticmethod
    def _copy_attributes(source_stat: os.stat_result, task: Task) -> None:
        """Apply the source's permission bits and timestamps to the destination."""
        try:
            os.chmod(task.destination, source_stat.st_mode & 0o7777)
            os.utime(task.destination, ns=(source_stat.st_atime_ns, source_stat.st_mtime_ns))
        except OSError as e:
            raise OptimizationIOError(f"Failed to preserve attributes on {task.destination}: {e}") from e

    def run(self, tasks: Sequence[Task], stream: Optional[TextIO] = None) -> BatchReport:
        """
        Process tasks in order and report each one.

        Args:
            tasks: Tasks to run
            stream: Where verbose report lines go (stdout by default)

        Returns:
            BatchReport with an outcome per task

        Raises:
            TaskError: On the first failed task (default policy)
            BatchError: After all tasks ran, if any failed and keep_going is set
        """
        request = self.request
        report = BatchReport(tasks, verbose=request.verbose, stream=stream)

        if tasks and request.preserve and request.lossy_enabled:
            logger.warning("preserve=True is ignored because lossy optimization is enabled")

        failures = []
        for task in tasks:
            outcome = self.process(task)
            report.record(outcome)
            if outcome.succeeded:
                continue
            failure = TaskError(task, outcome.failed_stage.value, outcome.error)
            failure.__cause__ = outcome.error
            if not request.keep_going:
                raise failure
            failures.append(failure)

        logger.info(report.summary())
        if failures:
            raise BatchError(failures, report)
        return report
