"""
API v1 - PNG optimization endpoints.
"""
import os
import re
import uuid
import logging
from typing import Dict, Optional
from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from tinyimg import config
from tinyimg.core.errors import BatchError, TaskError
from tinyimg.core.paths import resolve
from tinyimg.core.pipeline import PipelineOrchestrator
from tinyimg.core.png import optimize_paths
from tinyimg.models.options import OptimizationRequest
from tinyimg.models.png import (
    PngFileResult,
    PngOptimizationResponse,
    PngPathOptimizationRequest,
    PngPathOptimizationResponse
)
from tinyimg.utils.file_handling import get_temp_filepath, schedule_cleanup
from tinyimg.utils.metrics import get_cpu_mem, measure_compression_performance

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/png", tags=["PNG Optimization v1"])

_file_id = re.compile(r"^[0-9a-f]{32}$")


def _optimized_path(file_id: str) -> str:
    return get_temp_filepath(file_id, "_optimized.png")


def _rounded(timings: Dict[str, float]) -> Dict[str, float]:
    return {stage: round(seconds, 4) for stage, seconds in timings.items()}


@router.post("/optimize", response_model=PngOptimizationResponse)
async def optimize_png(
    file: UploadFile = File(...),
    level: int = Form(config.DEFAULT_LEVEL),
    lossy: str = Form("0"),
    alpha: bool = Form(False),
    strip: str = Form("all"),
    interlace: str = Form("off"),
    fast: bool = Form(False),
    timeout: Optional[float] = Form(None),
    dither: str = Form("ordered")
):
    """
    Optimize an uploaded PNG image.

    - **level**: Optimization level (0-6)
    - **lossy**: Delta E budget for palette reduction, "0" for lossless, or "auto"
    - **alpha**: Optimize fully transparent pixels
    - **strip**: Metadata to strip (none/safe/all)
    - **interlace**: off/on/keep
    - **fast**: Fast filter evaluation
    - **timeout**: Recompression time bound in seconds
    - **dither**: Dithering for lossy reduction (ordered/none)

    Returns:
        Optimization statistics and a download URL for the optimized PNG
    """
    if not file.filename or not file.filename.lower().endswith((".png", ".apng")):
        raise HTTPException(status_code=400, detail="Only PNG files are supported")

    request = OptimizationRequest.build(
        level=level, lossy=lossy, alpha=alpha, strip=strip, interlace=interlace,
        fast=fast, timeout=timeout, dither=dither,
        preserve=False, verbose=False, recursive=False
    )

    file_id = uuid.uuid4().hex
    input_path = get_temp_filepath(file_id, "_input.png")
    output_path = _optimized_path(file_id)

    content = await file.read()
    with open(input_path, "wb") as f:
        f.write(content)
    logger.info(f"Optimizing {file.filename} ({len(content)} bytes) at level {level}, lossy={lossy}")

    try:
        report = await run_in_threadpool(optimize_paths, input_path, output_path, request)
    except TaskError as e:
        logger.error(f"Optimization failed: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Optimization failed: {str(e.error)}")
    finally:
        if os.path.exists(input_path):
            os.remove(input_path)

    schedule_cleanup(output_path, config.RESULT_TTL)

    outcome = report.outcomes[0]
    performance = measure_compression_performance(
        outcome.original_size, outcome.optimized_size, outcome.elapsed
    )
    cpu_mem = get_cpu_mem()
    palette = outcome.palette

    return PngOptimizationResponse(
        file_id=file_id,
        original_size=outcome.original_size,
        compressed_size=outcome.optimized_size,
        compression_ratio=performance["compression_ratio"],
        space_savings_percent=performance["space_savings_percent"],
        compression_time=round(outcome.elapsed, 4),
        cpu_usage=cpu_mem["cpu_usage"],
        memory_usage=cpu_mem["memory_usage"],
        psnr=outcome.psnr,
        ssim=outcome.ssim,
        lossy_applied=bool(palette and palette.applied),
        palette_size=palette.size if palette and palette.applied else None,
        delta_e_threshold=palette.threshold if palette else None,
        timings=_rounded(outcome.timings),
        download_url=f"/api/v1/png/download/{file_id}"
    )


@router.get("/download/{file_id}", response_class=FileResponse)
async def download_png(file_id: str):
    """
    Download a previously optimized PNG.
    """
    path = _optimized_path(file_id)
    if not _file_id.match(file_id) or not os.path.exists(path):
        raise HTTPException(status_code=404, detail="Optimized file not found")

    return FileResponse(path, media_type="image/png", filename=f"{file_id}.png")


@router.post("/optimize/paths", response_model=PngPathOptimizationResponse)
async def optimize_server_paths(body: PngPathOptimizationRequest):
    """
    Optimize PNG files that already exist on the server.

    Every file is attempted; failures are reported per file. Disabled unless
    TINYIMG_ALLOW_PATHS is set.
    """
    if not config.ALLOW_PATH_REQUESTS:
        raise HTTPException(status_code=403, detail="Path optimization is disabled on this server")

    request = body.options.model_copy(update={"verbose": False, "keep_going": True})
    tasks = resolve(body.input, body.output, request.recursive)
    orchestrator = PipelineOrchestrator(request)

    try:
        report = await run_in_threadpool(orchestrator.run, tasks)
    except BatchError as e:
        report = e.report

    results = []
    for outcome in report.outcomes:
        results.append(PngFileResult(
            source=str(outcome.task.source),
            destination=str(outcome.task.destination),
            original_size=outcome.original_size,
            optimized_size=outcome.optimized_size,
            space_savings_percent=round(outcome.reduction_percent, 2),
            compression_time=round(outcome.elapsed, 4),
            palette_size=outcome.palette.size if outcome.palette and outcome.palette.applied else None,
            status=outcome.state.value,
            timings=_rounded(outcome.timings),
            error=str(outcome.error) if outcome.error else None
        ))

    return PngPathOptimizationResponse(
        results=results,
        successful_count=len(report.successes),
        failed_count=len(report.failures),
        total_original_size=report.total_original_size,
        total_optimized_size=report.total_optimized_size,
        total_time=round(report.elapsed, 4)
    )
