"""
API module for tinyimg.
"""
import io
import logging
import shutil
import time
import os
import oxipng
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from PIL import Image

from tinyimg import __version__
from tinyimg.config import TEMP_DIR
from tinyimg.core.errors import TinyImgError, ValidationError
from tinyimg.api.v1 import router as v1_router

# Set up logging
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="tinyimg PNG Optimization API",
    description="""
    API for optimizing PNG images:
    - Lossless recompression with oxipng (levels 0-6)
    - Optional lossy palette reduction bounded by a CIE76 Delta E budget

    Provides upload optimization, server-side path optimization, quality
    metrics and performance statistics.
    """,
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(v1_router, prefix="/api")


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    """Invalid options or inputs."""
    return JSONResponse(status_code=422, content={"detail": exc.problems})


@app.exception_handler(TinyImgError)
async def tinyimg_exception_handler(request: Request, exc: TinyImgError):
    """Optimization errors not handled by an endpoint."""
    logger.error(f"Optimization error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Optimization failed", "error": str(exc)}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unexpected errors."""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred", "error": str(exc)}
    )


# Health check endpoints
@app.get("/health")
async def health_check():
    """Check if the API is running."""
    return {"status": "healthy", "version": __version__}


@app.get("/health/detailed")
async def detailed_health_check():
    """
    Provides detailed health information including system metrics and component status.
    """
    import psutil
    import platform

    # System info
    system_info = {
        "cpu_usage": psutil.cpu_percent(interval=0.1),
        "memory_usage": psutil.virtual_memory().percent,
        "disk_usage": psutil.disk_usage('/').percent,
        "python_version": platform.python_version(),
        "platform": platform.platform()
    }

    # Check oxipng on a tiny generated image
    optimizer_status = {}
    try:
        buffer = io.BytesIO()
        Image.new("RGB", (16, 16), (200, 40, 40)).save(buffer, format="PNG", compress_level=0)
        test_data = buffer.getvalue()
        optimized = oxipng.optimize_from_memory(test_data, level=1)
        optimizer_status["oxipng"] = {
            "status": "ok",
            "compression_ratio": len(test_data) / len(optimized)
        }
    except oxipng.PngError as e:
        optimizer_status["oxipng"] = {"status": "error", "message": str(e)}

    # Check temp directory
    temp_status = {"exists": os.path.exists(TEMP_DIR)}
    if temp_status["exists"]:
        test_file = os.path.join(TEMP_DIR, "test_write.tmp")
        try:
            with open(test_file, 'w') as f:
                f.write("test")
            temp_status["writable"] = True
            os.remove(test_file)
        except OSError as e:
            temp_status["writable"] = False
            temp_status["write_error"] = str(e)

        temp_status["free_space_mb"] = shutil.disk_usage(TEMP_DIR).free / (1024 * 1024)

    return {
        "status": "healthy",
        "version": __version__,
        "system": system_info,
        "optimizer": optimizer_status,
        "temp_directory": temp_status,
        "timestamp": time.time()
    }


# Cleanup event handler
@app.on_event("shutdown")
async def cleanup():
    """Clean up temporary files when the application shuts down."""
    logger.info(f"Cleaning up temporary directory: {TEMP_DIR}")
    shutil.rmtree(TEMP_DIR, ignore_errors=True)
