"""
tinyimg API Entry Point

This file serves as the main entry point for the HTTP service,
importing and running the FastAPI application defined in tinyimg.api.

Run with uvicorn:
    uvicorn main:app --reload
"""
import os
import logging
import sys

from tinyimg.config import LOG_LEVEL, LOG_FORMAT

# Configure root logger
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format=LOG_FORMAT,
    stream=sys.stdout
)

# Set up logger
logger = logging.getLogger(__name__)

# Check that required dependencies are installed
try:
    import PIL
    import numpy
    import oxipng
    import psutil
    import skimage
    import sklearn
    logger.info("All required dependencies are available")
except ImportError as e:
    logger.critical(f"Missing required dependency: {str(e)}")
    logger.critical("Please install all dependencies: pip install -e .")
    sys.exit(1)

from tinyimg.api import app

# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    # Get configuration from environment variables
    port = int(os.environ.get("PORT", 8000))
    workers = int(os.environ.get("WORKERS", 1))
    debug = os.environ.get("DEBUG", "").lower() in ("true", "1", "yes")

    logger.info(f"Starting tinyimg API on port {port} with {workers} workers")

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        workers=workers,
        reload=debug,
        log_level=LOG_LEVEL.lower()
    )
