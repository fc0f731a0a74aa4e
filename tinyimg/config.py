"""
Runtime configuration for tinyimg.

All settings are read from environment variables once, at import time.
"""
import os
import tempfile

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Storage for uploads and results served by the HTTP API
TEMP_DIR = os.environ.get("TINYIMG_TEMP_DIR") or tempfile.mkdtemp(prefix="tinyimg_")
# Seconds an optimized upload stays available for download
RESULT_TTL = float(os.environ.get("TINYIMG_RESULT_TTL", 3600))

# Optimization defaults
DEFAULT_LEVEL = int(os.environ.get("TINYIMG_DEFAULT_LEVEL", 2))
MIN_LEVEL = 0
MAX_LEVEL = 6
# Upper bound for the recompression timeout, in seconds
MAX_TIMEOUT = 24 * 60 * 60

# Lossy palette search
MAX_SAMPLES = int(os.environ.get("TINYIMG_MAX_SAMPLES", 50_000))
ERROR_PERCENTILE = float(os.environ.get("TINYIMG_PERCENTILE", 95))
REFERENCE_PALETTE_SIZE = 256

# "auto" lossy budget: clip(AUTO_SCALE * rms Lab spread, AUTO_MIN, AUTO_MAX)
AUTO_SCALE = 0.1
AUTO_MIN_DELTA_E = 1.0
AUTO_MAX_DELTA_E = 10.0

# Input files picked up when a directory is given
PNG_PATTERN = r"(?i)\.a?png$"

# HTTP API: optimizing server-side paths is disabled unless explicitly enabled
ALLOW_PATH_REQUESTS = os.environ.get("TINYIMG_ALLOW_PATHS", "").lower() in ("true", "1", "yes")
