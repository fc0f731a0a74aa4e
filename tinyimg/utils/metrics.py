"""
Utilities for measuring optimization performance and image quality.
"""
import time
import logging
import numpy as np
import psutil
from PIL import Image
from typing import Tuple, Optional, Dict, Union
from skimage.metrics import peak_signal_noise_ratio, structural_similarity

# Set up logging
logger = logging.getLogger(__name__)

# PSNR reported for images that are identical or nearly so
IDENTICAL_PSNR = 100.0


def get_cpu_mem() -> Dict[str, float]:
    """
    Get current CPU and memory usage.

    Returns:
        Dictionary with CPU and memory usage percentages
    """
    return {
        "cpu_usage": psutil.cpu_percent(interval=None),
        "memory_usage": psutil.virtual_memory().percent
    }


def _as_rgb_array(image: Union[np.ndarray, Image.Image]) -> np.ndarray:
    if isinstance(image, np.ndarray):
        return image[..., :3] if image.ndim == 3 else image
    return np.asarray(image.convert("RGB"))


def calculate_image_metrics(
    original_img: Union[np.ndarray, Image.Image],
    reduced_img: Union[np.ndarray, Image.Image]
) -> Tuple[float, Optional[float]]:
    """
    Calculate PSNR and SSIM between an image and its lossy-reduced version.

    Args:
        original_img: Original image (PIL Image or uint8 numpy array)
        reduced_img: Reduced image of the same dimensions

    Returns:
        Tuple of (PSNR, SSIM), rounded to 2 and 4 decimal places respectively.
        SSIM is None for images smaller than the 7x7 SSIM window.

    Raises:
        ValueError: If the images do not have the same dimensions
    """
    original = _as_rgb_array(original_img)
    reduced = _as_rgb_array(reduced_img)
    if original.shape != reduced.shape:
        raise ValueError(f"Image shapes don't match: {original.shape} vs {reduced.shape}")

    mse = np.mean(np.square(original.astype(np.float32) - reduced.astype(np.float32)))
    if mse < 1e-10:
        psnr = IDENTICAL_PSNR
    else:
        psnr = peak_signal_noise_ratio(original, reduced, data_range=255)

    if min(original.shape[:2]) < 7:
        ssim = None
    else:
        ssim = round(float(structural_similarity(original, reduced, data_range=255, channel_axis=2)), 4)

    return round(float(psnr), 2), ssim


def measure_compression_performance(
    original_size: int,
    compressed_size: int,
    compression_time: float
) -> Dict[str, float]:
    """
    Calculate compression performance metrics.

    Args:
        original_size: Size of the original file in bytes
        compressed_size: Size of the optimized file in bytes
        compression_time: Time taken in seconds

    Returns:
        Dictionary with compression ratio, space savings percentage, and speed
    """
    compression_ratio = original_size / compressed_size if compressed_size > 0 else 0
    space_savings = (1 - (compressed_size / original_size)) * 100 if original_size > 0 else 0
    compression_speed = original_size / (compression_time * 1024 * 1024) if compression_time > 0 else 0  # MB/s

    return {
        "compression_ratio": round(compression_ratio, 2),
        "space_savings_percent": round(space_savings, 2),
        "compression_speed_mbps": round(compression_speed, 2)
    }


class PerformanceTimer:
    """
    Context manager for measuring execution time.

    Example:
        with PerformanceTimer() as timer:
            # Code to measure
        execution_time = timer.execution_time
    """

    def __init__(self):
        self.start_time = None
        self.execution_time = 0

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.execution_time = time.time() - self.start_time
        return False  # Don't suppress exceptions
