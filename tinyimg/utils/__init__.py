"""
Utility functions for tinyimg.
"""
from tinyimg.utils.metrics import (
    get_cpu_mem,
    calculate_image_metrics,
    measure_compression_performance,
    PerformanceTimer
)

from tinyimg.utils.file_handling import (
    get_temp_filepath,
    ensure_parent_dir,
    read_bytes,
    atomic_write,
    cleanup_file_later,
    schedule_cleanup
)

__all__ = [
    # Metrics utilities
    'get_cpu_mem',
    'calculate_image_metrics',
    'measure_compression_performance',
    'PerformanceTimer',

    # File handling utilities
    'get_temp_filepath',
    'ensure_parent_dir',
    'read_bytes',
    'atomic_write',
    'cleanup_file_later',
    'schedule_cleanup'
]
