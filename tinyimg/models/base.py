"""
Base models for the tinyimg HTTP API.
These models define common fields for reuse across optimization responses.
"""
from pydantic import BaseModel, Field
from typing import Optional


class BaseMetrics(BaseModel):
    """Base class for performance and resource metrics"""
    cpu_usage: float = Field(..., description="CPU usage during operation (%)")
    memory_usage: float = Field(..., description="Memory usage during operation (%)")


class BaseCompressionResponse(BaseMetrics):
    """Base class for optimization responses"""
    file_id: str = Field(..., description="Unique identifier for the optimized file")
    original_size: int = Field(..., description="Size of the original file in bytes")
    compressed_size: int = Field(..., description="Size of the optimized file in bytes")
    compression_ratio: float = Field(
        ..., description="Compression ratio (original_size / compressed_size)"
    )
    compression_time: float = Field(
        ..., description="Time taken for the optimization in seconds"
    )


class BaseQualityMetrics(BaseModel):
    """Base class for image quality metrics"""
    psnr: Optional[float] = Field(
        None, description="Peak Signal-to-Noise Ratio between original and lossy-reduced images"
    )
    ssim: Optional[float] = Field(
        None,
        description="Structural Similarity Index between original and lossy-reduced images"
    )
