"""
Models for the PNG optimization endpoints.
"""
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field

from tinyimg.models.base import BaseCompressionResponse, BaseQualityMetrics
from tinyimg.models.options import OptimizationRequest


class PngOptimizationResponse(BaseCompressionResponse, BaseQualityMetrics):
    """Response model for a single uploaded PNG"""
    space_savings_percent: float = Field(
        ..., description="Percentage of space saved through optimization"
    )
    lossy_applied: bool = Field(
        False, description="Whether palette reduction was applied before recompression"
    )
    palette_size: Optional[int] = Field(
        None, description="Number of palette colors selected by the lossy search"
    )
    delta_e_threshold: Optional[float] = Field(
        None, description="Delta E budget used by the lossy search"
    )
    timings: Dict[str, float] = Field(
        default_factory=dict, description="Seconds spent in each pipeline stage"
    )
    download_url: str = Field(..., description="URL to download the optimized PNG")


class PngPathOptimizationRequest(BaseModel):
    """Request model for optimizing files that already live on the server"""
    input: Union[str, List[str]] = Field(
        ..., description="A PNG file, a list of PNG files, or a directory"
    )
    output: Optional[Union[str, List[str]]] = Field(
        None, description="Output file, list of files or directory; omit to optimize in place"
    )
    options: OptimizationRequest = Field(
        default_factory=OptimizationRequest, description="Optimization options"
    )


class PngFileResult(BaseModel):
    """Result for a single file of a path optimization request"""
    source: str = Field(..., description="Input file")
    destination: str = Field(..., description="Output file")
    original_size: int = Field(..., description="Size of the input file in bytes")
    optimized_size: int = Field(..., description="Size of the output file in bytes")
    space_savings_percent: float = Field(..., description="Percentage of space saved")
    compression_time: float = Field(..., description="Time taken in seconds")
    palette_size: Optional[int] = Field(None, description="Selected palette size, if lossy")
    status: str = Field(..., description="Final task state (done/failed)")
    error: Optional[str] = Field(None, description="Error message if the file failed")
    timings: Dict[str, float] = Field(
        default_factory=dict, description="Seconds spent in each pipeline stage"
    )


class PngPathOptimizationResponse(BaseModel):
    """Response model for a path optimization request"""
    results: List[PngFileResult] = Field(..., description="Per-file results in input order")
    successful_count: int = Field(..., description="Number of optimized files")
    failed_count: int = Field(..., description="Number of failed files")
    total_original_size: int = Field(..., description="Total size of all input files in bytes")
    total_optimized_size: int = Field(..., description="Total size of all output files in bytes")
    total_time: float = Field(..., description="Total time taken in seconds")
