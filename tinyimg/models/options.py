"""
Optimization options shared by every file of a batch.
"""
import math
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from tinyimg.config import DEFAULT_LEVEL, MAX_LEVEL, MAX_TIMEOUT, MIN_LEVEL
from tinyimg.core.errors import ValidationError

StripMode = Literal["none", "safe", "all"]
InterlaceMode = Literal["off", "on", "keep"]
DitherMode = Literal["ordered", "none"]
LossyBudget = Union[Literal["auto"], float]


class OptimizationRequest(BaseModel):
    """Immutable configuration for one optimization call"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: int = Field(
        DEFAULT_LEVEL, ge=MIN_LEVEL, le=MAX_LEVEL,
        description="Optimization level (0-6); higher is smaller but slower"
    )
    lossy: LossyBudget = Field(
        0.0,
        description="CIE76 Delta E budget for palette reduction; <= 0 means lossless only, "
                    "'auto' derives the budget from the image"
    )
    alpha: bool = Field(False, description="Optimize fully transparent pixels")
    strip: StripMode = Field("all", description="Metadata chunks to strip")
    interlace: InterlaceMode = Field("off", description="Output interlacing")
    fast: bool = Field(False, description="Use fast filter evaluation")
    timeout: Optional[float] = Field(
        None, ge=0, le=MAX_TIMEOUT, allow_inf_nan=False,
        description="Time bound for the recompression stage in seconds"
    )
    preserve: bool = Field(
        True, description="Preserve file permissions and timestamps (ignored for lossy)"
    )
    verbose: bool = Field(True, description="Print a size report line per file")
    recursive: bool = Field(True, description="Recurse into subdirectories of a directory input")
    dither: DitherMode = Field("ordered", description="Dithering applied to the final lossy palette")
    keep_going: bool = Field(
        False, description="Process the remaining files when one fails, then raise"
    )

    @field_validator("lossy")
    @classmethod
    def _finite_budget(cls, value):
        if isinstance(value, float) and math.isnan(value):
            raise ValueError("lossy budget must be a number or 'auto', not NaN")
        return value

    @classmethod
    def build(cls, **kwargs) -> "OptimizationRequest":
        """
        Create a request, reporting every invalid field at once.

        Raises:
            ValidationError: listing each offending parameter
        """
        try:
            return cls(**kwargs)
        except PydanticValidationError as e:
            problems = []
            for err in e.errors():
                field = ".".join(str(part) for part in err["loc"]) or "request"
                problems.append(f"{field}: {err['msg']} (got {err.get('input')!r})")
            raise ValidationError(problems) from e

    @property
    def lossy_enabled(self) -> bool:
        if self.lossy == "auto":
            return True
        return self.lossy > 0

    @property
    def effective_preserve(self) -> bool:
        """Attributes are never copied onto a lossy-reduced file."""
        return self.preserve and not self.lossy_enabled
