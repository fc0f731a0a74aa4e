"""
Perceptual palette-size selection for lossy PNG reduction.

Given an RGBA image and a CIE76 Delta E budget, find the smallest palette that
keeps the reconstruction error within budget. The error of a candidate palette
size is measured on a systematic sample of at most MAX_SAMPLES pixels: sampled
pixels are grouped by their original color, each group contributes its worst
Delta E, and the 95th percentile of those group maxima is compared against the
budget. Grouping gives a dominant background color a single vote.

Palette size is searched by bisection, assuming error never increases as colors
are added, so at most eight quantizations are needed beyond the 256-color
reference pass.

Rough interpretation of Delta E values (CIE76):
- < 1: typically imperceptible
- 1 - 2: perceptible through close inspection
- 2 - 10: perceptible at a glance
- 10 - 50: strong perceptual difference
- > 50: very large color shift
"""
import math
import logging
import numpy as np
from PIL import Image
from skimage.color import rgb2lab, deltaE_cie76
from typing import Callable, List, Optional, Tuple, Union

from tinyimg.config import (
    MAX_SAMPLES,
    ERROR_PERCENTILE,
    REFERENCE_PALETTE_SIZE,
    AUTO_SCALE,
    AUTO_MIN_DELTA_E,
    AUTO_MAX_DELTA_E
)
from tinyimg.core import quantizer
from tinyimg.core.errors import ValidationError
from tinyimg.models.task import PaletteCandidate, PaletteSelection

# Set up logging
logger = logging.getLogger(__name__)


def srgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert 8-bit sRGB colors to CIE L*a*b* (D65).

    Args:
        rgb: (N, 3) or (N, 4) uint8 array; a fourth channel is ignored

    Returns:
        (N, 3) float array
    """
    rgb = np.asarray(rgb)[..., :3].astype(np.float64) / 255.0
    if rgb.shape[0] == 0:
        return np.zeros((0, 3))
    return rgb2lab(rgb.reshape(-1, 1, 3)).reshape(-1, 3)


def sample_indices(n_pixels: int, max_samples: int = MAX_SAMPLES) -> np.ndarray:
    """Systematic sample of at most max_samples pixels: every ceil(n_pixels / max_samples)-th pixel."""
    if n_pixels <= 0:
        return np.zeros(0, dtype=np.intp)
    step = -(-n_pixels // max(max_samples, 1))
    return np.arange(0, n_pixels, step, dtype=np.intp)


def color_keys(rgba: np.ndarray) -> np.ndarray:
    """Pack (N, 4) uint8 RGBA rows into single uint32 keys."""
    rgba = rgba.astype(np.uint32)
    return (rgba[:, 0] << 24) | (rgba[:, 1] << 16) | (rgba[:, 2] << 8) | rgba[:, 3]


def percentile_rank(values: np.ndarray, percentile: float = ERROR_PERCENTILE) -> float:
    """Nearest-rank percentile; 0.0 for an empty array."""
    if values.size == 0:
        return 0.0
    ordered = np.sort(values)
    rank = int(math.ceil(ordered.size * percentile / 100.0)) - 1
    return float(ordered[min(max(rank, 0), ordered.size - 1)])


class PixelSample:
    """
    Sampled pixels of one image, prepared once and reused for every candidate.
    """

    def __init__(self, pixels: np.ndarray, max_samples: int = MAX_SAMPLES):
        flat = pixels.reshape(-1, pixels.shape[-1])
        self.indices = sample_indices(flat.shape[0], max_samples)
        original = flat[self.indices]
        self.lab = srgb_to_lab(original)
        _, self.groups = np.unique(color_keys(original), return_inverse=True)
        self.groups = self.groups.reshape(-1)
        self.n_groups = int(self.groups.max()) + 1 if self.groups.size else 0

    def __len__(self):
        return int(self.indices.size)

    def error(self, reconstructed: np.ndarray, percentile: float = ERROR_PERCENTILE) -> float:
        """
        Percentile of the per-original-color worst Delta E.

        Args:
            reconstructed: RGBA pixel buffer of the same shape as the sampled image
            percentile: Percentile taken over the color groups

        Returns:
            Delta E statistic (0.0 when nothing was sampled)
        """
        if not len(self):
            return 0.0
        flat = reconstructed.reshape(-1, reconstructed.shape[-1])
        delta = deltaE_cie76(self.lab, srgb_to_lab(flat[self.indices]))
        worst = np.zeros(self.n_groups)
        np.maximum.at(worst, self.groups, delta)
        return percentile_rank(worst, percentile)


def bisect_palette_size(
    error_at: Callable[[int], float],
    threshold: float,
    upper: int,
    lower: int = 1
) -> Tuple[int, List[PaletteCandidate]]:
    """
    Smallest palette size in [lower, upper] whose error is within threshold.

    error_at must be non-increasing in the palette size and error_at(upper) is
    assumed to satisfy the threshold; upper is never evaluated.

    Returns:
        Tuple of (palette size, candidates evaluated in order)
    """
    lo, hi = lower, max(upper, lower)
    candidates = []
    while lo < hi:
        mid = (lo + hi) // 2
        error = error_at(mid)
        candidates.append(PaletteCandidate(mid, error))
        if error <= threshold:
            hi = mid
        else:
            lo = mid + 1
    return lo, candidates


def auto_threshold(pixels: np.ndarray, max_samples: int = MAX_SAMPLES) -> float:
    """
    Derive a Delta E budget from the image's own color spread.

    The budget is AUTO_SCALE times the root-mean-square Lab distance of the
    sampled pixels from their mean color, clipped to
    [AUTO_MIN_DELTA_E, AUTO_MAX_DELTA_E]. Flat images get the strict lower
    bound; very colorful images tolerate up to the upper bound.
    """
    flat = pixels.reshape(-1, pixels.shape[-1])
    lab = srgb_to_lab(flat[sample_indices(flat.shape[0], max_samples)])
    if lab.shape[0] == 0:
        return AUTO_MIN_DELTA_E
    rms = float(np.sqrt(np.mean(np.sum((lab - lab.mean(axis=0)) ** 2, axis=1))))
    return float(np.clip(AUTO_SCALE * rms, AUTO_MIN_DELTA_E, AUTO_MAX_DELTA_E))


def resolve_threshold(lossy: Union[float, str], pixels: Optional[np.ndarray] = None) -> float:
    """Turn a lossy budget (number or "auto") into a Delta E threshold."""
    if lossy == "auto":
        if pixels is None:
            raise ValidationError("lossy='auto' needs the image pixels to derive a threshold")
        return auto_threshold(pixels)
    try:
        return float(lossy)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"lossy: expected a number or 'auto', got {lossy!r}") from e


class PaletteSelector:
    """Finds the smallest palette size that keeps Delta E within budget."""

    def __init__(
        self,
        max_samples: int = MAX_SAMPLES,
        percentile: float = ERROR_PERCENTILE,
        reference_size: int = REFERENCE_PALETTE_SIZE
    ):
        self.max_samples = max_samples
        self.percentile = percentile
        self.reference_size = reference_size

    def measure(self, pixels: np.ndarray, sample: PixelSample, n: int) -> Tuple[float, np.ndarray]:
        reconstructed = quantizer.reconstruct(pixels, n)
        return sample.error(reconstructed, self.percentile), reconstructed

    def select(self, pixels: np.ndarray, threshold: float) -> PaletteSelection:
        """
        Search the palette size for an image.

        Args:
            pixels: RGBA pixel buffer
            threshold: Delta E budget; <= 0 disables the search

        Returns:
            PaletteSelection; applied is False only when threshold <= 0
        """
        if threshold <= 0:
            return PaletteSelection(size=self.reference_size, applied=False, threshold=threshold)

        sample = PixelSample(pixels, self.max_samples)
        reference_error, reference = self.measure(pixels, sample, self.reference_size)
        steps = 1
        candidates = [PaletteCandidate(self.reference_size, reference_error)]

        if reference_error > threshold:
            # Even the largest palette misses the budget; use the best quality available
            logger.info(
                f"Delta E {reference_error:.2f} at {self.reference_size} colors exceeds "
                f"budget {threshold:.2f}; using {self.reference_size} colors"
            )
            return PaletteSelection(
                size=self.reference_size, applied=True, threshold=threshold,
                error=reference_error, steps=steps, candidates=tuple(candidates)
            )

        # Colors actually used by the reference pass bound the useful search range
        upper = min(len(np.unique(color_keys(reference.reshape(-1, 4)))), self.reference_size)
        errors = {upper: reference_error} if upper == self.reference_size else {}

        def error_at(n):
            return self.measure(pixels, sample, n)[0]

        size, searched = bisect_palette_size(error_at, threshold, upper)
        steps += len(searched)
        candidates.extend(searched)
        for candidate in searched:
            errors[candidate.size] = candidate.error

        logger.info(
            f"Selected {size} colors for Delta E budget {threshold:.2f} "
            f"after {steps} quantization passes"
        )
        return PaletteSelection(
            size=size, applied=True, threshold=threshold,
            error=errors.get(size), steps=steps, candidates=tuple(candidates)
        )


def apply_lossy(
    image: Image.Image,
    lossy: Union[float, str],
    dither: str = "ordered",
    selector: Optional[PaletteSelector] = None
) -> Tuple[Image.Image, PaletteSelection]:
    """
    Reduce an image to the smallest palette within the lossy budget.

    Args:
        image: Decoded image (any mode; converted to RGBA)
        lossy: Delta E budget or "auto"
        dither: Dithering for the final reduction
        selector: Optional preconfigured selector

    Returns:
        Tuple of (RGBA image, selection). The image is returned unchanged when
        the budget disables lossy reduction.
    """
    selector = selector or PaletteSelector()
    pixels = np.asarray(quantizer.to_rgba(image))
    threshold = resolve_threshold(lossy, pixels)
    selection = selector.select(pixels, threshold)
    if not selection.applied:
        return image, selection
    reduced, _ = quantizer.quantize(pixels, selection.size, dither)
    return Image.fromarray(np.ascontiguousarray(reduced)), selection
