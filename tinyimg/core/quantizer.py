"""
Color quantization backend.

Palettes are generated with Pillow (median cut refined by k-means for opaque
images, fast octree when the image carries transparency). Mapping pixels onto
a palette with ordered dithering uses a Bayer threshold matrix and a
nearest-neighbour lookup from scikit-learn.

Pixel buffers are numpy arrays of shape (height, width, 4), dtype uint8, RGBA.
"""
import logging
import numpy as np
from PIL import Image
from sklearn.neighbors import NearestNeighbors
from typing import Tuple

from tinyimg.core.errors import QuantizationError

# Set up logging
logger = logging.getLogger(__name__)

# k-means refinement passes applied after median cut
KMEANS_ITERATIONS = 2
BAYER_ORDER = 8
# Rows looked up per nearest-neighbour query, bounds memory on large images
LOOKUP_CHUNK = 1 << 20
# Alpha distance outweighs any RGB distance (255 * 2 > 255 * sqrt(3))
ALPHA_WEIGHT = 2.0


def bayer_matrix(order: int = BAYER_ORDER) -> np.ndarray:
    """
    Normalized Bayer threshold matrix.

    Args:
        order: Matrix side length, a power of two

    Returns:
        (order, order) float array with values centred on zero in (-0.5, 0.5)
    """
    m = np.array([[0, 2], [3, 1]])
    while m.shape[0] < order:
        m = np.block([[4 * m, 4 * m + 2], [4 * m + 3, 4 * m + 1]])
    return (m + 0.5) / m.size - 0.5


def has_transparency(pixels: np.ndarray) -> bool:
    return bool((pixels[..., 3] < 255).any())


def _quantize_pil(pixels: np.ndarray, n: int) -> Image.Image:
    n = int(min(max(n, 1), 256))
    image = Image.fromarray(pixels)
    try:
        if has_transparency(pixels):
            return image.quantize(colors=n, method=Image.Quantize.FASTOCTREE)
        return image.convert("RGB").quantize(
            colors=n, method=Image.Quantize.MEDIANCUT, kmeans=KMEANS_ITERATIONS
        )
    except (ValueError, OSError) as e:
        raise QuantizationError(f"Failed to quantize image to {n} colors: {e}") from e


def palette_of(quantized: Image.Image) -> np.ndarray:
    """
    Extract the RGBA palette entries actually referenced by a "P" image.

    Returns:
        (k, 4) uint8 array
    """
    mode = quantized.palette.mode
    raw = np.array(quantized.getpalette(rawmode=mode), dtype=np.uint8)
    palette = raw.reshape(-1, len(mode))
    if palette.shape[1] == 3:
        alpha = np.full((palette.shape[0], 1), 255, dtype=np.uint8)
        palette = np.hstack([palette, alpha])
    used = np.unique(np.asarray(quantized))
    return palette[used[used < palette.shape[0]]]


def to_rgba(image: Image.Image) -> Image.Image:
    """
    Convert a decoded image to 8-bit RGBA.

    Pillow clips 16-bit grayscale ("I;16", "I") into 0-255 on conversion, so
    those modes are scaled down to 8 bits first.
    """
    if image.mode == "I" or image.mode.startswith("I;16"):
        wide = np.clip(np.asarray(image, dtype=np.int64), 0, 0xFFFF)
        image = Image.fromarray((wide >> 8).astype(np.uint8))
    return image.convert("RGBA")


def reconstruct(pixels: np.ndarray, n: int) -> np.ndarray:
    """
    Quantize to n colors without dithering and return the reconstructed pixels.
    """
    quantized = _quantize_pil(pixels, n)
    return np.asarray(quantized.convert("RGBA"))


def map_to_palette(pixels: np.ndarray, palette: np.ndarray, dither: str = "ordered") -> np.ndarray:
    """
    Replace every pixel with its nearest palette color.

    Args:
        pixels: RGBA pixel buffer
        palette: (k, 4) uint8 palette
        dither: "ordered" to add a Bayer threshold offset before the lookup, or "none"

    Returns:
        RGBA pixel buffer using only palette colors
    """
    if palette.size == 0:
        raise QuantizationError("Cannot map pixels onto an empty palette")

    height, width = pixels.shape[:2]
    flat = pixels.reshape(-1, 4).astype(np.float32)

    if dither == "ordered" and len(palette) > 1:
        spread = 255.0 / np.cbrt(len(palette))
        reps = (-(-height // BAYER_ORDER), -(-width // BAYER_ORDER))
        threshold = np.tile(bayer_matrix(BAYER_ORDER), reps)[:height, :width]
        flat[:, :3] += (threshold.reshape(-1, 1) * spread).astype(np.float32)
    elif dither not in ("ordered", "none"):
        raise QuantizationError(f"Unknown dithering strategy: {dither}")

    weights = np.array([1.0, 1.0, 1.0, ALPHA_WEIGHT], dtype=np.float32)
    flat *= weights
    try:
        lookup = NearestNeighbors(n_neighbors=1).fit(palette.astype(np.float32) * weights)
        indices = np.empty(flat.shape[0], dtype=np.intp)
        for start in range(0, flat.shape[0], LOOKUP_CHUNK):
            chunk = flat[start:start + LOOKUP_CHUNK]
            indices[start:start + LOOKUP_CHUNK] = lookup.kneighbors(chunk, return_distance=False)[:, 0]
    except (ValueError, MemoryError) as e:
        raise QuantizationError(f"Failed to map pixels onto palette: {e}") from e

    return palette[indices].reshape(height, width, 4)


def quantize(pixels: np.ndarray, n: int, dither: str = "ordered") -> Tuple[np.ndarray, np.ndarray]:
    """
    Reduce an image to at most n colors.

    Args:
        pixels: RGBA pixel buffer
        n: Palette size
        dither: Dithering strategy ("ordered" or "none")

    Returns:
        Tuple of (reconstructed RGBA pixels, palette)
    """
    quantized = _quantize_pil(pixels, n)
    palette = palette_of(quantized)
    logger.debug(f"Built palette with {len(palette)} colors (requested {n}), dither={dither}")
    if dither == "none":
        return np.asarray(quantized.convert("RGBA")), palette
    return map_to_palette(pixels, palette, dither), palette
