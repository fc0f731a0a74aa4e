import io

import numpy as np
import oxipng
import pytest
from PIL import Image

from tinyimg.core.errors import QuantizationError
from tinyimg.core.lossless import build_options, recompress
from tinyimg.models.options import OptimizationRequest
from tests.images import flat_pixels, plot_image


def png_bytes(image, **kwargs):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", compress_level=0, **kwargs)
    return buffer.getvalue()


def decoded(data):
    return np.asarray(Image.open(io.BytesIO(data)).convert("RGBA"))


def test_build_options_translates_request():
    options = build_options(OptimizationRequest(level=4, alpha=True, fast=True, timeout=2.5))
    assert options["level"] == 4
    assert options["optimize_alpha"] is True
    assert options["fast_evaluation"] is True
    assert options["timeout"] == 3
    assert options["interlace"] == oxipng.Interlacing.Off


def test_build_options_interlace_and_timeout_defaults():
    assert build_options(OptimizationRequest(interlace="on"))["interlace"] == oxipng.Interlacing.Adam7
    assert build_options(OptimizationRequest(interlace="keep"))["interlace"] is None
    assert "timeout" not in build_options(OptimizationRequest())


@pytest.mark.parametrize("strip", ["none", "safe", "all"])
def test_recompress_is_lossless(strip):
    data = png_bytes(plot_image(200, 150))
    optimized = recompress(data, OptimizationRequest(strip=strip))
    assert len(optimized) <= len(data)
    assert np.array_equal(decoded(optimized), decoded(data))


def test_recompress_is_idempotent_in_size():
    request = OptimizationRequest(level=3)
    once = recompress(png_bytes(plot_image()), request)
    twice = recompress(once, request)
    assert len(twice) <= len(once)


def test_higher_level_is_no_larger_on_flat_image():
    data = png_bytes(Image.fromarray(flat_pixels()))
    level0 = recompress(data, OptimizationRequest(level=0))
    level6 = recompress(data, OptimizationRequest(level=6))
    assert len(level6) <= len(level0)


def test_recompress_rejects_non_png():
    with pytest.raises(QuantizationError):
        recompress(b"definitely not a png", OptimizationRequest())
