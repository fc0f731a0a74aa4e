import numpy as np
import pytest
from PIL import Image

from tinyimg.core import quantizer
from tinyimg.core.palette import (
    PaletteSelector,
    PixelSample,
    apply_lossy,
    auto_threshold,
    bisect_palette_size,
    percentile_rank,
    resolve_threshold,
    sample_indices,
    srgb_to_lab
)
from tinyimg.core.errors import ValidationError
from tests.images import flat_pixels, gradient_pixels


def brute_force_size(curve, threshold, upper):
    for n in range(1, upper + 1):
        if curve[n - 1] <= threshold:
            return n
    return upper


def monotone_curve(rng, size=256):
    """A random non-increasing error curve over palette sizes 1..size."""
    return np.sort(rng.uniform(0, 60, size))[::-1]


def test_bisection_matches_brute_force():
    rng = np.random.RandomState(7)
    for _ in range(50):
        upper = int(rng.randint(1, 257))
        curve = monotone_curve(rng, upper)
        threshold = float(rng.uniform(curve[-1], 60))
        size, candidates = bisect_palette_size(lambda n: curve[n - 1], threshold, upper)
        assert size == brute_force_size(curve, threshold, upper)
        assert len(candidates) <= 8


def test_bisection_with_plateaus():
    curve = np.repeat([30.0, 20.0, 10.0, 5.0], 64)
    for threshold, expected in [(30, 1), (25, 65), (10, 129), (5, 193), (7.5, 193)]:
        size, _ = bisect_palette_size(lambda n: curve[n - 1], threshold, 256)
        assert size == expected


def test_larger_budget_never_selects_more_colors(monkeypatch):
    pixels = gradient_pixels(64, 64)

    def fake_measure(self, pixels, sample, n):
        return 100.0 / n, pixels

    monkeypatch.setattr(PaletteSelector, "measure", fake_measure)
    selector = PaletteSelector()
    sizes = [selector.select(pixels, t).size for t in (0.5, 1, 2, 3.3, 5, 10, 20, 40, 100)]
    assert sizes == sorted(sizes, reverse=True)
    assert sizes[-1] == 1
    assert selector.select(pixels, 2).size == 50


def test_non_positive_budget_skips_quantization(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("quantizer must not run for a lossless budget")

    monkeypatch.setattr(quantizer, "reconstruct", fail)
    monkeypatch.setattr(quantizer, "quantize", fail)
    image = Image.fromarray(gradient_pixels(32, 32))
    for budget in (0, -1, -0.5):
        result, selection = apply_lossy(image, budget)
        assert result is image
        assert not selection.applied
        assert selection.steps == 0


def test_tiny_budget_keeps_nearly_all_colors():
    selection = PaletteSelector().select(gradient_pixels(), 0.5)
    assert selection.applied
    assert selection.size >= 200


def test_large_budget_selects_small_palette():
    selection = PaletteSelector().select(gradient_pixels(), 40)
    assert selection.applied
    assert selection.size <= 16
    assert selection.steps <= 9


def test_single_color_image_needs_one_color():
    selection = PaletteSelector().select(flat_pixels(50, 50), 1.0)
    assert selection.size == 1
    assert selection.steps == 1


def test_apply_lossy_limits_colors():
    image = Image.fromarray(gradient_pixels(64, 64))
    reduced, selection = apply_lossy(image, 40)
    colors = reduced.getcolors(maxcolors=4096)
    assert colors is not None
    assert len(colors) <= selection.size
    assert reduced.size == image.size


def test_auto_threshold_bounds():
    assert auto_threshold(flat_pixels(20, 20)) == pytest.approx(1.0)
    threshold = auto_threshold(gradient_pixels())
    assert 1.0 <= threshold <= 10.0
    assert resolve_threshold("auto", gradient_pixels()) == threshold


def test_resolve_threshold_rejects_garbage():
    with pytest.raises(ValidationError):
        resolve_threshold("plenty")
    with pytest.raises(ValidationError):
        resolve_threshold("auto")


def test_sample_is_capped():
    for n in (10, 49_999, 50_000, 50_001, 99_999, 100_000, 160_000, 1_000_003):
        indices = sample_indices(n, 50_000)
        assert 0 < len(indices) <= 50_000
        assert indices[-1] < n
    assert len(sample_indices(0)) == 0


def test_percentile_rank():
    values = np.arange(1, 101, dtype=float)
    assert percentile_rank(values, 95) == 95.0
    assert percentile_rank(values, 100) == 100.0
    assert percentile_rank(np.array([]), 95) == 0.0


def test_identical_reconstruction_has_no_error():
    pixels = gradient_pixels(32, 32)
    assert PixelSample(pixels).error(pixels) == 0.0


def test_lab_reference_colors():
    lab = srgb_to_lab(np.array([[255, 255, 255], [0, 0, 0]], dtype=np.uint8))
    assert lab[0] == pytest.approx([100.0, 0.0, 0.0], abs=0.05)
    assert lab[1] == pytest.approx([0.0, 0.0, 0.0], abs=0.05)
