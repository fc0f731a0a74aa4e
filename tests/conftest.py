"""
Shared fixtures: synthetic PNG images written into pytest's tmp_path.
"""
import pytest

from tests.images import gradient_pixels, plot_image, save_png


@pytest.fixture
def make_png(tmp_path):
    """Factory writing a plot PNG (or given pixels) to a path under tmp_path."""
    def _make(name="test.png", pixels=None):
        source = plot_image() if pixels is None else pixels
        return save_png(tmp_path / name, source)
    return _make


@pytest.fixture
def png_file(make_png):
    return make_png()


@pytest.fixture
def gradient_png(make_png):
    return make_png("gradient.png", gradient_pixels())


@pytest.fixture
def png_dir(tmp_path):
    """Directory with three PNGs, one text file and one PNG in a subdirectory."""
    root = tmp_path / "images"
    for i in range(1, 4):
        save_png(root / f"test{i}.png", plot_image(120, 80))
    (root / "notes.txt").write_text("not an image")
    save_png(root / "sub" / "nested.png", plot_image(100, 100))
    return root
