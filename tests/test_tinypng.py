import os

import numpy as np
import pytest
from PIL import Image

from tinyimg import BatchError, OptimizationIOError, QuantizationError, TaskError, ValidationError, tinypng
from tinyimg.core import pipeline
from tests.images import flat_pixels, gradient_pixels


def pixels_of(path):
    with Image.open(path) as image:
        return np.asarray(image.convert("RGBA"))


def test_optimize_in_place(png_file):
    original = png_file.read_bytes()
    before = pixels_of(png_file)
    result = tinypng(png_file, verbose=False)
    assert result == [png_file]
    assert png_file.stat().st_size < len(original)
    assert np.array_equal(pixels_of(png_file), before)


def test_output_file_leaves_input_untouched(png_file, tmp_path):
    original = png_file.read_bytes()
    output = tmp_path / "out" / "optimized.png"
    result = tinypng(png_file, output, verbose=False)
    assert result == [output]
    assert png_file.read_bytes() == original
    assert output.stat().st_size < len(original)
    assert np.array_equal(pixels_of(output), pixels_of(png_file))


def test_higher_level_is_no_larger(make_png, tmp_path):
    source = make_png("flat.png", flat_pixels())
    tinypng(source, tmp_path / "level0.png", level=0, verbose=False)
    tinypng(source, tmp_path / "level6.png", level=6, verbose=False)
    assert (tmp_path / "level6.png").stat().st_size <= (tmp_path / "level0.png").stat().st_size


@pytest.mark.parametrize("level", [7, -1])
def test_invalid_level_fails_before_io(png_file, level):
    original = png_file.read_bytes()
    with pytest.raises(ValidationError) as excinfo:
        tinypng(png_file, level=level, verbose=False)
    assert any("level" in problem for problem in excinfo.value.problems)
    assert png_file.read_bytes() == original


def test_invalid_options_are_reported_together(png_file):
    with pytest.raises(ValidationError) as excinfo:
        tinypng(png_file, level=9, strip="most", dither="random", verbose=False)
    assert len(excinfo.value.problems) == 3


def test_missing_input(tmp_path):
    with pytest.raises(ValidationError, match="does not exist"):
        tinypng(tmp_path / "nonexistent.png", verbose=False)


@pytest.mark.parametrize("options", [
    {"strip": "none"},
    {"strip": "safe"},
    {"alpha": True},
    {"interlace": "keep"},
    {"interlace": "on"},
    {"fast": True},
    {"timeout": 5},
])
def test_options_keep_pixels(png_file, tmp_path, options):
    output = tmp_path / "optimized.png"
    tinypng(png_file, output, verbose=False, **options)
    assert np.array_equal(pixels_of(output), pixels_of(png_file))


def test_directory_in_place(png_dir):
    result = tinypng(png_dir, verbose=False)
    assert result == [png_dir / "sub" / "nested.png"] + [png_dir / f"test{i}.png" for i in range(1, 4)]
    assert (png_dir / "notes.txt").read_text() == "not an image"


def test_directory_not_recursive(png_dir):
    result = tinypng(png_dir, recursive=False, verbose=False)
    assert len(result) == 3
    assert all(path.parent == png_dir for path in result)


def test_directory_to_directory_mirrors_structure(png_dir, tmp_path):
    out = tmp_path / "out"
    result = tinypng(png_dir, out, verbose=False)
    assert (out / "sub" / "nested.png").is_file()
    assert sorted(p.relative_to(out).as_posix() for p in result) == [
        "sub/nested.png", "test1.png", "test2.png", "test3.png"
    ]
    assert not (out / "notes.txt").exists()


def test_single_output_for_many_inputs_creates_nothing(png_dir, tmp_path):
    target = tmp_path / "nowhere" / "one.png"
    with pytest.raises(ValidationError):
        tinypng([png_dir / "test1.png", png_dir / "test2.png"], target, verbose=False)
    assert not target.parent.exists()


def test_mapping_function_output(png_dir, tmp_path):
    out = tmp_path / "mapped"
    result = tinypng(
        [png_dir / "test1.png", png_dir / "test2.png"],
        lambda p: out / f"{p.stem}.min.png",
        verbose=False
    )
    assert result == [out / "test1.min.png", out / "test2.min.png"]
    assert all(p.is_file() for p in result)


def test_lossless_budget_never_quantizes(monkeypatch, gradient_png, tmp_path):
    def fail(*args, **kwargs):
        raise AssertionError("lossy pass must not run")

    tinypng(gradient_png, tmp_path / "plain.png", verbose=False)
    monkeypatch.setattr(pipeline, "apply_lossy", fail)
    for budget in (0, -3):
        output = tmp_path / f"budget{budget}.png"
        tinypng(gradient_png, output, lossy=budget, verbose=False)
        assert output.read_bytes() == (tmp_path / "plain.png").read_bytes()


def test_lossy_reduces_colors(gradient_png, tmp_path):
    output = tmp_path / "lossy.png"
    tinypng(gradient_png, output, lossy=20, verbose=False)
    colors = Image.open(output).convert("RGBA").getcolors(maxcolors=1 << 16)
    assert colors is not None and len(colors) <= 256
    assert output.stat().st_size < gradient_png.stat().st_size


def test_lossy_auto(gradient_png, tmp_path):
    output = tmp_path / "auto.png"
    tinypng(gradient_png, output, lossy="auto", dither="none", verbose=False)
    assert output.is_file()
    assert Image.open(output).size == (128, 128)


def test_preserve_copies_timestamps(png_file, tmp_path):
    os.utime(png_file, (1_000_000_000, 1_000_000_000))
    kept = tmp_path / "kept.png"
    fresh = tmp_path / "fresh.png"
    tinypng(png_file, kept, verbose=False)
    tinypng(png_file, fresh, preserve=False, verbose=False)
    assert kept.stat().st_mtime == pytest.approx(1_000_000_000)
    assert fresh.stat().st_mtime > 1_000_000_000


def test_lossy_ignores_preserve(gradient_png, tmp_path, caplog):
    os.utime(gradient_png, (1_000_000_000, 1_000_000_000))
    output = tmp_path / "lossy.png"
    tinypng(gradient_png, output, lossy=5, preserve=True, verbose=False)
    assert output.stat().st_mtime > 1_000_000_000
    assert "preserve=True is ignored" in caplog.text


def test_verbose_single_file_line(png_file, capsys):
    tinypng(png_file)
    line = capsys.readouterr().out.strip()
    assert line.startswith("test.png | ")
    assert line.endswith("%)")


def test_verbose_shows_destinations(png_dir, tmp_path, capsys):
    out = tmp_path / "out"
    out.mkdir()
    tinypng([png_dir / "test1.png", png_dir / "test2.png"], out)
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].startswith("test1.png -> test1.png | ")
    assert lines[1].startswith("test2.png -> test2.png | ")


def test_verbose_off_prints_nothing(png_file, capsys):
    tinypng(png_file, verbose=False)
    assert capsys.readouterr().out == ""


def test_first_failure_stops_batch(png_dir, tmp_path):
    broken = png_dir / "test2.png"
    broken.write_bytes(b"not a png at all")
    out = tmp_path / "out"
    with pytest.raises(TaskError) as excinfo:
        tinypng(png_dir, out, recursive=False, verbose=False)
    assert excinfo.value.task.source == broken
    assert isinstance(excinfo.value.__cause__, QuantizationError)
    assert (out / "test1.png").is_file()
    assert not (out / "test3.png").exists()


def test_keep_going_collects_failures(png_dir, tmp_path):
    (png_dir / "test2.png").write_bytes(b"not a png at all")
    out = tmp_path / "out"
    with pytest.raises(BatchError) as excinfo:
        tinypng(png_dir, out, recursive=False, verbose=False, keep_going=True)
    failures = excinfo.value.failures
    assert len(failures) == 1
    assert failures[0].stage == "recompressing"
    assert (out / "test1.png").is_file() and (out / "test3.png").is_file()
    assert len(excinfo.value.report.successes) == 2


def test_lossy_decode_failure(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"\x89PNG\r\n\x1a\n garbage")
    with pytest.raises(TaskError) as excinfo:
        tinypng(broken, tmp_path / "out.png", lossy=2, verbose=False)
    assert isinstance(excinfo.value.error, OptimizationIOError)
    assert excinfo.value.stage == "decoding"
    assert not (tmp_path / "out.png").exists()


def test_transparent_image_stays_transparent(make_png, tmp_path):
    pixels = gradient_pixels(64, 64)
    pixels[:32, :, 3] = 0
    source = make_png("alpha.png", pixels)
    output = tmp_path / "alpha_lossy.png"
    tinypng(source, output, lossy=10, dither="none", verbose=False)
    assert (pixels_of(output)[:32, :, 3] < 128).all()


def test_lossy_16_bit_grayscale_stays_within_budget(make_png, tmp_path):
    wide = (np.arange(64 * 64, dtype=np.uint16) * 16).reshape(64, 64)
    source = make_png("gray16.png", wide)
    output = tmp_path / "gray16_lossy.png"
    tinypng(source, output, lossy=5, dither="none", verbose=False)
    with Image.open(output) as image:
        reduced = np.asarray(image.convert("L"), dtype=np.int32)
    diff = np.abs(reduced - (wide >> 8).astype(np.int32))
    assert diff.mean() < 12
    assert np.percentile(diff, 95) < 40
    assert (reduced == 255).mean() < 0.1


@pytest.mark.parametrize("timeout", [float("inf"), float("nan"), 1e30])
def test_unbounded_timeout_fails_before_io(png_file, tmp_path, timeout):
    output = tmp_path / "o" / "x.png"
    with pytest.raises(ValidationError) as excinfo:
        tinypng(png_file, output, timeout=timeout, verbose=False)
    assert any(problem.startswith("timeout:") for problem in excinfo.value.problems)
    assert not output.parent.exists()
