import sys
import pytest
import numpy as np
from pathlib import Path
from PIL import Image
from gaussianizer import Options, TextureProcessor
from gaussianizer.TextureIO import read_rgb8, read_rgb32f

pytestmark = pytest.mark.unit_tests


def _make_rgb(h: int = 24, w: int = 32, seed: int = 0) -> np.ndarray:
    """Create a random RGB NumPy image."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def _prepare_texture(test_tmpdir: Path, name: str = "brick.png") -> Path:
    path = test_tmpdir / name
    Image.fromarray(_make_rgb()).save(path)
    return path


def test_processor_from_file_writes_both_outputs(test_tmpdir: Path) -> None:
    src = _prepare_texture(test_tmpdir)
    out = test_tmpdir / "OUTPUT"
    opt = Options(input_file=src, output_folder=out, verbose=-1)
    proc = TextureProcessor(options=opt)

    img_path, lut_path = out / "brick-gaussian.tif", out / "brick-lut.tif"
    assert proc.written == [img_path, lut_path]
    forward, lut = proc.get_results()
    np.testing.assert_array_equal(read_rgb32f(img_path), forward)
    np.testing.assert_array_equal(read_rgb8(lut_path), lut)
    assert read_rgb8(lut_path).shape == (1, 32, 3)


def test_processor_writes_log_without_ansi(test_tmpdir: Path) -> None:
    opt = Options(input_file=_prepare_texture(test_tmpdir), output_folder=test_tmpdir, verbose=-1)
    TextureProcessor(options=opt)
    logs = list(test_tmpdir.glob("log_*.txt"))
    assert len(logs) == 1
    text = logs[0].read_text()
    assert "Transforming channel histograms" in text
    assert "\x1b[" not in text


def test_processor_without_log(test_tmpdir: Path) -> None:
    opt = Options(input_file=_prepare_texture(test_tmpdir), output_folder=test_tmpdir, save_log=False, verbose=-1)
    TextureProcessor(options=opt)
    assert not list(test_tmpdir.glob("log_*.txt"))


def test_processor_from_array_in_memory(test_tmpdir: Path) -> None:
    opt = Options(output_folder=test_tmpdir, lut_width=50, verbose=-1)
    proc = TextureProcessor(options=opt, image=_make_rgb(), write_outputs=False)
    forward, lut = proc.get_results()
    assert forward.shape == (24, 32, 3)
    assert lut.shape == (1, 50, 3)
    assert not list(test_tmpdir.iterdir())


def test_processor_internal_validation_passes(test_tmpdir: Path) -> None:
    opt = Options(output_folder=test_tmpdir, verbose=-1)
    proc = TextureProcessor(options=opt, image=_make_rgb(h=64, w=64), write_outputs=False)
    assert len(proc.validation) == 6
    assert all(result['valid_result'] for result in proc.validation)


def test_processor_saves_plot(test_tmpdir: Path) -> None:
    opt = Options(input_file=_prepare_texture(test_tmpdir), output_folder=test_tmpdir, save_plots=True, verbose=-1)
    proc = TextureProcessor(options=opt)
    plot = test_tmpdir / "brick-gaussian-hist.png"
    assert plot in proc.written and plot.is_file()


def test_processor_requires_input(test_tmpdir: Path) -> None:
    with pytest.raises(ValueError, match="No input file specified"):
        TextureProcessor(options=Options(output_folder=test_tmpdir, verbose=-1))


def test_processor_missing_input_raises(test_tmpdir: Path) -> None:
    opt = Options(input_file=test_tmpdir / "missing.png", output_folder=test_tmpdir, verbose=-1)
    with pytest.raises(FileNotFoundError):
        TextureProcessor(options=opt)
    assert not list(test_tmpdir.glob("*.tif"))


def test_processor_empty_texture_is_not_written(test_tmpdir: Path) -> None:
    opt = Options(output_folder=test_tmpdir, verbose=-1)
    proc = TextureProcessor(options=opt, image=np.zeros((0, 0, 3), dtype=np.uint8), write_outputs=False)
    forward, lut = proc.get_results()
    assert forward.size == 0 and lut.size == 0
    with pytest.raises(ValueError):
        TextureProcessor(options=opt, image=np.zeros((0, 0, 3), dtype=np.uint8))


def test_processor_failed_write_leaves_no_partial_output(test_tmpdir: Path, monkeypatch) -> None:
    def _fail(path, image):
        raise IOError(f"Failed to save RGB8 image to {path}")
    monkeypatch.setattr(sys.modules['gaussianizer.TextureProcessor'], 'write_rgb8', _fail)
    opt = Options(input_file=_prepare_texture(test_tmpdir), output_folder=test_tmpdir, save_log=False, verbose=-1)
    with pytest.raises(IOError, match="RGB8"):
        TextureProcessor(options=opt)
    assert not list(test_tmpdir.glob("*.tif"))


def test_processor_debug_mode_prints(test_tmpdir: Path, capsys) -> None:
    opt = Options(output_folder=test_tmpdir, verbose=2)
    TextureProcessor(options=opt, image=_make_rgb(), write_outputs=False)
    captured = capsys.readouterr().out
    assert "Internal test (R)" in captured
    assert "PASS" in captured


def test_processor_failed_write_removes_truncated_file(test_tmpdir: Path, monkeypatch) -> None:
    def _truncate(path, image):
        Path(path).write_bytes(b"II*\x00")
        raise IOError(f"Failed to save RGB32F image to {path}")
    monkeypatch.setattr(sys.modules['gaussianizer.TextureProcessor'], 'write_rgb32f', _truncate)
    opt = Options(input_file=_prepare_texture(test_tmpdir), output_folder=test_tmpdir, save_log=False, verbose=-1)
    with pytest.raises(IOError, match="RGB32F"):
        TextureProcessor(options=opt)
    assert not list(test_tmpdir.glob("*.tif"))
