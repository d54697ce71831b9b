from pathlib import Path

import numpy as np
import pytest
from PIL import Image as PILImage

from stackcam.cli.capture import main as capture_main
from stackcam.exceptions import FrameSourceUnavailable
from stackcam.models.pixel_buffer import PixelBuffer
from stackcam.repositories.pixel_buffer_repository import PixelBufferRepository
from stackcam.services.frame_source_service import SequenceFrameSource, StillImageFrameSource


@pytest.fixture
def png_path(tmp_path) -> Path:
    rgb = np.zeros((5, 7, 3), dtype=np.uint8)
    rgb[:, :, 0] = 210
    rgb[:, :, 1] = 30
    rgb[:, :, 2] = 5
    path = tmp_path / "scene.png"
    PILImage.fromarray(rgb).save(path)
    return path


def test_repository_loads_rgba_in_rgb_order(png_path):
    buf = PixelBufferRepository().load(png_path)
    assert (buf.width, buf.height) == (7, 5)
    assert buf.pixels[0, 0].tolist() == [210, 30, 5, 255]


def test_repository_missing_file(tmp_path):
    with pytest.raises(FrameSourceUnavailable):
        PixelBufferRepository().load(tmp_path / "nope.jpg")


def test_still_source_without_noise_returns_copies(png_path):
    source = StillImageFrameSource(png_path, noise_sigma=0)
    a, b = source.sample(), source.sample()
    assert np.array_equal(a.pixels, b.pixels)
    a.pixels[0, 0, 0] = 0
    assert source.sample().pixels[0, 0, 0] == 210


def test_still_source_noise_varies_but_is_seeded():
    base = PixelBuffer.solid(16, 16, (128, 128, 128, 255))
    first = StillImageFrameSource(base, noise_sigma=8, seed=3)
    second = StillImageFrameSource(base, noise_sigma=8, seed=3)
    s1, s2 = first.sample(), first.sample()
    assert not np.array_equal(s1.pixels, s2.pixels)
    assert np.array_equal(s1.pixels, second.sample().pixels)
    assert np.all(s1.alpha == 255)


def test_sequence_source_exhausts():
    source = SequenceFrameSource([PixelBuffer.solid(1, 1, (0, 0, 0, 255))])
    source.sample()
    with pytest.raises(FrameSourceUnavailable):
        source.sample()


def test_cli_captures_still_image(png_path, tmp_path, capsys):
    out_dir = tmp_path / "captures"
    code = capture_main([str(png_path), "--mode", "PRO", "--frames", "2", "--noise", "4",
                         "--delay-ms", "0", "--count", "2", "--output-dir", str(out_dir)])
    assert code == 0
    saved = sorted(out_dir.glob("*.jpg"))
    assert len(saved) == 2
    assert PILImage.open(saved[0]).size == (7, 5)
    assert "PRO 7x5" in capsys.readouterr().out


def test_cli_reports_missing_source(tmp_path):
    assert capture_main([str(tmp_path / "missing.png"), "--output-dir", str(tmp_path)]) == 1
