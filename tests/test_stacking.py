import numpy as np
import pytest

from stackcam.exceptions import FrameSourceUnavailable, InvalidBuffer, InvalidFrameCount
from stackcam.models.pixel_buffer import PixelBuffer
from stackcam.services import stacking_service as stacking_module
from stackcam.services.frame_source_service import SequenceFrameSource, StillImageFrameSource
from stackcam.services.stacking_service import StackingService, blend_over


def recursive_blend(values):
    """Expected channel value: blend sample i over the composite at 1/i, rounding each step."""
    acc = float(values[0])
    for i, v in enumerate(values[1:], start=2):
        acc = float(np.rint(acc * (1 - 1 / i) + v / i))
    return acc


@pytest.mark.parametrize("count", [0, -2])
def test_rejects_non_positive_frame_count(stacking_service, count):
    source = SequenceFrameSource([PixelBuffer.solid(2, 2, (1, 2, 3, 255))])
    with pytest.raises(InvalidFrameCount):
        stacking_service.stack(source, count)
    assert source.samples_taken == 0


def test_single_frame_equals_look_of_sample(stacking_service, look_service, gradient_buffer):
    out = stacking_service.stack(StillImageFrameSource(gradient_buffer), 1)
    assert np.array_equal(out.pixels, look_service.apply_look(gradient_buffer).pixels)


def test_composite_follows_recursive_blend():
    reds = [200, 100, 50, 10]
    greens = [3, 250, 17, 90]
    frames = [PixelBuffer.solid(3, 2, (r, g, 128, 255)) for r, g in zip(reds, greens)]
    source = SequenceFrameSource(frames)

    composite = StackingService(frame_delay_ms=0).composite(source, len(frames))

    assert source.samples_taken == 4
    pixel = composite.pixels[0, 0].astype(int)
    assert pixel[0] == pytest.approx(recursive_blend(reds), abs=1)
    assert pixel[1] == pytest.approx(recursive_blend(greens), abs=1)
    assert pixel[2] == 128
    assert pixel[3] == 255
    assert np.all(composite.pixels == composite.pixels[0, 0])


def test_composite_is_quantized_every_step():
    # 0, 255, 0 : 255*0.5 = 127.5 -> 128 (round half to even), then 128*2/3 = 85.33 -> 85
    frames = [PixelBuffer.solid(1, 1, (v, v, v, 255)) for v in (0, 255, 0)]
    composite = StackingService(frame_delay_ms=0).composite(SequenceFrameSource(frames), 3)
    assert composite.pixels[0, 0, 0] == 85


def test_stack_applies_look_once(stacking_service, look_service):
    frames = [PixelBuffer.solid(2, 2, (v, v, v, 255)) for v in (60, 120)]
    expected = look_service.apply_look(
        StackingService(frame_delay_ms=0).composite(SequenceFrameSource(frames), 2))
    out = stacking_service.stack(SequenceFrameSource(frames), 2)
    assert np.array_equal(out.pixels, expected.pixels)


def test_source_exhausted_mid_stack_aborts(stacking_service):
    source = SequenceFrameSource([PixelBuffer.solid(2, 2, (9, 9, 9, 255))] * 2)
    with pytest.raises(FrameSourceUnavailable):
        stacking_service.stack(source, 4)


def test_unexpected_source_error_becomes_unavailable(stacking_service):
    class Broken:
        def sample(self):
            raise RuntimeError("device disconnected")

    with pytest.raises(FrameSourceUnavailable) as info:
        stacking_service.stack(Broken(), 2)
    assert info.value.param == "Broken"


def test_mismatched_frame_sizes_rejected(stacking_service):
    frames = [PixelBuffer.solid(2, 2, (1, 1, 1, 255)), PixelBuffer.solid(3, 2, (1, 1, 1, 255))]
    with pytest.raises(InvalidBuffer):
        stacking_service.stack(SequenceFrameSource(frames), 2)


def test_source_frames_are_not_mutated(stacking_service):
    frames = [PixelBuffer.solid(2, 2, (v, 0, 0, 255)) for v in (10, 250)]
    stacking_service.stack(SequenceFrameSource(frames), 2)
    assert frames[0].pixels[0, 0, 0] == 10
    assert frames[1].pixels[0, 0, 0] == 250


def test_pacing_delay_between_samples(monkeypatch):
    sleeps = []
    monkeypatch.setattr(stacking_module.time, "sleep", sleeps.append)
    frames = [PixelBuffer.solid(1, 1, (1, 1, 1, 255))] * 4
    StackingService(frame_delay_ms=50).composite(SequenceFrameSource(frames), 4)
    assert sleeps == [0.05, 0.05, 0.05]


def test_default_frame_count_from_env(monkeypatch):
    monkeypatch.setenv("STACK_FRAME_COUNT", "3")
    source = SequenceFrameSource([PixelBuffer.solid(1, 1, (1, 1, 1, 255))] * 5)
    StackingService(frame_delay_ms=0).composite(source)
    assert source.samples_taken == 3


def test_blend_weights_frame_by_its_alpha():
    base = PixelBuffer.solid(1, 1, (100, 100, 100, 255))

    hidden = blend_over(base, PixelBuffer.solid(1, 1, (200, 0, 0, 0)), 0.5)
    assert hidden.pixels[0, 0].tolist() == [100, 100, 100, 255]

    # 128/255 * 0.5 of the frame shows through.
    half = blend_over(base, PixelBuffer.solid(1, 1, (200, 200, 200, 128)), 0.5)
    assert half.pixels[0, 0].tolist() == [125, 125, 125, 255]


def test_blend_of_opaque_frames_is_plain_lerp():
    out = blend_over(PixelBuffer.solid(1, 1, (40, 80, 120, 255)),
                     PixelBuffer.solid(1, 1, (200, 0, 60, 255)), 0.25)
    assert out.pixels[0, 0].tolist() == [80, 60, 105, 255]
