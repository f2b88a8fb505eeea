import numpy as np
import pytest

from binaural_mask.simulation import (
    Source,
    binaural_scene,
    interaural_delay_samples,
    offline_block_stream,
    render_source,
    tone,
    white_noise,
)


def test_source_on_right_delays_left_channel():
    signal = white_noise(0.02, 16_000, seed=0)
    frame = render_source(signal, 60.0, 16_000, 0.2)
    delay = interaural_delay_samples(60.0, 16_000, 0.2)
    assert delay == 8
    assert np.allclose(frame[:, 1], signal)
    assert np.allclose(frame[delay:, 0], signal[:-delay])


def test_source_on_left_delays_right_channel():
    signal = white_noise(0.02, 16_000, seed=1)
    frame = render_source(signal, -60.0, 16_000, 0.2)
    assert np.allclose(frame[:, 0], signal)
    assert np.allclose(frame[8:, 1], signal[:-8])


def test_scene_mixes_sources():
    target = Source(tone(440.0, 0.5, 16_000), azimuth_deg=0.0)
    interferer = Source(white_noise(0.25, 16_000, seed=2), azimuth_deg=45.0, gain=0.5)
    scene = binaural_scene([target, interferer], 16_000, 0.2)
    assert scene.shape == (8000, 2)
    assert np.allclose(scene[4000:, 0], target.signal[4000:])


def test_empty_scene_raises():
    with pytest.raises(ValueError):
        binaural_scene([], 16_000, 0.2)


def test_offline_stream_generates_blocks():
    stream = offline_block_stream(16_000, 0.2, 1024, duration_s=0.2, seed=42)
    blocks = list(stream)
    assert len(blocks) == 4
    assert all(block.shape == (1024, 2) for block in blocks)
