from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np

from .config import SPEED_OF_SOUND


@dataclass
class Source:
    signal: np.ndarray
    azimuth_deg: float = 0.0
    gain: float = 1.0


def interaural_delay_samples(azimuth_deg: float, samplerate: int, micro_distance: float) -> int:
    """Delay of the far microphone for a far-field source; positive azimuth is to the right."""
    tau = micro_distance * math.sin(math.radians(azimuth_deg)) / SPEED_OF_SOUND
    return int(round(tau * samplerate))


def render_source(
    signal: np.ndarray,
    azimuth_deg: float,
    samplerate: int,
    micro_distance: float,
) -> np.ndarray:
    """Place a mono signal at an azimuth, returning a (samples, 2) array."""
    signal = np.asarray(signal, dtype=np.float64)
    delay = interaural_delay_samples(azimuth_deg, samplerate, micro_distance)
    delayed = np.pad(signal, (abs(delay), 0))[: signal.size]
    if delay >= 0:
        # Source on the right reaches the left microphone later
        return np.stack([delayed, signal], axis=-1)
    return np.stack([signal, delayed], axis=-1)


def tone(frequency: float, duration_s: float, samplerate: int, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(duration_s * samplerate)) / samplerate
    return amplitude * np.sin(2 * np.pi * frequency * t)


def white_noise(
    duration_s: float,
    samplerate: int,
    amplitude: float = 0.1,
    seed: int | None = None,
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return amplitude * rng.standard_normal(int(duration_s * samplerate))


def binaural_scene(sources: Sequence[Source], samplerate: int, micro_distance: float) -> np.ndarray:
    """Mix several sources into one stereo signal as long as the longest source."""
    if not sources:
        raise ValueError("A scene needs at least one source")
    length = max(np.asarray(src.signal).size for src in sources)
    scene = np.zeros((length, 2), dtype=np.float64)
    for src in sources:
        rendered = render_source(src.signal, src.azimuth_deg, samplerate, micro_distance)
        scene[: rendered.shape[0]] += src.gain * rendered
    return scene


def demo_scene(
    samplerate: int,
    micro_distance: float,
    duration_s: float = 5.0,
    seed: int | None = None,
) -> np.ndarray:
    """A tone straight ahead competing with a noise interferer at 60 degrees."""
    target = Source(tone(440.0, duration_s, samplerate), azimuth_deg=0.0)
    interferer = Source(white_noise(duration_s, samplerate, seed=seed), azimuth_deg=60.0)
    return binaural_scene([target, interferer], samplerate, micro_distance)


def offline_block_stream(
    samplerate: int,
    micro_distance: float,
    block_size: int,
    duration_s: float = 5.0,
    seed: int | None = None,
) -> Iterator[np.ndarray]:
    """Yield (block_size, 2) blocks of the demo scene, zero-padding the last one."""
    scene = demo_scene(samplerate, micro_distance, duration_s, seed)
    for start in range(0, scene.shape[0], block_size):
        block = scene[start : start + block_size]
        if block.shape[0] < block_size:
            block = np.pad(block, ((0, block_size - block.shape[0]), (0, 0)))
        yield block
