"""
Short-time frame driver for the binaural masking.

Blocks the stereo signal into windows of `window_size` samples with a hop of
half a window, runs analysis -> masking -> synthesis on every window and
overlap-adds the result. Square-root periodic Hann windows are used on both
sides, so their product sums to one at 50% overlap.
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.signal import get_window

from .config import N_BINS
from .masking import BinauralMasking

logger = logging.getLogger(__name__)


class ShortTimeProcessor:
    """Streams hop-sized stereo blocks through a BinauralMasking instance."""

    def __init__(self, masking: BinauralMasking) -> None:
        self.masking = masking
        self.window_size = masking.window_size
        self.hop_size = self.window_size // 2
        window = np.sqrt(get_window("hann", self.window_size))
        self._analysis_window = window
        self._synthesis_window = window

        # Pre-allocated buffers
        self._input = np.zeros((self.window_size, 2), dtype=np.float64)
        self._accumulator = np.zeros((self.window_size, 2), dtype=np.float64)
        self._frames_in = [np.zeros(self.window_size) for _ in range(2)]
        self._frames_out = [np.zeros(self.window_size) for _ in range(2)]
        self._analysis = masking.new_analysis_buffers()

        self.frames = 0
        self.spatial_rejections = np.zeros(N_BINS, dtype=np.int64)
        self.temporal_rejections = np.zeros(N_BINS, dtype=np.int64)

    @property
    def latency(self) -> int:
        """Delay in samples between a block going in and coming out."""
        return self.hop_size

    def process_block(self, block: np.ndarray) -> np.ndarray:
        """
        Push one block of `hop_size` stereo samples and get one back.

        Args:
            block: array of shape (hop_size, 2)

        Returns:
            Output block of shape (hop_size, 2), delayed by `latency` samples
        """
        block = np.asarray(block, dtype=np.float64)
        if block.shape != (self.hop_size, 2):
            raise ValueError(f"Block must have shape {(self.hop_size, 2)}, got {block.shape}")

        hop = self.hop_size
        self._input[:hop] = self._input[hop:]
        self._input[hop:] = block

        for channel in range(2):
            np.multiply(self._input[:, channel], self._analysis_window, out=self._frames_in[channel])
            self.masking.frame_analysis(self._frames_in[channel], self._analysis[channel], channel)

        decision = self.masking.process_parametrisation(self._analysis, self._frames_in)
        self.spatial_rejections += decision.spatial
        self.temporal_rejections += decision.temporal
        self.frames += 1

        for channel in range(2):
            self.masking.frame_synthesis(self._frames_out[channel], self._analysis[channel], channel)
            self._accumulator[:, channel] += self._frames_out[channel] * self._synthesis_window

        out = self._accumulator[:hop].copy()
        self._accumulator[:hop] = self._accumulator[hop:]
        self._accumulator[hop:] = 0.0
        return out

    def process(self, signal: np.ndarray) -> np.ndarray:
        """
        Process a whole stereo signal of shape (samples, 2).

        The output is aligned with the input (latency removed) and has the
        same shape.
        """
        signal = np.asarray(signal, dtype=np.float64)
        if signal.ndim != 2 or signal.shape[1] != 2:
            raise ValueError(f"Signal must have shape (samples, 2), got {signal.shape}")

        n_samples = signal.shape[0]
        hop = self.hop_size
        n_blocks = -(-n_samples // hop) + 1
        padded = np.zeros((n_blocks * hop, 2), dtype=np.float64)
        padded[:n_samples] = signal

        output = np.empty_like(padded)
        for i in range(n_blocks):
            output[i * hop : (i + 1) * hop] = self.process_block(padded[i * hop : (i + 1) * hop])

        logger.info(
            "Processed %d samples in %d frames (spatially masked bins=%d, temporally masked bins=%d)",
            n_samples,
            self.frames,
            int(self.spatial_rejections.sum()),
            int(self.temporal_rejections.sum()),
        )
        return output[self.latency : self.latency + n_samples]

    def reset(self) -> None:
        self._input.fill(0.0)
        self._accumulator.fill(0.0)
        self.masking.reset()
        self.frames = 0
        self.spatial_rejections.fill(0)
        self.temporal_rejections.fill(0)
