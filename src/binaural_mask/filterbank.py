"""
Mel-scaled filter bank used for the time-frequency decomposition.

Each frame is split into N sub-band signals plus a residual. Filtering is
done in the frequency domain with zero-phase triangular responses, and the
residual holds whatever the triangles leave out, so reconstruction is an
exact sum.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)


def hz_to_mel(freq_hz):
    return 2595.0 * np.log10(1.0 + np.asarray(freq_hz, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    return 700.0 * (10.0 ** (np.asarray(mel, dtype=np.float64) / 2595.0) - 1.0)


class MelFilterBank:
    """
    Bank of triangular mel-scale band filters for a fixed frame length.

    The N + 2 edge frequencies are evenly spaced on the mel scale between
    low_freq and high_freq; filter b rises from edge b to edge b + 1 and
    falls to edge b + 2.
    """

    def __init__(
        self,
        samplerate: int,
        frame_length: int,
        n_bins: int,
        low_freq: float,
        high_freq: float,
    ):
        if n_bins < 1:
            raise ValueError(f"Filter bank needs at least one bin, got {n_bins}")
        if not (0.0 <= low_freq < high_freq <= samplerate / 2):
            raise ValueError(
                f"Invalid filter bank range low={low_freq} high={high_freq} for samplerate={samplerate}"
            )
        self.samplerate = samplerate
        self.frame_length = frame_length
        self.n_bins = n_bins
        self.low_freq = low_freq
        self.high_freq = high_freq

        edges = mel_to_hz(np.linspace(hz_to_mel(low_freq), hz_to_mel(high_freq), n_bins + 2))
        self._centers = edges[1:-1].copy()
        self._freqs = np.fft.rfftfreq(frame_length, 1.0 / samplerate)

        # Pre-compute the frequency responses, one row per bin
        self._responses = np.zeros((n_bins, self._freqs.size), dtype=np.float64)
        for b in range(n_bins):
            lower, center, upper = edges[b], edges[b + 1], edges[b + 2]
            rising = (self._freqs - lower) / (center - lower)
            falling = (upper - self._freqs) / (upper - center)
            self._responses[b] = np.maximum(0.0, np.minimum(rising, falling))

        empty = [b for b in range(n_bins) if not self._responses[b].any()]
        if empty:
            logger.warning(
                "Mel filters %s have no FFT bins at frame length %d; "
                "their content is carried by the residual",
                empty,
                frame_length,
            )

    @property
    def center_frequencies(self) -> np.ndarray:
        return self._centers.copy()

    def decompose(self, frame: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Split a frame into sub-band signals.

        Returns:
            (bins, residual) where bins has shape (n_bins, frame_length)
        """
        frame = np.asarray(frame, dtype=np.float64)
        if frame.shape != (self.frame_length,):
            raise ValueError(
                f"Frame must be 1-D with {self.frame_length} samples, got shape {frame.shape}"
            )
        spectrum = np.fft.rfft(frame)
        bins = np.fft.irfft(spectrum[None, :] * self._responses, n=self.frame_length, axis=-1)
        residual = frame - bins.sum(axis=0)
        return bins, residual

    def reconstruct(self, bins: np.ndarray, residual: np.ndarray) -> np.ndarray:
        bins = np.asarray(bins, dtype=np.float64)
        if bins.shape != (self.n_bins, self.frame_length):
            raise ValueError(
                f"Expected bins of shape {(self.n_bins, self.frame_length)}, got {bins.shape}"
            )
        return bins.sum(axis=0) + residual

