from __future__ import annotations

import logging
import math

import numpy as np

from .config import SPEED_OF_SOUND

logger = logging.getLogger(__name__)


def max_interaural_delay(micro_distance: float, angle_deg: float) -> float:
    """Largest delay (s) between the microphones for a source inside the cone."""
    if micro_distance <= 0:
        raise ValueError(f"Microphone distance must be positive, got {micro_distance}")
    if not (0.0 < angle_deg <= 90.0):
        raise ValueError(f"Acceptance angle must be in (0, 90] degrees, got {angle_deg}")
    return micro_distance * math.sin(math.radians(angle_deg)) / SPEED_OF_SOUND


def compute_thresholds(
    center_frequencies: np.ndarray,
    micro_distance: float,
    angle_deg: float,
) -> np.ndarray:
    """
    Normalised correlation thresholds for spatial masking.

    A source at the edge of the acceptance cone reaches the two microphones
    with a delay tau, and the zero-lag correlation of a narrow band around
    f is cos(2 pi f tau). Anything below that is coming from outside the
    cone. Beyond half a period the delay aliases, so the phase is clamped
    to pi and the threshold to -1.
    """
    tau = max_interaural_delay(micro_distance, angle_deg)
    phase = 2.0 * np.pi * np.asarray(center_frequencies, dtype=np.float64) * tau
    aliased = phase > np.pi
    if aliased.any():
        logger.warning(
            "Spatial aliasing above %.0f Hz for %.3f m spacing; %d bins clamped to -1",
            1.0 / (2.0 * tau),
            micro_distance,
            int(aliased.sum()),
        )
    thresholds = np.cos(np.minimum(phase, np.pi))
    return np.clip(thresholds, -1.0, 1.0)
