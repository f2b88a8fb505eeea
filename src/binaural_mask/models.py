from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class MaskingMethod(str, Enum):
    """How rejected time-frequency bins are treated."""

    FACTOR = "FACTOR"
    RELATIVE = "RELATIVE"
    FULL = "FULL"

    @classmethod
    def parse(cls, value: "MaskingMethod | str") -> "MaskingMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(
                f"Unknown masking method '{value}'; expected one of {[m.value for m in cls]}"
            ) from None


@dataclass
class FrameDecision:
    correlation: np.ndarray
    power: np.ndarray
    history: np.ndarray
    spatial: np.ndarray
    temporal: np.ndarray
    gain: np.ndarray

    @property
    def masked(self) -> np.ndarray:
        return self.spatial | self.temporal

    @property
    def masked_count(self) -> int:
        return int(np.count_nonzero(self.masked))
