from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from .models import MaskingMethod

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.json")

# Fixed parameters of the algorithm
N_BINS = 45
FRAME_RATE = 0.050  # seconds; window shift, half of the window size
ACCEPTANCE_ANGLE_DEG = 10.0
FORGETTING_FACTOR = 0.04  # memory of the temporal masking
SCALING_FACTOR = 0.01  # ~ -40 dB below the recent history
SPEED_OF_SOUND = 343.0  # m/s

DEFAULT_CONFIG = {
    "samplerate": 16_000,
    "micro_distance": 0.2,
    "low_freq": 100.0,
    "high_freq": 8000.0,
    "method": MaskingMethod.RELATIVE.value,
    "spatial_masking_factor": 1.0,
    "temporal_masking_factor": 1.0,
    "enhance_factor": 1.0,
}


@dataclass(frozen=True)
class MaskingConfig:
    samplerate: int = 16_000
    micro_distance: float = 0.2
    low_freq: float = 100.0
    high_freq: float = 8000.0
    method: MaskingMethod = MaskingMethod.RELATIVE
    channels: int = 2
    # FACTOR method: rejected bins are divided by these (3 ~ -10 dB, 10 ~ -20 dB)
    spatial_masking_factor: float = 1.0
    temporal_masking_factor: float = 1.0
    # Accepted bins are multiplied by this (2 ~ +6 dB)
    enhance_factor: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", MaskingMethod.parse(self.method))
        if self.channels != 2:
            raise ValueError(f"Binaural masking needs exactly 2 channels, got {self.channels}")
        if self.samplerate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.samplerate}")
        if self.micro_distance <= 0:
            raise ValueError(f"Microphone distance must be positive, got {self.micro_distance}")
        if not (0.0 <= self.low_freq < self.high_freq <= self.samplerate / 2):
            raise ValueError(
                "Frequency range must satisfy 0 <= low < high <= samplerate/2, "
                f"got low={self.low_freq} high={self.high_freq} samplerate={self.samplerate}"
            )
        for name in ("spatial_masking_factor", "temporal_masking_factor", "enhance_factor"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def fft_order(self) -> int:
        return int(math.ceil(math.log2(2 * FRAME_RATE * self.samplerate)))

    @property
    def window_size(self) -> int:
        return 2 ** self.fft_order

    @property
    def hop_size(self) -> int:
        return self.window_size // 2

    @property
    def analysis_length(self) -> int:
        return (N_BINS + 1) * self.window_size

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        data.pop("channels")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MaskingConfig":
        merged = DEFAULT_CONFIG.copy()
        merged.update({k: v for k, v in data.items() if k in DEFAULT_CONFIG})
        unknown = sorted(set(data) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**merged)

    def with_overrides(self, **overrides: Any) -> "MaskingConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


class ConfigManager:
    @staticmethod
    def load(path: Path = CONFIG_FILE) -> MaskingConfig:
        if not path.exists():
            return MaskingConfig()

        try:
            with open(path, "r") as f:
                data = json.load(f)
            return MaskingConfig.from_dict(data)
        except (OSError, json.JSONDecodeError, TypeError, ValueError) as e:
            logger.error(f"Failed to load config: {e}")
            return MaskingConfig()

    @staticmethod
    def save(config: MaskingConfig, path: Path = CONFIG_FILE) -> None:
        try:
            with open(path, "w") as f:
                json.dump(config.to_dict(), f, indent=4)
            logger.info("Configuration saved to %s", path)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
