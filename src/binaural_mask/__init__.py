"""
Binaural mask - spatial-temporal masking for two-microphone audio.

Splits each stereo frame into mel-scaled time-frequency bins, rejects the
bins whose interaural correlation points outside the acceptance cone or
whose power drops far below its recent history, and resynthesises the
frame from what is left.
"""

from .config import ConfigManager, MaskingConfig
from .filterbank import MelFilterBank
from .masking import BinauralMasking, PowerMemory
from .models import FrameDecision, MaskingMethod
from .stft import ShortTimeProcessor
from .thresholds import compute_thresholds

__all__ = [
    'BinauralMasking',
    'ConfigManager',
    'FrameDecision',
    'MaskingConfig',
    'MaskingMethod',
    'MelFilterBank',
    'PowerMemory',
    'ShortTimeProcessor',
    'compute_thresholds',
]
