from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np
from scipy.io import wavfile

from .config import CONFIG_FILE, ConfigManager, MaskingConfig
from .masking import BinauralMasking
from .models import MaskingMethod
from .simulation import offline_block_stream
from .stft import ShortTimeProcessor


logger = logging.getLogger(__name__)


def read_stereo(path: Path) -> tuple[int, np.ndarray]:
    samplerate, data = wavfile.read(path)
    if data.ndim != 2 or data.shape[1] != 2:
        raise ValueError(f"{path} must have exactly 2 channels, got shape {data.shape}")
    if np.issubdtype(data.dtype, np.integer):
        info = np.iinfo(data.dtype)
        # 8-bit WAV is unsigned
        offset = (info.max + 1) / 2 if info.min == 0 else 0.0
        data = (data.astype(np.float64) - offset) / (info.max - offset + 1)
    else:
        data = data.astype(np.float64)
    logger.info("Read %s (samplerate=%s, samples=%s)", path, samplerate, data.shape[0])
    return samplerate, data


def write_stereo(path: Path, samplerate: int, data: np.ndarray) -> None:
    wavfile.write(path, samplerate, data.astype(np.float32))
    logger.info("Wrote %s (samplerate=%s, samples=%s)", path, samplerate, data.shape[0])


def run_file(config: MaskingConfig, input_path: Path, output_path: Path) -> None:
    samplerate, signal = read_stereo(input_path)
    if samplerate != config.samplerate:
        logger.info("Using file samplerate %s instead of configured %s", samplerate, config.samplerate)
        high_freq = min(config.high_freq, samplerate / 2)
        if high_freq < config.high_freq:
            logger.info("Lowering high frequency from %.0f Hz to Nyquist %.0f Hz", config.high_freq, high_freq)
        config = config.with_overrides(samplerate=samplerate, high_freq=high_freq)
    processor = ShortTimeProcessor(BinauralMasking(config))
    write_stereo(output_path, samplerate, processor.process(signal))


def run_mock(config: MaskingConfig, output_path: Path, duration_s: float = 5.0) -> None:
    processor = ShortTimeProcessor(BinauralMasking(config))
    logger.info("Using synthetic scene for mock mode (duration=%.1f s)", duration_s)
    blocks = [
        processor.process_block(block)
        for block in offline_block_stream(
            config.samplerate,
            config.micro_distance,
            processor.hop_size,
            duration_s=duration_s,
            seed=0,
        )
    ]
    output = np.concatenate(blocks)[processor.latency :]
    write_stereo(output_path, config.samplerate, output)


def configure_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), None)
    invalid = False
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        invalid = True
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        force=True,
    )
    if invalid:
        logging.getLogger(__name__).warning("Invalid log level '%s'; defaulting to INFO", level)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Binaural spatial-temporal masking")
    parser.add_argument("input", type=Path, nargs="?", help="Stereo WAV file to process")
    parser.add_argument("output", type=Path, help="Where to write the processed WAV file")
    parser.add_argument(
        "--method",
        choices=[m.value for m in MaskingMethod],
        type=str.upper,
        help="Masking method for rejected bins",
    )
    parser.add_argument("--distance", type=float, help="Distance between microphones in metres")
    parser.add_argument("--low-freq", type=float, help="Lowest filter bank frequency in Hz")
    parser.add_argument("--high-freq", type=float, help="Highest filter bank frequency in Hz")
    parser.add_argument("--config", type=Path, default=CONFIG_FILE, help="JSON configuration file")
    parser.add_argument("--save-config", action="store_true", help="Store the effective configuration")
    parser.add_argument("--mock", action="store_true", help="Process a synthetic scene instead of INPUT")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging verbosity (DEBUG, INFO, WARNING, ERROR)",
    )
    args = parser.parse_args(argv)
    if args.input is None and not args.mock:
        parser.error("INPUT is required unless --mock is given")
    return args


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = ConfigManager.load(args.config).with_overrides(
            method=args.method,
            micro_distance=args.distance,
            low_freq=args.low_freq,
            high_freq=args.high_freq,
        )
        if args.save_config:
            ConfigManager.save(config, args.config)
        if args.mock:
            run_mock(config, args.output)
        else:
            run_file(config, args.input, args.output)
    except (OSError, ValueError) as exc:
        logger.error("Processing failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
