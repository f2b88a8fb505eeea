import json

import pytest

from binaural_mask.config import ConfigManager, MaskingConfig
from binaural_mask.models import MaskingMethod


def test_window_size_is_power_of_two():
    assert MaskingConfig(samplerate=16_000).window_size == 2048
    assert MaskingConfig(samplerate=8_000, high_freq=4000.0).window_size == 1024
    assert MaskingConfig(samplerate=44_100, high_freq=16000.0).window_size == 8192
    config = MaskingConfig()
    assert config.hop_size == config.window_size // 2
    assert config.analysis_length == 46 * config.window_size


def test_method_accepts_strings():
    assert MaskingConfig(method="full").method is MaskingMethod.FULL
    with pytest.raises(ValueError):
        MaskingConfig(method="loud")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"channels": 3},
        {"micro_distance": 0.0},
        {"low_freq": 5000.0, "high_freq": 1000.0},
        {"high_freq": 9000.0},
        {"spatial_masking_factor": 0.0},
    ],
)
def test_invalid_config_raises(kwargs):
    with pytest.raises(ValueError):
        MaskingConfig(**kwargs)


def test_with_overrides_skips_none():
    config = MaskingConfig().with_overrides(method="FACTOR", micro_distance=None)
    assert config.method is MaskingMethod.FACTOR
    assert config.micro_distance == MaskingConfig().micro_distance


def test_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    config = MaskingConfig(micro_distance=0.15, method=MaskingMethod.FULL, enhance_factor=2.0)
    ConfigManager.save(config, path)
    assert json.loads(path.read_text())["method"] == "FULL"
    assert ConfigManager.load(path) == config


def test_load_missing_file_gives_defaults(tmp_path):
    assert ConfigManager.load(tmp_path / "missing.json") == MaskingConfig()


def test_load_partial_file_merges_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"micro_distance": 0.3}))
    config = ConfigManager.load(path)
    assert config.micro_distance == 0.3
    assert config.method is MaskingMethod.RELATIVE


def test_load_corrupt_file_gives_defaults(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert ConfigManager.load(path) == MaskingConfig()
    assert "Failed to load config" in caplog.text
