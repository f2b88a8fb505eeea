import numpy as np
import pytest

from binaural_mask.filterbank import MelFilterBank, hz_to_mel, mel_to_hz


SAMPLERATE = 16_000
FRAME_LENGTH = 2048


def make_bank() -> MelFilterBank:
    return MelFilterBank(SAMPLERATE, FRAME_LENGTH, 45, 100.0, 8000.0)


def test_mel_conversion_roundtrip():
    freqs = np.array([0.0, 100.0, 1000.0, 8000.0])
    assert np.allclose(mel_to_hz(hz_to_mel(freqs)), freqs)
    assert hz_to_mel(1000.0) == pytest.approx(1000.0, abs=0.5)


def test_center_frequencies_increase_within_range():
    centers = make_bank().center_frequencies
    assert centers.shape == (45,)
    assert np.all(np.diff(centers) > 0)
    assert centers[0] > 100.0
    assert centers[-1] < 8000.0


def test_decompose_shapes():
    bank = make_bank()
    frame = np.random.default_rng(0).standard_normal(FRAME_LENGTH)
    bins, residual = bank.decompose(frame)
    assert bins.shape == (45, FRAME_LENGTH)
    assert residual.shape == (FRAME_LENGTH,)


def test_reconstruct_is_lossless():
    bank = make_bank()
    frame = np.random.default_rng(1).standard_normal(FRAME_LENGTH)
    bins, residual = bank.decompose(frame)
    assert np.allclose(bank.reconstruct(bins, residual), frame, atol=1e-12)


def test_in_band_tone_leaves_no_residual():
    bank = make_bank()
    # 128 * 16000 / 2048 = 1000 Hz, an exact FFT bin
    t = np.arange(FRAME_LENGTH)
    frame = np.sin(2 * np.pi * 128 * t / FRAME_LENGTH)
    bins, residual = bank.decompose(frame)
    assert np.max(np.abs(residual)) < 1e-9
    energies = np.sum(bins**2, axis=1)
    assert np.count_nonzero(energies > 1e-9) <= 2


def test_out_of_band_tone_goes_to_residual():
    bank = make_bank()
    # 6 * 16000 / 2048 = 46.875 Hz, below the lowest filter skirt
    t = np.arange(FRAME_LENGTH)
    frame = np.sin(2 * np.pi * 6 * t / FRAME_LENGTH)
    bins, residual = bank.decompose(frame)
    assert np.max(np.abs(bins)) < 1e-9
    assert np.allclose(residual, frame, atol=1e-9)


def test_invalid_range_raises():
    with pytest.raises(ValueError):
        MelFilterBank(SAMPLERATE, FRAME_LENGTH, 45, 4000.0, 1000.0)
    with pytest.raises(ValueError):
        MelFilterBank(SAMPLERATE, FRAME_LENGTH, 45, 100.0, 9000.0)


def test_wrong_frame_length_raises():
    bank = make_bank()
    with pytest.raises(ValueError):
        bank.decompose(np.zeros(FRAME_LENGTH // 2))
    with pytest.raises(ValueError):
        bank.reconstruct(np.zeros((44, FRAME_LENGTH)), np.zeros(FRAME_LENGTH))
