"""Shared test fixtures for beat detection tests."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from beatdetect.main import app


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


def generate_impulse_track(
    bpm: float,
    duration_seconds: float = 10.0,
    sr: int = 44100,
    start: float = 0.0,
    amplitude: float = 1.0,
    channels: int = 2,
) -> np.ndarray:
    """Unit impulses every beat, shaped (channels, samples)."""
    n_samples = int(duration_seconds * sr)
    audio = np.zeros((channels, n_samples), dtype=np.float32)
    step = 60.0 / bpm * sr
    positions = np.round(np.arange(start * sr, n_samples, step)).astype(int)
    audio[:, positions[positions < n_samples]] = amplitude
    return audio


def generate_click_track(
    bpm: float,
    beats_per_bar: int = 4,
    duration_seconds: float = 10.0,
    sr: int = 44100,
    accent_ratio: float = 2.0,
    freq: float = 120.0,
) -> np.ndarray:
    """Generate a stereo click track of low sine bursts with accented downbeats.

    The bursts sit inside the default 100-150 Hz analysis band.
    """
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)

    beat_interval = 60.0 / bpm  # seconds per beat
    click_samples = int(0.05 * sr)  # 50ms burst

    t_click = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * freq * t_click) * np.exp(-t_click * 60)

    beat = 0
    time = 0.0
    while time < duration_seconds:
        sample_pos = int(round(time * sr))
        amplitude = accent_ratio if beat % beats_per_bar == 0 else 1.0

        end = min(sample_pos + click_samples, n_samples)
        length = end - sample_pos
        if length > 0:
            audio[sample_pos:end] += click[:length] * amplitude

        time += beat_interval
        beat += 1

    # Normalize
    peak = np.max(np.abs(audio))
    if peak > 0:
        audio = audio / peak

    return np.vstack([audio, audio])


@pytest.fixture
def impulses_120():
    """Stereo unit impulses at 120 BPM for 10 s."""
    return generate_impulse_track(bpm=120, duration_seconds=10)


@pytest.fixture
def click_120():
    """Stereo click track in 4/4 at 120 BPM."""
    return generate_click_track(bpm=120, duration_seconds=10)
