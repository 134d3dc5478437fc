"""Audio preprocessing utilities."""

from __future__ import annotations

import numpy as np
from scipy.signal import butter, sosfilt


def to_stereo(audio: np.ndarray) -> np.ndarray:
    """Return audio shaped (2, samples).

    Mono input is duplicated into both channels; extra channels beyond the
    first two are dropped.
    """
    audio = np.asarray(audio, dtype=np.float32)
    if audio.ndim == 1:
        return np.vstack([audio, audio])
    if audio.shape[0] == 1:
        return np.vstack([audio[0], audio[0]])
    return audio[:2]


def low_pass_filter(
    audio: np.ndarray,
    sr: int,
    cutoff: float = 150.0,
) -> np.ndarray:
    """Apply a second-order Butterworth low-pass filter along the last axis."""
    sos = butter(N=2, Wn=cutoff, btype="low", fs=sr, output="sos")
    return sosfilt(sos, audio, axis=-1)


def high_pass_filter(
    audio: np.ndarray,
    sr: int,
    cutoff: float = 100.0,
) -> np.ndarray:
    """Apply a second-order Butterworth high-pass filter along the last axis.

    Parameters
    ----------
    audio:
        Input audio signal, one channel per row.
    sr:
        Sample rate in Hz.
    cutoff:
        High-pass cutoff frequency in Hz. Defaults to 100 Hz.
    """
    sos = butter(N=2, Wn=cutoff, btype="high", fs=sr, output="sos")
    return sosfilt(sos, audio, axis=-1)


def render(
    audio: np.ndarray,
    sr: int,
    low_pass_freq: float = 150.0,
    high_pass_freq: float = 100.0,
) -> np.ndarray:
    """Isolate the kick/bass band: low-pass, then high-pass, every channel."""
    audio = low_pass_filter(audio, sr, low_pass_freq)
    audio = high_pass_filter(audio, sr, high_pass_freq)
    return audio.astype(np.float32)
