"""Windowed peak extraction from multichannel sample buffers."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from beatdetect.analysis.models import Peak
from beatdetect.errors import ConfigurationError, DetectionFailure

# Share of windows kept after ranking by volume.
KEEP_RATIO = 0.5


def as_channel_matrix(channels) -> np.ndarray:
    """Stack channel data into a (channels, samples) float array.

    Accepts a 1-D array (one channel), a 2-D array, or a sequence of
    equal-length channel sequences.
    """
    if channels is None:
        raise ConfigurationError("no sample buffer supplied")
    if isinstance(channels, np.ndarray):
        data = channels
    else:
        channels = list(channels)
        if not channels:
            raise ConfigurationError("no sample buffer supplied")
        lengths = {len(ch) for ch in channels}
        if len(lengths) > 1:
            raise ConfigurationError(f"channels have unequal lengths: {sorted(lengths)}")
        data = np.asarray(channels)

    data = np.asarray(data, dtype=np.float64)
    if data.ndim == 1:
        data = data[np.newaxis, :]
    if data.ndim != 2:
        raise ConfigurationError(f"expected 1 or 2 dimensions, got {data.ndim}")
    return data


def window_size(sample_rate: int, window_seconds: float) -> int:
    """Samples per analysis window."""
    return int(window_seconds * sample_rate)


def windowed(signal: np.ndarray, size: int) -> np.ndarray:
    """Reshape a 1-D signal into whole windows, dropping the partial tail.

    Raises DetectionFailure if not even one window fits.
    """
    if size <= 0:
        raise DetectionFailure(f"window of {size} samples is empty")
    n_windows = len(signal) // size
    if n_windows == 0:
        raise DetectionFailure(
            f"buffer of {len(signal)} samples is shorter than one {size}-sample window"
        )
    return signal[:n_windows * size].reshape(n_windows, size)


def extract_peaks(
    channels: np.ndarray | Sequence[Sequence[float]],
    sample_rate: int,
    window_seconds: float = 0.5,
) -> list[Peak]:
    """Reduce a sample buffer to its loudest windows, in time order.

    Each window contributes the index of its largest absolute sample across
    all channels. The quieter half of the windows is discarded, and the
    survivors are returned sorted by position.
    """
    data = as_channel_matrix(channels)
    envelope = np.max(np.abs(data), axis=0)

    size = window_size(sample_rate, window_seconds)
    windows = windowed(envelope, size)

    # argmax returns the first index on ties, so a silent window peaks at its start
    local = np.argmax(windows, axis=1)
    rows = np.arange(len(windows))
    positions = rows * size + local
    volumes = windows[rows, local]

    by_volume = np.argsort(-volumes, kind="stable")
    keep = max(1, int(len(by_volume) * KEEP_RATIO))
    kept = np.sort(by_volume[:keep])  # window order == position order

    return [Peak(position=int(positions[i]), volume=float(volumes[i])) for i in kept]
