"""Beat-grid phase and first-bar estimation for a known tempo."""

import logging

import numpy as np

from beatdetect.analysis.models import Offsets, Peak
from beatdetect.analysis.peaks import as_channel_matrix, window_size, windowed
from beatdetect.analysis.tempo import float_round
from beatdetect.errors import ConfigurationError, DetectionFailure

logger = logging.getLogger(__name__)

# Fraction of a beat a transient's loudest sample lags its attack.
ATTACK_CORRECTION = 0.05
# Seconds around the reference phase that vote into the mean.
PHASE_TOLERANCE = 0.05
# Minimum volume for a window to count as the first bar.
FIRST_BAR_THRESHOLD = 0.02


def lowest_time_offset(
    position: int,
    bpm: float,
    sample_rate: int,
    time_signature: int = 4,
) -> float:
    """Fold a sample position into its phase within one beat, in seconds.

    Whole bars are removed first, then the remainder is wrapped into
    ``[0, 60 / bpm)``.
    """
    if bpm <= 0:
        raise ConfigurationError(f"bpm must be positive, got {bpm}")
    beat = 60.0 / bpm
    offset = position / sample_rate

    while offset >= beat:
        offset -= beat * time_signature
    while offset < 0:
        offset += beat
    return offset


def _window_peaks(channel: np.ndarray, sample_rate: int, window_seconds: float) -> list[Peak]:
    """Loudest positive sample per window, in time order."""
    windows = windowed(channel, window_size(sample_rate, window_seconds))
    local = np.argmax(windows, axis=1)
    rows = np.arange(len(windows))
    volumes = np.maximum(windows[rows, local], 0.0)
    # windows with no positive sample peak at their start
    local = np.where(volumes > 0, local, 0)
    positions = rows * windows.shape[1] + local
    return [Peak(position=int(p), volume=float(v)) for p, v in zip(positions, volumes)]


def estimate_offsets(
    channel,
    sample_rate: int,
    bpm: float,
    time_signature: int = 4,
    window_seconds: float = 0.5,
) -> Offsets:
    """Estimate the beat phase and first downbeat of a single channel.

    The phase is the mean of every window peak's lowest time offset that
    lands near the loudest peak's. The first bar is the first window loud
    enough to count, pulled back to the phase when it sits inside the
    first beat.

    Only positive amplitude counts, so a polarity-inverted recording may
    find no window loud enough for a first bar and raise DetectionFailure.
    """
    if bpm <= 0:
        raise ConfigurationError(f"bpm must be positive, got {bpm}")
    data = as_channel_matrix(channel)
    if data.shape[0] != 1:
        raise ConfigurationError(f"expected a single channel, got {data.shape[0]}")

    raw_peaks = _window_peaks(data[0], sample_rate, window_seconds)
    correction = int(float_round(ATTACK_CORRECTION * (60.0 / bpm) * sample_rate))
    corrected = [Peak(position=p.position - correction, volume=p.volume) for p in raw_peaks]
    corrected.sort(key=lambda p: p.volume, reverse=True)

    ref_offset = lowest_time_offset(corrected[0].position, bpm, sample_rate, time_signature)
    total = 0.0
    divider = 0
    for peak in corrected:
        offset = lowest_time_offset(peak.position, bpm, sample_rate, time_signature)
        if offset - ref_offset < PHASE_TOLERANCE or ref_offset - offset > -PHASE_TOLERANCE:
            total += offset
            divider += 1

    if divider == 0:
        raise DetectionFailure("no peak agreed with the reference phase")
    offset = total / divider

    first = next((p for p in raw_peaks if p.volume >= FIRST_BAR_THRESHOLD), None)
    if first is None:
        raise DetectionFailure(f"no window reaches volume {FIRST_BAR_THRESHOLD}")
    first_bar = first.time(sample_rate)
    if offset < first_bar < 60.0 / bpm:
        first_bar = offset

    logger.debug(f"  offset={offset:.4f}s from {divider}/{len(corrected)} peaks, "
                 f"first_bar={first_bar:.4f}s")
    return Offsets(offset=offset, first_bar=first_bar)
