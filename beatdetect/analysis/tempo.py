"""Tempo estimation from inter-peak intervals.

Every peak is paired with the next few peaks; each gap is converted to a
BPM value, octave-folded into the configured range and counted. The most
voted tempo wins. This is a histogram of intervals: a missed or spurious
peak costs a few votes instead of the whole estimate.
"""

import logging
import math

from beatdetect.analysis.models import Peak, TempoGroup
from beatdetect.errors import ConfigurationError, DetectionFailure

logger = logging.getLogger(__name__)

LOOKAHEAD = 9
TOP_GROUPS = 5


def float_round(value: float, precision: int = 0) -> float:
    """Round half away from zero to *precision* decimal digits."""
    multiplier = 10 ** precision
    return math.copysign(math.floor(abs(value) * multiplier + 0.5), value) / multiplier


def fold_tempo(tempo: float, bpm_range: tuple[float, float]) -> float:
    """Double or halve *tempo* into ``[min_bpm, max_bpm)``.

    Ranges narrower than an octave cannot hold every tempo; the result may
    then fall below ``min_bpm`` and callers must check it.
    """
    min_bpm, max_bpm = bpm_range
    if tempo <= 0 or not math.isfinite(tempo):
        raise ConfigurationError(f"cannot fold tempo {tempo}")
    while tempo < min_bpm:
        tempo *= 2
    while tempo >= max_bpm:
        tempo /= 2
    return tempo


def round_tempo(tempo: float, round_to_integer: bool = False, precision: int = 8) -> float:
    if round_to_integer:
        return float(float_round(tempo))
    return float_round(tempo, precision)


def _in_range(tempo: float, bpm_range: tuple[float, float]) -> bool:
    return bpm_range[0] <= tempo < bpm_range[1]


def interval_tempo(
    interval: int,
    sample_rate: int,
    bpm_range: tuple[float, float],
    round_to_integer: bool = False,
    precision: int = 8,
) -> float | None:
    """Folded, rounded tempo for a gap of *interval* samples.

    Returns None when the gap cannot produce a tempo inside the range.
    """
    if interval <= 0:
        return None
    tempo = round_tempo(
        fold_tempo(60 * sample_rate / interval, bpm_range),
        round_to_integer, precision,
    )
    if not _in_range(tempo, bpm_range):
        # rounding can land exactly on max_bpm
        tempo = round_tempo(fold_tempo(tempo, bpm_range), round_to_integer, precision)
    if not _in_range(tempo, bpm_range):
        return None
    return tempo


def cluster_tempos(
    peaks: list[Peak],
    sample_rate: int,
    bpm_range: tuple[float, float] = (90.0, 180.0),
    round_to_integer: bool = False,
    precision: int = 8,
) -> list[TempoGroup]:
    """Vote inter-peak intervals into tempo groups.

    Returns at most five groups, most voted first. Groups with equal
    counts keep creation order.
    """
    groups: dict[float, TempoGroup] = {}
    skipped = 0

    for index, peak in enumerate(peaks):
        for k in range(1, LOOKAHEAD + 1):
            if index + k >= len(peaks):
                break
            tempo = interval_tempo(
                peaks[index + k].position - peak.position,
                sample_rate, bpm_range, round_to_integer, precision,
            )
            if tempo is None:
                skipped += 1
                continue

            group = groups.get(tempo)
            if group is not None:
                group.peaks.append(peak)
                group.count += 1
            else:
                groups[tempo] = TempoGroup(tempo=tempo, count=1, position=peak.position)

    if skipped:
        logger.debug(f"  {skipped} intervals could not be folded into {bpm_range}")

    ranked = sorted(groups.values(), key=lambda g: g.count, reverse=True)
    return ranked[:TOP_GROUPS]


def select_tempo(groups: list[TempoGroup]) -> float:
    """Tempo of the winning group."""
    if not groups:
        raise DetectionFailure("no tempo candidates; need at least two distinct peaks")
    return groups[0].tempo
