"""Tests for beat-phase and first-bar estimation."""

import numpy as np
import pytest

from beatdetect.analysis.offsets import estimate_offsets, lowest_time_offset
from beatdetect.errors import ConfigurationError, DetectionFailure
from tests.conftest import generate_impulse_track

SR = 44100


def _circular_distance(a: float, b: float, period: float) -> float:
    d = (a - b) % period
    return min(d, period - d)


def test_lowest_time_offset_folds_into_one_beat():
    # 120 BPM: beat 0.5 s, bar 2 s
    assert lowest_time_offset(0, 120, SR) == 0.0
    assert lowest_time_offset(13230, 120, SR) == pytest.approx(0.3)
    assert lowest_time_offset(101430, 120, SR) == pytest.approx(0.3)
    assert lowest_time_offset(35280, 120, SR) == pytest.approx(0.3)
    assert lowest_time_offset(-4410, 120, SR) == pytest.approx(0.4)


def test_lowest_time_offset_respects_time_signature():
    # 3/4: one bar = 1.5 s; 1.6 s -> 0.1 s
    assert lowest_time_offset(70560, 120, SR, time_signature=3) == pytest.approx(0.1)


@pytest.mark.parametrize("position", [0, 1234, 22050, 100000, 441000, -5000])
def test_lowest_time_offset_range(position):
    offset = lowest_time_offset(position, 128, SR)
    assert 0 <= offset < 60 / 128


def test_lowest_time_offset_rejects_bad_bpm():
    with pytest.raises(ConfigurationError):
        lowest_time_offset(100, 0, SR)


def test_impulse_grid_offset_is_attack_corrected():
    audio = generate_impulse_track(bpm=120, duration_seconds=10, channels=1)[0]
    result = estimate_offsets(audio, SR, 120)

    # peaks are pulled back 5% of a beat (25 ms), wrapping to the end of the beat
    assert result.offset == pytest.approx(0.5 - 1103 / SR, abs=1e-9)
    assert _circular_distance(result.offset, 0.0, 0.5) < 0.05
    assert result.first_bar == 0.0


def test_grid_starting_late_is_found():
    audio = generate_impulse_track(bpm=120, duration_seconds=10, start=0.2, channels=1)[0]
    result = estimate_offsets(audio, SR, 120)

    assert _circular_distance(result.offset, 0.2, 0.5) < 0.05
    # first loud window at 0.2 s is past the 0.175 s phase, so it is clamped
    assert result.first_bar == pytest.approx(result.offset)
    assert result.first_bar < 0.5


def test_first_bar_skips_quiet_intro():
    audio = generate_impulse_track(bpm=120, duration_seconds=10, start=3.0, channels=1)[0]
    audio[:int(3.0 * SR)] = 0.01  # below the 0.02 threshold
    result = estimate_offsets(audio, SR, 120)

    # outside the first beat, so no clamp
    assert result.first_bar == pytest.approx(3.0)


def test_first_bar_below_beat_period_after_clamp():
    rng = np.random.default_rng(3)
    for start in rng.uniform(0.0, 0.49, size=10):
        audio = generate_impulse_track(bpm=120, duration_seconds=6, start=float(start), channels=1)[0]
        result = estimate_offsets(audio, SR, 120)
        assert result.first_bar < 0.5


def test_estimate_offsets_is_deterministic(click_120):
    first = estimate_offsets(click_120[0], SR, 120)
    second = estimate_offsets(click_120[0].copy(), SR, 120)
    assert first == second


def test_silent_channel_raises_detection_failure():
    with pytest.raises(DetectionFailure):
        estimate_offsets(np.zeros(SR * 5, dtype=np.float32), SR, 120)


def test_short_channel_raises_detection_failure():
    with pytest.raises(DetectionFailure):
        estimate_offsets(np.ones(100, dtype=np.float32), SR, 120)


def test_multichannel_input_rejected():
    with pytest.raises(ConfigurationError):
        estimate_offsets(np.zeros((2, SR)), SR, 120)


def test_inverted_polarity_has_no_first_bar():
    audio = -generate_impulse_track(bpm=120, duration_seconds=10, channels=1)[0]
    with pytest.raises(DetectionFailure):
        estimate_offsets(audio, SR, 120)
