"""Randomized note chart built on a detected beat grid."""

import numpy as np

from beatdetect.analysis.models import BeatInfo, Note

SUBDIVISIONS = (0.25, 0.5, 1.0)
BASE_PROBABILITY = 0.6
HOLD_PROBABILITY = 0.2


def note_probability(time: float) -> float:
    """Chance of placing a note at *time*; swings gently with a 4 s period."""
    variation = np.sin(time * np.pi / 2) * 0.2
    return float(min(1.0, max(0.2, BASE_PROBABILITY + variation)))


class BeatMapGenerator:
    """Walks the beat grid from the first bar, dropping notes at random subdivisions."""

    def __init__(self, beat_info: BeatInfo, rng: np.random.Generator | int | None = None):
        self.bpm = beat_info.bpm
        self.beat_period = beat_info.beat_period
        self.offset = beat_info.offset
        self.first_bar = beat_info.first_bar
        self.rng = np.random.default_rng(rng)

    def generate(self, duration: float) -> list[Note]:
        notes = []
        beat_interval = self.beat_period
        current = self.first_bar + self.offset

        while current < duration:
            if self.rng.random() < note_probability(current):
                notes.append(Note(
                    time=current,
                    lane="left" if self.rng.random() > 0.5 else "right",
                    kind="hold" if self.rng.random() < HOLD_PROBABILITY else "tap",
                ))
            current += beat_interval * SUBDIVISIONS[self.rng.integers(len(SUBDIVISIONS))]

        return sorted(notes, key=lambda n: n.time)
