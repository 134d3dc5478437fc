"""Core data models for beat-grid analysis."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Peak:
    """Loudest sample within one analysis window."""
    position: int  # sample index
    volume: float

    def time(self, sample_rate: int) -> float:
        return self.position / sample_rate


@dataclass
class TempoGroup:
    """A bucket of inter-peak intervals that fold to the same tempo."""
    tempo: float  # BPM, folded into the configured range
    count: int = 1
    position: int = 0  # anchor: position of the peak that created the group
    peaks: list[Peak] = field(default_factory=list)


@dataclass(frozen=True)
class Offsets:
    """Beat-grid phase and first downbeat, in seconds."""
    offset: float
    first_bar: float


@dataclass(frozen=True)
class PerfTimings:
    """Per-stage wall-clock durations in seconds."""
    total: float
    fetch: float
    render: float
    process: float


@dataclass
class PerfMarks:
    """Raw perf_counter marks collected while a track moves through stages."""
    m0: float = 0.0
    m1: float = 0.0
    m2: float = 0.0
    m3: float = 0.0

    def durations(self) -> PerfTimings:
        return PerfTimings(
            total=self.m3 - self.m0,
            fetch=self.m1 - self.m0,
            render=self.m2 - self.m1,
            process=self.m3 - self.m2,
        )


@dataclass(frozen=True)
class BeatInfo:
    """Complete analysis result."""
    bpm: float
    offset: float
    first_bar: float
    perf: PerfTimings | None = None

    @property
    def beat_period(self) -> float:
        return 60.0 / self.bpm


@dataclass(frozen=True)
class Note:
    """A single chart note."""
    time: float  # seconds
    lane: str  # "left" | "right"
    kind: str = "tap"  # "tap" | "hold"
