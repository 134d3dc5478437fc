"""Analysis orchestrator - fetch, render and process a track into BeatInfo."""

import asyncio
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field

import numpy as np

from beatdetect.analysis.models import BeatInfo, PerfMarks
from beatdetect.analysis.offsets import estimate_offsets
from beatdetect.analysis.peaks import extract_peaks
from beatdetect.analysis.tempo import cluster_tempos, float_round, select_tempo
from beatdetect.audio.loader import fetch_track, load_audio
from beatdetect.audio.preprocessing import render, to_stereo
from beatdetect.config import Settings, settings
from beatdetect.errors import ConfigurationError, DetectionFailure

logger = logging.getLogger(__name__)


@dataclass
class TrackRequest:
    url: str
    name: str | None = None
    perf: PerfMarks | None = None


@dataclass
class RawTrack:
    data: bytes | None
    suffix: str = ""
    name: str | None = None
    perf: PerfMarks | None = None


@dataclass
class RenderedTrack:
    """Filtered stereo audio plus the unfiltered buffer it came from."""
    rendered: np.ndarray | None
    raw: np.ndarray | None
    sr: int
    name: str | None = None
    perf: PerfMarks | None = field(default=None)


def _suffix_from_url(url: str) -> str:
    path = url.split("?", 1)[0].rsplit("/", 1)[-1]
    return "." + path.rsplit(".", 1)[-1].lower() if "." in path else ""


class BeatDetector:
    """Runs the beat-grid pipeline with one configuration."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def get_beat_info(self, url: str, name: str | None = None) -> BeatInfo:
        """Fetch, decode and analyze the track at *url*.

        Fetch and render run in the default executor; cancelling the
        awaiting task abandons whichever of them is pending.
        """
        request = TrackRequest(url=url, name=name, perf=PerfMarks(m0=time.perf_counter()))
        loop = asyncio.get_event_loop()
        raw = await loop.run_in_executor(None, self._fetch_raw_track, request)
        rendered = await loop.run_in_executor(None, self._render_track, raw)
        return self._process_rendered(rendered)

    def analyze_url(self, url: str, name: str | None = None) -> BeatInfo:
        """Blocking counterpart of get_beat_info."""
        request = TrackRequest(url=url, name=name, perf=PerfMarks(m0=time.perf_counter()))
        raw = self._fetch_raw_track(request)
        return self._process_rendered(self._render_track(raw))

    def analyze_file(self, file_path: str) -> BeatInfo:
        """Analyze an audio file on disk."""
        now = time.perf_counter()
        logger.info(f"Decoding {file_path}")
        audio, sr = load_audio(file_path, sr=self.config.sample_rate)
        perf = PerfMarks(m0=now, m1=now)
        return self._process_rendered(self._render_audio(audio, sr, perf, name=str(file_path)))

    def analyze_bytes(self, data: bytes, suffix: str = "", name: str | None = None) -> BeatInfo:
        """Analyze an in-memory encoded audio file (e.g. an upload)."""
        now = time.perf_counter()
        raw = RawTrack(data=data, suffix=suffix, name=name, perf=PerfMarks(m0=now, m1=now))
        return self._process_rendered(self._render_track(raw))

    def analyze_audio(self, audio: np.ndarray, sr: int | None = None, prefiltered: bool = False) -> BeatInfo:
        """Analyze decoded audio shaped (channels, samples) or (samples,).

        With *prefiltered* the buffer is taken as already band-limited and
        the render stage is skipped.
        """
        if audio is None:
            raise ConfigurationError("no audio buffer supplied", stage="render")
        sr = sr or self.config.sample_rate
        now = time.perf_counter()
        perf = PerfMarks(m0=now, m1=now)
        stereo = to_stereo(audio)
        if prefiltered:
            perf.m2 = time.perf_counter()
            track = RenderedTrack(rendered=stereo, raw=stereo, sr=sr, perf=perf)
        else:
            track = self._render_audio(stereo, sr, perf)
        return self._process_rendered(track)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _fetch_raw_track(self, request: TrackRequest) -> RawTrack:
        if request is None:
            raise ConfigurationError("no request sent to the fetch stage", stage="fetch")
        if not request.url or not isinstance(request.url, str) or request.perf is None:
            raise ConfigurationError("request sent to the fetch stage is invalid", stage="fetch")

        logger.info(f"Fetch track{' ' + request.name if request.name else ''}")
        data = fetch_track(request.url, timeout=self.config.fetch_timeout,
                           user_agent=self.config.user_agent)
        request.perf.m1 = time.perf_counter()
        logger.info(f"  {len(data)} bytes in {request.perf.m1 - request.perf.m0:.2f}s")
        return RawTrack(data=data, suffix=_suffix_from_url(request.url),
                        name=request.name, perf=request.perf)

    def _render_track(self, raw: RawTrack) -> RenderedTrack:
        if raw is None:
            raise ConfigurationError("no track sent to the render stage", stage="render")
        if not raw.data or raw.perf is None:
            raise ConfigurationError("track sent to the render stage is invalid", stage="render")

        # librosa needs a file path for some formats
        with tempfile.NamedTemporaryFile(suffix=raw.suffix, delete=False) as tmp:
            tmp.write(raw.data)
            tmp_path = tmp.name
        try:
            audio, sr = load_audio(tmp_path, sr=self.config.sample_rate)
        finally:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        return self._render_audio(audio, sr, raw.perf, name=raw.name)

    def _render_audio(self, audio: np.ndarray, sr: int, perf: PerfMarks, name: str | None = None) -> RenderedTrack:
        logger.info("Offline rendering of the track")
        stereo = to_stereo(audio)
        rendered = render(stereo, sr, self.config.low_pass_freq, self.config.high_pass_freq)
        perf.m2 = time.perf_counter()
        return RenderedTrack(rendered=rendered, raw=stereo, sr=sr, name=name, perf=perf)

    def _process_rendered(self, track: RenderedTrack) -> BeatInfo:
        if track is None:
            raise ConfigurationError("no track sent to the process stage")
        if track.rendered is None or track.raw is None or track.perf is None:
            raise ConfigurationError("track sent to the process stage is invalid")
        if track.rendered.ndim != 2 or track.rendered.shape[0] < 2:
            raise ConfigurationError(
                f"process stage needs a stereo buffer, got shape {track.rendered.shape}"
            )

        cfg = self.config
        duration = track.rendered.shape[1] / track.sr
        logger.info(f"Collect beat info from {duration:.1f}s of audio at {track.sr}Hz")

        logger.info("Step 1: Peak extraction")
        peaks = extract_peaks(track.rendered[:2], track.sr, cfg.peak_window_seconds)
        if not any(p.volume > 0 for p in peaks):
            raise DetectionFailure("buffer is silent; no peaks to analyze")
        logger.info(f"  {len(peaks)} peaks kept")

        logger.info("Step 2: Tempo clustering")
        groups = cluster_tempos(
            peaks, track.sr, cfg.bpm_range,
            round_to_integer=cfg.round_to_integer, precision=cfg.precision,
        )
        for g in groups:
            logger.info(f"  {g.tempo} BPM: {g.count} votes")
        bpm = select_tempo(groups)

        logger.info("Step 3: Beat phase")
        source = track.raw if cfg.offset_source == "raw" else track.rendered
        offsets = estimate_offsets(
            source[0], track.sr, bpm,
            time_signature=cfg.time_signature,
            window_seconds=cfg.peak_window_seconds,
        )

        track.perf.m3 = time.perf_counter()
        logger.info("Analysis done")

        return BeatInfo(
            bpm=bpm,
            offset=float_round(offsets.offset, cfg.precision),
            first_bar=float_round(offsets.first_bar, cfg.precision),
            perf=track.perf.durations() if cfg.instrumentation else None,
        )
