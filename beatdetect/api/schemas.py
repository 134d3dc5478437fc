"""Pydantic response models for API."""

from pydantic import BaseModel


class PerfResponse(BaseModel):
    total: float
    fetch: float
    render: float
    process: float


class BeatInfoResponse(BaseModel):
    bpm: float
    offset: float
    first_bar: float
    perf: PerfResponse | None = None


class NoteResponse(BaseModel):
    time: float
    lane: str
    kind: str


class BeatMapResponse(BaseModel):
    beat_info: BeatInfoResponse
    duration: float
    notes: list[NoteResponse]


class AnalyzeUrlRequest(BaseModel):
    url: str
    name: str | None = None


# WebSocket message types

class TapMessage(BaseModel):
    type: str = "tap"
    time: float | None = None  # ms; server clock when omitted


class BpmMessage(BaseModel):
    type: str = "bpm"
    bpm: float | str
