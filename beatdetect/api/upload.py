"""Analysis endpoints: uploaded files and remote URLs."""

import asyncio
import logging
import os
import tempfile

from fastapi import APIRouter, File, HTTPException, UploadFile

from beatdetect.analysis.beatmap import BeatMapGenerator
from beatdetect.analysis.engine import BeatDetector
from beatdetect.analysis.models import BeatInfo
from beatdetect.api.schemas import (
    AnalyzeUrlRequest,
    BeatInfoResponse,
    BeatMapResponse,
    NoteResponse,
    PerfResponse,
)
from beatdetect.audio.loader import load_audio
from beatdetect.config import settings
from beatdetect.errors import (
    BeatDetectError,
    ConfigurationError,
    DecodeError,
    DetectionFailure,
    RetrievalError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".aac", ".wma"}


def beat_info_to_response(info: BeatInfo) -> BeatInfoResponse:
    return BeatInfoResponse(
        bpm=info.bpm,
        offset=info.offset,
        first_bar=info.first_bar,
        perf=PerfResponse(
            total=info.perf.total,
            fetch=info.perf.fetch,
            render=info.perf.render,
            process=info.perf.process,
        ) if info.perf else None,
    )


def error_to_http(e: BeatDetectError) -> HTTPException:
    """Map a pipeline error to an HTTP error naming the failed stage."""
    if isinstance(e, ConfigurationError):
        status = 400
    elif isinstance(e, RetrievalError):
        status = 404 if e.not_found else 502
    elif isinstance(e, (DecodeError, DetectionFailure)):
        status = 422
    else:
        status = 500
    return HTTPException(status, f"{type(e).__name__} in {e.stage}: {e.args[0]}")


def _suffix(filename: str | None) -> str:
    if filename and "." in filename:
        return "." + filename.rsplit(".", 1)[-1].lower()
    return ""


async def _read_upload(file: UploadFile) -> bytes:
    ext = _suffix(file.filename)
    if ext and ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported format. Use: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    content = await file.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(400, f"File too large (max {settings.max_upload_mb} MB)")
    if not content:
        raise HTTPException(400, "Empty file")
    return content


@router.post("/analyze", response_model=BeatInfoResponse)
async def analyze_file(file: UploadFile = File(...)):
    """Detect tempo, beat offset and first bar of an uploaded audio file."""
    content = await _read_upload(file)
    try:
        loop = asyncio.get_event_loop()
        info = await loop.run_in_executor(
            None,
            lambda: BeatDetector().analyze_bytes(content, suffix=_suffix(file.filename), name=file.filename),
        )
    except BeatDetectError as e:
        logger.warning(f"Analysis of {file.filename} failed: {e}")
        raise error_to_http(e)
    except Exception:
        logger.exception(f"Analysis of {file.filename} crashed")
        raise HTTPException(500, "Analysis failed")
    return beat_info_to_response(info)


@router.post("/analyze/url", response_model=BeatInfoResponse)
async def analyze_url(request: AnalyzeUrlRequest):
    """Fetch a track by URL and analyze it."""
    try:
        info = await BeatDetector().get_beat_info(request.url, name=request.name)
    except BeatDetectError as e:
        logger.warning(f"Analysis of {request.url} failed: {e}")
        raise error_to_http(e)
    except Exception:
        logger.exception(f"Analysis of {request.url} crashed")
        raise HTTPException(500, "Analysis failed")
    return beat_info_to_response(info)


@router.post("/beatmap", response_model=BeatMapResponse)
async def beatmap(file: UploadFile = File(...), seed: int | None = None):
    """Analyze an uploaded file and lay a note chart over its beat grid."""
    content = await _read_upload(file)
    config = settings.model_copy(update={"precision": settings.beat_map_precision})

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=_suffix(file.filename), delete=False) as tmp:
            tmp.write(content)
            tmp_path = tmp.name
        loop = asyncio.get_event_loop()
        audio, sr = await loop.run_in_executor(None, load_audio, tmp_path, config.sample_rate)
        info = await loop.run_in_executor(None, BeatDetector(config).analyze_audio, audio, sr)
    except BeatDetectError as e:
        logger.warning(f"Beat map for {file.filename} failed: {e}")
        raise error_to_http(e)
    except Exception:
        logger.exception(f"Beat map for {file.filename} crashed")
        raise HTTPException(500, "Analysis failed")
    finally:
        if tmp_path:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass

    duration = audio.shape[1] / sr
    notes = BeatMapGenerator(info, rng=seed).generate(duration)
    return BeatMapResponse(
        beat_info=beat_info_to_response(info),
        duration=duration,
        notes=[NoteResponse(time=n.time, lane=n.lane, kind=n.kind) for n in notes],
    )
