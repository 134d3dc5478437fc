"""Audio retrieval and decoding."""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from io import BytesIO
from pathlib import Path
from typing import Union

import librosa
import numpy as np

from beatdetect.audio.preprocessing import to_stereo
from beatdetect.errors import DecodeError, RetrievalError

logger = logging.getLogger(__name__)


def fetch_track(url: str, timeout: float = 60.0, user_agent: str = "beatdetect/0.1") -> bytes:
    """Download the raw bytes of an audio file.

    ``file://`` URLs are supported, which keeps local runs off the network.
    """
    req = urllib.request.Request(url, headers={"User-Agent": user_agent})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise RetrievalError("404 File not found.", not_found=True) from e
        raise RetrievalError(f"HTTP {e.code} while fetching {url}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        # file:// misses surface as URLError wrapping FileNotFoundError
        not_found = isinstance(getattr(e, "reason", None), FileNotFoundError)
        raise RetrievalError(f"could not fetch {url}: {e}", not_found=not_found) from e


def load_audio(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int = 44100,
) -> tuple[np.ndarray, int]:
    """Load an audio file or buffer as stereo.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. Defaults to 44100 Hz.

    Returns
    -------
    tuple[np.ndarray, int]
        A tuple of (audio_array shaped (2, samples), sample_rate).
    """
    try:
        audio, sample_rate = librosa.load(file_path_or_buffer, sr=sr, mono=False)
    except Exception as e:
        raise DecodeError(f"could not decode audio: {e}", stage="render") from e
    if audio.size == 0:
        raise DecodeError("decoded audio is empty", stage="render")
    return to_stereo(audio), sample_rate
