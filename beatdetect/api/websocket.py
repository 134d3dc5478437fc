"""WebSocket endpoint for live tap tempo."""

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from beatdetect.api.schemas import BpmMessage, TapMessage
from beatdetect.config import settings
from beatdetect.tap_tempo import TapTempoTracker

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_tap(raw: str) -> TapMessage:
    """Any text frame is a tap; JSON frames may carry a client timestamp."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return TapMessage()
    if not isinstance(payload, dict):
        return TapMessage()
    return TapMessage.model_validate(payload)


class TapClock:
    """Pins one connection to a single timestamp source.

    The first tap decides: if it carries ``time``, every later tap must too;
    otherwise taps are stamped by the server on arrival and client times are
    ignored.
    """

    def __init__(self):
        self.client_time: bool | None = None

    def stamp(self, message: TapMessage) -> float | None:
        if self.client_time is None:
            self.client_time = message.time is not None
        if not self.client_time:
            return None
        if message.time is None:
            raise ValueError("this session uses client timestamps; every tap needs 'time'")
        return message.time


@router.websocket("/ws/tap")
async def tap_tempo(websocket: WebSocket):
    """Tap tempo via WebSocket.

    Protocol:
    - Client sends one text frame per tap, optionally {"type": "tap", "time": ms}
    - Server sends {"type": "bpm", "bpm": N} on every tap after the first,
      and {"type": "bpm", "bpm": "--"} when the session idles out
    - Server sends {"type": "error", "message": ...} for a rejected frame
    """
    await websocket.accept()

    loop = asyncio.get_event_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    def post(message: dict):
        # idle resets arrive on the timer thread
        loop.call_soon_threadsafe(outbox.put_nowait, message)

    tracker = TapTempoTracker(
        lambda bpm: post(BpmMessage(bpm=bpm).model_dump()),
        precision=settings.tap_precision,
        idle_timeout=settings.tap_idle_seconds,
    )
    clock = TapClock()

    async def sender():
        while True:
            message = await outbox.get()
            await websocket.send_json(message)

    send_task = asyncio.create_task(sender())
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                timestamp = clock.stamp(_parse_tap(raw))
            except ValueError as e:
                post({"type": "error", "message": str(e)})
                continue
            tracker.tap(timestamp)
    except WebSocketDisconnect:
        pass
    finally:
        tracker.close()
        send_task.cancel()
        try:
            await send_task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Tap socket sender failed")
