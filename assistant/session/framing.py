"""
Outbound framing for assistant sessions.

Every message to the client is one text frame whose first character is
a tag:

    c  content delta        raw text chunk
    f  tool-call notice     human readable summary of the call
    a  action request       JSON object produced by an action handler
    d  turn done            empty
    t  session complete     new thread id

The session loop and action handlers share one FrameWriter; its lock
keeps frames whole and in order.
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import Any, Dict, Protocol

from fastapi import WebSocketDisconnect, status

from assistant.errors import ChannelWriteError
from assistant.logging_config import logger


class FrameTag(str, Enum):
    CONTENT = "c"
    FUNCTION_CALL = "f"
    ACTION = "a"
    DONE = "d"
    THREAD = "t"


class TextSocket(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class FrameWriter:
    def __init__(self, socket: TextSocket) -> None:
        self._socket = socket
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, tag: FrameTag, payload: str = "") -> None:
        """
        Write one frame. Transport failures raise ChannelWriteError.
        """
        async with self._lock:
            if self._closed:
                raise ChannelWriteError(f"connection already closed, dropping {tag.value!r} frame")
            try:
                await self._socket.send_text(tag.value + payload)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                raise ChannelWriteError(f"write of {tag.value!r} frame failed: {exc}") from exc

    async def send_content(self, text: str) -> None:
        await self.send(FrameTag.CONTENT, text)

    async def send_function_notice(self, summary: str) -> None:
        await self.send(FrameTag.FUNCTION_CALL, summary)

    async def send_action(self, payload: Dict[str, Any]) -> None:
        await self.send(FrameTag.ACTION, json.dumps(payload, ensure_ascii=False))

    async def send_done(self) -> None:
        await self.send(FrameTag.DONE)

    async def send_thread_id(self, thread_id: object) -> None:
        await self.send(FrameTag.THREAD, str(thread_id))

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: str = "") -> None:
        """
        Close the connection once. Failures are logged, never raised: by the
        time we close, the peer may already be gone.
        """
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                await self._socket.close(code=code, reason=reason)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("closing websocket (code=%s) failed: %s", code, exc)

    async def close_internal_error(self, reason: str) -> None:
        await self.close(status.WS_1011_INTERNAL_ERROR, reason)


__all__ = ["FrameTag", "FrameWriter", "TextSocket"]
