from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import anyio
from redis.exceptions import ConnectionError as RedisConnectionError

from assistant.functions.registry import ToolSpec
from assistant.models import FunctionCall, Message
from assistant.provider.base import StreamChunk, StreamUsage


class InMemoryRedis:
    """
    Async stand-in for the subset of redis.asyncio.Redis the thread store uses.
    """

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.set_calls: List[str] = []
        self.fail_reads = False
        self.fail_writes = False
        self.undecodable: set = set()

    async def get(self, key: str):
        if self.fail_reads:
            raise RedisConnectionError("redis is down")
        if key in self.undecodable:
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None):
        if self.fail_writes:
            raise RedisConnectionError("redis is down")
        self.set_calls.append(key)
        self._data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key: str):
        self._data.pop(key, None)
        self.ttls.pop(key, None)

    def raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put_raw(self, key: str, value: str) -> None:
        self._data[key] = value


class FakeSocket:
    """
    Records frames sent through FrameWriter; optionally fails after N frames.
    """

    def __init__(self, fail_after: Optional[int] = None) -> None:
        self.frames: List[str] = []
        self.closed_with: Optional[tuple[int, str]] = None
        self._fail_after = fail_after

    async def send_text(self, data: str) -> None:
        if self._fail_after is not None and len(self.frames) >= self._fail_after:
            raise RuntimeError("Unexpected ASGI message 'websocket.send', after sending 'websocket.close'.")
        self.frames.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = (code, reason or "")

    @property
    def tags(self) -> List[str]:
        return [frame[:1] for frame in self.frames]


TurnItem = Union[StreamChunk, Exception]


class ScriptedAdapter:
    """
    Model adapter that replays scripted rounds. The last round repeats once
    the script runs out, so a single tool-call round loops forever unless
    the session stops it.
    """

    def __init__(self, rounds: Sequence[Sequence[TurnItem]], *, block: bool = False) -> None:
        self._rounds = [list(r) for r in rounds]
        self.calls: List[Dict[str, Any]] = []
        self.block = block
        self._started: Optional[anyio.Event] = None

    @property
    def started(self) -> anyio.Event:
        # Created on first use so it binds to whichever loop runs the session.
        if self._started is None:
            self._started = anyio.Event()
        return self._started

    async def stream(
        self,
        *,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[ToolSpec],
        temperature: float,
    ):
        self.calls.append(
            {
                "history": list(history),
                "system_prompt": system_prompt,
                "tools": [t.name for t in tools],
                "temperature": temperature,
            }
        )
        index = min(len(self.calls) - 1, len(self._rounds) - 1)
        self.started.set()
        if self.block:
            await anyio.sleep_forever()
        for item in self._rounds[index]:
            if isinstance(item, Exception):
                raise item
            yield item


def adapter_factory_for(adapter: Any) -> Callable[[Any], Any]:
    def _factory(config):
        return adapter

    return _factory


def text(value: str, **usage: int) -> StreamChunk:
    return StreamChunk(
        text=value,
        usage=StreamUsage(
            prompt_tokens=usage.get("prompt"), candidates_tokens=usage.get("output")
        )
        if usage
        else None,
    )


def call(name: str, **args: Any) -> StreamChunk:
    return StreamChunk(function_calls=[FunctionCall(name=name, args=args)])
