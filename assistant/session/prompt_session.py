"""
The per-connection conversation loop.

A PromptSession owns one client connection and one conversation log. It
streams model output to the client as it arrives, runs at most one tool
call per round, feeds the result back to the model and repeats until a
round ends without a tool call. The text of the conversation is then
stored as a thread under a freshly minted id, which is the last frame
the client receives.

States: INIT -> RESTORING? -> STREAMING -> (DISPATCHING -> STREAMING)*
-> FINALIZING -> CLOSED, with ERRORED -> CLOSED reachable from anywhere.
"""

from __future__ import annotations

import json
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import anyio
import httpx
from fastapi import status
from redis.asyncio import Redis

from assistant.errors import ChannelWriteError, ThreadStoreError
from assistant.functions.registry import ToolContext, ToolRegistry, ToolSpec
from assistant.logging_config import session_logger
from assistant.models import FunctionCall, Message, Role
from assistant.prompts import build_system_prompt
from assistant.provider.base import (
    AdapterFactory,
    ModelAdapter,
    ModelClientError,
    ModelStreamError,
    StreamUsage,
)
from assistant.query import QueryContext
from assistant.settings import Settings
from assistant.storage.thread_store import restore_thread, store_thread

from .framing import FrameWriter


class SessionState(str, Enum):
    INIT = "init"
    RESTORING = "restoring"
    STREAMING = "streaming"
    DISPATCHING = "dispatching"
    FINALIZING = "finalizing"
    ERRORED = "errored"
    CLOSED = "closed"


@dataclass
class UsageAccumulator:
    """Token totals across every round of one session. Telemetry only."""

    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, usage: Optional[StreamUsage]) -> None:
        if usage is None:
            return
        if usage.prompt_tokens is not None:
            self.input_tokens += usage.prompt_tokens
        if usage.candidates_tokens is not None:
            self.output_tokens += usage.candidates_tokens


@dataclass(frozen=True)
class TurnResult:
    text: str
    function_call: Optional[FunctionCall]


def parse_function_result(result: str) -> Dict[str, Any]:
    """
    Decode a tool result into the object sent back to the model.
    Anything that is not a JSON object becomes {}.
    """
    try:
        decoded = json.loads(result)
    except (TypeError, ValueError):
        return {}
    return decoded if isinstance(decoded, dict) else {}


class PromptSession:
    def __init__(
        self,
        *,
        channel: FrameWriter,
        query: QueryContext,
        redis: Redis,
        registry: ToolRegistry,
        adapter_factory: AdapterFactory,
        config: Settings,
        thread_id: Optional[uuid.UUID] = None,
        prompt_builder: Callable[[QueryContext], str] = build_system_prompt,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._channel = channel
        self._query = query
        self._redis = redis
        self._registry = registry
        self._adapter_factory = adapter_factory
        self._config = config
        self._prompt_builder = prompt_builder
        self._tool_context = ToolContext(
            query=query, settings=config, http_transport=http_transport
        )

        self.thread_id = thread_id or uuid.uuid4()
        self.messages: List[Message] = []
        self.iterations = 0
        self.usage = UsageAccumulator()
        self.state = SessionState.INIT
        self.error: Optional[str] = None
        self._log = session_logger(self.thread_id)

    async def run(self) -> None:
        """
        Drive the session to completion and close the connection.

        Fatal failures are logged once and end the session with an
        internal-error close; nothing is persisted for a failed session.
        """
        try:
            await self._run()
        except ChannelWriteError as exc:
            self._fail(f"write to websocket failed: {exc}")
            await self._channel.close_internal_error("write failed")
        except ModelStreamError as exc:
            self._fail(f"stream from model failed: {exc}")
            await self._channel.close_internal_error("request to model failed")
        except anyio.get_cancelled_exc_class():
            self._fail("session cancelled, client went away")
            raise
        except Exception as exc:
            self._log.exception("unexpected session failure")
            self._fail(f"unexpected failure: {exc}")
            await self._channel.close_internal_error("internal error")
        finally:
            self.state = SessionState.CLOSED

    def _fail(self, message: str) -> None:
        self.state = SessionState.ERRORED
        self.error = message
        self._log.error(message)

    async def _run(self) -> None:
        if not self._query.prompt.strip():
            self._fail("rejecting session without a prompt")
            await self._channel.close(status.WS_1008_POLICY_VIOLATION, "Missing prompt.")
            return

        try:
            adapter = self._adapter_factory(self._config)
        except ModelClientError as exc:
            self._fail(f"error creating model client: {exc}")
            await self._channel.close_internal_error("Error creating client.")
            return

        self.messages.append(Message.from_text(Role.USER, self._query.prompt))

        if self._query.thread_id:
            self.state = SessionState.RESTORING
            try:
                restored = await restore_thread(self._redis, self._query.thread_id)
            except ThreadStoreError as exc:
                self._fail(f"error restoring thread: {exc}")
                await self._channel.close_internal_error("Error restoring thread.")
                return
            self.messages = restored + self.messages

        while await self._iterate(adapter):
            self._log.debug("going around again (iteration %d)", self.iterations)

        await self._finalize()

    def _offered_tools(self) -> List[ToolSpec]:
        if self.iterations > self._config.max_tool_iterations:
            return []
        return self._registry.declarations_for(self._query.supported_actions)

    async def _iterate(self, adapter: ModelAdapter) -> bool:
        """
        Run one round. Returns True when a tool was dispatched and the model
        must be asked again.
        """
        self.state = SessionState.STREAMING
        self.iterations += 1
        tools = self._offered_tools()

        turn = await self._stream_turn(adapter, tools)
        if turn.text.strip():
            self.messages.append(Message.from_text(Role.MODEL, turn.text))

        call = turn.function_call
        if call is not None and not tools:
            self._log.warning(
                "ignoring call to %s in round %d: no tools were offered",
                call.name,
                self.iterations,
            )
            call = None

        if call is None:
            await self._channel.send_done()
            self._log.info("stopping after %d round(s)", self.iterations)
            return False

        await self._dispatch(call)
        return True

    async def _stream_turn(self, adapter: ModelAdapter, tools: Sequence[ToolSpec]) -> TurnResult:
        content = ""
        function_call: Optional[FunctionCall] = None
        last_usage: Optional[StreamUsage] = None

        stream = adapter.stream(
            history=list(self.messages),
            system_prompt=self._prompt_builder(self._query),
            tools=tools,
            temperature=self._config.temperature,
        )
        async with aclosing(stream):
            async for chunk in stream:
                if chunk.usage is not None:
                    last_usage = chunk.usage
                for call in chunk.function_calls:
                    if function_call is not None:
                        # One call per round; the most recent one wins.
                        self._log.warning(
                            "dropping call to %s, model sent another call (%s) in the same round",
                            function_call.name,
                            call.name,
                        )
                    function_call = call
                if chunk.text:
                    await self._channel.send_content(chunk.text)
                content += chunk.text

        # Gemini reports cumulative counts on each chunk; count the last one.
        self.usage.add(last_usage)
        return TurnResult(text=content, function_call=function_call)

    async def _dispatch(self, call: FunctionCall) -> None:
        self.state = SessionState.DISPATCHING
        self.messages.append(Message.from_function_call(call))
        self._log.info("calling function %s", call.name)

        args_json = json.dumps(call.args, ensure_ascii=False)
        await self._channel.send_function_notice(
            self._registry.summarise_function(call.name, args_json)
        )

        try:
            if self._registry.is_action(call.name):
                result = await self._registry.call_action(
                    call.name, args_json, self._tool_context, self._channel
                )
            else:
                result = await self._registry.call_function(
                    call.name, args_json, self._tool_context
                )
        except ChannelWriteError:
            raise
        except Exception as exc:
            self._log.warning("call function %s failed: %s", call.name, exc)
            result = json.dumps(
                {"error": f"failed to call function: {exc}"}, ensure_ascii=False
            )

        self.messages.append(
            Message.from_function_response(call.name, parse_function_result(result))
        )

    async def _finalize(self) -> None:
        self.state = SessionState.FINALIZING
        try:
            await store_thread(
                self._redis,
                self.thread_id,
                self.messages,
                ttl_seconds=self._config.thread_ttl_seconds,
            )
        except ThreadStoreError as exc:
            self._fail(f"store thread failed: {exc}")
            await self._channel.close_internal_error("store thread failed")
            return

        await self._channel.send_thread_id(self.thread_id)
        self._log.info(
            "request handled successfully (rounds=%d, input_tokens=%d, output_tokens=%d)",
            self.iterations,
            self.usage.input_tokens,
            self.usage.output_tokens,
        )
        await self._channel.close()


__all__ = [
    "PromptSession",
    "SessionState",
    "TurnResult",
    "UsageAccumulator",
    "parse_function_result",
]
