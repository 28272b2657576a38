"""
Model adapter for Google Gemini via the official google-genai SDK.

The SDK's streaming iterator is synchronous, so it is consumed on a
background thread and relayed to the session's event loop through a
queue. Cancelling the consumer abandons the blocking wait immediately
and asks the worker to stop pulling further chunks.
"""

from __future__ import annotations

import threading
from queue import SimpleQueue
from typing import Any, AsyncGenerator, List, Optional, Sequence

import anyio
from google import genai
from google.genai import types

from assistant.functions.registry import ToolSpec
from assistant.logging_config import logger
from assistant.models import FunctionCall, Message
from assistant.settings import Settings

from .base import ModelClientError, ModelStreamError, StreamChunk, StreamUsage


class GoogleSDKError(ModelStreamError):
    """Raised when the google-genai SDK returns an error mid-stream."""


def _create_client(api_key: str) -> genai.Client:
    if not api_key:
        raise ModelClientError("GEMINI_API_KEY is not configured")
    try:
        return genai.Client(api_key=api_key)
    except Exception as exc:
        raise ModelClientError(f"failed to initialise google-genai: {exc}") from exc


def _part_to_sdk(part) -> types.Part:
    if part.function_call is not None:
        return types.Part(
            function_call=types.FunctionCall(
                name=part.function_call.name, args=part.function_call.args
            )
        )
    if part.function_response is not None:
        return types.Part(
            function_response=types.FunctionResponse(
                name=part.function_response.name,
                response=part.function_response.response,
            )
        )
    return types.Part(text=part.text or "")


def messages_to_contents(messages: Sequence[Message]) -> List[types.Content]:
    """
    Convert the session's conversation log into Gemini contents.
    """
    return [
        types.Content(role=m.role.value, parts=[_part_to_sdk(p) for p in m.parts])
        for m in messages
    ]


def tools_to_sdk(tools: Sequence[ToolSpec]) -> Optional[List[types.Tool]]:
    if not tools:
        return None
    declarations = [
        types.FunctionDeclaration(
            name=spec.name,
            description=spec.description,
            parameters=spec.parameters,
        )
        for spec in tools
    ]
    return [types.Tool(function_declarations=declarations)]


def build_config(
    *, system_prompt: str, tools: Sequence[ToolSpec], temperature: float
) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=types.Content(parts=[types.Part(text=system_prompt)]),
        temperature=temperature,
        candidate_count=1,
        tools=tools_to_sdk(tools),
    )


def _usage_from_response(response: Any) -> Optional[StreamUsage]:
    metadata = getattr(response, "usage_metadata", None)
    if metadata is None:
        return None
    return StreamUsage(
        prompt_tokens=getattr(metadata, "prompt_token_count", None),
        candidates_tokens=getattr(metadata, "candidates_token_count", None),
    )


def chunk_from_response(response: Any) -> StreamChunk:
    """
    Flatten one streamed GenerateContentResponse into a StreamChunk.
    Only the first candidate is read.
    """
    usage = _usage_from_response(response)
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return StreamChunk(usage=usage)

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    text = ""
    calls: List[FunctionCall] = []
    for part in parts:
        if getattr(part, "text", None):
            text += part.text
        fc = getattr(part, "function_call", None)
        if fc is not None and getattr(fc, "name", None):
            calls.append(FunctionCall(name=fc.name, args=dict(fc.args or {})))
    return StreamChunk(text=text, function_calls=calls, usage=usage)


class GoogleModelAdapter:
    def __init__(self, *, api_key: str, model: str, client: Any = None) -> None:
        self._client = client if client is not None else _create_client(api_key)
        self._model = model

    async def stream(
        self,
        *,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[ToolSpec],
        temperature: float,
    ) -> AsyncGenerator[StreamChunk, None]:
        contents = messages_to_contents(history)
        config = build_config(
            system_prompt=system_prompt, tools=tools, temperature=temperature
        )

        queue: SimpleQueue[Any] = SimpleQueue()
        sentinel = object()
        stop = threading.Event()

        def _worker():
            try:
                for response in self._client.models.generate_content_stream(
                    model=self._model, contents=contents, config=config
                ):
                    if stop.is_set():
                        break
                    queue.put(response)
            except Exception as exc:
                queue.put(exc)
            finally:
                queue.put(sentinel)

        thread = threading.Thread(target=_worker, daemon=True)
        thread.start()

        try:
            while True:
                item = await anyio.to_thread.run_sync(queue.get, abandon_on_cancel=True)
                if item is sentinel:
                    break
                if isinstance(item, Exception):
                    raise GoogleSDKError(f"google-genai stream failed: {item}") from item
                yield chunk_from_response(item)
        finally:
            stop.set()
            logger.debug("google-genai stream for %s finished", self._model)


def create_google_adapter(config: Settings) -> GoogleModelAdapter:
    return GoogleModelAdapter(api_key=config.gemini_api_key, model=config.gemini_model)


__all__ = [
    "GoogleModelAdapter",
    "GoogleSDKError",
    "build_config",
    "chunk_from_response",
    "create_google_adapter",
    "messages_to_contents",
    "tools_to_sdk",
]
