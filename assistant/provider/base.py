from __future__ import annotations

from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, List, Optional, Protocol, Sequence

from assistant.functions.registry import ToolSpec
from assistant.models import FunctionCall, Message
from assistant.settings import Settings


class ModelClientError(RuntimeError):
    """Raised when a model client cannot be constructed."""


class ModelStreamError(RuntimeError):
    """Raised when a streamed model request fails mid-flight."""


@dataclass(frozen=True)
class StreamUsage:
    prompt_tokens: Optional[int] = None
    candidates_tokens: Optional[int] = None


@dataclass(frozen=True)
class StreamChunk:
    """
    One partial response from the model.

    `function_calls` lists every call reported in this chunk; the session
    decides how many of them it honours.
    """

    text: str = ""
    function_calls: List[FunctionCall] = field(default_factory=list)
    usage: Optional[StreamUsage] = None


class ModelAdapter(Protocol):
    def stream(
        self,
        *,
        history: Sequence[Message],
        system_prompt: str,
        tools: Sequence[ToolSpec],
        temperature: float,
    ) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream a reply for `history`.

        Exhausting the iterator is the normal end of the reply; any failure
        is raised as ModelStreamError.
        """
        ...


AdapterFactory = Callable[[Settings], ModelAdapter]


__all__ = [
    "AdapterFactory",
    "ModelAdapter",
    "ModelClientError",
    "ModelStreamError",
    "StreamChunk",
    "StreamUsage",
]
