"""
Registered-capability table for the tools the model may call.

Each ToolSpec ties a name to its argument schema, its classification
(pure function vs. side-effecting action) and its handler. Actions are
only offered when the client advertises the matching capability, and
they receive the session's FrameWriter so they can talk to the client
directly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import httpx

from assistant.errors import ToolArgumentsError, UnknownToolError
from assistant.logging_config import logger
from assistant.query import QueryContext
from assistant.session.framing import FrameWriter
from assistant.settings import Settings


@dataclass
class ToolContext:
    query: QueryContext
    settings: Settings
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    def http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """
        Short-lived AsyncClient for tool calls that reach the network.
        """
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            transport=self.http_transport,
            **kwargs,
        )


FunctionHandler = Callable[[Dict[str, Any], ToolContext], Awaitable[Any]]
ActionHandler = Callable[[Dict[str, Any], ToolContext, FrameWriter], Awaitable[Any]]
Summariser = Callable[[Dict[str, Any]], str]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    handler: Union[FunctionHandler, ActionHandler]
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "OBJECT", "properties": {}}
    )
    is_action: bool = False
    capability: Optional[str] = None
    summarise: Optional[Summariser] = None


def _decode_args(name: str, args_json: str) -> Dict[str, Any]:
    if not args_json or not args_json.strip():
        return {}
    try:
        args = json.loads(args_json)
    except json.JSONDecodeError as exc:
        raise ToolArgumentsError(f"{name}: arguments are not valid JSON: {exc}") from exc
    if args is None:
        return {}
    if not isinstance(args, dict):
        raise ToolArgumentsError(f"{name}: arguments must be a JSON object")
    return args


def _encode_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class ToolRegistry:
    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._specs: Dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"tool {spec.name!r} is already registered")
        if spec.is_action and not spec.capability:
            raise ValueError(f"action {spec.name!r} must name the capability it requires")
        self._specs[spec.name] = spec

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._specs.get(name)

    def names(self) -> List[str]:
        return list(self._specs)

    def is_action(self, name: str) -> bool:
        spec = self._specs.get(name)
        return bool(spec and spec.is_action)

    def declarations_for(self, capabilities: Iterable[str]) -> List[ToolSpec]:
        """
        All functions, plus the actions whose capability the client supports.
        """
        supported = set(capabilities)
        return [
            spec
            for spec in self._specs.values()
            if not spec.is_action or spec.capability in supported
        ]

    def _require(self, name: str, *, action: bool) -> ToolSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownToolError(name)
        if spec.is_action != action:
            raise UnknownToolError(name, "action called as function" if spec.is_action else "function called as action")
        return spec

    async def call_function(self, name: str, args_json: str, ctx: ToolContext) -> str:
        spec = self._require(name, action=False)
        args = _decode_args(name, args_json)
        return _encode_result(await spec.handler(args, ctx))

    async def call_action(
        self, name: str, args_json: str, ctx: ToolContext, channel: FrameWriter
    ) -> str:
        spec = self._require(name, action=True)
        if spec.capability not in ctx.query.supported_actions:
            raise UnknownToolError(name, "client does not support action")
        args = _decode_args(name, args_json)
        return _encode_result(await spec.handler(args, ctx, channel))

    def summarise_function(self, name: str, args_json: str) -> str:
        """
        Client-facing description of an in-flight call. Never raises.
        """
        spec = self._specs.get(name)
        if spec is not None and spec.summarise is not None:
            try:
                summary = spec.summarise(_decode_args(name, args_json))
                if summary:
                    return summary
            except Exception as exc:
                logger.debug("summarising %s failed: %s", name, exc)
        return f"Calling {name}..."


__all__ = [
    "ActionHandler",
    "FunctionHandler",
    "Summariser",
    "ToolContext",
    "ToolRegistry",
    "ToolSpec",
]
