"""
Client-supplied session parameters.

Everything the client sends on the query string when opening a session
is captured once into a QueryContext, which is then passed explicitly
to the system prompt builder and to tool handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional


def _parse_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class QueryContext:
    prompt: str
    thread_id: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    language: Optional[str] = None
    supported_actions: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "QueryContext":
        """
        Build from query parameters: prompt, threadId, tz, lat, lon, lang
        and actions (comma separated capability names).
        """
        actions = frozenset(
            item.strip()
            for item in (params.get("actions") or "").split(",")
            if item.strip()
        )
        return cls(
            prompt=params.get("prompt") or "",
            thread_id=(params.get("threadId") or "").strip() or None,
            timezone=(params.get("tz") or "").strip() or None,
            latitude=_parse_float(params.get("lat")),
            longitude=_parse_float(params.get("lon")),
            language=(params.get("lang") or "").strip() or None,
            supported_actions=actions,
        )

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


__all__ = ["QueryContext"]
