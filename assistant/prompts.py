from __future__ import annotations

import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .query import QueryContext

_BASE_PROMPT = (
    "You are a helpful voice assistant running on a small wearable device. "
    "Answers are read on a tiny screen, so keep them short and plain: no "
    "markdown, no tables, and at most a few sentences unless the user asks "
    "for more. Use the available tools whenever they can give a more "
    "accurate answer than your own knowledge."
)


def _local_now(query: QueryContext, now: Optional[datetime.datetime]) -> datetime.datetime:
    tz: datetime.tzinfo = datetime.timezone.utc
    if query.timezone:
        try:
            tz = ZoneInfo(query.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return now.astimezone(tz)


def build_system_prompt(
    query: QueryContext, *, now: Optional[datetime.datetime] = None
) -> str:
    """
    System instruction for one streamed turn, derived from what the client
    told us about itself.
    """
    local = _local_now(query, now)
    lines = [
        _BASE_PROMPT,
        f"The user's current local time is {local.strftime('%A %Y-%m-%d %H:%M')} ({local.tzname()}).",
    ]
    if query.has_location:
        lines.append(
            f"The user's approximate location is latitude {query.latitude:.2f}, longitude {query.longitude:.2f}."
        )
    if query.language:
        lines.append(f"Reply in the language with code '{query.language}'.")
    if query.supported_actions:
        lines.append(
            "The device supports these actions: "
            + ", ".join(sorted(query.supported_actions))
            + "."
        )
    return "\n".join(lines)


__all__ = ["build_system_prompt"]
