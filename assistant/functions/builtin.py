from __future__ import annotations

import datetime
from typing import Any, Dict
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from assistant.errors import ToolArgumentsError
from assistant.session.framing import FrameWriter

from .registry import ToolContext, ToolRegistry, ToolSpec

SET_TIMER_CAPABILITY = "set_timer"


async def get_current_time(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    tz_name = args.get("timezone") or ctx.query.timezone or "UTC"
    try:
        tz = ZoneInfo(str(tz_name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ToolArgumentsError(f"unknown timezone: {tz_name}") from exc
    now = datetime.datetime.now(tz)
    return {
        "timezone": str(tz_name),
        "time": now.isoformat(timespec="seconds"),
        "weekday": now.strftime("%A"),
    }


def _summarise_time(args: Dict[str, Any]) -> str:
    if args.get("timezone"):
        return f"Checking the time in {args['timezone']}..."
    return "Checking the time..."


def _coordinate(args: Dict[str, Any], key: str, fallback: float | None) -> float:
    value = args.get(key, fallback)
    if value is None:
        raise ToolArgumentsError(f"{key} is required when the client location is unknown")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ToolArgumentsError(f"{key} must be a number") from exc


async def get_weather(args: Dict[str, Any], ctx: ToolContext) -> Dict[str, Any]:
    latitude = _coordinate(args, "latitude", ctx.query.latitude)
    longitude = _coordinate(args, "longitude", ctx.query.longitude)

    async with ctx.http_client(base_url=ctx.settings.weather_api_base_url) as client:
        response = await client.get(
            "/v1/forecast",
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,weather_code,wind_speed_10m",
            },
        )
        response.raise_for_status()
        payload = response.json()

    current = payload.get("current") or {}
    return {
        "latitude": latitude,
        "longitude": longitude,
        "observed_at": current.get("time"),
        "temperature_c": current.get("temperature_2m"),
        "wind_speed_kmh": current.get("wind_speed_10m"),
        "weather_code": current.get("weather_code"),
    }


def _summarise_weather(args: Dict[str, Any]) -> str:
    if "latitude" in args and "longitude" in args:
        return f"Checking the weather at {args['latitude']}, {args['longitude']}..."
    return "Checking the weather..."


def _timer_seconds(args: Dict[str, Any]) -> int:
    value = args.get("seconds")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolArgumentsError("seconds must be a number")
    seconds = int(value)
    if seconds <= 0:
        raise ToolArgumentsError("seconds must be positive")
    return seconds


async def set_timer(
    args: Dict[str, Any], ctx: ToolContext, channel: FrameWriter
) -> Dict[str, Any]:
    seconds = _timer_seconds(args)
    label = str(args.get("label") or "")
    await channel.send_action(
        {"action": SET_TIMER_CAPABILITY, "seconds": seconds, "label": label}
    )
    return {"status": "ok", "seconds": seconds}


def _summarise_timer(args: Dict[str, Any]) -> str:
    seconds = _timer_seconds(args)
    minutes, rest = divmod(seconds, 60)
    if minutes and not rest:
        duration = f"{minutes} minute" + ("s" if minutes != 1 else "")
    else:
        duration = f"{seconds} second" + ("s" if seconds != 1 else "")
    return f"Setting a timer for {duration}..."


BUILTIN_TOOLS = (
    ToolSpec(
        name="get_current_time",
        description="Get the current date and time, optionally in a specific IANA timezone.",
        handler=get_current_time,
        parameters={
            "type": "OBJECT",
            "properties": {
                "timezone": {
                    "type": "STRING",
                    "description": "IANA timezone name, e.g. 'Europe/London'. Defaults to the user's timezone.",
                },
            },
        },
        summarise=_summarise_time,
    ),
    ToolSpec(
        name="get_weather",
        description="Get the current weather. Defaults to the user's location when coordinates are omitted.",
        handler=get_weather,
        parameters={
            "type": "OBJECT",
            "properties": {
                "latitude": {"type": "NUMBER", "description": "Latitude in degrees"},
                "longitude": {"type": "NUMBER", "description": "Longitude in degrees"},
            },
        },
        summarise=_summarise_weather,
    ),
    ToolSpec(
        name="set_timer",
        description="Start a countdown timer on the user's device.",
        handler=set_timer,
        parameters={
            "type": "OBJECT",
            "properties": {
                "seconds": {"type": "INTEGER", "description": "Duration of the timer in seconds"},
                "label": {"type": "STRING", "description": "Optional short label shown with the timer"},
            },
            "required": ["seconds"],
        },
        is_action=True,
        capability=SET_TIMER_CAPABILITY,
        summarise=_summarise_timer,
    ),
)


def build_default_registry() -> ToolRegistry:
    return ToolRegistry(BUILTIN_TOOLS)


__all__ = [
    "BUILTIN_TOOLS",
    "SET_TIMER_CAPABILITY",
    "build_default_registry",
    "get_current_time",
    "get_weather",
    "set_timer",
]
