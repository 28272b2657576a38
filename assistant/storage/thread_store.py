"""
Persistence of conversation threads in Redis.

A thread is the text-only projection of a session's conversation log,
stored as a JSON array of {"role", "content"} objects under
`thread:<thread_id>` with a short TTL. Threads are written once at the
end of a session and read at most once when a later session resumes
them; expiry is the only deletion.
"""

from __future__ import annotations

from typing import Iterable, List

from pydantic import TypeAdapter, ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from assistant.errors import ThreadDecodeError, ThreadNotFoundError, ThreadStoreError
from assistant.models import Message, Role, SerializedMessage
from assistant.redis_client import redis_get_json, redis_set_json

THREAD_KEY_TEMPLATE = "thread:{thread_id}"
THREAD_TTL_SECONDS = 10 * 60

_PERSISTED_ROLES = (Role.USER, Role.MODEL)
_transcript_adapter = TypeAdapter(List[SerializedMessage])


def thread_key(thread_id: object) -> str:
    return THREAD_KEY_TEMPLATE.format(thread_id=thread_id)


def reduce_for_storage(messages: Iterable[Message]) -> List[SerializedMessage]:
    """
    Keep user/model turns whose first part is non-blank text, in order.
    Tool calls and tool responses are dropped.
    """
    reduced: List[SerializedMessage] = []
    for message in messages:
        if message.role not in _PERSISTED_ROLES:
            continue
        text = message.first_text
        if text is None or not text.strip():
            continue
        reduced.append(SerializedMessage(role=message.role.value, content=text))
    return reduced


async def store_thread(
    redis: Redis,
    thread_id: object,
    messages: Iterable[Message],
    *,
    ttl_seconds: int = THREAD_TTL_SECONDS,
) -> List[SerializedMessage]:
    """
    Persist the reduced transcript and return what was written.
    """
    reduced = reduce_for_storage(messages)
    try:
        await redis_set_json(
            redis,
            thread_key(thread_id),
            [m.model_dump() for m in reduced],
            ttl_seconds=ttl_seconds,
        )
    except RedisError as exc:
        raise ThreadStoreError(str(thread_id), f"write failed: {exc}") from exc
    return reduced


async def restore_thread(redis: Redis, thread_id: str) -> List[Message]:
    """
    Load a previously stored thread as single-text-part messages.

    Raises ThreadNotFoundError when the key is absent or expired,
    ThreadDecodeError when the payload is malformed and ThreadStoreError
    when Redis itself fails.
    """
    try:
        data = await redis_get_json(redis, thread_key(thread_id))
    except ValueError as exc:
        # Bad JSON, or bytes that are not UTF-8 under decode_responses.
        raise ThreadDecodeError(thread_id, f"undecodable payload: {exc}") from exc
    except RedisError as exc:
        raise ThreadStoreError(thread_id, f"read failed: {exc}") from exc

    if data is None:
        raise ThreadNotFoundError(thread_id)

    try:
        entries = _transcript_adapter.validate_python(data)
    except ValidationError as exc:
        raise ThreadDecodeError(thread_id, f"unexpected payload shape: {exc}") from exc

    return [Message.from_text(Role(entry.role), entry.content) for entry in entries]


__all__ = [
    "THREAD_KEY_TEMPLATE",
    "THREAD_TTL_SECONDS",
    "reduce_for_storage",
    "restore_thread",
    "store_thread",
    "thread_key",
]
