import uuid
from contextlib import asynccontextmanager

import anyio
from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from .deps import get_adapter_factory, get_redis, get_settings, get_tool_registry
from .errors import ErrorResponse
from .functions.registry import ToolRegistry
from .logging_config import logger
from .provider.base import AdapterFactory
from .query import QueryContext
from .redis_client import close_redis_client
from .session.framing import FrameWriter
from .session.prompt_session import PromptSession
from .settings import Settings

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict:
    return {"status": "ok"}


@router.websocket("/query")
async def query_session(
    websocket: WebSocket,
    redis: Redis = Depends(get_redis),
    registry: ToolRegistry = Depends(get_tool_registry),
    adapter_factory: AdapterFactory = Depends(get_adapter_factory),
    config: Settings = Depends(get_settings),
) -> None:
    """
    One assistant session per connection.

    Query parameters: prompt (required), threadId (resume a stored
    thread), tz, lat, lon, lang and actions.
    """
    await websocket.accept()
    query = QueryContext.from_params(websocket.query_params)
    session = PromptSession(
        channel=FrameWriter(websocket),
        query=query,
        redis=redis,
        registry=registry,
        adapter_factory=adapter_factory,
        config=config,
    )
    logger.info(
        "session %s opened (resuming=%s, actions=%s)",
        session.thread_id,
        query.thread_id or "-",
        ",".join(sorted(query.supported_actions)) or "-",
    )

    async with anyio.create_task_group() as tg:

        async def _watch_disconnect() -> None:
            # The session only writes; a disconnect from the client is the
            # signal to abandon whatever it is waiting on.
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
            logger.info("session %s: client disconnected", session.thread_id)
            tg.cancel_scope.cancel()

        tg.start_soon(_watch_disconnect)
        await session.run()
        tg.cancel_scope.cancel()


async def handle_unexpected_error(request: Request, exc: Exception):
    """
    Global handler for the HTTP side: log once with an error id and return
    a structured 500.
    """
    error_id = uuid.uuid4().hex
    logger.exception(
        "Unhandled error %s %s (error_id=%s)",
        request.method,
        request.url.path,
        error_id,
    )
    payload = ErrorResponse(
        error="internal_error",
        message="Internal server error",
        code=500,
        details={"error_id": error_id},
    )
    return JSONResponse(status_code=500, content=payload.model_dump())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis_client()


def create_app() -> FastAPI:
    app = FastAPI(title="Assistant Gateway", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


__all__ = ["create_app", "router"]
