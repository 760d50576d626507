from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from string import Template
from typing import Any, AsyncIterator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from chat_board.api.dependencies import get_message_store, resolve_request_user_id
from chat_board.api.schemas import ChatListResponse, ChatPostResponse, ErrorResponse, HealthResponse
from chat_board.configuration import AppConfig, load_config
from chat_board.services.message_store import (
    MessageStore,
    MessageValidationError,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"
CHAT_PAGE_TEMPLATE = Template((STATIC_DIR / "chat.html").read_text(encoding="utf-8"))

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class InvalidRequestBody(Exception):
    """POST body could not be decoded as JSON or form data."""


async def _extract_message_field(request: Request) -> Any:
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError as exc:
            raise InvalidRequestBody(str(exc)) from exc
        if not isinstance(payload, dict):
            return None
        return payload.get("message")

    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return form.get("message")

    return None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(config: Optional[AppConfig] = None, store: Optional[MessageStore] = None) -> FastAPI:
    """Build the HTTP surface around a single message store."""
    config = config or load_config()
    if store is None:
        store = MessageStore(
            config.storage.data_path,
            lock_timeout=config.storage.lock_timeout,
            lock_poll_interval=config.storage.lock_poll_interval,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            await run_in_threadpool(store.ensure_exists)
        except (OSError, StorageWriteError):
            # appends will report the failure; listing degrades to empty
            logger.exception("could not initialise chat store at %s", store.path)
        yield

    app = FastAPI(
        title="Open Chat Board",
        description="Public append-only message board with IP-derived pseudonymous ids.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.message_store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(MessageValidationError)
    async def _handle_validation_error(request: Request, exc: MessageValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(StorageWriteError)
    async def _handle_storage_error(request: Request, exc: StorageWriteError) -> JSONResponse:
        logger.error("failed to save message: %s", exc, exc_info=exc)
        return _error(500, "Failed to save message")

    @app.exception_handler(InvalidRequestBody)
    async def _handle_invalid_body(request: Request, exc: InvalidRequestBody) -> JSONResponse:
        return _error(400, "Invalid request body")

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        return HealthResponse()

    @app.get("/", include_in_schema=False)
    def index() -> RedirectResponse:
        return RedirectResponse(url="/chat")

    @app.get("/chat", response_class=HTMLResponse, summary="Chat page")
    def chat_page(user_id: str = Depends(resolve_request_user_id)) -> HTMLResponse:
        return HTMLResponse(CHAT_PAGE_TEMPLATE.safe_substitute(user_id=user_id))

    @app.get(
        "/api/chat",
        response_model=ChatListResponse,
        summary="List all messages ordered by id",
    )
    def list_messages(message_store: MessageStore = Depends(get_message_store)) -> ChatListResponse:
        return ChatListResponse(messages=message_store.list_messages())

    @app.post(
        "/api/chat",
        response_model=ChatPostResponse,
        responses=_ERROR_RESPONSES,
        summary="Append a message to the board",
    )
    async def post_message(
        request: Request,
        message_store: MessageStore = Depends(get_message_store),
        user_id: str = Depends(resolve_request_user_id),
    ) -> ChatPostResponse:
        raw_message = await _extract_message_field(request)
        if raw_message is None:
            raise MessageValidationError("Empty message")
        entry = await run_in_threadpool(message_store.append, raw_message, user_id)
        return ChatPostResponse(entry=entry)

    return app


__all__ = ["create_app"]
