from __future__ import annotations

from fastapi import Request

from chat_board.services.identity import client_address, derive_user_id
from chat_board.services.message_store import MessageStore


def get_message_store(request: Request) -> MessageStore:
    """Store instance attached to the application in ``create_app``."""
    return request.app.state.message_store


def resolve_request_address(request: Request) -> str:
    peer = request.client.host if request.client else None
    return client_address(request.headers, peer)


def resolve_request_user_id(request: Request) -> str:
    """Derive the caller's pseudonymous id from proxy headers or the socket peer."""
    return derive_user_id(resolve_request_address(request))
