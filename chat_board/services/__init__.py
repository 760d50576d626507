from .identity import client_address, derive_user_id
from .message_store import (
    ChatStoreError,
    MessageStore,
    MessageValidationError,
    StorageReadError,
    StorageWriteError,
)

__all__ = [
    "ChatStoreError",
    "MessageStore",
    "MessageValidationError",
    "StorageReadError",
    "StorageWriteError",
    "client_address",
    "derive_user_id",
]
