"""Database module for RelayChat persistence."""

from relaychat.db.connection import (
    SessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
)
from relaychat.db.models import (
    AuthRequest,
    Base,
    Chat,
    McpOAuthState,
    Message,
    MessageRole,
    Stream,
    User,
    UserIntegration,
    UserType,
    Visibility,
)

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "get_db_context",
    "init_db",
    "AuthRequest",
    "Base",
    "Chat",
    "McpOAuthState",
    "Message",
    "MessageRole",
    "Stream",
    "User",
    "UserIntegration",
    "UserType",
    "Visibility",
]
