"""Chat service implementations."""

from .gateway import GatewayChatService
from .service import AuthError, ChatService, ChatServiceError, ServiceUnavailableError

__all__ = [
    "AuthError",
    "ChatService",
    "ChatServiceError",
    "GatewayChatService",
    "ServiceUnavailableError",
]
