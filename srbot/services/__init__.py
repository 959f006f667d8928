# This file makes 'services' a Python package.
from .config_service import ConfigService, RollSettings
from .chat_service import ChatService

__all__ = ["ConfigService", "RollSettings", "ChatService"]
