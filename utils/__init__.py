# Utils package - Utility modules organized by domain
# Import from subpackages for convenience

from .clients.anthropic import generate_chat_response
from .images.processor import detect_media_type

__all__ = [
    "generate_chat_response",
    "detect_media_type",
]
