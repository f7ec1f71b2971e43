# Clients subpackage - External API clients
from .anthropic import call_anthropic_api_with_retry, generate_chat_response, get_anthropic_client

__all__ = [
    "call_anthropic_api_with_retry",
    "generate_chat_response",
    "get_anthropic_client",
]
