# API package - FastAPI components
from .models import (
    CrawlRequest,
    CrawlState,
    CrawlStatus,
    ClickableElement,
    ScrapeResult,
    ChatRequest,
    ChatResponse,
)
from .routes import router

__all__ = [
    # Models
    "CrawlRequest",
    "CrawlState",
    "CrawlStatus",
    "ClickableElement",
    "ScrapeResult",
    "ChatRequest",
    "ChatResponse",
    # Router
    "router",
]
