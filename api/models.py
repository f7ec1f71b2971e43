from enum import Enum
from typing import List, Literal, Optional, Tuple
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter

from config import settings

_http_url = TypeAdapter(HttpUrl)


def normalize_url(url: str) -> str:
    """Validate an http(s) URL and return it in the canonical form used as a cache key"""
    return str(_http_url.validate_python(url))


# Crawl models
class CrawlState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CrawlState.COMPLETED, CrawlState.FAILED)


class CrawlRequest(BaseModel):
    url: HttpUrl
    element_selector: Optional[str] = None
    element_text: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = None
    wait_time: float = Field(default=settings.DEFAULT_WAIT_TIME, gt=0, le=30)

    def has_target(self) -> bool:
        """True when at least one targeting method is provided"""
        return bool(self.element_selector or self.element_text or self.coordinates)


class CrawlStatus(BaseModel):
    crawl_id: str
    status: CrawlState = CrawlState.PENDING
    progress: int = 0
    gif_available: bool = False
    gif_url: Optional[str] = None
    loading_gif_url: Optional[str] = None
    error: Optional[str] = None
    created_at: str
    updated_at: str


class CrawlStartResponse(BaseModel):
    crawl_id: str
    status: CrawlState
    message: str


# Element models
class ElementAttributes(BaseModel):
    title: Optional[str] = None
    aria_label: Optional[str] = None
    data_testid: Optional[str] = None
    data_cy: Optional[str] = None
    href: Optional[str] = None
    class_name: str = ""


class ClickableElement(BaseModel):
    id: str
    tag: str
    text: str = ""
    selector: str
    all_selectors: List[str] = []
    coordinates: Tuple[int, int]
    visible: bool = True
    action_type: Literal["link", "button", "form", "custom"] = "custom"
    target_url: Optional[str] = None
    attributes: ElementAttributes = ElementAttributes()
    preview_id: Optional[str] = None
    preview_url: Optional[str] = None


class ScrapeResult(BaseModel):
    url: str
    elements: List[ClickableElement]
    scraped_at: str
    total_elements: int
    successful_previews: int


class PageRequest(BaseModel):
    url: HttpUrl


class ElementsResponse(BaseModel):
    elements: List[ClickableElement]
    url: str
    count: int
    timestamp: str


# Chat models
class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class ChatUsage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatResponse(BaseModel):
    response: str
    timestamp: str
    usage: Optional[ChatUsage] = None
