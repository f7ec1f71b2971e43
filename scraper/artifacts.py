"""
Preview artifact generation for ToolTip Companion

Turns a before/after screenshot pair into a single preview artifact and
caches it in Redis under a content hash of both screenshots.

Renderers:
- lite: the after-shot when the pair differs, otherwise the before-shot
- composite: labelled before/after frames side by side (PNG)
- animated: labelled before/after frames as a looping GIF
"""

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from config import settings
from core.cache import get_optional_redis_client
from scraper.change_detector import screenshots_identical
from utils.images import (
    compose_side_by_side,
    detect_media_type,
    draw_labeled_frame,
    encode_gif,
    encode_png,
    extension_for,
    loading_frames,
)
from utils.images.processor import AFTER_COLOR, BEFORE_COLOR

logger = logging.getLogger(__name__)

ARTIFACT_CACHE_PREFIX = "artifact:"
RENDERERS = ("lite", "composite", "animated")
LOADING_FRAME_DELAY_MS = 150

# Artifact and preview names are generated ids; nothing else reaches the filesystem
ARTIFACT_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class RenderOptions:
    width: int = 800
    height: int = 600
    quality: int = 80
    delay_ms: int = 1000
    renderer: str = "composite"

    @classmethod
    def from_settings(cls, **overrides) -> "RenderOptions":
        values = {
            "width": settings.ARTIFACT_WIDTH,
            "height": settings.ARTIFACT_HEIGHT,
            "quality": settings.ARTIFACT_QUALITY,
            "delay_ms": settings.ARTIFACT_FRAME_DELAY_MS,
            "renderer": settings.ARTIFACT_RENDERER,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass
class Artifact:
    data: bytes
    media_type: str
    cached: bool = False

    @property
    def extension(self) -> str:
        return extension_for(self.media_type)


def generate_cache_key(before: bytes, after: bytes, options: RenderOptions) -> str:
    """
    Cache key derived from the full content of both screenshots and the
    render options.
    """
    digest = hashlib.sha256()
    digest.update(before)
    digest.update(b"\x00")
    digest.update(after)
    return (
        f"gif_{digest.hexdigest()[:32]}_{options.width}x{options.height}"
        f"_q{options.quality}_{options.renderer}"
    )


def _labelled_frames(before: bytes, after: bytes, options: RenderOptions):
    center = (options.width // 2, options.height // 2)
    before_frame = draw_labeled_frame(
        before, "Before Click", BEFORE_COLOR, options.width, options.height, click_point=center
    )
    after_frame = draw_labeled_frame(
        after, "After Click", AFTER_COLOR, options.width, options.height, click_point=center
    )
    return before_frame, after_frame


def render_lite(before: bytes, after: bytes, options: RenderOptions) -> bytes:
    if screenshots_identical(before, after):
        return before
    return after


def render_composite(before: bytes, after: bytes, options: RenderOptions) -> bytes:
    before_frame, after_frame = _labelled_frames(before, after, options)
    return encode_png(compose_side_by_side(before_frame, after_frame, options.width, options.height))


def render_animated(before: bytes, after: bytes, options: RenderOptions) -> bytes:
    return encode_gif(list(_labelled_frames(before, after, options)), options.delay_ms)


RENDERER_FUNCTIONS: Dict[str, Callable[[bytes, bytes, RenderOptions], bytes]] = {
    "lite": render_lite,
    "composite": render_composite,
    "animated": render_animated,
}


class ArtifactGenerator:
    """
    Renders preview artifacts and caches them by content hash.

    The cache lives in Redis; when Redis is unreachable every lookup is a miss
    and artifacts are rendered on demand.
    """

    def __init__(self, ttl: int = settings.CACHE_TTL, redis_getter=get_optional_redis_client):
        """
        Args:
            ttl: Cache time-to-live in seconds
            redis_getter: Callable returning a RedisClient or None
        """
        self.ttl = ttl
        self._redis_getter = redis_getter
        self.hits = 0
        self.misses = 0

    def _cache_get(self, key: str) -> Optional[bytes]:
        redis_client = self._redis_getter()
        if redis_client is None:
            return None
        return redis_client.get_bytes(f"{ARTIFACT_CACHE_PREFIX}{key}")

    def _cache_set(self, key: str, data: bytes):
        redis_client = self._redis_getter()
        if redis_client is not None:
            redis_client.set_bytes(f"{ARTIFACT_CACHE_PREFIX}{key}", data, ttl=self.ttl)

    def generate(self, before: bytes, after: bytes, options: Optional[RenderOptions] = None) -> Artifact:
        """
        Render (or fetch from cache) the artifact for a before/after pair.

        Args:
            before: Screenshot before the interaction
            after: Screenshot after the interaction
            options: Render options (defaults from settings)

        Returns:
            Artifact with bytes and detected media type

        Raises:
            ValueError: If the renderer name is unknown or a screenshot is empty
        """
        options = options or RenderOptions.from_settings()
        renderer = RENDERER_FUNCTIONS.get(options.renderer)
        if renderer is None:
            raise ValueError(f"Unknown artifact renderer: {options.renderer}")
        if not before or not after:
            raise ValueError("Both before and after screenshots are required")

        key = generate_cache_key(before, after, options)
        cached = self._cache_get(key)
        if cached is not None:
            self.hits += 1
            logger.info(f"💾 Artifact cache hit: {key}")
            return Artifact(data=cached, media_type=detect_media_type(cached), cached=True)

        self.misses += 1
        data = renderer(before, after, options)
        self._cache_set(key, data)
        logger.info(f"✅ Generated {options.renderer} artifact ({len(data)} bytes)")
        return Artifact(data=data, media_type=detect_media_type(data))

    def generate_loading(self, width: int = 200, height: int = 200) -> Artifact:
        """Render (or fetch from cache) the spinner shown while a preview is generated"""
        key = f"loading_{width}x{height}"
        cached = self._cache_get(key)
        if cached is not None:
            self.hits += 1
            return Artifact(data=cached, media_type="image/gif", cached=True)

        self.misses += 1
        data = encode_gif(loading_frames(width, height), LOADING_FRAME_DELAY_MS)
        self._cache_set(key, data)
        return Artifact(data=data, media_type="image/gif")

    def stats(self) -> dict:
        redis_client = self._redis_getter()
        keys = redis_client.count_keys(f"{ARTIFACT_CACHE_PREFIX}*") if redis_client else 0
        return {
            "hits": self.hits,
            "misses": self.misses,
            "keys": keys,
            "backend": "redis" if redis_client else "unavailable",
        }

    def clear(self) -> int:
        """Delete every cached artifact and reset the counters"""
        redis_client = self._redis_getter()
        deleted = redis_client.clear_cache(f"{ARTIFACT_CACHE_PREFIX}*") if redis_client else 0
        self.hits = 0
        self.misses = 0
        logger.info(f"🧹 Cleared {deleted} cached artifacts")
        return deleted


def save_artifact(artifact: Artifact, directory: str, name: str) -> Path:
    """
    Write an artifact to ``directory/name.<ext>``, the extension following its
    media type.
    """
    if not ARTIFACT_NAME.match(name):
        raise ValueError(f"Invalid artifact name: {name}")

    os.makedirs(directory, exist_ok=True)
    path = Path(directory) / f"{name}.{artifact.extension}"
    path.write_bytes(artifact.data)
    return path


def find_artifact(directory: str, name: str) -> Optional[Tuple[Path, str]]:
    """
    Locate a stored artifact by name.

    Returns:
        (path, media_type) or None when the name is invalid or nothing is stored
    """
    if not name or not ARTIFACT_NAME.match(name):
        return None

    for extension in ("gif", "png", "jpg", "bin"):
        path = Path(directory) / f"{name}.{extension}"
        if path.is_file():
            with open(path, "rb") as f:
                media_type = detect_media_type(f.read(8))
            return path, media_type
    return None


# Global artifact generator instance
_artifact_generator: Optional[ArtifactGenerator] = None


def get_artifact_generator() -> ArtifactGenerator:
    global _artifact_generator

    if _artifact_generator is None:
        _artifact_generator = ArtifactGenerator()

    return _artifact_generator
