"""
Tests for preview artifact rendering, caching and storage
"""
import io

import pytest
from PIL import Image

from scraper.artifacts import (
    RENDERER_FUNCTIONS,
    ArtifactGenerator,
    RenderOptions,
    find_artifact,
    generate_cache_key,
    save_artifact,
)
from utils.images import detect_media_type


def generator_with(redis_client):
    return ArtifactGenerator(redis_getter=lambda: redis_client)


class TestCacheKey:
    def test_format(self, before_png, after_png):
        key = generate_cache_key(before_png, after_png, RenderOptions(renderer="lite"))
        assert key.startswith("gif_")
        assert key.endswith("_800x600_q80_lite")
        assert len(key.split("_")[1]) == 32

    def test_depends_on_full_content(self):
        options = RenderOptions()
        before = b"\x00" * 4000
        changed = b"\x00" * 3999 + b"\x01"
        assert generate_cache_key(before, before, options) != generate_cache_key(before, changed, options)

    def test_depends_on_options(self, before_png, after_png):
        assert generate_cache_key(before_png, after_png, RenderOptions(width=400)) != generate_cache_key(
            before_png, after_png, RenderOptions(width=800)
        )


class TestRenderers:
    def test_lite_returns_after_when_different(self, fake_redis, before_png, after_png):
        artifact = generator_with(fake_redis).generate(before_png, after_png, RenderOptions(renderer="lite"))
        assert artifact.data == after_png
        assert artifact.media_type == "image/png"

    def test_lite_returns_before_when_identical(self, fake_redis, before_png):
        artifact = generator_with(fake_redis).generate(before_png, before_png, RenderOptions(renderer="lite"))
        assert artifact.data == before_png

    def test_composite_is_png_of_requested_size(self, fake_redis, before_png, after_png):
        options = RenderOptions(renderer="composite", width=640, height=360)
        artifact = generator_with(fake_redis).generate(before_png, after_png, options)

        assert artifact.media_type == "image/png"
        assert Image.open(io.BytesIO(artifact.data)).size == (640, 360)

    def test_animated_is_looping_gif(self, fake_redis, before_png, after_png):
        options = RenderOptions(renderer="animated", width=320, height=240, delay_ms=500)
        artifact = generator_with(fake_redis).generate(before_png, after_png, options)

        assert artifact.media_type == "image/gif"
        image = Image.open(io.BytesIO(artifact.data))
        assert image.n_frames == 2
        assert image.info.get("loop") == 0

    def test_unknown_renderer(self, fake_redis, before_png, after_png):
        with pytest.raises(ValueError):
            generator_with(fake_redis).generate(before_png, after_png, RenderOptions(renderer="video"))

    def test_empty_screenshot(self, fake_redis, before_png):
        with pytest.raises(ValueError):
            generator_with(fake_redis).generate(before_png, b"", RenderOptions(renderer="lite"))


class TestArtifactCache:
    def test_identical_inputs_hit_cache(self, fake_redis, before_png, after_png, monkeypatch):
        generator = generator_with(fake_redis)
        options = RenderOptions(renderer="composite", width=320, height=240)

        first = generator.generate(before_png, after_png, options)

        def fail(*args):
            raise AssertionError("renderer should not run on a cache hit")

        monkeypatch.setitem(RENDERER_FUNCTIONS, "composite", fail)
        second = generator.generate(before_png, after_png, options)

        assert second.cached
        assert second.data == first.data
        assert generator.hits == 1
        assert generator.misses == 1

    def test_works_without_redis(self, before_png, after_png):
        generator = ArtifactGenerator(redis_getter=lambda: None)
        options = RenderOptions(renderer="lite")

        generator.generate(before_png, after_png, options)
        artifact = generator.generate(before_png, after_png, options)

        assert not artifact.cached
        assert generator.misses == 2
        assert generator.stats()["backend"] == "unavailable"

    def test_stats_and_clear(self, fake_redis, before_png, after_png):
        generator = generator_with(fake_redis)
        generator.generate(before_png, after_png, RenderOptions(renderer="lite"))
        generator.generate_loading(100, 100)
        fake_redis.store["cache:scrape:https://example.com/"] = {}

        stats = generator.stats()
        assert stats["keys"] == 2
        assert stats["misses"] == 2
        assert stats["backend"] == "redis"

        assert generator.clear() == 2
        assert generator.stats() == {"hits": 0, "misses": 0, "keys": 0, "backend": "redis"}
        assert "cache:scrape:https://example.com/" in fake_redis.store


class TestLoadingArtifact:
    def test_spinner_frames(self, fake_redis):
        artifact = generator_with(fake_redis).generate_loading(200, 200)
        image = Image.open(io.BytesIO(artifact.data))

        assert artifact.media_type == "image/gif"
        assert image.size == (200, 200)
        assert image.n_frames == 8
        assert "artifact:loading_200x200" in fake_redis.store


class TestStorage:
    def test_save_uses_media_type_extension(self, tmp_path, fake_redis, before_png, after_png):
        artifact = generator_with(fake_redis).generate(
            before_png, after_png, RenderOptions(renderer="animated", width=120, height=90)
        )
        path = save_artifact(artifact, str(tmp_path), "abc-123")

        assert path.name == "abc-123.gif"
        found = find_artifact(str(tmp_path), "abc-123")
        assert found == (path, "image/gif")

    def test_find_missing(self, tmp_path):
        assert find_artifact(str(tmp_path), "nope") is None

    def test_rejects_path_names(self, tmp_path):
        assert find_artifact(str(tmp_path), "../etc/passwd") is None
        with pytest.raises(ValueError):
            save_artifact(None, str(tmp_path), "../x")

    def test_detect_media_type(self, before_png):
        assert detect_media_type(before_png) == "image/png"
        assert detect_media_type(b"GIF89a....") == "image/gif"
        assert detect_media_type(b"\xff\xd8\xff\xe0") == "image/jpeg"
        assert detect_media_type(b"hello") == "application/octet-stream"
