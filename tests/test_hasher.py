"""
Tests for the Identity Hasher.

Keys must be stable for repeated presentations of the same image and
computed at most once per locator. Load failures fall back to the
locator suffix instead of failing the round.
"""

import asyncio
from unittest.mock import patch

import pytest

from conftest import FakeLoader, png_bytes, question_url


class TestStructuralKey:
    """Tests for locator-embedded question ids."""

    def test_question_url_yields_q_key(self):
        """A questions/<id>/picture locator maps to q<id>."""
        from facequiz.hasher import structural_key

        assert structural_key(question_url(4821)) == "q4821"

    def test_query_string_is_ignored(self):
        """Trailing query parameters don't change the key."""
        from facequiz.hasher import structural_key

        assert structural_key(question_url(7) + "?size=large") == "q7"

    def test_other_locators_have_no_structural_key(self):
        """Locators without the pattern return None."""
        from facequiz.hasher import structural_key

        assert structural_key("https://cdn.example.com/faces/abc.jpg") is None


class TestLuminanceKey:
    """Tests for content-derived keys."""

    def test_white_image_is_all_f(self):
        """Full-brightness cells quantize to f."""
        from facequiz.hasher import luminance_key

        assert luminance_key(png_bytes((255, 255, 255))) == "f" * 36

    def test_black_image_is_all_zero(self):
        """Zero-brightness cells quantize to 0."""
        from facequiz.hasher import luminance_key

        assert luminance_key(png_bytes((0, 0, 0))) == "0" * 36

    def test_luminance_is_mean_of_channels(self):
        """(240 + 0 + 0) / 3 = 80 -> 80 >> 4 = 5."""
        from facequiz.hasher import luminance_key

        assert luminance_key(png_bytes((240, 0, 0))) == "5" * 36

    def test_grid_size_controls_key_length(self):
        """One hex digit per cell."""
        from facequiz.hasher import luminance_key

        assert len(luminance_key(png_bytes((10, 20, 30)), grid_size=4)) == 16

    def test_different_images_get_different_keys(self):
        """Distinct content produces distinct keys."""
        from facequiz.hasher import luminance_key

        assert luminance_key(png_bytes((0, 0, 0))) != luminance_key(png_bytes((200, 200, 200)))


class TestIdentityHasher:
    """Tests for resolution order and memoization."""

    def test_structural_key_skips_image_load(self):
        """Question URLs never hit the loader."""
        from facequiz.hasher import IdentityHasher

        loader = FakeLoader()
        hasher = IdentityHasher(loader)

        key = asyncio.run(hasher.hash(question_url(12)))

        assert key == "q12"
        assert loader.calls == []

    def test_content_key_from_loaded_image(self):
        """Other locators are hashed from pixel data."""
        from facequiz.hasher import IdentityHasher

        source = "https://cdn.example.com/faces/white.png"
        hasher = IdentityHasher(FakeLoader({source: png_bytes((255, 255, 255))}))

        assert asyncio.run(hasher.hash(source)) == "f" * 36

    def test_load_failure_falls_back_to_suffix(self):
        """A failed load (e.g. cross-origin) uses the locator's last 16 chars."""
        from facequiz.hasher import IdentityHasher

        source = "https://other-origin.example.com/faces/person-0042.jpg"
        hasher = IdentityHasher(FakeLoader())

        key = asyncio.run(hasher.hash(source))

        assert key == source[-16:]

    def test_undecodable_bytes_fall_back_to_suffix(self):
        """Bytes Pillow can't open are treated like a failed load."""
        from facequiz.hasher import IdentityHasher

        source = "https://cdn.example.com/faces/broken.jpg"
        hasher = IdentityHasher(FakeLoader({source: b"not an image"}))

        assert asyncio.run(hasher.hash(source)) == source[-16:]

    def test_no_loader_falls_back_to_suffix(self):
        """Without a loader only structural and suffix keys are possible."""
        from facequiz.hasher import IdentityHasher

        hasher = IdentityHasher(loader=None, suffix_length=8)

        assert asyncio.run(hasher.hash("https://cdn.example.com/x/abcdefgh")) == "abcdefgh"

    def test_repeated_source_is_memoized(self):
        """The second hash of a source returns the cached key without reloading."""
        from facequiz import hasher as hasher_module
        from facequiz.hasher import IdentityHasher

        source = "https://cdn.example.com/faces/gray.png"
        loader = FakeLoader({source: png_bytes((128, 128, 128))})
        hasher = IdentityHasher(loader)

        async def hash_twice():
            return await hasher.hash(source), await hasher.hash(source)

        with patch.object(
            hasher_module, "luminance_key", wraps=hasher_module.luminance_key
        ) as spy:
            first, second = asyncio.run(hash_twice())

        assert first == second
        assert loader.calls == [source]
        assert spy.call_count == 1

    def test_fallback_key_is_memoized_too(self):
        """Failed loads are cached as well, so the loader isn't retried."""
        from facequiz.hasher import IdentityHasher

        source = "https://other-origin.example.com/faces/person-0042.jpg"
        loader = FakeLoader()
        hasher = IdentityHasher(loader)

        async def hash_twice():
            await hasher.hash(source)
            await hasher.hash(source)

        asyncio.run(hash_twice())

        assert loader.calls == [source]

    def test_cache_introspection_and_clear(self):
        """cached_entries lists recent pairs; clear_cache empties the cache."""
        from facequiz.hasher import IdentityHasher

        hasher = IdentityHasher()

        async def hash_all():
            for i in range(7):
                await hasher.hash(question_url(i))

        asyncio.run(hash_all())

        assert hasher.cache_size == 7
        entries = hasher.cached_entries(limit=5)
        assert [key for _, key in entries] == ["q2", "q3", "q4", "q5", "q6"]

        hasher.clear_cache()
        assert hasher.cache_size == 0


class TestRequestsImageLoader:
    """Tests for the HTTP loader's error mapping."""

    def test_http_error_becomes_image_load_error(self):
        """Network/HTTP failures surface as ImageLoadError."""
        import requests

        from facequiz.errors import ImageLoadError
        from facequiz.hasher import RequestsImageLoader

        with patch.object(requests.Session, "get", side_effect=requests.ConnectionError("refused")):
            loader = RequestsImageLoader(timeout=1)
            with pytest.raises(ImageLoadError):
                asyncio.run(loader.load("https://cdn.example.com/a.jpg"))
