"""
Identity Hasher.

Maps a presented image locator to a short, stable IdentityKey. The key is
an identity proxy, not a perceptual fingerprint: it only has to be the same
every time the quiz shows the same picture.

Resolution order:
1. Structural key from the locator (questions/<id>/picture -> "q<id>")
2. Content key: Pillow downsample to a GRID x GRID grid, one 4-bit
   luminance hex digit per cell
3. Fallback: trailing characters of the locator when the image can't be
   loaded or decoded

Keys are memoized per locator, so a repeated presentation costs a dict
lookup.
"""

import asyncio
import io
import logging
import re
from typing import Optional

from facequiz import config
from facequiz.errors import ImageLoadError
from facequiz.surfaces import ImageLoader

logger = logging.getLogger(__name__)

STRUCTURAL_PATTERN = re.compile(r"questions/(\d+)/picture")


def structural_key(source: str) -> Optional[str]:
    """Return "q<id>" if the locator embeds a question id, else None."""
    match = STRUCTURAL_PATTERN.search(source)
    if match:
        return f"q{match.group(1)}"
    return None


def fallback_key(source: str, length: int = config.FALLBACK_SUFFIX_LENGTH) -> str:
    """Last-resort key: the locator's trailing characters."""
    return source[-length:]


def luminance_key(image_bytes: bytes, grid_size: int = config.HASH_GRID_SIZE) -> str:
    """
    Compute a content key from raw image bytes.

    The image is reduced to grid_size x grid_size cells. Each cell's
    luminance (mean of R, G, B) is quantized to its top 4 bits and written
    as one hex digit, row-major.

    Args:
        image_bytes: Encoded image (any format Pillow can open)
        grid_size: Cells per side

    Returns:
        grid_size**2 hex characters

    Raises:
        PIL.UnidentifiedImageError: If the bytes are not a decodable image
    """
    # Defer heavy imports (testability)
    import numpy as np
    from PIL import Image

    with Image.open(io.BytesIO(image_bytes)) as img:
        small = img.convert("RGB").resize(
            (grid_size, grid_size), Image.Resampling.BOX
        )
        pixels = np.asarray(small, dtype=np.uint16)

    luminance = pixels.sum(axis=2) // 3
    return "".join(f"{int(value) >> 4:x}" for value in luminance.flatten())


class RequestsImageLoader:
    """Fetch image bytes over HTTP with requests."""

    def __init__(self, timeout: float = config.IMAGE_FETCH_TIMEOUT, session=None):
        import requests

        self.timeout = timeout
        self._session = session or requests.Session()

    def _fetch(self, source: str) -> bytes:
        import requests

        try:
            response = self._session.get(source, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ImageLoadError(source, str(e)) from e
        return response.content

    async def load(self, source: str) -> bytes:
        return await asyncio.to_thread(self._fetch, source)


class IdentityHasher:
    """
    Memoizing locator -> IdentityKey mapper.

    Internal structure:
    - _cache: locator -> key, in insertion order (oldest first)
    """

    def __init__(
        self,
        loader: Optional[ImageLoader] = None,
        grid_size: int = config.HASH_GRID_SIZE,
        suffix_length: int = config.FALLBACK_SUFFIX_LENGTH,
    ):
        self.loader = loader
        self.grid_size = grid_size
        self.suffix_length = suffix_length
        self._cache: dict[str, str] = {}

    async def hash(self, source: str) -> str:
        """Return the IdentityKey for source, computing it at most once."""
        cached = self._cache.get(source)
        if cached is not None:
            return cached

        key = structural_key(source)
        if key is None:
            key = await self._content_key(source)

        self._cache[source] = key
        return key

    async def _content_key(self, source: str) -> str:
        from PIL import UnidentifiedImageError

        if self.loader is None:
            return fallback_key(source, self.suffix_length)

        try:
            image_bytes = await self.loader.load(source)
            return luminance_key(image_bytes, self.grid_size)
        except (ImageLoadError, OSError, UnidentifiedImageError) as e:
            logger.warning(f"Image hash failed, using locator suffix: {e}")
            return fallback_key(source, self.suffix_length)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached_entries(self, limit: int = 5) -> list[tuple[str, str]]:
        """Most recent (locator, key) pairs, oldest first."""
        if limit <= 0:
            return []
        return list(self._cache.items())[-limit:]

    def clear_cache(self) -> None:
        self._cache.clear()
