"""
Image fetching.

Remote images go through a shared aiohttp session; file:// URLs and plain
paths are read from disk. Fetched bytes are decoded with QImage only to learn
the natural dimensions. There is no timeout beyond the session's and no
retry: a failed or timed-out fetch raises ImageLoadError.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import unquote, urlparse

import aiohttp
from aiohttp import TCPConnector
from PyQt6.QtGui import QImage

from memory_gallery.core.dto.image import LoadedImage

logger = logging.getLogger(__name__)


# Headers for image requests
IMAGE_HEADERS = {
    "User-Agent": "MemoryGallery/1.0",
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

Decoder = Callable[[bytes], Tuple[int, int]]


class ImageLoadError(Exception):
    """An image could not be fetched or decoded."""

    def __init__(self, src: str, reason: str):
        super().__init__(f"Failed to load image: {src} ({reason})")
        self.src = src
        self.reason = reason


def decode_dimensions(data: bytes) -> Tuple[int, int]:
    """Natural (width, height) of encoded image bytes."""
    image = QImage.fromData(data)
    if image.isNull():
        raise ValueError("undecodable image data")
    return image.width(), image.height()


def is_remote(src: str) -> bool:
    return urlparse(src).scheme in {"http", "https"}


class HttpImageFetcher:
    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Dict[str, str]] = None,
        decoder: Decoder = decode_dimensions,
        static_root: Optional[Path] = None,
        max_connections: int = 16,
    ):
        """
        Args:
            session: Existing aiohttp session; created lazily on first fetch otherwise
            headers: Extra request headers (merged over IMAGE_HEADERS)
            decoder: bytes -> (width, height)
            static_root: Directory that site-relative paths like /images/x.jpg resolve against
            max_connections: Connector limit for the lazily created session
        """
        self._session = session
        self._owns_session = session is None
        self._headers = {**IMAGE_HEADERS, **(headers or {})}
        self._decoder = decoder
        self.static_root = Path(static_root) if static_root else None
        self._max_connections = max_connections

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers,
                connector=TCPConnector(limit=self._max_connections),
            )
            self._owns_session = True
        return self._session

    def local_path(self, src: str) -> Path:
        """Filesystem path for a non-remote source (query string ignored)."""
        parsed = urlparse(src)
        path = unquote(parsed.path) if parsed.scheme in {"", "file"} else src
        if parsed.scheme == "" and self.static_root is not None and path.startswith("/"):
            candidate = self.static_root / path.lstrip("/")
            if candidate.exists():
                return candidate
        return Path(path)

    async def fetch(self, src: str) -> LoadedImage:
        if is_remote(src):
            data = await self._fetch_remote(src)
        else:
            path = self.local_path(src)
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                raise ImageLoadError(src, str(e)) from e

        try:
            width, height = self._decoder(data)
        except ValueError as e:
            raise ImageLoadError(src, str(e)) from e

        logger.debug(f"Fetched {src}: {width}x{height}, {len(data)} bytes")
        return LoadedImage(src=src, width=width, height=height, data=data)

    async def _fetch_remote(self, src: str) -> bytes:
        session = self._get_session()
        try:
            async with session.get(src) as resp:
                if resp.status >= 400:
                    raise ImageLoadError(src, f"HTTP {resp.status}")
                return await resp.read()
        except aiohttp.ClientError as e:
            raise ImageLoadError(src, str(e)) from e
        except asyncio.TimeoutError as e:
            raise ImageLoadError(src, "timeout") from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
