# tests/conftest.py

import asyncio
import os

# Qt widgets in tests render without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from memory_gallery.core.config import GalleryConfig
from memory_gallery.core.context import GalleryContext
from memory_gallery.core.dto.environment import ClientEnvironment, NetworkInformation
from memory_gallery.core.dto.image import LoadedImage
from memory_gallery.core.http_client import ImageLoadError

DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"
ANDROID_PHONE_UA = "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36"
ANDROID_TABLET_UA = "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
IPAD_UA = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"


def make_env(
    user_agent=DESKTOP_UA,
    width=1440,
    height=900,
    dpr=1.0,
    effective_type=None,
    save_data=False,
    device_memory=None,
    **kwargs,
) -> ClientEnvironment:
    connection = None
    if effective_type is not None or save_data:
        connection = NetworkInformation(effective_type=effective_type, save_data=save_data)
    return ClientEnvironment(
        user_agent=user_agent,
        viewport_width=width,
        viewport_height=height,
        device_pixel_ratio=dpr,
        connection=connection,
        device_memory=device_memory,
        **kwargs,
    )


class FakeFetcher:
    """In-memory fetcher; sources containing a failing marker raise ImageLoadError."""

    def __init__(self, width=640, height=480, failing=()):
        self.width = width
        self.height = height
        self.failing = tuple(failing)
        self.calls = []
        self.gate = None    # asyncio.Event to hold fetches open

    async def fetch(self, src):
        self.calls.append(src)
        if self.gate is not None:
            await self.gate.wait()
        if any(marker in src for marker in self.failing):
            raise ImageLoadError(src, "HTTP 404")
        return LoadedImage(src=src, width=self.width, height=self.height, data=b"\x89PNG")

    async def close(self):
        pass


class Box:
    """Lazy-load target with a mutable bounding rect."""

    def __init__(self, rect):
        self.rect = rect

    def bounding_rect(self):
        return self.rect


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def desktop_env():
    return make_env()


@pytest.fixture
def context(tmp_path, fetcher, desktop_env):
    """Context for a 1440x900 desktop at dpr 1 with an in-memory fetcher"""
    return GalleryContext(
        config=GalleryConfig(home=tmp_path),
        environment_provider=lambda: desktop_env,
        fetcher=fetcher,
    )


def run(coro):
    return asyncio.run(coro)
