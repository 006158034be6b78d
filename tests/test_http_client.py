# tests/test_http_client.py

import asyncio

import aiohttp
import pytest
from aiohttp import test_utils, web

from memory_gallery.core.config import GalleryConfig
from memory_gallery.core.context import GalleryContext
from memory_gallery.core.dto.image import ImageReference
from memory_gallery.core.http_client import HttpImageFetcher, ImageLoadError, is_remote
from memory_gallery.core.image_loader import OptimizedImage
from tests.conftest import run

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def fixed_size(data):
    return 64, 48


def undecodable(data):
    raise ValueError("undecodable image data")


@pytest.fixture
def photo(tmp_path):
    path = tmp_path / "static" / "images" / "beach.png"
    path.parent.mkdir(parents=True)
    path.write_bytes(PNG_BYTES)
    return path


def test_is_remote():
    assert is_remote("https://x/a.jpg")
    assert is_remote("http://x/a.jpg?w=300")
    assert not is_remote("/images/a.jpg")
    assert not is_remote("file:///tmp/a.jpg")


def test_local_path_strips_query(tmp_path):
    fetcher = HttpImageFetcher()

    assert fetcher.local_path(f"{tmp_path}/a.jpg?w=300") == tmp_path / "a.jpg"
    assert fetcher.local_path(f"file://{tmp_path}/my%20photo.jpg") == tmp_path / "my photo.jpg"


def test_fetch_local_file(photo):
    fetcher = HttpImageFetcher(decoder=fixed_size)

    result = run(fetcher.fetch(f"{photo}?w=480"))

    assert (result.width, result.height) == (64, 48)
    assert result.data == PNG_BYTES
    assert result.src == f"{photo}?w=480"


def test_fetch_site_relative_path(tmp_path, photo):
    fetcher = HttpImageFetcher(decoder=fixed_size, static_root=tmp_path / "static")

    result = run(fetcher.fetch("/images/beach.png?w=300"))

    assert result.data == PNG_BYTES


def test_missing_file_raises(tmp_path):
    fetcher = HttpImageFetcher(decoder=fixed_size)

    with pytest.raises(ImageLoadError) as excinfo:
        run(fetcher.fetch(str(tmp_path / "nope.jpg")))

    assert excinfo.value.src == str(tmp_path / "nope.jpg")


def test_undecodable_data_raises(photo):
    fetcher = HttpImageFetcher(decoder=undecodable)

    with pytest.raises(ImageLoadError) as excinfo:
        run(fetcher.fetch(str(photo)))

    assert "undecodable" in excinfo.value.reason


def test_fetch_remote():
    """Remote fetches go through aiohttp; HTTP errors become ImageLoadError"""

    async def image(request):
        assert request.headers["User-Agent"] == "MemoryGallery/1.0"
        return web.Response(body=PNG_BYTES, content_type="image/png")

    app = web.Application()
    app.router.add_get("/a.png", image)

    async def scenario():
        server = test_utils.TestServer(app)
        await server.start_server()
        fetcher = HttpImageFetcher(decoder=fixed_size)
        try:
            ok = await fetcher.fetch(str(server.make_url("/a.png?w=300")))
            with pytest.raises(ImageLoadError) as excinfo:
                await fetcher.fetch(str(server.make_url("/missing.png")))
            return ok, excinfo.value
        finally:
            await fetcher.close()
            await server.close()

    ok, error = run(scenario())

    assert ok.data == PNG_BYTES
    assert error.reason == "HTTP 404"


def test_remote_timeout_raises_image_load_error():
    """A session timeout surfaces as ImageLoadError, not a bare TimeoutError"""

    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(body=PNG_BYTES, content_type="image/png")

    app = web.Application()
    app.router.add_get("/slow.png", slow)

    async def scenario():
        server = test_utils.TestServer(app)
        await server.start_server()
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=0.2))
        fetcher = HttpImageFetcher(session=session, decoder=fixed_size)
        try:
            with pytest.raises(ImageLoadError) as excinfo:
                await fetcher.fetch(str(server.make_url("/slow.png")))
            return excinfo.value
        finally:
            await session.close()
            await server.close()

    error = run(scenario())

    assert error.reason == "timeout"


def test_timed_out_image_reaches_error_state(tmp_path):
    errors = []

    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(body=PNG_BYTES, content_type="image/png")

    app = web.Application()
    app.router.add_get("/slow.png", slow)

    async def scenario():
        server = test_utils.TestServer(app)
        await server.start_server()
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=0.2))
        context = GalleryContext(
            config=GalleryConfig(home=tmp_path),
            fetcher=HttpImageFetcher(session=session, decoder=fixed_size),
        )
        url = str(server.make_url("/slow.png"))
        image = OptimizedImage(ImageReference(url=url), context, on_error=errors.append)
        try:
            await image.load(url)
            return image
        finally:
            await session.close()
            await server.close()

    image = run(scenario())

    assert not image.is_loading
    assert not image.is_loaded
    assert image.error is not None
    assert errors == [image.error]
