# tests/test_image_loader.py

import asyncio

import pytest

from memory_gallery.core.config import GalleryConfig
from memory_gallery.core.context import GalleryContext
from memory_gallery.core.dto.image import CacheEntry, ImageReference, LoadedImage
from memory_gallery.core.image_loader import GalleryPreloader, OptimizedImage, prefetch
from memory_gallery.core.lazy_load import Rect
from tests.conftest import ANDROID_PHONE_UA, Box, FakeFetcher, make_env, run

VIEWPORT = Rect(0, 0, 1440, 900)
PHOTO = ImageReference(url="https://x/a.jpg", thumbnail="https://x/a_thumb.jpg", title="Beach")


class Events:
    def __init__(self):
        self.started = 0
        self.completed = []
        self.errors = []

    def hooks(self):
        return {
            "on_load_start": self._start,
            "on_load_complete": self.completed.append,
            "on_error": self.errors.append,
        }

    def _start(self):
        self.started += 1


@pytest.fixture
def constrained_context(tmp_path):
    env = make_env(ANDROID_PHONE_UA, 412, 915, 1.5)
    return GalleryContext(
        config=GalleryConfig(home=tmp_path),
        environment_provider=lambda: env,
        fetcher=FakeFetcher(),
    )


def test_optimal_src(context):
    image = OptimizedImage(PHOTO, context)

    assert image.optimal_src() == "https://x/a_thumb.jpg"
    assert image.optimal_src(280) == "https://x/a.jpg?w=300"
    assert image.optimal_src(700) == "https://x/a.jpg?w=768"
    assert image.optimal_src(1200) == "https://x/a.jpg?w=1920"


def test_optimal_src_constrained_device(constrained_context):
    """A constrained phone never asks for more than the large variant"""
    image = OptimizedImage(PHOTO, constrained_context)

    assert image.optimal_src(1200) == "https://x/a.jpg?w=1024"


def test_lazy_image_loads_when_visible(context, fetcher):
    events = Events()
    image = OptimizedImage(PHOTO, context, **events.hooks())
    box = Box(Rect(0, 2000, 280, 300))

    async def scenario():
        scheduler = context.create_scheduler()
        image.mount(box, lambda: 280, scheduler=scheduler)
        scheduler.update(VIEWPORT)
        assert image.pending is None

        box.rect = Rect(0, 400, 280, 300)
        scheduler.update(VIEWPORT)
        await image.pending
        scheduler.update(Rect(0, 10, 1440, 900))

    run(scenario())

    assert fetcher.calls == ["https://x/a.jpg?w=300"]
    assert image.is_loaded
    assert not image.is_loading
    assert image.error is None
    assert image.current_src == "https://x/a.jpg?w=300"
    assert events.started == 1
    assert isinstance(events.completed[0], LoadedImage)
    assert context.image_cache.has("https://x/a.jpg?w=300")
    assert context.performance.get_metrics().total_images_loaded == 1
    assert context.performance.get_metrics().image_load_times[0].image_size == 640 * 480


def test_lazy_mount_requires_scheduler(context):
    with pytest.raises(ValueError):
        OptimizedImage(PHOTO, context).mount(object(), lambda: 280)


def test_eager_image_loads_on_mount(context, fetcher):
    image = OptimizedImage(PHOTO, context, lazy=False)

    async def scenario():
        image.mount(object(), lambda: 700)
        await image.pending

    run(scenario())

    assert fetcher.calls == ["https://x/a.jpg?w=768"]
    assert image.is_loaded


def test_preload_loads_before_visible(context, fetcher):
    image = OptimizedImage(PHOTO, context, preload=True)

    async def scenario():
        image.mount(Box(Rect(0, 5000, 280, 300)), lambda: 280, scheduler=context.create_scheduler())
        await image.pending

    run(scenario())

    assert image.is_loaded
    assert len(fetcher.calls) == 1


def test_cache_hit_skips_fetch(context, fetcher):
    events = Events()
    context.image_cache.set("https://x/a.jpg?w=300", CacheEntry("https://x/a.jpg?w=300", 300, 200))
    image = OptimizedImage(PHOTO, context, **events.hooks())

    result = run(image.load("https://x/a.jpg?w=300"))

    assert fetcher.calls == []
    assert result == CacheEntry("https://x/a.jpg?w=300", 300, 200)
    assert events.completed == [result]
    assert events.started == 0
    assert image.is_loaded


def test_disabled_cache_always_fetches(context, fetcher):
    image = OptimizedImage(PHOTO, context, enable_cache=False)
    context.image_cache.set("https://x/a.jpg", CacheEntry("https://x/a.jpg", 1, 1))

    run(image.load("https://x/a.jpg"))

    assert fetcher.calls == ["https://x/a.jpg"]


def test_failed_load_sets_error(context, fetcher):
    fetcher.failing = ("a.jpg",)
    events = Events()
    image = OptimizedImage(PHOTO, context, lazy=False, **events.hooks())

    async def scenario():
        image.mount(object(), lambda: 280)
        await image.pending

    run(scenario())

    assert not image.is_loaded
    assert not image.is_loading
    assert image.error is not None
    assert events.errors == [image.error]
    assert events.completed == []
    assert len(fetcher.calls) == 1
    assert context.image_cache.size == 0


def test_unmount_during_fetch_leaves_state(context, fetcher):
    """A fetch finishing after unmount fills the cache but touches nothing else"""
    events = Events()
    image = OptimizedImage(PHOTO, context, lazy=False, **events.hooks())

    async def scenario():
        fetcher.gate = asyncio.Event()
        image.mount(object(), lambda: 280)
        await asyncio.sleep(0)
        image.unmount()
        fetcher.gate.set()
        return await image.pending

    result = run(scenario())

    assert isinstance(result, LoadedImage)
    assert not image.is_loaded
    assert events.completed == []
    assert context.image_cache.has("https://x/a.jpg?w=300")


def test_unmount_cancels_pending_visibility(context, fetcher):
    image = OptimizedImage(PHOTO, context)
    box = Box(Rect(0, 5000, 280, 300))

    async def scenario():
        scheduler = context.create_scheduler()
        image.mount(box, lambda: 280, scheduler=scheduler)
        image.unmount()
        box.rect = Rect(0, 0, 280, 300)
        scheduler.update(VIEWPORT)
        return scheduler

    scheduler = run(scenario())

    assert fetcher.calls == []
    assert len(scheduler) == 0


def test_container_resized_switches_variant(context, fetcher):
    width = [280]
    image = OptimizedImage(PHOTO, context, lazy=False)

    async def scenario():
        image.mount(object(), lambda: width[0])
        await image.pending
        assert image.container_resized() is None

        width[0] = 700
        await image.container_resized()

    run(scenario())

    assert fetcher.calls == ["https://x/a.jpg?w=300", "https://x/a.jpg?w=768"]
    assert image.current_src == "https://x/a.jpg?w=768"


def test_container_resized_ignored_before_load(context):
    image = OptimizedImage(PHOTO, context)

    assert image.container_resized(1200) is None


def test_reload_served_from_cache(context, fetcher):
    image = OptimizedImage(PHOTO, context, lazy=False)

    async def scenario():
        image.mount(object(), lambda: 280)
        await image.pending
        await image.reload()

    run(scenario())

    assert len(fetcher.calls) == 1


def test_prefetch_caches_and_swallows_errors(context, fetcher):
    fetcher.failing = ("broken",)

    assert run(prefetch(context, "https://x/ok.jpg")) == CacheEntry("https://x/ok.jpg", 640, 480)
    assert run(prefetch(context, "https://x/broken.jpg")) is None
    assert context.image_cache.has("https://x/ok.jpg")
    assert not context.image_cache.has("https://x/broken.jpg")


def test_preload_adjacent(context, fetcher):
    image = OptimizedImage(PHOTO, context)
    neighbours = [ImageReference(url="https://x/b.jpg"), None, ImageReference(url="https://x/c.jpg")]

    async def scenario():
        await asyncio.gather(*image.preload_adjacent(neighbours))

    run(scenario())

    assert sorted(fetcher.calls) == ["https://x/b.jpg", "https://x/c.jpg"]


def test_preload_adjacent_skipped_when_constrained(constrained_context):
    image = OptimizedImage(PHOTO, constrained_context)

    async def scenario():
        return image.preload_adjacent([ImageReference(url="https://x/b.jpg")])

    assert run(scenario()) == []
    assert constrained_context.fetcher.calls == []


def test_gallery_preloader_neighbours(context):
    images = [ImageReference(url=f"https://x/{i}.jpg") for i in range(6)]
    preloader = GalleryPreloader(context, count=2)

    picked = preloader.neighbours(images, 2)

    assert [img.url for img in picked] == [
        "https://x/3.jpg", "https://x/4.jpg", "https://x/1.jpg", "https://x/0.jpg",
    ]
    assert [img.url for img in preloader.neighbours(images, 0)] == ["https://x/1.jpg", "https://x/2.jpg"]


def test_gallery_preloader_update(context, fetcher):
    images = [ImageReference(url=f"https://x/{i}.jpg") for i in range(4)]
    preloader = GalleryPreloader(context, count=1)

    async def scenario():
        first = preloader.update(images, 1)
        again = preloader.update(images, 1)
        await asyncio.gather(*first)
        after = preloader.update(images, 1)
        return first, again, after

    first, again, after = run(scenario())

    assert len(first) == 2
    assert again == []
    assert after == []
    assert sorted(fetcher.calls) == ["https://x/0.jpg", "https://x/2.jpg"]


def test_gallery_preloader_skipped_when_constrained(constrained_context):
    preloader = GalleryPreloader(constrained_context)
    images = [ImageReference(url=f"https://x/{i}.jpg") for i in range(4)]

    assert preloader.update(images, 1) == []


class HeldFetcher(FakeFetcher):
    """Fetches for held sources wait until released."""

    def __init__(self):
        super().__init__()
        self.held = {}

    def hold(self, src):
        self.held[src] = asyncio.Event()

    def release(self, src):
        self.held[src].set()

    async def fetch(self, src):
        if src in self.held:
            await self.held[src].wait()
        return await super().fetch(src)


def test_cache_hit_after_failure_clears_error(context, fetcher):
    src = "https://x/a.jpg?w=300"
    fetcher.failing = ("a.jpg",)
    image = OptimizedImage(PHOTO, context)
    run(image.load(src))
    assert image.error is not None

    context.image_cache.set(src, CacheEntry(src, 300, 200))
    run(image.load(src))

    assert image.is_loaded
    assert image.error is None


def test_stale_fetch_does_not_override_newer_variant(tmp_path, desktop_env):
    """A slow 768 fetch finishing after a resize back to 280 leaves the 300 variant"""
    fetcher = HeldFetcher()
    context = GalleryContext(
        config=GalleryConfig(home=tmp_path),
        environment_provider=lambda: desktop_env,
        fetcher=fetcher,
    )
    events = Events()
    width = [280]
    image = OptimizedImage(PHOTO, context, lazy=False, **events.hooks())

    async def scenario():
        image.mount(object(), lambda: width[0])
        await image.pending

        fetcher.hold("https://x/a.jpg?w=768")
        width[0] = 700
        slow = image.container_resized()
        await asyncio.sleep(0)

        width[0] = 280
        await image.container_resized()

        fetcher.release("https://x/a.jpg?w=768")
        await slow

    run(scenario())

    assert image.current_src == "https://x/a.jpg?w=300"
    assert [r.src for r in events.completed] == ["https://x/a.jpg?w=300", "https://x/a.jpg?w=300"]
    assert context.image_cache.has("https://x/a.jpg?w=768")


def test_out_of_order_completion_keeps_latest_request(context):
    async def scenario():
        held = HeldFetcher()
        context.fetcher = held
        image = OptimizedImage(PHOTO, context)
        held.hold("https://x/a.jpg?w=300")
        first = asyncio.ensure_future(image.load("https://x/a.jpg?w=300"))
        await asyncio.sleep(0)
        await image.load("https://x/a.jpg?w=768")
        held.release("https://x/a.jpg?w=300")
        await first
        return image

    image = run(scenario())

    assert image.current_src == "https://x/a.jpg?w=768"
    assert image.is_loaded


def test_refetch_bypasses_cache(context, fetcher):
    src = "https://x/a.jpg?w=300"
    context.image_cache.set(src, CacheEntry(src, 300, 200))
    image = OptimizedImage(PHOTO, context)

    async def scenario():
        await image.refetch(src)

    run(scenario())

    assert fetcher.calls == [src]
    assert image.current_src == src
