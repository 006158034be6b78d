"""
Device-adaptive image loading for gallery cards.

OptimizedImage drives one image through the pipeline:
capabilities -> size policy -> URL variant -> lazy-load subscription ->
fetch (cache first) -> performance sample -> state + callbacks.

Loads are fire-and-forget asyncio tasks: unmounting stops state updates but
does not abort a fetch that is already running, and failures are not retried.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Coroutine, Iterable, List, Optional, Sequence, Set, Union

from memory_gallery.core.dto.image import CacheEntry, ImageReference, LoadedImage
from memory_gallery.core.http_client import ImageLoadError
from memory_gallery.core.lazy_load import Geometry, IntersectionEntry, LazyLoadScheduler, VisibilitySubscription
from memory_gallery.core.size_policy import get_optimal_image_size
from memory_gallery.core.urls import select_variant

if TYPE_CHECKING:
    from memory_gallery.core.context import GalleryContext

logger = logging.getLogger(__name__)

LoadResult = Union[LoadedImage, CacheEntry]
WidthProvider = Callable[[], Optional[float]]


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


async def prefetch(context: "GalleryContext", src: str) -> Optional[CacheEntry]:
    """Fetch src into the image cache; failures are logged and swallowed."""
    cached = context.image_cache.get(src)
    if cached is not None:
        return cached
    start = _now_ms()
    try:
        result = await context.fetcher.fetch(src)
    except ImageLoadError as e:
        logger.debug(f"Preload failed: {e}")
        return None
    context.performance.record_image_load_time(start, _now_ms(), result.width * result.height)
    entry = result.to_cache_entry()
    context.image_cache.set(src, entry)
    return entry


class OptimizedImage:
    def __init__(
        self,
        image: ImageReference,
        context: "GalleryContext",
        *,
        lazy: bool = True,
        preload: bool = False,
        enable_cache: bool = True,
        on_load_start: Optional[Callable[[], None]] = None,
        on_load_complete: Optional[Callable[[LoadResult], None]] = None,
        on_error: Optional[Callable[[ImageLoadError], None]] = None,
    ):
        """
        Args:
            image: Image to display
            context: Shared GalleryContext (cache, monitor, fetcher, detector)
            lazy: Wait for the mounted target to become visible before fetching
            preload: Fetch on mount even when lazy
            enable_cache: Consult and populate the context's ImageCache
            on_load_start: Called when a network/disk fetch starts
            on_load_complete: Called with the LoadedImage, or the CacheEntry on a cache hit
            on_error: Called with the ImageLoadError of a failed load
        """
        self.image = image
        self.lazy = lazy
        self.preload = preload
        self.enable_cache = enable_cache
        self.on_load_start = on_load_start
        self.on_load_complete = on_load_complete
        self.on_error = on_error

        self._context = context
        # capabilities are read once per image
        self.capabilities = context.capabilities
        self.variants = context.url_builder.variants(image.url, image.cloudinary_id)

        self.is_loaded = False
        self.is_loading = False
        self.error: Optional[ImageLoadError] = None
        self._src: Optional[str] = None
        self._requested: Optional[str] = None   # src of the most recent load()

        self._width_provider: Optional[WidthProvider] = None
        self._subscription: Optional[VisibilitySubscription] = None
        self._unmounted = False
        self._task: Optional[asyncio.Future] = None

    # --------------------------------------------------------

    @property
    def current_src(self) -> str:
        return self._src or self.image.thumbnail or self.image.url

    @property
    def pending(self) -> Optional[asyncio.Future]:
        """Most recently started load task, if any."""
        return self._task

    def optimal_src(self, container_width: Optional[float] = None) -> str:
        """Variant URL for a container width; falls back to thumbnail/url when unknown."""
        if container_width is None and self._width_provider is not None:
            container_width = self._width_provider()
        if container_width is None:
            return self.image.thumbnail or self.image.url

        decision = get_optimal_image_size(container_width, self.capabilities)
        return select_variant(decision.width, self.variants)

    def mount(
        self,
        target: Any,
        container_width: WidthProvider,
        *,
        scheduler: Optional[LazyLoadScheduler] = None,
        geometry: Optional[Geometry] = None,
    ) -> None:
        """
        Attach to a displayed target.

        Lazy images subscribe with the scheduler and start loading on first
        visibility; non-lazy (or preload) images start loading immediately.
        """
        if self.lazy and scheduler is None:
            raise ValueError("lazy images need a LazyLoadScheduler to mount")

        self._unmounted = False
        self._width_provider = container_width

        if self.lazy:
            self._subscription = scheduler.subscribe(target, self._on_visible, geometry)
        if not self.lazy or self.preload:
            self._spawn(self.load(self.optimal_src()))

    def unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._unmounted = True

    def _on_visible(self, entry: IntersectionEntry) -> None:
        self._subscription = None
        logger.debug(f"Image became visible ({entry.intersection_ratio:.2f}): {self.image.url}")
        self._spawn(self.load(self.optimal_src()))

    def _spawn(self, coro: Coroutine) -> asyncio.Future:
        self._task = asyncio.ensure_future(coro)
        return self._task

    # --------------------------------------------------------

    async def load(self, src: str, *, force: bool = False) -> Optional[LoadResult]:
        """
        Load src, consulting the cache first unless force is set.

        Returns the LoadedImage/CacheEntry, or None on failure. Only the most
        recently requested src updates state; older fetches that finish later
        still fill the cache.
        """
        if not src:
            return None
        self._requested = src

        cache = self._context.image_cache
        if self.enable_cache and not force and cache.has(src):
            entry = cache.get(src)
            if not self._unmounted:
                self._src = entry.src
                self.is_loaded = True
                self.is_loading = False
                self.error = None
                if self.on_load_complete:
                    self.on_load_complete(entry)
            return entry

        self.is_loading = True
        self.error = None
        if self.on_load_start:
            self.on_load_start()

        start = _now_ms()
        try:
            result = await self._context.fetcher.fetch(src)
        except ImageLoadError as e:
            logger.warning(f"Image load failed: {e}")
            if not self._unmounted and not self._superseded(src):
                self.error = e
                self.is_loading = False
                if self.on_error:
                    self.on_error(e)
            return None

        self._context.performance.record_image_load_time(start, _now_ms(), result.width * result.height)
        if self.enable_cache:
            cache.set(src, result.to_cache_entry())

        if self._unmounted or self._superseded(src):
            return result

        self._src = src
        self.is_loaded = True
        self.is_loading = False
        if self.on_load_complete:
            self.on_load_complete(result)
        return result

    def container_resized(self, container_width: Optional[float] = None) -> Optional[asyncio.Future]:
        """Reload when a loaded image's optimal variant changed."""
        if not self.is_loaded or self._unmounted:
            return None
        src = self.optimal_src(container_width)
        if src == (self._requested or self._src):
            return None
        return self._spawn(self.load(src))

    def _superseded(self, src: str) -> bool:
        return self._requested is not None and self._requested != src

    def reload(self) -> asyncio.Future:
        return self._spawn(self.load(self.optimal_src()))

    def refetch(self, src: Optional[str] = None) -> asyncio.Future:
        """Fetch again bypassing the image cache (pixels evicted elsewhere)."""
        return self._spawn(self.load(src or self.current_src, force=True))

    def preload_adjacent(self, images: Iterable[ImageReference]) -> List[asyncio.Future]:
        """Warm the cache for neighbouring images; skipped on constrained devices."""
        if self.capabilities.is_constrained:
            return []
        tasks = []
        for img in images:
            if img is None:
                continue
            src = img.thumbnail or img.url
            if not self._context.image_cache.has(src):
                tasks.append(asyncio.ensure_future(prefetch(self._context, src)))
        return tasks


class GalleryPreloader:
    """Keeps the images around the current index warm in the cache."""

    def __init__(self, context: "GalleryContext", count: int = 2):
        self._context = context
        self.count = max(0, count)
        self._in_flight: Set[str] = set()

    def neighbours(self, images: Sequence[ImageReference], current_index: int) -> List[ImageReference]:
        picked = []
        for offset in range(1, self.count + 1):
            if current_index + offset < len(images):
                picked.append(images[current_index + offset])
        for offset in range(1, self.count + 1):
            if current_index - offset >= 0:
                picked.append(images[current_index - offset])
        return picked

    def update(self, images: Sequence[ImageReference], current_index: int) -> List[asyncio.Future]:
        if self._context.capabilities.is_constrained:
            return []

        tasks = []
        for img in self.neighbours(images, current_index):
            src = img.thumbnail or img.url
            if src in self._in_flight or self._context.image_cache.has(src):
                continue
            self._in_flight.add(src)
            task = asyncio.ensure_future(prefetch(self._context, src))
            task.add_done_callback(lambda _t, s=src: self._in_flight.discard(s))
            tasks.append(task)
        return tasks
