from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from memory_gallery.core.cache import ImageCache
from memory_gallery.core.capabilities import (
    DeviceCapabilityDetector,
    DeviceClassifier,
    EnvironmentProvider,
)
from memory_gallery.core.config import AppPaths, GalleryConfig
from memory_gallery.core.dto.capabilities import DeviceCapabilities
from memory_gallery.core.http_client import HttpImageFetcher
from memory_gallery.core.lazy_load import LazyLoadScheduler
from memory_gallery.core.performance import PerformanceMonitor
from memory_gallery.core.preferences import PreferencesStore
from memory_gallery.core.urls import ResponsiveURLBuilder

logger = logging.getLogger(__name__)


class GalleryContext:
    """
    Shared image pipeline dependencies (detector + cache + monitor + fetcher).

    Use a single instance per window (or per request when rendering
    server-side); nothing here is module-global.
    """

    def __init__(
        self,
        *,
        config: Optional[GalleryConfig] = None,
        environment_provider: Optional[EnvironmentProvider] = None,
        classifier: Optional[DeviceClassifier] = None,
        fetcher=None,
        preferences: Optional[PreferencesStore] = None,
    ):
        self.config = config or GalleryConfig()
        self._paths: Optional[AppPaths] = None
        self._preferences = preferences

        self.detector = DeviceCapabilityDetector(
            environment_provider,
            classifier=classifier,
            development=self.config.development,
        )
        self.image_cache = ImageCache(max_size=self.config.image_cache_size)
        self.performance = PerformanceMonitor(
            window=self.config.performance_window,
            slow_load_ms=self.config.slow_load_ms,
        )
        self.url_builder = ResponsiveURLBuilder(self.config.cloud_name)
        self.fetcher = fetcher or HttpImageFetcher()

        logger.info(
            f"Gallery context created - cdn: {self.config.cloud_name or 'disabled'}, "
            f"development: {self.config.development}, cache size: {self.config.image_cache_size}"
        )

    @property
    def paths(self) -> AppPaths:
        if self._paths is None:
            self._paths = AppPaths(self.config.home)
        return self._paths

    @property
    def preferences(self) -> PreferencesStore:
        if self._preferences is None:
            self._preferences = PreferencesStore(self.paths.preferences_file)
        return self._preferences

    @property
    def capabilities(self) -> DeviceCapabilities:
        return self.detector.get_capabilities()

    def create_scheduler(self, options: Optional[Mapping[str, Any]] = None) -> LazyLoadScheduler:
        """Lazy-load scheduler for one scrolling view, adapted to the current device."""
        return LazyLoadScheduler(
            environment=self.detector.environment(),
            capabilities=self.capabilities,
            options=options,
        )

    async def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if close is not None:
            await close()
        self.image_cache.clear()
