"""
Application entry point for Memory Gallery (`memory-gallery` / `python -m memory_gallery`)
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication, QMainWindow
import qasync

from memory_gallery import __version__
from memory_gallery.core import GalleryContext
from memory_gallery.core.config import AppPaths, GalleryConfig
from memory_gallery.core.dto.image import ImageReference
from memory_gallery.core.preferences import PreferencesStore

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}

STATUS_INTERVAL_MS = 2000
CACHE_CLEANUP_INTERVAL_MS = 5 * 60 * 1000
MEMORY_SAMPLE_INTERVAL_MS = 10 * 1000


def load_images(source: Path) -> List[ImageReference]:
    """
    Read image references from a JSON manifest or a directory of images.

    A manifest is a JSON list of objects with at least a "url" key.
    """
    if source.is_dir():
        return [
            ImageReference(url=str(path), title=path.stem.replace("_", " "))
            for path in sorted(source.iterdir())
            if path.suffix.lower() in IMAGE_EXTENSIONS
        ]

    with open(source, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{source}: manifest must be a JSON list")
    return [ImageReference.from_dict(item) for item in data]


# Setup logging
def setup_logging(paths: AppPaths, store: PreferencesStore):
    """Configure application logging"""
    from memory_gallery.utils.logging_config import setup_logging as setup_categorized_logging

    logging_manager = setup_categorized_logging(log_dir=paths.logs, store=store)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("Memory Gallery Starting")
    logger.info("=" * 50)

    return logging_manager


class MainWindow(QMainWindow):
    def __init__(self, context: GalleryContext, images: List[ImageReference]):
        super().__init__()
        from memory_gallery.ui.gallery import GalleryView

        self.context = context
        self.setWindowTitle("Memory Gallery")
        self.resize(1200, 800)

        self.gallery = GalleryView(context, self)
        self.setCentralWidget(self.gallery)
        self.gallery.set_images(images)

        self._status_timer = QTimer(self)
        self._status_timer.setInterval(STATUS_INTERVAL_MS)
        self._status_timer.timeout.connect(self._update_status)
        self._status_timer.start()

        self._cleanup_timer = QTimer(self)
        self._cleanup_timer.setInterval(CACHE_CLEANUP_INTERVAL_MS)
        self._cleanup_timer.timeout.connect(context.image_cache.cleanup)
        self._cleanup_timer.start()

        self._memory_timer = QTimer(self)
        self._memory_timer.setInterval(MEMORY_SAMPLE_INTERVAL_MS)
        self._memory_timer.timeout.connect(context.performance.record_memory_usage)
        self._memory_timer.start()

    def _update_status(self):
        metrics = self.context.performance.get_metrics()
        text = (
            f"{metrics.total_images_loaded} loaded - "
            f"avg {metrics.average_load_time:.0f} ms - "
            f"cache {self.context.image_cache.size}/{self.context.image_cache.max_size}"
        )
        if metrics.memory_usage:
            text += f" - {metrics.memory_usage[-1].used / (1024 ** 2):.0f} MB"
        if self.context.performance.is_performance_degraded(self.context.capabilities):
            text += " - slow network"
        self.statusBar().showMessage(text)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Device-adaptive photo memory gallery")
    parser.add_argument("source", nargs="?", type=Path, default=Path("images"),
                        help="JSON manifest or directory of images (default: ./images)")
    parser.add_argument("--dev", action="store_true",
                        help="Development mode: re-detect device capabilities on every access")
    return parser.parse_args(argv)


async def async_main(args, config: GalleryConfig, store: PreferencesStore) -> MainWindow:
    """Create the context and main window inside the running event loop"""
    from memory_gallery.ui.environment import qt_environment_provider

    logger = logging.getLogger(__name__)

    images = load_images(args.source) if args.source.exists() else []
    if not images:
        logger.warning(f"No images found at {args.source}")

    context = GalleryContext(
        config=config,
        environment_provider=qt_environment_provider(preferences=lambda: store.preferences),
        preferences=store,
    )
    window = MainWindow(context, images)
    # the window size is the viewport from here on
    context.detector.set_environment_provider(
        qt_environment_provider(window, lambda: store.preferences)
    )

    window.show()
    logger.info("Application started successfully")
    return window


def main():
    """Main application entry point"""
    args = parse_args()

    config = GalleryConfig.from_env()
    config.development = config.development or args.dev
    paths = AppPaths(config.home)
    store = PreferencesStore(paths.preferences_file)
    setup_logging(paths, store)
    logger = logging.getLogger(__name__)

    try:
        app = QApplication(sys.argv)
        app.setApplicationName("Memory Gallery")
        app.setApplicationVersion(__version__)

        loop = qasync.QEventLoop(app)
        asyncio.set_event_loop(loop)

        app_close_event = asyncio.Event()
        app.aboutToQuit.connect(app_close_event.set)

        logger.info("Starting application with asyncio event loop integration")

        with loop:
            window = loop.run_until_complete(async_main(args, config, store))
            loop.run_until_complete(app_close_event.wait())
            logger.info("Shutting down...")
            loop.run_until_complete(window.context.close())

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        logger.info("Application closed")


if __name__ == "__main__":
    main()
