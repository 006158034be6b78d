"""
Centralized logging configuration with categorized loggers.

This module provides:
- Named categories for the gallery subsystems
- Per-category log level control
- Persistent levels via the preferences store
"""
import logging
from typing import Dict, Optional
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler


class LoggerCategory:
    """Named categories for application loggers"""
    CORE = "core"                   # Context, config
    CAPABILITIES = "capabilities"   # Device capability detection
    IMAGE_LOADING = "image"         # Size policy, URLs, lazy loading, image cache
    NETWORK = "network"             # Image fetching
    PERFORMANCE = "performance"     # Load-time diagnostics
    UI = "ui"                       # Widgets and windows
    SETTINGS = "settings"           # Preferences


DEFAULT_LOG_LEVELS = {
    LoggerCategory.CORE: logging.INFO,
    LoggerCategory.CAPABILITIES: logging.INFO,
    LoggerCategory.IMAGE_LOADING: logging.WARNING,  # Reduce image loading noise
    LoggerCategory.NETWORK: logging.INFO,
    LoggerCategory.PERFORMANCE: logging.WARNING,    # slow-load warnings only
    LoggerCategory.UI: logging.WARNING,
    LoggerCategory.SETTINGS: logging.INFO,
}


MODULE_TO_CATEGORY = {
    # Core
    'memory_gallery.core': LoggerCategory.CORE,
    'memory_gallery.core.context': LoggerCategory.CORE,
    'memory_gallery.core.config': LoggerCategory.CORE,
    'memory_gallery.app': LoggerCategory.CORE,

    # Capabilities
    'memory_gallery.core.capabilities': LoggerCategory.CAPABILITIES,
    'memory_gallery.ui.environment': LoggerCategory.CAPABILITIES,

    # Image loading
    'memory_gallery.core.cache': LoggerCategory.IMAGE_LOADING,
    'memory_gallery.core.lazy_load': LoggerCategory.IMAGE_LOADING,
    'memory_gallery.core.image_loader': LoggerCategory.IMAGE_LOADING,
    'memory_gallery.ui.lazy_scroll': LoggerCategory.IMAGE_LOADING,

    # Network
    'memory_gallery.core.http_client': LoggerCategory.NETWORK,

    # Performance
    'memory_gallery.core.performance': LoggerCategory.PERFORMANCE,

    # UI
    'memory_gallery.ui': LoggerCategory.UI,
    'memory_gallery.ui.gallery': LoggerCategory.UI,
    'memory_gallery.ui.gallery.image_card': LoggerCategory.UI,
    'memory_gallery.ui.gallery.gallery_view': LoggerCategory.UI,

    # Settings
    'memory_gallery.core.preferences': LoggerCategory.SETTINGS,
}


class LoggingManager:
    """Manages application-wide logging configuration"""

    def __init__(self, log_dir: Optional[Path] = None, store=None):
        """
        Initialize logging manager.

        Args:
            log_dir: Directory for log files
            store: PreferencesStore (or anything with get_config/set_config)
                   used to persist category levels
        """
        self.log_dir = log_dir or (Path.home() / ".memory-gallery" / "logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.store = store
        self._category_levels: Dict[str, int] = {}
        self._load_levels()

    def _load_levels(self):
        """Load log levels from the preferences store"""
        if not self.store:
            self._category_levels = DEFAULT_LOG_LEVELS.copy()
            return

        for category, default_level in DEFAULT_LOG_LEVELS.items():
            level_name = self.store.get_config(f'log_level_{category}', logging.getLevelName(default_level))
            level = logging.getLevelName(str(level_name).upper())
            self._category_levels[category] = level if isinstance(level, int) else default_level

    def get_category_level(self, category: str) -> int:
        """Get log level for a category"""
        return self._category_levels.get(category, logging.INFO)

    def set_category_level(self, category: str, level: int):
        """Set log level for a category"""
        self._category_levels[category] = level
        if self.store:
            self.store.set_config(f'log_level_{category}', logging.getLevelName(level))

        self._apply_category_level(category, level)

    def _apply_category_level(self, category: str, level: int):
        """Apply level to all loggers in a category"""
        for module_name, cat in MODULE_TO_CATEGORY.items():
            if cat == category:
                logging.getLogger(module_name).setLevel(level)

    def setup_logging(self, root_level: int = logging.INFO):
        """
        Setup application logging with categories.

        Args:
            root_level: Root logger level (default: INFO)
        """
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        # File handler with rotation
        file_handler = TimedRotatingFileHandler(
            self.log_dir / "memory_gallery.log",
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)

        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(root_level)

        # Remove existing handlers
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)

        root_logger.addHandler(file_handler)
        root_logger.addHandler(stream_handler)

        for category, level in self._category_levels.items():
            self._apply_category_level(category, level)

        # Silence noisy third-party loggers
        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)

    def get_all_levels(self) -> Dict[str, int]:
        """Get all category log levels"""
        return self._category_levels.copy()


def setup_logging(log_dir: Optional[Path] = None, store=None, root_level: int = logging.INFO) -> LoggingManager:
    """Setup application logging (convenience function)"""
    manager = LoggingManager(log_dir=log_dir, store=store)
    manager.setup_logging(root_level)
    return manager
