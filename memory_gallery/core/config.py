from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_HOME = Path.home() / ".memory-gallery"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class GalleryConfig:
    """Runtime configuration for the image pipeline."""
    cloud_name: Optional[str] = None        # Cloudinary cloud; None disables CDN URLs
    development: bool = False               # recompute capabilities on every access
    home: Path = field(default_factory=lambda: DEFAULT_HOME)
    image_cache_size: int = 100
    performance_window: int = 50
    slow_load_ms: float = 1000.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GalleryConfig":
        """
        Load configuration from environment variables.

        CLOUDINARY_CLOUD_NAME (or NEXT_PUBLIC_CLOUDINARY_CLOUD_NAME),
        MEMORY_GALLERY_DEV, MEMORY_GALLERY_HOME.
        """
        env = os.environ if environ is None else environ
        config = cls()

        cloud_name = env.get("CLOUDINARY_CLOUD_NAME") or env.get("NEXT_PUBLIC_CLOUDINARY_CLOUD_NAME")
        config.cloud_name = cloud_name.strip() if cloud_name and cloud_name.strip() else None
        config.development = env.get("MEMORY_GALLERY_DEV", "").strip().lower() in _TRUTHY

        home = env.get("MEMORY_GALLERY_HOME")
        if home:
            config.home = Path(home).expanduser()
        return config


class AppPaths:
    """
    Filesystem locations used by the application.

    Directories are created on access.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        self.base = Path(base_dir) if base_dir else DEFAULT_HOME
        self.base.mkdir(parents=True, exist_ok=True)

    @property
    def logs(self) -> Path:
        path = self.base / "logs"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def preferences_file(self) -> Path:
        return self.base / "preferences.json"
