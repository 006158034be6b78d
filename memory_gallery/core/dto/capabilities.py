from dataclasses import dataclass
from enum import Enum


class Platform(str, Enum):
    DESKTOP = "desktop"
    ANDROID = "android"
    IOS = "ios"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class ColorScheme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


@dataclass(frozen=True, slots=True)
class DeviceCapabilities:
    is_mobile: bool
    is_tablet: bool
    is_desktop: bool
    is_low_memory_device: bool
    is_slow_connection: bool
    prefers_reduced_motion: bool
    screen_width: int
    screen_height: int
    device_pixel_ratio: float
    platform: Platform
    orientation: Orientation
    touch_enabled: bool
    color_scheme: ColorScheme

    @property
    def is_constrained(self) -> bool:
        """Low-memory device or slow connection."""
        return self.is_low_memory_device or self.is_slow_connection

    @classmethod
    def server_default(cls) -> "DeviceCapabilities":
        """Descriptor used when there is no client to probe."""
        return cls(
            is_mobile=False,
            is_tablet=False,
            is_desktop=True,
            is_low_memory_device=False,
            is_slow_connection=False,
            prefers_reduced_motion=False,
            screen_width=1920,
            screen_height=1080,
            device_pixel_ratio=1.0,
            platform=Platform.DESKTOP,
            orientation=Orientation.LANDSCAPE,
            touch_enabled=False,
            color_scheme=ColorScheme.LIGHT,
        )
