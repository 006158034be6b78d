from memory_gallery.core.dto.capabilities import (
    ColorScheme,
    DeviceCapabilities,
    Orientation,
    Platform,
)
from memory_gallery.core.dto.environment import ClientEnvironment, NetworkInformation

# Image pipeline DTOs
from memory_gallery.core.dto.image import (
    CacheEntry,
    ImageReference,
    ImageSizeDecision,
    LoadedImage,
    ResponsiveVariantSet,
)

__all__ = [
    # Capabilities
    "ColorScheme",
    "DeviceCapabilities",
    "Orientation",
    "Platform",

    # Environment
    "ClientEnvironment",
    "NetworkInformation",

    # Images
    "CacheEntry",
    "ImageReference",
    "ImageSizeDecision",
    "LoadedImage",
    "ResponsiveVariantSet",
]
