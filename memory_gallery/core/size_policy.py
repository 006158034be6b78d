from __future__ import annotations

import math

from memory_gallery.core.dto.capabilities import DeviceCapabilities
from memory_gallery.core.dto.image import ImageSizeDecision

CONSTRAINED_MAX_WIDTH = 800
WIDTH_STEP = 100

QUALITY_CONSTRAINED = 65
QUALITY_HIGH_DPI = 80
QUALITY_DEFAULT = 85


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def get_optimal_image_size(container_width: float, capabilities: DeviceCapabilities) -> ImageSizeDecision:
    """
    Pick the pixel width and quality to request for a container.

    The width is the container width in device pixels, capped at 800 on
    constrained devices, then rounded up to the next multiple of 100 so CDN
    variants are shared between similar containers. The constrained quality
    wins over the high-DPI one.
    """
    dpr = capabilities.device_pixel_ratio or 1.0
    width = _round_half_up(max(0.0, float(container_width)) * dpr)

    if capabilities.is_constrained:
        width = min(width, CONSTRAINED_MAX_WIDTH)

    width = max(WIDTH_STEP, int(math.ceil(width / WIDTH_STEP)) * WIDTH_STEP)

    if capabilities.is_constrained:
        quality = QUALITY_CONSTRAINED
    elif dpr > 2:
        quality = QUALITY_HIGH_DPI
    else:
        quality = QUALITY_DEFAULT

    return ImageSizeDecision(width=width, quality=quality)
