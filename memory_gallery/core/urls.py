"""
Responsive image URL variants.

Two schemes:
- Cloudinary transformation URLs when a cloudinary id and cloud name are known
- a generic `w=<breakpoint>` query parameter appended to the base URL otherwise
"""
from __future__ import annotations

from typing import Dict, Optional

from memory_gallery.core.dto.image import ResponsiveVariantSet

CLOUDINARY_HOST = "https://res.cloudinary.com"
PLACEHOLDER_HOST = "https://via.placeholder.com"

# Variant name -> width in pixels, smallest first
BREAKPOINTS: Dict[str, int] = {
    "thumbnail": 300,
    "small": 480,
    "medium": 768,
    "large": 1024,
    "xlarge": 1920,
}

# Order matters: cloudinary applies segments left to right
_TRANSFORM_KEYS = (
    ("width", "w"),
    ("height", "h"),
    ("crop", "c"),
    ("quality", "q"),
    ("format", "f"),
    ("gravity", "g"),
    ("effect", "e"),
)


def build_cloudinary_url(public_id: str, cloud_name: Optional[str] = None, **transforms) -> str:
    """
    Build a Cloudinary delivery URL.

    Known transform keywords: width, height, crop, quality, format, gravity,
    effect. Falsy values are skipped. Without a cloud name the placeholder
    host is used so callers always get a URL back.
    """
    segments = [
        f"{prefix}_{transforms[key]}"
        for key, prefix in _TRANSFORM_KEYS
        if transforms.get(key)
    ]
    base = f"{CLOUDINARY_HOST}/{cloud_name}/image/upload" if cloud_name else PLACEHOLDER_HOST
    if segments:
        return f"{base}/{','.join(segments)}/{public_id}"
    return f"{base}/{public_id}"


def _with_width_param(base_url: str, width: int) -> str:
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}w={width}"


def generate_responsive_image_urls(
    base_url: str,
    cloudinary_id: Optional[str] = None,
    cloud_name: Optional[str] = None,
) -> ResponsiveVariantSet:
    """
    Build the five size variants for an image.

    An existing `w=` parameter on base_url is left in place; the variant
    parameter is appended after it.
    """
    if cloudinary_id and cloud_name:
        urls = {
            name: build_cloudinary_url(
                cloudinary_id, cloud_name, width=width, crop="limit", quality="auto"
            )
            for name, width in BREAKPOINTS.items()
        }
    else:
        urls = {name: _with_width_param(base_url, width) for name, width in BREAKPOINTS.items()}
    return ResponsiveVariantSet(**urls)


def select_variant(width: int, variants: ResponsiveVariantSet) -> str:
    """Smallest variant whose breakpoint covers width (xlarge beyond 1024)."""
    for name, url in variants:
        if name == "xlarge" or width <= BREAKPOINTS[name]:
            return url
    return variants.xlarge


class ResponsiveURLBuilder:
    """Variant builder bound to the configured cloud name."""

    def __init__(self, cloud_name: Optional[str] = None):
        self.cloud_name = cloud_name

    def variants(self, base_url: str, cloudinary_id: Optional[str] = None) -> ResponsiveVariantSet:
        return generate_responsive_image_urls(base_url, cloudinary_id, self.cloud_name)

    def url_for_width(self, base_url: str, width: int, cloudinary_id: Optional[str] = None) -> str:
        return select_variant(width, self.variants(base_url, cloudinary_id))
