from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple


@dataclass(frozen=True, slots=True)
class ImageReference:
    url: str                                # local path or remote URL
    cloudinary_id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    # display helpers (optional)
    thumbnail: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ImageReference":
        return cls(
            url=data["url"],
            cloudinary_id=data.get("cloudinary_id") or data.get("cloudinaryId"),
            width=data.get("width"),
            height=data.get("height"),
            thumbnail=data.get("thumbnail"),
            title=data.get("title"),
        )


@dataclass(frozen=True, slots=True)
class ImageSizeDecision:
    width: int
    quality: int


@dataclass(frozen=True, slots=True)
class ResponsiveVariantSet:
    thumbnail: str
    small: str
    medium: str
    large: str
    xlarge: str

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        yield "thumbnail", self.thumbnail
        yield "small", self.small
        yield "medium", self.medium
        yield "large", self.large
        yield "xlarge", self.xlarge


@dataclass(frozen=True, slots=True)
class CacheEntry:
    src: str
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class LoadedImage:
    src: str
    width: int
    height: int
    data: bytes = field(default=b"", repr=False)

    def to_cache_entry(self) -> CacheEntry:
        return CacheEntry(src=self.src, width=self.width, height=self.height)
