from memory_gallery.core.context import GalleryContext

__all__ = ["GalleryContext"]
