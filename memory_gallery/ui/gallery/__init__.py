from memory_gallery.ui.gallery.gallery_view import GalleryView
from memory_gallery.ui.gallery.image_card import ImageCard

__all__ = ["GalleryView", "ImageCard"]
