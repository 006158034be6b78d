"""
Gallery card displaying one device-adapted image.

The card is a thin view over OptimizedImage: it mounts with the view's lazy-load
scheduler, paints the fetched bytes, and swaps in a fallback (initials or an
"unavailable" placeholder) when the load fails.
"""
from __future__ import annotations

import logging
from typing import Optional

import qtawesome as qta
from PyQt6.QtCore import QPropertyAnimation, QSize, Qt, pyqtSignal
from PyQt6.QtGui import QPixmap, QPixmapCache
from PyQt6.QtWidgets import QFrame, QGraphicsOpacityEffect, QLabel, QSizePolicy, QVBoxLayout

from memory_gallery.core.context import GalleryContext
from memory_gallery.core.dto.image import CacheEntry, ImageReference, LoadedImage
from memory_gallery.core.http_client import ImageLoadError
from memory_gallery.core.image_loader import LoadResult, OptimizedImage
from memory_gallery.core.motion import get_optimal_animation_duration
from memory_gallery.ui.lazy_scroll import ScrollVisibilityBridge

logger = logging.getLogger(__name__)

CARD_WIDTH = 280
IMAGE_ASPECT = 3 / 4


def initials_for(title: Optional[str]) -> str:
    """Up to two initials from a title ("Jane Doe" -> "JD")."""
    words = [w for w in (title or "").split() if w[:1].isalnum()]
    return "".join(w[0].upper() for w in words[:2])


class ImageCard(QFrame):
    """
    Signals:
        activated(card): Emitted when the card is clicked
    """

    activated = pyqtSignal(object)

    def __init__(self, image: ImageReference, context: GalleryContext, parent=None, *, lazy: bool = True):
        super().__init__(parent)
        self.setObjectName("imageCard")
        self.image_ref = image
        self._context = context
        self._pixmap: Optional[QPixmap] = None
        self._fade: Optional[QPropertyAnimation] = None

        self._image = OptimizedImage(
            image,
            context,
            lazy=lazy,
            on_load_start=self._on_load_start,
            on_load_complete=self._on_load_complete,
            on_error=self._on_error,
        )
        self._setup_ui()

    def _setup_ui(self):
        self.setMinimumWidth(CARD_WIDTH // 2)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Fixed)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(6)

        self.image_label = QLabel()
        self.image_label.setObjectName("imageCardImage")
        self.image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.image_label.setMinimumHeight(int(CARD_WIDTH * IMAGE_ASPECT))
        self.image_label.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Fixed)
        layout.addWidget(self.image_label)

        self.caption = QLabel(self.image_ref.title or "")
        self.caption.setObjectName("imageCardCaption")
        self.caption.setWordWrap(True)
        self.caption.setVisible(bool(self.image_ref.title))
        layout.addWidget(self.caption)

    # --------------------------------------------------------

    @property
    def optimized_image(self) -> OptimizedImage:
        return self._image

    def mount(self, bridge: ScrollVisibilityBridge) -> None:
        self._image.mount(
            self,
            container_width=lambda: float(self.image_label.width() or CARD_WIDTH),
            scheduler=bridge.scheduler,
            geometry=bridge.geometry_for(self),
        )

    def dispose(self) -> None:
        """Detach from the scheduler; in-flight fetches finish without touching the card."""
        self._image.unmount()
        if self._fade is not None:
            self._fade.stop()

    def container_resized(self) -> None:
        self._image.container_resized(float(self.image_label.width()))
        self._render_pixmap()

    # --------------------------------------------------------

    def _on_load_start(self) -> None:
        if self._pixmap is None:
            self.image_label.setText("Loading…")

    def _on_load_complete(self, result: LoadResult) -> None:
        pixmap = None
        if isinstance(result, LoadedImage):
            pixmap = QPixmap()
            if not pixmap.loadFromData(result.data):
                self._on_error(ImageLoadError(result.src, "unsupported image format"))
                return
            QPixmapCache.insert(result.src, pixmap)
        elif isinstance(result, CacheEntry):
            pixmap = QPixmapCache.find(result.src)
            if pixmap is None or pixmap.isNull():
                # dimensions are cached but the pixels were evicted
                self._image.refetch(result.src)
                return

        first_paint = self._pixmap is None
        self._pixmap = pixmap
        self._render_pixmap()
        if first_paint:
            self._fade_in()

    def _on_error(self, error: ImageLoadError) -> None:
        self._pixmap = None
        self.image_label.clear()
        initials = initials_for(self.image_ref.title)
        if initials:
            self.image_label.setText(initials)
            self.image_label.setProperty("fallback", "initials")
        else:
            icon = qta.icon("fa5s.image", color="#9ca3af")
            self.image_label.setPixmap(icon.pixmap(QSize(48, 48)))
            self.image_label.setToolTip("Image unavailable")
            self.image_label.setProperty("fallback", "unavailable")
        logger.debug(f"Showing fallback for {self.image_ref.url}: {error.reason}")

    def _render_pixmap(self) -> None:
        if self._pixmap is None or self._pixmap.isNull():
            return
        dpr = self.devicePixelRatioF()
        target = QSize(self.image_label.width(), self.image_label.minimumHeight()) * dpr
        scaled = self._pixmap.scaled(
            target,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        scaled.setDevicePixelRatio(dpr)
        self.image_label.setPixmap(scaled)

    def _fade_in(self) -> None:
        duration = get_optimal_animation_duration(self._image.capabilities)
        if duration <= 0:
            return
        effect = QGraphicsOpacityEffect(self.image_label)
        self.image_label.setGraphicsEffect(effect)
        self._fade = QPropertyAnimation(effect, b"opacity", self)
        self._fade.setDuration(duration)
        self._fade.setStartValue(0.0)
        self._fade.setEndValue(1.0)
        self._fade.finished.connect(lambda: self.image_label.setGraphicsEffect(None))
        self._fade.start()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self.activated.emit(self)
        super().mousePressEvent(event)
