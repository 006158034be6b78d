"""
Scrollable grid of ImageCards.

Owns the lazy-load scheduler for its viewport; cards subscribe on mount and
fetch the first time they come within the root margin of the viewport.
"""
from typing import List, Sequence
import logging

from PyQt6.QtCore import Qt, QTimer, pyqtSignal
from PyQt6.QtWidgets import QGridLayout, QScrollArea, QWidget

from memory_gallery.core.context import GalleryContext
from memory_gallery.core.dto.image import ImageReference
from memory_gallery.core.image_loader import GalleryPreloader
from memory_gallery.ui.gallery.image_card import CARD_WIDTH, ImageCard
from memory_gallery.ui.lazy_scroll import ScrollVisibilityBridge

logger = logging.getLogger(__name__)

GRID_SPACING = 16


class GalleryView(QScrollArea):
    """
    Signals:
        image_activated(index, image): Emitted when a card is clicked
    """

    image_activated = pyqtSignal(int, object)

    def __init__(self, context: GalleryContext, parent=None):
        super().__init__(parent)
        self.setObjectName("galleryScrollArea")
        self._context = context
        self.images: List[ImageReference] = []
        self.cards: List[ImageCard] = []
        self._columns = 0

        self._scheduler = context.create_scheduler()
        self._bridge = ScrollVisibilityBridge(self, self._scheduler, self)
        self._preloader = GalleryPreloader(context)

        # Debounce timer for resize events to reduce layout thrashing
        self._resize_timer = QTimer(self)
        self._resize_timer.setSingleShot(True)
        self._resize_timer.setInterval(100)
        self._resize_timer.timeout.connect(self._do_reflow)

        self._setup_ui()

        if not self._scheduler.enabled:
            logger.warning("No display environment detected; lazy images will not load")

    def _setup_ui(self):
        self.setWidgetResizable(True)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)

        container = QWidget()
        container.setObjectName("galleryContainer")
        self.setWidget(container)

        self.grid_layout = QGridLayout(container)
        self.grid_layout.setSpacing(GRID_SPACING)
        self.grid_layout.setContentsMargins(GRID_SPACING, GRID_SPACING, GRID_SPACING, GRID_SPACING)
        self.grid_layout.setAlignment(Qt.AlignmentFlag.AlignTop)

    # --------------------------------------------------------

    def set_images(self, images: Sequence[ImageReference]):
        """Replace the displayed images."""
        self.setUpdatesEnabled(False)
        try:
            self.clear()
            self.images = list(images)
            for image in self.images:
                card = ImageCard(image, self._context, self.widget())
                card.activated.connect(self._on_card_activated)
                self.cards.append(card)
            self._layout_cards(force=True)
            for card in self.cards:
                card.mount(self._bridge)
        finally:
            self.setUpdatesEnabled(True)

        self._bridge.schedule_refresh()
        logger.info(f"Gallery showing {len(self.images)} images")

    def clear(self):
        for card in self.cards:
            card.dispose()
            self.grid_layout.removeWidget(card)
            card.deleteLater()
        self.cards = []
        self.images = []
        self._columns = 0

    def _column_count(self) -> int:
        available = self.viewport().width() - 2 * GRID_SPACING
        return max(1, available // (CARD_WIDTH + GRID_SPACING))

    def _layout_cards(self, force: bool = False) -> bool:
        columns = self._column_count()
        if columns == self._columns and not force:
            return False
        self._columns = columns
        for card in self.cards:
            self.grid_layout.removeWidget(card)
        for index, card in enumerate(self.cards):
            self.grid_layout.addWidget(card, index // columns, index % columns)
        return True

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._resize_timer.start()

    def _do_reflow(self):
        # window size feeds the capability descriptor used by new cards
        self._context.detector.reset()
        self._layout_cards()
        for card in self.cards:
            card.container_resized()
        self._bridge.schedule_refresh()

    def _on_card_activated(self, card: ImageCard):
        try:
            index = self.cards.index(card)
        except ValueError:
            return
        self._preloader.update(self.images, index)
        self.image_activated.emit(index, card.image_ref)

    def closeEvent(self, event):
        self._scheduler.disconnect()
        super().closeEvent(event)
