from __future__ import annotations

import logging
from typing import Callable

from PyQt6.QtCore import QEvent, QObject, QPoint, QTimer
from PyQt6.QtWidgets import QScrollArea, QWidget

from memory_gallery.core.lazy_load import LazyLoadScheduler, Rect

logger = logging.getLogger(__name__)


class ScrollVisibilityBridge(QObject):
    """
    Feeds a QScrollArea's viewport into a LazyLoadScheduler.

    Every scroll, viewport resize or explicit refresh recomputes target
    intersections; widget geometry is reported in viewport coordinates.
    """

    def __init__(self, scroll_area: QScrollArea, scheduler: LazyLoadScheduler, parent: QObject | None = None):
        super().__init__(parent)
        self._scroll_area = scroll_area
        self._scheduler = scheduler

        scroll_area.verticalScrollBar().valueChanged.connect(self.refresh)
        scroll_area.horizontalScrollBar().valueChanged.connect(self.refresh)
        scroll_area.viewport().installEventFilter(self)

    @property
    def scheduler(self) -> LazyLoadScheduler:
        return self._scheduler

    def viewport_rect(self) -> Rect:
        viewport = self._scroll_area.viewport()
        return Rect(0, 0, viewport.width(), viewport.height())

    def geometry_for(self, widget: QWidget) -> Callable[[], Rect]:
        viewport = self._scroll_area.viewport()

        def geometry() -> Rect:
            pos = widget.mapTo(viewport, QPoint(0, 0))
            return Rect(pos.x(), pos.y(), widget.width(), widget.height())

        return geometry

    def refresh(self, *_args) -> None:
        entries = self._scheduler.update(self.viewport_rect())
        if entries:
            logger.debug(f"Visibility changed for {len(entries)} target(s)")

    def schedule_refresh(self) -> None:
        """Refresh after pending layout work has run."""
        QTimer.singleShot(0, self.refresh)

    def eventFilter(self, obj, event):
        if obj is self._scroll_area.viewport() and event.type() in (QEvent.Type.Resize, QEvent.Type.Show):
            self.schedule_refresh()
        return False
