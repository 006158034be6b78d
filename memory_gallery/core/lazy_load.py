"""
Viewport-intersection scheduling for lazy image loads.

LazyLoadObserver follows IntersectionObserver semantics over plain rectangles:
targets report their bounding rect, the host view reports its viewport rect on
every scroll/resize tick via update(), and the callback receives the entries
whose intersection state changed.

LazyLoadScheduler layers fire-once subscriptions on top: a subscriber is
notified the first time its target becomes visible and is then unobserved.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from memory_gallery.core.capabilities import get_device_capabilities
from memory_gallery.core.dto.capabilities import DeviceCapabilities
from memory_gallery.core.dto.environment import ClientEnvironment

logger = logging.getLogger(__name__)

DEFAULT_ROOT_MARGIN = "50px"
MOBILE_ROOT_MARGIN = "25px"
DEFAULT_THRESHOLD = 0.1

_MARGIN_TOKEN = re.compile(r"^(-?\d+(?:\.\d+)?)(px|%)?$")


# ------------------------------------------------------------
# Geometry
# ------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def intersection(self, other: "Rect") -> Optional["Rect"]:
        """Overlap of two rects; edge-adjacent rects give a zero-area rect."""
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right < left or bottom < top:
            return None
        return Rect(left, top, right - left, bottom - top)

    def expanded(self, top: float, right: float, bottom: float, left: float) -> "Rect":
        return Rect(self.x - left, self.y - top, self.width + left + right, self.height + top + bottom)


@dataclass(frozen=True, slots=True)
class RootMargin:
    """CSS-style margin shorthand; each side is (value, is_percent)."""
    top: Tuple[float, bool]
    right: Tuple[float, bool]
    bottom: Tuple[float, bool]
    left: Tuple[float, bool]

    @classmethod
    def parse(cls, text: str) -> "RootMargin":
        tokens = (text or "0px").split()
        if not 1 <= len(tokens) <= 4:
            raise ValueError(f"Invalid root margin: {text!r}")

        sides = []
        for token in tokens:
            match = _MARGIN_TOKEN.match(token)
            if not match:
                raise ValueError(f"Invalid root margin: {text!r}")
            value, unit = match.groups()
            if unit is None and float(value) != 0:
                raise ValueError(f"Root margin values need px or %: {text!r}")
            sides.append((float(value), unit == "%"))

        if len(sides) == 1:
            sides = sides * 4
        elif len(sides) == 2:
            sides = [sides[0], sides[1], sides[0], sides[1]]
        elif len(sides) == 3:
            sides = [sides[0], sides[1], sides[2], sides[1]]
        return cls(*sides)

    def apply(self, root: Rect) -> Rect:
        def px(side: Tuple[float, bool], basis: float) -> float:
            value, is_percent = side
            return basis * value / 100.0 if is_percent else value

        return root.expanded(
            top=px(self.top, root.height),
            right=px(self.right, root.width),
            bottom=px(self.bottom, root.height),
            left=px(self.left, root.width),
        )


@dataclass(frozen=True, slots=True)
class IntersectionEntry:
    target: Any
    is_intersecting: bool
    intersection_ratio: float
    bounding_rect: Rect
    intersection_rect: Optional[Rect]
    root_bounds: Rect
    time: float


@dataclass(frozen=True, slots=True)
class LazyLoadOptions:
    root_margin: str = DEFAULT_ROOT_MARGIN
    threshold: Union[float, Sequence[float]] = DEFAULT_THRESHOLD

    def thresholds(self) -> Tuple[float, ...]:
        values = [self.threshold] if isinstance(self.threshold, (int, float)) else list(self.threshold)
        if not values:
            values = [0.0]
        for value in values:
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Threshold out of range [0, 1]: {value}")
        return tuple(sorted(float(v) for v in values))


IntersectionCallback = Callable[[List[IntersectionEntry], "LazyLoadObserver"], None]
Geometry = Callable[[], Rect]


# ------------------------------------------------------------
# Observers
# ------------------------------------------------------------

class LazyLoadObserver:
    """Intersection observer driven by explicit viewport updates."""

    def __init__(self, callback: IntersectionCallback, options: Optional[LazyLoadOptions] = None):
        self.options = options or LazyLoadOptions()
        self._callback = callback
        self._margin = RootMargin.parse(self.options.root_margin)
        self._thresholds = self.options.thresholds()

        # id(target) -> (target, geometry, last threshold state; None until first update)
        self._targets: Dict[int, Tuple[Any, Geometry, Optional[int]]] = {}

    def observe(self, target: Any, geometry: Optional[Geometry] = None) -> None:
        """
        Start observing target.

        geometry returns the target's rect in viewport coordinates; defaults to
        target.bounding_rect.
        """
        if id(target) in self._targets:
            return
        self._targets[id(target)] = (target, geometry or target.bounding_rect, None)

    def unobserve(self, target: Any) -> None:
        self._targets.pop(id(target), None)

    def disconnect(self) -> None:
        self._targets.clear()

    def is_observing(self, target: Any) -> bool:
        return id(target) in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def update(self, viewport: Rect) -> List[IntersectionEntry]:
        """Recompute intersections against viewport and notify changed targets."""
        root = self._margin.apply(viewport)
        now = time.monotonic()
        entries: List[IntersectionEntry] = []

        for key, (target, geometry, previous) in list(self._targets.items()):
            try:
                rect = geometry()
            except Exception as e:
                # target went away without unobserving (deleted widget)
                logger.debug(f"Dropping lazy-load target, geometry failed: {e}")
                self._targets.pop(key, None)
                continue

            overlap = rect.intersection(root)
            if overlap is None:
                ratio = 0.0
            elif rect.area > 0:
                ratio = overlap.area / rect.area
            else:
                ratio = 1.0

            is_intersecting = overlap is not None and ratio >= self._thresholds[0]
            state = sum(1 for t in self._thresholds if ratio >= t) if is_intersecting else -1
            if state == previous:
                continue

            self._targets[key] = (target, geometry, state)
            entries.append(IntersectionEntry(
                target=target,
                is_intersecting=is_intersecting,
                intersection_ratio=ratio,
                bounding_rect=rect,
                intersection_rect=overlap,
                root_bounds=root,
                time=now,
            ))

        if entries:
            self._callback(entries, self)
        return entries


class NoOpObserver:
    """Stand-in used when there is no viewport to observe."""

    options = None

    def observe(self, target: Any, geometry: Optional[Geometry] = None) -> None:
        pass

    def unobserve(self, target: Any) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def is_observing(self, target: Any) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def update(self, viewport: Rect) -> List[IntersectionEntry]:
        return []


def create_lazy_load_observer(
    callback: IntersectionCallback,
    options: Optional[Mapping[str, Any]] = None,
    *,
    environment: Optional[ClientEnvironment] = None,
    capabilities: Optional[DeviceCapabilities] = None,
) -> Union[LazyLoadObserver, NoOpObserver]:
    """
    Create an observer with device-adapted defaults.

    Defaults are root_margin="50px", threshold=0.1; mobile devices and slow
    connections get a 25px margin. Keys in options override the defaults.
    Without an environment a NoOpObserver is returned.
    """
    if environment is None:
        logger.debug("No client environment, lazy loading disabled (no-op observer)")
        return NoOpObserver()

    caps = capabilities or get_device_capabilities(environment)
    defaults: Dict[str, Any] = {"root_margin": DEFAULT_ROOT_MARGIN, "threshold": DEFAULT_THRESHOLD}
    if caps.is_mobile or caps.is_slow_connection:
        defaults["root_margin"] = MOBILE_ROOT_MARGIN

    merged = {**defaults, **dict(options or {})}
    return LazyLoadObserver(callback, LazyLoadOptions(**merged))


# ------------------------------------------------------------
# Fire-once scheduling
# ------------------------------------------------------------

class VisibilitySubscription:
    """Handle for a pending fire-once visibility notification."""

    def __init__(self, scheduler: "LazyLoadScheduler", target: Any):
        self._scheduler = scheduler
        self.target = target
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._scheduler._release(self)


class LazyLoadScheduler:
    """
    One observer plus fire-once subscriptions.

    subscribe() -> the callback fires at most once, on the first intersecting
    entry, after which the target is unobserved.
    """

    def __init__(
        self,
        environment: Optional[ClientEnvironment] = None,
        capabilities: Optional[DeviceCapabilities] = None,
        options: Optional[Mapping[str, Any]] = None,
    ):
        self._subscriptions: Dict[int, Tuple[VisibilitySubscription, Callable[[IntersectionEntry], None]]] = {}
        self._observer = create_lazy_load_observer(
            self._dispatch, options, environment=environment, capabilities=capabilities
        )

    @property
    def enabled(self) -> bool:
        return not isinstance(self._observer, NoOpObserver)

    @property
    def observer(self) -> Union[LazyLoadObserver, NoOpObserver]:
        return self._observer

    def subscribe(
        self,
        target: Any,
        on_visible: Callable[[IntersectionEntry], None],
        geometry: Optional[Geometry] = None,
    ) -> VisibilitySubscription:
        existing = self._subscriptions.get(id(target))
        if existing is not None:
            existing[0].cancel()

        subscription = VisibilitySubscription(self, target)
        self._subscriptions[id(target)] = (subscription, on_visible)
        self._observer.observe(target, geometry)
        return subscription

    def update(self, viewport: Rect) -> List[IntersectionEntry]:
        return self._observer.update(viewport)

    def disconnect(self) -> None:
        for subscription, _ in list(self._subscriptions.values()):
            subscription._active = False
        self._subscriptions.clear()
        self._observer.disconnect()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _dispatch(self, entries: List[IntersectionEntry], observer: LazyLoadObserver) -> None:
        for entry in entries:
            if not entry.is_intersecting:
                continue
            item = self._subscriptions.pop(id(entry.target), None)
            if item is None:
                continue
            subscription, on_visible = item
            subscription._active = False
            observer.unobserve(entry.target)
            on_visible(entry)

    def _release(self, subscription: VisibilitySubscription) -> None:
        current = self._subscriptions.get(id(subscription.target))
        if current is not None and current[0] is subscription:
            self._subscriptions.pop(id(subscription.target), None)
            self._observer.unobserve(subscription.target)
