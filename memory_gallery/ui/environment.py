"""
Qt environment probe.

Reads what the running QGuiApplication knows about the display and network:
screen/window size, device pixel ratio, touch screens, colour scheme and
metered-network state. Returns None when there is no application instance,
which the detector treats as "no client" (desktop default).
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QSysInfo, Qt
from PyQt6.QtGui import QGuiApplication, QInputDevice
from PyQt6.QtNetwork import QNetworkInformation
from PyQt6.QtWidgets import QWidget

from memory_gallery.core.dto.environment import ClientEnvironment, NetworkInformation
from memory_gallery.core.preferences import UserPreferences

logger = logging.getLogger(__name__)


def synthesize_user_agent() -> str:
    """UA-style string for the host OS so the regex classifier can be reused."""
    product = QSysInfo.productType()
    if product == "android":
        return f"Mozilla/5.0 (Linux; Android {QSysInfo.productVersion()}; Mobile)"
    if product == "ios":
        return "Mozilla/5.0 (iPhone; CPU iPhone OS like Mac OS X)"
    return f"Mozilla/5.0 ({QSysInfo.prettyProductName()}) MemoryGallery/1.0"


def _touch_points() -> int:
    points = 0
    for device in QInputDevice.devices():
        if device.type() == QInputDevice.DeviceType.TouchScreen:
            points = max(points, int(getattr(device, "maximumPoints", lambda: 1)()))
    return points


def _network_information() -> Optional[NetworkInformation]:
    info = QNetworkInformation.instance()
    if info is None:
        if not QNetworkInformation.loadDefaultBackend():
            return None
        info = QNetworkInformation.instance()
    if info is None:
        return None
    # metered networks are treated like an explicit data-saver request
    return NetworkInformation(effective_type=None, save_data=bool(info.isMetered()))


def _system_prefers_dark(app: QGuiApplication) -> bool:
    hints = app.styleHints()
    color_scheme = getattr(hints, "colorScheme", None)
    if color_scheme is None:
        return False
    return color_scheme() == Qt.ColorScheme.Dark


def probe_qt_environment(
    widget: Optional[QWidget] = None,
    preferences: Optional[UserPreferences] = None,
) -> Optional[ClientEnvironment]:
    """
    Snapshot the Qt environment.

    Args:
        widget: Window whose size is the viewport; the primary screen is used otherwise
        preferences: Theme/reduced-motion overrides chosen by the user
    """
    app = QGuiApplication.instance()
    if app is None:
        return None

    screen = widget.screen() if widget is not None else QGuiApplication.primaryScreen()
    if screen is None:
        logger.debug("No screen available, treating as headless")
        return None

    if widget is not None and widget.width() > 0:
        width, height = widget.width(), widget.height()
    else:
        size = screen.availableGeometry().size()
        width, height = size.width(), size.height()

    prefers_dark = _system_prefers_dark(app)
    reduced_motion = False
    if preferences is not None:
        if preferences.theme in ("light", "dark"):
            prefers_dark = preferences.theme == "dark"
        reduced_motion = preferences.reduced_motion or not preferences.animations_enabled

    return ClientEnvironment(
        user_agent=synthesize_user_agent(),
        viewport_width=width,
        viewport_height=height,
        device_pixel_ratio=float(screen.devicePixelRatio()),
        max_touch_points=_touch_points(),
        connection=_network_information(),
        device_memory=None,
        prefers_reduced_motion=reduced_motion,
        prefers_dark=prefers_dark,
    )


def qt_environment_provider(
    widget: Optional[QWidget] = None,
    preferences: Optional[Callable[[], UserPreferences]] = None,
) -> Callable[[], Optional[ClientEnvironment]]:
    """Environment provider for DeviceCapabilityDetector bound to a window."""
    def provider() -> Optional[ClientEnvironment]:
        return probe_qt_environment(widget, preferences() if preferences else None)
    return provider
