"""
Device capability detection.

Turns a ClientEnvironment (whatever a probe could observe) into the
DeviceCapabilities descriptor consumed by the size policy, the lazy-load
scheduler and the animation policy.

Detection is heuristic:
- mobile/tablet classification via user-agent sniffing (pluggable)
- low-memory and slow-connection flags from pixel ratio, width and hints
- a fixed desktop default when there is no client to probe
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Mapping, Optional, Protocol, Tuple

from multidict import CIMultiDict

from memory_gallery.core.dto.capabilities import (
    ColorScheme,
    DeviceCapabilities,
    Orientation,
    Platform,
)
from memory_gallery.core.dto.environment import ClientEnvironment, NetworkInformation

logger = logging.getLogger(__name__)


MOBILE_UA = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)
TABLET_UA = re.compile(r"iPad|Android(?!.*Mobile)", re.IGNORECASE)
IOS_UA = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)
ANDROID_UA = re.compile(r"Android", re.IGNORECASE)

TABLET_MIN_WIDTH = 768
TABLET_MAX_WIDTH = 1024
NARROW_SCREEN_WIDTH = 375
LOW_DEVICE_MEMORY_GB = 4
SLOW_EFFECTIVE_TYPES = frozenset({"slow-2g", "2g", "3g"})

EnvironmentProvider = Callable[[], Optional[ClientEnvironment]]


# ------------------------------------------------------------
# Classification strategies
# ------------------------------------------------------------

class DeviceClassifier(Protocol):
    def classify(self, env: ClientEnvironment) -> Tuple[bool, bool]:
        """Return (is_mobile, is_tablet)."""
        ...


class UserAgentClassifier:
    """User-agent regexes plus the tablet width band."""

    def classify(self, env: ClientEnvironment) -> Tuple[bool, bool]:
        ua = env.user_agent or ""
        is_mobile = bool(MOBILE_UA.search(ua))
        is_tablet = bool(TABLET_UA.search(ua)) or (
            TABLET_MIN_WIDTH <= env.viewport_width <= TABLET_MAX_WIDTH
        )
        return is_mobile, is_tablet


class ClientHintsClassifier(UserAgentClassifier):
    """Prefers the Sec-CH-UA-Mobile hint when the client sent one."""

    def classify(self, env: ClientEnvironment) -> Tuple[bool, bool]:
        is_mobile, is_tablet = super().classify(env)
        if env.mobile_hint is not None:
            is_mobile = env.mobile_hint
        return is_mobile, is_tablet


# ------------------------------------------------------------
# Pure detection
# ------------------------------------------------------------

def _is_slow_connection(connection: Optional[NetworkInformation]) -> bool:
    if connection is None:
        return False
    if connection.save_data is True:
        return True
    return (connection.effective_type or "").lower() in SLOW_EFFECTIVE_TYPES


def _platform_for(user_agent: str) -> Platform:
    if IOS_UA.search(user_agent):
        return Platform.IOS
    if ANDROID_UA.search(user_agent):
        return Platform.ANDROID
    return Platform.DESKTOP


def get_device_capabilities(
    environment: Optional[ClientEnvironment] = None,
    classifier: Optional[DeviceClassifier] = None,
) -> DeviceCapabilities:
    """
    Compute capabilities for an environment (no memoisation).

    Returns DeviceCapabilities.server_default() when environment is None.
    """
    if environment is None:
        return DeviceCapabilities.server_default()

    env = environment
    is_mobile, is_tablet = (classifier or UserAgentClassifier()).classify(env)
    width = env.viewport_width
    dpr = env.device_pixel_ratio or 1.0

    is_low_memory = (
        (dpr < 2 and is_mobile)
        or (width < NARROW_SCREEN_WIDTH and is_mobile)
        or (env.device_memory is not None and env.device_memory < LOW_DEVICE_MEMORY_GB)
    )

    return DeviceCapabilities(
        is_mobile=is_mobile,
        is_tablet=is_tablet,
        is_desktop=not is_mobile and not is_tablet,
        is_low_memory_device=is_low_memory,
        is_slow_connection=_is_slow_connection(env.connection),
        prefers_reduced_motion=env.prefers_reduced_motion,
        screen_width=width,
        screen_height=env.viewport_height,
        device_pixel_ratio=dpr,
        platform=_platform_for(env.user_agent or ""),
        orientation=Orientation.PORTRAIT if env.viewport_height > width else Orientation.LANDSCAPE,
        touch_enabled=env.max_touch_points > 0,
        color_scheme=ColorScheme.DARK if env.prefers_dark else ColorScheme.LIGHT,
    )


class DeviceCapabilityDetector:
    """
    Memoising capability detector.

    One instance per GalleryContext. The descriptor is computed on first access
    and kept until reset(); in development mode it is recomputed on every call.
    """

    def __init__(
        self,
        environment_provider: Optional[EnvironmentProvider] = None,
        classifier: Optional[DeviceClassifier] = None,
        development: bool = False,
    ):
        self._provider = environment_provider
        self._classifier = classifier or UserAgentClassifier()
        self.development = development
        self._cached: Optional[DeviceCapabilities] = None

    def get_capabilities(self) -> DeviceCapabilities:
        if self._cached is not None and not self.development:
            return self._cached
        caps = get_device_capabilities(self.environment(), self._classifier)
        logger.debug(
            "Capabilities: mobile=%s tablet=%s low_memory=%s slow=%s %sx%s@%s",
            caps.is_mobile, caps.is_tablet, caps.is_low_memory_device,
            caps.is_slow_connection, caps.screen_width, caps.screen_height,
            caps.device_pixel_ratio,
        )
        self._cached = caps
        return caps

    def environment(self) -> Optional[ClientEnvironment]:
        """Current environment from the provider, None when unavailable."""
        if self._provider is None:
            return None
        try:
            return self._provider()
        except Exception as e:
            logger.debug(f"Environment probe failed, using server default: {e}")
            return None

    def set_environment_provider(self, provider: Optional[EnvironmentProvider]) -> None:
        self._provider = provider
        self.reset()

    def reset(self) -> None:
        """Forget the memoised descriptor (orientation or network change)."""
        self._cached = None


# ------------------------------------------------------------
# Client hints probe
# ------------------------------------------------------------

def _header_int(headers: CIMultiDict, *names: str) -> Optional[int]:
    value = _header_float(headers, *names)
    return int(round(value)) if value is not None else None


def _header_float(headers: CIMultiDict, *names: str) -> Optional[float]:
    for name in names:
        raw = headers.get(name)
        if raw is None:
            continue
        try:
            return float(raw.strip().strip('"'))
        except ValueError:
            logger.debug(f"Ignoring unparsable client hint {name}={raw!r}")
    return None


def _header_token(headers: CIMultiDict, name: str) -> Optional[str]:
    raw = headers.get(name)
    if raw is None:
        return None
    return raw.strip().strip('"').lower()


def environment_from_headers(
    headers: Mapping[str, str],
    default_width: int = 1920,
    default_height: int = 1080,
) -> ClientEnvironment:
    """
    Build a ClientEnvironment from HTTP request headers (User-Agent + client hints).

    Header names are case-insensitive; missing or malformed hints fall back to
    the defaults.
    """
    h = CIMultiDict(headers)

    ect = _header_token(h, "ECT")
    save_data = _header_token(h, "Save-Data") == "on"
    connection = NetworkInformation(effective_type=ect, save_data=save_data) if (ect or save_data) else None

    mobile_hint = None
    mobile_raw = _header_token(h, "Sec-CH-UA-Mobile")
    if mobile_raw in ("?1", "?0"):
        mobile_hint = mobile_raw == "?1"

    return ClientEnvironment(
        user_agent=h.get("User-Agent", ""),
        viewport_width=_header_int(h, "Sec-CH-Viewport-Width", "Viewport-Width") or default_width,
        viewport_height=_header_int(h, "Sec-CH-Viewport-Height") or default_height,
        device_pixel_ratio=_header_float(h, "Sec-CH-DPR", "DPR") or 1.0,
        connection=connection,
        device_memory=_header_float(h, "Sec-CH-Device-Memory", "Device-Memory"),
        prefers_reduced_motion=_header_token(h, "Sec-CH-Prefers-Reduced-Motion") == "reduce",
        prefers_dark=_header_token(h, "Sec-CH-Prefers-Color-Scheme") == "dark",
        mobile_hint=mobile_hint,
    )
