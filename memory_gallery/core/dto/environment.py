from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class NetworkInformation:
    effective_type: Optional[str] = None    # slow-2g | 2g | 3g | 4g
    save_data: bool = False


@dataclass(frozen=True, slots=True)
class ClientEnvironment:
    """
    Raw observations about the client a gallery is rendered for.

    Produced by a probe (Qt screen, HTTP client hints, tests). Absent platform
    APIs are represented by the defaults, never by exceptions.
    """
    user_agent: str
    viewport_width: int
    viewport_height: int
    device_pixel_ratio: float = 1.0
    max_touch_points: int = 0
    connection: Optional[NetworkInformation] = None
    device_memory: Optional[float] = None   # GiB, as reported by the client
    prefers_reduced_motion: bool = False
    prefers_dark: bool = False

    # Sec-CH-UA-Mobile, when the client sent it
    mobile_hint: Optional[bool] = None
