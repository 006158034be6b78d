from memory_gallery.core.dto.capabilities import DeviceCapabilities

DEFAULT_ANIMATION_MS = 300
CONSTRAINED_ANIMATION_MS = 150


def can_handle_complex_animations(capabilities: DeviceCapabilities) -> bool:
    return not capabilities.is_constrained


def get_optimal_animation_duration(capabilities: DeviceCapabilities, base_duration: int = DEFAULT_ANIMATION_MS) -> int:
    """Animation length in ms; 0 means apply the end state immediately."""
    if capabilities.prefers_reduced_motion:
        return 0
    if capabilities.is_constrained:
        return min(base_duration, CONSTRAINED_ANIMATION_MS)
    return base_duration
