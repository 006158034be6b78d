# tests/test_motion.py

import dataclasses

from memory_gallery.core.dto.capabilities import DeviceCapabilities
from memory_gallery.core.motion import can_handle_complex_animations, get_optimal_animation_duration

DESKTOP = DeviceCapabilities.server_default()


def test_desktop_gets_full_animations():
    assert can_handle_complex_animations(DESKTOP)
    assert get_optimal_animation_duration(DESKTOP) == 300
    assert get_optimal_animation_duration(DESKTOP, 500) == 500


def test_constrained_device_shortens_animations():
    slow = dataclasses.replace(DESKTOP, is_slow_connection=True)

    assert not can_handle_complex_animations(slow)
    assert get_optimal_animation_duration(slow) == 150
    assert get_optimal_animation_duration(slow, 100) == 100


def test_reduced_motion_disables_animations():
    caps = dataclasses.replace(DESKTOP, prefers_reduced_motion=True, is_low_memory_device=True)

    assert get_optimal_animation_duration(caps) == 0
