"""
Output module for PoseLock.

Provides the overlay animation and the show-control relay. The OpenCV
renderer is in poselock.output.overlay_renderer.
"""
from .animation import AnimPhase, OverlayAnimator
from .show_control import OscSink, ShowControlRelay

__all__ = [
    'AnimPhase',
    'OverlayAnimator',
    'ShowControlRelay',
    'OscSink'
]
