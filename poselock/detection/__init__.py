"""
Detection module for PoseLock.

Provides frame-to-frame identity matching of detected skeletons.
"""
from .tracker import IdentityTracker, TrackAssignment

__all__ = [
    'IdentityTracker',
    'TrackAssignment'
]
