"""
Video module for PoseLock.

Provides camera and video-file capture.
"""
from .loader import VideoLoader, VideoMetadata

__all__ = [
    'VideoLoader',
    'VideoMetadata'
]
