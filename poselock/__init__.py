"""
PoseLock - multi-person pose-triggered overlays and show-control cues.
"""
__version__ = "1.0.0"
