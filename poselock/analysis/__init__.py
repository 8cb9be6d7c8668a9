"""
Analysis module for PoseLock.

Provides per-slot temporal smoothing and the anti-flicker pose lock.
"""
from .smoother import TemporalSmoother
from .pose_lock import LockPhase, PoseLockFSM

__all__ = [
    'TemporalSmoother',
    'LockPhase',
    'PoseLockFSM'
]
