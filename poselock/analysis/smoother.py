"""
Exponential moving average smoothing of joint positions for one person slot.

Each named point and each named scalar (e.g. shoulder width) keeps its own
accumulator: s = alpha * s + (1 - alpha) * raw, seeded with the first raw
value. Higher alpha is steadier but lags more. History belongs to the slot,
not to the physical person: if the tracker hands a slot to someone else the
existing accumulators carry over.
"""
from typing import Dict, Optional, Tuple

from ..config import SmoothingConfig
from ..pose.skeleton import Joint, JointName, Skeleton


class TemporalSmoother:
    """Per-slot EMA store for points and scalars."""

    def __init__(self, config: Optional[SmoothingConfig] = None):
        self.config = config or SmoothingConfig()
        self._points: Dict[str, Tuple[float, float]] = {}
        self._scalars: Dict[str, float] = {}

    @property
    def position_alpha(self) -> float:
        return self.config.position_alpha

    @property
    def scale_alpha(self) -> float:
        return self.config.scale_alpha

    def smooth_point(self, name: str, x: float, y: float) -> Tuple[float, float]:
        """Update and return the smoothed position for a named point."""
        a = self.config.position_alpha
        sx, sy = self._points.get(name, (x, y))
        smoothed = (a * sx + (1 - a) * x, a * sy + (1 - a) * y)
        self._points[name] = smoothed
        return smoothed

    def smooth_scalar(self, name: str, value: float) -> float:
        """Update and return the smoothed value for a named scalar."""
        a = self.config.scale_alpha
        prev = self._scalars.get(name, value)
        smoothed = a * prev + (1 - a) * value
        self._scalars[name] = smoothed
        return smoothed

    def smooth_skeleton(self, skeleton: Skeleton, min_confidence: Optional[float] = None) -> Skeleton:
        """
        Smooth every confident joint of a skeleton.

        Joints below the confidence gate pass through untouched and do not
        disturb their accumulators.
        """
        gate = self.config.min_confidence if min_confidence is None else min_confidence
        out: Dict[JointName, Joint] = {}
        for name, joint in skeleton.joints.items():
            if joint.confidence >= gate:
                x, y = self.smooth_point(name.value, joint.x, joint.y)
                out[name] = Joint(x=x, y=y, confidence=joint.confidence)
            else:
                out[name] = joint
        return Skeleton(joints=out)

    def point(self, name: str) -> Optional[Tuple[float, float]]:
        """Last smoothed position without updating it."""
        return self._points.get(name)

    def scalar(self, name: str) -> Optional[float]:
        return self._scalars.get(name)

    def reset(self) -> None:
        self._points.clear()
        self._scalars.clear()
