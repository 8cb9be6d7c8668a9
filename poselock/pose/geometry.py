"""
2D geometry helpers shared by the classifier, tracker and overlay placement.
"""
import math
from typing import Tuple

import numpy as np

Point = Tuple[float, float]


def joint_angle(p1: Point, p2: Point, p3: Point) -> float:
    """
    Compute the angle at p2 (degrees, 0-180) using vector math.

    Used for the wrist-elbow-shoulder angle: ~180 is a straight arm.
    """
    v1 = np.array([p1[0] - p2[0], p1[1] - p2[1]])
    v2 = np.array([p3[0] - p2[0], p3[1] - p2[1]])

    # Epsilon prevents division by zero for degenerate poses
    cos_angle = np.dot(v1, v2) / (np.linalg.norm(v1) * np.linalg.norm(v2) + 1e-8)
    cos_angle = np.clip(cos_angle, -1, 1)
    return float(np.degrees(np.arccos(cos_angle)))


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def blend(a: Point, b: Point, t: float) -> Point:
    """Point at fraction t along a->b."""
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)
