"""
Shared builders: synthetic skeletons for every installation pose.

Coordinates are normalized, y grows downward, and the person faces the
camera in a mirrored (selfie) view: their left shoulder is on the left of
the image.
"""
from typing import Dict, Tuple

import pytest

from poselock.pose.skeleton import Joint, JointName, Skeleton

Point = Tuple[float, float]

BASE_BODY: Dict[str, Point] = {
    "nose": (0.50, 0.20),
    "left_shoulder": (0.42, 0.30),
    "right_shoulder": (0.58, 0.30),
    "left_hip": (0.45, 0.55),
    "right_hip": (0.55, 0.55),
    "left_knee": (0.46, 0.72),
    "right_knee": (0.54, 0.72),
    "left_ankle": (0.46, 0.90),
    "right_ankle": (0.54, 0.90),
}

ARMS: Dict[str, Dict[str, Point]] = {
    "neutral": {
        "left_elbow": (0.40, 0.42), "left_wrist": (0.40, 0.54),
        "right_elbow": (0.60, 0.42), "right_wrist": (0.60, 0.54),
    },
    "arms_up": {
        "left_elbow": (0.41, 0.13), "left_wrist": (0.40, 0.05),
        "right_elbow": (0.59, 0.13), "right_wrist": (0.60, 0.05),
    },
    "star": {
        "left_elbow": (0.36, 0.20), "left_wrist": (0.30, 0.10),
        "right_elbow": (0.64, 0.20), "right_wrist": (0.70, 0.10),
        "left_ankle": (0.30, 0.90), "right_ankle": (0.70, 0.90),
    },
    "side_arms": {
        "left_elbow": (0.30, 0.32), "left_wrist": (0.28, 0.18),
        "right_elbow": (0.70, 0.32), "right_wrist": (0.72, 0.18),
    },
    "zigzag": {
        "left_elbow": (0.36, 0.21), "left_wrist": (0.30, 0.12),
        "right_elbow": (0.64, 0.39), "right_wrist": (0.70, 0.48),
    },
    "arms_out": {
        "left_elbow": (0.32, 0.305), "left_wrist": (0.22, 0.31),
        "right_elbow": (0.68, 0.305), "right_wrist": (0.78, 0.31),
    },
    "rounded": {
        "left_elbow": (0.33, 0.42), "left_wrist": (0.43, 0.52),
        "right_elbow": (0.67, 0.42), "right_wrist": (0.57, 0.52),
    },
}


def build_skeleton(pose: str = "neutral", confidence: float = 0.9, dx: float = 0.0,
                   mirror: bool = False, **overrides) -> Skeleton:
    """
    Skeleton for a named pose.

    Args:
        pose: Key of ARMS
        confidence: Confidence of every joint
        dx: Horizontal shift of the whole body
        mirror: Flip horizontally (un-mirrored camera view)
        overrides: joint name -> (x, y) or (x, y, confidence)
    """
    points = dict(BASE_BODY)
    points.update(ARMS[pose])
    joints = {}
    for name, (x, y) in points.items():
        x = 1.0 - x if mirror else x
        joints[JointName(name)] = Joint(x + dx, y, confidence)
    for name, value in overrides.items():
        x, y = value[0], value[1]
        c = value[2] if len(value) > 2 else confidence
        joints[JointName(name)] = Joint(x, y, c)
    return Skeleton(joints=joints)


@pytest.fixture
def skeleton_for():
    """Factory fixture around build_skeleton."""
    return build_skeleton


@pytest.fixture
def neutral_skeleton():
    return build_skeleton("neutral")


@pytest.fixture
def arms_up_skeleton():
    return build_skeleton("arms_up")
