"""
Pose estimation using MediaPipe for PoseLock.

Turns camera frames into Skeletons on the COCO-17 joint set. Two backends:
- the classic MediaPipe Pose solution (one person, no model file needed)
- the MediaPipe Tasks PoseLandmarker (several people, needs a .task model)
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
import mediapipe as mp
import numpy as np

from .skeleton import Joint, JointName, Skeleton
from .source import SkeletonFrame
from ..config import (
    MIRROR_INPUT,
    POSE_MAX_PEOPLE,
    POSE_MIN_DETECTION_CONFIDENCE,
    POSE_MIN_TRACKING_CONFIDENCE,
    POSE_MODEL_COMPLEXITY,
)

logger = logging.getLogger(__name__)


# MediaPipe's 33 landmarks mapped onto the joints the installation uses
LANDMARK_TO_JOINT: Dict[int, JointName] = {
    0: JointName.NOSE,
    2: JointName.LEFT_EYE,
    5: JointName.RIGHT_EYE,
    7: JointName.LEFT_EAR,
    8: JointName.RIGHT_EAR,
    11: JointName.LEFT_SHOULDER,
    12: JointName.RIGHT_SHOULDER,
    13: JointName.LEFT_ELBOW,
    14: JointName.RIGHT_ELBOW,
    15: JointName.LEFT_WRIST,
    16: JointName.RIGHT_WRIST,
    23: JointName.LEFT_HIP,
    24: JointName.RIGHT_HIP,
    25: JointName.LEFT_KNEE,
    26: JointName.RIGHT_KNEE,
    27: JointName.LEFT_ANKLE,
    28: JointName.RIGHT_ANKLE,
}


@dataclass
class EstimatorInfo:
    backend: str        # "solutions" or "tasks"
    max_people: int
    mirror: bool


def landmarks_to_skeleton(landmarks: List[Any]) -> Skeleton:
    """
    Convert one person's MediaPipe landmark list to a Skeleton.

    Visibility is used as the joint confidence.
    """
    joints: Dict[JointName, Joint] = {}
    for idx, name in LANDMARK_TO_JOINT.items():
        if idx >= len(landmarks):
            continue
        lm = landmarks[idx]
        visibility = getattr(lm, "visibility", None)
        joints[name] = Joint(
            x=float(lm.x),
            y=float(lm.y),
            confidence=float(visibility) if visibility is not None else 0.0,
        )
    return Skeleton(joints=joints)


class SkeletonEstimator:
    """
    MediaPipe pose estimation wrapper with context manager support.

    Detects people in BGR frames and returns their skeletons in
    normalized screen coordinates.
    """

    def __init__(
        self,
        model_path: Optional[str | Path] = None,
        max_people: int = POSE_MAX_PEOPLE,
        mirror: bool = MIRROR_INPUT,
        min_detection_confidence: float = POSE_MIN_DETECTION_CONFIDENCE,
        min_tracking_confidence: float = POSE_MIN_TRACKING_CONFIDENCE,
        model_complexity: int = POSE_MODEL_COMPLEXITY
    ):
        """
        Initialize the MediaPipe backend.

        Args:
            model_path: PoseLandmarker .task file; enables multi-person mode
            max_people: People detected per frame (PoseLandmarker only)
            mirror: Flip frames horizontally before detection (selfie view)
            min_detection_confidence: Person detection threshold
            min_tracking_confidence: Frame-to-frame tracking threshold
            model_complexity: Pose solution model size (0-2)

        Raises:
            FileNotFoundError: model_path given but missing
        """
        self.mirror = mirror
        self._last_timestamp = -1
        self._pose = None
        self._landmarker = None

        if model_path is not None:
            path = Path(model_path)
            if not path.exists():
                raise FileNotFoundError(f"Pose model not found: {path}")

            vision = mp.tasks.vision
            options = vision.PoseLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=str(path)),
                running_mode=vision.RunningMode.VIDEO,
                num_poses=max_people,
                min_pose_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
            self._landmarker = vision.PoseLandmarker.create_from_options(options)
            self.info = EstimatorInfo(backend="tasks", max_people=max_people, mirror=mirror)
        else:
            # static_image_mode=False lets the previous frame's pose seed the next
            self._pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=model_complexity,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
            self.info = EstimatorInfo(backend="solutions", max_people=1, mirror=mirror)

        logger.info("Pose estimator ready (%s, up to %d people)", self.info.backend, self.info.max_people)

    def process_frame(self, frame: np.ndarray, timestamp_ms: float) -> SkeletonFrame:
        """
        Run pose detection on a single frame.

        Args:
            frame: BGR image from OpenCV
            timestamp_ms: Capture time in milliseconds

        Returns:
            SkeletonFrame with zero or more skeletons; image is the
            (possibly mirrored) frame the skeletons refer to
        """
        if frame is None or frame.ndim != 3:
            raise ValueError("Expected a BGR frame")

        if self.mirror:
            frame = cv2.flip(frame, 1)

        # MediaPipe expects RGB; OpenCV provides BGR
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        skeletons: List[Skeleton] = []
        if self._landmarker is not None:
            # VIDEO mode requires strictly increasing integer timestamps
            ts = max(int(timestamp_ms), self._last_timestamp + 1)
            self._last_timestamp = ts
            image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)
            result = self._landmarker.detect_for_video(image, ts)
            for person in result.pose_landmarks or []:
                skeletons.append(landmarks_to_skeleton(person))
        else:
            results = self._pose.process(rgb_frame)
            if results.pose_landmarks:
                skeletons.append(landmarks_to_skeleton(results.pose_landmarks.landmark))

        return SkeletonFrame(skeletons=skeletons, timestamp_ms=timestamp_ms, image=frame)

    def close(self):
        """Release resources."""
        if self._pose is not None:
            self._pose.close()
            self._pose = None
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
