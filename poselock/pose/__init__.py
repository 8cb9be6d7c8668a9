"""
Pose module for PoseLock.

Provides the skeleton data model, geometric pose classification and the
detector-to-frame-loop handoff. The MediaPipe estimator lives in
poselock.pose.estimator and is imported only by the live runner.
"""
from .skeleton import Joint, JointName, Skeleton, skeletons_from_detections
from .classifier import PoseClassifier, PoseLabel
from .source import LatestSkeletonBuffer, SkeletonFrame

__all__ = [
    'Joint',
    'JointName',
    'Skeleton',
    'skeletons_from_detections',
    'PoseClassifier',
    'PoseLabel',
    'LatestSkeletonBuffer',
    'SkeletonFrame'
]
