"""
Skeleton data model for PoseLock.

A Skeleton is one detected person in one frame: a fixed set of named body
joints with screen-normalized positions and a confidence. Detector output
arrives as loosely keyed dicts; it is converted once at this boundary so the
rest of the pipeline works on the closed JointName set.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional


class JointName(str, Enum):
    """COCO-17 body joints."""
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"

    @classmethod
    def parse(cls, name: Any) -> Optional["JointName"]:
        """Map a detector key ("left_wrist", "leftWrist", JointName) to a JointName."""
        if isinstance(name, cls):
            return name
        if not isinstance(name, str):
            return None
        key = name.strip()
        # camelCase from browser detectors
        if any(ch.islower() for ch in key) and any(ch.isupper() for ch in key):
            key = "".join("_" + ch.lower() if ch.isupper() else ch for ch in key).lstrip("_")
        try:
            return cls(key.lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Joint:
    """Single body joint in normalized screen coordinates."""
    x: float           # 0-1, left to right
    y: float           # 0-1, top to bottom
    confidence: float  # Detector score 0-1

    @property
    def point(self) -> tuple:
        return (self.x, self.y)


@dataclass(frozen=True)
class Skeleton:
    """
    One person's joints for one frame.

    Produced fresh every frame; the core never mutates it. Lookups on
    joints that were not detected return None.
    """
    joints: Mapping[JointName, Joint] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.joints)

    def __iter__(self) -> Iterator[JointName]:
        return iter(self.joints)

    def get(self, name: JointName) -> Optional[Joint]:
        return self.joints.get(name)

    def is_confident(self, name: JointName, threshold: float) -> bool:
        joint = self.joints.get(name)
        return joint is not None and joint.confidence >= threshold

    def confident(self, names: Iterable[JointName], threshold: float) -> bool:
        """True when every named joint is present at or above threshold."""
        return all(self.is_confident(n, threshold) for n in names)

    @classmethod
    def from_mapping(cls, joints: Mapping[Any, Any]) -> "Skeleton":
        """
        Build from {name: Joint | {"x", "y", "confidence"} | (x, y, conf)}.

        Entries with unknown names or unusable values are dropped.
        """
        out: Dict[JointName, Joint] = {}
        for key, value in (joints or {}).items():
            name = JointName.parse(key)
            joint = _to_joint(value)
            if name is not None and joint is not None:
                out[name] = joint
        return cls(joints=out)

    @classmethod
    def from_keypoints(
        cls,
        keypoints: Iterable[Mapping[str, Any]],
        frame_width: Optional[float] = None,
        frame_height: Optional[float] = None
    ) -> "Skeleton":
        """
        Build from a detector keypoint list.

        Args:
            keypoints: Items like {"name": "left_wrist", "x": .., "y": .., "confidence": ..};
                "score" is accepted in place of "confidence"
            frame_width: If given, x is in pixels and is normalized by it
            frame_height: If given, y is in pixels and is normalized by it

        Returns:
            Skeleton with every recognizable keypoint
        """
        out: Dict[JointName, Joint] = {}
        for kp in keypoints or []:
            if not isinstance(kp, Mapping):
                continue
            name = JointName.parse(kp.get("name"))
            joint = _to_joint(kp)
            if name is None or joint is None:
                continue
            if frame_width:
                joint = Joint(joint.x / frame_width, joint.y, joint.confidence)
            if frame_height:
                joint = Joint(joint.x, joint.y / frame_height, joint.confidence)
            out[name] = joint
        return cls(joints=out)


def _to_joint(value: Any) -> Optional[Joint]:
    """Best-effort conversion of a detector entry to a Joint."""
    if isinstance(value, Joint):
        return value
    try:
        if isinstance(value, Mapping):
            conf = value.get("confidence", value.get("score", 0.0))
            x, y, c = float(value["x"]), float(value["y"]), float(conf if conf is not None else 0.0)
        else:
            x, y, c = (float(v) for v in value)
    except (KeyError, TypeError, ValueError):
        return None
    if x != x or y != y or c != c:  # NaN
        return None
    return Joint(x=x, y=y, confidence=c)


def skeletons_from_detections(detections: Iterable[Any]) -> List[Skeleton]:
    """
    Normalize a frame's detector output to a list of Skeletons.

    Accepts Skeleton objects, keypoint lists, or {"keypoints": [...]} dicts;
    anything else becomes an empty Skeleton so the slot count still matches
    the number of detected people.
    """
    out: List[Skeleton] = []
    for det in detections or []:
        if isinstance(det, Skeleton):
            out.append(det)
        elif isinstance(det, Mapping) and "keypoints" in det:
            out.append(Skeleton.from_keypoints(det.get("keypoints") or []))
        elif isinstance(det, Mapping):
            out.append(Skeleton.from_mapping(det))
        elif isinstance(det, (list, tuple)):
            out.append(Skeleton.from_keypoints(det))
        else:
            out.append(Skeleton())
    return out
