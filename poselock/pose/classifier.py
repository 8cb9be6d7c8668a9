"""
Geometric pose classification for PoseLock.

Maps a single skeleton to one of a small set of installation poses using an
ordered list of geometric rules; the first rule that matches wins. Visually
distinctive poses (full-body star) are checked before common ones (hands on
hips) so a loose rule never masks a rarer pose that also satisfies it.

The classifier is a pure function of the skeleton and its thresholds: no
history, safe to call for every slot every frame.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .geometry import distance, joint_angle
from .skeleton import Joint, JointName, Skeleton
from ..config import ClassifierConfig


class PoseLabel(str, Enum):
    """Installation poses, plus neutral when nothing matches."""
    STAR = "star"
    ARMS_UP = "arms_up"
    SIDE_ARMS = "side_arms"
    ZIGZAG = "zigzag"
    ARMS_OUT = "arms_out"
    ROUNDED = "rounded"
    NEUTRAL = "neutral"

    @classmethod
    def parse(cls, value: Any) -> "PoseLabel":
        """Lenient conversion; anything unrecognized is neutral."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.NEUTRAL


@dataclass
class PoseMeasurements:
    """Joints and derived quantities shared by all rules for one skeleton."""
    nose: Joint
    left_shoulder: Joint
    right_shoulder: Joint
    left_elbow: Joint
    right_elbow: Joint
    left_wrist: Joint
    right_wrist: Joint
    left_hip: Optional[Joint]
    right_hip: Optional[Joint]
    left_ankle: Optional[Joint]
    right_ankle: Optional[Joint]
    shoulder_width: float
    shoulder_mid_y: float
    # +1/-1: sign of x that points away from the body on each side
    left_out: float
    right_out: float
    left_arm_length: float
    right_arm_length: float
    left_forearm_length: float
    right_forearm_length: float
    left_elbow_angle: float
    right_elbow_angle: float

    @property
    def has_hips(self) -> bool:
        return self.left_hip is not None and self.right_hip is not None

    @property
    def has_ankles(self) -> bool:
        return self.left_ankle is not None and self.right_ankle is not None


class PoseClassifier:
    """
    Ordered rule-list classifier.

    Rules are evaluated in priority order:
    star, arms_up, side_arms, zigzag, arms_out, rounded.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        """
        Initialize classifier.

        Args:
            config: Thresholds; defaults from poselock.config
        """
        self.config = config or ClassifierConfig()
        self.rules: List[Tuple[PoseLabel, Callable[[PoseMeasurements], bool]]] = [
            (PoseLabel.STAR, self._is_star),
            (PoseLabel.ARMS_UP, self._is_arms_up),
            (PoseLabel.SIDE_ARMS, self._is_side_arms),
            (PoseLabel.ZIGZAG, self._is_zigzag),
            (PoseLabel.ARMS_OUT, self._is_arms_out),
            (PoseLabel.ROUNDED, self._is_rounded),
        ]

    @property
    def rule_names(self) -> List[PoseLabel]:
        return [label for label, _ in self.rules]

    @property
    def required_joints(self) -> List[JointName]:
        return [JointName(n) for n in self.config.required_joints]

    def classify(self, skeleton: Optional[Skeleton]) -> PoseLabel:
        """
        Classify one skeleton.

        Returns:
            Label of the first matching rule, or NEUTRAL when the required
            joints are not confident or no rule matches
        """
        m = self.measure(skeleton)
        if m is None:
            return PoseLabel.NEUTRAL
        for label, rule in self.rules:
            if rule(m):
                return label
        return PoseLabel.NEUTRAL

    def evaluate(self, skeleton: Optional[Skeleton]) -> Dict[PoseLabel, bool]:
        """Verdict of every rule, ignoring priority (for debugging/tuning)."""
        m = self.measure(skeleton)
        if m is None:
            return {label: False for label, _ in self.rules}
        return {label: bool(rule(m)) for label, rule in self.rules}

    def measure(self, skeleton: Optional[Skeleton]) -> Optional[PoseMeasurements]:
        """
        Extract the joints and ratios the rules use.

        Returns None when any required joint is missing or below the
        confidence gate, or the shoulders are degenerate.
        """
        cfg = self.config
        if skeleton is None or not isinstance(skeleton, Skeleton):
            return None
        if not skeleton.confident(self.required_joints, cfg.min_confidence):
            return None

        j = skeleton.joints
        core = [
            JointName.NOSE, JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER,
            JointName.LEFT_ELBOW, JointName.RIGHT_ELBOW,
            JointName.LEFT_WRIST, JointName.RIGHT_WRIST,
        ]
        if any(j.get(name) is None for name in core):
            return None

        ls, rs = j[JointName.LEFT_SHOULDER], j[JointName.RIGHT_SHOULDER]
        le, re = j[JointName.LEFT_ELBOW], j[JointName.RIGHT_ELBOW]
        lw, rw = j[JointName.LEFT_WRIST], j[JointName.RIGHT_WRIST]

        shoulder_width = abs(ls.x - rs.x)
        if shoulder_width < cfg.min_shoulder_width:
            return None

        # Works for mirrored and un-mirrored feeds alike
        left_out = -1.0 if ls.x < rs.x else 1.0

        def optional(name: JointName) -> Optional[Joint]:
            return j[name] if skeleton.is_confident(name, cfg.min_confidence) else None

        return PoseMeasurements(
            nose=j[JointName.NOSE],
            left_shoulder=ls,
            right_shoulder=rs,
            left_elbow=le,
            right_elbow=re,
            left_wrist=lw,
            right_wrist=rw,
            left_hip=optional(JointName.LEFT_HIP),
            right_hip=optional(JointName.RIGHT_HIP),
            left_ankle=optional(JointName.LEFT_ANKLE),
            right_ankle=optional(JointName.RIGHT_ANKLE),
            shoulder_width=shoulder_width,
            shoulder_mid_y=(ls.y + rs.y) / 2,
            left_out=left_out,
            right_out=-left_out,
            left_arm_length=distance(lw.point, ls.point),
            right_arm_length=distance(rw.point, rs.point),
            left_forearm_length=distance(lw.point, le.point),
            right_forearm_length=distance(rw.point, re.point),
            left_elbow_angle=joint_angle(lw.point, le.point, ls.point),
            right_elbow_angle=joint_angle(rw.point, re.point, rs.point),
        )

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    def _arms_extended(self, m: PoseMeasurements) -> bool:
        ratio = self.config.arm_extension_ratio
        return (m.left_arm_length > m.left_forearm_length * ratio and
                m.right_arm_length > m.right_forearm_length * ratio)

    def _arms_spread(self, m: PoseMeasurements) -> bool:
        reach = m.shoulder_width * self.config.arm_spread_ratio
        left = (m.left_wrist.x - m.left_shoulder.x) * m.left_out
        right = (m.right_wrist.x - m.right_shoulder.x) * m.right_out
        return left > reach and right > reach

    def _wrists_level(self, m: PoseMeasurements) -> bool:
        return abs(m.left_wrist.y - m.right_wrist.y) < self.config.wrist_level_tolerance

    # ------------------------------------------------------------------
    # Rules (priority order)
    # ------------------------------------------------------------------

    def _is_star(self, m: PoseMeasurements) -> bool:
        """Arms raised and spread, legs apart."""
        if not (m.has_hips and m.has_ankles):
            return False
        hip_width = abs(m.left_hip.x - m.right_hip.x)
        ankle_spread = abs(m.left_ankle.x - m.right_ankle.x)
        legs_spread = ankle_spread > hip_width * self.config.star_leg_spread_ratio
        arms_raised = m.left_wrist.y < m.shoulder_mid_y and m.right_wrist.y < m.shoulder_mid_y
        return (legs_spread and arms_raised and self._arms_extended(m) and
                self._arms_spread(m) and self._wrists_level(m))

    def _is_arms_up(self, m: PoseMeasurements) -> bool:
        """Both straight arms above the head."""
        cfg = self.config
        limit = m.nose.y - cfg.arms_up_nose_margin
        above_head = m.left_wrist.y < limit and m.right_wrist.y < limit
        straight = (m.left_elbow_angle >= cfg.arms_up_min_elbow_angle and
                    m.right_elbow_angle >= cfg.arms_up_min_elbow_angle)
        return above_head and straight and self._arms_extended(m) and self._wrists_level(m)

    def _is_side_arms(self, m: PoseMeasurements) -> bool:
        """Victory pose: elbows out, forearms angled up past the shoulders."""
        cfg = self.config
        margin = cfg.side_arms_wrist_over_elbow
        wrists_over_elbows = (m.left_wrist.y < m.left_elbow.y - margin and
                              m.right_wrist.y < m.right_elbow.y - margin)
        wrists_over_shoulders = (m.left_wrist.y < m.left_shoulder.y and
                                 m.right_wrist.y < m.right_shoulder.y)
        reach = m.shoulder_width * cfg.side_arms_elbow_out_ratio
        elbows_out = ((m.left_elbow.x - m.left_shoulder.x) * m.left_out > reach and
                      (m.right_elbow.x - m.right_shoulder.x) * m.right_out > reach)
        return wrists_over_elbows and wrists_over_shoulders and elbows_out and self._wrists_level(m)

    def _is_zigzag(self, m: PoseMeasurements) -> bool:
        """One arm up, the other down."""
        cfg = self.config
        gap = abs(m.left_wrist.y - m.right_wrist.y)
        asymmetric = gap > m.shoulder_width * cfg.zigzag_asymmetry_ratio
        up_line = m.shoulder_mid_y - cfg.zigzag_arm_offset
        down_line = m.shoulder_mid_y + cfg.zigzag_arm_offset
        one_up = m.left_wrist.y < up_line or m.right_wrist.y < up_line
        one_down = m.left_wrist.y > down_line or m.right_wrist.y > down_line
        return asymmetric and one_up and one_down and self._arms_extended(m)

    def _is_arms_out(self, m: PoseMeasurements) -> bool:
        """T-pose."""
        cfg = self.config
        tol = cfg.arms_out_vertical_tolerance
        horizontal = (abs(m.left_wrist.y - m.left_shoulder.y) < tol and
                      abs(m.right_wrist.y - m.right_shoulder.y) < tol)
        straight = (m.left_elbow_angle >= cfg.arms_out_min_elbow_angle and
                    m.right_elbow_angle >= cfg.arms_out_min_elbow_angle)
        return (horizontal and straight and self._arms_extended(m) and
                self._arms_spread(m) and self._wrists_level(m))

    def _is_rounded(self, m: PoseMeasurements) -> bool:
        """Hands on hips, elbows bowed outward."""
        if not m.has_hips:
            return False
        cfg = self.config
        sw = m.shoulder_width
        hip_mid_y = (m.left_hip.y + m.right_hip.y) / 2
        torso = abs(hip_mid_y - m.shoulder_mid_y)

        # From mid-torso down to upper thighs
        top = m.shoulder_mid_y - torso * cfg.rounded_band_above
        bottom = hip_mid_y + torso * cfg.rounded_band_below
        in_band = top < m.left_wrist.y < bottom and top < m.right_wrist.y < bottom

        near_hips = (distance(m.left_wrist.point, m.left_hip.point) < sw * cfg.rounded_hip_distance_ratio and
                     distance(m.right_wrist.point, m.right_hip.point) < sw * cfg.rounded_hip_distance_ratio)

        outward = sw * cfg.rounded_elbow_outward_ratio
        elbows_outward = ((m.left_elbow.x - m.left_wrist.x) * m.left_out > outward and
                          (m.right_elbow.x - m.right_wrist.x) * m.right_out > outward)

        short = sw * cfg.rounded_forearm_ratio
        forearms_bent = m.left_forearm_length < short and m.right_forearm_length < short

        return in_band and near_hips and elbows_outward and forearms_bent
