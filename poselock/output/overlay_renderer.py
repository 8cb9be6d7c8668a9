"""
OpenCV rendering of the installation view.

Draws, on top of the (mirrored) camera frame:
- Smoothed pose skeletons
- The overlay image of each slot, centered on the navel anchor and sized
  by the slot's overlay width (a placeholder box if the asset is missing)
- Per-slot raw / locked labels with a lock-phase color
- A status line (people, fps, relay state)
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from ..analysis.pose_lock import LockPhase
from ..config import ANNOTATION_COLORS
from ..pipeline import SlotOutput
from ..pose.skeleton import JointName, Skeleton

logger = logging.getLogger(__name__)


@dataclass
class RenderConfig:
    """What to draw on the live view."""
    show_skeleton: bool = True
    show_overlay: bool = True
    show_labels: bool = True
    show_status: bool = True
    skeleton_thickness: int = 2
    joint_radius: int = 4
    label_font_scale: float = 0.6
    label_padding: int = 6
    min_confidence: float = 0.3


class OverlayRenderer:
    """Draws slot outputs onto camera frames."""

    # Skeleton connections for visualization
    SKELETON_CONNECTIONS = [
        (JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER),
        (JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW),
        (JointName.LEFT_ELBOW, JointName.LEFT_WRIST),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW),
        (JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST),
        (JointName.LEFT_SHOULDER, JointName.LEFT_HIP),
        (JointName.RIGHT_SHOULDER, JointName.RIGHT_HIP),
        (JointName.LEFT_HIP, JointName.RIGHT_HIP),
        (JointName.LEFT_HIP, JointName.LEFT_KNEE),
        (JointName.LEFT_KNEE, JointName.LEFT_ANKLE),
        (JointName.RIGHT_HIP, JointName.RIGHT_KNEE),
        (JointName.RIGHT_KNEE, JointName.RIGHT_ANKLE),
    ]

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()
        self.colors = ANNOTATION_COLORS
        self._images: Dict[str, Optional[np.ndarray]] = {}

    def render(self, frame: np.ndarray, outputs: List[SlotOutput], status: Optional[str] = None) -> np.ndarray:
        """
        Apply all annotations to a copy of the frame.

        Args:
            frame: BGR camera frame
            outputs: Slot outputs for this frame
            status: Optional text for the status line

        Returns:
            Annotated frame
        """
        annotated = frame.copy()
        height, width = annotated.shape[:2]

        for out in outputs:
            if self.config.show_overlay and out.overlay_visible:
                self._draw_overlay(annotated, out, width, height)
            if self.config.show_skeleton and out.skeleton is not None:
                self._draw_skeleton(annotated, out.skeleton, width, height)
            if self.config.show_labels:
                self._draw_slot_label(annotated, out, width, height)

        if self.config.show_status and status:
            cv2.putText(annotated, status, (10, height - 12),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1)
        return annotated

    def _draw_skeleton(self, frame: np.ndarray, skeleton: Skeleton, width: int, height: int):
        """Draw pose skeleton on frame."""
        gate = self.config.min_confidence
        joints = skeleton.joints

        for start, end in self.SKELETON_CONNECTIONS:
            if skeleton.is_confident(start, gate) and skeleton.is_confident(end, gate):
                pt1 = _to_px(joints[start].point, width, height)
                pt2 = _to_px(joints[end].point, width, height)
                cv2.line(frame, pt1, pt2, self.colors["skeleton"], self.config.skeleton_thickness)

        for name, joint in joints.items():
            if joint.confidence >= gate:
                cv2.circle(frame, _to_px(joint.point, width, height),
                           self.config.joint_radius, self.colors["joint"], -1)

    def _draw_overlay(self, frame: np.ndarray, out: SlotOutput, width: int, height: int):
        """Overlay image (or placeholder box) centered on the anchor."""
        cx, cy = _to_px(out.anchor, width, height)
        box_w = max(1, int(out.overlay_width * width))

        image = self._load(out.overlay_image)
        if image is not None:
            box_h = max(1, int(box_w * image.shape[0] / image.shape[1]))
            resized = cv2.resize(image, (box_w, box_h), interpolation=cv2.INTER_AREA)
            alpha_blit(frame, resized, (cx - box_w // 2, cy - box_h // 2))
            return

        box_h = box_w
        x1, y1 = cx - box_w // 2, cy - box_h // 2
        cv2.rectangle(frame, (x1, y1), (x1 + box_w, y1 + box_h), self.colors["overlay"], 2)
        if out.overlay_label is not None:
            cv2.putText(frame, out.overlay_label.value.upper(), (x1 + 6, y1 + 24),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, self.colors["overlay"], 2)

    def _draw_slot_label(self, frame: np.ndarray, out: SlotOutput, width: int, height: int):
        """Slot id, raw label and lock state above the shoulders."""
        color = self.colors.get(out.phase.value, (255, 255, 255))
        text = f"#{out.slot_id} {out.raw_label.value}"
        if out.phase is LockPhase.LOCKED and out.locked_label is not None:
            text += f" -> {out.locked_label.value.upper()}"
        elif out.phase is not LockPhase.IDLE:
            text += f" [{out.phase.value}]"

        if out.anchor is not None:
            x, y = _to_px(out.anchor, width, height)
            y = max(20, y - int((out.shoulder_width or 0.1) * width))
        else:
            x, y = 10, 24 + 28 * out.slot_id

        (text_width, text_height), _ = cv2.getTextSize(
            text, cv2.FONT_HERSHEY_SIMPLEX, self.config.label_font_scale, 2
        )
        padding = self.config.label_padding
        x = min(max(0, x - text_width // 2), max(0, width - text_width - 2 * padding))
        cv2.rectangle(frame, (x, y - text_height - padding),
                      (x + text_width + 2 * padding, y + padding), (50, 50, 50), -1)
        cv2.putText(frame, text, (x + padding, y),
                    cv2.FONT_HERSHEY_SIMPLEX, self.config.label_font_scale, color, 2)

    def _load(self, ref) -> Optional[np.ndarray]:
        """Decode an overlay asset once; None if it cannot be read."""
        if ref is None:
            return None
        if isinstance(ref, np.ndarray):
            return ref
        key = str(ref)
        if key not in self._images:
            image = cv2.imread(key, cv2.IMREAD_UNCHANGED)
            if image is None:
                logger.warning("Overlay asset not readable: %s", key)
            self._images[key] = image
        return self._images[key]


def _to_px(point: Tuple[float, float], width: int, height: int) -> Tuple[int, int]:
    return int(point[0] * width), int(point[1] * height)


def alpha_blit(frame: np.ndarray, image: np.ndarray, top_left: Tuple[int, int]) -> None:
    """
    Paste image onto frame in place, honouring a 4th alpha channel.

    Parts falling outside the frame are clipped.
    """
    x, y = top_left
    fh, fw = frame.shape[:2]
    ih, iw = image.shape[:2]

    x1, y1 = max(x, 0), max(y, 0)
    x2, y2 = min(x + iw, fw), min(y + ih, fh)
    if x1 >= x2 or y1 >= y2:
        return

    crop = image[y1 - y:y2 - y, x1 - x:x2 - x]
    region = frame[y1:y2, x1:x2]
    if crop.ndim == 2:
        crop = cv2.cvtColor(crop, cv2.COLOR_GRAY2BGR)

    if crop.shape[2] == 4:
        alpha = crop[:, :, 3:4].astype(np.float32) / 255.0
        blended = alpha * crop[:, :, :3].astype(np.float32) + (1 - alpha) * region.astype(np.float32)
        region[:] = blended.astype(np.uint8)
    else:
        region[:] = crop[:, :, :3]
