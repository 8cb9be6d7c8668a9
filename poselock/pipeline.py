"""
Per-frame orchestration for the PoseLock installation.

For every detector frame:
1. Identity tracker reorders skeletons into stable slot indices
2. Slots are created or truncated to match the number of people
3. Per slot, strictly in this order:
   smoother -> classifier -> lock state machine -> overlay animation
4. A slot whose locked pose changes to a new pose notifies show control

When the detector has nothing new, tick() holds every slot's state and only
advances the overlay animations in time.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .analysis.pose_lock import LockPhase, PoseLockFSM
from .analysis.smoother import TemporalSmoother
from .config import PipelineConfig
from .detection.tracker import IdentityTracker
from .output.animation import AnimPhase, OverlayAnimator
from .output.show_control import OscSink, ShowControlRelay
from .pose.classifier import PoseClassifier, PoseLabel
from .pose.geometry import blend, midpoint
from .pose.skeleton import JointName, Skeleton, skeletons_from_detections
from .pose.source import LatestSkeletonBuffer

logger = logging.getLogger(__name__)


@dataclass
class SlotOutput:
    """What the renderer needs for one slot this frame."""
    slot_id: int
    raw_label: PoseLabel
    locked_label: Optional[PoseLabel]
    phase: LockPhase
    anim_phase: AnimPhase
    current_scale: float
    anchor: Optional[Tuple[float, float]]     # Navel point, normalized
    shoulder_width: Optional[float]           # Smoothed, normalized
    overlay_label: Optional[PoseLabel]        # Label still on screen (also while exiting)
    overlay_image: Any
    overlay_width: Optional[float]            # Normalized, already scaled by the animation
    skeleton: Optional[Skeleton] = None       # Smoothed skeleton, for debug drawing

    @property
    def overlay_visible(self) -> bool:
        return self.anim_phase is not AnimPhase.HIDDEN and self.overlay_width is not None


class PersonSlot:
    """Persistent per-person state: smoothing, lock and animation."""

    def __init__(self, slot_id: int, config: PipelineConfig,
                 image_resolver: Optional[Callable[[PoseLabel], Any]] = None):
        self.slot_id = slot_id
        self.smoother = TemporalSmoother(config.smoothing)
        self.lock = PoseLockFSM(config.lock, slot_id=slot_id)
        self.animator = OverlayAnimator(config.animation, image_resolver)
        self.last_seen_ms: Optional[float] = None
        self.last_raw_label = PoseLabel.NEUTRAL
        self.last_locked_label: Optional[PoseLabel] = None
        self.skeleton: Optional[Skeleton] = None
        self.smoothed: Optional[Skeleton] = None
        self.anchor: Optional[Tuple[float, float]] = None
        self.shoulder_width: Optional[float] = None

    def apply_config(self, config: PipelineConfig) -> None:
        self.smoother.config = config.smoothing
        self.lock.config = config.lock
        self.animator.config = config.animation


class InstallationPipeline:
    """
    Owns the person slots and runs the per-frame pipeline.

    Example:
        pipeline = InstallationPipeline(load_config("config.json"))
        outputs = pipeline.process_frame(skeletons, now_ms)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        relay: Optional[ShowControlRelay] = None,
        buffer: Optional[LatestSkeletonBuffer] = None,
        image_resolver: Optional[Callable[[PoseLabel], Any]] = None
    ):
        """
        Initialize pipeline.

        Args:
            config: Full configuration; defaults if None
            relay: Show-control relay; no cues are sent if None
            buffer: Where tick() takes detector frames from
            image_resolver: Maps a locked label to its overlay; defaults to
                the asset path configured for the label
        """
        self.config = config or PipelineConfig()
        self.relay = relay
        self.buffer = buffer or LatestSkeletonBuffer()
        self.image_resolver = image_resolver or self._asset_for

        self.classifier = PoseClassifier(self.config.classifier)
        self.tracker = IdentityTracker(self.config.tracking)
        self.slots: List[PersonSlot] = []
        self.outputs: List[SlotOutput] = []
        self.frame_count = 0

    @property
    def slot_count(self) -> int:
        return len(self.slots)

    def _asset_for(self, label: PoseLabel) -> Optional[str]:
        name = self.config.overlay.assets.get(label.value)
        if name is None:
            return None
        return str(Path(self.config.overlay.assets_dir) / name)

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def tick(self, now_ms: float) -> List[SlotOutput]:
        """
        One render-loop step.

        Processes the newest detector frame if one arrived since the last
        tick; otherwise holds all slot state and only advances animations.
        """
        frame = self.buffer.take()
        if frame is not None:
            return self.process_frame(frame.skeletons, now_ms)

        self.outputs = [self._hold_slot(slot, now_ms) for slot in self.slots]
        return self.outputs

    def process_frame(self, skeletons: Sequence[Any], now_ms: float) -> List[SlotOutput]:
        """
        Run the full pipeline on one frame of detections.

        Args:
            skeletons: Skeletons (or raw detector entries) for this frame
            now_ms: Current wall-clock time in milliseconds

        Returns:
            One SlotOutput per detected person, in slot order
        """
        current = skeletons_from_detections(skeletons)
        assignment = self.tracker.update(current)
        self._resize(len(assignment.ordered))

        self.outputs = [
            self._step_slot(slot, skeleton, now_ms)
            for slot, skeleton in zip(self.slots, assignment.ordered)
        ]
        self.frame_count += 1
        return self.outputs

    def _resize(self, count: int) -> None:
        before = len(self.slots)
        if count > before:
            for slot_id in range(before, count):
                self.slots.append(PersonSlot(slot_id, self.config, self.image_resolver))
        elif count < before:
            # Dropped slots are discarded, not archived
            del self.slots[count:]
        if count != before:
            logger.info("People in view: %d -> %d", before, count)

    def _step_slot(self, slot: PersonSlot, skeleton: Skeleton, now_ms: float) -> SlotOutput:
        slot.last_seen_ms = now_ms
        slot.skeleton = skeleton
        slot.smoothed = slot.smoother.smooth_skeleton(skeleton)
        self._update_placement(slot)

        target = slot.smoothed if self.config.classifier.classify_smoothed else skeleton
        raw_label = self.classifier.classify(target)
        slot.last_raw_label = raw_label

        locked = slot.lock.update(raw_label, now_ms)
        if slot.lock.last_transition is not None:
            before, after = slot.lock.last_transition
            if after is LockPhase.LOCKED:
                logger.info("Slot %d locked %s", slot.slot_id, locked.value)
            elif before is LockPhase.LOCKED:
                logger.info("Slot %d released %s", slot.slot_id, slot.last_locked_label.value)

        if locked is not slot.last_locked_label:
            if locked is not None and self.relay is not None:
                self.relay.notify(locked, now_ms)
            slot.last_locked_label = locked

        slot.animator.update(locked, now_ms)
        return self._output(slot)

    def _hold_slot(self, slot: PersonSlot, now_ms: float) -> SlotOutput:
        slot.animator.update(slot.lock.locked_label, now_ms)
        return self._output(slot)

    def _update_placement(self, slot: PersonSlot) -> None:
        """Navel anchor and smoothed shoulder width from the smoothed joints."""
        skel = slot.smoothed
        gate = self.config.smoothing.min_confidence
        if skel is None or not skel.confident((JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER), gate):
            slot.anchor = None
            return

        ls = skel.joints[JointName.LEFT_SHOULDER]
        rs = skel.joints[JointName.RIGHT_SHOULDER]
        shoulder_mid = midpoint(ls.point, rs.point)
        slot.shoulder_width = slot.smoother.smooth_scalar("shoulder_width", abs(ls.x - rs.x))

        if skel.confident((JointName.LEFT_HIP, JointName.RIGHT_HIP), gate):
            hip_mid = midpoint(skel.joints[JointName.LEFT_HIP].point, skel.joints[JointName.RIGHT_HIP].point)
            slot.anchor = blend(shoulder_mid, hip_mid, self.config.overlay.navel_blend)
        else:
            slot.anchor = shoulder_mid

    def _output(self, slot: PersonSlot) -> SlotOutput:
        anim = slot.animator.state
        overlay_width = None
        if anim.visible and slot.anchor is not None and slot.shoulder_width is not None:
            overlay_width = self.config.overlay.width_ratio * slot.shoulder_width * anim.current_scale
        return SlotOutput(
            slot_id=slot.slot_id,
            raw_label=slot.last_raw_label,
            locked_label=slot.lock.locked_label,
            phase=slot.lock.phase,
            anim_phase=anim.phase,
            current_scale=anim.current_scale,
            anchor=slot.anchor,
            shoulder_width=slot.shoulder_width,
            overlay_label=anim.current_label,
            overlay_image=anim.image,
            overlay_width=overlay_width,
            skeleton=slot.smoothed,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def apply_config(self, config: PipelineConfig) -> None:
        """Swap in a new (already validated) config without resetting any slot."""
        self.config = config
        self.classifier.config = config.classifier
        self.tracker.config = config.tracking
        for slot in self.slots:
            slot.apply_config(config)

        if self.relay is not None:
            sc = config.show_control
            sink = self.relay.sink
            if isinstance(sink, OscSink) and sink.target != (sc.host, sc.port):
                sink.close()
                self.relay.sink = OscSink(sc.host, sc.port)
            self.relay.config = sc
        logger.info("Applied new configuration to %d slot(s)", len(self.slots))

    def shutdown(self) -> None:
        """Tear down every slot and release the relay."""
        logger.info("Shutting down pipeline after %d frames", self.frame_count)
        self.slots.clear()
        self.outputs = []
        self.tracker.reset()
        self.buffer.clear()
        if self.relay is not None:
            self.relay.close()
