"""
Anti-flicker pose locking for one person slot.

The classifier's per-frame label is noisy. This state machine turns it into
a stable "locked" pose:

    idle -> candidate -> locked -> cooldown -> idle

- candidate: the same label must be seen for the dwell time before locking;
  a different label restarts the dwell, a drop-out longer than the grace
  window falls back to idle.
- locked: held for at least the minimum-show time, then released once the
  detection has disagreed for a further grace window.
- cooldown: detections are ignored until the cooldown expires.

All timers are wall-clock milliseconds supplied by the caller, so frame-rate
changes or paused delivery do not shift the timing.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from ..config import LockConfig
from ..pose.classifier import PoseLabel

logger = logging.getLogger(__name__)


class LockPhase(Enum):
    """Lock state machine phases."""
    IDLE = "idle"
    CANDIDATE = "candidate"
    LOCKED = "locked"
    COOLDOWN = "cooldown"


@dataclass
class LockFSMState:
    """Mutable state of one slot's lock machine."""
    phase: LockPhase = LockPhase.IDLE
    candidate_label: Optional[PoseLabel] = None
    candidate_since: float = 0.0
    locked_label: Optional[PoseLabel] = None
    locked_since: float = 0.0
    cooldown_until: float = 0.0
    missing_since: Optional[float] = None    # Candidate not seen since
    mismatch_since: Optional[float] = None   # Locked label not seen since


def _as_label(detected: Any) -> Optional[PoseLabel]:
    """Neutral, missing and malformed detections all mean 'nothing'."""
    if detected is None:
        return None
    label = PoseLabel.parse(detected)
    return None if label is PoseLabel.NEUTRAL else label


class PoseLockFSM:
    """Per-slot dwell / min-show / grace / cooldown state machine."""

    def __init__(self, config: Optional[LockConfig] = None, slot_id: int = 0):
        """
        Initialize lock state machine.

        Args:
            config: Timing parameters; defaults from poselock.config
            slot_id: Owning slot, used in log messages only
        """
        self.config = config or LockConfig()
        self.slot_id = slot_id
        self.state = LockFSMState()
        self.last_transition: Optional[Tuple[LockPhase, LockPhase]] = None

    @property
    def phase(self) -> LockPhase:
        return self.state.phase

    @property
    def locked_label(self) -> Optional[PoseLabel]:
        """Label the renderer should show, or None."""
        return self.state.locked_label if self.state.phase is LockPhase.LOCKED else None

    def update(self, detected: Any, now_ms: float) -> Optional[PoseLabel]:
        """
        Advance one frame.

        Args:
            detected: Raw classifier output (PoseLabel, label string, None)
            now_ms: Current wall-clock time in milliseconds

        Returns:
            Locked label while locked, otherwise None
        """
        label = _as_label(detected)
        cfg = self.config
        s = self.state
        before = s.phase

        if s.phase is LockPhase.IDLE:
            if label is not None and now_ms >= s.cooldown_until:
                s.phase = LockPhase.CANDIDATE
                s.candidate_label = label
                s.candidate_since = now_ms
                s.missing_since = None

        elif s.phase is LockPhase.CANDIDATE:
            if label is None:
                if s.missing_since is None:
                    s.missing_since = now_ms
                if now_ms - s.missing_since > cfg.grace_ms:
                    s.phase = LockPhase.IDLE
                    s.candidate_label = None
                    s.missing_since = None
            elif label is not s.candidate_label:
                # Switched candidate: dwell restarts from zero
                s.candidate_label = label
                s.candidate_since = now_ms
                s.missing_since = None
            else:
                s.missing_since = None
                if now_ms - s.candidate_since >= cfg.dwell_ms:
                    s.phase = LockPhase.LOCKED
                    s.locked_label = label
                    s.locked_since = now_ms
                    s.mismatch_since = None

        elif s.phase is LockPhase.LOCKED:
            if label is s.locked_label:
                s.mismatch_since = None
            else:
                if s.mismatch_since is None:
                    s.mismatch_since = now_ms
                show_end = s.locked_since + cfg.min_show_ms
                if now_ms >= show_end and now_ms - max(s.mismatch_since, show_end) >= cfg.grace_ms:
                    s.phase = LockPhase.COOLDOWN
                    s.locked_label = None
                    s.candidate_label = None
                    s.candidate_since = 0.0
                    s.mismatch_since = None
                    s.cooldown_until = now_ms + cfg.cooldown_ms

        elif s.phase is LockPhase.COOLDOWN:
            if now_ms >= s.cooldown_until:
                s.phase = LockPhase.IDLE

        if s.phase is not before:
            self.last_transition = (before, s.phase)
            logger.debug(
                "slot %d: %s -> %s (%s)", self.slot_id, before.value, s.phase.value,
                (s.locked_label or s.candidate_label or PoseLabel.NEUTRAL).value
            )
        else:
            self.last_transition = None

        return self.locked_label

    def reset(self) -> None:
        """Return to idle, dropping any lock and cooldown."""
        self.state = LockFSMState()
        self.last_transition = None
