"""
Pop-in / pop-out animation of a slot's overlay.

Driven by the lock state machine's output: a newly locked label pops the
overlay in (small to full size, ease-out), losing the lock shrinks it out
(ease-in) and then hides it. Scale is recomputed from elapsed wall-clock
time on every update, so uneven frame delivery does not change the motion.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..config import AnimationConfig
from ..pose.classifier import PoseLabel


def clamp01(x: float) -> float:
    return 0.0 if x < 0 else 1.0 if x > 1 else x


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def ease_out_quad(u: float) -> float:
    return 1 - (1 - u) * (1 - u)


def ease_in_quad(u: float) -> float:
    return u * u


class AnimPhase(Enum):
    HIDDEN = "hidden"
    ENTERING = "entering"
    STEADY = "steady"
    EXITING = "exiting"


@dataclass
class AnimState:
    """Per-slot overlay animation state."""
    phase: AnimPhase = AnimPhase.HIDDEN
    start_time: float = 0.0
    duration: float = 0.0
    from_scale: float = 1.0
    to_scale: float = 1.0
    current_scale: float = 1.0
    current_label: Optional[PoseLabel] = None
    image: Any = None                 # Opaque overlay reference from the resolver

    @property
    def visible(self) -> bool:
        return self.phase is not AnimPhase.HIDDEN


class OverlayAnimator:
    """Enter / steady / exit animation for one slot's overlay."""

    def __init__(
        self,
        config: Optional[AnimationConfig] = None,
        image_resolver: Optional[Callable[[PoseLabel], Any]] = None
    ):
        """
        Initialize animator.

        Args:
            config: Durations and scale endpoints
            image_resolver: Maps a locked label to the overlay to show
                (file name, decoded image, ...); defaults to the label itself
        """
        self.config = config or AnimationConfig()
        self.image_resolver = image_resolver or (lambda label: label)
        self.state = AnimState()

    def update(self, locked_label: Any, now_ms: float) -> AnimState:
        """
        Advance the animation to now_ms.

        Args:
            locked_label: Output of the lock state machine (None when unlocked)
            now_ms: Current wall-clock time in milliseconds

        Returns:
            The updated AnimState
        """
        cfg = self.config
        a = self.state
        label = None if locked_label is None else PoseLabel.parse(locked_label)
        if label is PoseLabel.NEUTRAL:
            label = None

        if label is not None:
            if a.phase in (AnimPhase.HIDDEN, AnimPhase.EXITING) or a.current_label is not label:
                a.current_label = label
                a.image = self.image_resolver(label)
                self._start(AnimPhase.ENTERING, now_ms, cfg.enter_ms,
                            cfg.enter_start_scale, cfg.steady_scale)
        elif a.phase in (AnimPhase.ENTERING, AnimPhase.STEADY):
            self._start(AnimPhase.EXITING, now_ms, cfg.exit_ms,
                        a.current_scale or cfg.steady_scale, cfg.exit_end_scale)

        if a.phase is AnimPhase.ENTERING:
            u = self._progress(now_ms)
            a.current_scale = lerp(a.from_scale, a.to_scale, ease_out_quad(u))
            if u >= 1:
                a.phase = AnimPhase.STEADY
                a.current_scale = cfg.steady_scale
        elif a.phase is AnimPhase.EXITING:
            u = self._progress(now_ms)
            a.current_scale = lerp(a.from_scale, a.to_scale, ease_in_quad(u))
            if u >= 1:
                a.phase = AnimPhase.HIDDEN
                a.current_scale = 1.0
                a.current_label = None
                a.image = None
        elif a.phase is AnimPhase.STEADY:
            a.current_scale = cfg.steady_scale

        return a

    def _start(self, phase: AnimPhase, now_ms: float, duration: float,
               from_scale: float, to_scale: float) -> None:
        a = self.state
        a.phase = phase
        a.start_time = now_ms
        a.duration = duration
        a.from_scale = from_scale
        a.to_scale = to_scale

    def _progress(self, now_ms: float) -> float:
        a = self.state
        if a.duration <= 0:
            return 1.0
        return clamp01((now_ms - a.start_time) / a.duration)

    def reset(self) -> None:
        self.state = AnimState()
