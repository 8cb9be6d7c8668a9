import random

import pytest

from poselock.config import AnimationConfig
from poselock.output.animation import AnimPhase, OverlayAnimator, ease_in_quad, ease_out_quad
from poselock.pose.classifier import PoseLabel


@pytest.fixture
def animator():
    # enter 440ms 0.58 -> 1.0, exit 220ms -> 0.76
    return OverlayAnimator(AnimationConfig(), image_resolver=lambda label: f"{label.value}.png")


def test_easing_endpoints():
    assert ease_out_quad(0) == 0 and ease_out_quad(1) == 1
    assert ease_in_quad(0) == 0 and ease_in_quad(1) == 1
    assert ease_out_quad(0.5) == 0.75
    assert ease_in_quad(0.5) == 0.25


def test_starts_hidden(animator):
    state = animator.update(None, 0)
    assert state.phase is AnimPhase.HIDDEN
    assert state.current_scale == 1.0
    assert not state.visible


def test_pop_in(animator):
    state = animator.update(PoseLabel.ARMS_UP, 0)
    assert state.phase is AnimPhase.ENTERING
    assert state.current_scale == pytest.approx(0.58)
    assert state.current_label is PoseLabel.ARMS_UP
    assert state.image == "arms_up.png"

    assert animator.update(PoseLabel.ARMS_UP, 220).current_scale == pytest.approx(0.58 + 0.42 * 0.75)

    state = animator.update(PoseLabel.ARMS_UP, 440)
    assert state.phase is AnimPhase.STEADY
    assert state.current_scale == 1.0


def test_pop_out_then_hide(animator):
    animator.update("star", 0)
    animator.update("star", 500)

    state = animator.update(None, 1000)
    assert state.phase is AnimPhase.EXITING
    assert state.current_scale == pytest.approx(1.0)
    assert state.current_label is PoseLabel.STAR

    assert animator.update(None, 1110).current_scale == pytest.approx(1.0 - 0.24 * 0.25)

    state = animator.update(None, 1220)
    assert state.phase is AnimPhase.HIDDEN
    assert state.current_scale == 1.0
    assert state.current_label is None
    assert state.image is None


def test_exit_during_entry_starts_from_current_scale(animator):
    animator.update("star", 0)
    mid = animator.update("star", 220).current_scale
    state = animator.update(None, 220)
    assert state.phase is AnimPhase.EXITING
    assert state.from_scale == pytest.approx(mid)


def test_new_label_re_enters(animator):
    animator.update("star", 0)
    animator.update("star", 500)
    state = animator.update("zigzag", 600)
    assert state.phase is AnimPhase.ENTERING
    assert state.current_label is PoseLabel.ZIGZAG
    assert state.image == "zigzag.png"
    assert state.current_scale == pytest.approx(0.58)


def test_relock_during_exit_re_enters(animator):
    animator.update("star", 0)
    animator.update("star", 500)
    animator.update(None, 600)
    state = animator.update("star", 650)
    assert state.phase is AnimPhase.ENTERING
    assert state.start_time == 650


def test_steady_label_does_not_restart(animator):
    animator.update("rounded", 0)
    animator.update("rounded", 500)
    state = animator.update("rounded", 900)
    assert state.phase is AnimPhase.STEADY
    assert state.start_time == 0


def test_scale_stays_within_endpoints(animator):
    rng = random.Random(7)
    labels = [None, "star", "arms_up", "zigzag"]
    t = 0
    for _ in range(2000):
        t += rng.randint(0, 60)
        scale = animator.update(rng.choice(labels), t).current_scale
        assert 0.58 - 1e-9 <= scale <= 1.0 + 1e-9


def test_zero_durations_jump_to_end():
    animator = OverlayAnimator(AnimationConfig(enter_ms=0, exit_ms=0))
    assert animator.update("star", 0).phase is AnimPhase.STEADY
    assert animator.update(None, 1).phase is AnimPhase.HIDDEN


def test_default_resolver_returns_label():
    animator = OverlayAnimator()
    assert animator.update("arms_out", 0).image is PoseLabel.ARMS_OUT
