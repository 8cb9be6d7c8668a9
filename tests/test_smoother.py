import pytest

from poselock.analysis.smoother import TemporalSmoother
from poselock.config import SmoothingConfig
from poselock.pose.skeleton import JointName


def test_first_observation_seeds_the_average():
    smoother = TemporalSmoother()
    assert smoother.smooth_point("nose", 0.3, 0.7) == pytest.approx((0.3, 0.7))
    assert smoother.smooth_scalar("shoulder_width", 0.2) == pytest.approx(0.2)


def test_ema_update_formula():
    smoother = TemporalSmoother(SmoothingConfig(position_alpha=0.8, scale_alpha=0.5))
    smoother.smooth_point("nose", 0.0, 0.0)
    assert smoother.smooth_point("nose", 1.0, 0.5) == pytest.approx((0.2, 0.1))
    smoother.smooth_scalar("w", 0.0)
    assert smoother.smooth_scalar("w", 1.0) == pytest.approx(0.5)


def test_repeated_value_converges():
    smoother = TemporalSmoother()
    smoother.smooth_point("wrist", 0.0, 0.0)
    for _ in range(200):
        x, y = smoother.smooth_point("wrist", 0.6, 0.4)
    assert x == pytest.approx(0.6, abs=1e-9)
    assert y == pytest.approx(0.4, abs=1e-9)


def test_zero_alpha_passes_raw_values_through():
    smoother = TemporalSmoother(SmoothingConfig(position_alpha=0.0, scale_alpha=0.0))
    smoother.smooth_point("nose", 0.9, 0.9)
    assert smoother.smooth_point("nose", 0.1, 0.2) == (0.1, 0.2)
    smoother.smooth_scalar("w", 5.0)
    assert smoother.smooth_scalar("w", 3.0) == 3.0


def test_names_are_independent():
    smoother = TemporalSmoother()
    smoother.smooth_point("a", 0.0, 0.0)
    assert smoother.smooth_point("b", 1.0, 1.0) == pytest.approx((1.0, 1.0))


def test_alphas_are_hot_swappable():
    smoother = TemporalSmoother(SmoothingConfig(position_alpha=0.9))
    smoother.smooth_point("nose", 0.0, 0.0)
    smoother.config = SmoothingConfig(position_alpha=0.0)
    assert smoother.smooth_point("nose", 1.0, 1.0) == (1.0, 1.0)


def test_smooth_skeleton_skips_low_confidence_joints(skeleton_for):
    smoother = TemporalSmoother()
    smoother.smooth_skeleton(skeleton_for("neutral"))
    moved = skeleton_for("neutral", nose=(0.6, 0.2), left_wrist=(0.9, 0.9, 0.1))
    out = smoother.smooth_skeleton(moved)

    assert out.get(JointName.NOSE).x == pytest.approx(0.8 * 0.5 + 0.2 * 0.6)
    # Untouched, and its accumulator kept the old position
    assert out.get(JointName.LEFT_WRIST).point == (0.9, 0.9)
    assert smoother.point("left_wrist") == pytest.approx((0.40, 0.54))


def test_reset_drops_history():
    smoother = TemporalSmoother()
    smoother.smooth_point("nose", 0.0, 0.0)
    smoother.reset()
    assert smoother.point("nose") is None
    assert smoother.smooth_point("nose", 1.0, 1.0) == pytest.approx((1.0, 1.0))
