import math

import pytest

from poselock.config import TrackingConfig
from poselock.detection.tracker import IdentityTracker
from poselock.pose.skeleton import Skeleton


def nose_at(x: float, y: float = 0.2) -> Skeleton:
    return Skeleton.from_mapping({"nose": (x, y, 0.9)})


@pytest.fixture
def tracker():
    return IdentityTracker()


def test_first_frame_keeps_detector_order(tracker, skeleton_for):
    a, b = skeleton_for(dx=-0.2), skeleton_for(dx=0.2)
    result = tracker.update([a, b])
    assert result.ordered == [a, b]
    assert result.matches == [None, None]


def test_swapped_detector_order_keeps_slots(tracker, skeleton_for):
    a, b = skeleton_for(dx=-0.2), skeleton_for(dx=0.2)
    tracker.update([a, b])

    a2, b2 = skeleton_for(dx=-0.18), skeleton_for(dx=0.18)
    result = tracker.update([b2, a2])

    assert result.ordered == [a2, b2]
    assert result.matches == [1, 0]
    assert result.order == [1, 0]


def test_one_previous_slot_matches_at_most_one_skeleton(tracker, skeleton_for):
    tracker.update([skeleton_for()])
    near, nearer = skeleton_for(dx=0.02), skeleton_for(dx=0.01)
    result = tracker.update([near, nearer])

    assert sum(1 for m in result.matches if m == 0) == 1
    assert result.matches == [None, 0]
    assert result.ordered == [nearer, near]


def test_distance_at_or_beyond_threshold_starts_a_new_slot(tracker):
    tracker.update([nose_at(0.2)])
    result = tracker.update([nose_at(0.6)])
    assert result.matches == [None]
    assert result.new_count == 1


def test_unmatched_skeletons_fill_free_slots(tracker, skeleton_for):
    a, b = skeleton_for(dx=-0.35), skeleton_for(dx=0.35)
    tracker.update([a, b])

    newcomer, b2 = skeleton_for(dx=0.0), skeleton_for(dx=0.34)
    result = tracker.update([newcomer, b2])

    assert result.matches == [None, 1]
    assert result.ordered == [newcomer, b2]


def test_vanished_people_are_compacted(tracker):
    tracker.update([nose_at(0.2), nose_at(0.5), nose_at(0.8)])
    survivor = nose_at(0.81)
    result = tracker.update([survivor])

    assert result.matches == [2]
    assert result.ordered == [survivor]


def test_cost_uses_shared_confident_anchors_only(tracker):
    a = Skeleton.from_mapping({"nose": (0.5, 0.2, 0.9), "left_hip": (0.4, 0.5, 0.9)})
    b = Skeleton.from_mapping({"nose": (0.6, 0.2, 0.9), "left_hip": (0.9, 0.5, 0.1)})
    assert tracker.cost(a, b) == pytest.approx(0.1)

    wrists_only = Skeleton.from_mapping({"left_wrist": (0.5, 0.5, 0.9)})
    assert math.isinf(tracker.cost(a, wrists_only))


def test_cost_matrix_shape(tracker):
    result = tracker.match([nose_at(0.1), nose_at(0.2), nose_at(0.3)], [nose_at(0.1)])
    assert result.costs.shape == (1, 3)


def test_empty_frame_clears_history(tracker):
    tracker.update([nose_at(0.5)])
    assert tracker.update([]).ordered == []
    assert tracker.previous == []
    assert tracker.update([nose_at(0.5)]).matches == [None]


def test_optimal_strategy_minimizes_total_cost():
    previous = [nose_at(0.5), nose_at(0.7)]
    current = [nose_at(0.6), nose_at(0.38)]

    greedy = IdentityTracker(TrackingConfig(strategy="greedy")).match(current, previous)
    optimal = IdentityTracker(TrackingConfig(strategy="optimal")).match(current, previous)

    assert greedy.matches == [0, None]
    assert optimal.matches == [1, 0]
    assert optimal.ordered == [current[1], current[0]]


def test_optimal_strategy_respects_threshold():
    tracker = IdentityTracker(TrackingConfig(strategy="optimal"))
    result = tracker.match([nose_at(0.9)], [nose_at(0.1)])
    assert result.matches == [None]
