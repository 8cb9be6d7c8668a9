import math

from poselock.pose.geometry import blend, distance, joint_angle, midpoint
from poselock.pose.skeleton import Joint, JointName, Skeleton, skeletons_from_detections


def test_joint_name_parse_accepts_snake_and_camel_case():
    assert JointName.parse("left_wrist") is JointName.LEFT_WRIST
    assert JointName.parse("leftWrist") is JointName.LEFT_WRIST
    assert JointName.parse("NOSE") is JointName.NOSE
    assert JointName.parse(JointName.RIGHT_HIP) is JointName.RIGHT_HIP


def test_joint_name_parse_rejects_unknown():
    assert JointName.parse("left_pinky") is None
    assert JointName.parse(None) is None
    assert JointName.parse(42) is None


def test_from_keypoints_reads_score_and_drops_unknown_names():
    skel = Skeleton.from_keypoints([
        {"name": "nose", "x": 0.5, "y": 0.2, "score": 0.8},
        {"name": "leftShoulder", "x": 0.4, "y": 0.3, "confidence": 0.9},
        {"name": "tail", "x": 0.1, "y": 0.1, "confidence": 1.0},
        "garbage",
    ])
    assert len(skel) == 2
    assert skel.get(JointName.NOSE).confidence == 0.8
    assert skel.get(JointName.LEFT_SHOULDER).x == 0.4


def test_from_keypoints_normalizes_pixels():
    skel = Skeleton.from_keypoints(
        [{"name": "nose", "x": 320, "y": 120, "confidence": 0.9}],
        frame_width=640, frame_height=480,
    )
    nose = skel.get(JointName.NOSE)
    assert nose.x == 0.5
    assert nose.y == 0.25


def test_from_mapping_drops_unusable_values():
    skel = Skeleton.from_mapping({
        "nose": (0.5, 0.2, 0.9),
        "left_wrist": {"x": "nan", "y": 0.1, "confidence": 0.9},
        "right_wrist": {"y": 0.1},
        "left_elbow": Joint(0.3, 0.4, 0.7),
    })
    assert set(skel) == {JointName.NOSE, JointName.LEFT_ELBOW}


def test_confidence_checks():
    skel = Skeleton.from_mapping({"nose": (0.5, 0.2, 0.5), "left_eye": (0.5, 0.2, 0.1)})
    assert skel.is_confident(JointName.NOSE, 0.3)
    assert not skel.is_confident(JointName.LEFT_EYE, 0.3)
    assert not skel.is_confident(JointName.RIGHT_EYE, 0.0)
    assert not skel.confident([JointName.NOSE, JointName.LEFT_EYE], 0.3)


def test_skeletons_from_detections_keeps_one_entry_per_person():
    skeletons = skeletons_from_detections([
        {"keypoints": [{"name": "nose", "x": 0.5, "y": 0.2, "score": 0.9}]},
        None,
        Skeleton(),
    ])
    assert len(skeletons) == 3
    assert len(skeletons[0]) == 1
    assert len(skeletons[1]) == 0


def test_geometry_helpers():
    assert math.isclose(joint_angle((0, 0), (1, 0), (2, 0)), 180.0, abs_tol=0.05)
    assert math.isclose(joint_angle((1, 1), (1, 0), (2, 0)), 90.0, abs_tol=1e-3)
    assert distance((0, 0), (3, 4)) == 5.0
    assert midpoint((0, 0), (1, 1)) == (0.5, 0.5)
    assert blend((0, 0), (0, 1), 0.6) == (0.0, 0.6)
