import json
import os

import pytest

from poselock.config import (
    POSE_GATE_JOINTS,
    ConfigError,
    ConfigStore,
    PipelineConfig,
    config_from_dict,
    config_to_dict,
    load_config,
)
from poselock.pose.classifier import PoseClassifier, PoseLabel
from poselock.pose.skeleton import Joint, JointName, Skeleton


def write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


def test_defaults():
    cfg = PipelineConfig()
    assert cfg.lock.dwell_ms == 400
    assert cfg.lock.min_show_ms == 1000
    assert cfg.lock.cooldown_ms == 400
    assert cfg.lock.grace_ms == 250
    assert cfg.smoothing.position_alpha == 0.80
    assert cfg.smoothing.scale_alpha == 0.85
    assert cfg.animation.enter_start_scale == 0.58
    assert cfg.overlay.navel_blend == 0.60
    assert cfg.overlay.width_ratio == 4.5
    assert cfg.show_control.debounce_ms == 600


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "nope.json") == PipelineConfig()


def test_partial_override_merges_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"lock": {"dwell_ms": 300}, "tracking": {"strategy": "optimal"}})
    cfg = load_config(path)
    assert cfg.lock.dwell_ms == 300.0
    assert isinstance(cfg.lock.dwell_ms, float)
    assert cfg.lock.grace_ms == 250
    assert cfg.tracking.strategy == "optimal"


def test_joint_lists_become_tuples():
    cfg = config_from_dict({"classifier": {"required_joints": ["nose", "left_wrist"]}})
    assert cfg.classifier.required_joints == ("nose", "left_wrist")


def test_unknown_keys_are_ignored_with_warning(caplog):
    cfg = config_from_dict({"lock": {"dwel_ms": 1}, "extras": {}})
    assert cfg == PipelineConfig()
    assert "lock.dwel_ms" in caplog.text


@pytest.mark.parametrize("raw", [
    {"lock": {"dwell_ms": -1}},
    {"lock": {"grace_ms": "soon"}},
    {"smoothing": {"position_alpha": 1.0}},
    {"smoothing": {"scale_alpha": -0.1}},
    {"animation": {"enter_start_scale": 0}},
    {"tracking": {"strategy": "magic"}},
    {"tracking": {"max_match_distance": 0}},
    {"tracking": {"anchor_joints": ["nose", "tail"]}},
    {"classifier": {"min_confidence": 1.5}},
    {"classifier": {"arms_up_min_elbow_angle": 200}},
    {"classifier": {"classify_smoothed": "yes"}},
    {"classifier": {"required_joints": ["nose"]}},
    {"classifier": {"required_joints": ["nose", "left_shoulder", "right_shoulder", "left_wrist"]}},
    {"show_control": {"osc_address": "md8key/ctrl_layer_media"}},
    {"show_control": {"osc_address": "/md8key/ctrl_layer_media/2"}},
    {"overlay": {"navel_blend": 2}},
    {"show_control": {"port": 0}},
    {"show_control": {"port": 80.5}},
    {"show_control": {"bundles": {"star": [{"layer": "2", "media": 8}]}}},
    {"show_control": {"bundles": {"dab": []}}},
    {"lock": []},
    [],
])
def test_invalid_values_raise(raw):
    with pytest.raises(ConfigError):
        config_from_dict(raw)


def test_bad_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_config_error_is_a_value_error():
    assert issubclass(ConfigError, ValueError)


def test_round_trip_through_dict():
    cfg = config_from_dict({"lock": {"dwell_ms": 250}})
    assert config_from_dict(json.loads(json.dumps(config_to_dict(cfg)))) == cfg


def test_store_keeps_last_known_good(tmp_path, caplog):
    path = tmp_path / "config.json"
    write(path, {"lock": {"dwell_ms": 300}})
    store = ConfigStore(path)
    assert store.current.lock.dwell_ms == 300

    write(path, {"lock": {"dwell_ms": -5}})
    assert not store.reload()
    assert store.current.lock.dwell_ms == 300
    assert store.last_error is not None
    assert "keeping last known good" in caplog.text


def test_store_reloads_only_when_file_changes(tmp_path):
    path = tmp_path / "config.json"
    write(path, {"lock": {"dwell_ms": 300}})
    store = ConfigStore(path)
    assert not store.reload_if_changed()

    write(path, {"lock": {"dwell_ms": 350}})
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 5))
    assert store.reload_if_changed()
    assert store.current.lock.dwell_ms == 350


def test_store_keeps_config_when_file_vanishes(tmp_path, caplog):
    path = tmp_path / "config.json"
    write(path, {"lock": {"dwell_ms": 300}})
    store = ConfigStore(path)
    path.unlink()

    assert not store.reload_if_changed()
    assert store.current.lock.dwell_ms == 300
    assert "vanished" in caplog.text
    assert store.last_error is not None

    write(path, {"lock": {"dwell_ms": 320}})
    assert store.reload_if_changed()
    assert store.current.lock.dwell_ms == 320


def test_store_without_file_uses_defaults(tmp_path):
    store = ConfigStore(tmp_path / "absent.json")
    assert store.current == PipelineConfig()
    assert not store.reload_if_changed()
    assert store.last_error is None


def test_minimal_required_joints_still_gate_wrists(arms_up_skeleton):
    cfg = config_from_dict({"classifier": {"required_joints": sorted(POSE_GATE_JOINTS)}})
    assert set(cfg.classifier.required_joints) == POSE_GATE_JOINTS

    joints = dict(arms_up_skeleton.joints)
    for name in (JointName.LEFT_WRIST, JointName.RIGHT_WRIST):
        joint = joints[name]
        joints[name] = Joint(joint.x, joint.y, 0.05)
    classifier = PoseClassifier(cfg.classifier)
    assert classifier.classify(arms_up_skeleton) is PoseLabel.ARMS_UP
    assert classifier.classify(Skeleton(joints=joints)) is PoseLabel.NEUTRAL
