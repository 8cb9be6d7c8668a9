"""
Central configuration for the PoseLock installation.

All tunable parameters are defined here so the classifier, the lock state
machine, the tracker and the overlay animation agree on one set of numbers.
Every value can be overridden from a JSON file and hot-reloaded while the
installation is running (see ConfigStore).

Configuration Categories:
-------------------------
1. PATH CONFIGURATION - Config file, overlay assets
   POSE ESTIMATION - Camera, mirroring, MediaPipe settings (not hot-reloaded)
2. POSE CLASSIFICATION - Confidence gate and per-rule geometric thresholds
3. TEMPORAL SMOOTHING - EMA factors for positions and derived scalars
4. IDENTITY MATCHING - Anchor joints and the per-frame distance gate
5. POSE LOCK - Dwell, minimum-show, grace and cooldown timing
6. OVERLAY ANIMATION - Pop-in / pop-out durations and scale endpoints
7. OVERLAY PLACEMENT - Navel anchor blend and overlay sizing
8. SHOW CONTROL - OSC target, address pattern, debounce, pose-to-bundle table
9. ANNOTATION COLORS - Debug renderer colors

Tuning Guidelines:
------------------
- Higher smoothing alpha = steadier overlay, more lag
- Longer dwell = fewer false locks, slower response
- Grace window should cover one or two dropped detector frames
- All distances are in normalized screen units (0-1, y grows downward)
"""
import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# ============================================================================
# PATH CONFIGURATION
# ============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.json"
ASSETS_DIR = PROJECT_ROOT / "generated"

# ============================================================================
# POSE ESTIMATION
# ============================================================================

CAMERA_INDEX = 0
MIRROR_INPUT = True                # Selfie view, as shown on the installation screen
POSE_MIN_DETECTION_CONFIDENCE = 0.5
POSE_MIN_TRACKING_CONFIDENCE = 0.5
POSE_MODEL_COMPLEXITY = 1          # 0 = lite, 1 = full, 2 = heavy
POSE_MAX_PEOPLE = 4                # Only used with a PoseLandmarker model file

# ============================================================================
# POSE CLASSIFICATION
# ============================================================================

POSE_MIN_CONFIDENCE = 0.3          # Gate for every required joint
POSE_REQUIRED_JOINTS = (
    "nose",
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
)
# Joints no configuration may drop from the gate
POSE_GATE_JOINTS = frozenset({"nose", "left_shoulder", "right_shoulder", "left_wrist", "right_wrist"})
POSE_MIN_SHOULDER_WIDTH = 0.01     # Below this the skeleton is degenerate

# Shared arm checks
ARM_EXTENSION_RATIO = 1.6          # shoulder->wrist must exceed forearm x ratio
ARM_SPREAD_RATIO = 0.3             # wrist outside shoulder by shoulder width x ratio
WRIST_LEVEL_TOLERANCE = 0.125      # Max vertical gap between wrists

# Rule 1: star
STAR_LEG_SPREAD_RATIO = 1.3        # Ankle spread vs hip width

# Rule 2: arms_up
ARMS_UP_NOSE_MARGIN = 0.06         # Wrists this far above the nose
ARMS_UP_MIN_ELBOW_ANGLE = 140.0    # Degrees, wrist-elbow-shoulder

# Rule 3: side_arms
SIDE_ARMS_WRIST_OVER_ELBOW = 0.04
SIDE_ARMS_ELBOW_OUT_RATIO = 0.3

# Rule 4: zigzag
ZIGZAG_ASYMMETRY_RATIO = 0.8       # Wrist height gap vs shoulder width
ZIGZAG_ARM_OFFSET = 0.08           # Distance above/below the shoulder line

# Rule 5: arms_out
ARMS_OUT_VERTICAL_TOLERANCE = 0.125
ARMS_OUT_MIN_ELBOW_ANGLE = 150.0

# Rule 6: rounded (hands on hips)
ROUNDED_BAND_ABOVE = 0.2           # Torso fraction above the shoulder line
ROUNDED_BAND_BELOW = 0.6           # Torso fraction below the hip line
ROUNDED_HIP_DISTANCE_RATIO = 1.0   # Wrist-to-hip distance vs shoulder width
ROUNDED_ELBOW_OUTWARD_RATIO = 0.1
ROUNDED_FOREARM_RATIO = 1.4

# ============================================================================
# TEMPORAL SMOOTHING
# ============================================================================

SMOOTH_POS = 0.80                  # 0..1 (higher = smoother, more lag)
SMOOTH_SCALE = 0.85                # For scalars such as shoulder width

# ============================================================================
# IDENTITY MATCHING
# ============================================================================

MATCH_ANCHOR_JOINTS = ("nose", "left_shoulder", "right_shoulder", "left_hip", "right_hip")
MATCH_MIN_CONFIDENCE = 0.3
MATCH_MAX_DISTANCE = 0.3           # ~200px on a 640px frame
MATCH_STRATEGY = "greedy"          # "greedy" or "optimal"

# ============================================================================
# POSE LOCK
# ============================================================================

POSE_DWELL_MS = 400                # Same pose this long before locking
STICKER_MIN_SHOW_MS = 1000         # Keep a locked pose at least this long
STICKER_COOLDOWN_MS = 400          # Quiet period after release
GRACE_MS = 250                     # Tolerated detection drop-out

# ============================================================================
# OVERLAY ANIMATION
# ============================================================================

IN_MS = 440                        # Enter duration
OUT_MS = 220                       # Exit duration
S_IN_START = 0.58                  # Pop-in starts a bit smaller
S_IN_END = 1.00                    # Settles at 1.0
S_OUT_END = 0.76                   # Shrink slightly on exit

# ============================================================================
# OVERLAY PLACEMENT
# ============================================================================

NAVEL_BLEND = 0.60                 # 0 = shoulders, 1 = hips
OVERLAY_WIDTH_RATIO = 4.5          # Overlay width vs shoulder width

OVERLAY_ASSETS = {
    "arms_out": "Jesus.png",
    "arms_up": "Prime.png",
    "star": "Cathedral.png",
    "zigzag": "Copan.png",
    "side_arms": "Grossmuenster.png",
    "rounded": "Kappell.png",
}

# ============================================================================
# SHOW CONTROL
# ============================================================================

RELAY_ENABLED = True
# Cues go straight to the media server (Modul8) as OSC over UDP
RELAY_HOST = "127.0.0.1"
RELAY_PORT = 8000
RELAY_OSC_ADDRESS = "/md8key/ctrl_layer_media/{layer}"   # One message per action, int media arg
RELAY_DEBOUNCE_MS = 600            # Identical bundles inside this window are dropped

# Media-server layers (zero-based)
LAYERS = {"FLOWER_A": 2, "FLOWER_B": 3, "BIRD_A": 4, "BIRD_B": 5}
BIRDS = [1, 2, 3, 4, 5, 6, 7]
FLOWERS = [8, 9, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19]


def _bundle(flower_a: int, flower_b: int, bird_a: int, bird_b: int) -> List[Dict[str, int]]:
    return [
        {"layer": LAYERS["FLOWER_A"], "media": flower_a},
        {"layer": LAYERS["FLOWER_B"], "media": flower_b},
        {"layer": LAYERS["BIRD_A"], "media": bird_a},
        {"layer": LAYERS["BIRD_B"], "media": bird_b},
    ]


POSE_TO_BUNDLE = {
    "star": _bundle(FLOWERS[0], FLOWERS[1], BIRDS[0], BIRDS[1]),
    "arms_out": _bundle(FLOWERS[2], FLOWERS[3], BIRDS[2], BIRDS[3]),
    "zigzag": _bundle(FLOWERS[4], FLOWERS[5], BIRDS[4], BIRDS[5]),
    "side_arms": _bundle(FLOWERS[6], FLOWERS[7], BIRDS[1], BIRDS[2]),
    "rounded": _bundle(FLOWERS[8], FLOWERS[9], BIRDS[3], BIRDS[4]),
    "arms_up": _bundle(FLOWERS[10], FLOWERS[11], BIRDS[5], BIRDS[6]),
}

# ============================================================================
# ANNOTATION COLORS (BGR format for OpenCV)
# ============================================================================

ANNOTATION_COLORS = {
    "skeleton": (255, 125, 234),   # Pink
    "joint": (219, 242, 8),        # Turquoise
    "idle": (160, 160, 160),
    "candidate": (0, 200, 255),
    "locked": (0, 200, 0),
    "cooldown": (0, 128, 255),
    "overlay": (128, 255, 255),    # Pale yellow
}


# ============================================================================
# TYPED CONFIGURATION
# ============================================================================

class ConfigError(ValueError):
    """Configuration could not be parsed or holds out-of-range values."""


@dataclass(frozen=True)
class ClassifierConfig:
    min_confidence: float = POSE_MIN_CONFIDENCE
    required_joints: Tuple[str, ...] = POSE_REQUIRED_JOINTS
    min_shoulder_width: float = POSE_MIN_SHOULDER_WIDTH
    arm_extension_ratio: float = ARM_EXTENSION_RATIO
    arm_spread_ratio: float = ARM_SPREAD_RATIO
    wrist_level_tolerance: float = WRIST_LEVEL_TOLERANCE
    star_leg_spread_ratio: float = STAR_LEG_SPREAD_RATIO
    arms_up_nose_margin: float = ARMS_UP_NOSE_MARGIN
    arms_up_min_elbow_angle: float = ARMS_UP_MIN_ELBOW_ANGLE
    side_arms_wrist_over_elbow: float = SIDE_ARMS_WRIST_OVER_ELBOW
    side_arms_elbow_out_ratio: float = SIDE_ARMS_ELBOW_OUT_RATIO
    zigzag_asymmetry_ratio: float = ZIGZAG_ASYMMETRY_RATIO
    zigzag_arm_offset: float = ZIGZAG_ARM_OFFSET
    arms_out_vertical_tolerance: float = ARMS_OUT_VERTICAL_TOLERANCE
    arms_out_min_elbow_angle: float = ARMS_OUT_MIN_ELBOW_ANGLE
    rounded_band_above: float = ROUNDED_BAND_ABOVE
    rounded_band_below: float = ROUNDED_BAND_BELOW
    rounded_hip_distance_ratio: float = ROUNDED_HIP_DISTANCE_RATIO
    rounded_elbow_outward_ratio: float = ROUNDED_ELBOW_OUTWARD_RATIO
    rounded_forearm_ratio: float = ROUNDED_FOREARM_RATIO
    # Classify the EMA-smoothed skeleton instead of the raw detection
    classify_smoothed: bool = False


@dataclass(frozen=True)
class SmoothingConfig:
    position_alpha: float = SMOOTH_POS
    scale_alpha: float = SMOOTH_SCALE
    min_confidence: float = POSE_MIN_CONFIDENCE


@dataclass(frozen=True)
class TrackingConfig:
    anchor_joints: Tuple[str, ...] = MATCH_ANCHOR_JOINTS
    min_confidence: float = MATCH_MIN_CONFIDENCE
    max_match_distance: float = MATCH_MAX_DISTANCE
    strategy: str = MATCH_STRATEGY


@dataclass(frozen=True)
class LockConfig:
    dwell_ms: float = POSE_DWELL_MS
    min_show_ms: float = STICKER_MIN_SHOW_MS
    cooldown_ms: float = STICKER_COOLDOWN_MS
    grace_ms: float = GRACE_MS


@dataclass(frozen=True)
class AnimationConfig:
    enter_ms: float = IN_MS
    exit_ms: float = OUT_MS
    enter_start_scale: float = S_IN_START
    steady_scale: float = S_IN_END
    exit_end_scale: float = S_OUT_END


@dataclass(frozen=True)
class OverlayConfig:
    navel_blend: float = NAVEL_BLEND
    width_ratio: float = OVERLAY_WIDTH_RATIO
    assets_dir: str = str(ASSETS_DIR)
    assets: Dict[str, str] = field(default_factory=lambda: dict(OVERLAY_ASSETS))


@dataclass(frozen=True)
class ShowControlConfig:
    enabled: bool = RELAY_ENABLED
    host: str = RELAY_HOST
    port: int = RELAY_PORT
    osc_address: str = RELAY_OSC_ADDRESS
    debounce_ms: float = RELAY_DEBOUNCE_MS
    bundles: Dict[str, List[Dict[str, int]]] = field(
        default_factory=lambda: {k: [dict(a) for a in v] for k, v in POSE_TO_BUNDLE.items()}
    )


@dataclass(frozen=True)
class PipelineConfig:
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    animation: AnimationConfig = field(default_factory=AnimationConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    show_control: ShowControlConfig = field(default_factory=ShowControlConfig)


_SECTIONS = {
    "classifier": ClassifierConfig,
    "smoothing": SmoothingConfig,
    "tracking": TrackingConfig,
    "lock": LockConfig,
    "animation": AnimationConfig,
    "overlay": OverlayConfig,
    "show_control": ShowControlConfig,
}

_KNOWN_LABELS = {"star", "arms_up", "side_arms", "zigzag", "arms_out", "rounded"}


def _coerce(section: str, name: str, kind: Any, value: Any) -> Any:
    """Coerce a JSON value to the declared type of a config field."""
    where = f"{section}.{name}"
    if kind is bool:
        if isinstance(value, bool):
            return value
        raise ConfigError(f"{where}: expected a boolean, got {value!r}")
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{where}: expected an integer, got {value!r}")
        return value
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{where}: expected a number, got {value!r}")
        return float(value)
    if kind is str:
        if not isinstance(value, str):
            raise ConfigError(f"{where}: expected a string, got {value!r}")
        return value
    if kind == Tuple[str, ...]:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{where}: expected a list of strings, got {value!r}")
        return tuple(value)
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected an object, got {value!r}")
    return value


def _merge_section(section: str, base: Any, raw: Any) -> Any:
    if raw is None:
        return base
    if not isinstance(raw, dict):
        raise ConfigError(f"{section}: expected an object, got {type(raw).__name__}")

    kinds = {f.name: f.type for f in dataclasses.fields(base)}
    updates = {}
    for key, value in raw.items():
        if key not in kinds:
            logger.warning("Ignoring unknown config key %s.%s", section, key)
            continue
        updates[key] = _coerce(section, key, kinds[key], value)
    return dataclasses.replace(base, **updates)


def config_from_dict(raw: Dict[str, Any], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Build a validated PipelineConfig from a parsed JSON object.

    Args:
        raw: Parsed JSON, sections keyed by name
        base: Config whose values fill anything the JSON omits (defaults if None)

    Returns:
        Validated PipelineConfig

    Raises:
        ConfigError: Malformed structure or out-of-range value
    """
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON object")

    base = base or PipelineConfig()
    for key in raw:
        if key not in _SECTIONS:
            logger.warning("Ignoring unknown config section %s", key)

    merged = {
        name: _merge_section(name, getattr(base, name), raw.get(name))
        for name in _SECTIONS
    }
    cfg = PipelineConfig(**merged)
    validate_config(cfg)
    return cfg


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def validate_config(cfg: PipelineConfig) -> None:
    """
    Reject out-of-range values.

    Raises:
        ConfigError: First violated constraint
    """
    from .pose.skeleton import JointName

    joint_names = {j.value for j in JointName}

    c = cfg.classifier
    _require(0.0 <= c.min_confidence <= 1.0, "classifier.min_confidence must be in [0, 1]")
    _require(len(c.required_joints) > 0, "classifier.required_joints must not be empty")
    for name in c.required_joints:
        _require(name in joint_names, f"classifier.required_joints: unknown joint {name!r}")
    missing = sorted(POSE_GATE_JOINTS - set(c.required_joints))
    _require(not missing, f"classifier.required_joints must include {', '.join(missing)}")
    for f in dataclasses.fields(c):
        value = getattr(c, f.name)
        if isinstance(value, float):
            _require(value >= 0.0, f"classifier.{f.name} must be >= 0")
    for name in ("arms_up_min_elbow_angle", "arms_out_min_elbow_angle"):
        _require(getattr(c, name) <= 180.0, f"classifier.{name} must be <= 180 degrees")

    s = cfg.smoothing
    _require(0.0 <= s.position_alpha < 1.0, "smoothing.position_alpha must be in [0, 1)")
    _require(0.0 <= s.scale_alpha < 1.0, "smoothing.scale_alpha must be in [0, 1)")
    _require(0.0 <= s.min_confidence <= 1.0, "smoothing.min_confidence must be in [0, 1]")

    t = cfg.tracking
    _require(t.max_match_distance > 0.0, "tracking.max_match_distance must be > 0")
    _require(0.0 <= t.min_confidence <= 1.0, "tracking.min_confidence must be in [0, 1]")
    _require(t.strategy in ("greedy", "optimal"), "tracking.strategy must be 'greedy' or 'optimal'")
    _require(len(t.anchor_joints) > 0, "tracking.anchor_joints must not be empty")
    for name in t.anchor_joints:
        _require(name in joint_names, f"tracking.anchor_joints: unknown joint {name!r}")

    lk = cfg.lock
    for name in ("dwell_ms", "min_show_ms", "cooldown_ms", "grace_ms"):
        _require(getattr(lk, name) >= 0.0, f"lock.{name} must be >= 0")

    a = cfg.animation
    _require(a.enter_ms >= 0.0 and a.exit_ms >= 0.0, "animation durations must be >= 0")
    for name in ("enter_start_scale", "steady_scale", "exit_end_scale"):
        _require(getattr(a, name) > 0.0, f"animation.{name} must be > 0")

    o = cfg.overlay
    _require(0.0 <= o.navel_blend <= 1.0, "overlay.navel_blend must be in [0, 1]")
    _require(o.width_ratio > 0.0, "overlay.width_ratio must be > 0")
    for label, asset in o.assets.items():
        _require(label in _KNOWN_LABELS, f"overlay.assets: unknown pose label {label!r}")
        _require(isinstance(asset, str), f"overlay.assets.{label} must be a file name")

    sc = cfg.show_control
    _require(1 <= sc.port <= 65535, "show_control.port must be in [1, 65535]")
    _require(
        sc.osc_address.startswith("/") and "{layer}" in sc.osc_address,
        "show_control.osc_address must start with '/' and contain {layer}",
    )
    _require(sc.debounce_ms >= 0.0, "show_control.debounce_ms must be >= 0")
    for label, actions in sc.bundles.items():
        _require(label in _KNOWN_LABELS, f"show_control.bundles: unknown pose label {label!r}")
        _require(isinstance(actions, list), f"show_control.bundles.{label} must be a list")
        for action in actions:
            _require(
                isinstance(action, dict)
                and isinstance(action.get("layer"), int)
                and isinstance(action.get("media"), int)
                and not isinstance(action.get("layer"), bool)
                and not isinstance(action.get("media"), bool),
                f"show_control.bundles.{label}: actions need integer 'layer' and 'media'",
            )


def load_config(path: Optional[str | Path] = None) -> PipelineConfig:
    """
    Load configuration from a JSON file.

    A missing file yields the defaults so the installation can run
    out of the box.

    Raises:
        ConfigError: File exists but is malformed or out of range
    """
    p = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
    if not p.exists():
        return PipelineConfig()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config {p}: {e}") from e
    return config_from_dict(raw)


def config_to_dict(cfg: PipelineConfig) -> Dict[str, Any]:
    """Plain-dict view of a config (JSON serializable)."""
    out = dataclasses.asdict(cfg)
    for section in out.values():
        for key, value in section.items():
            if isinstance(value, tuple):
                section[key] = list(value)
    return out


class ConfigStore:
    """
    Hot-reloadable holder of the active configuration.

    The file is polled by modification time; a rejected reload keeps the
    last-known-good config running.
    A file that disappears after a successful load is treated as a rejected
    reload too; defaults apply only when no file was ever loaded.
    """

    def __init__(self, path: Optional[str | Path] = None, initial: Optional[PipelineConfig] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
        self._mtime: Optional[float] = None
        self.last_error: Optional[str] = None
        self._from_file = False
        self.current: PipelineConfig = initial or PipelineConfig()
        if initial is None:
            self.reload()

    def _file_mtime(self) -> Optional[float]:
        try:
            return os.stat(self.path).st_mtime
        except OSError:
            return None

    def reload(self) -> bool:
        """
        Re-read the file.

        Returns:
            True if a new config was applied
        """
        self._mtime = self._file_mtime()
        if self._mtime is None and self._from_file:
            self.last_error = f"Config file {self.path} is missing"
            logger.warning("Config file %s vanished, keeping last known good", self.path)
            return False
        try:
            cfg = load_config(self.path)
        except ConfigError as e:
            self.last_error = str(e)
            logger.warning("Config rejected, keeping last known good: %s", e)
            return False
        self.last_error = None
        self._from_file = self._mtime is not None
        changed = cfg != self.current
        self.current = cfg
        if changed:
            logger.info("Config loaded from %s", self.path)
        return changed

    def reload_if_changed(self) -> bool:
        """Reload only when the file's modification time moved."""
        mtime = self._file_mtime()
        if mtime == self._mtime:
            return False
        return self.reload()
