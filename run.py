"""
PoseLock - Unified Entry Point

Runs the installation on a live camera or a video file.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from poselock.config import CAMERA_INDEX, DEFAULT_CONFIG_PATH, ConfigError, config_to_dict, load_config


def print_banner():
    """Display ASCII banner for CLI output."""
    print()
    print("=" * 60)
    print("  POSELOCK")
    print("  Pose-Triggered Overlays and Show Control")
    print("=" * 60)
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PoseLock live installation")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Camera index (default: %(default)s)")
    source.add_argument("--video", type=Path, help="Play a video file instead of the camera")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="JSON config (hot-reloaded)")
    parser.add_argument("--model", type=Path, help="MediaPipe PoseLandmarker .task file (multi-person)")
    parser.add_argument("--max-people", type=int, default=None, help="People per frame with --model")
    parser.add_argument("--no-mirror", action="store_true", help="Do not flip the camera image")
    parser.add_argument("--loop", action="store_true", help="Restart --video when it ends")
    parser.add_argument("--no-relay", action="store_true", help="Do not send show-control cues")
    parser.add_argument("--no-window", action="store_true", help="Run without a preview window")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--print-config", action="store_true", help="Print the effective config and exit")
    return parser


def main():
    """
    CLI argument router.

      --print-config -> dump merged config as JSON
      --video <path> -> run on a video file
      (default)      -> run on the camera
    """
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    if args.print_config:
        print(json.dumps(config_to_dict(config), indent=2))
        return

    print_banner()
    if args.video is not None:
        if not args.video.exists():
            print(f"[ERROR] File not found: {args.video}\n")
            sys.exit(1)
        source = args.video
        print(f"[MODE] Video: {args.video.name}\n")
    else:
        source = args.camera
        print(f"[MODE] Live camera {args.camera}\n")

    if not args.config.exists():
        print(f"[INFO] No config at {args.config}, using defaults")
    if args.no_relay or not config.show_control.enabled:
        print("[INFO] Show-control relay disabled")
    else:
        print(f"[INFO] Show control -> udp://{config.show_control.host}:{config.show_control.port}")
    print("Press q or Esc to stop.\n" + "-" * 60 + "\n")

    # Lazy import to avoid loading MediaPipe for --print-config
    from poselock.main import run_live

    kwargs = {}
    if args.max_people is not None:
        kwargs["max_people"] = args.max_people

    try:
        stats = run_live(
            source=source,
            config_path=args.config,
            model_path=args.model,
            relay_enabled=not args.no_relay,
            mirror=not args.no_mirror,
            loop_video=args.loop,
            show=not args.no_window,
            **kwargs,
        )
    except (FileNotFoundError, RuntimeError) as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    print("\n" + "=" * 60)
    print(f"  Processed {stats['frames_processed']} frames in {stats['duration_s']:.1f}s")
    print(f"  Show-control messages sent: {stats['relay_messages']}")
    print("=" * 60)
    if stats["estimator_error"]:
        print(f"[WARNING] Estimator stopped: {stats['estimator_error']}")


if __name__ == "__main__":
    main()
