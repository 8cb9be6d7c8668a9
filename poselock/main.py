"""
PoseLock - Live Runner

Camera -> MediaPipe (background thread) -> pipeline -> OpenCV window
plus show-control cues to the media server over OSC.
"""
import logging
import time
from pathlib import Path
from typing import Optional

import cv2

from .config import CAMERA_INDEX, MIRROR_INPUT, POSE_MAX_PEOPLE, ConfigStore
from .output.overlay_renderer import OverlayRenderer
from .output.show_control import ShowControlRelay
from .pipeline import InstallationPipeline
from .pose.estimator import SkeletonEstimator
from .pose.source import EstimatorThread, LatestSkeletonBuffer, now_ms
from .video.loader import VideoLoader

logger = logging.getLogger(__name__)

WINDOW_NAME = "PoseLock"
QUIT_KEYS = (ord("q"), 27)  # q, Esc
CONFIG_POLL_MS = 1000
SOURCE_STALE_MS = 1000            # Warn when the detector has been silent this long
WORKER_STOP_TIMEOUT_S = 5.0


def run_live(
    source: int | str | Path = CAMERA_INDEX,
    config_path: Optional[str | Path] = None,
    model_path: Optional[str | Path] = None,
    relay_enabled: bool = True,
    max_people: int = POSE_MAX_PEOPLE,
    mirror: bool = MIRROR_INPUT,
    loop_video: bool = False,
    show: bool = True
) -> dict:
    """
    Run the installation until the source ends or the user quits.

    Args:
        source: Camera index or video file path
        config_path: JSON config, watched for changes while running
        model_path: PoseLandmarker model for multi-person detection
        relay_enabled: Send show-control cues (also needs show_control.enabled)
        max_people: People per frame with a PoseLandmarker model
        mirror: Flip the camera image (selfie view)
        loop_video: Restart file sources when they end
        show: Open a preview window

    Returns:
        Dict with run statistics
    """
    store = ConfigStore(config_path)
    config = store.current

    relay = ShowControlRelay(config.show_control) if relay_enabled else None
    buffer = LatestSkeletonBuffer()
    pipeline = InstallationPipeline(config, relay=relay, buffer=buffer)
    renderer = OverlayRenderer()

    ticks = 0
    started = now_ms()
    last_poll = started
    source_stale = False

    with VideoLoader(source) as loader, \
            SkeletonEstimator(model_path=model_path, max_people=max_people, mirror=mirror) as estimator, \
            EstimatorThread(loader, estimator, buffer, loop_video=loop_video) as worker:
        try:
            while True:
                now = now_ms()
                if now - last_poll >= CONFIG_POLL_MS:
                    last_poll = now
                    if store.reload_if_changed():
                        pipeline.apply_config(store.current)

                outputs = pipeline.tick(now)
                ticks += 1

                age = buffer.age_ms(now)
                stale = age is not None and age > SOURCE_STALE_MS
                if stale and not source_stale:
                    logger.warning("No new skeletons for %.0f ms, holding state", age)
                source_stale = stale

                frame = buffer.latest
                if show and frame is not None and frame.image is not None:
                    elapsed_s = max((now - started) / 1000.0, 1e-3)
                    status = (f"people: {len(outputs)}  fps: {worker.frames_processed / elapsed_s:.1f}"
                              f"  relay: {'on' if relay is not None and relay.config.enabled else 'off'}"
                              f"  lag: {age or 0.0:.0f} ms")
                    cv2.imshow(WINDOW_NAME, renderer.render(frame.image, outputs, status))

                if show:
                    key = cv2.waitKey(1) & 0xFF
                    if key in QUIT_KEYS:
                        logger.info("Quit requested")
                        break
                else:
                    time.sleep(0.005)
                if not worker.running:
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            worker.stop(timeout=WORKER_STOP_TIMEOUT_S)
            pipeline.shutdown()
            if show:
                cv2.destroyAllWindows()

    return {
        "ticks": ticks,
        "frames_processed": worker.frames_processed,
        "duration_s": (now_ms() - started) / 1000.0,
        "relay_messages": relay.sent_count if relay is not None else 0,
        "estimator_error": worker.last_error,
    }
