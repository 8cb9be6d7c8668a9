"""
Skeleton delivery from the detector to the frame loop.

The detector runs on its own thread and finishes frames whenever it can;
the render loop runs at display rate. The two meet in LatestSkeletonBuffer,
which keeps only the newest result: a slow render loop skips stale detector
frames instead of queueing them, and a slow detector just means the loop
sees no new frame (and holds its current state) for a while.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .skeleton import Skeleton, skeletons_from_detections

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Monotonic wall-clock time in milliseconds."""
    return time.monotonic() * 1000.0


@dataclass
class SkeletonFrame:
    """One detector result."""
    skeletons: List[Skeleton] = field(default_factory=list)
    timestamp_ms: float = 0.0
    sequence: int = 0
    image: Any = None          # Frame the skeletons were detected on (BGR), if kept


class LatestSkeletonBuffer:
    """Thread-safe single-slot mailbox holding the newest SkeletonFrame."""

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[SkeletonFrame] = None
        self._sequence = 0
        self._taken = 0

    def publish(self, skeletons: Sequence[Any], timestamp_ms: float, image: Any = None) -> SkeletonFrame:
        """
        Replace the held frame (detector side).

        Args:
            skeletons: Skeletons or raw detector entries for one frame
            timestamp_ms: When the frame was captured
            image: Optional frame image to hand to the renderer

        Returns:
            The stored SkeletonFrame
        """
        frame_skeletons = skeletons_from_detections(skeletons)
        with self._lock:
            self._sequence += 1
            frame = SkeletonFrame(
                skeletons=frame_skeletons,
                timestamp_ms=timestamp_ms,
                sequence=self._sequence,
                image=image,
            )
            self._latest = frame
        return frame

    def take(self) -> Optional[SkeletonFrame]:
        """Newest frame not yet taken, or None if nothing new arrived."""
        with self._lock:
            if self._latest is None or self._latest.sequence == self._taken:
                return None
            self._taken = self._latest.sequence
            return self._latest

    @property
    def latest(self) -> Optional[SkeletonFrame]:
        """Newest frame, taken or not."""
        with self._lock:
            return self._latest

    def age_ms(self, now: float) -> Optional[float]:
        """Time since the newest frame was captured, None before the first one."""
        with self._lock:
            if self._latest is None:
                return None
            return now - self._latest.timestamp_ms

    def clear(self) -> None:
        with self._lock:
            self._latest = None
            self._taken = self._sequence


class EstimatorThread:
    """
    Runs capture and pose estimation in the background.

    Reads frames from a VideoLoader, runs the SkeletonEstimator on each and
    publishes the result into a LatestSkeletonBuffer.
    """

    def __init__(self, loader, estimator, buffer: LatestSkeletonBuffer, loop_video: bool = False):
        """
        Initialize estimator thread.

        Args:
            loader: Opened VideoLoader
            estimator: SkeletonEstimator
            buffer: Destination for results
            loop_video: Rewind file sources when they end
        """
        self.loader = loader
        self.estimator = estimator
        self.buffer = buffer
        self.loop_video = loop_video
        self.frames_processed = 0
        self.last_error: Optional[str] = None

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pose-estimator", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> bool:
        """
        Ask the worker to finish and wait for it.

        Returns:
            True if the worker has exited; on timeout the handle is kept so
            running stays True and the caller can wait again
        """
        self._stop.set()
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Estimator thread still busy after %.1fs", timeout)
            return False
        self._thread = None
        return True

    def _estimate(self, frame) -> bool:
        try:
            result = self.estimator.process_frame(frame, now_ms())
        except (RuntimeError, ValueError) as e:
            self.last_error = str(e)
            logger.error("Pose estimation failed: %s", e)
            return False
        self.buffer.publish(result.skeletons, result.timestamp_ms, image=result.image)
        self.frames_processed += 1
        return True

    def _run(self) -> None:
        logger.info("Estimator thread started")
        while not self._stop.is_set():
            seen = 0
            for _, frame in self.loader.frames():
                if self._stop.is_set():
                    break
                if not self._estimate(frame):
                    self._stop.set()
                    break
                seen += 1
            if self._stop.is_set():
                break
            if not self.loop_video or self.loader.is_live or seen == 0:
                logger.info("Video source ended after %d frames", self.frames_processed)
                break
            self.loader.seek(0)
        self._stop.set()
        logger.info("Estimator thread stopped")

    def __enter__(self) -> "EstimatorThread":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
