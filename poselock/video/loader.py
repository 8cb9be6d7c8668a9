"""
Frame capture for PoseLock: live camera or video file.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class VideoMetadata:
    """Properties of an opened capture source."""
    source: str
    fps: float
    frame_count: int    # 0 for live cameras
    width: int
    height: int
    codec: str
    is_live: bool

    @property
    def duration(self) -> float:
        """Length in seconds (0 for live sources)."""
        return self.frame_count / self.fps if self.fps > 0 else 0.0


class VideoLoader:
    """Reads frames from a camera index or a video file."""

    def __init__(self, source: int | str | Path, width: Optional[int] = None, height: Optional[int] = None):
        """
        Initialize video loader.

        Args:
            source: Camera index (int or digit string) or path to a video file
            width: Requested capture width (cameras only)
            height: Requested capture height (cameras only)

        Raises:
            FileNotFoundError: Video file does not exist
        """
        if isinstance(source, str) and source.isdigit():
            source = int(source)

        self.is_live = isinstance(source, int)
        self.source = source if self.is_live else Path(source)
        if not self.is_live and not self.source.exists():
            raise FileNotFoundError(f"Video file not found: {self.source}")

        self.width = width
        self.height = height
        self._cap: Optional[cv2.VideoCapture] = None
        self._metadata: Optional[VideoMetadata] = None

    @property
    def metadata(self) -> VideoMetadata:
        """Source metadata; requires the capture to be open."""
        if self._metadata is None:
            if self._cap is None:
                raise RuntimeError("Video not opened. Call open() or use context manager.")
            self._metadata = self._load_metadata()
        return self._metadata

    def _load_metadata(self) -> VideoMetadata:
        cap = self._cap
        fourcc = int(cap.get(cv2.CAP_PROP_FOURCC))
        codec = "".join([chr((fourcc >> 8 * i) & 0xFF) for i in range(4)])
        return VideoMetadata(
            source=str(self.source),
            fps=cap.get(cv2.CAP_PROP_FPS),
            frame_count=0 if self.is_live else int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            codec=codec,
            is_live=self.is_live,
        )

    def open(self) -> None:
        """
        Open the capture.

        Raises:
            RuntimeError: Camera or file could not be opened
        """
        if self._cap is not None:
            self._cap.release()
        target = self.source if self.is_live else str(self.source)
        self._cap = cv2.VideoCapture(target)
        if not self._cap.isOpened():
            self._cap = None
            kind = "camera" if self.is_live else "video file"
            raise RuntimeError(f"Could not open {kind}: {self.source}")

        if self.is_live:
            if self.width:
                self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            if self.height:
                self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._metadata = None
        meta = self.metadata
        logger.info("Opened %s: %dx%d @ %.1f fps", meta.source, meta.width, meta.height, meta.fps)

    def close(self) -> None:
        """Release the capture."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self) -> "VideoLoader":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def read_frame(self) -> Optional[np.ndarray]:
        """
        Read the next frame.

        Returns:
            Frame as numpy array (BGR) or None if no more frames
        """
        if self._cap is None:
            raise RuntimeError("Video not opened. Call open() or use context manager.")

        ret, frame = self._cap.read()
        if not ret:
            return None
        return frame

    def seek(self, frame_number: int) -> None:
        """
        Seek to a frame of a video file.

        Raises:
            RuntimeError: Not opened, or the source is a live camera
        """
        if self._cap is None:
            raise RuntimeError("Video not opened. Call open() or use context manager.")
        if self.is_live:
            raise RuntimeError("Cannot seek a live camera")
        self._cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)

    def frames(self) -> Iterator[Tuple[int, np.ndarray]]:
        """
        Iterate through frames until the source ends.

        Yields:
            Tuple of (frame_number, frame_data)
        """
        frame_num = 0
        while True:
            frame = self.read_frame()
            if frame is None:
                break
            yield frame_num, frame
            frame_num += 1
