"""
Camera QR scanner state machine

idle -> camera_requested -> streaming -> matched | closed, with mismatched as a
transient state that falls back to streaming on the next frame. The camera
stream is opened in exactly one place and always stopped on the way out.
"""
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


class ScannerState(str, Enum):
    IDLE = "idle"
    CAMERA_REQUESTED = "camera_requested"
    STREAMING = "streaming"
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    CLOSED = "closed"


class CameraPermissionError(Exception):
    """The user (or the platform) refused camera access"""


class VideoStream(Protocol):
    def read_frame(self) -> Optional[Any]:
        """Next frame, or None once the stream has ended"""

    def stop(self) -> None:
        ...


class QRScanner:
    """Scans frames until one decodes to the expected payload"""

    def __init__(
        self,
        expected: str,
        open_camera: Callable[[], VideoStream],
        decode: Callable[[Any], Optional[str]],
    ):
        self.expected = expected
        self._open_camera = open_camera
        self._decode = decode
        self.state = ScannerState.IDLE
        self.error: Optional[str] = None
        self.last_payload: Optional[str] = None
        self._close_reason: Optional[str] = None

    @contextmanager
    def camera(self) -> Iterator[VideoStream]:
        """Acquire the stream; the track is stopped on every exit path"""
        self.state = ScannerState.CAMERA_REQUESTED
        try:
            stream = self._open_camera()
        except CameraPermissionError as e:
            self.state = ScannerState.CLOSED
            self.error = str(e) or "Camera permission denied"
            logger.warning(f"Camera unavailable: {self.error}")
            raise

        self.state = ScannerState.STREAMING
        try:
            yield stream
        finally:
            stream.stop()
            if self.state is not ScannerState.MATCHED:
                self.state = ScannerState.CLOSED

    def process_frame(self, frame: Any) -> ScannerState:
        if self.state is ScannerState.MISMATCHED:
            self.state = ScannerState.STREAMING
        if self.state is not ScannerState.STREAMING:
            return self.state

        payload = self._decode(frame)
        if payload is None:
            return self.state

        self.last_payload = payload
        if payload == self.expected:
            self.state = ScannerState.MATCHED
        else:
            self.state = ScannerState.MISMATCHED
        return self.state

    def close(self, reason: str = "closed") -> None:
        """Stop scanning: manual close, page hide, unload and teardown all land here"""
        self._close_reason = reason

    def run(self, max_frames: Optional[int] = None) -> Optional[str]:
        """Scan until matched, closed or the stream ends. Returns the matched payload."""
        self._close_reason = None
        self.error = None
        try:
            with self.camera() as stream:
                frames = 0
                while self._close_reason is None:
                    if max_frames is not None and frames >= max_frames:
                        break
                    frame = stream.read_frame()
                    if frame is None:
                        break
                    frames += 1
                    if self.process_frame(frame) is ScannerState.MATCHED:
                        return self.last_payload
        except CameraPermissionError:
            return None
        except Exception as e:
            self.error = str(e)
            raise

        if self._close_reason:
            logger.debug(f"Scanner closed: {self._close_reason}")
        return None
