"""
Checkpoint Scanner Module - Visitor Pass

Front-desk side of the system: reads visitor QR codes from a desk camera or an
uploaded photo and turns them back into visitor records.

Features:
- Camera ownership through a context manager (always released)
- Frame sampling at a fixed rate over a centered detection box
- QR decoding with OpenCV's QRCodeDetector
- Strict validation of the decoded payload
"""

import logging
import threading
import time
from typing import Callable, Optional

import cv2
import numpy as np

from visitor_pass.modules.exceptions import CameraPermissionError, ScanError
from visitor_pass.modules.visitor_record import VisitorRecord, parse_visitor_payload


class Camera:
    """Exclusive handle on a capture device, usable as a context manager."""

    def __init__(self, index: int = 0, width: Optional[int] = None,
                 height: Optional[int] = None):
        self.index = index
        self.width = width
        self.height = height
        self._capture = None
        self.logger = logging.getLogger(__name__)

    def open(self) -> 'Camera':
        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            self.logger.error(f"Camera {self.index} could not be opened")
            raise CameraPermissionError(details=f'Camera {self.index} is unavailable or access was denied')

        if self.width:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._capture = capture
        self.logger.info(f"Camera {self.index} opened")
        return self

    def read(self) -> Optional[np.ndarray]:
        """Grab one frame; None when the device returned nothing."""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            self.logger.info(f"Camera {self.index} released")

    def __enter__(self) -> 'Camera':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False


class QRReader:
    """Decodes QR codes from frames and encoded images."""

    def __init__(self):
        self.detector = cv2.QRCodeDetector()
        self.logger = logging.getLogger(__name__)

    def decode_frame(self, frame: np.ndarray) -> Optional[str]:
        """
        Decode the QR code in a BGR or grayscale frame.

        Returns:
            Optional[str]: Decoded text, or None when no code could be read
        """
        if frame is None or frame.size == 0:
            return None
        try:
            text, _, _ = self.detector.detectAndDecode(frame)
        except cv2.error as e:
            self.logger.debug(f"QR detection failed on frame: {str(e)}")
            return None
        return text or None

    def decode_image_bytes(self, data: bytes) -> Optional[str]:
        """
        Decode the QR code in an encoded image (PNG, JPEG, ...).

        Raises:
            ScanError: If the bytes are not a readable image
        """
        if not data:
            raise ScanError('Invalid QR code', details='No image data received')

        image = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)
        if image is None:
            raise ScanError('Invalid QR code', details='Uploaded file is not a readable image')
        return self.decode_frame(image)


def center_crop(frame: np.ndarray, box: int) -> np.ndarray:
    height, width = frame.shape[:2]
    if box <= 0 or (box >= width and box >= height):
        return frame
    side_w, side_h = min(box, width), min(box, height)
    top = (height - side_h) // 2
    left = (width - side_w) // 2
    return frame[top:top + side_h, left:left + side_w]


class CheckpointScanner:
    """
    Single-shot QR scanner for the front desk.
    """

    def __init__(self, camera_factory: Optional[Callable[[], Camera]] = None,
                 reader: Optional[QRReader] = None, fps: float = 10,
                 detection_box: int = 250, timeout: Optional[float] = None,
                 camera_index: int = 0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the scanner.

        Args:
            camera_factory: Returns an unopened camera context manager; defaults to ``Camera(camera_index)``
            reader (QRReader): Frame decoder
            fps (float): Frames sampled per second
            detection_box (int): Side of the centered square searched for a code, in pixels
            timeout (Optional[float]): Give up after this many seconds; None waits until stopped
            camera_index (int): Device used by the default factory
            clock: Monotonic time source
        """
        if fps <= 0:
            raise ValueError("Scanner fps must be positive")

        self.camera_factory = camera_factory or (lambda: Camera(camera_index))
        self.reader = reader or QRReader()
        self.fps = fps
        self.detection_box = detection_box
        self.timeout = timeout
        self.clock = clock
        self._stop = threading.Event()
        self.logger = logging.getLogger(__name__)

    def scan(self) -> Optional[VisitorRecord]:
        """
        Watch the camera until one QR code is decoded.

        Returns:
            Optional[VisitorRecord]: The scanned visitor, or None if stopped or timed out

        Raises:
            CameraPermissionError: If the camera cannot be opened
            ScanError: If the first decoded code is not a valid visitor payload
        """
        interval = 1.0 / self.fps
        deadline = None if self.timeout is None else self.clock() + self.timeout

        try:
            if self._stop.is_set():
                self.logger.info("Scanner stopped before the camera was opened")
                return None

            with self.camera_factory() as camera:
                self.logger.info("Scanner started")
                while not self._stop.is_set():
                    if deadline is not None and self.clock() >= deadline:
                        self.logger.info("Scanner timed out without reading a code")
                        return None

                    frame = camera.read()
                    if frame is not None:
                        text = self.reader.decode_frame(center_crop(frame, self.detection_box))
                        if text:
                            return self._accept(text)

                    self._stop.wait(interval)

            self.logger.info("Scanner stopped")
            return None
        finally:
            # A stop request covers one scan only
            self._stop.clear()

    def stop(self) -> None:
        self._stop.set()

    def scan_image(self, data: bytes) -> VisitorRecord:
        """
        Decode and validate the QR code in one uploaded image.

        Raises:
            ScanError: If the image is unreadable, has no code, or the payload is invalid
        """
        text = self.reader.decode_image_bytes(data)
        if not text:
            self.logger.info("No QR code found in uploaded image")
            raise ScanError('Invalid QR code', details='No QR code found in image')
        return self._accept(text)

    def scan_text(self, text: str) -> VisitorRecord:
        if not isinstance(text, str) or not text.strip():
            raise ScanError('Invalid QR code', details='No QR code data provided')
        return self._accept(text)

    def _accept(self, text: str) -> VisitorRecord:
        try:
            record = parse_visitor_payload(text)
        except ScanError as e:
            self.logger.warning(f"Rejected QR code: {e.details}")
            raise
        self.logger.info(f"QR code scanned for visitor {record.id}")
        return record
