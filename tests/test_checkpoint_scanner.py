import io

import pytest
from PIL import Image

from conftest import FakeCamera, FakeReader, blank_frame
from visitor_pass.modules import checkpoint_scanner
from visitor_pass.modules.checkpoint_scanner import (
    Camera,
    CheckpointScanner,
    QRReader,
    center_crop,
)
from visitor_pass.modules.exceptions import CameraPermissionError, ScanError


def make_scanner(camera, reader, **kwargs):
    kwargs.setdefault('fps', 1000)
    return CheckpointScanner(camera_factory=lambda: camera, reader=reader, **kwargs)


def test_permission_denied_never_decodes():
    camera = FakeCamera(frames=[blank_frame()], deny=True)
    reader = FakeReader(results=['{}'])

    with pytest.raises(CameraPermissionError) as excinfo:
        make_scanner(camera, reader).scan()

    assert reader.frames == []
    assert excinfo.value.status_code == 403
    assert 'allow camera access' in excinfo.value.message


def test_returns_first_valid_code_and_releases_camera(record):
    camera = FakeCamera(frames=[blank_frame()] * 3)
    reader = FakeReader(results=[None, None, record.to_json()])

    scanned = make_scanner(camera, reader).scan()

    assert scanned == record
    assert len(reader.frames) == 3
    assert camera.released


def test_invalid_payload_raises_and_releases_camera():
    camera = FakeCamera(frames=[blank_frame()])
    reader = FakeReader(results=['{"id":"visitor-1","visitorName":"Ada"}'])

    with pytest.raises(ScanError) as excinfo:
        make_scanner(camera, reader).scan()

    assert 'hostEmail' in excinfo.value.details
    assert camera.released


def test_timeout_returns_none_and_releases_camera():
    camera = FakeCamera(frames=[blank_frame()])
    reader = FakeReader()

    assert make_scanner(camera, reader, timeout=0).scan() is None
    assert camera.released


def test_stop_ends_scan_and_releases_camera():
    camera = FakeCamera(frames=[blank_frame()] * 5)
    scanner = None

    def stop():
        scanner.stop()

    reader = FakeReader(on_decode=stop)
    scanner = make_scanner(camera, reader)

    assert scanner.scan() is None
    assert len(reader.frames) == 1
    assert camera.released


def test_stop_before_scan_never_opens_camera(record):
    camera = FakeCamera(frames=[blank_frame()])
    reader = FakeReader(results=[record.to_json()])
    scanner = make_scanner(camera, reader)

    scanner.stop()

    assert scanner.scan() is None
    assert not camera.opened
    assert reader.frames == []

    # The stop request is spent; the next scan runs normally
    assert scanner.scan() == record
    assert camera.opened


def test_frames_are_cropped_to_detection_box(record):
    camera = FakeCamera(frames=[blank_frame(480, 640)])
    reader = FakeReader(results=[record.to_json()])

    make_scanner(camera, reader, detection_box=250).scan()

    assert reader.frames[0].shape == (250, 250, 3)


def test_center_crop_keeps_small_frames():
    frame = blank_frame(200, 200)

    assert center_crop(frame, 250).shape == (200, 200, 3)
    assert center_crop(blank_frame(200, 400), 250).shape == (200, 250, 3)


def test_scan_image_without_code():
    buffer = io.BytesIO()
    Image.new('RGB', (200, 200), '#FFFFFF').save(buffer, format='PNG')
    scanner = CheckpointScanner(camera_factory=lambda: None, reader=QRReader())

    with pytest.raises(ScanError) as excinfo:
        scanner.scan_image(buffer.getvalue())

    assert excinfo.value.details == 'No QR code found in image'


def test_scan_image_rejects_unreadable_bytes():
    scanner = CheckpointScanner(camera_factory=lambda: None, reader=QRReader())

    with pytest.raises(ScanError):
        scanner.scan_image(b'definitely not an image')


def test_scan_text(record):
    scanner = CheckpointScanner(camera_factory=lambda: None, reader=FakeReader())

    assert scanner.scan_text(record.to_json()) == record
    with pytest.raises(ScanError):
        scanner.scan_text('   ')


class FakeCapture:

    def __init__(self, opened):
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened

    def read(self):
        return True, blank_frame()

    def set(self, prop, value):
        return True

    def release(self):
        self.released = True


def test_camera_that_cannot_open_raises_permission_error(monkeypatch):
    capture = FakeCapture(opened=False)
    monkeypatch.setattr(checkpoint_scanner.cv2, 'VideoCapture', lambda index: capture)

    with pytest.raises(CameraPermissionError):
        with Camera(0):
            pass

    assert capture.released


def test_camera_released_on_exit(monkeypatch):
    capture = FakeCapture(opened=True)
    monkeypatch.setattr(checkpoint_scanner.cv2, 'VideoCapture', lambda index: capture)

    with pytest.raises(RuntimeError):
        with Camera(0) as camera:
            assert camera.read().shape == (480, 640, 3)
            raise RuntimeError('operator closed the window')

    assert capture.released
