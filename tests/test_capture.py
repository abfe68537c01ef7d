import base64

import pytest

from shopguide.capture import (
    CameraSession,
    CameraUnavailable,
    CaptureError,
    capture_from_upload,
    split_data_uri,
)


class FakeStream:
    def __init__(self, facing_mode, frame=b"jpeg-bytes"):
        self.facing_mode = facing_mode
        self.frame = frame
        self.stopped = False

    def read_frame(self):
        if isinstance(self.frame, Exception):
            raise self.frame
        return self.frame

    def stop(self):
        self.stopped = True


class FakeCamera:
    def __init__(self, frame=b"jpeg-bytes", denied=False):
        self.frame = frame
        self.denied = denied
        self.opened: list[FakeStream] = []

    def __call__(self, facing_mode):
        if self.denied:
            raise PermissionError("denied")
        stream = FakeStream(facing_mode, self.frame)
        self.opened.append(stream)
        return stream


class TestUpload:
    def test_gallery_image(self):
        doc = capture_from_upload(b"abc", "image/png")
        assert doc.kind == "image"
        assert doc.source == "gallery"
        assert doc.data_uri == "data:image/png;base64," + base64.b64encode(b"abc").decode()

    def test_pdf_source_forces_pdf(self):
        doc = capture_from_upload(b"%PDF-1.4", None, source="pdf")
        assert doc.kind == "pdf"
        assert doc.data_uri.startswith("data:application/pdf;base64,")

    def test_empty_file(self):
        with pytest.raises(CaptureError):
            capture_from_upload(b"", "image/jpeg")


def test_split_data_uri():
    assert split_data_uri("data:image/PNG;base64,QUJD") == ("image/png", "QUJD")
    assert split_data_uri(" QUJD ") == (None, "QUJD")


class TestCameraSession:
    def test_capture_releases_stream(self):
        camera = FakeCamera()
        session = CameraSession(camera)
        session.start()
        doc = session.capture()
        assert doc.source == "camera"
        assert doc.kind == "image"
        assert doc.data_uri.startswith("data:image/jpeg;base64,")
        assert camera.opened[0].stopped
        assert not session.active

    def test_failed_read_still_releases(self):
        camera = FakeCamera(frame=OSError("device lost"))
        session = CameraSession(camera)
        session.start()
        with pytest.raises(OSError):
            session.capture()
        assert camera.opened[0].stopped

    def test_empty_frame(self):
        camera = FakeCamera(frame=b"")
        session = CameraSession(camera)
        session.start()
        with pytest.raises(CaptureError):
            session.capture()
        assert camera.opened[0].stopped

    def test_capture_without_start(self):
        with pytest.raises(CaptureError):
            CameraSession(FakeCamera()).capture()

    def test_context_manager_releases_on_error(self):
        camera = FakeCamera()
        with pytest.raises(RuntimeError):
            with CameraSession(camera):
                raise RuntimeError("user navigated away")
        assert camera.opened[0].stopped

    def test_toggle_restarts_with_new_facing(self):
        camera = FakeCamera()
        session = CameraSession(camera)
        session.start()
        assert session.toggle_facing() == "user"
        assert len(camera.opened) == 2
        assert camera.opened[0].stopped
        assert camera.opened[1].facing_mode == "user"
        session.close()
        assert camera.opened[1].stopped

    def test_toggle_while_idle_does_not_open(self):
        camera = FakeCamera()
        session = CameraSession(camera)
        session.toggle_facing()
        assert camera.opened == []
        assert session.facing_mode == "user"

    def test_permission_denied_offers_file_picker(self):
        session = CameraSession(FakeCamera(denied=True))
        with pytest.raises(CameraUnavailable) as exc_info:
            session.start()
        assert exc_info.value.fallback == "file_picker"
        assert session.error
        assert not session.active
