"""Turn camera frames and picked files into base64 data URIs for extraction."""

import base64
import logging
import re
from typing import Callable, Literal, Protocol

from pydantic import BaseModel

logger = logging.getLogger("shopguide")

DocumentKind = Literal["image", "pdf"]
CaptureSource = Literal["camera", "gallery", "pdf"]
FacingMode = Literal["environment", "user"]

PDF_CONTENT_TYPE = "application/pdf"
DEFAULT_IMAGE_TYPE = "image/jpeg"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)


class CapturedDocument(BaseModel):
    data_uri: str
    kind: DocumentKind
    source: CaptureSource


class CaptureError(ValueError):
    """The capture produced nothing usable (e.g. an empty file)."""


class CameraUnavailable(RuntimeError):
    """The camera could not be opened. Recoverable: retry or use the file picker."""

    fallback = "file_picker"


class MediaStream(Protocol):
    def read_frame(self) -> bytes: ...

    def stop(self) -> None: ...


def document_kind_for(content_type: str | None) -> DocumentKind:
    return "pdf" if (content_type or "").lower() == PDF_CONTENT_TYPE else "image"


def encode_document(data: bytes, content_type: str | None) -> tuple[str, DocumentKind]:
    """Base64-encode a payload as a data URI. No validation of the content itself."""
    kind = document_kind_for(content_type)
    media_type = PDF_CONTENT_TYPE if kind == "pdf" else (content_type or DEFAULT_IMAGE_TYPE)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{encoded}", kind


def split_data_uri(document: str) -> tuple[str | None, str]:
    """Return (mime type, bare base64 payload); mime is None when there is no prefix."""
    match = _DATA_URI_RE.match(document)
    if not match:
        return None, document.strip()
    return match.group("mime").lower(), document[match.end():].strip()


def capture_from_upload(data: bytes, content_type: str | None, source: CaptureSource = "gallery") -> CapturedDocument:
    """Gallery and PDF picker path."""
    if not data:
        raise CaptureError("Empty file")
    if source == "pdf":
        content_type = PDF_CONTENT_TYPE
    data_uri, kind = encode_document(data, content_type)
    return CapturedDocument(data_uri=data_uri, kind=kind, source=source)


class CameraSession:
    """Live camera capture.

    The stream is acquired by ``start()`` and released on every way out:
    ``capture()``, ``close()``, an exception inside a ``with`` block, or a
    failed restart after ``toggle_facing()``.
    """

    def __init__(
        self,
        open_stream: Callable[[FacingMode], MediaStream],
        facing_mode: FacingMode = "environment",
    ):
        self._open_stream = open_stream
        self.facing_mode: FacingMode = facing_mode
        self._stream: MediaStream | None = None
        self.error: str | None = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        self.stop()
        self.error = None
        try:
            self._stream = self._open_stream(self.facing_mode)
        except (PermissionError, OSError) as e:
            self.error = "Could not access the camera. Check the permissions."
            logger.warning(
                "Camera unavailable",
                extra={"extra_data": {"facing_mode": self.facing_mode, "error": str(e)}},
            )
            raise CameraUnavailable(self.error) from e

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()

    close = stop

    def toggle_facing(self) -> FacingMode:
        self.facing_mode = "user" if self.facing_mode == "environment" else "environment"
        if self.active:
            self.start()
        return self.facing_mode

    def capture(self) -> CapturedDocument:
        if self._stream is None:
            raise CaptureError("Camera is not running")
        try:
            frame = self._stream.read_frame()
        finally:
            self.stop()
        if not frame:
            raise CaptureError("Camera returned an empty frame")
        data_uri, kind = encode_document(frame, DEFAULT_IMAGE_TYPE)
        return CapturedDocument(data_uri=data_uri, kind=kind, source="camera")

    def __enter__(self) -> "CameraSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
