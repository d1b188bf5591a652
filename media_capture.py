"""
media_capture.py — turns camera frames and uploaded files into ImagePayloads.

Both paths end in the same shape: a base64 payload plus a MIME type that is
sniffed from the image bytes (file names and Telegram metadata are ignored).

Camera path:
  CameraHandle wraps cv2.VideoCapture. Only one handle owns the device at a
  time; acquiring a new handle releases the previous one. capture() grabs a
  single frame, encodes it as JPEG and releases the device straight away.
  Every failure path releases whatever was opened before raising
  DeviceUnavailable, so callers can fall back to uploads.
"""
from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import ClassVar, Optional

import cv2

from models import ImagePayload

logger = logging.getLogger(__name__)


class DeviceUnavailable(RuntimeError):
    """Camera missing, busy or access denied."""


class UnsupportedImage(ValueError):
    """The supplied bytes are not an image format we recognise."""


# ── MIME sniffing ─────────────────────────────────────────────────────────────

def detect_mime_type(data: bytes) -> str:
    """
    Return the image MIME type from the file signature. Only formats every
    configured AI service accepts are recognised.
    """
    if data[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    raise UnsupportedImage("Unrecognised image format")


# ── Upload path ───────────────────────────────────────────────────────────────

def payload_from_bytes(data: bytes) -> ImagePayload:
    """Encode an uploaded image held in memory."""
    if not data:
        raise UnsupportedImage("Empty upload")
    mime = detect_mime_type(data)
    return ImagePayload(base64_payload=base64.b64encode(data).decode("ascii"), mime_type=mime)


def read_upload(path: str | Path) -> ImagePayload:
    """Read a user-selected image file fully into memory and encode it."""
    return payload_from_bytes(Path(path).read_bytes())


# ── Camera path ───────────────────────────────────────────────────────────────

class CameraHandle:
    """Exclusive handle on a video device. Use as a context manager."""

    _active: ClassVar[Optional["CameraHandle"]] = None

    def __init__(self, index: int = 0, jpeg_quality: int = 90):
        self.index = index
        self.jpeg_quality = jpeg_quality
        self._cap = None

    @property
    def is_active(self) -> bool:
        return self._cap is not None

    def acquire(self) -> "CameraHandle":
        previous = CameraHandle._active
        if previous is not None and previous is not self:
            previous.release()
        if self._cap is not None:
            return self

        cap = None
        try:
            cap = cv2.VideoCapture(self.index)
            opened = cap.isOpened()
        except Exception as exc:
            if cap is not None:
                cap.release()
            raise DeviceUnavailable(f"Camera {self.index} could not be opened: {exc}") from exc
        if not opened:
            cap.release()
            raise DeviceUnavailable(f"Camera {self.index} is not available or permission was denied")

        self._cap = cap
        CameraHandle._active = self
        logger.info("Camera %d acquired", self.index)
        return self

    def capture(self) -> ImagePayload:
        """Freeze the current frame into a still image and release the device."""
        if self._cap is None:
            raise DeviceUnavailable("Camera is not active")
        try:
            ok, frame = self._cap.read()
            if not ok or frame is None:
                raise DeviceUnavailable("Failed to grab a frame from the camera")
            encoded_ok, buf = cv2.imencode(
                ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
            )
            if not encoded_ok:
                raise DeviceUnavailable("Failed to encode the captured frame")
            return payload_from_bytes(buf.tobytes())
        finally:
            self.release()

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("Camera %d released", self.index)
        if CameraHandle._active is self:
            CameraHandle._active = None

    def __enter__(self) -> "CameraHandle":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def capture_still(index: int = 0, jpeg_quality: int = 90) -> ImagePayload:
    """Acquire, snapshot and release in one go."""
    with CameraHandle(index, jpeg_quality) as camera:
        return camera.capture()
