"""Camera capture using OpenCV."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

from .errors import DeviceError

logger = logging.getLogger(__name__)

_MESSAGES = {
    DeviceError.PERMISSION_DENIED: "Camera access denied. Please allow camera permissions.",
    DeviceError.NOT_FOUND: "No camera found on this device.",
}


def _import_cv2():
    try:
        import cv2
    except ImportError:
        raise ImportError(
            "opencv-python is required: pip install opencv-python"
        ) from None
    return cv2


@dataclass
class CapturedFrame:
    """One frozen frame (BGR pixels as produced by OpenCV)."""

    pixels: np.ndarray
    captured_at: str  # ISO8601

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def encode_jpeg(self, quality: int = 95) -> bytes:
        return encode_jpeg(self.pixels, quality)

    def save(self, save_dir: str | Path) -> Path:
        """Write the frame as JPEG into ``save_dir`` and return the path."""
        directory = Path(save_dir)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = self.captured_at.replace(":", "").replace("-", "")[:15]
        path = directory / f"capture_{stamp}.jpg"
        path.write_bytes(self.encode_jpeg())
        return path


def encode_jpeg(pixels: np.ndarray, quality: int = 95) -> bytes:
    cv2 = _import_cv2()
    ok, buf = cv2.imencode(".jpg", pixels, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise RuntimeError("Could not encode frame as JPEG")
    return bytes(buf)


class Camera:
    """A live camera source.

    ``open()`` acquires the device and ``release()`` gives it back; use it as
    a context manager so the device is released on error paths too. The
    preferred resolution is a request, the driver may pick another.
    """

    def __init__(self, index: int = 0, width: int = 1920, height: int = 1080) -> None:
        self._index = index
        self._width = width
        self._height = height
        self._cap: Any = None

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def __enter__(self) -> Camera:
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()

    def open(self) -> None:
        """Acquire the device.

        Raises:
            DeviceError: permission denied, device not found, or other.
        """
        if self._cap is not None:
            return
        cv2 = _import_cv2()

        cap = cv2.VideoCapture(self._index)
        if not cap.isOpened():
            cap.release()
            kind = self._classify_failure()
            raise DeviceError(
                kind,
                _MESSAGES.get(kind, f"Failed to access camera {self._index}."),
            )

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap = cap
        logger.info(
            "Camera %s opened (requested %sx%s)",
            self._index,
            self._width,
            self._height,
        )

    def _device_path(self) -> Path:
        return Path(f"/dev/video{self._index}")

    def _classify_failure(self) -> str:
        # OpenCV only reports "not opened"; the device node tells us why.
        device = self._device_path()
        if not device.exists():
            return DeviceError.NOT_FOUND
        if not os.access(device, os.R_OK | os.W_OK):
            return DeviceError.PERMISSION_DENIED
        return DeviceError.OTHER

    def read_frame(self) -> CapturedFrame:
        """Freeze the current frame."""
        if self._cap is None:
            raise DeviceError(DeviceError.OTHER, "Camera is not open.")

        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise DeviceError(
                DeviceError.OTHER,
                f"Could not read a frame from camera {self._index}.",
            )
        return CapturedFrame(
            pixels=frame,
            captured_at=datetime.now(timezone.utc).isoformat(),
        )

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera %s released", self._index)

    @staticmethod
    def list_cameras(max_check: int = 10) -> list[int]:
        """List available camera indices by probing."""
        cv2 = _import_cv2()

        available: list[int] = []
        for i in range(max_check):
            cap = cv2.VideoCapture(i)
            if cap.isOpened():
                available.append(i)
            cap.release()
        return available


def load_image(path: str | Path) -> CapturedFrame:
    """Read an image file as if it had been captured."""
    cv2 = _import_cv2()
    pixels = cv2.imread(str(path))
    if pixels is None:
        raise FileNotFoundError(f"Cannot load image: {path}")
    return CapturedFrame(
        pixels=pixels, captured_at=datetime.now(timezone.utc).isoformat()
    )
