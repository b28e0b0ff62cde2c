"""Camera frame staging and conversion to the policy's planar input tensor."""

from __future__ import annotations

import threading

import numpy as np
import torch
import torch.nn.functional as F


class FormatError(ValueError):
    """Raised when a camera frame has an unsupported pixel depth or size."""


class AllocationError(MemoryError):
    """Raised when the raw staging buffer cannot be sized."""


def packed_to_planar_bgr(
    raw: np.ndarray,
    width: int,
    height: int,
    step: int,
    out: torch.Tensor,
) -> torch.Tensor:
    """Packed uint8 RGB rows -> planar BGR float32 resized into out [3, H, W] (in place)."""
    if raw.size < height * step:
        raise FormatError(f"raw buffer holds {raw.size} bytes, need {height * step} for {width}x{height}")
    if out.ndim != 3 or out.shape[0] != 3:
        raise FormatError(f"output tensor must have shape [3, H, W], got {tuple(out.shape)}")

    rows = raw[: height * step].reshape(height, step)[:, : width * 3]
    img = torch.from_numpy(np.ascontiguousarray(rows).reshape(height, width, 3))
    planar = img.permute(2, 0, 1).flip(0).to(torch.float32).unsqueeze(0)  # [1,3,h,w] BGR
    if planar.shape[2:] != out.shape[1:]:
        planar = F.interpolate(planar, size=tuple(out.shape[1:]), mode="bilinear", align_corners=False)
    out.copy_(planar.squeeze(0))
    return out


class PerceptionBuffer:
    """Single-slot handoff from the camera delivery thread to the tick thread.

    The newest frame overwrites an unconsumed one. The staging buffer is only
    reallocated when the incoming byte count changes.
    """

    def __init__(self, width: int = 64, height: int = 64, channels: int = 3):
        self.tensor = torch.zeros((channels, height, width), dtype=torch.float32)
        self._lock = threading.Lock()
        self._staging: np.ndarray | None = None
        self._raw_width = 0
        self._raw_height = 0
        self._raw_step = 0
        self._frame_ready = False
        self.frames_received = 0
        self.resizes = 0

    @property
    def frame_ready(self) -> bool:
        with self._lock:
            return self._frame_ready

    @property
    def staging_size(self) -> int:
        with self._lock:
            return 0 if self._staging is None else int(self._staging.size)

    @property
    def raw_shape(self) -> tuple[int, int]:
        with self._lock:
            return self._raw_width, self._raw_height

    @staticmethod
    def _allocate(size: int) -> np.ndarray:
        try:
            return np.empty((size,), dtype=np.uint8)
        except (MemoryError, ValueError) as exc:
            raise AllocationError(f"failed to allocate {size} bytes for camera staging buffer") from exc

    def ingest_frame(
        self,
        raw: bytes | bytearray | memoryview | np.ndarray,
        width: int,
        height: int,
        bytes_per_pixel: int,
        step: int | None = None,
    ) -> bool:
        """Stage a packed frame. Returns True when the staging buffer was (re)allocated."""
        bpp = int(bytes_per_pixel) * 8
        if bpp != 24:
            raise FormatError(f"expected 24BPP uchar3 image from camera, got {bpp}")
        if width <= 0 or height <= 0:
            raise FormatError(f"invalid frame dimensions {width}x{height}")
        step = width * 3 if step is None else int(step)
        if step < width * 3:
            raise FormatError(f"row step {step} is shorter than {width} RGB pixels")

        data = np.frombuffer(raw, dtype=np.uint8) if not isinstance(raw, np.ndarray) else raw.reshape(-1)
        if data.dtype != np.uint8:
            raise FormatError(f"expected uint8 pixel data, got {data.dtype}")
        if data.size < height * step:
            raise FormatError(f"frame holds {data.size} bytes, expected at least {height * step}")

        resized = False
        with self._lock:
            if self._staging is None or self._staging.size != data.size:
                self._staging = self._allocate(int(data.size))
                resized = True
                self.resizes += 1
            np.copyto(self._staging, data)
            self._raw_width = int(width)
            self._raw_height = int(height)
            self._raw_step = step
            self._frame_ready = True
            self.frames_received += 1
        return resized

    def take_frame(self) -> bool:
        """Consume the ready flag; True if a frame was waiting."""
        with self._lock:
            ready = self._frame_ready
            self._frame_ready = False
            return ready

    def convert(self) -> torch.Tensor:
        """Convert the staged frame into the policy tensor (overwritten in place)."""
        with self._lock:
            if self._staging is None:
                raise FormatError("no camera frame has been staged")
            try:
                return packed_to_planar_bgr(
                    self._staging,
                    self._raw_width,
                    self._raw_height,
                    self._raw_step,
                    self.tensor,
                )
            except FormatError:
                raise
            except (RuntimeError, ValueError) as exc:
                raise FormatError(
                    f"failed to convert {self._raw_width}x{self._raw_height} image to "
                    f"{self.tensor.shape[2]}x{self.tensor.shape[1]} planar BGR image"
                ) from exc
