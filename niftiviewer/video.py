"""Writing slice stacks as Motion-JPEG AVI videos."""

from __future__ import annotations

import io
import struct
from contextlib import ExitStack
from fractions import Fraction
from os import PathLike
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from niftiviewer.filters import FilterKind, apply_filter
from niftiviewer.rendering import resize

PathType = Union[str, "PathLike[str]"]

FRAME_SIZE = (300, 300)
FPS = 10
OVERLAY_COLOR = (0, 0, 255)

_AVIF_HASINDEX = 0x10
_AVIIF_KEYFRAME = 0x10
_FRAME_CHUNK = b"00dc"
_MAX_DIMENSION = 32767


def _chunk(fourcc: bytes, data: bytes) -> bytes:
    pad = b"\x00" if len(data) % 2 else b""
    return fourcc + struct.pack("<I", len(data)) + data + pad


def _list(kind: bytes, body: bytes) -> bytes:
    return b"LIST" + struct.pack("<I", len(body) + 4) + kind + body


def _bgr(image) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim == 2:
        return np.repeat(array[..., np.newaxis], 3, axis=2)
    return array


class MjpegAviWriter:
    """A video file of JPEG-compressed BGR frames in an AVI container.

    Frames must be ``uint8`` arrays of ``frame_size`` given as ``(width, height)``;
    grayscale frames are expanded to three channels.
    """

    def __init__(self, path: PathType, fps: float = FPS, frame_size=FRAME_SIZE, quality: int = 90):
        width, height = (int(n) for n in frame_size)
        if not (1 <= width <= _MAX_DIMENSION and 1 <= height <= _MAX_DIMENSION):
            raise ValueError(f"invalid frame size {frame_size!r}")
        if fps <= 0:
            raise ValueError(f"frame rate must be positive, got {fps}")
        self.path = Path(path)
        self.fps = fps
        self.frame_size = (width, height)
        self.quality = quality
        self._rate = Fraction(fps).limit_denominator(1001)
        self._index: list[tuple[int, int]] = []
        self._max_chunk = 0
        self._file = open(self.path, "wb")
        try:
            header = self._header(0)
            self._movi_start = len(header)
            self._file.write(header)
            self._file.write(b"LIST" + struct.pack("<I", 0) + b"movi")
        except BaseException:
            self._file.close()
            raise

    def __enter__(self) -> "MjpegAviWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._file.closed

    @property
    def frame_count(self) -> int:
        return len(self._index)

    def _header(self, riff_size: int) -> bytes:
        width, height = self.frame_size
        frames = len(self._index)
        usec_per_frame = round(1_000_000 / float(self.fps))
        bytes_per_sec = round(self._max_chunk * float(self.fps))
        avih = struct.pack(
            "<14I",
            usec_per_frame,
            bytes_per_sec,
            0,
            _AVIF_HASINDEX,
            frames,
            0,
            1,
            self._max_chunk,
            width,
            height,
            0,
            0,
            0,
            0,
        )
        strh = struct.pack(
            "<4s4sIHH8I4h",
            b"vids",
            b"MJPG",
            0,
            0,
            0,
            0,
            self._rate.denominator,
            self._rate.numerator,
            0,
            frames,
            self._max_chunk,
            0xFFFFFFFF,
            0,
            0,
            0,
            width,
            height,
        )
        strf = struct.pack(
            "<IiiHH4sIiiII", 40, width, height, 1, 24, b"MJPG", width * height * 3, 0, 0, 0, 0
        )
        strl = _list(b"strl", _chunk(b"strh", strh) + _chunk(b"strf", strf))
        hdrl = _list(b"hdrl", _chunk(b"avih", avih) + strl)
        return b"RIFF" + struct.pack("<I", riff_size) + b"AVI " + hdrl

    def write(self, frame) -> None:
        """Compress and append one frame."""
        if self.closed:
            raise ValueError("write to a closed video")
        array = _bgr(frame)
        width, height = self.frame_size
        if array.shape != (height, width, 3):
            raise ValueError(f"frame shape {array.shape} does not match size {self.frame_size}")
        if array.dtype != np.uint8:
            raise ValueError(f"frames must be uint8, got {array.dtype}")
        buffer = io.BytesIO()
        rgb = np.ascontiguousarray(array[..., ::-1])
        Image.fromarray(rgb).save(buffer, format="JPEG", quality=self.quality)
        data = buffer.getvalue()
        offset = self._file.tell() - (self._movi_start + 8)
        self._file.write(_chunk(_FRAME_CHUNK, data))
        self._index.append((offset, len(data)))
        self._max_chunk = max(self._max_chunk, len(data))

    def close(self) -> None:
        """Write the index, fix up the headers and close the file."""
        if self.closed:
            return
        try:
            movi_end = self._file.tell()
            index = b"".join(
                struct.pack("<4sIII", _FRAME_CHUNK, _AVIIF_KEYFRAME, offset, size)
                for offset, size in self._index
            )
            self._file.write(_chunk(b"idx1", index))
            end = self._file.tell()
            self._file.seek(0)
            self._file.write(self._header(end - 8))
            self._file.seek(self._movi_start + 4)
            self._file.write(struct.pack("<I", movi_end - self._movi_start - 8))
        finally:
            self._file.close()


def overlay_frame(slice_, mask, size=FRAME_SIZE) -> np.ndarray:
    """The slice resized to ``size`` as BGR, with masked pixels painted red."""
    gray = np.asarray(slice_)
    mask_array = np.asarray(mask)
    if gray.ndim != 2 or mask_array.ndim != 2 or mask_array.size == 0:
        raise ValueError("expected a 2-D slice and a non-empty 2-D mask")
    resized = resize(gray, size)
    frame = np.repeat(resized[..., np.newaxis], 3, axis=2)
    rows, cols = resized.shape
    ys = np.arange(rows) * mask_array.shape[0] // rows
    xs = np.arange(cols) * mask_array.shape[1] // cols
    frame[mask_array[np.ix_(ys, xs)] > 0] = OVERLAY_COLOR
    return frame


def generate_videos(
    slices, masks, output_dir: PathType, kind=FilterKind.NONE, frame_size=FRAME_SIZE, fps: float = FPS
) -> dict[str, Path]:
    """Write the original, overlay and (if a filter is chosen) filtered stacks.

    Returns the written paths keyed by ``original``, ``overlay`` and ``filtered``.
    """
    slices = list(slices)
    masks = list(masks)
    if not slices or not masks:
        raise ValueError("no data loaded to generate videos")
    if len(slices) != len(masks):
        raise ValueError("slices and masks differ in number")
    if isinstance(kind, str):
        kind = FilterKind.from_label(kind)

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = {
        "original": out / "stack_original.avi",
        "overlay": out / "stack_overlay.avi",
    }
    with ExitStack() as stack:
        original = stack.enter_context(MjpegAviWriter(paths["original"], fps, frame_size))
        overlay = stack.enter_context(MjpegAviWriter(paths["overlay"], fps, frame_size))
        filtered = None
        if kind is not FilterKind.NONE:
            paths["filtered"] = out / "stack_filtered.avi"
            filtered = stack.enter_context(MjpegAviWriter(paths["filtered"], fps, frame_size))
        for slice_, mask in zip(slices, masks):
            original.write(_bgr(resize(np.asarray(slice_), frame_size)))
            overlay.write(overlay_frame(slice_, mask, frame_size))
            if filtered is not None:
                result = apply_filter(kind, slice_, mask)
                filtered.write(_bgr(resize(result, frame_size)))
    return paths