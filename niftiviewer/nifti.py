"""Reading and writing NIfTI-1 volumes and extracting 2-D slices from them."""

from __future__ import annotations

import gzip
import math
import struct
from os import PathLike
from pathlib import Path
from typing import Union

import numpy as np

PathType = Union[str, "PathLike[str]"]

_HEADER_SIZE = 348
_DATA_OFFSET = 352
_MAGIC_SINGLE = b"n+1\x00"
_MAGIC_PAIR = b"ni1\x00"
_GZIP_MAGIC = b"\x1f\x8b"

_KINDS = {
    2: "u1",
    4: "i2",
    8: "i4",
    16: "f4",
    64: "f8",
    256: "i1",
    512: "u2",
    768: "u4",
    1024: "i8",
    1280: "u8",
}
_CODES = {np.dtype(kind).name: code for code, kind in _KINDS.items()}


class NiftiError(Exception):
    """Raised when a file is not a readable NIfTI-1 volume."""


def _read_bytes(path: PathType) -> bytes:
    raw = Path(path).read_bytes()
    if raw[:2] == _GZIP_MAGIC:
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as exc:
            raise NiftiError(f"{path}: corrupt gzip stream") from exc
    return raw


def _byte_order(raw: bytes) -> str:
    for order in "<>":
        if struct.unpack_from(order + "i", raw, 0)[0] == _HEADER_SIZE:
            return order
    raise NiftiError("not a NIfTI-1 header")


def read_volume(path: PathType) -> np.ndarray:
    """Read a single-file NIfTI-1 volume (optionally gzipped).

    The result is indexed ``[x, y, z]``; 2-D images get a depth of one.
    Intensity scaling from the header is applied.
    """
    raw = _read_bytes(path)
    if len(raw) < _HEADER_SIZE:
        raise NiftiError(f"{path}: file too short for a NIfTI header")
    order = _byte_order(raw)

    magic = raw[344:348]
    if magic == _MAGIC_PAIR:
        raise NiftiError(f"{path}: separate header/image files are not supported")
    if magic != _MAGIC_SINGLE:
        raise NiftiError(f"{path}: bad NIfTI magic {magic!r}")

    dims = struct.unpack_from(order + "8h", raw, 40)
    ndim = dims[0]
    if not 1 <= ndim <= 7:
        raise NiftiError(f"{path}: invalid dimension count {ndim}")
    shape = dims[1 : 1 + ndim]
    if any(n < 1 for n in shape):
        raise NiftiError(f"{path}: invalid image size {shape}")
    if any(n != 1 for n in shape[3:]):
        raise NiftiError(f"{path}: only 3-D volumes are supported")
    shape3 = tuple(shape[:3]) + (1,) * (3 - min(ndim, 3))

    datatype = struct.unpack_from(order + "h", raw, 70)[0]
    kind = _KINDS.get(datatype)
    if kind is None:
        raise NiftiError(f"{path}: unsupported data type code {datatype}")
    dtype = np.dtype(kind).newbyteorder(order)

    vox_offset = int(struct.unpack_from(order + "f", raw, 108)[0])
    if vox_offset < _HEADER_SIZE:
        vox_offset = _DATA_OFFSET
    count = math.prod(shape3)
    if len(raw) < vox_offset + count * dtype.itemsize:
        raise NiftiError(f"{path}: image data is truncated")

    data = np.frombuffer(raw, dtype=dtype, count=count, offset=vox_offset)
    volume = data.reshape(shape3, order="F").astype(dtype.newbyteorder("="))

    slope, inter = struct.unpack_from(order + "2f", raw, 112)
    if (
        math.isfinite(slope)
        and math.isfinite(inter)
        and slope != 0.0
        and (slope != 1.0 or inter != 0.0)
    ):
        volume = volume.astype(np.float64) * slope + inter
    return volume


def write_volume(path: PathType, data) -> None:
    """Write a 2-D or 3-D array indexed ``[x, y, z]`` as a NIfTI-1 file.

    The file is gzipped when its name ends in ``.gz``.
    """
    array = np.asarray(data)
    if array.dtype == np.bool_:
        array = array.astype(np.uint8)
    if array.ndim not in (2, 3):
        raise ValueError(f"expected a 2-D or 3-D array, got {array.ndim}-D")
    code = _CODES.get(array.dtype.name)
    if code is None:
        raise ValueError(f"unsupported data type {array.dtype}")
    if any(n > 32767 or n < 1 for n in array.shape):
        raise ValueError(f"unsupported image size {array.shape}")

    dims = [array.ndim, *array.shape] + [1] * (7 - array.ndim)
    header = bytearray(_HEADER_SIZE)
    struct.pack_into("<i", header, 0, _HEADER_SIZE)
    struct.pack_into("<8h", header, 40, *dims)
    struct.pack_into("<2h", header, 70, code, array.dtype.itemsize * 8)
    struct.pack_into("<8f", header, 76, 1.0, 1.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.0)
    struct.pack_into("<f", header, 108, float(_DATA_OFFSET))
    struct.pack_into("<2f", header, 112, 1.0, 0.0)
    header[344:348] = _MAGIC_SINGLE

    little = array.astype(array.dtype.newbyteorder("<"))
    payload = bytes(header) + bytes(_DATA_OFFSET - _HEADER_SIZE) + little.tobytes(order="F")
    if str(path).endswith(".gz"):
        payload = gzip.compress(payload)
    Path(path).write_bytes(payload)


def _to_uint8(volume: np.ndarray) -> np.ndarray:
    if volume.dtype == np.uint8:
        return volume
    if np.issubdtype(volume.dtype, np.floating):
        volume = np.trunc(np.nan_to_num(volume, nan=0.0, posinf=255.0, neginf=0.0))
    return np.clip(volume, 0, 255).astype(np.uint8)


def load_image(path: PathType) -> np.ndarray:
    """Load an intensity volume as 32-bit floats."""
    return read_volume(path).astype(np.float32)


def load_mask(path: PathType) -> np.ndarray:
    """Load a label volume as unsigned bytes (values outside 0..255 saturate)."""
    return _to_uint8(read_volume(path))


def _plane(volume, z: int) -> np.ndarray:
    array = np.asarray(volume)
    if array.ndim != 3:
        raise ValueError(f"expected a 3-D volume, got {array.ndim}-D")
    depth = array.shape[2]
    if not 0 <= z < depth:
        raise IndexError(f"slice {z} out of range 0..{depth - 1}")
    return array[:, :, z].T


def get_slice(volume, z: int) -> np.ndarray:
    """Return axial slice ``z`` as rows x columns, min-max scaled to 0..255 bytes."""
    plane = _plane(volume, z).astype(np.float64)
    lo, hi = float(plane.min()), float(plane.max())
    span = hi - lo
    scale = 255.0 / span if span > np.finfo(np.float64).eps else 0.0
    scaled = plane * scale - lo * scale
    return np.clip(np.rint(scaled), 0, 255).astype(np.uint8)


def get_mask_slice(mask, z: int) -> np.ndarray:
    """Return mask slice ``z`` as rows x columns, 255 where the label is positive."""
    plane = _plane(mask, z)
    return np.where(plane > 0, 255, 0).astype(np.uint8)


def _rescale_plane(plane: np.ndarray) -> np.ndarray:
    values = plane.astype(np.float64)
    lo, hi = float(values.min()), float(values.max())
    if lo != hi:
        scale = 255.0 / (hi - lo)
    elif hi != 0:
        scale = 255.0 / hi
    else:
        scale = 0.0
    shift = -lo * scale
    scaled = np.clip(values * scale + shift, 0.0, 255.0)
    return np.floor(scaled).astype(np.uint8)


def load_slices(path: PathType) -> list[np.ndarray]:
    """Read a volume as bytes and return every axial slice rescaled to 0..255."""
    volume = _to_uint8(read_volume(path))
    return [_rescale_plane(volume[:, :, z].T) for z in range(volume.shape[2])]