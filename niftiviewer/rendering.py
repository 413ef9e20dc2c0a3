"""Rendering of slices, mask overlays and thresholded views at display size."""

from __future__ import annotations

import numpy as np

from niftiviewer.filters import apply_threshold

DISPLAY_SIZE = (300, 300)
MASK_COLOR = (0, 0, 255)
TUMOR_COLOR = (255, 255, 255)


def _axis_map(dst: int, src: int):
    """Source indices and weights for linear interpolation along one axis."""
    positions = (np.arange(dst) + 0.5) * (src / dst) - 0.5
    first = np.floor(positions).astype(np.intp)
    weight = positions - first
    below = first < 0
    first[below] = 0
    weight[below] = 0.0
    above = first >= src - 1
    first[above] = src - 1
    weight[above] = 0.0
    second = np.minimum(first + 1, src - 1)
    return first, second, weight


def resize(image, size) -> np.ndarray:
    """Bilinear resize to ``size`` given as ``(width, height)``.

    Pixel centres are aligned as in the usual half-pixel convention; extra
    channel axes are kept. Integer images are rounded and saturated.
    """
    array = np.asarray(image)
    if array.ndim < 2 or array.shape[0] == 0 or array.shape[1] == 0:
        raise ValueError("cannot resize an empty image")
    try:
        width, height = (int(n) for n in size)
    except (TypeError, ValueError):
        raise ValueError(f"size must be a (width, height) pair, got {size!r}") from None
    if width < 1 or height < 1:
        raise ValueError(f"size must be positive, got {size!r}")

    src_h, src_w = array.shape[:2]
    if (src_h, src_w) == (height, width):
        return array.copy()

    values = array.astype(np.float64)
    extra = (1,) * (values.ndim - 2)

    y0, y1, wy = _axis_map(height, src_h)
    wy = wy.reshape((-1, 1) + extra)
    rows = values[y0] * (1.0 - wy) + values[y1] * wy

    x0, x1, wx = _axis_map(width, src_w)
    wx = wx.reshape((1, -1) + extra)
    out = rows[:, x0] * (1.0 - wx) + rows[:, x1] * wx

    if np.issubdtype(array.dtype, np.integer):
        info = np.iinfo(array.dtype)
        return np.clip(np.floor(out + 0.5), info.min, info.max).astype(array.dtype)
    return out.astype(array.dtype)


def to_gray(image) -> np.ndarray:
    """Return a single-channel image; BGR or BGRA input is converted to luma."""
    array = np.asarray(image)
    if array.ndim == 2:
        return array
    if array.ndim != 3:
        raise ValueError(f"expected a 2-D or 3-D image, got {array.ndim}-D")
    if array.shape[2] == 1:
        return array[..., 0]
    if array.shape[2] not in (3, 4):
        raise ValueError(f"unsupported channel count {array.shape[2]}")
    blue, green, red = (array[..., i] for i in range(3))
    if array.dtype == np.uint8:
        value = (
            blue.astype(np.int32) * 1868
            + green.astype(np.int32) * 9617
            + red.astype(np.int32) * 4899
        )
        return ((value + 8192) >> 14).astype(np.uint8)
    return (0.114 * blue + 0.587 * green + 0.299 * red).astype(array.dtype)


def _check_slice(slice_) -> np.ndarray:
    array = np.asarray(slice_)
    if array.ndim != 2 or array.size == 0:
        raise ValueError("expected a non-empty 2-D slice")
    return array


def render_original(slice_) -> np.ndarray:
    """The grayscale slice at display size."""
    return resize(_check_slice(slice_), DISPLAY_SIZE)


def render_overlay(slice_, mask, show_mask: bool) -> np.ndarray:
    """Three-channel view of the slice with masked pixels painted ``MASK_COLOR``."""
    gray = _check_slice(slice_)
    color = np.repeat(gray[..., np.newaxis], 3, axis=2)
    if show_mask:
        mask_array = np.asarray(mask)
        if mask_array.shape != gray.shape:
            raise ValueError("mask and slice sizes differ")
        color[mask_array > 0] = MASK_COLOR
    return resize(color, DISPLAY_SIZE)


def render_tumor_only(mask, only_tumor: bool) -> np.ndarray:
    """Black three-channel image with the tumour region white when requested."""
    mask_array = _check_slice(mask)
    result = np.zeros(mask_array.shape + (3,), dtype=np.uint8)
    if only_tumor:
        result[mask_array > 0] = TUMOR_COLOR
    return resize(result, DISPLAY_SIZE)


def render_thresholded(slice_) -> np.ndarray:
    """The binary-thresholded slice at display size."""
    return resize(apply_threshold(_check_slice(slice_)), DISPLAY_SIZE)