"""Image filters applied to 8-bit grayscale slices."""

from __future__ import annotations

import math
from enum import Enum

import numpy as np
from scipy import ndimage

_TG22 = int(0.4142135623730950488016887242097 * (1 << 15) + 0.5)
_SMALL_GAUSSIANS = {
    1: [1.0],
    3: [0.25, 0.5, 0.25],
    5: [0.0625, 0.25, 0.375, 0.25, 0.0625],
    7: [0.03125, 0.109375, 0.21875, 0.28125, 0.21875, 0.109375, 0.03125],
}


class FilterKind(Enum):
    """The filters offered by the viewer, keyed by their menu label."""

    NONE = "-- Elegir filtro --"
    THRESHOLD = "Umbralización"
    CONTRAST = "Contrast Stretching"
    EDGES = "Detección de Bordes"
    COLOR_THRESHOLD = "Binarización por Color"
    INVERT = "Inversión de Intensidad"
    GAUSSIAN = "Suavizado Gaussiano"
    DILATE = "Dilatación"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: str) -> "FilterKind":
        try:
            return cls(label)
        except ValueError:
            raise ValueError(f"unknown filter: {label!r}") from None


def _bgr_to_gray(image: np.ndarray) -> np.ndarray:
    blue, green, red = (image[..., i] for i in range(3))
    if image.dtype == np.uint8:
        value = blue.astype(np.int32) * 1868 + green.astype(np.int32) * 9617 + red.astype(np.int32) * 4899
        return ((value + 8192) >> 14).astype(np.uint8)
    return (0.114 * blue + 0.587 * green + 0.299 * red).astype(image.dtype)


def _gray(image) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim == 3 and array.shape[2] > 1:
        return _bgr_to_gray(array)
    if array.ndim == 3:
        return array[..., 0]
    return array


def apply_threshold(image) -> np.ndarray:
    """Binary threshold: 255 above 128, 0 otherwise."""
    array = np.asarray(image)
    return np.where(array > 128, 255, 0).astype(array.dtype)


def contrast_stretching(image) -> np.ndarray:
    """Linearly stretch intensities so the darkest becomes 0 and the brightest 255."""
    gray = _gray(image).astype(np.float64)
    lo, hi = float(gray.min()), float(gray.max())
    if hi == lo:
        return np.zeros(gray.shape, dtype=np.uint8)
    alpha = 255.0 / (hi - lo)
    stretched = gray * alpha - lo * alpha
    return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)


def detect_edges(image, low: float = 100, high: float = 200) -> np.ndarray:
    """Canny edge detection with a 3x3 Sobel operator and L1 gradient magnitude."""
    array = np.asarray(image)
    if array.ndim != 2 or array.dtype != np.uint8:
        raise ValueError("edge detection needs a 2-D uint8 image")
    if low > high:
        low, high = high, low
    low_i, high_i = math.floor(low), math.floor(high)

    p = np.pad(array.astype(np.int64), 1, mode="edge")
    dx = (p[:-2, 2:] + 2 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[1:-1, :-2] + p[2:, :-2])
    dy = (p[2:, :-2] + 2 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[:-2, 1:-1] + p[:-2, 2:])
    xs, ys = np.abs(dx), np.abs(dy)
    magnitude = xs + ys

    m = np.pad(magnitude, 1)
    centre = m[1:-1, 1:-1]
    left, right = m[1:-1, :-2], m[1:-1, 2:]
    up, down = m[:-2, 1:-1], m[2:, 1:-1]
    up_left, up_right = m[:-2, :-2], m[:-2, 2:]
    down_left, down_right = m[2:, :-2], m[2:, 2:]

    tg22x = xs * _TG22
    y_scaled = ys << 15
    tg67x = tg22x + (xs << 16)
    horizontal = y_scaled < tg22x
    vertical = y_scaled > tg67x
    same_sign = (dx ^ dy) >= 0

    local_max = np.where(
        horizontal,
        (centre > left) & (centre >= right),
        np.where(
            vertical,
            (centre > up) & (centre >= down),
            np.where(
                same_sign,
                (centre > up_left) & (centre > down_right),
                (centre > up_right) & (centre > down_left),
            ),
        ),
    )
    candidates = local_max & (centre > low_i)
    strong = candidates & (centre > high_i)

    labels, _ = ndimage.label(candidates, structure=np.ones((3, 3), dtype=bool))
    keep = np.unique(labels[strong])
    edges = np.isin(labels, keep[keep > 0])
    return np.where(edges, 255, 0).astype(np.uint8)


def color_threshold(image, low: int = 100, high: int = 200) -> np.ndarray:
    """255 where low <= value <= high, 0 elsewhere."""
    array = np.asarray(image)
    inside = (array >= low) & (array <= high)
    if inside.ndim == 3:
        inside = inside.all(axis=2)
    return np.where(inside, 255, 0).astype(np.uint8)


def invert(image) -> np.ndarray:
    """Bitwise negative of an integer image."""
    return np.invert(np.asarray(image))


def _gaussian_kernel(ksize: int) -> np.ndarray:
    if ksize in _SMALL_GAUSSIANS:
        return np.array(_SMALL_GAUSSIANS[ksize])
    sigma = ((ksize - 1) * 0.5 - 1) * 0.3 + 0.8
    offsets = np.arange(ksize) - (ksize - 1) / 2
    kernel = np.exp(-(offsets**2) / (2 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(image, ksize: int = 5) -> np.ndarray:
    """Gaussian smoothing with a square kernel and sigma derived from its size."""
    if ksize < 1 or ksize % 2 == 0:
        raise ValueError(f"kernel size must be a positive odd number, got {ksize}")
    array = np.asarray(image)
    kernel = _gaussian_kernel(ksize)
    blurred = array.astype(np.float64)
    for axis in (0, 1):
        blurred = ndimage.correlate1d(blurred, kernel, axis=axis, mode="mirror")
    if np.issubdtype(array.dtype, np.integer):
        info = np.iinfo(array.dtype)
        return np.clip(np.floor(blurred + 0.5), info.min, info.max).astype(array.dtype)
    return blurred.astype(array.dtype)


def dilate(image, kernel_size: int = 3) -> np.ndarray:
    """Morphological dilation with a square structuring element."""
    if kernel_size < 1:
        raise ValueError(f"kernel size must be positive, got {kernel_size}")
    array = np.asarray(image)
    size = (kernel_size, kernel_size) + (1,) * (array.ndim - 2)
    return ndimage.maximum_filter(array, size=size, mode="nearest")


def apply_filter(kind, image, mask=None):
    """Apply the filter ``kind`` to a slice; dilation works on the mask.

    Returns ``None`` when no filter is selected.
    """
    if isinstance(kind, str):
        kind = FilterKind.from_label(kind)
    if kind is FilterKind.NONE:
        return None
    if kind is FilterKind.DILATE:
        if mask is None:
            raise ValueError("dilation needs a mask")
        return dilate(mask)
    operations = {
        FilterKind.THRESHOLD: apply_threshold,
        FilterKind.CONTRAST: contrast_stretching,
        FilterKind.EDGES: detect_edges,
        FilterKind.COLOR_THRESHOLD: color_threshold,
        FilterKind.INVERT: invert,
        FilterKind.GAUSSIAN: gaussian_blur,
    }
    return operations[kind](image)