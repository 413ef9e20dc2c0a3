"""Intensity statistics, histograms and boxplots for grayscale slices."""

from __future__ import annotations

from dataclasses import dataclass
from os import PathLike
from typing import Optional, Union

import numpy as np
from matplotlib.figure import Figure
from PIL import Image

from niftiviewer.rendering import to_gray

HIST_BINS = 256
MIN_BOXPLOT_VALUES = 5


@dataclass(frozen=True)
class BasicStats:
    """Mean, standard deviation, extremes and area of an image region."""

    mean: float
    stddev: float
    minimum: float
    maximum: float
    area: float

    def format(self) -> str:
        """The summary text shown next to the plots."""
        return (
            f"Media: {self.mean:.2f}\n"
            f"Desv.E: {self.stddev:.2f}\n"
            f"Min: {self.minimum:.2f}\n"
            f"Max: {self.maximum:.2f}\n"
            f"Área: {self.area:.2f}"
        )


@dataclass(frozen=True)
class BoxplotStats:
    """Quartiles, whiskers and outliers of a set of intensities."""

    q1: float
    median: float
    q3: float
    iqr: float
    lower_fence: float
    upper_fence: float
    whisker_low: float
    whisker_high: float
    outliers: tuple


def _gray_nonempty(image) -> np.ndarray:
    gray = to_gray(image)
    if gray.size == 0:
        raise ValueError("image is empty")
    return gray


def _selection(gray: np.ndarray, mask) -> np.ndarray:
    if mask is None:
        return np.ones(gray.shape, dtype=bool)
    mask_array = np.asarray(mask)
    if mask_array.size == 0:
        return np.ones(gray.shape, dtype=bool)
    if mask_array.shape != gray.shape:
        raise ValueError("mask and image sizes differ")
    return mask_array > 0


def histogram(image) -> np.ndarray:
    """Counts of intensities in 256 unit-wide bins covering [0, 256)."""
    values = _gray_nonempty(image).ravel().astype(np.float64)
    values = values[(values >= 0) & (values < HIST_BINS)]
    bins = np.floor(values).astype(np.intp)
    return np.bincount(bins, minlength=HIST_BINS).astype(np.float64)


def compute_basic_stats(image, mask=None) -> BasicStats:
    """Statistics over the pixels where ``mask`` is non-zero, or the whole image."""
    gray = _gray_nonempty(image)
    selected = _selection(gray, mask)
    values = gray.astype(np.float64)[selected]
    area = float(gray.size if mask is None or np.asarray(mask).size == 0 else values.size)
    if values.size == 0:
        return BasicStats(0.0, 0.0, 0.0, 0.0, area)
    mean = float(values.mean())
    stddev = float(np.sqrt(np.mean((values - mean) ** 2)))
    return BasicStats(mean, stddev, float(values.min()), float(values.max()), area)


def boxplot_stats(image, mask=None) -> BoxplotStats:
    """Quartiles by nearest rank, whiskers at 1.5 IQR, and the outliers beyond them."""
    gray = _gray_nonempty(image)
    pixels = np.sort(gray[_selection(gray, mask)].astype(np.float64))
    count = pixels.size
    if count < MIN_BOXPLOT_VALUES:
        raise ValueError("too few values for a boxplot")

    def percentile(p: float) -> float:
        return float(pixels[min(int(p * count), count - 1)])

    q1, median, q3 = percentile(0.25), percentile(0.50), percentile(0.75)
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
    inside = pixels[(pixels >= lower) & (pixels <= upper)]
    outliers = tuple(float(v) for v in pixels[(pixels < lower) | (pixels > upper)])
    return BoxplotStats(
        q1=q1,
        median=median,
        q3=q3,
        iqr=iqr,
        lower_fence=lower,
        upper_fence=upper,
        whisker_low=float(inside[0]),
        whisker_high=float(inside[-1]),
        outliers=outliers,
    )


def plot_histogram(image, ax):
    """Draw the intensity histogram on ``ax`` and return the line."""
    counts = histogram(image)
    ax.clear()
    (line,) = ax.plot(np.arange(HIST_BINS, dtype=np.float64), counts)
    ax.set_xlabel("Intensidad")
    ax.set_ylabel("Frecuencia")
    ax.relim()
    ax.autoscale_view()
    return line


def plot_boxplot(image, ax, mask=None) -> BoxplotStats:
    """Draw box, median, whiskers and outliers on ``ax``; return the statistics."""
    stats = boxplot_stats(image, mask)
    ax.plot([1, 1], [stats.q1, stats.q3], color="blue", linewidth=8)
    ax.plot([0.8, 1.2], [stats.median, stats.median], color="red", linewidth=2)
    ax.plot(
        [1, 1, 1, 1],
        [stats.whisker_low, stats.q1, stats.q3, stats.whisker_high],
        color="black",
    )
    ax.plot(
        [1] * len(stats.outliers),
        list(stats.outliers),
        linestyle="none",
        marker="o",
        markersize=5,
        color="red",
    )
    ax.set_xlabel("Boxplot")
    ax.set_ylabel("Intensidad")
    ax.set_xlim(0.5, 1.5)
    ax.set_ylim(0, 255)
    return stats


def stats_figure(image, mask=None, title: str = "Estadísticas") -> Figure:
    """A figure with the histogram, the boxplot and the summary text."""
    gray = _gray_nonempty(image)
    figure = Figure(figsize=(8, 6))
    figure.suptitle(title)
    hist_ax, box_ax, text_ax = figure.subplots(1, 3)
    hist_ax.set_title("Histograma")
    box_ax.set_title("Boxplot")
    text_ax.set_title("Estadísticas")

    plot_histogram(gray, hist_ax)
    hist_ax.set_title("Histograma")
    try:
        plot_boxplot(gray, box_ax, mask)
    except ValueError as exc:
        box_ax.text(0.5, 0.5, str(exc), ha="center", va="center", transform=box_ax.transAxes)

    text_ax.axis("off")
    text_ax.text(
        0.0,
        1.0,
        compute_basic_stats(gray, mask).format(),
        family="monospace",
        va="top",
        transform=text_ax.transAxes,
    )
    return figure


def load_grayscale(path: Union[str, "PathLike[str]"]) -> np.ndarray:
    """Read an image file as an 8-bit grayscale array."""
    with Image.open(path) as img:
        return np.asarray(img.convert("L"), dtype=np.uint8).copy()