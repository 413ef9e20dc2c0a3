"""State and actions of the slice viewer, independent of any widget toolkit."""

from __future__ import annotations

import time
from os import PathLike
from pathlib import Path
from typing import Optional, Union

import numpy as np
from matplotlib.figure import Figure
from PIL import Image

from niftiviewer import video
from niftiviewer.filters import FilterKind, apply_filter
from niftiviewer.nifti import load_slices
from niftiviewer.rendering import (
    render_original,
    render_overlay,
    render_thresholded,
    render_tumor_only,
)
from niftiviewer.statistics import load_grayscale, stats_figure

PathType = Union[str, "PathLike[str]"]

OUTPUT_DIR = Path("output")
TUMOR_DIR = OUTPUT_DIR / "out_tumor"
FILTER_DIR = OUTPUT_DIR / "out_filtro"
VIDEO_DIR = OUTPUT_DIR / "out_video"
IMAGE_SUFFIXES = (".png", ".jpg")


class ViewerSession:
    """Loaded slices and masks, the current slice and the display options."""

    def __init__(self, slices=(), masks=(), filter_kind=FilterKind.NONE):
        self.slices: list[np.ndarray] = []
        self.masks: list[np.ndarray] = []
        self.current_z = 0
        self.show_mask = True
        self.show_tumor_only = False
        self.filter_kind = filter_kind
        self.set_slices_and_masks(slices, masks)

    @property
    def filter_kind(self) -> FilterKind:
        return self._filter_kind

    @filter_kind.setter
    def filter_kind(self, kind) -> None:
        self._filter_kind = FilterKind.from_label(kind) if isinstance(kind, str) else FilterKind(kind)

    @property
    def has_data(self) -> bool:
        return bool(self.slices) and bool(self.masks)

    def _require_data(self) -> None:
        if not self.has_data:
            raise ValueError("no slices loaded")

    def set_slices_and_masks(self, slices, masks) -> None:
        """Replace the loaded data; the view returns to the first slice."""
        slices = [np.asarray(s) for s in slices]
        masks = [np.asarray(m) for m in masks]
        if slices and masks and len(slices) != len(masks):
            raise ValueError("slices and masks differ in number")
        self.slices = slices
        self.masks = masks
        if self.slices:
            self.current_z = 0

    def load(self, image_path: PathType, mask_path: PathType) -> None:
        """Load an image volume and a mask volume from NIfTI files."""
        self.set_slices_and_masks(load_slices(image_path), load_slices(mask_path))

    def select_slice(self, z: int) -> None:
        self._require_data()
        if not 0 <= z < len(self.slices):
            raise IndexError(f"slice {z} out of range 0..{len(self.slices) - 1}")
        self.current_z = z

    def _current(self) -> tuple[np.ndarray, np.ndarray]:
        return self.slices[self.current_z], self.masks[self.current_z]

    def _filtered_view(self) -> Optional[np.ndarray]:
        image, mask = self._current()
        if self.filter_kind is FilterKind.THRESHOLD:
            return render_thresholded(image)
        return apply_filter(self.filter_kind, image, mask)

    def views(self) -> Optional[dict]:
        """The four displayed images, or ``None`` when nothing is loaded.

        Keys are ``original``, ``overlay``, ``tumor`` and ``filtered``; the
        filtered view is ``None`` when no filter is selected.
        """
        if not self.has_data:
            return None
        image, mask = self._current()
        return {
            "original": render_original(image),
            "overlay": render_overlay(image, mask, self.show_mask),
            "tumor": render_tumor_only(mask, self.show_tumor_only),
            "filtered": self._filtered_view(),
        }

    def filtered(self) -> Optional[np.ndarray]:
        """The selected filter applied to the current slice at full size."""
        self._require_data()
        image, mask = self._current()
        return apply_filter(self.filter_kind, image, mask)

    def save_tumor(self, output_dir: PathType = TUMOR_DIR) -> Path:
        """Save the tumour region of the current slice as a PNG."""
        if not self.masks:
            raise ValueError("no masks loaded")
        image = render_tumor_only(self.masks[self.current_z], True)
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        path = out / f"tumor_z{self.current_z}.png"
        Image.fromarray(np.ascontiguousarray(image[..., ::-1])).save(path)
        return path

    def save_filter(self, output_dir: PathType = FILTER_DIR, timestamp: Optional[int] = None) -> Path:
        """Save the displayed filtered image as a PNG stamped with the time."""
        view = self._filtered_view() if self.has_data else None
        if view is None:
            raise ValueError("no filtered image visible")
        if timestamp is None:
            timestamp = int(time.time())
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        path = out / f"filtro_z{self.current_z}_t{timestamp}.png"
        Image.fromarray(np.ascontiguousarray(view)).save(path)
        return path

    def tumor_stats(self) -> Figure:
        """Statistics of the current slice within the tumour mask."""
        self._require_data()
        image, mask = self._current()
        return stats_figure(image, mask, "Estadísticas del Tumor")

    def filter_stats(self) -> Figure:
        """Statistics of the filtered current slice within the tumour mask."""
        self._require_data()
        if self.filter_kind in (FilterKind.NONE, FilterKind.INVERT):
            raise ValueError("select a valid filter first")
        return stats_figure(self.filtered(), self.masks[self.current_z], "Estadísticas del Filtro")

    def generate_videos(self, output_dir: PathType = VIDEO_DIR) -> dict[str, Path]:
        """Write the slice stacks as videos with the selected filter."""
        return video.generate_videos(self.slices, self.masks, output_dir, self.filter_kind)


def analyze_folder(folder: PathType = FILTER_DIR) -> list[tuple[Path, Figure]]:
    """Statistics figures for every PNG and JPEG image in ``folder``.

    Files that cannot be read as images are skipped.
    """
    path = Path(folder)
    if not path.is_dir():
        raise FileNotFoundError(f"no such folder: {path}")
    results = []
    for file in sorted(path.iterdir()):
        if not file.is_file() or file.suffix not in IMAGE_SUFFIXES:
            continue
        try:
            image = load_grayscale(file)
        except (OSError, ValueError):
            continue
        results.append((file, stats_figure(image, None, f"Estadísticas - {file.name}")))
    return results