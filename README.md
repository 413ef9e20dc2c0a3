# niftiviewer

A small viewer for NIfTI MRI volumes (`.nii`, `.nii.gz`) together with a
tumour segmentation mask. It shows each axial slice four ways: the original
slice, the slice with the mask painted red, the tumour region alone, and the
slice passed through a chosen filter. It can also compute intensity
statistics, save the current views as PNG files and export the whole stack as
Motion-JPEG AVI videos.

## Installation

```
pip install .
```

The package depends on numpy, scipy, pillow and matplotlib. The desktop
window uses tkinter, so it needs a Python built with Tk support and a
graphical display. The library modules work without a display.

## The viewer

```
niftiviewer
```

With no arguments, a welcome dialog opens first. When you press "Siguiente",
you choose a NIfTI image and then its NIfTI mask, and the viewer window
opens. You can also give both files on the command line. The viewer window
then opens straight away:

```
niftiviewer brain.nii.gz brain_mask.nii.gz --slice 40 --filter "Umbralización"
```

Options:

- `image`, `mask`: the image volume and the mask volume. Give both or neither.
- `--filter LABEL`: the initial filter, given by its menu label (see
  `FilterKind` below).
- `--slice N`: the initial slice index.
- `--no-welcome`: skip the welcome dialog and go straight to the file choice.

When it starts, the command creates `output/out_filtro`, `output/out_tumor`
and `output/out_video` in the current directory.

In the window you can:

- move through the slices with the slider;
- turn the red mask overlay and the tumour-only view on and off;
- pick a filter: binary thresholding, contrast stretching, Canny edge
  detection, intensity band binarisation (100 to 200), intensity inversion,
  Gaussian smoothing or 3x3 dilation of the mask;
- open statistics windows (histogram, boxplot, mean, standard deviation,
  minimum, maximum and area) for the tumour region or for the filtered slice;
- save the tumour view or the filtered view as a PNG file;
- analyse every PNG or JPEG in `output/out_tumor` or `output/out_filtro`, with
  one statistics window per image;
- generate videos of the original, overlaid and filtered stacks (menu
  "Otras funciones").

## Using the library

Everything the window does is also available from Python.

### Reading volumes

```python
from niftiviewer.nifti import load_slices, load_image, load_mask, get_slice, get_mask_slice

slices = load_slices("brain.nii.gz")       # list of 2-D uint8 arrays, one per z
masks = load_slices("brain_mask.nii.gz")

volume = load_image("brain.nii.gz")        # float32 array indexed [x, y, z]
plane = get_slice(volume, 40)              # rows x columns, min-max scaled to 0..255
labels = get_mask_slice(load_mask("brain_mask.nii.gz"), 40)  # 255 where label > 0
```

`read_volume` and `write_volume` read and write single-file NIfTI-1 volumes.
Files whose names end in `.gz` are gzipped. A file that cannot be read raises
`NiftiError`.

### Filters

```python
from niftiviewer.filters import apply_threshold, contrast_stretching, dilate, FilterKind, apply_filter

binary = apply_threshold(slices[40])          # 255 where the slice is above 128
stretched = contrast_stretching(slices[40])   # rescaled to the full 0..255 range
grown = dilate(masks[40], 3)                  # 3x3 rectangular dilation

edges = apply_filter(FilterKind.EDGES, slices[40], masks[40])
```

The other filters are `detect_edges`, `color_threshold`, `invert` and
`gaussian_blur`. `FilterKind` lists the filters by their menu labels.
`FilterKind.from_label` turns a label into a member. `apply_filter` returns
`None` for `FilterKind.NONE`, and for `FilterKind.DILATE` it works on the
mask.

### Rendering

`niftiviewer.rendering` produces the 300x300 display images:
`render_original`, `render_overlay` (BGR, mask in red), `render_tumor_only`
and `render_thresholded`. It also provides the helpers `resize` (bilinear) and
`to_gray`.

### Statistics

```python
from niftiviewer.statistics import compute_basic_stats, boxplot_stats, stats_figure

stats = compute_basic_stats(slices[40], masks[40])
print(stats.format())

box = boxplot_stats(slices[40], masks[40])    # quartiles, whiskers, outliers
figure = stats_figure(slices[40], masks[40], "Tumor")  # matplotlib Figure
```

`boxplot_stats` raises `ValueError` when fewer than five pixels are selected.
`histogram`, `plot_histogram` and `plot_boxplot` are also available, and
`load_grayscale` reads an image file as an 8-bit grayscale array.

### Sessions and videos

`ViewerSession` in `niftiviewer.session` holds a loaded stack and the viewer
state: the current slice, the mask and tumour toggles, and the chosen filter.
It offers the same actions as the window:

- `views`
- `filtered`
- `save_tumor`
- `save_filter`
- `tumor_stats`
- `filter_stats`
- `generate_videos`

`analyze_folder` returns a statistics figure for every PNG or JPEG file in a
folder.

`niftiviewer.video.generate_videos` writes the AVI files directly from a list
of slices and masks. `MjpegAviWriter` writes BGR frames to a Motion-JPEG AVI
file and can be used as a context manager.

## Output files

- `tumor_z<N>.png`: the tumour-only view of slice `N`.
- `filtro_z<N>_t<T>.png`: the filtered view of slice `N`, saved at Unix
  time `T`.
- `stack_original.avi`, `stack_overlay.avi`, `stack_filtered.avi`: 300x300
  MJPEG videos at 10 frames per second. The filtered one is written only when
  a filter is selected.

## Limitations

- Only single-file NIfTI-1 volumes (`.nii`, `.nii.gz`) with at most three
  dimensions can be read. Separate header and image files (`.hdr`/`.img`),
  NIfTI-2 and 4-D series are rejected with `NiftiError`.
- `load_slices` reads intensities as bytes, so values outside 0..255 saturate
  before each slice is rescaled.
- Filter statistics are not offered for "-- Elegir filtro --" or for
  intensity inversion.
- Videos are written only as Motion-JPEG AVI. No other container or codec is
  supported.

## Running the tests

```
pip install .[test]
pytest
```