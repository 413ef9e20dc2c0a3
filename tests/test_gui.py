import numpy as np
import pytest

from niftiviewer.filters import FilterKind
from niftiviewer.gui import _display_image, build_parser, main
from niftiviewer.nifti import write_volume
from niftiviewer.rendering import DISPLAY_SIZE


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.image is None
    assert args.mask is None
    assert args.filter is FilterKind.NONE
    assert args.slice == 0
    assert args.no_welcome is False


def test_parser_reads_paths_and_options():
    args = build_parser().parse_args(
        ["img.nii", "mask.nii.gz", "--filter", "Dilatación", "--slice", "3", "--no-welcome"]
    )
    assert args.image == "img.nii"
    assert args.mask == "mask.nii.gz"
    assert args.filter is FilterKind.DILATE
    assert args.slice == 3
    assert args.no_welcome is True


def test_parser_rejects_unknown_filter():
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["--filter", "Sepia"])
    assert info.value.code == 2


def test_main_needs_both_paths():
    with pytest.raises(SystemExit) as info:
        main(["only_image.nii"])
    assert info.value.code == 2


def test_main_reports_missing_files(tmp_path, capsys):
    image = tmp_path / "absent.nii"
    mask = tmp_path / "absent_mask.nii"
    assert main([str(image), str(mask)]) == 1
    assert "niftiviewer:" in capsys.readouterr().err


def test_main_reports_bad_volume(tmp_path, capsys):
    bogus = tmp_path / "bogus.nii"
    bogus.write_bytes(b"not a volume")
    assert main([str(bogus), str(bogus)]) == 1
    assert capsys.readouterr().err.startswith("niftiviewer:")


@pytest.mark.parametrize("index", [2, 5, -1])
def test_main_rejects_slice_out_of_range(tmp_path, capsys, index):
    volume = np.arange(8, dtype=np.uint8).reshape(2, 2, 2)
    image = tmp_path / "img.nii"
    mask = tmp_path / "mask.nii.gz"
    write_volume(image, volume)
    write_volume(mask, volume)
    assert main([str(image), str(mask), "--slice", str(index)]) == 1
    assert "out of range" in capsys.readouterr().err


def test_display_image_gray_is_scaled_to_display_size():
    gray = np.full((4, 6), 77, dtype=np.uint8)
    image = _display_image(gray)
    assert image.mode == "L"
    assert image.size == DISPLAY_SIZE
    assert image.getpixel((10, 10)) == 77


def test_display_image_swaps_bgr_to_rgb():
    width, height = DISPLAY_SIZE
    bgr = np.zeros((height, width, 3), dtype=np.uint8)
    bgr[0, 0] = (0, 0, 255)
    image = _display_image(bgr)
    assert image.mode == "RGB"
    assert image.getpixel((0, 0)) == (255, 0, 0)
    assert image.getpixel((1, 1)) == (0, 0, 0)


def test_display_image_rejects_one_dimensional_input():
    with pytest.raises(ValueError):
        _display_image(np.zeros(5, dtype=np.uint8))