import struct

import numpy as np
import pytest

from niftiviewer.nifti import (
    NiftiError,
    get_mask_slice,
    get_slice,
    load_image,
    load_mask,
    load_slices,
    read_volume,
    write_volume,
)


def _volume(dtype, shape=(4, 5, 3)):
    return np.arange(np.prod(shape)).reshape(shape).astype(dtype)


@pytest.mark.parametrize("dtype", [np.uint8, np.int16, np.float32, np.float64, np.uint16])
@pytest.mark.parametrize("name", ["vol.nii", "vol.nii.gz"])
def test_round_trip(tmp_path, dtype, name):
    data = _volume(dtype)
    path = tmp_path / name
    write_volume(path, data)
    result = read_volume(path)
    assert result.shape == data.shape
    assert result.dtype == data.dtype
    assert np.array_equal(result, data)


def test_header_fields(tmp_path):
    path = tmp_path / "vol.nii"
    write_volume(path, _volume(np.uint8))
    raw = path.read_bytes()
    assert struct.unpack_from("<i", raw, 0)[0] == 348
    assert raw[344:348] == b"n+1\x00"


def test_gzip_file_is_compressed(tmp_path):
    path = tmp_path / "vol.nii.gz"
    write_volume(path, _volume(np.uint8))
    assert path.read_bytes()[:2] == b"\x1f\x8b"


def test_two_dimensional_gets_unit_depth(tmp_path):
    data = np.arange(12, dtype=np.uint8).reshape(3, 4)
    path = tmp_path / "plane.nii"
    write_volume(path, data)
    result = read_volume(path)
    assert result.shape == (3, 4, 1)
    assert np.array_equal(result[:, :, 0], data)


def test_scaling_is_applied(tmp_path):
    data = _volume(np.uint8)
    path = tmp_path / "vol.nii"
    write_volume(path, data)
    raw = bytearray(path.read_bytes())
    struct.pack_into("<2f", raw, 112, 2.0, 1.0)
    path.write_bytes(bytes(raw))
    result = read_volume(path)
    assert np.allclose(result, data * 2.0 + 1.0)


def test_garbage_is_rejected(tmp_path):
    path = tmp_path / "junk.nii"
    path.write_bytes(b"\x00" * 400)
    with pytest.raises(NiftiError):
        read_volume(path)


def test_short_file_is_rejected(tmp_path):
    path = tmp_path / "short.nii"
    path.write_bytes(b"abc")
    with pytest.raises(NiftiError):
        read_volume(path)


def test_truncated_data_is_rejected(tmp_path):
    path = tmp_path / "vol.nii"
    write_volume(path, _volume(np.float32))
    path.write_bytes(path.read_bytes()[:-10])
    with pytest.raises(NiftiError):
        read_volume(path)


def test_write_rejects_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        write_volume(tmp_path / "x.nii", np.zeros((2, 2, 2, 2), dtype=np.uint8))


def test_write_rejects_bad_dtype(tmp_path):
    with pytest.raises(ValueError):
        write_volume(tmp_path / "x.nii", np.zeros((2, 2, 2), dtype=np.complex64))


def test_load_image_is_float32(tmp_path):
    data = _volume(np.int16)
    path = tmp_path / "vol.nii"
    write_volume(path, data)
    image = load_image(path)
    assert image.dtype == np.float32
    assert np.array_equal(image, data.astype(np.float32))


def test_load_mask_is_uint8(tmp_path):
    data = (_volume(np.int16) % 3).astype(np.int16)
    path = tmp_path / "mask.nii.gz"
    write_volume(path, data)
    mask = load_mask(path)
    assert mask.dtype == np.uint8
    assert np.array_equal(mask, data.astype(np.uint8))


def test_get_slice_orientation_and_range():
    nx, ny = 5, 4
    volume = np.broadcast_to(np.arange(nx, dtype=np.float32)[:, None, None], (nx, ny, 2)).copy()
    result = get_slice(volume, 1)
    assert result.shape == (ny, nx)
    assert result.dtype == np.uint8
    assert np.all(result[:, 0] == 0)
    assert np.all(result[:, -1] == 255)
    assert all(np.array_equal(row, result[0]) for row in result)
    assert np.all(np.diff(result[0].astype(int)) > 0)


def test_get_slice_constant_plane_is_zero():
    volume = np.full((3, 3, 1), 7.5, dtype=np.float32)
    assert not get_slice(volume, 0).any()


@pytest.mark.parametrize("z", [-1, 2])
def test_get_slice_out_of_range(z):
    with pytest.raises(IndexError):
        get_slice(np.zeros((3, 3, 2), dtype=np.float32), z)


def test_get_mask_slice_marks_positive_voxels():
    mask = np.zeros((4, 3, 2), dtype=np.uint8)
    mask[2, 1, 1] = 1
    result = get_mask_slice(mask, 1)
    assert result.shape == (3, 4)
    assert result[1, 2] == 255
    assert np.count_nonzero(result) == 1
    assert not get_mask_slice(mask, 0).any()


def test_load_slices_rescales_each_slice(tmp_path):
    volume = np.zeros((4, 3, 3), dtype=np.uint8)
    volume[:, :, 0] = np.arange(12, dtype=np.uint8).reshape(4, 3) + 10
    volume[:, :, 1] = 40
    volume[0, 0, 2] = 255
    path = tmp_path / "vol.nii"
    write_volume(path, volume)
    slices = load_slices(path)
    assert len(slices) == 3
    assert all(s.shape == (3, 4) and s.dtype == np.uint8 for s in slices)
    assert slices[0].min() == 0 and slices[0].max() == 255
    assert not slices[1].any()
    assert np.array_equal(slices[2], volume[:, :, 2].T)