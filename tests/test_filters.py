import numpy as np
import pytest

from niftiviewer.filters import (
    FilterKind,
    apply_filter,
    apply_threshold,
    color_threshold,
    contrast_stretching,
    detect_edges,
    dilate,
    gaussian_blur,
    invert,
)


@pytest.fixture
def ramp():
    return np.arange(256, dtype=np.uint8).reshape(16, 16)


def test_threshold_boundary():
    image = np.array([[0, 128, 129, 255]], dtype=np.uint8)
    assert apply_threshold(image).tolist() == [[0, 0, 255, 255]]


def test_threshold_output_is_binary(ramp):
    result = apply_threshold(ramp)
    assert set(np.unique(result)) <= {0, 255}
    assert result.dtype == np.uint8


def test_contrast_stretching_spans_full_range():
    image = np.array([[50, 60], [70, 80]], dtype=np.uint8)
    result = contrast_stretching(image)
    assert result.min() == 0
    assert result.max() == 255
    assert np.all(np.diff(result.ravel().astype(int)) > 0)


def test_contrast_stretching_constant_is_zero():
    assert not contrast_stretching(np.full((4, 4), 90, dtype=np.uint8)).any()


def test_contrast_stretching_colour_input():
    image = np.zeros((2, 2, 3), dtype=np.uint8)
    image[1, 1] = [200, 200, 200]
    result = contrast_stretching(image)
    assert result.shape == (2, 2)
    assert result[1, 1] == 255 and result[0, 0] == 0


def test_color_threshold_inclusive_bounds():
    image = np.array([[99, 100, 200, 201]], dtype=np.uint8)
    assert color_threshold(image).tolist() == [[0, 255, 255, 0]]


def test_invert_round_trip(ramp):
    assert np.array_equal(invert(invert(ramp)), ramp)
    assert np.all(invert(ramp).astype(int) + ramp == 255)


def test_gaussian_keeps_constant_image():
    image = np.full((8, 8), 100, dtype=np.uint8)
    assert np.array_equal(gaussian_blur(image), image)


def test_gaussian_size_one_is_identity(ramp):
    assert np.array_equal(gaussian_blur(ramp, 1), ramp)


def test_gaussian_impulse_is_symmetric():
    image = np.zeros((9, 9), dtype=np.uint8)
    image[4, 4] = 255
    result = gaussian_blur(image, 5)
    assert result[4, 4] == result.max()
    assert np.array_equal(result, result.T)
    assert np.array_equal(result, result[::-1, ::-1])
    assert result[4, 4] == 36


@pytest.mark.parametrize("ksize", [0, 4, -3])
def test_gaussian_rejects_bad_kernel(ksize, ramp):
    with pytest.raises(ValueError):
        gaussian_blur(ramp, ksize)


def test_dilate_grows_single_pixel():
    image = np.zeros((7, 7), dtype=np.uint8)
    image[3, 3] = 255
    result = dilate(image)
    assert np.count_nonzero(result) == 9
    assert np.all(result[2:5, 2:5] == 255)


def test_dilate_size_one_is_identity(ramp):
    assert np.array_equal(dilate(ramp, 1), ramp)


def test_dilate_rejects_bad_size(ramp):
    with pytest.raises(ValueError):
        dilate(ramp, 0)


def test_edges_on_constant_image_are_empty():
    assert not detect_edges(np.full((10, 10), 80, dtype=np.uint8)).any()


def test_edges_on_vertical_step():
    image = np.zeros((10, 10), dtype=np.uint8)
    image[:, 5:] = 255
    edges = detect_edges(image)
    assert set(np.unique(edges)) <= {0, 255}
    assert np.all(edges[:, 4] == 255)
    assert np.count_nonzero(edges) == edges.shape[0]


def test_edges_step_is_transposable():
    image = np.zeros((10, 10), dtype=np.uint8)
    image[:, 5:] = 255
    assert np.array_equal(detect_edges(image.T), detect_edges(image).T)


def test_edges_threshold_order_does_not_matter():
    image = np.zeros((10, 10), dtype=np.uint8)
    image[3:7, 3:7] = 180
    assert np.array_equal(detect_edges(image, 200, 100), detect_edges(image, 100, 200))


def test_edges_reject_float_image():
    with pytest.raises(ValueError):
        detect_edges(np.zeros((4, 4), dtype=np.float32))


def test_filter_kind_labels_round_trip():
    for kind in FilterKind:
        assert FilterKind.from_label(kind.label) is kind


def test_filter_kind_unknown_label():
    with pytest.raises(ValueError):
        FilterKind.from_label("no such filter")


def test_apply_filter_none_returns_none(ramp):
    assert apply_filter(FilterKind.NONE, ramp) is None


def test_apply_filter_dispatches(ramp):
    assert np.array_equal(apply_filter(FilterKind.THRESHOLD, ramp), apply_threshold(ramp))
    assert np.array_equal(apply_filter("Inversión de Intensidad", ramp), invert(ramp))
    assert np.array_equal(apply_filter(FilterKind.GAUSSIAN, ramp), gaussian_blur(ramp, 5))


def test_apply_filter_dilate_uses_mask(ramp):
    mask = np.zeros_like(ramp)
    mask[8, 8] = 255
    assert np.array_equal(apply_filter(FilterKind.DILATE, ramp, mask), dilate(mask, 3))
    with pytest.raises(ValueError):
        apply_filter(FilterKind.DILATE, ramp)