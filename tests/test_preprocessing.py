"""Tests for signature preprocessing."""

import numpy as np
import pytest

from sigmatch.core.preprocessing import preprocess, to_grayscale
from sigmatch.utils.image import ImageDecodeError, RenderContextError


def test_output_shape_and_range(make_image, to_data_uri):
    """Any input is stretched to a (1, 128, 128, 1) float tensor in [0, 1]"""
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=(73, 311, 3), dtype=np.uint8)
    tensor = preprocess(to_data_uri(image))
    assert tensor.shape == (1, 128, 128, 1)
    assert tensor.dtype == np.float32
    assert tensor.min() >= 0.0
    assert tensor.max() <= 1.0


def test_luminosity_weights():
    """Pure colours map to their luminosity weight"""
    red = np.zeros((10, 10, 3), dtype=np.uint8)
    red[:, :, 2] = 255
    green = np.zeros((10, 10, 3), dtype=np.uint8)
    green[:, :, 1] = 255
    blue = np.zeros((10, 10, 3), dtype=np.uint8)
    blue[:, :, 0] = 255

    assert preprocess(red)[0, 0, 0, 0] == pytest.approx(0.299, abs=1e-6)
    assert preprocess(green)[0, 0, 0, 0] == pytest.approx(0.587, abs=1e-6)
    assert preprocess(blue)[0, 0, 0, 0] == pytest.approx(0.114, abs=1e-6)


def test_alpha_is_discarded(make_image):
    opaque = make_image(120)
    transparent = make_image(120, channels=4)
    transparent[:, :, 3] = 0
    assert np.array_equal(preprocess(opaque), preprocess(transparent))


def test_single_channel_input():
    gray = np.full((50, 50), 51, dtype=np.uint8)
    tensor = preprocess(gray)
    assert tensor[0, 10, 10, 0] == pytest.approx(0.2, abs=1e-6)


def test_preprocessing_is_deterministic(to_data_uri):
    """Preprocessing the same image twice yields bit-identical tensors"""
    rng = np.random.default_rng(42)
    uri = to_data_uri(rng.integers(0, 256, size=(90, 240, 3), dtype=np.uint8))
    first = preprocess(uri)
    second = preprocess(uri)
    assert first.tobytes() == second.tobytes()


def test_tensor_is_read_only(make_image):
    tensor = preprocess(make_image(5))
    with pytest.raises(ValueError):
        tensor[0, 0, 0, 0] = 1.0


def test_custom_size(make_image):
    assert preprocess(make_image(5), size=64).shape == (1, 64, 64, 1)


def test_undecodable_source():
    with pytest.raises(ImageDecodeError):
        preprocess("data:image/png;base64,AAAA")


def test_empty_raster():
    with pytest.raises(RenderContextError):
        preprocess(np.zeros((0, 10, 3), dtype=np.uint8))


def test_unsupported_layout():
    with pytest.raises(RenderContextError):
        to_grayscale(np.zeros((4, 4, 2), dtype=np.uint8))
