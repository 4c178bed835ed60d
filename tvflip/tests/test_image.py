import numpy as np
import pytest

from tvflip.core.image import image_to_samples, samples_to_image, pack_rgb, unpack_rgb


def test_grayscale_image_replicates_channel():
    img = np.array([[0, 50, 100], [150, 200, 250]], dtype=np.uint8)
    samples, w, h, color = image_to_samples(img)
    assert (w, h, color) == (3, 2, False)
    assert samples.shape == (6, 3)
    # vertex index is y * width + x
    assert np.array_equal(samples[4], [200.0, 200.0, 200.0])


def test_rgb_image_and_forced_grayscale():
    img = np.zeros((2, 2, 3))
    img[1, 0] = [10, 20, 30]
    samples, w, h, color = image_to_samples(img)
    assert color
    assert np.array_equal(samples[2], [10.0, 20.0, 30.0])
    gray, _, _, color = image_to_samples(img, color=False)
    assert not color
    assert np.array_equal(gray[2], [10.0, 10.0, 10.0])


def test_packed_image():
    packed = np.array([[0x102030, 0xFFFFFF]])
    samples, w, h, color = image_to_samples(packed, packed=True)
    assert color and (w, h) == (2, 1)
    assert np.array_equal(samples[0], [16.0, 32.0, 48.0])
    assert np.array_equal(unpack_rgb(0x0A0B0C), [10.0, 11.0, 12.0])


def test_pack_rgb_clips_and_truncates():
    out = pack_rgb(np.array([[300.0, 12.9, -4.0]]))
    assert out[0] == (255 << 16) | (12 << 8)


def test_samples_to_image_drops_inserted_vertices():
    values = np.array([[1, 1, 1], [2, 2, 2], [3, 3, 3], [4, 4, 4], [99, 99, 99]], dtype=float)
    img = samples_to_image(values, 2, 2, color=False)
    assert img.shape == (2, 2)
    assert np.array_equal(img, [[1, 2], [3, 4]])
    rgb = samples_to_image(values, 2, 2)
    assert rgb.shape == (2, 2, 3) and rgb.dtype == np.uint8


def test_bad_shapes_raise():
    with pytest.raises(ValueError):
        image_to_samples(np.zeros((2, 2, 2)))
    with pytest.raises(ValueError):
        image_to_samples(np.zeros((2, 2, 3)), packed=True)
    with pytest.raises(ValueError):
        image_to_samples(np.zeros((0, 3)))
