import io
import numpy as np
import pytest
import tifffile
from PIL import Image
from halidepy.infrastructure.loaders.image_loader import (
    IntensityLoader,
    encode_output,
    save_output,
)
from halidepy.domain.types import LUMA_R, LUMA_G, LUMA_B
from halidepy.kernel.image.logic import (
    to_intensity,
    to_rgba,
    calculate_buffer_hash,
    get_luminance,
)


def test_to_intensity_uint8_gray():
    img = np.array([[0, 255], [51, 102]], dtype=np.uint8)
    res = to_intensity(img)
    assert res.dtype == np.float32
    assert np.allclose(res, [[0.0, 1.0], [0.2, 0.4]])


def test_to_intensity_uint16_and_float():
    assert np.allclose(to_intensity(np.array([[65535, 0]], dtype=np.uint16)), [[1.0, 0.0]])
    # Floats are clipped into range
    assert np.allclose(to_intensity(np.array([[-0.5, 1.5]], dtype=np.float64)), [[0.0, 1.0]])


def test_to_intensity_rgb_and_rgba_use_luminance():
    rgb = np.zeros((1, 3, 3), dtype=np.uint8)
    rgb[0, 0, 0] = 255
    rgb[0, 1, 1] = 255
    rgb[0, 2, 2] = 255
    assert np.allclose(to_intensity(rgb), [[0.2126, 0.7152, 0.0722]], atol=1e-5)

    rgba = np.concatenate([rgb, np.zeros((1, 3, 1), dtype=np.uint8)], axis=2)
    assert np.allclose(to_intensity(rgba), to_intensity(rgb))


def test_to_intensity_rejects_bad_input():
    with pytest.raises(TypeError):
        to_intensity([[0.1]])
    with pytest.raises(ValueError):
        to_intensity(np.zeros(5, dtype=np.uint8))


def test_to_rgba():
    gray = np.array([[10, 200]], dtype=np.uint8)
    rgba = to_rgba(gray)
    assert rgba.shape == (1, 2, 4)
    assert rgba[0, 1].tolist() == [200, 200, 200, 255]


def test_buffer_hash_tracks_content():
    a = np.zeros((3, 3), dtype=np.float32)
    b = a.copy()
    b[1, 1] = 0.5
    assert calculate_buffer_hash(a) == calculate_buffer_hash(a.copy())
    assert calculate_buffer_hash(a) != calculate_buffer_hash(b)


def test_encode_png_gray_and_rgba():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    with Image.open(io.BytesIO(encode_output(gray, "png"))) as img:
        assert img.mode == "L"
        assert np.array_equal(np.asarray(img), gray)

    with Image.open(io.BytesIO(encode_output(to_rgba(gray), "png"))) as img:
        assert img.mode == "RGBA"


def test_encode_tiff_round_trip():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    decoded = tifffile.imread(io.BytesIO(encode_output(gray, "tiff")))
    assert np.array_equal(decoded, gray)


def test_encode_jpeg_drops_alpha():
    rgba = to_rgba(np.full((8, 8), 128, dtype=np.uint8))
    with Image.open(io.BytesIO(encode_output(rgba, "jpeg"))) as img:
        assert img.format == "JPEG"
        assert img.mode == "L"


def test_encode_unknown_format():
    with pytest.raises(ValueError):
        encode_output(np.zeros((2, 2), dtype=np.uint8), "gif")


def test_loader_reads_png_and_tiff(tmp_path):
    gray = np.array([[0, 255, 51]], dtype=np.uint8)
    save_output(gray, str(tmp_path / "a.png"), "png")
    save_output(gray, str(tmp_path / "a.tiff"), "tiff")

    loader = IntensityLoader()
    for name in ("a.png", "a.tiff"):
        res = loader.load(str(tmp_path / name))
        assert res.shape == (1, 3)
        assert np.allclose(res, [[0.0, 1.0, 0.2]])


def test_loader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        IntensityLoader().load(str(tmp_path / "missing.png"))


def test_luminance_uses_rec709_constants():
    rgb = np.array([[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]], dtype=np.float32)
    res = get_luminance(rgb)
    assert np.allclose(res, [[LUMA_R, LUMA_G, LUMA_B]])
    assert LUMA_R + LUMA_G + LUMA_B == pytest.approx(1.0)
