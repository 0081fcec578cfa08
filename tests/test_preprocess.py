"""
Preprocessor tests.

Tensors must be exactly H*W*3 float32 values in [0, 1], row-major RGB,
stretched (not cropped) to the model geometry.
"""

import io

import numpy as np
import pytest
from PIL import Image

from plantdoc.errors import DecodeError, ErrorKind
from plantdoc.preprocess import decode_image, image_to_tensor, preprocess

from conftest import make_image_bytes


class TestTensorShape:
    @pytest.mark.parametrize("size", [(224, 224), (640, 480), (50, 300), (1, 1), (1000, 17)])
    def test_any_input_size_gives_fixed_length(self, size):
        tensor = preprocess(make_image_bytes(size=size))
        assert tensor.shape == (224 * 224 * 3,)
        assert tensor.dtype == np.float32

    def test_custom_geometry(self):
        tensor = preprocess(make_image_bytes(size=(100, 100)), size=(32, 64))
        assert tensor.shape == (32 * 64 * 3,)

    def test_values_in_unit_range(self):
        rng = np.random.default_rng(42)
        noise = rng.integers(0, 256, size=(300, 400, 3), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(noise).save(buf, format="PNG")

        tensor = preprocess(buf.getvalue())
        assert tensor.min() >= 0.0
        assert tensor.max() <= 1.0


class TestChannelValues:
    def test_solid_red(self):
        tensor = preprocess(make_image_bytes(color=(255, 0, 0), size=(120, 80))).reshape(-1, 3)
        assert np.all(tensor[:, 0] == 1.0)
        assert np.all(tensor[:, 1] == 0.0)
        assert np.all(tensor[:, 2] == 0.0)

    def test_solid_green_jpeg(self):
        tensor = preprocess(make_image_bytes(color=(0, 255, 0), fmt="JPEG")).reshape(-1, 3)
        # JPEG is lossy; green must still dominate
        assert tensor[:, 1].mean() > 0.9
        assert tensor[:, 0].mean() < 0.1

    def test_alpha_is_discarded(self):
        raw = make_image_bytes(color=(0, 0, 255, 128), mode="RGBA")
        tensor = preprocess(raw).reshape(-1, 3)
        assert np.all(tensor[:, 2] == 1.0)
        assert np.all(tensor[:, :2] == 0.0)

    def test_grayscale_expands_to_rgb(self):
        tensor = preprocess(make_image_bytes(color=51, mode="L")).reshape(-1, 3)
        assert np.allclose(tensor, 51 / 255.0)

    def test_division_by_255(self):
        tensor = preprocess(make_image_bytes(color=(10, 128, 200))).reshape(-1, 3)
        expected = np.array([10, 128, 200], dtype=np.float32) / np.float32(255.0)
        assert np.array_equal(tensor[0], expected)


class TestLayout:
    def test_row_major_columns_left_to_right(self):
        img = Image.new("RGB", (2, 1))
        img.putpixel((0, 0), (255, 0, 0))
        img.putpixel((1, 0), (0, 255, 0))
        tensor = image_to_tensor(img, size=(1, 2))
        assert tensor.tolist() == [1.0, 0.0, 0.0, 0.0, 1.0, 0.0]

    def test_rows_top_to_bottom(self):
        img = Image.new("RGB", (1, 2))
        img.putpixel((0, 0), (255, 0, 0))
        img.putpixel((0, 1), (0, 0, 255))
        tensor = image_to_tensor(img, size=(2, 1))
        assert tensor.tolist() == [1.0, 0.0, 0.0, 0.0, 0.0, 1.0]

    def test_aspect_ratio_is_stretched(self):
        # Left half red, right half blue on a wide image; after stretching to
        # a square the split must still sit in the middle column.
        img = Image.new("RGB", (400, 100), (255, 0, 0))
        img.paste((0, 0, 255), (200, 0, 400, 100))
        tensor = image_to_tensor(img, size=(224, 224)).reshape(224, 224, 3)
        assert tensor[112, 10, 0] == 1.0
        assert tensor[112, 213, 2] == 1.0


class TestDeterminism:
    def test_identical_bytes_identical_tensor(self):
        rng = np.random.default_rng(7)
        noise = rng.integers(0, 256, size=(97, 131, 3), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(noise).save(buf, format="PNG")
        raw = buf.getvalue()

        first = preprocess(raw)
        second = preprocess(raw)
        assert first.tobytes() == second.tobytes()


class TestDecodeErrors:
    def test_garbage_bytes(self):
        with pytest.raises(DecodeError) as exc_info:
            preprocess(b"definitely not an image")
        assert exc_info.value.kind == ErrorKind.DECODE
        assert exc_info.value.context["byte_length"] == len(b"definitely not an image")

    def test_empty_bytes(self):
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_truncated_png(self):
        rng = np.random.default_rng(0)
        noise = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(noise).save(buf, format="PNG")
        raw = buf.getvalue()

        with pytest.raises(DecodeError):
            preprocess(raw[: len(raw) // 2])
