import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from plantdoc.config import Settings
from plantdoc.model import LoadedModel


class StubModel(LoadedModel):
    """Returns fixed scores; records the batch shapes it was fed."""

    backend = "stub"

    def __init__(self, scores, size=(224, 224), fail_with: Exception | None = None):
        self.scores = np.asarray(scores, dtype=np.float32)
        self.fail_with = fail_with
        self.calls = []
        self.release_count = 0
        super().__init__(Path("stub.tflite"), (1, size[0], size[1], 3), (1, self.scores.size))

    def _forward(self, batch):
        self.calls.append(tuple(batch.shape))
        if self.fail_with is not None:
            raise self.fail_with
        return self.scores.reshape(1, -1)

    def _release(self):
        self.release_count += 1


def make_image_bytes(color=(0, 255, 0), size=(224, 224), mode="RGB", fmt="PNG") -> bytes:
    """Solid-color image encoded as ``fmt``; ``size`` is (width, height) like Pillow."""
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def stub_model_factory():
    return StubModel


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def settings(tmp_path):
    return Settings(model_dir=tmp_path)
