import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from plantdoc.errors import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_SIZE = (224, 224)


def decode_image(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Invalid image: {e}", byte_length=len(raw)) from e
    return img


def image_to_tensor(image: Image.Image, size: tuple[int, int] = DEFAULT_SIZE) -> np.ndarray:
    """Stretch ``image`` to ``size`` (height, width) and flatten it to H*W*3 float32 in [0, 1].

    Aspect ratio is not preserved and no mean/std centering is applied; the
    classifier was trained on exactly this layout. Values run row by row, left
    to right, R then G then B. Alpha is dropped.
    """
    height, width = size
    if image.mode != "RGB":
        image = image.convert("RGB")
    image = image.resize((width, height), Image.Resampling.BILINEAR)
    pixels = np.asarray(image, dtype=np.uint8)
    return (pixels.astype(np.float32) / np.float32(255.0)).reshape(-1)


def preprocess(raw: bytes, size: tuple[int, int] = DEFAULT_SIZE) -> np.ndarray:
    img = decode_image(raw)
    logger.debug("Decoded %s image %dx%d (%d bytes)", img.format, img.width, img.height, len(raw))
    return image_to_tensor(img, size)
