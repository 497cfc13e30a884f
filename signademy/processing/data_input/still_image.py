"""Still image loading and preprocessing for one-shot recognition."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

ImageInput = Union[bytes, bytearray, str, Path, np.ndarray, Image.Image]

MAX_IMAGE_SIZE: Tuple[int, int] = (640, 480)


def load_image(image_input: ImageInput) -> np.ndarray:
    """Load an image input (encoded bytes, path, ndarray or PIL image) into a BGR ndarray."""

    if isinstance(image_input, np.ndarray):
        image = image_input.copy()
    elif isinstance(image_input, Image.Image):
        image = cv2.cvtColor(np.array(image_input.convert("RGB")), cv2.COLOR_RGB2BGR)
    elif isinstance(image_input, (bytes, bytearray)):
        try:
            with Image.open(io.BytesIO(image_input)) as pil_image:
                rgb = np.array(pil_image.convert("RGB"))
        except (UnidentifiedImageError, OSError) as e:
            raise ValueError(f"Unable to decode image: {e}") from e
        except Image.DecompressionBombError as e:
            raise ValueError(f"Image is too large to decode: {e}") from e
        image = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
    else:
        path = Path(image_input)
        if not path.exists():
            raise FileNotFoundError(f"Image path not found: {path}")
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError(f"Unable to read image from path: {path}")

    return ensure_color(image)


def ensure_color(image: np.ndarray) -> np.ndarray:
    """Ensure the ndarray is three-channel BGR."""

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def fit_within(image: np.ndarray, max_size: Tuple[int, int] = MAX_IMAGE_SIZE) -> np.ndarray:
    """Downscale to fit max_size (width, height) keeping aspect ratio; never upscales."""

    height, width = image.shape[:2]
    max_width, max_height = max_size
    scale = min(max_width / width, max_height / height, 1.0)
    if scale >= 1.0:
        return image
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)
