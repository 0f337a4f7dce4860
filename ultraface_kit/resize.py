from typing import Tuple

import numpy as np


def resize_to_model(
    image: np.ndarray,
    new_size: Tuple[int, int],
    interpolation: str = "area",
) -> np.ndarray:
    """
    Stretch-resize an image to the network's fixed input resolution.

    UltraFace models are fed the whole frame without letterbox padding, so the
    aspect ratio is not preserved; decoded boxes are fractions of the frame and
    map straight back to the original size.

    Args:
        image: (H, W, C) uint8 array
        new_size: (width, height) target
        interpolation: "area" (default, best for downscaling), "cubic" or "linear"

    Returns:
        resized image, or the input itself if it already has the target size
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for resize_to_model(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape") or image.ndim != 3:
        raise ValueError(f"Expected image shape (H, W, C), got {getattr(image, 'shape', None)}")

    new_w, new_h = new_size
    if new_w <= 0 or new_h <= 0:
        raise ValueError(f"Target size must be positive, got {new_size}")

    flags = {
        "area": cv2.INTER_AREA,
        "cubic": cv2.INTER_CUBIC,
        "linear": cv2.INTER_LINEAR,
    }
    if interpolation not in flags:
        raise ValueError(f"Unsupported interpolation {interpolation!r}. Choose from {sorted(flags)}")

    h, w = image.shape[:2]
    if (w, h) == (new_w, new_h):
        return image

    # Upscaling with INTER_AREA falls back to nearest-ish behaviour; cubic is smoother.
    flag = flags[interpolation]
    if interpolation == "area" and (new_w > w or new_h > h):
        flag = cv2.INTER_CUBIC
    return cv2.resize(image, (new_w, new_h), interpolation=flag)
