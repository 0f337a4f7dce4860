from __future__ import annotations

from typing import Optional

import numpy as np

from .errors import InvalidPixelFormat, ShapeMismatch


SUPPORTED_CHANNELS = (3, 4)


def new_input_tensor(width: int, height: int) -> np.ndarray:
    """
    Allocate a zeroed NCHW float32 tensor shaped (1, 3, height, width).
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"Tensor size must be positive, got {(width, height)}")
    return np.zeros((1, 3, int(height), int(width)), dtype=np.float32)


def pack_pixels(
    image: np.ndarray,
    target_width: int,
    target_height: int,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Convert an already-resized uint8 image into the planar float tensor the
    network was trained on.

    The source is read in OpenCV byte order (B, G, R[, A]). Plane 0 receives
    byte 2, plane 1 byte 1 and plane 2 byte 0, each scaled by 1/255. Alpha is
    ignored. No resizing or other colour conversion happens here.

    Args:
        image: (H, W, 3) or (H, W, 4) uint8 array, H == target_height, W == target_width
        target_width/target_height: network input resolution
        out: optional (1, 3, H, W) float32 buffer written in place

    Returns:
        `out` if given, otherwise a newly allocated tensor.
    """

    if image is None or not hasattr(image, "shape"):
        raise TypeError("image must be a NumPy array.")
    if image.ndim != 3 or image.shape[2] not in SUPPORTED_CHANNELS:
        raise InvalidPixelFormat(
            f"Expected (H, W, 3) or (H, W, 4) pixels, got shape {getattr(image, 'shape', None)}"
        )
    if image.dtype != np.uint8:
        raise InvalidPixelFormat(f"Expected uint8 pixels, got {image.dtype}")

    h, w = image.shape[:2]
    if (w, h) != (target_width, target_height):
        raise ShapeMismatch(
            f"Image must be resized to {target_width}x{target_height} before packing, got {w}x{h}"
        )

    if out is None:
        out = new_input_tensor(target_width, target_height)
    elif out.dtype != np.float32 or out.shape != (1, 3, target_height, target_width):
        raise ShapeMismatch(
            f"Output buffer must be float32 {(1, 3, target_height, target_width)}, "
            f"got {out.dtype} {out.shape}"
        )

    # bytes 2, 1, 0 -> planes 0, 1, 2
    out[0] = np.transpose(image[:, :, 2::-1], (2, 0, 1))
    np.divide(out, np.float32(255.0), out=out)
    return out
