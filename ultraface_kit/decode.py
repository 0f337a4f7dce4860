from __future__ import annotations

from typing import List

import numpy as np

from .errors import ShapeMismatch
from .types import Candidate


def decode_candidates(
    raw_boxes: np.ndarray,
    raw_scores: np.ndarray,
    image_width: int,
    image_height: int,
    confidence_threshold: float,
) -> List[Candidate]:
    """
    Turn the raw (boxes, scores) head outputs into face candidates in pixel
    coordinates of the original image.

    Layout (per image, batch axis optional):
    - raw_scores: N rows of [background, foreground]
    - raw_boxes:  N rows of [left, top, right, bottom] as fractions of W/H

    A row is kept when foreground > confidence_threshold (strict) and
    background < foreground. Scores are compared, not calibrated, so the
    candidate confidence is the raw foreground score. Coordinates are scaled
    and clamped to [0, W] x [0, H]. Output keeps input row order.
    """

    # At least float32; float64 outputs are not rounded.
    scores = np.asarray(raw_scores)
    scores = scores.astype(np.result_type(scores.dtype, np.float32), copy=False).reshape(-1)
    boxes = np.asarray(raw_boxes)
    boxes = boxes.astype(np.result_type(boxes.dtype, np.float32), copy=False).reshape(-1)

    n = scores.size // 2
    if scores.size != 2 * n:
        raise ShapeMismatch(f"Scores length {scores.size} is not a multiple of 2.")
    if boxes.size != 4 * n:
        raise ShapeMismatch(f"Boxes length {boxes.size} does not match 4 * {n} candidates.")
    if n == 0:
        return []

    scores = scores.reshape(n, 2)
    boxes = boxes.reshape(n, 4)
    background = scores[:, 0]
    foreground = scores[:, 1]

    keep = (foreground > scores.dtype.type(confidence_threshold)) & (background < foreground)
    idx = np.flatnonzero(keep)
    if idx.size == 0:
        return []

    w = boxes.dtype.type(image_width)
    h = boxes.dtype.type(image_height)
    xyxy = boxes[idx] * np.array([w, h, w, h], dtype=boxes.dtype)
    xyxy[:, [0, 2]] = np.clip(xyxy[:, [0, 2]], 0, w)
    xyxy[:, [1, 3]] = np.clip(xyxy[:, [1, 3]], 0, h)

    return [
        Candidate(
            x1=float(x1),
            y1=float(y1),
            x2=float(x2),
            y2=float(y2),
            score=float(score),
        )
        for (x1, y1, x2, y2), score in zip(xyxy, foreground[idx])
    ]
