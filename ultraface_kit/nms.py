from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .types import Candidate, Detection


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5


def iou(a: Detection, b: Detection) -> float:
    """
    Overlap of two boxes as used by the UltraFace reference pipeline:
    intersection area divided by the area of the smallest box enclosing both.

    This is not the textbook union-of-areas IoU; it is kept as-is so results
    match the reference detector. Returns 0.0 when the boxes do not intersect
    or the enclosing box has no area.
    """

    iw = min(a.x2, b.x2) - max(a.x1, b.x1)
    ih = min(a.y2, b.y2) - max(a.y1, b.y1)
    if iw <= 0 or ih <= 0:
        return 0.0

    enclosing = (max(a.x2, b.x2) - min(a.x1, b.x1)) * (max(a.y2, b.y2) - min(a.y1, b.y1))
    if enclosing <= 0:
        return 0.0
    return (iw * ih) / enclosing


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Equal scores keep their input order (stable sort). A box is dropped only
    when its overlap with an already kept box is strictly greater than
    `cfg.iou_threshold`.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    boxes = np.asarray(boxes, dtype=np.float64)
    scores = np.asarray(scores, dtype=np.float64)
    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0:
        i = order[0]
        keep.append(i)
        rest = order[1:]

        w = np.minimum(x2[i], x2[rest]) - np.maximum(x1[i], x1[rest])
        h = np.minimum(y2[i], y2[rest]) - np.maximum(y1[i], y1[rest])
        inter = np.where((w > 0) & (h > 0), w * h, 0.0)

        # Enclosing box, not union of areas.
        ew = np.maximum(x2[i], x2[rest]) - np.minimum(x1[i], x1[rest])
        eh = np.maximum(y2[i], y2[rest]) - np.minimum(y1[i], y1[rest])
        enclosing = ew * eh
        overlap = np.divide(inter, enclosing, out=np.zeros_like(inter), where=enclosing > 0)

        order = rest[~(overlap > cfg.iou_threshold)]

    return np.array(keep, dtype=np.int64)


def suppress(candidates: Sequence[Candidate], iou_threshold: float) -> List[Detection]:
    """
    Greedy non-maximum suppression over decoded candidates.

    Returns the surviving candidates (same objects) in acceptance order:
    confidence descending, ties in input order.
    """

    if not candidates:
        return []

    boxes = np.array([c.as_xyxy() for c in candidates], dtype=np.float64)
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    keep_idx = nms(boxes, scores, NMSConfig(iou_threshold=iou_threshold))
    return [candidates[int(i)] for i in keep_idx]
