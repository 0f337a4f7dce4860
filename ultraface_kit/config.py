from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


@dataclass(frozen=True)
class DetectorConfig:
    """
    Thresholds fixed for the lifetime of a Detector.

    - confidence_threshold: minimum foreground score (exclusive) to keep a candidate
    - iou_threshold: maximum overlap (inclusive) before a lower-scored box is suppressed

    Raw scores are compared, not calibrated, so any finite value is accepted.
    """

    confidence_threshold: float = 0.75
    iou_threshold: float = 0.5

    def __post_init__(self) -> None:
        if not math.isfinite(self.confidence_threshold):
            raise ValueError("confidence_threshold must be a finite number")
        if not math.isfinite(self.iou_threshold):
            raise ValueError("iou_threshold must be a finite number")


def _require_number(payload: Dict[str, Any], key: str, default: float) -> float:
    if key not in payload:
        return default
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def load_detector_config(path: Path) -> DetectorConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")

    allowed = {"confidence_threshold", "iou_threshold"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")

    defaults = DetectorConfig()
    return DetectorConfig(
        confidence_threshold=_require_number(payload, "confidence_threshold", defaults.confidence_threshold),
        iou_threshold=_require_number(payload, "iou_threshold", defaults.iou_threshold),
    )
