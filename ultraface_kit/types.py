from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Detection:
    """
    A scored face box in image pixel coordinates (xyxy).

    The same type is used for decoded candidates (before NMS) and for the
    final detections returned by the detector.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float

    @classmethod
    def from_xywh(cls, left: float, top: float, width: float, height: float, score: float) -> "Detection":
        return cls(x1=left, y1=top, x2=left + width, y2=top + height, score=score)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.width, self.height

    def to_rect_i(self) -> Tuple[int, int, int, int]:
        """
        Integer xyxy rectangle, e.g. for drawing or cropping.

        Uses Python's round() (half to even) on each edge.
        """

        return int(round(self.x1)), int(round(self.y1)), int(round(self.x2)), int(round(self.y2))


# Decoded, not yet suppressed.
Candidate = Detection
