"""
Pre/post-processing around UltraFace-style face detectors.

Turns an OpenCV image into the planar tensor the network expects, decodes the
(boxes, scores) head into face candidates and removes overlaps with NMS.
Inference runtimes (ONNX Runtime, TorchScript) are optional and imported lazily.
"""

from .types import Candidate, Detection
from .errors import InvalidPixelFormat, NotInitialized, ShapeMismatch, UltraFaceError
from .pack import new_input_tensor, pack_pixels
from .resize import resize_to_model
from .decode import decode_candidates
from .nms import NMSConfig, iou, nms, suppress
from .config import DetectorConfig, load_detector_config
from .runtime import Detector, backend_factory_for, find_project_root, load_detector, resolve_path

__all__ = [
    "Candidate",
    "Detection",
    "UltraFaceError",
    "InvalidPixelFormat",
    "NotInitialized",
    "ShapeMismatch",
    "new_input_tensor",
    "pack_pixels",
    "resize_to_model",
    "decode_candidates",
    "NMSConfig",
    "iou",
    "nms",
    "suppress",
    "DetectorConfig",
    "load_detector_config",
    "Detector",
    "backend_factory_for",
    "find_project_root",
    "load_detector",
    "resolve_path",
]
