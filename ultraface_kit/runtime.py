from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DetectorConfig
from .decode import decode_candidates
from .errors import InvalidPixelFormat, NotInitialized, ShapeMismatch
from .nms import suppress
from .pack import new_input_tensor, pack_pixels
from .resize import resize_to_model
from .types import Detection


PathLike = Union[str, Path]
BackendFactory = Callable[[Path], Any]
ResizeFn = Callable[[np.ndarray, Tuple[int, int]], np.ndarray]

LOGGER = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live next to the project (e.g. `models/version-RFB-320.onnx`).
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def backend_factory_for(
    model_path: PathLike,
    backend: Optional[str] = None,
    *,
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_input_size: Tuple[int, int] = (320, 240),
) -> BackendFactory:
    """
    Pick an inference backend from `backend` or, when None, from the model file extension.
    """

    chosen = backend
    if chosen is None:
        suffix = Path(model_path).suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    if chosen == "onnxruntime":

        def _open_onnx(path: Path) -> Any:
            from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

            return OnnxRuntimeBackend(path, OnnxRuntimeBackendConfig(providers=onnx_providers))

        return _open_onnx

    if chosen == "torchscript":

        def _open_torchscript(path: Path) -> Any:
            from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

            return TorchScriptBackend(
                path,
                TorchScriptBackendConfig(input_size=torch_input_size, device=torch_device),
            )

        return _open_torchscript

    raise ValueError(f"Unsupported backend: {backend!r}")


class Detector:
    """
    Face detector: resize -> pack -> inference -> decode -> NMS.

    Expects OpenCV-style uint8 images (B, G, R[, A]) and returns `Detection`s
    in original image coordinates.

    Call `initialize()` once before `detect()`, and `dispose()` when done (or
    use the detector as a context manager). The input tensor is reused across
    calls, so a single instance must not run `detect()` concurrently.
    """

    def __init__(
        self,
        model_path: PathLike,
        confidence_threshold: float = 0.75,
        iou_threshold: float = 0.5,
        *,
        backend: Optional[str] = None,
        backend_factory: Optional[BackendFactory] = None,
        resize_fn: Optional[ResizeFn] = None,
        onnx_providers: Optional[Sequence[str]] = None,
    ):
        self.model_path = Path(model_path)
        self._config = DetectorConfig(
            confidence_threshold=confidence_threshold,
            iou_threshold=iou_threshold,
        )
        self._backend_name = backend
        self._backend_factory = backend_factory
        self._onnx_providers = onnx_providers
        self._resize_fn: ResizeFn = resize_fn or resize_to_model

        self._backend: Optional[Any] = None
        self._input_tensor: Optional[np.ndarray] = None
        self._model_width = 0
        self._model_height = 0
        self._disposed = False

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def confidence_threshold(self) -> float:
        return self._config.confidence_threshold

    @property
    def iou_threshold(self) -> float:
        return self._config.iou_threshold

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    @property
    def input_size(self) -> Tuple[int, int]:
        """(width, height) expected by the model."""
        self._require_initialized()
        return self._model_width, self._model_height

    def initialize(self) -> None:
        if self._backend is not None:
            raise RuntimeError("Detector is already initialized.")
        if self._disposed:
            raise RuntimeError("Detector has been disposed and cannot be re-initialized.")

        factory = self._backend_factory or backend_factory_for(
            self.model_path, self._backend_name, onnx_providers=self._onnx_providers
        )
        backend = factory(self.model_path.resolve())
        try:
            shape = tuple(int(d) for d in backend.input_shape)
            if len(shape) != 4 or shape[0] != 1 or shape[1] != 3:
                raise ShapeMismatch(f"Expected model input (1, 3, H, W), got {shape}")
            _, _, height, width = shape
            input_tensor = new_input_tensor(width, height)
        except Exception:
            backend.close()
            raise

        self._backend = backend
        self._model_width, self._model_height = width, height
        self._input_tensor = input_tensor
        LOGGER.info(
            "Detector ready: model=%s input=%dx%d boxes=%s scores=%s",
            self.model_path,
            width,
            height,
            backend.boxes_shape,
            backend.scores_shape,
        )

    def detect(self, image: np.ndarray) -> List[Detection]:
        self._require_initialized()
        if image is None or not hasattr(image, "shape"):
            raise TypeError("image must be a NumPy array.")
        if image.ndim != 3:
            raise InvalidPixelFormat(f"Expected (H, W, 3) or (H, W, 4) pixels, got shape {image.shape}")

        orig_h, orig_w = image.shape[:2]
        resized = self._resize_fn(image, (self._model_width, self._model_height))
        pack_pixels(resized, self._model_width, self._model_height, out=self._input_tensor)

        boxes, scores = self._backend.run(self._input_tensor)

        candidates = decode_candidates(
            boxes,
            scores,
            orig_w,
            orig_h,
            self._config.confidence_threshold,
        )
        detections = suppress(candidates, self._config.iou_threshold)
        LOGGER.debug("candidates=%d detections=%d", len(candidates), len(detections))
        return detections

    def __call__(self, image: np.ndarray) -> List[Detection]:
        return self.detect(image)

    def dispose(self) -> None:
        backend, self._backend = self._backend, None
        self._input_tensor = None
        self._disposed = True
        if backend is not None:
            backend.close()

    def __enter__(self) -> "Detector":
        if self._backend is None:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _require_initialized(self) -> None:
        if self._backend is None:
            raise NotInitialized("Detector.initialize() must be called before use.")


def load_detector(
    model_path: PathLike,
    *,
    config: Optional[DetectorConfig] = None,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
    torch_input_size: Tuple[int, int] = (320, 240),
) -> Detector:
    """
    Create and initialize a detector for a model on disk.

    Typical usage:
        detector = load_detector("models/version-RFB-320.onnx")  # resolves from project root by default

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        config: thresholds; defaults to DetectorConfig()
        backend: "onnxruntime" (default for .onnx), "torchscript", or None to infer from extension
    """

    cfg = config or DetectorConfig()
    resolved = resolve_path(model_path, root=root)
    factory = backend_factory_for(
        resolved,
        backend,
        onnx_providers=onnx_providers,
        torch_device=torch_device,
        torch_input_size=torch_input_size,
    )
    detector = Detector(
        resolved,
        confidence_threshold=cfg.confidence_threshold,
        iou_threshold=cfg.iou_threshold,
        backend_factory=factory,
    )
    detector.initialize()
    return detector
