from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np


PathLike = Union[str, Path]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name: override the auto-selected (first) input
    - boxes_name/scores_name: names of the two head outputs
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    boxes_name: str = "boxes"
    scores_name: str = "scores"


def _static_shape(dims: Sequence[object], batch_default: int = 1) -> Tuple[Optional[int], ...]:
    """
    ORT reports symbolic dims as strings (or None). The batch axis is pinned to
    `batch_default`; other symbolic dims stay None.
    """

    shape = []
    for axis, d in enumerate(dims):
        if isinstance(d, (int, np.integer)) and int(d) > 0:
            shape.append(int(d))
        elif axis == 0:
            shape.append(batch_default)
        else:
            shape.append(None)
    return tuple(shape)


class OnnxRuntimeBackend:
    """
    ONNX Runtime backend for two-output (boxes, scores) face detectors.

    Expects an NCHW float32 blob shaped (1, 3, H, W). When both outputs have
    static shapes the results are written into buffers allocated once here
    (IO binding); dynamic exports fall back to a plain `session.run`.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        LOGGER.info("Opened ONNX Runtime session for %s (providers=%s)", self.model_path, self.providers_in_use)

        try:
            self._discover_io(cfg)
        except Exception:
            self.close()
            raise

    def _discover_io(self, cfg: OnnxRuntimeBackendConfig) -> None:
        inputs = {i.name: i for i in self.session.get_inputs()}
        if not inputs:
            raise RuntimeError("ONNX model has no inputs.")
        self.input_name = cfg.input_name or next(iter(inputs))
        if self.input_name not in inputs:
            raise ValueError(f"Input name {self.input_name!r} not found. Available: {sorted(inputs)}")

        input_shape = _static_shape(inputs[self.input_name].shape)
        if len(input_shape) != 4 or any(d is None for d in input_shape):
            raise ValueError(f"Expected a static NCHW input, got {inputs[self.input_name].shape}")
        self.input_shape: Tuple[int, ...] = input_shape  # type: ignore[assignment]

        outputs = {o.name: o for o in self.session.get_outputs()}
        for name in (cfg.boxes_name, cfg.scores_name):
            if name not in outputs:
                raise ValueError(f"Output name {name!r} not found. Available: {sorted(outputs)}")
        self.boxes_name = cfg.boxes_name
        self.scores_name = cfg.scores_name
        self.boxes_shape = _static_shape(outputs[self.boxes_name].shape)
        self.scores_shape = _static_shape(outputs[self.scores_name].shape)

        self._outputs: Dict[str, np.ndarray] = {}
        if all(d is not None for d in self.boxes_shape + self.scores_shape):
            self._outputs = {
                self.boxes_name: np.zeros(self.boxes_shape, dtype=np.float32),
                self.scores_name: np.zeros(self.scores_shape, dtype=np.float32),
            }

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    @property
    def uses_io_binding(self) -> bool:
        return bool(self._outputs)

    def run(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns (boxes, scores). With IO binding these are the backend's own
        buffers and are overwritten by the next call.
        """

        if self.session is None:
            raise RuntimeError("ONNX Runtime session is closed.")

        if not self._outputs:
            boxes, scores = self.session.run([self.boxes_name, self.scores_name], {self.input_name: blob})
            return np.asarray(boxes), np.asarray(scores)

        binding = self.session.io_binding()
        binding.bind_cpu_input(self.input_name, np.ascontiguousarray(blob, dtype=np.float32))
        for name, buf in self._outputs.items():
            binding.bind_ortvalue_output(name, self._ort.OrtValue.ortvalue_from_numpy(buf))
        self.session.run_with_iobinding(binding)
        return self._outputs[self.boxes_name], self._outputs[self.scores_name]

    def close(self) -> None:
        if self.session is None:
            return
        self.session = None
        LOGGER.info("Closed ONNX Runtime session for %s", self.model_path)
