from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np


PathLike = Union[str, Path]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - input_size: (width, height) the model was traced with; TorchScript
      carries no input metadata, so it has to be given here
    - device: "cpu" or "cuda" (if available)
    - scores_index/boxes_index: positions in the model's output tuple
      (PyTorch UltraFace returns (scores, boxes))
    """

    input_size: Tuple[int, int] = (320, 240)
    device: str = "cpu"
    scores_index: int = 0
    boxes_index: int = 1


class TorchScriptBackend:
    """
    TorchScript backend using `torch.jit.load` for PyTorch UltraFace exports.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        width, height = cfg.input_size
        self.input_shape: Tuple[int, ...] = (1, 3, int(height), int(width))
        # Unknown until the first forward pass.
        self.boxes_shape: Optional[Tuple[int, ...]] = None
        self.scores_shape: Optional[Tuple[int, ...]] = None
        self.scores_index = cfg.scores_index
        self.boxes_index = cfg.boxes_index
        self.device = torch.device(cfg.device)

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model
        LOGGER.info("Loaded TorchScript model %s on %s", self.model_path, self.device)

    def run(self, blob: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        if self.model is None:
            raise RuntimeError("TorchScript model is closed.")

        torch = self._torch
        x = torch.as_tensor(blob, device=self.device).float().contiguous()

        with torch.no_grad():
            y = self.model(x)

        if not isinstance(y, (tuple, list)) or len(y) < 2:
            raise ValueError("Expected the model to return a (scores, boxes) tuple.")

        scores = y[self.scores_index].detach().to("cpu").numpy()
        boxes = y[self.boxes_index].detach().to("cpu").numpy()
        self.boxes_shape = tuple(boxes.shape)
        self.scores_shape = tuple(scores.shape)
        return boxes, scores

    def close(self) -> None:
        if self.model is None:
            return
        self.model = None
        LOGGER.info("Released TorchScript model %s", self.model_path)
