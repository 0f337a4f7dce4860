"""
Optional inference backends for ultraface_kit.

Backends are kept in a separate module so core functionality (pre/post-processing)
stays lightweight and can be used without installing inference runtimes.

Each backend exposes `input_shape`, `run(blob) -> (boxes, scores)` and `close()`.
"""

from __future__ import annotations

__all__ = []
