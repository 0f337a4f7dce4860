from __future__ import annotations


class UltraFaceError(Exception):
    """Base class for errors raised by ultraface_kit."""


class InvalidPixelFormat(UltraFaceError, ValueError):
    """Source image does not carry the expected uint8 B,G,R(,A) pixel layout."""


class ShapeMismatch(UltraFaceError, ValueError):
    """Tensor or image dimensions disagree with what the model contract expects."""


class NotInitialized(UltraFaceError, RuntimeError):
    """Detector used before initialize() or after dispose()."""
