"""Exceptions raised by the gesture translator core."""


class TranslatorError(Exception):
    """Base class for gesture translator errors."""


class FrameUnavailable(TranslatorError):
    """No camera frame is ready. Treated as a no-op tick, not a failure."""


class ClassificationError(TranslatorError):
    """The classifier failed to produce a usable probability vector."""


class ConfigurationError(TranslatorError):
    """Startup configuration is invalid (labels, model, or settings)."""
