"""Exceptions raised inside facequiz.

Every error path in the round loop is recovered locally; these types exist
so the recovery sites can catch exactly what they expect.
"""


class FaceQuizError(Exception):
    """Base class for facequiz errors."""


class ImageLoadError(FaceQuizError):
    """Image bytes could not be fetched for a source locator."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Could not load image: {source}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class StoreError(FaceQuizError):
    """Persisted knowledge is unreadable or has an unexpected shape."""
