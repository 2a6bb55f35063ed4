from __future__ import annotations


class HealthScanError(Exception):
    """Base class for errors that map onto an HTTP error response."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, details: str) -> None:
        super().__init__(details)
        self.details = details


class InvalidImageError(HealthScanError):
    status_code = 400
    error = "Invalid image"


class UnsupportedBodyPartError(HealthScanError):
    status_code = 400
    error = "Unsupported body part"


class BackendUnavailableError(HealthScanError):
    """No classifier could be resolved for the requested body part."""

    error = "Model unavailable"


class ClassificationError(HealthScanError):
    """The classifier backend raised while scoring an image."""

    error = "Classification failed"


class NoPredictionsError(HealthScanError):
    error = "No predictions available"
