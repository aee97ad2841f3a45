"""
Errors raised while extracting calibration data or compensating frames.
"""
from typing import Optional


class MalformedCalibrationError(ValueError):
    """Raised when the calibration record has the wrong size or fails a range check."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class IncompleteFrameError(ValueError):
    """Raised when a raw frame is short/malformed or no subpage 0 data is available."""

    def __init__(self, message: str, length: Optional[int] = None):
        self.length = length
        super().__init__(message)


class NumericDegenerateError(ValueError):
    """Raised for inputs that would only produce NaN/Inf (zero emissivity, zero gain, unordered ranges)."""
