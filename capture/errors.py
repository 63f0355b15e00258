"""
capture.errors

Error types raised by the capture pipeline. Transient DOM problems never
surface as exceptions; they become interaction outcomes instead.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(eq=False)
class CaptureError(Exception):
    """Base error for a page capture.

    code: short error code (NAV_STATUS / NAV_TIMEOUT / LAUNCH ...)
    stage: pipeline stage where it happened (navigate / launch / capture ...)
    message: human readable message
    url: page being captured, when known
    original: underlying exception, when there is one
    """

    code: str
    stage: str
    message: str
    url: Optional[str] = None
    original: Optional[Exception] = None

    def __str__(self) -> str:
        base = f"[{self.code}@{self.stage}] {self.message}"
        if self.url:
            base += f" (url={self.url})"
        return base


class NavigationError(CaptureError):
    """Non-success response or load timeout; aborts that page only."""


class SessionError(CaptureError):
    """Browser launch failure."""
