"""
Exception types raised by the document, persistence and export layers.
"""
from typing import Optional


class InkdeckError(Exception):
    """Base class for all inkdeck errors"""


class ValidationError(InkdeckError):
    """A snapshot, clipboard envelope or element record is malformed"""


class RenderError(InkdeckError):
    """A slide failed to rasterize or vectorize during an export"""

    def __init__(self, slide_index: int, message: str = "", cause: Optional[BaseException] = None):
        self.slide_index = slide_index
        self.cause = cause
        super().__init__(message or f"Failed to render slide {slide_index}")


class UnsupportedCapabilityError(InkdeckError):
    """The runtime lacks an encoding capability required by a job"""


class ResourceFetchError(InkdeckError):
    """A remote snippet was unreachable or did not contain a usable snapshot"""


class ExportBusyError(InkdeckError):
    """An export job was started while another one is still in flight"""


class ExportCancelledError(InkdeckError):
    """An export job was cancelled before it completed"""
