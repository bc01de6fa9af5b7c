"""
Core module for the slide deck editor and exporter.
"""
from .document import Document, DocumentEvent, DocumentEventKind, DocumentState
from .fonts import FontFace, FontRegistry, font_id
from .selection import SelectionController, Clipboard, InMemoryClipboard, DragPayload
from .commands import Command, CommandDispatcher
from .synchronizer import DrawingSurface, SceneSynchronizer
from .coordinate_converter import CoordinateConverter, BoundingBox
from .image_handler import ImageHandler
from .renderer import SlideRenderer
from .stroke_animation import StrokeAnimator, AnimatedSlide
from .playback import SlideShow, StrokeAnimationPlayer
from .jobs import ExportFormat, ExportJob, ExportResult, JobState
from .pipeline import ExportPipeline
from .persistence import SnapshotCodec, choose_snapshot
from .session import EditorSession

from .models import (
    DocumentSize, Element, ShapeElement, FrameBoundary, LinearElement,
    TextElement, ImageElement, Slide, FileAttachment, SelectionRange,
    ELEMENT_REGISTRY
)

from .errors import (
    InkdeckError, ValidationError, RenderError, UnsupportedCapabilityError,
    ResourceFetchError, ExportBusyError, ExportCancelledError
)

__all__ = [
    'Document', 'DocumentEvent', 'DocumentEventKind', 'DocumentState',
    'FontFace', 'FontRegistry', 'font_id',
    'SelectionController', 'Clipboard', 'InMemoryClipboard', 'DragPayload',
    'Command', 'CommandDispatcher',
    'DrawingSurface', 'SceneSynchronizer',
    'CoordinateConverter', 'BoundingBox',
    'ImageHandler',
    'SlideRenderer',
    'StrokeAnimator', 'AnimatedSlide',
    'SlideShow', 'StrokeAnimationPlayer',
    'ExportFormat', 'ExportJob', 'ExportResult', 'JobState',
    'ExportPipeline',
    'SnapshotCodec', 'choose_snapshot',
    'EditorSession',

    # Data classes
    'DocumentSize', 'Element', 'ShapeElement', 'FrameBoundary', 'LinearElement',
    'TextElement', 'ImageElement', 'Slide', 'FileAttachment', 'SelectionRange',
    'ELEMENT_REGISTRY',

    'InkdeckError', 'ValidationError', 'RenderError', 'UnsupportedCapabilityError',
    'ResourceFetchError', 'ExportBusyError', 'ExportCancelledError',
]
