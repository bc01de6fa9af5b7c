"""
The canonical document: ordered slides, current slide, size, background and
attachments.

Every observable mutation is announced to subscribers as a DocumentEvent.
Writes that would not change anything are suppressed and announce nothing.
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .models import (
    DEFAULT_BACKGROUND_COLOR, DEFAULT_DOCUMENT_SIZE,
    DocumentSize, Element, FileAttachment, FrameBoundary, Slide, find_frame,
)

logger = logging.getLogger(__name__)


class DocumentEventKind(Enum):
    """Kinds of observable document mutations"""
    SLIDE_ADDED = "slide_added"
    SLIDE_UPDATED = "slide_updated"
    SLIDE_DELETED = "slide_deleted"
    SLIDES_REORDERED = "slides_reordered"
    CURRENT_CHANGED = "current_changed"
    SIZE_CHANGED = "size_changed"
    BACKGROUND_CHANGED = "background_changed"
    FILES_CHANGED = "files_changed"
    RESET = "reset"


@dataclass
class DocumentEvent:
    kind: DocumentEventKind
    index: Optional[int] = None


@dataclass
class DocumentState:
    """Plain, detached copy of the document contents"""
    slides: List[Slide]
    document_size: DocumentSize = DEFAULT_DOCUMENT_SIZE
    background_color: str = DEFAULT_BACKGROUND_COLOR
    files: Dict[str, FileAttachment] = field(default_factory=dict)
    filename: str = ""
    current_slide_index: int = 0


def generate_slide_id() -> str:
    return uuid.uuid4().hex


def normalize_frame(elements: List[Element], size: DocumentSize) -> List[Element]:
    """Ensure an element list has exactly one live frame boundary sized to ``size``"""
    frame = find_frame(elements)
    if frame is None:
        return [FrameBoundary.create(size)] + list(elements)
    frame.is_deleted = False
    frame.width = size.width
    frame.height = size.height
    return [e for e in elements if e is frame or not e.is_frame_boundary]


class Document:
    """Canonical slide collection shared by every editor service"""

    def __init__(self, document_size: DocumentSize = DEFAULT_DOCUMENT_SIZE):
        self.document_size = document_size.clamped()
        self.background_color = DEFAULT_BACKGROUND_COLOR
        self.files: Dict[str, FileAttachment] = {}
        self.filename = ""
        self.slides: List[Slide] = [self._new_slide()]
        self.current_slide_index = 0
        self._listeners: List[Callable[[DocumentEvent], None]] = []

    # ------------------------------------------------------------------
    # observation
    # ------------------------------------------------------------------

    def subscribe(self, listener: Callable[[DocumentEvent], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _emit(self, kind: DocumentEventKind, index: Optional[int] = None):
        event = DocumentEvent(kind, index)
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    @property
    def current_slide(self) -> Slide:
        return self.slides[self.current_slide_index]

    def __len__(self) -> int:
        return len(self.slides)

    def index_of(self, slide_id: str) -> Optional[int]:
        for index, slide in enumerate(self.slides):
            if slide.id == slide_id:
                return index
        return None

    def _check_index(self, index: int):
        if not 0 <= index < len(self.slides):
            raise IndexError(f"Slide index {index} out of range (0..{len(self.slides) - 1})")

    def _new_slide(self, elements: Optional[List[Element]] = None) -> Slide:
        if elements is None:
            elements = [FrameBoundary.create(self.document_size)]
        else:
            elements = normalize_frame([e.clone() for e in elements], self.document_size)
        return Slide(id=generate_slide_id(), elements=elements)

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    def add_slide(self) -> Slide:
        """Append a blank slide and make it current"""
        slide = self._new_slide()
        self.slides.append(slide)
        self.current_slide_index = len(self.slides) - 1
        logger.debug("Added slide %s at %d", slide.id, self.current_slide_index)
        self._emit(DocumentEventKind.SLIDE_ADDED, self.current_slide_index)
        return slide

    def add_slide_after_index(self, index: int, elements: Optional[List[Element]] = None) -> Slide:
        """Insert a slide right after ``index``; the current index is left to the caller"""
        self._check_index(index)
        slide = self._new_slide(elements)
        self.slides.insert(index + 1, slide)
        if self.current_slide_index > index:
            self.current_slide_index += 1
        self._emit(DocumentEventKind.SLIDE_ADDED, index + 1)
        return slide

    def update_slide(self, index: int, elements: List[Element]) -> bool:
        """Replace a slide's elements; returns False when nothing changed"""
        self._check_index(index)
        slide = self.slides[index]
        elements = normalize_frame([e.clone() for e in elements], self.document_size)
        if slide.elements == elements:
            return False
        slide.elements = elements
        self._emit(DocumentEventKind.SLIDE_UPDATED, index)
        return True

    def set_current_slide(self, index: int) -> bool:
        self._check_index(index)
        if index == self.current_slide_index:
            return False
        self.current_slide_index = index
        self._emit(DocumentEventKind.CURRENT_CHANGED, index)
        return True

    def delete_slide(self, index: int) -> bool:
        """Delete a slide; refused when it is the only one left"""
        self._check_index(index)
        if len(self.slides) <= 1:
            logger.info("Refusing to delete the last remaining slide")
            return False
        removed = self.slides.pop(index)
        self.current_slide_index = max(
            0, self.current_slide_index - (1 if index <= self.current_slide_index else 0)
        )
        logger.debug("Deleted slide %s, current is now %d", removed.id, self.current_slide_index)
        self._emit(DocumentEventKind.SLIDE_DELETED, index)
        return True

    def reorder_slides(self, from_index: int, to_index: int) -> bool:
        """Move a single slide; the current slide keeps being current"""
        self._check_index(from_index)
        self._check_index(to_index)
        if from_index == to_index:
            return False
        current_id = self.current_slide.id
        slide = self.slides.pop(from_index)
        self.slides.insert(to_index, slide)
        self.current_slide_index = self.index_of(current_id)
        self._emit(DocumentEventKind.SLIDES_REORDERED, to_index)
        return True

    def reorder_consecutive_slides(self, start_index: int, end_index: int, target_index: int) -> bool:
        """Move the inclusive block [start, end] as a unit to ``target_index``"""
        if start_index > end_index:
            start_index, end_index = end_index, start_index
        self._check_index(start_index)
        self._check_index(end_index)
        if not 0 <= target_index <= len(self.slides):
            raise IndexError(f"Target index {target_index} out of range")

        if start_index <= target_index <= end_index:
            return False

        count = end_index - start_index + 1
        adjusted = target_index - count if target_index > end_index else target_index
        if adjusted == start_index:
            return False

        current_id = self.current_slide.id
        moved = self.slides[start_index:end_index + 1]
        del self.slides[start_index:end_index + 1]
        self.slides[adjusted:adjusted] = moved
        self.current_slide_index = self.index_of(current_id)
        logger.debug("Moved slides %d..%d to %d", start_index, end_index, adjusted)
        self._emit(DocumentEventKind.SLIDES_REORDERED, adjusted)
        return True

    def set_document_size(self, size: DocumentSize) -> DocumentSize:
        """Clamp and apply a new size to every frame boundary"""
        size = size.clamped()
        if size == self.document_size:
            return size
        self.document_size = size
        for slide in self.slides:
            slide.elements = normalize_frame(slide.elements, size)
        logger.info("Document size set to %dx%d", size.width, size.height)
        self._emit(DocumentEventKind.SIZE_CHANGED)
        return size

    def set_background_color(self, color: str):
        if color == self.background_color:
            return
        self.background_color = color
        self._emit(DocumentEventKind.BACKGROUND_CHANGED)

    def set_files(self, files: Dict[str, FileAttachment]):
        """Replace the attachment map; unreferenced entries are kept"""
        if files == self.files:
            return
        self.files = dict(files)
        self._emit(DocumentEventKind.FILES_CHANGED)

    def set_filename(self, filename: str):
        self.filename = filename

    def reset(self, state: DocumentState):
        """Replace the whole document with a detached state"""
        if not state.slides:
            raise ValueError("A document needs at least one slide")
        self.document_size = state.document_size.clamped()
        self.background_color = state.background_color
        self.files = dict(state.files)
        self.slides = [
            Slide(id=s.id, elements=normalize_frame([e.clone() for e in s.elements], self.document_size))
            for s in state.slides
        ]
        self.filename = state.filename
        self.current_slide_index = 0
        logger.info("Document reset with %d slide(s)", len(self.slides))
        self._emit(DocumentEventKind.RESET)

    def snapshot(self) -> DocumentState:
        """Point-in-time deep copy used by exports"""
        return DocumentState(
            slides=copy.deepcopy(self.slides),
            document_size=self.document_size,
            background_color=self.background_color,
            files=copy.deepcopy(self.files),
            filename=self.filename,
            current_slide_index=self.current_slide_index,
        )
