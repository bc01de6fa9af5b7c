"""
Slide selection: keyboard/click navigation, range selection, drag and drop,
and the duplicate/copy/paste commands.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .document import Document
from .errors import ValidationError
from .models import SelectionRange, Slide

logger = logging.getLogger(__name__)

SLIDE_ENVELOPE_TYPE = "SLIDE"


class Clipboard:
    """Text clipboard used for slide copy/paste"""

    def read_text(self) -> str:
        raise NotImplementedError

    def write_text(self, text: str):
        raise NotImplementedError


class InMemoryClipboard(Clipboard):
    """Process-local clipboard"""

    def __init__(self, text: str = ""):
        self.text = text

    def read_text(self) -> str:
        return self.text

    def write_text(self, text: str):
        self.text = text


@dataclass(frozen=True)
class DragPayload:
    """Slides lifted by a drag gesture"""
    start: int
    end: int
    is_range: bool = False

    @property
    def lifted(self) -> Tuple[int, ...]:
        return tuple(range(self.start, self.end + 1))


def encode_slide_envelope(slide: Slide) -> str:
    return json.dumps({'type': SLIDE_ENVELOPE_TYPE, 'data': slide.to_data()})


def decode_slide_envelope(text: str) -> Slide:
    """Parse a clipboard envelope; raises ValidationError for anything else"""
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValidationError(f"Clipboard does not contain JSON: {e}") from e
    if not isinstance(payload, dict) or payload.get('type') != SLIDE_ENVELOPE_TYPE:
        raise ValidationError("Clipboard content is not a slide envelope")
    if 'data' not in payload:
        raise ValidationError("Slide envelope has no data")
    return Slide.from_data(payload['data'])


class SelectionController:
    """Range selection layered over the document's current slide"""

    def __init__(self, document: Document, clipboard: Optional[Clipboard] = None):
        self.document = document
        self.clipboard = clipboard or InMemoryClipboard()
        self.range: Optional[SelectionRange] = None

    def _clamp(self, index: int) -> int:
        return max(0, min(len(self.document) - 1, index))

    def clear(self):
        self.range = None

    def selected_indices(self) -> Tuple[int, ...]:
        if self.range is None:
            return (self.document.current_slide_index,)
        return tuple(range(self.range.start, self.range.end + 1))

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    def move(self, delta: int):
        """Plain vertical navigation: collapse the range and step"""
        self.range = None
        self.document.set_current_slide(self._clamp(self.document.current_slide_index + delta))

    def extend(self, delta: int):
        """Range-extending navigation: keep the anchor, move the far end"""
        if self.range is None:
            current = self.document.current_slide_index
            self.range = SelectionRange(anchor=current, moving=current)
        moving = self._clamp(self.range.moving + delta)
        self.range = SelectionRange(anchor=self.range.anchor, moving=moving)
        self.document.set_current_slide(moving)

    def click(self, index: int, extend: bool = False):
        index = self._clamp(index)
        if extend:
            anchor = self.range.anchor if self.range else self.document.current_slide_index
            self.range = SelectionRange(anchor=anchor, moving=index)
        else:
            self.range = None
        self.document.set_current_slide(index)

    # ------------------------------------------------------------------
    # drag and drop
    # ------------------------------------------------------------------

    def drag_start(self, index: int) -> DragPayload:
        if self.range is not None and index in self.range:
            return DragPayload(self.range.start, self.range.end, is_range=True)
        self.range = None
        return DragPayload(index, index)

    def drop(self, payload: DragPayload, target_index: int) -> bool:
        """Apply a drop; returns False for a zero-displacement move"""
        try:
            if payload.is_range:
                moved = self.document.reorder_consecutive_slides(payload.start, payload.end, target_index)
                if moved:
                    count = payload.end - payload.start + 1
                    start = target_index - count if target_index > payload.end else target_index
                    self.range = SelectionRange(anchor=start, moving=start + count - 1)
                return moved
            if payload.start == target_index:
                return False
            return self.document.reorder_slides(payload.start, self._clamp(target_index))
        except IndexError as e:
            logger.error("Ignoring drop outside the deck: %s", e)
            return False

    # ------------------------------------------------------------------
    # slide commands
    # ------------------------------------------------------------------

    def delete(self) -> bool:
        """Delete the current slide only"""
        self.range = None
        return self.document.delete_slide(self.document.current_slide_index)

    def duplicate(self) -> Slide:
        current = self.document.current_slide_index
        slide = self.document.add_slide_after_index(current, self.document.current_slide.elements)
        self.range = None
        self.document.set_current_slide(current + 1)
        return slide

    def copy(self) -> bool:
        try:
            self.clipboard.write_text(encode_slide_envelope(self.document.current_slide))
            return True
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to copy slide to clipboard: %s", e)
            return False

    def paste(self) -> Optional[Slide]:
        try:
            text = self.clipboard.read_text()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to read clipboard: %s", e)
            return None
        try:
            pasted = decode_slide_envelope(text)
        except ValidationError as e:
            logger.warning("Ignoring paste: %s", e)
            return None

        current = self.document.current_slide_index
        slide = self.document.add_slide_after_index(current, pasted.elements)
        self.range = None
        self.document.set_current_slide(current + 1)
        return slide
