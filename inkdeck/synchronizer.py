"""
Scene synchronizer: the adapter between the interactive drawing surface and
the canonical document.

The document owns the slides. The synchronizer pushes canonical elements into
the surface when the live slide changes, and pulls the surface's elements back
only on defined triggers (selection change, completed pointer gesture).
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from .document import Document, DocumentEvent, DocumentEventKind, normalize_frame
from .errors import ValidationError
from .image_handler import ImageHandler
from .models import (
    FRAME_ID, Element, FileAttachment, ImageElement, element_from_data, find_frame,
)

logger = logging.getLogger(__name__)


def _resize(elements: List[Element], element_id: str, size) -> bool:
    for element in elements:
        if element.id == element_id:
            element.width, element.height = size
            return True
    return False


class DrawingSurface:
    """Interactive canvas that holds one slide live for direct manipulation"""

    def update_scene(self, elements: Optional[List[Element]] = None,
                     app_state: Optional[Dict[str, Any]] = None):
        raise NotImplementedError

    def scroll_to_content(self, element_id: str):
        raise NotImplementedError


class SceneSynchronizer:
    """Keeps the live surface and the canonical document in agreement"""

    def __init__(self, document: Document, surface: DrawingSurface,
                 image_handler: Optional[ImageHandler] = None):
        self.document = document
        self.surface = surface
        self.image_handler = image_handler or ImageHandler()
        self.live_slide_id: Optional[str] = None
        self._last_elements: List[Element] = []
        self._last_selected: Set[str] = set()
        self._last_file_ids: Set[str] = set()
        self._bindings: Dict[str, str] = {}
        self._pointer_down = False
        self._pending_focus: Optional[str] = None
        self._measurements: Set[asyncio.Task] = set()
        self._unsubscribe = None

    def attach(self):
        """Subscribe to the document and load the current slide into the surface"""
        if self._unsubscribe is None:
            self._unsubscribe = self.document.subscribe(self._on_document_event)
        self._last_file_ids = set(self.document.files)
        self._load_current_slide()

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ------------------------------------------------------------------
    # canonical -> surface
    # ------------------------------------------------------------------

    def _load_current_slide(self):
        slide = self.document.current_slide
        self.live_slide_id = slide.id
        self._last_elements = [e.clone() for e in slide.elements]
        self._last_selected = set()
        self._pointer_down = False
        self.surface.update_scene(
            elements=[e.clone() for e in slide.elements],
            app_state={'viewBackgroundColor': self.document.background_color},
        )
        self._pending_focus = FRAME_ID
        logger.debug("Slide %s is now live", slide.id)

    def _refresh_live(self):
        slide = self.document.current_slide
        self._last_elements = [e.clone() for e in slide.elements]
        self.surface.update_scene(elements=[e.clone() for e in slide.elements])

    def _on_document_event(self, event: DocumentEvent):
        if event.kind == DocumentEventKind.SIZE_CHANGED:
            self._refresh_live()
        elif event.kind == DocumentEventKind.BACKGROUND_CHANGED:
            self.surface.update_scene(app_state={'viewBackgroundColor': self.document.background_color})
        elif event.kind == DocumentEventKind.RESET:
            self._bindings.clear()
            self._last_file_ids = set(self.document.files)
            self._load_current_slide()
        elif self.document.current_slide.id != self.live_slide_id:
            self._load_current_slide()

    # ------------------------------------------------------------------
    # surface -> canonical
    # ------------------------------------------------------------------

    def _commit(self, elements: List[Element]) -> bool:
        index = self.document.index_of(self.live_slide_id)
        if index is None:
            return False
        return self.document.update_slide(index, elements)

    def handle_change(self, elements: Iterable[Any], files: Optional[Dict[str, FileAttachment]] = None,
                      selected_ids: Iterable[str] = ()) -> bool:
        """
        Process one change notification from the surface

        Args:
            elements: Current live element list (records or Element objects)
            files: Attachment map as known to the surface
            selected_ids: Ids of the currently selected elements

        Returns:
            True when the canonical slide was written
        """
        try:
            elements = [element_from_data(e) for e in elements]
            if files is not None:
                files = {
                    fid: f if isinstance(f, FileAttachment) else FileAttachment.from_data(fid, f)
                    for fid, f in files.items()
                }
        except ValidationError as e:
            logger.error("Dropping invalid change notification: %s", e)
            return False

        if self._pending_focus is not None:
            self.surface.scroll_to_content(self._pending_focus)
            self._pending_focus = None

        frame = find_frame(elements)
        if frame is None or frame.is_deleted:
            return self._heal(elements)

        self._restore_bindings(elements)
        self._last_elements = elements
        if files is not None and set(files) != self._last_file_ids:
            added = set(files) - self._last_file_ids
            self._last_file_ids = set(files)
            self.document.set_files({**self.document.files, **files})
            if added:
                self._bind_attachment(elements, {fid: files[fid] for fid in added})

        selected = set(selected_ids)
        if selected != self._last_selected:
            self._last_selected = selected
            return self._commit(elements)
        return False

    def pointer_down(self):
        self._pointer_down = True

    def pointer_up(self) -> bool:
        """Complete a gesture and persist the last seen elements"""
        if not self._pointer_down:
            return False
        self._pointer_down = False
        if not self._last_elements:
            return False
        return self._commit(self._last_elements)

    def _heal(self, elements: List[Element]) -> bool:
        logger.warning("Live slide lost its frame boundary, restoring it")
        healed = normalize_frame([e.clone() for e in elements], self.document.document_size)
        self._last_elements = healed
        self.surface.update_scene(elements=[e.clone() for e in healed])
        self._pending_focus = FRAME_ID
        return self._commit(healed)

    def handle_paste(self, pasted: Iterable[Any]) -> bool:
        """Merge externally pasted elements; False means the surface merges them itself"""
        try:
            pasted = [element_from_data(e) for e in pasted]
        except ValidationError as e:
            logger.warning("Ignoring paste: %s", e)
            return False
        current = self.document.current_slide
        existing_ids = {e.id for e in current.elements}
        if any(e.id in existing_ids for e in pasted):
            return False
        merged = [e.clone() for e in current.elements] + pasted
        self._commit(merged)
        self._last_elements = merged
        self.surface.update_scene(elements=[e.clone() for e in merged])
        return True

    # ------------------------------------------------------------------
    # attachments
    # ------------------------------------------------------------------

    def _bind_attachment(self, elements: List[Element], added: Dict[str, FileAttachment]):
        newest = max(added.values(), key=lambda f: f.created)
        target = None
        for element in reversed(elements):
            if isinstance(element, ImageElement) and element.file_id is None:
                target = element
                break
        if target is None:
            return
        target.file_id = newest.id
        target.status = 'saved'
        self._bindings[target.id] = newest.id
        logger.info("Bound attachment %s to image %s", newest.id, target.id)
        self.surface.update_scene(elements=[e.clone() for e in elements])
        self._commit(elements)
        self._schedule_measure(self.live_slide_id, target.id, newest)

    def _restore_bindings(self, elements: List[Element]):
        # the surface may still report an image as unbound after it was bound
        for element in elements:
            if isinstance(element, ImageElement) and element.file_id is None and element.id in self._bindings:
                element.file_id = self._bindings[element.id]
                element.status = 'saved'

    def _schedule_measure(self, slide_id: str, element_id: str, attachment: FileAttachment):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._apply_dimensions(slide_id, element_id, self.image_handler.get_image_info(attachment))
            return
        task = loop.create_task(self._measure(slide_id, element_id, attachment))
        self._measurements.add(task)
        task.add_done_callback(self._measurements.discard)

    async def _measure(self, slide_id: str, element_id: str, attachment: FileAttachment):
        size = await asyncio.to_thread(self.image_handler.get_image_info, attachment)
        self._apply_dimensions(slide_id, element_id, size)

    def _apply_dimensions(self, slide_id: str, element_id: str, size):
        if size is None:
            return
        index = self.document.index_of(slide_id)
        if index is None:
            return
        elements = [e.clone() for e in self.document.slides[index].elements]
        if not _resize(elements, element_id, size):
            return
        self.document.update_slide(index, elements)
        if slide_id == self.live_slide_id and _resize(self._last_elements, element_id, size):
            self.surface.update_scene(elements=[e.clone() for e in self._last_elements])

    async def drain(self):
        """Wait for outstanding image measurements"""
        while self._measurements:
            await asyncio.gather(*list(self._measurements))
