"""
Snapshot codec.

A snapshot is the portable JSON form of a document plus the custom fonts its
text uses::

    {
        "name": "deck",
        "document": {"backgroundColor", "slides", "files", "documentSize"},
        "fonts": {"customFonts": {family: [font face, ...]}}
    }
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .document import Document, DocumentState
from .errors import ResourceFetchError, ValidationError
from .fonts import FontFace, FontRegistry, font_id, fonts_from_data
from .models import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_DOCUMENT_SIZE,
    DocumentSize,
    ImageElement,
    Slide,
    TextElement,
    files_from_data,
    files_to_data,
)

logger = logging.getLogger(__name__)

SNAPSHOT_EXTENSION = ".ink"


@dataclass
class ParsedSnapshot:
    """Fully validated snapshot, ready to be applied"""
    name: str
    state: DocumentState
    custom_fonts: Dict[str, List[FontFace]]


def with_extension(path: str) -> str:
    return path if path.endswith(SNAPSHOT_EXTENSION) else f"{path}{SNAPSHOT_EXTENSION}"


def referenced_file_ids(slides: List[Slide]) -> set:
    return {
        element.file_id
        for slide in slides
        for element in slide.elements
        if isinstance(element, ImageElement) and element.file_id and not element.is_deleted
    }


def used_font_ids(slides: List[Slide]) -> set:
    return {
        int(element.font_family)
        for slide in slides
        for element in slide.elements
        if isinstance(element, TextElement) and not element.is_deleted
    }


class SnapshotCodec:
    """Reads and writes snapshots for a document and its font registry"""

    def __init__(self, document: Document, fonts: FontRegistry):
        self.document = document
        self.fonts = fonts

    # ------------------------------------------------------------------
    # export
    # ------------------------------------------------------------------

    def export_snapshot(self, name: Optional[str] = None) -> Dict[str, Any]:
        """Serialize the document, dropping unreferenced files and unused fonts"""
        state = self.document.snapshot()
        file_ids = referenced_file_ids(state.slides)
        files = {fid: f for fid, f in state.files.items() if fid in file_ids}
        font_ids = used_font_ids(state.slides)
        families = [family for family in self.fonts.families() if font_id(family) in font_ids]

        dropped = len(state.files) - len(files)
        if dropped:
            logger.debug("Dropped %d unreferenced attachment(s) from snapshot", dropped)

        return {
            'name': name if name is not None else state.filename,
            'document': {
                'backgroundColor': state.background_color,
                'slides': [slide.to_data() for slide in state.slides],
                'files': files_to_data(files),
                'documentSize': state.document_size.to_data(),
            },
            'fonts': {
                'customFonts': self.fonts.to_data(families),
            },
        }

    def dumps(self, name: Optional[str] = None) -> str:
        return json.dumps(self.export_snapshot(name), indent=2)

    def save(self, path: str) -> str:
        """Write the snapshot to ``path`` (extension added when missing)"""
        path = with_extension(path)
        name = os.path.splitext(os.path.basename(path))[0]
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(name))
        logger.info("Saved snapshot %s", path)
        return path

    # ------------------------------------------------------------------
    # import
    # ------------------------------------------------------------------

    def parse(self, data: Any, fallback_name: str = "") -> ParsedSnapshot:
        """
        Validate a snapshot without touching the document or the registry.

        Args:
            data: Decoded snapshot JSON
            fallback_name: Used when the snapshot carries no name

        Returns:
            ParsedSnapshot

        Raises:
            ValidationError: The snapshot is malformed in any way
        """
        if not isinstance(data, dict):
            raise ValidationError("Snapshot must be an object")
        document = data.get('document')
        if not isinstance(document, dict):
            raise ValidationError("Snapshot has no document")

        slides_data = document.get('slides')
        if not isinstance(slides_data, list) or not slides_data:
            raise ValidationError("Snapshot document needs at least one slide")
        slides = [Slide.from_data(record) for record in slides_data]
        ids = [slide.id for slide in slides]
        if len(set(ids)) != len(ids):
            raise ValidationError("Snapshot contains duplicate slide ids")

        background = document.get('backgroundColor', DEFAULT_BACKGROUND_COLOR)
        if not isinstance(background, str):
            raise ValidationError("backgroundColor must be a string")
        size_data = document.get('documentSize')
        size = DEFAULT_DOCUMENT_SIZE if size_data is None else DocumentSize.from_data(size_data)
        files = files_from_data(document.get('files', {}))

        fonts = data.get('fonts', {})
        if not isinstance(fonts, dict):
            raise ValidationError("fonts must be an object")
        custom_fonts = fonts_from_data(fonts.get('customFonts', {}))
        self._check_font_ids(custom_fonts)

        name = data.get('name') or fallback_name
        if not isinstance(name, str):
            raise ValidationError("Snapshot name must be a string")

        state = DocumentState(
            slides=slides,
            document_size=size,
            background_color=background,
            files=files,
            filename=name,
        )
        return ParsedSnapshot(name=name, state=state, custom_fonts=custom_fonts)

    def _check_font_ids(self, custom_fonts: Dict[str, List[FontFace]]):
        for family in custom_fonts:
            owner = self.fonts.family_for_id(font_id(family))
            if owner is not None and owner != family:
                raise ValidationError(f"Font id collision between {owner!r} and {family!r}")

    def import_snapshot(self, data: Any, fallback_name: str = "") -> ParsedSnapshot:
        """Replace the document and add missing font families"""
        parsed = self.parse(data, fallback_name)
        self.document.reset(parsed.state)
        added = self.fonts.merge_missing(parsed.custom_fonts)
        logger.info("Imported snapshot %r: %d slide(s), %d new font famil(ies)",
                    parsed.name, len(parsed.state.slides), len(added))
        return parsed

    def loads(self, text: str, fallback_name: str = "") -> ParsedSnapshot:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Snapshot is not valid JSON: {e}") from e
        return self.import_snapshot(data, fallback_name)

    def load(self, path: str) -> ParsedSnapshot:
        """Import a snapshot file; the file stem names unnamed snapshots"""
        stem = os.path.splitext(os.path.basename(path))[0]
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
        return self.loads(text, stem)


def choose_snapshot(result: Union[Dict[str, Any], List[Dict[str, Any]]],
                    filename: Optional[str] = None) -> Dict[str, Any]:
    """
    Pick one snapshot from a fetcher result.

    A fetcher returns either a single snapshot or a list of
    ``{"filename": ..., "content": snapshot}`` candidates. The named candidate
    wins; without a name the first one is used.
    """
    if isinstance(result, dict):
        return result
    if not isinstance(result, list) or not result:
        raise ResourceFetchError("No snapshot candidates were returned")
    if filename:
        for candidate in result:
            if isinstance(candidate, dict) and candidate.get('filename') == filename:
                return candidate['content']
        raise ResourceFetchError(f"File {filename!r} not found among {len(result)} candidate(s)")
    first = result[0]
    if not isinstance(first, dict) or 'content' not in first:
        raise ResourceFetchError("Malformed snapshot candidate")
    return first['content']
