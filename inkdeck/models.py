"""
Data models for inkdeck documents.

This module contains the dataclasses used to represent a deck: slides, the
drawable elements on them, binary attachments and the document size. Element
records follow the drawing surface's JSON shape (camelCase keys); fields the
model does not know about are carried in ``extra`` so they survive a round trip.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Type

from .errors import ValidationError

logger = logging.getLogger(__name__)

FRAME_ID = "frame"
DEFAULT_FRAME_WIDTH = 1080
DEFAULT_FRAME_HEIGHT = 1080
MIN_DOCUMENT_SIDE = 100
MAX_SIZE_MULTIPLIER = 5
DEFAULT_BACKGROUND_COLOR = "#ffffff"
FRAME_STROKE_COLOR = "#228be6"
TRANSPARENT = "transparent"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check(value: Any, kind: str, key: str, element_id: str) -> Any:
    """Validate a single field value against its declared kind"""
    if kind == 'number':
        ok = _is_number(value)
    elif kind == 'str':
        ok = isinstance(value, str)
    elif kind == 'optional_str':
        ok = value is None or isinstance(value, str)
    elif kind == 'bool':
        ok = isinstance(value, bool)
    elif kind == 'list':
        ok = isinstance(value, list)
    elif kind == 'points':
        ok = isinstance(value, list) and all(
            isinstance(p, (list, tuple)) and len(p) == 2 and all(_is_number(c) for c in p)
            for p in value
        )
        if ok:
            value = [list(p) for p in value]
    else:
        ok = True
    if not ok:
        raise ValidationError(f"Element {element_id!r}: field {key!r} has invalid value {value!r}")
    return copy.deepcopy(value) if isinstance(value, (list, dict)) else value


@dataclass(frozen=True)
class DocumentSize:
    """Represents the shared width/height of every slide"""
    width: int
    height: int

    def clamped(self) -> 'DocumentSize':
        """Clamp both sides into the supported range"""
        return DocumentSize(
            width=max(MIN_DOCUMENT_SIDE, min(DEFAULT_FRAME_WIDTH * MAX_SIZE_MULTIPLIER, int(self.width))),
            height=max(MIN_DOCUMENT_SIDE, min(DEFAULT_FRAME_HEIGHT * MAX_SIZE_MULTIPLIER, int(self.height))),
        )

    def to_data(self) -> Dict[str, int]:
        return {'width': self.width, 'height': self.height}

    @classmethod
    def from_data(cls, data: Any) -> 'DocumentSize':
        if not isinstance(data, dict) or not _is_number(data.get('width')) or not _is_number(data.get('height')):
            raise ValidationError(f"Invalid document size: {data!r}")
        return cls(width=int(data['width']), height=int(data['height']))


DEFAULT_DOCUMENT_SIZE = DocumentSize(DEFAULT_FRAME_WIDTH, DEFAULT_FRAME_HEIGHT)


@dataclass
class Element:
    """Base class for all drawable elements"""
    id: str
    type: str
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    angle: float = 0
    stroke_color: str = "#1e1e1e"
    background_color: str = TRANSPARENT
    fill_style: str = "solid"
    stroke_width: float = 1
    stroke_style: str = "solid"
    roughness: float = 1
    opacity: float = 100
    group_ids: List[str] = field(default_factory=list)
    locked: bool = False
    is_deleted: bool = False
    version: int = 1
    extra: Dict[str, Any] = field(default_factory=dict)

    # (attribute, json key, kind)
    COMMON_FIELDS = (
        ('x', 'x', 'number'),
        ('y', 'y', 'number'),
        ('width', 'width', 'number'),
        ('height', 'height', 'number'),
        ('angle', 'angle', 'number'),
        ('stroke_color', 'strokeColor', 'str'),
        ('background_color', 'backgroundColor', 'str'),
        ('fill_style', 'fillStyle', 'str'),
        ('stroke_width', 'strokeWidth', 'number'),
        ('stroke_style', 'strokeStyle', 'str'),
        ('roughness', 'roughness', 'number'),
        ('opacity', 'opacity', 'number'),
        ('group_ids', 'groupIds', 'list'),
        ('locked', 'locked', 'bool'),
        ('is_deleted', 'isDeleted', 'bool'),
        ('version', 'version', 'number'),
    )
    KIND_FIELDS = ()

    @classmethod
    def field_table(cls):
        return cls.COMMON_FIELDS + cls.KIND_FIELDS

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> 'Element':
        """Create an element instance from its JSON record"""
        element_id = data['id']
        kwargs: Dict[str, Any] = {}
        known = {'id', 'type'}
        for attr, key, kind in cls.field_table():
            known.add(key)
            if key in data:
                kwargs[attr] = _check(data[key], kind, key, element_id)
        extra = {k: copy.deepcopy(v) for k, v in data.items() if k not in known}
        return cls(id=element_id, type=data['type'], extra=extra, **kwargs)

    def to_data(self) -> Dict[str, Any]:
        """Serialize back to the JSON record shape"""
        data: Dict[str, Any] = {'id': self.id, 'type': self.type}
        for attr, key, _ in self.field_table():
            data[key] = copy.deepcopy(getattr(self, attr))
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data

    def clone(self) -> 'Element':
        return copy.deepcopy(self)

    @property
    def is_frame_boundary(self) -> bool:
        return self.id == FRAME_ID


@dataclass
class ShapeElement(Element):
    """Represents a closed shape (rectangle, ellipse, diamond)"""


@dataclass
class FrameBoundary(ShapeElement):
    """The locked rectangle that defines a slide's visible canvas"""

    @classmethod
    def create(cls, size: DocumentSize = DEFAULT_DOCUMENT_SIZE) -> 'FrameBoundary':
        return cls(
            id=FRAME_ID,
            type='rectangle',
            x=0,
            y=0,
            width=size.width,
            height=size.height,
            stroke_color=FRAME_STROKE_COLOR,
            background_color=TRANSPARENT,
            fill_style='solid',
            stroke_width=1,
            stroke_style='dashed',
            roughness=0,
            opacity=100,
            locked=True,
        )


@dataclass
class LinearElement(Element):
    """Represents a polyline element (line, arrow, freedraw)"""
    points: List[List[float]] = field(default_factory=list)

    KIND_FIELDS = (
        ('points', 'points', 'points'),
    )


@dataclass
class TextElement(Element):
    """Represents a text element"""
    text: str = ""
    font_size: float = 20
    font_family: int = 1
    text_align: str = "left"
    vertical_align: str = "top"

    KIND_FIELDS = (
        ('text', 'text', 'str'),
        ('font_size', 'fontSize', 'number'),
        ('font_family', 'fontFamily', 'number'),
        ('text_align', 'textAlign', 'str'),
        ('vertical_align', 'verticalAlign', 'str'),
    )


@dataclass
class ImageElement(Element):
    """Represents an image placeholder bound to an attachment"""
    file_id: Optional[str] = None
    status: str = "pending"
    scale: List[float] = field(default_factory=lambda: [1, 1])

    KIND_FIELDS = (
        ('file_id', 'fileId', 'optional_str'),
        ('status', 'status', 'str'),
        ('scale', 'scale', 'list'),
    )


# Element type registry - maps surface element types to their classes
ELEMENT_REGISTRY: Dict[str, Type[Element]] = {
    'rectangle': ShapeElement,
    'ellipse': ShapeElement,
    'diamond': ShapeElement,
    'line': LinearElement,
    'arrow': LinearElement,
    'freedraw': LinearElement,
    'text': TextElement,
    'image': ImageElement,
}


def element_from_data(data: Any) -> Element:
    """Validate an element record and build the matching element class"""
    if isinstance(data, Element):
        return data.clone()
    if not isinstance(data, dict):
        raise ValidationError(f"Element record must be an object, got {type(data).__name__}")
    element_id = data.get('id')
    element_type = data.get('type')
    if not isinstance(element_id, str) or not element_id:
        raise ValidationError(f"Element record without a valid id: {element_id!r}")
    if not isinstance(element_type, str) or not element_type:
        raise ValidationError(f"Element {element_id!r} has no type")

    if element_id == FRAME_ID:
        if element_type != 'rectangle':
            raise ValidationError(f"Frame boundary must be a rectangle, got {element_type!r}")
        return FrameBoundary.from_data(data)

    element_class = ELEMENT_REGISTRY.get(element_type, Element)
    if element_class is Element:
        logger.debug("Unknown element type %s, keeping it as a generic element", element_type)
    return element_class.from_data(data)


def elements_from_data(records: Any) -> List[Element]:
    if not isinstance(records, list):
        raise ValidationError("Element list must be an array")
    return [element_from_data(record) for record in records]


def elements_to_data(elements: List[Element]) -> List[Dict[str, Any]]:
    return [element.to_data() for element in elements]


def find_frame(elements: List[Element]) -> Optional[Element]:
    """Return the frame boundary of an element list, if any"""
    for element in elements:
        if element.is_frame_boundary:
            return element
    return None


@dataclass
class Slide:
    """Represents one slide of the deck"""
    id: str
    elements: List[Element] = field(default_factory=list)

    @property
    def frame(self) -> Optional[Element]:
        return find_frame(self.elements)

    @classmethod
    def from_data(cls, data: Any) -> 'Slide':
        if not isinstance(data, dict):
            raise ValidationError("Slide record must be an object")
        slide_id = data.get('id')
        if not isinstance(slide_id, str) or not slide_id:
            raise ValidationError(f"Slide without a valid id: {slide_id!r}")
        elements = elements_from_data(data.get('elements', []))
        frames = [e for e in elements if e.is_frame_boundary]
        if len(frames) > 1:
            raise ValidationError(f"Slide {slide_id!r} has {len(frames)} frame boundaries")
        return cls(id=slide_id, elements=elements)

    def to_data(self) -> Dict[str, Any]:
        return {'id': self.id, 'elements': elements_to_data(self.elements)}

    def clone(self) -> 'Slide':
        return copy.deepcopy(self)


@dataclass
class FileAttachment:
    """Binary attachment referenced by image elements"""
    id: str
    mime_type: str
    data_url: str
    created: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_data(cls, file_id: str, data: Any) -> 'FileAttachment':
        if not isinstance(data, dict):
            raise ValidationError(f"Attachment {file_id!r} must be an object")
        mime_type = data.get('mimeType', '')
        data_url = data.get('dataURL')
        created = data.get('created', 0)
        if not isinstance(data_url, str) or not data_url.startswith('data:'):
            raise ValidationError(f"Attachment {file_id!r} has no data URL")
        if not isinstance(mime_type, str) or not _is_number(created):
            raise ValidationError(f"Attachment {file_id!r} has invalid metadata")
        extra = {k: copy.deepcopy(v) for k, v in data.items()
                 if k not in ('id', 'mimeType', 'dataURL', 'created')}
        return cls(id=file_id, mime_type=mime_type, data_url=data_url, created=created, extra=extra)

    def to_data(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'mimeType': self.mime_type,
            'dataURL': self.data_url,
            'created': self.created,
        }
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data


def files_from_data(data: Any) -> Dict[str, FileAttachment]:
    if not isinstance(data, dict):
        raise ValidationError("File map must be an object")
    return {file_id: FileAttachment.from_data(file_id, record) for file_id, record in data.items()}


def files_to_data(files: Dict[str, FileAttachment]) -> Dict[str, Any]:
    return {file_id: attachment.to_data() for file_id, attachment in files.items()}


@dataclass(frozen=True)
class SelectionRange:
    """Inclusive range of slide indices with a fixed anchor and a moving end"""
    anchor: int
    moving: int

    @property
    def start(self) -> int:
        return min(self.anchor, self.moving)

    @property
    def end(self) -> int:
        return max(self.anchor, self.moving)

    def __contains__(self, index: int) -> bool:
        return self.start <= index <= self.end

    def __len__(self) -> int:
        return self.end - self.start + 1
