"""
Custom font registry.

Font families are a shared, cross-document pool: importing a snapshot only
adds families that are missing, it never overwrites existing ones.
"""
import hashlib
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Iterable

from .errors import ValidationError

logger = logging.getLogger(__name__)

# Built-in surface font ids stay below this offset
CUSTOM_FONT_ID_OFFSET = 1000
_FONT_ID_HEX_DIGITS = 12


def font_id(font_family: str) -> int:
    """Map a family name to the numeric id used by text elements"""
    digest = hashlib.sha256(font_family.encode('utf-8')).hexdigest()
    return CUSTOM_FONT_ID_OFFSET + int(digest[:_FONT_ID_HEX_DIGITS], 16)


@dataclass
class FontFace:
    """One @font-face descriptor of a custom family"""
    font_family: str
    src: str
    font_style: str = "normal"
    font_weight: int = 400
    font_display: str = "swap"
    unicode_range: str = ""
    subset: str = ""

    _KEYS = {
        'font_family': 'fontFamily',
        'src': 'src',
        'font_style': 'fontStyle',
        'font_weight': 'fontWeight',
        'font_display': 'fontDisplay',
        'unicode_range': 'unicodeRange',
        'subset': 'subset',
    }

    @classmethod
    def from_data(cls, data: Any) -> 'FontFace':
        if not isinstance(data, dict):
            raise ValidationError("Font face must be an object")
        if not isinstance(data.get('fontFamily'), str) or not data['fontFamily']:
            raise ValidationError(f"Font face without family: {data!r}")
        if not isinstance(data.get('src'), str):
            raise ValidationError(f"Font face {data['fontFamily']!r} has no src")
        kwargs = {attr: data[key] for attr, key in cls._KEYS.items() if key in data}
        return cls(**kwargs)

    def to_data(self) -> Dict[str, Any]:
        values = asdict(self)
        return {key: values[attr] for attr, key in self._KEYS.items()}


class FontRegistry:
    """Registry of custom font families keyed by family name"""

    def __init__(self):
        self.custom_fonts: Dict[str, List[FontFace]] = {}
        self._ids: Dict[int, str] = {}

    def _register_id(self, family: str):
        fid = font_id(family)
        owner = self._ids.get(fid)
        if owner is not None and owner != family:
            raise ValidationError(f"Font id collision between {owner!r} and {family!r}")
        self._ids[fid] = family

    def add_fonts(self, font_faces: Iterable[FontFace]):
        """Append faces to their families, creating families as needed"""
        for face in font_faces:
            self._register_id(face.font_family)
            self.custom_fonts.setdefault(face.font_family, []).append(face)
            logger.debug("Registered font face %s %s", face.font_family, face.font_weight)

    def remove_font(self, font_family: str):
        if self.custom_fonts.pop(font_family, None) is not None:
            self._ids.pop(font_id(font_family), None)
            logger.info("Removed font family %s", font_family)

    def merge_missing(self, custom_fonts: Dict[str, List[FontFace]]) -> List[str]:
        """Add families that are not registered yet; returns the added names"""
        added = []
        for family, faces in custom_fonts.items():
            if family in self.custom_fonts:
                continue
            self.add_fonts(faces)
            added.append(family)
        return added

    def family_for_id(self, fid: int):
        return self._ids.get(fid)

    def families(self) -> List[str]:
        return list(self.custom_fonts)

    def __contains__(self, font_family: str) -> bool:
        return font_family in self.custom_fonts

    def to_data(self, families: Iterable[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        names = self.custom_fonts.keys() if families is None else families
        return {name: [face.to_data() for face in self.custom_fonts[name]] for name in names}


def fonts_from_data(data: Any) -> Dict[str, List[FontFace]]:
    if not isinstance(data, dict):
        raise ValidationError("customFonts must be an object")
    result = {}
    for family, faces in data.items():
        if not isinstance(faces, list):
            raise ValidationError(f"Font family {family!r} must list its faces")
        parsed = [FontFace.from_data(face) for face in faces]
        for face in parsed:
            if face.font_family != family:
                raise ValidationError(f"Font face {face.font_family!r} listed under family {family!r}")
        result[family] = parsed
    return result
