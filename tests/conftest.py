"""
Pytest Configuration and Fixtures
"""

import base64
import io
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from inkdeck.document import Document  # noqa: E402
from inkdeck.fonts import FontRegistry  # noqa: E402
from inkdeck.models import Element, element_from_data  # noqa: E402
from inkdeck.synchronizer import DrawingSurface  # noqa: E402


class FakeSurface(DrawingSurface):
    """Records every call the synchronizer makes"""

    def __init__(self):
        self.scenes: List[Dict[str, Any]] = []
        self.scrolled: List[str] = []

    def update_scene(self, elements: Optional[List[Element]] = None,
                     app_state: Optional[Dict[str, Any]] = None):
        self.scenes.append({'elements': elements, 'app_state': app_state})

    def scroll_to_content(self, element_id: str):
        self.scrolled.append(element_id)

    @property
    def last_elements(self) -> Optional[List[Element]]:
        for scene in reversed(self.scenes):
            if scene['elements'] is not None:
                return scene['elements']
        return None


def png_data_url(size=(40, 20), color='red') -> str:
    buffer = io.BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode('ascii')


def rectangle(element_id: str, x=10, y=10, width=100, height=50, **extra) -> Dict[str, Any]:
    record = {
        'id': element_id,
        'type': 'rectangle',
        'x': x,
        'y': y,
        'width': width,
        'height': height,
        'strokeColor': '#1e1e1e',
        'backgroundColor': '#a5d8ff',
    }
    record.update(extra)
    return record


def text(element_id: str, value: str, font_family: int = 1, **extra) -> Dict[str, Any]:
    record = {
        'id': element_id,
        'type': 'text',
        'x': 20,
        'y': 20,
        'width': 200,
        'height': 30,
        'text': value,
        'fontSize': 20,
        'fontFamily': font_family,
    }
    record.update(extra)
    return record


def image(element_id: str, file_id: Optional[str] = None, **extra) -> Dict[str, Any]:
    record = {
        'id': element_id,
        'type': 'image',
        'x': 30,
        'y': 30,
        'width': 0,
        'height': 0,
        'fileId': file_id,
        'status': 'pending',
    }
    record.update(extra)
    return record


def attachment(file_id: str, created: int = 1, data_url: Optional[str] = None) -> Dict[str, Any]:
    return {
        'id': file_id,
        'mimeType': 'image/png',
        'dataURL': data_url or png_data_url(),
        'created': created,
    }


@pytest.fixture
def document() -> Document:
    return Document()


@pytest.fixture
def deck() -> Document:
    """Five slides, each tagged with a rectangle named after its position"""
    doc = Document()
    for _ in range(4):
        doc.add_slide()
    for index in range(len(doc)):
        doc.slides[index].elements.append(element_from_data(rectangle(f"r{index}")))
    doc.set_current_slide(0)
    return doc


@pytest.fixture
def fonts() -> FontRegistry:
    return FontRegistry()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()
