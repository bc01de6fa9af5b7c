"""
This module contains the SlideRenderer class that turns a slide's elements
into a raster image (Pillow) or an SVG document.

Output is cropped to the slide's frame boundary. The frame boundary itself is
a marker and is exported with a transparent stroke.
"""
import html
import logging
import math
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .coordinate_converter import CoordinateConverter
from .fonts import FontRegistry
from .image_handler import ImageHandler
from .models import (
    TRANSPARENT, DocumentSize, Element, FileAttachment, ImageElement,
    LinearElement, Slide, TextElement, find_frame,
)

logger = logging.getLogger(__name__)

ELLIPSE_SEGMENTS = 64
ARROWHEAD_LENGTH = 20
ARROWHEAD_ANGLE = math.radians(25)
DEFAULT_FONT_FAMILY = "Virgil, Segoe UI Emoji"
LINE_HEIGHT = 1.25


def prepare_elements(slide: Slide) -> List[Element]:
    """Clone a slide's elements for export and hide the frame boundary stroke"""
    elements = [e.clone() for e in slide.elements if not e.is_deleted]
    frame = find_frame(elements)
    if frame is not None:
        frame.stroke_color = TRANSPARENT
    return elements


def parse_color(color: str, opacity: float = 100) -> Optional[Tuple[int, int, int, int]]:
    """Convert a CSS color to RGBA; None for transparent"""
    if not color or color == TRANSPARENT:
        return None
    rgb = ImageColor.getrgb(color)
    alpha = rgb[3] if len(rgb) == 4 else 255
    alpha = int(round(alpha * max(0.0, min(100.0, opacity)) / 100))
    return (rgb[0], rgb[1], rgb[2], alpha)


def shape_outline(element: Element) -> List[Tuple[float, float]]:
    """Scene-space outline of a closed shape, relative to the scene origin"""
    x, y, w, h = element.x, element.y, element.width, element.height
    if element.type == 'ellipse':
        cx, cy = x + w / 2, y + h / 2
        return [
            (cx + w / 2 * math.cos(2 * math.pi * i / ELLIPSE_SEGMENTS),
             cy + h / 2 * math.sin(2 * math.pi * i / ELLIPSE_SEGMENTS))
            for i in range(ELLIPSE_SEGMENTS)
        ]
    if element.type == 'diamond':
        return [(x + w / 2, y), (x + w, y + h / 2), (x + w / 2, y + h), (x, y + h / 2)]
    return [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]


def polyline_length(points: List[Tuple[float, float]], closed: bool = False) -> float:
    if len(points) < 2:
        return 0.0
    pairs = list(zip(points, points[1:]))
    if closed:
        pairs.append((points[-1], points[0]))
    return sum(math.hypot(b[0] - a[0], b[1] - a[1]) for a, b in pairs)


def arrowhead(points: List[Tuple[float, float]], length: float) -> List[Tuple[float, float]]:
    """Two barbs at the end of a polyline"""
    (x1, y1), (x2, y2) = points[-2], points[-1]
    angle = math.atan2(y2 - y1, x2 - x1)
    return [
        (x2 - length * math.cos(angle - ARROWHEAD_ANGLE), y2 - length * math.sin(angle - ARROWHEAD_ANGLE)),
        (x2, y2),
        (x2 - length * math.cos(angle + ARROWHEAD_ANGLE), y2 - length * math.sin(angle + ARROWHEAD_ANGLE)),
    ]


class SlideRenderer:
    """Renders slides to Pillow images or SVG text"""

    def __init__(self, image_handler: Optional[ImageHandler] = None,
                 fonts: Optional[FontRegistry] = None):
        self.image_handler = image_handler or ImageHandler()
        self.fonts = fonts

    def _converter(self, elements: List[Element], size: DocumentSize, scale: float) -> CoordinateConverter:
        frame = find_frame(elements)
        origin = (frame.x, frame.y) if frame is not None else (0, 0)
        return CoordinateConverter(origin[0], origin[1], size, scale)

    # ------------------------------------------------------------------
    # raster
    # ------------------------------------------------------------------

    def rasterize(self, elements: List[Element], size: DocumentSize, background_color: str,
                  files: Dict[str, FileAttachment], scale: float = 1.0) -> Image.Image:
        """Draw elements onto an RGB canvas of ``size * scale``"""
        converter = self._converter(elements, size, scale)
        background = parse_color(background_color) or (255, 255, 255, 0)
        canvas = Image.new('RGBA', converter.output_size, background)
        draw = ImageDraw.Draw(canvas, 'RGBA')

        for element in elements:
            if element.is_deleted:
                continue
            if isinstance(element, LinearElement):
                self._draw_linear(draw, element, converter)
            elif isinstance(element, TextElement):
                self._draw_text(draw, element, converter)
            elif isinstance(element, ImageElement):
                self._draw_image(canvas, element, converter, files)
            elif element.type in ('rectangle', 'ellipse', 'diamond'):
                self._draw_shape(draw, element, converter)
            else:
                logger.debug("Skipping unsupported element type %s", element.type)

        flattened = Image.new('RGB', canvas.size, (255, 255, 255))
        flattened.paste(canvas, mask=canvas.getchannel('A'))
        return flattened

    def _output_outline(self, element: Element, converter: CoordinateConverter) -> List[Tuple[float, float]]:
        points = [converter.to_output(px, py) for px, py in shape_outline(element)]
        box = converter.get_element_box(element)
        return converter.rotate_points(points, (box.center_x, box.center_y), element.angle)

    def _draw_shape(self, draw: ImageDraw.ImageDraw, element: Element, converter: CoordinateConverter):
        points = self._output_outline(element, converter)
        fill = parse_color(element.background_color, element.opacity)
        stroke = parse_color(element.stroke_color, element.opacity)
        if fill is not None:
            draw.polygon(points, fill=fill)
        if stroke is not None:
            width = max(1, int(round(converter.length(element.stroke_width))))
            draw.line(points + [points[0]], fill=stroke, width=width, joint='curve')

    def _draw_linear(self, draw: ImageDraw.ImageDraw, element: LinearElement, converter: CoordinateConverter):
        stroke = parse_color(element.stroke_color, element.opacity)
        if stroke is None or len(element.points) < 2:
            return
        points = converter.element_points(element, element.points)
        box = converter.get_element_box(element)
        points = converter.rotate_points(points, (box.center_x, box.center_y), element.angle)
        width = max(1, int(round(converter.length(element.stroke_width))))
        draw.line(points, fill=stroke, width=width, joint='curve')
        if element.type == 'arrow':
            draw.line(arrowhead(points, converter.length(ARROWHEAD_LENGTH)), fill=stroke, width=width)

    def _load_font(self, element: TextElement, converter: CoordinateConverter):
        size = max(1, int(round(converter.length(element.font_size))))
        return ImageFont.load_default(size=size)

    def _draw_text(self, draw: ImageDraw.ImageDraw, element: TextElement, converter: CoordinateConverter):
        color = parse_color(element.stroke_color, element.opacity)
        if color is None or not element.text:
            return
        font = self._load_font(element, converter)
        box = converter.get_element_box(element)
        anchor_x = {'center': box.center_x, 'right': box.right}.get(element.text_align, box.left)
        anchor = {'center': 'ma', 'right': 'ra'}.get(element.text_align, 'la')
        draw.multiline_text((anchor_x, box.top), element.text, fill=color, font=font,
                            anchor=anchor, align=element.text_align if element.text_align in
                            ('left', 'center', 'right') else 'left')

    def _draw_image(self, canvas: Image.Image, element: ImageElement, converter: CoordinateConverter,
                    files: Dict[str, FileAttachment]):
        if element.file_id is None:
            return
        attachment = files.get(element.file_id)
        if attachment is None:
            logger.warning("Image %s references missing attachment %s", element.id, element.file_id)
            return
        box = converter.get_element_box(element)
        width, height = max(1, int(round(box.width))), max(1, int(round(box.height)))
        image = self.image_handler.load_image(attachment).resize((width, height))
        if element.scale and len(element.scale) == 2:
            if element.scale[0] < 0:
                image = image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
            if element.scale[1] < 0:
                image = image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
        if element.opacity < 100:
            alpha = image.getchannel('A').point(lambda a: int(a * element.opacity / 100))
            image.putalpha(alpha)
        left, top = box.left, box.top
        if element.angle:
            image = image.rotate(-math.degrees(element.angle), expand=True, resample=Image.Resampling.BICUBIC)
            left = box.center_x - image.width / 2
            top = box.center_y - image.height / 2
        canvas.paste(image, (int(round(left)), int(round(top))), image)

    # ------------------------------------------------------------------
    # vector
    # ------------------------------------------------------------------

    def _font_family_name(self, element: TextElement) -> str:
        if self.fonts is not None:
            family = self.fonts.family_for_id(int(element.font_family))
            if family:
                return family
        return DEFAULT_FONT_FAMILY

    def vectorize(self, elements: List[Element], size: DocumentSize, background_color: str,
                  files: Dict[str, FileAttachment], scale: float = 1.0) -> str:
        """Render elements as a standalone SVG document"""
        converter = self._converter(elements, size, scale)
        width, height = converter.output_size
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}">',
        ]
        if parse_color(background_color) is not None:
            parts.append(f'<rect x="0" y="0" width="{width}" height="{height}" '
                         f'fill="{html.escape(background_color)}"></rect>')
        parts.append(f'<g transform="scale({scale}) translate({-converter.frame_x} {-converter.frame_y})">')
        for element in elements:
            if element.is_deleted:
                continue
            fragment = self._svg_element(element, files)
            if fragment:
                parts.append(fragment)
        parts.append('</g></svg>')
        return ''.join(parts)

    @staticmethod
    def _path_data(points: List[Tuple[float, float]], closed: bool) -> str:
        data = 'M ' + ' L '.join(f'{x:.2f} {y:.2f}' for x, y in points)
        return data + ' Z' if closed else data

    def _svg_element(self, element: Element, files: Dict[str, FileAttachment]) -> str:
        cx, cy = element.x + element.width / 2, element.y + element.height / 2
        rotate = f' transform="rotate({math.degrees(element.angle):.3f} {cx:.2f} {cy:.2f})"' \
            if element.angle else ''
        opacity = f' opacity="{element.opacity / 100:.2f}"' if element.opacity < 100 else ''
        stroke = element.stroke_color if element.stroke_color != TRANSPARENT else 'none'
        dash = ' stroke-dasharray="8 8"' if element.stroke_style == 'dashed' else ''

        if isinstance(element, LinearElement):
            if len(element.points) < 2:
                return ''
            points = [(element.x + px, element.y + py) for px, py in element.points]
            paths = [(points, False)]
            if element.type == 'arrow':
                paths.append((arrowhead(points, ARROWHEAD_LENGTH), False))
            return ''.join(
                f'<path d="{self._path_data(p, closed)}" fill="none" stroke="{html.escape(stroke)}" '
                f'stroke-width="{element.stroke_width}" stroke-linecap="round" stroke-linejoin="round"'
                f'{dash}{rotate}{opacity} data-length="{polyline_length(p):.2f}"></path>'
                for p, closed in paths
            )

        if isinstance(element, TextElement):
            if not element.text:
                return ''
            anchor = {'center': 'middle', 'right': 'end'}.get(element.text_align, 'start')
            x = {'center': cx, 'right': element.x + element.width}.get(element.text_align, element.x)
            lines = element.text.split('\n')
            tspans = ''.join(
                f'<tspan x="{x:.2f}" dy="{element.font_size * (LINE_HEIGHT if i else 1):.2f}">'
                f'{html.escape(line)}</tspan>'
                for i, line in enumerate(lines)
            )
            return (f'<text y="{element.y:.2f}" font-family="{html.escape(self._font_family_name(element))}" '
                    f'font-size="{element.font_size}" fill="{html.escape(stroke)}" text-anchor="{anchor}"'
                    f'{rotate}{opacity}>{tspans}</text>')

        if isinstance(element, ImageElement):
            attachment = files.get(element.file_id) if element.file_id else None
            if attachment is None:
                return ''
            return (f'<image x="{element.x:.2f}" y="{element.y:.2f}" width="{element.width:.2f}" '
                    f'height="{element.height:.2f}" href="{html.escape(attachment.data_url)}"'
                    f'{rotate}{opacity}></image>')

        if element.type in ('rectangle', 'ellipse', 'diamond'):
            points = shape_outline(element)
            fill = element.background_color if element.background_color != TRANSPARENT else 'none'
            return (f'<path d="{self._path_data(points, True)}" fill="{html.escape(fill)}" '
                    f'stroke="{html.escape(stroke)}" stroke-width="{element.stroke_width}"'
                    f'{dash}{rotate}{opacity} data-length="{polyline_length(points, closed=True):.2f}"></path>')
        return ''
