"""
Conversion between scene coordinates and export output coordinates.
"""
import math
from dataclasses import dataclass
from typing import List, Tuple

from .models import DocumentSize, Element


@dataclass
class BoundingBox:
    """Represents a bounding box with position and size"""
    left: float
    top: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2


class CoordinateConverter:
    """Maps scene coordinates onto an output canvas cropped to the frame boundary"""

    PIXELS_PER_INCH = 96

    def __init__(self, frame_x: float, frame_y: float, size: DocumentSize, scale: float = 1.0):
        """
        Initialize converter with the frame boundary geometry

        Args:
            frame_x, frame_y: Scene position of the frame boundary's top-left corner
            size: Document size (frame boundary size)
            scale: Output scale factor
        """
        if scale <= 0:
            raise ValueError(f"Scale must be positive, got {scale}")
        self.frame_x = frame_x
        self.frame_y = frame_y
        self.size = size
        self.scale = scale

    @property
    def output_size(self) -> Tuple[int, int]:
        return (max(1, int(round(self.size.width * self.scale))),
                max(1, int(round(self.size.height * self.scale))))

    def to_output(self, x: float, y: float) -> Tuple[float, float]:
        """Convert a scene point to output pixels"""
        return ((x - self.frame_x) * self.scale, (y - self.frame_y) * self.scale)

    def length(self, value: float) -> float:
        return value * self.scale

    def get_element_box(self, element: Element) -> BoundingBox:
        """Output-space box of an element (before rotation)"""
        left, top = self.to_output(element.x, element.y)
        return BoundingBox(left=left, top=top,
                           width=self.length(element.width), height=self.length(element.height))

    def rotate_points(self, points: List[Tuple[float, float]], center: Tuple[float, float],
                      angle: float) -> List[Tuple[float, float]]:
        """Rotate output-space points around ``center`` by ``angle`` radians"""
        if not angle:
            return points
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        cx, cy = center
        return [
            (cx + (px - cx) * cos_a - (py - cy) * sin_a,
             cy + (px - cx) * sin_a + (py - cy) * cos_a)
            for px, py in points
        ]

    def element_points(self, element: Element, points: List[List[float]]) -> List[Tuple[float, float]]:
        """Convert element-relative points (linear elements) to output pixels"""
        return [self.to_output(element.x + px, element.y + py) for px, py in points]

    @classmethod
    def pixels_to_inches(cls, pixels: float) -> float:
        return pixels / cls.PIXELS_PER_INCH
