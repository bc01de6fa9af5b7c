"""
Stroke-in animation for rendered SVG slides.

Every stroked path is drawn in one after another (dash offset animation),
filled shapes fade their fill in once their outline is complete, and text and
images fade in at their turn. The transform reports when the last element
finishes so players know when a slide is done.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

KEYFRAMES = (
    "@keyframes inkdeck-stroke { to { stroke-dashoffset: 0; } }"
    "@keyframes inkdeck-fill { from { fill-opacity: 0; } to { fill-opacity: 1; } }"
    "@keyframes inkdeck-fade { from { opacity: 0; } to { opacity: 1; } }"
)


@dataclass
class AnimatedSlide:
    """An animated SVG document and the time its animation completes"""
    svg: str
    finish_ms: int


class StrokeAnimator:
    """Adds sequential stroke-in animations to an SVG document"""

    def __init__(self, ms_per_unit: float = 1.0, min_stroke_ms: int = 50,
                 max_stroke_ms: int = 2000, fade_ms: int = 300):
        self.ms_per_unit = ms_per_unit
        self.min_stroke_ms = min_stroke_ms
        self.max_stroke_ms = max_stroke_ms
        self.fade_ms = fade_ms

    def stroke_duration(self, length: float) -> int:
        return int(max(self.min_stroke_ms, min(self.max_stroke_ms, length * self.ms_per_unit)))

    @staticmethod
    def _length(path: Tag) -> Optional[float]:
        try:
            return float(path.get('data-length', ''))
        except ValueError:
            return None

    def _animate_path(self, path: Tag, start: int) -> int:
        stroked = path.get('stroke', 'none') != 'none'
        filled = path.get('fill', 'none') != 'none'
        length = self._length(path)
        animations = []
        styles = []
        end = start
        if stroked and length:
            duration = self.stroke_duration(length)
            styles.append(f"stroke-dasharray: {length:.2f}; stroke-dashoffset: {length:.2f}")
            animations.append(f"inkdeck-stroke {duration}ms linear {start}ms forwards")
            end = start + duration
        if filled:
            animations.append(f"inkdeck-fill {self.fade_ms}ms linear {end}ms both")
            end += self.fade_ms
        if not animations:
            return start
        styles.append("animation: " + ", ".join(animations))
        path['style'] = "; ".join(styles)
        return end

    def _animate_fade(self, node: Tag, start: int) -> int:
        node['style'] = f"animation: inkdeck-fade {self.fade_ms}ms linear {start}ms both"
        return start + self.fade_ms

    def animate(self, svg: str) -> AnimatedSlide:
        """Return the animated document and its finish time in milliseconds"""
        soup = BeautifulSoup(svg, 'html.parser')
        root = soup.find('svg')
        if root is None:
            raise ValueError("Document has no <svg> root")

        clock = 0
        for node in root.find_all(['path', 'text', 'image']):
            if node.name == 'path':
                clock = self._animate_path(node, clock)
            else:
                clock = self._animate_fade(node, clock)

        style = soup.new_tag('style')
        style.string = KEYFRAMES
        root.insert(0, style)
        root['data-finish'] = str(clock)
        logger.debug("Animated SVG finishes after %d ms", clock)
        return AnimatedSlide(svg=str(soup), finish_ms=clock)
