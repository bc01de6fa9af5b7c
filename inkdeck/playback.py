"""
Players for exported frame sequences (presentation mode and stroke-animated
playback). Both are finite and restartable; navigation clamps at both ends.
"""
from typing import Generic, Iterator, List, Sequence, TypeVar

from .stroke_animation import AnimatedSlide

T = TypeVar('T')


class FramePlayer(Generic[T]):
    """Cursor over a finite, ordered sequence of frames"""

    def __init__(self, frames: Sequence[T]):
        if not frames:
            raise ValueError("A player needs at least one frame")
        self._frames: List[T] = list(frames)
        self.index = 0

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._frames))

    def __getitem__(self, index: int) -> T:
        return self._frames[index]

    @property
    def current(self) -> T:
        return self._frames[self.index]

    @property
    def at_end(self) -> bool:
        return self.index == len(self._frames) - 1

    def next(self) -> T:
        self.index = min(self.index + 1, len(self._frames) - 1)
        return self.current

    def prev(self) -> T:
        self.index = max(self.index - 1, 0)
        return self.current

    def jump(self, index: int) -> T:
        if not 0 <= index < len(self._frames):
            raise IndexError(f"Frame {index} out of range")
        self.index = index
        return self.current

    def restart(self) -> T:
        self.index = 0
        return self.current


class SlideShow(FramePlayer[bytes]):
    """Still PNG frames for low-cost sequential playback"""


class StrokeAnimationPlayer(FramePlayer[AnimatedSlide]):
    """Manual stepping over stroke-animated slides"""

    def __init__(self, frames: Sequence[AnimatedSlide]):
        super().__init__(frames)
        self.replays = 0

    def replay(self) -> AnimatedSlide:
        """Restart the current slide's animation"""
        self.replays += 1
        return self.current

    @property
    def total_duration_ms(self) -> int:
        return sum(frame.finish_ms for frame in self._frames)
