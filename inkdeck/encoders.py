"""
Encoders that turn an ordered frame sequence into an export artifact.

All encoders consume frames in slide order. ``add_frame`` is cheap and runs on
the pipeline's main loop; ``finish`` does the heavy compression work and runs
on the pipeline's background worker.
"""
import io
import logging
import math
import os
import tempfile
import zipfile
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import cv2
import numpy as np
from PIL import GifImagePlugin, Image
from pptx import Presentation
from pptx.util import Inches

from .coordinate_converter import CoordinateConverter
from .errors import UnsupportedCapabilityError
from .jobs import ExportFormat, ExportJob, ExportResult
from .playback import SlideShow, StrokeAnimationPlayer
from .stroke_animation import AnimatedSlide, StrokeAnimator

logger = logging.getLogger(__name__)

Frame = Union[Image.Image, str]


def output_filename(name: str, extension: str) -> str:
    return name if name.endswith(extension) else f"{name}{extension}"


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def loop_repeat_count(target_ms: Optional[int], frame_count: int, delay_ms: int) -> int:
    """How many times the full sequence must play to cover ``target_ms``"""
    if not target_ms or frame_count <= 0:
        return 1
    return max(1, math.ceil(target_ms / (frame_count * delay_ms)))


class Encoder:
    """Base class for all encoders"""
    format: ExportFormat = None
    extension = ""
    media_type = "application/octet-stream"
    vector = False

    def check_capability(self, job: ExportJob):
        """Raise UnsupportedCapabilityError before any frame work begins"""

    def begin(self, job: ExportJob):
        self.job = job

    def add_frame(self, index: int, frame: Frame):
        raise NotImplementedError

    def finish(self) -> ExportResult:
        raise NotImplementedError

    def _result(self, data: Optional[bytes], frame_count: int, player=None) -> ExportResult:
        return ExportResult(
            format=self.format,
            filename=output_filename(self.job.output_name, self.extension),
            media_type=self.media_type,
            data=data,
            frame_count=frame_count,
            player=player,
        )


class StillBundleEncoder(Encoder):
    """One PNG per slide, playable as a slide show"""
    format = ExportFormat.STILLS
    extension = ".zip"
    media_type = "application/zip"

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[bytes] = []

    def add_frame(self, index: int, frame: Frame):
        self.frames.append(png_bytes(frame))

    def finish(self) -> ExportResult:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            for index, data in enumerate(self.frames):
                archive.writestr(f"slide-{index + 1:03d}.png", data)
        return self._result(buffer.getvalue(), len(self.frames), SlideShow(self.frames))


@dataclass
class GifFrame:
    index: int
    image: Image.Image
    delay_ms: int


class GifEncoder(Encoder):
    """Looping animated GIF with a fixed inter-frame delay"""
    format = ExportFormat.GIF
    extension = ".gif"
    media_type = "image/gif"

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[GifFrame] = []

    def add_frame(self, index: int, frame: Frame):
        self.frames.append(GifFrame(index=index, image=frame, delay_ms=self.job.frame_delay_ms))

    def finish(self) -> ExportResult:
        # Written block by block: save_all folds identical neighbouring frames into one
        images = [f.image.convert('RGB').convert('P', palette=Image.Palette.ADAPTIVE) for f in self.frames]
        header, _ = GifImagePlugin.getheader(images[0], info={'loop': 0})
        buffer = io.BytesIO()
        for chunk in header:
            buffer.write(chunk)
        for frame, image in zip(self.frames, images):
            for chunk in GifImagePlugin.getdata(image, duration=frame.delay_ms, include_color_table=True):
                buffer.write(chunk)
        buffer.write(b';')
        logger.info("Encoded GIF with %d frame(s)", len(images))
        return self._result(buffer.getvalue(), len(self.frames))


class VideoEncoder(Encoder):
    """MP4 video where every slide is held for the frame delay"""
    format = ExportFormat.VIDEO
    extension = ".mp4"
    media_type = "video/mp4"

    FOURCC = "mp4v"
    FLUSH_MS = 100

    def __init__(self, fps: int = 30, writer_factory: Optional[Callable] = None):
        self.fps = fps
        self.writer_factory = writer_factory or cv2.VideoWriter

    def _open(self, path: str, size):
        return self.writer_factory(path, cv2.VideoWriter_fourcc(*self.FOURCC), float(self.fps), size)

    def _frame_size(self, job: ExportJob):
        return CoordinateConverter(0, 0, job.document_size, job.scale).output_size

    def check_capability(self, job: ExportJob):
        with tempfile.TemporaryDirectory() as tmp:
            writer = self._open(os.path.join(tmp, "check" + self.extension), self._frame_size(job))
            try:
                if not writer.isOpened():
                    raise UnsupportedCapabilityError(f"No video encoder available for {self.FOURCC}")
            finally:
                writer.release()

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[np.ndarray] = []
        self.size = self._frame_size(job)

    def add_frame(self, index: int, frame: Frame):
        if frame.size != self.size:
            frame = frame.resize(self.size)
        self.frames.append(cv2.cvtColor(np.asarray(frame.convert('RGB')), cv2.COLOR_RGB2BGR))

    @property
    def hold_frames(self) -> int:
        return max(1, round(self.job.frame_delay_ms * self.fps / 1000))

    @property
    def flush_frames(self) -> int:
        return max(1, round(self.FLUSH_MS * self.fps / 1000))

    def finish(self) -> ExportResult:
        repeats = loop_repeat_count(self.job.loop_to_duration_ms, len(self.frames), self.job.frame_delay_ms)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "video" + self.extension)
            writer = self._open(path, self.size)
            if not writer.isOpened():
                raise UnsupportedCapabilityError(f"No video encoder available for {self.FOURCC}")
            try:
                for _ in range(repeats):
                    for frame in self.frames:
                        for _ in range(self.hold_frames):
                            writer.write(frame)
                for _ in range(self.flush_frames):
                    writer.write(self.frames[-1])
            finally:
                writer.release()
            data = None
            if os.path.exists(path):
                with open(path, 'rb') as f:
                    data = f.read()
        logger.info("Encoded video: %d frame(s) x %d repeat(s) at %d fps", len(self.frames), repeats, self.fps)
        return self._result(data, len(self.frames))


class PdfEncoder(Encoder):
    """Paged document, one page per slide at native document size"""
    format = ExportFormat.PDF
    extension = ".pdf"
    media_type = "application/pdf"

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[Image.Image] = []

    def add_frame(self, index: int, frame: Frame):
        self.frames.append(frame.convert('RGB'))

    def finish(self) -> ExportResult:
        buffer = io.BytesIO()
        # 72 dpi maps one document pixel to one PDF unit
        self.frames[0].save(
            buffer,
            format='PDF',
            save_all=True,
            append_images=self.frames[1:],
            resolution=72.0 * self.job.scale,
        )
        return self._result(buffer.getvalue(), len(self.frames))


class PptxEncoder(Encoder):
    """Paged PowerPoint deck, each slide image filling its page"""
    format = ExportFormat.PPTX
    extension = ".pptx"
    media_type = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

    BLANK_LAYOUT = 6

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[bytes] = []

    def add_frame(self, index: int, frame: Frame):
        self.frames.append(png_bytes(frame))

    def finish(self) -> ExportResult:
        presentation = Presentation()
        width = Inches(CoordinateConverter.pixels_to_inches(self.job.document_size.width))
        height = Inches(CoordinateConverter.pixels_to_inches(self.job.document_size.height))
        presentation.slide_width = width
        presentation.slide_height = height

        for data in self.frames:
            slide = presentation.slides.add_slide(presentation.slide_layouts[self.BLANK_LAYOUT])
            slide.shapes.add_picture(io.BytesIO(data), 0, 0, width, height)

        buffer = io.BytesIO()
        presentation.save(buffer)
        return self._result(buffer.getvalue(), len(self.frames))


class StrokeAnimationEncoder(Encoder):
    """Stroke-in animated SVG per slide with manual stepping"""
    format = ExportFormat.ANIMATED_SVG
    extension = ".zip"
    media_type = "application/zip"
    vector = True

    def __init__(self, animator: Optional[StrokeAnimator] = None):
        self.animator = animator or StrokeAnimator()

    def begin(self, job: ExportJob):
        super().begin(job)
        self.frames: List[AnimatedSlide] = []

    def add_frame(self, index: int, frame: Frame):
        self.frames.append(self.animator.animate(frame))

    def finish(self) -> ExportResult:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            for index, animated in enumerate(self.frames):
                archive.writestr(f"slide-{index + 1:03d}.svg", animated.svg)
        return self._result(buffer.getvalue(), len(self.frames), StrokeAnimationPlayer(self.frames))


ENCODER_REGISTRY = {
    ExportFormat.STILLS: StillBundleEncoder,
    ExportFormat.GIF: GifEncoder,
    ExportFormat.VIDEO: VideoEncoder,
    ExportFormat.PDF: PdfEncoder,
    ExportFormat.PPTX: PptxEncoder,
    ExportFormat.ANIMATED_SVG: StrokeAnimationEncoder,
}


def create_encoder(export_format: ExportFormat, **options) -> Encoder:
    return ENCODER_REGISTRY[export_format](**options)
