"""
Export rendering pipeline.

Replays a frozen copy of the deck slide by slide, renders each slide cropped
to its frame boundary and hands the frames to an encoder. Rendering is awaited
in a thread one slide at a time; the encoder's final compression runs on the
pipeline's single background worker.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

from .document import Document
from .encoders import Encoder, Frame, create_encoder
from .errors import ExportBusyError, ExportCancelledError, RenderError
from .jobs import (
    RENDER_PROGRESS_SHARE,
    ExportFormat,
    ExportJob,
    ExportResult,
    JobState,
    JobStatus,
)
from .models import Slide
from .renderer import SlideRenderer, prepare_elements

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
CompleteCallback = Callable[[ExportResult], None]


class ExportPipeline:
    """Runs one export job at a time"""

    def __init__(self, renderer: Optional[SlideRenderer] = None,
                 encoder_options: Optional[Dict[ExportFormat, dict]] = None):
        self.renderer = renderer or SlideRenderer()
        self.encoder_options = encoder_options or {}
        self.status = JobStatus()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix='inkdeck-encoder')
        self._in_flight = False
        self._cancel_requested = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    def cancel(self) -> bool:
        """Ask the running job to stop before its next slide"""
        if not self._in_flight:
            return False
        self._cancel_requested = True
        logger.info("Cancellation requested for running export")
        return True

    def close(self):
        self._worker.shutdown(wait=True)

    def job_for(self, document: Document, export_format: ExportFormat, **options) -> ExportJob:
        """Build a job from a deep snapshot of ``document``"""
        state = document.snapshot()
        options.setdefault('output_name', state.filename or 'export')
        return ExportJob.from_state(export_format, state, **options)

    async def export(self, job: ExportJob,
                     on_progress: Optional[ProgressCallback] = None,
                     on_complete: Optional[CompleteCallback] = None,
                     encoder: Optional[Encoder] = None) -> ExportResult:
        """
        Render and encode every slide of ``job``.

        Args:
            job: Frozen export description
            on_progress: Receives non-decreasing percentages, 100 exactly once
            on_complete: Receives the final result
            encoder: Overrides the encoder chosen from ``job.format``

        Returns:
            The encoded artifact

        Raises:
            ExportBusyError: Another job is in flight
            RenderError: A slide failed to render; carries its index
            ExportCancelledError: ``cancel()`` was called mid-job
            UnsupportedCapabilityError: The target format cannot be produced here
        """
        if self._in_flight:
            raise ExportBusyError("An export is already in progress")
        job.validate()

        self._in_flight = True
        self._cancel_requested = False
        self.status = JobStatus(total=len(job.slides))
        try:
            if encoder is None:
                encoder = create_encoder(job.format, **self.encoder_options.get(job.format, {}))
            encoder.check_capability(job)
            encoder.begin(job)

            self.status.state = JobState.RENDERING
            for index, slide in enumerate(job.slides):
                self._check_cancelled()
                await self._render_into(encoder, job, index, slide)
                self.status.rendered = index + 1
                self._report(on_progress, RENDER_PROGRESS_SHARE * (index + 1) / len(job.slides))
            self._check_cancelled()

            self.status.state = JobState.ENCODING
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(self._worker, encoder.finish)

            self._report(on_progress, 100.0)
            self.status.state = JobState.COMPLETE
            logger.info("Exported %d slide(s) as %s to %s", result.frame_count, job.format.value, result.filename)
            if on_complete is not None:
                self._invoke(on_complete, result)
            return result
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.status.state = JobState.FAILED
            self.status.error = str(e)
            if isinstance(e, RenderError):
                self.status.failed_slide = e.slide_index
            logger.error("Export failed: %s", e)
            raise
        finally:
            self._in_flight = False
            self._cancel_requested = False

    def _check_cancelled(self):
        if self._cancel_requested:
            raise ExportCancelledError("Export cancelled")

    async def _render_into(self, encoder: Encoder, job: ExportJob, index: int, slide: Slide):
        try:
            frame = await asyncio.to_thread(self.render_frame, job, slide, encoder.vector)
            encoder.add_frame(index, frame)
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise RenderError(index, f"Failed to render slide {index}: {e}", cause=e) from e

    def render_frame(self, job: ExportJob, slide: Slide, vector: bool = False) -> Frame:
        """Render one slide with its frame boundary hidden"""
        elements = prepare_elements(slide)
        render = self.renderer.vectorize if vector else self.renderer.rasterize
        return render(elements, job.document_size, job.background_color, job.files, job.scale)

    def _report(self, on_progress: Optional[ProgressCallback], percent: float):
        percent = max(self.status.progress, min(100.0, percent))
        self.status.progress = percent
        if on_progress is not None:
            self._invoke(on_progress, percent)

    @staticmethod
    def _invoke(callback: Callable, value):
        try:
            callback(value)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Export callback raised: %s", e)
