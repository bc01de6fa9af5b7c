"""
Explicit wiring of the editor services around one document.
"""
import logging
from typing import Dict, Optional

from .commands import CommandDispatcher
from .document import Document
from .fonts import FontRegistry
from .image_handler import ImageHandler
from .jobs import ExportFormat, ExportResult
from .persistence import SnapshotCodec
from .pipeline import CompleteCallback, ExportPipeline, ProgressCallback
from .renderer import SlideRenderer
from .selection import Clipboard, SelectionController
from .synchronizer import DrawingSurface, SceneSynchronizer

logger = logging.getLogger(__name__)


class EditorSession:
    """
    Owns the document and every service that reads or mutates it.

    Args:
        surface: Drawing surface to keep in sync; omit for headless sessions
        clipboard: Clipboard used by copy and paste
        fonts: Shared font registry, created when not given
        pipeline: Export pipeline, created when not given
        save_path: Where the SAVE command writes the snapshot
        encoder_options: Per-format encoder keyword arguments
    """

    def __init__(self, surface: Optional[DrawingSurface] = None,
                 clipboard: Optional[Clipboard] = None,
                 fonts: Optional[FontRegistry] = None,
                 pipeline: Optional[ExportPipeline] = None,
                 save_path: Optional[str] = None,
                 encoder_options: Optional[Dict[ExportFormat, dict]] = None):
        self.document = Document()
        self.fonts = fonts or FontRegistry()
        self.image_handler = ImageHandler()
        self.selection = SelectionController(self.document, clipboard)
        self.codec = SnapshotCodec(self.document, self.fonts)
        self.pipeline = pipeline or ExportPipeline(SlideRenderer(self.image_handler, self.fonts), encoder_options)
        self.save_path = save_path
        self.commands = CommandDispatcher(self.selection, save=self.save)
        self.synchronizer = None
        if surface is not None:
            self.synchronizer = SceneSynchronizer(self.document, surface, self.image_handler)
            self.synchronizer.attach()

    def save(self) -> str:
        """Write the snapshot to the session's save path"""
        path = self.save_path or self.document.filename or 'untitled'
        return self.codec.save(path)

    def open(self, path: str):
        parsed = self.codec.load(path)
        self.selection.clear()
        self.save_path = path
        return parsed

    async def export(self, export_format: ExportFormat,
                     on_progress: Optional[ProgressCallback] = None,
                     on_complete: Optional[CompleteCallback] = None,
                     **options) -> ExportResult:
        """Export a snapshot of the current document"""
        if self.synchronizer is not None:
            await self.synchronizer.drain()
        job = self.pipeline.job_for(self.document, export_format, **options)
        return await self.pipeline.export(job, on_progress=on_progress, on_complete=on_complete)

    def close(self):
        if self.synchronizer is not None:
            self.synchronizer.detach()
        self.pipeline.close()
        self.image_handler.clear_cache()
        logger.debug("Session closed")
