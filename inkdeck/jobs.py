"""
Export job description, state and result types.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .document import DocumentState
from .models import DEFAULT_BACKGROUND_COLOR, DocumentSize, FileAttachment, Slide

DEFAULT_FRAME_DELAY_MS = 100
RENDER_PROGRESS_SHARE = 90.0


class ExportFormat(Enum):
    """Artifacts the pipeline can produce"""
    STILLS = "stills"
    GIF = "gif"
    VIDEO = "video"
    PDF = "pdf"
    PPTX = "pptx"
    ANIMATED_SVG = "animated-svg"


class JobState(Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    ENCODING = "encoding"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ExportJob:
    """Everything an export needs, detached from the live document"""
    format: ExportFormat
    slides: List[Slide]
    document_size: DocumentSize
    background_color: str = DEFAULT_BACKGROUND_COLOR
    files: Dict[str, FileAttachment] = field(default_factory=dict)
    scale: float = 1.0
    frame_delay_ms: int = DEFAULT_FRAME_DELAY_MS
    loop_to_duration_ms: Optional[int] = None
    output_name: str = "export"

    @classmethod
    def from_state(cls, export_format: ExportFormat, state: DocumentState, **options) -> 'ExportJob':
        return cls(
            format=export_format,
            slides=state.slides,
            document_size=state.document_size,
            background_color=state.background_color,
            files=state.files,
            **options,
        )

    def validate(self):
        if not self.slides:
            raise ValueError("Nothing to export: the job has no slides")
        if self.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self.scale}")
        if self.frame_delay_ms < 1:
            raise ValueError(f"Frame delay must be at least 1 ms, got {self.frame_delay_ms}")
        if self.loop_to_duration_ms is not None and self.loop_to_duration_ms < 1:
            raise ValueError("Loop duration must be positive")


@dataclass
class ExportResult:
    """Final artifact of a completed job"""
    format: ExportFormat
    filename: str
    media_type: str
    data: Optional[bytes]
    frame_count: int
    player: Any = None


@dataclass
class JobStatus:
    """Observable state of the job currently owned by a pipeline"""
    state: JobState = JobState.IDLE
    rendered: int = 0
    total: int = 0
    progress: float = 0.0
    failed_slide: Optional[int] = None
    error: Optional[str] = None
