"""
Environment driven configuration for the export worker and CLI.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .jobs import DEFAULT_FRAME_DELAY_MS

DEFAULT_SHARED_DIR = '/app/shared'
DEFAULT_EXPORT_QUEUE = 'export_queue'
DEFAULT_VIDEO_FPS = 30
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass
class ExportConfig:
    """Settings shared by the queue worker and the command line"""
    rabbitmq_url: Optional[str] = None
    redis_url: Optional[str] = None
    shared_dir: Path = Path(DEFAULT_SHARED_DIR)
    export_queue: str = DEFAULT_EXPORT_QUEUE
    frame_delay_ms: int = DEFAULT_FRAME_DELAY_MS
    video_fps: int = DEFAULT_VIDEO_FPS
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'ExportConfig':
        env = os.environ if env is None else env
        return cls(
            rabbitmq_url=env.get('RABBITMQ_URL'),
            redis_url=env.get('REDIS_URL'),
            shared_dir=Path(env.get('INKDECK_SHARED_DIR') or DEFAULT_SHARED_DIR),
            export_queue=env.get('INKDECK_EXPORT_QUEUE') or DEFAULT_EXPORT_QUEUE,
            frame_delay_ms=_int_setting(env, 'INKDECK_FRAME_DELAY', DEFAULT_FRAME_DELAY_MS),
            video_fps=_int_setting(env, 'INKDECK_VIDEO_FPS', DEFAULT_VIDEO_FPS),
            log_level=(env.get('INKDECK_LOG_LEVEL') or 'INFO').upper(),
        )

    def configure_logging(self):
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format=LOG_FORMAT
        )
