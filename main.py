#!/usr/bin/env python3
"""
Main entry point for the deck export service.

``worker`` runs the RabbitMQ consumer with the Redis progress publisher,
``export`` renders a single snapshot file from the command line.
"""

import argparse
import asyncio
import sys
import traceback
import logging
from pathlib import Path
from typing import List, Optional

from inkdeck.config import ExportConfig
from inkdeck.errors import InkdeckError
from inkdeck.jobs import ExportFormat
from inkdeck.session import EditorSession
from messages import ExportConsumer

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Render slide deck snapshots into GIF, video, PDF, PPTX and still bundles.'
    )
    commands = parser.add_subparsers(dest='command')

    commands.add_parser('worker', help='Consume export jobs from RabbitMQ (default)')

    export = commands.add_parser('export', help='Export one snapshot file')
    export.add_argument('snapshot', help='Path to a .ink snapshot')
    export.add_argument(
        '--format',
        default=ExportFormat.PDF.value,
        choices=[f.value for f in ExportFormat],
        help='Output format (default: pdf)'
    )
    export.add_argument('--output', help='Output path (default: next to the snapshot)')
    export.add_argument('--frame-delay', type=int, help='Delay between frames in ms')
    export.add_argument('--scale', type=float, default=1.0, help='Render scale (default: 1)')
    export.add_argument('--loop-to-duration', type=int, help='Repeat video frames to cover this many ms')

    return parser.parse_args(argv)


def run_worker(config: ExportConfig):
    consumer = ExportConsumer(config)
    try:
        consumer.run()
    finally:
        consumer.close()


def run_export(config: ExportConfig, args: argparse.Namespace) -> Path:
    export_format = ExportFormat(args.format)
    session = EditorSession(encoder_options={ExportFormat.VIDEO: {'fps': config.video_fps}})
    try:
        session.open(args.snapshot)
        source = Path(args.snapshot)
        output = Path(args.output) if args.output else source.with_suffix('')
        result = asyncio.run(session.export(
            export_format,
            on_progress=lambda percent: logger.info("Progress: %.0f%%", percent),
            frame_delay_ms=args.frame_delay or config.frame_delay_ms,
            scale=args.scale,
            loop_to_duration_ms=args.loop_to_duration,
            output_name=str(output),
        ))
    finally:
        session.close()

    if result.data is None:
        raise InkdeckError(f"{export_format.value} export produced no data")
    path = Path(result.filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.data)
    logger.info("Wrote %d slide(s) to %s", result.frame_count, path)
    return path


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)
    config = ExportConfig.from_env()
    config.configure_logging()

    try:
        if args.command == 'export':
            run_export(config, args)
        else:
            run_worker(config)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except (InkdeckError, OSError, ValueError) as e:
        logger.error("Export failed: %s", e)
        return 1
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Fatal error: %s", e)
        logger.error(traceback.format_exc())
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
