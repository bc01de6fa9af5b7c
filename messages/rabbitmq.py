#!/usr/bin/env python3
# pylint: disable=too-many-instance-attributes
"""
RabbitMQ Consumer for deck exports
Listens to the export queue and renders snapshots into the requested format
"""

import asyncio
import json
import time
import logging
import traceback
from typing import Any, Dict, Optional

import pika
from pika.exceptions import AMQPError

from inkdeck.config import ExportConfig
from inkdeck.document import Document
from inkdeck.errors import InkdeckError, RenderError
from inkdeck.fonts import FontRegistry
from inkdeck.image_handler import ImageHandler
from inkdeck.jobs import ExportFormat, ExportResult
from inkdeck.persistence import SnapshotCodec
from inkdeck.pipeline import ExportPipeline
from inkdeck.renderer import SlideRenderer
from .redis import ProgressPublisher

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 5


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)


class ExportConsumer:
    """Handles RabbitMQ message consumption and deck export"""

    def __init__(self, config: Optional[ExportConfig] = None,
                 progress_publisher: Optional[ProgressPublisher] = None):
        self.config = config or ExportConfig.from_env()
        self.connection = None
        self.channel = None
        self.queue_name = self.config.export_queue

        self.rabbitmq_url = self.config.rabbitmq_url

        if not self.rabbitmq_url:
            raise ValueError("RABBITMQ_URL environment variable is not set")

        self.shared_dir = self.config.shared_dir

        self.shared_dir.mkdir(parents=True, exist_ok=True)

        self.progress_publisher = progress_publisher or ProgressPublisher(self.config.redis_url)

        logger.info("Consumer initialized with queue: %s", self.queue_name)
        logger.info("Shared directory: %s", self.shared_dir)

    def _open_channel(self):
        parameters = pika.URLParameters(self.rabbitmq_url)
        parameters.heartbeat = 600
        self.connection = pika.BlockingConnection(parameters)
        self.channel = self.connection.channel()
        self.channel.queue_declare(queue=self.queue_name, durable=True)
        # One export at a time
        self.channel.basic_qos(prefetch_count=1)
        self.channel.basic_consume(queue=self.queue_name, on_message_callback=self.process_message)

    def _pipeline_for(self, fonts: FontRegistry) -> ExportPipeline:
        renderer = SlideRenderer(ImageHandler(), fonts)
        return ExportPipeline(renderer, encoder_options={
            ExportFormat.VIDEO: {'fps': self.config.video_fps},
        })

    def handle_job(self, message: Dict[str, Any]) -> ExportResult:
        """
        Run one export job

        Expected message format:
        {
            "id": "unique-job-id",
            "inputFile": "deck.ink",       # relative to the shared dir
            "outputFile": "deck.gif",      # relative to the shared dir
            "format": "gif",               # stills, gif, video, pdf, pptx, animated-svg
            "frameDelay": 100,             # optional, ms
            "scale": 1,                    # optional
            "loopToDuration": 5000         # optional, ms (video only)
        }
        """
        job_id = message.get('id', 'unknown')
        input_filename = message.get('inputFile', '')
        output_filename = message.get('outputFile', '')

        if not input_filename or not output_filename:
            raise ValueError("Missing required fields: inputFile or outputFile")

        export_format = ExportFormat(message.get('format', ExportFormat.PPTX.value))

        input_path = self.shared_dir / input_filename
        output_path = self.shared_dir / output_filename

        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        output_path.parent.mkdir(parents=True, exist_ok=True)

        document = Document()
        fonts = FontRegistry()
        SnapshotCodec(document, fonts).load(str(input_path))

        logger.info("Exporting %s to %s as %s", input_path, output_path, export_format.value)

        pipeline = self._pipeline_for(fonts)
        try:
            job = pipeline.job_for(
                document,
                export_format,
                frame_delay_ms=int(message.get('frameDelay', self.config.frame_delay_ms)),
                scale=float(message.get('scale', 1)),
                loop_to_duration_ms=_optional_int(message.get('loopToDuration')),
                output_name=output_path.name,
            )
            result = asyncio.run(pipeline.export(
                job,
                on_progress=lambda percent: self.progress_publisher.publish_progress(job_id, percent),
            ))
        finally:
            pipeline.close()

        if result.data is None:
            raise InkdeckError(f"{export_format.value} export produced no data")
        output_path.write_bytes(result.data)
        logger.info("Output saved to: %s", output_path)
        return result

    def process_message(self, ch, method, properties, body):  # pylint: disable=unused-argument
        """Process an export job message and ack or nack it"""
        job_id = 'unknown'
        try:
            message = json.loads(body)
            job_id = message.get('id', 'unknown')
            logger.info("Processing job %s", job_id)

            self.progress_publisher.start_job(job_id, message.get('format', ''))

            result = self.handle_job(message)

            self.progress_publisher.complete_job(
                job_id,
                str(message.get('outputFile')),
                result.frame_count
            )

            logger.info("Successfully exported job %s", job_id)

            ch.basic_ack(delivery_tag=method.delivery_tag)

        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in message: %s", e)
            self.progress_publisher.fail_job(job_id, "INVALID_MESSAGE", "Invalid message format", str(e))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except FileNotFoundError as e:
            logger.error("File not found: %s", e)
            self.progress_publisher.fail_job(job_id, "INPUT_NOT_FOUND", "Input file not found", str(e))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except RenderError as e:
            logger.error("Render failed on slide %s: %s", e.slide_index, e)
            self.progress_publisher.fail_job(job_id, "RENDER_FAILED", "Slide render failed", str(e),
                                             slide_index=e.slide_index)
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except (InkdeckError, ValueError) as e:
            logger.error("Export rejected: %s", e)
            self.progress_publisher.fail_job(job_id, "EXPORT_FAILED", "Export failed", str(e))
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error processing job: %s", e)
            logger.error(traceback.format_exc())

            self.progress_publisher.fail_job(job_id, "EXPORT_FAILED", "Export failed", str(e))

            # Might be a temporary issue
            ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)

    def run(self):
        """Consume export jobs until interrupted, reopening the channel after broker failures"""
        while True:
            try:
                self._open_channel()
                logger.info("Consuming export jobs from %s", self.queue_name)
                self.channel.start_consuming()
                return
            except AMQPError as e:
                logger.error("Broker connection lost: %s, retrying in %ds", e, RECONNECT_DELAY)
                self._disconnect()
                time.sleep(RECONNECT_DELAY)

    def _disconnect(self):
        if self.connection is not None and self.connection.is_open:
            try:
                self.connection.close()
            except AMQPError as e:
                logger.warning("Error closing broker connection: %s", e)
        self.connection = None
        self.channel = None

    def close(self):
        self._disconnect()
        self.progress_publisher.close()
