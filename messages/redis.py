"""
Progress Publisher uses Redis for export updates
Publishes real-time progress while a deck is rendered and encoded
"""

import json
import logging
from typing import Optional, Dict

import redis

logger = logging.getLogger(__name__)


class ProgressPublisher:
    """Publishes export progress updates to Redis"""

    def __init__(self, redis_url: Optional[str] = None, client=None):
        """
        Initialize Redis publisher

        Args:
            redis_url: Redis connection URL
            client: Ready-made Redis client, skips connecting
        """
        self.redis_url = redis_url
        self.redis_client = client

        if self.redis_client is None and self.redis_url:
            try:
                self.connect()
            except redis.RedisError as e:
                # Progress updates are optional
                logger.error("Failed to connect to Redis: %s", e)

    def connect(self):
        """Establish Redis connection"""
        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5
            )
            self.redis_client.ping()
            logger.info("Connected to Redis at %s", self.redis_url)
        except redis.RedisError as e:
            logger.error("Redis connection failed: %s", e)
            self.redis_client = None
            raise

    @staticmethod
    def channel_for(job_id: str) -> str:
        return f"export:{job_id}"

    def start_job(self, job_id: str, export_format: str):
        """Publish that the job has started."""
        self.publish_status(job_id, "processing", {
            "details": "Export has started.",
            "format": export_format,
        })

    def publish_progress(self, job_id: str, percent: float):
        self.publish_status(job_id, "progress", {"percent": round(percent, 1)})

    def publish_status(self, job_id: str, status: str, message_data: Dict):
        """
        Publish status change to Redis

        Args:
            job_id: Unique job identifier
            status: Status (processing, progress, completed, failed)
            message_data: Data associated with the status
        """
        if not self.redis_client:
            return

        payload = {
            "status": status,
            "message": message_data
        }

        try:
            self.redis_client.publish(self.channel_for(job_id), json.dumps(payload))
        except redis.RedisError as e:
            logger.error("Failed to publish status: %s", e)

    def complete_job(self, job_id: str, output_path: str, frame_count: int):
        """Mark job as completed with result data"""
        result = {
            "outputFile": output_path,
            "slideCount": frame_count,
        }

        self.publish_status(job_id, "completed", result)

    def fail_job(self, job_id: str, code: str, error_message: str,
                 error_details: Optional[str] = None, slide_index: Optional[int] = None):
        """Mark job as failed with error information"""
        error_data = {
            "code": code,
            "message": error_message,
            "details": error_details,
        }
        if slide_index is not None:
            error_data["slideIndex"] = slide_index

        self.publish_status(job_id, "failed", error_data)

    def close(self):
        """Close Redis connection"""
        if self.redis_client:
            try:
                self.redis_client.close()
                logger.info("Redis connection closed")
            except redis.RedisError as e:
                logger.error("Error closing Redis connection: %s", e)
