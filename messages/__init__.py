"""
Message queue and progress communication module.

This module provides the RabbitMQ export consumer and Redis progress publishing
for the deck export service.
"""

from .redis import ProgressPublisher
from .rabbitmq import ExportConsumer

__all__ = [
    'ProgressPublisher',
    'ExportConsumer',
]
