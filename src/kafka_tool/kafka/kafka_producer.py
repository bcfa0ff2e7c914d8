"""
Kafka producer handle for the Kafka Tool.
"""
from typing import Optional

from aiokafka import AIOKafkaProducer

from ..logger_config import setup_logger

logger = setup_logger(__name__)


class ProducerHandle:
    """A started aiokafka producer for one connection profile."""

    def __init__(self, producer: AIOKafkaProducer):
        self.producer = producer
        self.closed = False

    async def send(self, topic: str, value: bytes, key: Optional[bytes] = None) -> None:
        """
        Produce a single record and wait for the broker acknowledgement.

        Args:
            topic: Kafka topic name
            value: Raw record value
            key: Optional record key for partitioning
        """
        record_metadata = await self.producer.send_and_wait(topic=topic, value=value, key=key)
        logger.debug(f"Message delivered to {record_metadata.topic} [{record_metadata.partition}] at offset {record_metadata.offset}")

    async def close(self) -> None:
        """Close the producer."""
        if self.closed:
            return
        self.closed = True
        await self.producer.stop()
