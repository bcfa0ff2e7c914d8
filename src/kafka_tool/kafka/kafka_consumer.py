"""
Kafka consumer handle for the Kafka Tool.
"""
from typing import List, Optional, Tuple

from aiokafka import AIOKafkaConsumer, TopicPartition

from ..core.models import FetchedRecord
from ..logger_config import setup_logger

logger = setup_logger(__name__)


def _decode(raw: Optional[bytes]) -> str:
    if raw is None:
        return ""
    return raw.decode('utf-8', errors='replace')


class ConsumerHandle:
    """
    A started aiokafka consumer bound to every partition of one topic.

    The handle belongs to a single consume session and must be closed when the
    session's topic or profile changes.
    """

    def __init__(self, consumer: AIOKafkaConsumer, topic: str, group_id: str,
                 poll_timeout_ms: int = 1000, max_poll_records: int = 500):
        self.consumer = consumer
        self.topic = topic
        self.group_id = group_id
        self.poll_timeout_ms = poll_timeout_ms
        self.max_poll_records = max_poll_records
        self.closed = False

    async def poll_once(self, max_records: Optional[int] = None) -> List[Tuple[int, List[FetchedRecord]]]:
        """
        Run a single fetch cycle.

        Args:
            max_records: Upper bound on records returned, capped by the handle's max_poll_records

        Returns:
            (partition, records) pairs in the order the broker delivered them
        """
        limit = self.max_poll_records if max_records is None else min(max_records, self.max_poll_records)
        batch = await self.consumer.getmany(timeout_ms=self.poll_timeout_ms, max_records=limit)

        result = []
        for tp, messages in batch.items():
            records = [
                FetchedRecord(
                    offset=msg.offset,
                    key=_decode(msg.key),
                    value=_decode(msg.value),
                    partition=tp.partition,
                )
                for msg in messages
            ]
            result.append((tp.partition, records))
        return result

    async def commit_consumed(self) -> None:
        """Commit the current position of every assigned partition for the handle's group."""
        await self.consumer.commit()

    async def close(self) -> None:
        """Stop the consumer."""
        if self.closed:
            return
        self.closed = True
        await self.consumer.stop()
        logger.debug(f"Consumer for topic {self.topic} (group {self.group_id}) closed")


def topic_partitions(topic: str, partitions: List[int]) -> List[TopicPartition]:
    return [TopicPartition(topic, p) for p in partitions]
