"""
Broker gateway: every network round-trip the Kafka Tool makes goes through here.
"""
import asyncio
from typing import Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import KafkaError

from .kafka_config import KafkaConfig
from .kafka_consumer import ConsumerHandle, topic_partitions
from .kafka_producer import ProducerHandle
from ..core.exceptions import (
    CommitError, ConnectError, FetchError, MetadataError, PollError, PublishError
)
from ..core.models import OffsetKind, TopicMetadata
from ..logger_config import setup_logger

logger = setup_logger(__name__)

# Anything the client or its transport can raise for a failed round-trip
CLIENT_ERRORS = (KafkaError, OSError, asyncio.TimeoutError)


class Connection:
    """
    A metadata-capable handle to one cluster.

    Owns the metadata client, the per-topic partition lists loaded through it and
    the group clients used for offset commits.
    """

    def __init__(self, hosts: List[str], client: AIOKafkaConsumer):
        self.hosts = hosts
        self.client = client
        self.topic_partitions: Dict[str, List[int]] = {}
        self.group_clients: Dict[str, AIOKafkaConsumer] = {}
        # One in-flight request at a time on the metadata and group clients
        self.lock = asyncio.Lock()
        self.closed = False

    def has_topic(self, topic: str) -> bool:
        return topic in self.topic_partitions

    def partitions_for(self, topic: str) -> List[int]:
        """Partitions of a topic whose metadata was loaded on this connection."""
        if topic not in self.topic_partitions:
            raise MetadataError(f"Metadata for topic {topic} has not been loaded")
        return self.topic_partitions[topic]


class BrokerGateway:
    """Thin orchestration layer over the aiokafka clients."""

    def __init__(self, config: Optional[KafkaConfig] = None):
        self.config = config or KafkaConfig()

    async def connect(self, hosts: List[str]) -> Connection:
        """
        Establish a metadata-capable connection.

        Raises:
            ConnectError: When no host is configured or the cluster cannot be reached
        """
        if not hosts:
            raise ConnectError(hosts, "no hosts configured")

        client = AIOKafkaConsumer(**self.config.consumer_kwargs(hosts))
        try:
            await client.start()
        except CLIENT_ERRORS as e:
            logger.error(f"Failed to connect to {hosts}: {e}")
            await self._stop_quietly(client)
            raise ConnectError(hosts, e) from e

        logger.info(f"Connected to {','.join(hosts)}")
        return Connection(hosts, client)

    async def discover_topics(self, conn: Connection) -> set:
        """Load full cluster metadata and return the topic names."""
        try:
            async with conn.lock:
                topics = await conn.client.topics()
        except CLIENT_ERRORS as e:
            raise MetadataError(f"Failed to load cluster metadata: {e}") from e
        return set(topics)

    async def load_topic_metadata(self, conn: Connection, topic: str) -> TopicMetadata:
        """
        Load partition metadata for a topic.

        Must run once per topic per connection before any offset or consume call on it.
        """
        topics = await self.discover_topics(conn)
        if topic not in topics:
            raise MetadataError(f"Unknown topic {topic}")

        partitions = conn.client.partitions_for_topic(topic)
        if not partitions:
            raise MetadataError(f"No partitions available for topic {topic}")

        conn.topic_partitions[topic] = sorted(partitions)
        logger.debug(f"Loaded metadata for {topic}: partitions {conn.topic_partitions[topic]}")
        return TopicMetadata(topic=topic, partitions=conn.topic_partitions[topic])

    async def fetch_watermarks(self, conn: Connection, topic: str, kind: OffsetKind) -> Dict[int, int]:
        """Earliest or latest offset of every partition of a loaded topic."""
        tps = topic_partitions(topic, conn.partitions_for(topic))
        try:
            async with conn.lock:
                if kind == OffsetKind.EARLIEST:
                    offsets = await conn.client.beginning_offsets(tps)
                else:
                    offsets = await conn.client.end_offsets(tps)
        except CLIENT_ERRORS as e:
            raise FetchError(f"Failed to fetch {kind.value} offsets for {topic}: {e}") from e
        return {tp.partition: offset for tp, offset in offsets.items()}

    async def commit_offset(self, conn: Connection, group_id: str, topic: str,
                            partition: int, offset: int) -> None:
        """Set the committed offset of one partition for a consumer group."""
        if partition not in conn.partitions_for(topic):
            raise MetadataError(f"Topic {topic} has no partition {partition}")

        tp = TopicPartition(topic, partition)
        try:
            async with conn.lock:
                committer = await self._group_client(conn, group_id)
                committer.assign([tp])
                try:
                    await committer.commit({tp: offset})
                finally:
                    # An idle committer must not keep fetching in the background
                    committer.unsubscribe()
        except CLIENT_ERRORS as e:
            raise CommitError(str(e)) from e

        logger.debug(f"Committed {topic}[{partition}] = {offset} for group {group_id}")

    async def commit_offsets(self, conn: Connection, group_id: str, topic: str,
                             offsets: Dict[int, int]) -> None:
        """
        Commit several partitions of a topic for one group, in partition order.

        Raises:
            CommitError: On the first rejected partition; applied_partitions lists the
                partitions committed before it, which stay committed
        """
        applied: List[int] = []
        for partition in sorted(offsets):
            try:
                await self.commit_offset(conn, group_id, topic, partition, offsets[partition])
            except CommitError as e:
                e.applied_partitions = list(applied)
                raise
            applied.append(partition)

    async def create_consumer(self, conn: Connection, topic: str, group_id: str,
                              fallback: OffsetKind = OffsetKind.EARLIEST) -> ConsumerHandle:
        """
        Start a consumer assigned to every partition of a loaded topic.

        Positions come from the group's committed offsets; `fallback` applies where
        the group has none.
        """
        tps = topic_partitions(topic, conn.partitions_for(topic))
        consumer = AIOKafkaConsumer(**self.config.consumer_kwargs(
            conn.hosts, group_id=group_id, auto_offset_reset=fallback.value
        ))
        try:
            await consumer.start()
            consumer.assign(tps)
        except CLIENT_ERRORS as e:
            await self._stop_quietly(consumer)
            raise ConnectError(conn.hosts, e) from e

        return ConsumerHandle(
            consumer,
            topic,
            group_id,
            poll_timeout_ms=self.config.poll_timeout_ms,
            max_poll_records=self.config.max_poll_records,
        )

    async def poll_once(self, consumer: ConsumerHandle,
                        max_records: Optional[int] = None) -> List[tuple]:
        """
        Single fetch cycle. An empty result means no more data is currently available.
        """
        try:
            return await consumer.poll_once(max_records)
        except CLIENT_ERRORS as e:
            raise PollError(f"Failed to fetch from {consumer.topic}: {e}") from e

    async def commit_consumed(self, consumer: ConsumerHandle) -> None:
        """Checkpoint the consumer's current position for its group."""
        try:
            await consumer.commit_consumed()
        except CLIENT_ERRORS as e:
            raise CommitError(str(e)) from e

    async def create_producer(self, conn: Connection) -> ProducerHandle:
        """Start a producer on the connection's cluster."""
        producer = AIOKafkaProducer(**self.config.producer_kwargs(conn.hosts))
        try:
            await producer.start()
        except CLIENT_ERRORS as e:
            await self._stop_quietly(producer)
            raise ConnectError(conn.hosts, e) from e
        return ProducerHandle(producer)

    async def publish(self, producer: ProducerHandle, topic: str, value: bytes,
                      key: Optional[bytes] = None) -> None:
        """Send one record."""
        try:
            await producer.send(topic, value, key)
        except CLIENT_ERRORS as e:
            logger.error(f"Error producing message to topic {topic}: {e}")
            raise PublishError(str(e)) from e

    async def release(self, handle) -> None:
        """Close a consumer or producer handle, logging client errors instead of raising them."""
        try:
            await handle.close()
        except CLIENT_ERRORS as e:
            logger.warning(f"Error while releasing {type(handle).__name__}: {e}")

    async def close(self, conn: Connection) -> None:
        """Release the connection and every group client opened through it."""
        if conn.closed:
            return
        conn.closed = True
        for client in conn.group_clients.values():
            await self._stop_quietly(client)
        conn.group_clients.clear()
        await self._stop_quietly(conn.client)
        logger.info(f"Connection to {','.join(conn.hosts)} closed")

    async def _group_client(self, conn: Connection, group_id: str) -> AIOKafkaConsumer:
        """Committer for a group. Only the most recently used group keeps a client."""
        client = conn.group_clients.get(group_id)
        if client is None:
            for stale_group in list(conn.group_clients):
                await self._stop_quietly(conn.group_clients.pop(stale_group))
                logger.debug(f"Closed committer for group {stale_group}")

            client = AIOKafkaConsumer(**self.config.consumer_kwargs(conn.hosts, group_id=group_id))
            try:
                await client.start()
            except CLIENT_ERRORS:
                await self._stop_quietly(client)
                raise
            conn.group_clients[group_id] = client
        return client

    @staticmethod
    async def _stop_quietly(client) -> None:
        try:
            await client.stop()
        except CLIENT_ERRORS as e:
            logger.warning(f"Error while stopping Kafka client: {e}")
