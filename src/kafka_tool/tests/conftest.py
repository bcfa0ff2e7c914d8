"""
Shared fixtures: an in-memory broker gateway and a temporary profile store.
"""
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from kafka_tool.core.config_store import ConfigStore
from kafka_tool.core.exceptions import (
    CommitError, ConnectError, MetadataError, PollError, PublishError
)
from kafka_tool.core.models import ConnectionConfig, FetchedRecord, OffsetKind, TopicMetadata
from kafka_tool.kafka.kafka_gateway import BrokerGateway, Connection


class FakeConsumer:
    def __init__(self, topic: str, group_id: str, positions: Dict[int, int]):
        self.topic = topic
        self.group_id = group_id
        self.positions = positions
        self.closed = False

    async def close(self):
        self.closed = True


class FakeProducer:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FakeGateway:
    """
    In-memory stand-in for BrokerGateway.

    Each topic is a dict of partition -> list of records whose offsets run from
    the partition's low watermark up to (but excluding) its high watermark.
    """

    def __init__(self, batch_size: int = 1000):
        self.logs: Dict[str, Dict[int, List[FetchedRecord]]] = {}
        self._bounds: Dict[str, Dict[int, tuple]] = {}
        self.committed: Dict[tuple, int] = {}
        self.batch_size = batch_size
        self.calls: List[tuple] = []
        self.polled: List[FetchedRecord] = []
        self.consumers: List[FakeConsumer] = []
        self.producers: List[FakeProducer] = []
        self.published: List[tuple] = []

        self.unreachable = False
        self.fail_commit_on: Optional[int] = None
        self.fail_poll = False
        self.publish_error: Optional[str] = None
        self.endless = False

    def add_topic(self, topic: str, watermarks: Dict[int, tuple]) -> None:
        self.logs[topic] = {
            partition: [
                FetchedRecord(offset=o, key=f"k{partition}-{o}", value=f"value {partition}-{o}", partition=partition)
                for o in range(low, high)
            ]
            for partition, (low, high) in watermarks.items()
        }
        self._bounds[topic] = dict(watermarks)

    async def connect(self, hosts):
        self.calls.append(("connect", tuple(hosts)))
        if self.unreachable or not hosts:
            raise ConnectError(hosts, "Unable to bootstrap from hosts")
        return Connection(list(hosts), MagicMock())

    async def discover_topics(self, conn):
        self.calls.append(("discover_topics",))
        return set(self.logs)

    async def load_topic_metadata(self, conn, topic):
        self.calls.append(("load_topic_metadata", topic))
        if topic not in self.logs:
            raise MetadataError(f"Unknown topic {topic}")
        conn.topic_partitions[topic] = sorted(self.logs[topic])
        return TopicMetadata(topic=topic, partitions=conn.topic_partitions[topic])

    async def fetch_watermarks(self, conn, topic, kind):
        self.calls.append(("fetch_watermarks", topic, kind))
        partitions = conn.partitions_for(topic)
        index = 0 if kind == OffsetKind.EARLIEST else 1
        return {p: self._bounds[topic][p][index] for p in partitions}

    async def commit_offset(self, conn, group_id, topic, partition, offset):
        self.calls.append(("commit_offset", group_id, topic, partition, offset))
        if self.fail_commit_on == partition:
            raise CommitError("NotCoordinatorForGroupError")
        self.committed[(group_id, topic, partition)] = offset

    commit_offsets = BrokerGateway.commit_offsets

    async def create_consumer(self, conn, topic, group_id, fallback=OffsetKind.EARLIEST):
        self.calls.append(("create_consumer", topic, group_id))
        positions = {}
        for partition in conn.partitions_for(topic):
            low, high = self._bounds[topic][partition]
            default = low if fallback == OffsetKind.EARLIEST else high
            positions[partition] = self.committed.get((group_id, topic, partition), default)
        consumer = FakeConsumer(topic, group_id, positions)
        self.consumers.append(consumer)
        return consumer

    async def poll_once(self, consumer, max_records=None):
        self.calls.append(("poll_once", consumer.topic))
        if consumer.closed:
            raise PollError("poll on a closed consumer")
        if self.fail_poll:
            raise PollError("Failed to fetch: broker not available")

        limit = self.batch_size if max_records is None else min(max_records, self.batch_size)
        result = []
        for partition, position in consumer.positions.items():
            if limit <= 0:
                break
            if self.endless:
                records = [FetchedRecord(offset=position, key="", value="tick", partition=partition)]
            else:
                records = [r for r in self.logs[consumer.topic][partition] if r.offset >= position][:limit]
            if records:
                consumer.positions[partition] = records[-1].offset + 1
                limit -= len(records)
                result.append((partition, records))
                self.polled.extend(records)
        return result

    async def commit_consumed(self, consumer):
        self.calls.append(("commit_consumed", consumer.topic))
        for partition, position in consumer.positions.items():
            self.committed[(consumer.group_id, consumer.topic, partition)] = position

    async def create_producer(self, conn):
        self.calls.append(("create_producer",))
        producer = FakeProducer()
        self.producers.append(producer)
        return producer

    async def publish(self, producer, topic, value, key=None):
        self.calls.append(("publish", topic, value))
        if self.publish_error:
            raise PublishError(self.publish_error)
        self.published.append((topic, value))

    async def release(self, handle):
        await handle.close()

    async def close(self, conn):
        self.calls.append(("close",))
        conn.closed = True

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def gateway():
    """Gateway with one single-partition topic 'orders' holding offsets 0..99."""
    fake = FakeGateway()
    fake.add_topic("orders", {0: (0, 100)})
    return fake


@pytest.fixture
def config_store(tmp_path):
    store = ConfigStore(str(tmp_path / ".config"))
    store.load()
    return store


@pytest.fixture
def profile(config_store):
    return config_store.save(ConnectionConfig(
        group_label="local",
        display_name="dev cluster",
        host_list="localhost:9092",
    ))


@pytest.fixture
def make_gateway():
    """Factory for gateways that need a custom topic layout."""
    return FakeGateway
