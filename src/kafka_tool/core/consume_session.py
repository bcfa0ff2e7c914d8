"""
Bounded pull of records from one topic.
"""
from enum import Enum
from typing import List, Optional

from .exceptions import CommitError, KafkaToolError
from .models import ConsumeRequest, FetchedRecord, PartitionOffsetPoint
from .offset_resolver import resolve_start_offsets, watermark_kind
from ..config import KAFKA_GROUP_ID
from ..kafka.kafka_consumer import ConsumerHandle
from ..kafka.kafka_gateway import BrokerGateway, Connection
from ..logger_config import setup_logger

logger = setup_logger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    COMMITTING = "committing"
    POLLING = "polling"
    DONE = "done"
    FAILED = "failed"


class ConsumeSession:
    """
    Orchestrates one bounded pull.

    Resolves the starting offsets, seeds them into the tool's work group, then
    polls until the target count is reached or a poll comes back empty. Progress
    is committed for the work group after every non-empty batch.

    A failed commit while seeding the start offsets aborts the pull. Partitions
    committed before the failure keep their new offsets; nothing is rolled back.
    """

    def __init__(
        self,
        gateway: BrokerGateway,
        connection: Connection,
        request: ConsumeRequest,
        work_group_id: str = KAFKA_GROUP_ID,
        max_poll_cycles: int = 10000,
    ):
        self.gateway = gateway
        self.connection = connection
        self.request = request
        self.work_group_id = work_group_id
        self.max_poll_cycles = max_poll_cycles

        self.state = SessionState.IDLE
        self.error: Optional[KafkaToolError] = None
        self.start_offsets: List[PartitionOffsetPoint] = []
        self.records: List[FetchedRecord] = []
        self.consumed_count = 0
        self.poll_cycles = 0
        self.consumer: Optional[ConsumerHandle] = None

    @property
    def topic(self) -> str:
        return self.request.topic

    @property
    def retrieved_count(self) -> int:
        return len(self.records)

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.DONE, SessionState.FAILED)

    async def run(self) -> SessionState:
        """
        Drive the session to DONE or FAILED.

        Broker errors are recorded on the session rather than raised.
        """
        logger.info(
            f"Consume session started for {self.topic}: {self.request.start_policy}, "
            f"target {self.request.target_count}"
        )
        try:
            await self._resolve()
            await self._commit_start_offsets()
            await self._poll()
        except KafkaToolError as e:
            self.fail(e)
        except Exception as e:
            logger.error(f"Unexpected error in consume session for {self.topic}: {e}", exc_info=True)
            self.fail(KafkaToolError(str(e)))
        finally:
            await self._release_consumer()

        if self.state == SessionState.DONE:
            logger.info(
                f"Consume session for {self.topic} done: {self.retrieved_count} records "
                f"in {self.poll_cycles} polls"
            )
        return self.state

    def fail(self, error: KafkaToolError) -> None:
        logger.error(f"Consume session for {self.topic} failed while {self.state.value}: {error}")
        self.error = error
        self.state = SessionState.FAILED

    async def discard(self) -> None:
        """Drop every in-memory result and release the consumer."""
        self.records = []
        self.consumed_count = 0
        await self._release_consumer()

    async def _resolve(self) -> None:
        self.state = SessionState.RESOLVING
        if not self.connection.has_topic(self.topic):
            await self.gateway.load_topic_metadata(self.connection, self.topic)

        policy = self.request.start_policy
        watermarks = await self.gateway.fetch_watermarks(self.connection, self.topic, watermark_kind(policy))
        self.start_offsets = resolve_start_offsets(policy, watermarks)
        logger.debug(f"Resolved start offsets for {self.topic}: {self.start_offsets}")

    async def _commit_start_offsets(self) -> None:
        self.state = SessionState.COMMITTING
        offsets = {point.partition: point.offset for point in self.start_offsets}
        try:
            await self.gateway.commit_offsets(self.connection, self.work_group_id, self.topic, offsets)
        except CommitError as e:
            logger.warning(
                f"Start offset commit failed on {self.topic}; "
                f"partitions {e.applied_partitions} remain committed"
            )
            raise

    async def _poll(self) -> None:
        self.state = SessionState.POLLING
        target = self.request.target_count
        if target == 0:
            self.state = SessionState.DONE
            return

        self.consumer = await self.gateway.create_consumer(
            self.connection,
            self.topic,
            self.work_group_id,
            fallback=watermark_kind(self.request.start_policy),
        )

        while self.consumed_count < target and self.poll_cycles < self.max_poll_cycles:
            batches = await self.gateway.poll_once(self.consumer, max_records=target - self.consumed_count)
            self.poll_cycles += 1

            fetched = [record for _, records in batches for record in records]
            if not fetched:
                break

            # A batch past the target is kept whole
            self.consumed_count += len(fetched)
            self.records.extend(fetched)
            await self.gateway.commit_consumed(self.consumer)
            logger.debug(f"Fetched {len(fetched)} records from {self.topic} ({self.consumed_count}/{target})")

        if self.poll_cycles >= self.max_poll_cycles and self.consumed_count < target:
            logger.warning(f"Stopped polling {self.topic} after {self.poll_cycles} cycles")

        self.state = SessionState.DONE

    async def _release_consumer(self) -> None:
        if self.consumer is not None:
            consumer, self.consumer = self.consumer, None
            await self.gateway.release(consumer)


def filter_records(records: List[FetchedRecord], value_filter: Optional[str]) -> List[FetchedRecord]:
    """Keep records whose value contains the filter text; a blank filter keeps everything."""
    if not value_filter or not value_filter.strip():
        return list(records)
    return [r for r in records if value_filter in r.value]
