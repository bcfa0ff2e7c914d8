"""
Manual offset commits for a user-chosen consumer group.
"""
from typing import Optional

from .exceptions import FetchError
from .models import CommitRequest, OffsetKind, OutOfRange
from ..kafka.kafka_gateway import BrokerGateway, Connection
from ..logger_config import setup_logger

logger = setup_logger(__name__)


class OffsetCommitController:
    """Validates a commit target against fresh watermarks before sending it to the broker."""

    def __init__(self, gateway: BrokerGateway, connection: Connection):
        self.gateway = gateway
        self.connection = connection

    @staticmethod
    def validate(request: CommitRequest, low: int, high: int) -> Optional[OutOfRange]:
        """
        Check a commit target against a partition's watermarks.

        Returns:
            None when low <= target_offset <= high, otherwise the violated bound
        """
        if request.target_offset < low:
            return OutOfRange(bound="below", low=low, high=high)
        if request.target_offset > high:
            return OutOfRange(bound="above", low=low, high=high)
        return None

    async def apply(self, request: CommitRequest) -> None:
        """Send a validated commit. Broker rejections surface as CommitError, unretried."""
        await self.gateway.commit_offset(
            self.connection,
            request.group_id,
            request.topic,
            request.partition,
            request.target_offset,
        )
        logger.info(
            f"Committed offset {request.target_offset} on {request.topic}[{request.partition}] "
            f"for group {request.group_id}"
        )

    async def commit(self, request: CommitRequest) -> Optional[OutOfRange]:
        """
        Refresh the partition's watermarks, validate, then apply.

        Returns:
            None on success, the OutOfRange result when validation rejected the target
        """
        if not self.connection.has_topic(request.topic):
            await self.gateway.load_topic_metadata(self.connection, request.topic)

        lows = await self.gateway.fetch_watermarks(self.connection, request.topic, OffsetKind.EARLIEST)
        highs = await self.gateway.fetch_watermarks(self.connection, request.topic, OffsetKind.LATEST)
        if request.partition not in lows or request.partition not in highs:
            raise FetchError(f"No watermarks for {request.topic}[{request.partition}]")

        out_of_range = self.validate(request, lows[request.partition], highs[request.partition])
        if out_of_range is not None:
            logger.warning(f"Rejected commit for {request.topic}[{request.partition}]: {out_of_range.message}")
            return out_of_range

        await self.apply(request)
        return None
