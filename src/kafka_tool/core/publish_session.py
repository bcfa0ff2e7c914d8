"""
Publishing single records for one connection profile.
"""
from typing import Optional

from .exceptions import KafkaToolError, PublishError
from ..kafka.kafka_gateway import BrokerGateway, Connection
from ..kafka.kafka_producer import ProducerHandle
from ..logger_config import setup_logger

logger = setup_logger(__name__)


class PublishSession:
    """
    Holds the pending message and a lazily started producer for one profile.

    The producer survives failed sends; it is only dropped by close(), which the
    owner calls when the active profile changes.
    """

    def __init__(self, gateway: BrokerGateway, connection: Connection):
        self.gateway = gateway
        self.connection = connection
        self.producer: Optional[ProducerHandle] = None
        self.pending = ""
        self.last_error: Optional[str] = None

    async def send(self, topic: str, value: Optional[str] = None) -> None:
        """
        Publish the pending message (or `value`, which becomes the pending message).

        On success the pending buffer is cleared. On failure the buffer and the
        error text are kept so the operator can retry.

        Raises:
            PublishError: When the broker rejects the send
        """
        if value is not None:
            self.pending = value

        if self.producer is None:
            try:
                self.producer = await self.gateway.create_producer(self.connection)
            except KafkaToolError as e:
                self.last_error = str(e)
                raise PublishError(str(e)) from e

        try:
            await self.gateway.publish(self.producer, topic, self.pending.encode('utf-8'))
        except PublishError as e:
            self.last_error = str(e)
            raise

        logger.info(f"Published {len(self.pending)} characters to {topic}")
        self.pending = ""
        self.last_error = None

    async def close(self) -> None:
        if self.producer is not None:
            producer, self.producer = self.producer, None
            await self.gateway.release(producer)
