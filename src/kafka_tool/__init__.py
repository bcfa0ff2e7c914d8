"""
Kafka Tool

Operator tooling for a Kafka-compatible broker:
- Browse the topics of a saved connection profile
- Pull a bounded batch of messages from the earliest offset or from the latest minus N
- Manually set a consumer group's committed offset per partition
- Publish a single message

KafkaToolService is the core API a shell calls into; the FastAPI app in
kafka_tool.api.api_server exposes it over local HTTP.
"""

__version__ = "0.1.0"

from .core.config_store import ConfigStore
from .core.consume_session import ConsumeSession
from .core.offset_commit import OffsetCommitController
from .core.publish_session import PublishSession
from .kafka import BrokerGateway
from .service import KafkaToolService

__all__ = [
    "BrokerGateway",
    "ConfigStore",
    "ConsumeSession",
    "KafkaToolService",
    "OffsetCommitController",
    "PublishSession",
]
