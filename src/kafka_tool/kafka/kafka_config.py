"""
Kafka client configuration for the Kafka Tool.
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass

from ..config import ToolSettings


@dataclass
class KafkaConfig:
    """Kafka client settings shared by every connection the tool opens."""

    client_id: str = 'kafka-tool'
    request_timeout_ms: int = 30000
    poll_timeout_ms: int = 1000
    max_poll_records: int = 500

    # Producer settings
    producer_config: Dict[str, Any] = None

    # Consumer settings
    consumer_config: Dict[str, Any] = None

    def __post_init__(self):
        """Initialize default configurations."""
        if self.producer_config is None:
            self.producer_config = {
                'client.id': self.client_id,
                'acks': 'all',  # Wait for all replicas to acknowledge
                'request.timeout.ms': self.request_timeout_ms,
                'linger.ms': 0,  # Single records, nothing to batch
            }

        if self.consumer_config is None:
            self.consumer_config = {
                'client.id': self.client_id,
                'enable.auto.commit': False,
                'request.timeout.ms': self.request_timeout_ms,
                'max.poll.records': self.max_poll_records,
            }

    @classmethod
    def from_settings(cls, settings: ToolSettings) -> "KafkaConfig":
        """Build the client config from the tool settings."""
        return cls(
            client_id=settings.client_id,
            request_timeout_ms=settings.request_timeout_ms,
            poll_timeout_ms=settings.poll_timeout_ms,
            max_poll_records=settings.max_poll_records,
        )

    def consumer_kwargs(self, hosts: List[str], group_id: Optional[str] = None,
                        auto_offset_reset: str = 'earliest') -> Dict[str, Any]:
        """aiokafka consumer kwargs for the given cluster and group."""
        consumer_config = self.consumer_config.copy()
        consumer_config['bootstrap.servers'] = hosts
        consumer_config['group.id'] = group_id
        consumer_config['auto.offset.reset'] = auto_offset_reset
        return _convert_config(consumer_config)

    def producer_kwargs(self, hosts: List[str]) -> Dict[str, Any]:
        """aiokafka producer kwargs for the given cluster."""
        producer_config = self.producer_config.copy()
        producer_config['bootstrap.servers'] = hosts
        return _convert_config(producer_config)


def _convert_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Convert confluent-kafka config keys to aiokafka format."""
    config_mapping = {
        'bootstrap.servers': 'bootstrap_servers',
        'client.id': 'client_id',
        'group.id': 'group_id',
        'auto.offset.reset': 'auto_offset_reset',
        'enable.auto.commit': 'enable_auto_commit',
        'request.timeout.ms': 'request_timeout_ms',
        'max.poll.records': 'max_poll_records',
        'acks': 'acks',
        'linger.ms': 'linger_ms',
    }

    converted = {}
    for old_key, new_key in config_mapping.items():
        if old_key in config:
            converted[new_key] = config[old_key]

    return converted
