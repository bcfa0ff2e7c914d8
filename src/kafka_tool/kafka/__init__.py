# Broker access layer built on aiokafka

from .kafka_config import KafkaConfig
from .kafka_consumer import ConsumerHandle
from .kafka_producer import ProducerHandle
from .kafka_gateway import BrokerGateway, Connection

__all__ = [
    'BrokerGateway',
    'Connection',
    'ConsumerHandle',
    'ProducerHandle',
    'KafkaConfig',
]
