"""
Broker-interaction core of the Kafka Tool.
"""
