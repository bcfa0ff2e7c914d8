"""
Exceptions raised by the broker-facing core.

They stay inside the core: the service layer turns every one of them into a
result value before anything reaches the shell.
"""
from typing import Iterable, List, Optional


class KafkaToolError(Exception):
    """Base exception for broker interaction errors."""
    pass


class ConnectError(KafkaToolError):
    """Raised when the cluster hosts are unreachable or misconfigured."""

    def __init__(self, hosts: Iterable[str], cause: object):
        self.hosts: List[str] = list(hosts)
        self.cause = cause
        super().__init__(f"Could not connect to {','.join(self.hosts)}: {cause}")


class MetadataError(KafkaToolError):
    """Raised when topic metadata is missing or the broker rejects a metadata request."""
    pass


class FetchError(KafkaToolError):
    """Raised when watermark offsets cannot be fetched."""
    pass


class PollError(KafkaToolError):
    """Raised when a fetch cycle against the broker fails."""
    pass


class CommitError(KafkaToolError):
    """Raised when the broker rejects an offset commit."""

    def __init__(self, message: str, applied_partitions: Optional[Iterable[int]] = None):
        self.applied_partitions: List[int] = list(applied_partitions or [])
        super().__init__(message)


class PublishError(KafkaToolError):
    """Raised when the broker rejects a send."""
    pass


class ConfigLoadError(KafkaToolError):
    """Raised when the persisted profile list cannot be parsed."""
    pass


class ProfileNotFoundError(KafkaToolError):
    """Raised when a profile id is not known to the config store."""
    pass
