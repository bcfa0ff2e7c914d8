"""
Start-offset math for a consume request.

`LatestMinusN` splits the requested lookback evenly across partitions with
truncating division, whatever each partition's actual backlog is. On a topic
with imbalanced partitions this reads fewer than the newest `n` records of the
topic as a whole; it is an approximation, not a "last N messages" guarantee.
"""
from typing import Dict, List

from .models import Earliest, OffsetKind, PartitionOffsetPoint, StartPolicy


def watermark_kind(policy: StartPolicy) -> OffsetKind:
    """The watermark a policy is computed from."""
    if isinstance(policy, Earliest):
        return OffsetKind.EARLIEST
    return OffsetKind.LATEST


def per_partition_back(n: int, partition_count: int) -> int:
    if partition_count > 0:
        return n // partition_count
    return n


def resolve_start_offsets(policy: StartPolicy, watermarks: Dict[int, int]) -> List[PartitionOffsetPoint]:
    """
    Turn a start policy into a concrete starting offset per partition.

    Args:
        policy: Earliest or LatestMinusN
        watermarks: partition -> low watermark for Earliest, high watermark otherwise

    Returns:
        One point per partition, ordered by partition
    """
    if isinstance(policy, Earliest):
        return [
            PartitionOffsetPoint(partition=partition, offset=offset)
            for partition, offset in sorted(watermarks.items())
        ]

    back = per_partition_back(policy.n, len(watermarks))
    return [
        PartitionOffsetPoint(partition=partition, offset=max(0, high - back))
        for partition, high in sorted(watermarks.items())
    ]
