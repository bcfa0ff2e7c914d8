"""
Data model shared by the core and the API surface.
"""
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OffsetKind(str, Enum):
    """Which watermark to read for a partition."""
    EARLIEST = "earliest"
    LATEST = "latest"


class ConnectionConfig(BaseModel):
    """A saved profile identifying a cluster."""
    id: str = ""
    group_label: str = ""
    display_name: str = ""
    host_list: List[str] = Field(default_factory=list)
    cached_topics: Set[str] = Field(default_factory=set)
    cached_group_ids: Set[str] = Field(default_factory=set)
    last_message: Optional[str] = None
    poll_rows: int = Field(default=100, ge=0)

    @field_validator("host_list", mode="before")
    @classmethod
    def split_hosts(cls, value):
        # The shell hands over the raw "host:port,host:port" text box
        if isinstance(value, str):
            value = value.split(",")
        return [h.strip() for h in value if h and h.strip()]


class ToolConfig(BaseModel):
    """Persisted document holding every profile."""
    kafka_configs: List[ConnectionConfig] = Field(default_factory=list)


class PartitionOffsetPoint(BaseModel):
    partition: int
    offset: int


class PartitionWatermarks(BaseModel):
    partition: int
    low: int
    high: int


class TopicMetadata(BaseModel):
    topic: str
    partitions: List[int]


class FetchedRecord(BaseModel):
    offset: int
    key: str = ""
    value: str = ""
    partition: Optional[int] = None


class Earliest(BaseModel):
    """Start every partition at its low watermark."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["earliest"] = "earliest"


class LatestMinusN(BaseModel):
    """Start `n` records back from the high watermark, split evenly across partitions."""
    model_config = ConfigDict(frozen=True)
    kind: Literal["latest_minus_n"] = "latest_minus_n"
    n: int = Field(ge=0)


StartPolicy = Annotated[Union[Earliest, LatestMinusN], Field(discriminator="kind")]


class ConsumeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)
    topic: str
    start_policy: StartPolicy = Field(default_factory=Earliest)
    target_count: int = Field(ge=0)


class CommitRequest(BaseModel):
    model_config = ConfigDict(frozen=True)
    group_id: str
    topic: str
    partition: int
    target_offset: int


class OutOfRange(BaseModel):
    """Local validation failure for a manual commit; never reaches the broker."""
    bound: Literal["below", "above"]
    low: int
    high: int

    @property
    def message(self) -> str:
        if self.bound == "below":
            return f"Offset is below the low watermark {self.low}"
        return f"Offset is above the high watermark {self.high}"


class TopicListResult(BaseModel):
    status: Literal["ok", "error"]
    topics: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class WatermarksResult(BaseModel):
    status: Literal["ok", "error"]
    watermarks: List[PartitionWatermarks] = Field(default_factory=list)
    error: Optional[str] = None


class SessionResult(BaseModel):
    session_id: str
    status: Literal["in_progress", "done", "failed"]
    state: str
    records: List[FetchedRecord] = Field(default_factory=list)
    retrieved_count: int = 0
    error: Optional[str] = None


class CommitOutcome(BaseModel):
    status: Literal["ok", "out_of_range", "error"]
    out_of_range: Optional[OutOfRange] = None
    error: Optional[str] = None


class PublishOutcome(BaseModel):
    status: Literal["ok", "error"]
    pending: str = ""
    error: Optional[str] = None

