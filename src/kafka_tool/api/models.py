from typing import Dict, List

from pydantic import BaseModel

from kafka_tool.core.models import ConnectionConfig


class ConsumeStarted(BaseModel):
    """Response model for a started consume session."""
    session_id: str


class PublishBody(BaseModel):
    """Request body for publishing a single message."""
    topic: str
    value: str


class GroupedProfiles(BaseModel):
    """Profiles grouped by group label, in first-seen order."""
    groups: Dict[str, List[ConnectionConfig]]
