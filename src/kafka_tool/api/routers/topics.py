from typing import Optional

from fastapi import APIRouter, Depends

from kafka_tool.api.auth import require_api_key
from kafka_tool.api.models import ConsumeStarted, PublishBody
from kafka_tool.api.routers.profiles import get_service
from kafka_tool.core.models import (
    CommitOutcome,
    CommitRequest,
    ConsumeRequest,
    PublishOutcome,
    SessionResult,
    TopicListResult,
    WatermarksResult,
)
from kafka_tool.logger_config import setup_logger

router = APIRouter()
logger = setup_logger(__name__)


@router.get("/profiles/{profile_id}/topics", response_model=TopicListResult)
async def list_topics(profile_id: str, api_key: str = Depends(require_api_key)):
    """List the topics of a profile's cluster."""
    return await get_service().list_topics(profile_id)


@router.get("/profiles/{profile_id}/topics/{topic}/watermarks", response_model=WatermarksResult)
async def get_watermarks(profile_id: str, topic: str, api_key: str = Depends(require_api_key)):
    """Low and high watermark of every partition of a topic."""
    return await get_service().get_watermarks(profile_id, topic)


@router.post("/profiles/{profile_id}/consume", response_model=ConsumeStarted)
async def start_consume(profile_id: str, request: ConsumeRequest, api_key: str = Depends(require_api_key)):
    """
    Start a bounded pull. Any previous pull and its records are discarded.

    Poll /sessions/{session_id} for the result.
    """
    session_id = await get_service().start_consume(profile_id, request)
    logger.info(f"Consume session {session_id} requested for {request.topic} on profile {profile_id}")
    return ConsumeStarted(session_id=session_id)


@router.get("/sessions/{session_id}", response_model=SessionResult)
async def poll_session(
    session_id: str,
    value_filter: Optional[str] = None,
    api_key: str = Depends(require_api_key),
):
    """
    Get the state of a consume session.

    Args:
        session_id: Id returned when the pull was started
        value_filter: Only return records whose value contains this text
    """
    return get_service().poll_session_result(session_id, value_filter)


@router.post("/profiles/{profile_id}/commit", response_model=CommitOutcome)
async def commit_offset(profile_id: str, request: CommitRequest, api_key: str = Depends(require_api_key)):
    """Manually set a consumer group's committed offset for one partition."""
    return await get_service().commit_manual_offset(profile_id, request)


@router.post("/profiles/{profile_id}/publish", response_model=PublishOutcome)
async def publish(profile_id: str, body: PublishBody, api_key: str = Depends(require_api_key)):
    """Publish a single message. On failure the message comes back in `pending`."""
    return await get_service().publish(profile_id, body.topic, body.value)
