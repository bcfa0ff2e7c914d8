from typing import List

from fastapi import APIRouter, Depends, HTTPException

import kafka_tool.api.globals as g
from kafka_tool.api.auth import require_api_key
from kafka_tool.api.models import GroupedProfiles
from kafka_tool.core.models import ConnectionConfig
from kafka_tool.logger_config import setup_logger

router = APIRouter()
logger = setup_logger(__name__)


def get_service():
    if not g.service:
        raise HTTPException(status_code=503, detail="Kafka Tool service not initialized")
    return g.service


@router.get("/profiles", response_model=List[ConnectionConfig])
async def list_profiles(api_key: str = Depends(require_api_key)):
    """List every saved connection profile."""
    return get_service().config_store.list()


@router.get("/profiles/grouped", response_model=GroupedProfiles)
async def grouped_profiles(api_key: str = Depends(require_api_key)):
    """Saved profiles grouped by their group label."""
    return GroupedProfiles(groups=get_service().config_store.grouped())


@router.post("/profiles", response_model=ConnectionConfig)
async def save_profile(profile: ConnectionConfig, api_key: str = Depends(require_api_key)):
    """
    Save a connection profile, replacing any profile with the same id.

    An id is assigned on first save.
    """
    return get_service().config_store.save(profile)


@router.post("/profiles/test-connection", response_model=ConnectionConfig)
async def test_connection(profile: ConnectionConfig, api_key: str = Depends(require_api_key)):
    """
    Try a profile's hosts and report the outcome in last_message.

    The discovered topics are returned in cached_topics; nothing is saved.
    """
    result = await get_service().test_connection(profile)
    logger.info(f"Connection test for {profile.host_list}: {result.last_message}")
    return result
