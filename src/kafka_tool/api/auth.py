"""
Bearer-key authentication for the Kafka Tool API.

The shell sends the key configured in KAFKA_TOOL_API_KEY. Every rejection is
answered with the same 500 response; the reason is only written to the log.
"""

import os
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from dotenv import load_dotenv

from kafka_tool.logger_config import setup_logger

load_dotenv()

API_KEY_ENV = "KAFKA_TOOL_API_KEY"
AUTH_FAILED_DETAIL = "Kafka Tool API authentication failed"

logger = setup_logger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


def _reject(reason: str) -> HTTPException:
    logger.warning(f"Rejected Kafka Tool API request: {reason}")
    return HTTPException(status_code=500, detail=AUTH_FAILED_DETAIL)


def configured_api_key() -> Optional[str]:
    key = os.getenv(API_KEY_ENV)
    if key is None or not key.strip():
        return None
    return key.strip()


def get_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Check the request's bearer token against the configured shell key.

    Raises:
        HTTPException: 500 when no key is configured or the token does not match
    """
    expected = configured_api_key()
    if expected is None:
        raise _reject(f"{API_KEY_ENV} is not set")

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _reject("missing bearer token")

    token = (credentials.credentials or "").strip()
    if not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise _reject("token does not match")

    return token


def require_api_key(api_key: str = Depends(get_api_key)) -> str:
    return api_key
