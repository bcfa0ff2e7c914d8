import os
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

from kafka_tool.api.models import ConsumeStarted, GroupedProfiles, PublishBody
from kafka_tool.core.models import (
    CommitOutcome,
    CommitRequest,
    ConnectionConfig,
    ConsumeRequest,
    PublishOutcome,
    SessionResult,
    TopicListResult,
    WatermarksResult,
)


class KafkaToolAPIClient:
    """
    Client for the Kafka Tool API.

    Lets a shell running in another process drive the core over HTTP.

    Environment variables used by default:
    - KAFKA_TOOL_BASE_URL (default: "http://localhost:3100")
    - KAFKA_TOOL_API_KEY (required for every /api endpoint)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        api_prefix: str = "/api",
        default_timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url: str = (base_url or os.getenv("KAFKA_TOOL_BASE_URL", "http://localhost:3100")).rstrip("/")
        self.api_key: Optional[str] = api_key or os.getenv("KAFKA_TOOL_API_KEY")
        self.api_prefix: str = api_prefix
        self.default_timeout_seconds: float = default_timeout_seconds

    # ---- Internal helpers ----
    def _require_api_key(self) -> str:
        if not self.api_key or not self.api_key.strip():
            raise ValueError(
                "KAFKA_TOOL_API_KEY is required for this operation. Set it via constructor or environment variable."
            )
        return self.api_key

    def _headers(self) -> Dict[str, str]:
        api_key = self._require_api_key()
        return {"Authorization": f"Bearer {api_key}"}

    def _url(self, path: str) -> str:
        # Avoid duplicating '/api' if the base_url already ends with it
        normalized_prefix = self.api_prefix if not self.base_url.endswith(self.api_prefix) else ""
        return f"{self.base_url}{normalized_prefix}{path}"

    def _post(
        self,
        path: str,
        body: BaseModel,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> requests.Response:
        return requests.post(
            url=self._url(path),
            headers=self._headers(),
            json=body.model_dump(mode="json"),
            timeout=timeout_seconds or self.default_timeout_seconds,
        )

    def _get(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> requests.Response:
        return requests.get(
            url=self._url(path),
            headers=self._headers(),
            params=params,
            timeout=timeout_seconds or self.default_timeout_seconds,
        )

    @staticmethod
    def _ensure_ok(response: requests.Response) -> Any:
        if not (200 <= response.status_code < 300):
            # Surface server-provided error payloads when available
            try:
                payload = response.json()
            except ValueError:
                payload = {"detail": response.text}
            raise requests.HTTPError(
                f"HTTP {response.status_code}: {payload}", response=response
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ValueError(f"Invalid JSON response: {exc}") from exc

    @classmethod
    def _parse(cls, model, response: requests.Response):
        payload = cls._ensure_ok(response)
        try:
            return model(**payload)
        except ValidationError as exc:
            raise ValueError(f"Unexpected response schema: {exc}\nPayload: {payload}") from exc

    # ---- Public API ----
    def list_profiles(self) -> List[ConnectionConfig]:
        payload = self._ensure_ok(self._get("/profiles"))
        try:
            return [ConnectionConfig(**item) for item in payload]
        except ValidationError as exc:
            raise ValueError(f"Unexpected response schema: {exc}\nPayload: {payload}") from exc

    def grouped_profiles(self) -> GroupedProfiles:
        return self._parse(GroupedProfiles, self._get("/profiles/grouped"))

    def save_profile(self, profile: ConnectionConfig) -> ConnectionConfig:
        return self._parse(ConnectionConfig, self._post("/profiles", profile))

    def test_connection(self, profile: ConnectionConfig) -> ConnectionConfig:
        """Try a profile's hosts; the outcome is in the returned profile's last_message."""
        return self._parse(ConnectionConfig, self._post("/profiles/test-connection", profile))

    def list_topics(self, profile_id: str) -> TopicListResult:
        return self._parse(TopicListResult, self._get(f"/profiles/{profile_id}/topics"))

    def get_watermarks(self, profile_id: str, topic: str) -> WatermarksResult:
        return self._parse(WatermarksResult, self._get(f"/profiles/{profile_id}/topics/{topic}/watermarks"))

    def start_consume(self, profile_id: str, request: ConsumeRequest) -> str:
        started = self._parse(ConsumeStarted, self._post(f"/profiles/{profile_id}/consume", request))
        return started.session_id

    def poll_session_result(self, session_id: str, value_filter: Optional[str] = None) -> SessionResult:
        params = {"value_filter": value_filter} if value_filter else None
        return self._parse(SessionResult, self._get(f"/sessions/{session_id}", params=params))

    def commit_manual_offset(self, profile_id: str, request: CommitRequest) -> CommitOutcome:
        return self._parse(CommitOutcome, self._post(f"/profiles/{profile_id}/commit", request))

    def publish(self, profile_id: str, topic: str, value: str) -> PublishOutcome:
        return self._parse(PublishOutcome, self._post(f"/profiles/{profile_id}/publish", PublishBody(topic=topic, value=value)))
