"""
The Kafka Tool core API.

KafkaToolService is what a shell calls into. It keeps one live connection for
the active profile, owns the consume and publish sessions bound to it, and
turns every broker error into a result value.
"""
import asyncio
import uuid
from typing import Dict, Optional

from .config import ToolSettings
from .core.config_store import ConfigStore
from .core.consume_session import ConsumeSession, SessionState, filter_records
from .core.exceptions import KafkaToolError
from .core.models import (
    CommitOutcome,
    CommitRequest,
    ConnectionConfig,
    ConsumeRequest,
    OffsetKind,
    PartitionWatermarks,
    PublishOutcome,
    SessionResult,
    TopicListResult,
    WatermarksResult,
)
from .core.offset_commit import OffsetCommitController
from .core.publish_session import PublishSession
from .kafka import BrokerGateway, Connection, KafkaConfig
from .logger_config import setup_logger

logger = setup_logger(__name__)

CONNECTION_SUCCEEDED = "Connection succeeded"


class KafkaToolService:
    """
    Core API surface for the shell.

    Switching to another profile, or to a profile whose hosts changed, closes the
    previous connection together with its consume and publish sessions. Starting
    a consume discards the previous session and its records before the new one
    polls.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        settings: Optional[ToolSettings] = None,
        gateway: Optional[BrokerGateway] = None,
    ):
        self.settings = settings or ToolSettings()
        self.config_store = config_store
        self.gateway = gateway or BrokerGateway(KafkaConfig.from_settings(self.settings))

        self.active_profile: Optional[ConnectionConfig] = None
        self.connection: Optional[Connection] = None
        self.consume_session: Optional[ConsumeSession] = None
        self.consume_session_id: Optional[str] = None
        self.consume_task: Optional[asyncio.Task] = None
        self.publish_session: Optional[PublishSession] = None
        self.sessions: Dict[str, ConsumeSession] = {}
        self._lock = asyncio.Lock()

    async def test_connection(self, profile: ConnectionConfig) -> ConnectionConfig:
        """
        Try the profile's hosts on a throwaway connection.

        Returns:
            A copy of the profile with the discovered topics cached and the outcome
            in last_message. Nothing is persisted.
        """
        try:
            conn = await self.gateway.connect(profile.host_list)
            try:
                topics = await self.gateway.discover_topics(conn)
            finally:
                await self.gateway.close(conn)
        except KafkaToolError as e:
            logger.warning(f"Connection test for {profile.host_list} failed: {e}")
            return profile.model_copy(update={"last_message": f"Connection failed: {e}"})

        return profile.model_copy(update={
            "cached_topics": set(topics),
            "last_message": CONNECTION_SUCCEEDED,
        })

    async def list_topics(self, profile_id: str) -> TopicListResult:
        try:
            async with self._lock:
                conn = await self._bind(profile_id)
                topics = await self.gateway.discover_topics(conn)
        except KafkaToolError as e:
            return TopicListResult(status="error", error=str(e))
        return TopicListResult(status="ok", topics=sorted(topics))

    async def start_consume(self, profile_id: str, request: ConsumeRequest) -> str:
        """
        Start a bounded pull in the background.

        Returns:
            Session id to pass to poll_session_result
        """
        async with self._lock:
            await self._discard_consume()

            session_id = str(uuid.uuid4())
            try:
                conn = await self._bind(profile_id)
            except KafkaToolError as e:
                session = ConsumeSession(self.gateway, None, request, self.settings.work_group_id)
                session.fail(e)
                self.sessions[session_id] = session
                self.consume_session = session
                self.consume_session_id = session_id
                return session_id

            session = ConsumeSession(
                self.gateway,
                conn,
                request,
                work_group_id=self.settings.work_group_id,
                max_poll_cycles=self.settings.max_poll_cycles,
            )
            self.sessions[session_id] = session
            self.consume_session = session
            self.consume_session_id = session_id
            self.consume_task = asyncio.create_task(session.run())
            logger.info(f"Started consume session {session_id} on {request.topic}")
            return session_id

    def poll_session_result(self, session_id: str, value_filter: Optional[str] = None) -> SessionResult:
        session = self.sessions.get(session_id)
        if session is None:
            return SessionResult(
                session_id=session_id,
                status="failed",
                state=SessionState.FAILED.value,
                error=f"Consume session {session_id} is unknown or was discarded",
            )

        if session.state == SessionState.FAILED:
            return SessionResult(
                session_id=session_id,
                status="failed",
                state=session.state.value,
                error=str(session.error),
            )
        if session.state == SessionState.DONE:
            return SessionResult(
                session_id=session_id,
                status="done",
                state=session.state.value,
                records=filter_records(session.records, value_filter),
                retrieved_count=session.retrieved_count,
            )
        return SessionResult(
            session_id=session_id,
            status="in_progress",
            state=session.state.value,
            retrieved_count=session.retrieved_count,
        )

    async def get_watermarks(self, profile_id: str, topic: str) -> WatermarksResult:
        try:
            async with self._lock:
                conn = await self._bind(profile_id)
                if not conn.has_topic(topic):
                    await self.gateway.load_topic_metadata(conn, topic)
                lows = await self.gateway.fetch_watermarks(conn, topic, OffsetKind.EARLIEST)
                highs = await self.gateway.fetch_watermarks(conn, topic, OffsetKind.LATEST)
        except KafkaToolError as e:
            return WatermarksResult(status="error", error=str(e))

        return WatermarksResult(status="ok", watermarks=[
            PartitionWatermarks(partition=partition, low=lows.get(partition, 0), high=highs[partition])
            for partition in sorted(highs)
        ])

    async def commit_manual_offset(self, profile_id: str, request: CommitRequest) -> CommitOutcome:
        try:
            async with self._lock:
                conn = await self._bind(profile_id)
                out_of_range = await OffsetCommitController(self.gateway, conn).commit(request)
        except KafkaToolError as e:
            return CommitOutcome(status="error", error=str(e))

        if out_of_range is not None:
            return CommitOutcome(status="out_of_range", out_of_range=out_of_range, error=out_of_range.message)
        return CommitOutcome(status="ok")

    async def publish(self, profile_id: str, topic: str, value: str) -> PublishOutcome:
        try:
            async with self._lock:
                conn = await self._bind(profile_id)
                if self.publish_session is None:
                    self.publish_session = PublishSession(self.gateway, conn)
                session = self.publish_session
                await session.send(topic, value)
        except KafkaToolError as e:
            pending = self.publish_session.pending if self.publish_session else value
            return PublishOutcome(status="error", pending=pending, error=str(e))
        return PublishOutcome(status="ok", pending=session.pending)

    async def close(self) -> None:
        async with self._lock:
            await self._unbind()
        logger.info("Kafka Tool service closed")

    async def _bind(self, profile_id: str) -> Connection:
        """Connection for a profile, rebinding every session when the profile changes."""
        profile = self.config_store.get(profile_id)
        if (
            self.connection is not None
            and self.active_profile is not None
            and self.active_profile.id == profile.id
            and self.active_profile.host_list == profile.host_list
        ):
            return self.connection

        await self._unbind()
        self.connection = await self.gateway.connect(profile.host_list)
        self.active_profile = profile
        logger.info(f"Active profile is now {profile.display_name} ({profile.id})")
        return self.connection

    async def _unbind(self) -> None:
        await self._discard_consume()
        if self.publish_session is not None:
            await self.publish_session.close()
            self.publish_session = None
        if self.connection is not None:
            await self.gateway.close(self.connection)
            self.connection = None
        self.active_profile = None

    async def _discard_consume(self) -> None:
        """Cancel the running pull, drop its records and forget its session id."""
        if self.consume_task is not None and not self.consume_task.done():
            self.consume_task.cancel()
            await asyncio.gather(self.consume_task, return_exceptions=True)
        if self.consume_session is not None:
            await self.consume_session.discard()
            logger.debug(f"Discarded consume session {self.consume_session_id}")
        if self.consume_session_id is not None:
            self.sessions.pop(self.consume_session_id, None)

        self.consume_task = None
        self.consume_session = None
        self.consume_session_id = None
