"""
Unit tests for KafkaToolService, the core API the shell calls into.
"""

import asyncio

import pytest

from kafka_tool.config import ToolSettings
from kafka_tool.core.models import CommitRequest, ConnectionConfig, ConsumeRequest, LatestMinusN
from kafka_tool.service import CONNECTION_SUCCEEDED, KafkaToolService


@pytest.fixture
def service(config_store, gateway):
    return KafkaToolService(config_store, ToolSettings(), gateway)


async def consume(service, profile_id, request):
    session_id = await service.start_consume(profile_id, request)
    if service.consume_task is not None:
        await service.consume_task
    return session_id


class TestConsume:
    """Test starting, polling and discarding consume sessions."""

    def test_consume_and_poll(self, service, profile):
        async def _run():
            session_id = await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=10))
            return service.poll_session_result(session_id)

        result = asyncio.run(_run())

        assert result.status == "done"
        assert result.retrieved_count == 10
        assert [r.offset for r in result.records] == list(range(10))

    def test_value_filter(self, service, profile):
        async def _run():
            session_id = await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=20))
            return service.poll_session_result(session_id, value_filter="0-1")

        result = asyncio.run(_run())

        # "value 0-1" and "value 0-10".."value 0-19"
        assert [r.offset for r in result.records] == [1] + list(range(10, 20))
        assert result.retrieved_count == 20

    def test_topic_switch_discards_previous_records(self, service, profile, gateway):
        gateway.add_topic("payments", {0: (0, 5)})

        async def _run():
            first = await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=10))
            old_session = service.consume_session
            second = await consume(service, profile.id, ConsumeRequest(topic="payments", target_count=10))
            return old_session, service.poll_session_result(first), service.poll_session_result(second)

        old_session, first, second = asyncio.run(_run())

        assert old_session.records == []
        assert first.status == "failed"
        assert second.status == "done"
        assert {r.value for r in second.records} == {f"value 0-{o}" for o in range(5)}

    def test_running_session_cancelled_by_new_start(self, service, profile, gateway):
        release = asyncio.Event()

        async def stalled_poll(consumer, max_records=None):
            await release.wait()
            return []

        async def _run():
            gateway.poll_once = stalled_poll
            first = await service.start_consume(profile.id, ConsumeRequest(topic="orders", target_count=10))
            first_task = service.consume_task
            for _ in range(20):
                await asyncio.sleep(0)
            in_progress = service.poll_session_result(first)

            del gateway.poll_once
            second = await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=3))
            return first_task, in_progress, service.poll_session_result(second)

        first_task, in_progress, second = asyncio.run(_run())

        assert in_progress.status == "in_progress"
        assert in_progress.state == "polling"
        assert first_task.cancelled()
        assert gateway.consumers[0].closed
        assert second.retrieved_count == 3

    def test_unreachable_cluster(self, service, profile, gateway):
        gateway.unreachable = True

        async def _run():
            session_id = await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=10))
            return service.poll_session_result(session_id)

        result = asyncio.run(_run())

        assert result.status == "failed"
        assert "Could not connect to localhost:9092" in result.error

    def test_unexpected_client_error_reported_as_failed(self, service, profile, gateway):
        async def broken_poll(consumer, max_records=None):
            raise RuntimeError("unexpected client state")

        async def _run():
            gateway.poll_once = broken_poll
            session_id = await service.start_consume(profile.id, ConsumeRequest(topic="orders", target_count=10))
            await asyncio.gather(service.consume_task)
            return service.consume_task, service.poll_session_result(session_id)

        task, result = asyncio.run(_run())

        assert task.exception() is None
        assert result.status == "failed"
        assert result.state == "failed"
        assert result.error == "unexpected client state"

    def test_unknown_session(self, service):
        result = service.poll_session_result("nope")
        assert result.status == "failed"
        assert result.records == []

    def test_latest_minus_n(self, service, profile, gateway):
        gateway.add_topic("events", {0: (0, 50), 1: (0, 70)})

        async def _run():
            request = ConsumeRequest(topic="events", start_policy=LatestMinusN(n=20), target_count=1000)
            session_id = await consume(service, profile.id, request)
            return service.poll_session_result(session_id)

        result = asyncio.run(_run())

        assert result.status == "done"
        assert result.retrieved_count == 20


class TestProfiles:
    """Profile binding and connection tests."""

    def test_connection_test_success(self, service, config_store):
        candidate = ConnectionConfig(display_name="new", host_list="localhost:9092")

        result = asyncio.run(service.test_connection(candidate))

        assert result.last_message == CONNECTION_SUCCEEDED
        assert result.cached_topics == {"orders"}
        assert config_store.list() == []

    def test_connection_test_failure(self, service, gateway):
        gateway.unreachable = True

        result = asyncio.run(service.test_connection(ConnectionConfig(host_list="nowhere:9092")))

        assert result.last_message.startswith("Connection failed: ")
        assert result.cached_topics == set()

    def test_connection_reused(self, service, profile, gateway):
        async def _run():
            await service.list_topics(profile.id)
            await service.get_watermarks(profile.id, "orders")

        asyncio.run(_run())
        assert gateway.count("connect") == 1

    def test_profile_switch_closes_sessions(self, service, config_store, profile, gateway):
        other = config_store.save(ConnectionConfig(group_label="prod", display_name="eu", host_list="eu:9092"))

        async def _run():
            await consume(service, profile.id, ConsumeRequest(topic="orders", target_count=5))
            await service.publish(profile.id, "orders", "hello")
            old_connection = service.connection
            await service.list_topics(other.id)
            return old_connection

        old_connection = asyncio.run(_run())

        assert old_connection.closed
        assert gateway.producers[0].closed
        assert service.publish_session is None
        assert service.consume_session is None
        assert service.active_profile.id == other.id

    def test_host_change_rebinds(self, service, config_store, profile, gateway):
        async def _run():
            await service.list_topics(profile.id)
            config_store.save(profile.model_copy(update={"host_list": ["other:9092"]}))
            await service.list_topics(profile.id)

        asyncio.run(_run())

        assert gateway.count("close") == 1
        assert gateway.calls.count(("connect", ("other:9092",))) == 1

    def test_close(self, service, profile, gateway):
        async def _run():
            await service.list_topics(profile.id)
            await service.close()

        asyncio.run(_run())

        assert service.connection is None
        assert service.active_profile is None


class TestResultValues:
    """Broker errors come back as values, never as exceptions."""

    def test_list_topics(self, service, profile):
        result = asyncio.run(service.list_topics(profile.id))
        assert result.status == "ok"
        assert result.topics == ["orders"]

    def test_list_topics_unknown_profile(self, service):
        result = asyncio.run(service.list_topics("missing"))
        assert result.status == "error"
        assert "Unknown connection profile" in result.error

    def test_list_topics_unreachable(self, service, profile, gateway):
        gateway.unreachable = True
        result = asyncio.run(service.list_topics(profile.id))
        assert result.status == "error"

    def test_watermarks(self, service, profile):
        result = asyncio.run(service.get_watermarks(profile.id, "orders"))
        assert result.status == "ok"
        assert [(w.partition, w.low, w.high) for w in result.watermarks] == [(0, 0, 100)]

    def test_watermarks_unknown_topic(self, service, profile):
        result = asyncio.run(service.get_watermarks(profile.id, "missing"))
        assert result.status == "error"

    def test_commit_ok(self, service, profile, gateway):
        request = CommitRequest(group_id="billing", topic="orders", partition=0, target_offset=30)
        outcome = asyncio.run(service.commit_manual_offset(profile.id, request))
        assert outcome.status == "ok"
        assert gateway.committed[("billing", "orders", 0)] == 30

    def test_commit_out_of_range(self, service, profile, gateway):
        request = CommitRequest(group_id="billing", topic="orders", partition=0, target_offset=500)
        outcome = asyncio.run(service.commit_manual_offset(profile.id, request))
        assert outcome.status == "out_of_range"
        assert outcome.out_of_range.bound == "above"
        assert outcome.error == "Offset is above the high watermark 100"
        assert gateway.count("commit_offset") == 0

    def test_commit_rejected(self, service, profile, gateway):
        gateway.fail_commit_on = 0
        request = CommitRequest(group_id="billing", topic="orders", partition=0, target_offset=1)
        outcome = asyncio.run(service.commit_manual_offset(profile.id, request))
        assert outcome.status == "error"
        assert outcome.error == "NotCoordinatorForGroupError"

    def test_publish_ok(self, service, profile, gateway):
        outcome = asyncio.run(service.publish(profile.id, "orders", "hello"))
        assert outcome.status == "ok"
        assert outcome.pending == ""
        assert gateway.published == [("orders", b"hello")]

    def test_publish_failure_keeps_pending(self, service, profile, gateway):
        gateway.publish_error = "KafkaTimeoutError"
        outcome = asyncio.run(service.publish(profile.id, "orders", "hello"))
        assert outcome.status == "error"
        assert outcome.pending == "hello"
        assert outcome.error == "KafkaTimeoutError"
