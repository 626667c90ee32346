"""
Client synchronizer tests: debounce, retries with backoff, change detection and the operation queue.
"""

import asyncio

import pytest

from clinicflow.client.api_client import QueuedOperation
from clinicflow.client.synchronizer import ClientSynchronizer, SyncEvent
from clinicflow.core.exceptions import SyncFetchError


class FakeSource:
    """Stands in for the dashboard API client."""

    def __init__(self):
        self.queue = [{"session_id": "CHK-1"}]
        self.checkups = [{"session_id": "CHK-1"}, {"session_id": "CHK-2"}]
        self.fail = False
        self.delay = 0.0
        self.gate = None
        self.queue_calls = 0
        self.executed = []
        self.execute_failures = 0
        self.execute_status = None
        self.execute_calls = 0

    async def fetch_queue(self):
        self.queue_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise SyncFetchError("server unavailable")
        return list(self.queue)

    async def fetch_todays_checkups(self):
        if self.fail:
            raise SyncFetchError("server unavailable")
        return list(self.checkups)

    async def execute(self, operation):
        self.execute_calls += 1
        if self.execute_failures:
            self.execute_failures -= 1
            raise SyncFetchError("write failed", status=self.execute_status)
        self.executed.append(operation.op_type)
        return {"ok": True}


def make_sync(source, **overrides):
    options = dict(
        debounce_seconds=60,
        fetch_timeout_seconds=1,
        max_retries=3,
        retry_base_seconds=0.001,
        retry_max_seconds=0.01,
        poll_interval_seconds=60,
    )
    options.update(overrides)
    return ClientSynchronizer(source, **options)


def record(sync, event):
    received = []
    sync.subscribe(event, received.append)
    return received


@pytest.mark.asyncio
async def test_successful_sync_emits_complete_and_updates():
    source = FakeSource()
    sync = make_sync(source)
    completed = record(sync, "syncComplete")
    queue_updates = record(sync, "queueUpdated")
    checkup_updates = record(sync, "checkupsUpdated")

    assert await sync.request_sync() is True

    assert completed[0]["queue"] == source.queue
    assert completed[0]["checkups"] == source.checkups
    assert completed[0]["duration"] >= 0
    assert queue_updates == [{"queue": source.queue}]
    assert checkup_updates == [{"checkups": source.checkups}]
    assert sync.last_sync_time is not None
    assert sync.sync_in_progress is False


@pytest.mark.asyncio
async def test_requests_inside_debounce_window_are_skipped():
    source = FakeSource()
    sync = make_sync(source, debounce_seconds=60)

    assert await sync.request_sync() is True
    assert await sync.request_sync() is False
    assert source.queue_calls == 1

    assert await sync.request_sync(force=True) is True
    assert source.queue_calls == 2


@pytest.mark.asyncio
async def test_only_one_sync_in_flight():
    source = FakeSource()
    source.gate = asyncio.Event()
    sync = make_sync(source)

    first = asyncio.create_task(sync.request_sync(force=True))
    await asyncio.sleep(0.01)
    assert sync.sync_in_progress is True

    assert await sync.request_sync(force=True) is False

    source.gate.set()
    assert await first is True
    assert source.queue_calls == 1
    assert sync.sync_in_progress is False


@pytest.mark.asyncio
async def test_unchanged_data_does_not_reemit_updates():
    source = FakeSource()
    sync = make_sync(source)
    completed = record(sync, "syncComplete")
    queue_updates = record(sync, "queueUpdated")
    checkup_updates = record(sync, "checkupsUpdated")

    await sync.request_sync(force=True)
    await sync.request_sync(force=True)
    assert len(completed) == 2
    assert len(queue_updates) == 1
    assert len(checkup_updates) == 1

    source.queue = []
    await sync.request_sync(force=True)
    assert len(queue_updates) == 2
    assert queue_updates[-1] == {"queue": []}
    assert len(checkup_updates) == 1


@pytest.mark.asyncio
async def test_repeated_failures_retry_then_mark_stale():
    source = FakeSource()
    source.fail = True
    sync = make_sync(source, max_retries=3)
    failed = asyncio.Event()
    failures = []

    def on_failed(payload):
        failures.append(payload)
        failed.set()

    sync.subscribe(SyncEvent.SYNC_FAILED, on_failed)

    assert await sync.request_sync(force=True) is False
    assert sync.retry_count == 1

    await asyncio.wait_for(failed.wait(), timeout=2)

    assert source.queue_calls == 3
    assert len(failures) == 1
    assert failures[0]["retry_count"] == 3
    assert "server unavailable" in failures[0]["error"]
    assert sync.is_stale is True
    assert sync.retry_count == 0

    source.fail = False
    assert await sync.request_sync(force=True) is True
    assert sync.is_stale is False
    assert sync.retry_count == 0
    await sync.stop()


@pytest.mark.asyncio
async def test_success_before_max_retries_cancels_pending_retry():
    source = FakeSource()
    source.fail = True
    sync = make_sync(source, retry_base_seconds=5, retry_max_seconds=5)
    failures = record(sync, "syncFailed")

    await sync.request_sync(force=True)
    assert sync.retry_count == 1
    assert sync._retry_handle is not None

    source.fail = False
    assert await sync.request_sync(force=True) is True
    assert sync.retry_count == 0
    assert sync._retry_handle is None
    assert failures == []


@pytest.mark.asyncio
async def test_fetch_timeout_counts_as_failure():
    source = FakeSource()
    source.delay = 1
    sync = make_sync(source, fetch_timeout_seconds=0.01, max_retries=1)
    failures = record(sync, "syncFailed")

    assert await sync.request_sync(force=True) is False

    assert len(failures) == 1
    assert "timed out" in failures[0]["error"]
    assert sync.is_stale is True


def test_backoff_doubles_up_to_cap():
    sync = ClientSynchronizer(FakeSource(), retry_base_seconds=1, retry_max_seconds=30)

    assert [sync.backoff_delay(n) for n in range(1, 7)] == [2, 4, 8, 16, 30, 30]


@pytest.mark.asyncio
async def test_becoming_visible_forces_sync():
    source = FakeSource()
    sync = make_sync(source, debounce_seconds=60)
    await sync.request_sync()

    assert sync.on_visibility_change(False) is None
    task = sync.on_visibility_change(True)
    assert await task is True
    assert source.queue_calls == 2


@pytest.mark.asyncio
async def test_broken_listener_does_not_block_others():
    source = FakeSource()
    sync = make_sync(source)

    def broken(payload):
        raise RuntimeError("render failed")

    sync.subscribe("syncComplete", broken)
    received = record(sync, "syncComplete")

    assert await sync.request_sync() is True
    assert len(received) == 1


@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called():
    sync = make_sync(FakeSource())
    received = []
    sync.subscribe("syncComplete", received.append)
    sync.unsubscribe("syncComplete", received.append)

    await sync.request_sync()
    assert received == []

    with pytest.raises(ValueError):
        sync.subscribe("somethingElse", received.append)


@pytest.mark.asyncio
async def test_queued_operation_is_sent():
    source = FakeSource()
    sync = make_sync(source)
    completed = record(sync, "operationComplete")

    sync.queue_operation(QueuedOperation("vitals", "POST", "/checkups/CHK-1/vital-signs", {"temperature": 37.0}))
    assert sync.stats()["queue_length"] == 1

    assert await sync.process_queue() == 1
    assert source.executed == ["vitals"]
    assert completed[0]["result"] == {"ok": True}
    assert sync.stats()["queue_length"] == 0
    await sync.stop()


@pytest.mark.asyncio
async def test_failed_operation_is_retried_then_dropped():
    source = FakeSource()
    source.execute_failures = 5
    sync = make_sync(source, max_retries=2)
    failed = record(sync, "operationFailed")

    sync.queue_operation(QueuedOperation("notify", "POST", "/checkups/CHK-1/notify-doctor"))

    assert await sync.process_queue() == 0
    assert sync.stats()["queue_length"] == 1
    assert failed == []

    assert await sync.process_queue() == 0
    assert sync.stats()["queue_length"] == 0
    assert len(failed) == 1
    assert failed[0]["operation"].attempts == 2
    assert "write failed" in failed[0]["error"]
    await sync.stop()


@pytest.mark.asyncio
async def test_operation_succeeds_on_retry():
    source = FakeSource()
    source.execute_failures = 1
    sync = make_sync(source, max_retries=3)
    completed = record(sync, "operationComplete")

    sync.queue_operation(QueuedOperation("start", "POST", "/doctor-queue/CHK-1/start"))
    assert await sync.process_queue() == 0
    assert await sync.process_queue() == 1
    assert len(completed) == 1
    assert completed[0]["operation"].attempts == 1
    await sync.stop()


@pytest.mark.asyncio
async def test_conflicting_operation_fails_without_resending():
    source = FakeSource()
    source.execute_failures = 5
    source.execute_status = 409
    sync = make_sync(source, max_retries=3)
    failed = record(sync, "operationFailed")

    sync.queue_operation(QueuedOperation("start", "POST", "/doctor-queue/CHK-1/start"))

    assert await sync.process_queue() == 0
    assert source.execute_calls == 1
    assert sync.stats()["queue_length"] == 0
    assert len(failed) == 1
    assert failed[0]["status"] == 409
    assert failed[0]["operation"].attempts == 1

    assert await sync.process_queue() == 0
    assert source.execute_calls == 1
    await sync.stop()


@pytest.mark.asyncio
async def test_server_error_operation_is_requeued():
    source = FakeSource()
    source.execute_failures = 1
    source.execute_status = 503
    sync = make_sync(source, max_retries=3)
    failed = record(sync, "operationFailed")
    completed = record(sync, "operationComplete")

    sync.queue_operation(QueuedOperation("notify", "POST", "/checkups/CHK-1/notify-doctor"))

    assert await sync.process_queue() == 0
    assert sync.stats()["queue_length"] == 1
    assert failed == []
    assert await sync.process_queue() == 1
    assert source.execute_calls == 2
    assert len(completed) == 1
    await sync.stop()


def test_rejection_classification():
    assert SyncFetchError("conflict", status=409).is_rejection is True
    assert SyncFetchError("forbidden", status=403).is_rejection is True
    assert SyncFetchError("rate limited", status=429).is_rejection is False
    assert SyncFetchError("unavailable", status=503).is_rejection is False
    assert SyncFetchError("connection refused").is_rejection is False


@pytest.mark.asyncio
async def test_polling_start_and_stop():
    source = FakeSource()
    sync = make_sync(source, debounce_seconds=0, poll_interval_seconds=0.01)
    sync.subscribe("syncComplete", lambda payload: None)

    sync.start()
    await asyncio.sleep(0.05)
    stats = sync.stats()
    assert stats["polling"] is True
    assert stats["listener_count"] == 1
    assert source.queue_calls >= 2

    await sync.stop()
    assert sync.stats()["polling"] is False
    calls = source.queue_calls
    await asyncio.sleep(0.03)
    assert source.queue_calls == calls
