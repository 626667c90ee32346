"""
Client Synchronizer.

Keeps one dashboard view consistent with the server by polling the doctor
queue and today's checkups. Runs on a single asyncio loop: timers are
``loop.call_later`` handles and listeners are called synchronously on the loop.

Failure policy:
- a sync that fails or times out bumps ``retry_count`` and, below
  ``max_retries``, schedules a retry after ``min(base * 2**retry_count, cap)``
- on reaching ``max_retries`` it emits ``syncFailed``, marks the view stale
  and resets the counter
- any successful sync clears the counter and the stale flag
- a queued operation the server rejects with a 4xx status fails at once;
  transport errors, timeouts and 5xx answers are re-queued
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from clinicflow.client.api_client import QueuedOperation
from clinicflow.core.config import get_settings
from clinicflow.core.exceptions import SyncFetchError

logger = logging.getLogger("clinicflow")

Listener = Callable[[Dict[str, Any]], None]


class SyncEvent(str, Enum):
    SYNC_COMPLETE = "syncComplete"
    SYNC_FAILED = "syncFailed"
    QUEUE_UPDATED = "queueUpdated"
    CHECKUPS_UPDATED = "checkupsUpdated"
    OPERATION_COMPLETE = "operationComplete"
    OPERATION_FAILED = "operationFailed"


class ClientSynchronizer:
    """Pull-based sync loop for one dashboard.

    ``source`` needs ``fetch_queue()``, ``fetch_todays_checkups()`` and
    ``execute(operation)`` coroutines; ``DashboardApiClient`` provides them.
    """

    def __init__(
        self,
        source,
        debounce_seconds: Optional[float] = None,
        fetch_timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_seconds: Optional[float] = None,
        retry_max_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        settings = get_settings().sync
        self._source = source
        self.debounce_seconds = settings.debounce_seconds if debounce_seconds is None else debounce_seconds
        self.fetch_timeout_seconds = (
            settings.fetch_timeout_seconds if fetch_timeout_seconds is None else fetch_timeout_seconds
        )
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_base_seconds = settings.retry_base_seconds if retry_base_seconds is None else retry_base_seconds
        self.retry_max_seconds = settings.retry_max_seconds if retry_max_seconds is None else retry_max_seconds
        self.poll_interval_seconds = (
            settings.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        )

        self.sync_in_progress = False
        self.last_sync_time: Optional[float] = None
        self.retry_count = 0
        self.is_stale = False

        self._listeners: Dict[str, List[Listener]] = {}
        self._last_queue: Any = None
        self._last_checkups: Any = None
        self._operations: List[QueuedOperation] = []

        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._drain_handle: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, event: str, callback: Listener) -> None:
        self._listeners.setdefault(SyncEvent(event).value, []).append(callback)

    def unsubscribe(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(SyncEvent(event).value, [])
        if callback in listeners:
            listeners.remove(callback)

    def _emit(self, event: SyncEvent, payload: Dict[str, Any]) -> None:
        for callback in list(self._listeners.get(event.value, [])):
            try:
                callback(payload)
            except Exception as e:
                # One broken listener must not starve the others
                logger.error("Listener for %s raised: %s", event.value, e, exc_info=True)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _should_sync(self, force: bool) -> bool:
        if self.sync_in_progress:
            return False
        if force or self.last_sync_time is None:
            return True
        return self._now() - self.last_sync_time >= self.debounce_seconds

    async def request_sync(self, force: bool = False) -> bool:
        """Fetch queue and today's checkups. Returns True when a sync ran and succeeded."""
        if not self._should_sync(force):
            return False

        self.sync_in_progress = True
        started = self._now()
        try:
            queue, checkups = await self._fetch_all()
        except Exception as e:
            self.sync_in_progress = False
            self._handle_sync_error(e)
            return False
        finally:
            self.sync_in_progress = False

        self.last_sync_time = self._now()
        self.retry_count = 0
        self.is_stale = False
        self._cancel_retry()

        duration = self.last_sync_time - started
        logger.debug("Sync completed in %.3fs", duration)
        self._emit(SyncEvent.SYNC_COMPLETE, {"queue": queue, "checkups": checkups, "duration": duration})
        if queue != self._last_queue:
            self._last_queue = queue
            self._emit(SyncEvent.QUEUE_UPDATED, {"queue": queue})
        if checkups != self._last_checkups:
            self._last_checkups = checkups
            self._emit(SyncEvent.CHECKUPS_UPDATED, {"checkups": checkups})
        return True

    async def _fetch_all(self):
        results = await asyncio.gather(
            asyncio.wait_for(self._source.fetch_queue(), self.fetch_timeout_seconds),
            asyncio.wait_for(self._source.fetch_todays_checkups(), self.fetch_timeout_seconds),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results[0], results[1]

    def _handle_sync_error(self, error: BaseException) -> None:
        self.retry_count += 1
        if isinstance(error, asyncio.TimeoutError):
            reason = f"timed out after {self.fetch_timeout_seconds}s"
        else:
            reason = str(error) or type(error).__name__

        if self.retry_count < self.max_retries:
            delay = self.backoff_delay(self.retry_count)
            logger.warning(
                "Sync failed (%s); retrying in %.2fs (attempt %d/%d)",
                reason,
                delay,
                self.retry_count,
                self.max_retries,
            )
            self._cancel_retry()
            self._retry_handle = self._loop().call_later(delay, self._spawn_retry)
            return

        logger.error("Sync failed %d times in a row: %s", self.retry_count, reason)
        self.is_stale = True
        self._emit(SyncEvent.SYNC_FAILED, {"error": reason, "retry_count": self.retry_count})
        self.retry_count = 0

    def backoff_delay(self, retry_count: int) -> float:
        return min(self.retry_base_seconds * (2 ** retry_count), self.retry_max_seconds)

    def _spawn_retry(self) -> None:
        self._retry_handle = None
        self._spawn(self.request_sync(force=True))

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def on_visibility_change(self, visible: bool) -> Optional[asyncio.Task]:
        """The view came back to the foreground: sync now, ignoring the debounce window."""
        if not visible:
            return None
        return self._spawn(self.request_sync(force=True))

    # ------------------------------------------------------------------
    # Operation queue
    # ------------------------------------------------------------------

    def queue_operation(self, operation: QueuedOperation) -> None:
        self._operations.append(operation)
        self._schedule_drain(self.debounce_seconds)

    def _schedule_drain(self, delay: float) -> None:
        if self._drain_handle is not None:
            self._drain_handle.cancel()
        self._drain_handle = self._loop().call_later(delay, self._spawn_drain)

    def _spawn_drain(self) -> None:
        self._drain_handle = None
        self._spawn(self.process_queue())

    async def process_queue(self) -> int:
        """Send every queued operation once. Returns how many succeeded."""
        if not self._operations:
            return 0

        operations, self._operations = self._operations, []
        logger.info("Processing %d queued operation(s)", len(operations))
        succeeded = 0
        retry_after = 0.0

        for operation in operations:
            try:
                result = await asyncio.wait_for(self._source.execute(operation), self.fetch_timeout_seconds)
            except Exception as e:
                operation.attempts += 1
                if isinstance(e, SyncFetchError) and e.is_rejection:
                    # e.g. 409 when the session moved on; the view is stale, not the network
                    logger.warning(
                        "Operation %s rejected by server (HTTP %s), not retried: %s",
                        operation.op_type,
                        e.status,
                        e,
                    )
                    self._emit(
                        SyncEvent.OPERATION_FAILED,
                        {"operation": operation, "error": str(e), "status": e.status},
                    )
                elif operation.attempts >= self.max_retries:
                    logger.error(
                        "Operation %s dropped after %d attempts: %s", operation.op_type, operation.attempts, e
                    )
                    self._emit(
                        SyncEvent.OPERATION_FAILED,
                        {"operation": operation, "error": str(e) or type(e).__name__},
                    )
                else:
                    logger.warning(
                        "Operation %s failed (attempt %d/%d), re-queued: %s",
                        operation.op_type,
                        operation.attempts,
                        self.max_retries,
                        e,
                    )
                    self._operations.append(operation)
                    retry_after = max(retry_after, self.backoff_delay(operation.attempts))
                continue
            succeeded += 1
            self._emit(SyncEvent.OPERATION_COMPLETE, {"operation": operation, "result": result})

        if self._operations:
            self._schedule_drain(max(retry_after, self.debounce_seconds))
        return succeeded

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin periodic polling."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = self._loop().create_task(self._poll_forever())

    async def _poll_forever(self) -> None:
        while True:
            try:
                await self.request_sync()
            except Exception as e:
                logger.error("Polling sync raised: %s", e, exc_info=True)
            await asyncio.sleep(self.poll_interval_seconds)

    async def stop(self) -> None:
        """Stop polling and pending timers; queued operations are kept."""
        self._cancel_retry()
        if self._drain_handle is not None:
            self._drain_handle.cancel()
            self._drain_handle = None

        tasks = list(self._tasks)
        if self._poll_task is not None:
            tasks.append(self._poll_task)
            self._poll_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def stats(self) -> Dict[str, Any]:
        return {
            "last_sync_time": self.last_sync_time,
            "sync_in_progress": self.sync_in_progress,
            "queue_length": len(self._operations),
            "retry_count": self.retry_count,
            "is_stale": self.is_stale,
            "polling": self._poll_task is not None and not self._poll_task.done(),
            "listener_count": sum(len(v) for v in self._listeners.values()),
        }

    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = self._loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    def _loop() -> asyncio.AbstractEventLoop:
        return asyncio.get_running_loop()

    def _now(self) -> float:
        return self._loop().time()
