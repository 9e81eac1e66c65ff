"""Background dispatch of usage pings with a single join before exit."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable

from pb.models import TelemetryTask
from pb.telemetry.share import TelemetrySink

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


class TelemetryCoordinator:
    """Runs telemetry tasks off the main thread and tracks what is in flight.

    ``dispatch`` never blocks on the network and never raises because of a
    sink. ``await_all`` is the barrier the process waits on before exiting.
    It only waits for tasks that were dispatched before it was called, so a
    task dispatched while it waits cannot extend the wait.
    """

    def __init__(
        self,
        sink: TelemetrySink,
        session_id: Callable[[], str],
        enabled: bool = True,
        max_workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.sink = sink
        self.enabled = enabled
        self._session_id = session_id
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._pending: set[Future] = set()

    def dispatch(self, task: TelemetryTask) -> Future | None:
        if not self.enabled:
            return None
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="pb-telemetry",
                )
            future = self._executor.submit(self._run, task)
            self._pending.add(future)
        # Outside the lock: the callback runs inline if the task already finished.
        future.add_done_callback(self._discard)
        return future

    def await_all(self, timeout: float | None = None) -> int:
        """Block until every task dispatched so far has finished.

        Returns how many tasks were waited on. ``timeout`` is None (wait
        forever) unless a caller chooses to bound process exit.
        """
        with self._lock:
            snapshot = set(self._pending)
        if not snapshot:
            return 0
        done, not_done = wait(snapshot, timeout=timeout)
        if not_done:
            logger.debug("%d telemetry task(s) still running after %ss", len(not_done), timeout)
        return len(snapshot)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, task: TelemetryTask) -> bool:
        try:
            accepted = self.sink.emit(task, self._session_id())
        except Exception as e:
            logger.debug("Telemetry for '%s' failed: %s", task.command, e)
            return False
        if not accepted:
            logger.debug("Telemetry for '%s' was not accepted", task.command)
        return bool(accepted)
