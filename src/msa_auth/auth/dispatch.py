"""Owner-thread / background-worker dispatch.

Every listener callback and every session mutation happens on one *owner*
thread (the UI thread of the host).  Token exchanges are network bound and
run on a background worker; their completions are posted back to the owner
thread before anything observable happens.

Two dispatchers are provided:

:class:`QueueDispatcher`
    Background work runs on a :class:`~concurrent.futures.ThreadPoolExecutor`;
    owner-thread callbacks are queued and executed when the host's event loop
    calls :meth:`QueueDispatcher.process_pending`.
:class:`InlineDispatcher`
    Runs everything immediately on the calling thread.  Suitable for scripts
    and tests where no UI loop exists.
"""

from __future__ import annotations

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol, runtime_checkable

_LOG = logging.getLogger("msa-auth.auth.dispatch")

Task = Callable[[], None]


@runtime_checkable
class Dispatcher(Protocol):
    def run_in_background(self, task: Task) -> None:
        """Run *task* on a worker thread."""
        ...

    def call_soon(self, task: Task) -> None:
        """Run *task* on the owner thread after the current callback returns."""
        ...


class InlineDispatcher(Dispatcher):
    """Run every task synchronously on the calling thread."""

    def run_in_background(self, task: Task) -> None:
        task()

    def call_soon(self, task: Task) -> None:
        task()


class QueueDispatcher(Dispatcher):
    """Thread-pool worker plus an owner-thread queue drained by the host."""

    def __init__(self, *, max_workers: int = 2) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="msa-auth-worker"
        )
        self._pending: "queue.SimpleQueue[Task]" = queue.SimpleQueue()

    def run_in_background(self, task: Task) -> None:
        future = self._executor.submit(task)
        future.add_done_callback(self._log_failure)

    def call_soon(self, task: Task) -> None:
        self._pending.put(task)

    def process_pending(self, *, block: bool = False, timeout: float | None = None) -> int:
        """Run queued owner-thread tasks; return how many ran.

        With ``block=True`` waits up to *timeout* seconds for the first task.
        """
        ran = 0
        try:
            task = self._pending.get(block=block, timeout=timeout)
        except queue.Empty:
            return 0
        while True:
            task()
            ran += 1
            try:
                task = self._pending.get_nowait()
            except queue.Empty:
                return ran

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_failure(future) -> None:  # noqa: ANN001
        exc = future.exception()
        if exc is not None:
            _LOG.error("Background auth task failed", exc_info=exc)
