"""
=============================================================================
WORKER THREAD POOL
=============================================================================

One accepted connection becomes one task. Tasks wait in a bounded queue and
are executed by worker threads; the pool grows from min_workers up to
max_workers while every worker is busy and tasks are waiting.

    ┌──────────────┐  submit(conn)  ┌───────────────────────┐
    │ accept loop  │ ─────────────► │ queue (maxsize=100)   │
    └──────────────┘                └───────────┬───────────┘
            │ queue full:                       │ get()
            ▼ submit() returns False    ┌───────┼───────┬───────┐
        503 + close                     ▼       ▼       ▼       ▼
                                     worker  worker  worker  worker

Workers spend their time blocked in recv(), sendall() and database round
trips, all of which release the GIL.

Shutdown pushes one None per worker behind the queued tasks: everything
accepted before shutdown() still runs.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)

    def run(self) -> None:
        self.func(*self.args, **self.kwargs)


class ThreadPool:
    """
    Bounded pool of worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(serve, args=(conn,)):
            ...  # saturated, answer 503
        pool.shutdown()
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size

        self._tasks: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._threads: List[threading.Thread] = []

        # Guards _threads and the counters below
        self._lock = threading.Lock()
        self._busy = 0
        self._completed = 0
        self._failed = 0

        self._accepting = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        with self._lock:
            if self._accepting:
                return
            for _ in range(self.min_workers):
                self._add_thread()
            self._accepting = True
        logger.info(f"Thread pool started ({self.min_workers}-{self.max_workers} workers)")

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop accepting tasks, let queued ones finish, then join every worker.

        Args:
            timeout: Seconds to wait for each worker. None waits as long as
                     the running tasks need.
        """
        with self._lock:
            if not self._accepting:
                return
            self._accepting = False
            threads = list(self._threads)

        logger.info(f"Stopping {len(threads)} workers ({self.queued_tasks} tasks queued)")
        for _ in threads:
            self._tasks.put(None)

        for thread in threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"{thread.name} still running after {timeout}s")

        with self._lock:
            self._threads.clear()
        logger.info("Thread pool stopped")

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(self, func: Callable[..., Any], args: tuple = (), kwargs: Optional[dict] = None) -> bool:
        """
        Queue a task without blocking.

        Returns:
            True if accepted, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._accepting:
            raise RuntimeError("Thread pool is not running")

        try:
            self._tasks.put_nowait(Task(func=func, args=args, kwargs=kwargs or {}))
        except queue.Full:
            return False

        with self._lock:
            if (len(self._threads) < self.max_workers
                    and self._busy >= len(self._threads)
                    and not self._tasks.empty()):
                self._add_thread()
                logger.debug(f"Pool grown to {len(self._threads)} workers")
        return True

    # =========================================================================
    # WORKERS
    # =========================================================================

    def _add_thread(self):
        # Caller holds self._lock
        thread = threading.Thread(
            target=self._work,
            name=f"usersvc-worker-{len(self._threads)}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _work(self):
        while True:
            task = self._tasks.get()
            if task is None:
                self._tasks.task_done()
                return

            with self._lock:
                self._busy += 1

            failed = False
            try:
                task.run()
            except Exception:
                name = getattr(task.func, "__name__", repr(task.func))
                waited = time.monotonic() - task.submitted_at
                logger.exception(f"Task {name} failed ({waited:.3f}s after submit)")
                failed = True
            finally:
                self._tasks.task_done()

            with self._lock:
                self._busy -= 1
                if failed:
                    self._failed += 1
                else:
                    self._completed += 1

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        return self._busy

    @property
    def queued_tasks(self) -> int:
        return self._tasks.qsize()

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "workers": {"total": len(self._threads), "busy": self._busy},
                "tasks": {
                    "queued": self._tasks.qsize(),
                    "completed": self._completed,
                    "failed": self._failed,
                },
            }
