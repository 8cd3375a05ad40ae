"""
=============================================================================
THREAD POOL
=============================================================================

Every accepted connection becomes one job. An HTTP keep-alive connection
occupies a worker until it goes idle; an upgraded WebSocket occupies one
for its whole life. The pool therefore grows on demand, from
``min_workers`` up to ``max_workers``.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ThreadPool                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop ──submit(job)──►  ┌──────────────┐                    │
    │                                 │  job queue   │ (bounded)           │
    │                                 └──────┬───────┘                    │
    │                       ┌────────────────┼────────────────┐           │
    │                       ▼                ▼                ▼           │
    │                  Worker-0         Worker-1   ...   Worker-N         │
    │                  (HTTP conn)      (WS session)     (slow request)   │
    │                                                                      │
    │   Scale up: after a submit, if more jobs are queued than workers    │
    │   are idle, start another worker (bounded by max_workers).          │
    │                                                                      │
    │   Shutdown: one poison pill (None) per worker, then join.           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A job that raises is logged; the worker survives and takes the next one.
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Job:
    """A deferred call: ``func(*args, **kwargs)``."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls jobs off the shared queue until it receives None or is told
    to shut down.
    """

    def __init__(
        self,
        job_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.job_queue = job_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.jobs_completed = 0
        self.jobs_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                job = self.job_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if job is None:
                    break
                self._execute(job)
            finally:
                self.job_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, job: Job):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            job.func(*job.args, **job.kwargs)
            self.jobs_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed job in {time.time() - start_time:.3f}s"
            )
        except Exception as e:
            self.jobs_failed += 1
            logger.exception(
                f"Worker {self.worker_id} job failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Usage:
        pool = ThreadPool(min_workers=4, max_workers=32)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        pool.stats      # {"workers": {...}, "jobs": {...}}
        pool.shutdown(timeout=5)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 32,
        queue_size: int = 256,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            min_workers: Workers started up front.
            max_workers: Upper bound when scaling up.
            queue_size: Bound on waiting jobs; submit() blocks or fails past it.
            idle_timeout: How often an idle worker rechecks for shutdown.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._job_queue: queue.Queue[Optional[Job]] = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # guards _workers and _next_worker_id
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        with self._lock:
            if self._started:
                return
            logger.info(f"Starting thread pool with {self.min_workers} workers")
            for _ in range(self.min_workers):
                self._add_worker_locked()
            self._started = True
            self._shutdown = False

    def _add_worker_locked(self) -> Worker:
        """Caller holds self._lock."""
        worker = Worker(
            job_queue=self._job_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)``.

        Returns:
            True if queued, False if the queue stayed full.

        Raises:
            RuntimeError: Pool not started or shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        job = Job(func=func, args=args, kwargs=kwargs or {})

        try:
            self._job_queue.put(job, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            idle = sum(1 for w in self._workers if w.state == WorkerState.IDLE)
            waiting = self._job_queue.qsize()
            while waiting > idle and len(self._workers) < self.max_workers:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker_locked()
                idle += 1

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Args:
            wait: Let queued jobs run first.
            timeout: Bound on that wait, and on each worker join.
        """
        with self._lock:
            if not self._started:
                return
            self._shutdown = True
            workers = list(self._workers)

        logger.info("Shutting down thread pool...")

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._job_queue.empty():
                if deadline is not None and time.time() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued jobs")
                    break
                time.sleep(0.05)

        for worker in workers:
            worker.shutdown()
        for _ in workers:
            try:
                self._job_queue.put(None, block=False)
            except queue.Full:
                break

        join_timeout = timeout if timeout else 2.0
        for worker in workers:
            worker.join(timeout=join_timeout)
            if worker.is_alive():
                logger.warning(f"Worker {worker.worker_id} did not stop in time")

        with self._lock:
            self._workers.clear()
            self._started = False

        logger.info("Thread pool shutdown complete")

    @property
    def worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    @property
    def stats(self) -> dict:
        with self._lock:
            workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "jobs": {
                "queued": self._job_queue.qsize(),
                "completed": sum(w.jobs_completed for w in workers),
                "failed": sum(w.jobs_failed for w in workers),
            },
        }
