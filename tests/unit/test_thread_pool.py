"""
Unit tests for the thread pool.
"""

import threading
import time

import pytest

from taskhub.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    p = ThreadPool(min_workers=2, max_workers=6, idle_timeout=0.1)
    p.start()
    yield p
    p.shutdown(wait=False, timeout=2.0)


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestThreadPool:

    def test_starts_min_workers(self, pool: ThreadPool):
        assert pool.worker_count == 2

    def test_runs_jobs(self, pool: ThreadPool):
        done = threading.Event()
        results = []

        def job(a, b, scale=1):
            results.append((a + b) * scale)
            done.set()

        assert pool.submit(job, args=(1, 2), kwargs={"scale": 10})
        assert done.wait(2.0)
        assert results == [30]

    def test_scales_up_for_blocking_jobs(self, pool: ThreadPool):
        """Long-lived jobs do not starve later ones."""
        release = threading.Event()
        started = []

        def blocker(n):
            started.append(n)
            release.wait(5.0)

        for n in range(5):
            pool.submit(blocker, args=(n,))

        try:
            assert wait_for(lambda: len(started) == 5)
            assert 5 <= pool.worker_count <= 6
        finally:
            release.set()

    def test_never_exceeds_max_workers(self, pool: ThreadPool):
        release = threading.Event()
        for _ in range(10):
            pool.submit(release.wait, args=(5.0,))

        try:
            assert 2 < pool.worker_count <= 6
        finally:
            release.set()

    def test_failing_job_does_not_kill_worker(self, pool: ThreadPool):
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(2.0)
        assert wait_for(lambda: pool.stats["jobs"]["failed"] == 1)

    def test_stats(self, pool: ThreadPool):
        stats = pool.stats
        assert stats["workers"]["total"] == 2
        assert stats["jobs"]["queued"] == 0

    def test_submit_after_shutdown(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        pool.shutdown(timeout=1.0)

        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool(min_workers=1, max_workers=1).submit(print)

    def test_full_queue_without_blocking(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1, idle_timeout=0.1)
        pool.start()
        release = threading.Event()
        try:
            pool.submit(release.wait, args=(5.0,))
            assert wait_for(lambda: pool.stats["workers"]["busy"] == 1)
            assert pool.submit(release.wait, args=(5.0,), block=False) is True
            assert pool.submit(release.wait, args=(5.0,), block=False) is False
        finally:
            release.set()
            pool.shutdown(timeout=2.0)

    @pytest.mark.parametrize("min_workers, max_workers", [(0, 1), (3, 2)])
    def test_invalid_bounds(self, min_workers, max_workers):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=min_workers, max_workers=max_workers)
