"""Verification Test: Chaos Monkey - process churn while sampling.

Processes exit or turn into zombies between being listed and being read.
The ranker must drop them silently and the monitor must keep producing
snapshots.
"""

import multiprocessing
import random
import time
from queue import Empty, Queue

import psutil
import pytest

from conftest import FakeProcess
from nanostats.monitor import MemoryMonitor, MemorySnapshot
from nanostats.processes import ProcessMemoryRanker


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker that holds a few MiB so it shows up in the ranking."""
    ballast = bytearray(4 * 1024 * 1024)
    ballast[::4096] = b"x" * len(ballast[::4096])
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


def _cleanup(processes):
    for p in processes:
        if p.is_alive():
            p.terminate()
    for p in processes:
        p.join(timeout=1.0)


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_monitor_survives_process_termination(self):
        """The monitor keeps sampling while workers are killed mid-poll."""
        processes = []
        for _ in range(30):
            p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
            p.start()
            processes.append(p)

        queue: Queue[MemorySnapshot] = Queue()
        monitor = MemoryMonitor(queue, poll_rate=0.2, top_process_count=50)

        try:
            monitor.start()
            assert queue.get(timeout=5.0) is not None

            for p in random.sample(processes, 15):
                if p.is_alive():
                    p.terminate()
                time.sleep(0.05)

            snapshots_after_chaos = 0
            start_time = time.time()
            while time.time() - start_time < 3.0:
                try:
                    snapshot = queue.get(timeout=1.0)
                except Empty:
                    continue
                snapshots_after_chaos += 1
                assert isinstance(snapshot.processes, list)

            assert snapshots_after_chaos >= 3, (
                f"Expected at least 3 snapshots after chaos, got {snapshots_after_chaos}"
            )
            assert monitor.is_running, "Monitor should still be running after chaos"
        finally:
            monitor.stop()
            _cleanup(processes)

    def test_ranker_skips_terminated_process(self):
        """A process that is gone by the time it is read is not ranked."""
        p = multiprocessing.Process(target=dummy_worker, args=(60.0,))
        p.start()
        time.sleep(0.2)
        pid = p.pid
        p.terminate()
        p.join(timeout=2.0)

        total = psutil.virtual_memory().total
        result = ProcessMemoryRanker().fetch_top_memory_processes(5000, total)

        assert pid not in {proc.pid for proc in result}

    def test_ranker_survives_zombies(self):
        """Zombies (exited but not yet reaped) have no memory to report."""
        p = multiprocessing.Process(target=dummy_worker, args=(0.1,))
        p.start()
        time.sleep(0.5)

        try:
            total = psutil.virtual_memory().total
            result = ProcessMemoryRanker().fetch_top_memory_processes(5000, total)
            assert isinstance(result, list)
            assert all(proc.memory_usage_bytes > 1024 * 1024 for proc in result)
        finally:
            p.join(timeout=1.0)

    def test_rapid_process_churn(self):
        """Sampling stays consistent while processes are created and destroyed."""
        processes = []
        total = psutil.virtual_memory().total
        ranker = ProcessMemoryRanker()

        try:
            start_time = time.time()
            while time.time() - start_time < 2.0:
                for _ in range(3):
                    p = multiprocessing.Process(target=dummy_worker, args=(10.0,))
                    p.start()
                    processes.append(p)

                alive = [p for p in processes if p.is_alive()]
                if len(alive) > 6:
                    for p in random.sample(alive, 3):
                        p.terminate()

                result = ranker.fetch_top_memory_processes(20, total)
                memories = [proc.memory_usage_bytes for proc in result]
                assert memories == sorted(memories, reverse=True)
                assert len({proc.pid for proc in result}) == len(result)
                time.sleep(0.1)
        finally:
            _cleanup(processes)


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_fake_process_table_churn(seed):
    """Randomly vanishing entries never break ranking invariants."""
    rng = random.Random(seed)
    table = []
    for pid in range(1, 400):
        rss = rng.randint(0, 64) * 1024 * 1024 + rng.randint(0, 1)
        # None models a process that exited or denied access mid-scan
        table.append(FakeProcess(rng.randint(1, 300), None if rng.random() < 0.2 else rss))

    result = ProcessMemoryRanker(process_source=lambda: table).fetch_top_memory_processes(25, 16 * 1024**3)

    assert len(result) <= 25
    assert len({proc.pid for proc in result}) == len(result)
    assert all(proc.memory_usage_bytes > 1024 * 1024 for proc in result)
    keys = [(-proc.memory_usage_bytes, proc.pid) for proc in result]
    assert keys == sorted(keys)
