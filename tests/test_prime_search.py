import os
import multiprocessing

import pytest

from primegen import prime_search
from primegen.config import SearchConfig
from primegen.errors import InvalidArgument, WorkerFailure
from primegen.miller_rabin import is_probable_prime
from primegen.prime_search import (
    PrimeSearchCoordinator,
    SearchTask,
    WorkerReport,
    draw_candidate,
    find_prime_sync,
    prime,
    prime_sync,
    search_worker,
)

FAST_BIT_LENGTHS = [2, 8, 255, 256, 258, 512, 1024]
SLOW_BIT_LENGTHS = [2048, 3072]


def crashing_worker(task_queue, result_queue):
    os._exit(3)


def failing_worker(task_queue, result_queue):
    task = task_queue.get()
    result_queue.put(WorkerReport(task.task_id, False, task.candidate, "ValueError: boom"))


def crash_once_worker(task_queue, result_queue):
    # The first worker to claim the flag file dies on its first task, the others search normally
    try:
        fd = os.open(os.environ["PRIMEGEN_TEST_CRASH_FLAG"], os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        search_worker(task_queue, result_queue)
        return
    os.close(fd)
    task_queue.get()
    os._exit(3)


def multi_worker_config(**overrides) -> SearchConfig:
    settings = dict(num_workers=3, use_workers=True, poll_interval=0.05)
    settings.update(overrides)
    return SearchConfig(**settings)


def live_children() -> set[str]:
    return {child.name for child in multiprocessing.active_children()}


@pytest.mark.parametrize("bit_length", FAST_BIT_LENGTHS)
def test_prime_has_requested_bit_length(bit_length):
    p = prime(bit_length, config=multi_worker_config())
    assert p.bit_length() == bit_length
    assert is_probable_prime(p)


@pytest.mark.slow
@pytest.mark.parametrize("bit_length", SLOW_BIT_LENGTHS)
def test_big_prime_has_requested_bit_length(bit_length):
    p = prime(bit_length, config=SearchConfig(use_workers=True, poll_interval=0.05))
    assert p.bit_length() == bit_length


def test_prime_sync_1024():
    p = prime_sync(1024, 16)
    assert p.bit_length() == 1024
    assert is_probable_prime(p)


@pytest.mark.parametrize("bit_length", [0, -1, 1])
def test_bit_length_is_validated(bit_length):
    with pytest.raises(InvalidArgument):
        prime(bit_length, config=multi_worker_config())
    with pytest.raises(InvalidArgument):
        prime_sync(bit_length)


def test_iterations_are_validated(monkeypatch):
    def _no_workers(*args, **kwargs):
        raise AssertionError("no worker should be spawned for invalid arguments")
    monkeypatch.setattr(prime_search.multiprocessing, "get_context", _no_workers)

    with pytest.raises(InvalidArgument):
        prime(64, 0, config=multi_worker_config())
    with pytest.raises(InvalidArgument):
        find_prime_sync(64, 0)


def test_draw_candidate_forces_top_bit():
    for bit_length in (2, 7, 64, 1025):
        assert draw_candidate(bit_length).bit_length() == bit_length


def test_workers_are_terminated_after_the_search():
    before = live_children()
    coordinator = PrimeSearchCoordinator(multi_worker_config())

    p = coordinator.find_prime(1024)

    assert p.bit_length() == 1024
    assert len(coordinator.handles) == 3
    assert all(handle.cancelled for handle in coordinator.handles)
    assert all(handle.exitcode is not None for handle in coordinator.handles)
    assert live_children() == before


def test_every_search_gets_fresh_workers():
    coordinator = PrimeSearchCoordinator(multi_worker_config(num_workers=2))

    coordinator.find_prime(64)
    first_handles = list(coordinator.handles)
    coordinator.find_prime(64)

    assert len(coordinator.handles) == 2
    assert not set(map(id, first_handles)) & set(map(id, coordinator.handles))


def test_composite_reports_get_a_fresh_candidate():
    coordinator = PrimeSearchCoordinator(multi_worker_config())
    coordinator.find_prime(256)

    # Every worker got its first task, and winners only emerge after composites were redrawn
    assert all(handle.tasks_sent >= 1 for handle in coordinator.handles)
    assert sum(handle.tasks_sent for handle in coordinator.handles) >= coordinator.candidates_tested


def test_only_the_first_prime_report_wins():
    coordinator = PrimeSearchCoordinator(multi_worker_config())

    assert coordinator.handle_report(WorkerReport(0, True, 1601), 11, 16) == 1601
    assert coordinator.handle_report(WorkerReport(1, True, 1607), 11, 16) is None
    assert coordinator.handle_report(WorkerReport(2, False, 1609, "late crash"), 11, 16) is None
    assert coordinator.candidates_tested == 1


def test_no_task_is_dispatched_to_a_cancelled_worker():
    coordinator = PrimeSearchCoordinator(multi_worker_config(num_workers=1))
    coordinator.find_prime(32)
    handle = coordinator.handles[0]
    sent = handle.tasks_sent

    assert handle.submit(SearchTask(0, 1601, 11, 16)) is False
    assert handle.tasks_sent == sent
    handle.cancel()  # idempotent


def test_error_report_aborts_the_search():
    before = live_children()
    coordinator = PrimeSearchCoordinator(
        multi_worker_config(num_workers=2, start_method="spawn"), worker_target=failing_worker
    )

    with pytest.raises(WorkerFailure, match="boom"):
        coordinator.find_prime(512)

    assert all(handle.cancelled for handle in coordinator.handles)
    assert live_children() == before


def test_crashed_worker_aborts_the_search():
    before = live_children()
    coordinator = PrimeSearchCoordinator(
        multi_worker_config(num_workers=2, start_method="spawn"), worker_target=crashing_worker
    )

    with pytest.raises(WorkerFailure, match="exited unexpectedly"):
        coordinator.find_prime(512)

    assert all(handle.cancelled for handle in coordinator.handles)
    assert live_children() == before


def test_one_crashed_worker_aborts_the_search_while_others_report(tmp_path, monkeypatch):
    monkeypatch.setenv("PRIMEGEN_TEST_CRASH_FLAG", str(tmp_path / "crashed"))
    before = live_children()
    coordinator = PrimeSearchCoordinator(
        multi_worker_config(num_workers=3, start_method="spawn", poll_interval=0.1), worker_target=crash_once_worker
    )

    # 2048-bit composites are reported much faster than the poll interval
    with pytest.raises(WorkerFailure, match="exited unexpectedly"):
        coordinator.find_prime(2048)

    assert 3 in [handle.exitcode for handle in coordinator.handles]
    assert all(handle.cancelled for handle in coordinator.handles)
    assert live_children() == before


class _DeadHandle:
    cancelled = False

    def __init__(self, worker_id):
        self.worker_id = worker_id
        self.process = type("Process", (), {"exitcode": 3})()

    def is_alive(self):
        return False


class _BusyQueue:
    def __init__(self):
        self.reads = 0

    def get(self, block=True, timeout=None):
        self.reads += 1
        return WorkerReport(1, False, 1609)


def test_dead_worker_fails_the_search_even_if_reports_never_stop():
    coordinator = PrimeSearchCoordinator(multi_worker_config())
    coordinator.handles = [_DeadHandle(0), _DeadHandle(1), _DeadHandle(2)]
    result_queue = _BusyQueue()

    for _ in range(3):
        assert coordinator._next_report(result_queue).value == 1609
    with pytest.raises(WorkerFailure, match="Worker 0 exited unexpectedly"):
        coordinator._next_report(result_queue)
    assert result_queue.reads == 3


def test_sequential_search_when_workers_are_disabled(monkeypatch):
    calls = []

    def _sync(bit_length, iterations):
        calls.append((bit_length, iterations))
        return 251
    monkeypatch.setattr(prime_search, "find_prime_sync", _sync)

    coordinator = PrimeSearchCoordinator(SearchConfig(use_workers=False, iterations=20))

    assert coordinator.find_prime(8) == 251
    assert calls == [(8, 20)]
    assert coordinator.handles == []


def test_single_worker_search():
    p = prime(128, config=multi_worker_config(num_workers=1))
    assert p.bit_length() == 128
