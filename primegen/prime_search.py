"""
Description: Random probable-prime search, either in parallel worker processes or sequentially.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - The coordinator owns every worker process. Workers never talk to each other; all state flows through
      one task queue per worker (coordinator -> worker) and a shared result queue (workers -> coordinator).
    - Only the coordinator decides the winner, in a single loop, so two simultaneous primes cannot both win.
"""
import queue
import logging
import multiprocessing
from multiprocessing.context import BaseContext
from typing import Callable, NamedTuple

from primegen.big_random import rand_bits_int
from primegen.config import DEFAULT_ITERATIONS, SearchConfig, load_config
from primegen.errors import InvalidArgument, WorkerFailure
from primegen.miller_rabin import is_probable_prime

logger = logging.getLogger(__name__)


class SearchTask(NamedTuple):
    """One candidate sent to a worker. `task_id` is the id of the worker it was sent to."""
    task_id: int
    candidate: int
    bit_length: int
    iterations: int


class WorkerReport(NamedTuple):
    """A worker's answer for one SearchTask. `error` is set instead of a verdict if the test raised."""
    task_id: int
    is_prime: bool
    value: int
    error: str | None = None


WorkerTarget = Callable[..., None]  # (task_queue, result_queue) -> None


def validate_search_args(bit_length: int, iterations: int) -> None:
    """
    Reject search arguments that cannot lead to a prime.

    Args:
        bit_length (int): Requested bit length of the prime.
        iterations (int): Miller-Rabin rounds per candidate.

    Raises:
        InvalidArgument: If bit_length < 2 (there is no 1-bit prime) or iterations < 1.
    """
    if bit_length < 1:
        raise InvalidArgument("bit_length MUST be > 0")
    if bit_length == 1:
        raise InvalidArgument("bit_length MUST be > 1: the only 1-bit value is 1, which is not prime")
    if iterations < 1:
        raise InvalidArgument("iterations MUST be >= 1")


def draw_candidate(bit_length: int) -> int:
    """
    Draw a random candidate with exactly `bit_length` bits.

    The top bit is forced to 1. The bottom bit is NOT forced: even candidates are rejected
    for free by the primality test's parity check.
    """
    return rand_bits_int(bit_length, force_length=True)


def search_worker(task_queue: multiprocessing.Queue, result_queue: multiprocessing.Queue) -> None:
    """
    Worker process loop: test every candidate received on `task_queue` and report the verdict on `result_queue`.

    The loop ends when a None sentinel is received or the process is terminated by the coordinator.
    If the test raises, the error is reported back and the worker exits, so the coordinator can abort the search.

    Args:
        task_queue (multiprocessing.Queue): Queue of SearchTask sent by the coordinator to this worker only.
        result_queue (multiprocessing.Queue): Queue of WorkerReport shared by all workers of the search.

    Returns:
        None
    """
    while True:
        task: SearchTask | None = task_queue.get()
        if task is None:
            return

        try:
            is_prime: bool = is_probable_prime(task.candidate, task.iterations)
        except Exception as exc:
            result_queue.put(WorkerReport(task.task_id, False, task.candidate, f"{type(exc).__name__}: {exc}"))
            return

        result_queue.put(WorkerReport(task.task_id, is_prime, task.candidate))


class WorkerHandle:
    """
    Ownership token for one worker process and its private task queue.

    cancel() is idempotent and works whether the process is still running, already exited, or crashed.
    """

    def __init__(
        self,
        worker_id: int,
        ctx: BaseContext,
        target: WorkerTarget,
        result_queue: multiprocessing.Queue
    ) -> None:
        self.worker_id: int = worker_id
        self.task_queue: multiprocessing.Queue = ctx.Queue()
        self.process = ctx.Process(
            target=target,
            args=(self.task_queue, result_queue),
            name=f"PrimeSearchWorker-{worker_id}",
            daemon=True,  # never outlive the coordinator's process
        )
        self.tasks_sent: int = 0
        self.exitcode: int | None = None
        self._started: bool = False
        self._cancelled: bool = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        self.process.start()
        self._started = True

    def is_alive(self) -> bool:
        return self._started and not self._cancelled and self.process.is_alive()

    def submit(self, task: SearchTask) -> bool:
        """
        Send a task to this worker.

        Returns:
            bool: False if the handle is already cancelled (nothing is sent), True otherwise.
        """
        if self._cancelled:
            return False
        self.task_queue.put(task)
        self.tasks_sent += 1
        return True

    def cancel(self) -> None:
        """
        Terminate the worker (if still running), reap it and release its process and queue resources.

        Any candidate being tested is discarded.
        """
        if self._cancelled:
            return
        self._cancelled = True

        if self._started:
            if self.process.is_alive():
                self.process.terminate()  # force-kill, in-flight test is discarded
            self.process.join()
            self.exitcode = self.process.exitcode
            self.process.close()

        # Pending tasks are dropped: don't block on flushing them to a dead reader
        self.task_queue.cancel_join_thread()
        self.task_queue.close()


class PrimeSearchCoordinator:
    """
    Finds one probable prime of a requested bit length using a pool of worker processes.

    The coordinator:
        1) Spawns P workers (CPU count minus a reserve, at least 1) and gives each one a random candidate.
        2) Waits for reports. On COMPOSITE, it draws a fresh candidate and sends it to the same worker.
        3) On the first PROBABLY_PRIME report, it marks the search as concluded, cancels every worker
           and returns the value. Reports arriving after that are discarded.
        4) If a worker dies or reports an error, it cancels every worker and raises WorkerFailure.

    Each call to find_prime() uses a fresh set of workers and queues, nothing is shared between searches.
    """

    def __init__(self, config: SearchConfig | None = None, worker_target: WorkerTarget = search_worker) -> None:
        """
        Args:
            config (SearchConfig | None, optional): Search settings. If None, they are loaded from the environment.
            worker_target (WorkerTarget, optional): Function run by each worker process. Must be importable
                (module-level) so that it can be sent to spawned processes. Defaults to search_worker.
        """
        self.config: SearchConfig = config if config is not None else load_config()
        self.worker_target: WorkerTarget = worker_target
        self.handles: list[WorkerHandle] = []
        self.concluded: bool = False
        self.candidates_tested: int = 0
        self._reports_to_drain: int | None = None

    def find_prime(self, bit_length: int, iterations: int | None = None) -> int:
        """
        Search for a random probable prime with exactly `bit_length` bits.

        Args:
            bit_length (int): The bit length of the prime.
            iterations (int | None, optional): Miller-Rabin rounds per candidate. Defaults to config.iterations.

        Returns:
            int: A probable prime p with p.bit_length() == bit_length.

        Raises:
            InvalidArgument: If bit_length < 2 or iterations < 1 (no worker is spawned).
            WorkerFailure: If a worker crashes or its channel breaks.
        """
        if iterations is None:
            iterations = self.config.iterations
        validate_search_args(bit_length, iterations)

        if not self.config.use_workers:
            logger.debug("Worker processes disabled, running the sequential search")
            return find_prime_sync(bit_length, iterations)

        # Fresh search state
        self.handles = []
        self.concluded = False
        self.candidates_tested = 0
        self._reports_to_drain = None

        ctx: BaseContext = multiprocessing.get_context(self.config.start_method)
        result_queue: multiprocessing.Queue = ctx.Queue()
        num_workers: int = self.config.resolve_num_workers()

        try:
            for worker_id in range(num_workers):
                handle = WorkerHandle(worker_id, ctx, self.worker_target, result_queue)
                self.handles.append(handle)
                handle.start()

            # Start every process before the first put(): each put() starts a queue feeder thread in this process
            for handle in self.handles:
                handle.submit(SearchTask(handle.worker_id, draw_candidate(bit_length), bit_length, iterations))
            logger.debug("Started %d workers for a %d-bit prime search", num_workers, bit_length)

            while True:
                report: WorkerReport = self._next_report(result_queue)
                prime_value: int | None = self.handle_report(report, bit_length, iterations)
                if prime_value is not None:
                    return prime_value
        finally:
            # Also runs on success (no-op then) and on KeyboardInterrupt
            self.concluded = True
            self.shutdown()
            result_queue.close()

    def handle_report(self, report: WorkerReport, bit_length: int, iterations: int) -> int | None:
        """
        Act on one worker report. This is the only place where a winner is declared.

        Args:
            report (WorkerReport): The report received from a worker.
            bit_length (int): Bit length of the current search (for redrawing).
            iterations (int): Miller-Rabin rounds of the current search (for redrawing).

        Returns:
            int | None: The prime if this report wins the search, None otherwise.

        Raises:
            WorkerFailure: If the report carries an error.
        """
        if self.concluded:
            #? Race inherent to the parallel search: another worker already won, not an error
            logger.debug("Discarding late report from worker %d", report.task_id)
            return None

        if report.error is not None:
            self.concluded = True
            raise WorkerFailure(f"Worker {report.task_id} failed while testing a candidate: {report.error}")

        self.candidates_tested += 1

        if report.is_prime:
            self.concluded = True
            self.shutdown()
            logger.info(
                "Found a %d-bit probable prime (worker %d, %d candidates tested)",
                report.value.bit_length(), report.task_id, self.candidates_tested
            )
            return report.value

        # Composite: keep this worker busy with a fresh candidate
        self.handles[report.task_id].submit(
            SearchTask(report.task_id, draw_candidate(bit_length), bit_length, iterations)
        )
        return None

    def shutdown(self) -> None:
        """Cancel every worker of the current search. Safe to call more than once."""
        live: int = sum(1 for handle in self.handles if not handle.cancelled)
        if live:
            logger.debug("Cancelling %d workers", live)
        for handle in self.handles:
            handle.cancel()

    def _next_report(self, result_queue: multiprocessing.Queue) -> WorkerReport:
        """
        Block until a worker report arrives, checking on every pass that all workers are still alive.

        Once a dead worker is seen, only the reports already written are still handed out (so an error
        it reported before exiting wins), then the search fails even if other workers keep reporting.

        Raises:
            WorkerFailure: If a worker process exited or the result channel broke.
        """
        while True:
            # Snapshot before reading: whatever a dead worker sent before exiting is already readable
            dead: list[WorkerHandle] = [
                handle for handle in self.handles if not handle.cancelled and not handle.is_alive()
            ]
            if dead and self._reports_to_drain is None:
                # At most one report per worker is in flight, so the dead worker's last one is within the next P
                self._reports_to_drain = len(self.handles)

            try:
                if not dead:
                    return result_queue.get(timeout=self.config.poll_interval)
                if self._reports_to_drain > 0:
                    self._reports_to_drain -= 1
                    return result_queue.get(block=False)
            except queue.Empty:
                pass
            except (EOFError, OSError) as exc:
                raise WorkerFailure("Result channel of the prime search is broken") from exc

            if dead:
                handle = dead[0]
                raise WorkerFailure(
                    f"Worker {handle.worker_id} exited unexpectedly (exit code {handle.process.exitcode})"
                )


def find_prime_sync(bit_length: int, iterations: int = DEFAULT_ITERATIONS) -> int:
    """
    Sequential prime search on the calling thread: draw a candidate, test it, repeat until a probable prime.

    Args:
        bit_length (int): The bit length of the prime.
        iterations (int, optional): Miller-Rabin rounds per candidate. Defaults to 16.

    Returns:
        int: A probable prime p with p.bit_length() == bit_length.

    Raises:
        InvalidArgument: If bit_length < 2 or iterations < 1.
    """
    validate_search_args(bit_length, iterations)

    candidates_tested: int = 0
    while True:
        candidate: int = draw_candidate(bit_length)
        candidates_tested += 1
        if is_probable_prime(candidate, iterations):
            logger.debug("Found a %d-bit probable prime after %d candidates", bit_length, candidates_tested)
            return candidate


def prime(bit_length: int, iterations: int | None = None, config: SearchConfig | None = None) -> int:
    """
    Generate a random probable prime of `bit_length` bits, using worker processes when available.

    Args:
        bit_length (int): The bit length of the prime.
        iterations (int | None, optional): Miller-Rabin rounds per candidate. Defaults to config.iterations (16).
        config (SearchConfig | None, optional): Search settings. Defaults to load_config().

    Returns:
        int: A probable prime with exactly `bit_length` bits.
    """
    return PrimeSearchCoordinator(config).find_prime(bit_length, iterations)


def prime_sync(bit_length: int, iterations: int = DEFAULT_ITERATIONS) -> int:
    """
    Generate a random probable prime of `bit_length` bits on the calling thread.

    Slower than prime() for big primes since only one CPU is used.
    """
    return find_prime_sync(bit_length, iterations)
