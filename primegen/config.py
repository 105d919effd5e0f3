"""
Description: Search configuration for the parallel prime generator.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - Values can come from PRIMEGEN_* environment variables (see load_config).
"""
import os
import logging
from dataclasses import dataclass
from functools import lru_cache

from primegen.errors import InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS: int = 16  # consistent with FIPS 186-4 tables C.1-C.3 for common key sizes
DEFAULT_WORKER_RESERVE: int = 1
DEFAULT_POLL_INTERVAL: float = 0.1


@dataclass(frozen=True)
class SearchConfig:
    """
    Settings injected into a PrimeSearchCoordinator at construction time.

    Attributes:
        iterations (int): Default number of Miller-Rabin rounds per candidate.
        num_workers (int | None): Fixed number of worker processes. None means CPU count minus `worker_reserve`.
        worker_reserve (int): Number of CPUs left free for the coordinator and the rest of the system.
        use_workers (bool): Whether worker processes may be used at all. False forces the sequential search.
        start_method (str | None): multiprocessing start method ("fork", "spawn", "forkserver"). None = platform default.
        poll_interval (float): Seconds the coordinator waits for a report before checking that its workers are alive.
    """
    iterations: int = DEFAULT_ITERATIONS
    num_workers: int | None = None
    worker_reserve: int = DEFAULT_WORKER_RESERVE
    use_workers: bool = True
    start_method: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise InvalidArgument("iterations MUST be >= 1")
        if self.num_workers is not None and self.num_workers < 1:
            raise InvalidArgument("num_workers MUST be >= 1")
        if self.worker_reserve < 0:
            raise InvalidArgument("worker_reserve MUST be >= 0")
        if self.poll_interval <= 0:
            raise InvalidArgument("poll_interval MUST be > 0")

    def resolve_num_workers(self) -> int:
        """
        Work out how many worker processes a search should start.

        Returns:
            int: `num_workers` if set, otherwise the CPU count minus the reserve, never fewer than 1.
        """
        if self.num_workers is not None:
            return self.num_workers
        cpus: int = os.cpu_count() or 1
        return max(1, cpus - self.worker_reserve)


@lru_cache(maxsize=None)
def workers_supported() -> bool:
    """
    Check once whether this platform can run the multiprocessing-based search.

    Some builds (e.g. without a working sem_open) cannot create the locks that multiprocessing queues need.

    Returns:
        bool: True if worker processes can be used, False otherwise.
    """
    try:
        import multiprocessing.synchronize  # noqa: F401
    except ImportError:
        logger.warning(
            "multiprocessing synchronisation primitives are not available on this platform. "
            "Prime generation will run sequentially, which is much slower for big primes."
        )
        return False
    return True


def _env_int(name: str, default: int | None) -> int | None:
    raw: str | None = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw: str | None = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value: str = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise InvalidArgument(f"{name} must be true or false, got {raw!r}")


def load_config() -> SearchConfig:
    """
    Load the search configuration from environment variables.

    Recognised variables:
        - PRIMEGEN_ITERATIONS: Miller-Rabin rounds per candidate (default 16)
        - PRIMEGEN_WORKERS: number of worker processes (default: CPU count - reserve)
        - PRIMEGEN_WORKER_RESERVE: CPUs left free (default 1)
        - PRIMEGEN_USE_WORKERS: "true"/"false" (default true)
        - PRIMEGEN_START_METHOD: multiprocessing start method (default: platform default)
        - PRIMEGEN_POLL_INTERVAL: seconds between worker liveness checks (default 0.1)

    Returns:
        SearchConfig: The configuration. `use_workers` is False if the platform cannot run worker processes.

    Raises:
        InvalidArgument: If a variable holds a malformed or out-of-range value.
    """
    poll_raw: str = os.environ.get("PRIMEGEN_POLL_INTERVAL", "").strip()
    try:
        poll_interval: float = float(poll_raw) if poll_raw else DEFAULT_POLL_INTERVAL
    except ValueError:
        raise InvalidArgument(f"PRIMEGEN_POLL_INTERVAL must be a number, got {poll_raw!r}") from None

    start_method: str | None = os.environ.get("PRIMEGEN_START_METHOD", "").strip() or None

    return SearchConfig(
        iterations=_env_int("PRIMEGEN_ITERATIONS", DEFAULT_ITERATIONS),
        num_workers=_env_int("PRIMEGEN_WORKERS", None),
        worker_reserve=_env_int("PRIMEGEN_WORKER_RESERVE", DEFAULT_WORKER_RESERVE),
        use_workers=_env_bool("PRIMEGEN_USE_WORKERS", True) and workers_supported(),
        start_method=start_method,
        poll_interval=poll_interval,
    )
