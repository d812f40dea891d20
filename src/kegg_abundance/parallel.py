"""Thread-pool execution of independent per-key work units."""

from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class BatchResult:
    """Outcome of a batch run, keyed by input key.

    Attributes:
        keys: Input keys in submission order
        results: key -> return value for units that succeeded
        failures: key -> exception for units that raised
    """
    keys: list[Hashable]
    results: dict[Hashable, Any] = field(default_factory=dict)
    failures: dict[Hashable, BaseException] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def ordered_results(self) -> list[Any]:
        """Successful results in input order (independent of completion order)."""
        return [self.results[k] for k in self.keys if k in self.results]


def run_batch(
    keys: Iterable[Hashable],
    func: Callable[[Hashable], Any],
    workers: int = 4,
    label: str = "batch",
) -> BatchResult:
    """Run ``func(key)`` for every key on a thread pool.

    A unit that raises is recorded in ``failures``; sibling units keep
    running. Keys must be unique.

    Args:
        keys: Work unit keys (module ids, file paths, sample ids)
        func: Callable applied to each key
        workers: Maximum concurrent units
        label: Name used in log events

    Returns:
        BatchResult with per-key results and failures
    """
    keys = list(keys)
    if len(set(keys)) != len(keys):
        raise ValueError(f"{label}: duplicate work unit keys")

    batch = BatchResult(keys=keys)
    if not keys:
        return batch

    logger.info(f"{label}_start", units=len(keys), workers=workers)

    with ThreadPoolExecutor(max_workers=min(workers, len(keys))) as pool:
        futures = {pool.submit(func, key): key for key in keys}
        for fut in as_completed(futures):
            key = futures[fut]
            try:
                batch.results[key] = fut.result()
            except Exception as e:
                batch.failures[key] = e
                logger.warning(f"{label}_unit_failed", key=str(key), error=str(e))

    logger.info(
        f"{label}_complete",
        succeeded=batch.succeeded,
        failed=batch.failed,
    )
    return batch
