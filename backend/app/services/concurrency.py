"""Run a handful of independent callables side by side and collect results.

Results come back in submission order. The first failure is re-raised as is
and any task that has not started yet is cancelled; no partial results are
returned.
"""

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, List


def fan_out(tasks: Sequence[Callable[[], Any]], *, max_workers: int) -> List[Any]:
    if not isinstance(max_workers, int) or max_workers < 1:
        raise ValueError("max_workers must be a positive integer")
    if not tasks:
        return []
    if len(tasks) == 1:
        return [tasks[0]()]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(tasks))) as pool:
        futures = [pool.submit(task) for task in tasks]
        done, _pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in done:
            error = future.exception()
            if error is not None:
                pool.shutdown(wait=False, cancel_futures=True)
                raise error
        return [future.result() for future in futures]


__all__ = ["fan_out"]
