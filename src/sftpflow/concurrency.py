from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_thread_pool(items: Iterable[T], fn: Callable[[T], R], *, workers: int = 8) -> List[R]:
    """Run fn over items on a thread pool; results keep input order.

    fn is expected to report its own failures. An exception that escapes fn is
    re-raised as RuntimeError naming the item index, after every submitted task
    has finished.
    """
    items = list(items)
    if not items:
        return []

    pool_size = min(len(items), max(1, int(workers)))
    with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="sftpflow") as ex:
        futures = [ex.submit(fn, item) for item in items]

    results: List[R] = []
    for idx, fut in enumerate(futures):
        try:
            results.append(fut.result())
        except Exception as e:
            raise RuntimeError(f"ThreadPool task failed at index={idx}: {e}") from e
    return results
