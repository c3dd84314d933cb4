# === NAVMAP v1 ===
# {
#   "module": "Pokedex.concurrency.executors",
#   "purpose": "Thread pool factory and completion-order iteration",
#   "sections": [
#     {
#       "id": "create-executor",
#       "name": "create_executor",
#       "anchor": "function-create-executor",
#       "kind": "function"
#     },
#     {
#       "id": "iter-completed",
#       "name": "iter_completed",
#       "anchor": "function-iter-completed",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Executor factory utilities used by the sprite fetch pass."""

from __future__ import annotations

from concurrent import futures
from typing import Callable, Iterable, Iterator, Optional, Tuple, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def create_executor(
    workers: int, *, thread_name_prefix: str = "pokedex-worker"
) -> Tuple[Optional[futures.ThreadPoolExecutor], bool]:
    """
    Return a thread pool sized for IO-bound work.

    Args:
        workers: Desired concurrency level.
        thread_name_prefix: Prefix applied to worker thread names.

    Returns:
        Tuple of (executor, needs_shutdown). ``(None, False)`` means the caller
        should run work inline. Caller is responsible for shutting down the
        returned executor when ``needs_shutdown`` is ``True``.
    """
    if workers <= 1:
        return None, False
    return (
        futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix),
        True,
    )


def iter_completed(fn: Callable[[T], R], items: Iterable[T], *, workers: int) -> Iterator[R]:
    """Apply ``fn`` to every item and yield results as they complete.

    All items are submitted up front; at most ``workers`` run at once. With a
    single worker the items are processed inline, in order.
    """
    executor, needs_shutdown = create_executor(workers)
    if executor is None:
        for item in items:
            yield fn(item)
        return

    try:
        pending = [executor.submit(fn, item) for item in items]
        for future in futures.as_completed(pending):
            yield future.result()
    finally:
        if needs_shutdown:
            executor.shutdown(wait=True)
