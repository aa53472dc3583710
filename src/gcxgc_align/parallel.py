"""Ordered parallel map over a worker pool."""
from __future__ import annotations

from typing import Callable, List, Sequence, TypeVar

from joblib import Parallel, delayed

T = TypeVar("T")
R = TypeVar("R")


def parallel_map(func: Callable[[T], R], items: Sequence[T], n_workers: int = 1) -> List[R]:
    """Apply a pure `func` to every item; results come back in input order.

    With ``n_workers <= 1`` (or a single item) the map runs in-process.
    """
    if n_workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    return list(Parallel(n_jobs=int(n_workers))(delayed(func)(item) for item in items))
