"""Bounded fan-out over independent fetches, plus grouping/sort helpers."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Generic, TypeVar

from gristctl.contracts.common import GristError, TransportError

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


@dataclass(frozen=True)
class Outcome(Generic[R]):
    """Either the value of one unit of work or the error that stopped it."""

    value: R | None = None
    error: GristError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(
    items: Sequence[T],
    fn: Callable[[T], R],
    *,
    max_workers: int | None = None,
) -> list[Outcome[R]]:
    """Run ``fn`` on every item concurrently and wait for all of them.

    One worker per item unless ``max_workers`` is smaller. Each task writes
    its own slot, so ``result[i]`` is the outcome of ``items[i]`` whatever
    the completion order. A :class:`GristError` is captured in its slot; a
    :class:`TransportError` or any other exception cancels the tasks not
    yet started and is re-raised.
    """
    if not items:
        return []
    slots: list[Outcome[R] | None] = [None] * len(items)
    workers = min(len(items), max_workers or len(items))

    def run(index: int) -> None:
        try:
            slots[index] = Outcome(value=fn(items[index]))
        except TransportError:
            raise
        except GristError as e:
            slots[index] = Outcome(error=e)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gristctl") as pool:
        futures = [pool.submit(run, i) for i in range(len(items))]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in done:
            exc = future.exception()
            if exc is not None:
                for other in pending:
                    other.cancel()
                raise exc
    return [slot for slot in slots if slot is not None]


def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """Group items by key, keeping input order inside each group."""
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def casefold_key(value: str | None) -> str:
    """Sort key for names and emails: case-insensitive."""
    return (value or "").lower()
