"""Bounded-concurrency group executor used to pace provider calls."""

from __future__ import annotations

import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, TypeVar

from .config import config

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = config.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class GroupScheduler:
    """Run a function over items in fixed-size concurrent groups.

    Items inside a group run concurrently; groups run one after another with a
    fixed pause before each group after the first. Results keep input order.
    The first failure aborts the whole run and no partial result is returned.
    """

    def __init__(
        self,
        group_size: int = 5,
        pause_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            group_size: Maximum number of concurrent calls per group.
            pause_seconds: Delay between finishing one group and dispatching the next.
            sleep: Sleep function, replaceable in tests.

        Raises:
            ValueError: If group_size is below 1 or pause_seconds is negative.
        """
        if group_size < 1:
            msg = f"group_size must be at least 1, got {group_size}"
            raise ValueError(msg)
        if pause_seconds < 0:
            msg = f"pause_seconds cannot be negative, got {pause_seconds}"
            raise ValueError(msg)
        self.group_size = group_size
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    def groups(self, items: Sequence[T]) -> list[Sequence[T]]:
        """Partition items into consecutive groups.

        Returns:
            List of slices of at most ``group_size`` items.
        """
        return [
            items[start : start + self.group_size]
            for start in range(0, len(items), self.group_size)
        ]

    def run(self, func: Callable[[T], R], items: Sequence[T]) -> list[R]:
        """Apply ``func`` to every item, group by group.

        Returns:
            Results in the same order as ``items``.

        Raises:
            Exception: The first error raised by ``func``, by position within
                the failing group. Remaining groups are never dispatched.
        """
        results: list[R] = []
        groups = self.groups(items)
        if not groups:
            return results

        with ThreadPoolExecutor(max_workers=self.group_size) as executor:
            for group_number, group in enumerate(groups, start=1):
                if group_number > 1 and self.pause_seconds:
                    self._sleep(self.pause_seconds)

                futures: list[Future[R]] = [
                    executor.submit(func, item) for item in group
                ]
                _done, pending = wait(futures, return_when=FIRST_EXCEPTION)
                running = [future for future in pending if not future.cancel()]
                # Calls already in flight cannot be cancelled; let them settle.
                wait(running)

                failed = [
                    future
                    for future in futures
                    if future.done()
                    and not future.cancelled()
                    and future.exception() is not None
                ]
                if failed:
                    error = failed[0].exception()
                    logger.error(
                        "Group %d/%d failed; aborting remaining work",
                        group_number,
                        len(groups),
                    )
                    raise error  # type: ignore[misc]

                # No failure means every future finished.
                results.extend(future.result() for future in futures)
                logger.debug(
                    "Completed group %d/%d (%d items)",
                    group_number,
                    len(groups),
                    len(group),
                )

        return results
