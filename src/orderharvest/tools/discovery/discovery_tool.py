from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
import inspect
from typing import Protocol

import loguru
from loguru import logger

from orderharvest.adapters.ozon.entities import LineItem

DEFAULT_BATCH_SIZE = 5

ProgressCallback = Callable[[int], Awaitable[None] | None]
StopPredicate = Callable[[], bool]


class OrderSource(Protocol):
    """Anything that can return the line items of one order."""

    async def get_order(
        self, owner_id: int | str, order_number: int
    ) -> Sequence[LineItem]: ...


class ItemSink(Protocol):
    """Storage the discovery engine writes to."""

    def put(self, item: LineItem) -> None: ...

    def max_order_number(self, owner_id: int | str) -> int: ...


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """Summary of one discovery run."""

    total: int
    last_order: int

    def as_dict(self) -> dict[str, int]:
        return {"total": self.total, "lastOrder": self.last_order}


class OwnerLocks:
    """Per-owner asyncio locks so only one scan per owner runs at a time.

    A lock is dropped once no scan holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, owner_id: int | str) -> AsyncIterator[None]:
        key = str(owner_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def is_scanning(self, owner_id: int | str) -> bool:
        lock = self._locks.get(str(owner_id))
        return lock is not None and lock.locked()


class DiscoveryLogger:
    """Handles all logging for OrderDiscovery with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def scan_start(self, owner_id: str, first_order: int) -> None:
        """Log start of a scan."""
        self._logger.bind(owner_id=owner_id, first_order=first_order).info(
            "Scanning orders for owner {} starting at {}", owner_id, first_order
        )

    def batch_start(self, owner_id: str, first_order: int, size: int) -> None:
        """Log a batch of fetches being issued."""
        self._logger.bind(
            owner_id=owner_id, first_order=first_order, size=size
        ).debug(
            "Fetching orders {}..{}", first_order, first_order + size - 1
        )

    def fetch_failed(self, owner_id: str, order_number: int, error: Exception) -> None:
        """Log a fetch failure that is treated as an absent order."""
        self._logger.bind(owner_id=owner_id, order_number=order_number).debug(
            "Order {} unavailable, treating as empty: {}", order_number, error
        )

    def batch_gap(self, owner_id: str, order_number: int) -> None:
        """Log an empty order in the middle of a batch."""
        self._logger.bind(owner_id=owner_id, order_number=order_number).debug(
            "Gap at order {}, discarding the rest of the batch", order_number
        )

    def scan_stopped(self, owner_id: str, next_order: int) -> None:
        """Log a scan stopped by the caller."""
        self._logger.bind(owner_id=owner_id, next_order=next_order).info(
            "Scan for owner {} stopped before order {}", owner_id, next_order
        )

    def scan_complete(self, owner_id: str, result: DiscoveryResult) -> None:
        """Log summary of a finished scan."""
        self._logger.bind(
            owner_id=owner_id, total=result.total, last_order=result.last_order
        ).info(
            "Scan complete for owner {}: {} new items, last order {}",
            owner_id,
            result.total,
            result.last_order,
        )

    def scan_failed(self, owner_id: str, error: Exception) -> None:
        """Log an error that aborted the scan."""
        self._logger.bind(owner_id=owner_id).opt(exception=error).error(
            "Order scan for owner {} failed: {}", owner_id, error
        )


class OrderDiscovery:
    """Finds orders past the stored high-water mark and saves their items.

    Order numbers are probed in batches of ``batch_size`` concurrent fetches.
    An empty first result ends the scan; an empty result later in a batch
    discards the remainder of that batch.
    """

    def __init__(
        self,
        source: OrderSource,
        store: ItemSink,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        owner_locks: OwnerLocks | None = None,
    ) -> None:
        """
        Initialize the discovery engine.

        Args:
            source: Order source used to fetch each order number
            store: Item store receiving discovered line items
            batch_size: Number of order numbers fetched concurrently
            owner_locks: Optional registry serializing scans per owner
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._source = source
        self._store = store
        self._batch_size = batch_size
        self._owner_locks = owner_locks
        self._logger = DiscoveryLogger()

    async def fetch_and_save_new_orders(
        self,
        owner_id: int | str,
        progress_callback: ProgressCallback | None = None,
        *,
        should_stop: StopPredicate | None = None,
    ) -> DiscoveryResult:
        """
        Fetch and persist every order after the highest stored one.

        Args:
            owner_id: Ozon user id
            progress_callback: Called before each batch with the next order
                number plus one; may return an awaitable
            should_stop: Checked before each batch; returning True ends the
                scan early

        Returns:
            DiscoveryResult with the number of new items and the last order
            number reached

        Raises:
            Exception: Any store or callback failure, after logging it
        """
        if self._owner_locks is None:
            return await self._scan(str(owner_id), progress_callback, should_stop)

        async with self._owner_locks.hold(owner_id):
            return await self._scan(str(owner_id), progress_callback, should_stop)

    async def _scan(
        self,
        owner_id: str,
        progress_callback: ProgressCallback | None,
        should_stop: StopPredicate | None,
    ) -> DiscoveryResult:
        try:
            current_order = self._store.max_order_number(owner_id) + 1
            new_items = 0
            self._logger.scan_start(owner_id, current_order)

            while True:
                if should_stop is not None and should_stop():
                    self._logger.scan_stopped(owner_id, current_order)
                    break

                if progress_callback is not None:
                    outcome = progress_callback(current_order + 1)
                    if inspect.isawaitable(outcome):
                        await outcome

                results = await self._fetch_batch(owner_id, current_order)
                has_valid_orders = False

                for index, items in enumerate(results):
                    if not items:
                        if index == 0:
                            result = DiscoveryResult(new_items, current_order - 1)
                            self._logger.scan_complete(owner_id, result)
                            return result
                        self._logger.batch_gap(owner_id, current_order + index)
                        break

                    for item in items:
                        self._store.put(item)
                    new_items += len(items)
                    has_valid_orders = True

                if not has_valid_orders:
                    break
                current_order += self._batch_size

            result = DiscoveryResult(new_items, current_order - 1)
            self._logger.scan_complete(owner_id, result)
            return result
        except Exception as e:
            self._logger.scan_failed(owner_id, e)
            raise

    async def _fetch_batch(
        self, owner_id: str, first_order: int
    ) -> list[Sequence[LineItem]]:
        """Fetch ``batch_size`` consecutive orders; result i is first_order + i."""
        self._logger.batch_start(owner_id, first_order, self._batch_size)
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(self._fetch_order(owner_id, first_order + offset))
                for offset in range(self._batch_size)
            ]
        return [task.result() for task in tasks]

    async def _fetch_order(
        self, owner_id: str, order_number: int
    ) -> Sequence[LineItem]:
        try:
            return await self._source.get_order(owner_id, order_number)
        except Exception as e:
            self._logger.fetch_failed(owner_id, order_number, e)
            return []
