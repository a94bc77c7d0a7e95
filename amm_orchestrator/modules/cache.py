"""
Balance/Pool Cache

Holds the last-fetched wallet balances keyed by (account, token) and pool
state keyed by pool id. State is only ever replaced as a whole: readers
get immutable snapshots, and subscribers are called with the new snapshot
after each replacement.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .reader import RemoteStateReader
    from .tokens import TokenRegistry

from ..errors import OrchestratorError
from ..types import PoolState

logger = logging.getLogger(__name__)

BalanceKey = Tuple[str, str]


@dataclass(frozen=True)
class CacheSnapshot:
    """Read-only view of the cache at one point in time"""
    balances: Mapping[BalanceKey, int]
    pools: Mapping[int, PoolState]

    def balance(self, account_id: str, token_id: str) -> Optional[int]:
        return self.balances.get((account_id, token_id))

    def pool(self, pool_id: int) -> Optional[PoolState]:
        return self.pools.get(pool_id)


Subscriber = Callable[[CacheSnapshot], None]


class BalancePoolCache:
    """
    Last-fetched balances and pools with invalidate-and-refetch

    Usage:
        cache = BalancePoolCache(reader, tokens)
        unsubscribe = cache.subscribe(lambda snap: render(snap))
        await cache.refresh_balances("alice.near", ["near", "veganfriends.tkn.near"])
        pool = await cache.refresh_pool(5094)
    """

    def __init__(self, reader: "RemoteStateReader", tokens: "TokenRegistry"):
        self._reader = reader
        self._tokens = tokens
        self._balances: Mapping[BalanceKey, int] = MappingProxyType({})
        self._pools: Mapping[int, PoolState] = MappingProxyType({})
        self._subscribers: List[Subscriber] = []
        self._pending: Set[asyncio.Task] = set()

    @property
    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(balances=self._balances, pools=self._pools)

    def balance(self, account_id: str, token_id: str) -> Optional[int]:
        return self._balances.get((account_id, token_id))

    def pool(self, pool_id: int) -> Optional[PoolState]:
        return self._pools.get(pool_id)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for every snapshot replacement

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self):
        snapshot = self.snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Cache subscriber {callback!r} failed: {e}")

    def _replace(
        self,
        balances: Optional[Dict[BalanceKey, int]] = None,
        pools: Optional[Dict[int, PoolState]] = None,
    ):
        if balances is not None:
            self._balances = MappingProxyType(balances)
        if pools is not None:
            self._pools = MappingProxyType(pools)
        self._publish()

    async def refresh_balances(self, account_id: str, token_ids: Iterable[str]) -> Dict[str, int]:
        """
        Fetch wallet balances concurrently and merge them in one update

        Failed reads keep their previous value and are logged.

        Returns:
            Token id -> balance for the reads that succeeded
        """
        token_ids = list(dict.fromkeys(token_ids))
        results = await asyncio.gather(
            *(self._reader.get_token_balance(token_id, account_id) for token_id in token_ids),
            return_exceptions=True,
        )

        fetched: Dict[str, int] = {}
        for token_id, result in zip(token_ids, results):
            if isinstance(result, OrchestratorError):
                logger.warning(f"Balance refresh failed for {account_id}/{token_id}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                fetched[token_id] = result

        if fetched:
            merged = dict(self._balances)
            merged.update({(account_id, token_id): amount for token_id, amount in fetched.items()})
            self._replace(balances=merged)
        return fetched

    async def load_pool(self, pool_id: int) -> PoolState:
        """Fetch a pool with display metadata, without touching the cache"""
        raw = await self._reader.get_pool(pool_id)
        token_a, token_b = await asyncio.gather(
            *(self._tokens.for_contract(token_id) for token_id in raw.token_account_ids)
        )
        return PoolState(
            id=pool_id,
            token_a=token_a,
            token_b=token_b,
            reserves=raw.reserves,
            total_shares=raw.shares_total_supply,
            pool_kind=raw.pool_kind,
            total_fee=raw.total_fee,
            token_account_ids=raw.token_account_ids,
        )

    async def refresh_pool(self, pool_id: int) -> PoolState:
        """
        Re-fetch one pool and replace its snapshot

        Raises:
            ReadError: If the pool cannot be read
        """
        pool = await self.load_pool(pool_id)
        pools = dict(self._pools)
        pools[pool_id] = pool
        self._replace(pools=pools)
        return pool

    def invalidate(
        self,
        account_id: Optional[str] = None,
        token_ids: Iterable[str] = (),
        pool_ids: Iterable[int] = (),
    ):
        """Drop cached balances and pools so stale values are not shown"""
        token_ids = set(token_ids)
        pool_ids = set(pool_ids)
        balances = {
            key: amount for key, amount in self._balances.items()
            if not (key[1] in token_ids and (account_id is None or key[0] == account_id))
        }
        pools = {pid: pool for pid, pool in self._pools.items() if pid not in pool_ids}
        self._replace(balances=balances, pools=pools)

    async def refetch(
        self,
        account_id: str,
        token_ids: Iterable[str] = (),
        pool_ids: Iterable[int] = (),
    ):
        """Refresh balances and pools concurrently; failures are logged"""
        token_ids = list(token_ids)
        pool_ids = list(pool_ids)
        tasks = [self.refresh_pool(pool_id) for pool_id in pool_ids]
        if token_ids:
            tasks.append(self.refresh_balances(account_id, token_ids))
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, OrchestratorError):
                logger.warning(f"Refetch failed: {result}")
            elif isinstance(result, BaseException):
                raise result

    def schedule_refetch(
        self,
        account_id: str,
        token_ids: Iterable[str] = (),
        pool_ids: Iterable[int] = (),
        delay: float = 0.0,
    ) -> asyncio.Task:
        """
        Refetch after ``delay`` seconds in the background

        The task is kept referenced until it finishes.
        """
        token_ids = list(token_ids)
        pool_ids = list(pool_ids)

        async def run():
            if delay > 0:
                await asyncio.sleep(delay)
            await self.refetch(account_id, token_ids, pool_ids)

        task = asyncio.ensure_future(run())
        self._pending.add(task)
        task.add_done_callback(self._on_refetch_done)
        return task

    def _on_refetch_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background refetch failed: {task.exception()}")

    async def wait_pending(self):
        """Wait for scheduled refetches (used on shutdown and in tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self):
        for task in list(self._pending):
            task.cancel()
