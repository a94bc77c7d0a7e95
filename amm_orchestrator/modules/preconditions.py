"""
Precondition Resolver

Determines which remote preconditions of an action already hold. Every
check is an independent read; all reads of one action run concurrently
and the resolver joins on all of them. A failed read never aborts the
others: it resolves to "not satisfied" (or to a zero deposit / fallback
storage minimum) and is logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .reader import RemoteStateReader

from ..config import config as global_config, ContractsConfig, DepositConfig
from ..errors import ReadError
from ..types import ActionKind, PoolState, PreconditionKey, PreconditionSet

logger = logging.getLogger(__name__)


class PreconditionResolver:
    """
    Resolves PreconditionSets for swap, add-liquidity and remove-liquidity

    Usage:
        resolver = PreconditionResolver(reader)
        pre = await resolver.resolve_add_liquidity("alice.near", pool, amounts)
        pre.shortfall("wrap.near")
    """

    def __init__(
        self,
        reader: "RemoteStateReader",
        contracts: Optional[ContractsConfig] = None,
        deposits: Optional[DepositConfig] = None,
    ):
        self._reader = reader
        self._contracts = contracts or global_config.contracts
        self._deposits = deposits or global_config.deposits

    @property
    def amm_contract_id(self) -> str:
        return self._contracts.amm_contract_id

    @property
    def wrap_contract_id(self) -> str:
        return self._contracts.wrap_contract_id

    async def _read(self, awaitable: Awaitable[Any], fallback: Any, what: str) -> Any:
        """Await a read, degrading a ReadError to ``fallback``"""
        try:
            return await awaitable
        except ReadError as e:
            logger.warning(f"Precondition read '{what}' failed, assuming {fallback!r}: {e}")
            return fallback

    async def _registrations(self, account_id: str, token_ids: List[str], include_amm: bool):
        """
        Registration flags and storage minimums for ``token_ids``

        Returns:
            (satisfied flags, storage minimums)
        """
        reads = []
        keys: List[Tuple[PreconditionKey, str]] = []
        for token_id in token_ids:
            keys.append((PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN, token_id))
            reads.append(self._read(
                self._reader.is_registered(token_id, account_id), False,
                f"storage_balance_of({token_id}, {account_id})",
            ))
            if include_amm:
                keys.append((PreconditionKey.AMM_REGISTERED_ON_TOKEN, token_id))
                reads.append(self._read(
                    self._reader.is_registered(token_id, self.amm_contract_id), False,
                    f"storage_balance_of({token_id}, {self.amm_contract_id})",
                ))
        minimum_reads = [
            self._read(
                self._reader.storage_minimum(token_id),
                self._deposits.fallback_storage_minimum,
                f"storage_balance_bounds({token_id})",
            )
            for token_id in token_ids
        ]

        results = await asyncio.gather(*reads, *minimum_reads)
        flags = dict(zip(keys, results[:len(keys)]))
        minimums = dict(zip(token_ids, results[len(keys):]))
        return flags, minimums

    # =========================================================================
    # Actions
    # =========================================================================

    async def resolve_swap(
        self,
        account_id: str,
        contract_in: str,
        contract_out: str,
        amount_in: int,
        native_in: bool = False,
    ) -> PreconditionSet:
        """
        Registration state of both swap tokens

        Args:
            account_id: Acting account
            contract_in: Input contract id (wrapped native for native input)
            contract_out: Output contract id
            amount_in: Swap input in contract units
            native_in: Input is the native currency and must be wrapped first
        """
        token_ids = list(dict.fromkeys([contract_in, contract_out]))
        flags, minimums = await self._registrations(account_id, token_ids, include_amm=True)

        wrap_shortfall = amount_in if native_in else 0
        if native_in:
            flags[(PreconditionKey.NATIVE_WRAPPED, contract_in)] = False

        return PreconditionSet(
            action=ActionKind.SWAP,
            account_id=account_id,
            satisfied=flags,
            wrap_shortfall=wrap_shortfall,
            storage_minimums=minimums,
        )

    async def resolve_add_liquidity(
        self,
        account_id: str,
        pool: PoolState,
        amounts: Mapping[str, int],
    ) -> PreconditionSet:
        """
        Registration, whitelist, AMM deposit and wrap state for a deposit

        Args:
            account_id: Acting account
            pool: Target pool
            amounts: Contract id -> amount the liquidity call needs
        """
        token_ids = list(pool.token_account_ids)
        wraps_native = self.wrap_contract_id in token_ids

        registration_task = self._registrations(account_id, token_ids, include_amm=True)
        whitelist_task = self._read(
            self._reader.get_whitelisted_tokens(account_id), None,
            f"get_user_whitelisted_tokens({account_id})",
        )
        deposit_tasks = [
            self._read(
                self._reader.get_deposit(account_id, token_id), 0,
                f"get_deposit({account_id}, {token_id})",
            )
            for token_id in token_ids
        ]
        wrapped_balance_task = self._read(
            self._reader.get_token_balance(self.wrap_contract_id, account_id), 0,
            f"ft_balance_of({self.wrap_contract_id}, {account_id})",
        ) if wraps_native else _zero()

        (flags, minimums), whitelist, wrapped_balance, *deposited = await asyncio.gather(
            registration_task, whitelist_task, wrapped_balance_task, *deposit_tasks,
        )

        whitelisted = set(whitelist or ())
        shortfalls: Dict[str, int] = {}
        for token_id, already in zip(token_ids, deposited):
            flags[(PreconditionKey.TOKEN_WHITELISTED_WITH_AMM, token_id)] = token_id in whitelisted
            shortfall = max(0, amounts.get(token_id, 0) - already)
            flags[(PreconditionKey.AMOUNT_DEPOSITED_IN_AMM, token_id)] = shortfall == 0
            shortfalls[token_id] = shortfall

        wrap_shortfall = 0
        if wraps_native:
            wrap_shortfall = max(0, shortfalls[self.wrap_contract_id] - wrapped_balance)
            flags[(PreconditionKey.NATIVE_WRAPPED, self.wrap_contract_id)] = wrap_shortfall == 0

        pre = PreconditionSet(
            action=ActionKind.ADD_LIQUIDITY,
            account_id=account_id,
            satisfied=flags,
            deposit_shortfalls=shortfalls,
            wrap_shortfall=wrap_shortfall,
            storage_minimums=minimums,
        )
        logger.debug(
            f"Add-liquidity preconditions for {account_id}: "
            f"shortfalls={shortfalls}, wrap={wrap_shortfall}, missing={_missing(pre)}"
        )
        return pre

    async def resolve_remove_liquidity(self, account_id: str, pool: PoolState) -> PreconditionSet:
        """Account registration on both withdrawal targets"""
        token_ids = list(pool.token_account_ids)
        flags, minimums = await self._registrations(account_id, token_ids, include_amm=False)
        return PreconditionSet(
            action=ActionKind.REMOVE_LIQUIDITY,
            account_id=account_id,
            satisfied=flags,
            storage_minimums=minimums,
        )


async def _zero() -> int:
    return 0


def _missing(pre: PreconditionSet) -> List[str]:
    return [f"{key.value}:{token_id}" for (key, token_id), ok in pre if not ok]
