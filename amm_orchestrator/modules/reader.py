"""
Remote State Reader

Read-only queries against the ledger: native and token balances, pool
reserves, AMM-internal deposits, whitelist, LP shares and storage
registration. Every result goes through the ref_finance decode boundary;
failures surface as ReadError.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Any

from ..config import config as global_config, ContractsConfig
from ..errors import ReadError
from ..infra.rpc import RpcClient
from ..protocols.ref_finance import constants as ref
from ..protocols.ref_finance import parser
from ..protocols.ref_finance.parser import RawPool
from ..types import TokenMetadata, UserDeposits

logger = logging.getLogger(__name__)


class RemoteStateReader:
    """
    Typed view-call access to the AMM and token contracts

    Usage:
        reader = RemoteStateReader(rpc)
        pool = await reader.get_pool(5094)
        registered = await reader.is_registered("wrap.near", "alice.near")
    """

    def __init__(self, rpc: RpcClient, contracts: Optional[ContractsConfig] = None):
        """
        Args:
            rpc: RPC client
            contracts: Contract ids (defaults to global config)
        """
        self._rpc = rpc
        self._contracts = contracts or global_config.contracts

    @property
    def amm_contract_id(self) -> str:
        return self._contracts.amm_contract_id

    @property
    def native_token_id(self) -> str:
        return self._contracts.native_token_id

    async def _view(self, contract_id: str, method: str, args: Optional[dict] = None) -> Any:
        return await self._rpc.call_function(contract_id, method, args or {})

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_native_balance(self, account_id: str) -> int:
        """Liquid native balance (yoctoNEAR)"""
        raw = await self._rpc.view_account(account_id)
        return parser.parse_account_balance(raw)

    async def get_token_balance(self, token_id: str, account_id: str) -> int:
        """
        Wallet balance of a token

        Args:
            token_id: Contract id, or the native sentinel for native balance
            account_id: Account to query

        Returns:
            Balance in contract units
        """
        if token_id == self.native_token_id:
            return await self.get_native_balance(account_id)
        raw = await self._view(token_id, ref.FT_BALANCE_OF, {"account_id": account_id})
        return parser.parse_u128(raw, ref.FT_BALANCE_OF)

    # =========================================================================
    # AMM state
    # =========================================================================

    async def get_pool(self, pool_id: int) -> RawPool:
        """Pool reserves, total shares, fee and kind"""
        raw = await self._view(self.amm_contract_id, ref.GET_POOL, {"pool_id": pool_id})
        return parser.parse_pool(raw)

    async def get_return(self, pool_id: int, token_in: str, amount_in: int, token_out: str) -> int:
        """AMM estimate of the output for a single-pool swap"""
        raw = await self._view(
            self.amm_contract_id,
            ref.GET_RETURN,
            {
                "pool_id": pool_id,
                "token_in": token_in,
                "amount_in": str(amount_in),
                "token_out": token_out,
            },
        )
        # Empty estimate means no route
        if raw in (None, ""):
            return 0
        return parser.parse_u128(raw, ref.GET_RETURN)

    async def get_deposit(self, account_id: str, token_id: str) -> int:
        """AMM-internal balance of one token"""
        raw = await self._view(
            self.amm_contract_id,
            ref.GET_DEPOSIT,
            {"account_id": account_id, "token_id": token_id},
        )
        if raw is None:
            return 0
        return parser.parse_u128(raw, ref.GET_DEPOSIT)

    async def get_deposits(self, account_id: str) -> UserDeposits:
        """All AMM-internal balances of an account"""
        raw = await self._view(self.amm_contract_id, ref.GET_DEPOSITS, {"account_id": account_id})
        return UserDeposits(account_id=account_id, balances=parser.parse_deposits(raw or {}))

    async def get_whitelisted_tokens(self, account_id: str) -> List[str]:
        """Tokens the account registered with the AMM"""
        raw = await self._view(
            self.amm_contract_id,
            ref.GET_USER_WHITELISTED_TOKENS,
            {"account_id": account_id},
        )
        return parser.parse_string_list(raw or [], ref.GET_USER_WHITELISTED_TOKENS)

    async def get_pool_shares(self, pool_id: int, account_id: str) -> int:
        """LP shares held by an account"""
        raw = await self._view(
            self.amm_contract_id,
            ref.GET_POOL_SHARES,
            {"pool_id": pool_id, "account_id": account_id},
        )
        return parser.parse_u128(raw, ref.GET_POOL_SHARES)

    # =========================================================================
    # Storage registration
    # =========================================================================

    async def storage_balance_of(self, token_id: str, account_id: str) -> Optional[int]:
        """Storage balance on a token contract (None if not registered)"""
        raw = await self._view(token_id, ref.STORAGE_BALANCE_OF, {"account_id": account_id})
        return parser.parse_storage_balance(raw)

    async def is_registered(self, token_id: str, account_id: str) -> bool:
        """
        Whether ``account_id`` can hold balances on ``token_id``

        A contract without storage_balance_of needs no registration and
        counts as registered. Other read failures propagate.
        """
        try:
            balance = await self.storage_balance_of(token_id, account_id)
        except ReadError as e:
            if e.is_method_not_found:
                logger.debug(f"{token_id} has no storage_balance_of; no registration needed")
                return True
            raise
        return balance is not None

    async def storage_minimum(self, token_id: str) -> int:
        """Minimum storage deposit for registration on a token contract"""
        raw = await self._view(token_id, ref.STORAGE_BALANCE_BOUNDS)
        return parser.parse_storage_bounds(raw)

    # =========================================================================
    # Metadata and transactions
    # =========================================================================

    async def get_token_metadata(self, token_id: str) -> TokenMetadata:
        raw = await self._view(token_id, ref.FT_METADATA)
        return parser.parse_token_metadata(raw, token_id)

    async def get_tx_status(self, tx_hash: str, account_id: str) -> Tuple[Optional[str], Any]:
        """
        Final status of a submitted transaction

        Returns:
            ("success", value), ("failure", detail) or (None, raw status)
        """
        raw = await self._rpc.tx_status(tx_hash, account_id)
        return parser.parse_tx_status(raw)
