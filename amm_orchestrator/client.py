"""
OrchestratorClient - Unified entry point for AMM operations

Provides high-level access to swaps and liquidity on a NEAR AMM through
functional modules (swap, lp) and the pipeline components behind them.
"""

from __future__ import annotations

from typing import List, Optional, Union, TYPE_CHECKING

import httpx

from .config import Config, config as global_config
from .infra import RpcClient, RpcClientConfig, Signer


class OrchestratorClient:
    """
    Unified AMM orchestrator client

    Provides access to operations through functional modules:
    - swap: Quotes and swaps
    - lp: Add and remove liquidity
    - reader, tokens, cache: Remote state and snapshots
    - quotes, preconditions, planner, settlement: Pipeline stages

    Usage:
        client = OrchestratorClient(signer=wallet)

        quote = await client.swap.quote("near", "veganfriends.tkn.near", "1.5")
        outcome = await client.swap.swap("near", "veganfriends.tkn.near", "1.5")

        outcome = await client.lp.add("near", "1", slippage=1)

        await client.aclose()
    """

    def __init__(
        self,
        signer: Optional[Signer] = None,
        rpc_url: Union[str, List[str], None] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        config: Optional[Config] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OrchestratorClient

        Args:
            signer: Connected signing surface (required for swaps and liquidity)
            rpc_url: RPC endpoint URL or list of URLs for fallback
            rpc_config: Optional RPC configuration
            config: Configuration (defaults to the global config)
            transport: Optional httpx transport (used by tests)
        """
        self._config = config or global_config
        self._signer = signer
        if rpc_config is None:
            rpc_config = RpcClientConfig(
                timeout_seconds=self._config.rpc.timeout_seconds,
                max_retries=self._config.rpc.max_retries,
                retry_delay_seconds=self._config.rpc.retry_delay_seconds,
                finality=self._config.rpc.finality,
                endpoint_failure_threshold=self._config.rpc.endpoint_failure_threshold,
            )
        self._rpc = RpcClient(
            rpc_url if rpc_url is not None else self._config.rpc.endpoints(),
            config=rpc_config,
            transport=transport,
        )

        # Lazy-loaded modules
        self._reader: Optional["RemoteStateReader"] = None
        self._tokens: Optional["TokenRegistry"] = None
        self._cache: Optional["BalancePoolCache"] = None
        self._quotes: Optional["QuoteEngine"] = None
        self._preconditions: Optional["PreconditionResolver"] = None
        self._planner: Optional["TransactionPlanBuilder"] = None
        self._settlement: Optional["SettlementMonitor"] = None
        self._swap: Optional["SwapModule"] = None
        self._lp: Optional["LiquidityModule"] = None

    @property
    def config(self) -> Config:
        """Active configuration"""
        return self._config

    @property
    def rpc(self) -> RpcClient:
        """Access to RPC client"""
        return self._rpc

    @property
    def signer(self) -> Optional[Signer]:
        """Connected signer, if any"""
        return self._signer

    @signer.setter
    def signer(self, signer: Optional[Signer]):
        self._signer = signer

    @property
    def account_id(self) -> Optional[str]:
        """Connected account id"""
        return self._signer.account_id if self._signer is not None else None

    @property
    def reader(self) -> "RemoteStateReader":
        """
        Remote State Reader

        Provides:
        - get_pool(pool_id): Pool reserves and shares
        - get_return(...): AMM swap estimate
        - get_token_balance(token, account): Wallet balance
        - get_deposit(s)(account, ...): AMM-internal balances
        - is_registered(token, account): Storage registration
        """
        if self._reader is None:
            from .modules.reader import RemoteStateReader
            self._reader = RemoteStateReader(self._rpc, self._config.contracts)
        return self._reader

    @property
    def tokens(self) -> "TokenRegistry":
        """
        Token metadata registry

        Provides:
        - get(token_id): Metadata with fallbacks
        - native(): Native currency metadata
        - contract_id(token_id): Display id to contract id
        """
        if self._tokens is None:
            from .modules.tokens import TokenRegistry
            self._tokens = TokenRegistry(self.reader, self._config.contracts)
        return self._tokens

    @property
    def cache(self) -> "BalancePoolCache":
        """
        Balance/Pool Cache

        Provides:
        - snapshot: Read-only balances and pools
        - subscribe(callback): Snapshot notifications
        - refresh_balances(account, tokens) / refresh_pool(pool_id)
        - invalidate(...) / schedule_refetch(...)
        """
        if self._cache is None:
            from .modules.cache import BalancePoolCache
            self._cache = BalancePoolCache(self.reader, self.tokens)
        return self._cache

    @property
    def quotes(self) -> "QuoteEngine":
        """
        Quote/Amount Engine

        Provides:
        - quote_swap(pool, token_in, token_out, amount): Swap quote
        - paired_amount(pool, token, amount): Ratio-preserving amount
        - quote_add_liquidity / quote_remove_liquidity
        """
        if self._quotes is None:
            from .modules.quote import QuoteEngine
            self._quotes = QuoteEngine(self.reader, self._config.trading)
        return self._quotes

    @property
    def preconditions(self) -> "PreconditionResolver":
        """
        Precondition Resolver

        Provides:
        - resolve_swap(...)
        - resolve_add_liquidity(...)
        - resolve_remove_liquidity(...)
        """
        if self._preconditions is None:
            from .modules.preconditions import PreconditionResolver
            self._preconditions = PreconditionResolver(
                self.reader, self._config.contracts, self._config.deposits,
            )
        return self._preconditions

    @property
    def planner(self) -> "TransactionPlanBuilder":
        """
        Transaction Plan Builder

        Provides:
        - validate_amount / validate_pair / validate_funding / validate_shares
        - build_swap / build_add_liquidity / build_remove_liquidity
        - validate_plan(plan)
        """
        if self._planner is None:
            from .modules.planner import TransactionPlanBuilder
            self._planner = TransactionPlanBuilder(
                self._config.contracts,
                self._config.gas,
                self._config.deposits,
                self._config.trading,
            )
        return self._planner

    @property
    def settlement(self) -> "SettlementMonitor":
        """
        Settlement Monitor

        Provides:
        - settle(plan, signer): Submit and classify the outcome
        - state / on_state_change(listener)
        """
        if self._settlement is None:
            from .modules.settlement import SettlementMonitor
            self._settlement = SettlementMonitor(
                self.reader, self.cache, self._config.settlement, self._config.contracts,
            )
        return self._settlement

    @property
    def swap(self) -> "SwapModule":
        """
        Swap module for token exchanges

        Provides:
        - quote(token_in, token_out, amount): Get swap quote
        - auto_quote(...): Debounced, auto-refreshing quote scheduler
        - swap(token_in, token_out, amount): Validate, plan and settle
        """
        if self._swap is None:
            from .modules.swap import SwapModule
            self._swap = SwapModule(self)
        return self._swap

    @property
    def lp(self) -> "LiquidityModule":
        """
        Liquidity module for LP operations

        Provides:
        - pool(pool_id): Fresh pool snapshot
        - shares(pool_id): Account's LP shares
        - quote_add(token, amount) / quote_remove(shares)
        - add(token, amount): Add liquidity
        - remove(shares): Remove liquidity and withdraw
        """
        if self._lp is None:
            from .modules.liquidity import LiquidityModule
            self._lp = LiquidityModule(self)
        return self._lp

    async def aclose(self):
        """Cancel background refetches and close connections"""
        if self._cache is not None:
            self._cache.cancel_pending()
        await self._rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def __repr__(self) -> str:
        return f"OrchestratorClient(endpoint={self._rpc.endpoint}, account={self.account_id})"


# Type hints for modules (resolved at runtime)
if TYPE_CHECKING:
    from .modules.reader import RemoteStateReader
    from .modules.tokens import TokenRegistry
    from .modules.cache import BalancePoolCache
    from .modules.quote import QuoteEngine
    from .modules.preconditions import PreconditionResolver
    from .modules.planner import TransactionPlanBuilder
    from .modules.settlement import SettlementMonitor
    from .modules.swap import SwapModule
    from .modules.liquidity import LiquidityModule
