"""
Swap Module

Quote and execute single-pool swaps on the AMM:
- quote(): fresh pool snapshot + AMM estimate, min-received and impact
- swap(): validate, resolve preconditions, build the plan, settle
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from ..client import OrchestratorClient

from ..errors import SignerError
from ..infra.correlation import CorrelationContext, log_with_correlation
from ..types import PoolState, QuoteResult, SettlementOutcome
from .quote import QuoteScheduler, SlippageInput

logger = logging.getLogger(__name__)

Amount = Union[str, int, Decimal]


class SwapModule:
    """
    Token swap operations

    Usage:
        client = OrchestratorClient(signer=wallet)

        quote = await client.swap.quote("near", "veganfriends.tkn.near", "1.5")
        outcome = await client.swap.swap("near", "veganfriends.tkn.near", "1.5", slippage=0.5)
        if outcome.is_success:
            print(outcome.tx_hash)
    """

    def __init__(self, client: "OrchestratorClient"):
        """
        Initialize swap module

        Args:
            client: OrchestratorClient instance
        """
        self._client = client

    def _pool_id(self, pool_id: Optional[int]) -> int:
        return self._client.config.contracts.default_pool_id if pool_id is None else pool_id

    async def _fresh_pool(self, pool_id: Optional[int]) -> PoolState:
        return await self._client.cache.refresh_pool(self._pool_id(pool_id))

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
    ) -> QuoteResult:
        """
        Quote a swap against freshly read reserves

        Args:
            token_in: Input display id ("near" for native)
            token_out: Output display id
            amount: Human-readable input amount
            slippage: Slippage tolerance percentage
            pool_id: Pool id (default from config)

        Returns:
            QuoteResult

        Raises:
            ValidationError: Invalid pair or amount
            QuoteUnavailable: No route
            ReadError: Pool or estimate could not be read
        """
        pool = await self._fresh_pool(pool_id)
        self._client.planner.validate_pair(pool, token_in, token_out)
        meta_in, meta_out = await self._client.tokens.get_many([token_in, token_out])
        return await self._client.quotes.quote_swap(pool, meta_in, meta_out, amount, slippage)

    def auto_quote(
        self,
        token_in: str,
        token_out: str,
        amount: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
        on_update: Optional[Callable] = None,
    ) -> QuoteScheduler:
        """
        Scheduler that keeps the quote for this input fresh

        Auto-refresh pauses while a settlement is running.
        """
        scheduler = QuoteScheduler(
            lambda: self.quote(token_in, token_out, amount, slippage, pool_id),
            on_update=on_update,
            config=self._client.config.quote,
            is_settling=lambda: self._client.settlement.is_active,
        )
        return scheduler

    async def swap(
        self,
        token_in: str,
        token_out: str,
        amount: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
    ) -> SettlementOutcome:
        """
        Swap ``amount`` of ``token_in`` for ``token_out``

        Every call rebuilds the plan from fresh state, so retrying after a
        partial failure skips steps that already went through.

        Returns:
            SettlementOutcome

        Raises:
            SignerError: No signer configured
            ValidationError: Invalid pair, amount, or insufficient balance
            QuoteUnavailable: No route
            ReadError: Pool or estimate could not be read
        """
        signer = self._client.signer
        if signer is None:
            raise SignerError.not_configured()
        account_id = signer.account_id
        client = self._client

        with CorrelationContext("swap"):
            pool = await self._fresh_pool(pool_id)
            contract_in, contract_out = client.planner.validate_pair(pool, token_in, token_out)
            native_in = client.tokens.is_native(token_in)
            native_out = client.tokens.is_native(token_out)
            meta_in = await client.tokens.get(token_in)

            balances = await client.cache.refresh_balances(account_id, [token_in])
            balance = balances.get(token_in)
            if balance is None:
                log_with_correlation(
                    logging.WARNING, f"Balance of {token_in} unknown, skipping balance check", "swap", logger,
                )
            amount_in = client.planner.validate_amount(
                amount, meta_in.decimals, balance, native=native_in, token=meta_in.symbol,
            )

            quote = await client.quotes.quote_swap_units(pool, contract_in, contract_out, amount_in, slippage)
            if quote.is_high_impact:
                log_with_correlation(
                    logging.WARNING, f"High price impact {quote.price_impact:.2f}%", "swap", logger,
                )

            pre = await client.preconditions.resolve_swap(
                account_id, contract_in, contract_out, amount_in, native_in=native_in,
            )
            plan = client.planner.build_swap(pre, quote, pool.id, native_in=native_in, native_out=native_out)
            log_with_correlation(
                logging.INFO,
                f"Swapping {amount_in} {contract_in} -> {contract_out} (min {quote.min_received})",
                "swap",
                logger,
                transactions=len(plan),
            )

            outcome = await client.settlement.settle(plan, signer)
            log_with_correlation(logging.INFO, f"Outcome: {outcome}", "swap", logger, tx_hash=outcome.tx_hash)
            return outcome
