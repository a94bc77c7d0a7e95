"""
Liquidity Module

Provides add/remove liquidity on a two-token AMM pool.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from ..client import OrchestratorClient

from ..errors import SignerError, ValidationError
from ..infra.correlation import CorrelationContext, log_with_correlation
from ..types import LiquidityQuote, PoolState, RemovalQuote, SettlementOutcome
from ..units import parse_contract_units
from .quote import SlippageInput

logger = logging.getLogger(__name__)

Amount = Union[str, int, Decimal]


class LiquidityModule:
    """
    Liquidity operations module

    The user enters one side of a deposit; the other side is derived from
    the current pool ratio. Removal burns LP shares and withdraws both
    tokens back to the wallet (wrapped native comes back as native).

    Usage:
        client = OrchestratorClient(signer=wallet)

        # Preview a deposit of 1 NEAR plus the paired amount
        quote = await client.lp.quote_add("near", "1")

        # Add liquidity
        outcome = await client.lp.add("near", "1", slippage=1)

        # Remove half of the account's shares
        shares = await client.lp.shares()
        outcome = await client.lp.remove(shares // 2)
    """

    def __init__(self, client: "OrchestratorClient"):
        """
        Initialize liquidity module

        Args:
            client: OrchestratorClient instance
        """
        self._client = client

    def _pool_id(self, pool_id: Optional[int]) -> int:
        return self._client.config.contracts.default_pool_id if pool_id is None else pool_id

    def _account_id(self) -> str:
        signer = self._client.signer
        if signer is None:
            raise SignerError.not_configured()
        return signer.account_id

    async def pool(self, pool_id: Optional[int] = None) -> PoolState:
        """Re-read the pool so ratios use the freshest reserves"""
        return await self._client.cache.refresh_pool(self._pool_id(pool_id))

    async def shares(self, pool_id: Optional[int] = None, account_id: Optional[str] = None) -> int:
        """LP shares held by an account (default: the signer)"""
        return await self._client.reader.get_pool_shares(
            self._pool_id(pool_id), account_id or self._account_id(),
        )

    def _parse_shares(self, shares: Amount) -> int:
        if isinstance(shares, int):
            return shares
        if isinstance(shares, str) and not shares.strip():
            raise ValidationError.empty_amount("shares")
        return parse_contract_units(shares, self._client.config.trading.lp_share_decimals)

    # =========================================================================
    # Quotes
    # =========================================================================

    async def quote_add(
        self,
        token_id: str,
        amount: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
        pool: Optional[PoolState] = None,
    ) -> LiquidityQuote:
        """
        Paired amounts and minimum shares for a deposit

        Args:
            token_id: Display id of the side the user entered
            amount: Human-readable amount of that side
            slippage: Slippage tolerance percentage
            pool_id: Pool id (default from config)
            pool: Pool snapshot to use instead of re-reading

        Raises:
            ValidationError: Invalid amount or token not in pool
            PoolUnavailable: Empty reserve on the entered side
        """
        client = self._client
        pool = pool or await self.pool(pool_id)
        contract_id = client.tokens.contract_id(token_id)
        if not pool.has_token(contract_id):
            raise ValidationError.token_not_in_pool(token_id, pool.id)

        meta = pool.token_by_contract(contract_id)
        if isinstance(amount, str) and not amount.strip():
            raise ValidationError.empty_amount()
        amount_in = parse_contract_units(amount, meta.decimals)
        if amount_in <= 0:
            raise ValidationError.non_positive_amount()

        other = pool.other_token(contract_id).account_id
        paired = client.quotes.paired_amount(pool, contract_id, amount_in)
        return client.quotes.quote_add_liquidity(pool, {contract_id: amount_in, other: paired}, slippage)

    async def quote_remove(
        self,
        shares: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
        pool: Optional[PoolState] = None,
    ) -> RemovalQuote:
        """
        Proportional amounts for burning ``shares``

        Args:
            shares: Share amount in contract units (int) or decimal text
        """
        pool = pool or await self.pool(pool_id)
        amount = self._parse_shares(shares)
        if amount <= 0:
            raise ValidationError.non_positive_amount("shares")
        return self._client.quotes.quote_remove_liquidity(pool, amount, slippage)

    # =========================================================================
    # Actions
    # =========================================================================

    async def add(
        self,
        token_id: str,
        amount: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
    ) -> SettlementOutcome:
        """
        Add liquidity, staging only what is not already wrapped or deposited

        Returns:
            SettlementOutcome

        Raises:
            SignerError: No signer configured
            ValidationError: Invalid amount or insufficient balance
            ReadError: Pool could not be read
        """
        client = self._client
        account_id = self._account_id()

        with CorrelationContext("lp_add"):
            pool = await self.pool(pool_id)
            quote = await self.quote_add(token_id, amount, slippage, pool=pool)

            pre = await client.preconditions.resolve_add_liquidity(account_id, pool, quote.amounts)

            native_id = client.config.contracts.native_token_id
            balance_ids = [t for t in pool.token_account_ids if t != client.config.contracts.wrap_contract_id]
            balances = await client.cache.refresh_balances(account_id, balance_ids + [native_id])
            client.planner.validate_funding(pre, balances, balances.get(native_id))

            plan = client.planner.build_add_liquidity(pre, pool, quote)
            log_with_correlation(
                logging.INFO,
                f"Adding {dict(quote.amounts)} to pool {pool.id} (min shares {quote.min_shares})",
                "lp_add",
                logger,
                transactions=len(plan),
            )

            outcome = await client.settlement.settle(plan, client.signer)
            log_with_correlation(logging.INFO, f"Outcome: {outcome}", "lp_add", logger, tx_hash=outcome.tx_hash)
            return outcome

    async def remove(
        self,
        shares: Amount,
        slippage: Optional[SlippageInput] = None,
        pool_id: Optional[int] = None,
    ) -> SettlementOutcome:
        """
        Burn LP shares and withdraw both tokens to the wallet

        Args:
            shares: Share amount in contract units (int) or decimal text

        Returns:
            SettlementOutcome

        Raises:
            SignerError: No signer configured
            ValidationError: Shares not positive or above the account's shares
            PoolUnavailable: Pool has no shares outstanding
        """
        client = self._client
        account_id = self._account_id()

        with CorrelationContext("lp_remove"):
            pool = await self.pool(pool_id)
            available = await self.shares(pool.id, account_id)
            client.planner.validate_shares(self._parse_shares(shares), available)
            quote = await self.quote_remove(shares, slippage, pool=pool)

            pre = await client.preconditions.resolve_remove_liquidity(account_id, pool)
            plan = client.planner.build_remove_liquidity(pre, pool, quote)
            log_with_correlation(
                logging.INFO,
                f"Removing {quote.shares} shares from pool {pool.id} (min {dict(quote.min_amounts)})",
                "lp_remove",
                logger,
                transactions=len(plan),
            )

            outcome = await client.settlement.settle(plan, client.signer)
            log_with_correlation(logging.INFO, f"Outcome: {outcome}", "lp_remove", logger, tx_hash=outcome.tx_hash)
            return outcome
