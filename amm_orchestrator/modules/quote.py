"""
Quote/Amount Engine

Swap quotes delegate the output estimate to the AMM's get_return view and
derive minimum-received and price impact locally. Liquidity quotes are pure
integer arithmetic on the pool snapshot:

- paired amount: other = amount * other_reserve // input_reserve
- expected shares: isqrt(a * b) for an empty pool, else the smaller
  proportional share
- removal: floor(shares * reserve / total_shares) per token

Slippage is applied with exact fractions and always floored.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from decimal import Decimal, ROUND_DOWN, localcontext
from fractions import Fraction
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .reader import RemoteStateReader

from ..config import config as global_config, QuoteConfig, TradingConfig
from ..errors import ErrorCode, PoolUnavailable, QuoteUnavailable, ValidationError
from ..types import LiquidityQuote, PoolState, QuoteResult, RemovalQuote, TokenMetadata
from ..units import parse_contract_units

logger = logging.getLogger(__name__)

SlippageInput = Union[Decimal, float, int, str]

# Finest slippage step honored; smaller fractions are truncated
SLIPPAGE_PLACES = Decimal("1e-18")


def slippage_fraction(percent: SlippageInput) -> Fraction:
    """
    Exact slippage percentage

    Raises:
        ValidationError: If the percentage is not in [0, 100)
    """
    try:
        value = Decimal(str(percent))
        in_range = value.is_finite() and 0 <= value < 100
    except (ArithmeticError, ValueError):
        raise ValidationError(
            f"Invalid slippage: {percent!r}", ErrorCode.VALIDATION_INVALID_AMOUNT, "slippage"
        )
    if not in_range:
        raise ValidationError(
            f"Slippage must be between 0 and 100, got {percent}",
            ErrorCode.VALIDATION_INVALID_AMOUNT,
            "slippage",
        )
    if value.as_tuple().exponent < SLIPPAGE_PLACES.as_tuple().exponent:
        value = value.quantize(SLIPPAGE_PLACES, rounding=ROUND_DOWN)
    return Fraction(value)


def apply_slippage(amount: int, percent: SlippageInput) -> int:
    """floor(amount * (1 - percent / 100))"""
    keep = 1 - slippage_fraction(percent) / 100
    return math.floor(amount * keep)


def optimal_paired_amount(amount: int, reserve_in: int, reserve_other: int) -> int:
    """
    Ratio-preserving amount of the other pool token

    Example:
        optimal_paired_amount(10, 1000, 2000) == 20

    Raises:
        ValueError: If the input-side reserve is empty
    """
    if reserve_in <= 0:
        raise ValueError("input reserve is zero; no ratio to preserve")
    return amount * reserve_other // reserve_in


def expected_shares(
    amount_a: int,
    amount_b: int,
    reserve_a: int,
    reserve_b: int,
    total_shares: int,
) -> int:
    """
    LP shares minted for a deposit at current reserves

    A first deposit (no shares or an empty reserve) mints sqrt(a * b).
    """
    if total_shares == 0 or reserve_a == 0 or reserve_b == 0:
        return math.isqrt(amount_a * amount_b)
    return min(
        amount_a * total_shares // reserve_a,
        amount_b * total_shares // reserve_b,
    )


def proportional_amounts(shares: int, reserves: Mapping[str, int], total_shares: int) -> Dict[str, int]:
    """floor(shares * reserve / total_shares) for every pool token"""
    return {token_id: shares * reserve // total_shares for token_id, reserve in reserves.items()}


def price_impact(amount_in: int, output_amount: int, reserve_in: int, reserve_out: int) -> Decimal:
    """
    Percentage by which the executed price falls short of the spot price

    Returns 0 when there is no spot price or the execution is not worse.
    """
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return Decimal(0)
    # executed / spot = (out / in) / (reserve_out / reserve_in)
    ratio = Fraction(output_amount * reserve_in, amount_in * reserve_out)
    impact = (1 - ratio) * 100
    if impact <= 0:
        return Decimal(0)
    with localcontext() as ctx:
        ctx.prec = 28
        return Decimal(impact.numerator) / Decimal(impact.denominator)


class QuoteEngine:
    """
    Swap and liquidity amount calculations

    Usage:
        engine = QuoteEngine(reader)
        quote = await engine.quote_swap(pool, near, vf, "1.5", slippage=0.5)
        add = engine.quote_add_liquidity(pool, {"wrap.near": 10**24}, slippage=1)
    """

    def __init__(self, reader: "RemoteStateReader", trading: Optional[TradingConfig] = None):
        self._reader = reader
        self._trading = trading or global_config.trading

    def _slippage(self, slippage: Optional[SlippageInput]) -> Decimal:
        if slippage is None:
            slippage = self._trading.default_slippage_percent
        slippage_fraction(slippage)
        return Decimal(str(slippage))

    # =========================================================================
    # Swap
    # =========================================================================

    async def quote_swap(
        self,
        pool: PoolState,
        token_in: TokenMetadata,
        token_out: TokenMetadata,
        amount: Union[str, int, Decimal],
        slippage: Optional[SlippageInput] = None,
    ) -> QuoteResult:
        """
        Quote a single-pool swap

        Args:
            pool: Pool snapshot
            token_in: Input token (display metadata)
            token_out: Output token
            amount: Human-readable input amount
            slippage: Slippage tolerance percentage (default from config)

        Returns:
            QuoteResult in contract units

        Raises:
            ValidationError: If the amount is invalid or zero
            QuoteUnavailable: If the pool does not hold the pair or the AMM returns zero
            ReadError: If the estimate cannot be read
        """
        if isinstance(amount, str) and not amount.strip():
            raise ValidationError.empty_amount()
        amount_in = parse_contract_units(amount, token_in.decimals)
        if amount_in == 0:
            raise ValidationError.non_positive_amount()
        return await self.quote_swap_units(pool, token_in.account_id, token_out.account_id, amount_in, slippage)

    async def quote_swap_units(
        self,
        pool: PoolState,
        contract_in: str,
        contract_out: str,
        amount_in: int,
        slippage: Optional[SlippageInput] = None,
    ) -> QuoteResult:
        """Quote a swap whose input is already in contract units"""
        slippage_percent = self._slippage(slippage)
        if not (pool.has_token(contract_in) and pool.has_token(contract_out)) or contract_in == contract_out:
            raise QuoteUnavailable.no_route(contract_in, contract_out)

        output_amount = await self._reader.get_return(pool.id, contract_in, amount_in, contract_out)
        if output_amount <= 0:
            raise QuoteUnavailable.no_route(contract_in, contract_out)

        impact = price_impact(
            amount_in,
            output_amount,
            pool.reserve_of(contract_in),
            pool.reserve_of(contract_out),
        )
        quote = QuoteResult(
            token_in=contract_in,
            token_out=contract_out,
            amount_in=amount_in,
            output_amount=output_amount,
            min_received=apply_slippage(output_amount, slippage_percent),
            price_impact=impact,
            slippage_percent=slippage_percent,
            high_impact_threshold=Decimal(str(self._trading.high_price_impact_percent)),
        )
        logger.debug(f"Pool {pool.id}: {quote}")
        return quote

    # =========================================================================
    # Liquidity
    # =========================================================================

    def paired_amount(self, pool: PoolState, contract_in: str, amount: int) -> int:
        """Amount of the other pool token that keeps the pool ratio"""
        other = pool.other_token(contract_in).account_id
        if pool.reserve_of(contract_in) == 0:
            raise PoolUnavailable.invalid_state(pool.id, "empty reserve; enter both amounts")
        return optimal_paired_amount(amount, pool.reserve_of(contract_in), pool.reserve_of(other))

    def quote_add_liquidity(
        self,
        pool: PoolState,
        amounts: Mapping[str, int],
        slippage: Optional[SlippageInput] = None,
    ) -> LiquidityQuote:
        """
        Expected and minimum LP shares for a deposit

        Args:
            pool: Pool snapshot
            amounts: Contract id -> amount for both pool tokens
            slippage: Slippage tolerance percentage
        """
        slippage_percent = self._slippage(slippage)
        for token_id in amounts:
            if not pool.has_token(token_id):
                raise ValidationError.token_not_in_pool(token_id, pool.id)
        token_a, token_b = pool.token_account_ids
        amount_a = amounts.get(token_a, 0)
        amount_b = amounts.get(token_b, 0)

        shares = expected_shares(
            amount_a,
            amount_b,
            pool.reserve_of(token_a),
            pool.reserve_of(token_b),
            pool.total_shares,
        )
        return LiquidityQuote(
            pool_id=pool.id,
            amounts={token_a: amount_a, token_b: amount_b},
            expected_shares=shares,
            min_shares=apply_slippage(shares, slippage_percent),
            slippage_percent=slippage_percent,
            min_amounts={
                token_a: apply_slippage(amount_a, slippage_percent),
                token_b: apply_slippage(amount_b, slippage_percent),
            },
        )

    def quote_remove_liquidity(
        self,
        pool: PoolState,
        shares: int,
        slippage: Optional[SlippageInput] = None,
    ) -> RemovalQuote:
        """
        Proportional amounts returned for burning ``shares``

        Raises:
            PoolUnavailable: If the pool has no shares outstanding
        """
        slippage_percent = self._slippage(slippage)
        if pool.total_shares == 0:
            raise PoolUnavailable.invalid_state(pool.id, "no shares outstanding")

        amounts = proportional_amounts(shares, pool.reserves, pool.total_shares)
        return RemovalQuote(
            pool_id=pool.id,
            shares=shares,
            amounts=amounts,
            min_amounts={token_id: apply_slippage(amount, slippage_percent) for token_id, amount in amounts.items()},
            slippage_percent=slippage_percent,
        )


class QuoteScheduler:
    """
    Debounced user quotes plus an interval auto-refresh

    User input is debounced: each keystroke restarts the wait, and only
    the last one quotes. The auto-refresh runs only while the user was
    active recently, no quote is in flight, and no settlement is running.
    Results of superseded quotes are dropped.

    Usage:
        scheduler = QuoteScheduler(lambda: engine.quote_swap(...), on_update=render)
        scheduler.request()        # on every input change
        scheduler.start()          # begin auto-refresh
    """

    def __init__(
        self,
        quote_fn: Callable[[], Awaitable[Any]],
        on_update: Optional[Callable[[Any], None]] = None,
        config: Optional[QuoteConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        is_settling: Optional[Callable[[], bool]] = None,
    ):
        self._quote_fn = quote_fn
        self._on_update = on_update
        self._config = config or global_config.quote
        self._clock = clock
        self._is_settling = is_settling

        self.in_flight = False
        self.settling = False
        self.latest: Any = None
        self._last_interaction: Optional[float] = None
        self._last_quote_at: Optional[float] = None
        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None

    def touch(self):
        """Record a user interaction"""
        self._last_interaction = self._clock()

    def _settling(self) -> bool:
        return self.settling or (self._is_settling is not None and self._is_settling())

    def should_auto_refresh(self) -> bool:
        if self.in_flight or self._settling() or self._last_interaction is None:
            return False
        now = self._clock()
        if now - self._last_interaction > self._config.inactivity_seconds:
            return False
        if self._last_quote_at is not None and now - self._last_quote_at < self._config.refresh_interval_seconds:
            return False
        return True

    async def run_now(self) -> Any:
        """
        Quote immediately, ignoring the interval guard

        Errors are delivered to ``on_update`` and stored as ``latest``.
        """
        self._generation += 1
        generation = self._generation
        self.in_flight = True
        try:
            try:
                result = await self._quote_fn()
            except Exception as e:
                logger.warning(f"Quote failed: {e}")
                result = e
        finally:
            if generation == self._generation:
                self.in_flight = False

        if generation != self._generation:
            logger.debug("Dropping superseded quote result")
            return None
        self._last_quote_at = self._clock()
        self.latest = result
        if self._on_update is not None:
            self._on_update(result)
        return result

    def request(self) -> asyncio.Task:
        """Debounced user-triggered quote"""
        self.touch()
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()

        async def debounced():
            await asyncio.sleep(self._config.debounce_seconds)
            await self.run_now()

        self._debounce_task = asyncio.ensure_future(debounced())
        return self._debounce_task

    async def tick(self) -> bool:
        """Run one auto-refresh if allowed; returns whether it ran"""
        if not self.should_auto_refresh():
            return False
        await self.run_now()
        return True

    def start(self) -> asyncio.Task:
        """Start the auto-refresh loop"""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh_loop())
        return self._refresh_task

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self._config.refresh_interval_seconds)
            await self.tick()

    def reset(self):
        """Stop consuming results and cancel pending work"""
        self._generation += 1
        self.in_flight = False
        self.latest = None
        for task in (self._debounce_task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
        self._debounce_task = None
        self._refresh_task = None
