"""
Result type definitions for quotes and settlement
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class QuoteResult:
    """
    Swap quote result

    Stale as soon as reserves, input amount or slippage change.

    Attributes:
        token_in: Input contract id
        token_out: Output contract id
        amount_in: Input amount (contract units)
        output_amount: AMM estimate (contract units)
        min_received: output_amount after slippage, floored
        price_impact: Price impact as percentage (1.5 = 1.5%)
        slippage_percent: Applied slippage tolerance
        high_impact_threshold: Percentage at or above which impact is flagged
    """
    token_in: str
    token_out: str
    amount_in: int
    output_amount: int
    min_received: int
    price_impact: Decimal = Decimal(0)
    slippage_percent: Decimal = Decimal("0.5")
    high_impact_threshold: Decimal = Decimal(5)

    @property
    def is_high_impact(self) -> bool:
        return self.price_impact >= self.high_impact_threshold

    def __str__(self) -> str:
        return f"Quote({self.amount_in} -> {self.output_amount}, impact={self.price_impact:.2f}%)"


@dataclass(frozen=True)
class LiquidityQuote:
    """
    Paired deposit amounts and LP share protection for add_liquidity

    Attributes:
        pool_id: Target pool
        amounts: Contract id -> amount to add (contract units)
        expected_shares: Shares expected at current reserves
        min_shares: expected_shares after slippage, floored
        min_amounts: Contract id -> amount after slippage, floored
    """
    pool_id: int
    amounts: Mapping[str, int]
    expected_shares: int
    min_shares: int
    slippage_percent: Decimal = Decimal("0.5")
    min_amounts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "amounts", MappingProxyType(dict(self.amounts)))
        object.__setattr__(self, "min_amounts", MappingProxyType(dict(self.min_amounts)))


@dataclass(frozen=True)
class RemovalQuote:
    """
    Proportional withdrawal amounts for remove_liquidity

    Attributes:
        pool_id: Target pool
        shares: LP shares to burn
        amounts: Contract id -> expected amount out
        min_amounts: Contract id -> amount after slippage, floored
    """
    pool_id: int
    shares: int
    amounts: Mapping[str, int]
    min_amounts: Mapping[str, int]
    slippage_percent: Decimal = Decimal("0.5")

    def __post_init__(self):
        object.__setattr__(self, "amounts", MappingProxyType(dict(self.amounts)))
        object.__setattr__(self, "min_amounts", MappingProxyType(dict(self.min_amounts)))


class OutcomeStatus(Enum):
    """Terminal settlement status"""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    INDETERMINATE = "indeterminate"


class SettlementState(Enum):
    """Settlement Monitor lifecycle"""
    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUCCESS = "success"
    FAILURE = "failure"
    INDETERMINATE = "indeterminate"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (SettlementState.SUBMITTING, SettlementState.AWAITING_CONFIRMATION)


@dataclass(frozen=True)
class SettlementOutcome:
    """
    Terminal result of one user-initiated action

    Attributes:
        status: Outcome status
        tx_hash: Transaction id (Success and Indeterminate)
        reason: Failure reason (Failure)
        error_code: Error code for programmatic handling
        confirmed: False when Success was assumed after a status timeout
        failure: Raw on-chain failure detail, if any
        applied_transactions: Transactions already executed before a
            Failure or Cancelled outcome; their effects remain
    """
    status: OutcomeStatus
    tx_hash: Optional[str] = None
    reason: Optional[str] = None
    error_code: Optional[str] = None
    confirmed: bool = True
    failure: Optional[dict] = field(default=None, compare=False)
    applied_transactions: int = 0

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status == OutcomeStatus.FAILURE

    @property
    def is_cancelled(self) -> bool:
        return self.status == OutcomeStatus.CANCELLED

    @property
    def is_indeterminate(self) -> bool:
        return self.status == OutcomeStatus.INDETERMINATE

    @property
    def is_partial(self) -> bool:
        """Stopped part-way with earlier transactions applied"""
        return self.applied_transactions > 0

    @classmethod
    def success(cls, tx_hash: str, confirmed: bool = True) -> "SettlementOutcome":
        """Create successful outcome"""
        return cls(status=OutcomeStatus.SUCCESS, tx_hash=tx_hash, confirmed=confirmed)

    @classmethod
    def failed(
        cls,
        reason: str,
        error_code: Optional[str] = None,
        tx_hash: Optional[str] = None,
        failure: Optional[dict] = None,
        applied_transactions: int = 0,
    ) -> "SettlementOutcome":
        """Create failed outcome"""
        if applied_transactions:
            reason = f"{reason} ({applied_transactions} earlier transaction(s) were applied and remain)"
        return cls(
            status=OutcomeStatus.FAILURE,
            tx_hash=tx_hash,
            reason=reason,
            error_code=error_code,
            failure=failure,
            applied_transactions=applied_transactions,
        )

    @classmethod
    def cancelled(cls, applied_transactions: int = 0) -> "SettlementOutcome":
        """Create cancelled outcome (no changes made unless applied_transactions > 0)"""
        if applied_transactions:
            reason = (
                f"Transaction was cancelled after {applied_transactions} transaction(s) "
                "were applied; those changes remain"
            )
        else:
            reason = "Transaction was cancelled"
        return cls(
            status=OutcomeStatus.CANCELLED,
            reason=reason,
            applied_transactions=applied_transactions,
        )

    @classmethod
    def indeterminate(cls, tx_hash: Optional[str] = None) -> "SettlementOutcome":
        """Create indeterminate outcome (submitted, status unknown)"""
        return cls(
            status=OutcomeStatus.INDETERMINATE,
            tx_hash=tx_hash,
            reason="Transaction submitted, status unknown. Check the explorer.",
            error_code="2003",
            confirmed=False,
        )

    def __str__(self) -> str:
        if self.is_success:
            hash_display = f"{self.tx_hash[:16]}..." if self.tx_hash else "no hash"
            return f"SettlementOutcome(SUCCESS, {hash_display})"
        return f"SettlementOutcome({self.status.value}, reason={self.reason})"
