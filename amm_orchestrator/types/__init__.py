"""
Type definitions for the AMM Orchestrator
"""

from .common import TokenMetadata
from .pool import PoolState, UserDeposits, SIMPLE_POOL, STABLE_SWAP, RATED_SWAP
from .result import (
    QuoteResult,
    LiquidityQuote,
    RemovalQuote,
    OutcomeStatus,
    SettlementState,
    SettlementOutcome,
)
from .preconditions import ActionKind, PreconditionKey, PreconditionSet, REQUIRED_KEYS
from .plan import FunctionCall, TransactionDescriptor, TransactionPlan

# Token registry
from .tokens import (
    NATIVE_TOKEN_ID,
    WRAPPED_NATIVE_ID,
    STATIC_TOKENS,
    get_static_token,
    fallback_token,
)

__all__ = [
    # Common types
    "TokenMetadata",
    "PoolState",
    "UserDeposits",
    "SIMPLE_POOL",
    "STABLE_SWAP",
    "RATED_SWAP",
    # Results
    "QuoteResult",
    "LiquidityQuote",
    "RemovalQuote",
    "OutcomeStatus",
    "SettlementState",
    "SettlementOutcome",
    # Preconditions and plans
    "ActionKind",
    "PreconditionKey",
    "PreconditionSet",
    "REQUIRED_KEYS",
    "FunctionCall",
    "TransactionDescriptor",
    "TransactionPlan",
    # Token registry
    "NATIVE_TOKEN_ID",
    "WRAPPED_NATIVE_ID",
    "STATIC_TOKENS",
    "get_static_token",
    "fallback_token",
]
