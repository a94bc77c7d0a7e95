"""
AMM Orchestrator - Swap and liquidity orchestration for NEAR AMM pools

Provides:
- Exact decimal <-> contract unit conversion
- Typed reads of pools, balances, deposits and registrations
- Swap quotes, ratio-preserving deposits and proportional withdrawals
- Minimal transaction plans built from resolved preconditions
- Settlement with cancellation, popup and on-chain failure classification

Supported AMM:
- Ref Finance (v2.ref-finance.near) simple, stable and rated pools
"""

from .client import OrchestratorClient
from .types import (
    TokenMetadata,
    PoolState,
    UserDeposits,
    QuoteResult,
    LiquidityQuote,
    RemovalQuote,
    PreconditionKey,
    PreconditionSet,
    ActionKind,
    FunctionCall,
    TransactionDescriptor,
    TransactionPlan,
    OutcomeStatus,
    SettlementState,
    SettlementOutcome,
)
from .errors import (
    OrchestratorError,
    ReadError,
    QuoteUnavailable,
    PoolUnavailable,
    ValidationError,
    InsufficientFunds,
    TransactionError,
    ChainFailure,
    SignerError,
    SigningCancelled,
    SigningUnavailable,
    PlanError,
    ConfigurationError,
    ErrorCode,
)
from .infra import Signer
from .units import (
    to_contract_units,
    parse_contract_units,
    from_contract_units,
    to_display_string,
    format_compact,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "OrchestratorClient",
    "Signer",
    # Types
    "TokenMetadata",
    "PoolState",
    "UserDeposits",
    "QuoteResult",
    "LiquidityQuote",
    "RemovalQuote",
    "PreconditionKey",
    "PreconditionSet",
    "ActionKind",
    "FunctionCall",
    "TransactionDescriptor",
    "TransactionPlan",
    "OutcomeStatus",
    "SettlementState",
    "SettlementOutcome",
    # Errors
    "OrchestratorError",
    "ReadError",
    "QuoteUnavailable",
    "PoolUnavailable",
    "ValidationError",
    "InsufficientFunds",
    "TransactionError",
    "ChainFailure",
    "SignerError",
    "SigningCancelled",
    "SigningUnavailable",
    "PlanError",
    "ConfigurationError",
    "ErrorCode",
    # Units
    "to_contract_units",
    "parse_contract_units",
    "from_contract_units",
    "to_display_string",
    "format_compact",
]
