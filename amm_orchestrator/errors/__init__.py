"""
Error definitions for the AMM Orchestrator
"""

from .exceptions import (
    ErrorCode,
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
)

__all__ = [
    "ErrorCode",
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
]
