"""
Infrastructure layer for the AMM Orchestrator

Provides:
- RpcClient: Async NEAR JSON-RPC client with endpoint failover
- Signer: Protocol for wallet signing surfaces
- Correlation IDs for action tracing
"""

from .rpc import RpcClient, RpcClientConfig
from .signing import (
    Signer,
    classify_signer_error,
    is_user_cancellation,
    is_signing_unavailable,
    error_message,
    CANCELLATION_KEYWORDS,
    UNAVAILABLE_KEYWORDS,
)
from .correlation import (
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
    log_with_correlation,
)

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "Signer",
    "classify_signer_error",
    "is_user_cancellation",
    "is_signing_unavailable",
    "error_message",
    "CANCELLATION_KEYWORDS",
    "UNAVAILABLE_KEYWORDS",
    "CorrelationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "log_with_correlation",
]
