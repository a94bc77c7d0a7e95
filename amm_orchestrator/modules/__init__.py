"""
Functional modules for OrchestratorClient

Provides the orchestration pipeline:
- RemoteStateReader: Typed view calls against the AMM and token contracts
- TokenRegistry: Token metadata with static and generic fallbacks
- BalancePoolCache: Snapshots of balances and pools with invalidate-and-refetch
- QuoteEngine / QuoteScheduler: Swap and liquidity amounts, debounced refresh
- PreconditionResolver: Registration, whitelist, deposit and wrap state
- TransactionPlanBuilder: Minimal ordered transaction plans
- SettlementMonitor: Submission and outcome classification
- SwapModule / LiquidityModule: Action front-ends
"""

from .reader import RemoteStateReader
from .tokens import TokenRegistry, clear_metadata_cache
from .cache import BalancePoolCache, CacheSnapshot
from .quote import (
    QuoteEngine,
    QuoteScheduler,
    apply_slippage,
    expected_shares,
    optimal_paired_amount,
    price_impact,
    proportional_amounts,
)
from .preconditions import PreconditionResolver
from .planner import TransactionPlanBuilder, validate_plan
from .settlement import SettlementMonitor, extract_tx_hash
from .swap import SwapModule
from .liquidity import LiquidityModule

__all__ = [
    # Reads
    "RemoteStateReader",
    "TokenRegistry",
    "clear_metadata_cache",
    "BalancePoolCache",
    "CacheSnapshot",
    # Quotes
    "QuoteEngine",
    "QuoteScheduler",
    "apply_slippage",
    "expected_shares",
    "optimal_paired_amount",
    "price_impact",
    "proportional_amounts",
    # Plans and settlement
    "PreconditionResolver",
    "TransactionPlanBuilder",
    "validate_plan",
    "SettlementMonitor",
    "extract_tx_hash",
    # Actions
    "SwapModule",
    "LiquidityModule",
]
