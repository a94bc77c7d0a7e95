"""
Ref Finance AMM protocol support

Contract method names and the decode/validate boundary for view results.
"""

from . import constants
from .parser import (
    RawPool,
    parse_u128,
    parse_pool,
    parse_storage_balance,
    parse_storage_bounds,
    parse_deposits,
    parse_token_metadata,
    parse_account_balance,
    parse_string_list,
    parse_tx_status,
)

__all__ = [
    "constants",
    "RawPool",
    "parse_u128",
    "parse_pool",
    "parse_storage_balance",
    "parse_storage_bounds",
    "parse_deposits",
    "parse_token_metadata",
    "parse_account_balance",
    "parse_string_list",
    "parse_tx_status",
]
