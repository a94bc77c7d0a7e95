"""
Pool type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import List, Mapping, Tuple

from .common import TokenMetadata


SIMPLE_POOL = "SIMPLE_POOL"
STABLE_SWAP = "STABLE_SWAP"
RATED_SWAP = "RATED_SWAP"


@dataclass(frozen=True)
class PoolState:
    """
    Snapshot of one AMM pool

    Reserves are keyed by contract id (wrapped native, never the native
    sentinel). A new snapshot replaces the old one after every re-fetch;
    arithmetic never mutates it.

    Attributes:
        id: Pool id on the AMM contract
        token_a: Metadata of the first pool token (pool order)
        token_b: Metadata of the second pool token (pool order)
        reserves: Contract id -> reserve in contract units
        total_shares: Total LP shares outstanding
        pool_kind: SIMPLE_POOL, STABLE_SWAP or RATED_SWAP
        total_fee: Pool fee in basis points
    """
    id: int
    token_a: TokenMetadata
    token_b: TokenMetadata
    reserves: Mapping[str, int]
    total_shares: int
    pool_kind: str = SIMPLE_POOL
    total_fee: int = 0
    token_account_ids: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        if not self.token_account_ids:
            object.__setattr__(
                self, "token_account_ids", (self.token_a.account_id, self.token_b.account_id)
            )
        expected = {self.token_a.account_id, self.token_b.account_id}
        if set(self.reserves) != expected:
            raise ValueError(
                f"Reserve keys {sorted(self.reserves)} do not match pool tokens {sorted(expected)}"
            )
        object.__setattr__(self, "reserves", MappingProxyType(dict(self.reserves)))

    def __str__(self) -> str:
        return f"Pool#{self.id}({self.token_a.symbol}/{self.token_b.symbol})"

    @property
    def is_simple(self) -> bool:
        return self.pool_kind == SIMPLE_POOL

    @property
    def tokens(self) -> Tuple[TokenMetadata, TokenMetadata]:
        return self.token_a, self.token_b

    @property
    def fee_percent(self) -> Decimal:
        """Pool fee as percentage"""
        return Decimal(self.total_fee) / Decimal(100)

    def has_token(self, contract_id: str) -> bool:
        return contract_id in self.reserves

    def reserve_of(self, contract_id: str) -> int:
        """Reserve for a contract id (KeyError if not in pool)"""
        return self.reserves[contract_id]

    def other_token(self, contract_id: str) -> TokenMetadata:
        """The pool token that is not ``contract_id``"""
        if contract_id == self.token_a.account_id:
            return self.token_b
        if contract_id == self.token_b.account_id:
            return self.token_a
        raise KeyError(contract_id)

    def token_by_contract(self, contract_id: str) -> TokenMetadata:
        for token in self.tokens:
            if token.account_id == contract_id:
                return token
        raise KeyError(contract_id)

    def ordered(self, amounts: Mapping[str, int]) -> List[int]:
        """Amounts arranged in the pool's token_account_ids order"""
        return [amounts[token_id] for token_id in self.token_account_ids]


@dataclass(frozen=True)
class UserDeposits:
    """Per-account balances held inside the AMM contract"""
    account_id: str
    balances: Mapping[str, int]

    def __post_init__(self):
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    def get(self, token_id: str) -> int:
        return self.balances.get(token_id, 0)

