"""
Precondition type definitions
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Tuple


class ActionKind(Enum):
    """User-initiated action"""
    SWAP = "swap"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"


class PreconditionKey(Enum):
    """Remote state an action may depend on"""
    ACCOUNT_REGISTERED_ON_TOKEN = "account_registered_on_token"
    AMM_REGISTERED_ON_TOKEN = "amm_registered_on_token"
    TOKEN_WHITELISTED_WITH_AMM = "token_whitelisted_with_amm"
    AMOUNT_DEPOSITED_IN_AMM = "amount_deposited_in_amm"
    NATIVE_WRAPPED = "native_wrapped"


REQUIRED_KEYS: Dict[ActionKind, Tuple[PreconditionKey, ...]] = {
    ActionKind.SWAP: (
        PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN,
        PreconditionKey.AMM_REGISTERED_ON_TOKEN,
    ),
    ActionKind.ADD_LIQUIDITY: (
        PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN,
        PreconditionKey.AMM_REGISTERED_ON_TOKEN,
        PreconditionKey.TOKEN_WHITELISTED_WITH_AMM,
        PreconditionKey.AMOUNT_DEPOSITED_IN_AMM,
        PreconditionKey.NATIVE_WRAPPED,
    ),
    ActionKind.REMOVE_LIQUIDITY: (
        PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN,
    ),
}


@dataclass(frozen=True)
class PreconditionSet:
    """
    Which preconditions of one action are already satisfied

    Derived fresh for every action attempt and never cached.

    Attributes:
        action: Action the set was resolved for
        account_id: Acting account
        satisfied: (key, contract id) -> already satisfied
        deposit_shortfalls: Contract id -> amount still to deposit in the AMM
        wrap_shortfall: Native amount still to wrap
        storage_minimums: Contract id -> storage deposit to attach on registration
    """
    action: ActionKind
    account_id: str
    satisfied: Dict[Tuple[PreconditionKey, str], bool] = field(default_factory=dict)
    deposit_shortfalls: Dict[str, int] = field(default_factory=dict)
    wrap_shortfall: int = 0
    storage_minimums: Dict[str, int] = field(default_factory=dict)

    def is_satisfied(self, key: PreconditionKey, token_id: str) -> bool:
        """Unknown entries count as not satisfied"""
        return self.satisfied.get((key, token_id), False)

    def missing(self, key: PreconditionKey) -> List[str]:
        """Contract ids whose ``key`` precondition is not satisfied, in insertion order"""
        return [token_id for (k, token_id), ok in self.satisfied.items() if k == key and not ok]

    def shortfall(self, token_id: str) -> int:
        return self.deposit_shortfalls.get(token_id, 0)

    def __iter__(self) -> Iterator[Tuple[Tuple[PreconditionKey, str], bool]]:
        return iter(self.satisfied.items())

    @property
    def all_satisfied(self) -> bool:
        return all(self.satisfied.values())
