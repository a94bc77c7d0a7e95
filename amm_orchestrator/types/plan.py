"""
Transaction plan type definitions
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .preconditions import ActionKind


@dataclass(frozen=True)
class FunctionCall:
    """
    One contract method call

    Attributes:
        method: Method name
        args: JSON-serializable arguments
        gas: Gas budget including safety buffer
        deposit: Attached native amount (yoctoNEAR)
    """
    method: str
    args: Dict[str, Any]
    gas: int
    deposit: int = 0

    def to_wallet_action(self) -> Dict[str, Any]:
        """Wallet-selector FunctionCall action"""
        return {
            "type": "FunctionCall",
            "params": {
                "methodName": self.method,
                "args": self.args,
                "gas": str(self.gas),
                "deposit": str(self.deposit),
            },
        }


@dataclass(frozen=True)
class TransactionDescriptor:
    """Calls that are signed together against one receiver"""
    receiver_id: str
    calls: Tuple[FunctionCall, ...]

    @property
    def methods(self) -> List[str]:
        return [call.method for call in self.calls]

    def to_wallet_transaction(self, signer_id: str) -> Dict[str, Any]:
        return {
            "signerId": signer_id,
            "receiverId": self.receiver_id,
            "actions": [call.to_wallet_action() for call in self.calls],
        }


@dataclass(frozen=True)
class TransactionPlan:
    """
    Ordered transactions for one action

    Consumed once by the Settlement Monitor. A retry rebuilds the plan
    from fresh preconditions instead of resubmitting this one.

    Attributes:
        action: Action the plan performs
        account_id: Signing account
        transactions: Ordered descriptors; index 0 executes first
        involved_tokens: Contract ids whose balances change
        pool_id: Pool the action targets
        submitted: Set once the plan has been handed to a signer
    """
    action: ActionKind
    account_id: str
    transactions: Tuple[TransactionDescriptor, ...]
    involved_tokens: Tuple[str, ...] = field(default=())
    pool_id: Optional[int] = None
    submitted: bool = field(default=False, init=False, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.transactions)

    def mark_submitted(self):
        """Flag the plan as consumed; the only state that changes after build"""
        object.__setattr__(self, "submitted", True)

    @property
    def calls(self) -> List[Tuple[str, FunctionCall]]:
        """Flattened (receiver, call) pairs in execution order"""
        return [(tx.receiver_id, call) for tx in self.transactions for call in tx.calls]

    @property
    def methods(self) -> List[str]:
        return [call.method for _, call in self.calls]

    def to_wallet_transactions(self) -> List[Dict[str, Any]]:
        """Render for the wallet-selector signAndSendTransactions payload"""
        return [tx.to_wallet_transaction(self.account_id) for tx in self.transactions]
