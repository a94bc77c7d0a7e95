"""
Common type definitions
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class TokenMetadata:
    """
    Fungible token metadata

    Attributes:
        id: Display identifier (contract id, or the native-currency sentinel)
        symbol: Token symbol (e.g., "NEAR", "VEGANFRIENDS")
        name: Full token name
        decimals: Number of decimal places
        icon: Optional icon URI
        contract_id: Contract that holds balances for this token; differs
            from ``id`` only for the native currency (held as wrapped native)
    """
    id: str
    symbol: str
    name: str
    decimals: int
    icon: Optional[str] = None
    contract_id: Optional[str] = None

    def __post_init__(self):
        if self.decimals < 0:
            raise ValueError(f"decimals must be >= 0, got {self.decimals}")

    def __str__(self) -> str:
        return self.symbol

    def __repr__(self) -> str:
        return f"TokenMetadata({self.symbol}, {self.id})"

    @property
    def account_id(self) -> str:
        """Contract id used in reserves, deposits and calls"""
        return self.contract_id or self.id

    @property
    def is_native(self) -> bool:
        """True for the native-currency sentinel"""
        return self.contract_id is not None and self.contract_id != self.id

    def ui_amount(self, raw_amount: int) -> Decimal:
        """
        Convert raw amount to UI amount with full precision

        Args:
            raw_amount: Raw token amount (smallest units)

        Returns:
            UI amount as Decimal
        """
        from ..units import from_contract_units
        return from_contract_units(raw_amount, self.decimals)

    def raw_amount(self, ui_amount: Union[Decimal, int, str]) -> int:
        """
        Convert UI amount to raw amount, truncating extra precision

        Raises:
            ValidationError: If the amount is not a valid decimal
        """
        from ..units import parse_contract_units
        return parse_contract_units(str(ui_amount), self.decimals)
