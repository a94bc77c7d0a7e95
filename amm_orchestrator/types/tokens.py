"""
Static token registry

Fallback metadata used when ft_metadata cannot be read from the token
contract. Keyed by display id.

The native currency is listed under its sentinel id and points at the
wrapped-native contract, which is what pools, deposits and swaps use.
"""

from typing import Dict, Optional

from .common import TokenMetadata


NATIVE_TOKEN_ID = "near"
WRAPPED_NATIVE_ID = "wrap.near"

NATIVE_DECIMALS = 24

# Generic fallback for tokens with no metadata at all
FALLBACK_DECIMALS = 6
FALLBACK_SYMBOL_LENGTH = 8


NEAR = TokenMetadata(
    id=NATIVE_TOKEN_ID,
    symbol="NEAR",
    name="Near",
    decimals=NATIVE_DECIMALS,
    icon="https://assets.ref.finance/images/near.svg",
    contract_id=WRAPPED_NATIVE_ID,
)

WNEAR = TokenMetadata(
    id=WRAPPED_NATIVE_ID,
    symbol="wNEAR",
    name="Wrapped NEAR",
    decimals=NATIVE_DECIMALS,
    icon="https://assets.ref.finance/images/wrap.near.png",
)

VEGANFRIENDS = TokenMetadata(
    id="veganfriends.tkn.near",
    symbol="VEGANFRIENDS",
    name="Vegan Friends Token",
    decimals=18,
)


STATIC_TOKENS: Dict[str, TokenMetadata] = {
    NEAR.id: NEAR,
    WNEAR.id: WNEAR,
    VEGANFRIENDS.id: VEGANFRIENDS,
}


def get_static_token(token_id: str) -> Optional[TokenMetadata]:
    """Get static metadata by display id"""
    return STATIC_TOKENS.get(token_id)


def fallback_token(token_id: str) -> TokenMetadata:
    """
    Last-resort metadata: symbol from the first label of the id

    Example:
        fallback_token("usdt.tether-token.near").symbol == "usdt"
    """
    symbol = token_id.split(".")[0][:FALLBACK_SYMBOL_LENGTH]
    return TokenMetadata(
        id=token_id,
        symbol=symbol,
        name=token_id,
        decimals=FALLBACK_DECIMALS,
    )
