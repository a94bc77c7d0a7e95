"""
Decode/validate boundary for Ref Finance and NEP-141 view results

Every untyped JSON value read from the ledger passes through one of these
functions before it reaches the rest of the orchestrator. A value with
the wrong shape raises ReadError (READ_INVALID_RESPONSE); nothing is
guessed.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ...errors import ReadError
from ...types import TokenMetadata, SIMPLE_POOL


@dataclass(frozen=True)
class RawPool:
    """get_pool result before token metadata is attached"""
    pool_kind: str
    token_account_ids: Tuple[str, ...]
    amounts: Tuple[int, ...]
    total_fee: int
    shares_total_supply: int

    @property
    def reserves(self) -> Dict[str, int]:
        return dict(zip(self.token_account_ids, self.amounts))


# Outcome status names in a tx result
TX_SUCCESS_KEYS = ("SuccessValue", "SuccessReceiptId")
TX_FAILURE_KEY = "Failure"


def parse_u128(value: Any, what: str) -> int:
    """
    Parse a non-negative integer sent as a decimal string (or JSON number)

    Raises:
        ReadError: If the value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise ReadError.invalid_response(what, f"expected integer, got {value!r}")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        result = int(value)
    else:
        raise ReadError.invalid_response(what, f"expected integer string, got {value!r}")
    if result < 0:
        raise ReadError.invalid_response(what, f"negative amount {value!r}")
    return result


def _require_dict(raw: Any, what: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ReadError.invalid_response(what, f"expected object, got {type(raw).__name__}")
    return raw


def parse_string_list(raw: Any, what: str) -> List[str]:
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ReadError.invalid_response(what, "expected list of strings")
    return list(raw)


def parse_pool(raw: Any) -> RawPool:
    """Decode get_pool"""
    data = _require_dict(raw, "get_pool")
    token_ids = parse_string_list(data.get("token_account_ids"), "get_pool.token_account_ids")
    amounts_raw = data.get("amounts")
    if not isinstance(amounts_raw, list) or len(amounts_raw) != len(token_ids):
        raise ReadError.invalid_response("get_pool", "amounts do not match token_account_ids")
    if len(token_ids) != 2 or token_ids[0] == token_ids[1]:
        raise ReadError.invalid_response("get_pool", f"expected two distinct tokens, got {token_ids}")

    # Older deployments report total_shares instead of shares_total_supply
    shares = data.get("shares_total_supply", data.get("total_shares"))
    if shares is None:
        raise ReadError.invalid_response("get_pool", "missing shares_total_supply")

    return RawPool(
        pool_kind=str(data.get("pool_kind") or SIMPLE_POOL),
        token_account_ids=tuple(token_ids),
        amounts=tuple(parse_u128(a, "get_pool.amounts") for a in amounts_raw),
        total_fee=parse_u128(data.get("total_fee", 0), "get_pool.total_fee"),
        shares_total_supply=parse_u128(shares, "get_pool.shares_total_supply"),
    )


def parse_storage_balance(raw: Any) -> Optional[int]:
    """
    Decode storage_balance_of

    Returns:
        Total storage balance, or None if the account is not registered
    """
    if raw is None:
        return None
    data = _require_dict(raw, "storage_balance_of")
    return parse_u128(data.get("total"), "storage_balance_of.total")


def parse_storage_bounds(raw: Any) -> int:
    """Decode storage_balance_bounds, returning the minimum"""
    data = _require_dict(raw, "storage_balance_bounds")
    return parse_u128(data.get("min"), "storage_balance_bounds.min")


def parse_deposits(raw: Any) -> Dict[str, int]:
    """Decode get_deposits (token id -> amount)"""
    data = _require_dict(raw, "get_deposits")
    return {
        str(token_id): parse_u128(amount, f"get_deposits.{token_id}")
        for token_id, amount in data.items()
    }


def parse_token_metadata(raw: Any, token_id: str) -> TokenMetadata:
    """Decode ft_metadata"""
    data = _require_dict(raw, "ft_metadata")
    symbol = data.get("symbol")
    decimals = data.get("decimals")
    if not isinstance(symbol, str) or not symbol:
        raise ReadError.invalid_response("ft_metadata", "missing symbol")
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise ReadError.invalid_response("ft_metadata", f"invalid decimals {decimals!r}")
    name = data.get("name")
    icon = data.get("icon")
    return TokenMetadata(
        id=token_id,
        symbol=symbol,
        name=name if isinstance(name, str) and name else symbol,
        decimals=decimals,
        icon=icon if isinstance(icon, str) and icon else None,
    )


def parse_account_balance(raw: Any) -> int:
    """Decode view_account, returning the liquid native balance"""
    data = _require_dict(raw, "view_account")
    return parse_u128(data.get("amount"), "view_account.amount")


def parse_tx_status(raw: Any) -> Tuple[Optional[str], Any]:
    """
    Decode the ``status`` of a tx result

    Returns:
        ("success", value), ("failure", detail), or (None, raw status) when
        the status is neither yet
    """
    data = _require_dict(raw, "tx")
    status = data.get("status")
    if isinstance(status, dict):
        for key in TX_SUCCESS_KEYS:
            if key in status:
                return "success", status[key]
        if TX_FAILURE_KEY in status:
            return "failure", status[TX_FAILURE_KEY]
    return None, status
