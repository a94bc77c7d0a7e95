"""
Signing surface abstractions

The orchestrator never holds keys. A connected wallet is wrapped as a
``Signer`` that can report its account id and sign-and-submit a list of
wallet-selector transactions. This module also classifies the errors
wallets raise into cancellation, unavailable signing surface, or failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from ..errors import SignerError, SigningCancelled, SigningUnavailable

logger = logging.getLogger(__name__)


# Wallet messages meaning the user rejected or dismissed the request
CANCELLATION_KEYWORDS = [
    "user rejected",
    "user closed the window",
    "request was cancelled",
    "user denied",
    "cancelled",
    "transaction was cancelled",
    "user cancelled",
    "wallet closed",
]

# Wallet messages meaning the signing surface could not be shown
UNAVAILABLE_KEYWORDS = [
    "couldn't open popup",
    "popup window",
    "meteoractionerror",
    "wallet action",
]


@runtime_checkable
class Signer(Protocol):
    """
    Protocol for wallet signing surfaces

    Implementations must provide:
    - account_id: The connected account
    - supports_batch: Whether several transactions can be signed at once
    - sign_and_send_transactions(): Sign and submit, returning outcomes
    """

    @property
    def account_id(self) -> str:
        """Connected account id"""
        ...

    @property
    def supports_batch(self) -> bool:
        """True if the wallet signs a list of transactions in one prompt"""
        ...

    async def sign_and_send_transactions(self, transactions: List[Dict[str, Any]]) -> Any:
        """
        Sign and submit transactions in order

        Args:
            transactions: Wallet-selector transactions (signerId, receiverId, actions)

        Returns:
            A transaction hash string, or a list of execution outcomes
        """
        ...


def error_message(err: Any) -> str:
    """Best-effort readable message for anything a wallet may raise or return"""
    if err is None:
        return ""
    if isinstance(err, SignerError):
        return err.message
    if isinstance(err, BaseException):
        return str(err)
    if isinstance(err, str):
        return err
    if isinstance(err, (dict, list)):
        try:
            return json.dumps(err)
        except (TypeError, ValueError):
            return repr(err)
    return str(err)


def is_user_cancellation(err: Any) -> bool:
    """
    Detect a user cancellation

    Null errors and empty error objects count as cancellation, as do
    messages containing any of CANCELLATION_KEYWORDS.
    """
    if err is None:
        return True
    if isinstance(err, SigningCancelled):
        return True
    if isinstance(err, dict) and not err:
        return True
    if isinstance(err, BaseException) and not err.args and not str(err):
        return True
    message = error_message(err).lower()
    return any(keyword in message for keyword in CANCELLATION_KEYWORDS)


def is_signing_unavailable(err: Any) -> bool:
    """Detect a blocked or unavailable signing surface"""
    if isinstance(err, SigningUnavailable):
        return True
    message = error_message(err).lower()
    return any(keyword in message for keyword in UNAVAILABLE_KEYWORDS)


def classify_signer_error(err: Any) -> SignerError:
    """
    Map a wallet error onto SigningUnavailable, SigningCancelled or SignerError

    Unavailable is checked first: a blocked popup is actionable and must not
    read as a cancellation.
    """
    original: Optional[Exception] = err if isinstance(err, Exception) else None
    if is_signing_unavailable(err):
        return SigningUnavailable(original_error=original)
    if is_user_cancellation(err):
        return SigningCancelled(original_error=original)
    if isinstance(err, SignerError):
        return err
    return SignerError.failed(error_message(err) or "An error occurred", original)
