"""
Exception definitions for the AMM Orchestrator
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for orchestrator operations

    1xxx - Remote read errors
    2xxx - Transaction errors
    3xxx - Quote errors
    4xxx - Pool errors
    5xxx - Validation errors
    6xxx - Signer errors
    7xxx - Plan errors
    9xxx - Configuration errors
    """
    # Remote read errors (recoverable)
    READ_CONNECTION_FAILED = "1001"
    READ_TIMEOUT = "1002"
    READ_RATE_LIMITED = "1003"
    READ_INVALID_RESPONSE = "1004"
    READ_METHOD_NOT_FOUND = "1005"
    READ_REMOTE_ERROR = "1006"
    READ_ALL_ENDPOINTS_FAILED = "1007"

    # Transaction errors
    TX_SUBMIT_FAILED = "2001"
    TX_CHAIN_FAILURE = "2002"
    TX_STATUS_UNKNOWN = "2003"

    # Quote errors
    QUOTE_NO_ROUTE = "3001"
    QUOTE_FAILED = "3002"

    # Pool errors
    POOL_NOT_FOUND = "4001"
    POOL_INVALID_STATE = "4002"

    # Validation errors
    VALIDATION_EMPTY_AMOUNT = "5001"
    VALIDATION_INVALID_AMOUNT = "5002"
    VALIDATION_NON_POSITIVE_AMOUNT = "5003"
    VALIDATION_INSUFFICIENT_BALANCE = "5004"
    VALIDATION_INSUFFICIENT_GAS_RESERVE = "5005"
    VALIDATION_MISSING_TOKEN = "5006"
    VALIDATION_SAME_TOKEN = "5007"
    VALIDATION_TOKEN_NOT_IN_POOL = "5008"
    VALIDATION_SHARES_EXCEEDED = "5009"

    # Signer errors
    SIGNER_NOT_CONFIGURED = "6001"
    SIGNER_FAILED = "6002"
    SIGNER_CANCELLED = "6003"
    SIGNER_UNAVAILABLE = "6004"

    # Plan errors
    PLAN_INVALID = "7001"
    PLAN_EMPTY = "7002"
    PLAN_ALREADY_SUBMITTED = "7003"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class OrchestratorError(Exception):
    """
    Base exception for all orchestrator errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class ReadError(OrchestratorError):
    """
    Remote read errors - typically recoverable

    Raised when:
    - Connection to an RPC endpoint fails
    - Request times out or is rate limited
    - The ledger answers with an error body
    - A view-call result does not have the expected shape
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.READ_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        merged = dict(details or {})
        if endpoint:
            merged["endpoint"] = endpoint
        super().__init__(
            message,
            code,
            recoverable=code != ErrorCode.READ_INVALID_RESPONSE,
            original_error=original_error,
            details=merged,
        )
        self.endpoint = endpoint

    @property
    def is_method_not_found(self) -> bool:
        return self.code == ErrorCode.READ_METHOD_NOT_FOUND

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "ReadError":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            ErrorCode.READ_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "ReadError":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            ErrorCode.READ_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "ReadError":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.READ_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def invalid_response(cls, what: str, reason: str) -> "ReadError":
        return cls(
            f"Invalid {what} response: {reason}",
            ErrorCode.READ_INVALID_RESPONSE,
            details={"what": what},
        )

    @classmethod
    def method_not_found(cls, contract_id: str, method: str) -> "ReadError":
        return cls(
            f"Method {method} not found on {contract_id}",
            ErrorCode.READ_METHOD_NOT_FOUND,
            details={"contract_id": contract_id, "method": method},
        )

    @classmethod
    def remote_error(cls, endpoint: str, message: str, data=None) -> "ReadError":
        return cls(
            f"RPC error: {message}",
            ErrorCode.READ_REMOTE_ERROR,
            endpoint=endpoint,
            details={"rpc_error_data": data},
        )

    @classmethod
    def all_endpoints_failed(cls, last_error: Optional[Exception] = None) -> "ReadError":
        return cls(
            "All RPC endpoints failed",
            ErrorCode.READ_ALL_ENDPOINTS_FAILED,
            original_error=last_error,
        )


class QuoteUnavailable(OrchestratorError):
    """
    No usable quote - distinct from transport errors

    Raised when:
    - The AMM estimate is empty or zero ("no route")
    - The pool does not hold one of the requested tokens
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.QUOTE_NO_ROUTE,
        token_in: Optional[str] = None,
        token_out: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            details={"token_in": token_in, "token_out": token_out},
        )
        self.token_in = token_in
        self.token_out = token_out

    @property
    def is_no_route(self) -> bool:
        return self.code == ErrorCode.QUOTE_NO_ROUTE

    @classmethod
    def no_route(cls, token_in: str, token_out: str) -> "QuoteUnavailable":
        return cls(
            f"No route found from {token_in} to {token_out}",
            token_in=token_in,
            token_out=token_out,
        )


class PoolUnavailable(OrchestratorError):
    """
    Pool not available - not recoverable

    Raised when:
    - Pool has invalid state (empty reserve, no shares outstanding)
    """

    def __init__(
        self,
        message: str,
        pool_id: Optional[int] = None,
        code: ErrorCode = ErrorCode.POOL_NOT_FOUND,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={"pool_id": pool_id},
        )
        self.pool_id = pool_id

    @classmethod
    def invalid_state(cls, pool_id: int, reason: str) -> "PoolUnavailable":
        return cls(
            f"Pool has invalid state: {reason}",
            pool_id=pool_id,
            code=ErrorCode.POOL_INVALID_STATE,
        )


class ValidationError(OrchestratorError):
    """
    Local input validation errors - never reach the ledger

    Raised when:
    - An amount is empty, not numeric, or not positive
    - An amount exceeds the available balance or gas reserve
    - The token pair is incomplete, identical, or not in the pool
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_INVALID_AMOUNT,
        field_name: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        merged = dict(details or {})
        if field_name:
            merged["field"] = field_name
        super().__init__(message, code, recoverable=False, details=merged)
        self.field_name = field_name

    @classmethod
    def empty_amount(cls, field_name: str = "amount") -> "ValidationError":
        return cls("Please enter an amount", ErrorCode.VALIDATION_EMPTY_AMOUNT, field_name)

    @classmethod
    def invalid_amount(cls, value: str, field_name: str = "amount") -> "ValidationError":
        return cls(f"Invalid amount: {value!r}", ErrorCode.VALIDATION_INVALID_AMOUNT, field_name)

    @classmethod
    def non_positive_amount(cls, field_name: str = "amount") -> "ValidationError":
        return cls("Amount must be greater than zero", ErrorCode.VALIDATION_NON_POSITIVE_AMOUNT, field_name)

    @classmethod
    def missing_token(cls) -> "ValidationError":
        return cls("Please select both tokens", ErrorCode.VALIDATION_MISSING_TOKEN)

    @classmethod
    def same_token(cls) -> "ValidationError":
        return cls("Cannot swap same token", ErrorCode.VALIDATION_SAME_TOKEN)

    @classmethod
    def token_not_in_pool(cls, token_id: str, pool_id: int) -> "ValidationError":
        return cls(
            f"Token {token_id} is not in pool {pool_id}",
            ErrorCode.VALIDATION_TOKEN_NOT_IN_POOL,
            details={"token_id": token_id, "pool_id": pool_id},
        )

    @classmethod
    def shares_exceeded(cls, requested: int, available: int) -> "ValidationError":
        return cls(
            f"Insufficient LP shares: need {requested}, have {available}",
            ErrorCode.VALIDATION_SHARES_EXCEEDED,
            details={"requested": str(requested), "available": str(available)},
        )


class InsufficientFunds(ValidationError):
    """
    Insufficient balance for the requested amount

    Raised when:
    - Wallet doesn't have enough tokens
    - Spending native currency would leave less than the gas reserve
    """

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        required: Optional[int] = None,
        available: Optional[int] = None,
        code: ErrorCode = ErrorCode.VALIDATION_INSUFFICIENT_BALANCE,
    ):
        super().__init__(
            message,
            code,
            details={
                "token": token,
                "required": str(required) if required is not None else None,
                "available": str(available) if available is not None else None,
            },
        )
        self.token = token
        self.required = required
        self.available = available

    @classmethod
    def token_balance(cls, token: str, required: int, available: int) -> "InsufficientFunds":
        return cls(
            f"Insufficient {token} balance: need {required}, have {available}",
            token=token,
            required=required,
            available=available,
        )

    @classmethod
    def gas_reserve(cls, token: str, required: int, available: int, reserve: int) -> "InsufficientFunds":
        error = cls(
            f"Insufficient {token} left for gas: need {required} plus {reserve} reserve, have {available}",
            token=token,
            required=required,
            available=available,
            code=ErrorCode.VALIDATION_INSUFFICIENT_GAS_RESERVE,
        )
        error.details["reserve"] = str(reserve)
        return error


class TransactionError(OrchestratorError):
    """
    Transaction execution errors

    Raised when:
    - The signing surface accepts a batch but submission fails
    - The ledger reports an explicit failure status
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SUBMIT_FAILED,
        tx_hash: Optional[str] = None,
        recoverable: bool = False,
        details: Optional[dict] = None,
    ):
        merged = dict(details or {})
        merged["tx_hash"] = tx_hash
        super().__init__(message, code, recoverable=recoverable, details=merged)
        self.tx_hash = tx_hash


class ChainFailure(TransactionError):
    """Explicit on-chain failure status, carrying the raw failure detail"""

    def __init__(self, message: str, tx_hash: Optional[str] = None, failure: Optional[dict] = None):
        super().__init__(
            message,
            ErrorCode.TX_CHAIN_FAILURE,
            tx_hash=tx_hash,
            details={"failure": failure},
        )
        self.failure = failure

    @classmethod
    def from_status(cls, tx_hash: str, failure) -> "ChainFailure":
        return cls(f"Transaction failed on chain: {failure}", tx_hash=tx_hash, failure=failure)


class SignerError(OrchestratorError):
    """
    Signing-related errors

    Raised when:
    - No signing surface is connected
    - The signing surface reports an error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SIGNER_FAILED,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, code, recoverable=recoverable, original_error=original_error)

    @classmethod
    def not_configured(cls) -> "SignerError":
        return cls(
            "No signer connected. Connect a wallet before submitting.",
            ErrorCode.SIGNER_NOT_CONFIGURED,
        )

    @classmethod
    def failed(cls, reason: str, error: Exception = None) -> "SignerError":
        return cls(f"Signing failed: {reason}", ErrorCode.SIGNER_FAILED, original_error=error)


class SigningCancelled(SignerError):
    """The user rejected or closed the signing request; no changes were made"""

    def __init__(self, message: str = "Transaction was cancelled", original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCode.SIGNER_CANCELLED, original_error=original_error)


class SigningUnavailable(SignerError):
    """The signing surface could not be shown (e.g. a blocked popup)"""

    def __init__(
        self,
        message: str = "Wallet popup was blocked. Allow popups for this site and try again.",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, ErrorCode.SIGNER_UNAVAILABLE, recoverable=True, original_error=original_error)


class PlanError(OrchestratorError):
    """
    Malformed transaction plan - detected before submission

    Raised when:
    - A call descriptor has no receiver or method
    - Gas budget or attached amount is not a non-negative integer
    - The plan contains no transactions
    - The plan was already handed to a signer
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PLAN_INVALID,
        index: Optional[int] = None,
    ):
        super().__init__(message, code, recoverable=False, details={"index": index})
        self.index = index

    @classmethod
    def empty(cls) -> "PlanError":
        return cls("Transaction plan is empty", ErrorCode.PLAN_EMPTY)

    @classmethod
    def invalid_descriptor(cls, index: int, reason: str) -> "PlanError":
        return cls(f"Invalid transaction #{index}: {reason}", index=index)

    @classmethod
    def already_submitted(cls) -> "PlanError":
        return cls(
            "Transaction plan was already submitted; rebuild it from fresh state",
            ErrorCode.PLAN_ALREADY_SUBMITTED,
        )


class ConfigurationError(OrchestratorError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)
