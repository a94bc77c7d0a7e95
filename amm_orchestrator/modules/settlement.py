"""
Settlement Monitor

Submits a TransactionPlan through the signer, captures the transaction
hash, polls the ledger for the final status and classifies the result:

    IDLE -> SUBMITTING -> AWAITING_CONFIRMATION -> SUCCESS | FAILURE | INDETERMINATE
                       -> CANCELLED | FAILURE

Outcomes are returned, never raised. On success, or when a submission
stops after some transactions were already applied, the involved balances
and pools are invalidated and re-fetched after a short propagation delay.
A plan is consumed by its first submission and is never sent again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .cache import BalancePoolCache
    from .reader import RemoteStateReader

from ..config import config as global_config, ContractsConfig, SettlementConfig
from ..errors import ChainFailure, OrchestratorError, PlanError, ReadError, SignerError, SigningCancelled
from ..infra.signing import Signer, classify_signer_error
from ..protocols.ref_finance.parser import TX_FAILURE_KEY, TX_SUCCESS_KEYS
from ..types import SettlementOutcome, SettlementState, TransactionPlan
from .planner import validate_plan

logger = logging.getLogger(__name__)

StateListener = Callable[[SettlementState], None]


def extract_tx_hash(result: Any) -> Optional[str]:
    """
    Transaction hash from whatever the signer returned

    Accepts a hash string, an execution outcome, or a list of outcomes (the
    last one is used). Returns None when no hash can be found.
    """
    if isinstance(result, (list, tuple)):
        if not result:
            return None
        result = result[-1]
    if isinstance(result, str):
        return result or None
    if isinstance(result, dict):
        transaction = result.get("transaction")
        if isinstance(transaction, dict) and transaction.get("hash"):
            return str(transaction["hash"])
        outcome = result.get("transaction_outcome")
        if isinstance(outcome, dict) and outcome.get("id"):
            return str(outcome["id"])
    return None


def outcome_failure(result: Any) -> Optional[Any]:
    """Failure detail carried by the signer's execution outcomes, if any"""
    outcomes = result if isinstance(result, (list, tuple)) else [result]
    for outcome in outcomes:
        if isinstance(outcome, dict):
            status = outcome.get("status")
            if isinstance(status, dict) and TX_FAILURE_KEY in status:
                return status[TX_FAILURE_KEY]
    return None


def outcome_succeeded(result: Any) -> bool:
    """True if the last outcome already carries a success status"""
    if isinstance(result, (list, tuple)):
        if not result:
            return False
        result = result[-1]
    if not isinstance(result, dict):
        return False
    status = result.get("status")
    return isinstance(status, dict) and any(key in status for key in TX_SUCCESS_KEYS)


def applied_before_failure(result: Any) -> int:
    """Outcomes with a success status ahead of the first failure"""
    outcomes = result if isinstance(result, (list, tuple)) else [result]
    applied = 0
    for outcome in outcomes:
        status = outcome.get("status") if isinstance(outcome, dict) else None
        if not isinstance(status, dict):
            continue
        if TX_FAILURE_KEY in status:
            break
        if any(key in status for key in TX_SUCCESS_KEYS):
            applied += 1
    return applied


class PartialSubmission(Exception):
    """Submission stopped after ``applied`` transactions had already executed"""

    def __init__(self, error: Exception, applied: int):
        super().__init__(str(error))
        self.error = error
        self.applied = applied


class SettlementMonitor:
    """
    Submits plans and classifies their outcome

    Usage:
        monitor = SettlementMonitor(reader, cache)
        outcome = await monitor.settle(plan, signer)
        if outcome.is_cancelled:
            ...
    """

    def __init__(
        self,
        reader: "RemoteStateReader",
        cache: Optional["BalancePoolCache"] = None,
        config: Optional[SettlementConfig] = None,
        contracts: Optional[ContractsConfig] = None,
    ):
        self._reader = reader
        self._cache = cache
        self._config = config or global_config.settlement
        self._contracts = contracts or global_config.contracts
        self._state = SettlementState.IDLE
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SettlementState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to state transitions; returns an unsubscribe function"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SettlementState):
        if state == self._state:
            return
        logger.debug(f"Settlement state {self._state.value} -> {state.value}")
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Settlement listener {listener!r} failed: {e}")

    def reset(self):
        """Back to IDLE for the next action"""
        self._set_state(SettlementState.IDLE)

    def _finish(self, outcome: SettlementOutcome) -> SettlementOutcome:
        state = {
            "success": SettlementState.SUCCESS,
            "failure": SettlementState.FAILURE,
            "cancelled": SettlementState.CANCELLED,
            "indeterminate": SettlementState.INDETERMINATE,
        }[outcome.status.value]
        self._set_state(state)
        log = logger.info if outcome.is_success or outcome.is_cancelled else logger.warning
        log(f"Settlement finished: {outcome}")
        return outcome

    # =========================================================================
    # Submission
    # =========================================================================

    async def settle(self, plan: TransactionPlan, signer: Optional[Signer]) -> SettlementOutcome:
        """
        Submit ``plan`` and wait for its outcome

        Args:
            plan: Freshly built plan; a plan already handed to a signer is
                rejected and must be rebuilt
            signer: Connected signing surface

        Returns:
            SettlementOutcome
        """
        try:
            if plan.submitted:
                raise PlanError.already_submitted()
            validate_plan(plan)
            if signer is None:
                raise SignerError.not_configured()
        except OrchestratorError as e:
            logger.error(f"Plan rejected before submission: {e}")
            return self._finish(SettlementOutcome.failed(e.message, e.code.value))

        plan.mark_submitted()
        self._set_state(SettlementState.SUBMITTING)
        try:
            result = await self._submit(plan, signer)
        except PartialSubmission as e:
            logger.warning(f"Submission stopped after {e.applied}/{len(plan)} transaction(s) were applied")
            self._refresh_after(plan)
            return self._finish(self._submission_failure(e.error, e.applied))
        except Exception as e:
            return self._finish(self._submission_failure(e, 0))

        tx_hash = extract_tx_hash(result)
        if not tx_hash:
            logger.warning("Signer returned no transaction hash")
            return self._finish(SettlementOutcome.indeterminate())

        self._set_state(SettlementState.AWAITING_CONFIRMATION)
        if outcome_succeeded(result):
            outcome = SettlementOutcome.success(tx_hash)
        else:
            outcome = await self.wait_for_status(tx_hash, plan.account_id)

        if outcome.is_success:
            self._refresh_after(plan)
        return self._finish(outcome)

    def _submission_failure(self, error: Exception, applied: int) -> SettlementOutcome:
        if isinstance(error, ChainFailure):
            return SettlementOutcome.failed(
                error.message,
                error.code.value,
                tx_hash=error.tx_hash,
                failure=error.details.get("failure"),
                applied_transactions=applied,
            )
        classified = classify_signer_error(error)
        if isinstance(classified, SigningCancelled):
            return SettlementOutcome.cancelled(applied)
        return SettlementOutcome.failed(classified.message, classified.code.value, applied_transactions=applied)

    async def _submit(self, plan: TransactionPlan, signer: Signer) -> Any:
        """
        Sign and send as one batch, or one transaction at a time

        In sequence mode the first failure stops the remaining
        transactions; already-applied ones are not rolled back and are
        reported through PartialSubmission.
        """
        transactions = plan.to_wallet_transactions()
        if signer.supports_batch or len(transactions) == 1:
            result = await signer.sign_and_send_transactions(transactions)
            self._raise_on_failure(result)
            return result

        results = []
        for index, transaction in enumerate(transactions):
            logger.info(f"Submitting transaction {index + 1}/{len(transactions)} to {transaction['receiverId']}")
            try:
                result = await signer.sign_and_send_transactions([transaction])
                self._raise_on_failure(result)
            except PartialSubmission as e:
                raise PartialSubmission(e.error, index + e.applied) from e.error
            except Exception as e:
                if index:
                    raise PartialSubmission(e, index) from e
                raise
            if isinstance(result, (list, tuple)):
                results.extend(result)
            else:
                results.append(result)
        return results

    def _raise_on_failure(self, result: Any):
        if result is None:
            return
        failure = outcome_failure(result)
        if failure is None:
            return
        error = ChainFailure.from_status(extract_tx_hash(result), failure)
        applied = applied_before_failure(result)
        if applied:
            raise PartialSubmission(error, applied)
        raise error

    # =========================================================================
    # Confirmation
    # =========================================================================

    async def wait_for_status(self, tx_hash: str, account_id: str) -> SettlementOutcome:
        """
        Poll the transaction status until final or the timeout passes

        An unanswered status resolves to success when optimistic_on_timeout
        is set, else to Indeterminate.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.timeout_seconds

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                kind, detail = await asyncio.wait_for(
                    self._reader.get_tx_status(tx_hash, account_id), timeout=remaining,
                )
            except asyncio.TimeoutError:
                break
            except ReadError as e:
                logger.debug(f"Status of {tx_hash} not available yet: {e}")
            else:
                if kind == "success":
                    return SettlementOutcome.success(tx_hash)
                if kind == "failure":
                    error = ChainFailure.from_status(tx_hash, detail)
                    return SettlementOutcome.failed(
                        error.message, error.code.value, tx_hash=tx_hash, failure=detail,
                    )

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self._config.poll_interval_seconds, remaining))

        if self._config.optimistic_on_timeout:
            logger.warning(f"Status of {tx_hash} unresolved after {self._config.timeout_seconds}s, assuming success")
            return SettlementOutcome.success(tx_hash, confirmed=False)
        return SettlementOutcome.indeterminate(tx_hash)

    def _refresh_after(self, plan: TransactionPlan):
        """Invalidate involved balances and pools, then refetch after a delay"""
        if self._cache is None:
            return
        token_ids = list(plan.involved_tokens)
        if self._contracts.wrap_contract_id in token_ids:
            token_ids.append(self._contracts.native_token_id)
        pool_ids = [plan.pool_id] if plan.pool_id is not None else []

        self._cache.invalidate(plan.account_id, token_ids, pool_ids)
        self._cache.schedule_refetch(
            plan.account_id,
            token_ids,
            pool_ids,
            delay=self._config.propagation_delay_seconds,
        )
