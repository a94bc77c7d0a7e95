"""
Transaction Plan Builder

Turns a resolved PreconditionSet and a quote into the minimal ordered
TransactionPlan:

    registrations -> native wrap -> AMM deposits -> whitelist
        -> terminal call -> withdrawals (removal only)

With DepositConfig.whitelist_before_deposits the whitelist call moves ahead
of the AMM deposits.

Steps whose precondition already holds are omitted. Adjacent steps with
the same receiver are signed as one transaction while the combined gas
stays within the per-transaction limit.
"""

import json
import logging
from decimal import Decimal
from typing import List, Mapping, Optional, Tuple, Union

from ..config import (
    config as global_config,
    ContractsConfig,
    DepositConfig,
    GasConfig,
    TradingConfig,
)
from ..errors import InsufficientFunds, PlanError, ValidationError
from ..protocols.ref_finance import constants as ref
from ..types import (
    ActionKind,
    FunctionCall,
    LiquidityQuote,
    PoolState,
    PreconditionKey,
    PreconditionSet,
    QuoteResult,
    RemovalQuote,
    TransactionDescriptor,
    TransactionPlan,
)
from ..units import parse_contract_units

logger = logging.getLogger(__name__)

Step = Tuple[str, FunctionCall]


class TransactionPlanBuilder:
    """
    Builds and validates transaction plans

    Usage:
        builder = TransactionPlanBuilder()
        amount = builder.validate_amount("1.5", 24, balance, native=True)
        plan = builder.build_swap(pre, quote, pool_id=5094, native_in=True)
        builder.validate_plan(plan)
    """

    def __init__(
        self,
        contracts: Optional[ContractsConfig] = None,
        gas: Optional[GasConfig] = None,
        deposits: Optional[DepositConfig] = None,
        trading: Optional[TradingConfig] = None,
    ):
        self._contracts = contracts or global_config.contracts
        self._gas = gas or global_config.gas
        self._deposits = deposits or global_config.deposits
        self._trading = trading or global_config.trading

    @property
    def amm_contract_id(self) -> str:
        return self._contracts.amm_contract_id

    @property
    def wrap_contract_id(self) -> str:
        return self._contracts.wrap_contract_id

    def _call(self, method: str, args: dict, budget: int, deposit: int = 0) -> FunctionCall:
        return FunctionCall(
            method=method,
            args=args,
            gas=budget + self._gas.safety_buffer,
            deposit=deposit,
        )

    # =========================================================================
    # Input validation
    # =========================================================================

    def validate_amount(
        self,
        value: Union[str, int, Decimal, None],
        decimals: int,
        balance: Optional[int] = None,
        native: bool = False,
        token: str = "",
    ) -> int:
        """
        Validate a user-typed amount and convert it to contract units

        Args:
            value: Human-readable amount
            decimals: Token decimals
            balance: Available balance (contract units), skipped if None
            native: Amount is paid in native currency (gas reserve applies)
            token: Token name for error messages

        Returns:
            Amount in contract units

        Raises:
            ValidationError: Empty, not numeric, or not positive
            InsufficientFunds: Above balance, or leaves less than the gas reserve
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError.empty_amount()
        amount = parse_contract_units(value, decimals)
        if amount <= 0:
            raise ValidationError.non_positive_amount()

        if balance is not None:
            if amount > balance:
                raise InsufficientFunds.token_balance(token, amount, balance)
            reserve = self._trading.native_gas_reserve
            if native and amount + reserve > balance:
                raise InsufficientFunds.gas_reserve(token, amount, balance, reserve)
        return amount

    def validate_pair(self, pool: PoolState, token_in: Optional[str], token_out: Optional[str]) -> Tuple[str, str]:
        """
        Validate a swap pair against a pool

        Args:
            pool: Target pool
            token_in: Input display id (native sentinel allowed)
            token_out: Output display id

        Returns:
            (input contract id, output contract id)
        """
        if not token_in or not token_out:
            raise ValidationError.missing_token()
        if token_in == token_out:
            raise ValidationError.same_token()

        contracts = []
        for token_id in (token_in, token_out):
            contract_id = self.wrap_contract_id if token_id == self._contracts.native_token_id else token_id
            if not pool.has_token(contract_id):
                raise ValidationError.token_not_in_pool(token_id, pool.id)
            contracts.append(contract_id)
        if contracts[0] == contracts[1]:
            raise ValidationError.same_token()
        return contracts[0], contracts[1]

    def validate_funding(
        self,
        pre: PreconditionSet,
        wallet_balances: Mapping[str, int],
        native_balance: Optional[int] = None,
    ):
        """
        Check that the wallet covers what still has to be deposited

        Wrapped native is funded from the wrapped balance plus a native
        wrap, which must leave the gas reserve untouched.

        Args:
            pre: Resolved add-liquidity preconditions
            wallet_balances: Contract id -> wallet balance (missing entries are skipped)
            native_balance: Native balance, if known

        Raises:
            InsufficientFunds: If a shortfall cannot be covered
        """
        for token_id, shortfall in pre.deposit_shortfalls.items():
            if shortfall <= 0:
                continue
            if token_id == self.wrap_contract_id:
                if native_balance is None:
                    continue
                reserve = self._trading.native_gas_reserve
                if pre.wrap_shortfall > native_balance:
                    raise InsufficientFunds.token_balance(
                        self._contracts.native_token_id, pre.wrap_shortfall, native_balance,
                    )
                if pre.wrap_shortfall and pre.wrap_shortfall + reserve > native_balance:
                    raise InsufficientFunds.gas_reserve(
                        self._contracts.native_token_id, pre.wrap_shortfall, native_balance, reserve,
                    )
                continue
            available = wallet_balances.get(token_id)
            if available is not None and shortfall > available:
                raise InsufficientFunds.token_balance(token_id, shortfall, available)

    def validate_shares(self, shares: int, available: int) -> int:
        """LP shares to burn must be positive and held by the account"""
        if shares <= 0:
            raise ValidationError.non_positive_amount("shares")
        if shares > available:
            raise ValidationError.shares_exceeded(shares, available)
        return shares

    # =========================================================================
    # Steps
    # =========================================================================

    def _registration_steps(self, pre: PreconditionSet, token_ids: List[str]) -> List[Step]:
        steps: List[Step] = []
        for token_id in token_ids:
            minimum = pre.storage_minimums.get(token_id, self._deposits.fallback_storage_minimum)
            for key, account_id in (
                (PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN, pre.account_id),
                (PreconditionKey.AMM_REGISTERED_ON_TOKEN, self.amm_contract_id),
            ):
                if (key, token_id) not in pre.satisfied or pre.is_satisfied(key, token_id):
                    continue
                steps.append((token_id, self._call(
                    ref.STORAGE_DEPOSIT,
                    {"account_id": account_id, "registration_only": True},
                    self._gas.registration,
                    minimum,
                )))
        return steps

    def _wrap_steps(self, pre: PreconditionSet) -> List[Step]:
        if pre.wrap_shortfall <= 0:
            return []
        return [(self.wrap_contract_id, self._call(
            ref.NEAR_DEPOSIT, {}, self._gas.wrap, pre.wrap_shortfall,
        ))]

    def _deposit_steps(self, pre: PreconditionSet, token_ids: List[str]) -> List[Step]:
        steps: List[Step] = []
        for token_id in token_ids:
            shortfall = pre.shortfall(token_id)
            if shortfall <= 0:
                continue
            steps.append((token_id, self._call(
                ref.FT_TRANSFER_CALL,
                {
                    "receiver_id": self.amm_contract_id,
                    "amount": str(shortfall),
                    "msg": ref.DEPOSIT_ONLY_MSG,
                },
                self._gas.deposit,
                self._deposits.security_deposit,
            )))
        return steps

    def _whitelist_steps(self, pre: PreconditionSet) -> List[Step]:
        missing = pre.missing(PreconditionKey.TOKEN_WHITELISTED_WITH_AMM)
        if not missing:
            return []
        return [(self.amm_contract_id, self._call(
            ref.REGISTER_TOKENS,
            {"token_ids": missing},
            self._gas.whitelist,
            self._deposits.security_deposit,
        ))]

    def _withdraw_steps(self, token_ids: List[str]) -> List[Step]:
        return [
            (self.amm_contract_id, self._call(
                ref.WITHDRAW,
                {
                    "token_id": token_id,
                    "amount": ref.WITHDRAW_ALL,
                    "unregister": False,
                    "skip_unwrap_near": False,
                },
                self._gas.withdraw,
                self._deposits.security_deposit,
            ))
            for token_id in token_ids
        ]

    def merge(self, steps: List[Step]) -> Tuple[TransactionDescriptor, ...]:
        """Group adjacent same-receiver steps, respecting the gas limit"""
        groups: List[Tuple[str, List[FunctionCall]]] = []
        for receiver_id, call in steps:
            if groups and groups[-1][0] == receiver_id:
                calls = groups[-1][1]
                if sum(c.gas for c in calls) + call.gas <= ref.MAX_TRANSACTION_GAS:
                    calls.append(call)
                    continue
            groups.append((receiver_id, [call]))
        return tuple(TransactionDescriptor(receiver_id, tuple(calls)) for receiver_id, calls in groups)

    def _plan(
        self,
        action: ActionKind,
        pre: PreconditionSet,
        steps: List[Step],
        involved_tokens: List[str],
        pool_id: int,
    ) -> TransactionPlan:
        plan = TransactionPlan(
            action=action,
            account_id=pre.account_id,
            transactions=self.merge(steps),
            involved_tokens=tuple(dict.fromkeys(involved_tokens)),
            pool_id=pool_id,
        )
        logger.info(f"Built {action.value} plan: {len(plan)} transaction(s), methods={plan.methods}")
        return plan

    # =========================================================================
    # Plans
    # =========================================================================

    def build_swap(
        self,
        pre: PreconditionSet,
        quote: QuoteResult,
        pool_id: int,
        native_in: bool = False,
        native_out: bool = False,
    ) -> TransactionPlan:
        """
        Swap plan: registrations, wrap (native input), ft_transfer_call swap

        Args:
            pre: Resolved swap preconditions
            quote: Fresh quote; its min_received protects the swap
            pool_id: Pool to swap through
            native_in: Input is native currency (wrapped first)
            native_out: Output is native currency (unwrapped by the AMM)
        """
        msg = {
            "actions": [{
                "pool_id": pool_id,
                "token_in": quote.token_in,
                "token_out": quote.token_out,
                "amount_in": str(quote.amount_in),
                "min_amount_out": str(quote.min_received),
            }],
        }
        if native_out:
            msg["skip_unwrap_near"] = False

        steps = self._registration_steps(pre, [quote.token_in, quote.token_out])
        if native_in:
            steps += self._wrap_steps(pre)
        steps.append((quote.token_in, self._call(
            ref.FT_TRANSFER_CALL,
            {
                "receiver_id": self.amm_contract_id,
                "amount": str(quote.amount_in),
                "msg": json.dumps(msg, separators=(",", ":")),
            },
            self._gas.swap,
            self._deposits.security_deposit,
        )))
        return self._plan(ActionKind.SWAP, pre, steps, [quote.token_in, quote.token_out], pool_id)

    def build_add_liquidity(
        self,
        pre: PreconditionSet,
        pool: PoolState,
        quote: LiquidityQuote,
    ) -> TransactionPlan:
        """
        Add-liquidity plan with exact-shortfall wrap and deposits

        Simple pools are protected by min_amounts, stable and rated pools
        by min_shares.
        """
        token_ids = list(pool.token_account_ids)
        steps = self._registration_steps(pre, token_ids)
        steps += self._wrap_steps(pre)
        if self._deposits.whitelist_before_deposits:
            steps += self._whitelist_steps(pre)
            steps += self._deposit_steps(pre, token_ids)
        else:
            steps += self._deposit_steps(pre, token_ids)
            steps += self._whitelist_steps(pre)

        amounts = [str(a) for a in pool.ordered(quote.amounts)]
        if pool.is_simple:
            args = {"pool_id": pool.id, "amounts": amounts}
            if quote.min_amounts:
                args["min_amounts"] = [str(a) for a in pool.ordered(quote.min_amounts)]
            method = ref.ADD_LIQUIDITY
        else:
            args = {"pool_id": pool.id, "amounts": amounts, "min_shares": str(quote.min_shares)}
            method = ref.ADD_STABLE_LIQUIDITY
        steps.append((self.amm_contract_id, self._call(
            method, args, self._gas.liquidity, self._deposits.lp_storage_deposit,
        )))
        return self._plan(ActionKind.ADD_LIQUIDITY, pre, steps, token_ids, pool.id)

    def build_remove_liquidity(
        self,
        pre: PreconditionSet,
        pool: PoolState,
        quote: RemovalQuote,
    ) -> TransactionPlan:
        """Remove-liquidity plan followed by withdrawal of both tokens"""
        token_ids = list(pool.token_account_ids)
        steps = self._registration_steps(pre, token_ids)
        steps.append((self.amm_contract_id, self._call(
            ref.REMOVE_LIQUIDITY,
            {
                "pool_id": pool.id,
                "shares": str(quote.shares),
                "min_amounts": [str(a) for a in pool.ordered(quote.min_amounts)],
            },
            self._gas.liquidity,
            self._deposits.security_deposit,
        )))
        steps += self._withdraw_steps(token_ids)
        return self._plan(ActionKind.REMOVE_LIQUIDITY, pre, steps, token_ids, pool.id)

    # =========================================================================
    # Plan validation
    # =========================================================================

    def validate_plan(self, plan: TransactionPlan) -> TransactionPlan:
        return validate_plan(plan)


def validate_plan(plan: TransactionPlan) -> TransactionPlan:
    """
    Check every descriptor before submission

    Raises:
        PlanError: Empty plan, missing receiver or method, bad gas or
            deposit, or a transaction above the gas limit
    """
    if not plan.transactions:
        raise PlanError.empty()
    for index, tx in enumerate(plan.transactions):
        if not isinstance(tx.receiver_id, str) or not tx.receiver_id:
            raise PlanError.invalid_descriptor(index, "missing receiver")
        if not tx.calls:
            raise PlanError.invalid_descriptor(index, "no calls")
        for call in tx.calls:
            if not isinstance(call.method, str) or not call.method:
                raise PlanError.invalid_descriptor(index, "missing method name")
            if not isinstance(call.args, Mapping):
                raise PlanError.invalid_descriptor(index, f"{call.method}: args must be an object")
            if not _is_amount(call.gas) or call.gas == 0:
                raise PlanError.invalid_descriptor(index, f"{call.method}: invalid gas {call.gas!r}")
            if not _is_amount(call.deposit):
                raise PlanError.invalid_descriptor(index, f"{call.method}: invalid deposit {call.deposit!r}")
        total_gas = sum(call.gas for call in tx.calls)
        if total_gas > ref.MAX_TRANSACTION_GAS:
            raise PlanError.invalid_descriptor(index, f"gas {total_gas} exceeds transaction limit")
    return plan


def _is_amount(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
