"""
Precondition Resolver Unit Tests

Tests registration, whitelist, AMM deposit and wrap resolution against a
reader double. Read failures must degrade to "not satisfied".
"""

import sys
import asyncio
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from amm_orchestrator.errors import ReadError
from amm_orchestrator.modules.preconditions import PreconditionResolver
from amm_orchestrator.types import REQUIRED_KEYS, ActionKind, PreconditionKey

from conftest import ACCOUNT, AMM, VF, WRAP


ACCOUNT_REG = PreconditionKey.ACCOUNT_REGISTERED_ON_TOKEN
AMM_REG = PreconditionKey.AMM_REGISTERED_ON_TOKEN
WHITELISTED = PreconditionKey.TOKEN_WHITELISTED_WITH_AMM
DEPOSITED = PreconditionKey.AMOUNT_DEPOSITED_IN_AMM
WRAPPED = PreconditionKey.NATIVE_WRAPPED


@pytest.fixture
def resolver(reader, contracts, deposits):
    return PreconditionResolver(reader, contracts, deposits)


class TestResolveSwap:
    """Tests for swap preconditions"""

    def test_all_registered(self, resolver, reader):
        pre = asyncio.run(resolver.resolve_swap(ACCOUNT, VF, WRAP, 100))

        assert pre.action == ActionKind.SWAP
        assert pre.all_satisfied
        assert pre.wrap_shortfall == 0
        assert pre.storage_minimums == {VF: 1_250_000_000_000_000_000_000, WRAP: 1_250_000_000_000_000_000_000}
        # Account and AMM registration on both tokens
        assert reader.is_registered.await_count == 4

    def test_native_input_wraps_exact_amount(self, resolver):
        pre = asyncio.run(resolver.resolve_swap(ACCOUNT, WRAP, VF, 10 ** 24, native_in=True))

        assert pre.wrap_shortfall == 10 ** 24
        assert pre.is_satisfied(WRAPPED, WRAP) is False

    def test_unregistered_output(self, resolver, reader):
        reader.is_registered.side_effect = lambda token_id, account_id: not (
            token_id == VF and account_id == ACCOUNT
        )

        pre = asyncio.run(resolver.resolve_swap(ACCOUNT, WRAP, VF, 100))

        assert pre.is_satisfied(ACCOUNT_REG, VF) is False
        assert pre.is_satisfied(AMM_REG, VF) is True
        assert pre.is_satisfied(ACCOUNT_REG, WRAP) is True
        assert pre.missing(ACCOUNT_REG) == [VF]

    def test_read_failure_is_not_satisfied(self, resolver, reader, deposits):
        def is_registered(token_id, account_id):
            if token_id == VF and account_id == AMM:
                raise ReadError.timeout("https://rpc.example.com", 5)
            return True

        reader.is_registered.side_effect = is_registered
        reader.storage_minimum.side_effect = ReadError.connection_failed("https://rpc.example.com")

        pre = asyncio.run(resolver.resolve_swap(ACCOUNT, WRAP, VF, 100))

        assert pre.is_satisfied(AMM_REG, VF) is False
        assert pre.is_satisfied(ACCOUNT_REG, VF) is True, "Other reads are not aborted"
        assert pre.storage_minimums[VF] == deposits.fallback_storage_minimum


class TestResolveAddLiquidity:
    """Tests for add-liquidity preconditions"""

    def test_partial_deposit_shortfall(self, resolver, reader, pool):
        """100 required with 60 already deposited leaves 40"""
        reader.get_deposit.side_effect = lambda account_id, token_id: {WRAP: 0, VF: 60}[token_id]
        reader.get_token_balance.return_value = 20
        reader.get_whitelisted_tokens.return_value = [WRAP]

        pre = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))

        assert pre.action == ActionKind.ADD_LIQUIDITY
        assert pre.shortfall(VF) == 40
        assert pre.shortfall(WRAP) == 50
        assert pre.wrap_shortfall == 30, "Wallet wNEAR covers part of the deposit"
        assert pre.is_satisfied(DEPOSITED, VF) is False
        assert pre.is_satisfied(WHITELISTED, WRAP) is True
        assert pre.is_satisfied(WHITELISTED, VF) is False
        assert pre.is_satisfied(WRAPPED, WRAP) is False
        reader.get_token_balance.assert_awaited_once_with(WRAP, ACCOUNT)

    def test_already_deposited(self, resolver, reader, pool):
        reader.get_deposit.return_value = 1000

        pre = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))

        assert pre.deposit_shortfalls == {WRAP: 0, VF: 0}
        assert pre.wrap_shortfall == 0
        assert pre.all_satisfied

    def test_wrapped_balance_covers_shortfall(self, resolver, reader, pool):
        reader.get_token_balance.return_value = 10 ** 30

        pre = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))

        assert pre.shortfall(WRAP) == 50
        assert pre.wrap_shortfall == 0
        assert pre.is_satisfied(WRAPPED, WRAP) is True

    def test_whitelist_read_failure(self, resolver, reader, pool):
        reader.get_whitelisted_tokens.side_effect = ReadError.timeout("https://rpc.example.com", 5)
        reader.get_deposit.side_effect = ReadError.connection_failed("https://rpc.example.com")

        pre = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))

        assert pre.missing(WHITELISTED) == [WRAP, VF]
        assert pre.deposit_shortfalls == {WRAP: 50, VF: 100}, "Unknown deposits count as zero"

    def test_pool_without_native(self, resolver, reader):
        from conftest import make_pool
        from amm_orchestrator.types import PoolState, TokenMetadata

        usdt = TokenMetadata(id="usdt.tether-token.near", symbol="USDt", name="Tether USD", decimals=6)
        base = make_pool()
        pool = PoolState(
            id=1,
            token_a=usdt,
            token_b=base.token_b,
            reserves={usdt.id: 10, VF: 20},
            total_shares=5,
        )

        pre = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {usdt.id: 5, VF: 10}))

        assert pre.wrap_shortfall == 0
        assert (WRAPPED, WRAP) not in pre.satisfied
        reader.get_token_balance.assert_not_awaited()


class TestResolveRemoveLiquidity:
    """Tests for remove-liquidity preconditions"""

    def test_account_registration_only(self, resolver, reader, pool):
        reader.is_registered.side_effect = lambda token_id, account_id: token_id == WRAP

        pre = asyncio.run(resolver.resolve_remove_liquidity(ACCOUNT, pool))

        assert pre.action == ActionKind.REMOVE_LIQUIDITY
        assert pre.missing(ACCOUNT_REG) == [VF]
        assert pre.missing(AMM_REG) == []
        assert reader.is_registered.await_count == 2
        for (_, account_id) in [call.args for call in reader.is_registered.await_args_list]:
            assert account_id == ACCOUNT


class TestResolverProperties:
    """Tests for key coverage and repeatability"""

    def test_keys_match_action(self, resolver, pool):
        swap = asyncio.run(resolver.resolve_swap(ACCOUNT, VF, WRAP, 100))
        add = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))
        remove = asyncio.run(resolver.resolve_remove_liquidity(ACCOUNT, pool))

        for pre in (swap, add, remove):
            keys = {key for key, _ in pre.satisfied}
            assert keys == set(REQUIRED_KEYS[pre.action])

    def test_resolving_twice_is_identical(self, resolver, reader, pool):
        reader.get_deposit.side_effect = lambda account_id, token_id: {WRAP: 10, VF: 60}[token_id]
        reader.get_whitelisted_tokens.return_value = [VF]

        first = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))
        second = asyncio.run(resolver.resolve_add_liquidity(ACCOUNT, pool, {WRAP: 50, VF: 100}))

        assert first == second
