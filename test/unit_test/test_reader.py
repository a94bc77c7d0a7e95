"""
Remote State Reader and Token Registry Unit Tests

Tests typed view calls against an RPC double: argument shapes, decoding,
registration semantics and metadata fallbacks.
"""

import sys
import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from amm_orchestrator.errors import ErrorCode, ReadError
from amm_orchestrator.modules.reader import RemoteStateReader
from amm_orchestrator.modules.tokens import TokenRegistry

from conftest import ACCOUNT, AMM, POOL_ID, VF, WRAP


@pytest.fixture
def rpc():
    mock = Mock()
    mock.call_function = AsyncMock(return_value=None)
    mock.view_account = AsyncMock(return_value={"amount": "5000000000000000000000000"})
    mock.tx_status = AsyncMock(return_value={"status": {"SuccessValue": ""}})
    return mock


@pytest.fixture
def state_reader(rpc, contracts):
    return RemoteStateReader(rpc, contracts)


class TestBalances:
    """Tests for native and token balances"""

    def test_native_balance_uses_view_account(self, state_reader, rpc):
        balance = asyncio.run(state_reader.get_token_balance("near", ACCOUNT))

        assert balance == 5 * 10 ** 24
        rpc.view_account.assert_awaited_once_with(ACCOUNT)
        rpc.call_function.assert_not_awaited()

    def test_token_balance(self, state_reader, rpc):
        rpc.call_function.return_value = "1500"

        balance = asyncio.run(state_reader.get_token_balance(VF, ACCOUNT))

        assert balance == 1500
        rpc.call_function.assert_awaited_once_with(VF, "ft_balance_of", {"account_id": ACCOUNT})

    def test_malformed_balance(self, state_reader, rpc):
        rpc.call_function.return_value = "-1"

        with pytest.raises(ReadError) as exc_info:
            asyncio.run(state_reader.get_token_balance(VF, ACCOUNT))
        assert exc_info.value.code == ErrorCode.READ_INVALID_RESPONSE


class TestAmmState:
    """Tests for pool, estimate, deposit and whitelist reads"""

    def test_get_pool(self, state_reader, rpc):
        rpc.call_function.return_value = {
            "pool_kind": "SIMPLE_POOL",
            "token_account_ids": [WRAP, VF],
            "amounts": ["1000", "2000"],
            "total_fee": 30,
            "shares_total_supply": "500",
        }

        raw = asyncio.run(state_reader.get_pool(POOL_ID))

        assert raw.reserves == {WRAP: 1000, VF: 2000}
        assert raw.shares_total_supply == 500
        rpc.call_function.assert_awaited_once_with(AMM, "get_pool", {"pool_id": POOL_ID})

    def test_get_return_args(self, state_reader, rpc):
        rpc.call_function.return_value = "180"

        amount = asyncio.run(state_reader.get_return(POOL_ID, WRAP, 10 ** 24, VF))

        assert amount == 180
        rpc.call_function.assert_awaited_once_with(AMM, "get_return", {
            "pool_id": POOL_ID,
            "token_in": WRAP,
            "amount_in": "1000000000000000000000000",
            "token_out": VF,
        })

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_estimate_is_zero(self, state_reader, rpc, raw):
        rpc.call_function.return_value = raw
        assert asyncio.run(state_reader.get_return(POOL_ID, WRAP, 1, VF)) == 0

    def test_deposits(self, state_reader, rpc):
        rpc.call_function.return_value = None
        assert asyncio.run(state_reader.get_deposit(ACCOUNT, VF)) == 0

        rpc.call_function.return_value = {WRAP: "10", VF: "60"}
        deposits = asyncio.run(state_reader.get_deposits(ACCOUNT))
        assert deposits.get(VF) == 60
        assert deposits.get("usdt.tether-token.near") == 0

    def test_whitelist(self, state_reader, rpc):
        rpc.call_function.return_value = [WRAP]
        assert asyncio.run(state_reader.get_whitelisted_tokens(ACCOUNT)) == [WRAP]

        rpc.call_function.return_value = [WRAP, 5]
        with pytest.raises(ReadError):
            asyncio.run(state_reader.get_whitelisted_tokens(ACCOUNT))

    def test_pool_shares(self, state_reader, rpc):
        rpc.call_function.return_value = "42"
        assert asyncio.run(state_reader.get_pool_shares(POOL_ID, ACCOUNT)) == 42
        rpc.call_function.assert_awaited_once_with(
            AMM, "get_pool_shares", {"pool_id": POOL_ID, "account_id": ACCOUNT},
        )


class TestRegistration:
    """Tests for storage registration semantics"""

    def test_registered(self, state_reader, rpc):
        rpc.call_function.return_value = {"total": "1250000000000000000000", "available": "0"}
        assert asyncio.run(state_reader.is_registered(VF, ACCOUNT)) is True

    def test_not_registered(self, state_reader, rpc):
        rpc.call_function.return_value = None
        assert asyncio.run(state_reader.is_registered(VF, ACCOUNT)) is False

    def test_no_storage_method_counts_as_registered(self, state_reader, rpc):
        rpc.call_function.side_effect = ReadError.method_not_found(VF, "storage_balance_of")
        assert asyncio.run(state_reader.is_registered(VF, ACCOUNT)) is True

    def test_other_errors_propagate(self, state_reader, rpc):
        rpc.call_function.side_effect = ReadError.timeout("https://rpc.example.com", 5)
        with pytest.raises(ReadError) as exc_info:
            asyncio.run(state_reader.is_registered(VF, ACCOUNT))
        assert exc_info.value.code == ErrorCode.READ_TIMEOUT

    def test_storage_minimum(self, state_reader, rpc):
        rpc.call_function.return_value = {"min": "1250000000000000000000", "max": None}
        assert asyncio.run(state_reader.storage_minimum(VF)) == 1_250_000_000_000_000_000_000
        rpc.call_function.assert_awaited_once_with(VF, "storage_balance_bounds", {})


class TestTxStatus:

    def test_success(self, state_reader, rpc):
        assert asyncio.run(state_reader.get_tx_status("9xQ", ACCOUNT)) == ("success", "")
        rpc.tx_status.assert_awaited_once_with("9xQ", ACCOUNT)

    def test_pending(self, state_reader, rpc):
        rpc.tx_status.return_value = {"status": "Started"}
        assert asyncio.run(state_reader.get_tx_status("9xQ", ACCOUNT)) == (None, "Started")


class TestTokenRegistry:
    """Tests for metadata lookup, caching and fallbacks"""

    @pytest.fixture
    def metadata_reader(self):
        mock = Mock()
        mock.get_token_metadata = AsyncMock()
        return mock

    def test_native(self, metadata_reader, contracts):
        tokens = TokenRegistry(metadata_reader, contracts, cache={})

        near = asyncio.run(tokens.get("near"))

        assert near.symbol == "NEAR"
        assert near.contract_id == WRAP
        assert tokens.contract_id("near") == WRAP
        assert tokens.contract_id(VF) == VF
        assert asyncio.run(tokens.for_contract(WRAP)).id == "near"
        metadata_reader.get_token_metadata.assert_not_awaited()

    def test_fetched_once(self, metadata_reader, contracts):
        from amm_orchestrator.types import TokenMetadata

        metadata_reader.get_token_metadata.return_value = TokenMetadata(
            id=VF, symbol="VEGANFRIENDS", name="Vegan Friends", decimals=18,
        )
        tokens = TokenRegistry(metadata_reader, contracts, cache={})

        first = asyncio.run(tokens.get(VF))
        second = asyncio.run(tokens.get(VF))

        assert first is second
        assert metadata_reader.get_token_metadata.await_count == 1

    def test_static_fallback_not_cached(self, metadata_reader, contracts):
        metadata_reader.get_token_metadata.side_effect = ReadError.timeout("https://rpc.example.com", 5)
        cache = {}
        tokens = TokenRegistry(metadata_reader, contracts, cache=cache)

        vf = asyncio.run(tokens.get(VF))

        assert vf.decimals == 18
        assert cache == {}

    def test_generic_fallback(self, metadata_reader, contracts):
        metadata_reader.get_token_metadata.side_effect = ReadError.timeout("https://rpc.example.com", 5)
        tokens = TokenRegistry(metadata_reader, contracts, cache={})

        token = asyncio.run(tokens.get("usdt.tether-token.near"))

        assert token.symbol == "usdt"
        assert token.decimals == 6
