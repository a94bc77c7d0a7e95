"""
Shared fixtures for unit tests.

Configuration objects are built with explicit values so a local .env
cannot change test expectations. No test here touches the network.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from amm_orchestrator.config import (
    TGAS,
    ContractsConfig,
    DepositConfig,
    GasConfig,
    QuoteConfig,
    SettlementConfig,
    TradingConfig,
)
from amm_orchestrator.types import PoolState, TokenMetadata


AMM = "v2.ref-finance.near"
WRAP = "wrap.near"
VF = "veganfriends.tkn.near"
ACCOUNT = "alice.near"
POOL_ID = 5094


def make_pool(wrap_reserve=1000, vf_reserve=2000, total_shares=500, pool_kind="SIMPLE_POOL", pool_id=POOL_ID):
    """Two-token pool of wrapped native and VF"""
    near = TokenMetadata(id="near", symbol="NEAR", name="Near", decimals=24, contract_id=WRAP)
    vf = TokenMetadata(id=VF, symbol="VEGANFRIENDS", name="Vegan Friends Token", decimals=18)
    return PoolState(
        id=pool_id,
        token_a=near,
        token_b=vf,
        reserves={WRAP: wrap_reserve, VF: vf_reserve},
        total_shares=total_shares,
        pool_kind=pool_kind,
        total_fee=30,
    )


@pytest.fixture
def contracts():
    return ContractsConfig(
        amm_contract_id=AMM,
        wrap_contract_id=WRAP,
        native_token_id="near",
        default_pool_id=POOL_ID,
        default_pair_token_id=VF,
    )


@pytest.fixture
def gas():
    return GasConfig(
        registration=30 * TGAS,
        wrap=50 * TGAS,
        deposit=100 * TGAS,
        whitelist=30 * TGAS,
        swap=180 * TGAS,
        liquidity=150 * TGAS,
        withdraw=100 * TGAS,
        safety_buffer=10 * TGAS,
    )


@pytest.fixture
def deposits():
    return DepositConfig(
        fallback_storage_minimum=12_500_000_000_000_000_000_000,
        lp_storage_deposit=780_000_000_000_000_000_000,
        whitelist_before_deposits=False,
    )


@pytest.fixture
def trading():
    return TradingConfig(
        default_slippage_percent=0.5,
        high_price_impact_percent=5.0,
        native_gas_reserve=25,
        lp_share_decimals=24,
    )


@pytest.fixture
def quote_config():
    return QuoteConfig(debounce_seconds=0.01, refresh_interval_seconds=10.0, inactivity_seconds=30.0)


@pytest.fixture
def settlement_config():
    return SettlementConfig(
        timeout_seconds=0.2,
        poll_interval_seconds=0.01,
        propagation_delay_seconds=0.0,
        optimistic_on_timeout=True,
    )


@pytest.fixture
def pool():
    return make_pool()


@pytest.fixture
def reader():
    """Reader double: every account is registered, nothing is deposited"""
    mock = Mock()
    mock.amm_contract_id = AMM
    mock.native_token_id = "near"
    mock.is_registered = AsyncMock(return_value=True)
    mock.storage_minimum = AsyncMock(return_value=1_250_000_000_000_000_000_000)
    mock.get_whitelisted_tokens = AsyncMock(return_value=[WRAP, VF])
    mock.get_deposit = AsyncMock(return_value=0)
    mock.get_token_balance = AsyncMock(return_value=0)
    mock.get_return = AsyncMock(return_value=0)
    mock.get_tx_status = AsyncMock(return_value=(None, "Started"))
    return mock
