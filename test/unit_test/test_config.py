"""
Configuration Unit Tests

Tests environment parsing, defaults, endpoint ordering and logging setup.
"""

import sys
import logging
from pathlib import Path

import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from amm_orchestrator import config as config_module
from amm_orchestrator.config import (
    ONE_NEAR,
    TGAS,
    DepositConfig,
    GasConfig,
    LoggingConfig,
    RpcConfig,
    SettlementConfig,
    TradingConfig,
    reload_config,
    setup_logging,
)


class TestEnvironment:
    """Tests for environment-driven defaults"""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("GAS_SWAP", str(200 * TGAS))
        monkeypatch.setenv("DEFAULT_SLIPPAGE_PERCENT", "1.5")
        monkeypatch.setenv("SETTLEMENT_OPTIMISTIC_ON_TIMEOUT", "false")

        assert GasConfig().swap == 200 * TGAS
        assert TradingConfig().default_slippage_percent == 1.5
        assert SettlementConfig().optimistic_on_timeout is False

    def test_invalid_numbers_use_default(self, monkeypatch, caplog):
        monkeypatch.setenv("GAS_SWAP", "lots")
        monkeypatch.setenv("SETTLEMENT_TIMEOUT_SECONDS", "soon")

        with caplog.at_level(logging.WARNING):
            assert GasConfig().swap == 180 * TGAS
            assert SettlementConfig().timeout_seconds == 3.0
        assert "GAS_SWAP" in caplog.text

    def test_defaults(self, monkeypatch):
        for key in (
            "NATIVE_GAS_RESERVE",
            "GAS_SAFETY_BUFFER",
            "SETTLEMENT_OPTIMISTIC_ON_TIMEOUT",
            "WHITELIST_BEFORE_DEPOSITS",
        ):
            monkeypatch.delenv(key, raising=False)

        assert TradingConfig().native_gas_reserve == ONE_NEAR // 4
        assert GasConfig().safety_buffer == 10 * TGAS
        assert SettlementConfig().optimistic_on_timeout is True
        assert DepositConfig().whitelist_before_deposits is False

        monkeypatch.setenv("WHITELIST_BEFORE_DEPOSITS", "true")
        assert DepositConfig().whitelist_before_deposits is True

    def test_endpoints_prioritized(self):
        rpc = RpcConfig(
            url="https://primary.example.com",
            secondary_url="",
            tertiary_url="https://primary.example.com",
            fallback_url="https://rpc.mainnet.near.org",
        )
        assert rpc.endpoints() == ["https://primary.example.com", "https://rpc.mainnet.near.org"]

    def test_reload(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("DEFAULT_POOL_ID", "79")
        try:
            reloaded = reload_config()
            assert reloaded.contracts.default_pool_id == 79
            assert config_module.get_config() is reloaded
        finally:
            config_module.config = original


class TestLogging:
    """Tests for setup_logging"""

    @pytest.fixture(autouse=True)
    def reset_handlers(self):
        yield
        setup_logging(LoggingConfig(log_file="", console_output=False))

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "orchestrator.log"

        logger = setup_logging(LoggingConfig(
            log_file=str(log_file),
            log_level="DEBUG",
            console_output=False,
        ))
        logging.getLogger("amm_orchestrator.modules.swap").info("swap submitted")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "swap submitted" in log_file.read_text(encoding="utf-8")

    def test_handlers_replaced(self):
        setup_logging(LoggingConfig(log_file="", console_output=True))
        logger = setup_logging(LoggingConfig(log_file="", console_output=True, log_level="warning"))

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
