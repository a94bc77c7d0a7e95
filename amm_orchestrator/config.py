"""
Configuration management for the AMM Orchestrator

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv


# 1 Tgas in gas units
TGAS = 10 ** 12

# 1 NEAR in yoctoNEAR
ONE_NEAR = 10 ** 24


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # amm_orchestrator package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class RpcConfig:
    """
    RPC client configuration

    Endpoints are tried in priority order: primary, secondary, tertiary,
    then the public fallback.
    """
    url: str = field(default_factory=lambda: _get_env("NEAR_RPC_URL", ""))
    secondary_url: str = field(default_factory=lambda: _get_env("NEAR_RPC_SECONDARY_URL", "https://free.rpc.fastnear.com"))
    tertiary_url: str = field(default_factory=lambda: _get_env("NEAR_RPC_TERTIARY_URL", ""))
    fallback_url: str = field(default_factory=lambda: _get_env("NEAR_RPC_FALLBACK_URL", "https://rpc.mainnet.near.org"))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("RPC_TIMEOUT_SECONDS", 30.0))
    max_retries: int = field(default_factory=lambda: _get_env_int("RPC_MAX_RETRIES", 3))
    retry_delay_seconds: float = field(default_factory=lambda: _get_env_float("RPC_RETRY_DELAY_SECONDS", 0.5))
    finality: str = field(default_factory=lambda: _get_env("RPC_FINALITY", "final"))
    # Consecutive failures before an endpoint loses its preferred slot
    endpoint_failure_threshold: int = field(default_factory=lambda: _get_env_int("RPC_ENDPOINT_FAILURE_THRESHOLD", 3))

    def endpoints(self) -> List[str]:
        """Prioritized, de-duplicated list of configured endpoints"""
        result: List[str] = []
        for url in (self.url, self.secondary_url, self.tertiary_url, self.fallback_url):
            if url and url not in result:
                result.append(url)
        return result


@dataclass
class ContractsConfig:
    """Contract identifiers for the AMM deployment"""
    amm_contract_id: str = field(default_factory=lambda: _get_env("AMM_CONTRACT_ID", "v2.ref-finance.near"))
    wrap_contract_id: str = field(default_factory=lambda: _get_env("WRAP_CONTRACT_ID", "wrap.near"))
    # Display id of the native currency; never a contract
    native_token_id: str = field(default_factory=lambda: _get_env("NATIVE_TOKEN_ID", "near"))
    default_pool_id: int = field(default_factory=lambda: _get_env_int("DEFAULT_POOL_ID", 5094))
    default_pair_token_id: str = field(default_factory=lambda: _get_env("DEFAULT_PAIR_TOKEN_ID", "veganfriends.tkn.near"))


@dataclass
class GasConfig:
    """Gas budgets per operation class (gas units)"""
    registration: int = field(default_factory=lambda: _get_env_int("GAS_REGISTRATION", 30 * TGAS))
    wrap: int = field(default_factory=lambda: _get_env_int("GAS_WRAP", 50 * TGAS))
    deposit: int = field(default_factory=lambda: _get_env_int("GAS_DEPOSIT", 100 * TGAS))
    whitelist: int = field(default_factory=lambda: _get_env_int("GAS_WHITELIST", 30 * TGAS))
    swap: int = field(default_factory=lambda: _get_env_int("GAS_SWAP", 180 * TGAS))
    liquidity: int = field(default_factory=lambda: _get_env_int("GAS_LIQUIDITY", 150 * TGAS))
    withdraw: int = field(default_factory=lambda: _get_env_int("GAS_WITHDRAW", 100 * TGAS))
    # Added on top of every budget above
    safety_buffer: int = field(default_factory=lambda: _get_env_int("GAS_SAFETY_BUFFER", 10 * TGAS))


@dataclass
class DepositConfig:
    """Attached deposits in yoctoNEAR"""
    # Used when storage_balance_bounds cannot be read
    fallback_storage_minimum: int = field(default_factory=lambda: _get_env_int(
        "FALLBACK_STORAGE_MINIMUM", 12_500_000_000_000_000_000_000
    ))
    lp_storage_deposit: int = field(default_factory=lambda: _get_env_int(
        "LP_STORAGE_DEPOSIT", 780_000_000_000_000_000_000
    ))
    security_deposit: int = 1
    # Emit register_tokens ahead of the AMM deposits; the AMM refuses
    # ft_transfer_call deposits of tokens not yet whitelisted
    whitelist_before_deposits: bool = field(default_factory=lambda: _get_env_bool("WHITELIST_BEFORE_DEPOSITS", False))


@dataclass
class TradingConfig:
    """Default trading parameters"""
    default_slippage_percent: float = field(default_factory=lambda: _get_env_float("DEFAULT_SLIPPAGE_PERCENT", 0.5))
    high_price_impact_percent: float = field(default_factory=lambda: _get_env_float("HIGH_PRICE_IMPACT_PERCENT", 5.0))
    # Native balance kept back for gas when the native currency is spent
    native_gas_reserve: int = field(default_factory=lambda: _get_env_int("NATIVE_GAS_RESERVE", ONE_NEAR // 4))
    lp_share_decimals: int = field(default_factory=lambda: _get_env_int("LP_SHARE_DECIMALS", 24))


@dataclass
class QuoteConfig:
    """Quote refresh timing"""
    debounce_seconds: float = field(default_factory=lambda: _get_env_float("QUOTE_DEBOUNCE_SECONDS", 0.5))
    refresh_interval_seconds: float = field(default_factory=lambda: _get_env_float("QUOTE_REFRESH_INTERVAL_SECONDS", 10.0))
    inactivity_seconds: float = field(default_factory=lambda: _get_env_float("QUOTE_INACTIVITY_SECONDS", 30.0))


@dataclass
class SettlementConfig:
    """Settlement monitoring"""
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("SETTLEMENT_TIMEOUT_SECONDS", 3.0))
    poll_interval_seconds: float = field(default_factory=lambda: _get_env_float("SETTLEMENT_POLL_INTERVAL_SECONDS", 0.5))
    propagation_delay_seconds: float = field(default_factory=lambda: _get_env_float("SETTLEMENT_PROPAGATION_DELAY_SECONDS", 1.5))
    # Resolve an unanswered status query to success after timeout_seconds
    optimistic_on_timeout: bool = field(default_factory=lambda: _get_env_bool("SETTLEMENT_OPTIMISTIC_ON_TIMEOUT", True))


def _get_default_log_path() -> str:
    """Get default log file path under amm_orchestrator/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"amm_orchestrator_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (empty disables file output)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))

    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))

    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))

    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))

    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from amm_orchestrator.config import config

        print(config.rpc.endpoints())
        print(config.contracts.amm_contract_id)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    gas: GasConfig = field(default_factory=GasConfig)
    deposits: DepositConfig = field(default_factory=DepositConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)
    quote: QuoteConfig = field(default_factory=QuoteConfig)
    settlement: SettlementConfig = field(default_factory=SettlementConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "amm_orchestrator",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure

    Returns:
        Configured logger instance
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to release file handles
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
        f"{logger_name}.protocols",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger


def enable_file_logging(
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Quick setup for file logging.

    Args:
        log_file: Path to log file (defaults to amm_orchestrator/log/ with a UTC timestamp)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        console: Also output to console

    Returns:
        Configured logger
    """
    if log_file is None:
        log_file = config.logging.log_file or _get_default_log_path()

    log_config = LoggingConfig(
        log_file=log_file,
        log_level=level,
        console_output=console,
    )
    return setup_logging(log_config)
