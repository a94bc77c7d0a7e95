"""
Ref Finance contract constants

Method names for the AMM, fungible-token and wrapped-native contracts.
Gas budgets and attached deposits come from amm_orchestrator.config.
"""

# AMM view methods
GET_POOL = "get_pool"
GET_RETURN = "get_return"
GET_DEPOSIT = "get_deposit"
GET_DEPOSITS = "get_deposits"
GET_POOL_SHARES = "get_pool_shares"
GET_USER_WHITELISTED_TOKENS = "get_user_whitelisted_tokens"

# AMM change methods
REGISTER_TOKENS = "register_tokens"
ADD_LIQUIDITY = "add_liquidity"
ADD_STABLE_LIQUIDITY = "add_stable_liquidity"
REMOVE_LIQUIDITY = "remove_liquidity"
WITHDRAW = "withdraw"

# Fungible token (NEP-141 / NEP-145) methods
FT_METADATA = "ft_metadata"
FT_BALANCE_OF = "ft_balance_of"
FT_TRANSFER_CALL = "ft_transfer_call"
STORAGE_BALANCE_OF = "storage_balance_of"
STORAGE_BALANCE_BOUNDS = "storage_balance_bounds"
STORAGE_DEPOSIT = "storage_deposit"

# Wrapped-native contract
NEAR_DEPOSIT = "near_deposit"

# ft_transfer_call msg that only credits the AMM-internal balance
DEPOSIT_ONLY_MSG = ""

# withdraw amount meaning "everything available"
WITHDRAW_ALL = "0"

# Protocol limit on prepaid gas per transaction (300 Tgas)
MAX_TRANSACTION_GAS = 300 * 10 ** 12
