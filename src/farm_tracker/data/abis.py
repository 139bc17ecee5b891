"""Contract functions read by farm-tracker."""

from farm_tracker.rpc.codec import ContractFunction

# ERC-20
ERC20_NAME = ContractFunction("name", outputs=(("name", "string"),))
ERC20_SYMBOL = ContractFunction("symbol", outputs=(("symbol", "string"),))
ERC20_DECIMALS = ContractFunction("decimals", outputs=(("decimals", "uint8"),))
ERC20_TOTAL_SUPPLY = ContractFunction("totalSupply", outputs=(("totalSupply", "uint256"),))

TOKEN_DETAIL_FUNCTIONS = (ERC20_NAME, ERC20_SYMBOL, ERC20_DECIMALS)

# Uniswap V2 style pair
PAIR_TOKEN0 = ContractFunction("token0", outputs=(("token0", "address"),))
PAIR_TOKEN1 = ContractFunction("token1", outputs=(("token1", "address"),))
PAIR_GET_RESERVES = ContractFunction(
    "getReserves",
    outputs=(
        ("reserve0", "uint112"),
        ("reserve1", "uint112"),
        ("blockTimestampLast", "uint32"),
    ),
)

PAIR_RESERVE_FUNCTIONS = (PAIR_GET_RESERVES, ERC20_TOTAL_SUPPLY)

# Farm (AutoFarmV2 layout)
FARM_POOL_LENGTH = ContractFunction("poolLength", outputs=(("length", "uint256"),))
FARM_POOL_INFO = ContractFunction(
    "poolInfo",
    inputs=("uint256",),
    outputs=(
        ("want", "address"),
        ("allocPoint", "uint256"),
        ("lastRewardBlock", "uint256"),
        ("accAUTOPerShare", "uint256"),
        ("strat", "address"),
    ),
)
FARM_PENDING_REWARD = ContractFunction(
    "pendingAUTO",
    inputs=("uint256", "address"),
    outputs=(("pending", "uint256"),),
)
FARM_STAKED_TOKENS = ContractFunction(
    "stakedWantTokens",
    inputs=("uint256", "address"),
    outputs=(("staked", "uint256"),),
)

STAKED_INFO_FUNCTIONS = (FARM_PENDING_REWARD, FARM_STAKED_TOKENS)
