"""Data models for tokens, pairs, farm pools and stake positions."""

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "unknown"


class TokenMetadata(BaseModel):
    """
    Token information.

    Attributes
    ----------
    address : str
        Token contract address
    name : str
        Full token name
    symbol : str
        Token symbol (e.g., 'CAKE', 'WBNB')
    decimals : int
        Number of decimal places

    """

    model_config = ConfigDict(frozen=True)

    address: str
    name: str
    symbol: str
    decimals: int

    @classmethod
    def unknown(cls, address: str) -> "TokenMetadata":
        """Placeholder record for a token whose metadata could not be decoded."""
        return cls(address=address, name=UNKNOWN, symbol=UNKNOWN, decimals=0)

    @property
    def is_unknown(self) -> bool:
        return self.name == UNKNOWN and self.symbol == UNKNOWN and self.decimals == 0


class PairMetadata(BaseModel):
    """
    Composition of a liquidity pair.

    Attributes
    ----------
    address : str
        Pair contract address
    token0_address : str
        First underlying token
    token1_address : str
        Second underlying token

    """

    model_config = ConfigDict(frozen=True)

    address: str
    token0_address: str
    token1_address: str


class TokenDetail(BaseModel):
    """
    Everything known about an address: its own token facts and, for
    liquidity pairs, the composition and both underlying tokens.

    Attributes
    ----------
    token : TokenMetadata
        The address' own name/symbol/decimals
    pair : PairMetadata | None
        Pair composition, None for plain tokens
    token0 : TokenMetadata | None
        Metadata of the first underlying token (pairs only)
    token1 : TokenMetadata | None
        Metadata of the second underlying token (pairs only)

    """

    model_config = ConfigDict(frozen=True)

    token: TokenMetadata
    pair: PairMetadata | None = None
    token0: TokenMetadata | None = None
    token1: TokenMetadata | None = None

    @property
    def address(self) -> str:
        return self.token.address

    @property
    def is_pair(self) -> bool:
        return self.pair is not None

    @property
    def is_complete(self) -> bool:
        """True when no part of the record is a placeholder."""
        parts = [self.token]
        if self.pair is not None:
            parts.extend([self.token0, self.token1])
        return all(part is not None and not part.is_unknown for part in parts)


class PairReserves(BaseModel):
    """Reserves and LP supply of a liquidity pair."""

    model_config = ConfigDict(frozen=True)

    reserve0: int
    reserve1: int
    total_supply: int


class Pool(BaseModel):
    """
    Farm pool.

    Attributes
    ----------
    pool_id : int
        Pool identifier in the farm contract
    token : TokenDetail
        Staked ("want") token, pair-extended for LP pools
    alloc_point : int
        Reward allocation points
    last_reward_block : int
        Last block rewards were distributed
    strategy_address : str
        Strategy contract managing the staked tokens

    """

    model_config = ConfigDict(frozen=True)

    pool_id: int
    token: TokenDetail
    alloc_point: int
    last_reward_block: int
    strategy_address: str


class TokenBalance(BaseModel):
    """Formatted balance of a single token inside a position."""

    symbol: str
    address: str
    balance: str


class StakePosition(BaseModel):
    """
    A holder's stake in one pool.

    Attributes
    ----------
    pool : Pool
        Pool the stake belongs to
    staked_balance : int
        Raw staked amount of the pool token
    pending_reward : int
        Raw pending reward amount
    balance : str
        Staked amount formatted with the pool token's decimals
    reward : str
        Pending reward formatted with the reward token's decimals
    tokens : list[TokenBalance]
        Underlying token balances (two entries for LP pools)

    """

    pool: Pool
    staked_balance: int
    pending_reward: int
    balance: str
    reward: str
    tokens: list[TokenBalance] = Field(default_factory=list)
