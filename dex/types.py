"""
Core data types for Cardano DEX liquidity reconstruction.

Tokens are either the native unit (lovelace) or a native asset identified by
its 28-byte policy hash and hex asset name. Records are built fresh on every
query from the indexer's current snapshot.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from dexter_kupo.exceptions import DecodeError
from dexter_kupo.utils import POLICY_ID_HEX_LENGTH, join_policy_id

LOVELACE = "lovelace"
LOVELACE_NAME = "ADA"
LOVELACE_DECIMALS = 6

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


@dataclass(frozen=True)
class Lovelace:
    """The ledger's native unit."""

    @property
    def decimals(self) -> int:
        return LOVELACE_DECIMALS


@dataclass(frozen=True)
class Asset:
    """
    A native asset.

    Attributes:
        policy_id: Minting policy hash (56 hex characters)
        name_hex: Asset name as hex (may be empty)
        decimals: Display precision used for price adjustment
    """

    policy_id: str
    name_hex: str
    decimals: int = 0

    def __post_init__(self):
        if len(self.policy_id) != POLICY_ID_HEX_LENGTH or not _HEX_RE.match(
            self.policy_id
        ):
            raise DecodeError(f"Invalid policy id: {self.policy_id!r}")
        if not _HEX_RE.match(self.name_hex):
            raise DecodeError(f"Invalid asset name hex: {self.name_hex!r}")
        if self.decimals < 0:
            raise DecodeError(f"Negative decimals for {self.policy_id}")

    def identifier(self, delimiter: str = "") -> str:
        return f"{self.policy_id}{delimiter}{self.name_hex}"

    @property
    def asset_name(self) -> str:
        """UTF-8 asset name; invalid byte sequences become replacement characters."""
        try:
            raw = bytes.fromhex(self.name_hex)
        except ValueError:
            raw = b""
        return raw.decode("utf-8", errors="replace")


Token = Union[Lovelace, Asset]

LOVELACE_TOKEN = Lovelace()


def token_from_identifier(identifier: str, decimals: int = 0) -> Token:
    """
    Build a Token from a unit identifier (`policy ++ name`, `policy.name` or `lovelace`).

    Raises:
        DecodeError: If the identifier is neither lovelace nor a valid asset unit
    """
    unit = join_policy_id(identifier)
    if unit == "" or unit == LOVELACE:
        return LOVELACE_TOKEN
    if len(unit) < POLICY_ID_HEX_LENGTH:
        raise DecodeError(f"Unit identifier too short: {identifier!r}")
    return Asset(unit[:POLICY_ID_HEX_LENGTH], unit[POLICY_ID_HEX_LENGTH:], decimals)


def token_identifier(token: Token) -> str:
    if isinstance(token, Lovelace):
        return LOVELACE
    return token.identifier()


def token_name(token: Token) -> str:
    if isinstance(token, Lovelace):
        return LOVELACE_NAME
    return token.asset_name


def is_lovelace(token: Token) -> bool:
    return isinstance(token, Lovelace)


def matches_pair(token_a: Token, token_b: Token, id_x: str, id_y: str) -> bool:
    """Unordered pair equality between two tokens and two unit identifiers."""
    id_a = token_identifier(token_a)
    id_b = token_identifier(token_b)
    x = join_policy_id(id_x) or LOVELACE
    y = join_policy_id(id_y) or LOVELACE
    return (id_a == x and id_b == y) or (id_a == y and id_b == x)


def _adjusted(amount: int, decimals: int) -> float:
    return amount / (10**decimals)


@dataclass
class LiquidityPool:
    """
    Constant-product pool reconstructed from one output.

    Attributes:
        dex_identifier: Protocol identifier (e.g., "MINSWAPV2")
        asset_a: First reserve token
        asset_b: Second reserve token
        reserve_a: Tradeable reserve of asset_a
        reserve_b: Tradeable reserve of asset_b
        address: Address holding the pool output
        pool_id: Opaque pool identifier (usually an LP or NFT unit)
        pool_fee_percent: Swap fee in percent (0.3 means 0.3%)
        total_lp_tokens: Outstanding LP supply, 0 until read from the datum
    """

    dex_identifier: str
    asset_a: Token
    asset_b: Token
    reserve_a: int
    reserve_b: int
    address: str
    pool_id: str
    pool_fee_percent: float
    total_lp_tokens: int = 0

    def pair(self) -> str:
        return f"{token_name(self.asset_a)}/{token_name(self.asset_b)}"

    def price(self) -> float:
        """Price of asset_b in units of asset_a; 0 when reserve_b is empty."""
        adjusted_b = _adjusted(self.reserve_b, self.asset_b.decimals)
        if adjusted_b == 0:
            return 0.0
        return _adjusted(self.reserve_a, self.asset_a.decimals) / adjusted_b

    def uuid(self) -> str:
        return f"{self.dex_identifier}.{self.pair()}.{self.pool_id}"

    def to_dict(self, tx_hash: str = "") -> Dict[str, Any]:
        return {
            "kind": "pool",
            "dex": self.dex_identifier,
            "pool_id": self.pool_id,
            "asset_a": token_identifier(self.asset_a),
            "asset_b": token_identifier(self.asset_b),
            "reserve_a": str(self.reserve_a),
            "reserve_b": str(self.reserve_b),
            "pool_fee_percent": self.pool_fee_percent,
            "total_lp_tokens": str(self.total_lp_tokens),
            "tx_hash": tx_hash,
        }


@dataclass
class StablePool:
    """
    Curve-style stable pool. Reserves come from the datum balances, never from holdings.

    Attributes:
        amplification_coefficient: Curve flatness near the peg (A)
        total_liquidity: StableSwap invariant (D), in the smaller of the two precisions
    """

    dex_identifier: str
    asset_a: Token
    asset_b: Token
    reserve_a: int
    reserve_b: int
    address: str
    pool_id: str
    pool_fee_percent: float
    amplification_coefficient: int
    total_liquidity: int

    def pair(self) -> str:
        return f"{token_name(self.asset_a)}/{token_name(self.asset_b)}"

    def price(self) -> float:
        """
        Marginal price from the derivative of the StableSwap invariant:

            P = (y/x) * (1 + A*x/D) / (1 + A*y/D)
        """
        dec_a = self.asset_a.decimals
        dec_b = self.asset_b.decimals
        x = _adjusted(self.reserve_a, dec_a)
        y = _adjusted(self.reserve_b, dec_b)
        a = float(self.amplification_coefficient)
        d = _adjusted(self.total_liquidity, min(dec_a, dec_b))

        if x <= 0 or y <= 0 or d <= 0:
            return 0.0

        return (y / x) * ((1 + a * x / d) / (1 + a * y / d))

    def uuid(self) -> str:
        return f"{self.dex_identifier}.{self.pair()}.{self.pool_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "stable_pool",
            "dex": self.dex_identifier,
            "pool_id": self.pool_id,
            "asset_a": token_identifier(self.asset_a),
            "asset_b": token_identifier(self.asset_b),
            "reserve_a": str(self.reserve_a),
            "reserve_b": str(self.reserve_b),
            "pool_fee_percent": self.pool_fee_percent,
            "amplification_coefficient": str(self.amplification_coefficient),
            "total_liquidity": str(self.total_liquidity),
        }


@dataclass(frozen=True)
class Order:
    """
    One open order on a resting order book.

    Attributes:
        asset: Token being traded
        amount: Remaining unfilled amount
        price: Unit price numerator
        price_denominator: Unit price denominator (1 when the datum encodes null)
        is_buy: True when the output holds only the native unit
    """

    asset: Token
    amount: int
    price: int
    price_denominator: int
    is_buy: bool

    @property
    def unit_price(self) -> float:
        if self.price_denominator == 0:
            return 0.0
        return self.price / self.price_denominator

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": token_identifier(self.asset),
            "amount": str(self.amount),
            "price": str(self.price),
            "price_denominator": str(self.price_denominator),
            "is_buy": self.is_buy,
        }


@dataclass
class OrderBook:
    """Open buy and sell orders for one token."""

    token_id: str
    buy_orders: List[Order] = field(default_factory=list)
    sell_orders: List[Order] = field(default_factory=list)

    def add(self, order: Order) -> None:
        if order.is_buy:
            self.buy_orders.append(order)
        else:
            self.sell_orders.append(order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "order_book",
            "token_id": self.token_id,
            "buy_orders": [o.to_dict() for o in self.buy_orders],
            "sell_orders": [o.to_dict() for o in self.sell_orders],
        }


@dataclass(frozen=True)
class Rate:
    """
    Staking-bar exchange rate.

    Attributes:
        pool_identifier: Pattern the rate was queried with
        base_asset: Amount of the staked token held by the bar output
        derived_asset: Amount of the derived token recorded in the datum
    """

    pool_identifier: str
    base_asset: int
    derived_asset: int

    def ratio(self) -> float:
        if self.derived_asset == 0:
            return 0.0
        return self.base_asset / self.derived_asset

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "rate",
            "pool_identifier": self.pool_identifier,
            "base_asset": str(self.base_asset),
            "derived_asset": str(self.derived_asset),
        }


@dataclass
class QueryStats:
    """
    Per-query accounting.

    Attributes:
        total: Candidate outputs examined
        resolved: Records produced
        ignored: Outputs that are not positions of this protocol (no datum, wrong
            holding count, excluded sub-kind, or no pair match)
        skipped: Outputs dropped because their holdings or datum were malformed
    """

    total: int = 0
    resolved: int = 0
    ignored: int = 0
    skipped: int = 0

    def summary(self) -> str:
        return (
            f"total={self.total} resolved={self.resolved} "
            f"ignored={self.ignored} skipped={self.skipped}"
        )


@dataclass
class QueryResult:
    """Records of one whole query, sorted by pool id, plus its accounting."""

    records: List[Any] = field(default_factory=list)
    stats: QueryStats = field(default_factory=QueryStats)
    tx_hashes: Dict[str, str] = field(default_factory=dict)

    def to_export(self) -> List[Dict[str, Any]]:
        exports = []
        for record in self.records:
            if isinstance(record, LiquidityPool):
                exports.append(record.to_dict(self.tx_hashes.get(record.pool_id, "")))
            else:
                exports.append(record.to_dict())
        return exports
