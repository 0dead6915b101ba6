"""
ChadSwap resting order book.

Open orders sit at two contract addresses; each output is one order whose
datum records the token, unit price and remaining amount. A buy order locks
only lovelace, a sell order locks lovelace plus the token being sold.

Order datum (constructor 0):
    [0] order info constructor:
        [0] owner address (ignored)
        [1] direction (ignored; derived from holdings instead)
        [2] token policy bytes
        [3] token name bytes
        [4] unit price
        [5] unit price denominator: Constr(0, [int]), or empty for null (= 1)
    [1] order state constructor:
        [0] remaining amount
        [1] filled amount (ignored)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dexter_kupo.datum import (
    bytes_as_hex,
    constructor_fields,
    require_fields,
    unsigned_integer,
)
from dexter_kupo.exceptions import (
    ConfigurationError,
    DatumError,
    MalformedExternalApiResponse,
)
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import POLICY_ID_HEX_LENGTH, gather_bounded, get_logger, join_policy_id

from ..base import ProtocolAdapter
from ..types import (
    LOVELACE_TOKEN,
    Order,
    OrderBook,
    QueryStats,
    Token,
    token_from_identifier,
    token_identifier,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChadSwapSettings:
    identifier: str = "ChadSwap"
    order_addresses: Tuple[str, ...] = (
        "addr1wxxxdudv3dtaa09tngrm8wds54v45kkhdcau4e6keqh0uncksc7pn",
        "addr1w84q0y2wwfj5efd9ch3x492edeh6pdwycvt7g030jfzhagg5ftr54",
    )
    api_url: Optional[str] = None


class OrderDatum(NamedTuple):
    token_id: str
    unit_price: int
    price_denominator: int
    remaining_amount: int


def parse_price_denominator(node: Any) -> int:
    """Denominator field: Constr(0, [n]) is n, an empty constructor means 1."""
    fields = constructor_fields(node)
    if not fields:
        return 1
    return unsigned_integer(fields[0])


def parse_order_datum(datum: Any) -> OrderDatum:
    """
    Read token, price and remaining amount from a decoded order datum.

    Raises:
        ShapeError: If the datum does not have the order layout
    """
    outer = require_fields(constructor_fields(datum), 2, "ChadSwap datum")
    info = require_fields(constructor_fields(outer[0]), 6, "ChadSwap order info")
    state = require_fields(constructor_fields(outer[1]), 1, "ChadSwap order state")

    return OrderDatum(
        token_id=bytes_as_hex(info[2]) + bytes_as_hex(info[3]),
        unit_price=unsigned_integer(info[4]),
        price_denominator=parse_price_denominator(info[5]),
        remaining_amount=unsigned_integer(state[0]),
    )


class ChadSwapApiOrder(BaseModel):
    """One order from the ChadSwap order API. Numeric fields arrive as strings."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    asset: str
    amount: int = Field(ge=0)
    price: int = Field(ge=0)
    price_denominator: Optional[int] = Field(
        default=None, ge=1, alias="priceDenominator"
    )
    side: Literal["buy", "sell"]

    @field_validator("asset")
    @classmethod
    def normalize_asset(cls, v):
        return join_policy_id(v)

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        return v.lower() if isinstance(v, str) else v

    def to_order(self) -> Order:
        return Order(
            asset=token_from_identifier(self.asset),
            amount=self.amount,
            price=self.price,
            price_denominator=self.price_denominator or 1,
            is_buy=self.side == "buy",
        )


def order_token(token_id: str) -> Token:
    # Datums quote ADA with an empty or truncated policy
    if len(token_id) < POLICY_ID_HEX_LENGTH:
        return LOVELACE_TOKEN
    return token_from_identifier(token_id)


def books_from_orders(orders: List[Order]) -> List[OrderBook]:
    """Group orders into one book per token, sorted by token id."""
    books: Dict[str, OrderBook] = {}
    for order in orders:
        token_id = token_identifier(order.asset)
        books.setdefault(token_id, OrderBook(token_id)).add(order)
    return [books[token_id] for token_id in sorted(books)]


class ChadSwap(ProtocolAdapter):
    name = "chadswap"
    DEFAULT_SETTINGS = ChadSwapSettings()

    async def all_order_outputs(self) -> List[Utxo]:
        """Open order outputs at every order address, queried concurrently."""
        batches = await asyncio.gather(
            *[self.kupo.get(address) for address in self.settings.order_addresses]
        )
        return [utxo for batch in batches for utxo in batch]

    async def order_from_output(self, utxo: Utxo) -> Optional[Order]:
        """
        Build the order held by one output; None when it carries no datum hash.

        Raises:
            DatumError: If the datum is missing or malformed
        """
        if not utxo.has_data_hash():
            return None

        datum = parse_order_datum(await self.fetch_datum(utxo))
        return Order(
            asset=order_token(datum.token_id),
            amount=datum.remaining_amount,
            price=datum.unit_price,
            price_denominator=datum.price_denominator,
            is_buy=len(utxo.amount) == 1,
        )

    async def all_orders(self) -> List[Order]:
        utxos = await self.all_order_outputs()
        stats = QueryStats(total=len(utxos))

        async def load(utxo: Utxo) -> Optional[Order]:
            try:
                order = await self.order_from_output(utxo)
            except DatumError as e:
                logger.warning(
                    f"[{self.identifier}] skipping {utxo.output_ref} at extend: {e}"
                )
                stats.skipped += 1
                return None
            if order is None:
                stats.ignored += 1
            return order

        orders = [
            o for o in await gather_bounded(load, utxos, self.concurrency) if o is not None
        ]
        stats.resolved = len(orders)
        logger.info(f"[{self.identifier}] {stats.summary()}")
        return orders

    async def get_orders_by_token(self, token_id: str) -> OrderBook:
        """Order book for one token (joined `policy ++ name` identifier)."""
        wanted = join_policy_id(token_id)
        book = OrderBook(wanted)
        for order in await self.all_orders():
            if token_identifier(order.asset) == wanted:
                book.add(order)
        return book

    async def all_order_books(self) -> List[OrderBook]:
        """Every open order on the indexer, grouped by token."""
        return books_from_orders(await self.all_orders())

    async def order_books_from_api(self) -> List[OrderBook]:
        """
        Every open order from the ChadSwap order API, grouped by token.

        Raises:
            ConfigurationError: If no API URL is configured
            NetworkError: If the API cannot be reached
            MalformedExternalApiResponse: If the response has an unexpected shape
        """
        api_url = self.settings.api_url
        if not api_url:
            raise ConfigurationError("chadswap_api_url is not configured")

        payload = await self.kupo.get_json(api_url)
        if not isinstance(payload, list):
            raise MalformedExternalApiResponse(
                f"ChadSwap API returned {type(payload).__name__}, expected a list",
                source=api_url,
            )
        try:
            api_orders = [ChadSwapApiOrder.model_validate(item) for item in payload]
            orders = [o.to_order() for o in api_orders]
        except ValidationError as e:
            raise MalformedExternalApiResponse(
                f"ChadSwap API order failed validation: {e.error_count()} errors",
                source=api_url,
                details={"errors": e.errors(include_url=False)},
            ) from e
        except DatumError as e:
            raise MalformedExternalApiResponse(
                f"ChadSwap API order has a malformed asset: {e}", source=api_url
            ) from e

        logger.info(f"[{self.identifier}] {len(orders)} orders from API")
        return books_from_orders(orders)
