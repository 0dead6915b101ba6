"""
Tests for ChadSwap order decoding, order books and the order API.
"""

import pytest

from dex.adapters.chadswap import (
    ChadSwap,
    ChadSwapApiOrder,
    ChadSwapSettings,
    parse_order_datum,
    parse_price_denominator,
)
from dex.types import LOVELACE_TOKEN
from dexter_kupo.datum import Constr, decode_datum
from dexter_kupo.exceptions import ConfigurationError, MalformedExternalApiResponse
from tests.helpers import (
    NAME_X,
    NAME_Y,
    POLICY_X,
    POLICY_Y,
    TOKEN_X,
    TOKEN_Y,
    FakeKupo,
    constr,
    datum_hex,
    make_utxo,
)

BUY_ADDRESS, SELL_ADDRESS = ChadSwapSettings().order_addresses
API_URL = "https://api.chadswap.test/orders"


def order_datum(policy=POLICY_X, name=NAME_X, price=42, denominator=None, remaining=250_000_000):
    denominator_node = constr(1) if denominator is None else constr(0, denominator)
    info = constr(
        0,
        b"\x00" * 28,
        constr(0),
        bytes.fromhex(policy),
        bytes.fromhex(name),
        price,
        denominator_node,
    )
    return datum_hex(constr(0, info, constr(0, remaining, 0)))


def test_null_denominator_is_one():
    assert parse_price_denominator(Constr(1, ())) == 1
    assert parse_price_denominator(Constr(0, (8,))) == 8


def test_parse_order_datum():
    parsed = parse_order_datum(decode_datum(order_datum(denominator=1000)))
    assert parsed.token_id == TOKEN_X
    assert parsed.unit_price == 42
    assert parsed.price_denominator == 1000
    assert parsed.remaining_amount == 250_000_000


@pytest.mark.asyncio
async def test_buy_order_from_native_only_output():
    utxo = make_utxo([("lovelace", 260_000_000)], address=BUY_ADDRESS)
    kupo = FakeKupo(datums={"dh1": order_datum()})
    order = await ChadSwap(kupo).order_from_output(utxo)

    assert order.is_buy
    assert order.amount == 250_000_000
    assert order.price_denominator == 1
    assert order.asset.identifier() == TOKEN_X


@pytest.mark.asyncio
@pytest.mark.parametrize("policy, name", [("", ""), ("abcd", ""), ("", NAME_X)])
async def test_short_token_id_is_lovelace(policy, name):
    utxo = make_utxo([("lovelace", 2_000_000), (TOKEN_X, 5)])
    kupo = FakeKupo(datums={"dh1": order_datum(policy=policy, name=name)})
    order = await ChadSwap(kupo).order_from_output(utxo)
    assert order.asset == LOVELACE_TOKEN


@pytest.mark.asyncio
async def test_sell_order_holds_token():
    utxo = make_utxo([("lovelace", 2_000_000), (TOKEN_X, 250_000_000)])
    kupo = FakeKupo(datums={"dh1": order_datum()})
    order = await ChadSwap(kupo).order_from_output(utxo)
    assert not order.is_buy


@pytest.mark.asyncio
async def test_order_books_group_by_token():
    kupo = FakeKupo(
        matches={
            BUY_ADDRESS: [make_utxo([("lovelace", 1)], tx_hash="a", data_hash="x")],
            SELL_ADDRESS: [
                make_utxo([("lovelace", 1), (TOKEN_X, 5)], tx_hash="b", data_hash="x"),
                make_utxo([("lovelace", 1), (TOKEN_Y, 5)], tx_hash="c", data_hash="y"),
                make_utxo([("lovelace", 1)], tx_hash="d", data_hash="broken"),
                make_utxo([("lovelace", 1)], tx_hash="e", data_hash=None),
            ],
        },
        datums={
            "x": order_datum(),
            "y": order_datum(policy=POLICY_Y, name=NAME_Y),
            "broken": datum_hex(constr(0, 1)),
        },
    )
    dex = ChadSwap(kupo)
    books = await dex.all_order_books()

    assert [b.token_id for b in books] == sorted([TOKEN_X, TOKEN_Y])
    book_x = next(b for b in books if b.token_id == TOKEN_X)
    assert len(book_x.buy_orders) == 1
    assert len(book_x.sell_orders) == 1

    book_y = await dex.get_orders_by_token(f"{POLICY_Y}.{NAME_Y}")
    assert book_y.token_id == TOKEN_Y
    assert len(book_y.sell_orders) == 1
    assert book_y.buy_orders == []


class TestOrderApi:
    """Orders from the ChadSwap API"""

    def api_dex(self, payload):
        kupo = FakeKupo(json_payloads={API_URL: payload})
        return ChadSwap(kupo, ChadSwapSettings(api_url=API_URL))

    def test_api_order_model(self):
        order = ChadSwapApiOrder.model_validate(
            {"asset": f"{POLICY_X}.{NAME_X}", "amount": "10", "price": "3", "side": "BUY"}
        ).to_order()
        assert order.is_buy
        assert order.price_denominator == 1
        assert order.asset.identifier() == TOKEN_X

    @pytest.mark.asyncio
    async def test_books_from_api(self):
        dex = self.api_dex(
            [
                {"asset": TOKEN_X, "amount": 10, "price": 3, "priceDenominator": 2, "side": "sell"},
                {"asset": TOKEN_X, "amount": 7, "price": 2, "side": "buy"},
            ]
        )
        books = await dex.order_books_from_api()
        assert len(books) == 1
        assert books[0].sell_orders[0].unit_price == 1.5
        assert dex.kupo.get_calls == []

    @pytest.mark.asyncio
    async def test_missing_url(self):
        with pytest.raises(ConfigurationError):
            await ChadSwap(FakeKupo()).order_books_from_api()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"orders": []},
            [{"asset": TOKEN_X, "amount": -1, "price": 1, "side": "buy"}],
            [{"asset": TOKEN_X, "amount": 1, "price": 1, "side": "hold"}],
            [{"asset": "abcd", "amount": 1, "price": 1, "side": "buy"}],
        ],
    )
    async def test_malformed_payload(self, payload):
        with pytest.raises(MalformedExternalApiResponse):
            await self.api_dex(payload).order_books_from_api()
