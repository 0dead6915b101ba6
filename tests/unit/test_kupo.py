"""
Tests for the Kupo indexer client against a local aiohttp server.
"""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from dex.base import parse_quantity
from dexter_kupo.exceptions import DecodeError, NetworkError, TransientIndexerError
from dexter_kupo.kupo import KupoApi, Unit, utxo_from_match
from tests.helpers import NAME_X, POLICY_X, TOKEN_X

MATCH = {
    "transaction_index": 3,
    "transaction_id": "ab" * 32,
    "output_index": 1,
    "address": "addr1pool",
    "value": {"coins": 1_000_000_000, "assets": {f"{POLICY_X}.{NAME_X}": 500_000}},
    "datum_hash": "dd" * 32,
    "datum_type": "hash",
    "script_hash": None,
    "created_at": {"slot_no": 1, "header_hash": "ee" * 32},
    "spent_at": None,
}


def make_app(state):
    async def matches(request):
        state["requests"].append(request.path_qs)
        status = state["statuses"].pop(0) if state["statuses"] else 200
        if status != 200:
            return web.Response(status=status, text="slow down")
        return web.json_response(state.get("matches", []))

    async def datums(request):
        state["requests"].append(request.path_qs)
        return web.json_response(state.get("datum"))

    app = web.Application()
    app.router.add_get("/matches/{pattern:.*}", matches)
    app.router.add_get("/datums/{hash}", datums)
    return app


@pytest.fixture
def state():
    return {"requests": [], "statuses": []}


def test_utxo_from_match():
    """Lovelace comes first and asset units lose their separator."""
    utxo = utxo_from_match(MATCH)
    assert utxo.address == "addr1pool"
    assert utxo.tx_hash == "ab" * 32
    assert utxo.output_index == 1
    assert utxo.block == "ee" * 32
    assert utxo.data_hash == "dd" * 32
    assert utxo.reference_script_hash is None
    assert utxo.amount == [Unit("lovelace", "1000000000"), Unit(TOKEN_X, "500000")]
    assert utxo.output_ref == f"{'ab' * 32}#1"


@pytest.mark.parametrize("coins", [1.5, None, True, "12e3"])
def test_malformed_quantity_is_kept_for_rejection(coins):
    """Non-integer values survive decoding and fail only for the output carrying them."""
    utxo = utxo_from_match({**MATCH, "value": {"coins": coins, "assets": {}}})
    assert not utxo.amount[0].quantity.isdigit()
    with pytest.raises(DecodeError):
        parse_quantity(utxo.amount[0].quantity)


def test_build_urls():
    kupo = KupoApi("http://kupo.local/")
    assert kupo.build_matches_url("addr1x", True) == "http://kupo.local/matches/addr1x?unspent"
    assert kupo.build_matches_url("addr1x", False) == "http://kupo.local/matches/addr1x"
    assert kupo.build_datum_url("dd") == "http://kupo.local/datums/dd"


@pytest.mark.asyncio
async def test_get_matches(state):
    state["matches"] = [MATCH]
    async with TestServer(make_app(state)) as server:
        async with KupoApi(str(server.make_url("/"))) as kupo:
            utxos = await kupo.get(f"{POLICY_X}.{NAME_X}")

    assert len(utxos) == 1
    assert utxos[0].get_asset(TOKEN_X).quantity == "500000"
    assert state["requests"] == [f"/matches/{POLICY_X}.{NAME_X}?unspent"]


@pytest.mark.asyncio
async def test_get_wildcard_pattern(state):
    async with TestServer(make_app(state)) as server:
        async with KupoApi(str(server.make_url("/"))) as kupo:
            utxos = await kupo.get("script1abc/*")

    assert utxos == []
    assert state["requests"] == ["/matches/script1abc/*?unspent"]


@pytest.mark.asyncio
async def test_datum_lookup(state):
    state["datum"] = {"datum": "d87980"}
    async with TestServer(make_app(state)) as server:
        async with KupoApi(str(server.make_url("/"))) as kupo:
            assert await kupo.datum("dd") == "d87980"


@pytest.mark.asyncio
async def test_unknown_datum_is_none(state):
    state["datum"] = None
    async with TestServer(make_app(state)) as server:
        async with KupoApi(str(server.make_url("/"))) as kupo:
            assert await kupo.datum("dd") is None


@pytest.mark.asyncio
async def test_rate_limit_is_retried(state):
    state["statuses"] = [429, 429]
    state["matches"] = [MATCH]
    async with TestServer(make_app(state)) as server:
        async with KupoApi(
            str(server.make_url("/")), retries=3, base_delay_ms=0, max_delay_ms=0
        ) as kupo:
            utxos = await kupo.get("addr1pool")

    assert len(utxos) == 1
    assert len(state["requests"]) == 3


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries(state):
    state["statuses"] = [429, 429, 429]
    async with TestServer(make_app(state)) as server:
        async with KupoApi(
            str(server.make_url("/")), retries=1, base_delay_ms=0, max_delay_ms=0
        ) as kupo:
            with pytest.raises(TransientIndexerError) as exc_info:
                await kupo.get("addr1pool")

    assert exc_info.value.status_code == 429
    assert len(state["requests"]) == 2


@pytest.mark.asyncio
async def test_server_error_is_not_retried(state):
    state["statuses"] = [500]
    async with TestServer(make_app(state)) as server:
        async with KupoApi(
            str(server.make_url("/")), retries=5, base_delay_ms=0, max_delay_ms=0
        ) as kupo:
            with pytest.raises(NetworkError) as exc_info:
                await kupo.get("addr1pool")

    assert not isinstance(exc_info.value, TransientIndexerError)
    assert exc_info.value.status_code == 500
    assert len(state["requests"]) == 1


@pytest.mark.asyncio
async def test_unreachable_indexer_is_transient():
    async with KupoApi(
        "http://127.0.0.1:1", retries=1, base_delay_ms=0, max_delay_ms=0
    ) as kupo:
        with pytest.raises(TransientIndexerError):
            await kupo.get("addr1pool")
