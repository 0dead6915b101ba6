"""
Tests for whole-DEX export, pair queries and the VyFinance pool-list cache.
"""

import json

import pytest

from dex.adapters.minswap_v1 import MinswapV1
from dex.adapters.vyfinance import VyFinance, VyFinancePoolData
from dex.runner import export_all, load_vyfinance_cache, query_pair, write_export
from tests.helpers import TOKEN_X, TOKEN_Y, FakeKupo, constr, datum_hex, make_utxo

MINSWAP_VALIDITY = "13aa2accf2e1561723aa26871e071fdf32c867cff7e7d50ad470d62f.4d494e53574150"
MINSWAP_NFT = "0be55d262b29f564998ff81efe21bdc0022621c12f15af08d0f2ddb1"
VYFI_API = "https://api.vyfi.io/lp?networkId=1&v2=true"
VYFI_NFT = "cc" * 28


def minswap_output(name, token, tx_hash):
    return make_utxo(
        [("lovelace", 10_000_000), (token, 99), (MINSWAP_NFT + name, 1)], tx_hash=tx_hash
    )


def vyfi_entry(name, pair):
    return {
        "json": json.dumps({"mainNFT": {"currencySymbol": VYFI_NFT, "tokenName": name}}),
        "unitsPair": pair,
    }


@pytest.mark.asyncio
async def test_export_all_writes_records(tmp_path):
    kupo = FakeKupo(
        matches={
            MINSWAP_VALIDITY: [
                minswap_output("02", TOKEN_Y, "bb"),
                minswap_output("01", TOKEN_X, "aa"),
            ]
        }
    )
    result = await export_all(MinswapV1(kupo))
    out = tmp_path / "pools.json"
    assert write_export(result, out) == 2

    exported = json.loads(out.read_text())
    assert [r["pool_id"] for r in exported] == [MINSWAP_NFT + "01", MINSWAP_NFT + "02"]
    assert exported[0]["tx_hash"] == "aa"
    assert exported[0]["reserve_a"] == "10000000"


@pytest.mark.asyncio
async def test_export_all_empty(tmp_path):
    result = await export_all(MinswapV1(FakeKupo()))
    out = tmp_path / "pools.json"
    assert write_export(result, out) == 0
    assert json.loads(out.read_text()) == []


@pytest.mark.asyncio
async def test_query_pair_plain_dex():
    kupo = FakeKupo(
        matches={
            MINSWAP_VALIDITY: [
                minswap_output("01", TOKEN_X, "aa"),
                minswap_output("02", TOKEN_Y, "bb"),
            ]
        }
    )
    result = await query_pair(MinswapV1(kupo), TOKEN_Y, "lovelace")
    assert [p.pool_id for p in result.records] == [MINSWAP_NFT + "02"]
    assert result.stats.ignored == 1


@pytest.mark.asyncio
async def test_vyfinance_cache_miss_fetches_and_saves(tmp_path):
    cache_path = tmp_path / "cache" / "vyfi.json"
    kupo = FakeKupo(json_payloads={VYFI_API: [vyfi_entry("01", f"lovelace/{TOKEN_X}")]})

    pools = await load_vyfinance_cache(VyFinance(kupo), cache_path)

    assert [p.nft_id for p in pools] == [f"{VYFI_NFT}.01"]
    assert json.loads(cache_path.read_text())[0]["asset_b"] == TOKEN_X


@pytest.mark.asyncio
async def test_vyfinance_cache_hit_skips_api(tmp_path):
    cache_path = tmp_path / "vyfi.json"
    cache_path.write_text(json.dumps([VyFinancePoolData(f"{VYFI_NFT}.01").to_dict()]))
    kupo = FakeKupo()

    pools = await load_vyfinance_cache(VyFinance(kupo), cache_path)

    assert pools == [VyFinancePoolData(f"{VYFI_NFT}.01")]
    assert kupo.json_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["{not json", '[{"asset_a": "x"}]', "[1, 2]"])
async def test_vyfinance_invalid_cache_is_refetched(tmp_path, content):
    cache_path = tmp_path / "vyfi.json"
    cache_path.write_text(content)
    kupo = FakeKupo(json_payloads={VYFI_API: [vyfi_entry("01", "")]})

    pools = await load_vyfinance_cache(VyFinance(kupo), cache_path)

    assert len(pools) == 1
    assert kupo.json_calls == [VYFI_API]


@pytest.mark.asyncio
async def test_vyfinance_pair_query_through_cache(tmp_path):
    cache_path = tmp_path / "vyfi.json"
    kupo = FakeKupo(
        matches={
            f"{VYFI_NFT}.01": [
                make_utxo([("lovelace", 8_000_000), (TOKEN_X, 40), (VYFI_NFT + "01", 1)])
            ]
        },
        datums={"dh1": datum_hex(constr(0, 0, 0, 12))},
        json_payloads={
            VYFI_API: [
                vyfi_entry("01", f"lovelace/{TOKEN_X}"),
                vyfi_entry("02", f"lovelace/{TOKEN_Y}"),
            ]
        },
    )
    dex = VyFinance(kupo)
    first = await query_pair(dex, "lovelace", TOKEN_X, cache_path)
    second = await query_pair(dex, "lovelace", TOKEN_X, cache_path)

    assert [p.total_lp_tokens for p in first.records] == [12]
    assert len(second.records) == 1
    assert kupo.json_calls == [VYFI_API]
