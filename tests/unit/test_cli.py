"""
Tests for the run_dex command line entry point, driven in-process against an
in-memory indexer.
"""

import json

import pytest

import logging_config
import run_dex
from tests.helpers import TOKEN_X, TOKEN_Y, FakeKupo, constr, datum_hex, make_utxo

MINSWAP_VALIDITY = "13aa2accf2e1561723aa26871e071fdf32c867cff7e7d50ad470d62f.4d494e53574150"
MINSWAP_NFT = "0be55d262b29f564998ff81efe21bdc0022621c12f15af08d0f2ddb1"
CHADSWAP_BUY = "addr1wxxxdudv3dtaa09tngrm8wds54v45kkhdcau4e6keqh0uncksc7pn"


class ContextFakeKupo(FakeKupo):
    """FakeKupo usable as `async with KupoApi(...)`."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "dexter.yaml"
    path.write_text("kupo_url: http://kupo.test\nretries: 0\nbase_delay_ms: 0\n")
    return str(path)


@pytest.fixture
def indexer(monkeypatch):
    kupo = ContextFakeKupo()
    monkeypatch.setattr(run_dex, "KupoApi", lambda *args, **kwargs: kupo)
    monkeypatch.setattr(run_dex, "load_dotenv", lambda: None)
    monkeypatch.setattr(logging_config, "setup", lambda *args, **kwargs: None)
    monkeypatch.setattr(logging_config, "setup_debug", lambda *args, **kwargs: None)
    monkeypatch.setattr(logging_config, "setup_minimal", lambda *args, **kwargs: None)
    return kupo


def minswap_output(name, token):
    return make_utxo([("lovelace", 10_000_000), (token, 99), (MINSWAP_NFT + name, 1)])


def test_parse_args_defaults():
    args = run_dex.parse_args([])
    assert args.dex == "minswap_v2"
    assert args.output == "pools.json"
    assert args.assets == []
    assert not args.quiet
    assert run_dex.parse_args(["-q"]).quiet


def test_pair_query_prints_json(indexer, config_file, capsys):
    indexer.matches = {
        MINSWAP_VALIDITY: [minswap_output("01", TOKEN_X), minswap_output("02", TOKEN_Y)]
    }
    code = run_dex.main(["--config", config_file, "--dex", "minswap_v1", "lovelace", TOKEN_X])

    assert code == 0
    printed = json.loads(capsys.readouterr().out)
    assert [p["pool_id"] for p in printed] == [MINSWAP_NFT + "01"]


def test_export_writes_file(indexer, config_file, tmp_path):
    indexer.matches = {MINSWAP_VALIDITY: [minswap_output("01", TOKEN_X)]}
    out = tmp_path / "out.json"
    code = run_dex.main(["--config", config_file, "--dex", "minswap_v1", "--output", str(out)])

    assert code == 0
    assert len(json.loads(out.read_text())) == 1


def test_chadswap_book(indexer, config_file, capsys):
    info = constr(
        0, b"", constr(0), bytes.fromhex(TOKEN_X[:56]), bytes.fromhex(TOKEN_X[56:]), 5, constr(1)
    )
    indexer.matches = {CHADSWAP_BUY: [make_utxo([("lovelace", 9)])]}
    indexer.datums = {"dh1": datum_hex(constr(0, info, constr(0, 9, 0)))}

    code = run_dex.main(["--config", config_file, "--dex", "chadswap", TOKEN_X])

    assert code == 0
    book = json.loads(capsys.readouterr().out)
    assert book["token_id"] == TOKEN_X
    assert len(book["buy_orders"]) == 1


def test_missing_stable_pool_exits_nonzero(indexer, config_file):
    code = run_dex.main(
        ["--config", config_file, "--dex", "minswap_stable", "addr1none", TOKEN_X, TOKEN_Y]
    )
    assert code == 1


@pytest.mark.parametrize(
    "argv",
    [
        ["--dex", "minswap_v1", "lovelace"],
        ["--dex", "minswap_stable", "addr1x"],
        ["--dex", "minswap_stable", "addr1x", TOKEN_X, TOKEN_Y, "six"],
        ["--dex", "chadswap"],
        ["--dex", "uniswap"],
    ],
)
def test_usage_errors(indexer, config_file, argv):
    assert run_dex.main(["--config", config_file, *argv]) == 1
    assert indexer.get_calls == []


def test_missing_config_file(indexer, tmp_path):
    assert run_dex.main(["--config", str(tmp_path / "absent.yaml")]) == 1


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc_info:
        run_dex.parse_args(["--version"])
    assert exc_info.value.code == 0
    assert "0.1.0" in capsys.readouterr().out
