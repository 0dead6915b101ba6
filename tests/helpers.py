"""
Shared builders for datum and indexer fixtures.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import cbor2
from cbor2 import CBORTag

from dexter_kupo.kupo import Unit, Utxo

POLICY_X = "f13ac4d66b3ee19a6aa0f2a22298737bd907cc95121662fc971b5275"
NAME_X = "535452494b45"  # STRIKE
TOKEN_X = POLICY_X + NAME_X

POLICY_Y = "8a1cfae21368b8bebbbed9800fec304e95cce39a2a57dc35e2e3ebaa"
NAME_Y = "4d494c4b"  # MILK
TOKEN_Y = POLICY_Y + NAME_Y


def constr(alternative: int, *fields: Any) -> CBORTag:
    """Plutus constructor as a CBOR tag (alternatives 0..6)."""
    return CBORTag(121 + alternative, list(fields))


def datum_hex(node: Any) -> str:
    return cbor2.dumps(node).hex()


def make_utxo(
    holdings: Sequence[Tuple[str, Any]],
    tx_hash: str = "aa" * 32,
    output_index: int = 0,
    address: str = "addr1test",
    data_hash: Optional[str] = "dh1",
) -> Utxo:
    return Utxo(
        address=address,
        tx_hash=tx_hash,
        output_index=output_index,
        amount=[Unit(unit, str(qty)) for unit, qty in holdings],
        data_hash=data_hash,
    )


class FakeKupo:
    """In-memory stand-in for KupoApi keyed by match pattern and datum hash."""

    def __init__(
        self,
        matches: Optional[Dict[str, List[Utxo]]] = None,
        datums: Optional[Dict[str, str]] = None,
        json_payloads: Optional[Dict[str, Any]] = None,
    ):
        self.matches = matches or {}
        self.datums = datums or {}
        self.json_payloads = json_payloads or {}
        self.get_calls: List[str] = []
        self.datum_calls: List[str] = []
        self.json_calls: List[str] = []

    async def get(self, match_pattern: str, unspent: bool = True) -> List[Utxo]:
        self.get_calls.append(match_pattern)
        result = self.matches.get(match_pattern, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def datum(self, datum_hash: str) -> Optional[str]:
        self.datum_calls.append(datum_hash)
        return self.datums.get(datum_hash)

    async def get_json(self, url: str) -> Any:
        self.json_calls.append(url)
        payload = self.json_payloads[url]
        if isinstance(payload, Exception):
            raise payload
        return payload
