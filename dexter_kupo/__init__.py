"""
Cardano DEX reader core.

Reads unspent outputs and their datums from a Kupo indexer and decodes the
Plutus data that DEX protocols attach to their pool and order outputs.
"""

PROJECT_NAME = "dexter-kupo"

from dexter_kupo.datum import Constr, decode_datum
from dexter_kupo.kupo import KupoApi, Unit, Utxo
from dexter_kupo.version import __version__

VERSION = __version__

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "Constr",
    "KupoApi",
    "Unit",
    "Utxo",
    "decode_datum",
]
