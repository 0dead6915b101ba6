"""
Minswap stable pools (Curve-style StableSwap).

Stable pools cannot be enumerated; the caller names the pool address and the
two assets with their decimals. Reserves are read from the datum's balance
array, never from the output holdings, and the fee is fixed.

Datum layout (constructor 0):
    [0] plain array [balance0, balance1]
    [1] total liquidity (the invariant D)
    [2] amplification coefficient (A)
    [3] order hash (ignored)
"""

from dataclasses import dataclass
from typing import Any, NamedTuple, Optional

from dexter_kupo.datum import (
    array_items,
    constructor_fields,
    require_fields,
    unsigned_integer,
)
from dexter_kupo.exceptions import DatumError, ShapeError
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import get_logger

from ..base import ProtocolAdapter
from ..types import LOVELACE_DECIMALS, StablePool, token_from_identifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class MinswapStableSettings:
    identifier: str = "MinswapStable"
    pool_fee_percent: float = 0.1


class StableDatum(NamedTuple):
    balance_a: int
    balance_b: int
    total_liquidity: int
    amplification: int


def parse_stable_datum(datum: Any) -> StableDatum:
    """
    Read balances, D and A from a decoded stable pool datum.

    Raises:
        ShapeError: If the datum does not have the stable pool layout
    """
    fields = require_fields(constructor_fields(datum), 3, "MinswapStable datum")
    balances = array_items(fields[0])
    if len(balances) < 2:
        raise ShapeError(
            f"MinswapStable balances: expected >=2 items, got {len(balances)}",
            expected=">=2 items",
            actual=f"{len(balances)} items",
        )
    return StableDatum(
        balance_a=unsigned_integer(balances[0]),
        balance_b=unsigned_integer(balances[1]),
        total_liquidity=unsigned_integer(fields[1]),
        amplification=unsigned_integer(fields[2]),
    )


class MinswapStable(ProtocolAdapter):
    name = "minswap_stable"
    DEFAULT_SETTINGS = MinswapStableSettings()

    async def get_pool(
        self,
        pool_address: str,
        asset_a_id: str,
        asset_b_id: str,
        decimals_a: int = LOVELACE_DECIMALS,
        decimals_b: int = LOVELACE_DECIMALS,
    ) -> Optional[StablePool]:
        """
        Fetch the stable pool living at `pool_address`.

        Returns:
            StablePool, or None when the address holds no output or its datum
            is missing or malformed

        Raises:
            NetworkError: If the indexer cannot be queried
        """
        utxos = await self.kupo.get(pool_address)
        if not utxos:
            logger.warning(f"[{self.identifier}] no outputs at {pool_address}")
            return None

        utxo = utxos[0]
        try:
            return await self.pool_from_output(
                utxo, asset_a_id, asset_b_id, decimals_a, decimals_b, pool_address
            )
        except DatumError as e:
            logger.warning(
                f"[{self.identifier}] skipping {utxo.output_ref} at extend: {e}"
            )
            return None

    async def pool_from_output(
        self,
        utxo: Utxo,
        asset_a_id: str,
        asset_b_id: str,
        decimals_a: int = LOVELACE_DECIMALS,
        decimals_b: int = LOVELACE_DECIMALS,
        pool_id: str = "",
    ) -> Optional[StablePool]:
        """Build a StablePool from one output; None when it carries no datum hash."""
        if not utxo.has_data_hash():
            return None

        datum = parse_stable_datum(await self.fetch_datum(utxo))
        return StablePool(
            dex_identifier=self.identifier,
            asset_a=token_from_identifier(asset_a_id, decimals_a),
            asset_b=token_from_identifier(asset_b_id, decimals_b),
            reserve_a=datum.balance_a,
            reserve_b=datum.balance_b,
            address=utxo.address,
            pool_id=pool_id or utxo.address,
            pool_fee_percent=self.settings.pool_fee_percent,
            amplification_coefficient=datum.amplification,
            total_liquidity=datum.total_liquidity,
        )
