"""
WingRiders adapter.

Every pool output carries the validity asset plus a pool NFT under the same
policy. The contract keeps a fixed minimum deposit of lovelace in each pool,
which is not tradeable, and accrues treasury amounts recorded in the datum;
both are taken off the holdings.

Datum layout (constructor 0):
    [0] request validator hash (ignored)
    [1] pool state constructor:
        [0] asset A (ignored)
        [1] asset B (ignored)
        [2] treasury A
        [3] treasury B
"""

from dataclasses import dataclass
from typing import Any, List

from dexter_kupo.datum import constructor_fields, require_fields, unsigned_integer
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import get_logger, join_policy_id, saturating_sub

from ..base import BaseDex, prefixed_pool_id
from ..types import LOVELACE, LiquidityPool, is_lovelace

logger = get_logger(__name__)


@dataclass(frozen=True)
class WingRidersSettings:
    identifier: str = "WINGRIDER"
    validity_policy_id: str = "026a18d04a0c642759bb3d83b12e3344894e5c1c7b2aeb1a2113a570"
    validity_asset: str = (
        "026a18d04a0c642759bb3d83b12e3344894e5c1c7b2aeb1a2113a570.4c"
    )
    min_pool_lovelace: int = 3_000_000
    default_fee_percent: float = 0.35


class WingRiders(BaseDex):
    name = "wingriders"
    DEFAULT_SETTINGS = WingRidersSettings()

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.kupo.get(self.settings.validity_asset)

    def is_excluded_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.validity_policy_id)

    def is_pool_id_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.validity_policy_id) and unit != join_policy_id(
            self.settings.validity_asset
        )

    def normalize_pool_id(self, pool_id: str) -> str:
        return prefixed_pool_id(pool_id, self.settings.validity_policy_id)

    def reserve_amount(self, unit: str, quantity: int) -> int:
        if unit == LOVELACE:
            return saturating_sub(quantity, self.settings.min_pool_lovelace)
        return quantity

    def apply_treasuries(
        self, pool: LiquidityPool, treasury_a: int, treasury_b: int
    ) -> LiquidityPool:
        """Take accrued treasury amounts off both reserves."""
        if not is_lovelace(pool.asset_a) and not is_lovelace(pool.asset_b):
            # The minimum deposit is only locked on the lovelace side
            logger.debug(
                f"[{self.identifier}] {pool.pool_id} has no lovelace side, "
                "no deposit floor applied"
            )
        pool.reserve_a = saturating_sub(pool.reserve_a, treasury_a)
        pool.reserve_b = saturating_sub(pool.reserve_b, treasury_b)
        return pool

    def apply_datum(self, pool: LiquidityPool, datum: Any, utxo: Utxo) -> LiquidityPool:
        fields = require_fields(constructor_fields(datum), 2, "WingRiders datum")
        state = require_fields(
            constructor_fields(fields[1]), 4, "WingRiders pool state"
        )
        treasury_a = unsigned_integer(state[2])
        treasury_b = unsigned_integer(state[3])
        return self.apply_treasuries(pool, treasury_a, treasury_b)
