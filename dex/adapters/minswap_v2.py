"""
Minswap V2 adapter.

All pools sit behind one script hash. The datum is authoritative for reserves,
LP supply and the base fee; its asset order decides which reserve belongs to
which holding.

Datum layout (constructor 0):
    [0] validator wrapper (ignored)
    [1] asset A constructor {policy, name}
    [2] asset B constructor {policy, name}
    [3] total LP tokens
    [4] reserve A
    [5] reserve B
    [6] base fee (hundredths of a percent)
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from dexter_kupo.datum import (
    asset_pair,
    constructor_fields,
    require_fields,
    unsigned_integer,
)
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import get_logger

from ..base import BaseDex, prefixed_pool_id
from ..types import LiquidityPool, is_lovelace, token_identifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class MinswapV2Settings:
    identifier: str = "MINSWAPV2"
    pool_script_hash: str = "script1agrmwv7exgffcdu27cn5xmnuhsh0p0ukuqpkhdgm800xksw7e2w"
    lp_token_policy_id: str = "f5808c2c990d86da54bfc97d89cee6efa20cd8461616359478d96b4c"
    validity_asset: str = (
        "f5808c2c990d86da54bfc97d89cee6efa20cd8461616359478d96b4c4d5350"
    )
    default_fee_percent: float = 0.3


class MinswapV2(BaseDex):
    name = "minswap_v2"
    DEFAULT_SETTINGS = MinswapV2Settings()

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.kupo.get(f"{self.settings.pool_script_hash}/*")

    def is_excluded_unit(self, unit: str) -> bool:
        return unit == self.settings.validity_asset or unit.startswith(
            self.settings.lp_token_policy_id
        )

    def is_pool_id_unit(self, unit: str) -> bool:
        return (
            unit.startswith(self.settings.lp_token_policy_id)
            and unit != self.settings.validity_asset
        )

    def normalize_pool_id(self, pool_id: str) -> str:
        return prefixed_pool_id(pool_id, self.settings.lp_token_policy_id)

    def apply_datum(
        self, pool: LiquidityPool, datum: Any, utxo: Utxo
    ) -> Optional[LiquidityPool]:
        fields = require_fields(constructor_fields(datum), 7, "MinswapV2 datum")

        policy_a, name_a = asset_pair(fields[1])
        policy_b, _ = asset_pair(fields[2])
        total_lp = unsigned_integer(fields[3])
        reserve_a = unsigned_integer(fields[4])
        reserve_b = unsigned_integer(fields[5])
        base_fee = unsigned_integer(fields[6])

        if policy_b == self.settings.lp_token_policy_id:
            logger.debug(f"Skipping zap pool {pool.pool_id} ({utxo.output_ref})")
            return None

        # Native unit is encoded as empty policy and empty name
        if policy_a == "" and name_a == "":
            same_order = is_lovelace(pool.asset_a)
        else:
            same_order = token_identifier(pool.asset_a) == policy_a + name_a

        if same_order:
            pool.reserve_a, pool.reserve_b = reserve_a, reserve_b
        else:
            pool.reserve_a, pool.reserve_b = reserve_b, reserve_a

        pool.total_lp_tokens = total_lp
        pool.pool_fee_percent = base_fee / 100
        return pool
