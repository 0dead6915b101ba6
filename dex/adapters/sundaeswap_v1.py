"""
SundaeSwap V1 adapter.

Datum layout (constructor 0):
    [0] asset pair (ignored)
    [1] pool identifier bytes (ignored)
    [2] total LP tokens
    [3] fee constructor {numerator, denominator}
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from dexter_kupo.datum import constructor_fields, require_fields, unsigned_integer
from dexter_kupo.kupo import Utxo

from ..base import BaseDex, prefixed_pool_id
from ..types import LiquidityPool


@dataclass(frozen=True)
class SundaeSwapV1Settings:
    identifier: str = "SUNDAESWAPV1"
    pool_address: str = "addr1w9qzpelu9hn45pefc0xr4ac4kdxeswq7pndul2vuj59u8tqaxdznu"
    lp_token_policy_id: str = "0029cb7c88c7567b63d1a512c0ed626aa169688ec980730c0473b913"
    default_fee_percent: float = 0.3


class SundaeSwapV1(BaseDex):
    name = "sundaeswap_v1"
    DEFAULT_SETTINGS = SundaeSwapV1Settings()

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.kupo.get(self.settings.pool_address)

    def is_excluded_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.lp_token_policy_id)

    def is_pool_id_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.lp_token_policy_id)

    def normalize_pool_id(self, pool_id: str) -> str:
        return prefixed_pool_id(pool_id, self.settings.lp_token_policy_id)

    def apply_datum(
        self, pool: LiquidityPool, datum: Any, utxo: Utxo
    ) -> Optional[LiquidityPool]:
        fields = require_fields(constructor_fields(datum), 4, "SundaeSwapV1 datum")
        total_lp = unsigned_integer(fields[2])

        fee_fields = require_fields(
            constructor_fields(fields[3]), 2, "SundaeSwapV1 fee"
        )
        numerator = unsigned_integer(fee_fields[0])
        denominator = unsigned_integer(fee_fields[1])

        pool.total_lp_tokens = total_lp
        if denominator > 0:
            pool.pool_fee_percent = numerator / denominator * 100
        else:
            pool.pool_fee_percent = self.settings.default_fee_percent
        return pool
