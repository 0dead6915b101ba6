"""
CSwap adapter.

All pools share one script address. The LP token of each pool is minted under
a pool-specific policy with the fixed asset name "c", so it is recognized by
its name rather than its policy.

Datum layout (constructor 0):
    [0] total LP tokens
    [1] LP fee (hundredths of a percent)
"""

from dataclasses import dataclass
from typing import Any, List

from dexter_kupo.datum import constructor_fields, require_fields, unsigned_integer
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import POLICY_ID_HEX_LENGTH, join_policy_id

from ..base import BaseDex
from ..types import LiquidityPool


@dataclass(frozen=True)
class CSwapSettings:
    identifier: str = "CSWAP"
    pool_address: str = (
        "addr1z8ke0c9p89rjfwmuh98jpt8ky74uy5mffjft3zlcld9h7ml3lmln3mwk0y3zsh3gs3dzqlwa9rjzrxawkwm4udw9axhs6fuu6e"
    )
    lp_token_name_hex: str = "63"
    default_fee_percent: float = 0.3


class CSwap(BaseDex):
    name = "cswap"
    DEFAULT_SETTINGS = CSwapSettings()

    def is_lp_unit(self, unit: str) -> bool:
        return (
            len(unit) > POLICY_ID_HEX_LENGTH
            and unit[POLICY_ID_HEX_LENGTH:] == self.settings.lp_token_name_hex
        )

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.kupo.get(self.settings.pool_address)

    def is_excluded_unit(self, unit: str) -> bool:
        return self.is_lp_unit(unit)

    def is_pool_id_unit(self, unit: str) -> bool:
        return self.is_lp_unit(unit)

    def normalize_pool_id(self, pool_id: str) -> str:
        # LP policies differ per pool, so there is no prefix to add
        return join_policy_id(pool_id)

    def apply_datum(self, pool: LiquidityPool, datum: Any, utxo: Utxo) -> LiquidityPool:
        fields = require_fields(constructor_fields(datum), 2, "CSwap datum")
        pool.total_lp_tokens = unsigned_integer(fields[0])
        pool.pool_fee_percent = unsigned_integer(fields[1]) / 100
        return pool
