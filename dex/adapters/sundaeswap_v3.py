"""
SundaeSwap V3 adapter.

Pools live at two script addresses that are queried concurrently.

Datum layout (constructor 0):
    [0] pool identifier bytes (ignored)
    [1] asset pair list (ignored)
    [2] total LP tokens
    [3] opening fee (ignored)
    [4] final fee (hundredths of a percent)
    [5], [6] ignored
    [7] signed lovelace deduction, taken off the native-unit reserve
"""

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from dexter_kupo.datum import (
    constructor_fields,
    require_fields,
    signed_integer,
    unsigned_integer,
)
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import saturating_sub

from ..base import BaseDex, prefixed_pool_id
from ..types import LiquidityPool, is_lovelace


@dataclass(frozen=True)
class SundaeSwapV3Settings:
    identifier: str = "SUNDAESWAPV3"
    pool_addresses: Tuple[str, ...] = (
        "addr1x8srqftqemf0mjlukfszd97ljuxdp44r372txfcr75wrz26rnxqnmtv3hdu2t6chcfhl2zzjh36a87nmd6dwsu3jenqsslnz7e",
        "addr1z8srqftqemf0mjlukfszd97ljuxdp44r372txfcr75wrz2auzrlrz2kdd83wzt9u9n9qt2swgvhrmmn96k55nq6yuj4qw992w9",
    )
    lp_token_policy_id: str = "e0302560ced2fdcbfcb2602697df970cd0d6a38f94b32703f51c312b"
    default_fee_percent: float = 0.3


class SundaeSwapV3(BaseDex):
    name = "sundaeswap_v3"
    DEFAULT_SETTINGS = SundaeSwapV3Settings()

    async def candidate_outputs(self) -> List[Utxo]:
        batches = await asyncio.gather(
            *[self.kupo.get(address) for address in self.settings.pool_addresses]
        )
        return [utxo for batch in batches for utxo in batch]

    def is_excluded_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.lp_token_policy_id)

    def is_pool_id_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.lp_token_policy_id)

    def normalize_pool_id(self, pool_id: str) -> str:
        return prefixed_pool_id(pool_id, self.settings.lp_token_policy_id)

    def apply_datum(
        self, pool: LiquidityPool, datum: Any, utxo: Utxo
    ) -> Optional[LiquidityPool]:
        fields = require_fields(constructor_fields(datum), 8, "SundaeSwapV3 datum")
        total_lp = unsigned_integer(fields[2])
        final_fee = unsigned_integer(fields[4])
        deduction = abs(signed_integer(fields[7]))

        pool.total_lp_tokens = total_lp
        pool.pool_fee_percent = final_fee / 100

        if deduction:
            if is_lovelace(pool.asset_a):
                pool.reserve_a = saturating_sub(pool.reserve_a, deduction)
            elif is_lovelace(pool.asset_b):
                pool.reserve_b = saturating_sub(pool.reserve_b, deduction)
        return pool
