"""
Minswap V1 adapter.

Pools are found by the validity asset every pool output carries. Reserves
come straight from the holdings and the fee is fixed, so no datum is read.
"""

from dataclasses import dataclass
from typing import List, Optional

from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import join_policy_id, split_policy_id

from ..base import BaseDex, prefixed_pool_id
from ..types import LiquidityPool, QueryStats


@dataclass(frozen=True)
class MinswapV1Settings:
    identifier: str = "MINSWAP"
    validity_asset: str = (
        "13aa2accf2e1561723aa26871e071fdf32c867cff7e7d50ad470d62f.4d494e53574150"
    )
    lp_token_policy_id: str = "e4214b7cce62ac6fbba385d164df48e157eae5863521b4b67ca71d86"
    pool_nft_policy_id: str = "0be55d262b29f564998ff81efe21bdc0022621c12f15af08d0f2ddb1"
    default_fee_percent: float = 0.3


class MinswapV1(BaseDex):
    name = "minswap_v1"
    DEFAULT_SETTINGS = MinswapV1Settings()
    requires_datum = False

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.kupo.get(self.settings.validity_asset)

    def is_excluded_unit(self, unit: str) -> bool:
        return (
            unit == join_policy_id(self.settings.validity_asset)
            or unit.startswith(self.settings.lp_token_policy_id)
            or unit.startswith(self.settings.pool_nft_policy_id)
        )

    def is_pool_id_unit(self, unit: str) -> bool:
        return unit.startswith(self.settings.pool_nft_policy_id)

    def normalize_pool_id(self, pool_id: str) -> str:
        return prefixed_pool_id(pool_id, self.settings.pool_nft_policy_id)

    async def resolve_by_id(self, pool_id: str) -> Optional[LiquidityPool]:
        # The NFT is unique, so the indexer can be asked for it directly
        full_id = self.normalize_pool_id(pool_id)
        utxos = await self.kupo.get(split_policy_id(full_id))
        if not utxos:
            return None
        return await self._extend_or_skip(utxos[0], full_id, QueryStats())
