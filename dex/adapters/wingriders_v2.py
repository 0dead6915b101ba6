"""
WingRiders V2 adapter.

Same discovery and deposit floor as V1, but the datum is flat and carries the
fee split, two treasuries, two optional project treasuries and, for stable
pools, a trailing constructor with the curve parameters. Stable pools are a
different sub-kind and are excluded here.

Datum layout (constructor 0):
    [5]  swap fee        (hundredths of a percent)
    [6]  protocol fee
    [7]  project fee
    [8]  reserve fee
    [12] treasury A
    [13] treasury B
    [14] project treasury A (optional)
    [15] project treasury B (optional)
    [20] pool kind: nonempty constructor for stable pools
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from dexter_kupo.datum import (
    constructor_fields,
    is_nonempty_constructor,
    require_fields,
    unsigned_integer,
)
from dexter_kupo.exceptions import ShapeError
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import get_logger, saturating_sub

from ..types import LiquidityPool
from .wingriders import WingRiders

logger = get_logger(__name__)

FEE_FIELDS = (5, 6, 7, 8)
STABLE_MARKER_FIELD = 20


@dataclass(frozen=True)
class WingRidersV2Settings:
    identifier: str = "WINGRIDERV2"
    validity_policy_id: str = "6fdc63a1d71dc2c65502b79baae7fb543185702b12c3c5fb639ed737"
    validity_asset: str = (
        "6fdc63a1d71dc2c65502b79baae7fb543185702b12c3c5fb639ed737.4c"
    )
    min_pool_lovelace: int = 3_000_000
    default_fee_percent: float = 0.35


def _optional_amount(fields: List[Any], index: int) -> int:
    if index >= len(fields):
        return 0
    try:
        return unsigned_integer(fields[index])
    except ShapeError:
        return 0


class WingRidersV2(WingRiders):
    name = "wingriders_v2"
    DEFAULT_SETTINGS = WingRidersV2Settings()

    def apply_datum(
        self, pool: LiquidityPool, datum: Any, utxo: Utxo
    ) -> Optional[LiquidityPool]:
        fields = require_fields(constructor_fields(datum), 14, "WingRidersV2 datum")

        if len(fields) > STABLE_MARKER_FIELD and is_nonempty_constructor(
            fields[STABLE_MARKER_FIELD]
        ):
            logger.debug(f"Skipping stable pool {pool.pool_id} ({utxo.output_ref})")
            return None

        fee_total = sum(unsigned_integer(fields[i]) for i in FEE_FIELDS)
        treasury_a = unsigned_integer(fields[12])
        treasury_b = unsigned_integer(fields[13])

        pool.pool_fee_percent = fee_total / 100
        pool = self.apply_treasuries(pool, treasury_a, treasury_b)
        pool.reserve_a = saturating_sub(pool.reserve_a, _optional_amount(fields, 14))
        pool.reserve_b = saturating_sub(pool.reserve_b, _optional_amount(fields, 15))
        return pool
