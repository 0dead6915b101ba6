"""
VyFinance adapter.

There is no shared pool address: the pool list comes from the VyFi API, and
each pool is then located on the indexer by its main NFT. The API list is
the expensive part, so it can be cached to disk and re-filtered by token
pair without fetching it again.

Datum layout (constructor 0):
    [0] bar fee accrued in asset A
    [1] bar fee accrued in asset B
    [2] total LP tokens
"""

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dexter_kupo.datum import constructor_fields, require_fields, unsigned_integer
from dexter_kupo.exceptions import MalformedExternalApiResponse
from dexter_kupo.kupo import KupoApi, Unit, Utxo
from dexter_kupo.utils import (
    gather_bounded,
    get_logger,
    join_policy_id,
    saturating_sub,
    split_policy_id,
)

from ..base import DEFAULT_CONCURRENCY, BaseDex
from ..types import LOVELACE, LiquidityPool, QueryResult, QueryStats, matches_pair

logger = get_logger(__name__)


@dataclass(frozen=True)
class VyFinanceSettings:
    identifier: str = "VYFINANCE"
    api_url: str = "https://api.vyfi.io/lp?networkId=1&v2=true"
    default_fee_percent: float = 0.3


class VyfiPoolEntry(BaseModel):
    """One entry of the VyFi `/lp` response; `json` is itself a JSON string."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pool_json: str = Field(alias="json")
    units_pair: str = Field(default="", alias="unitsPair")
    address: str = Field(default="", alias="poolValidatorUtxoAddress")


@dataclass
class VyFinancePoolData:
    """
    Pool discovered through the VyFi API.

    Attributes:
        nft_id: Main NFT in `policy.name` form; doubles as the pool id
        asset_a: Joined identifier of the first asset ("lovelace" for ADA)
        asset_b: Joined identifier of the second asset
        address: Pool validator address, if the API reported one
    """

    nft_id: str
    asset_a: str = ""
    asset_b: str = ""
    address: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VyFinancePoolData":
        return cls(
            nft_id=data["nft_id"],
            asset_a=data.get("asset_a", ""),
            asset_b=data.get("asset_b", ""),
            address=data.get("address", ""),
        )

    def has_pair(self) -> bool:
        return bool(self.asset_a and self.asset_b)

    def matches(self, token_x: str, token_y: str) -> bool:
        x, y = _pair_unit(token_x), _pair_unit(token_y)
        return {self.asset_a, self.asset_b} == {x, y}


def _pair_unit(unit: str) -> str:
    unit = join_policy_id(unit.strip())
    return LOVELACE if unit in ("", LOVELACE) else unit


def pool_data_from_entry(entry: VyfiPoolEntry) -> Optional[VyFinancePoolData]:
    """Extract the main NFT and asset pair; None when the entry names no NFT."""
    try:
        inner = json.loads(entry.pool_json)
    except ValueError:
        logger.debug(f"Ignoring VyFi entry with unreadable json: {entry.pool_json[:80]}")
        return None

    main_nft = inner.get("mainNFT") if isinstance(inner, dict) else None
    if not isinstance(main_nft, dict):
        return None
    currency_symbol = main_nft.get("currencySymbol") or ""
    token_name = main_nft.get("tokenName") or ""
    if not currency_symbol:
        return None

    asset_a = asset_b = ""
    units = entry.units_pair.split("/") if entry.units_pair else []
    if len(units) == 2:
        asset_a, asset_b = _pair_unit(units[0]), _pair_unit(units[1])

    return VyFinancePoolData(
        nft_id=f"{currency_symbol}.{token_name}",
        asset_a=asset_a,
        asset_b=asset_b,
        address=entry.address,
    )


def parse_pool_list(payload: Any, source: str = "") -> List[VyFinancePoolData]:
    """
    Parse the VyFi `/lp` response.

    Raises:
        MalformedExternalApiResponse: If the payload is not a list of entries
    """
    if not isinstance(payload, list):
        raise MalformedExternalApiResponse(
            f"VyFi API returned {type(payload).__name__}, expected a list",
            source=source,
        )
    try:
        entries = [VyfiPoolEntry.model_validate(item) for item in payload]
    except ValidationError as e:
        raise MalformedExternalApiResponse(
            f"VyFi API entry failed validation: {e.error_count()} errors",
            source=source,
            details={"errors": e.errors(include_url=False)},
        ) from e

    pools = []
    for entry in entries:
        data = pool_data_from_entry(entry)
        if data is not None:
            pools.append(data)
    return pools


class VyFinance(BaseDex):
    name = "vyfinance"
    DEFAULT_SETTINGS = VyFinanceSettings()

    def __init__(
        self,
        kupo: KupoApi,
        settings: Any = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        super().__init__(kupo, settings, concurrency)
        # Joined main NFT units located by the most recent discovery
        self._nft_units: Set[str] = set()

    async def fetch_all_pool_data(self) -> List[VyFinancePoolData]:
        """
        Fetch the pool list from the VyFi API.

        Raises:
            NetworkError: If the API cannot be reached
            MalformedExternalApiResponse: If the response has an unexpected shape
        """
        payload = await self.kupo.get_json(self.settings.api_url)
        pools = parse_pool_list(payload, source=self.settings.api_url)
        logger.info(f"[{self.identifier}] found {len(pools)} pools from API")
        return pools

    async def outputs_for(self, pools: List[VyFinancePoolData]) -> List[Utxo]:
        """Locate each pool's output by its main NFT, bounded by the concurrency limit."""

        async def locate(data: VyFinancePoolData) -> Tuple[str, Optional[Utxo]]:
            utxos = await self.kupo.get(split_policy_id(data.nft_id))
            if not utxos:
                logger.debug(f"[{self.identifier}] no output holds {data.nft_id}")
                return data.nft_id, None
            return data.nft_id, utxos[0]

        located = await gather_bounded(locate, pools, self.concurrency)
        self._nft_units = {
            join_policy_id(nft_id) for nft_id, utxo in located if utxo is not None
        }
        return [utxo for _, utxo in located if utxo is not None]

    async def candidate_outputs(self) -> List[Utxo]:
        return await self.outputs_for(await self.fetch_all_pool_data())

    def relevant_holdings(self, utxo: Utxo, fallback_pool_id: str) -> List[Unit]:
        # The NFT of the pool being resolved is a marker even if discovery never saw it
        pool_nft = join_policy_id(fallback_pool_id)
        return [
            a
            for a in utxo.amount
            if a.unit != pool_nft and not self.is_excluded_unit(a.unit)
        ]

    def is_excluded_unit(self, unit: str) -> bool:
        return unit in self._nft_units

    def is_pool_id_unit(self, unit: str) -> bool:
        return unit in self._nft_units

    def pool_id_from_unit(self, unit: str) -> str:
        return split_policy_id(unit)

    def normalize_pool_id(self, pool_id: str) -> str:
        return split_policy_id(join_policy_id(pool_id))

    def apply_datum(self, pool: LiquidityPool, datum: Any, utxo: Utxo) -> LiquidityPool:
        fields = require_fields(constructor_fields(datum), 3, "VyFinance datum")
        bar_fee_a = unsigned_integer(fields[0])
        bar_fee_b = unsigned_integer(fields[1])
        pool.reserve_a = saturating_sub(pool.reserve_a, bar_fee_a)
        pool.reserve_b = saturating_sub(pool.reserve_b, bar_fee_b)
        pool.total_lp_tokens = unsigned_integer(fields[2])
        return pool

    async def resolve_by_id(self, pool_id: str) -> Optional[LiquidityPool]:
        nft_id = self.normalize_pool_id(pool_id)
        utxos = await self.kupo.get(nft_id)
        if not utxos:
            return None
        return await self._extend_or_skip(utxos[0], nft_id, QueryStats())

    async def query_pair(
        self,
        token_x: str,
        token_y: str,
        cache: Optional[List[VyFinancePoolData]] = None,
    ) -> QueryResult:
        pools = cache if cache is not None else await self.fetch_all_pool_data()
        # Entries without a reported pair cannot be pre-filtered
        wanted = [p for p in pools if not p.has_pair() or p.matches(token_x, token_y)]
        utxos = await self.outputs_for(wanted)
        return await self.collect(
            utxos, lambda pool: matches_pair(pool.asset_a, pool.asset_b, token_x, token_y)
        )

    async def resolve_by_pair(
        self,
        token_x: str,
        token_y: str,
        cache: Optional[List[VyFinancePoolData]] = None,
    ) -> List[LiquidityPool]:
        result = await self.query_pair(token_x, token_y, cache)
        return result.records
