"""
Protocol reconstruction contract shared by every constant-product DEX.

A protocol adapter declares where its pools live (candidate_outputs), which
holdings are markers rather than reserves (is_excluded_unit), which holding
names the pool (is_pool_id_unit), and how its datum refines a preliminary
record (apply_datum). Everything else, including the two-phase
filter-then-extend pair query and per-output error isolation, lives here.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, List, Optional, Tuple

from dexter_kupo.datum import U64_MAX, decode_datum
from dexter_kupo.exceptions import DatumError, DatumNotFoundError, DecodeError
from dexter_kupo.kupo import KupoApi, Unit, Utxo
from dexter_kupo.utils import gather_bounded, get_logger, join_policy_id

from .config import apply_overrides
from .types import (
    LiquidityPool,
    QueryResult,
    QueryStats,
    matches_pair,
    token_from_identifier,
)

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 5
PROGRESS_EVERY = 10


def parse_quantity(quantity: str) -> int:
    """
    Parse a holding quantity as an unsigned 64-bit integer.

    Raises:
        DecodeError: If the quantity is not a decimal string in range
    """
    # isdigit alone also accepts non-ASCII digits such as superscripts
    if not isinstance(quantity, str) or not (
        quantity.isascii() and quantity.isdigit()
    ):
        raise DecodeError(f"Malformed holding quantity: {quantity!r}")
    value = int(quantity)
    if value > U64_MAX:
        raise DecodeError(f"Holding quantity out of range: {quantity}")
    return value


def prefixed_pool_id(pool_id: str, policy_id: str) -> str:
    """Joined pool id unit, adding the policy prefix when only the name was given."""
    joined = join_policy_id(pool_id)
    return joined if joined.startswith(policy_id) else policy_id + joined


def reserve_pair(relevant: List[Unit]) -> Optional[Tuple[Unit, Unit]]:
    """
    Pick the two reserve holdings from the non-marker holdings of an output.

    Exactly two: both are reserves. Exactly three: the first is an incidental
    marker and the last two are reserves. Any other count is not a pool.
    """
    if len(relevant) == 2:
        return relevant[0], relevant[1]
    if len(relevant) == 3:
        return relevant[1], relevant[2]
    return None


class ProtocolAdapter:
    """
    Anything that reads one protocol's outputs through the indexer.

    Subclasses set `name` (registry key) and `DEFAULT_SETTINGS`, a frozen
    dataclass of mainnet constants whose `identifier` field names the protocol.
    """

    name: ClassVar[str] = ""
    DEFAULT_SETTINGS: ClassVar[Any] = None

    def __init__(
        self,
        kupo: KupoApi,
        settings: Any = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        """
        Args:
            kupo: Indexer client shared by every query of this adapter
            settings: Protocol constants; defaults to mainnet values
            concurrency: Maximum datum fetches in flight per query
        """
        self.kupo = kupo
        self.settings = settings if settings is not None else self.DEFAULT_SETTINGS
        self.concurrency = concurrency

    @classmethod
    def from_overrides(
        cls, kupo: KupoApi, overrides: Optional[dict] = None, **kwargs
    ) -> "ProtocolAdapter":
        """Build an adapter whose mainnet constants are patched by config overrides."""
        return cls(kupo, apply_overrides(cls.DEFAULT_SETTINGS, overrides), **kwargs)

    @property
    def identifier(self) -> str:
        return self.settings.identifier

    async def fetch_datum(self, utxo: Utxo) -> Any:
        """
        Fetch and decode the datum attached to an output.

        Raises:
            DatumNotFoundError: If the indexer has no datum for the hash
            DecodeError: If the datum is not valid CBOR
        """
        cbor_hex = await self.kupo.datum(utxo.data_hash)
        if cbor_hex is None:
            raise DatumNotFoundError(
                f"No datum for hash {utxo.data_hash}", datum_hash=utxo.data_hash
            )
        return decode_datum(cbor_hex)


class BaseDex(ProtocolAdapter, ABC):
    """
    Base class for a constant-product protocol adapter.

    Subclasses implement the hooks; `requires_datum = False` makes extend()
    return the preliminary record without fetching a datum.
    """

    requires_datum: ClassVar[bool] = True

    # Hooks
    @abstractmethod
    async def candidate_outputs(self) -> List[Utxo]:
        """Query the indexer for every output that could hold a pool."""

    @abstractmethod
    def is_excluded_unit(self, unit: str) -> bool:
        """True for LP, validity-marker and NFT units that are not reserves."""

    @abstractmethod
    def is_pool_id_unit(self, unit: str) -> bool:
        """True for the unit that names the pool."""

    def relevant_holdings(self, utxo: Utxo, fallback_pool_id: str) -> List[Unit]:
        return [a for a in utxo.amount if not self.is_excluded_unit(a.unit)]

    def pool_id_from_unit(self, unit: str) -> str:
        return unit

    def normalize_pool_id(self, pool_id: str) -> str:
        """Joined unit identifier a pool id refers to."""
        return join_policy_id(pool_id)

    def default_fee_percent(self) -> float:
        return self.settings.default_fee_percent

    def reserve_amount(self, unit: str, quantity: int) -> int:
        """Tradeable amount for a reserve holding; identity unless a floor is locked."""
        return quantity

    def apply_datum(
        self, pool: LiquidityPool, datum: Any, utxo: Utxo
    ) -> Optional[LiquidityPool]:
        """Refine a preliminary record from its decoded datum; None excludes it."""
        return pool

    # Contract
    def from_output(
        self, utxo: Utxo, fallback_pool_id: str = ""
    ) -> Optional[LiquidityPool]:
        """
        Build a preliminary record from holdings alone (no datum fetch).

        Returns:
            LiquidityPool, or None when the output carries no datum hash or its
            non-marker holding count is not 2 or 3

        Raises:
            DecodeError: If a reserve unit or quantity is malformed
        """
        if not utxo.has_data_hash():
            return None

        reserves = reserve_pair(self.relevant_holdings(utxo, fallback_pool_id))
        if reserves is None:
            return None
        holding_a, holding_b = reserves

        pool_id = next(
            (
                self.pool_id_from_unit(a.unit)
                for a in utxo.amount
                if self.is_pool_id_unit(a.unit)
            ),
            fallback_pool_id,
        )

        return LiquidityPool(
            dex_identifier=self.identifier,
            asset_a=token_from_identifier(holding_a.unit),
            asset_b=token_from_identifier(holding_b.unit),
            reserve_a=self.reserve_amount(
                holding_a.unit, parse_quantity(holding_a.quantity)
            ),
            reserve_b=self.reserve_amount(
                holding_b.unit, parse_quantity(holding_b.quantity)
            ),
            address=utxo.address,
            pool_id=pool_id,
            pool_fee_percent=self.default_fee_percent(),
        )

    async def extend(self, utxo: Utxo, pool_id: str = "") -> Optional[LiquidityPool]:
        """
        Build the final record: preliminary holdings refined by the datum.

        Returns:
            LiquidityPool, or None when the output is not (or not this kind of) pool

        Raises:
            DatumError: If the datum is missing or malformed for an output that
                otherwise looked like a pool
        """
        pool = self.from_output(utxo, pool_id)
        if pool is None or not self.requires_datum:
            return pool

        datum = await self.fetch_datum(utxo)
        return self.apply_datum(pool, datum, utxo)

    async def resolve_by_id(self, pool_id: str) -> Optional[LiquidityPool]:
        """Find the output holding the pool id unit and extend it; None if absent."""
        full_id = self.normalize_pool_id(pool_id)
        utxos = await self.candidate_outputs()
        utxo = next(
            (u for u in utxos if any(a.unit == full_id for a in u.amount)), None
        )
        if utxo is None:
            return None
        return await self._extend_or_skip(utxo, full_id, QueryStats())

    async def resolve_by_pair(self, token_x: str, token_y: str) -> List[LiquidityPool]:
        """All pools trading the unordered pair, sorted by pool id."""
        result = await self.query_pair(token_x, token_y)
        return result.records

    async def query_pair(self, token_x: str, token_y: str) -> QueryResult:
        utxos = await self.candidate_outputs()
        return await self.collect(
            utxos, lambda pool: matches_pair(pool.asset_a, pool.asset_b, token_x, token_y)
        )

    async def collect(
        self,
        utxos: List[Utxo],
        predicate: Optional[Callable[[LiquidityPool], bool]] = None,
    ) -> QueryResult:
        """
        Two-phase pipeline: preliminary records for every output, then datum
        extension for those passing `predicate`, under the concurrency limit.
        """
        stats = QueryStats(total=len(utxos))
        matched: List[Tuple[Utxo, str]] = []

        for utxo in utxos:
            try:
                preliminary = self.from_output(utxo)
            except DatumError as e:
                self._log_skip(utxo, "preliminary", e)
                stats.skipped += 1
                continue

            if preliminary is None or (predicate and not predicate(preliminary)):
                stats.ignored += 1
                continue
            matched.append((utxo, preliminary.pool_id))

        progress = {"done": 0, "pools": 0}

        async def extend_one(item: Tuple[Utxo, str]):
            utxo, pool_id = item
            pool = await self._extend_or_skip(utxo, pool_id, stats)
            progress["done"] += 1
            if pool is not None:
                progress["pools"] += 1
            done = progress["done"]
            if done % PROGRESS_EVERY == 0 or done == len(matched):
                logger.info(
                    f"[{self.identifier}] [{done}/{len(matched)}] "
                    f"pools={progress['pools']} skipped={stats.skipped}"
                )
            return utxo, pool

        extended = await gather_bounded(extend_one, matched, self.concurrency)

        result = QueryResult(stats=stats)
        for utxo, pool in extended:
            if pool is not None:
                result.records.append(pool)
                result.tx_hashes[pool.pool_id] = utxo.tx_hash
        result.records.sort(key=lambda p: p.pool_id)
        stats.resolved = len(result.records)

        logger.info(f"[{self.identifier}] {stats.summary()}")
        return result

    async def _extend_or_skip(
        self, utxo: Utxo, pool_id: str, stats: QueryStats
    ) -> Optional[LiquidityPool]:
        try:
            pool = await self.extend(utxo, pool_id)
        except DatumError as e:
            self._log_skip(utxo, "extend", e)
            stats.skipped += 1
            return None
        if pool is None:
            stats.ignored += 1
        return pool

    def _log_skip(self, utxo: Utxo, stage: str, error: Exception) -> None:
        logger.warning(
            f"[{self.identifier}] skipping {utxo.output_ref} at {stage}: {error}"
        )
