"""
Whole-query operations on top of the protocol adapters.

These are what the CLI drives: export every pool of one protocol, look up the
pools of one token pair, and keep the VyFinance pool list cached between runs.
"""

from pathlib import Path
from typing import List, Optional, Union

from dexter_kupo.cache import load_from_file, save_to_file
from dexter_kupo.exceptions import CacheError
from dexter_kupo.utils import get_logger, safe_json_dump

from .adapters.vyfinance import VyFinance, VyFinancePoolData
from .base import BaseDex
from .types import QueryResult

logger = get_logger(__name__)

DEFAULT_EXPORT_PATH = "pools.json"


async def export_all(dex: BaseDex) -> QueryResult:
    """
    Reconstruct every pool of one protocol.

    Candidates are enumerated once, then built and extended under the adapter's
    concurrency limit. Malformed outputs are skipped and counted; indexer
    failures propagate.
    """
    logger.info(f"[{dex.identifier}] fetching all pool outputs...")
    utxos = await dex.candidate_outputs()
    logger.info(f"[{dex.identifier}] found {len(utxos)} outputs")
    return await dex.collect(utxos)


async def load_vyfinance_cache(
    dex: VyFinance, path: Union[str, Path]
) -> List[VyFinancePoolData]:
    """
    Read the VyFinance pool list from `path`, fetching and saving it when the
    file is missing or unreadable.
    """
    try:
        data = load_from_file(path)
        pools = [VyFinancePoolData.from_dict(entry) for entry in data]
        logger.info(f"Loaded {len(pools)} VyFinance pools from cache {path}")
        return pools
    except (CacheError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Cache file not found or invalid ({e}), fetching from API...")

    pools = await dex.fetch_all_pool_data()
    try:
        save_to_file([p.to_dict() for p in pools], path)
    except CacheError as e:
        logger.warning(f"Could not save VyFinance cache: {e}")
    return pools


async def query_pair(
    dex: BaseDex,
    token_x: str,
    token_y: str,
    cache_path: Optional[Union[str, Path]] = None,
) -> QueryResult:
    """Pools of one protocol trading the unordered pair (token_x, token_y)."""
    logger.info(f"[{dex.identifier}] querying pools for {token_x} / {token_y}...")
    if isinstance(dex, VyFinance):
        cache = await load_vyfinance_cache(dex, cache_path) if cache_path else None
        return await dex.query_pair(token_x, token_y, cache)
    return await dex.query_pair(token_x, token_y)


def write_export(result: QueryResult, path: Union[str, Path] = DEFAULT_EXPORT_PATH) -> int:
    """Write a query's records as a JSON array; returns the number written."""
    records = result.to_export()
    Path(path).write_text(safe_json_dump(records), encoding="utf-8")
    logger.info(
        f"Exported {len(records)} records to {path} (skipped {result.stats.skipped})"
    )
    return len(records)
