#!/usr/bin/env python3
"""
Read Cardano DEX liquidity pools from a Kupo indexer.

Usage:
  # Export every pool of one DEX to pools.json
  python run_dex.py --dex minswap_v2

  # Print the pools of one pair (use 'lovelace' for ADA)
  python run_dex.py --dex minswap_v1 lovelace f13ac4d66b3ee19a6aa0f2a22298737bd907cc95121662fc971b5275535452494b45

  # VyFinance pair query with the pool list cached on disk
  python run_dex.py --dex vyfinance --cache vyfi_cache.json lovelace <asset>

  # Stable pool at a known address
  python run_dex.py --dex minswap_stable <pool_address> <asset_a> <asset_b> [decimals_a] [decimals_b]

  # ChadSwap order book for one token, or for every token
  python run_dex.py --dex chadswap <token_id>
  python run_dex.py --dex chadswap_all

  # VyFi Bar staking rate
  python run_dex.py --vyfi-bar <policy_id>.

Available DEXes:
  minswap_v1, minswap_v2, sundaeswap_v1, sundaeswap_v3, wingriders,
  wingriders_v2, cswap, vyfinance, minswap_stable, chadswap, chadswap_all

Environment Variables:
  KUPO_URL: Base URL of the Kupo indexer (overrides the config file)
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

import logging_config
from dex.adapters import POOL_DEXES, create_adapter
from dex.config import DEFAULT_CONFIG_PATH, load_config
from dex.runner import DEFAULT_EXPORT_PATH, export_all, query_pair, write_export
from dexter_kupo.config_schema import DexterSettings
from dexter_kupo.exceptions import DexterError
from dexter_kupo.kupo import KupoApi
from dexter_kupo.utils import get_logger, safe_json_dump
from dexter_kupo.version import get_version

logger = get_logger(__name__)

CHADSWAP_ALL = "chadswap_all"


class UsageError(Exception):
    """Positional arguments do not fit the selected mode."""


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cardano DEX pool reader (Kupo indexer)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dex",
        type=str,
        default="minswap_v2",
        help="DEX to query (default: minswap_v2)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Path to config YAML (default: {DEFAULT_CONFIG_PATH} if present)",
    )
    parser.add_argument(
        "--cache",
        type=str,
        default=None,
        help="Path to the VyFinance pool-list cache JSON file",
    )
    parser.add_argument(
        "--vyfi-bar",
        type=str,
        default=None,
        metavar="POOL_IDENTIFIER",
        help="Fetch the VyFi Bar rate for a pool identifier",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=DEFAULT_EXPORT_PATH,
        help=f"Export file for whole-DEX exports (default: {DEFAULT_EXPORT_PATH})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_version()}"
    )
    parser.add_argument("assets", nargs="*", help="Mode-specific positional arguments")
    return parser.parse_args(argv)


def resolve_config_path(config_arg: Optional[str]) -> Optional[str]:
    if config_arg:
        return config_arg
    return DEFAULT_CONFIG_PATH if Path(DEFAULT_CONFIG_PATH).exists() else None


def _print_json(data) -> None:
    print(safe_json_dump(data))


async def run_pool_dex(args: argparse.Namespace, kupo: KupoApi, settings: DexterSettings) -> int:
    dex = create_adapter(args.dex, kupo, settings)
    if not args.assets:
        result = await export_all(dex)
        write_export(result, args.output)
        return 0
    if len(args.assets) != 2:
        raise UsageError("expected no positional args (export) or exactly two assets")

    result = await query_pair(dex, args.assets[0], args.assets[1], args.cache)
    if not result.records:
        logger.info("No pools found.")
        return 0
    logger.info(f"Found {len(result.records)} pool(s).")
    _print_json([pool.to_dict() for pool in result.records])
    return 0


async def run_stable(args: argparse.Namespace, kupo: KupoApi, settings: DexterSettings) -> int:
    if len(args.assets) < 3:
        raise UsageError(
            "minswap_stable requires: <pool_address> <asset_a> <asset_b> "
            "[decimals_a] [decimals_b]"
        )
    address, asset_a, asset_b = args.assets[:3]
    try:
        decimals = [int(d) for d in args.assets[3:5]]
    except ValueError as e:
        raise UsageError(f"decimals must be integers: {e}") from e
    decimals += [6] * (2 - len(decimals))

    dex = create_adapter("minswap_stable", kupo, settings)
    logger.info(f"[minswap_stable] fetching pool at: {address}")
    pool = await dex.get_pool(address, asset_a, asset_b, decimals[0], decimals[1])
    if pool is None:
        logger.error(f"Could not build stable pool at {address}")
        return 1
    _print_json(pool.to_dict())
    return 0


async def run_chadswap(args: argparse.Namespace, kupo: KupoApi, settings: DexterSettings) -> int:
    dex = create_adapter("chadswap", kupo, settings)
    if args.dex == CHADSWAP_ALL:
        if dex.settings.api_url:
            books = await dex.order_books_from_api()
        else:
            books = await dex.all_order_books()
        logger.info(f"[chadswap] found order books for {len(books)} tokens")
        _print_json([book.to_dict() for book in books])
        return 0

    if len(args.assets) != 1:
        raise UsageError("chadswap requires exactly 1 positional arg: <token_id>")
    logger.info(f"[chadswap] fetching orders for token: {args.assets[0]}")
    book = await dex.get_orders_by_token(args.assets[0])
    logger.info(
        f"[chadswap] found {len(book.buy_orders)} buy orders, "
        f"{len(book.sell_orders)} sell orders"
    )
    _print_json(book.to_dict())
    return 0


async def run_vyfi_bar(args: argparse.Namespace, kupo: KupoApi, settings: DexterSettings) -> int:
    dex = create_adapter("vyfi_bar", kupo, settings)
    logger.info(f"[vyfi_bar] fetching rate for pool: {args.vyfi_bar}")
    rate = await dex.get_rate(args.vyfi_bar)
    if rate is None:
        return 1
    _print_json(rate.to_dict())
    return 0


async def run(args: argparse.Namespace) -> int:
    settings = load_config(resolve_config_path(args.config))

    async with KupoApi(
        settings.kupo_url,
        retries=settings.retries,
        base_delay_ms=settings.base_delay_ms,
        max_delay_ms=settings.max_delay_ms,
        timeout_sec=settings.request_timeout_sec,
    ) as kupo:
        if args.vyfi_bar:
            return await run_vyfi_bar(args, kupo, settings)
        if args.dex == "minswap_stable":
            return await run_stable(args, kupo, settings)
        if args.dex in ("chadswap", CHADSWAP_ALL):
            return await run_chadswap(args, kupo, settings)
        if args.dex in POOL_DEXES:
            return await run_pool_dex(args, kupo, settings)
        raise UsageError(f"Unknown dex: {args.dex!r}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)

    if args.verbose:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    try:
        return asyncio.run(run(args))
    except UsageError as e:
        logger.error(f"Usage error: {e} (see --help)")
        return 1
    except DexterError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
