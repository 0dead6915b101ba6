"""
Protocol adapters, one module per supported DEX.
"""

from typing import Any, Dict, Type

from dexter_kupo.config_schema import DexterSettings
from dexter_kupo.exceptions import ConfigurationError
from dexter_kupo.kupo import KupoApi

from ..base import ProtocolAdapter
from .chadswap import ChadSwap
from .cswap import CSwap
from .minswap_stable import MinswapStable
from .minswap_v1 import MinswapV1
from .minswap_v2 import MinswapV2
from .sundaeswap_v1 import SundaeSwapV1
from .sundaeswap_v3 import SundaeSwapV3
from .vyfi_bar import VyfiBar
from .vyfinance import VyFinance
from .wingriders import WingRiders
from .wingriders_v2 import WingRidersV2

ADAPTERS: Dict[str, Type[ProtocolAdapter]] = {
    cls.name: cls
    for cls in (
        MinswapV1,
        MinswapV2,
        SundaeSwapV1,
        SundaeSwapV3,
        WingRiders,
        WingRidersV2,
        CSwap,
        VyFinance,
        MinswapStable,
        ChadSwap,
        VyfiBar,
    )
}

POOL_DEXES = tuple(
    name for name in ADAPTERS if name not in ("minswap_stable", "chadswap", "vyfi_bar")
)


def create_adapter(
    name: str, kupo: KupoApi, settings: DexterSettings
) -> ProtocolAdapter:
    """
    Build the adapter registered under `name` with configured overrides applied.

    Raises:
        ConfigurationError: If no adapter is registered under `name`, or an
            override names a field the protocol does not have
    """
    cls = ADAPTERS.get(name)
    if cls is None:
        raise ConfigurationError(
            f"Unknown dex: {name!r}",
            details={"available": sorted(ADAPTERS)},
        )

    overrides: Dict[str, Any] = {}
    if name == "vyfinance":
        overrides["api_url"] = settings.vyfi_api_url
    elif name == "chadswap" and settings.chadswap_api_url:
        overrides["api_url"] = settings.chadswap_api_url
    overrides.update(settings.protocols.get(name, {}))

    return cls.from_overrides(kupo, overrides, concurrency=settings.concurrency)


__all__ = [
    "ADAPTERS",
    "POOL_DEXES",
    "create_adapter",
    "ChadSwap",
    "CSwap",
    "MinswapStable",
    "MinswapV1",
    "MinswapV2",
    "SundaeSwapV1",
    "SundaeSwapV3",
    "VyfiBar",
    "VyFinance",
    "WingRiders",
    "WingRidersV2",
]
