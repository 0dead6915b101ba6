"""
Async client for the Kupo chain indexer.

Only two queries are needed by the protocol adapters:

    GET /matches/{pattern}[?unspent]   -> outputs matching an address or asset
    GET /datums/{hash}                 -> CBOR hex of a datum by its hash

Rate limiting (HTTP 429) and connection failures are raised as
TransientIndexerError and retried with exponential backoff; every other
failure propagates to the caller unchanged.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from .exceptions import NetworkError, TransientIndexerError
from .utils import get_logger, join_policy_id, remove_trailing_slash, retry_async

logger = get_logger(__name__)

LOVELACE = "lovelace"


@dataclass(frozen=True)
class Unit:
    """One holding of an output: joined unit identifier and decimal-string quantity."""

    unit: str
    quantity: str


@dataclass
class Utxo:
    """
    Unspent output as returned by the indexer.

    Attributes:
        address: Bech32 address holding the output
        tx_hash: Hash of the transaction that created it
        output_index: Index of the output within that transaction
        amount: Holdings, lovelace first, then native assets in indexer order
        block: Header hash of the block the output was created in
        data_hash: Hash of the attached datum, if any
        reference_script_hash: Hash of the attached script, if any
    """

    address: str
    tx_hash: str
    output_index: int
    amount: List[Unit] = field(default_factory=list)
    block: str = ""
    data_hash: Optional[str] = None
    reference_script_hash: Optional[str] = None

    def get_asset(self, unit: str) -> Optional[Unit]:
        return next((a for a in self.amount if a.unit == unit), None)

    def has_data_hash(self) -> bool:
        return self.data_hash is not None

    @property
    def output_ref(self) -> str:
        return f"{self.tx_hash}#{self.output_index}"


def _quantity(value: Any) -> str:
    # Anything but a plain integer is kept verbatim so that parse_quantity
    # rejects it for the one output that carries it
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value if isinstance(value, str) else repr(value)


def utxo_from_match(match: Dict[str, Any]) -> Utxo:
    """Convert one `/matches` entry into a Utxo."""
    value = match.get("value") or {}
    amount = [Unit(LOVELACE, _quantity(value.get("coins", "0")))]
    for unit, qty in (value.get("assets") or {}).items():
        amount.append(Unit(join_policy_id(unit), _quantity(qty)))

    output_index = match.get("output_index", 0)
    created_at = match.get("created_at") or {}

    return Utxo(
        address=match.get("address") or "",
        tx_hash=match.get("transaction_id") or "",
        output_index=int(output_index) if str(output_index).isdigit() else 0,
        amount=amount,
        block=created_at.get("header_hash") or "",
        data_hash=match.get("datum_hash"),
        reference_script_hash=match.get("script_hash"),
    )


class KupoApi:
    """
    Client for a Kupo instance.

    One aiohttp session is shared by every concurrent query issued through the
    client; use it as an async context manager or call close() when done.
    """

    def __init__(
        self,
        api_url: str,
        retries: int = 10,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 30_000,
        timeout_sec: float = 300,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            api_url: Base URL of the indexer (trailing slash optional)
            retries: Re-attempts after a transient failure
            base_delay_ms: Initial backoff delay
            max_delay_ms: Cap for a single backoff delay
            timeout_sec: Total timeout per HTTP request; large match queries are slow
            session: Existing session to reuse (not closed by this client)
        """
        self.api_url = remove_trailing_slash(api_url)
        self.retries = retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "KupoApi":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    def build_matches_url(self, match_pattern: str, unspent: bool) -> str:
        base = f"{self.api_url}/matches/{match_pattern}"
        return f"{base}?unspent" if unspent else base

    def build_datum_url(self, datum_hash: str) -> str:
        return f"{self.api_url}/datums/{datum_hash}"

    async def _fetch_json(self, url: str) -> Any:
        session = self._get_session()
        try:
            async with session.get(url) as response:
                if response.status == 429:
                    raise TransientIndexerError(
                        "rate_limited", endpoint=url, status_code=response.status
                    )
                if response.status >= 400:
                    body = await response.text()
                    raise NetworkError(
                        f"Indexer returned HTTP {response.status}: {body[:200]}",
                        endpoint=url,
                        status_code=response.status,
                    )
                return await response.json(content_type=None)
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TransientIndexerError(
                f"Indexer unreachable: {e!r}", endpoint=url
            ) from e
        except (aiohttp.ClientResponseError, aiohttp.ContentTypeError, ValueError) as e:
            raise NetworkError(f"Invalid indexer response: {e}", endpoint=url) from e

    async def _retrying(self, url: str) -> Any:
        return await retry_async(
            lambda: self._fetch_json(url),
            retries=self.retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            description=url,
        )

    async def get_json(self, url: str) -> Any:
        """GET any JSON endpoint through this client's session and retry policy."""
        return await self._retrying(url)

    async def get(self, match_pattern: str, unspent: bool = True) -> List[Utxo]:
        """
        Fetch outputs matching an address, `policy.name` asset or wildcard pattern.

        Raises:
            NetworkError: If the indexer cannot be queried within the retry budget
        """
        payload = await self._retrying(self.build_matches_url(match_pattern, unspent))
        if payload is None:
            return []
        matches = payload if isinstance(payload, list) else [payload]
        utxos = [utxo_from_match(m) for m in matches if isinstance(m, dict)]
        logger.debug(f"Indexer returned {len(utxos)} outputs for {match_pattern}")
        return utxos

    async def datum(self, datum_hash: str) -> Optional[str]:
        """
        Fetch a datum's CBOR hex by hash, or None if the indexer does not know it.
        """
        payload = await self._retrying(self.build_datum_url(datum_hash))
        if not isinstance(payload, dict):
            return None
        datum = payload.get("datum")
        return datum if isinstance(datum, str) else None
