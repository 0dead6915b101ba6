"""
VyFi Bar staking rate.

A bar output holds the staked base token; its datum records how much of the
derived token is outstanding. The pair of amounts is the exchange rate.
The pool identifier is an indexer pattern such as `<policy>.` and its policy
marks the bar's own tokens, which are not the base asset.

Datum layout: Constr(0, [Constr(0, [derived_amount, ...])])
"""

from dataclasses import dataclass
from typing import Any, Optional

from dexter_kupo.datum import constructor_fields, require_fields, unsigned_integer
from dexter_kupo.exceptions import DatumError, ShapeError
from dexter_kupo.kupo import Utxo
from dexter_kupo.utils import get_logger

from ..base import ProtocolAdapter, parse_quantity
from ..types import LOVELACE, Rate

logger = get_logger(__name__)


@dataclass(frozen=True)
class VyfiBarSettings:
    identifier: str = "VyfiBar"


def parse_bar_datum(datum: Any) -> int:
    """Derived token amount recorded in a bar datum."""
    outer = require_fields(constructor_fields(datum), 1, "VyfiBar datum")
    inner = require_fields(constructor_fields(outer[0]), 1, "VyfiBar inner datum")
    return unsigned_integer(inner[0])


class VyfiBar(ProtocolAdapter):
    name = "vyfi_bar"
    DEFAULT_SETTINGS = VyfiBarSettings()

    async def get_rate(self, pool_identifier: str) -> Optional[Rate]:
        """
        Rate of the first bar output matching `pool_identifier`.

        Returns:
            Rate, or None when nothing matches or the output is malformed
        """
        utxos = await self.kupo.get(pool_identifier)
        if not utxos:
            logger.warning(f"[{self.identifier}] no outputs for {pool_identifier}")
            return None

        utxo = utxos[0]
        try:
            return await self.rate_from_output(utxo, pool_identifier)
        except DatumError as e:
            logger.warning(
                f"[{self.identifier}] skipping {utxo.output_ref} at extend: {e}"
            )
            return None

    async def rate_from_output(self, utxo: Utxo, pool_identifier: str) -> Optional[Rate]:
        """
        Build the rate from one output; None when it carries no datum hash.

        Raises:
            DatumError: If no base asset is held or the datum is malformed
        """
        if not utxo.has_data_hash():
            return None

        policy_id = pool_identifier.split(".")[0]
        base = next(
            (
                a
                for a in utxo.amount
                if a.unit != LOVELACE and not a.unit.startswith(policy_id)
            ),
            None,
        )
        if base is None:
            raise ShapeError(
                f"No base asset in bar output for {pool_identifier}",
                expected="non-bar token holding",
                actual=f"{len(utxo.amount)} holdings",
            )

        derived = parse_bar_datum(await self.fetch_datum(utxo))
        return Rate(
            pool_identifier=pool_identifier,
            base_asset=parse_quantity(base.quantity),
            derived_asset=derived,
        )
