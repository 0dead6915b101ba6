"""
Plutus datum decoding.

Datums arrive from the indexer as hex-encoded CBOR. Decoding yields a tree of
four node kinds:

    integer      -> int
    byte string  -> bytes
    array        -> list
    constructor  -> Constr(alternative, fields)

Plutus constructors are CBOR tags: 121..127 are alternatives 0..6,
1280..1400 are alternatives 7..127, and tag 102 wraps `[alternative, fields]`
for anything larger. Every protocol adapter reads its datum through the
projection helpers below, so a wrong node kind always surfaces as a ShapeError
that names what was expected and what was found.
"""

from dataclasses import dataclass
from typing import Any, List, Tuple

import cbor2

from .exceptions import DecodeError, ShapeError

U64_MAX = (1 << 64) - 1
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1

_SHORT_TAG_BASE = 121
_LONG_TAG_BASE = 1280
_GENERAL_TAG = 102


@dataclass(frozen=True)
class Constr:
    """A Plutus constructor: alternative index plus positional fields."""

    alternative: int
    fields: Tuple[Any, ...]


def decode_datum(cbor_hex: str) -> Any:
    """
    Decode a hex-encoded CBOR datum into a node tree.

    Raises:
        DecodeError: If the hex or the CBOR encoding is malformed
    """
    try:
        raw = bytes.fromhex(cbor_hex)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed datum hex: {e}") from e

    try:
        value = cbor2.loads(raw)
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise DecodeError(f"CBOR decode error: {e}") from e

    return _to_node(value)


def _to_node(value: Any) -> Any:
    if isinstance(value, cbor2.CBORTag):
        return _constr_from_tag(value)
    if isinstance(value, (list, tuple)):
        return [_to_node(item) for item in value]
    if isinstance(value, dict):
        return {_to_node_key(k): _to_node(v) for k, v in value.items()}
    return value


def _to_node_key(key: Any) -> Any:
    node = _to_node(key)
    return tuple(node) if isinstance(node, list) else node


def _constr_from_tag(tag: cbor2.CBORTag) -> Any:
    if _SHORT_TAG_BASE <= tag.tag <= _SHORT_TAG_BASE + 6:
        alternative = tag.tag - _SHORT_TAG_BASE
        payload = tag.value
    elif _LONG_TAG_BASE <= tag.tag <= _LONG_TAG_BASE + 120:
        alternative = tag.tag - _LONG_TAG_BASE + 7
        payload = tag.value
    elif tag.tag == _GENERAL_TAG:
        if not isinstance(tag.value, (list, tuple)) or len(tag.value) != 2:
            raise DecodeError(
                f"General constructor tag expects [alternative, fields], got {tag.value!r}"
            )
        alternative, payload = tag.value
    else:
        raise DecodeError(f"Unsupported CBOR tag {tag.tag} in datum")

    if not isinstance(payload, (list, tuple)):
        raise ShapeError(
            f"Expected array inside constructor tag {tag.tag}, got {node_kind(payload)}",
            expected="array",
            actual=node_kind(payload),
        )
    return Constr(alternative, tuple(_to_node(item) for item in payload))


def node_kind(node: Any) -> str:
    """Human-readable kind of a decoded node."""
    if isinstance(node, Constr):
        return f"constructor({node.alternative}, {len(node.fields)} fields)"
    if isinstance(node, bool):
        return "boolean"
    if isinstance(node, int):
        return "integer"
    if isinstance(node, (bytes, bytearray)):
        return "bytes"
    if isinstance(node, (list, tuple)):
        return f"array({len(node)} items)"
    if isinstance(node, dict):
        return "map"
    if node is None:
        return "null"
    return type(node).__name__


def _shape_error(expected: str, node: Any) -> ShapeError:
    actual = node_kind(node)
    return ShapeError(f"Expected {expected}, got {actual}", expected=expected, actual=actual)


# Projections
def constructor_fields(node: Any) -> List[Any]:
    """Return the field list of a constructor node."""
    if not isinstance(node, Constr):
        raise _shape_error("constructor", node)
    return list(node.fields)


def is_constructor(node: Any) -> bool:
    return isinstance(node, Constr)


def is_nonempty_constructor(node: Any) -> bool:
    """True for a constructor with at least one field; `Nothing` is empty."""
    return isinstance(node, Constr) and len(node.fields) > 0


def unsigned_integer(node: Any) -> int:
    if isinstance(node, bool) or not isinstance(node, int):
        raise _shape_error("integer", node)
    if node < 0:
        raise ShapeError(
            f"Negative integer where unsigned expected: {node}",
            expected="unsigned integer",
            actual="negative integer",
        )
    if node > U64_MAX:
        raise ShapeError(
            f"Integer {node} does not fit in 64 bits",
            expected="unsigned integer",
            actual="integer out of range",
        )
    return node


def signed_integer(node: Any) -> int:
    if isinstance(node, bool) or not isinstance(node, int):
        raise _shape_error("integer", node)
    if not I64_MIN <= node <= I64_MAX:
        raise ShapeError(
            f"Integer {node} does not fit in 64 bits",
            expected="signed integer",
            actual="integer out of range",
        )
    return node


def bytes_as_hex(node: Any) -> str:
    if not isinstance(node, (bytes, bytearray)):
        raise _shape_error("bytes", node)
    return bytes(node).hex()


def array_items(node: Any) -> List[Any]:
    """Return the items of a plain (untagged) array node."""
    if not isinstance(node, (list, tuple)):
        raise _shape_error("array", node)
    return list(node)


def asset_pair(node: Any) -> Tuple[str, str]:
    """Parse the two-field `(policy, name)` constructor used for assets."""
    fields = constructor_fields(node)
    if len(fields) != 2:
        raise ShapeError(
            f"Asset constructor expected 2 fields, got {len(fields)}",
            expected="constructor(2 fields)",
            actual=node_kind(node),
        )
    return bytes_as_hex(fields[0]), bytes_as_hex(fields[1])


def require_fields(fields: List[Any], minimum: int, context: str) -> List[Any]:
    """Fail with a ShapeError unless `fields` has at least `minimum` entries."""
    if len(fields) < minimum:
        raise ShapeError(
            f"{context}: expected >={minimum} fields, got {len(fields)}",
            expected=f">={minimum} fields",
            actual=f"{len(fields)} fields",
        )
    return fields
