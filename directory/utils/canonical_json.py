"""
Canonical JSON for raw lead payloads.

payload_hash is the SHA-256 of this encoding, so two payloads with the same
content hash equally whatever their key order or container types. The
repeat-payload count in run stats depends on that.
"""
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

_SEPARATORS = (',', ':')


def _encode_extra(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        # 4.50 and 4.5 are the same rating
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Cannot canonicalise {type(value).__name__}")


def canonical_dumps(value: Any) -> str:
    """Sorted keys, no whitespace, ASCII only."""
    return json.dumps(value, sort_keys=True, separators=_SEPARATORS,
                      default=_encode_extra, ensure_ascii=True)


def canonical_hash(value: Any) -> str:
    return hashlib.sha256(canonical_dumps(value).encode('utf-8')).hexdigest()
