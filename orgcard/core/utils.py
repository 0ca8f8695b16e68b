"""
Common utilities.
"""

import hashlib
import json
import string
from collections.abc import Iterable, Mapping
from functools import cache

__all__ = [
    "HASH_CHARS",
    "base_n_hash",
    "fingerprint",
]

HASH_CHARS = string.digits + string.ascii_lowercase
"""
Characters used to encode fingerprints. Alphanumeric only so a fingerprint
survives a textual renderer unchanged.
"""


def fingerprint(fields: Mapping[str, str], tags: Iterable[str]) -> str:
    """
    Compute content hash of a note from its fields and tags.

    Field order is significant, tag order is not.
    """
    data = json.dumps(
        [list(fields.items()), sorted(set(tags))],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return base_n_hash(data.encode(), HASH_CHARS)


def base_n_hash(data: bytes, chars: str) -> str:
    """
    Hash data using SHAKE-128 and encode as a base-N string, where N is
    len(chars).
    """
    assert len(chars)

    # get hash value as a large integer
    digest = hashlib.shake_128(data).digest(16)
    int_digest = int.from_bytes(digest)

    # consume hash value and generate result
    result = ""
    while int_digest:
        int_digest, index = divmod(int_digest, len(chars))
        result += chars[index]

    # pad result to max length
    return result.ljust(_get_max_len(128, len(chars)), "0")


@cache
def _get_max_len(bit_count: int, char_count: int) -> int:
    """
    Get max length of the resulting hash for the given # bits and # characters
    used to represent it.
    """
    max_digest = (1 << bit_count) - 1
    max_len = 0
    while max_digest:
        max_digest = max_digest // char_count
        max_len += 1
    return max_len
