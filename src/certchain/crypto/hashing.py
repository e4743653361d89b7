"""Content digests for uploaded documents."""

import hashlib
import re

HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")


def sha256_hex(data: bytes) -> str:
    """SHA-256 of a byte buffer, lowercase hex."""
    return hashlib.sha256(data).hexdigest()


def is_hex_digest(value: str) -> bool:
    return bool(HEX_DIGEST.match(value))
