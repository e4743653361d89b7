"""Certchain: document certification anchored on a blockchain smart contract."""

from certchain.chain.client import ChainClient, normalize_hash
from certchain.crypto.hashing import sha256_hex
from certchain.crypto.signing import HashSigner, generate_key_pair

__all__ = [
    "ChainClient",
    "HashSigner",
    "generate_key_pair",
    "normalize_hash",
    "sha256_hex",
]
__version__ = "0.1.0"
