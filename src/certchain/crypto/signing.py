"""
Server-side digest signing with ECDSA over secp256k1.

Signatures are DER-encoded, base64 transported, and computed over the UTF-8
bytes of the hex digest string (SHA-256 is applied by ECDSA itself).
Keys are PEM: PKCS#8 private key, SubjectPublicKeyInfo public key.
"""

import base64
import binascii

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from certchain.common.exceptions import ConfigurationError

CURVE = ec.SECP256K1()


def _pem(value: str) -> bytes:
    # Env files often carry PEMs on one line with escaped newlines
    return value.replace("\\n", "\n").strip().encode()


def generate_key_pair() -> tuple[str, str]:
    """Return a fresh (private_pem, public_pem) pair for server configuration."""
    private_key = ec.generate_private_key(CURVE)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class HashSigner:
    """Signs and verifies digests with the server's static key pair."""

    def __init__(self, private_key_pem: str, public_key_pem: str):
        if not private_key_pem:
            raise ConfigurationError("CERTCHAIN_SERVER_PRIVATE_KEY is not configured")
        if not public_key_pem:
            raise ConfigurationError("CERTCHAIN_SERVER_PUBLIC_KEY is not configured")

        try:
            private_key = serialization.load_pem_private_key(_pem(private_key_pem), password=None)
            public_key = serialization.load_pem_public_key(_pem(public_key_pem))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(f"Server signing key could not be loaded: {exc}") from exc

        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise ConfigurationError("CERTCHAIN_SERVER_PRIVATE_KEY must be an EC private key")
        if not isinstance(public_key, ec.EllipticCurvePublicKey):
            raise ConfigurationError("CERTCHAIN_SERVER_PUBLIC_KEY must be an EC public key")

        self._private_key = private_key
        self._public_key = public_key

    def sign(self, digest: str) -> str:
        signature = self._private_key.sign(digest.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
        return base64.b64encode(signature).decode("ascii")

    def verify(self, digest: str, signature: str) -> bool:
        """True only for a well-formed signature over exactly this digest."""
        try:
            raw = base64.b64decode(signature, validate=True)
            self._public_key.verify(raw, digest.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
        except (InvalidSignature, binascii.Error, ValueError, TypeError):
            return False
        return True
