"""Certchain exception hierarchy.

Every error carries a machine code and the HTTP status the API maps it to.
"""

from typing import Any


class CertchainError(Exception):
    """Base exception for all Certchain errors."""

    status_code = 500

    def __init__(
        self,
        message: str = "",
        code: str = "CERTCHAIN_ERROR",
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.context = context or {}
        super().__init__(message)


class ConfigurationError(CertchainError):
    """Raised when required process configuration is missing or invalid."""

    def __init__(self, message: str = "Invalid configuration"):
        super().__init__(message, code="CONFIGURATION")


# ── Client input (400) ──


class InvalidInputError(CertchainError):
    """Raised when a request field is missing or malformed."""

    status_code = 400

    def __init__(self, message: str = "Invalid input", code: str = "INVALID_INPUT", **context: Any):
        super().__init__(message, code=code, context=context)


class InvalidHashError(InvalidInputError):
    """Raised when a digest is not 64 hex characters (optionally 0x-prefixed)."""

    def __init__(self, message: str = "Invalid hash"):
        super().__init__(message, code="INVALID_HASH")


class InvalidPayloadError(InvalidInputError):
    """Raised when a base64 QR payload cannot be decoded or parsed."""

    def __init__(self, message: str = "Invalid base64 payload"):
        super().__init__(message, code="INVALID_PAYLOAD")


class PayloadTooLargeError(CertchainError):
    status_code = 413

    def __init__(self, message: str = "File too large"):
        super().__init__(message, code="PAYLOAD_TOO_LARGE")


# ── Auth (401 / 403) ──


class AuthenticationError(CertchainError):
    """Raised on unknown email or wrong password."""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class AccountInactiveError(CertchainError):
    """Raised when an inactive or suspended account tries to log in."""

    status_code = 403

    def __init__(self, message: str = "Account is not active"):
        super().__init__(message, code="ACCOUNT_INACTIVE")


# ── Not found (404) ──


class NotFoundError(CertchainError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class AccountNotFoundError(NotFoundError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)


# ── Conflicts (409) ──


class ConflictError(CertchainError):
    status_code = 409

    def __init__(self, message: str = "Conflict", code: str = "CONFLICT", **context: Any):
        super().__init__(message, code=code, context=context)


class DuplicateCertificateError(ConflictError):
    """Raised when a digest is already anchored on-chain."""

    def __init__(self, hash: str, message: str = "File already certified"):
        self.hash = hash
        super().__init__(message, code="ALREADY_CERTIFIED", hash=hash)


class DuplicateAccountError(ConflictError):
    """Raised when an email or username is already taken."""

    def __init__(self, message: str = "Email or username already registered"):
        super().__init__(message, code="DUPLICATE_ACCOUNT")


# ── Downstream dependencies (502) ──


class DependencyError(CertchainError):
    """Raised when a downstream service (chain, storage, AI) fails."""

    status_code = 502

    def __init__(self, message: str = "Downstream dependency failed", code: str = "DEPENDENCY_FAILED", **context: Any):
        super().__init__(message, code=code, context=context)


class OutboundTimeoutError(DependencyError):
    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} timed out after {timeout:g}s",
            code="TIMEOUT",
            operation=operation,
        )


class ChainWriteError(DependencyError):
    """Raised when anchoring a digest on-chain fails."""

    def __init__(self, details: dict[str, Any], message: str = "On-chain write failed"):
        self.details = details
        super().__init__(message, code="CHAIN_WRITE_FAILED", details=details)


class ChainTransactionError(Exception):
    """Raised by the chain client when a mined transaction reverted."""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        self.code = "TRANSACTION_REVERTED"
        self.short_message = f"transaction {tx_hash} reverted"
        super().__init__(self.short_message)


class StorageError(DependencyError):
    def __init__(self, message: str = "Object storage operation failed", **context: Any):
        super().__init__(message, code="STORAGE_FAILED", **context)


class AnalysisServiceError(DependencyError):
    def __init__(self, message: str = "AI analysis failed", **context: Any):
        super().__init__(message, code="ANALYSIS_FAILED", **context)
