"""Certify and verify orchestration.

Each operation is a strictly sequential pipeline with early return: a failure
at any step leaves no later side effect behind (no chain write after a failed
analysis, no record after a failed chain write).
"""

import base64
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from certchain.analysis.client import AnalysisClient
from certchain.certificates.store import CertificateRecord, CertificateStore
from certchain.chain.client import ChainClient, describe_chain_error, normalize_hash
from certchain.common.config import CertchainSettings
from certchain.common.exceptions import (
    AnalysisServiceError,
    CertchainError,
    ChainWriteError,
    ConfigurationError,
    DependencyError,
    DuplicateCertificateError,
    InvalidHashError,
    InvalidInputError,
    InvalidPayloadError,
    PayloadTooLargeError,
)
from certchain.common.logging import audit_log
from certchain.crypto.hashing import sha256_hex
from certchain.crypto.signing import HashSigner
from certchain.storage.client import ObjectStorageClient

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def doc_type_for(filename: Optional[str]) -> str:
    """Uppercased file extension, or UNKNOWN when there is none."""
    if not filename or "." not in filename:
        return "UNKNOWN"
    ext = filename.rsplit(".", 1)[1].strip()
    return ext.upper() if ext else "UNKNOWN"


def parse_requested_tasks(raw: Optional[str]) -> list[str]:
    """Accept a JSON list or a comma-separated string."""
    if not raw or not raw.strip():
        return []
    raw = raw.strip()
    if raw.startswith("["):
        try:
            tasks = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidInputError("requested_tasks must be a JSON list or comma-separated") from exc
        if not isinstance(tasks, list):
            raise InvalidInputError("requested_tasks must be a JSON list or comma-separated")
        return [str(t).strip() for t in tasks if str(t).strip()]
    return [t.strip() for t in raw.split(",") if t.strip()]


def decode_qr_payload(encoded: str) -> dict[str, Any]:
    """Decode a base64 (standard or URL-safe) JSON QR payload."""
    normalized = encoded.strip().replace("-", "+").replace("_", "/").replace(" ", "+")
    normalized += "=" * (-len(normalized) % 4)
    try:
        payload = json.loads(base64.b64decode(normalized, validate=True).decode("utf-8"))
    except ValueError as exc:
        # binascii.Error, UnicodeDecodeError, JSONDecodeError and non-ASCII input
        raise InvalidPayloadError() from exc
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Payload must be a JSON object")
    return payload


def _canonical(value: str) -> str:
    """Lowercase 64-hex digest without prefix; rejects malformed input."""
    return normalize_hash(value)[2:]


def sanitize_record(record: CertificateRecord) -> dict[str, Any]:
    """Record fields safe to return to any caller."""
    return {
        "fileKey": record.file_key,
        "txHash": record.tx_hash,
        "timestamp": record.timestamp,
        "docType": record.doc_type,
    }


@dataclass
class UploadedFile:
    data: bytes
    filename: str
    content_type: str = "application/octet-stream"


@dataclass
class CertificationResult:
    hash: str
    tx_hash: str
    explorer_url: str
    signature: str
    timestamp: int
    doc_type: str
    qr_payload: dict[str, Any]
    analysis: Optional[dict[str, Any]] = None
    file_key: Optional[str] = None
    file_url: Optional[str] = None


@dataclass
class VerificationChecks:
    db_exists: Optional[bool] = None
    r2_access: Optional[bool] = None
    hash_match: Optional[bool] = None
    on_chain: Optional[bool] = None
    signature: Optional[bool] = None

    def to_dict(self) -> dict[str, Optional[bool]]:
        return {
            "dbExists": self.db_exists,
            "r2Access": self.r2_access,
            "hashMatch": self.hash_match,
            "onChain": self.on_chain,
            "signature": self.signature,
        }


@dataclass
class VerificationResult:
    verified: bool
    hash: str
    checks: VerificationChecks = field(default_factory=VerificationChecks)
    certificate: Optional[dict[str, Any]] = None
    qr_payload: Optional[dict[str, Any]] = None


@dataclass
class UploadVerificationResult:
    verified: bool
    hash: str
    match: bool
    certificate: Optional[dict[str, Any]] = None
    claimed_hash_match: Optional[bool] = None
    error: Optional[str] = None


class CertificationService:
    """Hash, anchor, sign and record documents; verify them later."""

    def __init__(
        self,
        settings: CertchainSettings,
        chain: ChainClient,
        signer: HashSigner,
        store: Optional[CertificateStore] = None,
        storage: Optional[ObjectStorageClient] = None,
        analysis: Optional[AnalysisClient] = None,
    ):
        self.settings = settings
        self.chain = chain
        self.signer = signer
        self.store = store
        self.storage = storage
        self.analysis = analysis

    # ── Certify ──

    async def certify(
        self,
        upload: Optional[UploadedFile],
        document_id: Optional[str] = None,
        requested_tasks: Optional[list[str]] = None,
    ) -> CertificationResult:
        if upload is None:
            raise InvalidInputError("File not provided", code="FILE_REQUIRED")
        if len(upload.data) > self.settings.max_upload_bytes:
            raise PayloadTooLargeError(
                f"File exceeds {self.settings.max_upload_bytes} bytes"
            )

        digest = sha256_hex(upload.data)

        if await self._on_chain(digest):
            audit_log(
                "duplicate-certification-attempt",
                hash=digest, timestamp=now_ms(), outcome="conflict",
            )
            raise DuplicateCertificateError(digest)

        analysis = None
        if self.analysis is not None:
            try:
                analysis = await self.analysis.analyze(
                    digest,
                    upload.data,
                    upload.filename,
                    upload.content_type,
                    document_id=document_id,
                    requested_tasks=requested_tasks,
                )
            except AnalysisServiceError as exc:
                self._audit_failure(digest, "analysis", exc.message)
                raise

        file_key = file_url = None
        if self.storage is not None:
            try:
                file_key = await self.storage.upload(upload.data, upload.filename, upload.content_type)
                file_url = await self.storage.presigned_url(file_key)
            except DependencyError as exc:
                self._audit_failure(digest, "storage", exc.message)
                raise

        try:
            tx_hash = await self.chain.store_hash(digest)
        except ConfigurationError:
            raise
        except Exception as exc:
            details = describe_chain_error(exc)
            logger.error("On-chain write failed for %s", digest, exc_info=True)
            self._audit_failure(digest, "chain", details["shortMessage"])
            raise ChainWriteError(details) from exc

        signature = self.signer.sign(digest)
        timestamp = now_ms()
        doc_type = doc_type_for(upload.filename)

        qr_payload = {
            "iss": self.settings.issuer,
            "hash": digest,
            "ts": timestamp,
            "docType": doc_type,
            "chainId": self.settings.chain_id,
            "contract": self.settings.contract_address,
            "sig": signature,
        }

        if self.store is not None:
            await self.store.save(
                CertificateRecord(
                    hash=digest,
                    tx_hash=tx_hash,
                    timestamp=timestamp,
                    doc_type=doc_type,
                    file_key=file_key,
                    signature=signature,
                )
            )

        audit_log(
            "certification-success",
            hash=digest, txHash=tx_hash, timestamp=timestamp, outcome="certified",
        )
        return CertificationResult(
            hash=digest,
            tx_hash=tx_hash,
            explorer_url=f"{self.settings.explorer_tx_url}{tx_hash}",
            signature=signature,
            timestamp=timestamp,
            doc_type=doc_type,
            qr_payload=qr_payload,
            analysis=analysis,
            file_key=file_key,
            file_url=file_url,
        )

    # ── Verify (query / QR payload) ──

    async def verify(
        self,
        hash: Optional[str] = None,
        payload: Optional[str] = None,
    ) -> VerificationResult:
        """Verify a hash or QR payload.

        Verdict: on-chain AND (no signature supplied OR signature valid).
        Store and storage checks are reported but do not gate the verdict.
        """
        qr_payload = None
        if payload:
            qr_payload = decode_qr_payload(payload)
            raw_hash = qr_payload.get("hash")
        else:
            raw_hash = hash

        if not raw_hash or not isinstance(raw_hash, str):
            raise InvalidInputError("Missing hash or p (payload) parameter", code="HASH_REQUIRED")
        target = _canonical(raw_hash)

        checks = VerificationChecks()
        checks.on_chain = await self._on_chain(target)

        record = None
        if self.store is not None:
            record = await self.store.get(target)
            checks.db_exists = record is not None

        if self.storage is not None and record is not None and record.file_key:
            await self._check_storage(record.file_key, target, checks)

        signature = None
        if qr_payload is not None and isinstance(qr_payload.get("sig"), str):
            signature = qr_payload["sig"] or None
        if signature is None and record is not None:
            signature = record.signature
        if signature:
            checks.signature = self.signer.verify(target, signature)

        verified = bool(checks.on_chain) and checks.signature is not False
        audit_log(
            "verification",
            hash=target, timestamp=now_ms(), outcome="verified" if verified else "rejected",
        )
        return VerificationResult(
            verified=verified,
            hash=target,
            checks=checks,
            certificate=sanitize_record(record) if record is not None else None,
            qr_payload=qr_payload,
        )

    # ── Verify (upload) ──

    async def verify_upload(
        self,
        upload: Optional[UploadedFile] = None,
        hash: Optional[str] = None,
    ) -> UploadVerificationResult:
        """Look up a record by file content (authoritative) or by claimed hash."""
        if upload is None and not hash:
            raise InvalidInputError("File or hash required", code="FILE_OR_HASH_REQUIRED")

        digest = sha256_hex(upload.data) if upload is not None else None
        claimed = None
        if hash:
            try:
                claimed = _canonical(hash)
            except InvalidHashError:
                # only fatal when no file digest settles the lookup
                if digest is None:
                    raise
                claimed = ""
        target = digest or claimed

        record = await self.store.get(target) if self.store is not None else None
        if record is None:
            audit_log("verification-upload", hash=target, timestamp=now_ms(), outcome="not-found")
            return UploadVerificationResult(
                verified=False,
                hash=target,
                match=False,
                error="Certificate not found",
            )

        match = digest is not None and digest == record.hash
        claimed_match = None
        if digest is not None and claimed is not None:
            claimed_match = claimed == digest

        audit_log(
            "verification-upload",
            hash=target, timestamp=now_ms(), outcome="verified" if match else "rejected",
        )
        return UploadVerificationResult(
            verified=match,
            hash=target,
            match=match,
            certificate=sanitize_record(record),
            claimed_hash_match=claimed_match,
        )

    # ── Internal helpers ──

    async def _on_chain(self, digest: str) -> bool:
        try:
            return await self.chain.verify(digest)
        except CertchainError:
            raise
        except Exception as exc:
            logger.error("On-chain lookup failed for %s", digest, exc_info=True)
            raise DependencyError(
                "On-chain lookup failed",
                code="CHAIN_READ_FAILED",
                details=describe_chain_error(exc),
            ) from exc

    async def _check_storage(self, key: str, target: str, checks: VerificationChecks) -> None:
        checks.r2_access = False
        try:
            if not await self.storage.exists(key):
                return
            checks.r2_access = True
            data = await self.storage.download(key)
        except DependencyError as exc:
            logger.warning("Storage check failed for %s: %s", key, exc.message)
            return
        checks.hash_match = sha256_hex(data) == target

    def _audit_failure(self, digest: str, stage: str, reason: str) -> None:
        audit_log(
            "certification-failed",
            hash=digest, timestamp=now_ms(), outcome="failed", stage=stage, reason=reason,
        )
