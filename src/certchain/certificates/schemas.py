"""Pydantic schemas for certify / verify endpoints."""

from typing import Any, Optional

from certchain.common.schemas import CamelModel


class QRPayload(CamelModel):
    iss: str
    hash: str
    ts: int
    doc_type: str
    chain_id: str
    contract: str
    sig: str


class CertifyResponse(CamelModel):
    success: bool = True
    hash: str
    tx_hash: str
    explorer_url: str
    signature: str
    timestamp: int
    doc_type: str
    qr_payload: QRPayload
    analysis: Optional[dict[str, Any]] = None
    file_key: Optional[str] = None
    file_url: Optional[str] = None


class CertificateSummary(CamelModel):
    file_key: Optional[str] = None
    tx_hash: str
    timestamp: int
    doc_type: str


class VerificationChecksResponse(CamelModel):
    db_exists: Optional[bool] = None
    r2_access: Optional[bool] = None
    hash_match: Optional[bool] = None
    on_chain: Optional[bool] = None
    signature: Optional[bool] = None


class VerifyResponse(CamelModel):
    verified: bool
    hash: str
    checks: VerificationChecksResponse
    certificate: Optional[CertificateSummary] = None
    qr_payload: Optional[dict[str, Any]] = None


class VerifyUploadResponse(CamelModel):
    verified: bool
    hash: str
    match: bool
    certificate: Optional[CertificateSummary] = None
    claimed_hash_match: Optional[bool] = None
    error: Optional[str] = None
