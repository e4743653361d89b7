"""Certify / verify API router."""

from typing import Optional

from fastapi import APIRouter, File, Form, Query, UploadFile

from certchain.certificates.schemas import (
    CertificateSummary,
    CertifyResponse,
    QRPayload,
    VerificationChecksResponse,
    VerifyResponse,
    VerifyUploadResponse,
)
from certchain.certificates.service import UploadedFile, parse_requested_tasks

router = APIRouter()


def _get_service():
    from certchain.deps import get_certification_service
    return get_certification_service()


async def _read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None:
        return None
    return UploadedFile(
        data=await file.read(),
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
    )


@router.post("/certify", response_model=CertifyResponse)
async def certify(
    file: Optional[UploadFile] = File(None),
    document_id: Optional[str] = Form(None),
    requested_tasks: Optional[str] = Form(None),
):
    svc = _get_service()
    result = await svc.certify(
        await _read_upload(file),
        document_id=document_id,
        requested_tasks=parse_requested_tasks(requested_tasks),
    )
    return CertifyResponse(
        hash=result.hash,
        tx_hash=result.tx_hash,
        explorer_url=result.explorer_url,
        signature=result.signature,
        timestamp=result.timestamp,
        doc_type=result.doc_type,
        qr_payload=QRPayload(**result.qr_payload),
        analysis=result.analysis,
        file_key=result.file_key,
        file_url=result.file_url,
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify_by_hash(
    hash: Optional[str] = Query(None),
    p: Optional[str] = Query(None, description="base64-encoded QR payload"),
):
    svc = _get_service()
    result = await svc.verify(hash=hash, payload=p)
    return VerifyResponse(
        verified=result.verified,
        hash=result.hash,
        checks=VerificationChecksResponse(**result.checks.to_dict()),
        certificate=CertificateSummary(**result.certificate) if result.certificate else None,
        qr_payload=result.qr_payload,
    )


@router.post("/verify", response_model=VerifyUploadResponse)
async def verify_by_upload(
    file: Optional[UploadFile] = File(None),
    hash: Optional[str] = Form(None),
):
    svc = _get_service()
    result = await svc.verify_upload(await _read_upload(file), hash=hash)
    return VerifyUploadResponse(
        verified=result.verified,
        hash=result.hash,
        match=result.match,
        certificate=CertificateSummary(**result.certificate) if result.certificate else None,
        claimed_hash_match=result.claimed_hash_match,
        error=result.error,
    )
