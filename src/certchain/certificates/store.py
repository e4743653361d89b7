"""Certificate record persistence keyed by content hash.

Two interchangeable backends: a single JSON object on local disk, and a
database table. Both overwrite on a repeated hash (last write wins).
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from certchain.certificates.models import CertificateModel
from certchain.common.database import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass
class CertificateRecord:
    """A digest bound to its chain transaction, signature and metadata."""

    hash: str
    tx_hash: str
    timestamp: int
    doc_type: str = "UNKNOWN"
    file_key: Optional[str] = None
    signature: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "fileKey": self.file_key,
            "txHash": self.tx_hash,
            "timestamp": self.timestamp,
            "docType": self.doc_type,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CertificateRecord":
        return cls(
            hash=data["hash"],
            tx_hash=data["txHash"],
            timestamp=int(data["timestamp"]),
            doc_type=data.get("docType") or "UNKNOWN",
            file_key=data.get("fileKey"),
            signature=data.get("signature"),
        )


class CertificateStore(ABC):
    """Key-value contract: hash -> CertificateRecord."""

    @abstractmethod
    async def save(self, record: CertificateRecord) -> None: ...

    @abstractmethod
    async def get(self, hash: str) -> Optional[CertificateRecord]: ...

    async def exists(self, hash: str) -> bool:
        return await self.get(hash) is not None


class JsonFileCertificateStore(CertificateStore):
    """All records in one JSON object on disk, created on first use."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps({}, indent=2), encoding="utf-8")
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def _write(self, data: dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    async def save(self, record: CertificateRecord) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[record.hash] = record.to_dict()
            await asyncio.to_thread(self._write, data)

    async def get(self, hash: str) -> Optional[CertificateRecord]:
        """Lookup by hash; a corrupt file reads as empty, while save() stays strict."""
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._read)
            except json.JSONDecodeError:
                logger.error("Certificate file %s is not valid JSON", self.path, exc_info=True)
                return None
        entry = data.get(hash)
        return CertificateRecord.from_dict(entry) if entry else None


class DatabaseCertificateStore(CertificateStore):
    """Records in the ``certificates`` table."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def save(self, record: CertificateRecord) -> None:
        async with self.db.get_session() as session:
            await session.merge(
                CertificateModel(
                    hash=record.hash,
                    file_key=record.file_key,
                    tx_hash=record.tx_hash,
                    timestamp=record.timestamp,
                    doc_type=record.doc_type,
                    signature=record.signature,
                )
            )

    async def get(self, hash: str) -> Optional[CertificateRecord]:
        async with self.db.get_session() as session:
            row = await session.get(CertificateModel, hash)
            if row is None:
                return None
            return CertificateRecord(
                hash=row.hash,
                tx_hash=row.tx_hash,
                timestamp=row.timestamp,
                doc_type=row.doc_type,
                file_key=row.file_key,
                signature=row.signature,
            )
