"""SQLAlchemy model for certificate records."""

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certchain.common.models import Base, TimestampMixin


class CertificateModel(Base, TimestampMixin):
    __tablename__ = "certificates"

    hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    file_key: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    doc_type: Mapped[str] = mapped_column(String(32), nullable=False, default="UNKNOWN")
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
