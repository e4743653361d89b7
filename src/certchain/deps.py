"""Dependency wiring for Certchain.

Collaborators are built once from settings and injected into the services
explicitly. Tests swap in doubles with the ``set_*`` helpers after
``reset_singletons()``.
"""

from certchain.accounts.service import AccountService
from certchain.analysis.client import AnalysisClient
from certchain.certificates.service import CertificationService
from certchain.certificates.store import (
    CertificateStore,
    DatabaseCertificateStore,
    JsonFileCertificateStore,
)
from certchain.chain.client import ChainClient
from certchain.common.config import get_settings
from certchain.common.database import DatabaseManager
from certchain.crypto.signing import HashSigner
from certchain.storage.client import ObjectStorageClient

_UNSET = object()

_db: DatabaseManager | None = None
_signer: HashSigner | None = None
_chain = None
_storage = _UNSET
_analysis = _UNSET
_store = _UNSET
_certification: CertificationService | None = None
_accounts: AccountService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_signer() -> HashSigner:
    """Build the signer; raises ConfigurationError when keys are missing."""
    global _signer
    if _signer is None:
        settings = get_settings()
        _signer = HashSigner(settings.server_private_key, settings.server_public_key)
    return _signer


def get_chain_client() -> ChainClient:
    global _chain
    if _chain is None:
        _chain = ChainClient.from_settings(get_settings())
    return _chain


def get_storage_client() -> ObjectStorageClient | None:
    global _storage
    if _storage is _UNSET:
        settings = get_settings()
        _storage = ObjectStorageClient.from_settings(settings) if settings.storage_enabled else None
    return _storage


def get_analysis_client() -> AnalysisClient | None:
    global _analysis
    if _analysis is _UNSET:
        settings = get_settings()
        _analysis = AnalysisClient.from_settings(settings) if settings.ai_enabled else None
    return _analysis


def get_certificate_store() -> CertificateStore | None:
    global _store
    if _store is _UNSET:
        settings = get_settings()
        if settings.certificate_store == "database":
            _store = DatabaseCertificateStore(get_db())
        elif settings.certificate_store == "json":
            _store = JsonFileCertificateStore(settings.certificate_json_path)
        else:
            _store = None
    return _store


def get_certification_service() -> CertificationService:
    global _certification
    if _certification is None:
        _certification = CertificationService(
            get_settings(),
            chain=get_chain_client(),
            signer=get_signer(),
            store=get_certificate_store(),
            storage=get_storage_client(),
            analysis=get_analysis_client(),
        )
    return _certification


def get_account_service() -> AccountService:
    global _accounts
    if _accounts is None:
        _accounts = AccountService()
    return _accounts


# ── Substitution ──

def set_chain_client(client) -> None:
    global _chain, _certification
    _chain = client
    _certification = None


def set_storage_client(client) -> None:
    global _storage, _certification
    _storage = client
    _certification = None


def set_analysis_client(client) -> None:
    global _analysis, _certification
    _analysis = client
    _certification = None


def set_certificate_store(store) -> None:
    global _store, _certification
    _store = store
    _certification = None


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _signer, _chain, _storage, _analysis, _store, _certification, _accounts
    _db = None
    _signer = None
    _chain = None
    _storage = _UNSET
    _analysis = _UNSET
    _store = _UNSET
    _certification = None
    _accounts = None
