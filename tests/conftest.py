"""Shared test fixtures for Certchain."""

import os

import pytest
from httpx import ASGITransport, AsyncClient

from certchain.crypto.signing import HashSigner, generate_key_pair
from tests.fakes import FakeAnalysisClient, FakeChainClient, FakeStorageClient

SERVER_PRIVATE_KEY, SERVER_PUBLIC_KEY = generate_key_pair()


@pytest.fixture
def signer():
    return HashSigner(SERVER_PRIVATE_KEY, SERVER_PUBLIC_KEY)


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def storage():
    return FakeStorageClient()


@pytest.fixture
def analysis():
    return FakeAnalysisClient()


@pytest.fixture
def app(chain):
    """Create a test app with in-memory DB and an in-process chain."""
    os.environ["CERTCHAIN_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["CERTCHAIN_SERVER_PRIVATE_KEY"] = SERVER_PRIVATE_KEY
    os.environ["CERTCHAIN_SERVER_PUBLIC_KEY"] = SERVER_PUBLIC_KEY
    os.environ["CERTCHAIN_CERTIFICATE_STORE"] = "database"
    os.environ["CERTCHAIN_STORAGE_ENABLED"] = "false"
    os.environ["CERTCHAIN_AI_SERVICE_URL"] = ""

    # Clear caches and singletons so new env vars take effect
    from certchain.common.config import get_settings
    get_settings.cache_clear()

    from certchain.deps import reset_singletons, set_chain_client
    reset_singletons()
    set_chain_client(chain)

    from certchain.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from certchain.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
async def db():
    """Standalone in-memory database for service-level tests."""
    from certchain.common.config import CertchainSettings
    from certchain.common.database import DatabaseManager

    manager = DatabaseManager(CertchainSettings(db_url="sqlite+aiosqlite://"))
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()
