import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from kirana.main import app
from kirana.database import Base, get_db
from kirana.api.deps import (
    get_catalog_service,
    get_invoice_repository,
    get_khata_service,
    get_share_dispatcher,
)
from kirana.services.catalog_service import CatalogService
from kirana.services.invoice_repository import InvoiceRepository
from kirana.services.khata_service import KhataService
from kirana.services.live_query import ChangeNotifier
from kirana.services.share_service import MockDocumentSharer, ShareDispatcher


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a throwaway SQLite database with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def repository(session_maker, notifier):
    return InvoiceRepository(session_maker, notifier)


@pytest.fixture
def khata(session_maker, repository):
    return KhataService(session_maker, repository)


@pytest.fixture
def catalog(session_maker, notifier):
    return CatalogService(session_maker, notifier)


@pytest.fixture
def mock_sharer():
    return MockDocumentSharer()


@pytest_asyncio.fixture
async def client(test_db, repository, khata, catalog, mock_sharer):
    """Create test client wired to the test database and a mock sharing channel."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_invoice_repository] = lambda: repository
    app.dependency_overrides[get_khata_service] = lambda: khata
    app.dependency_overrides[get_catalog_service] = lambda: catalog
    app.dependency_overrides[get_share_dispatcher] = lambda: ShareDispatcher(mock_sharer)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
