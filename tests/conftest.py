"""Shared test fixtures."""

import json
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coar_exchange.config import Settings
from coar_exchange.db.base import Base
# Import all models to register with Base.metadata
import coar_exchange.db.models  # noqa: F401
from coar_exchange.integrations.base import ReviewCollaborator
from coar_exchange.models.paper import PaperRecord
from coar_exchange.services.directory import ServiceDirectory
from coar_exchange.services.transport import LdnTransport

EXAMPLES_DIR = Path(__file__).resolve().parent / "examples"

LOCAL_INBOX = "https://repo.example.org/inbox"
LOCAL_SERVICE_ID = "https://repo.example.org"
REMOTE_LOCATION = "https://prereview.example/inbox/notifications/remote-1"


class FakeCollaborator(ReviewCollaborator):
    """In-memory stand-in for the editorial system."""

    def __init__(self):
        self.comments: list[tuple[int, str]] = []
        self.doi_lookups: list[str] = []
        self.metadata_updates: list[tuple[str, dict]] = []
        self.issues_by_doi: dict[str, int] = {}
        self.papers: dict[int, PaperRecord] = {}

    async def post_comment(self, issue_id: int, message: str) -> bool:
        self.comments.append((issue_id, message))
        return True

    async def lookup_issue_by_doi(self, doi: str) -> int | None:
        self.doi_lookups.append(doi)
        return self.issues_by_doi.get(doi)

    async def update_external_metadata(self, doi: str, metadata: dict) -> bool:
        self.metadata_updates.append((doi, metadata))
        return True

    async def fetch_paper_by_issue(self, issue_id: int) -> PaperRecord | None:
        return self.papers.get(issue_id)


class RemoteInbox:
    """Scripted remote LDN inbox behind an httpx.MockTransport."""

    def __init__(self):
        self.received: list[dict] = []
        self.status = 201
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.received.append(json.loads(request.content))
        if self.error is not None:
            raise self.error
        headers = {"Location": REMOTE_LOCATION} if self.status in (201, 202) else {}
        return httpx.Response(self.status, headers=headers, text="")

    def fail_with(self, error_cls: type[httpx.TransportError] = httpx.ConnectError) -> None:
        self.error = error_cls("connection refused")


@pytest.fixture
def settings():
    return Settings(
        enabled=True,
        inbox_url=LOCAL_INBOX,
        service_id=LOCAL_SERVICE_ID,
        database_url="sqlite+aiosqlite:///",
        services_file=str(EXAMPLES_DIR / "services.yml"),
        run_workers=False,
        worker_concurrency=1,
        job_backoff_base=2.0,
        job_max_retries=3,
    )


@pytest.fixture
def collaborator():
    return FakeCollaborator()


@pytest.fixture
def remote_inbox():
    return RemoteInbox()


@pytest.fixture
def ctx(settings, collaborator, remote_inbox):
    from coar_exchange.context import build_context

    return build_context(
        settings,
        collaborator=collaborator,
        transport=LdnTransport(timeout=5.0, transport=httpx.MockTransport(remote_inbox)),
        directory=ServiceDirectory.from_yaml(EXAMPLES_DIR / "services.yml"),
    )


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(db_engine, session_factory, settings, ctx):
    """Create a test application instance with in-memory DB."""
    from coar_exchange.main import create_app

    _app = create_app(settings)
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.redis = None
    _app.state.context = ctx
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
