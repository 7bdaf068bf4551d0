import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth import router as auth_router
from auth.memory import InMemorySessionStore, InMemoryUserRepository
from auth.repository import PostgresSessionStore, PostgresUserRepository, UserRepository
from auth.service import AuthService
from auth.sessions import SessionStore
from core.config import Settings
from core.db import Database
from core.errors import register_exception_handlers
from core.logging_config import setup_logging
from issues import router as issues_router
from issues.memory import InMemoryIssueRepository
from issues.repository import IssueRepository, PostgresIssueRepository
from issues.store import IssueStore
from mirror.service import MirrorSync, build_mirror

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    issue_repository: IssueRepository | None = None,
    user_repository: UserRepository | None = None,
    session_store: SessionStore | None = None,
    mirror: MirrorSync | None = None,
) -> FastAPI:
    """
    Build the app and everything it depends on. Explicit arguments override
    what `settings` would build (tests pass in-memory stores and a fake mirror).
    """
    settings = settings or Settings.from_env()

    database: Database | None = None
    if settings.storage_backend == "postgres":
        database = Database(settings.database_url)
        issue_repository = issue_repository or PostgresIssueRepository(database)
        user_repository = user_repository or PostgresUserRepository(database)
        session_store = session_store or PostgresSessionStore(database)
    else:
        issue_repository = issue_repository or InMemoryIssueRepository()
        user_repository = user_repository or InMemoryUserRepository()
        session_store = session_store or InMemorySessionStore()

    mirror = mirror or build_mirror(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # Initialize the DB pool once per process.
        if database is not None:
            await database.connect()
            pruned = await session_store.prune_expired()
            logger.info("sessions_pruned count=%s", pruned)
        await mirror.initialize()
        try:
            yield
        finally:
            await mirror.drain()
            if database is not None:
                await database.close()

    app = FastAPI(title="Issue Tracker API", lifespan=lifespan)

    app.state.settings = settings
    app.state.issue_store = IssueStore(issue_repository)
    app.state.auth_service = AuthService(settings, users=user_repository, sessions=session_store)
    app.state.mirror = mirror

    # Allow the frontend dev server to call this API from the browser.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(issues_router.router, prefix=settings.api_prefix, tags=["issues"])
    app.include_router(auth_router.router, prefix=settings.api_prefix, tags=["auth"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "issue-tracker api", "mirror": "enabled" if mirror.enabled else "disabled"}

    return app


def app_from_env() -> FastAPI:
    """
    Process entry point: `uvicorn main:app_from_env --factory`.
    """
    settings = Settings.from_env()
    setup_logging(settings)
    logger.info(
        "starting storage=%s mirror_mode=%s api_prefix=%s",
        settings.storage_backend,
        settings.mirror_mode,
        settings.api_prefix,
    )
    return create_app(settings)
