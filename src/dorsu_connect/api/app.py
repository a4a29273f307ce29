"""
API Module - FastAPI application for DOrSU Connect.
===================================================

Routes:
- GET  /health                    Liveness check
- POST /api/auth/register         Create an account, returns a JWT
- POST /api/auth/login            Email/password login, returns a JWT
- GET  /api/auth/me               Current user from the bearer token
- POST /api/auth/change-password  Replace the current user's password
- POST /api/chat                  Ask the assistant
- POST /api/refresh-knowledge     Rebuild the knowledge base from the dataset
- POST /api/clear-cache           Drop cached answers
- GET  /api/refresh-status        Refresh and auto-refresh state
- GET  /api/knowledge/stats       Knowledge store and cache statistics
- GET  /api/top-queries           Most asked questions

Error bodies are ``{"error": message}``.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dorsu_connect import __version__
from dorsu_connect.auth.service import AuthService, get_auth_service
from dorsu_connect.indexing.knowledge_store import KnowledgeStore, get_knowledge_store
from dorsu_connect.rag.analytics import QueryAnalytics, get_query_analytics
from dorsu_connect.rag.cache import ResponseCache, get_response_cache
from dorsu_connect.rag.chat import ChatService, get_chat_service
from dorsu_connect.refresh.service import DataRefreshService, get_data_refresh_service
from dorsu_connect.shared.config import get_settings
from dorsu_connect.shared.errors import (
    AuthenticationError,
    ConfigurationError,
    DorsuConnectError,
    RegistrationError,
    StoreError,
)
from dorsu_connect.shared.logging import get_logger, setup_logging_from_settings
from dorsu_connect.shared.schemas import (
    ChangePasswordRequest,
    ChatRequest,
    LoginRequest,
    RegisterRequest,
    User,
)

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Service Container
# ─────────────────────────────────────────────────────────────────────────────


class ServiceContainer:
    """
    Services used by the routes.

    Anything not passed in is created on first use from the process-wide
    singletons, so tests can hand in mocks for just the services they hit.
    """

    def __init__(
        self,
        auth: Optional[AuthService] = None,
        chat: Optional[ChatService] = None,
        refresh: Optional[DataRefreshService] = None,
        cache: Optional[ResponseCache] = None,
        analytics: Optional[QueryAnalytics] = None,
        store: Optional[KnowledgeStore] = None,
    ):
        self._auth = auth
        self._chat = chat
        self._refresh = refresh
        self._cache = cache
        self._analytics = analytics
        self._store = store

    @property
    def auth(self) -> AuthService:
        if self._auth is None:
            self._auth = get_auth_service()
        return self._auth

    @property
    def chat(self) -> ChatService:
        if self._chat is None:
            self._chat = get_chat_service()
        return self._chat

    @property
    def refresh(self) -> DataRefreshService:
        if self._refresh is None:
            self._refresh = get_data_refresh_service()
        return self._refresh

    @property
    def cache(self) -> ResponseCache:
        if self._cache is None:
            self._cache = get_response_cache()
        return self._cache

    @property
    def analytics(self) -> QueryAnalytics:
        if self._analytics is None:
            self._analytics = get_query_analytics()
        return self._analytics

    @property
    def store(self) -> KnowledgeStore:
        if self._store is None:
            self._store = get_knowledge_store()
        return self._store


def get_container(request: Request) -> ServiceContainer:
    """Dependency returning the app's container; override in tests if needed."""
    return request.app.state.container


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def get_current_user(
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> User:
    """Require a valid bearer token. AuthenticationError maps to 401."""
    return container.auth.get_user_from_header(authorization)


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Services to use (default: lazily created singletons)

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()
    setup_logging_from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"DOrSU Connect API v{__version__} starting")
        if settings.refresh.auto_refresh:
            app.state.container.refresh.start_auto_refresh()
        yield
        if settings.refresh.auto_refresh:
            app.state.container.refresh.stop_auto_refresh()
        logger.info("DOrSU Connect API stopped")

    app = FastAPI(title="DOrSU Connect", version=__version__, lifespan=lifespan)
    app.state.container = container or ServiceContainer()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthenticationError)
    async def handle_auth_error(request: Request, exc: AuthenticationError) -> JSONResponse:
        return error_response(401, exc.message)

    @app.exception_handler(RegistrationError)
    async def handle_registration_error(request: Request, exc: RegistrationError) -> JSONResponse:
        return error_response(400, str(exc))

    @app.exception_handler(ConfigurationError)
    async def handle_config_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error(f"Configuration error on {request.url.path}: {exc}")
        return error_response(503, str(exc))

    # ---- Health ----

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    # ---- Auth ----

    @app.post("/api/auth/register")
    def register(body: RegisterRequest, container: ServiceContainer = Depends(get_container)):
        result = container.auth.register(body.email or "", body.username or "", body.password or "")
        return result.model_dump(mode="json", by_alias=True)

    @app.post("/api/auth/login")
    def login(body: LoginRequest, container: ServiceContainer = Depends(get_container)):
        if not body.email or not body.password:
            return error_response(400, "Email and password are required")

        result = container.auth.login(body.email, body.password)
        return result.model_dump(mode="json", by_alias=True)

    @app.get("/api/auth/me")
    def me(user: User = Depends(get_current_user)):
        return {"success": True, "user": user.to_public().model_dump(mode="json", by_alias=True)}

    @app.post("/api/auth/change-password")
    def change_password(
        body: ChangePasswordRequest,
        user: User = Depends(get_current_user),
        container: ServiceContainer = Depends(get_container),
    ):
        container.auth.change_password(user, body.current_password or "", body.new_password or "")
        return {"success": True, "message": "Password changed successfully"}

    # ---- Chat ----

    @app.post("/api/chat")
    def chat(body: ChatRequest, container: ServiceContainer = Depends(get_container)):
        if not body.text:
            return error_response(400, "prompt required")
        try:
            response = container.chat.chat(body)
        except StoreError as e:
            logger.error(f"Chat failed: {e}")
            return error_response(503, "Knowledge base not available")
        return response.model_dump(mode="json", by_alias=True)

    # ---- Knowledge Base ----

    @app.post("/api/refresh-knowledge")
    def refresh_knowledge(container: ServiceContainer = Depends(get_container)):
        logger.info("Manual knowledge base refresh requested")
        try:
            refresh_service = container.refresh
        except DorsuConnectError as e:
            logger.error(f"Data refresh service not available: {e}")
            return error_response(503, "Data refresh service not available")

        result = refresh_service.refresh_from_data_file()
        if not result.success:
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": result.message or "Refresh failed"},
            )
        return {
            "success": True,
            "message": "Knowledge base refreshed and cache cleared successfully",
            "data": result.model_dump(mode="json", by_alias=True),
        }

    @app.post("/api/clear-cache")
    def clear_cache(container: ServiceContainer = Depends(get_container)):
        cleared = container.cache.invalidate_all()
        logger.info("Response cache cleared manually")
        return {"success": True, "message": "Cache cleared successfully", "cleared": cleared}

    @app.get("/api/refresh-status")
    def refresh_status(container: ServiceContainer = Depends(get_container)):
        status = container.refresh.get_status()
        return {"success": True, "status": status.model_dump(mode="json", by_alias=True)}

    @app.get("/api/knowledge/stats")
    def knowledge_stats(container: ServiceContainer = Depends(get_container)):
        try:
            store_stats = container.store.get_stats()
        except StoreError as e:
            logger.error(f"Knowledge stats failed: {e}")
            return error_response(503, "Knowledge base not available")
        return {
            "success": True,
            "store": store_stats,
            "cache": container.cache.stats(),
            "queries": container.analytics.stats(),
        }

    @app.get("/api/top-queries")
    def top_queries(
        limit: int = Query(10, ge=1, le=100),
        container: ServiceContainer = Depends(get_container),
    ):
        return {"success": True, "queries": container.analytics.top_queries(limit)}

    return app
