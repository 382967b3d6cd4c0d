"""FastAPI application for the Fixer RBAC service."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fixer_rbac.admin.router import create_admin_router
from fixer_rbac.auth.jwt import JWTService
from fixer_rbac.auth.middleware import JWTAuthMiddleware
from fixer_rbac.constants import APP_DESCRIPTION, APP_TITLE, APP_VERSION, Routes, ServiceName
from fixer_rbac.db.session import DatabaseManager
from fixer_rbac.dependencies import RBACComponents, build_rbac_components
from fixer_rbac.logging import configure_logging
from fixer_rbac.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from fixer_rbac.rbac.catalog import bootstrap_catalog
from fixer_rbac.settings import AppSettings, get_settings


class FixerRBACApp:
    """Application container: owns the RBAC components and configures middleware, routers, and lifespan.

    Raises ``ValueError`` at construction when ``JWT_SECRET_KEY`` is not set.
    """

    app: FastAPI
    components: RBACComponents

    def __init__(self, settings: AppSettings | None = None, db_manager: DatabaseManager | None = None) -> None:
        self.settings = settings or get_settings()
        configure_logging(ServiceName.RBAC, level=self.settings.LOG_LEVEL)
        self._jwt = JWTService(self.settings)
        self.components = build_rbac_components(db_manager or DatabaseManager.from_env())
        self.app = FastAPI(
            title=APP_TITLE,
            description=APP_DESCRIPTION,
            version=APP_VERSION,
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._setup_routers()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncGenerator[None]:
        """Seed the permission catalog on startup; release DB connections on shutdown."""
        if self.settings.RBAC_BOOTSTRAP_ON_STARTUP:
            async with self.components.db.session() as session:
                await bootstrap_catalog(self.components.repository, session)
        try:
            yield
        finally:
            await self.components.db.dispose()

    def _setup_middleware(self) -> None:
        # JWT authentication (extracts user context from tokens)
        self.app.add_middleware(JWTAuthMiddleware, jwt_service=self._jwt)

        # Security headers
        self.app.add_middleware(SecurityHeadersMiddleware)

        # Request-ID (generates/propagates X-Request-ID)
        self.app.add_middleware(RequestIDMiddleware)

        # CORS
        origins = [o.strip() for o in self.settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routers(self) -> None:
        self.app.include_router(
            create_admin_router(self.components), prefix=Routes.ADMIN.prefix, tags=[Routes.ADMIN.tag]
        )

        @self.app.get(Routes.HEALTH)
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "healthy"}


def create_app(settings: AppSettings | None = None, db_manager: DatabaseManager | None = None) -> FastAPI:
    """Build the ASGI app, e.g. ``uvicorn --factory fixer_rbac.main:create_app``."""
    return FixerRBACApp(settings=settings, db_manager=db_manager).app
