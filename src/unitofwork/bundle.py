"""
SessionBundle wires one database into a FastAPI application.

    settings = get_settings()
    bundle = SessionBundle(settings)
    bundle.build()

    app = FastAPI(lifespan=bundle.lifespan)
    bundle.install(app)

    dogs = DogDAO()

    @app.get("/dogs/{name}", response_model=DogOut)
    @bundle.unit_of_work(read_only=True)
    async def find(name: str):
        return await dogs.get(name)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI

from unitofwork.api.error_handlers import register_exception_handlers
from unitofwork.config.settings import Settings
from unitofwork.core.health import SessionFactoryHealthCheck, build_health_router
from unitofwork.core.logging.middleware import RequestIDMiddleware
from unitofwork.database.session import (
    ManagedSessionFactory,
    SessionFactoryRegistry,
    build_session_factory,
)
from unitofwork.unit_of_work.descriptor import UnitOfWork
from unitofwork.unit_of_work.scope import UnitOfWorkScope, unit_of_work

logger = logging.getLogger(__name__)


class SessionBundle:
    def __init__(
        self,
        settings: Settings,
        *,
        name: str | None = None,
        lazy_loading_enabled: bool | None = None,
        registry: SessionFactoryRegistry | None = None,
    ):
        self.settings = settings
        self.name = name or settings.SESSION_FACTORY_NAME
        self.registry = registry or SessionFactoryRegistry()
        self._lazy_loading_enabled = (
            settings.LAZY_LOADING_ENABLED if lazy_loading_enabled is None else lazy_loading_enabled
        )
        self._factory: ManagedSessionFactory | None = None

    # --- lazy loading policy (fixed once the factory is built) ---
    @property
    def lazy_loading_enabled(self) -> bool:
        return self._lazy_loading_enabled

    @lazy_loading_enabled.setter
    def lazy_loading_enabled(self, enabled: bool) -> None:
        if self._factory is not None:
            raise RuntimeError("Lazy loading must be configured before the bundle is built")
        self._lazy_loading_enabled = enabled

    @property
    def session_factory(self) -> ManagedSessionFactory:
        if self._factory is None:
            raise RuntimeError(f"SessionBundle {self.name!r} has not been built yet")
        return self._factory

    def build(self) -> ManagedSessionFactory:
        """
        Create the engine and session factory and register it under `name`.
        """
        if self._factory is not None:
            return self._factory

        factory = build_session_factory(
            self.settings,
            name=self.name,
            lazy_loading_enabled=self._lazy_loading_enabled,
        )
        self._factory = self.registry.register(factory)
        logger.info(
            "bundle.built",
            extra={"session_factory": self.name, "lazy_loading_enabled": self._lazy_loading_enabled},
        )
        return self._factory

    def health_check(self) -> SessionFactoryHealthCheck:
        return SessionFactoryHealthCheck(
            self.session_factory,
            validation_query=self.settings.VALIDATION_QUERY,
            timeout=self.settings.VALIDATION_QUERY_TIMEOUT,
        )

    def install(self, app: FastAPI) -> None:
        """
        Register exception handlers, request-id middleware and the health route.
        """
        self.build()
        register_exception_handlers(app)
        app.add_middleware(RequestIDMiddleware)
        app.include_router(build_health_router([self.health_check()]))

    def unit_of_work(self, descriptor: UnitOfWork | None = None, **options: Any):
        """
        Decorator running the wrapped coroutine in a unit of work on this bundle's
        session factory (unless `descriptor.value` names another registered one).
        """
        if descriptor is None:
            options.setdefault("value", self.name)
        return unit_of_work(descriptor, registry=self.registry, **options)

    def scope(self, descriptor: UnitOfWork | None = None) -> UnitOfWorkScope:
        return UnitOfWorkScope(self.session_factory, descriptor or UnitOfWork(value=self.name))

    async def dispose(self) -> None:
        if self._factory is not None:
            await self._factory.dispose()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        self.build()
        try:
            yield
        finally:
            await self.dispose()
