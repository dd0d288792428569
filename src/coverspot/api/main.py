"""FastAPI application factory and lifespan.

Hey future me - everything before `yield` in the lifespan runs at STARTUP, everything after
at SHUTDOWN, and the try/finally makes sure the worker pool and the HTTP pool are released
even if startup blew up halfway. The wired pipeline lives on app.state.covers, the
dependencies in dependencies.py read it from there.
"""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from coverspot import __version__
from coverspot.api.routers import covers_router
from coverspot.config import Settings, get_settings
from coverspot.domain.exceptions import ConfigurationError
from coverspot.infrastructure.container import CoverServices, build_cover_services
from coverspot.infrastructure.integrations.http_pool import HttpClientPool
from coverspot.infrastructure.observability import CorrelationIdMiddleware, configure_logging

logger = logging.getLogger(__name__)

ServicesFactory = Callable[[Settings], CoverServices]


def _make_lifespan(
    settings: Settings, services_factory: ServicesFactory
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Configure logging, wire the pipeline, run the worker pool."""
        configure_logging(
            log_level=settings.log_level,
            json_format=settings.observability.log_json_format,
            app_name=settings.app_name,
        )
        logger.info("Starting application: %s", settings.app_name)

        services: CoverServices | None = None
        try:
            try:
                settings.ensure_directories()
            except OSError as exc:
                raise ConfigurationError(
                    f"Unable to create cover cache directory "
                    f"'{settings.storage.cache_dir}': {exc}"
                ) from exc

            HttpClientPool.configure(
                timeout=settings.providers.fetch_timeout_seconds,
                user_agent=settings.user_agent,
            )
            services = services_factory(settings)
            app.state.covers = services

            await services.worker.start()
            logger.info(
                "Cover worker pool started (%d workers)", settings.worker.max_concurrent
            )

            yield

        except Exception as e:
            logger.exception("Error during application startup: %s", e)
            raise
        finally:
            logger.info("Shutting down application")

            if services is not None:
                try:
                    await services.worker.stop(
                        drain_timeout=settings.worker.drain_timeout_seconds
                    )
                    logger.info("Cover worker pool stopped")
                except Exception as e:
                    logger.exception("Error stopping cover worker pool: %s", e)

            try:
                await HttpClientPool.close()
                logger.info("HTTP client pool closed")
            except Exception as e:
                logger.exception("Error closing HTTP client pool: %s", e)

    return lifespan


def create_app(
    settings: Settings | None = None,
    services_factory: ServicesFactory | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        services_factory: Builds the cover pipeline (default: build_cover_services),
            tests pass one that injects fake storage/providers

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    factory = services_factory or build_cover_services

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=_make_lifespan(settings, factory),
    )
    app.add_middleware(
        CorrelationIdMiddleware, quiet_prefixes=(settings.storage.public_prefix,)
    )
    app.include_router(covers_router)

    # Stored covers are served from the same prefix the storage adapter puts in location_ref.
    app.mount(
        settings.storage.public_prefix,
        StaticFiles(directory=settings.storage.cache_dir, check_dir=False),
        name="book-covers",
    )
    return app
