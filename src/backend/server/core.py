from __future__ import annotations

from typing import TYPE_CHECKING

from litestar import Router
from litestar.di import Provide
from litestar.exceptions import HTTPException
from litestar.plugins import InitPlugin as LitestarInitPlugin
from litestar.plugins.prometheus import PrometheusController

from backend.domain.collections.controllers import CollectionController
from backend.domain.system.controllers import ProbeController, SystemController
from backend.lib.dependencies import (
    CONFIG_STATE_KEY,
    CONTEXT_STATE_KEY,
    provide_service_context,
)
from backend.lib.exceptions import (
    HTTPError,
    http_error_to_http_response,
    litestar_http_exc_to_http_response,
)

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

    from backend.config.app import Config
    from backend.config.litestar import LitestarConfig

    from .context import ServiceContext

__all__ = ("InitPlugin",)


class MiddlewarePlugin(LitestarInitPlugin):
    """Plugin to register middlewares.

    Prometheus sits outermost so every response, including errors, is counted.
    """

    __slots__ = ("_litestar_config",)

    def __init__(self, litestar_config: LitestarConfig) -> None:
        self._litestar_config = litestar_config

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Add middlewares to the application.

        Parameters
        ----------
        app_config : AppConfig
            The application configuration.

        Returns
        -------
        AppConfig
            The updated configuration.
        """
        app_config.middleware.insert(0, self._litestar_config.prometheus.middleware)
        app_config.middleware.append(self._litestar_config.logging_middleware.middleware)

        return app_config


class InitPlugin(LitestarInitPlugin):
    """Application configuration plugin.

    Wires the already acquired dependencies into the application. The plugin
    never connects anything itself: by the time it runs the store is
    connected and the cache is connected or absent.

    Parameters
    ----------
    context : ServiceContext
        The service context built during bootstrap.
    config : Config
        The service configuration.
    litestar_config : LitestarConfig
        The Litestar side configuration.
    """

    __slots__ = ("_config", "_context", "_litestar_config")

    def __init__(
        self, context: ServiceContext, config: Config, litestar_config: LitestarConfig
    ) -> None:
        self._context = context
        self._config = config
        self._litestar_config = litestar_config

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Configure the application during initialization.

        Parameters
        ----------
        app_config : AppConfig
            The application configuration.

        Returns
        -------
        AppConfig
            The updated configuration.
        """
        app_config.debug = self._config.debug

        app_config.cors_config = self._litestar_config.cors

        app_config.openapi_config = self._litestar_config.openapi

        app_config.compression_config = self._litestar_config.compression

        app_config.logging_config = self._litestar_config.logging

        app_config.state[CONTEXT_STATE_KEY] = self._context
        app_config.state[CONFIG_STATE_KEY] = self._config

        app_config.plugins.append(MiddlewarePlugin(self._litestar_config))

        api_router = Router(
            path=self._config.base_url,
            route_handlers=[SystemController, CollectionController],
        )
        app_config.route_handlers.extend(
            (ProbeController, PrometheusController, api_router)
        )

        app_config.exception_handlers = {
            HTTPError: http_error_to_http_response,
            HTTPException: litestar_http_exc_to_http_response,
        }

        app_config.dependencies = {
            "service_context": Provide(provide_service_context, sync_to_thread=False)
        }

        return app_config
