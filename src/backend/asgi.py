from __future__ import annotations

from typing import TYPE_CHECKING

from litestar import Litestar

from .config import APP_CONFIG, LITESTAR_CONFIG
from .config.litestar import LitestarConfig
from .server.core import InitPlugin

if TYPE_CHECKING:
    from .config.app import Config
    from .server.context import ServiceContext


def create_app(context: ServiceContext, config: Config = APP_CONFIG) -> Litestar:
    """Create the ASGI application around an already bootstrapped context."""
    litestar_config = (
        LITESTAR_CONFIG if config is APP_CONFIG else LitestarConfig.from_app_config(config)
    )
    return Litestar(plugins=[InitPlugin(context, config, litestar_config)])
