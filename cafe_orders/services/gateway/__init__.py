"""
Store Gateway Factory

Returns the Workbook or HTTP gateway based on ENV_MODE.

Version: 1.0.0
"""

import logging
from functools import lru_cache

from cafe_orders.core.config import get_settings
from cafe_orders.services.gateway.base import BaseGateway, GET_ACTIONS, POST_ACTIONS
from cafe_orders.services.gateway.http import HttpGateway
from cafe_orders.services.gateway.workbook import WorkbookGateway

logger = logging.getLogger(__name__)


@lru_cache()
def get_gateway() -> BaseGateway:
    """Get the configured store gateway."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Store Gateway: Using WorkbookGateway (development mode)")
        return WorkbookGateway()
    else:
        logger.info(f"Store Gateway: Using HttpGateway ({settings.env_mode.value} mode)")
        return HttpGateway()


def reset_gateway() -> None:
    """Clear the cached gateway instance."""
    get_gateway.cache_clear()


__all__ = [
    "get_gateway",
    "reset_gateway",
    "BaseGateway",
    "HttpGateway",
    "WorkbookGateway",
    "GET_ACTIONS",
    "POST_ACTIONS",
]
