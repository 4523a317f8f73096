"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from cafe_orders.core.config import get_settings, Settings, EnvironmentMode
from cafe_orders.core.exceptions import (
    CafeOrdersError,
    ValidationError,
    ZoneUnserved,
    TransportError,
    StatusTransitionFailure,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "CafeOrdersError",
    "ValidationError",
    "ZoneUnserved",
    "TransportError",
    "StatusTransitionFailure",
]
