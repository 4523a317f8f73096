"""
Kitchen side of the ordering core: order feed, alerts and polling.
"""

from cafe_orders.services.kitchen.alerts import AlertSink, LoggingAlertSink, NotificationController
from cafe_orders.services.kitchen.feed import KitchenFeed
from cafe_orders.services.kitchen.scheduler import PeriodicTask

__all__ = [
    "AlertSink",
    "KitchenFeed",
    "LoggingAlertSink",
    "NotificationController",
    "PeriodicTask",
]
