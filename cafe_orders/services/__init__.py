"""
                        Services Module

Ordering pipeline services. Store access goes through a gateway with a
workbook (development) and a remote (production) implementation.

Services:
    - pricing: Unit and line prices
    - cart: Cart ledger with durable snapshots
    - delivery_zones: Neighborhood to delivery zone resolution
    - coupons: Coupon validation and eligibility
    - checkout: Canonical order payload and submission
    - notifications: Customer messaging deep link
    - kitchen: Order feed, alerts and polling
    - gateway: Remote store clients
"""

from cafe_orders.services.cart import CartLedger
from cafe_orders.services.storage import JsonFileStorage, MemoryStorage

__all__ = ["CartLedger", "JsonFileStorage", "MemoryStorage"]
