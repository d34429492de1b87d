"""
Domain enums shared by the policy, services and routers.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Canonical order status tokens, declared in lifecycle order."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Locale(str, Enum):
    EN = "en"
    JA = "ja"
    VI = "vi"


class UserRole(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"
