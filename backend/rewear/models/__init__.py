"""
SQLAlchemy models. Importing this package registers every mapped class.
"""
from .user import User
from .item import Item
from .swap_request import SwapRequest
from .points_transaction import PointsTransaction
from .audit_log import AuditLog

__all__ = [
    "User",
    "Item",
    "SwapRequest",
    "PointsTransaction",
    "AuditLog",
]
