from .base import Filter, Order, RecordStore, Row, eq, ilike, in_, is_null
from .feed import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed, Subscription
from .memory import MemoryRecordStore
from .sqlalchemy_store import SQLAlchemyRecordStore

__all__ = [
    "Filter",
    "Order",
    "RecordStore",
    "Row",
    "eq",
    "ilike",
    "in_",
    "is_null",
    "ChangeEvent",
    "ChangeFeed",
    "Subscription",
    "INSERT",
    "UPDATE",
    "DELETE",
    "MemoryRecordStore",
    "SQLAlchemyRecordStore",
]
