"""数据库模块 —— 订单、序列计数器与归档的持久化层。"""
from .manager import DatabaseManager
from .models import Archive, Counter, Order, OrderStatus, OrderType

__all__ = [
    "DatabaseManager",
    "Archive",
    "Counter",
    "Order",
    "OrderStatus",
    "OrderType",
]
