"""计费模块 - 计费引擎、订单状态机、到期扫描与日报归档"""
from .clock import Clock, FixedClock
from .errors import (
    AuthError, NotFoundError, NotificationError, OrderError,
    PermissionDeniedError, ValidationError,
)

__all__ = [
    "Clock",
    "FixedClock",
    "OrderError",
    "ValidationError",
    "NotFoundError",
    "AuthError",
    "PermissionDeniedError",
    "NotificationError",
]
