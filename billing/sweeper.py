"""到期自动结束 - 定时扫描到期的 cash 订单

每次运行查询 status=process、type=cash 且 endTime <= now 的订单，
逐个执行与人工结束相同的迁移。单个订单失败只记录日志，不影响其他订单；
已经结束的订单不会再被查到，因此重复运行是安全的。
"""
from datetime import datetime
from typing import Optional

from loguru import logger

from .lifecycle import OrderLifecycleManager


class AutoCompletionSweeper:
    """到期 cash 订单扫描器"""

    def __init__(self, lifecycle: OrderLifecycleManager):
        self.lifecycle = lifecycle

    def sweep(self, now: Optional[datetime] = None) -> int:
        """执行一次扫描

        Returns:
            本次自动结束的订单数
        """
        now = now or self.lifecycle.clock.now()
        try:
            expired = self.lifecycle.db.orders.find_expired_cash(now)
        except Exception:
            logger.exception("查询到期订单失败")
            return 0

        completed = 0
        for order in expired:
            try:
                if self.lifecycle.complete_expired(order, now) is not None:
                    completed += 1
            except Exception:
                logger.exception(f"自动结束订单失败: #{order.order_id}")

        if completed:
            logger.info(f"Auto-completed {completed} orders")
        return completed

    def __call__(self) -> int:
        return self.sweep()
