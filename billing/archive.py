"""日报、归档与重置

批量操作前先把备份推送到通知通道，然后才修改数据：
- clear：删除全部订单与归档
- daily_reset：把所有 process / completed 订单移入回收站
- archive_day：为当天订单写一条归档快照后移入回收站
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from config.settings import settings
from database import DatabaseManager
from database.models import Archive, OrderStatus, OrderType

from . import engine
from .clock import Clock
from .messages import MessageFormatter

ACTIVE_STATUSES = (OrderStatus.PROCESS, OrderStatus.COMPLETED)


@dataclass
class DailyReport:
    """当日报表

    orders 中进行中的 vip 订单金额是按当前时间估算的（provisional=True），
    并未写回数据库。
    """
    date: str
    orders: List[Dict[str, Any]] = field(default_factory=list)
    total_sum: int = 0

    @property
    def count(self) -> int:
        return len(self.orders)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "count": self.count,
            "totalSum": self.total_sum,
            "orders": self.orders,
        }


@dataclass
class ArchiveResult:
    ok: bool
    archived: int = 0
    total_sum: int = 0
    error: Optional[str] = None


@dataclass
class ClearResult:
    total_count: int
    total_sum: int
    archive_count: int


class ArchiveManager:
    """日报 / 归档 / 重置管理器

    只读取订单，批量移入回收站是唯一的订单写操作；归档记录只由这里创建。
    """

    def __init__(
        self,
        db: DatabaseManager,
        notifier,
        clock: Optional[Clock] = None,
        price_per_hour: Optional[int] = None,
        formatter: Optional[MessageFormatter] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock or Clock(settings.timezone)
        self.price_per_hour = price_per_hour or settings.price_per_hour
        self.formatter = formatter or MessageFormatter(self.clock, settings.currency_label)

    # ==================== 日报 ====================

    def daily_report(self, as_of: Optional[datetime] = None) -> DailyReport:
        """as_of 所在自然日内创建的、未删除的订单及合计金额"""
        day_start, day_end = self.clock.day_bounds(as_of)
        now = self.clock.now()
        orders = self.db.orders.list_created_between(
            day_start, day_end, exclude=OrderStatus.TRASH
        )

        items = []
        for order in orders:
            item = order.to_dict(self.clock.tz)
            item["provisional"] = False
            if order.status is OrderStatus.PROCESS and order.type is OrderType.VIP:
                item["summa"] = engine.vip_accrued_amount(
                    order.start_time, now, self.price_per_hour
                )
                item["provisional"] = True
            items.append(item)

        return DailyReport(
            date=day_start.date().isoformat(),
            orders=items,
            total_sum=sum(item["summa"] or 0 for item in items),
        )

    def send_daily_report(self, as_of: Optional[datetime] = None) -> DailyReport:
        """生成日报并推送"""
        report = self.daily_report(as_of)
        if report.orders:
            self.notifier.send_chunks(
                self.formatter.daily_report_lines(report.orders),
                self.formatter.daily_report_title(report.date, report.total_sum),
            )
        else:
            self.notifier.send(self.formatter.daily_report_empty())
        logger.info(f"日报已推送: {report.date}，{report.count} 条，合计 {report.total_sum}")
        return report

    # ==================== 批量操作 ====================

    def clear(self) -> ClearResult:
        """备份后删除全部订单与归档"""
        orders = self.db.orders.list_all()
        total_sum = sum(o.summa or 0 for o in orders)
        if orders:
            self.notifier.send_chunks(
                self.formatter.order_backup_lines(orders),
                self.formatter.clear_backup_title(len(orders), total_sum),
            )
        else:
            self.notifier.send(self.formatter.clear_empty())

        archives = self.db.archives.list_newest_first()
        if archives:
            self.notifier.send_chunks(
                self.formatter.archive_backup_lines(archives),
                self.formatter.archive_backup_title(),
            )
        else:
            self.notifier.send(self.formatter.archive_empty())

        order_count = self.db.orders.delete_all()
        archive_count = self.db.archives.delete_all()
        logger.warning(f"数据库已清空: {order_count} 条订单，{archive_count} 条归档")
        return ClearResult(
            total_count=order_count, total_sum=total_sum, archive_count=archive_count
        )

    def daily_reset(self) -> int:
        """备份后把所有 process / completed 订单移入回收站

        Returns:
            移入回收站的订单数
        """
        orders = self.db.orders.list_by_statuses(ACTIVE_STATUSES)
        total_sum = sum(o.summa or 0 for o in orders)
        if orders:
            self.notifier.send_chunks(
                self.formatter.order_backup_lines(orders),
                self.formatter.reset_backup_title(len(orders), total_sum),
            )
        else:
            self.notifier.send(self.formatter.reset_empty())

        updated = self.db.orders.trash_many([o.id for o in orders], self.clock.now())
        logger.info(f"每日重置完成: {updated} 条订单移入回收站")
        return updated

    def archive_day(self, as_of: Optional[datetime] = None) -> ArchiveResult:
        """把当天的 process / completed 订单写入归档后移入回收站

        当天没有可归档订单时返回 ok=False，不创建归档。
        """
        day_start, day_end = self.clock.day_bounds(as_of)
        orders = self.db.orders.list_created_between(
            day_start, day_end, statuses=ACTIVE_STATUSES
        )
        if not orders:
            return ArchiveResult(ok=False, error="没有可归档的订单")

        snapshot = [o.to_dict(self.clock.tz) for o in orders]
        total_sum = sum(o.summa or 0 for o in orders)
        self.db.archives.create(day_start.date().isoformat(), snapshot, total_sum)
        self.db.orders.trash_many([o.id for o in orders], self.clock.now())
        return ArchiveResult(ok=True, archived=len(orders), total_sum=total_sum)

    def list_archives(self) -> List[Archive]:
        return self.db.archives.list_newest_first()
