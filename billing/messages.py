"""通知文本模板

所有推送到 Telegram 的文本都在这里生成（HTML parse_mode）。
"""
import html
from typing import Any, Dict, Iterable, List, Optional

from database.models import Archive, Order

from .clock import Clock
from .engine import CompletionOutcome


class MessageFormatter:
    """把订单与报表格式化为通知文本"""

    def __init__(self, clock: Clock, currency_label: str = "so'm"):
        self.clock = clock
        self.currency_label = currency_label

    def money(self, value: Optional[int]) -> str:
        return f"{(value or 0):,} {self.currency_label}"

    def _time(self, value) -> str:
        return self.clock.format(value)

    def _head(self, order: Order) -> str:
        return (
            f"PS: {html.escape(order.ps)}\n"
            f"类型: <u>{order.type.value.upper()}</u>\n"
            f"金额: <b>{self.money(order.summa)}</b>\n"
            f"开始: {self._time(order.start_time)}\n"
            f"结束: {self._time(order.end_time)}\n"
        )

    # ==================== 生命周期 ====================

    def order_created(self, order: Order) -> str:
        return f"<b>🎮 新订单 #{order.order_id}</b>\n" + self._head(order)

    def order_completed(self, order: Order, outcome: CompletionOutcome) -> str:
        text = (
            f"<b>✅ 订单已结束 #{order.order_id}</b>\n\n"
            + self._head(order)
            + f"游玩时长: {outcome.elapsed_minutes} 分钟\n"
            + f"游玩金额: {self.money(outcome.accrued)}\n"
        )
        if outcome.finished_early and outcome.refund > 0:
            text += (
                f"\n剩余时长: {outcome.remaining_minutes} 分钟\n"
                f"应退金额: <b>{self.money(outcome.refund)}</b>"
            )
        return text

    def order_auto_completed(self, order: Order) -> str:
        return f"<b>✅ 订单已自动结束 #{order.order_id}</b>\n" + self._head(order)

    # ==================== 日报 ====================

    def daily_report_title(self, day: str, total_sum: int) -> str:
        return f"📊 每日报表\n📅 {day}\n💵 营收: {self.money(total_sum)}\n"

    def daily_report_lines(self, orders: Iterable[Dict[str, Any]]) -> List[str]:
        lines = []
        for i, o in enumerate(orders, 1):
            open_tag = "（VIP 进行中）" if o.get("provisional") else ""
            lines.append(
                f"<u><b>{i}) {html.escape(o['ps'])} | </b></u>{o['type']}{open_tag} | "
                f"💵 {self.money(o['summa'])}\n"
                f" 开始: {self._time(o['startTime'])}\n"
                f" 结束: {self._time(o['endTime'])}\n"
            )
        return lines

    def daily_report_empty(self) -> str:
        return "📊 每日报表：今天没有任何订单。"

    # ==================== 备份 ====================

    def order_backup_lines(self, orders: Iterable[Order]) -> List[str]:
        return [
            f"{i}) #{o.order_id} PS: {html.escape(o.ps)} | {o.type.value.upper()} | "
            f"{self.money(o.summa)} | {o.status.value} | {self._time(o.start_time)}"
            for i, o in enumerate(orders, 1)
        ]

    def archive_backup_lines(self, archives: Iterable[Archive]) -> List[str]:
        lines = []
        for a in archives:
            snapshot = a.orders or []
            lines.append(f"📦 {a.date}: {len(snapshot)} 条订单, {self.money(a.total_sum)}")
            for i, o in enumerate(snapshot, 1):
                lines.append(
                    f"  {i}) PS: {html.escape(str(o.get('ps')))} | {o.get('type')} | "
                    f"{self.money(o.get('summa'))} | {self._time(o.get('startTime'))}"
                )
        return lines

    def clear_backup_title(self, count: int, total_sum: int) -> str:
        return f"🧹 清库备份\n合计: {count} 条订单, {self.money(total_sum)}\n"

    def clear_empty(self) -> str:
        return "🧹 数据库已清空，没有任何订单。"

    def archive_backup_title(self) -> str:
        return "📦 归档备份"

    def archive_empty(self) -> str:
        return "📦 归档也是空的。"

    def reset_backup_title(self, count: int, total_sum: int) -> str:
        return f"🔄 每日重置备份\n合计: {count} 条订单, {self.money(total_sum)}\n"

    def reset_empty(self) -> str:
        return "🔄 已开始新的一天，没有任何订单。"
