"""订单生命周期管理 - 订单状态机

状态：process → completed → trash → completed（恢复），也允许 process → trash。
所有订单写操作都经过 OrderLifecycleManager，金额与时间的换算交给计费引擎。
状态迁移使用带条件的更新（仅当订单仍处于预期状态时写入），
与定时任务并发时同一订单不会被重复结算或重复通知。
"""
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from loguru import logger
from sqlalchemy.exc import IntegrityError

from config.settings import settings
from database import DatabaseManager
from database.models import Order, OrderStatus, OrderType

from . import engine
from .clock import Clock
from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .messages import MessageFormatter

ORDER_SEQUENCE = "orderId"


@dataclass
class CompletionResult:
    """结束订单的结果：更新后的订单与结算明细"""
    order: Order
    outcome: engine.CompletionOutcome

    def to_dict(self, tz=None) -> Dict[str, Any]:
        return {
            "order": self.order.to_dict(tz),
            "refund": self.outcome.refund,
            "accrued": self.outcome.accrued,
            "elapsedMinutes": self.outcome.elapsed_minutes,
            "remainingMinutes": self.outcome.remaining_minutes,
        }


def parse_order_type(value: Union[str, OrderType]) -> OrderType:
    try:
        return OrderType(value)
    except ValueError:
        raise ValidationError(f"未知的订单类型: {value}")


def parse_order_status(value: Union[str, OrderStatus]) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"未知的订单状态: {value}")


def parse_amount(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("金额必须是整数")
    try:
        amount = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"金额必须是整数: {value}")
    if isinstance(value, float) and value != amount:
        raise ValidationError(f"金额必须是整数: {value}")
    return amount


class OrderLifecycleManager:
    """订单生命周期管理器

    Args:
        db: 数据库管理器
        notifier: 通知通道（需提供 dispatch(text)）
        clock: 时钟
        price_per_hour: 每小时价格
        default_station: 未指定工位时的默认名称
        formatter: 通知文本模板
    """

    def __init__(
        self,
        db: DatabaseManager,
        notifier,
        clock: Optional[Clock] = None,
        price_per_hour: Optional[int] = None,
        default_station: Optional[str] = None,
        formatter: Optional[MessageFormatter] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock or Clock(settings.timezone)
        self.price_per_hour = price_per_hour or settings.price_per_hour
        if self.price_per_hour <= 0:
            raise ValueError("price_per_hour must be positive")
        self.default_station = default_station or settings.default_station
        self.formatter = formatter or MessageFormatter(self.clock, settings.currency_label)

    # ==================== 工具方法 ====================

    def serialize(self, order: Order) -> Dict[str, Any]:
        return order.to_dict(self.clock.tz)

    def _parse_time(self, value: Union[str, datetime]) -> datetime:
        if isinstance(value, datetime):
            return self.clock.localize(value)
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"无效的时间格式: {value}")
        return self.clock.localize(parsed)

    def _notify(self, text: str) -> None:
        try:
            self.notifier.dispatch(text)
        except RuntimeError as e:
            logger.warning(f"通知派发失败: {e}")

    def _insert(self, order: Order, attempts: int = 3) -> Order:
        """插入订单；externalId 偶发冲突时换一个重试"""
        for attempt in range(attempts):
            try:
                return self.db.orders.add(order)
            except IntegrityError:
                if attempt == attempts - 1:
                    raise
                logger.warning(f"externalId 冲突，重新生成: {order.external_id}")
                order = Order(
                    id=order.id, order_id=order.order_id,
                    external_id=secrets.token_urlsafe(6),
                    ps=order.ps, type=order.type, start_time=order.start_time,
                    end_time=order.end_time, summa=order.summa,
                    status=order.status, created_at=order.created_at,
                )

    # ==================== 查询 ====================

    def lookup(self, identifier: Any) -> Order:
        """按 主键 / orderId / externalId 查找订单

        Raises:
            NotFoundError: 找不到订单
        """
        order = self.db.orders.find_by_any_id(identifier)
        if order is None:
            raise NotFoundError("Not found")
        return order

    def list_orders(self) -> List[Order]:
        return self.db.orders.list_all()

    def list_completed(self) -> List[Order]:
        return self.db.orders.list_by_status(
            OrderStatus.COMPLETED, order_by=Order.completed_at.desc()
        )

    def list_trash(self) -> List[Order]:
        return self.db.orders.list_by_status(
            OrderStatus.TRASH, order_by=Order.deleted_at.desc()
        )

    # ==================== 状态迁移 ====================

    def create(
        self,
        ps: Optional[str] = None,
        type: Union[str, OrderType] = OrderType.VIP,
        amount: Any = 0,
        start_time: Union[str, datetime, None] = None,
    ) -> Order:
        """创建订单

        cash 订单必须提供大于 0 的金额，结束时间由金额推算；
        vip 订单结束时间为空，结束时按时长结算。

        Raises:
            ValidationError: 类型未知或金额不合法
        """
        order_type = parse_order_type(type)
        summa = parse_amount(amount) if amount not in (None, "") else 0
        if order_type is OrderType.CASH and summa <= 0:
            raise ValidationError("cash 订单必须填写大于 0 的金额")
        if summa < 0:
            raise ValidationError("金额不能为负数")

        now = self.clock.now()
        start = self._parse_time(start_time) if start_time else now
        end = None
        if order_type is OrderType.CASH:
            end = engine.cash_end_time(start, summa, self.price_per_hour)

        order = Order(
            id=uuid.uuid4().hex,
            order_id=self.db.next_sequence(ORDER_SEQUENCE),
            external_id=secrets.token_urlsafe(6),
            ps=(ps or "").strip() or self.default_station,
            type=order_type,
            start_time=start,
            end_time=end,
            summa=summa,
            status=OrderStatus.PROCESS,
            created_at=now,
        )
        order = self._insert(order)
        logger.info(f"订单已创建: #{order.order_id} {order.ps} {order_type.value} {summa}")

        self._notify(self.formatter.order_created(order))
        return order

    def edit(
        self,
        identifier: Any,
        ps: Optional[str] = None,
        type: Union[str, OrderType, None] = None,
        amount: Any = None,
        start_time: Union[str, datetime, None] = None,
        status: Union[str, OrderStatus, None] = None,
    ) -> Order:
        """修改订单，只处理传入的字段

        - vip 订单金额只能减少，不能增加
        - cash 订单金额必须大于 0，金额或开始时间变化后重新推算结束时间
        - vip 订单金额变化后结束时间置空
        - status 可由调用方直接指定

        只写入实际变化的字段，并以读取时的状态为条件；读取之后订单若已被
        结束或删除，本次修改不生效。

        Raises:
            NotFoundError: 找不到订单
            ValidationError: 金额或字段不合法，或订单状态已变化
        """
        order = self.lookup(identifier)
        fields: Dict[str, Any] = {}
        new_type = order.type
        start = order.start_time
        summa = order.summa
        timing_changed = False
        type_changed = False

        if ps and ps.strip():
            fields["ps"] = ps.strip()
        if type is not None:
            new_type = parse_order_type(type)
            type_changed = new_type is not order.type
            timing_changed = type_changed
            fields["type"] = new_type
        if start_time is not None:
            start = self._parse_time(start_time)
            fields["start_time"] = start
            timing_changed = True

        if amount is not None:
            new_amount = parse_amount(amount)
            if new_type is OrderType.VIP and new_amount > order.summa:
                raise ValidationError("VIP 订单金额不能增加")
            if new_type is OrderType.CASH and new_amount <= 0:
                raise ValidationError("cash 订单金额必须大于 0")
            if new_amount < 0:
                raise ValidationError("金额不能为负数")
            summa = new_amount
            fields["summa"] = summa
            if new_type is OrderType.VIP:
                fields["end_time"] = None
            timing_changed = True

        if new_type is OrderType.CASH and timing_changed:
            if summa <= 0:
                raise ValidationError("cash 订单金额必须大于 0")
            fields["end_time"] = engine.cash_end_time(start, summa, self.price_per_hour)
        elif type_changed and order.status is OrderStatus.PROCESS:
            fields["end_time"] = None

        if status is not None:
            fields["status"] = parse_order_status(status)

        if not fields:
            return order

        updated = self.db.orders.transition(order.id, [order.status], **fields)
        if updated is None:
            raise ValidationError("订单状态已变化，请刷新后重试")
        logger.info(f"订单已修改: #{updated.order_id} {sorted(fields)}")
        return updated

    def complete(self, identifier: Any) -> CompletionResult:
        """结束订单

        - vip：按时长结算金额，结束时间为当前时间
        - cash 提前结束：计算剩余分钟数与应退金额，金额改为实际消费
        - cash 到期或超时：金额与结束时间保持不变

        只有进行中的订单可以结束，重复调用不会再次结算。

        Raises:
            NotFoundError: 找不到订单
            ValidationError: 订单不在进行中
        """
        order = self.lookup(identifier)
        if order.status is not OrderStatus.PROCESS:
            raise ValidationError(f"只有进行中的订单可以结束（当前状态: {order.status.value}）")

        now = self.clock.now()
        fields: Dict[str, Any] = {"status": OrderStatus.COMPLETED, "completed_at": now}
        if order.type is OrderType.VIP:
            outcome = engine.vip_completion_outcome(order.start_time, now, self.price_per_hour)
            fields.update(summa=outcome.accrued, end_time=now)
        else:
            outcome = engine.cash_completion_outcome(
                order.start_time, order.end_time, order.summa, now, self.price_per_hour
            )
            if outcome.finished_early:
                fields.update(summa=outcome.accrued, end_time=now)

        updated = self.db.orders.transition(order.id, [OrderStatus.PROCESS], **fields)
        if updated is None:
            raise ValidationError("订单已被其他操作结束")

        logger.info(
            f"订单已结束: #{updated.order_id} {updated.type.value} "
            f"金额={updated.summa} 退款={outcome.refund}"
        )
        self._notify(self.formatter.order_completed(updated, outcome))
        return CompletionResult(order=updated, outcome=outcome)

    def complete_expired(self, order: Order, now: Optional[datetime] = None) -> Optional[Order]:
        """到期 cash 订单的结束迁移（定时任务使用）

        与人工结束到期 cash 订单的迁移相同：金额与结束时间不变。

        Returns:
            更新后的订单；订单已不在进行中时返回 None
        """
        now = now or self.clock.now()
        updated = self.db.orders.transition(
            order.id, [OrderStatus.PROCESS],
            status=OrderStatus.COMPLETED, completed_at=now,
        )
        if updated is None:
            return None
        logger.info(f"订单已自动结束: #{updated.order_id}")
        self._notify(self.formatter.order_auto_completed(updated))
        return updated

    def delete(self, identifier: Any, permanent: bool = False,
               elevated: bool = False) -> Optional[Order]:
        """删除订单

        permanent=True 时需要超级管理员权限，物理删除记录并返回 None；
        否则移入回收站。

        Raises:
            NotFoundError: 找不到订单
            PermissionDeniedError: 物理删除但没有超级管理员权限
            ValidationError: 订单已在回收站
        """
        order = self.lookup(identifier)
        if permanent:
            if not elevated:
                raise PermissionDeniedError("Super admin required")
            self.db.orders.delete(order.id)
            logger.info(f"订单已永久删除: #{order.order_id}")
            return None
        return self._soft_delete(order, [OrderStatus.PROCESS, OrderStatus.COMPLETED])

    def trash(self, identifier: Any) -> Order:
        """从任意未删除状态移入回收站"""
        return self._soft_delete(
            self.lookup(identifier), [OrderStatus.PROCESS, OrderStatus.COMPLETED]
        )

    def trash_completed(self, identifier: Any) -> Order:
        """仅允许已结束的订单移入回收站"""
        order = self.lookup(identifier)
        if order.status is not OrderStatus.COMPLETED:
            raise ValidationError("只能删除已结束的订单")
        return self._soft_delete(order, [OrderStatus.COMPLETED])

    def _soft_delete(self, order: Order, allowed: Iterable[OrderStatus]) -> Order:
        if order.status is OrderStatus.TRASH:
            raise ValidationError("订单已在回收站")
        updated = self.db.orders.transition(
            order.id, allowed,
            status=OrderStatus.TRASH,
            prev_status=order.status,
            deleted_at=self.clock.now(),
        )
        if updated is None:
            raise ValidationError("订单状态已变化，请刷新后重试")
        logger.info(f"订单已移入回收站: #{updated.order_id}（原状态 {order.status.value}）")
        return updated

    def restore(self, identifier: Any) -> Order:
        """从回收站恢复，一律恢复为 completed

        Raises:
            NotFoundError: 找不到订单
            ValidationError: 订单不在回收站
        """
        order = self.lookup(identifier)
        if order.status is not OrderStatus.TRASH:
            raise ValidationError("只能恢复回收站中的订单")
        updated = self.db.orders.transition(
            order.id, [OrderStatus.TRASH],
            status=OrderStatus.COMPLETED,
            completed_at=self.clock.now(),
            deleted_at=None,
            prev_status=None,
        )
        if updated is None:
            raise ValidationError("订单状态已变化，请刷新后重试")
        logger.info(f"订单已恢复: #{updated.order_id}")
        return updated
