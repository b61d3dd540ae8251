"""订单与归档仓库 —— 核心业务数据的数据访问层。

订单的所有写操作只经由 OrderRepository；状态迁移使用带状态条件的
更新语句，保证定时任务与人工操作并发时同一迁移只会生效一次。
"""
import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, update
from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Archive, Order, OrderStatus, OrderType

_PRIMARY_KEY_RE = re.compile(r"^[0-9a-f]{32}$")
_ORDER_ID_RE = re.compile(r"^[0-9]+$")


class OrderRepository(BaseCRUD):
    """订单 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    # ================================================================
    # 写入
    # ================================================================

    def add(self, order: Order) -> Order:
        """插入一条新订单并返回。"""
        with self._get_session() as session:
            session.add(order)
            session.commit()
            return order

    def transition(self, pk: str, expected: Iterable[OrderStatus],
                   **fields: Any) -> Optional[Order]:
        """条件更新：仅当订单当前状态属于 expected 时写入 fields。

        Args:
            pk: 订单主键。
            expected: 允许的当前状态集合。
            **fields: 需要写入的列。

        Returns:
            更新后的订单；若状态已不满足条件（被其他请求抢先迁移）返回 None。
        """
        expected = list(expected)
        with self._get_session() as session:
            result = session.execute(
                update(Order)
                .where(Order.id == pk, Order.status.in_(expected))
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            if result.rowcount == 0:
                return None
            return session.get(Order, pk, populate_existing=True)

    def delete(self, pk: str) -> bool:
        """物理删除订单。"""
        return self.delete_by_id(Order, pk)

    def trash_many(self, ids: Sequence[str], deleted_at: datetime) -> int:
        """批量移入回收站，只影响仍处于 process / completed 的订单。"""
        if not ids:
            return 0
        with self._get_session() as session:
            result = session.execute(
                update(Order)
                .where(
                    Order.id.in_(list(ids)),
                    Order.status.in_([OrderStatus.PROCESS, OrderStatus.COMPLETED]),
                )
                .values(status=OrderStatus.TRASH, deleted_at=deleted_at)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount

    def delete_all(self) -> int:
        """删除全部订单，返回删除条数。"""
        with self._get_session() as session:
            result = session.execute(delete(Order))
            session.commit()
            return result.rowcount

    # ================================================================
    # 查找（多种标识）
    # ================================================================

    def get_by_primary_key(self, identifier: str,
                           session: Optional[Session] = None) -> Optional[Order]:
        if not _PRIMARY_KEY_RE.match(identifier):
            return None
        return self.get_by_id(Order, identifier, session=session)

    def get_by_order_id(self, identifier: str,
                        session: Optional[Session] = None) -> Optional[Order]:
        if not _ORDER_ID_RE.match(identifier):
            return None
        number = int(identifier)
        return self._first(lambda q: q.filter(Order.order_id == number), session)

    def get_by_external_id(self, identifier: str,
                           session: Optional[Session] = None) -> Optional[Order]:
        return self._first(lambda q: q.filter(Order.external_id == identifier), session)

    def find_by_any_id(self, identifier: Any) -> Optional[Order]:
        """按 主键 → 数字 orderId → externalId 的顺序查找订单。

        三种策略相互独立、依次执行，命中即返回。主键最不容易产生歧义，
        所以优先；恰好是数字形式的 externalId 不会抢在同号 orderId 之前。
        """
        identifier = str(identifier).strip()
        if not identifier:
            return None
        strategies: List[Callable[..., Optional[Order]]] = [
            self.get_by_primary_key,
            self.get_by_order_id,
            self.get_by_external_id,
        ]
        with self._get_session() as session:
            for strategy in strategies:
                order = strategy(identifier, session=session)
                if order is not None:
                    return order
        return None

    def _first(self, build: Callable, session: Optional[Session]) -> Optional[Order]:
        if session:
            return build(session.query(Order)).first()
        with self._get_session() as sess:
            return build(sess.query(Order)).first()

    # ================================================================
    # 列表查询
    # ================================================================

    def list_all(self) -> List[Order]:
        """全部订单，新建的在前。"""
        return self.get_all(Order, order_by=Order.created_at.desc())

    def list_by_status(self, status: OrderStatus,
                       order_by: Optional[Any] = None) -> List[Order]:
        return self.get_all(Order, filters={"status": status}, order_by=order_by)

    def list_by_statuses(self, statuses: Iterable[OrderStatus]) -> List[Order]:
        with self._get_session() as session:
            return session.query(Order).filter(
                Order.status.in_(list(statuses))
            ).order_by(Order.created_at.asc()).all()

    def list_created_between(self, start: datetime, end: datetime,
                             statuses: Optional[Iterable[OrderStatus]] = None,
                             exclude: Optional[OrderStatus] = None) -> List[Order]:
        """创建时间落在 [start, end) 内的订单，按创建时间升序。"""
        with self._get_session() as session:
            query = session.query(Order).filter(
                Order.created_at >= start, Order.created_at < end
            )
            if statuses is not None:
                query = query.filter(Order.status.in_(list(statuses)))
            if exclude is not None:
                query = query.filter(Order.status != exclude)
            return query.order_by(Order.created_at.asc()).all()

    def find_expired_cash(self, now: datetime) -> List[Order]:
        """进行中且结束时间已到的 cash 订单。"""
        with self._get_session() as session:
            return session.query(Order).filter(
                Order.status == OrderStatus.PROCESS,
                Order.type == OrderType.CASH,
                Order.end_time.isnot(None),
                Order.end_time <= now,
            ).order_by(Order.end_time.asc()).all()


class ArchiveRepository(BaseCRUD):
    """归档快照 仓库。归档只增不改。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, date: str, orders: List[Dict[str, Any]],
               total_sum: int) -> Archive:
        """写入一条归档快照。"""
        with self._get_session() as session:
            archive = Archive(date=date, orders=orders, total_sum=total_sum)
            session.add(archive)
            session.commit()
            logger.info(f"归档已创建: {date}，{len(orders)} 条订单")
            return archive

    def list_newest_first(self) -> List[Archive]:
        return self.get_all(Archive, order_by=Archive.date.desc())

    def delete_all(self) -> int:
        with self._get_session() as session:
            result = session.execute(delete(Archive))
            session.commit()
            return result.rowcount
