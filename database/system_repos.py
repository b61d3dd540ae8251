"""系统数据仓库 —— 系统级数据的数据访问层。

管理序列计数器。订单编号由这里统一发放，进程内不保存任何计数状态，
并发安全完全依赖存储层的单语句原子更新。
"""
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Counter


class CounterRepository(BaseCRUD):
    """序列计数器 仓库。

    每个命名序列对应 counters 表中的一行。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def next(self, name: str) -> int:
        """原子地自增并返回指定序列的新值。

        首次使用时计数器从 0 开始，因此第一次返回 1。
        两个并发调用者永远不会拿到同一个值：自增与读取在同一条
        ``UPDATE ... RETURNING`` 语句内完成；计数器行不存在时插入，
        若插入因并发冲突失败则回退到自增。

        Args:
            name: 序列名称（如 "orderId"）。

        Returns:
            新发放的序列值。
        """
        stmt = (
            update(Counter)
            .where(Counter.name == name)
            .values(seq=Counter.seq + 1)
            .returning(Counter.seq)
            .execution_options(synchronize_session=False)
        )
        with self._get_session() as session:
            seq = session.execute(stmt).scalar_one_or_none()
            if seq is not None:
                session.commit()
                return seq

            try:
                session.add(Counter(name=name, seq=1))
                session.commit()
                logger.info(f"序列计数器已创建: {name}")
                return 1
            except IntegrityError:
                session.rollback()

            seq = session.execute(stmt).scalar_one()
            session.commit()
            return seq

    def current(self, name: str) -> Optional[int]:
        """读取序列的当前值（不自增），序列不存在时返回 None。"""
        counter = self.get_by_id(Counter, name)
        return counter.seq if counter else None
