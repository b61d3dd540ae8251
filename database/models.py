"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 订单（游戏机租用会话）
- 序列计数器（订单编号自增）
- 每日归档快照
"""
import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, TypeDecorator
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import declarative_base

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 为Base类添加__allow_unmapped__属性，允许使用旧式类型注解
Base.__allow_unmapped__ = True


class OrderType(str, enum.Enum):
    """计费模式"""
    CASH = "cash"   # 预付费：按金额换算固定时长
    VIP = "vip"     # 计时：结束时按实际时长结算


class OrderStatus(str, enum.Enum):
    """订单状态"""
    PROCESS = "process"
    COMPLETED = "completed"
    TRASH = "trash"


class UTCDateTime(TypeDecorator):
    """以 UTC 存储、以带时区的 datetime 读出的时间类型。

    SQLite 不保存时区信息，因此写入前统一转换为 UTC 并去掉 tzinfo，
    读出时再补回 UTC。不带时区的输入视为 UTC。
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def _new_primary_key() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime], tz) -> Optional[str]:
    if value is None:
        return None
    if tz is not None:
        value = value.astimezone(tz)
    return value.isoformat()


class Order(Base):
    """订单（租用会话）表模型。

    Attributes:
        id: 主键，32位十六进制字符串。
        order_id: 顺序编号，由 counters 表分配，创建后不再改变。
        external_id: 短随机字符串，备用唯一查找键，不可修改。
        ps: 游戏机（工位）名称。
        type: 计费模式 cash / vip。
        start_time: 计费开始时间。
        end_time: 计费结束时间。cash 由金额推算；vip 进行中为空，结算时写入。
        summa: 金额（最小货币单位的整数）。
        status: process / completed / trash。
        prev_status: 移入回收站前的状态。
        created_at / completed_at / deleted_at: 创建、完成、删除时间。
    """
    __tablename__ = "orders"

    id: str = Column(String(32), primary_key=True, default=_new_primary_key)
    order_id: int = Column(Integer, unique=True, nullable=False, index=True)
    external_id: str = Column(String(32), unique=True, nullable=False, index=True)
    ps: str = Column(String(50), nullable=False, default="PS1")
    type: OrderType = Column(
        SAEnum(OrderType, native_enum=False, length=10,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=OrderType.VIP
    )
    start_time: datetime = Column(UTCDateTime, nullable=False)
    end_time: Optional[datetime] = Column(UTCDateTime, nullable=True)
    summa: int = Column(Integer, nullable=False, default=0)
    status: OrderStatus = Column(
        SAEnum(OrderStatus, native_enum=False, length=10,
               values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=OrderStatus.PROCESS, index=True
    )
    prev_status: Optional[OrderStatus] = Column(
        SAEnum(OrderStatus, native_enum=False, length=10,
               values_callable=lambda e: [m.value for m in e]),
        nullable=True
    )
    created_at: datetime = Column(UTCDateTime, nullable=False, default=_utcnow, index=True)
    completed_at: Optional[datetime] = Column(UTCDateTime, nullable=True)
    deleted_at: Optional[datetime] = Column(UTCDateTime, nullable=True)

    def to_dict(self, tz=None) -> Dict[str, Any]:
        """转换为对外的 JSON 结构（camelCase 字段名）。

        Args:
            tz: 输出时间所用的时区，None 表示保持 UTC。
        """
        return {
            "id": self.id,
            "orderId": self.order_id,
            "externalId": self.external_id,
            "ps": self.ps,
            "type": self.type.value if self.type else None,
            "startTime": _isoformat(self.start_time, tz),
            "endTime": _isoformat(self.end_time, tz),
            "summa": self.summa,
            "status": self.status.value if self.status else None,
            "prevStatus": self.prev_status.value if self.prev_status else None,
            "createdAt": _isoformat(self.created_at, tz),
            "completedAt": _isoformat(self.completed_at, tz),
            "deletedAt": _isoformat(self.deleted_at, tz),
        }


class Counter(Base):
    """序列计数器表模型。

    每个命名序列一行，seq 为最后一次发放的值。
    """
    __tablename__ = "counters"

    name: str = Column(String(50), primary_key=True)
    seq: int = Column(Integer, nullable=False, default=0)


class Archive(Base):
    """每日归档快照表模型。

    归档创建后不再修改。orders 保存归档时订单的 JSON 快照。
    """
    __tablename__ = "archives"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    date: str = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    orders: List[Dict[str, Any]] = Column(JSON, nullable=False, default=list)
    total_sum: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(UTCDateTime, nullable=False, default=_utcnow)

    def to_dict(self, tz=None) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "orders": list(self.orders or []),
            "totalSum": self.total_sum,
            "createdAt": _isoformat(self.created_at, tz),
        }
