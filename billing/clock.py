"""时钟 - 提供固定时区下的当前时间

业务代码不直接调用 datetime.now()，而是通过注入的 Clock 获取时间，
测试可以替换为固定时间。
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


class Clock:
    """固定时区时钟"""

    def __init__(self, tz_name: str = "Asia/Tashkent"):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        """当前时间（带时区）"""
        return datetime.now(self.tz)

    def localize(self, value: datetime) -> datetime:
        """转换到本时区；不带时区的时间视为本时区的墙上时间。"""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def today(self, as_of: Optional[datetime] = None) -> date:
        return self.localize(as_of or self.now()).date()

    def day_bounds(self, as_of: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """as_of 所在自然日的 [起点, 次日起点)"""
        day = self.today(as_of)
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=self.tz)
        return start, end

    def format(self, value: Optional[datetime], with_time: bool = True) -> str:
        """用于通知文本的时间格式"""
        if value is None:
            return "-"
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        local = self.localize(value)
        return local.strftime("%d.%m.%Y %H:%M:%S" if with_time else "%d.%m.%Y")


class FixedClock(Clock):
    """返回固定时间的时钟，可手动拨动。用于测试与离线重放。"""

    def __init__(self, current: datetime, tz_name: str = "Asia/Tashkent"):
        super().__init__(tz_name)
        self.current = self.localize(current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        """拨快时钟，参数同 timedelta。"""
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = self.localize(value)
