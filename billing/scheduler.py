"""定时任务调度器 - 通用的任务调度框架

具体的任务逻辑（到期扫描、日报推送）通过回调函数注入。
"""
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger


class Scheduler:
    """定时任务调度器

    通用的任务调度框架，不包含具体的业务逻辑。
    同步任务函数由 APScheduler 放到线程池中执行，不会阻塞事件循环。
    """

    def __init__(self, timezone: Optional[str] = None):
        """初始化调度器

        Args:
            timezone: 定时任务使用的时区名称（如 Asia/Tashkent）
        """
        self.scheduler = AsyncIOScheduler(timezone=timezone) if timezone else AsyncIOScheduler()

    def add_interval_task(
        self,
        task_func: Callable,
        seconds: int = 60,
        task_id: str = 'interval_task',
        task_name: str = '周期任务'
    ):
        """添加固定间隔任务

        Args:
            task_func: 任务函数
            seconds: 间隔秒数
            task_id: 任务ID
            task_name: 任务名称
        """
        self.scheduler.add_job(
            task_func,
            trigger=IntervalTrigger(seconds=seconds),
            id=task_id,
            name=task_name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Added interval task '{task_name}' every {seconds}s")

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 21,
        minute: int = 0,
        task_id: str = 'daily_task',
        task_name: str = '每日任务'
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
        """
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def start(self):
        """启动调度器（需在运行中的事件循环内调用）"""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """移除任务

        Args:
            job_id: 任务ID
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except Exception as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")


def parse_daily_time(value: str):
    """解析 HH:MM，留空返回 None

    Raises:
        ValueError: 格式不正确
    """
    value = (value or "").strip()
    if not value:
        return None
    hour, minute = value.split(":", 1)
    hour, minute = int(hour), int(minute)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"invalid daily time: {value}")
    return hour, minute
