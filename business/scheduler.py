"""定时任务调度器 - 后台刷新与每日提醒

只负责任务的注册与启停，具体任务见 business/scheduler_tasks.py
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from typing import Callable, List, Optional
from loguru import logger
from config.settings import settings
import asyncio


class Scheduler:
    """定时任务调度器

    时间参数缺省时取 settings 中的刷新间隔与提醒时间
    """

    def __init__(self):
        # 优先复用当前事件循环（app.py 中在 asyncio.run 内创建）
        try:
            loop = asyncio.get_event_loop()
            if loop.is_closed():
                loop = asyncio.new_event_loop()
                asyncio.set_event_loop(loop)
        except RuntimeError:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
        self.scheduler = AsyncIOScheduler(event_loop=loop)

    def add_daily_task(
        self,
        task_func: Callable,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
        task_id: str = 'daily_task',
        task_name: str = 'Daily task'
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数（同步或 async 函数）
            hour: 小时 (0-23)，默认 settings.reminder_hour
            minute: 分钟 (0-59)，默认 settings.reminder_minute
            task_id: 任务ID，同名任务会被替换
            task_name: 任务名称
        """
        hour = settings.reminder_hour if hour is None else hour
        minute = settings.reminder_minute if minute is None else minute
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def add_interval_task(
        self,
        task_func: Callable,
        minutes: Optional[int] = None,
        task_id: str = 'interval_task',
        task_name: str = 'Interval task'
    ):
        """添加固定间隔任务

        上一次执行尚未结束时不会重叠执行，错过的多次执行合并为一次。

        Args:
            task_func: 任务函数（同步或 async 函数）
            minutes: 间隔分钟数，默认 settings.refresh_interval_minutes
            task_id: 任务ID，同名任务会被替换
            task_name: 任务名称
        """
        minutes = settings.refresh_interval_minutes if minutes is None else minutes
        self.scheduler.add_job(
            task_func,
            trigger=IntervalTrigger(minutes=minutes),
            id=task_id,
            name=task_name,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        logger.info(f"Added interval task '{task_name}' every {minutes} min")

    def get_job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def start(self):
        self.scheduler.start()
        logger.info(f"Scheduler started with jobs: {', '.join(self.get_job_ids())}")

    def stop(self):
        """停止调度器（未启动时直接返回）"""
        if not self.scheduler.running:
            return
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except JobLookupError as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")
