"""前台后台任务

- 定时静默刷新：失败时保留当前数据，等待下一次刷新
- 每日再注册提醒：刷新后把需要续课的会员以警告形式记录
"""
from typing import Callable, Optional

from loguru import logger

from .errors import Toast
from .scheduler import Scheduler
from .store import FrontDeskStore

REFRESH_JOB_ID = "refresh"
REMINDER_JOB_ID = "re_registration_reminder"


class FrontDeskTasks:
    """绑定到一个 FrontDeskStore 的后台任务

    Attributes:
        store: 前台状态仓库
        notify: 提醒回调，默认写入日志
    """

    def __init__(self, store: FrontDeskStore,
                 notify: Optional[Callable[[Toast], None]] = None):
        self.store = store
        self.notify = notify or self._log_toast

    @staticmethod
    def _log_toast(toast: Toast) -> None:
        logger.warning(toast.message)

    def refresh(self) -> bool:
        return self.store.refresh_silently()

    def remind_re_registration(self) -> Optional[Toast]:
        """刷新数据并发出再注册提醒，没有需要续课的会员时返回 None"""
        self.store.refresh_silently()
        toast = self.store.re_registration_reminder()
        if toast is not None:
            self.notify(toast)
        return toast

    def register(self, scheduler: Scheduler) -> None:
        scheduler.add_interval_task(
            self.refresh,
            task_id=REFRESH_JOB_ID,
            task_name="Background refresh",
        )
        scheduler.add_daily_task(
            self.remind_re_registration,
            task_id=REMINDER_JOB_ID,
            task_name="Re-registration reminder",
        )
