"""本地数据快照缓存。

启动时先展示缓存中的快照，再在后台从数据库刷新（stale-while-revalidate）。
缓存文件为 JSON，以固定的 cache_key 作为顶层键；文件损坏或结构不符时
记录警告并视为没有缓存，不影响正常加载。
"""
import json
import os
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from loguru import logger

from config.settings import settings

from .records import (
    CalendarEvent, DataSnapshot, ForecastEntry, MemberSession, SaleEntry,
    TrackedMemberWithStats, WeeklyScheduleEntry,
)

_RECORD_TYPES = {
    "members": TrackedMemberWithStats,
    "sales": SaleEntry,
    "sessions": MemberSession,
    "forecast_entries": ForecastEntry,
    "calendar_events": CalendarEvent,
    "weekly_schedules": WeeklyScheduleEntry,
}


def snapshot_to_dict(snapshot: DataSnapshot) -> dict:
    return asdict(snapshot)


def snapshot_from_dict(data: dict) -> DataSnapshot:
    """由字典还原快照。

    Raises:
        TypeError: 记录字段与数据结构不符。
    """
    return DataSnapshot(**{
        name: [record_type(**item) for item in data.get(name, [])]
        for name, record_type in _RECORD_TYPES.items()
    })


class SnapshotCache:
    """JSON 文件快照缓存

    Attributes:
        path: 缓存文件路径。
        key: 缓存键。
    """

    def __init__(self, path: Optional[str] = None, key: Optional[str] = None) -> None:
        self.path = path or settings.cache_path
        self.key = key or settings.cache_key

    def load(self) -> Optional[DataSnapshot]:
        """读取缓存快照，没有缓存或缓存损坏时返回 None。"""
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            entry = payload.get(self.key)
            if entry is None:
                return None
            return snapshot_from_dict(entry["data"])
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable snapshot cache {self.path}: {e}")
            return None

    def save(self, snapshot: DataSnapshot) -> None:
        """写入快照，失败只记录日志。"""
        payload = {
            self.key: {
                "saved_at": datetime.now().isoformat(),
                "data": snapshot_to_dict(snapshot),
            }
        }
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to write snapshot cache {self.path}: {e}")

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
