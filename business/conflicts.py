"""排课冲突检测。

冲突只按“日期 + 时间段”判断，与会员无关：同一个时间段整个工作室
只能有一节课（教练不能被重复预约）。时间段粒度固定为 30 分钟。
"""
from typing import Dict, Iterable, List, Set

from loguru import logger

from .dates import format_time, parse_time
from .records import CalendarEvent, EventStatus
from .recurrence import Occurrence

SLOT_MINUTES = 30
MAX_REPORTED_CONFLICTS = 5

BookingIndex = Dict[str, Set[str]]


def expand_slots(start_time: str, end_time: str) -> List[str]:
    """把 ``[start_time, end_time)`` 展开为 30 分钟时间段标签。

    从开始时间起每次前进 30 分钟，直到不小于结束时间为止；
    时长不是 30 的整数倍时最后一段照样计入。

    Raises:
        ValueError: 时间格式无效。
    """
    current = parse_time(start_time)
    end = parse_time(end_time)
    slots = []
    while current < end:
        slots.append(format_time(current))
        current += SLOT_MINUTES
    return slots


def build_booking_index(events: Iterable[CalendarEvent],
                        exclude_ids: Iterable[str] = ()) -> BookingIndex:
    """按日期汇总已占用的时间段。

    已取消的课程不占用时间段；exclude_ids 中的事件（例如正在编辑的
    事件本身）也会被跳过。时间格式无效的事件记录警告后忽略。
    """
    excluded = set(exclude_ids)
    index: BookingIndex = {}
    for event in events:
        if event.id in excluded or event.status == EventStatus.CANCELLED.value:
            continue
        try:
            slots = expand_slots(event.start_time, event.end_time)
        except ValueError:
            logger.warning(
                f"Skipping event {event.id} with invalid time range "
                f"{event.start_time!r}-{event.end_time!r}"
            )
            continue
        index.setdefault(event.date, set()).update(slots)
    return index


def check_single_conflict(date: str, time: str, index: BookingIndex) -> bool:
    return time in index.get(date, ())


def check_recurring_conflicts(occurrences: Iterable[Occurrence],
                              index: BookingIndex,
                              limit: int = MAX_REPORTED_CONFLICTS) -> List[str]:
    """检查每次课程的开始时间段是否已被占用。

    Args:
        occurrences: 展开后的课程列表。
        index: build_booking_index 的结果。
        limit: 最多报告的冲突数，达到后立即停止。

    Returns:
        ``"YYYY-MM-DD HH:MM"`` 形式的冲突列表。
    """
    conflicts: List[str] = []
    for occurrence in occurrences:
        if len(conflicts) >= limit:
            break
        if check_single_conflict(occurrence.date, occurrence.start_time, index):
            conflicts.append(f"{occurrence.date} {occurrence.start_time}")
    return conflicts
