"""重复日程展开引擎。

把一个重复日程请求（起始日、星期集合、每周/隔周、结束条件）展开为有序的
具体日期列表。展开结果有两道上限，保证任何输入都会终止：

- MAX_OCCURRENCES：单个系列最多 200 次课；
- MAX_SCAN_DAYS：最多逐日扫描 2800 天（隔周且每周只选一天时，
  200 次课正好需要约 2800 天）。
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Union

from .dates import format_date_iso, parse_date, weekday_index

MAX_OCCURRENCES = 200
MAX_SCAN_DAYS = 2800


class Cadence(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"


class EndType(str, Enum):
    OCCURRENCES = "occurrences"  # 固定次数
    DATE = "date"                # 截止日期（含当天）
    SESSIONS = "sessions"        # 按会员剩余可用节数


@dataclass
class EndCondition:
    """结束条件

    Attributes:
        type: 结束类型。
        value: OCCURRENCES/SESSIONS 为次数，DATE 为 ``YYYY-MM-DD`` 或 date。
    """
    type: EndType
    value: Union[int, str, date]

    @classmethod
    def occurrences(cls, count: int) -> "EndCondition":
        return cls(EndType.OCCURRENCES, count)

    @classmethod
    def until(cls, end_date: Union[str, date]) -> "EndCondition":
        return cls(EndType.DATE, end_date)

    @classmethod
    def sessions(cls, count: int) -> "EndCondition":
        return cls(EndType.SESSIONS, count)


@dataclass
class Occurrence:
    """展开后的单次课程"""
    date: str
    start_time: str
    end_time: str
    recurrence_id: Optional[str] = None


@dataclass
class RecurrenceExpansion:
    """展开结果

    Attributes:
        occurrences: 按日期排序的课程列表。
        recurrence_id: 系列 ID，所有课程共享。
        capped: 是否因 MAX_OCCURRENCES 上限被截断。
    """
    occurrences: List[Occurrence] = field(default_factory=list)
    recurrence_id: Optional[str] = None
    capped: bool = False

    @property
    def dates(self) -> List[str]:
        return [occurrence.date for occurrence in self.occurrences]


def new_recurrence_id() -> str:
    return uuid.uuid4().hex


def _resolve_target(end_condition: EndCondition) -> Optional[int]:
    """解析目标次数，DATE 类型返回 None（只受日期和上限约束）。"""
    end_type = EndType(end_condition.type)
    if end_type is EndType.DATE:
        return None
    try:
        return int(end_condition.value)
    except (TypeError, ValueError):
        raise ValueError(
            f"End condition '{end_type.value}' needs a numeric value, "
            f"got {end_condition.value!r}"
        )


def _resolve_end_date(end_condition: EndCondition) -> Optional[date]:
    if EndType(end_condition.type) is not EndType.DATE:
        return None
    end_date = parse_date(end_condition.value)
    if end_date is None:
        raise ValueError(f"Invalid end date: {end_condition.value!r}")
    return end_date


def iter_recurrence_dates(start_date: date, days_of_week: Iterable[int],
                          cadence: Union[Cadence, str],
                          end_date: Optional[date] = None,
                          max_scan_days: int = MAX_SCAN_DAYS) -> Iterator[date]:
    """逐日扫描并产出符合规则的日期（不含次数限制）。

    Args:
        start_date: 起始日，同时是隔周判断的锚点。
        days_of_week: 星期集合，0=周日 .. 6=周六。
        cadence: 每周或隔周。
        end_date: 截止日期（含），超过即停止。
        max_scan_days: 最多扫描的天数。
    """
    cadence = Cadence(cadence)
    days = set(days_of_week)
    if not days:
        return

    for offset in range(max_scan_days):
        current = start_date + timedelta(days=offset)
        if end_date is not None and current > end_date:
            return
        if weekday_index(current) not in days:
            continue
        # 隔周：与锚点相差的整周数为偶数才算
        if cadence is Cadence.BI_WEEKLY and (offset // 7) % 2 != 0:
            continue
        yield current


def expand_recurrence(start_date: Union[str, date], days_of_week: Iterable[int],
                      cadence: Union[Cadence, str], end_condition: EndCondition,
                      start_time: str = "", end_time: str = "",
                      recurrence_id: Optional[str] = None,
                      max_occurrences: int = MAX_OCCURRENCES) -> RecurrenceExpansion:
    """把重复日程请求展开为具体的课程列表。

    以下任一条件满足即停止：达到目标次数、超过截止日期、达到
    max_occurrences 上限、或扫描天数达到 MAX_SCAN_DAYS。
    星期集合为空时直接返回空结果。

    Args:
        start_date: 起始日期（``YYYY-MM-DD`` 或 date）。
        days_of_week: 星期集合，0=周日 .. 6=周六。
        cadence: ``weekly`` 或 ``bi-weekly``。
        end_condition: 结束条件。
        start_time: 每次课的开始时间 ``HH:MM``。
        end_time: 每次课的结束时间 ``HH:MM``。
        recurrence_id: 系列 ID，为 None 时自动生成。
        max_occurrences: 单个系列的次数上限。

    Returns:
        RecurrenceExpansion。

    Raises:
        ValueError: 起始日期、结束条件或频率无效。
    """
    anchor = parse_date(start_date)
    if anchor is None:
        raise ValueError(f"Invalid start date: {start_date!r}")
    cadence = Cadence(cadence)
    target = _resolve_target(end_condition)
    end_date = _resolve_end_date(end_condition)
    series_id = recurrence_id or new_recurrence_id()

    limit = max_occurrences if target is None else min(target, max_occurrences)
    expansion = RecurrenceExpansion(recurrence_id=series_id)
    if limit <= 0:
        return expansion

    dates = iter_recurrence_dates(anchor, days_of_week, cadence, end_date)
    for current in dates:
        expansion.occurrences.append(Occurrence(
            date=format_date_iso(current),
            start_time=start_time,
            end_time=end_time,
            recurrence_id=series_id,
        ))
        if len(expansion.occurrences) >= limit:
            break

    # 被上限截断：请求的次数超过上限，或按日期结束时截止日前还有课
    if len(expansion.occurrences) >= max_occurrences:
        if target is None:
            expansion.capped = next(dates, None) is not None
        else:
            expansion.capped = target > max_occurrences
    return expansion
