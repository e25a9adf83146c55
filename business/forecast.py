"""再注册预测与长期未到店分类。

每次数据刷新后对全部会员运行一次，把会员分为三类：
需要再注册（剩余节数少且近期仍在上课）、长期未到店（还有剩余节数
但很久没来）、以及都不是。会员的 forecast_status 可以手动覆盖自动分类，
覆盖是互斥的：覆盖后同一会员不会同时出现在两个列表里。
"""
import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from config.business_config import business_config
from config.settings import settings

from .dates import months_before, parse_date
from .records import (
    ForecastEntry, ForecastStatus, TrackedMemberWithStats,
    WeeklyScheduleEntry, WeeklyStatus,
)


@dataclass
class ForecastBuckets:
    """分类结果，列表顺序与输入顺序一致"""
    re_register: List[TrackedMemberWithStats] = field(default_factory=list)
    dormant: List[TrackedMemberWithStats] = field(default_factory=list)

    @property
    def re_register_ids(self) -> List[str]:
        return [member.id for member in self.re_register]

    @property
    def dormant_ids(self) -> List[str]:
        return [member.id for member in self.dormant]


@dataclass
class ForecastTotals:
    """预测销售汇总"""
    revenue: int
    vat: int
    total: int


def remaining_of(member: TrackedMemberWithStats) -> int:
    return member.cumulative_total_sessions - member.used_sessions


def _is_re_register_candidate(member: TrackedMemberWithStats, active_cutoff: date,
                              threshold: int) -> bool:
    remaining = remaining_of(member)
    if not 0 <= remaining <= threshold:
        return False
    last_session = parse_date(member.last_session_date)
    # 从未上过课的会员同样算作候选
    return last_session is None or last_session > active_cutoff


def _is_dormant(member: TrackedMemberWithStats, dormant_cutoff: date) -> bool:
    if remaining_of(member) <= 0:
        return False
    last_session = parse_date(member.last_session_date)
    return last_session is not None and last_session < dormant_cutoff


def classify_members(members: Iterable[TrackedMemberWithStats],
                     now: Optional[Union[date, datetime]] = None,
                     threshold: Optional[int] = None,
                     active_months: Optional[int] = None,
                     dormant_months: Optional[int] = None) -> ForecastBuckets:
    """对会员进行再注册/长期未到店分类。

    纯函数：相同输入总是得到相同结果。

    Args:
        members: 带统计信息的会员列表。
        now: 当前日期，默认为今天。
        threshold: 再注册阈值（剩余节数），默认取配置。
        active_months: 最近多少个月内上过课仍视为活跃，默认 5。
        dormant_months: 多少个月没上课视为长期未到店，默认 6。

    Returns:
        ForecastBuckets。
    """
    if now is None:
        now = date.today()
    elif isinstance(now, datetime):
        now = now.date()
    threshold = settings.re_registration_threshold if threshold is None else threshold
    active_months = settings.re_register_active_months if active_months is None else active_months
    dormant_months = settings.dormant_after_months if dormant_months is None else dormant_months

    active_cutoff = months_before(now, active_months)
    dormant_cutoff = months_before(now, dormant_months)

    buckets = ForecastBuckets()
    for member in members:
        status = member.forecast_status
        if status == ForecastStatus.MANUAL_DORMANT.value:
            buckets.dormant.append(member)
        elif status == ForecastStatus.MANUAL_REREGISTER.value:
            buckets.re_register.append(member)
        elif _is_re_register_candidate(member, active_cutoff, threshold):
            buckets.re_register.append(member)
        elif _is_dormant(member, dormant_cutoff):
            buckets.dormant.append(member)
    return buckets


def count_weekday_in_month(day_of_week: int, year: int, month: int) -> int:
    """某月中指定星期（0=周日）出现的次数。"""
    days_in_month = calendar.monthrange(year, month)[1]
    # date.weekday() 以周一为 0，这里转换为周日为 0
    first_index = (date(year, month, 1).weekday() + 1) % 7
    offset = (day_of_week - first_index) % 7
    if offset >= days_in_month:
        return 0
    return (days_in_month - 1 - offset) // 7 + 1


def planned_monthly_sessions(weekly_schedules: Iterable[WeeklyScheduleEntry],
                             today: Optional[date] = None) -> int:
    """根据已确认的周课表推算本月计划课时数。"""
    today = today or date.today()
    total = 0
    for entry in weekly_schedules:
        if entry.status != WeeklyStatus.CONFIRMED.value:
            continue
        total += count_weekday_in_month(entry.day_of_week, today.year, today.month)
    return total


def forecast_totals(entries: Iterable[ForecastEntry], vat_enabled: bool = True,
                    vat_rate: Optional[float] = None) -> ForecastTotals:
    """汇总预测销售额（按节数 × 单价），可选加增值税。"""
    if vat_rate is None:
        vat_rate = business_config.get_vat_rate()
    revenue = sum(entry.class_count * entry.unit_price for entry in entries)
    vat = math.floor(revenue * vat_rate) if vat_enabled else 0
    return ForecastTotals(revenue=revenue, vat=vat, total=revenue + vat)
