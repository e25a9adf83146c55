"""会员统计派生与期间统计。

TrackedMemberWithStats 不落库，每次加载数据时由会员、销售、课时、日程
四个原始集合重新计算。used_sessions 同样由课时记录实时求和得到，
不会与课时记录出现偏差。
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from config.settings import settings

from .dates import parse_date, weekday_index
from .records import (
    CalendarEvent, EventStatus, EventType, MemberSession, SaleEntry,
    TrackedMember, TrackedMemberWithStats,
)


@dataclass
class MemberStat:
    """排行榜条目，name 为 None 表示没有符合条件的会员"""
    name: Optional[str] = None
    value: int = 0


@dataclass
class PeriodSummary:
    """期间统计

    Attributes:
        busiest_weekday: 课时最多的星期（0=周日），期间内没有课时为 None。
        most_improved: 与上一个等长期间相比课时增加最多的会员。
        attendance_drop: 与上一个等长期间相比课时减少最多的会员（value 为正数）。
    """
    new_members_count: int = 0
    returning_members_count: int = 0
    average_ltv: int = 0
    total_members_count: int = 0
    total_sessions: int = 0
    session_revenue: int = 0
    average_sessions_per_active_member: float = 0.0
    busiest_weekday: Optional[int] = None
    top_attendants: List[MemberStat] = field(default_factory=list)
    most_improved: MemberStat = field(default_factory=MemberStat)
    attendance_drop: MemberStat = field(default_factory=MemberStat)
    top_registrant: MemberStat = field(default_factory=MemberStat)
    most_frequent_registrant: MemberStat = field(default_factory=MemberStat)
    low_engagement: List[TrackedMemberWithStats] = field(default_factory=list)


def _group_by_member(records) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for record in records:
        grouped.setdefault(record.member_id, []).append(record)
    return grouped


def build_member_stats(members: Iterable[TrackedMember],
                       sales: Iterable[SaleEntry],
                       sessions: Iterable[MemberSession],
                       events: Iterable[CalendarEvent]) -> List[TrackedMemberWithStats]:
    """从原始集合计算每个会员的派生统计。

    - total_sessions / unit_price 取最近一次购买，没有购买时保留会员自身的值；
    - used_sessions 为课时记录 class_count 之和；
    - scheduled_sessions 为状态为 scheduled 的上课日程数。
    """
    sales_by_member = _group_by_member(sales)
    sessions_by_member = _group_by_member(sessions)
    scheduled_by_member: Dict[str, int] = {}
    for event in events:
        if event.type == EventType.WORKOUT.value and event.status == EventStatus.SCHEDULED.value:
            scheduled_by_member[event.member_id] = scheduled_by_member.get(event.member_id, 0) + 1

    result = []
    for member in members:
        member_sales = sales_by_member.get(member.id, [])
        member_sessions = sessions_by_member.get(member.id, [])

        # 同一天多次购买时以后录入的为准（sales 按 sale_date, created_at 排序）
        latest_sale = None
        for sale in member_sales:
            if latest_sale is None or sale.sale_date >= latest_sale.sale_date:
                latest_sale = sale
        session_dates = [s.session_date for s in member_sessions if parse_date(s.session_date)]

        result.append(TrackedMemberWithStats(
            id=member.id,
            name=member.name,
            total_sessions=latest_sale.class_count if latest_sale else member.total_sessions,
            used_sessions=sum(s.class_count for s in member_sessions),
            unit_price=latest_sale.unit_price if latest_sale else member.unit_price,
            registration_date=member.registration_date,
            birthday=member.birthday,
            forecast_status=member.forecast_status,
            ltv=sum(s.amount for s in member_sales),
            cumulative_total_sessions=sum(s.class_count for s in member_sales),
            last_session_date=max(session_dates) if session_dates else None,
            scheduled_sessions=scheduled_by_member.get(member.id, 0),
        ))
    return result


def remaining_sessions(member: TrackedMemberWithStats) -> int:
    """剩余节数（累计购买 - 已用），可能为负。"""
    return member.cumulative_total_sessions - member.used_sessions


def available_sessions(member: TrackedMemberWithStats) -> int:
    """还能排课的节数：剩余节数再扣除已排但未完成的课程。"""
    return remaining_sessions(member) - member.scheduled_sessions


def low_engagement_members(members: Iterable[TrackedMemberWithStats],
                           range_end: date,
                           days: Optional[int] = None) -> List[TrackedMemberWithStats]:
    """还有剩余节数但最近 N 天没来上课的会员。"""
    days = settings.low_engagement_days if days is None else days
    cutoff = range_end - timedelta(days=days)
    result = []
    for member in members:
        if remaining_sessions(member) <= 0:
            continue
        last_session = parse_date(member.last_session_date)
        if last_session is None or last_session < cutoff:
            result.append(member)
    return result


def _in_range(value: str, start: date, end: date) -> bool:
    parsed = parse_date(value)
    return parsed is not None and start <= parsed <= end


def _attendance(sessions: Iterable[MemberSession]) -> "OrderedDict[str, List]":
    attendance: "OrderedDict[str, List]" = OrderedDict()
    for session in sessions:
        entry = attendance.setdefault(session.member_id, [session.member_name, 0])
        entry[1] += session.class_count or 0
    return attendance


def summarize_period(members: List[TrackedMemberWithStats],
                     sales: List[SaleEntry],
                     sessions: List[MemberSession],
                     start: date, end: date) -> PeriodSummary:
    """计算 [start, end] 期间（含两端）的统计数据。

    上一个期间取与本期间等长、紧邻其前的日期范围，用于计算
    进步最大/下降最多的会员。
    """
    summary = PeriodSummary(total_members_count=len(members))
    summary.low_engagement = low_engagement_members(members, end)

    # 新会员 = 首次购买落在本期间内
    first_sale: Dict[str, date] = {}
    for sale in sales:
        sale_date = parse_date(sale.sale_date)
        if sale_date is None:
            continue
        if sale.member_id not in first_sale or sale_date < first_sale[sale.member_id]:
            first_sale[sale.member_id] = sale_date
    buyers = {s.member_id for s in sales if _in_range(s.sale_date, start, end)}
    for member_id in buyers:
        if start <= first_sale[member_id] <= end:
            summary.new_members_count += 1
        else:
            summary.returning_members_count += 1

    if members:
        summary.average_ltv = sum(m.ltv for m in members) // len(members)

    current = [s for s in sessions if _in_range(s.session_date, start, end)]
    summary.total_sessions = sum(s.class_count or 0 for s in current)
    summary.session_revenue = sum((s.class_count or 0) * (s.unit_price or 0) for s in current)
    active_ids = {s.member_id for s in current}
    if active_ids:
        summary.average_sessions_per_active_member = summary.total_sessions / len(active_ids)

    if current:
        day_counts = [0] * 7
        for session in current:
            session_date = parse_date(session.session_date)
            day_counts[weekday_index(session_date)] += session.class_count or 0
        summary.busiest_weekday = day_counts.index(max(day_counts))

    span = (end - start).days + 1
    previous_start = start - timedelta(days=span)
    previous_end = start - timedelta(days=1)
    previous = [s for s in sessions if _in_range(s.session_date, previous_start, previous_end)]

    this_period = _attendance(current)
    last_period = _attendance(previous)

    ranked = sorted(this_period.values(), key=lambda item: item[1], reverse=True)
    summary.top_attendants = [
        MemberStat(name=name, value=count) for name, count in ranked[:3] if count > 0
    ]

    names = {m.id: m.name for m in members}
    changes = []
    for member_id in list(this_period) + [k for k in last_period if k not in this_period]:
        if member_id not in names:
            continue
        this_count = this_period[member_id][1] if member_id in this_period else 0
        last_count = last_period[member_id][1] if member_id in last_period else 0
        changes.append((names[member_id], this_count - last_count))
    if changes:
        best = max(changes, key=lambda item: item[1])
        if best[1] > 0:
            summary.most_improved = MemberStat(name=best[0], value=best[1])
        worst = min(changes, key=lambda item: item[1])
        if worst[1] < 0:
            summary.attendance_drop = MemberStat(name=worst[0], value=abs(worst[1]))

    if members:
        top = max(members, key=lambda m: m.cumulative_total_sessions)
        summary.top_registrant = MemberStat(name=top.name, value=top.cumulative_total_sessions)

    purchase_counts = _purchase_counts(sales)
    if purchase_counts:
        name, count = max(purchase_counts.values(), key=lambda item: item[1])
        summary.most_frequent_registrant = MemberStat(name=name, value=count)
    return summary


def _purchase_counts(sales: Iterable[SaleEntry]) -> "OrderedDict[str, List]":
    counts: "OrderedDict[str, List]" = OrderedDict()
    for sale in sales:
        entry = counts.setdefault(sale.member_id, [sale.member_name, 0])
        entry[1] += 1
    return counts
