"""业务记录数据结构

所有引擎函数和应用状态仓库（FrontDeskStore）之间传递的都是这些纯数据记录，
与数据库 ORM 对象解耦。日期统一为 ``YYYY-MM-DD`` 字符串，时间为 ``HH:MM``，
金额为整数韩元。

核心记录：
- TrackedMember / TrackedMemberWithStats: 会员及其派生统计
- SaleEntry: 课程包销售（购买 N 节课）
- MemberSession: 已消耗的课时
- CalendarEvent: 日程事件
- WeeklyScheduleEntry: 周课表模板
- ForecastEntry: 预测销售条目
- DataSnapshot: 一次批量拉取的全部数据
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ForecastStatus(str, Enum):
    """会员预测分类的手动覆盖"""
    MANUAL_DORMANT = "manual_dormant"
    MANUAL_REREGISTER = "manual_reregister"


class EventType(str, Enum):
    """日程事件类型"""
    NEW_MEMBER = "new_member"
    SALE = "sale"
    REFUND = "refund"
    CONSULTATION = "consultation"
    WORKOUT = "workout"


class EventStatus(str, Enum):
    """上课事件状态（仅 workout 类型使用）"""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WeeklyStatus(str, Enum):
    """周课表状态"""
    PLANNED = "planned"
    CONFIRMED = "confirmed"


class EditMode(str, Enum):
    """重复日程的编辑范围"""
    SINGLE = "single"   # 仅此一次
    FUTURE = "future"   # 此次及以后
    ALL = "all"         # 整个系列


@dataclass
class TrackedMember:
    """会员

    Attributes:
        total_sessions: 最近一次购买的课程包节数
        used_sessions: 累计已消耗节数（跨所有课程包）
        unit_price: 最近一次购买的单价
    """
    id: str
    name: str
    total_sessions: int = 0
    used_sessions: int = 0
    unit_price: int = 0
    registration_date: str = ""
    birthday: Optional[str] = None
    forecast_status: Optional[str] = None


@dataclass
class TrackedMemberWithStats(TrackedMember):
    """带派生统计的会员，每次加载时从原始数据重新计算，不持久化"""
    ltv: int = 0
    cumulative_total_sessions: int = 0
    last_session_date: Optional[str] = None
    scheduled_sessions: int = 0


@dataclass
class SaleEntry:
    """课程包销售记录"""
    id: str
    sale_date: str
    member_id: str
    member_name: str
    class_count: int
    unit_price: int
    amount: int
    paid_amount: int = 0


@dataclass
class MemberSession:
    """课时消耗记录

    completion_source_id 指向生成该课时的日程事件 ID（弱引用，仅用于反查）。
    """
    id: str
    session_date: str
    member_id: str
    member_name: str
    class_count: int = 1
    unit_price: int = 0
    completion_source_id: Optional[str] = None


@dataclass
class CalendarEvent:
    """日程事件"""
    id: str
    date: str
    type: str
    title: str
    start_time: str
    end_time: str
    member_id: str
    recurrence_id: Optional[str] = None
    status: Optional[str] = None


@dataclass
class WeeklyScheduleEntry:
    """周课表模板（不是具体日期的课程）

    day_of_week: 0=周日 .. 6=周六
    """
    id: str
    day_of_week: int
    start_time: str
    end_time: str
    member_id: str
    member_name: str
    status: str = WeeklyStatus.PLANNED.value


@dataclass
class ForecastEntry:
    """预测销售条目，在真实销售发生前独立存在"""
    id: str
    forecast_date: str
    member_name: str
    class_count: int
    unit_price: int
    amount: int


@dataclass
class DataSnapshot:
    """一次批量拉取（fetch_all_data）得到的全部数据"""
    members: List[TrackedMemberWithStats] = field(default_factory=list)
    sales: List[SaleEntry] = field(default_factory=list)
    sessions: List[MemberSession] = field(default_factory=list)
    forecast_entries: List[ForecastEntry] = field(default_factory=list)
    calendar_events: List[CalendarEvent] = field(default_factory=list)
    weekly_schedules: List[WeeklyScheduleEntry] = field(default_factory=list)
