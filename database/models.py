"""SQLAlchemy ORM 模型定义。

本模块定义了前台管理系统的全部数据表：
- 会员（tracked_members）
- 课程包销售（sales）、课时消耗（member_sessions）
- 预测销售条目（forecast_entries）
- 日程事件（calendar_events）、周课表模板（weekly_schedules）
- 系统设置（app_settings）

日期字段统一以 ``YYYY-MM-DD`` 字符串存储，时间字段以 ``HH:MM`` 字符串存储，
金额为整数韩元。每个模型提供 ``to_record()`` 转换为 business.records 中的
纯数据记录，上层代码不直接持有 ORM 对象。
"""
from typing import Dict, Any, List, Optional
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, JSON
)
from sqlalchemy.orm import declarative_base, relationship

from business.records import (
    TrackedMember, SaleEntry, MemberSession, ForecastEntry,
    CalendarEvent, WeeklyScheduleEntry
)

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解（兼容 SQLAlchemy 2.0）
Base.__allow_unmapped__ = True


class Member(Base):
    """会员表模型。

    total_sessions / unit_price 记录最近一次购买的课程包，仅在没有任何
    销售记录时作为回退值；已用节数不落库，每次加载时由课时记录求和。

    Attributes:
        id: 主键，形如 ``member-20240304-1``。
        name: 会员姓名。
        total_sessions: 最近一次课程包节数。
        unit_price: 最近一次课程包单价。
        registration_date: 登记日期。
        birthday: 生日（可选）。
        forecast_status: 预测分类手动覆盖（manual_dormant / manual_reregister）。
        created_at: 创建时间。

    Relationships:
        sales: 该会员的销售记录（随会员级联删除）。
        sessions: 该会员的课时记录（随会员级联删除）。
        events: 该会员的日程事件（随会员级联删除）。
        weekly_schedules: 该会员的周课表条目（随会员级联删除）。
    """
    __tablename__ = "tracked_members"

    id: str = Column(String(50), primary_key=True)
    name: str = Column(String(100), nullable=False)
    total_sessions: int = Column(Integer, default=0)
    unit_price: int = Column(Integer, default=0)
    registration_date: str = Column(String(10), default="")
    birthday: Optional[str] = Column(String(10))
    forecast_status: Optional[str] = Column(String(30))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    sales: List["Sale"] = relationship(
        "Sale", back_populates="member", cascade="all, delete-orphan"
    )
    sessions: List["ClassSession"] = relationship(
        "ClassSession", back_populates="member", cascade="all, delete-orphan"
    )
    events: List["Event"] = relationship(
        "Event", back_populates="member", cascade="all, delete-orphan"
    )
    weekly_schedules: List["WeeklySchedule"] = relationship(
        "WeeklySchedule", back_populates="member", cascade="all, delete-orphan"
    )

    def to_record(self) -> TrackedMember:
        return TrackedMember(
            id=self.id,
            name=self.name,
            total_sessions=self.total_sessions or 0,
            used_sessions=0,
            unit_price=self.unit_price or 0,
            registration_date=self.registration_date or "",
            birthday=self.birthday,
            forecast_status=self.forecast_status,
        )


class Sale(Base):
    """课程包销售表模型。

    amount 在创建时等于 class_count × unit_price，之后可以单独修改。

    Attributes:
        id: 主键，形如 ``sale-20240304-1``。
        sale_date: 购买日期。
        member_id: 外键，关联会员。
        member_name: 购买时的会员姓名。
        class_count: 课程包节数。
        unit_price: 单价。
        amount: 金额。
        paid_amount: 已付金额。
    """
    __tablename__ = "sales"

    id: str = Column(String(50), primary_key=True)
    sale_date: str = Column(String(10), nullable=False, index=True)
    member_id: str = Column(
        String(50), ForeignKey("tracked_members.id"), nullable=False, index=True
    )
    member_name: str = Column(String(100), default="")
    class_count: int = Column(Integer, nullable=False)
    unit_price: int = Column(Integer, default=0)
    amount: int = Column(Integer, default=0)
    paid_amount: int = Column(Integer, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    member: Optional["Member"] = relationship("Member", back_populates="sales")

    def to_record(self) -> SaleEntry:
        return SaleEntry(
            id=self.id,
            sale_date=self.sale_date,
            member_id=self.member_id,
            member_name=self.member_name or "",
            class_count=self.class_count,
            unit_price=self.unit_price or 0,
            amount=self.amount or 0,
            paid_amount=self.paid_amount or 0,
        )


class ClassSession(Base):
    """课时消耗表模型。

    Attributes:
        id: 主键，形如 ``session-20240304-1``。
        session_date: 上课日期。
        member_id: 外键，关联会员。
        class_count: 节数，通常为 1。
        unit_price: 按 FIFO 确定的单价。
        completion_source_id: 生成该课时的日程事件 ID（弱引用，不设外键）。
    """
    __tablename__ = "member_sessions"

    id: str = Column(String(50), primary_key=True)
    session_date: str = Column(String(10), nullable=False, index=True)
    member_id: str = Column(
        String(50), ForeignKey("tracked_members.id"), nullable=False, index=True
    )
    member_name: str = Column(String(100), default="")
    class_count: int = Column(Integer, default=1)
    unit_price: int = Column(Integer, default=0)
    completion_source_id: Optional[str] = Column(String(64), index=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    member: Optional["Member"] = relationship("Member", back_populates="sessions")

    def to_record(self) -> MemberSession:
        return MemberSession(
            id=self.id,
            session_date=self.session_date,
            member_id=self.member_id,
            member_name=self.member_name or "",
            class_count=self.class_count or 0,
            unit_price=self.unit_price or 0,
            completion_source_id=self.completion_source_id,
        )


class Forecast(Base):
    """预测销售条目表模型（与真实销售记录无关联）。"""
    __tablename__ = "forecast_entries"

    id: str = Column(String(50), primary_key=True)
    forecast_date: str = Column(String(10), default="")
    member_name: str = Column(String(100), nullable=False)
    class_count: int = Column(Integer, default=0)
    unit_price: int = Column(Integer, default=0)
    amount: int = Column(Integer, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    def to_record(self) -> ForecastEntry:
        return ForecastEntry(
            id=self.id,
            forecast_date=self.forecast_date or "",
            member_name=self.member_name,
            class_count=self.class_count or 0,
            unit_price=self.unit_price or 0,
            amount=self.amount or 0,
        )


class Event(Base):
    """日程事件表模型。

    Attributes:
        id: 主键。手动登记课时同步生成的事件为 ``schedule-{session_id}``。
        type: new_member / sale / refund / consultation / workout。
        recurrence_id: 重复日程系列 ID，同一系列共享。
        status: 仅 workout 使用：scheduled / completed / cancelled。
    """
    __tablename__ = "calendar_events"

    id: str = Column(String(64), primary_key=True)
    date: str = Column(String(10), nullable=False, index=True)
    type: str = Column(String(20), nullable=False)
    title: str = Column(String(200), default="")
    start_time: str = Column(String(5), default="00:00")
    end_time: str = Column(String(5), default="00:00")
    member_id: str = Column(
        String(50), ForeignKey("tracked_members.id"), nullable=False, index=True
    )
    recurrence_id: Optional[str] = Column(String(64), index=True)
    status: Optional[str] = Column(String(20))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    member: Optional["Member"] = relationship("Member", back_populates="events")

    def to_record(self) -> CalendarEvent:
        return CalendarEvent(
            id=self.id,
            date=self.date,
            type=self.type,
            title=self.title or "",
            start_time=self.start_time or "",
            end_time=self.end_time or "",
            member_id=self.member_id,
            recurrence_id=self.recurrence_id,
            status=self.status,
        )


class WeeklySchedule(Base):
    """周课表模板表模型。

    day_of_week: 0=周日 .. 6=周六；status: planned / confirmed。
    """
    __tablename__ = "weekly_schedules"

    id: str = Column(String(50), primary_key=True)
    day_of_week: int = Column(Integer, nullable=False)
    start_time: str = Column(String(5), nullable=False)
    end_time: str = Column(String(5), nullable=False)
    member_id: str = Column(
        String(50), ForeignKey("tracked_members.id"), nullable=False, index=True
    )
    member_name: str = Column(String(100), default="")
    status: str = Column(String(20), default="planned")
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    member: Optional["Member"] = relationship(
        "Member", back_populates="weekly_schedules"
    )

    def to_record(self) -> WeeklyScheduleEntry:
        return WeeklyScheduleEntry(
            id=self.id,
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
            member_id=self.member_id,
            member_name=self.member_name or "",
            status=self.status or "planned",
        )


class AppSetting(Base):
    """系统设置表模型（键值对，值为 JSON）。"""
    __tablename__ = "app_settings"

    key: str = Column(String(100), primary_key=True)
    value: Dict[str, Any] = Column(JSON, default={})
    updated_at: datetime = Column(DateTime, default=datetime.utcnow)
