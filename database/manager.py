"""数据库管理器：统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.members``、``db.sales`` 等属性直接访问子仓库，
   返回 ORM 对象，适合需要精细控制的场景。

2. **便捷方法**（粗粒度）：
   提供扁平化的方法（如 ``register_member()``、``fetch_all_data()``），
   返回 business.records 中的纯数据记录，供 FrontDeskStore 使用。
"""
from typing import Optional, List, Dict, Any, Union
from datetime import date

from sqlalchemy.orm import Session
from loguru import logger

from business.records import (
    DataSnapshot, EventStatus, EventType, MemberSession, SaleEntry,
    TrackedMember
)
from business.stats import build_member_stats
from .connection import DatabaseConnection
from .entity_repos import MemberRepository, ForecastRepository
from .business_repos import (
    SaleRepository, SessionRepository, SYNTHESIZED_EVENT_PREFIX
)
from .schedule_repos import CalendarEventRepository, WeeklyScheduleRepository
from .system_repos import SettingsRepository
from .models import Member, ClassSession, Event


class DatabaseManager:
    """数据库管理器：统一门面。

    Attributes:
        conn: 数据库连接管理器。
        members: 会员仓库。
        forecasts: 预测销售条目仓库。
        sales: 课程包销售仓库。
        sessions: 课时消耗仓库。
        events: 日程事件仓库。
        weekly_schedules: 周课表仓库。
        settings_repo: 系统设置仓库。

    Example::

        db = DatabaseManager("sqlite:///data/fitdesk.db")
        db.create_tables()

        # 通过子仓库访问（返回 ORM 对象）
        sale = db.sales.get_latest_for_member("member-20240304-1")

        # 通过便捷方法访问（返回纯数据记录）
        snapshot = db.fetch_all_data()
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 实体仓库
        self.members = MemberRepository(self.conn)
        self.forecasts = ForecastRepository(self.conn)

        # 业务记录仓库
        self.sales = SaleRepository(self.conn)
        self.sessions = SessionRepository(self.conn)

        # 日程仓库
        self.events = CalendarEventRepository(self.conn)
        self.weekly_schedules = WeeklyScheduleRepository(self.conn)

        # 系统数据仓库
        self.settings_repo = SettingsRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def execute_raw_sql(self, sql: str,
                        params: Optional[dict] = None) -> Any:
        """执行原始 SQL 语句。

        注意：应优先使用 ORM 方法，仅在必要时使用原始 SQL。
        """
        return self.conn.execute_raw_sql(sql, params)

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    # ================================================================
    # 便捷写入方法
    # ================================================================

    def register_member(self, name: str, total_sessions: int, unit_price: int,
                        registration_date: Union[str, date, None] = None,
                        birthday: Optional[str] = None) -> Dict[str, Any]:
        """登记新会员。

        在同一个事务中创建会员、首次购买的销售记录和一条 new_member 日程事件。

        Args:
            name: 会员姓名。
            total_sessions: 首次课程包节数。
            unit_price: 首次课程包单价。
            registration_date: 登记日期（默认今天）。
            birthday: 生日（可选）。

        Returns:
            ``{"member": TrackedMember, "sale": SaleEntry, "event": CalendarEvent}``。

        Raises:
            ValueError: 姓名缺失或日期格式无效。
        """
        registration_date = registration_date or date.today()
        with self.get_session() as sess:
            member = self.members.create({
                "name": name,
                "total_sessions": total_sessions,
                "unit_price": unit_price,
                "registration_date": registration_date,
                "birthday": birthday,
            }, session=sess)
            sale = self.sales.create({
                "member_id": member.id,
                "member_name": member.name,
                "sale_date": member.registration_date,
                "class_count": total_sessions,
                "unit_price": unit_price,
            }, session=sess)
            event = self.events.create({
                "date": member.registration_date,
                "type": EventType.NEW_MEMBER.value,
                "title": f"New member: {member.name}",
                "member_id": member.id,
            }, session=sess)
            sess.commit()

        logger.info(
            f"Registered member {member.id} ({member.name}) with "
            f"{total_sessions} sessions at {unit_price}"
        )
        return {
            "member": member.to_record(),
            "sale": sale.to_record(),
            "event": event.to_record(),
        }

    def record_session(self, member_id: str, member_name: str,
                       session_date: Union[str, date], class_count: int,
                       unit_price: int, start_time: str = "00:00",
                       end_time: str = "00:00") -> MemberSession:
        """登记一条手动课时，并生成对应的已完成上课事件。

        事件 ID 为 ``schedule-{session_id}``，课时的 completion_source_id
        指向该事件。课时和事件在同一个事务中写入。

        Returns:
            新建课时的 MemberSession 记录。
        """
        with self.get_session() as sess:
            record = self.sessions.create({
                "member_id": member_id,
                "member_name": member_name,
                "session_date": session_date,
                "class_count": class_count,
                "unit_price": unit_price,
            }, session=sess)
            event_id = f"{SYNTHESIZED_EVENT_PREFIX}{record.id}"
            self.events.create({
                "id": event_id,
                "date": record.session_date,
                "type": EventType.WORKOUT.value,
                "title": member_name,
                "start_time": start_time,
                "end_time": end_time,
                "member_id": member_id,
                "status": EventStatus.COMPLETED.value,
            }, session=sess)
            record.completion_source_id = event_id
            sess.commit()

        logger.info(
            f"Recorded session {record.id} for {member_name}: "
            f"{class_count} x {unit_price}"
        )
        return record.to_record()

    def remove_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """删除课时，并处理它的来源事件。

        - 手动登记时生成的事件（``schedule-`` 前缀）随课时一起删除；
        - 由排课完成产生的课时，来源事件恢复为 scheduled。

        Returns:
            ``{"session": MemberSession, "event_id": str|None,
            "event_action": "deleted"|"reverted"|None}``，课时不存在返回 None。
        """
        with self.get_session() as sess:
            record = self.sessions.get_by_id(ClassSession, session_id, session=sess)
            if record is None:
                return None
            removed = record.to_record()
            event_action = None
            event = None
            if record.completion_source_id:
                event = self.events.get_by_id(
                    Event, record.completion_source_id, session=sess
                )
            if event is not None:
                if event.id.startswith(SYNTHESIZED_EVENT_PREFIX):
                    sess.delete(event)
                    event_action = "deleted"
                elif event.status == EventStatus.COMPLETED.value:
                    event.status = EventStatus.SCHEDULED.value
                    event_action = "reverted"
            sess.delete(record)
            sess.commit()

        logger.info(f"Removed session {session_id} (source event: {event_action})")
        return {
            "session": removed,
            "event_id": removed.completion_source_id,
            "event_action": event_action,
        }

    # ================================================================
    # 便捷查询方法
    # ================================================================

    def fetch_all_data(self) -> DataSnapshot:
        """批量拉取全部数据，并计算会员的派生统计。

        Returns:
            DataSnapshot，其中 members 为 TrackedMemberWithStats 列表。
        """
        with self.get_session() as sess:
            members = [m.to_record() for m in self.members.list_all(session=sess)]
            sales = [s.to_record() for s in self.sales.list_all(session=sess)]
            sessions = [s.to_record() for s in self.sessions.list_all(session=sess)]
            forecasts = [f.to_record() for f in self.forecasts.list_all(session=sess)]
            events = [e.to_record() for e in self.events.list_all(session=sess)]
            weekly = [w.to_record()
                      for w in self.weekly_schedules.list_all(session=sess)]

        return DataSnapshot(
            members=build_member_stats(members, sales, sessions, events),
            sales=sales,
            sessions=sessions,
            forecast_entries=forecasts,
            calendar_events=events,
            weekly_schedules=weekly,
        )

    def get_member(self, member_id: str) -> Optional[TrackedMember]:
        """按ID获取会员（纯数据记录），不存在返回 None。"""
        member = self.members.get_by_id(Member, member_id)
        return member.to_record() if member is not None else None

    def get_member_purchases(self, member_id: str) -> List[SaleEntry]:
        """获取会员的全部购买记录，按购买日期升序。"""
        return [s.to_record() for s in self.sales.list_by_member(member_id)]

    def get_salary_defaults(self) -> Dict[str, Any]:
        return self.settings_repo.get_salary_defaults()

    def save_salary_defaults(self, values: Dict[str, Any]) -> None:
        self.settings_repo.save_salary_defaults(values)
