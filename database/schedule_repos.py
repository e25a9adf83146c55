"""日程仓库：日程事件与周课表的数据访问层。

日程事件（CalendarEvent）是具体日期的事件；周课表（WeeklyScheduleEntry）
是按星期重复的模板，不对应具体日期。重复日程的各次课程通过
recurrence_id 组成系列，支持“仅此一次 / 此次及以后 / 整个系列”
三种范围的批量修改和删除。
"""
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy.orm import Session
from loguru import logger

from business.records import EditMode, EventStatus, EventType
from config.business_config import business_config
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Event, WeeklySchedule

# 系列批量修改只允许改动这些字段
SERIES_FIELDS = ("date", "start_time", "end_time")


class CalendarEventRepository(BaseCRUD):
    """日程事件 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def _build(self, event_data: Dict[str, Any], sess: Session) -> Event:
        event_type = event_data.get("type")
        if isinstance(event_type, EventType):
            event_type = event_type.value
        if event_type not in business_config.get_event_types():
            raise ValueError(f"Unknown event type: {event_type}")
        event_date = self._parse_date(event_data.get("date"), "Event date")

        status = event_data.get("status")
        if event_type == EventType.WORKOUT.value and status is None:
            status = EventStatus.SCHEDULED.value

        return Event(
            id=event_data.get("id") or self._next_id(Event, "event", event_date, sess),
            date=event_date,
            type=event_type,
            title=event_data.get("title", ""),
            start_time=event_data.get("start_time", "00:00"),
            end_time=event_data.get("end_time", "00:00"),
            member_id=event_data["member_id"],
            recurrence_id=event_data.get("recurrence_id"),
            status=status,
        )

    def create(self, event_data: Dict[str, Any],
               session: Optional[Session] = None) -> Event:
        """创建日程事件。

        Args:
            event_data: 事件数据字典，支持以下键：
                - id: 事件ID（可选，默认自动生成）
                - date: 日期（必填）
                - type: 事件类型（必填）
                - title: 标题
                - start_time / end_time: ``HH:MM``
                - member_id: 会员ID（必填）
                - recurrence_id: 系列ID（可选）
                - status: 状态（workout 默认 scheduled）
            session: 外部会话（可选）。

        Returns:
            新创建的 Event 对象。

        Raises:
            ValueError: 事件类型未知或日期无效。
        """
        def _do(sess):
            event = self._build(event_data, sess)
            sess.add(event)
            sess.flush()
            return event

        if session:
            return _do(session)

        with self._get_session() as sess:
            event = _do(sess)
            sess.commit()
            return event

    def create_many(self, events_data: Iterable[Dict[str, Any]]) -> List[Event]:
        """在一个事务中批量创建事件（一次重复日程请求）。"""
        with self._get_session() as sess:
            events = []
            for event_data in events_data:
                event = self._build(event_data, sess)
                sess.add(event)
                sess.flush()
                events.append(event)
            sess.commit()
        logger.info(f"Created {len(events)} calendar events")
        return events

    def update(self, event_id: str,
               session: Optional[Session] = None,
               **fields) -> Optional[Event]:
        if "date" in fields:
            fields["date"] = self._parse_date(fields["date"], "Event date")
        return self.update_by_id(Event, event_id, session=session, **fields)

    def set_status(self, event_ids: Iterable[str], status: str,
                   session: Optional[Session] = None) -> int:
        """批量设置事件状态。

        Returns:
            更新的事件数。
        """
        ids = list(event_ids)
        if not ids:
            return 0

        def _do(sess):
            return sess.query(Event).filter(Event.id.in_(ids)).update(
                {Event.status: status}, synchronize_session=False
            )

        if session:
            return _do(session)

        with self._get_session() as sess:
            updated = _do(sess)
            sess.commit()
            return updated

    def delete(self, event_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Event, event_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Event]:
        return self.get_all(Event, order_by=Event.date, session=session)

    def list_by_ids(self, event_ids: Iterable[str],
                    session: Optional[Session] = None) -> List[Event]:
        ids = list(event_ids)
        if not ids:
            return []

        def _query(sess):
            return sess.query(Event).filter(Event.id.in_(ids)).order_by(
                Event.date, Event.start_time
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def list_by_date(self, target_date: str,
                     session: Optional[Session] = None) -> List[Event]:
        return self.get_all(
            Event, filters={"date": self._parse_date(target_date)},
            order_by=Event.start_time, session=session
        )

    def _series_targets(self, sess: Session, event: Event,
                        mode: EditMode) -> List[Event]:
        """按编辑范围确定受影响的事件。"""
        mode = EditMode(mode)
        if mode is EditMode.SINGLE or not event.recurrence_id:
            return [event]
        query = sess.query(Event).filter(
            Event.recurrence_id == event.recurrence_id
        )
        if mode is EditMode.FUTURE:
            query = query.filter(Event.date >= event.date)
        return query.order_by(Event.date).all()

    def update_series(self, event_id: str, fields: Dict[str, Any],
                      mode: EditMode = EditMode.SINGLE) -> List[str]:
        """按编辑范围修改事件的日期/时间。

        只改动 SERIES_FIELDS 中的字段，值为空的字段保持原值。
        新日期只作用于被选中的事件本身，开始/结束时间作用于范围内全部事件。

        Returns:
            被修改的事件ID列表；事件不存在返回空列表。
        """
        changes = {k: v for k, v in fields.items() if k in SERIES_FIELDS and v}
        new_date = changes.pop("date", None)
        if new_date is not None:
            new_date = self._parse_date(new_date, "Event date")

        with self._get_session() as sess:
            event = sess.get(Event, event_id)
            if event is None:
                return []
            targets = self._series_targets(sess, event, mode)
            for target in targets:
                for key, value in changes.items():
                    setattr(target, key, value)
            if new_date is not None:
                event.date = new_date
            sess.commit()
            return [target.id for target in targets]

    def delete_series(self, event_id: str,
                      mode: EditMode = EditMode.SINGLE) -> List[Event]:
        """按编辑范围删除事件。

        Returns:
            被删除的 Event 对象列表（已脱离会话，可读取属性）。
        """
        with self._get_session() as sess:
            event = sess.get(Event, event_id)
            if event is None:
                return []
            targets = self._series_targets(sess, event, mode)
            for target in targets:
                sess.delete(target)
            sess.commit()
            return targets

    def preview_series(self, event_id: str,
                       mode: EditMode = EditMode.SINGLE) -> List[Event]:
        """返回按编辑范围会受影响的事件（不做修改）。"""
        with self._get_session() as sess:
            event = sess.get(Event, event_id)
            if event is None:
                return []
            return self._series_targets(sess, event, mode)


class WeeklyScheduleRepository(BaseCRUD):
    """周课表 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, entry_data: Dict[str, Any],
               session: Optional[Session] = None) -> WeeklySchedule:
        """创建周课表条目。

        Args:
            entry_data: 条目数据字典，支持以下键：
                - day_of_week: 0=周日 .. 6=周六（必填）
                - start_time / end_time: ``HH:MM``（必填）
                - member_id / member_name: 会员（必填）
                - status: planned / confirmed（可选，默认 planned）

        Raises:
            ValueError: 星期索引超出范围。
        """
        day_of_week = int(entry_data["day_of_week"])
        if not 0 <= day_of_week <= 6:
            raise ValueError(f"Invalid day_of_week: {day_of_week}")

        def _do(sess):
            seq = sess.query(WeeklySchedule).count() + 1
            entry_id = f"weekly-{seq}"
            while sess.get(WeeklySchedule, entry_id) is not None:
                seq += 1
                entry_id = f"weekly-{seq}"
            entry = WeeklySchedule(
                id=entry_id,
                day_of_week=day_of_week,
                start_time=entry_data["start_time"],
                end_time=entry_data["end_time"],
                member_id=entry_data["member_id"],
                member_name=entry_data.get("member_name", ""),
                status=entry_data.get("status", "planned"),
            )
            sess.add(entry)
            sess.flush()
            return entry

        if session:
            return _do(session)

        with self._get_session() as sess:
            entry = _do(sess)
            sess.commit()
            return entry

    def update(self, entry_id: str,
               session: Optional[Session] = None,
               **fields) -> Optional[WeeklySchedule]:
        return self.update_by_id(
            WeeklySchedule, entry_id, session=session, **fields
        )

    def delete(self, entry_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(WeeklySchedule, entry_id, session=session)

    def list_all(self, session: Optional[Session] = None
                 ) -> List[WeeklySchedule]:
        return self.get_all(
            WeeklySchedule, order_by=WeeklySchedule.day_of_week,
            session=session
        )
