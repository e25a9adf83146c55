"""前台应用状态仓库。

FrontDeskStore 持有一次批量拉取得到的全部数据（DataSnapshot），对外提供
只读视图和所有用户操作。每个写操作：

1. 在任何写入之前校验输入（ValidationError）；
2. 调用业务引擎判断规则（NoRemainingSessionsError、ScheduleConflictError 等）；
3. 通过 DatabaseManager 逐步写入，多步写入之间没有事务，失败不回滚；
4. 写入后整体 refresh()，并返回 ActionResult（含 Toast 提示）。

异常不会越过操作边界：业务异常和数据库异常都被转换为失败的 ActionResult。
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config.business_config import business_config
from database import DatabaseManager

from .allocation import find_active_unit_price, sort_purchases, split_new_sessions
from .cache import SnapshotCache
from .conflicts import (
    build_booking_index, check_recurring_conflicts, check_single_conflict,
)
from .dates import (
    add_minutes, format_time, normalize_date, parse_date, parse_time, this_month_range,
)
from .errors import (
    ActionResult, BusinessRuleError, FrontDeskError, MemberHasRecordsError,
    NoRemainingSessionsError, RecordNotFoundError, ScheduleConflictError,
    Toast, ValidationError,
)
from .forecast import ForecastBuckets, ForecastTotals, classify_members, forecast_totals
from .forecast import planned_monthly_sessions as count_planned_sessions
from .records import (
    CalendarEvent, DataSnapshot, EditMode, EventStatus, EventType, ForecastEntry,
    ForecastStatus, MemberSession, SaleEntry, TrackedMemberWithStats,
    WeeklyScheduleEntry, WeeklyStatus,
)
from .recurrence import (
    Cadence, EndCondition, EndType, MAX_OCCURRENCES, Occurrence, expand_recurrence,
)
from .salary import MonthlySalary, SalaryDefaults, SalaryStatistics, compute_month
from .salary import salary_statistics as build_salary_statistics
from .scan import SessionRequest
from .stats import PeriodSummary, available_sessions, summarize_period

DateInput = Union[str, date, None]


@dataclass
class SchedulePreview:
    """排课预览

    Attributes:
        occurrences: 将要创建的课程。
        conflicts: 已被占用的时间段（最多 5 个）。
        capped: 重复日程是否因 200 次上限被截断。
    """
    member: TrackedMemberWithStats
    occurrences: List[Occurrence] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    capped: bool = False

    @property
    def can_submit(self) -> bool:
        return bool(self.occurrences) and not self.conflicts


# ================================================================
# 输入校验
# ================================================================

def _require_text(value: Any, field_name: str) -> str:
    text = (value or "").strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def _to_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")


def _positive_int(value: Any, field_name: str) -> int:
    number = _to_int(value, field_name)
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive, got {number}")
    return number


def _non_negative_int(value: Any, field_name: str) -> int:
    number = _to_int(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} must not be negative, got {number}")
    return number


def _valid_date(value: DateInput, field_name: str) -> str:
    normalized = normalize_date(value)
    if not normalized:
        raise ValidationError(f"{field_name} is not a valid date: {value!r}")
    return normalized


def _valid_time(value: Any, field_name: str) -> str:
    text = _require_text(value, field_name)
    try:
        minutes = parse_time(text)
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid time: {value!r}")
    return format_time(minutes)


class FrontDeskStore:
    """前台应用状态仓库

    Attributes:
        db: 数据库管理器。
        cache: 本地快照缓存（可选）。
        last_refreshed_at: 最近一次成功刷新的时间。
    """

    def __init__(self, db: DatabaseManager,
                 cache: Optional[SnapshotCache] = None) -> None:
        self.db = db
        self.cache = cache
        self.last_refreshed_at: Optional[datetime] = None
        self._snapshot = DataSnapshot()
        self._buckets = ForecastBuckets()
        self._salary_defaults = SalaryDefaults.from_config()

    # ================================================================
    # 只读视图
    # ================================================================

    @property
    def members(self) -> List[TrackedMemberWithStats]:
        return list(self._snapshot.members)

    @property
    def sales(self) -> List[SaleEntry]:
        return list(self._snapshot.sales)

    @property
    def sessions(self) -> List[MemberSession]:
        return list(self._snapshot.sessions)

    @property
    def forecast_entries(self) -> List[ForecastEntry]:
        return list(self._snapshot.forecast_entries)

    @property
    def calendar_events(self) -> List[CalendarEvent]:
        return list(self._snapshot.calendar_events)

    @property
    def weekly_schedules(self) -> List[WeeklyScheduleEntry]:
        return list(self._snapshot.weekly_schedules)

    @property
    def salary_defaults(self) -> SalaryDefaults:
        return self._salary_defaults

    @property
    def members_to_reregister(self) -> List[TrackedMemberWithStats]:
        return list(self._buckets.re_register)

    @property
    def dormant_members(self) -> List[TrackedMemberWithStats]:
        return list(self._buckets.dormant)

    @property
    def current_month_sales(self) -> List[SaleEntry]:
        start, end = this_month_range()
        result = []
        for sale in self._snapshot.sales:
            sale_date = parse_date(sale.sale_date)
            if sale_date is not None and start.date() <= sale_date <= end.date():
                result.append(sale)
        return result

    @property
    def current_month_sessions(self) -> int:
        """本月实际完成的课时数。"""
        start, end = this_month_range()
        total = 0
        for session in self._snapshot.sessions:
            session_date = parse_date(session.session_date)
            if session_date is not None and start.date() <= session_date <= end.date():
                total += session.class_count
        return total

    @property
    def planned_monthly_sessions(self) -> int:
        """按已确认周课表推算的本月计划课时数。"""
        return count_planned_sessions(self._snapshot.weekly_schedules)

    def find_member(self, member_id: str) -> Optional[TrackedMemberWithStats]:
        for member in self._snapshot.members:
            if member.id == member_id:
                return member
        return None

    def events_on(self, target_date: DateInput) -> List[CalendarEvent]:
        day = normalize_date(target_date)
        events = [e for e in self._snapshot.calendar_events if e.date == day]
        return sorted(events, key=lambda e: e.start_time)

    def salary_statistics(self, end_date: Optional[date] = None) -> SalaryStatistics:
        return build_salary_statistics(
            self._snapshot.sessions, self._snapshot.sales,
            end_date or date.today(), self._salary_defaults,
        )

    def monthly_salary(self, today: Optional[date] = None) -> MonthlySalary:
        today = today or date.today()
        return compute_month(
            self._snapshot.sessions, self._snapshot.sales,
            today.year, today.month, self._salary_defaults,
        )

    def period_summary(self, start: date, end: date) -> PeriodSummary:
        return summarize_period(
            self._snapshot.members, self._snapshot.sales,
            self._snapshot.sessions, start, end,
        )

    def forecast_totals(self, vat_enabled: bool = True) -> ForecastTotals:
        return forecast_totals(self._snapshot.forecast_entries, vat_enabled)

    def re_registration_reminder(self) -> Optional[Toast]:
        """需要再注册的会员提醒，没有时返回 None。"""
        members = self._buckets.re_register
        if not members:
            return None
        if len(members) == 1:
            message = f"{members[0].name} needs to re-register"
        else:
            message = (
                f"{members[0].name} and {len(members) - 1} other members "
                f"need to re-register"
            )
        return Toast.warning(message)

    # ================================================================
    # 加载与刷新
    # ================================================================

    def _apply(self, snapshot: DataSnapshot) -> None:
        self._snapshot = snapshot
        self._buckets = classify_members(snapshot.members)

    def load_cached(self) -> bool:
        """加载本地缓存快照（启动时先展示）。

        Returns:
            是否加载到了缓存。
        """
        if self.cache is None:
            return False
        snapshot = self.cache.load()
        if snapshot is None:
            return False
        self._apply(snapshot)
        logger.info(f"Loaded cached snapshot with {len(snapshot.members)} members")
        return True

    def refresh(self) -> DataSnapshot:
        """从数据库重新拉取全部数据。

        Raises:
            SQLAlchemyError: 数据库读取失败。
        """
        snapshot = self.db.fetch_all_data()
        self._salary_defaults = SalaryDefaults.from_dict(self.db.get_salary_defaults())
        self._apply(snapshot)
        self.last_refreshed_at = datetime.now()
        if self.cache is not None:
            self.cache.save(snapshot)
        logger.debug(
            f"Refreshed: {len(snapshot.members)} members, {len(snapshot.sales)} sales, "
            f"{len(snapshot.sessions)} sessions, {len(snapshot.calendar_events)} events"
        )
        return snapshot

    def refresh_silently(self) -> bool:
        """后台刷新：失败只记录日志，继续使用当前数据。"""
        try:
            self.refresh()
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Background refresh failed, keeping current data: {e}")
            return False

    def _run(self, action: str, operation: Callable[[], ActionResult],
             refresh: bool = True) -> ActionResult:
        """执行一个用户操作，把异常转换为失败结果，写入后刷新。"""
        try:
            result = operation()
        except ScheduleConflictError as e:
            logger.warning(f"{action} rejected: {e}")
            result = ActionResult.fail(str(e))
            result.conflicts = e.conflicts
            return result
        except (ValidationError, BusinessRuleError, RecordNotFoundError) as e:
            logger.warning(f"{action} rejected: {e}")
            return ActionResult.fail(str(e))
        except ValueError as e:
            logger.warning(f"{action} rejected: {e}")
            return ActionResult.fail(str(e))
        except SQLAlchemyError as e:
            logger.error(f"{action} failed: {e}")
            result = ActionResult.fail(f"{action} failed: {e}")
        if refresh:
            self.refresh_silently()
        return result

    def _require_member(self, member_id: str):
        member = self.db.get_member(member_id)
        if member is None:
            raise RecordNotFoundError("Member", member_id)
        return member

    # ================================================================
    # 会员
    # ================================================================

    def add_member(self, name: str, total_sessions: Any, unit_price: Any,
                   registration_date: DateInput = None,
                   birthday: Optional[str] = None) -> ActionResult:
        """登记新会员（同时创建首次购买和 new_member 日程）。"""
        def _op():
            member_name = _require_text(name, "Name")
            count = _positive_int(total_sessions, "Total sessions")
            price = _non_negative_int(unit_price, "Unit price")
            reg_date = _valid_date(registration_date or date.today(), "Registration date")
            created = self.db.register_member(
                member_name, count, price, registration_date=reg_date,
                birthday=normalize_date(birthday) or None,
            )
            return ActionResult.ok(f"Member {member_name} added", data=created["member"])

        return self._run("Add member", _op)

    def update_member(self, member_id: str, name: Optional[str] = None,
                      total_sessions: Any = None, unit_price: Any = None,
                      birthday: Optional[str] = None) -> ActionResult:
        """修改会员信息。

        节数或单价变化时，最近一次购买记录同步改为新的节数和单价，
        金额重算为 节数 × 单价。
        """
        def _op():
            fields: Dict[str, Any] = {}
            if name is not None:
                fields["name"] = _require_text(name, "Name")
            if total_sessions is not None:
                fields["total_sessions"] = _positive_int(total_sessions, "Total sessions")
            if unit_price is not None:
                fields["unit_price"] = _non_negative_int(unit_price, "Unit price")
            if birthday is not None:
                fields["birthday"] = normalize_date(birthday) or None

            member = self.db.members.update(member_id, **fields)
            if member is None:
                raise RecordNotFoundError("Member", member_id)

            latest = self.db.sales.get_latest_for_member(member_id)
            if latest is not None and (
                    "total_sessions" in fields or "unit_price" in fields or "name" in fields):
                count = fields.get("total_sessions", latest.class_count)
                price = fields.get("unit_price", latest.unit_price)
                self.db.sales.update(
                    latest.id, member_name=member.name, class_count=count,
                    unit_price=price, amount=count * price,
                )
            return ActionResult.ok(f"Member {member.name} updated", data=member.to_record())

        return self._run("Update member", _op)

    def delete_member(self, member_id: str, cascade: bool = False) -> ActionResult:
        """删除会员。

        会员仍有销售/课时/日程记录时，必须明确传入 ``cascade=True``
        才会连同这些记录一起删除，否则返回 MemberHasRecordsError。
        """
        def _op():
            member = self._require_member(member_id)
            counts = self.db.members.count_records(member_id)
            if any(counts.values()) and not cascade:
                raise MemberHasRecordsError(member_id, **counts)
            self.db.members.delete(member_id)
            return ActionResult.ok(f"Member {member.name} deleted")

        return self._run("Delete member", _op)

    def set_forecast_status(self, member_id: str,
                            status: Union[ForecastStatus, str, None]) -> ActionResult:
        """设置或清除会员的预测分类手动覆盖（None 表示恢复自动分类）。"""
        def _op():
            value = ForecastStatus(status).value if status is not None else None
            member = self.db.members.set_forecast_status(member_id, value)
            if member is None:
                raise RecordNotFoundError("Member", member_id)
            return ActionResult.ok(f"Forecast status of {member.name} updated")

        return self._run("Set forecast status", _op)

    def add_member_to_forecast(self, member_id: str) -> ActionResult:
        """把会员加入预测销售列表。

        按最近一次购买的节数和单价生成条目，单价为 0 时取默认单价；
        同名条目已存在时跳过。
        """
        def _op():
            member = self.find_member(member_id) or self._require_member(member_id)
            if self.db.forecasts.exists_for_name(member.name):
                return ActionResult(
                    success=True,
                    toast=Toast.warning(f"{member.name} is already in the forecast"),
                )
            price = member.unit_price or business_config.get_fallback_unit_price()
            count = member.total_sessions
            entry = self.db.forecasts.create({
                "member_name": member.name,
                "class_count": count,
                "amount": count * price,
            })
            return ActionResult.ok(
                f"{member.name} added to the forecast", data=entry.to_record()
            )

        return self._run("Add member to forecast", _op)

    # ================================================================
    # 销售
    # ================================================================

    def add_sale(self, member_id: str, class_count: Any, amount: Any,
                 sale_date: DateInput = None) -> ActionResult:
        """登记课程包销售，单价 = 金额 / 节数（向下取整）。"""
        def _op():
            count = _positive_int(class_count, "Class count")
            total = _non_negative_int(amount, "Amount")
            day = _valid_date(sale_date or date.today(), "Sale date")
            member = self._require_member(member_id)
            sale = self.db.sales.create({
                "member_id": member.id,
                "member_name": member.name,
                "sale_date": day,
                "class_count": count,
                "amount": total,
            })
            return ActionResult.ok("Sale added", data=sale.to_record())

        return self._run("Add sale", _op)

    def update_sale(self, sale_id: str, sale_date: DateInput = None,
                    class_count: Any = None, amount: Any = None,
                    paid_amount: Any = None) -> ActionResult:
        """修改销售记录；节数或金额变化时重算单价，金额不会被反向重算。"""
        def _op():
            fields: Dict[str, Any] = {}
            if sale_date is not None:
                fields["sale_date"] = _valid_date(sale_date, "Sale date")
            if class_count is not None:
                fields["class_count"] = _positive_int(class_count, "Class count")
            if amount is not None:
                fields["amount"] = _non_negative_int(amount, "Amount")
            if paid_amount is not None:
                fields["paid_amount"] = _non_negative_int(paid_amount, "Paid amount")
            sale = self.db.sales.update(sale_id, **fields)
            if sale is None:
                raise RecordNotFoundError("Sale", sale_id)
            return ActionResult.ok(data=sale.to_record())

        return self._run("Update sale", _op)

    def delete_sale(self, sale_id: str) -> ActionResult:
        def _op():
            if not self.db.sales.delete(sale_id):
                raise RecordNotFoundError("Sale", sale_id)
            return ActionResult.ok("Sale deleted")

        return self._run("Delete sale", _op)

    # ================================================================
    # 课时
    # ================================================================

    def _record_sessions(self, member_id: str, class_count: int, session_date: str,
                         unit_price: Optional[int] = None,
                         start_time: Optional[str] = None) -> ActionResult:
        member = self._require_member(member_id)

        if unit_price is not None:
            chunks = [(class_count, unit_price)]
            overflow = 0
        else:
            purchases = self.db.get_member_purchases(member_id)
            used = self.db.sessions.used_sessions(member_id)
            if find_active_unit_price(purchases, used) is None:
                raise NoRemainingSessionsError(member.name)
            split = split_new_sessions(purchases, used, class_count)
            chunks = list(split.chunks)
            overflow = split.overflow
            if overflow:
                # 超出部分按最新课程包的单价计价
                chunks.append((overflow, sort_purchases(purchases)[-1].unit_price))

        if start_time:
            end_time = add_minutes(start_time, business_config.get_default_session_minutes())
        else:
            start_time = end_time = "00:00"

        created = [
            self.db.record_session(
                member.id, member.name, session_date, count, price,
                start_time=start_time, end_time=end_time,
            )
            for count, price in chunks
        ]

        if overflow:
            logger.warning(
                f"{member.name} exceeded remaining sessions by {overflow}"
            )
            return ActionResult(
                success=True, data=created,
                toast=Toast.warning(
                    f"Exceeded remaining sessions: {overflow} extra session(s) added"
                ),
            )
        return ActionResult.ok(
            f"{class_count} session(s) added for {member.name}", data=created
        )

    def add_session(self, member_id: str, class_count: Any = 1,
                    session_date: DateInput = None, unit_price: Any = None,
                    start_time: Optional[str] = None) -> ActionResult:
        """登记课时。

        未指定单价时按 FIFO 规则计价：从第一个仍有剩余容量的课程包开始
        依次占用，跨课程包时拆成多条课时记录。所有课程包都已用完时拒绝登记；
        本次节数超过剩余节数时，超出部分按最新课程包单价登记并给出警告。
        每条课时都会生成一条已完成的上课事件。
        """
        def _op():
            count = _positive_int(class_count, "Class count")
            day = _valid_date(session_date or date.today(), "Session date")
            price = None if unit_price is None else _non_negative_int(unit_price, "Unit price")
            start = _valid_time(start_time, "Start time") if start_time else None
            return self._record_sessions(member_id, count, day, price, start)

        return self._run("Add session", _op)

    def update_session(self, session_id: str, session_date: DateInput = None,
                       class_count: Any = None, unit_price: Any = None) -> ActionResult:
        def _op():
            fields: Dict[str, Any] = {}
            if session_date is not None:
                fields["session_date"] = _valid_date(session_date, "Session date")
            if class_count is not None:
                fields["class_count"] = _positive_int(class_count, "Class count")
            if unit_price is not None:
                fields["unit_price"] = _non_negative_int(unit_price, "Unit price")
            record = self.db.sessions.update(session_id, **fields)
            if record is None:
                raise RecordNotFoundError("Session", session_id)
            return ActionResult.ok(data=record.to_record())

        return self._run("Update session", _op)

    def delete_session(self, session_id: str) -> ActionResult:
        """删除课时；手动登记生成的事件一并删除，排课完成的事件恢复为已排课。"""
        def _op():
            removed = self.db.remove_session(session_id)
            if removed is None:
                raise RecordNotFoundError("Session", session_id)
            return ActionResult.ok("Session deleted", data=removed)

        return self._run("Delete session", _op)

    def add_sessions_bulk(self, requests: Iterable[SessionRequest]) -> ActionResult:
        """批量登记课时（出勤表扫描导入），逐条写入并汇总成功/失败数。"""
        def _op():
            succeeded = 0
            failed = 0
            created: List[MemberSession] = []
            for request in requests:
                try:
                    day = _valid_date(request.session_date, "Session date")
                    count = _positive_int(request.class_count, "Class count")
                    result = self._record_sessions(request.member_id, count, day)
                except (FrontDeskError, ValueError, SQLAlchemyError) as e:
                    failed += 1
                    logger.warning(
                        f"Bulk session for {request.member_id} on "
                        f"{request.session_date} failed: {e}"
                    )
                    continue
                succeeded += 1
                created.extend(result.data)
            return ActionResult.from_counts("Add sessions", succeeded, failed, data=created)

        return self._run("Add sessions", _op)

    # ================================================================
    # 预测销售条目
    # ================================================================

    def add_forecast_entry(self, member_name: str, class_count: Any,
                           amount: Any) -> ActionResult:
        def _op():
            entry = self.db.forecasts.create({
                "member_name": _require_text(member_name, "Member name"),
                "class_count": _positive_int(class_count, "Class count"),
                "amount": _non_negative_int(amount, "Amount"),
            })
            return ActionResult.ok("Forecast entry added", data=entry.to_record())

        return self._run("Add forecast entry", _op)

    def update_forecast_entry(self, entry_id: str, member_name: Optional[str] = None,
                              class_count: Any = None, amount: Any = None) -> ActionResult:
        def _op():
            fields: Dict[str, Any] = {}
            if member_name is not None:
                fields["member_name"] = _require_text(member_name, "Member name")
            if class_count is not None:
                fields["class_count"] = _positive_int(class_count, "Class count")
            if amount is not None:
                fields["amount"] = _non_negative_int(amount, "Amount")
            entry = self.db.forecasts.update(entry_id, **fields)
            if entry is None:
                raise RecordNotFoundError("Forecast entry", entry_id)
            return ActionResult.ok(data=entry.to_record())

        return self._run("Update forecast entry", _op)

    def delete_forecast_entry(self, entry_id: str) -> ActionResult:
        def _op():
            if not self.db.forecasts.delete(entry_id):
                raise RecordNotFoundError("Forecast entry", entry_id)
            return ActionResult.ok("Forecast entry deleted")

        return self._run("Delete forecast entry", _op)

    # ================================================================
    # 日程
    # ================================================================

    def preview_schedule(self, member_id: str, start_date: DateInput, start_time: str,
                         duration: Any = None, recurring: bool = False,
                         days_of_week: Iterable[int] = (),
                         cadence: Union[Cadence, str] = Cadence.WEEKLY,
                         end_condition: Optional[EndCondition] = None) -> SchedulePreview:
        """展开排课请求并检查冲突（不写入）。

        按剩余节数结束（sessions）时，次数取会员当前可排课节数
        （累计购买 - 已用 - 已排未完成）。

        Raises:
            ValidationError: 输入无效。
            RecordNotFoundError: 会员不存在。
        """
        member = self.find_member(member_id)
        if member is None:
            raise RecordNotFoundError("Member", member_id)
        day = _valid_date(start_date, "Start date")
        start = _valid_time(start_time, "Start time")
        minutes = (business_config.get_default_session_minutes()
                   if duration is None else _positive_int(duration, "Duration"))
        end = add_minutes(start, minutes)
        index = build_booking_index(self._snapshot.calendar_events)

        if not recurring:
            occurrence = Occurrence(date=day, start_time=start, end_time=end)
            conflicts = []
            if check_single_conflict(day, start, index):
                conflicts.append(f"{day} {start}")
            return SchedulePreview(member=member, occurrences=[occurrence],
                                   conflicts=conflicts)

        if end_condition is None:
            raise ValidationError("End condition is required for recurring schedules")
        try:
            cadence = Cadence(cadence)
        except ValueError:
            raise ValidationError(f"Unknown cadence: {cadence!r}")
        if EndType(end_condition.type) is EndType.SESSIONS:
            end_condition = EndCondition.sessions(available_sessions(member))
        expansion = expand_recurrence(
            day, days_of_week, cadence, end_condition, start_time=start, end_time=end,
        )
        return SchedulePreview(
            member=member,
            occurrences=expansion.occurrences,
            conflicts=check_recurring_conflicts(expansion.occurrences, index),
            capped=expansion.capped,
        )

    def add_schedule(self, member_id: str, start_date: DateInput, start_time: str,
                     duration: Any = None, recurring: bool = False,
                     days_of_week: Iterable[int] = (),
                     cadence: Union[Cadence, str] = Cadence.WEEKLY,
                     end_condition: Optional[EndCondition] = None) -> ActionResult:
        """创建单次或重复排课；任何一次课程有冲突时整个请求被拒绝。"""
        def _op():
            preview = self.preview_schedule(
                member_id, start_date, start_time, duration, recurring,
                days_of_week, cadence, end_condition,
            )
            if not preview.occurrences:
                return ActionResult.fail("No schedules to add, check the conditions")
            if preview.conflicts:
                raise ScheduleConflictError(preview.conflicts)

            events = self.db.events.create_many(
                {
                    "date": occurrence.date,
                    "type": EventType.WORKOUT.value,
                    "title": preview.member.name,
                    "start_time": occurrence.start_time,
                    "end_time": occurrence.end_time,
                    "member_id": preview.member.id,
                    "recurrence_id": occurrence.recurrence_id,
                    "status": EventStatus.SCHEDULED.value,
                }
                for occurrence in preview.occurrences
            )
            records = [event.to_record() for event in events]
            if preview.capped:
                return ActionResult(
                    success=True, data=records,
                    toast=Toast.warning(
                        f"Only {MAX_OCCURRENCES} recurring schedules can be created at once"
                    ),
                )
            return ActionResult.ok(f"{len(records)} schedule(s) added", data=records)

        return self._run("Add schedule", _op)

    def update_schedule(self, event_id: str, mode: Union[EditMode, str] = EditMode.SINGLE,
                        new_date: DateInput = None, start_time: Optional[str] = None,
                        end_time: Optional[str] = None) -> ActionResult:
        """修改日程的日期/时间。

        mode 为 single 时只改这一次；future 改动同系列中不早于它的课程；
        all 改动整个系列。新日期只作用于被选中的课程本身。
        """
        def _op():
            edit_mode = EditMode(mode)
            fields: Dict[str, Any] = {}
            if new_date:
                fields["date"] = _valid_date(new_date, "Date")
            if start_time:
                fields["start_time"] = _valid_time(start_time, "Start time")
            if end_time:
                fields["end_time"] = _valid_time(end_time, "End time")

            targets = self.db.events.preview_series(event_id, edit_mode)
            if not targets:
                raise RecordNotFoundError("Event", event_id)

            target_ids = [target.id for target in targets]
            index = build_booking_index(self._snapshot.calendar_events,
                                        exclude_ids=target_ids)
            moved = [
                Occurrence(
                    date=fields["date"] if "date" in fields and target.id == event_id
                    else target.date,
                    start_time=fields.get("start_time", target.start_time),
                    end_time=fields.get("end_time", target.end_time),
                )
                for target in targets
                if target.status != EventStatus.CANCELLED.value
            ]
            conflicts = check_recurring_conflicts(moved, index)
            if conflicts:
                raise ScheduleConflictError(conflicts)

            updated = self.db.events.update_series(event_id, fields, edit_mode)
            return ActionResult.ok(f"{len(updated)} schedule(s) updated", data=updated)

        return self._run("Update schedule", _op)

    def delete_schedule(self, event_id: str,
                        mode: Union[EditMode, str] = EditMode.SINGLE) -> ActionResult:
        """删除日程；已完成课程对应的课时记录一并删除。"""
        def _op():
            deleted = self.db.events.delete_series(event_id, EditMode(mode))
            if not deleted:
                raise RecordNotFoundError("Event", event_id)

            succeeded = len(deleted)
            failed = 0
            for event in deleted:
                if event.status != EventStatus.COMPLETED.value:
                    continue
                try:
                    for record in self.db.sessions.find_by_source(event.id):
                        self.db.sessions.delete(record.id)
                        succeeded += 1
                except SQLAlchemyError as e:
                    failed += 1
                    logger.error(f"Failed to delete sessions linked to {event.id}: {e}")
            return ActionResult.from_counts(
                "Delete schedules", succeeded, failed,
                data=[event.id for event in deleted],
            )

        return self._run("Delete schedule", _op)

    def complete_scheduled_events(self, event_ids: Iterable[str]) -> ActionResult:
        """把已排课的上课事件标记为完成，并为每节课生成课时记录。

        已存在对应课时（completion_source_id）的事件不会重复生成课时。
        单价按 FIFO 取当前生效课程包的单价，课程包已用完时沿用会员最近的单价。
        """
        def _op():
            events = [
                event for event in self.db.events.list_by_ids(event_ids)
                if event.type == EventType.WORKOUT.value
                and event.status == EventStatus.SCHEDULED.value
            ]
            if not events:
                return ActionResult.fail("No classes to complete")

            added = 0
            failed = 0
            for event in events:
                try:
                    if self.db.sessions.find_by_source(event.id):
                        logger.warning(
                            f"Session for event {event.id} already exists, skipping"
                        )
                    else:
                        self._complete_event(event)
                        added += 1
                    self.db.events.set_status([event.id], EventStatus.COMPLETED.value)
                except (RecordNotFoundError, SQLAlchemyError) as e:
                    failed += 1
                    logger.error(f"Failed to complete event {event.id}: {e}")

            if failed:
                return ActionResult.from_counts("Complete classes", added, failed)
            return ActionResult.ok(
                f"{added} class(es) completed and added to payroll", succeeded=added
            )

        return self._run("Complete classes", _op)

    def _complete_event(self, event) -> MemberSession:
        member = self._require_member(event.member_id)
        purchases = self.db.get_member_purchases(member.id)
        used = self.db.sessions.used_sessions(member.id)
        active = find_active_unit_price(purchases, used)
        price = active.unit_price if active is not None else member.unit_price
        record = self.db.sessions.create({
            "member_id": member.id,
            "member_name": member.name,
            "session_date": event.date,
            "class_count": 1,
            "unit_price": price,
            "completion_source_id": event.id,
        })
        return record.to_record()

    def complete_day(self, target_date: DateInput) -> ActionResult:
        """完成某一天所有已排课的上课事件。"""
        day = normalize_date(target_date)
        event_ids = [
            event.id for event in self._snapshot.calendar_events
            if event.date == day and event.type == EventType.WORKOUT.value
            and event.status == EventStatus.SCHEDULED.value
        ]
        if not event_ids:
            logger.info(f"No scheduled classes to complete on {day or target_date}")
            return ActionResult.fail("No classes to complete")
        return self.complete_scheduled_events(event_ids)

    # ================================================================
    # 周课表
    # ================================================================

    def add_weekly_schedule(self, member_id: str, day_of_week: Any, start_time: str,
                            end_time: Optional[str] = None,
                            status: Union[WeeklyStatus, str] = WeeklyStatus.PLANNED
                            ) -> ActionResult:
        def _op():
            day = _to_int(day_of_week, "Day of week")
            if not 0 <= day <= 6:
                raise ValidationError(f"Day of week must be 0-6, got {day}")
            start = _valid_time(start_time, "Start time")
            end = (_valid_time(end_time, "End time") if end_time
                   else add_minutes(start, business_config.get_default_session_minutes()))
            member = self._require_member(member_id)
            entry = self.db.weekly_schedules.create({
                "day_of_week": day,
                "start_time": start,
                "end_time": end,
                "member_id": member.id,
                "member_name": member.name,
                "status": WeeklyStatus(status).value,
            })
            return ActionResult.ok("Weekly schedule added", data=entry.to_record())

        return self._run("Add weekly schedule", _op)

    def update_weekly_schedule(self, entry_id: str, day_of_week: Any = None,
                               start_time: Optional[str] = None,
                               end_time: Optional[str] = None,
                               status: Union[WeeklyStatus, str, None] = None) -> ActionResult:
        def _op():
            fields: Dict[str, Any] = {}
            if day_of_week is not None:
                day = _to_int(day_of_week, "Day of week")
                if not 0 <= day <= 6:
                    raise ValidationError(f"Day of week must be 0-6, got {day}")
                fields["day_of_week"] = day
            if start_time:
                fields["start_time"] = _valid_time(start_time, "Start time")
            if end_time:
                fields["end_time"] = _valid_time(end_time, "End time")
            if status is not None:
                fields["status"] = WeeklyStatus(status).value
            entry = self.db.weekly_schedules.update(entry_id, **fields)
            if entry is None:
                raise RecordNotFoundError("Weekly schedule", entry_id)
            return ActionResult.ok(data=entry.to_record())

        return self._run("Update weekly schedule", _op)

    def delete_weekly_schedule(self, entry_id: str) -> ActionResult:
        def _op():
            if not self.db.weekly_schedules.delete(entry_id):
                raise RecordNotFoundError("Weekly schedule", entry_id)
            return ActionResult.ok("Weekly schedule deleted")

        return self._run("Delete weekly schedule", _op)

    # ================================================================
    # 设置
    # ================================================================

    def save_salary_defaults(self, values: Union[SalaryDefaults, Dict[str, Any]]
                             ) -> ActionResult:
        """保存薪资默认设置。

        先更新内存中的设置，写入失败时恢复为之前的值。
        """
        previous = self._salary_defaults
        defaults = values if isinstance(values, SalaryDefaults) \
            else SalaryDefaults.from_dict({**previous.to_dict(), **values})
        self._salary_defaults = defaults

        def _op():
            try:
                self.db.save_salary_defaults(defaults.to_dict())
            except SQLAlchemyError:
                self._salary_defaults = previous
                raise
            return ActionResult.ok("Settings saved", data=defaults)

        return self._run("Save settings", _op)
