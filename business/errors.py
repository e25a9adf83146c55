"""前台业务异常与操作结果。

异常只在业务层内部抛出；FrontDeskStore 的每个操作在调用边界把异常
转换为 ActionResult，由界面层以 Toast 形式展示（约 5 秒后自动消失）。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

TOAST_DURATION_SECONDS = 5


class FrontDeskError(Exception):
    """所有前台业务异常的基类"""


class ValidationError(FrontDeskError):
    """输入校验失败（缺少必填项、数量非数字或非正数），发生在任何写入之前"""


class BusinessRuleError(FrontDeskError):
    """违反业务规则"""


class NoRemainingSessionsError(BusinessRuleError):
    """会员已没有剩余课时，不能再记录课时"""

    def __init__(self, member_name: str):
        self.member_name = member_name
        super().__init__(f"No remaining sessions for member '{member_name}'")


class ScheduleConflictError(BusinessRuleError):
    """排课时间段已被占用

    Attributes:
        conflicts: ``"YYYY-MM-DD HH:MM"`` 形式的冲突列表（最多 5 个）。
    """

    def __init__(self, conflicts: List[str]):
        self.conflicts = list(conflicts)
        super().__init__(f"Schedule conflicts at: {', '.join(self.conflicts)}")


class MemberHasRecordsError(BusinessRuleError):
    """会员仍有关联的销售/课时/日程记录，未要求级联删除"""

    def __init__(self, member_id: str, sales: int = 0, sessions: int = 0, events: int = 0):
        self.member_id = member_id
        self.sales = sales
        self.sessions = sessions
        self.events = events
        super().__init__(
            f"Member {member_id} still has {sales} sales, {sessions} sessions "
            f"and {events} calendar events"
        )


class RecordNotFoundError(FrontDeskError):
    """记录不存在"""

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


class ToastType(str, Enum):
    WARNING = "warning"
    SUCCESS = "success"


@dataclass
class Toast:
    message: str
    type: ToastType = ToastType.SUCCESS

    @classmethod
    def success(cls, message: str) -> "Toast":
        return cls(message, ToastType.SUCCESS)

    @classmethod
    def warning(cls, message: str) -> "Toast":
        return cls(message, ToastType.WARNING)


@dataclass
class ActionResult:
    """一次用户操作的结果

    Attributes:
        success: 是否成功。批量操作只要有失败即为 False。
        error: 失败原因。
        toast: 需要展示给用户的提示。
        succeeded: 批量操作中成功的条数。
        failed: 批量操作中失败的条数。
        data: 操作返回的数据（新记录、预览结果等）。
    """
    success: bool
    error: Optional[str] = None
    toast: Optional[Toast] = None
    succeeded: int = 0
    failed: int = 0
    data: Any = None
    conflicts: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, message: Optional[str] = None, data: Any = None,
           succeeded: int = 0) -> "ActionResult":
        return cls(
            success=True,
            toast=Toast.success(message) if message else None,
            data=data,
            succeeded=succeeded,
        )

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ActionResult":
        return cls(success=False, error=error, toast=Toast.warning(error), data=data)

    @classmethod
    def from_counts(cls, action: str, succeeded: int, failed: int,
                    data: Any = None) -> "ActionResult":
        """批量操作的汇总结果，例如 ``"3 succeeded, 1 failed"``。"""
        if failed:
            message = f"{action}: {succeeded} succeeded, {failed} failed"
            return cls(
                success=False, error=message, toast=Toast.warning(message),
                succeeded=succeeded, failed=failed, data=data,
            )
        return cls(
            success=True, toast=Toast.success(f"{action}: {succeeded} succeeded"),
            succeeded=succeeded, data=data,
        )
