"""出勤表扫描结果匹配。

图像识别由外部 AI 服务完成，返回 (会员姓名, 上课日期) 列表；
这里只负责把姓名与会员名册做匹配（去首尾空格、忽略大小写的精确匹配），
并把勾选的条目转换为批量添加课时的请求。
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .dates import normalize_date
from .records import TrackedMember

MATCHED = "matched"
UNMATCHED = "unmatched"


@dataclass
class ScannedSession:
    member_name: str
    session_date: str
    status: str = UNMATCHED
    matched_id: Optional[str] = None
    unit_price: Optional[int] = None
    selected: bool = False

    def toggle(self) -> None:
        """切换勾选状态，未匹配的条目不可勾选。"""
        if self.status == MATCHED:
            self.selected = not self.selected


@dataclass
class SessionRequest:
    member_id: str
    session_date: str
    class_count: int = 1


def _key(name: str) -> str:
    return (name or "").strip().lower()


def match_scanned_sessions(items: Iterable[Dict[str, Any]],
                           members: Iterable[TrackedMember]) -> List[ScannedSession]:
    """把识别结果与会员名册匹配。

    Args:
        items: ``{"member_name": ..., "session_date": ...}`` 列表。
        members: 会员列表，同名时取第一个。

    Returns:
        ScannedSession 列表，匹配成功的条目默认勾选。
    """
    roster: Dict[str, TrackedMember] = {}
    for member in members:
        roster.setdefault(_key(member.name), member)

    scanned = []
    for item in items:
        name = item.get("member_name", "")
        member = roster.get(_key(name))
        scanned.append(ScannedSession(
            member_name=name,
            session_date=normalize_date(item.get("session_date")),
            status=MATCHED if member else UNMATCHED,
            matched_id=member.id if member else None,
            unit_price=member.unit_price if member else None,
            selected=member is not None,
        ))
    return scanned


def selected_session_requests(scanned: Iterable[ScannedSession]) -> List[SessionRequest]:
    return [
        SessionRequest(member_id=item.matched_id, session_date=item.session_date)
        for item in scanned
        if item.selected and item.status == MATCHED and item.matched_id
    ]
