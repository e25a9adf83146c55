"""实体仓库：基础实体的数据访问层。

管理会员（TrackedMember）和预测销售条目（ForecastEntry）。
每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
"""
from typing import Optional, List, Dict, Any
from datetime import date

from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Member, Sale, ClassSession, Event, Forecast


class MemberRepository(BaseCRUD):
    """会员 仓库。

    会员的已用节数不落库；最近课程包的节数和单价随最新销售记录变化，
    由上层在加载时重新派生。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, member_data: Dict[str, Any],
               session: Optional[Session] = None) -> Member:
        """创建会员。

        Args:
            member_data: 会员数据字典，支持以下键：
                - name: 姓名（必填）
                - total_sessions: 课程包节数（可选，默认0）
                - unit_price: 单价（可选，默认0）
                - registration_date: 登记日期（可选，默认今天）
                - birthday: 生日（可选）
                - forecast_status: 预测分类覆盖（可选）
            session: 外部会话（可选）。

        Returns:
            新创建的 Member 对象。

        Raises:
            ValueError: 姓名缺失或日期格式无效。
        """
        name = (member_data.get("name") or "").strip()
        if not name:
            raise ValueError("Member name is required")
        registration_date = self._parse_date(
            member_data.get("registration_date") or date.today(),
            "Registration date"
        )

        def _do(sess):
            member = Member(
                id=self._next_id(Member, "member", registration_date, sess),
                name=name,
                total_sessions=member_data.get("total_sessions", 0),
                unit_price=member_data.get("unit_price", 0),
                registration_date=registration_date,
                birthday=member_data.get("birthday"),
                forecast_status=member_data.get("forecast_status"),
            )
            sess.add(member)
            sess.flush()
            return member

        if session:
            return _do(session)

        with self._get_session() as sess:
            member = _do(sess)
            sess.commit()
            logger.info(f"Created member {member.id} ({member.name})")
            return member

    def list_all(self, session: Optional[Session] = None) -> List[Member]:
        """获取全部会员，按登记日期排序。"""
        return self.get_all(
            Member, order_by=Member.registration_date, session=session
        )

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Member]:
        """按姓名搜索会员。

        Args:
            keyword: 搜索关键词。

        Returns:
            匹配的会员列表。
        """
        def _query(sess):
            return sess.query(Member).filter(
                Member.name.contains(keyword)
            ).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update(self, member_id: str,
               session: Optional[Session] = None,
               **fields) -> Optional[Member]:
        """更新会员字段。

        Returns:
            更新后的 Member 对象，不存在返回 None。
        """
        return self.update_by_id(Member, member_id, session=session, **fields)

    def set_forecast_status(self, member_id: str,
                            status: Optional[str],
                            session: Optional[Session] = None
                            ) -> Optional[Member]:
        """设置或清除预测分类的手动覆盖。

        Args:
            member_id: 会员ID。
            status: manual_dormant / manual_reregister，None 表示清除。

        Returns:
            更新后的 Member 对象。
        """
        return self.update_by_id(
            Member, member_id, session=session, forecast_status=status
        )

    def count_records(self, member_id: str,
                      session: Optional[Session] = None) -> Dict[str, int]:
        """统计会员名下的关联记录数。

        Returns:
            ``{"sales": n, "sessions": n, "events": n}``。
        """
        def _query(sess):
            return {
                "sales": sess.query(Sale).filter(
                    Sale.member_id == member_id).count(),
                "sessions": sess.query(ClassSession).filter(
                    ClassSession.member_id == member_id).count(),
                "events": sess.query(Event).filter(
                    Event.member_id == member_id).count(),
            }

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def delete(self, member_id: str,
               session: Optional[Session] = None) -> bool:
        """删除会员，销售、课时、日程、周课表随之级联删除。

        Returns:
            是否删除了记录。
        """
        deleted = self.delete_by_id(Member, member_id, session=session)
        if deleted:
            logger.info(f"Deleted member {member_id} with all records")
        return deleted


class ForecastRepository(BaseCRUD):
    """预测销售条目 仓库。

    单价由金额 / 节数向下取整得到，修改节数或金额时重新计算。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    @staticmethod
    def _unit_price(class_count: int, amount: int) -> int:
        return amount // class_count if class_count > 0 else 0

    def create(self, entry_data: Dict[str, Any],
               session: Optional[Session] = None) -> Forecast:
        """创建预测条目。

        Args:
            entry_data: 条目数据字典，支持以下键：
                - member_name: 会员姓名（必填）
                - class_count: 节数（必填）
                - amount: 金额（必填）
                - forecast_date: 日期（可选，默认今天）

        Returns:
            新创建的 Forecast 对象。
        """
        class_count = int(entry_data.get("class_count", 0))
        amount = int(entry_data.get("amount", 0))
        forecast_date = self._parse_date(
            entry_data.get("forecast_date") or date.today(), "Forecast date"
        )

        def _do(sess):
            entry = Forecast(
                id=self._next_id(Forecast, "forecast", forecast_date, sess),
                forecast_date=forecast_date,
                member_name=entry_data["member_name"],
                class_count=class_count,
                unit_price=self._unit_price(class_count, amount),
                amount=amount,
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
               **fields) -> Optional[Forecast]:
        """更新预测条目，节数或金额变化时重算单价。"""
        def _do(sess):
            entry = sess.get(Forecast, entry_id)
            if entry is None:
                return None
            for key, value in fields.items():
                if hasattr(entry, key):
                    setattr(entry, key, value)
            if "class_count" in fields or "amount" in fields:
                entry.unit_price = self._unit_price(
                    int(entry.class_count or 0), int(entry.amount or 0)
                )
            sess.flush()
            return entry

        if session:
            return _do(session)

        with self._get_session() as sess:
            entry = _do(sess)
            sess.commit()
            return entry

    def delete(self, entry_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Forecast, entry_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Forecast]:
        return self.get_all(Forecast, order_by=Forecast.created_at, session=session)

    def exists_for_name(self, member_name: str,
                        session: Optional[Session] = None) -> bool:
        """该姓名是否已在预测列表中。"""
        return self.count(
            Forecast, filters={"member_name": member_name}, session=session
        ) > 0
