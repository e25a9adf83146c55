"""业务记录仓库：核心业务数据的数据访问层。

管理课程包销售（SaleEntry）和课时消耗（MemberSession），
这些记录是日常经营活动产生的交易数据。FIFO 计价等业务规则
不在这里实现，仓库只负责读写。
"""
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session
from loguru import logger

from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import Sale, ClassSession, Event

SYNTHESIZED_EVENT_PREFIX = "schedule-"


class SaleRepository(BaseCRUD):
    """课程包销售 仓库。

    amount 只在创建时由 class_count × unit_price 得出；之后修改节数或金额
    只会重算单价（金额 / 节数 向下取整），不会反过来改金额。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    @staticmethod
    def _unit_price(class_count: int, amount: int) -> int:
        return amount // class_count if class_count > 0 else 0

    def create(self, sale_data: Dict[str, Any],
               session: Optional[Session] = None) -> Sale:
        """创建销售记录。

        Args:
            sale_data: 销售数据字典，支持以下键：
                - member_id: 会员ID（必填）
                - member_name: 会员姓名（必填）
                - sale_date: 购买日期，YYYY-MM-DD 或 date 对象（必填）
                - class_count: 节数（必填）
                - unit_price: 单价（与 amount 二选一）
                - amount: 金额（未提供单价时按 金额/节数 计算单价）
                - paid_amount: 已付金额（可选，默认0）
            session: 外部会话（可选）。

        Returns:
            新创建的 Sale 对象。

        Raises:
            ValueError: 日期格式无效或缺失。
        """
        sale_date = self._parse_date(sale_data.get("sale_date"), "Sale date")
        class_count = int(sale_data.get("class_count", 0))
        if sale_data.get("unit_price") is not None:
            unit_price = int(sale_data["unit_price"])
            amount = class_count * unit_price
        else:
            amount = int(sale_data.get("amount", 0))
            unit_price = self._unit_price(class_count, amount)

        def _do(sess):
            sale = Sale(
                id=self._next_id(Sale, "sale", sale_date, sess),
                sale_date=sale_date,
                member_id=sale_data["member_id"],
                member_name=sale_data.get("member_name", ""),
                class_count=class_count,
                unit_price=unit_price,
                amount=amount,
                paid_amount=sale_data.get("paid_amount", 0),
            )
            sess.add(sale)
            sess.flush()
            return sale

        if session:
            return _do(session)

        with self._get_session() as sess:
            sale = _do(sess)
            sess.commit()
            logger.info(
                f"Created sale {sale.id}: {sale.member_name} "
                f"{sale.class_count} x {sale.unit_price}"
            )
            return sale

    def update(self, sale_id: str,
               session: Optional[Session] = None,
               **fields) -> Optional[Sale]:
        """更新销售记录。

        修改 class_count 或 amount 时重算单价；修改 sale_date 时统一日期格式。

        Returns:
            更新后的 Sale 对象，不存在返回 None。
        """
        if "sale_date" in fields:
            fields["sale_date"] = self._parse_date(fields["sale_date"], "Sale date")

        def _do(sess):
            sale = sess.get(Sale, sale_id)
            if sale is None:
                return None
            for key, value in fields.items():
                if hasattr(sale, key):
                    setattr(sale, key, value)
            if ("class_count" in fields or "amount" in fields) \
                    and "unit_price" not in fields:
                sale.unit_price = self._unit_price(
                    int(sale.class_count or 0), int(sale.amount or 0)
                )
            sess.flush()
            return sale

        if session:
            return _do(session)

        with self._get_session() as sess:
            sale = _do(sess)
            sess.commit()
            return sale

    def delete(self, sale_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Sale, sale_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Sale]:
        return self.get_all(
            Sale, order_by=(Sale.sale_date, Sale.created_at), session=session
        )

    def list_by_member(self, member_id: str,
                       session: Optional[Session] = None) -> List[Sale]:
        """获取会员的全部销售记录，按购买日期升序（同日按创建顺序）。"""
        def _query(sess):
            return sess.query(Sale).filter(
                Sale.member_id == member_id
            ).order_by(Sale.sale_date, Sale.created_at).all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def get_latest_for_member(self, member_id: str,
                              session: Optional[Session] = None
                              ) -> Optional[Sale]:
        """获取会员最近一次购买。"""
        sales = self.list_by_member(member_id, session=session)
        return sales[-1] if sales else None


class SessionRepository(BaseCRUD):
    """课时消耗 仓库。

    completion_source_id 是指向日程事件的弱引用，不设外键，
    事件被删除后课时记录保留。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def create(self, session_data: Dict[str, Any],
               session: Optional[Session] = None) -> ClassSession:
        """创建课时记录。

        Args:
            session_data: 课时数据字典，支持以下键：
                - member_id: 会员ID（必填）
                - member_name: 会员姓名（必填）
                - session_date: 上课日期（必填）
                - class_count: 节数（可选，默认1）
                - unit_price: 单价（可选，默认0）
                - completion_source_id: 来源日程事件ID（可选）
            session: 外部会话（可选）。

        Returns:
            新创建的 ClassSession 对象。
        """
        session_date = self._parse_date(
            session_data.get("session_date"), "Session date"
        )

        def _do(sess):
            record = ClassSession(
                id=self._next_id(ClassSession, "session", session_date, sess),
                session_date=session_date,
                member_id=session_data["member_id"],
                member_name=session_data.get("member_name", ""),
                class_count=session_data.get("class_count", 1),
                unit_price=session_data.get("unit_price", 0),
                completion_source_id=session_data.get("completion_source_id"),
            )
            sess.add(record)
            sess.flush()
            return record

        if session:
            return _do(session)

        with self._get_session() as sess:
            record = _do(sess)
            sess.commit()
            return record

    def update(self, session_id: str,
               session: Optional[Session] = None,
               **fields) -> Optional[ClassSession]:
        if "session_date" in fields:
            fields["session_date"] = self._parse_date(
                fields["session_date"], "Session date"
            )
        return self.update_by_id(
            ClassSession, session_id, session=session, **fields
        )

    def delete(self, session_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(ClassSession, session_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[ClassSession]:
        return self.get_all(
            ClassSession, order_by=ClassSession.session_date, session=session
        )

    def list_by_member(self, member_id: str,
                       session: Optional[Session] = None
                       ) -> List[ClassSession]:
        return self.get_all(
            ClassSession, filters={"member_id": member_id},
            order_by=ClassSession.session_date, session=session
        )

    def used_sessions(self, member_id: str,
                      session: Optional[Session] = None) -> int:
        """会员累计已用节数（课时记录 class_count 之和）。"""
        def _query(sess):
            total = sess.query(func.sum(ClassSession.class_count)).filter(
                ClassSession.member_id == member_id
            ).scalar()
            return int(total or 0)

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def find_by_source(self, event_id: str,
                       session: Optional[Session] = None
                       ) -> List[ClassSession]:
        """按来源日程事件反查课时记录。"""
        return self.get_all(
            ClassSession, filters={"completion_source_id": event_id},
            session=session
        )

    def backfill_completion_links(self) -> int:
        """一次性迁移：为旧数据补全 completion_source_id。

        旧数据中手动登记的课时只通过事件 ID 约定 ``schedule-{session_id}``
        与日程事件关联。对每条缺少 completion_source_id 的课时，若存在
        按约定命名的事件，则写入该事件 ID。

        Returns:
            补全的课时记录数。
        """
        with self._get_session() as sess:
            orphans = sess.query(ClassSession).filter(
                ClassSession.completion_source_id.is_(None)
            ).all()
            linked = 0
            for record in orphans:
                event_id = f"{SYNTHESIZED_EVENT_PREFIX}{record.id}"
                if sess.get(Event, event_id) is not None:
                    record.completion_source_id = event_id
                    linked += 1
            sess.commit()

        logger.info(
            f"Backfilled completion links for {linked} of "
            f"{len(orphans)} unlinked sessions"
        )
        return linked
