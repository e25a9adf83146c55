"""通用 CRUD 基类。

所有仓库继承 BaseCRUD，获得按主键读取、条件列表、更新、删除等通用能力。
每个方法都接受可选的外部会话：传入时在该会话中执行且不提交，
由调用方统一提交；不传时自行开启会话并提交。
"""
from typing import Optional, List, Dict, Any, Type, Union
from datetime import date

from sqlalchemy.orm import Session

from business.dates import parse_date
from business.ids import next_record_id
from .connection import DatabaseConnection


class BaseCRUD:
    """通用 CRUD 操作基类。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def get_by_id(self, model: Type, record_id: Any,
                  session: Optional[Session] = None) -> Optional[Any]:
        """按主键获取记录。

        Args:
            model: ORM 模型类。
            record_id: 主键值。
            session: 外部会话（可选）。

        Returns:
            ORM 对象，不存在返回 None。
        """
        if session:
            return session.get(model, record_id)

        with self._get_session() as sess:
            return sess.get(model, record_id)

    def get_all(self, model: Type,
                filters: Optional[Dict[str, Any]] = None,
                order_by: Optional[Any] = None,
                session: Optional[Session] = None) -> List[Any]:
        """按等值条件列出记录。

        Args:
            model: ORM 模型类。
            filters: ``{列名: 值}`` 等值过滤条件（可选）。
            order_by: 排序列，多列时传元组（可选）。
            session: 外部会话（可选）。

        Returns:
            ORM 对象列表。
        """
        def _query(sess):
            query = sess.query(model)
            for column, value in (filters or {}).items():
                query = query.filter(getattr(model, column) == value)
            if isinstance(order_by, (list, tuple)):
                query = query.order_by(*order_by)
            elif order_by is not None:
                query = query.order_by(order_by)
            return query.all()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def update_by_id(self, model: Type, record_id: Any,
                     session: Optional[Session] = None,
                     **kwargs) -> Optional[Any]:
        """按主键更新字段。

        只更新模型上存在的字段，值为 None 的字段会被写为 NULL。

        Returns:
            更新后的 ORM 对象，记录不存在返回 None。
        """
        def _do(sess):
            record = sess.get(model, record_id)
            if record is None:
                return None
            for key, value in kwargs.items():
                if hasattr(record, key):
                    setattr(record, key, value)
            sess.flush()
            return record

        if session:
            return _do(session)

        with self._get_session() as sess:
            record = _do(sess)
            sess.commit()
            return record

    def delete_by_id(self, model: Type, record_id: Any,
                     session: Optional[Session] = None) -> bool:
        """按主键删除记录。

        Returns:
            是否删除了记录。
        """
        def _do(sess):
            record = sess.get(model, record_id)
            if record is None:
                return False
            sess.delete(record)
            sess.flush()
            return True

        if session:
            return _do(session)

        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

    def count(self, model: Type, filters: Optional[Dict[str, Any]] = None,
              session: Optional[Session] = None) -> int:
        def _query(sess):
            query = sess.query(model)
            for column, value in (filters or {}).items():
                query = query.filter(getattr(model, column) == value)
            return query.count()

        if session:
            return _query(session)

        with self._get_session() as sess:
            return _query(sess)

    def _next_id(self, model: Type, entity: str,
                 record_date: Union[str, date], sess: Session) -> str:
        """生成 ``{entity}-{YYYYMMDD}-{seq}`` 形式的新主键。"""
        parsed = parse_date(record_date) or date.today()
        prefix = f"{entity}-{parsed.strftime('%Y%m%d')}-"
        existing = [
            row[0] for row in sess.query(model.id).filter(
                model.id.like(f"{prefix}%")
            ).all()
        ]
        return next_record_id(entity, parsed, existing)

    @staticmethod
    def _parse_date(date_value: Any, field_name: str = "Date") -> str:
        """校验并统一日期为 ``YYYY-MM-DD``。

        Args:
            date_value: 日期值（str、date 或 datetime）。
            field_name: 字段名称（用于错误提示）。

        Returns:
            ``YYYY-MM-DD`` 字符串。

        Raises:
            ValueError: 格式无效或缺失。
        """
        if date_value is None or date_value == "":
            raise ValueError(f"{field_name} is required")
        parsed = parse_date(date_value)
        if parsed is None:
            raise ValueError(
                f"Invalid date format: {date_value}, expected YYYY-MM-DD"
            )
        return parsed.strftime("%Y-%m-%d")
