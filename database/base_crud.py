"""通用 CRUD 基类。

所有仓库继承 BaseCRUD 获得会话管理与按主键读写的通用能力，
领域特定的查询由各仓库自行实现。
"""
from typing import Any, Dict, List, Optional, Type

from sqlalchemy.orm import Session

from .connection import DatabaseConnection


class BaseCRUD:
    """仓库基类。

    每个公开方法都接受可选的外部 session：传入时在该会话内执行且不提交，
    否则自行开启会话并提交。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def get_by_id(self, model: Type[Any], record_id: Any,
                  session: Optional[Session] = None) -> Optional[Any]:
        """按主键获取记录。"""
        if session:
            return session.get(model, record_id)
        with self._get_session() as sess:
            return sess.get(model, record_id)

    def get_all(self, model: Type[Any],
                filters: Optional[Dict[str, Any]] = None,
                order_by: Optional[Any] = None,
                session: Optional[Session] = None) -> List[Any]:
        """按等值条件查询记录列表。

        Args:
            model: ORM 模型类。
            filters: 字段名到取值的映射（等值匹配）。
            order_by: 排序表达式（可选）。
        """
        def _query(sess):
            query = sess.query(model)
            if filters:
                query = query.filter_by(**filters)
            if order_by is not None:
                query = query.order_by(order_by)
            return query.all()

        if session:
            return _query(session)
        with self._get_session() as sess:
            return _query(sess)

    def delete_by_id(self, model: Type[Any], record_id: Any,
                     session: Optional[Session] = None) -> bool:
        """按主键删除记录，返回是否删除成功。"""
        def _do(sess):
            record = sess.get(model, record_id)
            if record is None:
                return False
            sess.delete(record)
            return True

        if session:
            return _do(session)
        with self._get_session() as sess:
            deleted = _do(sess)
            sess.commit()
            return deleted

