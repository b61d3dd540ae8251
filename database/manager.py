"""数据库管理器 —— 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库：

- ``db.orders``：订单仓库（唯一的订单写入口）
- ``db.counters``：序列计数器仓库
- ``db.archives``：归档快照仓库
"""
from typing import Optional

from sqlalchemy.orm import Session

from .connection import DatabaseConnection
from .order_repos import ArchiveRepository, OrderRepository
from .system_repos import CounterRepository


class DatabaseManager:
    """数据库管理器 —— 统一门面。

    Attributes:
        conn: 数据库连接管理器。
        orders: 订单仓库。
        counters: 序列计数器仓库。
        archives: 归档快照仓库。

    Example::

        db = DatabaseManager("sqlite:///data/store.db")
        db.create_tables()
        order_id = db.next_sequence("orderId")
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        self.orders = OrderRepository(self.conn)
        self.counters = CounterRepository(self.conn)
        self.archives = ArchiveRepository(self.conn)

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

    def next_sequence(self, name: str) -> int:
        """发放指定序列的下一个值。"""
        return self.counters.next(name)

    def close(self) -> None:
        """关闭数据库连接。"""
        self.conn.close()
