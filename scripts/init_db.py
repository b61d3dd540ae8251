"""初始化数据库"""
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from billing.lifecycle import ORDER_SEQUENCE
from loguru import logger


def init_database():
    """初始化数据库表，并报告订单编号序列的当前值"""
    logger.info("Initializing database...")

    db = DatabaseManager()

    logger.info("Creating tables...")
    db.create_tables()

    current = db.counters.current(ORDER_SEQUENCE)
    if current is None:
        logger.info(f"Sequence '{ORDER_SEQUENCE}' not created yet, first order will get 1")
    else:
        logger.info(f"Sequence '{ORDER_SEQUENCE}' is at {current}")

    db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    init_database()
