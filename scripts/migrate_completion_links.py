"""一次性迁移：为旧课时数据补全 completion_source_id

旧数据中手动登记的课时只通过事件 ID 约定 ``schedule-{session_id}`` 与
日程事件关联。运行本脚本后所有能找到对应事件的课时都会写入显式的
completion_source_id，之后不再依赖 ID 约定反查。
"""
import sys
import os
import argparse

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from loguru import logger


def migrate(database_url=None) -> int:
    db = DatabaseManager(database_url)
    try:
        db.create_tables()
        return db.sessions.backfill_completion_links()
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backfill session completion links")
    parser.add_argument("--db", default=None, help="database URL")
    linked = migrate(parser.parse_args().db)
    logger.info(f"Migration finished, {linked} sessions linked")
