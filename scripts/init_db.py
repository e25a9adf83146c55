"""初始化数据库"""
import sys
import os
import argparse
from datetime import date, timedelta

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from business.records import WeeklyStatus
from loguru import logger

# 演示数据：(姓名, 节数, 单价, 登记距今天数, 已上课节数)
DEMO_MEMBERS = [
    ("Kim Minji", 20, 60000, 120, 18),
    ("Lee Jun", 10, 70000, 200, 4),
    ("Park Sora", 30, 55000, 40, 6),
]


def seed_demo_data(db: DatabaseManager) -> None:
    """写入演示会员、课时和周课表"""
    today = date.today()
    for index, (name, count, price, days_ago, used) in enumerate(DEMO_MEMBERS):
        registered = today - timedelta(days=days_ago)
        created = db.register_member(name, count, price, registration_date=registered)
        member = created["member"]
        logger.info(f"Created demo member: {name}")

        for offset in range(used):
            session_day = registered + timedelta(days=3 * (offset + 1))
            if session_day > today:
                break
            db.record_session(member.id, member.name, session_day, 1, price)

        db.weekly_schedules.create({
            "day_of_week": index + 1,
            "start_time": "10:00",
            "end_time": "10:50",
            "member_id": member.id,
            "member_name": member.name,
            "status": WeeklyStatus.CONFIRMED.value,
        })


def init_database(demo: bool = False, database_url=None):
    """初始化数据库和种子数据"""
    logger.info("Initializing database...")

    # 创建数据库管理器
    db = DatabaseManager(database_url)

    # 创建所有表
    logger.info("Creating tables...")
    db.create_tables()

    # 写入薪资默认设置
    db.save_salary_defaults(db.get_salary_defaults())

    if demo:
        logger.info("Inserting demo data...")
        seed_demo_data(db)

    db.close()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the front desk database")
    parser.add_argument("--demo", action="store_true", help="insert demo members")
    parser.add_argument("--db", default=None, help="database URL")
    args = parser.parse_args()
    init_database(demo=args.demo, database_url=args.db)
