#!/usr/bin/env python3
"""健身工作室前台 - 命令行入口

默认打印前台概览：
1. 需要再注册 / 长期未到店的会员
2. 本月计划课时与实际课时
3. 本月销售与教练薪资

使用方式：
    python app.py

    # 指定数据库
    python app.py --db sqlite:///data/fitdesk.db

    # 常驻运行：后台定时刷新数据，每天定时提醒再注册会员
    python app.py --serve

环境变量（在 .env 文件中配置）：
    DATABASE_URL               数据库连接地址
    CACHE_PATH                 本地快照缓存文件
    REFRESH_INTERVAL_MINUTES   后台刷新间隔（默认 5 分钟）
    REMINDER_HOUR              每日提醒时间（默认 9 点）
"""
import argparse
import asyncio
import os
import signal

from loguru import logger


def print_overview(store):
    """打印前台概览"""
    from business.dates import format_currency

    print()
    print("=" * 60)
    print(f"  Members: {len(store.members)}")

    print(f"  Re-registration needed ({len(store.members_to_reregister)}):")
    for member in store.members_to_reregister:
        remaining = member.cumulative_total_sessions - member.used_sessions
        print(f"    - {member.name}: {remaining} session(s) left")

    print(f"  Dormant members ({len(store.dormant_members)}):")
    for member in store.dormant_members:
        print(f"    - {member.name}: last session {member.last_session_date or '-'}")

    print(f"  Sessions this month: {store.current_month_sessions} "
          f"/ planned {store.planned_monthly_sessions}")

    month_sales = store.current_month_sales
    print(f"  Sales this month: {len(month_sales)} "
          f"({format_currency(sum(s.amount for s in month_sales))})")

    salary = store.monthly_salary()
    print(f"  Salary {salary.period}: {format_currency(salary.final_salary)} "
          f"(base {format_currency(salary.base_salary)}, "
          f"incentive {format_currency(salary.session_incentive)})")
    print("=" * 60)
    print()


async def _cleanup(scheduler, db):
    """统一资源清理函数。

    确保调度器和数据库连接被正确关闭。
    """
    logger.info("Cleaning up...")

    # 1. 停止调度器
    if scheduler is not None:
        try:
            scheduler.stop()
        except RuntimeError as e:
            logger.warning(f"Error while stopping scheduler: {e}")

    # 2. 关闭数据库连接（释放连接池）
    if db is not None:
        db.close()

    logger.info("Service stopped")


async def main():
    parser = argparse.ArgumentParser(description="Fitness studio front desk")
    parser.add_argument("--db", default=os.getenv("DATABASE_URL", None),
                        help="database URL")
    parser.add_argument("--serve", action="store_true",
                        help="keep running with background refresh and daily reminder")
    parser.add_argument("--no-cache", action="store_true",
                        help="do not read or write the local snapshot cache")
    args = parser.parse_args()

    # 用于 finally 清理的引用
    scheduler = None
    db = None

    try:
        from database import DatabaseManager
        from business.cache import SnapshotCache
        from business.store import FrontDeskStore

        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"Database connected: {db.database_url}")

        store = FrontDeskStore(db, cache=None if args.no_cache else SnapshotCache())

        # 先展示缓存，再从数据库刷新
        if store.load_cached() and args.serve:
            print_overview(store)
        store.refresh()
        print_overview(store)

        if not args.serve:
            return

        from business.scheduler import Scheduler
        from business.scheduler_tasks import FrontDeskTasks

        scheduler = Scheduler()
        FrontDeskTasks(store).register(scheduler)
        scheduler.start()
        print("  Press Ctrl+C to stop")

        # 设置信号处理
        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()
        _shutdown_requested = False

        def signal_handler(signum):
            """处理退出信号"""
            nonlocal _shutdown_requested
            if _shutdown_requested:
                # 第二次收到信号，强制退出
                logger.warning("Received exit signal again, forcing exit...")
                for task in asyncio.all_tasks(loop):
                    task.cancel()
                return
            _shutdown_requested = True
            logger.info(f"Received signal {signum}, shutting down...")
            shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler, sig)

        # 保持运行，直到收到退出信号
        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("Task cancelled, cleaning up...")
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        await _cleanup(scheduler, db)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
