#!/usr/bin/env python3
"""PS 订单管理 - Web 应用入口

启动订单管理服务，提供：
1. 订单计时计费 HTTP API
2. 到期 cash 订单自动结束（每分钟扫描）
3. Telegram 通知推送

使用方式：
    python app.py

    # 指定端口
    python app.py --port 8080

    # 指定数据库
    python app.py --db sqlite:///data/store.db

环境变量（在 .env 文件中配置，运行 python scripts/setup_env.py 生成）：
    DATABASE_URL      数据库连接地址
    WEB_PORT          Web 端口（默认 3000）
    WEB_USERNAME      登录用户名（默认 admin）
    WEB_PASSWORD      登录密码
    WEB_SECRET_KEY    JWT 密钥
    SUPER_KEY         超级管理员密钥
    PRICE_PER_HOUR    每小时价格（默认 15000）
    BOT_TOKEN/CHAT_ID Telegram 通知配置
"""
import argparse
import asyncio
import signal
import sys

from loguru import logger


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def _cleanup(web, scheduler, notifier, db):
    """统一资源清理函数。

    确保 Web 服务器、调度器、通知线程和数据库连接被正确关闭。
    """
    logger.info("正在清理资源...")

    if web is not None:
        try:
            await web.shutdown()
        except Exception as e:
            logger.warning(f"停止 Web 服务器时出错: {e}")

    if scheduler is not None:
        try:
            scheduler.stop()
        except Exception as e:
            logger.warning(f"停止调度器时出错: {e}")

    if notifier is not None:
        notifier.close(wait=True)

    if db is not None:
        try:
            db.close()
        except Exception as e:
            logger.warning(f"关闭数据库连接时出错: {e}")

    logger.info("服务已停止")


async def main():
    from config.settings import settings

    parser = argparse.ArgumentParser(description="PS 订单管理 Web 应用")
    parser.add_argument("--host", default=settings.web_host,
                        help=f"监听地址 (默认: {settings.web_host})")
    parser.add_argument("--port", type=int, default=settings.web_port,
                        help=f"监听端口 (默认: {settings.web_port})")
    parser.add_argument("--db", default=None,
                        help="数据库连接 URL")
    parser.add_argument("--no-sweeper", action="store_true",
                        help="不启动到期订单自动结束任务")
    args = parser.parse_args()

    setup_logging(settings.log_level)

    # 用于 finally 清理的引用
    web = None
    scheduler = None
    notifier = None
    db = None

    try:
        from billing.archive import ArchiveManager
        from billing.clock import Clock
        from billing.lifecycle import OrderLifecycleManager
        from billing.messages import MessageFormatter
        from billing.scheduler import Scheduler, parse_daily_time
        from billing.sweeper import AutoCompletionSweeper
        from database import DatabaseManager
        from interface.telegram.channel import TelegramNotifier
        from interface.web.channel import WebChannel

        # 初始化数据库
        db = DatabaseManager(args.db)
        db.create_tables()
        logger.info(f"数据库已连接: {db.database_url}")

        clock = Clock(settings.timezone)
        logger.info(f"当前时间（{settings.timezone}）: {clock.format(clock.now())}")

        notifier = TelegramNotifier(
            bot_token=settings.bot_token,
            chat_id=settings.chat_id,
            api_base=settings.telegram_api_base,
            timeout=settings.telegram_timeout,
        )
        if not notifier.is_configured:
            logger.warning("未配置 BOT_TOKEN / CHAT_ID，Telegram 通知将不可用")

        formatter = MessageFormatter(clock, settings.currency_label)
        lifecycle = OrderLifecycleManager(
            db, notifier, clock,
            price_per_hour=settings.price_per_hour,
            default_station=settings.default_station,
            formatter=formatter,
        )
        archive_manager = ArchiveManager(
            db, notifier, clock,
            price_per_hour=settings.price_per_hour,
            formatter=formatter,
        )

        # 定时任务
        scheduler = Scheduler(timezone=settings.timezone)
        if not args.no_sweeper:
            scheduler.add_interval_task(
                AutoCompletionSweeper(lifecycle),
                seconds=settings.sweep_interval_seconds,
                task_id="auto_complete",
                task_name="到期订单自动结束",
            )
        daily_time = parse_daily_time(settings.daily_report_time)
        if daily_time:
            scheduler.add_daily_task(
                archive_manager.send_daily_report,
                hour=daily_time[0],
                minute=daily_time[1],
                task_id="daily_report",
                task_name="日报推送",
            )
        scheduler.start()

        web = WebChannel(
            lifecycle,
            archive_manager,
            host=args.host,
            port=args.port,
            username=settings.web_username,
            password=settings.web_password,
            secret_key=settings.web_secret_key,
            super_key=settings.super_key,
            static_dir=settings.static_dir,
            jwt_algorithm=settings.jwt_algorithm,
            jwt_expire_hours=settings.jwt_expire_hours,
        )
        await web.startup()

        print()
        print("=" * 60)
        print(f"  PS 订单管理已启动!")
        print(f"  访问地址: http://localhost:{args.port}")
        print(f"  数据库: {db.database_url}")
        print(f"  每小时价格: {settings.price_per_hour}")
        print(f"  Telegram: {'已启用' if notifier.is_configured else '未配置'}")
        print("=" * 60)
        print("  按 Ctrl+C 停止服务")
        print()

        loop = asyncio.get_running_loop()
        shutdown_event = asyncio.Event()
        _shutdown_requested = False

        def signal_handler(signum):
            """处理退出信号"""
            nonlocal _shutdown_requested
            if _shutdown_requested:
                logger.warning("再次收到退出信号，强制退出...")
                for task in asyncio.all_tasks(loop):
                    task.cancel()
                return
            _shutdown_requested = True
            logger.info(f"收到信号 {signum}，正在关闭服务...")
            shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler, sig)

        # 保持运行，直到收到退出信号
        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("任务被取消，正在清理...")
    except KeyboardInterrupt:
        logger.info("收到键盘中断信号")
    finally:
        await _cleanup(web, scheduler, notifier, db)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        print("\n已停止。")
