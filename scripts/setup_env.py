#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

逐项询问 config/settings.py 中的配置，直接回车使用默认值。
"""
import os

# 项目根目录
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


# 配置项定义：(分组, env_key, 描述, 默认值)
CONFIG_ITEMS = [
    ("数据库", "DATABASE_URL", "数据库连接地址", "sqlite:///data/fitdesk.db"),

    ("本地缓存", "CACHE_PATH", "快照缓存文件路径", "data/cache.json"),

    ("会员预测", "RE_REGISTRATION_THRESHOLD", "剩余节数不超过多少时提示续课", "3"),
    ("会员预测", "RE_REGISTER_ACTIVE_MONTHS", "最近几个月内上过课才算续课候选", "5"),
    ("会员预测", "DORMANT_AFTER_MONTHS", "超过几个月未上课视为休眠", "6"),
    ("会员预测", "LOW_ENGAGEMENT_DAYS", "期间统计中的低活跃天数", "30"),

    ("后台任务", "REFRESH_INTERVAL_MINUTES", "后台刷新间隔（分钟）", "5"),
    ("后台任务", "REMINDER_HOUR", "每日续课提醒时间（小时）", "9"),
    ("后台任务", "REMINDER_MINUTE", "每日续课提醒时间（分钟）", "0"),
]


def build_env_content(values):
    """按分组生成 .env 文件内容

    Args:
        values: {env_key: 值}，缺少的键使用默认值
    """
    lines = ["# FitDesk 配置文件", "# 由 scripts/setup_env.py 自动生成"]
    current_section = None
    for section, key, _, default in CONFIG_ITEMS:
        if section != current_section:
            current_section = section
            lines.append("")
            lines.append(f"# === {section} ===")
        lines.append(f"{key}={values.get(key) or default}")
    return "\n".join(lines) + "\n"


def main():
    print()
    print("=" * 60)
    print("  FitDesk 配置向导")
    print("=" * 60)
    print()

    if os.path.exists(ENV_FILE):
        print(f"检测到已有 .env 文件: {ENV_FILE}")
        choice = input("是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return
        print()

    values = {}
    for _, key, desc, default in CONFIG_ITEMS:
        print(f"{desc}")
        values[key] = input(f"  {key} (默认: {default}): ").strip()
        print()

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write(build_env_content(values))

    print("=" * 60)
    print(f"  配置文件已生成: {ENV_FILE}")
    print()
    print("  初始化数据库：")
    print("    python scripts/init_db.py --demo")
    print("  启动应用：")
    print("    python app.py --serve")
    print("=" * 60)


if __name__ == "__main__":
    main()
