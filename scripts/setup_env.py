#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

会引导用户填写必要的配置项，生成 .env 文件。
"""
import os

# 项目根目录
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


# 配置项定义：(env_key, 描述, 默认值, 是否必填)
CONFIG_ITEMS = [
    # === 数据库 ===
    ("DATABASE_URL", "数据库连接地址", "sqlite:///data/store.db", False),

    # === Web 平台 ===
    ("WEB_HOST", "Web 监听地址", "0.0.0.0", False),
    ("WEB_PORT", "Web 监听端口", "3000", False),
    ("WEB_USERNAME", "Web 登录用户名", "admin", False),
    ("WEB_PASSWORD", "Web 登录密码（必填）", "", True),
    ("WEB_SECRET_KEY", "Web JWT 密钥（建议修改为随机字符串）", "change-me-to-a-random-secret-key", False),
    ("SUPER_KEY", "超级管理员密钥（清库、归档等操作，必填）", "", True),

    # === 计费 ===
    ("PRICE_PER_HOUR", "每小时价格", "15000", False),
    ("TIMEZONE", "时区", "Asia/Tashkent", False),
    ("DEFAULT_STATION", "默认游戏机名称", "PS1", False),

    # === Telegram ===
    ("BOT_TOKEN", "Telegram Bot Token（留空则不推送通知）", "", False),
    ("CHAT_ID", "Telegram 群组 / 会话 ID", "", False),

    # === 定时任务 ===
    ("DAILY_REPORT_TIME", "每日自动推送日报时间 HH:MM（留空不推送）", "", False),
]

SECTION_NAMES = {
    "DATABASE": "# === 数据库配置 ===",
    "WEB": "# === Web 平台配置 ===",
    "SUPER": "# === Web 平台配置 ===",
    "PRICE": "# === 计费配置 ===",
    "TIMEZONE": "# === 计费配置 ===",
    "DEFAULT": "# === 计费配置 ===",
    "BOT": "# === Telegram 通知 ===",
    "CHAT": "# === Telegram 通知 ===",
    "DAILY": "# === 定时任务 ===",
}


def main():
    print()
    print("=" * 60)
    print("  PS 订单管理 配置向导")
    print("  生成 .env 配置文件")
    print("=" * 60)
    print()

    # 检查是否已存在 .env
    if os.path.exists(ENV_FILE):
        print(f"⚠️  检测到已有 .env 文件: {ENV_FILE}")
        choice = input("是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return
        print()

    env_lines = [
        "# PS 订单管理 配置文件",
        "# 由 scripts/setup_env.py 自动生成",
    ]

    for key, desc, default, required in CONFIG_ITEMS:
        header = SECTION_NAMES.get(key.split("_")[0], "# === 其他配置 ===")
        # 避免重复写同一个 section header
        if header not in env_lines:
            env_lines.append("")
            env_lines.append(header)

        req_tag = " [必填]" if required else ""
        default_hint = f" (默认: {default})" if default else ""
        print(f"📝 {desc}{req_tag}")

        while True:
            value = input(f"  {key}={default_hint}: ").strip()
            if not value:
                value = default
            if required and not value:
                print(f"  ❌ {key} 是必填项，请输入值。")
                continue
            break

        env_lines.append(f"{key}={value}")
        print()

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write("\n".join(env_lines) + "\n")

    print("=" * 60)
    print(f"  ✅ 配置文件已生成: {ENV_FILE}")
    print()
    print("  初始化数据库：")
    print("    python scripts/init_db.py")
    print()
    print("  启动应用：")
    print("    python app.py")
    print("=" * 60)


if __name__ == "__main__":
    main()
