"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件
    2. 或手动创建 .env 文件（参考 .env.example）
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/store.db"

    # ========== Web 平台配置 ==========
    web_host: str = "0.0.0.0"
    web_port: int = 3000
    web_username: str = "admin"
    web_password: str = "12345"
    web_secret_key: str = "change-me-to-a-random-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 12
    static_dir: str = "public"

    # 超级管理员密钥（清库、归档、回收站等操作）
    super_key: str = "supersecret"

    # ========== 计费 ==========
    price_per_hour: int = 15000
    timezone: str = "Asia/Tashkent"
    default_station: str = "PS1"
    currency_label: str = "so'm"

    # ========== Telegram 通知 ==========
    bot_token: str = ""
    chat_id: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    telegram_timeout: float = 10.0

    # ========== 定时任务 ==========
    sweep_interval_seconds: int = 60
    daily_report_time: str = ""  # HH:MM，留空表示不自动推送日报

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
