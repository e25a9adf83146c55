"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 手动创建 .env 文件，例如 DATABASE_URL=sqlite:///data/fitdesk.db
    2. 或直接设置同名环境变量
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/fitdesk.db"

    # ========== 本地缓存（先展示缓存，后台刷新） ==========
    cache_path: str = "data/cache.json"
    cache_key: str = "fitness-data-cache"

    # ========== 会员预测 ==========
    re_registration_threshold: int = 3   # 剩余次数 <= 阈值时提示续课
    re_register_active_months: int = 5   # 最近 N 个月内上过课才算续课候选
    dormant_after_months: int = 6        # 超过 N 个月未上课视为休眠
    low_engagement_days: int = 30

    # ========== 后台任务 ==========
    refresh_interval_minutes: int = 5
    reminder_hour: int = 9
    reminder_minute: int = 0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
