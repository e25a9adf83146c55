"""系统数据仓库：系统级设置的数据访问层。

以键值对形式保存系统设置（值为 JSON），目前用于持久化薪资默认设置。
"""
from typing import Optional, Dict, Any
from datetime import datetime

from loguru import logger

from config.business_config import business_config
from .base_crud import BaseCRUD
from .connection import DatabaseConnection
from .models import AppSetting

SALARY_DEFAULTS_KEY = "salary_defaults"


class SettingsRepository(BaseCRUD):
    """系统设置 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, key: str, default: Any = None) -> Any:
        """读取设置值，不存在时返回 default。"""
        with self._get_session() as session:
            setting = session.get(AppSetting, key)
            return setting.value if setting is not None else default

    def set(self, key: str, value: Any) -> None:
        """写入设置值（存在则覆盖）。

        Args:
            key: 设置键。
            value: 设置值（任意 JSON 可序列化对象）。
        """
        with self._get_session() as session:
            setting = session.get(AppSetting, key)
            if setting is None:
                session.add(AppSetting(key=key, value=value))
            else:
                setting.value = value
                setting.updated_at = datetime.utcnow()
            session.commit()
        logger.info(f"Saved setting '{key}'")

    def delete(self, key: str) -> bool:
        return self.delete_by_id(AppSetting, key)

    def get_salary_defaults(self) -> Dict[str, Any]:
        """读取薪资默认设置，未保存过的键使用 business_config 中的默认值。"""
        defaults = dict(business_config.get_salary_defaults())
        saved: Optional[Dict[str, Any]] = self.get(SALARY_DEFAULTS_KEY)
        if saved:
            defaults.update(saved)
        return defaults

    def save_salary_defaults(self, values: Dict[str, Any]) -> None:
        self.set(SALARY_DEFAULTS_KEY, dict(values))
