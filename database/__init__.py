"""数据库模块：会员、销售、课时、日程等数据的持久化层。

对外只暴露 DatabaseManager；各子仓库通过它的属性访问。
"""
from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
