"""记录 ID 生成。

新记录使用便于人工辨认的组合键 ``{entity}-{YYYYMMDD}-{seq}``，
seq 为同一实体同一日期已有记录数 + 1。单操作员场景下足够，
并发写入时可能冲突，因此生成时会跳过已存在的 ID。
"""
from typing import Iterable, Union
from datetime import date

from .dates import parse_date
from .recurrence import new_recurrence_id

__all__ = ["next_record_id", "new_recurrence_id"]


def next_record_id(entity: str, record_date: Union[str, date],
                   existing_ids: Iterable[str]) -> str:
    """生成下一个记录 ID。

    Args:
        entity: 实体前缀，例如 ``member``、``sale``、``session``。
        record_date: 记录日期，无效时按今天处理。
        existing_ids: 该实体已有的全部 ID。

    Returns:
        例如 ``sale-20240304-3``。
    """
    parsed = parse_date(record_date) or date.today()
    prefix = f"{entity}-{parsed.strftime('%Y%m%d')}-"
    taken = {record_id for record_id in existing_ids if record_id.startswith(prefix)}
    seq = len(taken) + 1
    while f"{prefix}{seq}" in taken:
        seq += 1
    return f"{prefix}{seq}"
