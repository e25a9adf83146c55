"""货币与日期工具函数。

纯函数，无状态。日期范围计算遵循一周从周日开始的约定，
星期索引统一为 0=周日 .. 6=周六。
"""
import calendar
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Tuple, Union

DateLike = Union[date, datetime]


def format_currency(value: Any) -> str:
    """格式化金额为千分位字符串。

    Args:
        value: 数字或数字字符串（可带逗号）。

    Returns:
        例如 ``"1,500,000"``；空值或非数字返回空字符串。
    """
    if value is None:
        return ""
    text = str(value).replace(",", "").strip()
    if text == "":
        return ""
    try:
        number = float(text)
    except ValueError:
        return ""
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.2f}".rstrip("0").rstrip(".")


def parse_currency(value: Any) -> int:
    """解析千分位金额字符串，无效输入返回 0。"""
    if value is None:
        return 0
    text = str(value).replace(",", "").strip()
    try:
        return int(float(text))
    except ValueError:
        return 0


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def start_of_day(value: DateLike) -> datetime:
    return _as_datetime(value).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: DateLike) -> datetime:
    return _as_datetime(value).replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_week(value: DateLike) -> datetime:
    """所在周的周日 00:00。"""
    day = start_of_day(value)
    return day - timedelta(days=weekday_index(day))


def end_of_week(value: DateLike) -> datetime:
    """所在周的周六 23:59:59.999999。"""
    return end_of_day(start_of_week(value) + timedelta(days=6))


def start_of_month(value: DateLike) -> datetime:
    return start_of_day(value).replace(day=1)


def end_of_month(value: DateLike) -> datetime:
    last_day = calendar.monthrange(value.year, value.month)[1]
    return end_of_day(_as_datetime(value).replace(day=last_day))


def this_month_range(today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """本月的起止时间（含月末整天）。"""
    today = today or date.today()
    return start_of_month(today), end_of_month(today)


def months_before(value: date, months: int) -> date:
    """向前推 N 个自然月，日期超出目标月天数时取月末。"""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def weekday_index(value: DateLike) -> int:
    """星期索引，0=周日 .. 6=周六。"""
    return (value.weekday() + 1) % 7


def format_date_iso(value: DateLike) -> str:
    return value.strftime("%Y-%m-%d")


def parse_date(value: Any) -> Optional[date]:
    """解析日期，无法解析时返回 None。

    支持 date/datetime 对象、``YYYY-MM-DD`` 字符串以及 ISO 日期时间字符串
    （只取日期部分）。
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def normalize_date(value: Any) -> str:
    """统一为 ``YYYY-MM-DD``，无效日期返回空字符串（不抛异常）。"""
    parsed = parse_date(value)
    return format_date_iso(parsed) if parsed else ""


def parse_time(value: str) -> int:
    """``HH:MM`` 转为当天的分钟数。

    Raises:
        ValueError: 格式无效。
    """
    hours, minutes = value.strip().split(":")
    total = int(hours) * 60 + int(minutes)
    if not 0 <= int(minutes) < 60 or not 0 <= total < 24 * 60:
        raise ValueError(f"Invalid time: {value}, expected HH:MM")
    return total


def format_time(minutes: int) -> str:
    """分钟数转为 ``HH:MM``（超过 24 小时按当天时钟回绕）。"""
    minutes %= 24 * 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(start_time: str, minutes: int) -> str:
    """计算结束时间，例如 ``add_minutes("14:00", 50) == "14:50"``。"""
    return format_time(parse_time(start_time) + minutes)
