"""教练薪资计算。

月薪 = 基本工资 + 课时提成（当月课时收入 × 提成比例）。
销售提成单独列出，不计入月薪总额。开启四大保险/所得税时按
business_config 中的费率逐项向下取整扣除。
"""
import math
from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from config.business_config import business_config

from .dates import parse_date
from .records import MemberSession, SaleEntry

HISTORY_MONTHS = 36
MONTHLY_ROWS = 12
QUARTERLY_ROWS = 8
YEARLY_ROWS = 3


@dataclass
class SalaryDefaults:
    """薪资默认设置（可在设置中修改并持久化）

    Attributes:
        incentive_rate: 课时提成比例，百分数（50 表示 50%）。
        sales_incentive_rate: 销售提成比例，百分数。
    """
    base_salary: int = 2100000
    incentive_rate: float = 50
    sales_incentive_rate: float = 0
    tax_enabled: bool = False
    insurances_enabled: bool = False

    @classmethod
    def from_config(cls) -> "SalaryDefaults":
        return cls.from_dict(business_config.get_salary_defaults())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SalaryDefaults":
        """从字典构造，忽略未知键，缺失的键取默认值。"""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SalaryPeriodStats:
    period: str
    total_salary: int = 0
    base_salary: int = 0
    session_incentive: int = 0
    sales_incentive: int = 0
    total_deduction: int = 0
    final_salary: int = 0
    total_sessions_count: int = 0
    total_sales_amount: int = 0

    def add(self, other: "SalaryPeriodStats") -> None:
        for f in fields(self):
            if f.name != "period":
                setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))


@dataclass
class MonthlySalary(SalaryPeriodStats):
    year: int = 0
    month: int = 0


@dataclass
class SalaryStatistics:
    monthly: List[SalaryPeriodStats]
    quarterly: List[SalaryPeriodStats]
    yearly: List[SalaryPeriodStats]


def compute_deductions(total_salary: int, defaults: SalaryDefaults,
                       rates: Optional[Dict[str, float]] = None) -> int:
    """计算扣除总额（四大保险 + 所得税）。"""
    rates = rates or business_config.get_payroll_rates()
    deduction = 0
    if defaults.insurances_enabled:
        national_pension = math.floor(total_salary * rates["national_pension"])
        health_insurance = math.floor(total_salary * rates["health_insurance"])
        long_term_care = math.floor(health_insurance * rates["long_term_care_of_health"])
        employment_insurance = math.floor(total_salary * rates["employment_insurance"])
        deduction += national_pension + health_insurance + long_term_care + employment_insurance
    if defaults.tax_enabled:
        deduction += math.floor(total_salary * rates["tax"])
    return deduction


def _same_month(value: str, year: int, month: int) -> bool:
    parsed = parse_date(value)
    return parsed is not None and parsed.year == year and parsed.month == month


def compute_month(sessions: Iterable[MemberSession], sales: Iterable[SaleEntry],
                  year: int, month: int, defaults: SalaryDefaults,
                  rates: Optional[Dict[str, float]] = None) -> MonthlySalary:
    """计算某个自然月的薪资。

    Args:
        sessions: 全部课时记录。
        sales: 全部销售记录。
        year: 年份。
        month: 月份，1-12。
        defaults: 薪资设置。
        rates: 扣除费率，默认取 business_config。

    Returns:
        MonthlySalary，period 形如 ``2024.03``。
    """
    monthly_sessions = [s for s in sessions if _same_month(s.session_date, year, month)]
    monthly_sales = [s for s in sales if _same_month(s.sale_date, year, month)]

    session_revenue = sum(s.class_count * s.unit_price for s in monthly_sessions)
    sales_revenue = sum(s.amount for s in monthly_sales)

    session_incentive = math.floor(session_revenue * (defaults.incentive_rate / 100))
    sales_incentive = math.floor(sales_revenue * (defaults.sales_incentive_rate / 100))
    total_salary = defaults.base_salary + session_incentive
    total_deduction = compute_deductions(total_salary, defaults, rates)

    return MonthlySalary(
        period=f"{year}.{month:02d}",
        year=year,
        month=month,
        total_salary=total_salary,
        base_salary=defaults.base_salary,
        session_incentive=session_incentive,
        sales_incentive=sales_incentive,
        total_deduction=total_deduction,
        final_salary=total_salary - total_deduction,
        total_sessions_count=sum(s.class_count for s in monthly_sessions),
        total_sales_amount=sales_revenue,
    )


def _aggregate(months: Iterable[MonthlySalary], key_func, label_func) -> List[SalaryPeriodStats]:
    buckets: Dict[str, SalaryPeriodStats] = {}
    for row in months:
        key = key_func(row)
        if key not in buckets:
            buckets[key] = SalaryPeriodStats(period=label_func(row))
        buckets[key].add(row)
    return [buckets[key] for key in sorted(buckets)]


def salary_statistics(sessions: List[MemberSession], sales: List[SaleEntry],
                      end_date: date, defaults: SalaryDefaults,
                      rates: Optional[Dict[str, float]] = None) -> SalaryStatistics:
    """以 end_date 所在月为终点，生成月/季/年三种粒度的薪资统计。

    - monthly：最近 12 个月，按时间升序；
    - quarterly：最近 24 个月汇总成季度，取最后 8 个季度；
    - yearly：最近 36 个月汇总成年度，取最后 3 年。
    """
    months: List[MonthlySalary] = []
    index = end_date.year * 12 + end_date.month - 1
    for offset in range(HISTORY_MONTHS):
        year, month0 = divmod(index - offset, 12)
        months.append(compute_month(sessions, sales, year, month0 + 1, defaults, rates))

    monthly = list(reversed(months[:MONTHLY_ROWS]))
    quarterly = _aggregate(
        months[:MONTHLY_ROWS * 2],
        key_func=lambda row: f"{row.year}-Q{(row.month - 1) // 3 + 1}",
        label_func=lambda row: f"{row.year} {(row.month - 1) // 3 + 1}Q",
    )[-QUARTERLY_ROWS:]
    yearly = _aggregate(
        months,
        key_func=lambda row: f"{row.year}",
        label_func=lambda row: f"{row.year}",
    )[-YEARLY_ROWS:]
    return SalaryStatistics(monthly=monthly, quarterly=quarterly, yearly=yearly)
