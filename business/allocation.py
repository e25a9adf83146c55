"""FIFO 课时分配引擎。

会员的累计已用课时（used_sessions）按购买日期从早到晚依次摊到各个课程包上：
最早的课程包先用完，再轮到下一个。第一个仍有剩余容量的课程包就是“当前生效”
的课程包，新记录的课时按它的单价计价。

所有函数都是纯函数，输入为单个会员的销售记录列表。
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .records import SaleEntry


@dataclass
class AllocatedPurchase:
    """带使用量的课程包

    Attributes:
        sale: 原始销售记录。
        used_count: 分摊到该课程包的已用节数，不超过 class_count。
    """
    sale: SaleEntry
    used_count: int

    @property
    def remaining(self) -> int:
        return self.sale.class_count - self.used_count

    @property
    def is_exhausted(self) -> bool:
        return self.used_count >= self.sale.class_count


@dataclass
class ActivePrice:
    """当前生效课程包的单价信息"""
    unit_price: int
    sale: SaleEntry
    remaining_in_purchase: int


@dataclass
class SessionSplit:
    """一次批量记录课时的计价拆分

    Attributes:
        chunks: (节数, 单价) 列表，按课程包从旧到新排列。
        overflow: 超出全部课程包容量的节数（按最新课程包单价计价）。
    """
    chunks: List[Tuple[int, int]]
    overflow: int = 0


def sort_purchases(purchases: Iterable[SaleEntry]) -> List[SaleEntry]:
    """按购买日期升序排列，同日期保持原始顺序（稳定排序）。"""
    return sorted(purchases, key=lambda sale: sale.sale_date)


def allocate(purchases: Iterable[SaleEntry],
             used_sessions: int) -> List[AllocatedPurchase]:
    """把累计已用课时按 FIFO 分摊到各课程包。

    不做输入校验：负数或超量的 used_sessions 也能得到结果，
    分摊总量恒等于 ``min(used_sessions, 所有课程包节数之和)``。

    Args:
        purchases: 单个会员的销售记录。
        used_sessions: 会员累计已用节数。

    Returns:
        按购买日期升序排列的 AllocatedPurchase 列表。
    """
    remaining = used_sessions
    allocated = []
    for sale in sort_purchases(purchases):
        used_for_this = min(sale.class_count, remaining)
        remaining -= used_for_this
        allocated.append(AllocatedPurchase(sale=sale, used_count=used_for_this))
    return allocated


def find_active_purchase(
        allocated: Iterable[AllocatedPurchase]) -> Optional[AllocatedPurchase]:
    """返回最早的仍有剩余容量的课程包，全部用完返回 None。"""
    for purchase in allocated:
        if purchase.used_count < purchase.sale.class_count:
            return purchase
    return None


def find_active_unit_price(purchases: Iterable[SaleEntry],
                           used_sessions: int) -> Optional[ActivePrice]:
    """查找新课时应使用的单价（allocate 的提前退出版本）。

    Returns:
        ActivePrice；所有课程包都已用完时返回 None，
        调用方必须阻止记录新课时。
    """
    to_account_for = used_sessions
    for sale in sort_purchases(purchases):
        if to_account_for < sale.class_count:
            return ActivePrice(
                unit_price=sale.unit_price,
                sale=sale,
                remaining_in_purchase=sale.class_count - max(to_account_for, 0),
            )
        to_account_for -= sale.class_count
    return None


def remaining_balance(purchases: Iterable[SaleEntry], used_sessions: int) -> int:
    """剩余节数（可能为负，表示超额使用）。"""
    return sum(sale.class_count for sale in purchases) - used_sessions


def split_new_sessions(purchases: Iterable[SaleEntry], used_sessions: int,
                       class_count: int) -> SessionSplit:
    """把一次记录的多节课按课程包拆分计价。

    从第一个有剩余容量的课程包开始依次占用，跨越课程包时拆成多段，
    各段使用对应课程包的单价。超出所有课程包容量的部分记为 overflow。
    """
    ordered = sort_purchases(purchases)
    to_allocate = class_count
    cumulative = 0
    chunks: List[Tuple[int, int]] = []
    for sale in ordered:
        if to_allocate <= 0:
            break
        purchase_end = cumulative + sale.class_count
        start_point = max(cumulative, used_sessions)
        if start_point < purchase_end:
            take = min(to_allocate, purchase_end - start_point)
            if take > 0:
                chunks.append((take, sale.unit_price))
                to_allocate -= take
        cumulative = purchase_end

    overflow = max(to_allocate, 0) if ordered else 0
    return SessionSplit(chunks=chunks, overflow=overflow)
