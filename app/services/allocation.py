"""
货位分配工具
锁定、解锁、出库和拣货单都按同一种贪心方式把目标数量摊到多条库存记录上，
区别只在于候选过滤、排序和每行可分配容量。
"""
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple


class Allocation(NamedTuple):
    parts: List[Tuple[object, int]]  # [(row, amount), ...]
    shortfall: int                   # 未能满足的剩余数量

    @property
    def allocated(self):
        return sum(amount for _, amount in self.parts)


def allocate(rows: Iterable, target: int, capacity: Callable[[object], int],
             sort_key: Optional[Callable] = None, reverse: bool = False,
             include: Optional[Callable[[object], bool]] = None) -> Allocation:
    """
    贪心分配
    :param rows: 候选行
    :param target: 需要分配的总量
    :param capacity: 每行可分配数量
    :param sort_key: 访问顺序（为空则保持原顺序）
    :param reverse: 是否降序
    :param include: 候选过滤条件
    :return: Allocation(parts, shortfall)，只包含分配量大于 0 的行
    """
    candidates = [r for r in rows if include is None or include(r)]
    if sort_key is not None:
        # sorted 是稳定排序，相同键保持查询顺序
        candidates = sorted(candidates, key=sort_key, reverse=reverse)

    remaining = target
    parts = []
    for row in candidates:
        if remaining <= 0:
            break
        amount = min(remaining, capacity(row))
        if amount <= 0:
            continue
        parts.append((row, amount))
        remaining -= amount

    return Allocation(parts=parts, shortfall=max(remaining, 0))
