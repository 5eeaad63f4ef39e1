"""
自由度限位模块

按自由度序号存储关节的位置限位与速度限位。
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import List, Tuple

from .errors import BoundOrderError, DofRangeError


@dataclass
class DofBound:
    """单个自由度的限位记录

    Attributes:
        bounded: 位置限位是否生效
        lower: 位置下限
        upper: 位置上限
        velocity_lower: 速度下限
        velocity_upper: 速度上限
    """
    bounded: bool = False
    lower: float = -math.inf
    upper: float = math.inf
    velocity_lower: float = -math.inf
    velocity_upper: float = math.inf


def _check_order(lower: float, upper: float, what: str):
    if math.isnan(lower) or math.isnan(upper):
        raise BoundOrderError(f"{what} must not be NaN, got ({lower}, {upper})")
    if lower > upper:
        raise BoundOrderError(f"{what}: lower bound {lower} is greater than upper bound {upper}")


class DofBoundTable:
    """
    自由度限位表

    序号范围为 [0, n_dofs)。isBounded 为 False 时存储的限位值仅作参考,
    不再检查上下限顺序;速度限位始终生效。
    """

    def __init__(self, n_dofs: int, velocity_limit: float = math.inf):
        """
        Args:
            n_dofs: 自由度数量
            velocity_limit: 初始速度限位绝对值
        """
        if n_dofs < 0:
            raise ValueError(f"n_dofs must be non-negative, got {n_dofs}")
        self._records: List[DofBound] = [
            DofBound(velocity_lower=-velocity_limit, velocity_upper=velocity_limit)
            for _ in range(n_dofs)
        ]

    def __len__(self) -> int:
        return len(self._records)

    @property
    def n_dofs(self) -> int:
        """自由度数量"""
        return len(self._records)

    def record(self, rank: int) -> DofBound:
        """返回指定自由度的限位记录"""
        if isinstance(rank, bool) or not isinstance(rank, (int, np.integer)) \
                or not 0 <= rank < len(self._records):
            raise DofRangeError(
                f"DOF index out of range: {rank} (joint has {len(self._records)} DOF)"
            )
        return self._records[rank]

    # ---- 位置限位 ----

    def is_bounded(self, rank: int) -> bool:
        return self.record(rank).bounded

    def set_bounded(self, rank: int, bounded: bool):
        """设置位置限位是否生效;关闭时保留已存储的限位值"""
        rec = self.record(rank)
        if bounded:
            _check_order(rec.lower, rec.upper, f"DOF {rank} position bounds")
        rec.bounded = bool(bounded)

    def lower_bound(self, rank: int) -> float:
        return self.record(rank).lower

    def upper_bound(self, rank: int) -> float:
        return self.record(rank).upper

    def set_lower_bound(self, rank: int, value: float):
        rec = self.record(rank)
        value = float(value)
        if rec.bounded:
            _check_order(value, rec.upper, f"DOF {rank} position bounds")
        rec.lower = value

    def set_upper_bound(self, rank: int, value: float):
        rec = self.record(rank)
        value = float(value)
        if rec.bounded:
            _check_order(rec.lower, value, f"DOF {rank} position bounds")
        rec.upper = value

    def set_bounds(self, rank: int, lower: float, upper: float):
        """同时设置上下限,并将该自由度标记为有限位"""
        rec = self.record(rank)
        lower, upper = float(lower), float(upper)
        _check_order(lower, upper, f"DOF {rank} position bounds")
        rec.lower = lower
        rec.upper = upper
        rec.bounded = True

    # ---- 速度限位 ----

    def velocity_bounds(self, rank: int) -> Tuple[float, float]:
        rec = self.record(rank)
        return rec.velocity_lower, rec.velocity_upper

    def set_velocity_bounds(self, rank: int, lower: float, upper: float):
        rec = self.record(rank)
        lower, upper = float(lower), float(upper)
        _check_order(lower, upper, f"DOF {rank} velocity bounds")
        rec.velocity_lower = lower
        rec.velocity_upper = upper

    # ---- 数组形式 ----

    @property
    def bounded_mask(self) -> np.ndarray:
        """各自由度限位是否生效, shape: [n_dofs]"""
        return np.array([r.bounded for r in self._records], dtype=bool)

    @property
    def lower_bounds(self) -> np.ndarray:
        """生效的下限数组, 无限位的自由度为 -inf"""
        return np.array([r.lower if r.bounded else -np.inf for r in self._records],
                        dtype=np.float64)

    @property
    def upper_bounds(self) -> np.ndarray:
        """生效的上限数组, 无限位的自由度为 +inf"""
        return np.array([r.upper if r.bounded else np.inf for r in self._records],
                        dtype=np.float64)

    @property
    def velocity_lower_bounds(self) -> np.ndarray:
        return np.array([r.velocity_lower for r in self._records], dtype=np.float64)

    @property
    def velocity_upper_bounds(self) -> np.ndarray:
        return np.array([r.velocity_upper for r in self._records], dtype=np.float64)
