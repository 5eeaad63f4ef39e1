"""
刚体模块

固连在关节上的刚体:质量、质心与惯性张量。
"""

import numpy as np
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .joint import Joint
    from .tree import KinematicTree


def check_mass(value: float) -> float:
    """质量必须是有限的非负数"""
    value = float(value)
    if not np.isfinite(value) or value < 0:
        raise ValueError(f"Mass must be finite and non-negative, got {value}")
    return value


def check_finite(value: float, what: str) -> float:
    value = float(value)
    if not np.isfinite(value):
        raise ValueError(f"{what} must be finite, got {value}")
    return value


def _as_inertia_matrix(inertia: Optional[Sequence]) -> np.ndarray:
    if inertia is None:
        return np.zeros((3, 3))
    inertia = np.array(inertia, dtype=np.float64)
    if inertia.shape != (3, 3):
        raise ValueError(f"Expected inertia matrix of shape [3, 3], got {inertia.shape}")
    if not np.all(np.isfinite(inertia)):
        raise ValueError("Inertia matrix must be finite")
    if not np.allclose(inertia, inertia.T):
        raise ValueError("Inertia matrix must be symmetric")
    return inertia


def _as_com(com: Optional[Sequence]) -> np.ndarray:
    if com is None:
        return np.zeros(3)
    com = np.array(com, dtype=np.float64)
    if com.shape != (3,):
        raise ValueError(f"Expected center of mass of shape [3], got {com.shape}")
    if not np.all(np.isfinite(com)):
        raise ValueError("Center of mass must be finite")
    return com


class Body:
    """
    刚体

    同一时刻至多被一个关节持有。通过 KinematicTree.create_body 创建。

    Attributes:
        name: 刚体名称
        mass: 质量
        local_center_of_mass: 关节坐标系下的质心 [3]
        inertia_matrix: 惯性张量 [3, 3] (对称)
    """

    def __init__(self, tree: "KinematicTree", name: str, mass: float = 0.0,
                 local_center_of_mass: Optional[Sequence] = None,
                 inertia_matrix: Optional[Sequence] = None):
        mass = check_mass(mass)
        self.name = name
        self._tree = tree
        self._owner: Optional[int] = None
        self._mass = float(mass)
        self._com = _as_com(local_center_of_mass)
        self._inertia = _as_inertia_matrix(inertia_matrix)

    @property
    def tree(self) -> "KinematicTree":
        return self._tree

    @property
    def mass(self) -> float:
        return self._mass

    @mass.setter
    def mass(self, value: float):
        self._mass = check_mass(value)

    @property
    def local_center_of_mass(self) -> np.ndarray:
        return self._com.copy()

    @local_center_of_mass.setter
    def local_center_of_mass(self, value: Sequence):
        self._com = _as_com(value)

    @property
    def inertia_matrix(self) -> np.ndarray:
        return self._inertia.copy()

    @inertia_matrix.setter
    def inertia_matrix(self, value: Sequence):
        self._inertia = _as_inertia_matrix(value)

    def owner_joint(self) -> Optional["Joint"]:
        """持有该刚体的关节, 未固连时为 None"""
        if self._owner is None:
            return None
        return self._tree.joint(self._owner)

    def __repr__(self) -> str:
        owner = self.owner_joint()
        owner_name = owner.name if owner is not None else None
        return f"Body(name={self.name!r}, mass={self._mass}, owner={owner_name!r})"
