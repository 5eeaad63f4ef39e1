"""
关节模块

关节是运动学树的节点:父子连接、自由度限位、固连刚体以及惯性参数。
关节只能通过 KinematicTree 的工厂方法创建,以句柄(handle)在树中寻址。
"""

import logging
import numpy as np
import torch
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence, Tuple

from .bounds import DofBoundTable
from .body import Body, check_finite, check_mass
from .errors import (
    AlreadyParentedError,
    ChildRankError,
    CycleError,
    DuplicateChildError,
    InvariantError,
    TreeMismatchError,
)
from .transform import is_rigid_transform, to_dynamics_format, to_geometric_format

if TYPE_CHECKING:
    from .tree import KinematicTree

logger = logging.getLogger(__name__)

# 各关节类型的自由度数量
JOINT_DOFS = {
    'revolute': 1,
    'continuous': 1,
    'prismatic': 1,
    'free_flyer': 6,
    'fixed': 0,
}

# 需要轴向的关节类型
AXIAL_JOINT_TYPES = ('revolute', 'continuous', 'prismatic')


def _inertia_component(i: int, j: int, doc: str):
    """惯性张量分量属性, 设置时保持对称"""

    def getter(self) -> float:
        return float(self._inertial_holder()._inertia[i, j])

    def setter(self, value: float):
        value = check_finite(value, f"Inertia component {i}{j}")
        holder = self._inertial_holder()
        holder._inertia[i, j] = value
        holder._inertia[j, i] = value

    return property(getter, setter, doc=doc)


def _com_component(i: int, doc: str):
    """质心分量属性"""

    def getter(self) -> float:
        return float(self._inertial_holder()._com[i])

    def setter(self, value: float):
        self._inertial_holder()._com[i] = check_finite(value, f"Center of mass component {i}")

    return property(getter, setter, doc=doc)


class Joint:
    """
    关节

    Attributes:
        name: 关节名称(树内通常唯一, 但不强制)
        joint_type: 关节类型 ('revolute', 'continuous', 'prismatic', 'free_flyer', 'generic')
        axis: 转轴/平移轴 (单位向量), 无轴关节为 None
    """

    def __init__(self, tree: "KinematicTree", handle: int, name: str,
                 joint_type: str, n_dofs: int,
                 position: Optional[np.ndarray] = None,
                 axis: Optional[Sequence[float]] = None):
        """
        由 KinematicTree 调用, 不要直接实例化

        Args:
            tree: 所属的运动学树
            handle: 在树中的句柄
            name: 关节名称
            joint_type: 关节类型
            n_dofs: 自由度数量
            position: 相对父关节的初始位姿 (4x4), None 表示单位变换
            axis: 关节轴向
        """
        self._tree = tree
        self._handle = handle
        self.name = name
        self.joint_type = joint_type

        if joint_type in AXIAL_JOINT_TYPES:
            axis = np.asarray(axis if axis is not None else (0.0, 0.0, 1.0), dtype=np.float64)
            norm = np.linalg.norm(axis)
            if axis.shape != (3,) or norm == 0:
                raise ValueError(f"Joint axis must be a non-zero 3-vector, got {axis}")
            self.axis = axis / norm
        else:
            self.axis = None

        self._bounds = DofBoundTable(n_dofs, tree.config.default_velocity_limit)

        # 树结构 (句柄)
        self._parent: Optional[int] = None
        self._children: List[int] = []

        # 固连刚体与惯性参数
        self._body: Optional[Body] = None
        self._mass = 0.0
        self._com = np.zeros(3)
        self._inertia = np.zeros((3, 3))

        self._position = np.eye(4)
        self._dynamics_position = to_dynamics_format(
            self._position, dtype=tree.config.dtype, device=tree.config.device)
        if position is not None:
            self.set_current_position(position)

    # ------------------------------------------------------------------
    # 基本信息
    # ------------------------------------------------------------------

    @property
    def tree(self) -> "KinematicTree":
        """所属运动学树"""
        return self._tree

    @property
    def handle(self) -> int:
        """在树中的句柄, 创建后不变"""
        return self._handle

    @property
    def n_dofs(self) -> int:
        """自由度数量"""
        return self._bounds.n_dofs

    @property
    def bounds(self) -> DofBoundTable:
        """自由度限位表"""
        return self._bounds

    def is_component_clonable(self) -> bool:
        """外部编辑器是否可以复制该关节"""
        return True

    # ------------------------------------------------------------------
    # 位姿
    # ------------------------------------------------------------------

    def current_position(self) -> np.ndarray:
        """相对父关节的位姿 (几何层表示)"""
        return self._position.copy()

    def dynamics_position(self) -> torch.Tensor:
        """相对父关节的位姿 (动力学层表示)"""
        return self._dynamics_position.clone()

    def set_current_position(self, matrix: np.ndarray):
        """
        设置相对父关节的位姿, 同步更新动力学层表示

        Raises:
            TransformFormatError: 矩阵形状不是 4x4
            ValueError: 开启位姿校验时矩阵不是刚体变换
        """
        self._set_position(matrix, self._tree.config.rigid_tolerance)

    def set_dynamics_position(self, matrix: torch.Tensor):
        """
        以动力学层表示设置位姿

        刚体校验的容差不小于输入张量精度 (如 float32) 的舍入误差。
        """
        if not isinstance(matrix, torch.Tensor):
            matrix = torch.as_tensor(matrix, dtype=torch.float64)
        tol = self._tree.config.rigid_tolerance
        if matrix.is_floating_point():
            tol = max(tol, 10 * torch.finfo(matrix.dtype).eps)
        self._set_position(to_geometric_format(matrix), tol)

    def _set_position(self, matrix: np.ndarray, tol: float):
        config = self._tree.config
        dynamics = to_dynamics_format(matrix, dtype=config.dtype, device=config.device)
        if dynamics.dim() != 2:
            raise ValueError(f"Expected a single 4x4 placement, got shape {tuple(dynamics.shape)}")
        geometric = np.array(matrix, dtype=np.float64)
        if config.validate_placements and not is_rigid_transform(geometric, tol):
            raise ValueError(f"Placement of joint '{self.name}' is not a rigid transform")
        self._position = geometric
        self._dynamics_position = dynamics

    def world_position(self) -> np.ndarray:
        """
        零位形下相对世界坐标系的位姿 (从根关节累乘各关节位姿)

        Returns:
            4x4 齐次变换矩阵
        """
        T = np.eye(4)
        for joint in reversed([self] + self.ancestors()):
            T = T @ joint._position
        return T

    # ------------------------------------------------------------------
    # 运动学树
    # ------------------------------------------------------------------

    def parent_joint(self) -> Optional["Joint"]:
        """父关节, 根关节返回 None"""
        if self._parent is None:
            return None
        return self._tree.joint(self._parent)

    def child_joint(self, rank: int) -> "Joint":
        """
        按序号获取子关节

        Raises:
            ChildRankError: 序号不在 [0, count_child_joints()) 内
        """
        if isinstance(rank, bool) or not isinstance(rank, (int, np.integer)) \
                or not 0 <= rank < len(self._children):
            raise ChildRankError(
                f"Child rank out of range: {rank} "
                f"(joint '{self.name}' has {len(self._children)} children)"
            )
        return self._tree.joint(self._children[rank])

    def count_child_joints(self) -> int:
        """子关节数量"""
        return len(self._children)

    def children(self) -> List["Joint"]:
        """按添加顺序返回全部子关节"""
        return [self._tree.joint(h) for h in self._children]

    def ancestors(self) -> List["Joint"]:
        """从父关节到根关节的祖先列表"""
        result = []
        joint = self.parent_joint()
        while joint is not None:
            result.append(joint)
            joint = joint.parent_joint()
        return result

    def depth(self) -> int:
        """到根关节的深度, 根关节为 0"""
        return len(self.ancestors())

    def iter_subtree(self) -> Iterator["Joint"]:
        """先序遍历以该关节为根的子树"""
        stack = [self]
        while stack:
            joint = stack.pop()
            yield joint
            stack.extend(reversed(joint.children()))

    def add_child_joint(self, joint: "Joint"):
        """
        添加子关节, 并设置子关节的父关节

        操作失败时树保持不变。

        Raises:
            TreeMismatchError: 子关节属于其他运动学树
            DuplicateChildError: 已经是该关节的子关节
            AlreadyParentedError: 已有其他父关节
            CycleError: 子关节是该关节本身或其祖先
            InvariantError: 子关节是树的根关节
        """
        try:
            self._check_new_child(joint)
        except InvariantError as e:
            logger.warning("Refused to add '%s' under '%s': %s",
                           getattr(joint, 'name', joint), self.name, e)
            raise

        self._children.append(joint._handle)
        joint._parent = self._handle
        logger.debug("Added joint '%s' under '%s' at rank %d",
                     joint.name, self.name, len(self._children) - 1)

    def _check_new_child(self, joint: "Joint"):
        if not isinstance(joint, Joint) or joint._tree is not self._tree:
            raise TreeMismatchError(
                f"Joint {joint!r} does not belong to the tree of '{self.name}'")
        if joint._parent is not None:
            if joint._parent == self._handle:
                raise DuplicateChildError(
                    f"Joint '{joint.name}' is already a child of '{self.name}'")
            raise AlreadyParentedError(
                f"Joint '{joint.name}' already has parent '{joint.parent_joint().name}'")
        if joint is self or any(a is joint for a in self.ancestors()):
            raise CycleError(
                f"Adding '{joint.name}' under '{self.name}' would create a cycle")
        if self._tree.root_joint() is joint:
            raise InvariantError(f"Root joint '{joint.name}' cannot be a child")

    # ------------------------------------------------------------------
    # 自由度限位
    # ------------------------------------------------------------------

    def is_bounded(self, rank: int) -> bool:
        """该自由度的位置限位是否生效"""
        return self._bounds.is_bounded(rank)

    def set_bounded(self, rank: int, bounded: bool):
        self._bounds.set_bounded(rank, bounded)

    def lower_bound(self, rank: int) -> float:
        return self._bounds.lower_bound(rank)

    def upper_bound(self, rank: int) -> float:
        return self._bounds.upper_bound(rank)

    def set_lower_bound(self, rank: int, value: float):
        self._bounds.set_lower_bound(rank, value)

    def set_upper_bound(self, rank: int, value: float):
        self._bounds.set_upper_bound(rank, value)

    def set_bounds(self, rank: int, lower: float, upper: float):
        """设置上下限并标记为有限位"""
        self._bounds.set_bounds(rank, lower, upper)

    def velocity_bounds(self, rank: int) -> Tuple[float, float]:
        return self._bounds.velocity_bounds(rank)

    def set_velocity_bounds(self, rank: int, lower: float, upper: float):
        self._bounds.set_velocity_bounds(rank, lower, upper)

    # ------------------------------------------------------------------
    # 固连刚体
    # ------------------------------------------------------------------

    def attached_body(self) -> Optional[Body]:
        """固连的刚体, 没有时返回 None"""
        return self._body

    def set_attached_body(self, body: Optional[Body]):
        """
        固连刚体

        先释放当前刚体; 若 body 已固连在其他关节上, 则从原关节上卸下。
        固连期间关节的惯性参数直接读写刚体, 卸下后关节保留刚体最后的值。传入 None 清除固连。

        Raises:
            TreeMismatchError: 刚体由其他运动学树创建
        """
        if body is not None and body.tree is not self._tree:
            raise TreeMismatchError(
                f"Body '{body.name}' does not belong to the tree of '{self.name}'")
        if body is self._body:
            return

        if self._body is not None:
            logger.debug("Detached body '%s' from joint '%s'", self._body.name, self.name)
            self._detach_body()

        if body is None:
            return

        previous = body.owner_joint()
        if previous is not None:
            logger.debug("Moving body '%s' from joint '%s' to '%s'",
                         body.name, previous.name, self.name)
            previous._detach_body()
        body._owner = self._handle
        self._body = body
        logger.debug("Attached body '%s' to joint '%s'", body.name, self.name)

    def _detach_body(self):
        """卸下刚体, 关节保留刚体当前的惯性参数"""
        body = self._body
        self._mass = body._mass
        self._com = body._com.copy()
        self._inertia = body._inertia.copy()
        body._owner = None
        self._body = None

    def _inertial_holder(self):
        """固连刚体时惯性参数以刚体为准, 否则存储在关节上"""
        return self._body if self._body is not None else self

    # ------------------------------------------------------------------
    # 惯性参数
    # ------------------------------------------------------------------

    @property
    def mass(self) -> float:
        """质量"""
        return self._inertial_holder()._mass

    @mass.setter
    def mass(self, value: float):
        self._inertial_holder()._mass = check_mass(value)

    com_x = _com_component(0, "质心 x")
    com_y = _com_component(1, "质心 y")
    com_z = _com_component(2, "质心 z")

    inertia_xx = _inertia_component(0, 0, "惯性张量 xx")
    inertia_yy = _inertia_component(1, 1, "惯性张量 yy")
    inertia_zz = _inertia_component(2, 2, "惯性张量 zz")
    inertia_xy = _inertia_component(0, 1, "惯性张量 xy")
    inertia_xz = _inertia_component(0, 2, "惯性张量 xz")
    inertia_yz = _inertia_component(1, 2, "惯性张量 yz")

    @property
    def center_of_mass(self) -> np.ndarray:
        """质心 [3]"""
        return self._inertial_holder()._com.copy()

    @property
    def inertia_matrix(self) -> np.ndarray:
        """惯性张量 [3, 3]"""
        return self._inertial_holder()._inertia.copy()

    def inertial_parameters(self) -> np.ndarray:
        """
        惯性参数向量

        Returns:
            [mass, com_x, com_y, com_z, xx, yy, zz, xy, xz, yz]
        """
        holder = self._inertial_holder()
        I = holder._inertia
        return np.array([
            holder._mass, *holder._com,
            I[0, 0], I[1, 1], I[2, 2], I[0, 1], I[0, 2], I[1, 2],
        ])

    # ------------------------------------------------------------------

    def __str__(self) -> str:
        t = self._position[:3, 3]
        parent = self.parent_joint()
        return (
            f"Joint '{self.name}' ({self.joint_type}, {self.n_dofs} DOF)\n"
            f"  Parent: {parent.name if parent is not None else None}\n"
            f"  Position: [{t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f}]\n"
            f"  Mass: {self.mass}"
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, handle={self._handle})"


class AnchorJoint(Joint):
    """
    固定关节

    零自由度, 任何限位查询都会越界 (DofRangeError)。不可被外部编辑器复制。
    """

    def __init__(self, tree: "KinematicTree", handle: int, name: str,
                 position: Optional[np.ndarray] = None):
        super().__init__(tree, handle, name, 'fixed', 0, position=position)

    def is_component_clonable(self) -> bool:
        return False
