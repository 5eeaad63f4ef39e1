"""
运动学树模块

KinematicTree 持有全部关节(按句柄编号), 提供关节/刚体的工厂方法与遍历接口。
"""

import logging
import numpy as np
from typing import Iterator, List, Optional, Sequence

from .body import Body
from .config import TreeConfig
from .errors import InvariantError, TreeMismatchError
from .joint import AXIAL_JOINT_TYPES, JOINT_DOFS, AnchorJoint, Joint

logger = logging.getLogger(__name__)


class KinematicTree:
    """
    运动学树

    关节以创建顺序编号, 句柄即在 joints 列表中的下标, 创建后不变。
    父子关系通过 Joint.add_child_joint 建立。

    Attributes:
        name: 树名称
        config: 配置
    """

    def __init__(self, name: str = "robot", config: Optional[TreeConfig] = None):
        self.name = name
        self.config = config or TreeConfig.default()
        self._joints: List[Joint] = []
        self._root: Optional[int] = None

    # ------------------------------------------------------------------
    # 工厂方法
    # ------------------------------------------------------------------

    def create_joint(self, name: str, joint_type: str = 'revolute',
                     position: Optional[np.ndarray] = None,
                     axis: Optional[Sequence[float]] = None,
                     n_dofs: Optional[int] = None) -> Joint:
        """
        创建关节

        Args:
            name: 关节名称
            joint_type: 'revolute', 'continuous', 'prismatic', 'free_flyer' 或 'generic'
            position: 相对父关节的初始位姿
            axis: 关节轴向 (revolute/continuous/prismatic)
            n_dofs: 自由度数量, 仅 'generic' 类型需要

        Returns:
            Joint: 新关节 (尚未连接到树中)
        """
        if joint_type == 'fixed':
            raise ValueError("Use create_anchor_joint() for fixed joints")
        if joint_type == 'generic':
            if isinstance(n_dofs, bool) or not isinstance(n_dofs, (int, np.integer)) or n_dofs < 0:
                raise ValueError(f"Generic joints need a non-negative integer n_dofs, got {n_dofs!r}")
            n_dofs = int(n_dofs)
        elif joint_type in JOINT_DOFS:
            if n_dofs is not None and n_dofs != JOINT_DOFS[joint_type]:
                raise ValueError(
                    f"Joint type '{joint_type}' has {JOINT_DOFS[joint_type]} DOF, got n_dofs={n_dofs}")
            n_dofs = JOINT_DOFS[joint_type]
        else:
            raise ValueError(f"Unknown joint type: {joint_type}")
        if axis is not None and joint_type not in AXIAL_JOINT_TYPES:
            raise ValueError(f"Joint type '{joint_type}' takes no axis")

        joint = Joint(self, len(self._joints), name, joint_type, n_dofs,
                      position=position, axis=axis)
        return self._register(joint)

    def create_rotation_joint(self, name: str, position: Optional[np.ndarray] = None,
                              axis: Sequence[float] = (0.0, 0.0, 1.0)) -> Joint:
        """创建旋转关节"""
        return self.create_joint(name, 'revolute', position=position, axis=axis)

    def create_translation_joint(self, name: str, position: Optional[np.ndarray] = None,
                                 axis: Sequence[float] = (0.0, 0.0, 1.0)) -> Joint:
        """创建平移关节"""
        return self.create_joint(name, 'prismatic', position=position, axis=axis)

    def create_free_flyer_joint(self, name: str,
                                position: Optional[np.ndarray] = None) -> Joint:
        """创建六自由度浮动关节"""
        return self.create_joint(name, 'free_flyer', position=position)

    def create_anchor_joint(self, name: str,
                            position: Optional[np.ndarray] = None) -> AnchorJoint:
        """创建固定关节"""
        return self._register(AnchorJoint(self, len(self._joints), name, position=position))

    def create_body(self, name: str, mass: float = 0.0,
                    local_center_of_mass: Optional[Sequence[float]] = None,
                    inertia_matrix: Optional[Sequence] = None) -> Body:
        """创建刚体 (未固连到任何关节)"""
        return Body(self, name, mass, local_center_of_mass, inertia_matrix)

    def _register(self, joint: Joint) -> Joint:
        self._joints.append(joint)
        logger.debug("Created %s '%s' (handle %d)", joint.joint_type, joint.name, joint.handle)
        return joint

    # ------------------------------------------------------------------
    # 根关节
    # ------------------------------------------------------------------

    def root_joint(self) -> Optional[Joint]:
        """根关节, 未设置时为 None"""
        if self._root is None:
            return None
        return self._joints[self._root]

    def set_root_joint(self, joint: Joint):
        """
        指定根关节 (只能设置一次)

        Raises:
            TreeMismatchError: 关节属于其他树
            InvariantError: 关节已有父关节, 或根关节已设置
        """
        if joint.tree is not self:
            raise TreeMismatchError(f"Joint '{joint.name}' does not belong to tree '{self.name}'")
        if self._root is not None and self._root != joint.handle:
            raise InvariantError(f"Tree '{self.name}' already has root '{self.root_joint().name}'")
        if joint.parent_joint() is not None:
            raise InvariantError(f"Joint '{joint.name}' has a parent and cannot be the root")
        self._root = joint.handle
        logger.debug("Root of tree '%s' set to '%s'", self.name, joint.name)

    def roots(self) -> List[Joint]:
        """所有没有父关节的关节"""
        return [j for j in self._joints if j.parent_joint() is None]

    # ------------------------------------------------------------------
    # 查询与遍历
    # ------------------------------------------------------------------

    def joint(self, handle: int) -> Joint:
        """按句柄获取关节"""
        return self._joints[handle]

    def find_joint(self, name: str) -> Optional[Joint]:
        """按名称查找第一个匹配的关节"""
        for joint in self._joints:
            if joint.name == name:
                return joint
        return None

    @property
    def n_joints(self) -> int:
        """关节数量"""
        return len(self._joints)

    def iter_joints(self) -> Iterator[Joint]:
        """从根关节先序遍历 (子关节按添加顺序); 未设置根关节时遍历所有根"""
        root = self.root_joint()
        starts = [root] if root is not None else self.roots()
        for start in starts:
            yield from start.iter_subtree()

    @property
    def n_dofs(self) -> int:
        """遍历顺序下的总自由度数量"""
        return sum(j.n_dofs for j in self.iter_joints())

    def dof_offset(self, joint: Joint) -> int:
        """
        关节第一个自由度在位形向量中的序号

        Raises:
            TreeMismatchError: 关节不在遍历范围内
        """
        offset = 0
        for j in self.iter_joints():
            if j is joint:
                return offset
            offset += j.n_dofs
        raise TreeMismatchError(f"Joint '{joint.name}' is not reachable in tree '{self.name}'")

    def print_tree(self):
        """打印运动学树结构"""
        joints = list(self.iter_joints())
        print(f"Kinematic Tree: {self.name}")
        print(f"Number of joints: {len(joints)}, DOF: {sum(j.n_dofs for j in joints)}\n")
        for joint in joints:
            indent = "  " * joint.depth()
            body = joint.attached_body()
            print(f"{indent}{joint.name} [{joint.joint_type}, {joint.n_dofs} DOF]"
                  + (f" body={body.name}" if body is not None else ""))
            for rank in range(joint.n_dofs):
                if joint.is_bounded(rank):
                    print(f"{indent}  dof {rank}: [{joint.lower_bound(rank)}, {joint.upper_bound(rank)}]")
                else:
                    print(f"{indent}  dof {rank}: unbounded")

    def __len__(self) -> int:
        return len(self._joints)

    def __repr__(self) -> str:
        return f"KinematicTree(name={self.name!r}, n_joints={len(self._joints)})"
