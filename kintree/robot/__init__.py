"""
Robot 模块：运动学树

该模块提供关节树的数据模型: 树的构建与遍历、自由度限位、固连刚体、
两种齐次矩阵表示之间的转换, 以及面向属性框架和动力学层的适配接口。

子模块:
- transform: 几何层/动力学层矩阵转换
- bounds: 自由度限位表
- body: 刚体
- joint: 关节与固定关节
- tree: 运动学树
- properties: 属性框架适配
- forward_kinematics: 基于PyTorch的正运动学
- limits: 位形限位工具
"""

from .config import TreeConfig

from .errors import (
    KinematicTreeError,
    DofRangeError,
    ChildRankError,
    BoundOrderError,
    InvariantError,
    AlreadyParentedError,
    DuplicateChildError,
    CycleError,
    TreeMismatchError,
    UnknownPropertyError,
    TransformFormatError,
)

from .transform import (
    to_dynamics_format,
    to_geometric_format,
    identity_transform,
    make_transform,
    is_rigid_transform,
)

from .bounds import DofBound, DofBoundTable
from .body import Body
from .joint import Joint, AnchorJoint, JOINT_DOFS
from .tree import KinematicTree

from .properties import (
    JointProperty,
    PROPERTY_STRING_IDS,
    DoubleProperty,
    JointPropertyAdapter,
)

from .forward_kinematics import (
    TreeForwardKinematics,
    compute_world_transforms,
)

from .limits import (
    lower_bounds,
    upper_bounds,
    velocity_bounds,
    check_bounds,
    clip_to_bounds,
)

__all__ = [
    # Config
    'TreeConfig',
    # Errors
    'KinematicTreeError',
    'DofRangeError',
    'ChildRankError',
    'BoundOrderError',
    'InvariantError',
    'AlreadyParentedError',
    'DuplicateChildError',
    'CycleError',
    'TreeMismatchError',
    'UnknownPropertyError',
    'TransformFormatError',
    # Transform
    'to_dynamics_format',
    'to_geometric_format',
    'identity_transform',
    'make_transform',
    'is_rigid_transform',
    # Tree
    'DofBound',
    'DofBoundTable',
    'Body',
    'Joint',
    'AnchorJoint',
    'JOINT_DOFS',
    'KinematicTree',
    # Properties
    'JointProperty',
    'PROPERTY_STRING_IDS',
    'DoubleProperty',
    'JointPropertyAdapter',
    # Forward Kinematics
    'TreeForwardKinematics',
    'compute_world_transforms',
    # Limits
    'lower_bounds',
    'upper_bounds',
    'velocity_bounds',
    'check_bounds',
    'clip_to_bounds',
]
