"""
正运动学模块

将运动学树导出到动力学层: 基于PyTorch的可微分正运动学, 支持批量计算和自动微分。
"""

import numpy as np
import torch
from typing import List, Union

from .tree import KinematicTree


class TreeForwardKinematics:
    """
    运动学树正运动学计算器

    按树的先序遍历顺序预计算父关节下标、关节位姿(动力学层表示)、轴向和自由度偏移。
    """

    def __init__(self, tree: KinematicTree, device: str = 'cpu'):
        """
        初始化FK计算器

        Args:
            tree: 运动学树
            device: 计算设备 ('cpu' 或 'cuda')
        """
        self.tree = tree
        self.device = device
        self.joints = list(tree.iter_joints())
        self.n_joints = len(self.joints)
        self.n_dofs = sum(j.n_dofs for j in self.joints)
        self.joint_names = [j.name for j in self.joints]
        self.joint_types = [j.joint_type for j in self.joints]

        self._precompute()

    def _precompute(self):
        """预计算关节的固定数据"""
        index = {j.handle: i for i, j in enumerate(self.joints)}

        # 父关节下标, 根为 -1
        self.parent_indices: List[int] = []
        for joint in self.joints:
            parent = joint.parent_joint()
            self.parent_indices.append(index[parent.handle] if parent is not None else -1)

        # 关节原点(相对于父关节的变换)
        self.joint_origins = torch.zeros(self.n_joints, 4, 4, dtype=torch.float64, device=self.device)
        self.joint_axes = torch.zeros(self.n_joints, 3, dtype=torch.float64, device=self.device)
        self.dof_offsets: List[int] = []

        offset = 0
        for i, joint in enumerate(self.joints):
            self.joint_origins[i] = joint.dynamics_position().to(self.device, torch.float64)
            if joint.axis is not None:
                self.joint_axes[i] = torch.tensor(joint.axis, dtype=torch.float64)
            self.dof_offsets.append(offset)
            offset += joint.n_dofs

    def compute(self, q: Union[np.ndarray, torch.Tensor]) -> torch.Tensor:
        """
        计算所有关节在世界坐标系下的位姿

        Args:
            q: 位形, shape: [batch_size, n_dofs] 或 [n_dofs]

        Returns:
            T: 位姿 [batch_size, n_joints, 4, 4] 或 [n_joints, 4, 4]
        """
        if isinstance(q, np.ndarray):
            q = torch.from_numpy(q)

        # 确保q是2D
        if q.dim() == 1:
            q = q.unsqueeze(0)
            squeeze_output = True
        else:
            squeeze_output = False

        if q.shape[-1] != self.n_dofs:
            raise ValueError(f"Expected configuration with {self.n_dofs} DOF, got {q.shape[-1]}")

        q = q.to(self.device)
        if not q.is_floating_point():
            q = q.to(torch.float64)

        batch_size = q.shape[0]
        world = []

        for i, joint_type in enumerate(self.joint_types):
            T_origin = self.joint_origins[i].to(dtype=q.dtype).unsqueeze(0).expand(batch_size, -1, -1)
            parent = self.parent_indices[i]
            if parent >= 0:
                T = torch.bmm(world[parent], T_origin)
            else:
                T = T_origin

            start = self.dof_offsets[i]
            axis = self.joint_axes[i].to(dtype=q.dtype)

            if joint_type in ['revolute', 'continuous']:
                T_joint = self._rotation_transform(axis, q[:, start])
            elif joint_type == 'prismatic':
                T_joint = self._translation_transform(axis, q[:, start])
            elif joint_type == 'free_flyer':
                T_joint = self._free_flyer_transform(q[:, start:start + 6])
            else:
                # 固定关节或无运动模型的关节
                T_joint = None

            if T_joint is not None:
                T = torch.bmm(T, T_joint)
            world.append(T)

        if self.n_joints == 0:
            T = torch.zeros(batch_size, 0, 4, 4, dtype=q.dtype, device=self.device)
        else:
            T = torch.stack(world, dim=1)

        if squeeze_output:
            T = T.squeeze(0)
        return T

    def _rotation_transform(self, axis: torch.Tensor, angle: torch.Tensor) -> torch.Tensor:
        """
        根据轴角表示计算旋转变换矩阵(Rodrigues公式)

        Args:
            axis: 旋转轴 [3]
            angle: 旋转角度 [batch_size]

        Returns:
            T: 旋转变换矩阵 [batch_size, 4, 4]
        """
        batch_size = angle.shape[0]
        axis = axis / torch.norm(axis)

        # 反对称矩阵
        K = torch.zeros(3, 3, device=self.device, dtype=angle.dtype)
        K[0, 1] = -axis[2]
        K[0, 2] = axis[1]
        K[1, 0] = axis[2]
        K[1, 2] = -axis[0]
        K[2, 0] = -axis[1]
        K[2, 1] = axis[0]

        # R = I + sin(θ)K + (1-cos(θ))K²
        I = torch.eye(3, device=self.device, dtype=angle.dtype)
        sin_angle = torch.sin(angle).view(-1, 1, 1)
        cos_angle = torch.cos(angle).view(-1, 1, 1)
        R = I + sin_angle * K + (1 - cos_angle) * torch.mm(K, K)

        T = torch.eye(4, device=self.device, dtype=angle.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        T[:, :3, :3] = R
        return T

    def _translation_transform(self, axis: torch.Tensor, distance: torch.Tensor) -> torch.Tensor:
        """
        计算平移变换矩阵

        Args:
            axis: 平移轴 [3]
            distance: 平移距离 [batch_size]

        Returns:
            T: 平移变换矩阵 [batch_size, 4, 4]
        """
        batch_size = distance.shape[0]
        axis = axis / torch.norm(axis)

        T = torch.eye(4, device=self.device, dtype=distance.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        T[:, :3, 3] = axis.unsqueeze(0) * distance.unsqueeze(1)
        return T

    def _free_flyer_transform(self, q6: torch.Tensor) -> torch.Tensor:
        """
        浮动关节变换: 先平移 (x, y, z), 再依次绕 x, y, z 轴旋转

        Args:
            q6: [batch_size, 6]

        Returns:
            T: [batch_size, 4, 4]
        """
        batch_size = q6.shape[0]
        T = torch.eye(4, device=self.device, dtype=q6.dtype).unsqueeze(0).repeat(batch_size, 1, 1)
        T[:, :3, 3] = q6[:, :3]
        for k in range(3):
            axis = torch.zeros(3, device=self.device, dtype=q6.dtype)
            axis[k] = 1.0
            T = torch.bmm(T, self._rotation_transform(axis, q6[:, 3 + k]))
        return T

    def inertial_parameters(self) -> torch.Tensor:
        """
        各关节惯性参数

        Returns:
            [n_joints, 10]: mass, com_x, com_y, com_z, xx, yy, zz, xy, xz, yz
        """
        params = np.stack([j.inertial_parameters() for j in self.joints]) \
            if self.joints else np.zeros((0, 10))
        return torch.tensor(params, dtype=torch.float64, device=self.device)

    def link_transform(self, q: Union[np.ndarray, torch.Tensor], joint_name: str) -> torch.Tensor:
        """
        计算指定关节的世界位姿

        Args:
            q: 位形, shape: [batch_size, n_dofs] 或 [n_dofs]
            joint_name: 关节名称

        Returns:
            T: [batch_size, 4, 4] 或 [4, 4]
        """
        try:
            i = self.joint_names.index(joint_name)
        except ValueError:
            raise ValueError(f"Joint {joint_name} not found in kinematic tree")
        return self.compute(q)[..., i, :, :]


def compute_world_transforms(tree: KinematicTree, q: Union[np.ndarray, torch.Tensor],
                             device: str = 'cpu') -> torch.Tensor:
    """
    便捷函数:计算所有关节的世界位姿

    Args:
        tree: 运动学树
        q: 位形, shape: [batch_size, n_dofs] 或 [n_dofs]
        device: 计算设备

    Returns:
        T: [batch_size, n_joints, 4, 4] 或 [n_joints, 4, 4]
    """
    return TreeForwardKinematics(tree, device).compute(q)
