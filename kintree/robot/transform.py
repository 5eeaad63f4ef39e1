"""
变换适配模块

在几何层(numpy, float64)与动力学层(torch.Tensor)两种 4x4 齐次变换表示之间转换。
两个方向的转换互为逆运算,逐元素复制,不做任何坐标变换。
"""

import numpy as np
import torch
from scipy.spatial.transform import Rotation as R
from typing import Optional, Sequence, Union

from .errors import TransformFormatError


def _check_shape(shape: Sequence[int]):
    """检查最后两个维度是否为 4x4"""
    if len(shape) < 2 or tuple(shape[-2:]) != (4, 4):
        raise TransformFormatError(
            f"Expected a homogeneous matrix of shape [..., 4, 4], got {tuple(shape)}"
        )


def to_dynamics_format(matrix: Union[np.ndarray, Sequence],
                       dtype: torch.dtype = torch.float64,
                       device: str = 'cpu') -> torch.Tensor:
    """
    几何层 -> 动力学层

    Args:
        matrix: 齐次变换矩阵, shape: [4, 4] 或 [..., 4, 4]
        dtype: 输出张量类型
        device: 输出张量设备

    Returns:
        torch.Tensor: 与输入逐元素相等的张量

    Raises:
        TransformFormatError: 输入不是 4x4 矩阵
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    _check_shape(matrix.shape)
    # 复制一份,避免与几何层共享内存
    return torch.tensor(matrix, dtype=dtype, device=device)


def to_geometric_format(matrix: torch.Tensor) -> np.ndarray:
    """
    动力学层 -> 几何层

    Args:
        matrix: 齐次变换张量, shape: [4, 4] 或 [..., 4, 4]

    Returns:
        np.ndarray: float64 数组

    Raises:
        TransformFormatError: 输入不是 4x4 矩阵
    """
    if not isinstance(matrix, torch.Tensor):
        matrix = torch.as_tensor(matrix, dtype=torch.float64)
    _check_shape(matrix.shape)
    return matrix.detach().cpu().numpy().astype(np.float64, copy=True)


def identity_transform() -> np.ndarray:
    """单位变换"""
    return np.eye(4)


def make_transform(position: Optional[Sequence[float]] = None,
                   rpy: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    由位置和 roll/pitch/yaw 构造齐次变换

    Args:
        position: 平移 (x, y, z)
        rpy: 绕固定轴 X, Y, Z 依次旋转的角度 (弧度)

    Returns:
        4x4 齐次变换矩阵
    """
    T = np.eye(4)
    if rpy is not None:
        T[:3, :3] = R.from_euler('xyz', rpy).as_matrix()
    if position is not None:
        T[:3, 3] = np.asarray(position, dtype=np.float64)
    return T


def is_rigid_transform(matrix: np.ndarray, tol: float = 1e-9) -> bool:
    """
    判断矩阵是否为刚体变换(正交旋转 + 平移, 最后一行 [0, 0, 0, 1])

    Args:
        matrix: 4x4 矩阵
        tol: 数值容差

    Returns:
        bool
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.shape != (4, 4) or not np.all(np.isfinite(matrix)):
        return False
    if not np.allclose(matrix[3], [0.0, 0.0, 0.0, 1.0], atol=tol):
        return False
    rot = matrix[:3, :3]
    # 正交且行列式为 +1
    if not np.allclose(rot @ rot.T, np.eye(3), atol=max(tol, 1e-9) * 10):
        return False
    return abs(np.linalg.det(rot) - 1.0) <= max(tol, 1e-9) * 10
