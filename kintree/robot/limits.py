"""
位形限位工具

按运动学树的遍历顺序汇总各自由度的限位, 供运动规划等外部模块检查和裁剪位形。
"""

import numpy as np
import torch
from typing import Tuple, Union

from .tree import KinematicTree


def lower_bounds(tree: KinematicTree) -> np.ndarray:
    """位形下限, 无限位的自由度为 -inf, shape: [n_dofs]"""
    arrays = [j.bounds.lower_bounds for j in tree.iter_joints()]
    return np.concatenate(arrays) if arrays else np.zeros(0)


def upper_bounds(tree: KinematicTree) -> np.ndarray:
    """位形上限, 无限位的自由度为 +inf, shape: [n_dofs]"""
    arrays = [j.bounds.upper_bounds for j in tree.iter_joints()]
    return np.concatenate(arrays) if arrays else np.zeros(0)


def velocity_bounds(tree: KinematicTree) -> Tuple[np.ndarray, np.ndarray]:
    """
    速度限位

    Returns:
        (lower, upper), 各 shape: [n_dofs]
    """
    joints = list(tree.iter_joints())
    if not joints:
        return np.zeros(0), np.zeros(0)
    lower = np.concatenate([j.bounds.velocity_lower_bounds for j in joints])
    upper = np.concatenate([j.bounds.velocity_upper_bounds for j in joints])
    return lower, upper


def _bounds_like(q: Union[np.ndarray, torch.Tensor], tree: KinematicTree):
    """返回与 q 同类型 (numpy 或同 device/dtype 的 torch) 的 (q, lower, upper)"""
    lower = lower_bounds(tree)
    upper = upper_bounds(tree)
    if isinstance(q, torch.Tensor):
        return (q, torch.from_numpy(lower).to(q.device, q.dtype),
                torch.from_numpy(upper).to(q.device, q.dtype))
    return np.asarray(q), lower, upper


def check_bounds(q: Union[np.ndarray, torch.Tensor],
                 tree: KinematicTree) -> Union[np.ndarray, torch.Tensor]:
    """
    检查位形是否在限位内

    Args:
        q: 位形, shape: [..., n_dofs]
        tree: 运动学树

    Returns:
        布尔数组, shape: [..., n_dofs], True表示在限位内
    """
    q, lower, upper = _bounds_like(q, tree)
    return (q >= lower) & (q <= upper)


def clip_to_bounds(q: Union[np.ndarray, torch.Tensor],
                   tree: KinematicTree) -> Union[np.ndarray, torch.Tensor]:
    """
    将位形裁剪到限位范围内

    Args:
        q: 位形, shape: [..., n_dofs]
        tree: 运动学树

    Returns:
        裁剪后的位形, shape: [..., n_dofs]
    """
    q, lower, upper = _bounds_like(q, tree)
    if isinstance(q, torch.Tensor):
        return torch.clamp(q, lower, upper)
    return np.clip(q, lower, upper)
