"""
属性适配模块

将关节的惯性参数包装为 (id, 名称) 标识的双精度属性, 供外部属性框架
(场景编辑器等) 绑定。适配层包装关节对象, 关节本身不依赖属性框架。
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Union

from .errors import UnknownPropertyError
from .joint import Joint

logger = logging.getLogger(__name__)


class JointProperty(IntEnum):
    """关节属性 ID"""
    MASS = 1
    COM_X = 2
    COM_Y = 3
    COM_Z = 4
    INERTIA_MATRIX_XX = 5
    INERTIA_MATRIX_YY = 6
    INERTIA_MATRIX_ZZ = 7
    INERTIA_MATRIX_XY = 8
    INERTIA_MATRIX_XZ = 9
    INERTIA_MATRIX_YZ = 10


# 属性 ID -> 名称
PROPERTY_STRING_IDS: Dict[JointProperty, str] = {prop: prop.name for prop in JointProperty}

# 属性 ID -> 关节属性名
PROPERTY_ATTRIBUTES: Dict[JointProperty, str] = {
    JointProperty.MASS: 'mass',
    JointProperty.COM_X: 'com_x',
    JointProperty.COM_Y: 'com_y',
    JointProperty.COM_Z: 'com_z',
    JointProperty.INERTIA_MATRIX_XX: 'inertia_xx',
    JointProperty.INERTIA_MATRIX_YY: 'inertia_yy',
    JointProperty.INERTIA_MATRIX_ZZ: 'inertia_zz',
    JointProperty.INERTIA_MATRIX_XY: 'inertia_xy',
    JointProperty.INERTIA_MATRIX_XZ: 'inertia_xz',
    JointProperty.INERTIA_MATRIX_YZ: 'inertia_yz',
}


def property_id(key: Union[JointProperty, int, str]) -> JointProperty:
    """
    将 ID、整数或名称解析为 JointProperty

    Raises:
        UnknownPropertyError: 未知的属性
    """
    if isinstance(key, str):
        try:
            return JointProperty[key]
        except KeyError:
            raise UnknownPropertyError(f"Unknown property name: {key}")
    try:
        return JointProperty(key)
    except ValueError:
        raise UnknownPropertyError(f"Unknown property id: {key}")


@dataclass
class DoubleProperty:
    """
    双精度属性

    id        – 属性 ID
    string_id – 属性名称
    joint     – 绑定的关节
    on_modified – 值被设置后调用, 参数为属性本身
    """
    id: JointProperty
    string_id: str
    joint: Joint
    on_modified: Optional[Callable[["DoubleProperty"], bool]] = field(default=None, repr=False)

    @property
    def value(self) -> float:
        return getattr(self.joint, PROPERTY_ATTRIBUTES[self.id])

    @value.setter
    def value(self, value: float):
        setattr(self.joint, PROPERTY_ATTRIBUTES[self.id], float(value))
        if self.on_modified is not None:
            self.on_modified(self)


class JointPropertyAdapter:
    """
    关节属性适配器

    为一个关节提供属性列表。固连刚体时属性值直接读写刚体。
    """

    def __init__(self, joint: Joint):
        self.joint = joint
        self._properties = {
            prop: DoubleProperty(prop, PROPERTY_STRING_IDS[prop], joint,
                                 on_modified=self.modified_property)
            for prop in JointProperty
        }

    def fill_property_vector(self) -> List[DoubleProperty]:
        """返回关节的全部属性 (按 ID 顺序)"""
        return [self._properties[prop] for prop in JointProperty]

    def property(self, key: Union[JointProperty, int, str]) -> DoubleProperty:
        """按 ID 或名称获取属性"""
        return self._properties[property_id(key)]

    def modified_property(self, prop: DoubleProperty) -> bool:
        """
        属性被外部修改后调用

        Returns:
            属性属于该关节时返回 True
        """
        if prop.joint is not self.joint or self._properties.get(prop.id) is not prop:
            return False
        logger.debug("Property %s of joint '%s' set to %s",
                     prop.string_id, self.joint.name, prop.value)
        return True

    def is_component_clonable(self) -> bool:
        """外部编辑器是否可以复制该关节 (固定关节不可复制)"""
        return self.joint.is_component_clonable()

    def as_dict(self) -> Dict[str, float]:
        """名称 -> 当前值"""
        return {p.string_id: p.value for p in self.fill_property_vector()}
