"""
Robot 模块单元测试

测试矩阵转换、自由度限位、刚体固连和运动学树结构。
"""

import unittest
import os
import sys
import math
import numpy as np
import torch
from scipy.spatial.transform import Rotation as R

# 设置随机种子以确保测试可重复
SEED = 42
np.random.seed(SEED)
torch.manual_seed(SEED)

# 添加项目根目录到路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from kintree.robot import (
    KinematicTree,
    TreeConfig,
    AnchorJoint,
    to_dynamics_format,
    to_geometric_format,
    make_transform,
    is_rigid_transform,
    DofBoundTable,
    DofRangeError,
    ChildRankError,
    BoundOrderError,
    InvariantError,
    AlreadyParentedError,
    DuplicateChildError,
    CycleError,
    TreeMismatchError,
    TransformFormatError,
)


def random_rigid_transforms(n: int) -> np.ndarray:
    """生成 n 个随机刚体变换"""
    rotations = R.random(n, random_state=SEED).as_matrix()
    T = np.tile(np.eye(4), (n, 1, 1))
    T[:, :3, :3] = rotations
    T[:, :3, 3] = np.random.uniform(-2.0, 2.0, size=(n, 3))
    return T


def build_chain(tree: KinematicTree):
    """构建 root -> j1 -> j2 三关节链"""
    root = tree.create_anchor_joint('root')
    j1 = tree.create_rotation_joint('j1', position=make_transform([0.0, 0.0, 1.0]))
    j2 = tree.create_rotation_joint('j2', position=make_transform([1.0, 0.0, 0.0]))
    tree.set_root_joint(root)
    root.add_child_joint(j1)
    j1.add_child_joint(j2)
    return root, j1, j2


class TestTransformAdapter(unittest.TestCase):
    """测试几何层/动力学层矩阵转换"""

    def test_round_trip_geometric(self):
        """几何层 -> 动力学层 -> 几何层"""
        for M in random_rigid_transforms(20):
            back = to_geometric_format(to_dynamics_format(M))
            self.assertTrue(np.allclose(back, M, atol=1e-9))

        print("✓ 几何层往返转换验证通过")

    def test_round_trip_dynamics(self):
        """动力学层 -> 几何层 -> 动力学层"""
        for M in random_rigid_transforms(20):
            T = torch.tensor(M, dtype=torch.float64)
            back = to_dynamics_format(to_geometric_format(T))
            self.assertTrue(torch.allclose(back, T, atol=1e-9))

        print("✓ 动力学层往返转换验证通过")

    def test_output_types(self):
        """输出类型与精度"""
        T = to_dynamics_format(np.eye(4))
        self.assertIsInstance(T, torch.Tensor)
        self.assertEqual(T.dtype, torch.float64)

        M = to_geometric_format(T)
        self.assertIsInstance(M, np.ndarray)
        self.assertEqual(M.dtype, np.float64)

    def test_batch_conversion(self):
        """批量转换"""
        batch = random_rigid_transforms(5)
        T = to_dynamics_format(batch)
        self.assertEqual(tuple(T.shape), (5, 4, 4))
        self.assertTrue(np.allclose(to_geometric_format(T), batch))

    def test_no_shared_memory(self):
        """转换结果不与输入共享内存"""
        M = np.eye(4)
        T = to_dynamics_format(M)
        M[0, 3] = 5.0
        self.assertEqual(T[0, 3].item(), 0.0)

    def test_malformed_input(self):
        """非 4x4 输入视为编程错误"""
        with self.assertRaises(TransformFormatError):
            to_dynamics_format(np.eye(3))
        with self.assertRaises(TransformFormatError):
            to_geometric_format(torch.zeros(4))
        with self.assertRaises(AssertionError):
            to_dynamics_format(np.zeros((4, 3)))

        print("✓ 非法矩阵检查通过")

    def test_is_rigid_transform(self):
        """刚体变换判定"""
        self.assertTrue(is_rigid_transform(make_transform([1.0, 2.0, 3.0], [0.1, 0.2, 0.3])))
        scaled = np.eye(4)
        scaled[0, 0] = 2.0
        self.assertFalse(is_rigid_transform(scaled))
        bad_row = np.eye(4)
        bad_row[3, 0] = 1.0
        self.assertFalse(is_rigid_transform(bad_row))
        self.assertFalse(is_rigid_transform(np.eye(3)))


class TestDofBounds(unittest.TestCase):
    """测试自由度限位"""

    def setUp(self):
        self.tree = KinematicTree()
        self.joint = self.tree.create_rotation_joint('j')

    def test_defaults(self):
        """默认无限位"""
        self.assertFalse(self.joint.is_bounded(0))
        self.assertEqual(self.joint.lower_bound(0), -math.inf)
        self.assertEqual(self.joint.upper_bound(0), math.inf)
        self.assertEqual(self.joint.velocity_bounds(0), (-math.inf, math.inf))

    def test_bounds_marks_bounded(self):
        """bounds() 同时标记为有限位"""
        self.joint.set_bounds(0, -1.0, 1.0)
        self.assertTrue(self.joint.is_bounded(0))
        self.assertEqual(self.joint.lower_bound(0), -1.0)
        self.assertEqual(self.joint.upper_bound(0), 1.0)

        print("✓ bounds() 标记有限位验证通过")

    def test_unbounding_keeps_values(self):
        """关闭限位不清除已存储的值"""
        self.joint.set_bounds(0, -0.5, 0.5)
        self.joint.set_bounded(0, False)
        self.assertFalse(self.joint.is_bounded(0))
        self.assertEqual(self.joint.lower_bound(0), -0.5)
        self.assertEqual(self.joint.upper_bound(0), 0.5)

    def test_individual_setters(self):
        """单独设置上下限"""
        self.joint.set_lower_bound(0, -2.0)
        self.joint.set_upper_bound(0, 3.0)
        self.assertEqual(self.joint.lower_bound(0), -2.0)
        self.assertEqual(self.joint.upper_bound(0), 3.0)
        self.assertFalse(self.joint.is_bounded(0))

    def test_order_enforced_when_bounded(self):
        """有限位时检查上下限顺序"""
        with self.assertRaises(BoundOrderError):
            self.joint.set_bounds(0, 1.0, -1.0)
        self.assertFalse(self.joint.is_bounded(0))

        self.joint.set_bounds(0, -1.0, 1.0)
        with self.assertRaises(BoundOrderError):
            self.joint.set_lower_bound(0, 2.0)
        with self.assertRaises(BoundOrderError):
            self.joint.set_upper_bound(0, -2.0)
        self.assertEqual(self.joint.lower_bound(0), -1.0)
        self.assertEqual(self.joint.upper_bound(0), 1.0)

    def test_order_checked_when_enabling(self):
        """无限位时允许参考值无序, 开启限位时再检查"""
        self.joint.set_lower_bound(0, 2.0)
        self.joint.set_upper_bound(0, 1.0)
        with self.assertRaises(BoundOrderError):
            self.joint.set_bounded(0, True)
        self.assertFalse(self.joint.is_bounded(0))

    def test_infinite_bounds(self):
        """无穷大限位"""
        self.joint.set_bounds(0, -math.inf, 1.0)
        self.assertTrue(self.joint.is_bounded(0))
        self.assertEqual(self.joint.lower_bound(0), -math.inf)

    def test_nan_rejected(self):
        with self.assertRaises(BoundOrderError):
            self.joint.set_bounds(0, float('nan'), 1.0)

    def test_velocity_bounds(self):
        """速度限位"""
        self.joint.set_velocity_bounds(0, -2.0, 2.0)
        self.assertEqual(self.joint.velocity_bounds(0), (-2.0, 2.0))
        with self.assertRaises(BoundOrderError):
            self.joint.set_velocity_bounds(0, 1.0, -1.0)
        self.assertEqual(self.joint.velocity_bounds(0), (-2.0, 2.0))

    def test_rank_out_of_range(self):
        """自由度序号越界"""
        for rank in (1, -1, 10):
            with self.assertRaises(DofRangeError):
                self.joint.is_bounded(rank)
            with self.assertRaises(DofRangeError):
                self.joint.set_bounds(rank, -1.0, 1.0)
        with self.assertRaises(IndexError):
            self.joint.lower_bound(1)

        print("✓ 自由度序号越界检查通过")

    def test_free_flyer_dofs(self):
        """浮动关节有 6 个自由度"""
        ff = self.tree.create_free_flyer_joint('base')
        self.assertEqual(ff.n_dofs, 6)
        ff.set_bounds(5, -0.1, 0.1)
        self.assertTrue(ff.is_bounded(5))
        self.assertFalse(ff.is_bounded(0))

    def test_table_arrays(self):
        """数组形式的限位"""
        table = DofBoundTable(3, velocity_limit=4.0)
        table.set_bounds(1, -1.0, 2.0)
        self.assertEqual(table.bounded_mask.tolist(), [False, True, False])
        self.assertEqual(table.lower_bounds.tolist(), [-np.inf, -1.0, -np.inf])
        self.assertEqual(table.upper_bounds.tolist(), [np.inf, 2.0, np.inf])
        self.assertEqual(table.velocity_upper_bounds.tolist(), [4.0, 4.0, 4.0])


class TestAnchorJoint(unittest.TestCase):
    """测试固定关节"""

    def setUp(self):
        self.tree = KinematicTree()
        self.anchor = self.tree.create_anchor_joint('anchor', make_transform([0.0, 0.0, 0.5]))

    def test_zero_dof(self):
        self.assertIsInstance(self.anchor, AnchorJoint)
        self.assertEqual(self.anchor.n_dofs, 0)
        self.assertEqual(self.anchor.joint_type, 'fixed')

    def test_bound_queries_out_of_range(self):
        """固定关节的任何限位查询都越界"""
        with self.assertRaises(DofRangeError):
            self.anchor.is_bounded(0)
        with self.assertRaises(DofRangeError):
            self.anchor.lower_bound(0)
        with self.assertRaises(DofRangeError):
            self.anchor.upper_bound(0)
        with self.assertRaises(DofRangeError):
            self.anchor.set_bounds(0, -1.0, 1.0)
        with self.assertRaises(DofRangeError):
            self.anchor.set_velocity_bounds(0, -1.0, 1.0)

        print("✓ 固定关节限位查询越界验证通过")

    def test_not_clonable(self):
        self.assertFalse(self.anchor.is_component_clonable())
        self.assertTrue(self.tree.create_rotation_joint('j').is_component_clonable())

    def test_fixed_type_requires_anchor(self):
        with self.assertRaises(ValueError):
            self.tree.create_joint('bad', 'fixed')


class TestBodyAttachment(unittest.TestCase):
    """测试刚体固连"""

    def setUp(self):
        self.tree = KinematicTree()
        self.j1 = self.tree.create_rotation_joint('j1')
        self.j2 = self.tree.create_rotation_joint('j2')

    def test_no_body_by_default(self):
        self.assertIsNone(self.j1.attached_body())

    def test_replace_body(self):
        """替换固连刚体"""
        b1 = self.tree.create_body('b1', mass=1.0)
        b2 = self.tree.create_body('b2', mass=2.0)
        self.j1.set_attached_body(b1)
        self.j1.set_attached_body(b2)

        self.assertIs(self.j1.attached_body(), b2)
        self.assertIs(b2.owner_joint(), self.j1)
        self.assertIsNone(b1.owner_joint())

        print("✓ 刚体替换验证通过")

    def test_clear_body(self):
        b = self.tree.create_body('b')
        self.j1.set_attached_body(b)
        self.j1.set_attached_body(None)
        self.assertIsNone(self.j1.attached_body())
        self.assertIsNone(b.owner_joint())

    def test_move_body_between_joints(self):
        """刚体转移到另一个关节时从原关节卸下"""
        b = self.tree.create_body('b')
        self.j1.set_attached_body(b)
        self.j2.set_attached_body(b)
        self.assertIsNone(self.j1.attached_body())
        self.assertIs(self.j2.attached_body(), b)
        self.assertIs(b.owner_joint(), self.j2)

    def test_reattach_same_body(self):
        b = self.tree.create_body('b')
        self.j1.set_attached_body(b)
        self.j1.set_attached_body(b)
        self.assertIs(self.j1.attached_body(), b)
        self.assertIs(b.owner_joint(), self.j1)

    def test_inertia_follows_body(self):
        """固连时关节惯性参数直接读写刚体"""
        inertia = np.diag([0.1, 0.2, 0.3])
        b = self.tree.create_body('b', mass=1.5, local_center_of_mass=[0.0, 0.1, 0.0],
                                  inertia_matrix=inertia)
        self.j1.set_attached_body(b)
        self.assertEqual(self.j1.mass, 1.5)
        self.assertEqual(self.j1.com_y, 0.1)
        self.assertEqual(self.j1.inertia_zz, 0.3)

        self.j1.mass = 3.0
        self.j1.inertia_xy = 0.05
        self.assertEqual(b.mass, 3.0)
        self.assertEqual(b.inertia_matrix[0, 1], 0.05)
        self.assertEqual(b.inertia_matrix[1, 0], 0.05)

    def test_body_edits_not_overwritten(self):
        """直接修改刚体后再修改关节, 两者的修改都保留"""
        b = self.tree.create_body('b', mass=1.0)
        self.j1.set_attached_body(b)

        b.mass = 5.0
        b.inertia_matrix = np.diag([1.0, 2.0, 3.0])
        self.j1.com_x = 0.1

        self.assertEqual(b.mass, 5.0)
        self.assertEqual(self.j1.mass, 5.0)
        self.assertEqual(self.j1.inertia_yy, 2.0)
        self.assertEqual(b.local_center_of_mass[0], 0.1)
        self.assertEqual(b.inertia_matrix[2, 2], 3.0)

        print("✓ 刚体与关节共享惯性参数验证通过")

    def test_detach_keeps_last_values(self):
        """卸下刚体后关节保留刚体最后的值, 之后互不影响"""
        b = self.tree.create_body('b', mass=2.0, local_center_of_mass=[0.0, 0.0, 0.2])
        self.j1.set_attached_body(b)
        b.mass = 2.5
        self.j1.set_attached_body(None)

        self.assertEqual(self.j1.mass, 2.5)
        self.assertEqual(self.j1.com_z, 0.2)
        self.j1.mass = 7.0
        self.assertEqual(b.mass, 2.5)

        self.j1.set_attached_body(b)
        self.j2.set_attached_body(b)
        b.mass = 9.0
        self.assertEqual(self.j1.mass, 2.5)
        self.assertEqual(self.j2.mass, 9.0)

    def test_non_finite_inertial_rejected(self):
        """NaN 与 inf 被拒绝, 原值不变"""
        b = self.tree.create_body('b', mass=1.0)
        self.j1.set_attached_body(b)
        with self.assertRaises(ValueError):
            self.j1.mass = float('nan')
        with self.assertRaises(ValueError):
            self.j1.com_x = float('inf')
        with self.assertRaises(ValueError):
            self.j1.inertia_xy = float('nan')
        with self.assertRaises(ValueError):
            b.local_center_of_mass = [0.0, float('nan'), 0.0]
        with self.assertRaises(ValueError):
            b.inertia_matrix = np.diag([1.0, float('inf'), 1.0])

        self.assertEqual(self.j1.mass, 1.0)
        self.assertEqual(self.j1.com_x, 0.0)
        self.assertEqual(self.j1.inertia_xy, 0.0)
        self.assertTrue(np.all(np.isfinite(b.local_center_of_mass)))

        with self.assertRaises(ValueError):
            self.j2.inertia_zz = float('-inf')
        self.assertEqual(self.j2.inertia_zz, 0.0)

    def test_body_from_other_tree(self):
        other = KinematicTree('other')
        b = other.create_body('b')
        with self.assertRaises(TreeMismatchError):
            self.j1.set_attached_body(b)
        self.assertIsNone(self.j1.attached_body())

    def test_invalid_body(self):
        with self.assertRaises(ValueError):
            self.tree.create_body('b', mass=-1.0)
        with self.assertRaises(ValueError):
            self.tree.create_body('b', mass=float('nan'))
        with self.assertRaises(ValueError):
            self.tree.create_body('b', inertia_matrix=[[1, 2, 0], [0, 1, 0], [0, 0, 1]])


class TestKinematicTree(unittest.TestCase):
    """测试运动学树结构"""

    def setUp(self):
        self.tree = KinematicTree('arm')
        self.root, self.j1, self.j2 = build_chain(self.tree)

    def test_parent_child_links(self):
        """父子关系一致"""
        self.assertIsNone(self.root.parent_joint())
        self.assertIs(self.j1.parent_joint(), self.root)
        self.assertIs(self.j2.parent_joint(), self.j1)
        self.assertIs(self.root.child_joint(0), self.j1)
        self.assertIs(self.j1.child_joint(0), self.j2)
        self.assertEqual(self.j2.count_child_joints(), 0)

        print("✓ 父子关系验证通过")

    def test_add_child_increments_count(self):
        """添加子关节后数量加一, 序号即添加顺序"""
        before = self.root.count_child_joints()
        extra = self.tree.create_translation_joint('slider', axis=(1.0, 0.0, 0.0))
        self.root.add_child_joint(extra)
        self.assertEqual(self.root.count_child_joints(), before + 1)
        self.assertIs(self.root.child_joint(before), extra)
        self.assertIs(extra.parent_joint(), self.root)

    def test_child_rank_out_of_range(self):
        with self.assertRaises(ChildRankError):
            self.root.child_joint(1)
        with self.assertRaises(ChildRankError):
            self.root.child_joint(-1)
        with self.assertRaises(IndexError):
            self.j2.child_joint(0)

    def test_already_parented(self):
        """已有父关节的关节不能再添加到其他关节"""
        other = self.tree.create_rotation_joint('other')
        with self.assertRaises(AlreadyParentedError):
            other.add_child_joint(self.j2)
        self.assertIs(self.j2.parent_joint(), self.j1)
        self.assertEqual(other.count_child_joints(), 0)
        self.assertEqual(self.j1.count_child_joints(), 1)

        print("✓ 单父关节约束验证通过")

    def test_duplicate_child(self):
        """重复添加同一子关节视为错误"""
        with self.assertRaises(DuplicateChildError):
            self.j1.add_child_joint(self.j2)
        self.assertEqual(self.j1.count_child_joints(), 1)

    def test_cycle_rejected(self):
        """形成环的添加被拒绝, 树结构不变"""
        with self.assertRaises(CycleError):
            self.j2.add_child_joint(self.root)
        with self.assertRaises(InvariantError):
            self.j2.add_child_joint(self.j2)

        self.assertIsNone(self.root.parent_joint())
        self.assertEqual(self.j2.count_child_joints(), 0)
        self.assertEqual([j.name for j in self.tree.iter_joints()], ['root', 'j1', 'j2'])

        print("✓ 环检测验证通过")

    def test_cycle_without_designated_root(self):
        tree = KinematicTree()
        a = tree.create_rotation_joint('a')
        b = tree.create_rotation_joint('b')
        a.add_child_joint(b)
        with self.assertRaises(CycleError):
            b.add_child_joint(a)
        self.assertIsNone(a.parent_joint())

    def test_root_cannot_be_child(self):
        other = self.tree.create_rotation_joint('other')
        with self.assertRaises(InvariantError):
            other.add_child_joint(self.root)
        self.assertIsNone(self.root.parent_joint())

    def test_joint_from_other_tree(self):
        other = KinematicTree('other').create_rotation_joint('x')
        with self.assertRaises(TreeMismatchError):
            self.j2.add_child_joint(other)
        self.assertIsNone(other.parent_joint())

    def test_set_root_joint(self):
        with self.assertRaises(InvariantError):
            self.tree.set_root_joint(self.j1)
        self.assertIs(self.tree.root_joint(), self.root)

    def test_traversal(self):
        """先序遍历与自由度偏移"""
        extra = self.tree.create_free_flyer_joint('ff')
        self.root.add_child_joint(extra)
        names = [j.name for j in self.tree.iter_joints()]
        self.assertEqual(names, ['root', 'j1', 'j2', 'ff'])
        self.assertEqual(self.tree.n_dofs, 8)
        self.assertEqual(self.tree.dof_offset(self.j2), 1)
        self.assertEqual(self.tree.dof_offset(extra), 2)
        self.assertEqual(self.j2.depth(), 2)
        self.assertEqual(self.j2.ancestors(), [self.j1, self.root])
        self.assertIs(self.tree.find_joint('j1'), self.j1)
        self.assertIsNone(self.tree.find_joint('missing'))
        self.assertIs(self.tree.joint(self.j1.handle), self.j1)

    def test_world_position(self):
        """世界位姿为各关节位姿的累乘"""
        T = self.j2.world_position()
        self.assertTrue(np.allclose(T[:3, 3], [1.0, 0.0, 1.0]))

    def test_placement_sync(self):
        """两种表示保持同步"""
        M = make_transform([0.1, 0.2, 0.3], [0.3, -0.2, 0.1])
        self.j1.set_current_position(M)
        self.assertTrue(torch.allclose(self.j1.dynamics_position(),
                                       torch.tensor(M, dtype=torch.float64)))

        T = to_dynamics_format(make_transform([1.0, 0.0, 0.0]))
        self.j1.set_dynamics_position(T)
        self.assertTrue(np.allclose(self.j1.current_position()[:3, 3], [1.0, 0.0, 0.0]))

    def test_float32_placement_round_trip(self):
        """float32 动力学位姿可以原样写回"""
        tree = KinematicTree(config=TreeConfig(dtype=torch.float32))
        M = make_transform([0.1, -0.4, 0.7], [0.3, -1.1, 2.0])
        j = tree.create_rotation_joint('j', position=M)
        T = j.dynamics_position()
        self.assertEqual(T.dtype, torch.float32)

        j.set_dynamics_position(T)
        self.assertTrue(np.allclose(j.current_position(), M, atol=1e-6))
        self.assertEqual(j.dynamics_position().dtype, torch.float32)

        skewed = T.clone()
        skewed[0, 1] += 1e-3
        with self.assertRaises(ValueError):
            j.set_dynamics_position(skewed)

    def test_invalid_placement(self):
        scaled = np.eye(4) * 2.0
        scaled[3, 3] = 1.0
        with self.assertRaises(ValueError):
            self.j1.set_current_position(scaled)
        with self.assertRaises(TransformFormatError):
            self.j1.set_current_position(np.eye(3))

        tree = KinematicTree(config=TreeConfig.permissive())
        j = tree.create_rotation_joint('j', position=scaled)
        self.assertEqual(j.current_position()[0, 0], 2.0)

    def test_invalid_joint_creation(self):
        with self.assertRaises(ValueError):
            self.tree.create_joint('x', 'helical')
        with self.assertRaises(ValueError):
            self.tree.create_rotation_joint('x', axis=(0.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            self.tree.create_joint('x', 'generic')
        with self.assertRaises(ValueError):
            self.tree.create_joint('x', 'generic', n_dofs=2.5)
        with self.assertRaises(ValueError):
            self.tree.create_joint('x', 'generic', n_dofs=True)
        with self.assertRaises(ValueError):
            self.tree.create_joint('x', 'generic', n_dofs=-1)
        self.assertEqual(self.tree.create_joint('g2', 'generic', n_dofs=np.int64(2)).n_dofs, 2)
        generic = self.tree.create_joint('g', 'generic', n_dofs=3)
        self.assertEqual(generic.n_dofs, 3)
        self.assertIsNone(generic.axis)

    def test_str(self):
        """可读的文本输出"""
        text = str(self.j1)
        self.assertIn("j1", text)
        self.assertIn("revolute", text)
        self.assertIn("1.0000", text)
        self.tree.print_tree()


def run_tests():
    """运行所有测试"""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestTransformAdapter))
    suite.addTests(loader.loadTestsFromTestCase(TestDofBounds))
    suite.addTests(loader.loadTestsFromTestCase(TestAnchorJoint))
    suite.addTests(loader.loadTestsFromTestCase(TestBodyAttachment))
    suite.addTests(loader.loadTestsFromTestCase(TestKinematicTree))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)
    return result.wasSuccessful()


if __name__ == '__main__':
    success = run_tests()
    sys.exit(0 if success else 1)
