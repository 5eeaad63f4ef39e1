"""
Exceptions raised by the kinematic tree.
"""


class KinematicTreeError(Exception):
    """Base class for kinematic tree errors"""
    pass


class DofRangeError(KinematicTreeError, IndexError):
    """DOF index out of range"""
    pass


class ChildRankError(KinematicTreeError, IndexError):
    """Child joint rank out of range"""
    pass


class BoundOrderError(KinematicTreeError, ValueError):
    """Lower bound greater than upper bound"""
    pass


class InvariantError(KinematicTreeError, ValueError):
    """Operation would break the tree structure"""
    pass


class AlreadyParentedError(InvariantError):
    pass


class DuplicateChildError(InvariantError):
    pass


class CycleError(InvariantError):
    pass


class TreeMismatchError(InvariantError):
    """Objects created by different trees"""
    pass


class UnknownPropertyError(KinematicTreeError, KeyError):
    pass


class TransformFormatError(AssertionError):
    """Malformed homogeneous matrix handed to the transform adapter"""
    pass
