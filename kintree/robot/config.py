"""
Kinematic Tree Configuration

Default settings for placement validation and the dynamics-layer tensors.
"""

import math
from dataclasses import dataclass

import torch


@dataclass
class TreeConfig:
    """Configuration for a KinematicTree."""

    # Dynamics layer
    device: str = "cpu"  # "cpu" or "cuda"
    dtype: torch.dtype = torch.float64

    # Placement validation
    validate_placements: bool = True
    rigid_tolerance: float = 1e-9

    # Velocity bounds given to new DOFs
    default_velocity_limit: float = math.inf

    def __post_init__(self):
        """Validate configuration."""
        assert self.rigid_tolerance > 0, "rigid_tolerance must be positive"
        assert self.default_velocity_limit > 0, "default_velocity_limit must be positive"
        assert self.dtype in (torch.float32, torch.float64), "dtype must be a float dtype"

    @classmethod
    def default(cls) -> "TreeConfig":
        """Default configuration: float64 tensors on CPU, strict placements."""
        return cls()

    @classmethod
    def permissive(cls) -> "TreeConfig":
        """Configuration that accepts any 4x4 placement."""
        return cls(validate_placements=False)
