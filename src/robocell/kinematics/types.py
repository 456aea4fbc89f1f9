"""
Kinematic data types shared by mechanisms, solvers and programs.
"""

import math
from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Optional

import numpy as np
from compas.geometry import Frame

from robocell.core.geometry import Posable


class MechanismKind(Enum):
    """Closed set of mechanism kinds, each bound to one solver class."""

    ARM = "arm"  # 6-axis spherical wrist arm
    TRACK = "track"  # Linear external axis
    POSITIONER = "positioner"  # Rotary external axis


class RobotConfiguration(IntFlag):
    """
    Inverse kinematics branch flags.

    The integer value doubles as the deterministic tie-break: when no
    continuity hint is available the lowest feasible value wins.
    """

    NONE = 0
    SHOULDER = 1  # Wrist center behind the first axis
    ELBOW = 2  # Elbow below the line from shoulder to wrist
    WRIST = 4  # Negative fifth axis


@dataclass(frozen=True)
class Joint:
    """
    A single joint of a mechanism.

    Attributes:
        number: Index of the joint within its mechanical group
        range: Allowed (min, max) values in radians or mm
        home: Default joint value
        max_speed: Maximum speed in rad/s or mm/s
        geometry: Optional posable geometry of the link moved by the joint
    """

    number: int
    range: tuple[float, float]
    home: float = 0.0
    max_speed: float = math.pi
    geometry: Optional[Posable] = field(default=None, compare=False)

    def in_range(self, value: float, tolerance: float = 1e-9) -> bool:
        return self.range[0] - tolerance <= value <= self.range[1] + tolerance

    def range_error(self, value: float) -> str:
        return (
            f"Joint {self.number} value {value:.4f} is outside its range "
            f"[{self.range[0]:.4f}, {self.range[1]:.4f}]."
        )


@dataclass(frozen=True)
class LocalSolution:
    """
    Result of a per-mechanism solver, expressed in the mechanism's base frame.

    Attributes:
        joints: Joint values in the mechanism's own joint order
        frames: One 4x4 matrix per joint, relative to the mechanism base
        configuration: Branch flags of the solution
        errors: Non-fatal diagnostics
    """

    joints: tuple[float, ...]
    frames: tuple[np.ndarray, ...]
    configuration: RobotConfiguration = RobotConfiguration.NONE
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class KinematicSolution:
    """
    Immutable result of resolving one target.

    For a mechanical group ``frames`` holds, for each mechanism in
    resolution order (externals, then robot), its base frame followed by one
    frame per joint, and finally the tool frame. An empty ``errors`` tuple
    only means resolution did not fail.
    """

    joints: tuple[float, ...]
    frames: tuple[Frame, ...]
    configuration: RobotConfiguration = RobotConfiguration.NONE
    errors: tuple[str, ...] = ()

    @property
    def tool_frame(self) -> Frame:
        return self.frames[-1]

    @property
    def flange_frame(self) -> Frame:
        return self.frames[-2]

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
