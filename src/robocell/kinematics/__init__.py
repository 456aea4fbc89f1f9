"""
Kinematics module - Mechanisms, solvers and joint types.

Mechanical groups and robot cells live in :mod:`robocell.kinematics.group`,
which depends on the target model in :mod:`robocell.targets`.
"""

from robocell.kinematics.mechanism import Mechanism
from robocell.kinematics.solvers import (
    SOLVERS,
    LinearTrackSolver,
    MechanismSolver,
    RotaryPositionerSolver,
    SphericalWristArmSolver,
)
from robocell.kinematics.types import (
    Joint,
    KinematicSolution,
    LocalSolution,
    MechanismKind,
    RobotConfiguration,
)

__all__ = [
    "Joint",
    "KinematicSolution",
    "LocalSolution",
    "Mechanism",
    "MechanismKind",
    "RobotConfiguration",
    "MechanismSolver",
    "SphericalWristArmSolver",
    "LinearTrackSolver",
    "RotaryPositionerSolver",
    "SOLVERS",
]
