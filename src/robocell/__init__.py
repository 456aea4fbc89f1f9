"""
RoboCell - Kinematics, program checking and simulation for robot cells

Resolves coupled robot arms and external axes against sequences of targets,
checks programs for reachability and discontinuities, plays them back in
time and samples their motion for collisions.
"""

__version__ = "0.1.0"
__author__ = "RoboCell Contributors"

from robocell.core.config import ConfigManager
from robocell.kinematics.group import MechanicalGroup, RobotCell
from robocell.program.program import Program

__all__ = [
    "__version__",
    "ConfigManager",
    "MechanicalGroup",
    "RobotCell",
    "Program",
]
