"""
Program module - Checking, keyframing, playback and collision sampling.
"""

from robocell.program.check import CheckProgram, Diagnostic, Keyframe, Severity
from robocell.program.collision import ENVIRONMENT, Collision, CollisionHit
from robocell.program.program import Program, is_valid_identifier
from robocell.program.simulation import (
    PoseConsumer,
    Simulation,
    SimulationPose,
    interpolate_keyframes,
)

__all__ = [
    "CheckProgram",
    "Diagnostic",
    "Keyframe",
    "Severity",
    "Simulation",
    "SimulationPose",
    "PoseConsumer",
    "interpolate_keyframes",
    "Collision",
    "CollisionHit",
    "ENVIRONMENT",
    "Program",
    "is_valid_identifier",
]
