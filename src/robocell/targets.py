"""
Target data model.

Targets are immutable. Resolution never modifies a target; coupled and
re-oriented frames are computed as separate values.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Sequence, Union

from compas.geometry import Frame

from robocell.core.geometry import Posable
from robocell.kinematics.types import KinematicSolution, RobotConfiguration


class Motion(Enum):
    """Interpolation type used to reach a target."""

    JOINT = "joint"  # Interpolate in joint space
    LINEAR = "linear"  # Straight tool path in Cartesian space


@dataclass(frozen=True)
class Tool:
    """
    End effector.

    Attributes:
        name: Tool name
        tcp: Tool center point relative to the flange
        geometry: Optional geometry, modeled with the flange at world XY
    """

    name: str = "DefaultTool"
    tcp: Frame = field(default_factory=Frame.worldXY)
    geometry: Optional[Posable] = field(default=None, compare=False)


@dataclass(frozen=True)
class Speed:
    """
    Motion speed limits.

    Attributes:
        translation: Tool translation speed (mm/s)
        rotation: Tool rotation speed (rad/s)
    """

    name: str = "DefaultSpeed"
    translation: float = 100.0
    rotation: float = math.pi / 2


@dataclass(frozen=True)
class TargetFrame:
    """
    Reference frame a Cartesian target is expressed in.

    When ``coupled_group`` names a mechanical group, the frame is further
    re-oriented by the output frame of a mechanism of that group: external
    ``coupled_mechanism`` of the same group, or for another group, that
    external or (``-1``) its robot flange.
    """

    frame: Frame = field(default_factory=Frame.worldXY)
    coupled_group: int = -1
    coupled_mechanism: int = -1
    name: str = "DefaultFrame"

    @property
    def is_coupled(self) -> bool:
        return self.coupled_group != -1


@dataclass(frozen=True)
class JointTarget:
    """Target given as one value per joint of the mechanical group."""

    joints: tuple[float, ...]
    tool: Tool = field(default_factory=Tool)
    speed: Speed = field(default_factory=Speed)
    frame: TargetFrame = field(default_factory=TargetFrame)

    def __post_init__(self) -> None:
        object.__setattr__(self, "joints", tuple(float(v) for v in self.joints))

    @property
    def motion(self) -> Motion:
        return Motion.JOINT


@dataclass(frozen=True)
class CartesianTarget:
    """
    Target given as a tool pose.

    Attributes:
        plane: Desired tool frame, relative to ``frame``
        configuration: Explicit branch, or None to pick one
        motion: How the target is reached
        external: Values for the group's external joints, in group order
    """

    plane: Frame
    configuration: Optional[RobotConfiguration] = None
    motion: Motion = Motion.JOINT
    tool: Tool = field(default_factory=Tool)
    speed: Speed = field(default_factory=Speed)
    frame: TargetFrame = field(default_factory=TargetFrame)
    external: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "external", tuple(float(v) for v in self.external))


Target = Union[JointTarget, CartesianTarget]


@dataclass(frozen=True)
class ProgramTarget:
    """A target bound to a mechanical group, with its resolved kinematics."""

    target: Target
    group: int
    kinematics: Optional[KinematicSolution] = None


@dataclass(frozen=True)
class CellTarget:
    """
    Targets of every mechanical group at one program step.

    Attributes:
        program_targets: One program target per group, in group order
        index: Position of the step in the program
        time: Time at which the step is reached
        delta_time: Duration of the motion into this step
    """

    program_targets: tuple[ProgramTarget, ...]
    index: int
    time: float = 0.0
    delta_time: float = 0.0

    @classmethod
    def from_targets(cls, targets: Sequence[Target], index: int) -> "CellTarget":
        return cls(
            tuple(ProgramTarget(target, group) for group, target in enumerate(targets)),
            index,
        )

    @property
    def targets(self) -> list[Target]:
        return [pt.target for pt in self.program_targets]

    @property
    def kinematics(self) -> list[Optional[KinematicSolution]]:
        return [pt.kinematics for pt in self.program_targets]

    @property
    def motion(self) -> Motion:
        """Linear if any group moves linearly."""
        if any(t.motion is Motion.LINEAR for t in self.targets):
            return Motion.LINEAR
        return Motion.JOINT

    def resolved(
        self,
        targets: Sequence[Target],
        solutions: Sequence[KinematicSolution],
        time: float,
        delta_time: float,
    ) -> "CellTarget":
        """Copy with new targets and kinematics attached."""
        program_targets = tuple(
            replace(pt, target=target, kinematics=solution)
            for pt, target, solution in zip(self.program_targets, targets, solutions)
        )
        return replace(
            self,
            program_targets=program_targets,
            time=time,
            delta_time=delta_time,
        )
