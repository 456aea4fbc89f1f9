"""
Mechanisms: single kinematic chains with a base frame and a solver.
"""

from typing import Optional, Sequence

import numpy as np
from compas.geometry import Frame

from robocell.core.exceptions import MechanismError
from robocell.core.geometry import (
    Posable,
    frame_to_matrix,
    matrix_to_frame,
    orient,
)
from robocell.kinematics.solvers import SOLVERS, MechanismSolver
from robocell.kinematics.types import (
    Joint,
    KinematicSolution,
    LocalSolution,
    MechanismKind,
    RobotConfiguration,
)


class Mechanism:
    """
    One kinematic chain: a robot arm or an external axis.

    Mechanisms are built once when the robot cell is defined and are not
    modified afterwards. Resolution results are expressed in world
    coordinates as ``[base, joint frames...]``.

    Attributes:
        name: Mechanism name
        kind: Mechanism kind, selects the solver
        joints: Joints in chain order
        base_frame: Base frame in world, or relative to the override frame
            when one is supplied at resolution time
        moves_robot: External axis carries the robot of its group
        base_geometry: Optional geometry of the fixed base link
    """

    def __init__(
        self,
        name: str,
        kind: MechanismKind,
        joints: Sequence[Joint],
        base_frame: Optional[Frame] = None,
        parameters: Optional[dict[str, float]] = None,
        moves_robot: bool = False,
        base_geometry: Optional[Posable] = None,
    ) -> None:
        if kind is MechanismKind.ARM and moves_robot:
            raise MechanismError("A robot arm cannot move a robot", mechanism=name)

        self.name = name
        self.kind = kind
        self.joints: tuple[Joint, ...] = tuple(joints)
        self.base_frame = base_frame if base_frame is not None else Frame.worldXY()
        self.moves_robot = moves_robot
        self.base_geometry = base_geometry

        try:
            self.solver: MechanismSolver = SOLVERS[kind](self.joints, parameters)
        except MechanismError as e:
            raise MechanismError(e.message, mechanism=name, details=e.details) from e

    @property
    def is_robot(self) -> bool:
        return self.kind is MechanismKind.ARM

    @property
    def is_prismatic(self) -> bool:
        return self.solver.prismatic

    @property
    def home(self) -> tuple[float, ...]:
        return tuple(joint.home for joint in self.joints)

    @property
    def frame_count(self) -> int:
        """Number of frames this mechanism contributes: base plus joints."""
        return len(self.joints) + 1

    def effective_base(self, base_frame: Optional[Frame] = None) -> Frame:
        """Base frame in world, mounted on ``base_frame`` when given."""
        if base_frame is None:
            return self.base_frame
        return orient(self.base_frame, base_frame)

    def solve_joints(
        self, joints: Sequence[float], base_frame: Optional[Frame] = None
    ) -> KinematicSolution:
        """Forward kinematics from explicit joint values."""
        return self._to_world(self.solver.solve_joints(joints), base_frame)

    def solve_pose(
        self,
        flange: Frame,
        previous: Optional[Sequence[float]] = None,
        configuration: Optional[RobotConfiguration] = None,
        base_frame: Optional[Frame] = None,
    ) -> KinematicSolution:
        """
        Inverse kinematics for a world flange pose.

        Args:
            flange: Desired flange frame in world coordinates
            previous: Joint values used to prefer the same branch
            configuration: Explicit branch, overrides ``previous``
            base_frame: Frame the mechanism base is mounted on
        """
        base = frame_to_matrix(self.effective_base(base_frame))
        local = np.linalg.solve(base, frame_to_matrix(flange))
        solution = self.solver.inverse(local, previous, configuration)
        return self._to_world(solution, base_frame)

    def _to_world(
        self, solution: LocalSolution, base_frame: Optional[Frame]
    ) -> KinematicSolution:
        base = self.effective_base(base_frame)
        base_matrix = frame_to_matrix(base)
        frames = [base] + [matrix_to_frame(base_matrix @ m) for m in solution.frames]
        return KinematicSolution(
            joints=solution.joints,
            frames=tuple(frames),
            configuration=solution.configuration,
            errors=solution.errors,
        )

    def __repr__(self) -> str:
        return (
            f"Mechanism(name='{self.name}', kind={self.kind.value}, "
            f"joints={[j.number for j in self.joints]})"
        )
