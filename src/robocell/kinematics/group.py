"""
Mechanical groups and robot cells.

A mechanical group is one optional robot arm plus its external axes,
resolved together. A robot cell is the ordered list of groups that move in
lock-step through a program.
"""

from typing import Optional, Sequence

from compas.geometry import Frame

from robocell.core.config import CheckSettings
from robocell.core.exceptions import MechanismError
from robocell.core.geometry import (
    Posable,
    frame_to_matrix,
    invert,
    matrix_to_frame,
    orient,
)
from robocell.kinematics.mechanism import Mechanism
from robocell.kinematics.types import Joint, KinematicSolution, RobotConfiguration
from robocell.targets import CartesianTarget, JointTarget, Target, Tool


class MechanicalGroup:
    """
    A robot arm and the external axes it is coupled with.

    Joint numbers must cover ``0..n-1`` exactly once across all mechanisms
    of the group. At most one external may move the robot. ``frame_coupling``
    names the external whose output frame re-orients Cartesian targets that
    do not declare a coupling of their own.
    """

    def __init__(
        self,
        index: int,
        name: str,
        robot: Optional[Mechanism] = None,
        externals: Sequence[Mechanism] = (),
        frame_coupling: Optional[int] = None,
    ) -> None:
        self.index = index
        self.name = name
        self.robot = robot
        self.externals: tuple[Mechanism, ...] = tuple(externals)
        self.frame_coupling = frame_coupling
        self._validate()

    def _validate(self) -> None:
        if self.robot is None and not self.externals:
            raise MechanismError(f"Group '{self.name}' has no mechanisms")

        if self.robot is not None and not self.robot.is_robot:
            raise MechanismError(
                f"Group '{self.name}' robot must be an arm", mechanism=self.robot.name
            )

        for external in self.externals:
            if external.is_robot:
                raise MechanismError(
                    f"Group '{self.name}' has an arm as external axis",
                    mechanism=external.name,
                )

        if sum(e.moves_robot for e in self.externals) > 1:
            raise MechanismError(f"Group '{self.name}' has several axes moving the robot")

        numbers = sorted(joint.number for joint in self.joints)
        if numbers != list(range(len(numbers))):
            raise MechanismError(
                f"Group '{self.name}' joint numbers must be contiguous from 0",
                details={"numbers": numbers},
            )

        if self.frame_coupling is not None and not (
            0 <= self.frame_coupling < len(self.externals)
        ):
            raise MechanismError(
                f"Group '{self.name}' frame coupling {self.frame_coupling} "
                "is not an external axis"
            )

    @property
    def mechanisms(self) -> list[Mechanism]:
        """Mechanisms in resolution order: externals, then robot."""
        robot = [self.robot] if self.robot is not None else []
        return [*self.externals, *robot]

    @property
    def joints(self) -> list[Joint]:
        """All joints ordered by joint number."""
        joints = [joint for m in self.mechanisms for joint in m.joints]
        return sorted(joints, key=lambda joint: joint.number)

    @property
    def external_joints(self) -> list[Joint]:
        """External joints in the order Cartesian targets list their values."""
        return [joint for m in self.externals for joint in m.joints]

    @property
    def home(self) -> tuple[float, ...]:
        return tuple(joint.home for joint in self.joints)

    def is_prismatic(self, number: int) -> bool:
        """Whether joint ``number`` is linear (mm) rather than rotary."""
        for mechanism in self.mechanisms:
            if any(joint.number == number for joint in mechanism.joints):
                return mechanism.is_prismatic
        raise MechanismError(f"Group '{self.name}' has no joint {number}")

    def kinematics(
        self,
        target: Target,
        previous_joints: Optional[Sequence[float]] = None,
        base_frame: Optional[Frame] = None,
        coupled_frame: Optional[Frame] = None,
    ) -> KinematicSolution:
        """
        Resolve a target against this group.

        Externals are solved first. An external that moves the robot supplies
        the robot's base frame; the coupled external (or ``coupled_frame``,
        supplied by the cell for couplings across groups) re-orients the
        target's reference frame. The robot is solved last and the tool frame
        is placed on its flange.

        Args:
            target: Joint or Cartesian target
            previous_joints: Joint values of the previous target, one per joint
            base_frame: Frame the group's mechanisms are mounted on
            coupled_frame: Reference frame override from another group

        Returns:
            The solution; problems are reported in its ``errors``
        """
        joint_count = len(self.joints)
        errors: list[str] = []

        if previous_joints is not None and len(previous_joints) != joint_count:
            errors.append(
                f"Previous joints set but contain {len(previous_joints)} value(s), "
                f"should contain {joint_count} values."
            )
            previous_joints = None

        values = list(self.home)
        if isinstance(target, JointTarget):
            if len(target.joints) != joint_count:
                errors.append(
                    f"Joint target contains {len(target.joints)} value(s), "
                    f"this group requires {joint_count}."
                )
            for number, value in enumerate(target.joints[:joint_count]):
                values[number] = value
        else:
            external_joints = self.external_joints
            if len(target.external) != len(external_joints):
                errors.append(
                    f"Target contains {len(target.external)} external value(s), "
                    f"this group requires {len(external_joints)}."
                )
            for joint, value in zip(external_joints, target.external):
                values[joint.number] = value

        coupled_index = self.coupled_external(target)
        if coupled_index is not None and not 0 <= coupled_index < len(self.externals):
            errors.append(
                f"Target is coupled to external {coupled_index}, "
                f"group '{self.name}' has {len(self.externals)} external(s)."
            )
        robot_base = base_frame
        frames: list[Frame] = []
        configuration = RobotConfiguration.NONE

        for index, external in enumerate(self.externals):
            solution = external.solve_joints(
                [values[joint.number] for joint in external.joints], base_frame
            )
            frames.extend(solution.frames)
            errors.extend(solution.errors)

            if index == coupled_index:
                coupled_frame = solution.frames[-1]
            if external.moves_robot:
                robot_base = solution.frames[-1]

        if self.robot is not None:
            robot_joints = [joint.number for joint in self.robot.joints]

            if isinstance(target, JointTarget):
                solution = self.robot.solve_joints(
                    [values[n] for n in robot_joints], robot_base
                )
            else:
                reference = target.frame.frame
                if coupled_frame is not None:
                    reference = orient(reference, coupled_frame)
                tcp = frame_to_matrix(orient(target.plane, reference))
                flange = matrix_to_frame(tcp @ invert(frame_to_matrix(target.tool.tcp)))
                previous = (
                    [previous_joints[n] for n in robot_joints]
                    if previous_joints is not None
                    else None
                )
                solution = self.robot.solve_pose(
                    flange, previous, target.configuration, robot_base
                )

            for number, value in zip(robot_joints, solution.joints):
                values[number] = value
            frames.extend(solution.frames)
            errors.extend(solution.errors)
            configuration = solution.configuration

        frames.append(orient(target.tool.tcp, frames[-1]))

        return KinematicSolution(
            joints=tuple(values),
            frames=tuple(frames),
            configuration=configuration,
            errors=tuple(errors),
        )

    def forward(self, joints: Sequence[float], tool: Tool) -> KinematicSolution:
        """Frames for explicit joint values, used for playback."""
        return self.kinematics(JointTarget(tuple(joints), tool=tool))

    def coupled_external(self, target: Target) -> Optional[int]:
        """Index of the external that re-orients a target's reference frame."""
        if not isinstance(target, CartesianTarget):
            return None
        frame = target.frame
        if frame.coupled_group == self.index and frame.coupled_mechanism != -1:
            return frame.coupled_mechanism
        if frame.coupled_group == -1:
            return self.frame_coupling
        return None

    def output_frame(self, solution: KinematicSolution, mechanism: int = -1) -> Frame:
        """
        Last frame of a mechanism in a solution of this group.

        Args:
            solution: A solution produced by this group
            mechanism: External index, or -1 for the robot flange
        """
        if mechanism == -1:
            if self.robot is None:
                raise MechanismError(f"Group '{self.name}' has no robot")
            return solution.flange_frame
        if not 0 <= mechanism < len(self.externals):
            raise MechanismError(f"Group '{self.name}' has no external {mechanism}")
        end = sum(m.frame_count for m in self.externals[: mechanism + 1])
        return solution.frames[end - 1]

    def default_frames(self) -> list[Frame]:
        """Mechanism frames (without tool) at the home position."""
        return list(self.forward(self.home, Tool()).frames[:-1])

    def geometry(self) -> list[Optional[Posable]]:
        """Base and joint geometry of every mechanism, in frame order."""
        items: list[Optional[Posable]] = []
        for mechanism in self.mechanisms:
            items.append(mechanism.base_geometry)
            items.extend(joint.geometry for joint in mechanism.joints)
        return items

    def __repr__(self) -> str:
        return (
            f"MechanicalGroup(index={self.index}, name='{self.name}', "
            f"mechanisms={[m.name for m in self.mechanisms]})"
        )


class RobotCell:
    """
    An ordered set of mechanical groups driven by one program.

    Cartesian targets may be coupled to a mechanism of a lower-index group,
    for example a part held by another robot. ``settings`` are the check
    settings programs on this cell use unless given their own.
    """

    def __init__(
        self,
        name: str,
        groups: Sequence[MechanicalGroup],
        settings: Optional[CheckSettings] = None,
    ) -> None:
        if not groups:
            raise MechanismError(f"Robot cell '{name}' has no mechanical groups")
        for position, group in enumerate(groups):
            if group.index != position:
                raise MechanismError(
                    f"Group '{group.name}' has index {group.index}, expected {position}"
                )
        self.name = name
        self.groups: tuple[MechanicalGroup, ...] = tuple(groups)
        self.settings = settings or CheckSettings()

    def kinematics(
        self,
        targets: Sequence[Target],
        previous_joints: Optional[Sequence[Optional[Sequence[float]]]] = None,
    ) -> list[KinematicSolution]:
        """
        Resolve one target per group.

        Args:
            targets: One target per group, in group order
            previous_joints: Per group, previous joint values or None
        """
        if len(targets) != len(self.groups):
            raise MechanismError(
                f"Robot cell '{self.name}' requires {len(self.groups)} target(s), "
                f"got {len(targets)}"
            )

        previous_joints = previous_joints or [None] * len(self.groups)
        solutions: list[KinematicSolution] = []

        for group, target, previous in zip(self.groups, targets, previous_joints):
            coupled_frame = None
            coupling_error = None
            frame = target.frame

            if isinstance(target, CartesianTarget) and frame.coupled_group not in (
                -1,
                group.index,
            ):
                if 0 <= frame.coupled_group < group.index:
                    other = self.groups[frame.coupled_group]
                    try:
                        coupled_frame = other.output_frame(
                            solutions[frame.coupled_group], frame.coupled_mechanism
                        )
                    except MechanismError as e:
                        coupling_error = e.message
                else:
                    coupling_error = (
                        f"Target is coupled to group {frame.coupled_group}, "
                        "which is not resolved before this group."
                    )

            solution = group.kinematics(target, previous, coupled_frame=coupled_frame)
            if coupling_error is not None:
                solution = KinematicSolution(
                    joints=solution.joints,
                    frames=solution.frames,
                    configuration=solution.configuration,
                    errors=(coupling_error, *solution.errors),
                )
            solutions.append(solution)

        return solutions

    def reference_frame(
        self,
        group_index: int,
        target: CartesianTarget,
        solutions: Sequence[KinematicSolution],
    ) -> Frame:
        """
        World reference frame of a Cartesian target.

        Coupled mechanisms are taken at ``solutions``, one per group, which
        need not be the solutions of ``target`` itself.
        """
        group = self.groups[group_index]
        frame = target.frame
        coupled_frame = None

        external = group.coupled_external(target)
        if external is not None:
            coupled_frame = group.output_frame(solutions[group_index], external)
        elif 0 <= frame.coupled_group < group_index:
            coupled_frame = self.groups[frame.coupled_group].output_frame(
                solutions[frame.coupled_group], frame.coupled_mechanism
            )

        if coupled_frame is None:
            return frame.frame
        return orient(frame.frame, coupled_frame)

    def forward(
        self, joints: Sequence[Sequence[float]], tools: Sequence[Tool]
    ) -> list[KinematicSolution]:
        return [
            group.forward(values, tool)
            for group, values, tool in zip(self.groups, joints, tools)
        ]

    def default_geometry_frames(self) -> list[Frame]:
        """
        Default frames of the flattened geometry list.

        Per group: every mechanism frame at home, then world XY for the tool.
        """
        frames: list[Frame] = []
        for group in self.groups:
            frames.extend(group.default_frames())
            frames.append(Frame.worldXY())
        return frames

    def geometry(self, tools: Sequence[Tool]) -> list[Optional[Posable]]:
        """Flattened geometry list matching :meth:`default_geometry_frames`."""
        items: list[Optional[Posable]] = []
        for group, tool in zip(self.groups, tools):
            items.extend(group.geometry())
            items.append(tool.geometry)
        return items

    @staticmethod
    def posed_frames(solutions: Sequence[KinematicSolution]) -> list[Frame]:
        """Resolved frames of the flattened geometry list; tools sit on the flange."""
        frames: list[Frame] = []
        for solution in solutions:
            frames.extend(solution.frames[:-1])
            frames.append(solution.frames[-2])
        return frames

    def pose_geometry(
        self, solutions: Sequence[KinematicSolution], tools: Sequence[Tool]
    ) -> list[Optional[Posable]]:
        """
        Geometry moved from its default frame to its resolved frame.

        Entries without geometry stay None.
        """
        posed = []
        for item, source, target in zip(
            self.geometry(tools),
            self.default_geometry_frames(),
            self.posed_frames(solutions),
        ):
            posed.append(item.transformed(source, target) if item is not None else None)
        return posed

    def __repr__(self) -> str:
        return f"RobotCell(name='{self.name}', groups={[g.name for g in self.groups]})"
