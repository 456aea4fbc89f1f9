"""
Program-wide validation and keyframing.

Every cell target is resolved in order, feeding the previous valid joint
values forward so that each target keeps the configuration of the one
before it when possible. Linear motions are re-resolved at intermediate
samples. Kinematic problems become diagnostics attached to the target and
never stop the pass; only structural problems prevent keyframing.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence

from compas.geometry import Frame

from robocell.core.config import CheckSettings
from robocell.core.geometry import (
    frame_distance,
    frame_to_matrix,
    interpolate_frames,
    invert,
    matrix_to_frame,
)
from robocell.core.logging import get_logger
from robocell.kinematics.group import MechanicalGroup, RobotCell
from robocell.kinematics.types import KinematicSolution
from robocell.targets import (
    CartesianTarget,
    CellTarget,
    JointTarget,
    Motion,
    Target,
    Tool,
)

logger = get_logger(__name__)

Solutions = list[KinematicSolution]


class Severity(Enum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A kinematic problem attached to one target of one group."""

    target_index: int
    group: int
    message: str
    severity: Severity = Severity.ERROR

    def __str__(self) -> str:
        return f"Target {self.target_index} (group {self.group}): {self.message}"


@dataclass(frozen=True)
class Keyframe:
    """
    Resolved cell state at a point in time.

    Attributes:
        time: Time since program start (s)
        target_index: Cell target being moved to
        kinematics: One solution per group
        tools: Tool of each group
    """

    time: float
    target_index: int
    kinematics: tuple[KinematicSolution, ...]
    tools: tuple[Tool, ...]


class CheckProgram:
    """
    Resolves and validates an ordered list of cell targets.

    After construction:

    - ``errors`` holds structural errors; if any, nothing else was computed
    - ``diagnostics`` holds kinematic problems per target
    - ``keyframes`` holds time-stamped solutions of every resolved target
    - ``fixed_targets`` holds the targets with kinematics attached, missing
      configurations filled in and a linear first motion made a joint motion

    Targets that fail to resolve get no keyframe; later targets continue
    from the last target that resolved.
    """

    def __init__(
        self,
        cell: RobotCell,
        targets: Sequence[CellTarget],
        settings: Optional[CheckSettings] = None,
    ) -> None:
        self.cell = cell
        self.settings = settings or cell.settings
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.diagnostics: list[Diagnostic] = []
        self.keyframes: list[Keyframe] = []
        self.fixed_targets: list[CellTarget] = list(targets)
        self.duration = 0.0

        if self._check_structure(targets):
            self._run(targets)

        logger.info(
            "program_checked",
            targets=len(targets),
            keyframes=len(self.keyframes),
            errors=len(self.errors),
            diagnostics=len(self.diagnostics),
            duration=round(self.duration, 3),
        )

    def _check_structure(self, targets: Sequence[CellTarget]) -> bool:
        group_count = len(self.cell.groups)

        if not targets:
            self.errors.append("The program must contain at least 1 target.")

        for position, cell_target in enumerate(targets):
            if len(cell_target.program_targets) != group_count:
                self.errors.append(
                    f"Target index {position} contains "
                    f"{len(cell_target.program_targets)} target(s), "
                    f"this robot cell requires {group_count}."
                )
                continue
            if any(
                not isinstance(t, (JointTarget, CartesianTarget))
                for t in cell_target.targets
            ):
                self.errors.append(f"Target index {position} is null or invalid.")

        return not self.errors

    def _run(self, cell_targets: Sequence[CellTarget]) -> None:
        last_targets: Optional[list[Target]] = None
        last_solutions: Optional[Solutions] = None
        time = 0.0
        fixed = []

        for position, cell_target in enumerate(cell_targets):
            targets = list(cell_target.targets)
            if position == 0:
                targets = self._first_as_joint(targets)

            previous = (
                [list(s.joints) for s in last_solutions] if last_solutions else None
            )
            linear = last_solutions is not None and any(
                t.motion is Motion.LINEAR for t in targets
            )

            if linear:
                samples = self._linear_samples(
                    last_targets, last_solutions, targets, previous
                )
            else:
                samples = [self.cell.kinematics(targets, previous)]

            solutions = samples[-1]
            messages: list[dict[str, None]] = [{} for _ in self.cell.groups]
            for sample in samples:
                for group, solution in enumerate(sample):
                    messages[group].update(dict.fromkeys(solution.errors))

            resolved = not any(messages)
            delta_time = 0.0

            if resolved:
                if linear:
                    self._check_jumps([last_solutions, *samples], messages)

                start = last_solutions
                for sample in samples:
                    if start is not None:
                        delta_time += self._segment_time(start, sample, targets)
                    self.keyframes.append(
                        Keyframe(
                            time=time + delta_time,
                            target_index=cell_target.index,
                            kinematics=tuple(sample),
                            tools=tuple(t.tool for t in targets),
                        )
                    )
                    start = sample

                time += delta_time
                targets = self._fix_configurations(targets, solutions)
                last_targets, last_solutions = targets, solutions

            for group, group_messages in enumerate(messages):
                self.diagnostics.extend(
                    Diagnostic(cell_target.index, group, message)
                    for message in group_messages
                )

            fixed.append(cell_target.resolved(targets, solutions, time, delta_time))

        self.fixed_targets = fixed
        self.duration = time

    def _first_as_joint(self, targets: list[Target]) -> list[Target]:
        result = []
        for target in targets:
            if isinstance(target, CartesianTarget) and target.motion is Motion.LINEAR:
                self.warnings.append(
                    "The first target can't be a linear motion, "
                    "it was changed to a joint motion."
                )
                target = replace(target, motion=Motion.JOINT)
            result.append(target)
        return result

    def _fix_configurations(
        self, targets: list[Target], solutions: Solutions
    ) -> list[Target]:
        result = []
        for group, target, solution in zip(self.cell.groups, targets, solutions):
            if (
                isinstance(target, CartesianTarget)
                and target.configuration is None
                and group.robot is not None
            ):
                target = replace(target, configuration=solution.configuration)
            result.append(target)
        return result

    def _linear_samples(
        self,
        start_targets: list[Target],
        start_solutions: Solutions,
        end_targets: list[Target],
        previous: list[list[float]],
    ) -> list[Solutions]:
        """
        Resolve a linear motion at evenly spaced samples.

        Groups moving linearly interpolate their tool frame and external
        values; other groups interpolate joint values. The returned list ends
        with the solutions of the end targets.
        """
        end_solutions = self.cell.kinematics(end_targets, previous)
        if any(s.errors for s in end_solutions):
            return [end_solutions]

        starts = []
        divisions = 1
        for group, target, start_target, start, end in zip(
            self.cell.groups, end_targets, start_targets, start_solutions, end_solutions
        ):
            if isinstance(target, CartesianTarget) and target.motion is Motion.LINEAR:
                plane = self._start_plane(
                    group.index, start_target, start_solutions, target
                )
                linear, angular = frame_distance(plane, target.plane)
                externals = [start.joints[j.number] for j in group.external_joints]
                starts.append((plane, externals))
                divisions = max(divisions, self._count(linear, angular))
                for joint, a, b in zip(group.external_joints, externals, target.external):
                    divisions = max(divisions, self._joint_count(group, joint.number, a, b))
            else:
                starts.append(None)
                for joint in group.joints:
                    divisions = max(
                        divisions,
                        self._joint_count(
                            group,
                            joint.number,
                            start.joints[joint.number],
                            end.joints[joint.number],
                        ),
                    )

        samples: list[Solutions] = []
        for step in range(1, divisions):
            t = step / divisions
            targets = []
            for target, start, begin, end in zip(
                end_targets, start_solutions, starts, end_solutions
            ):
                if begin is None:
                    joints = [a + (b - a) * t for a, b in zip(start.joints, end.joints)]
                    targets.append(
                        JointTarget(tuple(joints), tool=target.tool, speed=target.speed)
                    )
                else:
                    plane, externals = begin
                    targets.append(
                        replace(
                            target,
                            plane=interpolate_frames(plane, target.plane, t),
                            external=tuple(
                                a + (b - a) * t
                                for a, b in zip(externals, target.external)
                            ),
                        )
                    )
            sample = self.cell.kinematics(targets, previous)
            samples.append(sample)
            previous = [list(s.joints) for s in sample]

        if samples:
            end_solutions = self.cell.kinematics(end_targets, previous)
        samples.append(end_solutions)
        return samples

    def _start_plane(
        self,
        group_index: int,
        start_target: Target,
        start_solutions: Solutions,
        end_target: CartesianTarget,
    ) -> Frame:
        """
        Start of a linear motion, in the end target's reference frame.

        Coupled mechanisms are taken at the start of the motion, so the tool
        moves in a straight line relative to the coupled frame.
        """
        if (
            isinstance(start_target, CartesianTarget)
            and start_target.frame == end_target.frame
            and start_target.tool == end_target.tool
        ):
            return start_target.plane
        reference = frame_to_matrix(
            self.cell.reference_frame(group_index, end_target, start_solutions)
        )
        start = start_solutions[group_index]
        return matrix_to_frame(invert(reference) @ frame_to_matrix(start.tool_frame))

    def _count(self, linear: float, angular: float) -> int:
        return max(
            1,
            math.ceil(linear / self.settings.linear_step),
            math.ceil(angular / self.settings.angular_step),
        )

    def _joint_count(
        self, group: MechanicalGroup, number: int, a: float, b: float
    ) -> int:
        step = (
            self.settings.linear_step
            if group.is_prismatic(number)
            else self.settings.angular_step
        )
        return max(1, math.ceil(abs(b - a) / step))

    def _check_jumps(
        self, chain: list[Solutions], messages: list[dict[str, None]]
    ) -> None:
        """Report changes between consecutive samples larger than the tolerance."""
        factor = self.settings.jump_factor
        linear_tolerance = factor * self.settings.linear_step
        angular_tolerance = factor * self.settings.angular_step

        for a, b in zip(chain, chain[1:]):
            for index, group in enumerate(self.cell.groups):
                before, after = a[index], b[index]
                for joint in group.joints:
                    prismatic = group.is_prismatic(joint.number)
                    tolerance = linear_tolerance if prismatic else angular_tolerance
                    delta = abs(after.joints[joint.number] - before.joints[joint.number])
                    if delta > tolerance:
                        messages[index][
                            f"Joint {joint.number} moves more than {tolerance:.4f} "
                            "between consecutive samples of a linear motion."
                        ] = None

                linear, angular = frame_distance(before.tool_frame, after.tool_frame)
                if linear > linear_tolerance or angular > angular_tolerance:
                    messages[index][
                        "Tool frame jumps between consecutive samples "
                        "of a linear motion."
                    ] = None

    def _segment_time(
        self, start: Solutions, end: Solutions, targets: Sequence[Target]
    ) -> float:
        """Time to move between two resolved states at the targets' speeds."""
        duration = 0.0
        for group, a, b, target in zip(self.cell.groups, start, end, targets):
            linear, angular = frame_distance(a.tool_frame, b.tool_frame)
            duration = max(
                duration,
                linear / target.speed.translation,
                angular / target.speed.rotation,
            )
            for joint in group.joints:
                travel = abs(b.joints[joint.number] - a.joints[joint.number])
                duration = max(duration, travel / joint.max_speed)
        return duration
