"""
Time-based playback of a checked program.
"""

import bisect
from dataclasses import dataclass, replace
from typing import Optional, Protocol, Sequence

from robocell.core.exceptions import SimulationError
from robocell.core.logging import get_logger
from robocell.kinematics.group import RobotCell
from robocell.kinematics.types import KinematicSolution
from robocell.program.check import Keyframe
from robocell.targets import CellTarget

logger = get_logger(__name__)


@dataclass(frozen=True)
class SimulationPose:
    """Cell state at a point in time."""

    target_index: int
    time: float
    kinematics: tuple[KinematicSolution, ...]


class PoseConsumer(Protocol):
    """Receives poses while a program is animated, e.g. a viewer."""

    def pose(
        self, kinematics: Sequence[KinematicSolution], target: CellTarget
    ) -> None: ...


def interpolate_keyframes(
    cell: RobotCell, start: Keyframe, end: Keyframe, fraction: float
) -> tuple[KinematicSolution, ...]:
    """
    Cell state between two keyframes.

    Joint values are interpolated linearly and the frames recomputed with
    forward kinematics, so the result is always a physically posed cell.
    The configuration and tools of ``end`` are used.
    """
    if fraction <= 0.0:
        return start.kinematics
    if fraction >= 1.0:
        return end.kinematics

    solutions = []
    for group, a, b, tool in zip(cell.groups, start.kinematics, end.kinematics, end.tools):
        joints = [va + (vb - va) * fraction for va, vb in zip(a.joints, b.joints)]
        solution = group.forward(joints, tool)
        solutions.append(replace(solution, configuration=b.configuration))
    return tuple(solutions)


class Simulation:
    """
    Plays back keyframes produced by a program check.

    Raises:
        SimulationError: If there are no keyframes
    """

    def __init__(self, cell: RobotCell, keyframes: Sequence[Keyframe]) -> None:
        if not keyframes:
            raise SimulationError("This program cannot be animated.")

        self.cell = cell
        self.keyframes: tuple[Keyframe, ...] = tuple(keyframes)
        self._times = [keyframe.time for keyframe in self.keyframes]
        self._current: Optional[SimulationPose] = None
        self.step(0.0, normalized=False)

    @property
    def duration(self) -> float:
        return self._times[-1]

    @property
    def current_pose(self) -> SimulationPose:
        return self._current

    def step(self, time: float, normalized: bool = True) -> SimulationPose:
        """
        Move the simulation to a point in time.

        Args:
            time: Time in seconds, or a fraction of the duration
            normalized: Whether ``time`` is a fraction of the duration

        Returns:
            The new current pose
        """
        if normalized:
            time *= self.duration
        time = min(max(time, 0.0), self.duration)

        index = bisect.bisect_left(self._times, time)
        if index == 0 or self._times[index] == time:
            keyframe = self.keyframes[index]
            kinematics = keyframe.kinematics
        else:
            start, keyframe = self.keyframes[index - 1], self.keyframes[index]
            span = keyframe.time - start.time
            fraction = (time - start.time) / span
            kinematics = interpolate_keyframes(self.cell, start, keyframe, fraction)

        self._current = SimulationPose(keyframe.target_index, time, kinematics)
        return self._current
