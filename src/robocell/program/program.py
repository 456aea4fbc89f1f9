"""
Robot programs.

A program zips one toolpath per mechanical group into cell targets, checks
them and, when they are structurally sound, exposes a simulation of the
resulting motion.
"""

import math
import re
from typing import Iterable, Optional, Sequence

from robocell.core.config import CheckSettings
from robocell.core.exceptions import SimulationError
from robocell.core.geometry import MeshGeometry
from robocell.core.logging import get_logger, program_context
from robocell.kinematics.group import RobotCell
from robocell.program.check import CheckProgram, Diagnostic, Keyframe, Severity
from robocell.program.collision import Collision
from robocell.program.simulation import PoseConsumer, Simulation, SimulationPose
from robocell.targets import CartesianTarget, CellTarget, JointTarget, Target

logger = get_logger(__name__)

MAX_NAME_LENGTH = 32

_IDENTIFIER = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def is_valid_identifier(name: str) -> tuple[bool, str]:
    """
    Check that a name can be used as a program name by robot controllers.

    Returns:
        Whether the name is valid, and the reason when it is not
    """
    if not name:
        return False, "name is empty"
    if len(name) > MAX_NAME_LENGTH:
        return False, f"name is longer than {MAX_NAME_LENGTH} characters"
    if not name[0].isalpha():
        return False, "name must start with a letter"
    if not _IDENTIFIER.match(name):
        return False, "name can only contain letters, digits and underscores"
    return True, ""


class Program:
    """
    A checked sequence of cell targets.

    Structural problems (wrong number of toolpaths, invalid or missing
    targets, an invalid name) are collected in ``errors`` and leave the
    program without keyframes or simulation. Kinematic problems are
    collected in ``diagnostics``; the targets that resolve are still
    keyframed and can be animated.

    Args:
        name: Program name
        cell: Robot cell the program runs on
        toolpaths: One sequence of targets per mechanical group
        multi_file_indices: Target indices where generated code is split
        settings: Check settings, defaults to the cell's settings
    """

    def __init__(
        self,
        name: str,
        cell: RobotCell,
        toolpaths: Sequence[Iterable[Target]],
        multi_file_indices: Optional[Sequence[int]] = None,
        settings: Optional[CheckSettings] = None,
    ) -> None:
        self.name = name
        self.cell = cell
        self.settings = settings or cell.settings
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.diagnostics: list[Diagnostic] = []
        self.keyframes: tuple[Keyframe, ...] = ()
        self.duration = 0.0
        self.pose_consumer: Optional[PoseConsumer] = None
        self._simulation: Optional[Simulation] = None

        targets = self._create_cell_targets(toolpaths)

        if targets:
            with program_context(name):
                check = CheckProgram(cell, targets, self.settings)
            self.errors.extend(check.errors)
            self.warnings.extend(check.warnings)
            self.diagnostics.extend(check.diagnostics)
            targets = check.fixed_targets

            if not check.errors:
                self.keyframes = tuple(check.keyframes)
                self.duration = check.duration

        self.targets: list[CellTarget] = targets
        self._check_name()
        self.multi_file_indices = self._fix_multi_file_indices(multi_file_indices)

        if self.errors:
            self.keyframes, self.duration = (), 0.0
        elif self.keyframes:
            self._simulation = Simulation(cell, self.keyframes)

        logger.info(
            "program_created",
            name=name,
            targets=len(self.targets),
            errors=len(self.errors),
            warnings=len(self.warnings),
            diagnostics=len(self.diagnostics),
            duration=round(self.duration, 3),
        )

    @property
    def has_simulation(self) -> bool:
        return self._simulation is not None

    @property
    def is_valid(self) -> bool:
        """No structural errors and no kinematic errors."""
        return not self.errors and not any(
            d.severity is Severity.ERROR for d in self.diagnostics
        )

    @property
    def current_simulation_pose(self) -> SimulationPose:
        return self._require_simulation().current_pose

    def _require_simulation(self) -> Simulation:
        if self._simulation is None:
            raise SimulationError(
                "This program cannot be animated.",
                details={"program": self.name, "errors": list(self.errors)},
            )
        return self._simulation

    def _create_cell_targets(
        self, toolpaths: Sequence[Iterable[Target]]
    ) -> list[CellTarget]:
        group_count = len(self.cell.groups)
        if len(toolpaths) != group_count:
            self.errors.append(
                f"You supplied {len(toolpaths)} toolpath(s), "
                f"this robot cell requires {group_count} toolpath(s)."
            )
            return []

        paths = [list(toolpath) for toolpath in toolpaths]
        cell_targets = []

        for index, targets in enumerate(zip(*paths)):
            if any(not isinstance(t, (JointTarget, CartesianTarget)) for t in targets):
                self.errors.append(f"Target index {index} is null or invalid.")
                return []
            cell_targets.append(CellTarget.from_targets(targets, index))

        if len({len(path) for path in paths}) > 1:
            self.errors.append("All toolpaths must contain the same number of targets.")
            return []

        if not cell_targets:
            self.errors.append("The program must contain at least 1 target.")

        return cell_targets

    def _check_name(self) -> None:
        name = self.name
        if len(self.cell.groups) > 1:
            longest = max((group.name for group in self.cell.groups), key=len)
            name = f"{self.name}_{longest}_000"

        valid, reason = is_valid_identifier(name)
        if not valid:
            self.errors.append(f"Program name '{name}' is invalid: {reason}.")

    def _fix_multi_file_indices(self, indices: Optional[Sequence[int]]) -> list[int]:
        if self.errors or not indices:
            return [0]

        count = len(self.targets)
        kept = sorted({i for i in indices if 0 <= i < count})
        if len(kept) < len(set(indices)):
            self.warnings.append(
                "Multi-file indices beyond the number of targets were removed."
            )
        if not kept or kept[0] != 0:
            kept.insert(0, 0)
        return kept

    def create_simulation(self) -> Simulation:
        """An independent simulation over this program's keyframes."""
        self._require_simulation()
        return Simulation(self.cell, self.keyframes)

    def animate(self, time: float, normalized: bool = True) -> Optional[SimulationPose]:
        """
        Step the program's simulation and notify the pose consumer.

        Returns None when the program has no simulation.
        """
        if self._simulation is None:
            return None

        pose = self._simulation.step(time, normalized)
        if self.pose_consumer is not None:
            self.pose_consumer.pose(pose.kinematics, self.targets[pose.target_index])
        return pose

    def check_collisions(
        self,
        first: Sequence[int] = (7,),
        second: Sequence[int] = (4,),
        environment: Optional[MeshGeometry] = None,
        environment_frame: int = -1,
        linear_step: float = 100.0,
        angular_step: float = math.pi / 4,
    ) -> Collision:
        """
        Check the program's motion for collisions.

        The default sets test the tool of a single arm group against its
        fourth link.

        Raises:
            SimulationError: If the program has no simulation
        """
        self._require_simulation()
        with program_context(self.name):
            return Collision(
                self.cell,
                self.keyframes,
                first,
                second,
                environment=environment,
                environment_frame=environment_frame,
                linear_step=linear_step,
                angular_step=angular_step,
            )

    def __str__(self) -> str:
        minutes, seconds = divmod(int(round(self.duration)), 60)
        hours, minutes = divmod(minutes, 60)
        return (
            f"Program ({self.name} with {len(self.targets)} targets "
            f"and {hours:02d}:{minutes:02d}:{seconds:02d} long)"
        )
