"""
Sampled collision checking of a program's motion.

Keyframe intervals are sampled finely enough that no frame of the cell
moves more than the linear step or turns more than the angular step between
consecutive samples. At each sample
the first and second geometry sets are tested against each other and,
optionally, against an environment mesh, using trimesh's FCL-backed
collision managers.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from compas.geometry import Frame
from trimesh.collision import CollisionManager

from robocell.core.exceptions import GeometryError
from robocell.core.geometry import MeshGeometry, frame_distance, plane_to_plane
from robocell.core.logging import get_logger
from robocell.kinematics.group import RobotCell
from robocell.kinematics.types import KinematicSolution
from robocell.program.check import Keyframe
from robocell.program.simulation import SimulationPose, interpolate_keyframes
from robocell.targets import Tool

logger = get_logger(__name__)

ENVIRONMENT = -1  # Geometry index reported for environment hits

_MAX_REFINEMENT = 8


@dataclass(frozen=True)
class CollisionHit:
    """Two geometries found overlapping at a sample."""

    time: float
    target_index: int
    first: int
    second: int


def _max_displacement(
    a: Sequence[KinematicSolution], b: Sequence[KinematicSolution]
) -> tuple[float, float]:
    """Largest translation and rotation of any frame between two cell states."""
    linear, angular = 0.0, 0.0
    for sa, sb in zip(a, b):
        for fa, fb in zip(sa.frames, sb.frames):
            distance, rotation = frame_distance(fa, fb)
            linear = max(linear, distance)
            angular = max(angular, rotation)
    return linear, angular


class Collision:
    """
    Collision check between two sets of geometry over a whole program.

    Geometry indices refer to the flattened geometry list of the cell
    (see :meth:`RobotCell.geometry`). A pair with the same index on both
    sides is never reported.

    Args:
        cell: The robot cell
        keyframes: Keyframes of a checked program
        first: First set of geometry indices
        second: Second set of geometry indices
        environment: Optional static mesh tested against both sets
        environment_frame: Geometry index the environment moves with, or -1
        linear_step: Maximum frame displacement between samples (mm)
        angular_step: Maximum frame and joint rotation between samples (rad)
    """

    def __init__(
        self,
        cell: RobotCell,
        keyframes: Sequence[Keyframe],
        first: Sequence[int],
        second: Sequence[int],
        environment: Optional[MeshGeometry] = None,
        environment_frame: int = -1,
        linear_step: float = 100.0,
        angular_step: float = math.pi / 4,
    ) -> None:
        if linear_step <= 0 or angular_step <= 0:
            raise ValueError("Collision sampling steps must be positive")
        if not keyframes:
            raise GeometryError("There are no keyframes to check for collisions")

        self.cell = cell
        self.keyframes: tuple[Keyframe, ...] = tuple(keyframes)
        self.first: tuple[int, ...] = tuple(sorted(set(first)))
        self.second: tuple[int, ...] = tuple(sorted(set(second)))
        self.environment = environment
        self.environment_frame = environment_frame
        self.linear_step = linear_step
        self.angular_step = angular_step

        self._default_frames = cell.default_geometry_frames()
        self._validate_indices(self.keyframes[0].tools)

        self._samples = self._sample()
        self.hits: list[CollisionHit] = self._check()

        logger.info(
            "collision_check_completed",
            samples=len(self._samples),
            hits=len(self.hits),
            first=list(self.first),
            second=list(self.second),
        )

    @property
    def samples(self) -> list[SimulationPose]:
        return [pose for pose, _ in self._samples]

    @property
    def has_collision(self) -> bool:
        return bool(self.hits)

    @property
    def first_hit(self) -> Optional[CollisionHit]:
        return self.hits[0] if self.hits else None

    @property
    def collision_times(self) -> list[float]:
        return sorted({hit.time for hit in self.hits})

    def _validate_indices(self, tools: Sequence[Tool]) -> None:
        count = len(self._default_frames)
        for index in (*self.first, *self.second):
            if not 0 <= index < count:
                raise GeometryError(
                    f"Geometry index {index} is out of range, the cell has {count} items"
                )
        if self.environment is not None:
            if not isinstance(self.environment, MeshGeometry):
                raise GeometryError("Environment must be a MeshGeometry")
            if self.environment_frame != -1 and not 0 <= self.environment_frame < count:
                raise GeometryError(
                    f"Environment frame {self.environment_frame} is out of range"
                )
        geometry = self.cell.geometry(tools)
        for index in (*self.first, *self.second):
            self._mesh(geometry, index)

    def _sample(self) -> list[tuple[SimulationPose, tuple[Tool, ...]]]:
        first = self.keyframes[0]
        samples = [
            (SimulationPose(first.target_index, first.time, first.kinematics), first.tools)
        ]

        for start, end in zip(self.keyframes, self.keyframes[1:]):
            divisions = self._divisions(start, end)
            fraction, state = 0.0, start.kinematics
            for step in range(1, divisions + 1):
                next_fraction = step / divisions
                next_state = interpolate_keyframes(self.cell, start, end, next_fraction)
                for f, kinematics in self._refine(
                    start, end, fraction, state, next_fraction, next_state, 0
                ):
                    time = start.time + (end.time - start.time) * f
                    samples.append(
                        (SimulationPose(end.target_index, time, kinematics), end.tools)
                    )
                fraction, state = next_fraction, next_state

        return samples

    def _divisions(self, start: Keyframe, end: Keyframe) -> int:
        linear, angular = _max_displacement(start.kinematics, end.kinematics)
        for group, a, b in zip(self.cell.groups, start.kinematics, end.kinematics):
            for joint in group.joints:
                delta = abs(b.joints[joint.number] - a.joints[joint.number])
                if group.is_prismatic(joint.number):
                    linear = max(linear, delta)
                else:
                    angular = max(angular, delta)
        return max(
            1,
            math.ceil(linear / self.linear_step),
            math.ceil(angular / self.angular_step),
        )

    def _refine(
        self,
        start: Keyframe,
        end: Keyframe,
        f0: float,
        s0: tuple[KinematicSolution, ...],
        f1: float,
        s1: tuple[KinematicSolution, ...],
        depth: int,
    ) -> list[tuple[float, tuple[KinematicSolution, ...]]]:
        """Bisect until consecutive samples are within both steps."""
        linear, angular = _max_displacement(s0, s1)
        if depth >= _MAX_REFINEMENT or (
            linear <= self.linear_step and angular <= self.angular_step
        ):
            return [(f1, s1)]
        middle = (f0 + f1) / 2
        state = interpolate_keyframes(self.cell, start, end, middle)
        return self._refine(start, end, f0, s0, middle, state, depth + 1) + self._refine(
            start, end, middle, state, f1, s1, depth + 1
        )

    @staticmethod
    def _mesh(geometry: list, index: int):
        item = geometry[index]
        if item is None:
            raise GeometryError(f"Geometry index {index} has no geometry")
        if not isinstance(item, MeshGeometry):
            raise GeometryError(
                f"Geometry index {index} is a {type(item).__name__}, "
                "collision checking requires MeshGeometry"
            )
        return item.mesh

    def _transform(self, posed: list[Frame], index: int) -> np.ndarray:
        return plane_to_plane(self._default_frames[index], posed[index])

    def _check(self) -> list[CollisionHit]:
        managers = {"first": CollisionManager(), "second": CollisionManager()}
        indices = {"first": self.first, "second": self.second}
        placed: dict[str, object] = {}
        hits: list[CollisionHit] = []

        for pose, tools in self._samples:
            geometry = self.cell.geometry(tools)
            posed = self.cell.posed_frames(pose.kinematics)

            for role, manager in managers.items():
                for index in indices[role]:
                    name = f"{role}:{index}"
                    mesh = self._mesh(geometry, index)
                    transform = self._transform(posed, index)
                    if placed.get(name) is mesh:
                        manager.set_transform(name, transform)
                        continue
                    if name in placed:
                        manager.remove_object(name)
                    manager.add_object(name, mesh, transform=transform)
                    placed[name] = mesh

            found: set[tuple[int, int]] = set()

            _, pairs = managers["first"].in_collision_other(
                managers["second"], return_names=True
            )
            for names in pairs:
                roles = dict(name.split(":") for name in names)
                a, b = int(roles["first"]), int(roles["second"])
                if a != b:
                    found.add((a, b))

            if self.environment is not None:
                environment_transform = (
                    np.eye(4)
                    if self.environment_frame == -1
                    else self._transform(posed, self.environment_frame)
                )
                for manager in managers.values():
                    _, names = manager.in_collision_single(
                        self.environment.mesh,
                        transform=environment_transform,
                        return_names=True,
                    )
                    for name in names:
                        found.add((int(name.split(":")[1]), ENVIRONMENT))

            hits.extend(
                CollisionHit(pose.time, pose.target_index, a, b) for a, b in sorted(found)
            )

        return hits
