"""
Per-mechanism kinematic solvers.

Each mechanism kind is bound to exactly one solver class in ``SOLVERS``.
Solvers work in the mechanism's base frame and never raise for
reachability problems: those are returned as diagnostics on the
:class:`LocalSolution`.
"""

import math
from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Sequence

import numpy as np

from robocell.core.exceptions import MechanismError
from robocell.core.geometry import make_matrix, rot_x, rot_y, rot_z
from robocell.kinematics.types import (
    Joint,
    LocalSolution,
    MechanismKind,
    RobotConfiguration,
)

_EPSILON = 1e-9
_SINGULAR = 1e-7


def wrap_angle(angle: float) -> float:
    """Wrap an angle to the interval (-pi, pi]."""
    wrapped = math.fmod(angle + math.pi, 2 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2 * math.pi
    return wrapped - math.pi


class MechanismSolver(ABC):
    """
    Forward and inverse kinematics of one mechanism kind.

    Subclasses declare how many joints they drive and whether those joints
    are prismatic. Parameters are kind-specific dimensions in mm.
    """

    joint_count: ClassVar[int] = 1
    prismatic: ClassVar[bool] = False
    parameter_defaults: ClassVar[dict[str, float]] = {}

    def __init__(self, joints: Sequence[Joint], parameters: Optional[dict[str, float]] = None):
        if len(joints) != self.joint_count:
            raise MechanismError(
                f"{type(self).__name__} drives {self.joint_count} joint(s), "
                f"got {len(joints)}"
            )

        unknown = set(parameters or {}) - set(self.parameter_defaults)
        if unknown:
            raise MechanismError(
                f"Unknown parameter(s) for {type(self).__name__}",
                details={"unknown": sorted(unknown)},
            )

        self.joints = tuple(joints)
        self.parameters = {**self.parameter_defaults, **(parameters or {})}

    @abstractmethod
    def forward(self, joints: Sequence[float]) -> list[np.ndarray]:
        """
        Compute one frame per joint for the given joint values.

        Returns:
            List of 4x4 matrices relative to the mechanism base
        """

    def configuration_of(self, joints: Sequence[float]) -> RobotConfiguration:
        """Branch flags of a joint configuration."""
        return RobotConfiguration.NONE

    @property
    def supports_inverse(self) -> bool:
        return False

    def inverse(
        self,
        pose: np.ndarray,
        previous: Optional[Sequence[float]] = None,
        configuration: Optional[RobotConfiguration] = None,
    ) -> LocalSolution:
        raise MechanismError(f"{type(self).__name__} cannot solve from a pose")

    def solve_joints(self, joints: Sequence[float]) -> LocalSolution:
        """Forward kinematics with joint range diagnostics."""
        values = tuple(float(v) for v in joints)
        errors = tuple(
            joint.range_error(value)
            for joint, value in zip(self.joints, values)
            if not joint.in_range(value)
        )
        return LocalSolution(
            joints=values,
            frames=tuple(self.forward(values)),
            configuration=self.configuration_of(values),
            errors=errors,
        )


class LinearTrackSolver(MechanismSolver):
    """Single prismatic axis translating along the base X axis."""

    joint_count = 1
    prismatic = True

    def forward(self, joints: Sequence[float]) -> list[np.ndarray]:
        return [make_matrix(np.eye(3), [joints[0], 0.0, 0.0])]


class RotaryPositionerSolver(MechanismSolver):
    """
    Single rotary axis turning about the base Z axis.

    The output frame sits ``height`` mm above the base on the rotation axis.
    """

    joint_count = 1
    parameter_defaults = {"height": 0.0}

    def forward(self, joints: Sequence[float]) -> list[np.ndarray]:
        return [make_matrix(rot_z(joints[0]), [0.0, 0.0, self.parameters["height"]])]


class SphericalWristArmSolver(MechanismSolver):
    """
    Analytic kinematics for a 6-axis arm with a spherical wrist.

    With all joints at zero the upper arm points up (+Z), the forearm and the
    flange point forward (+X). Dimensions:

    - ``a1``: shoulder offset along X from the first axis
    - ``d1``: shoulder height above the base
    - ``a2``: upper arm length
    - ``a3``: elbow offset perpendicular to the forearm
    - ``d4``: forearm length up to the wrist center
    - ``d6``: wrist center to flange distance

    Axis 1 turns about Z, axes 2 and 3 about the arm plane normal, axes 4
    and 6 about the forearm and flange axis, axis 5 about the wrist normal.
    """

    joint_count = 6
    parameter_defaults = {
        "a1": 150.0,
        "d1": 450.0,
        "a2": 600.0,
        "a3": 120.0,
        "d4": 640.0,
        "d6": 100.0,
    }

    def __init__(self, joints: Sequence[Joint], parameters: Optional[dict[str, float]] = None):
        super().__init__(joints, parameters)
        p = self.parameters
        if p["a2"] <= 0 or math.hypot(p["d4"], p["a3"]) <= 0:
            raise MechanismError("Arm link lengths must be positive", details=p)
        self._forearm = math.hypot(p["d4"], p["a3"])
        self._beta = math.atan2(p["a3"], p["d4"])

    @property
    def supports_inverse(self) -> bool:
        return True

    def forward(self, joints: Sequence[float]) -> list[np.ndarray]:
        p = self.parameters
        q1, q2, q3, q4, q5, q6 = joints

        r1 = rot_z(q1)
        shoulder = r1 @ np.array([p["a1"], 0.0, p["d1"]])
        r2 = r1 @ rot_y(q2)
        elbow = shoulder + r2 @ np.array([0.0, 0.0, p["a2"]])
        r3 = r1 @ rot_y(q2 + q3)
        wrist = elbow + r3 @ np.array([p["d4"], 0.0, p["a3"]])
        r4 = r3 @ rot_x(q4)
        r5 = r4 @ rot_y(q5)
        r6 = r5 @ rot_x(q6)
        flange = wrist + r6 @ np.array([p["d6"], 0.0, 0.0])

        return [
            make_matrix(r1, [0.0, 0.0, 0.0]),
            make_matrix(r2, shoulder),
            make_matrix(r3, elbow),
            make_matrix(r4, wrist),
            make_matrix(r5, wrist),
            make_matrix(r6, flange),
        ]

    def configuration_of(self, joints: Sequence[float]) -> RobotConfiguration:
        p = self.parameters
        q2, q3, q5 = joints[1], joints[2], joints[4]
        flags = RobotConfiguration.NONE

        # Wrist center along the arm plane direction, measured from axis 1
        reach = (
            p["a1"]
            + p["a2"] * math.sin(q2)
            + self._forearm * math.cos(q2 + q3 - self._beta)
        )
        if reach < -_EPSILON:
            flags |= RobotConfiguration.SHOULDER
        if math.cos(self._beta - q3) < -_EPSILON:
            flags |= RobotConfiguration.ELBOW
        if wrap_angle(q5) < -_EPSILON:
            flags |= RobotConfiguration.WRIST
        return flags

    def inverse(
        self,
        pose: np.ndarray,
        previous: Optional[Sequence[float]] = None,
        configuration: Optional[RobotConfiguration] = None,
    ) -> LocalSolution:
        """
        Solve the flange pose, preferring a branch.

        The preferred branch is ``configuration`` if given (and then the only
        one tried), else the branch of ``previous``, else the lowest flag
        value. Other branches are tried in increasing flag order.
        """
        if configuration is not None:
            order = [RobotConfiguration(configuration)]
        else:
            preferred = (
                self.configuration_of(previous)
                if previous is not None
                else RobotConfiguration.NONE
            )
            order = [preferred] + [
                RobotConfiguration(value)
                for value in range(8)
                if value != preferred.value
            ]

        candidates = [
            (flags, *self._solve_branch(pose, flags, previous)) for flags in order
        ]

        for flags, joints, reachable in candidates:
            if reachable and not self._range_errors(joints):
                return self._solution(joints, flags, ())

        for flags, joints, reachable in candidates:
            if reachable:
                return self._solution(joints, flags, self._range_errors(joints))

        flags, joints, _ = candidates[0]
        return self._solution(joints, flags, ("Target out of reach.",))

    def _solution(
        self, joints: list[float], flags: RobotConfiguration, errors: Sequence[str]
    ) -> LocalSolution:
        return LocalSolution(
            joints=tuple(joints),
            frames=tuple(self.forward(joints)),
            configuration=flags,
            errors=tuple(errors),
        )

    def _range_errors(self, joints: Sequence[float]) -> tuple[str, ...]:
        return tuple(
            joint.range_error(value)
            for joint, value in zip(self.joints, joints)
            if not joint.in_range(value)
        )

    def _solve_branch(
        self,
        pose: np.ndarray,
        flags: RobotConfiguration,
        previous: Optional[Sequence[float]],
    ) -> tuple[list[float], bool]:
        p = self.parameters
        rotation = pose[:3, :3]
        wrist = pose[:3, 3] - p["d6"] * rotation[:, 0]
        radius = math.hypot(wrist[0], wrist[1])

        if radius < _SINGULAR:
            heading = previous[0] if previous is not None else 0.0
        else:
            heading = math.atan2(wrist[1], wrist[0])

        if flags & RobotConfiguration.SHOULDER:
            q1 = heading + math.pi
            x = -radius - p["a1"]
        else:
            q1 = heading
            x = radius - p["a1"]
        z = wrist[2] - p["d1"]

        # Planar two link problem between shoulder and wrist center
        a2, forearm, beta = p["a2"], self._forearm, self._beta
        s = (x * x + z * z - a2 * a2 - forearm * forearm) / (2 * a2 * forearm)
        reachable = abs(s) <= 1.0 + _EPSILON
        s = min(1.0, max(-1.0, s))

        if flags & RobotConfiguration.ELBOW:
            q3 = beta - math.pi + math.asin(s)
        else:
            q3 = beta - math.asin(s)

        k = beta - q3
        upper = math.atan2(z, x) - math.atan2(
            -forearm * math.cos(k), a2 + forearm * math.sin(k)
        )
        q2 = math.pi / 2 - upper

        # Wrist as X-Y-X Euler angles of the remaining rotation
        m = (rot_z(q1) @ rot_y(q2 + q3)).T @ rotation
        sb = math.hypot(m[0, 1], m[0, 2])

        if sb < _SINGULAR:
            q4 = previous[3] if previous is not None else 0.0
            if m[0, 0] > 0:
                q5 = 0.0
                q6 = math.atan2(m[2, 1], m[1, 1]) - q4
            else:
                q5 = -math.pi if flags & RobotConfiguration.WRIST else math.pi
                q6 = q4 - math.atan2(m[2, 1], m[1, 1])
        elif flags & RobotConfiguration.WRIST:
            q5 = math.atan2(-sb, m[0, 0])
            q4 = math.atan2(-m[1, 0], m[2, 0])
            q6 = math.atan2(-m[0, 1], -m[0, 2])
        else:
            q5 = math.atan2(sb, m[0, 0])
            q4 = math.atan2(m[1, 0], -m[2, 0])
            q6 = math.atan2(m[0, 1], m[0, 2])

        joints = [wrap_angle(q) for q in (q1, q2, q3, q4, q5, q6)]
        return self._closest_turns(joints, previous), reachable

    def _closest_turns(
        self, joints: list[float], previous: Optional[Sequence[float]]
    ) -> list[float]:
        """Shift each angle by full turns towards the previous value within range."""
        result = []
        for index, (joint, value) in enumerate(zip(self.joints, joints)):
            options = [value + turn * 2 * math.pi for turn in (-1, 0, 1)]
            in_range = [v for v in options if joint.in_range(v)] or [value]
            if previous is not None:
                reference = previous[index]
            else:
                reference = joint.home
            result.append(min(in_range, key=lambda v: abs(v - reference)))
        return result


SOLVERS: dict[MechanismKind, type[MechanismSolver]] = {
    MechanismKind.ARM: SphericalWristArmSolver,
    MechanismKind.TRACK: LinearTrackSolver,
    MechanismKind.POSITIONER: RotaryPositionerSolver,
}

_unbound = set(MechanismKind) - set(SOLVERS)
if _unbound:
    raise MechanismError(
        "Mechanism kinds without a solver",
        details={"kinds": sorted(kind.value for kind in _unbound)},
    )
