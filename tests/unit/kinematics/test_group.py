"""
Tests for mechanical groups and robot cells.
"""

import math

import numpy as np
import pytest
from compas.geometry import Frame

from robocell.core.exceptions import MechanismError
from robocell.core.geometry import MeshGeometry, frame_distance
from robocell.kinematics.group import MechanicalGroup, RobotCell
from robocell.kinematics.mechanism import Mechanism
from robocell.kinematics.types import Joint, MechanismKind, RobotConfiguration
from robocell.targets import CartesianTarget, JointTarget, TargetFrame, Tool

ARM_POSE = (0.0, 0.1, 0.1, 0.0, 0.8, 0.0)


def assert_same_frame(a, b, tolerance=1e-6):
    linear, angular = frame_distance(a, b)
    assert linear == pytest.approx(0.0, abs=tolerance)
    assert angular == pytest.approx(0.0, abs=tolerance)


def make_external(kind, number, **kwargs):
    span = (0.0, 4000.0) if kind is MechanismKind.TRACK else (-4.0, 4.0)
    return Mechanism(kind.value, kind, [Joint(number, span)], **kwargs)


class TestGroupValidation:
    """Tests for MechanicalGroup definition checks."""

    def test_empty_group(self):
        """Test a group needs at least one mechanism."""
        with pytest.raises(MechanismError):
            MechanicalGroup(0, "empty")

    def test_robot_must_be_arm(self):
        """Test the robot slot only takes an arm."""
        with pytest.raises(MechanismError):
            MechanicalGroup(0, "g", robot=make_external(MechanismKind.TRACK, 0))

    def test_external_cannot_be_arm(self, arm):
        """Test an arm cannot be an external."""
        with pytest.raises(MechanismError):
            MechanicalGroup(0, "g", externals=[arm])

    def test_non_contiguous_joints(self, arm):
        """Test joint numbers must be contiguous from zero."""
        with pytest.raises(MechanismError):
            MechanicalGroup(
                0, "g", robot=arm, externals=[make_external(MechanismKind.TRACK, 7)]
            )

    def test_single_robot_carrier(self, arm):
        """Test at most one external carries the robot."""
        with pytest.raises(MechanismError):
            MechanicalGroup(
                0,
                "g",
                robot=arm,
                externals=[
                    make_external(MechanismKind.TRACK, 6, moves_robot=True),
                    make_external(MechanismKind.TRACK, 7, moves_robot=True),
                ],
            )

    def test_invalid_frame_coupling(self, arm):
        """Test frame coupling must name an external."""
        with pytest.raises(MechanismError):
            MechanicalGroup(0, "g", robot=arm, frame_coupling=0)

    def test_cell_group_indices(self, arm_group):
        """Test group indices must match their position in the cell."""
        other = MechanicalGroup(3, "other", externals=[make_external(MechanismKind.TRACK, 0)])
        with pytest.raises(MechanismError):
            RobotCell("cell", [arm_group, other])


class TestGroupKinematics:
    """Tests for MechanicalGroup.kinematics."""

    def test_joint_target_frames(self, track_group):
        """Test frame layout: externals, robot, then tool."""
        solution = track_group.kinematics(JointTarget((0.0,) * 6 + (100.0,)))

        # track base + carriage, arm base + 6 joints, tool
        assert len(solution.frames) == 10
        assert not solution.errors
        np.testing.assert_allclose(list(solution.frames[2].point), [100.0, 0.0, 0.0])

    def test_joint_count_mismatch(self, arm_group):
        """Test a wrong joint count is a diagnostic and home fills in."""
        solution = arm_group.kinematics(JointTarget((0.5,)))
        assert solution.errors
        assert solution.joints == (0.5, 0.0, 0.0, 0.0, 0.0, 0.0)

    def test_previous_length_mismatch(self, arm_group):
        """Test a previous joint list of the wrong length is discarded."""
        plane = arm_group.forward(ARM_POSE, Tool()).tool_frame
        solution = arm_group.kinematics(CartesianTarget(plane), previous_joints=[0.0])

        assert len(solution.errors) == 1
        assert "Previous joints" in solution.errors[0]
        np.testing.assert_allclose(solution.joints, ARM_POSE, atol=1e-9)

    def test_external_count_mismatch(self, track_group):
        """Test Cartesian targets must carry one value per external joint."""
        plane = track_group.forward(ARM_POSE + (0.0,), Tool()).tool_frame
        solution = track_group.kinematics(CartesianTarget(plane))
        assert any("external value" in error for error in solution.errors)

    def test_tool_offset(self, arm_group):
        """Test the tool frame is the TCP placed on the flange."""
        tcp = Frame([0.0, 0.0, 50.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        tool = Tool("torch", tcp=tcp)
        plane = arm_group.forward(ARM_POSE, tool).tool_frame

        solution = arm_group.kinematics(CartesianTarget(plane, tool=tool))

        assert not solution.errors
        np.testing.assert_allclose(solution.joints, ARM_POSE, atol=1e-9)
        assert_same_frame(solution.tool_frame, plane)

    def test_frame_coupling_reorients_target(self, arm):
        """Test a coupled positioner rotates the target's reference frame."""
        positioner = make_external(
            MechanismKind.POSITIONER,
            6,
            base_frame=Frame([900.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]),
        )
        group = MechanicalGroup(
            0, "g", robot=arm, externals=[positioner], frame_coupling=0
        )
        local = Frame([-10.0, 0.0, 1000.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        target = CartesianTarget(local, external=(math.pi / 2,))

        solution = group.kinematics(target)

        assert not solution.errors
        # the local -X offset turned a quarter about Z at the positioner
        np.testing.assert_allclose(
            list(solution.tool_frame.point), [900.0, -10.0, 1000.0], atol=1e-6
        )

    def test_coupled_external_out_of_range(self, arm):
        """Test a target coupled to a missing external is a diagnostic."""
        group = MechanicalGroup(
            0, "g", robot=arm, externals=[make_external(MechanismKind.TRACK, 6)]
        )
        plane = group.forward(ARM_POSE + (0.0,), Tool()).tool_frame
        target = CartesianTarget(
            plane,
            external=(0.0,),
            frame=TargetFrame(coupled_group=0, coupled_mechanism=2),
        )

        solution = group.kinematics(target)

        assert "coupled to external 2" in solution.errors[0]

    def test_output_frame(self, track_group):
        """Test output frames of the robot and of an external."""
        solution = track_group.kinematics(JointTarget((0.0,) * 6 + (100.0,)))
        carriage = track_group.output_frame(solution, 0)
        np.testing.assert_allclose(list(carriage.point), [100.0, 0.0, 0.0])
        assert track_group.output_frame(solution) is solution.flange_frame
        with pytest.raises(MechanismError):
            track_group.output_frame(solution, 3)


class TestRobotCell:
    """Tests for RobotCell."""

    def test_coupling_to_other_group(self, arm):
        """Test a target coupled to a lower group's external."""
        positioner = MechanicalGroup(
            0,
            "positioner",
            externals=[
                make_external(
                    MechanismKind.POSITIONER,
                    0,
                    base_frame=Frame(
                        [900.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]
                    ),
                )
            ],
        )
        robot = MechanicalGroup(1, "robot", robot=arm)
        cell = RobotCell("cell", [positioner, robot])

        local = Frame([-10.0, 0.0, 1000.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        target = CartesianTarget(
            local, frame=TargetFrame(coupled_group=0, coupled_mechanism=0)
        )
        solutions = cell.kinematics([JointTarget((math.pi / 2,)), target])

        assert not solutions[1].errors
        np.testing.assert_allclose(
            list(solutions[1].tool_frame.point), [900.0, -10.0, 1000.0], atol=1e-6
        )

    def test_coupling_to_later_group(self, arm):
        """Test coupling to a group resolved later is a diagnostic."""
        robot = MechanicalGroup(0, "robot", robot=arm)
        other = MechanicalGroup(1, "track", externals=[make_external(MechanismKind.TRACK, 0)])
        cell = RobotCell("cell", [robot, other])

        plane = robot.forward(ARM_POSE, Tool()).tool_frame
        target = CartesianTarget(plane, frame=TargetFrame(coupled_group=1))
        solutions = cell.kinematics([target, JointTarget((0.0,))])

        assert "not resolved before" in solutions[0].errors[0]

    def test_geometry_layout(self, collision_cell):
        """Test the flattened geometry list and its frames line up."""
        tools = [Tool(), Tool()]
        geometry = collision_cell.geometry(tools)
        frames = collision_cell.default_geometry_frames()

        assert len(geometry) == len(frames) == 6
        assert isinstance(geometry[1], MeshGeometry)
        assert isinstance(geometry[4], MeshGeometry)
        assert geometry[0] is None

    def test_pose_geometry(self, collision_cell):
        """Test geometry is moved from its default to its resolved frame."""
        tools = [Tool(), Tool()]
        solutions = collision_cell.forward([(300.0,), (0.0,)], tools)
        posed = collision_cell.pose_geometry(solutions, tools)

        np.testing.assert_allclose(posed[1].mesh.centroid, [300.0, 0.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(posed[4].mesh.centroid, [500.0, 0.0, 0.0], atol=1e-9)
        assert posed[2] is None

    def test_configuration_recorded(self, arm_cell):
        """Test solutions carry the branch flags of the resolved joints."""
        (solution,) = arm_cell.forward([ARM_POSE], [Tool()])
        assert solution.configuration == RobotConfiguration.NONE

    def test_reference_frame(self, arm):
        """Test reference frames follow couplings at the given solutions."""
        base = Frame([900.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
        positioner = MechanicalGroup(
            0,
            "positioner",
            externals=[make_external(MechanismKind.POSITIONER, 0, base_frame=base)],
        )
        robot = MechanicalGroup(1, "robot", robot=arm)
        cell = RobotCell("cell", [positioner, robot])
        solutions = cell.forward([(math.pi / 2,), ARM_POSE], [Tool(), Tool()])

        coupled = CartesianTarget(
            Frame.worldXY(), frame=TargetFrame(coupled_group=0, coupled_mechanism=0)
        )
        uncoupled = CartesianTarget(Frame.worldXY())

        assert_same_frame(
            cell.reference_frame(1, coupled, solutions),
            positioner.output_frame(solutions[0], 0),
        )
        assert_same_frame(
            cell.reference_frame(1, uncoupled, solutions), Frame.worldXY()
        )
