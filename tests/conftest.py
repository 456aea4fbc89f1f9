"""
Pytest configuration and shared fixtures.
"""

import math
import tempfile
from pathlib import Path

import pytest
from compas.geometry import Frame

from robocell.core.geometry import MeshGeometry
from robocell.kinematics.group import MechanicalGroup, RobotCell
from robocell.kinematics.mechanism import Mechanism
from robocell.kinematics.types import Joint, MechanismKind

ARM_RANGE = (-math.pi, math.pi)


def make_arm(first_number: int = 0, base_frame=None) -> Mechanism:
    joints = [Joint(first_number + i, ARM_RANGE, max_speed=2.0) for i in range(6)]
    return Mechanism("arm", MechanismKind.ARM, joints, base_frame=base_frame)


def make_track(number: int = 0, moves_robot: bool = False, geometry=None) -> Mechanism:
    joint = Joint(number, (0.0, 4000.0), max_speed=1000.0, geometry=geometry)
    return Mechanism("track", MechanismKind.TRACK, [joint], moves_robot=moves_robot)


def make_positioner(number: int = 0, base_frame=None, geometry=None, home=0.0):
    joint = Joint(number, (-2 * math.pi, 2 * math.pi), home=home, geometry=geometry)
    return Mechanism(
        "positioner",
        MechanismKind.POSITIONER,
        [joint],
        base_frame=base_frame,
        parameters={"height": 0.0},
    )


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def arm():
    """A six-axis arm at the world origin."""
    return make_arm()


@pytest.fixture
def arm_group(arm):
    """A group holding only an arm."""
    return MechanicalGroup(0, "robot", robot=arm)


@pytest.fixture
def arm_cell(arm_group):
    """A cell with a single arm."""
    return RobotCell("arm_cell", [arm_group])


@pytest.fixture
def track_group():
    """An arm riding on a linear track; the track is joint 6."""
    return MechanicalGroup(
        0,
        "robot_on_track",
        robot=make_arm(),
        externals=[make_track(6, moves_robot=True)],
    )


@pytest.fixture
def track_cell(track_group):
    """A cell with an arm riding on a track."""
    return RobotCell("track_cell", [track_group])


@pytest.fixture
def positioner_cell():
    """An arm working on a turntable at x=900 that re-orients its targets."""
    table = Frame([900.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    group = MechanicalGroup(
        0,
        "robot",
        robot=make_arm(),
        externals=[make_positioner(6, base_frame=table)],
        frame_coupling=0,
    )
    return RobotCell("positioner_cell", [group])


@pytest.fixture
def table_cell():
    """A turntable group at x=900 followed by an arm group."""
    table = Frame([900.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    positioner = MechanicalGroup(
        0, "table", externals=[make_positioner(0, base_frame=table)]
    )
    robot = MechanicalGroup(1, "robot", robot=make_arm())
    return RobotCell("table_cell", [positioner, robot])


@pytest.fixture
def collision_cell():
    """
    A sliding box and a fixed box.

    Flattened geometry indices: 1 is the slider (starts at the origin),
    4 is the post at x=500. Both boxes are 100 mm cubes.
    """
    slider = MechanicalGroup(
        0,
        "slider",
        externals=[make_track(0, geometry=MeshGeometry.box((100, 100, 100)))],
    )
    post_frame = Frame([500.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    post = MechanicalGroup(
        1,
        "post",
        externals=[
            make_positioner(
                0,
                base_frame=post_frame,
                geometry=MeshGeometry.box((100, 100, 100), center=(500.0, 0.0, 0.0)),
            )
        ],
    )
    return RobotCell("collision_cell", [slider, post])


@pytest.fixture
def sample_config_dir(temp_dir):
    """Create a sample configuration directory structure."""
    config_dir = temp_dir / "config"
    (config_dir / "cells").mkdir(parents=True)

    cell_config = """
cell:
  name: "Test Cell"
  groups:
    - name: "robot"
      robot:
        name: "arm"
        kind: "arm"
        joints:
          - {range: [-3.1416, 3.1416]}
          - {range: [-3.1416, 3.1416]}
          - {range: [-3.1416, 3.1416]}
          - {range: [-3.1416, 3.1416]}
          - {range: [-3.1416, 3.1416]}
          - {range: [-3.1416, 3.1416]}
      externals:
        - name: "track"
          kind: "track"
          moves_robot: true
          joints:
            - {range: [0, 3000], home: 100, max_speed: 500}
"""
    (config_dir / "cells" / "test_cell.yaml").write_text(cell_config)

    return config_dir
