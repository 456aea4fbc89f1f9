"""
Tests for sampled collision checking.
"""

import numpy as np
import pytest

from robocell.core.exceptions import GeometryError
from robocell.core.geometry import MeshGeometry
from robocell.program.check import CheckProgram
from robocell.program.collision import ENVIRONMENT, Collision
from robocell.targets import CellTarget, JointTarget, Speed

SLIDER = 1
POST = 4


def slide(cell, distance):
    """Keyframes of the slider moving ``distance`` mm at 500 mm/s."""
    speed = Speed(translation=500.0)
    targets = [
        CellTarget.from_targets([JointTarget((0.0,), speed=speed), JointTarget((0.0,))], 0),
        CellTarget.from_targets(
            [JointTarget((distance,), speed=speed), JointTarget((0.0,))], 1
        ),
    ]
    return CheckProgram(cell, targets).keyframes


def slider_position(collision, time):
    for pose in collision.samples:
        if pose.time == time:
            return pose.kinematics[0].joints[0]
    raise AssertionError(f"no sample at {time}")


class TestCollision:
    """Tests for Collision."""

    def test_detects_overlap(self, collision_cell):
        """Test the slider is reported while it passes the post."""
        collision = Collision(
            collision_cell, slide(collision_cell, 1000.0), [SLIDER], [POST], linear_step=50.0
        )

        assert collision.has_collision
        assert collision.first_hit.first == SLIDER
        assert collision.first_hit.second == POST
        for hit in collision.hits:
            assert 400.0 - 1e-6 <= slider_position(collision, hit.time) <= 600.0 + 1e-6
            assert hit.target_index == 1

    def test_no_overlap(self, collision_cell):
        """Test a short move that never reaches the post."""
        collision = Collision(
            collision_cell, slide(collision_cell, 300.0), [SLIDER], [POST], linear_step=50.0
        )
        assert not collision.has_collision
        assert collision.first_hit is None

    def test_symmetry(self, collision_cell):
        """Test swapping the sets reports the same sample times."""
        keyframes = slide(collision_cell, 1000.0)
        forward = Collision(collision_cell, keyframes, [SLIDER], [POST], linear_step=50.0)
        backward = Collision(collision_cell, keyframes, [POST], [SLIDER], linear_step=50.0)

        assert forward.collision_times == backward.collision_times
        assert {(h.first, h.second) for h in forward.hits} == {
            (h.second, h.first) for h in backward.hits
        }

    def test_same_index_skipped(self, collision_cell):
        """Test a geometry is never tested against itself."""
        collision = Collision(
            collision_cell, slide(collision_cell, 1000.0), [SLIDER], [SLIDER]
        )
        assert not collision.has_collision

    def test_sampling_completeness(self, collision_cell):
        """Test no frame moves more than the linear step between samples."""
        collision = Collision(
            collision_cell, slide(collision_cell, 1000.0), [SLIDER], [POST], linear_step=30.0
        )
        samples = collision.samples
        assert len(samples) > 2

        for a, b in zip(samples, samples[1:]):
            assert b.time >= a.time
            for sa, sb in zip(a.kinematics, b.kinematics):
                for fa, fb in zip(sa.frames, sb.frames):
                    distance = np.linalg.norm(np.subtract(list(fb.point), list(fa.point)))
                    assert distance <= 30.0 + 1e-6

    def test_static_environment(self, collision_cell):
        """Test the environment is checked against both sets."""
        environment = MeshGeometry.box((100, 100, 100), center=(1000.0, 0.0, 0.0))
        collision = Collision(
            collision_cell,
            slide(collision_cell, 1000.0),
            [SLIDER],
            [POST],
            environment=environment,
            linear_step=50.0,
        )
        environment_hits = [h for h in collision.hits if h.second == ENVIRONMENT]

        assert environment_hits
        assert all(h.first == SLIDER for h in environment_hits)
        assert slider_position(collision, environment_hits[0].time) >= 900.0 - 1e-6

    def test_environment_frame(self, collision_cell):
        """Test an environment attached to the slider moves with it."""
        environment = MeshGeometry.box((50, 50, 50))
        collision = Collision(
            collision_cell,
            slide(collision_cell, 300.0),
            [SLIDER],
            [POST],
            environment=environment,
            environment_frame=SLIDER,
            linear_step=50.0,
        )
        assert len(collision.hits) == len(collision.samples)

    def test_missing_geometry(self, collision_cell):
        """Test indices without a mesh raise GeometryError."""
        keyframes = slide(collision_cell, 100.0)
        with pytest.raises(GeometryError):
            Collision(collision_cell, keyframes, [0], [POST])
        with pytest.raises(GeometryError):
            Collision(collision_cell, keyframes, [42], [POST])

    def test_invalid_steps(self, collision_cell):
        """Test sampling steps must be positive."""
        with pytest.raises(ValueError):
            Collision(
                collision_cell, slide(collision_cell, 100.0), [SLIDER], [POST], linear_step=0
            )
