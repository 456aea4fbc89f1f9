"""
Frame and geometry utilities for RoboCell.

COMPAS frames are the public frame type; internally every rigid transform is
a 4x4 numpy matrix. Orientation distance and interpolation use
scipy.spatial.transform, and posable geometry wraps trimesh meshes.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence

import numpy as np
import trimesh
from compas.geometry import Frame, Point, Vector
from scipy.spatial.transform import Rotation, Slerp

from robocell.core.exceptions import GeometryError


def frame_to_matrix(frame: Frame) -> np.ndarray:
    """
    Convert a COMPAS frame to a 4x4 homogeneous matrix.

    The columns of the rotation block are the frame axes expressed in world
    coordinates, so the matrix maps frame-local points to world points.
    """
    matrix = np.eye(4)
    matrix[:3, 0] = list(frame.xaxis)
    matrix[:3, 1] = list(frame.yaxis)
    matrix[:3, 2] = list(frame.zaxis)
    matrix[:3, 3] = list(frame.point)
    return matrix


def matrix_to_frame(matrix: np.ndarray) -> Frame:
    """Convert a 4x4 homogeneous matrix to a COMPAS frame."""
    matrix = np.asarray(matrix, dtype=float)
    return Frame(
        Point(*matrix[:3, 3].tolist()),
        Vector(*matrix[:3, 0].tolist()),
        Vector(*matrix[:3, 1].tolist()),
    )


def make_matrix(rotation: np.ndarray, translation: Sequence[float]) -> np.ndarray:
    """Build a homogeneous matrix from a 3x3 rotation and a translation."""
    matrix = np.eye(4)
    matrix[:3, :3] = rotation
    matrix[:3, 3] = translation
    return matrix


def invert(matrix: np.ndarray) -> np.ndarray:
    """Invert a rigid transform."""
    rotation = matrix[:3, :3].T
    return make_matrix(rotation, -rotation @ matrix[:3, 3])


def rot_x(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rot_y(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rot_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def orient(frame: Frame, reference: Frame) -> Frame:
    """
    Re-express a frame defined relative to world XY as relative to a reference.

    Args:
        frame: Frame whose coordinates are read as local to ``reference``
        reference: Frame that replaces world XY as the coordinate system

    Returns:
        The frame in world coordinates
    """
    return matrix_to_frame(frame_to_matrix(reference) @ frame_to_matrix(frame))


def plane_to_plane(source: Frame, target: Frame) -> np.ndarray:
    """Rigid transform that maps ``source`` onto ``target``."""
    return frame_to_matrix(target) @ invert(frame_to_matrix(source))


def rotation_angle(a: np.ndarray, b: np.ndarray) -> float:
    """Angle in radians of the rotation between two rotation blocks."""
    return float(Rotation.from_matrix(a[:3, :3].T @ b[:3, :3]).magnitude())


def frame_distance(a: Frame, b: Frame) -> tuple[float, float]:
    """
    Linear and angular distance between two frames.

    Returns:
        Tuple of (origin distance, rotation angle in radians)
    """
    ma, mb = frame_to_matrix(a), frame_to_matrix(b)
    linear = float(np.linalg.norm(mb[:3, 3] - ma[:3, 3]))
    return linear, rotation_angle(ma, mb)


def interpolate_matrices(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """
    Interpolate two rigid transforms.

    Position is interpolated linearly and orientation with SLERP.
    """
    key_rotations = Rotation.from_matrix([a[:3, :3], b[:3, :3]])
    slerp = Slerp([0.0, 1.0], key_rotations)
    rotation = slerp(t).as_matrix()
    translation = a[:3, 3] + t * (b[:3, 3] - a[:3, 3])
    return make_matrix(rotation, translation)


def interpolate_frames(a: Frame, b: Frame, t: float) -> Frame:
    """Interpolate two frames, see :func:`interpolate_matrices`."""
    return matrix_to_frame(
        interpolate_matrices(frame_to_matrix(a), frame_to_matrix(b), t)
    )


class Posable(Protocol):
    """Geometry handle that can produce a copy moved between two frames."""

    def transformed(self, source: Frame, target: Frame) -> "Posable":
        ...


@dataclass(eq=False)
class MeshGeometry:
    """
    Posable wrapper around a trimesh mesh.

    The wrapped mesh is never modified; posing returns a new instance.
    """

    mesh: trimesh.Trimesh

    def __post_init__(self) -> None:
        if not isinstance(self.mesh, trimesh.Trimesh):
            raise GeometryError(
                f"Expected a trimesh.Trimesh, got {type(self.mesh).__name__}"
            )

    def transformed(self, source: Frame, target: Frame) -> "MeshGeometry":
        """Return a copy moved from ``source`` to ``target``."""
        return self.with_transform(plane_to_plane(source, target))

    def with_transform(self, matrix: np.ndarray) -> "MeshGeometry":
        """Return a copy with a homogeneous transform applied."""
        mesh = self.mesh.copy()
        mesh.apply_transform(matrix)
        return MeshGeometry(mesh)

    @classmethod
    def box(
        cls, extents: Sequence[float], center: Sequence[float] = (0.0, 0.0, 0.0)
    ) -> "MeshGeometry":
        """Axis-aligned box, mostly useful for placeholder link geometry."""
        mesh = trimesh.creation.box(extents=extents)
        mesh.apply_translation(center)
        return cls(mesh)
