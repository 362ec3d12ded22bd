"""
Geometric Primitives and Joint Vectors for Serial Manipulator Kinematics

This module provides the small immutable value types used throughout the
forward and inverse kinematics solvers:

- Vector3: a 3D vector
- Quaternion: a unit quaternion in (w, x, y, z) order
- Pose: position + orientation, convertible to/from 4x4 homogeneous matrices
- JointVector: six axis angles in degrees plus pass-through external axes

Rotation conversions are delegated to scipy.spatial.transform.Rotation.
All angles exchanged with callers are in degrees unless a name says otherwise.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation


NUM_AXES = 6


def rotation_about(axis, angle: float) -> np.ndarray:
    """
    Rotation matrix for a right-handed rotation of 'angle' (radians) about 'axis'.

    The axis is normalized before use.
    """
    axis = np.asarray(axis, dtype=float)
    n = np.linalg.norm(axis)
    if n == 0.0:
        raise ValueError("Rotation axis must be non-zero")
    return Rotation.from_rotvec(axis / n * angle).as_matrix()


def rot_y(theta: float) -> np.ndarray:
    """Rotation about Y by theta (radians)."""
    return Rotation.from_euler('y', theta).as_matrix()


def rot_z(theta: float) -> np.ndarray:
    """Rotation about Z by theta (radians)."""
    return Rotation.from_euler('z', theta).as_matrix()


def homogeneous(R: np.ndarray, p) -> np.ndarray:
    """Assemble a 4x4 homogeneous transform from a 3x3 rotation and a translation."""
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = p
    return T


def normalize_angle(angle: float) -> float:
    """
    Wrap an angle in degrees into [-180, 180].

    Values already inside the interval are returned unchanged, so both
    -180 and 180 are kept as given.
    """
    if angle > 180.0:
        angle -= 360.0 * math.ceil((angle - 180.0) / 360.0)
    elif angle < -180.0:
        angle += 360.0 * math.ceil((-180.0 - angle) / 360.0)
    return angle


def angle_difference(a: float, b: float) -> float:
    """Smallest absolute difference between two angles in degrees."""
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


@dataclass(frozen=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_array(cls, values) -> "Vector3":
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.shape != (3,):
            raise ValueError(f"Vector3 needs 3 components, got {values.shape[0]}")
        return cls(float(values[0]), float(values[1]), float(values[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self) -> "Vector3":
        n = self.norm()
        if n == 0.0:
            raise ValueError("Cannot normalize a zero vector")
        return Vector3(self.x / n, self.y / n, self.z / n)

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def __add__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3":
        return Vector3(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "Vector3":
        return Vector3(-self.x, -self.y, -self.z)

    def __iter__(self) -> Iterator[float]:
        return iter((self.x, self.y, self.z))


X_AXIS = Vector3(1.0, 0.0, 0.0)
Y_AXIS = Vector3(0.0, 1.0, 0.0)
Z_AXIS = Vector3(0.0, 0.0, 1.0)


@dataclass(frozen=True)
class Quaternion:
    """
    Unit quaternion in (w, x, y, z) order, the order used by the controller's
    orient data. The value is normalized on construction; small numerical
    drift is corrected rather than rejected.
    """

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __post_init__(self):
        n = math.sqrt(self.w ** 2 + self.x ** 2 + self.y ** 2 + self.z ** 2)
        if n == 0.0 or not math.isfinite(n):
            raise ValueError("Quaternion must have a finite, non-zero norm")
        if n != 1.0:
            # frozen dataclass: bypass __setattr__ to store the normalized value
            object.__setattr__(self, "w", self.w / n)
            object.__setattr__(self, "x", self.x / n)
            object.__setattr__(self, "y", self.y / n)
            object.__setattr__(self, "z", self.z / n)

    @classmethod
    def identity(cls) -> "Quaternion":
        return cls(1.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_rotation(cls, rotation: Rotation) -> "Quaternion":
        x, y, z, w = rotation.as_quat()
        # keep w >= 0 so equal rotations have one representation
        if w < 0.0:
            x, y, z, w = -x, -y, -z, -w
        return cls(float(w), float(x), float(y), float(z))

    @classmethod
    def from_matrix(cls, R) -> "Quaternion":
        R = np.asarray(R, dtype=float)
        if R.shape != (3, 3):
            raise ValueError(f"Rotation matrix must be 3x3, got {R.shape}")
        return cls.from_rotation(Rotation.from_matrix(R))

    @classmethod
    def from_axis_angle(cls, axis, angle: float) -> "Quaternion":
        """Quaternion for a rotation of 'angle' degrees about 'axis'."""
        axis = np.asarray(tuple(axis), dtype=float)
        n = np.linalg.norm(axis)
        if n == 0.0:
            raise ValueError("Rotation axis must be non-zero")
        return cls.from_rotation(Rotation.from_rotvec(axis / n * math.radians(angle)))

    def as_rotation(self) -> Rotation:
        return Rotation.from_quat([self.x, self.y, self.z, self.w])

    def as_matrix(self) -> np.ndarray:
        return self.as_rotation().as_matrix()

    def as_axis_angle(self) -> Tuple[Vector3, float]:
        """
        Returns (unit axis, angle in degrees). The identity rotation is
        reported about the Z axis with a zero angle.
        """
        rotvec = self.as_rotation().as_rotvec()
        angle = float(np.linalg.norm(rotvec))
        if angle < 1e-12:
            return Z_AXIS, 0.0
        return Vector3.from_array(rotvec / angle), math.degrees(angle)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.w, self.x, self.y, self.z)

    def inverse(self) -> "Quaternion":
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def rotate(self, v: Vector3) -> Vector3:
        return Vector3.from_array(self.as_matrix() @ v.as_array())

    def angle_to(self, other: "Quaternion") -> float:
        """Angle in degrees of the relative rotation between two orientations."""
        return math.degrees((self.as_rotation().inv() * other.as_rotation()).magnitude())

    def __mul__(self, other: "Quaternion") -> "Quaternion":
        return Quaternion.from_rotation(self.as_rotation() * other.as_rotation())


@dataclass(frozen=True)
class Pose:
    """A rigid transform: position followed by orientation."""

    position: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion.identity)

    @classmethod
    def identity(cls) -> "Pose":
        return cls()

    @classmethod
    def from_matrix(cls, T) -> "Pose":
        T = np.asarray(T, dtype=float)
        if T.shape != (4, 4):
            raise ValueError(f"Homogeneous transform must be 4x4, got {T.shape}")
        return cls(Vector3.from_array(T[:3, 3]), Quaternion.from_matrix(T[:3, :3]))

    @classmethod
    def from_xyz_axis_angle(cls, x: float, y: float, z: float,
                            axis=(0.0, 0.0, 1.0), angle: float = 0.0) -> "Pose":
        return cls(Vector3(x, y, z), Quaternion.from_axis_angle(axis, angle))

    def as_matrix(self) -> np.ndarray:
        return homogeneous(self.orientation.as_matrix(), self.position.as_array())

    def inverse(self) -> "Pose":
        inv_q = self.orientation.inverse()
        return Pose(-inv_q.rotate(self.position), inv_q)

    def transform_point(self, p: Vector3) -> Vector3:
        return self.orientation.rotate(p) + self.position

    def distance_to(self, other: "Pose") -> Tuple[float, float]:
        """Returns (position error, orientation error in degrees)."""
        return (self.position - other.position).norm(), self.orientation.angle_to(other.orientation)

    def __mul__(self, other: "Pose") -> "Pose":
        return Pose(self.transform_point(other.position), self.orientation * other.orientation)


@dataclass(frozen=True)
class JointVector:
    """
    Six robot axis angles in degrees (axis order 1..6).

    'external' holds the values of external (track/positioner) axes; the
    kinematics in this project pass them through without interpreting them.
    """

    angles: Tuple[float, ...]
    external: Tuple[float, ...] = ()

    def __post_init__(self):
        angles = tuple(float(a) for a in self.angles)
        if len(angles) != NUM_AXES:
            raise ValueError(f"JointVector needs {NUM_AXES} angles, got {len(angles)}")
        object.__setattr__(self, "angles", angles)
        object.__setattr__(self, "external", tuple(float(e) for e in self.external))

    @classmethod
    def of(cls, *angles: float) -> "JointVector":
        return cls(tuple(angles))

    @classmethod
    def zeros(cls) -> "JointVector":
        return cls((0.0,) * NUM_AXES)

    @classmethod
    def from_radians(cls, values: Iterable[float], external: Sequence[float] = ()) -> "JointVector":
        return cls(tuple(math.degrees(v) for v in values), tuple(external))

    def as_array(self) -> np.ndarray:
        return np.array(self.angles, dtype=float)

    def as_radians(self) -> np.ndarray:
        return np.radians(self.as_array())

    def with_angle(self, index: int, value: float) -> "JointVector":
        angles = list(self.angles)
        angles[index] = value
        return replace(self, angles=tuple(angles))

    def norm_to(self, other: "JointVector") -> float:
        return float(np.linalg.norm(self.as_array() - other.as_array()))

    def __getitem__(self, index):
        return self.angles[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self.angles)

    def __len__(self) -> int:
        return NUM_AXES
