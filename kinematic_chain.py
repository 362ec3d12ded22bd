"""
Kinematic Chain Model for 6-Axis Serial Manipulators

A chain is a fixed sequence of six rotational joints. Each joint carries:

| Field  | Meaning                                                        |
|--------|----------------------------------------------------------------|
| frame  | attachment pose relative to the previous link frame            |
| axis   | unit rotation axis expressed in the attachment frame           |
| limits | closed travel interval [min, max] in degrees                   |
| kind   | axis type as plain data (only "rotational" is supported)       |

The chain also holds the base pose (robot base in world coordinates), the
flange pose (joint-6 link frame to tool mounting frame) and the tool pose
(flange to TCP).

OPW parameters (ortho-parallel base with spherical wrist):

    a1: shoulder offset along x        c1: shoulder height
    a2: elbow-to-wrist drop            c2: upper arm length
    b:  lateral offset along y         c3: forearm length
                                       c4: wrist centre to flange

Axis layout at the zero joint vector (base coordinates):

Joint  |  origin                    |  axis
-------|----------------------------|------
1      |  (0, 0, 0)                 |  +z
2      |  (a1, 0, c1)               |  +y
3      |  (a1, 0, c1+c2)            |  +y
4      |  (a1, b, c1+c2-a2)         |  +x
5      |  (a1+c3, b, c1+c2-a2)      |  +y
6      |  (a1+c3+c4, b, c1+c2-a2)   |  +x

The flange sits at the axis-6 origin with x = -Z, y = +Y, z = +X.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Tuple

import numpy as np

from utilities import (
    NUM_AXES, Pose, Quaternion, Vector3, X_AXIS, Y_AXIS, Z_AXIS, rot_y,
)


AXIS_TOLERANCE = 1e-6
LENGTH_TOLERANCE = 1e-6

# Flange orientation relative to the base at the zero joint vector
FLANGE_HOME_ORIENTATION = Quaternion.from_matrix(rot_y(math.pi / 2))


class ChainDefinitionError(ValueError):
    """Raised when a chain description violates its construction contract."""


@dataclass(frozen=True)
class JointDescriptor:
    frame: Pose
    axis: Vector3
    limits: Tuple[float, float] = (-180.0, 180.0)
    kind: str = "rotational"
    name: str = ""

    def __post_init__(self):
        if self.kind != "rotational":
            raise ChainDefinitionError(f"Unsupported axis type '{self.kind}' (only rotational axes)")
        if not isinstance(self.axis, Vector3):
            try:
                object.__setattr__(self, "axis", Vector3.from_array(self.axis))
            except (TypeError, ValueError) as e:
                raise ChainDefinitionError(f"Joint {self.name or '?'}: rotation axis needs 3 components") from e
        n = self.axis.norm()
        if n == 0.0:
            raise ChainDefinitionError(f"Joint {self.name or '?'}: rotation axis is a zero vector")
        if abs(n - 1.0) > AXIS_TOLERANCE:
            raise ChainDefinitionError(f"Joint {self.name or '?'}: rotation axis is not a unit vector (norm={n:.6g})")
        lo, hi = (float(v) for v in self.limits)
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise ChainDefinitionError(f"Joint {self.name or '?'}: limits must be finite")
        if lo > hi:
            raise ChainDefinitionError(f"Joint {self.name or '?'}: inverted limit interval [{lo}, {hi}]")
        object.__setattr__(self, "limits", (lo, hi))

    def within_limits(self, angle: float) -> bool:
        return self.limits[0] <= angle <= self.limits[1]


@dataclass(frozen=True)
class KinematicChain:
    joints: Tuple[JointDescriptor, ...]
    base: Pose = field(default_factory=Pose.identity)
    flange: Pose = field(default_factory=Pose.identity)
    tool: Pose = field(default_factory=Pose.identity)

    def __post_init__(self):
        joints = tuple(self.joints)
        if len(joints) != NUM_AXES:
            raise ChainDefinitionError(f"A chain needs exactly {NUM_AXES} joints, got {len(joints)}")
        object.__setattr__(self, "joints", joints)

    @classmethod
    def from_home_axes(cls, origins: Sequence, axes: Sequence, limits: Sequence[Tuple[float, float]],
                       flange: Pose, base: Optional[Pose] = None, tool: Optional[Pose] = None,
                       names: Optional[Sequence[str]] = None) -> "KinematicChain":
        """
        Build a chain from the joint axis lines at the zero joint vector.

        Args:
            origins: six points on the joint axes (base coordinates)
            axes: six unit axis directions (base coordinates)
            limits: six (min, max) intervals in degrees
            flange: tool mounting frame at the zero joint vector (base coordinates)
            base: robot base in world coordinates (defaults to identity)
            tool: flange to TCP transform (defaults to identity)
            names: optional joint names

        Returns:
            KinematicChain with identity-oriented attachment frames
        """
        if len(origins) != NUM_AXES or len(axes) != NUM_AXES or len(limits) != NUM_AXES:
            raise ChainDefinitionError(f"origins, axes and limits must each hold {NUM_AXES} entries")
        names = names if names is not None else [f"axis{i + 1}" for i in range(NUM_AXES)]

        joints = []
        previous = Vector3()
        for i in range(NUM_AXES):
            origin = origins[i] if isinstance(origins[i], Vector3) else Vector3.from_array(origins[i])
            joints.append(JointDescriptor(Pose(origin - previous), axes[i], tuple(limits[i]), name=names[i]))
            previous = origin

        # joint 6 link frame at home is a pure translation to its origin
        link6_home = Pose(previous)
        return cls(
            tuple(joints),
            base if base is not None else Pose.identity(),
            link6_home.inverse() * flange,
            tool if tool is not None else Pose.identity(),
        )

    @classmethod
    def from_opw(cls, a1: float, a2: float, b: float, c1: float, c2: float, c3: float, c4: float,
                 limits: Sequence[Tuple[float, float]] = ((-180.0, 180.0),) * NUM_AXES,
                 base: Optional[Pose] = None, tool: Optional[Pose] = None,
                 names: Optional[Sequence[str]] = None) -> "KinematicChain":
        """Build a spherical-wrist chain from the OPW kinematic parameters."""
        h = c1 + c2 - a2
        origins = [
            (0.0, 0.0, 0.0),
            (a1, 0.0, c1),
            (a1, 0.0, c1 + c2),
            (a1, b, h),
            (a1 + c3, b, h),
            (a1 + c3 + c4, b, h),
        ]
        axes = [Z_AXIS, Y_AXIS, Y_AXIS, X_AXIS, Y_AXIS, X_AXIS]
        flange = Pose(Vector3(a1 + c3 + c4, b, h), FLANGE_HOME_ORIENTATION)
        return cls.from_home_axes(origins, axes, limits, flange, base=base, tool=tool, names=names)

    @property
    def axis_limits(self) -> Tuple[Tuple[float, float], ...]:
        return tuple(j.limits for j in self.joints)

    def home_frames(self) -> Tuple[Pose, ...]:
        """Joint frames in base coordinates at the zero joint vector."""
        frames = []
        T = Pose.identity()
        for joint in self.joints:
            T = T * joint.frame
            frames.append(T)
        return tuple(frames)

    def home_axes(self) -> Tuple[Tuple[Vector3, Vector3], ...]:
        """(origin, unit direction) of each joint axis at the zero joint vector."""
        return tuple((frame.position, frame.orientation.rotate(joint.axis))
                     for frame, joint in zip(self.home_frames(), self.joints))

    def in_limits(self, angles: Sequence[float]) -> Tuple[bool, ...]:
        return tuple(joint.within_limits(a) for joint, a in zip(self.joints, angles))

    @property
    def tcp_offset(self) -> Pose:
        """Joint-6 link frame to TCP."""
        return self.flange * self.tool

    def with_tool(self, tool: Pose) -> "KinematicChain":
        return replace(self, tool=tool)

    def with_base(self, base: Pose) -> "KinematicChain":
        return replace(self, base=base)


@dataclass(frozen=True)
class OPWParameters:
    """
    OPW parameters extracted from a chain plus the data needed to map
    between chain joint angles and OPW angles:

        theta_opw = sign * q - offset      q = sign * (theta_opw + offset)

    'end_correction' maps the joint-6 link frame onto the OPW end frame
    (z along axis 6, origin c4 in front of the wrist centre).
    """

    a1: float
    a2: float
    b: float
    c1: float
    c2: float
    c3: float
    c4: float
    signs: Tuple[int, ...] = (1, 1, 1, 1, 1, 1)
    offsets: Tuple[float, ...] = (0.0, 0.0, -math.pi / 2, 0.0, 0.0, 0.0)
    end_correction: Pose = field(default_factory=Pose.identity)

    @property
    def k(self) -> float:
        return math.hypot(self.a2, self.c3)

    @property
    def psi3(self) -> float:
        return math.atan2(self.a2, self.c3)

    @classmethod
    def from_chain(cls, chain: KinematicChain) -> "OPWParameters":
        """
        Extract OPW parameters from the chain's home geometry.

        Raises:
            ChainDefinitionError: the chain is not an ortho-parallel
                manipulator with a spherical wrist
        """
        axes = chain.home_axes()
        origins = [o for o, _ in axes]
        directions = [d for _, d in axes]
        scale = max(1.0, max(abs(c) for o in origins for c in o))
        tol = LENGTH_TOLERANCE * scale

        expected = (Z_AXIS, Y_AXIS, Y_AXIS, X_AXIS, Y_AXIS, X_AXIS)
        signs = []
        for i, (d, e) in enumerate(zip(directions, expected)):
            dot = d.dot(e)
            if abs(abs(dot) - 1.0) > AXIS_TOLERANCE:
                raise ChainDefinitionError(
                    f"Axis {i + 1} direction {tuple(round(v, 6) for v in d)} is not aligned with "
                    f"{tuple(e)}; the chain is not an ortho-parallel manipulator")
            signs.append(1 if dot > 0 else -1)

        o1, o2, o3, o4, o5, o6 = origins
        if abs(o1.x) > tol or abs(o1.y) > tol:
            raise ChainDefinitionError("Axis 1 does not pass through the base origin")
        if abs(o3.x - o2.x) > tol:
            raise ChainDefinitionError("Axis 3 is not above axis 2 at the zero joint vector")
        if abs(o5.z - o4.z) > tol:
            raise ChainDefinitionError("Axes 4 and 5 do not intersect (no spherical wrist)")
        if abs(o6.y - o4.y) > tol or abs(o6.z - o4.z) > tol:
            raise ChainDefinitionError("Axes 4 and 6 are not collinear (no spherical wrist)")

        a1 = o2.x
        c1 = o2.z
        c2 = o3.z - o2.z
        a2 = o3.z - o4.z
        b = o4.y
        c3 = o5.x - o3.x
        c4 = o6.x - o5.x
        if abs(c2) <= tol or math.hypot(a2, c3) <= tol:
            raise ChainDefinitionError("Upper arm and forearm lengths must be non-zero")

        link6_home = chain.home_frames()[5]
        end_home = Pose(Vector3(o6.x, o4.y, o4.z), FLANGE_HOME_ORIENTATION)
        end_correction = link6_home.inverse() * end_home

        return cls(a1, a2, b, c1, c2, c3, c4, tuple(signs), end_correction=end_correction)

    def to_opw_angles(self, q_deg) -> np.ndarray:
        q = np.radians(np.asarray(q_deg, dtype=float))
        return np.asarray(self.signs) * q - np.asarray(self.offsets)

    def from_opw_angles(self, theta) -> np.ndarray:
        theta = np.asarray(theta, dtype=float)
        return np.degrees(np.asarray(self.signs) * (theta + np.asarray(self.offsets)))
