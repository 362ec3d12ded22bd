"""
Forward Kinematics for 6-Axis Serial Manipulators

Composes, starting from the chain's base transform, for each axis i = 1..6:

    T = T @ Attach_i @ Rot(axis_i, q_i)

and finally applies the flange and tool transforms to obtain the TCP pose.
Every axis angle is compared against the chain's travel interval; a
violation is flagged and reported, but the pose is always computed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from kinematic_chain import KinematicChain
from utilities import JointVector, Pose, homogeneous, rotation_about

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForwardKinematicsResult:
    pose: Pose
    in_limits: Tuple[bool, ...]
    joint_frames: Tuple[Pose, ...]
    diagnostics: Tuple[str, ...] = ()
    external: Tuple[float, ...] = ()

    @property
    def is_in_limits(self) -> bool:
        return all(self.in_limits)


def _as_joint_vector(joints: Union[JointVector, Sequence[float]]) -> JointVector:
    return joints if isinstance(joints, JointVector) else JointVector(tuple(joints))


def limit_diagnostics(chain: KinematicChain, angles: Sequence[float]) -> Tuple[Tuple[bool, ...], Tuple[str, ...]]:
    """Per-axis limit flags and the matching out-of-range messages."""
    flags = chain.in_limits(angles)
    messages = tuple(f"The position of robot axis {i + 1} is not in range."
                     for i, ok in enumerate(flags) if not ok)
    return flags, messages


def _link_transforms(chain: KinematicChain, angles: Sequence[float]):
    """Yields the accumulated 4x4 transform of each joint frame (after rotation)."""
    T = chain.base.as_matrix()
    for joint, angle in zip(chain.joints, angles):
        R = rotation_about(joint.axis.as_array(), math.radians(angle))
        T = T @ joint.frame.as_matrix() @ homogeneous(R, np.zeros(3))
        yield T


def tcp_matrix(chain: KinematicChain, joints: Union[JointVector, Sequence[float]]) -> np.ndarray:
    """
    Compute the TCP pose as a 4x4 homogeneous matrix in world coordinates.

    Args:
        chain: kinematic chain
        joints: six axis angles in degrees

    Returns:
        TBW: 4x4 homogeneous transformation matrix (world to TCP)
    """
    angles = _as_joint_vector(joints).angles
    T = None
    for T in _link_transforms(chain, angles):
        pass
    return T @ chain.tcp_offset.as_matrix()


def evaluate(chain: KinematicChain, joints: Union[JointVector, Sequence[float]]) -> ForwardKinematicsResult:
    """
    Evaluate the forward kinematics of a joint vector.

    Args:
        chain: kinematic chain
        joints: JointVector or six axis angles in degrees

    Returns:
        ForwardKinematicsResult with the TCP pose, per-axis limit flags,
        the posed joint frames and any out-of-range diagnostics
    """
    joints = _as_joint_vector(joints)
    in_limits, diagnostics = limit_diagnostics(chain, joints.angles)

    frames = [Pose.from_matrix(T) for T in _link_transforms(chain, joints.angles)]
    pose = frames[-1] * chain.tcp_offset

    for message in diagnostics:
        logger.debug(message)

    return ForwardKinematicsResult(pose, in_limits, tuple(frames), diagnostics, joints.external)
