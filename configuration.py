"""
Axis Configuration Signatures and Solution Ordering

The controller identifies a robot configuration by the 90-degree quadrant of
its turning axes 1, 4 and 6:

    cf_k = floor(q_k / 90)      k in {1, 4, 6}

e.g. -100 deg -> -2, -10 deg -> -1, 10 deg -> 0, 100 deg -> 1.

Joint vectors are ordered by (cf1, cf4, cf6) ascending. Vectors sharing a
signature are ordered by their raw angles, axis 1 -> 6, descending.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable, List, Sequence, Tuple, Union

from utilities import JointVector

TURNING_AXES = (0, 3, 5)
QUADRANT = 90.0

JointsLike = Union[JointVector, Sequence[float]]


def _angles(joints: JointsLike) -> Tuple[float, ...]:
    return joints.angles if isinstance(joints, JointVector) else tuple(float(a) for a in joints)


def quadrant(angle: float) -> int:
    return int(math.floor(angle / QUADRANT))


@dataclass(frozen=True, order=True)
class ConfigurationSignature:
    cf1: int
    cf4: int
    cf6: int

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.cf1, self.cf4, self.cf6)


@dataclass(frozen=True)
class ConfigurationData:
    """
    Mirror of the controller's configuration record [cf1, cf4, cf6, cfx].

    cfx is the solution branch index:

    cfx   Wrist centre           Wrist centre            Axis 5
          relative to axis 1     relative to lower arm
    0     In front of            In front of             Positive
    1     In front of            In front of             Negative
    2     In front of            Behind                  Positive
    3     In front of            Behind                  Negative
    4     Behind                 In front of             Positive
    5     Behind                 In front of             Negative
    6     Behind                 Behind                  Positive
    7     Behind                 Behind                  Negative
    """

    cf1: int = 0
    cf4: int = 0
    cf6: int = 0
    cfx: int = 0

    def __post_init__(self):
        if not 0 <= self.cfx <= 7:
            raise ValueError(f"cfx must be in 0..7, got {self.cfx}")

    @classmethod
    def from_joints(cls, joints: JointsLike, cfx: int = 0) -> "ConfigurationData":
        s = signature(joints)
        return cls(s.cf1, s.cf4, s.cf6, cfx)

    @property
    def signature(self) -> ConfigurationSignature:
        return ConfigurationSignature(self.cf1, self.cf4, self.cf6)

    def __str__(self) -> str:
        return f"[{self.cf1},{self.cf4},{self.cf6},{self.cfx}]"


def signature(joints: JointsLike) -> ConfigurationSignature:
    """Quadrant signature (cf1, cf4, cf6) of a joint vector."""
    angles = _angles(joints)
    return ConfigurationSignature(*(quadrant(angles[i]) for i in TURNING_AXES))


def configuration_key(joints: JointsLike) -> Tuple:
    """Sort key equivalent to compare()."""
    angles = _angles(joints)
    return signature(angles).as_tuple() + tuple(-a for a in angles)


def compare(a: JointsLike, b: JointsLike) -> int:
    """
    Total order over joint vectors.

    Returns:
        -1 if a sorts before b, 1 if after, 0 if the angles are identical
    """
    ka, kb = configuration_key(a), configuration_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def sort_joint_vectors(vectors: Iterable[JointsLike]) -> List[JointsLike]:
    return sorted(vectors, key=cmp_to_key(compare))


def smallest_turn_difference(previous: float, current: float) -> Tuple[float, int]:
    """
    Difference previous - current reduced by whole turns.

    Returns:
        (remaining difference in degrees, number of full turns removed)
    """
    diff = previous - current
    full_turns = int(round(diff / 360.0))
    return diff - full_turns * 360.0, full_turns


def adjust_to_configuration(joints: JointVector, cf1: int, cf4: int, cf6: int) -> JointVector:
    """
    Shift turning axes by whole turns so their quadrants match (cf1, cf4, cf6).

    An axis is shifted only when the target quadrant differs from the
    current one by a multiple of four. An angle lying exactly on a quadrant
    boundary also matches the quadrant just below it.
    """
    angles = list(joints.angles)
    for index, target in zip(TURNING_AXES, (cf1, cf4, cf6)):
        cf = quadrant(angles[index])
        diff = target - cf
        if diff != 0 and diff % 4 == 0:
            angles[index] += diff // 4 * 360.0
        elif (angles[index] / QUADRANT) % 1 == 0 and target != cf and (diff + 1) % 4 == 0:
            angles[index] += (diff + 1) // 4 * 360.0
    return JointVector(tuple(angles), joints.external)
